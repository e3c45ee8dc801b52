"""Serving: the ASGI adapter, error handling, and the uvicorn launcher."""

from strata.server.errors import ErrorHandler, default_error_handler, error_handling
from strata.server.handler import StrataASGI
from strata.server.launcher import (
    BindAddress,
    Launcher,
    ServerHandle,
    UvicornLauncher,
    parse_url,
    run,
)

__all__ = [
    "BindAddress",
    "ErrorHandler",
    "Launcher",
    "ServerHandle",
    "StrataASGI",
    "UvicornLauncher",
    "default_error_handler",
    "error_handling",
    "parse_url",
    "run",
]

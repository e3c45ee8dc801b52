"""Middleware: protocol-based, no inheritance required.

A middleware is any callable matching:
    async def mw(ctx: HttpContext, next: Endpoint) -> Response

``use_middleware(mw)`` turns one into an app-config decorator.

Built-in middleware:
    CORSMiddleware -- Cross-Origin Resource Sharing with named policies
    HttpsRedirect -- Redirect plain HTTP to HTTPS
    ResponseCompression -- Gzip response bodies
    SessionMiddleware -- Server-side sessions in the memory cache
    StaticFiles -- Serve static files from a directory
"""

from strata.middleware.compression import GzipOptions, ResponseCompression
from strata.middleware.cors import CORSConfig, CORSMiddleware, CorsPolicies, CORSPolicyBuilder
from strata.middleware.https import HttpsRedirect
from strata.middleware.protocol import AppConfig, Endpoint, Middleware, use_middleware
from strata.middleware.sessions import SessionMiddleware, SessionOptions, get_session
from strata.middleware.static import StaticFiles

__all__ = [
    "AppConfig",
    "CORSConfig",
    "CORSMiddleware",
    "CORSPolicyBuilder",
    "CorsPolicies",
    "Endpoint",
    "GzipOptions",
    "HttpsRedirect",
    "Middleware",
    "ResponseCompression",
    "SessionMiddleware",
    "SessionOptions",
    "StaticFiles",
    "get_session",
    "use_middleware",
]

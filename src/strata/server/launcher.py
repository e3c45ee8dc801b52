"""Launcher: turns a composed application into a running server.

The launcher is the only place that knows about sockets. It computes the
effective ``HostConfig``, applies the host logging hooks, resolves the
listen addresses, and builds one ``uvicorn.Server`` per address, all
sharing a single ASGI application (and so a single service provider).

Nothing is bound until ``ServerHandle.start()`` (or ``serve()``) runs::

    handle = Application().router(api.build()).url("http://0.0.0.0:8080").build()
    run(handle)
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Protocol
from urllib.parse import urlsplit

import anyio
import uvicorn

from strata.config import HostConfig
from strata.errors import ConfigurationError

if TYPE_CHECKING:
    from strata.application.composer import ComposedApplication

logger = logging.getLogger("strata.launcher")

DEFAULT_URL = "http://127.0.0.1:8000"

_WILDCARD_HOSTS = frozenset({"*", "+", "0.0.0.0"})
_DEFAULT_PORTS = {"http": 80, "https": 443}

# Set by the IIS HttpPlatformHandler / ASP.NET Core module.
_IIS_PORT_VARIABLES = ("ASPNETCORE_PORT", "HTTP_PLATFORM_PORT")
_IIS_PATH_VARIABLE = "ASPNETCORE_APPL_PATH"


# -- Addresses --


@dataclass(frozen=True, slots=True)
class BindAddress:
    """A parsed listen address."""

    scheme: str
    host: str
    port: int

    def __str__(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{self.scheme}://{host}:{self.port}"


def parse_url(url: str) -> BindAddress:
    """Parse a declared URL such as ``http://*:5000`` into a bind address.

    ``*``, ``+`` and ``0.0.0.0`` bind every interface. A missing port
    defaults to 80 for ``http`` and 443 for ``https``.
    """
    parts = urlsplit(url if "://" in url else f"http://{url}")
    scheme = parts.scheme.lower()
    if scheme not in _DEFAULT_PORTS:
        msg = f"Unsupported URL scheme in {url!r}: use http or https"
        raise ConfigurationError(msg)
    try:
        port = parts.port
    except ValueError as exc:
        msg = f"Invalid port in URL {url!r}"
        raise ConfigurationError(msg) from exc

    host = parts.hostname
    if not host:
        msg = f"URL {url!r} has no host"
        raise ConfigurationError(msg)
    if host in _WILDCARD_HOSTS:
        host = "0.0.0.0"
    return BindAddress(scheme, host, port if port is not None else _DEFAULT_PORTS[scheme])


def apply_iis(
    host: HostConfig, urls: tuple[str, ...], environ: Mapping[str, str]
) -> tuple[HostConfig, tuple[str, ...]]:
    """Adapt *host* and *urls* to run behind IIS.

    The port IIS forwards to replaces every declared URL, the
    application's virtual path becomes the root path, and forwarded
    headers from the local proxy are trusted. Outside IIS nothing changes.
    """
    port = next((environ[name] for name in _IIS_PORT_VARIABLES if environ.get(name)), None)
    if port is None:
        logger.debug("IIS integration enabled but no IIS port is set; using declared URLs")
        return host, urls

    app_path = environ.get(_IIS_PATH_VARIABLE, "").rstrip("/")
    host = replace(
        host,
        root_path=app_path or host.root_path,
        proxy_headers=True,
        forwarded_allow_ips="127.0.0.1",
    )
    return host, (f"http://127.0.0.1:{port}",)


def configure_logging(host: HostConfig) -> logging.Logger:
    """Apply the host log level and logging hooks to the ``strata`` logger."""
    root = logging.getLogger("strata")
    root.setLevel(host.log_level.upper())
    for configure in host.logging_configurators:
        configure(root)
    return root


# -- Handle --

_STARTUP_POLL_INTERVAL = 0.05


async def _wait_started(server: uvicorn.Server) -> bool:
    """Wait until *server* is accepting connections; ``False`` if it gave up."""
    while not server.started:
        if server.should_exit:
            return False
        await anyio.sleep(_STARTUP_POLL_INTERVAL)
    return True


class ServerHandle:
    """A launched but not yet running server.

    ``start()`` blocks until every server has stopped; ``stop()`` asks
    them to exit. ``app`` is the ASGI application being served.

    The first server runs the lifespan. The others start only once it
    reports ``started``, so no request is accepted before the startup
    hooks have finished. If the first server exits before starting, the
    others never start.
    """

    __slots__ = ("app", "servers", "urls")

    def __init__(
        self, app: Any, urls: tuple[str, ...], servers: tuple[uvicorn.Server, ...]
    ) -> None:
        self.app = app
        self.urls = urls
        self.servers = servers

    async def serve(self) -> None:
        logger.info("Now listening on: %s", ", ".join(self.urls))
        if not self.servers:
            return
        first, *rest = self.servers
        async with anyio.create_task_group() as tg:
            tg.start_soon(first.serve)
            if rest and await _wait_started(first):
                for server in rest:
                    tg.start_soon(server.serve)
        logger.info("Server stopped")

    def start(self) -> None:
        anyio.run(self.serve)

    def stop(self) -> None:
        for server in self.servers:
            server.should_exit = True

    @property
    def started(self) -> bool:
        return bool(self.servers) and all(server.started for server in self.servers)

    def __repr__(self) -> str:
        return f"<ServerHandle {', '.join(self.urls)}>"


# -- Launchers --


class Launcher(Protocol):
    """Turns a composed application into a server handle."""

    def launch(self, app: ComposedApplication) -> ServerHandle: ...


class UvicornLauncher:
    """Serves a composed application with uvicorn.

    ``environ`` defaults to ``os.environ`` and is only read for IIS
    integration.
    """

    __slots__ = ("environ",)

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self.environ = environ if environ is not None else os.environ

    def launch(self, app: ComposedApplication) -> ServerHandle:
        host = app.configure_host(HostConfig())
        configure_logging(host)

        urls = app.urls or (DEFAULT_URL,)
        if host.iis_integration:
            host, urls = apply_iis(host, urls, self.environ)

        addresses = [parse_url(url) for url in urls]
        asgi = app.asgi_app(host)
        # Only the first server runs the lifespan, so hooks fire once.
        servers = tuple(
            uvicorn.Server(
                self._config(asgi, host, address, lifespan=host.lifespan if i == 0 else "off")
            )
            for i, address in enumerate(addresses)
        )
        return ServerHandle(asgi, tuple(str(address) for address in addresses), servers)

    @staticmethod
    def _config(
        asgi: Any, host: HostConfig, address: BindAddress, *, lifespan: str
    ) -> uvicorn.Config:
        tls: dict[str, Any] = {}
        if address.scheme == "https":
            if not host.ssl_certfile:
                msg = f"{address} needs a certificate: set ssl_certfile in host_config"
                raise ConfigurationError(msg)
            tls = {"ssl_certfile": host.ssl_certfile, "ssl_keyfile": host.ssl_keyfile}
        return uvicorn.Config(
            asgi,
            host=address.host,
            port=address.port,
            log_level=host.log_level.lower(),
            root_path=host.root_path,
            proxy_headers=host.proxy_headers,
            forwarded_allow_ips=host.forwarded_allow_ips,
            lifespan=lifespan,
            timeout_graceful_shutdown=host.graceful_shutdown_timeout,
            **tls,
        )


def run(handle: ServerHandle) -> None:
    """Run *handle* until it is stopped."""
    handle.start()

"""Immutable HTTP request.

Frozen metadata with async body access. Per-request mutable state lives
on ``HttpContext``, never on the request itself.
"""

from __future__ import annotations

import json as json_module
from collections.abc import AsyncGenerator, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from strata._internal.asgi import Receive, Scope
from strata.http.cookies import parse_cookies
from strata.http.headers import Headers
from strata.http.query import QueryParams


async def _empty_receive() -> dict[str, Any]:
    return {"type": "http.request", "body": b"", "more_body": False}


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    Body is read asynchronously via ``.body()``, ``.json()``, ``.text()``
    and cached after the first read.
    """

    method: str
    path: str
    headers: Headers = field(default_factory=Headers)
    query: QueryParams = field(default_factory=QueryParams)
    path_params: dict[str, Any] = field(default_factory=dict)
    scheme: str = "http"
    root_path: str = ""
    http_version: str = "1.1"
    server: tuple[str, int] | None = None
    client: tuple[str, int] | None = None
    cookies: Mapping[str, str] = field(default_factory=dict)

    _receive: Receive = _empty_receive
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def host(self) -> str:
        """Host the client addressed, from ``Host`` or the server address."""
        header = self.headers.get("host")
        if header:
            return header
        if self.server is not None:
            host, port = self.server
            return f"{host}:{port}"
        return "localhost"

    @property
    def is_secure(self) -> bool:
        return self.scheme in ("https", "wss")

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    @property
    def url(self) -> str:
        """Path plus query string, relative to the host."""
        qs = self.query.raw
        if qs:
            return f"{self.root_path}{self.path}?{qs.decode('latin-1')}"
        return f"{self.root_path}{self.path}"

    @property
    def absolute_url(self) -> str:
        return f"{self.scheme}://{self.host}{self.url}"

    def with_path(self, path: str, *, root_path: str | None = None) -> Request:
        """Return a copy addressed at *path* (used when mounting sub-pipelines).

        Shares the body cache so a body read before the rewrite is not lost.
        """
        return replace(
            self,
            path=path,
            root_path=self.root_path if root_path is None else root_path,
        )

    def with_path_params(self, params: dict[str, Any]) -> Request:
        return replace(self, path_params={**self.path_params, **params})

    # -- Async body access --

    async def body(self) -> bytes:
        """Read the full request body (cached)."""
        if "_body" in self._cache:
            return self._cache["_body"]
        chunks = [chunk async for chunk in self.stream()]
        result = b"".join(chunks)
        self._cache["_body"] = result
        return result

    async def stream(self) -> AsyncGenerator[bytes]:
        """Stream the request body in chunks."""
        while True:
            message = await self._receive()
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                break

    async def json(self) -> Any:
        return json_module.loads(await self.body())

    async def text(self) -> str:
        return (await self.body()).decode("utf-8")

    # -- Factory --

    @classmethod
    def from_asgi(cls, scope: Scope, receive: Receive) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        headers = Headers(tuple(scope.get("headers", ())))
        server = scope.get("server")
        client = scope.get("client")
        root_path = scope.get("root_path", "")
        path = scope["path"]
        # Servers may report the full path; handlers see it relative to root_path.
        if root_path and (path == root_path or path.startswith(root_path + "/")):
            path = path[len(root_path) :] or "/"
        return cls(
            method=scope["method"],
            path=path,
            headers=headers,
            query=QueryParams(scope.get("query_string", b"")),
            scheme=scope.get("scheme", "http"),
            root_path=root_path,
            http_version=scope.get("http_version", "1.1"),
            server=tuple(server) if server else None,
            client=tuple(client) if client else None,
            cookies=parse_cookies(headers.get("cookie", "")),
            _receive=receive,
        )

"""Static file serving middleware.

Serves files from a directory for matching URL prefixes. Supports
root-level serving (``prefix="/"``) with automatic index file resolution.
When no directory is given, the host's web root is used, as declared
with ``Application.use_static(path)``.

Falls through to the next endpoint for non-matching paths and missing
files.
"""

import mimetypes
from pathlib import Path

from strata.config import HostConfig
from strata.context import HttpContext
from strata.http.response import Response
from strata.middleware.protocol import Endpoint


class StaticFiles:
    """Middleware that serves static files from a directory.

    Security: resolves symlinks and verifies the final path is within
    the configured directory to prevent path traversal.

    Usage::

        # Serve the host web root at "/"
        app.use_static("public")

        # Serve a fixed directory under a prefix
        app.app_config(use_middleware(StaticFiles("./assets", prefix="/assets")))
    """

    __slots__ = ("_cache_control", "_directory", "_index", "_prefix")

    def __init__(
        self,
        directory: str | Path | None = None,
        prefix: str = "/",
        *,
        index: str = "index.html",
        cache_control: str = "public, max-age=3600",
    ) -> None:
        self._directory = Path(directory).resolve() if directory is not None else None
        self._index = index
        self._cache_control = cache_control

        # Root prefix "/" normalizes to "".
        stripped = "/" + prefix.strip("/")
        self._prefix = stripped if stripped != "/" else ""

    def _root(self, ctx: HttpContext) -> Path:
        if self._directory is not None:
            return self._directory
        host = ctx.services.get_optional(HostConfig) or HostConfig()
        return host.web_root_path.resolve()

    async def __call__(self, ctx: HttpContext, next: Endpoint) -> Response:
        """Serve a static file or fall through."""
        request = ctx.request
        if request.method not in ("GET", "HEAD"):
            return await next(ctx)

        path = request.path
        if self._prefix:
            if not path.startswith(self._prefix + "/") and path != self._prefix:
                return await next(ctx)
            relative = path[len(self._prefix) :].lstrip("/")
        else:
            relative = path.lstrip("/")

        directory = self._root(ctx)
        if not directory.is_dir():
            return await next(ctx)

        file_path = (directory / relative).resolve() if relative else directory
        if not file_path.is_relative_to(directory):
            return Response(body="Forbidden", status=403)

        if file_path.is_dir():
            index_path = file_path / self._index
            if not index_path.is_file():
                return await next(ctx)
            if relative and not path.endswith("/"):
                return Response(body="", status=301).with_header("Location", path + "/")
            file_path = index_path

        if not file_path.is_file():
            return await next(ctx)

        return self._serve_file(file_path)

    def _serve_file(self, file_path: Path) -> Response:
        content_type, _ = mimetypes.guess_type(str(file_path))
        if content_type is None:
            content_type = "application/octet-stream"

        return Response(body=file_path.read_bytes(), content_type=content_type).with_header(
            "Cache-Control", self._cache_control
        )

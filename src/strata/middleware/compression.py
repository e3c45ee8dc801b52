"""Gzip response compression.

Compresses text-like response bodies when the client sends
``Accept-Encoding: gzip``. Settings come from the ``GzipOptions``
options type, so ``use_gzip`` and later ``service_config`` fragments can
tune them::

    app.service_config(lambda s: s.configure(GzipOptions, lambda o: replace(o, min_size=0)))
"""

import gzip
from dataclasses import dataclass

from strata.context import HttpContext
from strata.http.response import Response
from strata.middleware.protocol import Endpoint

COMPRESSIBLE_TYPES: frozenset[str] = frozenset(
    {
        "text/html",
        "text/css",
        "text/plain",
        "text/xml",
        "text/javascript",
        "application/json",
        "application/javascript",
        "application/xml",
        "application/xhtml+xml",
        "image/svg+xml",
    }
)


@dataclass(frozen=True, slots=True)
class GzipOptions:
    """Compression settings.

    ``level`` is the gzip compression level, 1 (fastest) to 9 (smallest).
    Bodies shorter than ``min_size`` bytes are sent as they are.
    """

    level: int = 6
    min_size: int = 1024
    mime_types: frozenset[str] = COMPRESSIBLE_TYPES


def _accepts_gzip(header: str) -> bool:
    for item in header.split(","):
        coding, _, params = item.strip().partition(";")
        if coding.strip().lower() not in ("gzip", "*"):
            continue
        if params.replace(" ", "").lower() in ("q=0", "q=0.0", "q=0.00", "q=0.000"):
            return False
        return True
    return False


class ResponseCompression:
    """Middleware that gzips eligible responses.

    Eligible means: the client accepts gzip, the response is not already
    encoded, the body reaches ``min_size``, the content type is listed in
    ``mime_types``, and compressing actually makes it smaller.
    """

    __slots__ = ("_options",)

    def __init__(self, options: GzipOptions | None = None) -> None:
        self._options = options

    def _should_compress(self, options: GzipOptions, response: Response) -> bool:
        if response.header("content-encoding") is not None:
            return False
        if response.status in (204, 304) or response.status < 200:
            return False
        if len(response.body_bytes) < options.min_size:
            return False
        base_type = response.content_type.split(";")[0].strip().lower()
        return base_type in options.mime_types

    async def __call__(self, ctx: HttpContext, next: Endpoint) -> Response:
        response = await next(ctx)
        if not _accepts_gzip(ctx.request.headers.get("accept-encoding", "")):
            return response

        options = self._options or ctx.services.get_options(GzipOptions)
        if not self._should_compress(options, response):
            return response

        original = response.body_bytes
        compressed = gzip.compress(original, compresslevel=options.level)
        if len(compressed) >= len(original):
            return response

        return (
            response.without_header("content-length")
            .with_body(compressed)
            .with_header("Content-Encoding", "gzip")
            .with_header("Vary", "Accept-Encoding")
        )

"""Redirect plain-HTTP requests to HTTPS."""

from strata.context import HttpContext
from strata.http.response import Response
from strata.middleware.protocol import Endpoint


class HttpsRedirect:
    """Answer insecure requests with a redirect to the same URL over HTTPS.

    ``https_port`` is appended to the host when it is not 443. The default
    status is 302 so browsers do not cache the redirect.
    """

    __slots__ = ("_port", "_status")

    def __init__(self, *, status: int = 302, https_port: int | None = None) -> None:
        self._status = status
        self._port = https_port

    def _location(self, ctx: HttpContext) -> str:
        request = ctx.request
        host = request.host
        if host.startswith("["):
            # IPv6 literal: keep the brackets, drop any port.
            host = host[: host.index("]") + 1]
        else:
            host = host.split(":", 1)[0]
        if self._port is not None and self._port != 443:
            host = f"{host}:{self._port}"
        return f"https://{host}{request.url}"

    async def __call__(self, ctx: HttpContext, next: Endpoint) -> Response:
        if ctx.request.is_secure:
            return await next(ctx)
        return Response(body="", status=self._status).with_header("Location", self._location(ctx))

"""Cookie authentication.

A sign-in serializes the principal's claims into a cookie signed and
timestamped with ``itsdangerous``; later requests carrying the cookie are
authenticated from it. Unauthenticated browser requests are redirected to
``login_path`` with a return URL; script requests get a bare 401.
"""

import logging
import secrets
from dataclasses import dataclass
from urllib.parse import urlencode

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from strata.auth.principal import ANONYMOUS, ISSUER, Principal
from strata.context import HttpContext
from strata.http.response import Response

logger = logging.getLogger("strata.auth")

COOKIE_SCHEME = "Cookies"


@dataclass(frozen=True, slots=True)
class CookieAuthenticationOptions:
    """Cookie scheme settings.

    An empty ``secret_key`` means a random key per application instance,
    so cookies do not survive a restart. ``claims_issuer`` is recorded as
    the ``iss`` claim of identities signed in without one.
    """

    secret_key: str = ""
    cookie_name: str = "strata_auth"
    claims_issuer: str | None = None
    login_path: str = "/account/login"
    access_denied_path: str = "/account/access-denied"
    return_url_parameter: str = "ReturnUrl"
    expire_time: int = 14 * 24 * 60 * 60
    sliding_expiration: bool = True
    path: str = "/"
    domain: str | None = None
    secure: bool = False
    httponly: bool = True
    samesite: str = "lax"


def _is_script_request(ctx: HttpContext) -> bool:
    headers = ctx.request.headers
    if headers.get("x-requested-with", "").lower() == "xmlhttprequest":
        return True
    accept = headers.get("accept", "")
    return "application/json" in accept and "text/html" not in accept


class CookieAuthenticationHandler:
    """Signs identities into, and reads them back from, a cookie."""

    __slots__ = ("name", "options", "_serializer")

    def __init__(self, name: str, options: CookieAuthenticationOptions) -> None:
        self.name = name
        self.options = options
        key = options.secret_key or secrets.token_urlsafe(32)
        self._serializer = URLSafeTimedSerializer(key, salt=f"strata.auth.cookies.{name}")

    # -- Ticket --

    def protect(self, principal: Principal) -> str:
        claims = principal.to_dict()
        if self.options.claims_issuer and ISSUER not in claims:
            claims[ISSUER] = self.options.claims_issuer
        return self._serializer.dumps({"claims": claims})

    def unprotect(self, value: str) -> Principal | None:
        try:
            ticket = self._serializer.loads(value, max_age=self.options.expire_time)
        except SignatureExpired:
            logger.info("Authentication cookie expired")
            return None
        except BadSignature:
            logger.info("Authentication cookie has an invalid signature")
            return None
        claims = ticket.get("claims") if isinstance(ticket, dict) else None
        if not isinstance(claims, dict):
            return None
        return Principal.of(self.name, claims)

    def _write(self, ctx: HttpContext, value: str) -> None:
        opts = self.options
        ctx.response = ctx.response.with_cookie(
            opts.cookie_name,
            value,
            max_age=opts.expire_time,
            path=opts.path,
            domain=opts.domain,
            secure=opts.secure,
            httponly=opts.httponly,
            samesite=opts.samesite,
        )

    # -- Handler --

    async def authenticate(self, ctx: HttpContext) -> Principal | None:
        value = ctx.request.cookies.get(self.options.cookie_name)
        if not value:
            return None
        principal = self.unprotect(value)
        if principal is not None and self.options.sliding_expiration:
            self._write(ctx, self.protect(principal))
        return principal

    async def sign_in(self, ctx: HttpContext, principal: Principal) -> None:
        """Draft the authentication cookie and set ``ctx.user``."""
        self._write(ctx, self.protect(principal))
        ctx.user = Principal.of(self.name, principal.claims)

    async def sign_out(self, ctx: HttpContext) -> None:
        ctx.response = ctx.response.without_cookie(self.options.cookie_name, self.options.path)
        ctx.user = ANONYMOUS

    def _redirect(self, ctx: HttpContext, path: str, status: int) -> Response:
        if _is_script_request(ctx):
            return Response(body="", status=status)
        query = urlencode({self.options.return_url_parameter: ctx.request.url})
        return Response(body="", status=302).with_header("Location", f"{path}?{query}")

    async def challenge(self, ctx: HttpContext) -> Response:
        return self._redirect(ctx, self.options.login_path, 401)

    async def forbid(self, ctx: HttpContext) -> Response:
        return self._redirect(ctx, self.options.access_denied_path, 403)

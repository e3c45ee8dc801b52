"""Session middleware: server-side sessions in the memory cache.

Session data lives in the ``MemoryCache`` service under a random session
id. The browser only holds the id, signed with ``itsdangerous`` so a
forged id is rejected before any cache lookup. The session dict is
stored in a ContextVar, accessible via ``get_session()`` from any
handler or middleware.

Enabled by ``Application.memory_cache()``; tuned with the
``SessionOptions`` options type.
"""

import logging
import secrets
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any

from itsdangerous import BadSignature, Signer

from strata.caching import MemoryCache
from strata.context import HttpContext
from strata.http.response import Response
from strata.middleware.protocol import Endpoint

logger = logging.getLogger("strata.middleware")

_CACHE_PREFIX = "session:"

# -- Session ContextVar --

_session_var: ContextVar[dict[str, Any] | None] = ContextVar("strata_session", default=None)


def get_session() -> dict[str, Any]:
    """Return the current session dict.

    Raises ``LookupError`` if called outside a request with
    ``SessionMiddleware`` active.
    """
    session = _session_var.get()
    if session is None:
        msg = (
            "No active session. Declare memory_cache() on the application "
            "before accessing the session."
        )
        raise LookupError(msg)
    return session


# -- Configuration --


@dataclass(frozen=True, slots=True)
class SessionOptions:
    """Session configuration.

    With an empty ``secret_key`` a random per-process key is used, so
    sessions do not survive a restart (nor would the memory cache).
    """

    secret_key: str = ""
    cookie_name: str = "strata_session"
    idle_timeout: float = 20 * 60
    path: str = "/"
    domain: str | None = None
    secure: bool = False
    httponly: bool = True
    samesite: str = "lax"


# -- Middleware --


class SessionMiddleware:
    """Loads the session before the request and stores it afterwards.

    A cookie is issued only once the session holds data; an emptied
    session is removed from the cache and its cookie expired.
    """

    __slots__ = ("_fallback_key",)

    def __init__(self) -> None:
        self._fallback_key = secrets.token_urlsafe(32)

    def _signer(self, options: SessionOptions) -> Signer:
        return Signer(options.secret_key or self._fallback_key, salt="strata.session")

    def _load(
        self, ctx: HttpContext, options: SessionOptions, cache: MemoryCache
    ) -> tuple[str | None, dict[str, Any]]:
        cookie_value = ctx.request.cookies.get(options.cookie_name)
        if not cookie_value:
            return None, {}
        try:
            session_id = self._signer(options).unsign(cookie_value).decode("ascii")
        except BadSignature:
            logger.debug("Ignoring session cookie with a bad signature")
            return None, {}
        data = cache.get(_CACHE_PREFIX + session_id)
        if not isinstance(data, dict):
            return session_id, {}
        return session_id, dict(data)

    def _cookie(self, response: Response, options: SessionOptions, value: str) -> Response:
        return response.with_cookie(
            options.cookie_name,
            value,
            path=options.path,
            domain=options.domain,
            secure=options.secure,
            httponly=options.httponly,
            samesite=options.samesite,
        )

    async def __call__(self, ctx: HttpContext, next: Endpoint) -> Response:
        options = ctx.services.get_options(SessionOptions)
        cache: MemoryCache = ctx.services.get(MemoryCache)
        session_id, session = self._load(ctx, options, cache)

        ctx.items["session"] = session
        token = _session_var.set(session)
        try:
            response = await next(ctx)
        finally:
            _session_var.reset(token)

        if session:
            if session_id is None:
                session_id = secrets.token_urlsafe(32)
            # Re-store on every request so the idle timeout slides.
            cache.set(_CACHE_PREFIX + session_id, dict(session), ttl=options.idle_timeout)
            signed = self._signer(options).sign(session_id).decode("ascii")
            return self._cookie(response, options, signed)

        if session_id is not None:
            cache.delete(_CACHE_PREFIX + session_id)
            return response.without_cookie(options.cookie_name, options.path)
        return response

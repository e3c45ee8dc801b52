"""Authentication middleware and pipeline helpers.

``AuthenticationMiddleware`` is the app-config half of every
authentication declaration: it lets remote schemes (OAuth) answer their
callback requests, then authenticates the request with the default
scheme and stores the result on ``ctx.user``.

The pipeline half is up to the application::

    protected = chain(requires_authentication(), api.build())
"""

import logging

from strata.auth.options import (
    AuthenticationHandler,
    AuthenticationOptions,
    AuthenticationSchemes,
    RemoteHandler,
    SignInHandler,
)
from strata.auth.oauth import REDIRECT_ITEM
from strata.auth.principal import Principal
from strata.context import HttpContext
from strata.errors import ConfigurationError
from strata.http.response import Response
from strata.middleware.protocol import Endpoint
from strata.pipeline import Interceptor, Next, Outcome, Responded

logger = logging.getLogger("strata.auth")

# Set once the request has been authenticated.
_AUTHENTICATED_ITEM = "auth.authenticated"


class AuthenticationMiddleware:
    """Runs remote callbacks, then authenticates with the default scheme.

    Every authentication declaration installs one; only the outermost
    does any work for a given request.
    """

    __slots__ = ()

    async def __call__(self, ctx: HttpContext, next: Endpoint) -> Response:
        if ctx.items.get(_AUTHENTICATED_ITEM):
            return await next(ctx)
        ctx.items[_AUTHENTICATED_ITEM] = True

        schemes = ctx.services.get_options(AuthenticationSchemes)
        for handler in schemes:
            if isinstance(handler, RemoteHandler):
                response = await handler.handle_request(ctx)
                if response is not None:
                    return response

        scheme = ctx.services.get_options(AuthenticationOptions).default_scheme
        if scheme is not None:
            principal = await schemes.get(scheme).authenticate(ctx)
            if principal is not None:
                ctx.user = principal
                logger.debug("Authenticated %r via %s", principal.id, scheme)
        return await next(ctx)


def _handler(
    ctx: HttpContext, scheme: str | None, *, challenge: bool = False
) -> AuthenticationHandler:
    if scheme is None:
        options = ctx.services.get_options(AuthenticationOptions)
        scheme = options.challenge_scheme if challenge else options.default_scheme
    if scheme is None:
        msg = "No authentication scheme declared. Use one of the use_*_authentication declarations."
        raise ConfigurationError(msg)
    return ctx.services.get_options(AuthenticationSchemes).get(scheme)


async def authenticate(ctx: HttpContext, scheme: str) -> Principal | None:
    """Authenticate the request with a specific, non-default scheme."""
    return await _handler(ctx, scheme).authenticate(ctx)


async def sign_in(ctx: HttpContext, principal: Principal, scheme: str | None = None) -> None:
    """Persist *principal* with the sign-in scheme (cookies)."""
    if scheme is None:
        scheme = ctx.services.get_options(AuthenticationOptions).sign_in_scheme
    handler = _handler(ctx, scheme)
    if not isinstance(handler, SignInHandler):
        msg = f"Scheme {handler.name!r} cannot sign identities in."
        raise ConfigurationError(msg)
    await handler.sign_in(ctx, principal)


# -- Interceptors --


def requires_authentication(scheme: str | None = None) -> Interceptor:
    """Forward authenticated requests; challenge the rest.

    With *scheme*, the request must be authenticated by that scheme.
    """

    async def interceptor(ctx: HttpContext, next: Next) -> Outcome:
        user = ctx.user
        if scheme is not None and user.authentication_type != scheme:
            user = await authenticate(ctx, scheme) or user
            if user.authentication_type == scheme:
                ctx.user = user
        if user.is_authenticated and (scheme is None or user.authentication_type == scheme):
            return await next(ctx)
        handler = _handler(ctx, scheme, challenge=True)
        return Responded(await handler.challenge(ctx))

    return interceptor


def challenge(scheme: str | None = None, *, redirect_uri: str | None = None) -> Interceptor:
    """Always answer with the scheme's challenge (e.g. a login endpoint).

    *redirect_uri* is where remote schemes send the browser afterwards.
    """

    async def interceptor(ctx: HttpContext, next: Next) -> Outcome:  # noqa: ARG001
        if redirect_uri is not None:
            ctx.items[REDIRECT_ITEM] = redirect_uri
        handler = _handler(ctx, scheme, challenge=True)
        return Responded(await handler.challenge(ctx))

    return interceptor


def sign_out(scheme: str | None = None) -> Interceptor:
    """Sign the user out of the sign-in scheme, then forward."""

    async def interceptor(ctx: HttpContext, next: Next) -> Outcome:
        target = scheme or ctx.services.get_options(AuthenticationOptions).sign_in_scheme
        handler = _handler(ctx, target)
        if not isinstance(handler, SignInHandler):
            msg = f"Scheme {handler.name!r} cannot sign identities out."
            raise ConfigurationError(msg)
        await handler.sign_out(ctx)
        return await next(ctx)

    return interceptor


def requires_claim(claim: str, *values: str) -> Interceptor:
    """Forward only users holding *claim* (with one of *values*, if given).

    Unauthenticated users are challenged; authenticated ones without the
    claim are forbidden.
    """

    async def interceptor(ctx: HttpContext, next: Next) -> Outcome:
        user = ctx.user
        if not user.is_authenticated:
            return Responded(await _handler(ctx, None, challenge=True).challenge(ctx))
        value = user.find(claim)
        if value is not None and (not values or value in values):
            return await next(ctx)
        handler = _handler(ctx, user.authentication_type)
        return Responded(await handler.forbid(ctx))

    return interceptor

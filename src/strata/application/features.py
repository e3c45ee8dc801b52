"""Fragments behind the named application declarations.

Each function returns a ``Feature``: the pipeline interceptor, app-config
decorator, host-config step and service registration a declaration such
as ``use_gzip()`` contributes. ``Application`` appends whichever parts
are present, so a named declaration is exactly equivalent to declaring
its parts one by one.
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Iterable
from dataclasses import replace
from pathlib import Path
from typing import Any

from strata.application.state import Feature
from strata.auth.bearer import BEARER_SCHEME, JwtBearerHandler, JwtBearerOptions
from strata.auth.cookies import (
    COOKIE_SCHEME,
    CookieAuthenticationHandler,
    CookieAuthenticationOptions,
)
from strata.auth.middleware import AuthenticationMiddleware
from strata.auth.oauth import GITHUB_SCHEME, OAuthHandler, OAuthOptions, github_options
from strata.auth.options import AuthenticationHandler, AuthenticationOptions, AuthenticationSchemes
from strata.caching import MemoryCache
from strata.config import HostConfig, LoggingConfigurator
from strata.context import HttpContext
from strata.middleware.compression import GzipOptions, ResponseCompression
from strata.middleware.cors import CorsPolicies, CORSMiddleware, CORSPolicyBuilder
from strata.middleware.https import HttpsRedirect
from strata.middleware.protocol import use_middleware
from strata.middleware.sessions import SessionMiddleware
from strata.middleware.static import StaticFiles
from strata.pipeline import Next, Outcome
from strata.services import ServiceCollection

# Key in ctx.items holding the value built by use_config().
CONFIGURATION_ITEM = "configuration"


# -- Host --


def logging_hook(configure: LoggingConfigurator) -> Feature:
    """Run *configure* against the ``strata`` logger when the server launches."""

    def host(config: HostConfig) -> HostConfig:
        return replace(config, logging_configurators=(*config.logging_configurators, configure))

    return Feature(host=host)


def iis() -> Feature:
    def host(config: HostConfig) -> HostConfig:
        return replace(config, iis_integration=True)

    return Feature(host=host)


# -- Middleware --


def memory_cache() -> Feature:
    """In-memory cache service plus server-side sessions stored in it."""

    def services(collection: ServiceCollection) -> ServiceCollection:
        return collection.add_singleton(MemoryCache, lambda _sp: MemoryCache())

    return Feature(app=use_middleware(SessionMiddleware()), service=services)


def gzip(level: int = 9) -> Feature:
    def services(collection: ServiceCollection) -> ServiceCollection:
        return collection.configure(GzipOptions, lambda opts: replace(opts, level=level))

    return Feature(app=use_middleware(ResponseCompression()), service=services)


def static_files(path: str | Path) -> Feature:
    """Serve files from *path*, relative to the working directory at launch.

    *path* becomes both the web root and the content root.
    """

    def host(config: HostConfig) -> HostConfig:
        root = Path.cwd() / path
        return replace(config, content_root=root, web_root=root)

    return Feature(app=use_middleware(StaticFiles()), host=host)


def force_ssl() -> Feature:
    return Feature(app=use_middleware(HttpsRedirect()))


def cors(policy: str, configure: Callable[[CORSPolicyBuilder], Any]) -> Feature:
    """Register CORS policy *policy* and apply it to every request."""

    def services(collection: ServiceCollection) -> ServiceCollection:
        return collection.configure(CorsPolicies, lambda policies: policies.add(policy, configure))

    return Feature(app=use_middleware(CORSMiddleware(policy)), service=services)


# -- Pipeline --


def configuration[T](factory: Callable[[], T]) -> Feature:
    """Expose ``factory()`` to every request as ``ctx.items["configuration"]``.

    The factory runs once, on the first request.
    """
    value = functools.cache(factory)

    async def interceptor(ctx: HttpContext, next: Next) -> Outcome:
        ctx.items[CONFIGURATION_ITEM] = value()
        return await next(ctx)

    return Feature(pipeline=interceptor)


def get_configuration(ctx: HttpContext) -> Any:
    """Return the value declared with ``use_config()``.

    Raises ``LookupError`` if the application declares none.
    """
    try:
        return ctx.items[CONFIGURATION_ITEM]
    except KeyError:
        msg = "No configuration declared. Use use_config() on the application."
        raise LookupError(msg) from None


# -- Authentication --


def _authentication(
    *handlers: Callable[[], AuthenticationHandler],
    default: str,
    challenge: str | None = None,
    sign_in: str | None = None,
) -> Feature:
    """Register scheme handlers and the default scheme roles.

    Handlers are built when services are configured, so invalid options
    fail at launch rather than on the first request.
    """

    def services(collection: ServiceCollection) -> ServiceCollection:
        built = [factory() for factory in handlers]

        def add_schemes(schemes: AuthenticationSchemes) -> AuthenticationSchemes:
            for handler in built:
                schemes.add(handler)
            return schemes

        def set_roles(options: AuthenticationOptions) -> AuthenticationOptions:
            return replace(
                options,
                default_scheme=default,
                default_challenge_scheme=challenge,
                default_sign_in_scheme=sign_in,
            )

        collection.configure(AuthenticationSchemes, add_schemes)
        return collection.configure(AuthenticationOptions, set_roles)

    return Feature(app=use_middleware(AuthenticationMiddleware()), service=services)


def jwt_authentication(secret: str, issuer: str) -> Feature:
    """Bearer tokens signed with *secret*, issued by and for *issuer*."""
    options = JwtBearerOptions(secret=secret, issuer=issuer, audience=issuer)
    return _authentication(lambda: JwtBearerHandler(BEARER_SCHEME, options), default=BEARER_SCHEME)


def jwt_authentication_with_config(
    configure: Callable[[JwtBearerOptions], JwtBearerOptions],
) -> Feature:
    """Bearer tokens with options returned by ``configure(JwtBearerOptions())``."""
    return _authentication(
        lambda: JwtBearerHandler(BEARER_SCHEME, configure(JwtBearerOptions())),
        default=BEARER_SCHEME,
    )


def cookies_authentication(issuer: str) -> Feature:
    options = CookieAuthenticationOptions(claims_issuer=issuer)
    return _authentication(
        lambda: CookieAuthenticationHandler(COOKIE_SCHEME, options), default=COOKIE_SCHEME
    )


def cookies_authentication_with_config(
    configure: Callable[[CookieAuthenticationOptions], CookieAuthenticationOptions],
) -> Feature:
    return _authentication(
        lambda: CookieAuthenticationHandler(
            COOKIE_SCHEME, configure(CookieAuthenticationOptions())
        ),
        default=COOKIE_SCHEME,
    )


def _oauth(name: str, build_options: Callable[[], OAuthOptions]) -> Feature:
    """Cookie sign-in plus OAuth scheme *name* as the challenge scheme."""
    return _authentication(
        lambda: CookieAuthenticationHandler(COOKIE_SCHEME, CookieAuthenticationOptions()),
        lambda: OAuthHandler(name, build_options()),
        default=COOKIE_SCHEME,
        challenge=name,
        sign_in=COOKIE_SCHEME,
    )


def _configured(options: OAuthOptions, configure: Callable[[OAuthOptions], Any]) -> OAuthOptions:
    configure(options)
    return options


def github_oauth(
    client_id: str,
    client_secret: str,
    callback_path: str,
    claim_map: Iterable[tuple[str, str]] = (),
) -> Feature:
    """GitHub sign-in; *claim_map* pairs claim types with user JSON keys."""
    claim_map = tuple(claim_map)
    return _oauth(
        GITHUB_SCHEME,
        lambda: github_options(client_id, client_secret, callback_path, claim_map),
    )


def github_oauth_with_config(configure: Callable[[OAuthOptions], Any]) -> Feature:
    """GitHub sign-in; *configure* mutates options preset with GitHub's endpoints."""
    return _oauth(GITHUB_SCHEME, lambda: _configured(github_options(), configure))


def custom_oauth(name: str, configure: Callable[[OAuthOptions], Any]) -> Feature:
    """Sign-in with any OAuth 2.0 provider; *configure* fills in its endpoints."""
    return _oauth(name, lambda: _configured(OAuthOptions(), configure))


__all__ = [
    "CONFIGURATION_ITEM",
    "configuration",
    "cookies_authentication",
    "cookies_authentication_with_config",
    "cors",
    "custom_oauth",
    "force_ssl",
    "get_configuration",
    "github_oauth",
    "github_oauth_with_config",
    "gzip",
    "iis",
    "jwt_authentication",
    "jwt_authentication_with_config",
    "logging_hook",
    "memory_cache",
    "static_files",
]

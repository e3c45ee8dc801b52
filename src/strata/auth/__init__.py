"""Authentication: principals, scheme handlers, and pipeline guards.

Schemes:
    JwtBearerHandler -- ``Authorization: Bearer`` tokens (PyJWT)
    CookieAuthenticationHandler -- signed identity cookies (itsdangerous)
    OAuthHandler -- authorization-code sign-in (GitHub preset, custom providers)

Submodules are imported on first attribute access: ``strata.context``
imports ``strata.auth.principal``, and the handlers import the context.
"""

from importlib import import_module
from typing import Any

_EXPORTS: dict[str, str] = {
    "ANONYMOUS": "strata.auth.principal",
    "Principal": "strata.auth.principal",
    "AuthenticationOptions": "strata.auth.options",
    "AuthenticationSchemes": "strata.auth.options",
    "JwtBearerHandler": "strata.auth.bearer",
    "JwtBearerOptions": "strata.auth.bearer",
    "create_token": "strata.auth.bearer",
    "CookieAuthenticationHandler": "strata.auth.cookies",
    "CookieAuthenticationOptions": "strata.auth.cookies",
    "OAuthHandler": "strata.auth.oauth",
    "OAuthOptions": "strata.auth.oauth",
    "github_options": "strata.auth.oauth",
    "AuthenticationMiddleware": "strata.auth.middleware",
    "authenticate": "strata.auth.middleware",
    "challenge": "strata.auth.middleware",
    "requires_authentication": "strata.auth.middleware",
    "requires_claim": "strata.auth.middleware",
    "sign_in": "strata.auth.middleware",
    "sign_out": "strata.auth.middleware",
}


def __getattr__(name: str) -> Any:
    module = _EXPORTS.get(name)
    if module is None:
        msg = f"module 'strata.auth' has no attribute {name!r}"
        raise AttributeError(msg)
    return getattr(import_module(module), name)


__all__ = list(_EXPORTS)

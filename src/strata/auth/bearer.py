"""Bearer-token authentication with JSON Web Tokens (PyJWT).

``use_jwt_authentication(secret, issuer)`` validates signature, lifetime,
issuer and audience, with the issuer doubling as the expected audience.
``use_jwt_authentication_with_config`` hands the caller a
``JwtBearerOptions`` to adjust.
"""

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import jwt

from strata.auth.principal import NAME_IDENTIFIER, Principal
from strata.context import HttpContext
from strata.http.response import Response

logger = logging.getLogger("strata.auth")

BEARER_SCHEME = "Bearer"


@dataclass(frozen=True, slots=True)
class JwtBearerOptions:
    """Token validation settings.

    ``issuer`` / ``audience`` of ``None`` skip the corresponding check.
    ``leeway`` is the clock skew, in seconds, tolerated for ``exp``/``nbf``.
    """

    secret: str = ""
    issuer: str | None = None
    audience: str | None = None
    algorithms: tuple[str, ...] = ("HS256",)
    validate_lifetime: bool = True
    require_expiration: bool = True
    leeway: float = 0
    realm: str | None = None


def create_token(
    secret: str,
    *,
    subject: str,
    issuer: str | None = None,
    audience: str | None = None,
    expires_in: float | None = 3600,
    claims: Mapping[str, Any] | None = None,
    algorithm: str = "HS256",
) -> str:
    """Encode a signed token, for issuing endpoints and tests."""
    now = int(time.time())
    payload: dict[str, Any] = {NAME_IDENTIFIER: subject, "iat": now}
    if issuer is not None:
        payload["iss"] = issuer
    if audience is not None:
        payload["aud"] = audience
    if expires_in is not None:
        payload["exp"] = now + int(expires_in)
    if claims:
        payload.update(claims)
    return jwt.encode(payload, secret, algorithm=algorithm)


def _bearer_token(ctx: HttpContext) -> str | None:
    header = ctx.request.headers.get("authorization")
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class JwtBearerHandler:
    """Authenticates ``Authorization: Bearer <token>`` requests."""

    __slots__ = ("name", "options")

    def __init__(self, name: str, options: JwtBearerOptions) -> None:
        self.name = name
        self.options = options

    def decode(self, token: str) -> dict[str, Any]:
        """Validate *token* and return its claims.

        Raises ``jwt.InvalidTokenError`` (or a subclass) when invalid.
        """
        opts = self.options
        required = ["exp"] if opts.validate_lifetime and opts.require_expiration else []
        return jwt.decode(
            token,
            opts.secret,
            algorithms=list(opts.algorithms),
            issuer=opts.issuer,
            audience=opts.audience,
            leeway=opts.leeway,
            options={
                "verify_exp": opts.validate_lifetime,
                "verify_aud": opts.audience is not None,
                "require": required,
            },
        )

    async def authenticate(self, ctx: HttpContext) -> Principal | None:
        token = _bearer_token(ctx)
        if token is None:
            return None
        try:
            claims = self.decode(token)
        except jwt.ExpiredSignatureError:
            logger.info("Bearer token expired")
            ctx.items["auth_failure"] = "invalid_token"
            return None
        except jwt.InvalidTokenError as exc:
            logger.info("Bearer token rejected: %s", exc)
            ctx.items["auth_failure"] = "invalid_token"
            return None
        return Principal.of(self.name, claims)

    async def challenge(self, ctx: HttpContext) -> Response:
        params = []
        if self.options.realm:
            params.append(f'realm="{self.options.realm}"')
        failure = ctx.items.get("auth_failure")
        if failure:
            params.append(f'error="{failure}"')
        value = "Bearer " + ", ".join(params) if params else "Bearer"
        return Response(body="Unauthorized", status=401).with_header("WWW-Authenticate", value)

    async def forbid(self, ctx: HttpContext) -> Response:  # noqa: ARG002
        return Response(body="Forbidden", status=403)

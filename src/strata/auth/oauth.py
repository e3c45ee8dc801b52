"""OAuth 2.0 authorization-code sign-in (GitHub preset and custom providers).

The flow, per scheme:

1. ``challenge`` redirects the browser to the provider's authorization
   endpoint. The ``state`` parameter is signed with ``itsdangerous`` and
   bound to a correlation cookie, so a callback is only accepted by the
   browser that started it.
2. The provider redirects back to ``callback_path``. The
   ``AuthenticationMiddleware`` hands that request to
   ``handle_request``, which exchanges the code for an access token and
   fetches the user-information document over the ``httpx`` backchannel.
3. Claims are mapped from the user document with ``claim_actions``
   (claim type -> JSON key) and the identity is signed in with the
   sign-in scheme (cookies), then the browser is sent back to where it
   started.
"""

import logging
import secrets
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlencode

import httpx
from itsdangerous import BadSignature, URLSafeTimedSerializer

from strata.auth.options import AuthenticationOptions, AuthenticationSchemes, SignInHandler
from strata.auth.principal import Principal
from strata.context import HttpContext
from strata.errors import ConfigurationError
from strata.http.response import Response
from strata.pipeline import merge_draft

logger = logging.getLogger("strata.auth")

GITHUB_SCHEME = "GitHub"
GITHUB_AUTHORIZATION_ENDPOINT = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_ENDPOINT = "https://github.com/login/oauth/access_token"
GITHUB_USER_INFORMATION_ENDPOINT = "https://api.github.com/user"

CORRELATION_COOKIE = ".strata.correlation"

# Key in ctx.items overriding where the browser returns after sign-in.
REDIRECT_ITEM = "auth.redirect_uri"


@dataclass(slots=True)
class OAuthOptions:
    """Provider settings. Configure callbacks mutate this in place::

        def configure(opts: OAuthOptions) -> None:
            opts.client_id = "..."
            opts.map_json_key("sub", "id")

    ``backchannel`` is the ``httpx.AsyncClient`` used for the token and
    user-information requests; when ``None`` a client is opened per
    callback. ``sign_in_scheme`` defaults to the application's default
    sign-in scheme.
    """

    client_id: str = ""
    client_secret: str = ""
    callback_path: str = "/signin-oauth"
    authorization_endpoint: str = ""
    token_endpoint: str = ""
    user_information_endpoint: str = ""
    scope: list[str] = field(default_factory=list)
    claim_actions: dict[str, str] = field(default_factory=dict)
    sign_in_scheme: str | None = None
    state_secret: str = ""
    state_lifetime: int = 15 * 60
    save_tokens: bool = False
    backchannel: httpx.AsyncClient | None = None
    backchannel_timeout: float = 60.0

    def map_json_key(self, claim_type: str, json_key: str) -> "OAuthOptions":
        self.claim_actions[claim_type] = json_key
        return self

    def validate(self, scheme: str) -> None:
        missing = [
            name
            for name in ("client_id", "client_secret", "authorization_endpoint", "token_endpoint")
            if not getattr(self, name)
        ]
        if missing:
            msg = f"OAuth scheme {scheme!r} is missing: {', '.join(missing)}"
            raise ConfigurationError(msg)
        if not self.callback_path.startswith("/"):
            msg = f"OAuth scheme {scheme!r}: callback_path must start with '/'"
            raise ConfigurationError(msg)


def github_options(
    client_id: str = "",
    client_secret: str = "",
    callback_path: str = "/signin-github",
    claim_map: Iterable[tuple[str, str]] = (),
) -> OAuthOptions:
    """``OAuthOptions`` preset with GitHub's endpoints."""
    options = OAuthOptions(
        client_id=client_id,
        client_secret=client_secret,
        callback_path=callback_path,
        authorization_endpoint=GITHUB_AUTHORIZATION_ENDPOINT,
        token_endpoint=GITHUB_TOKEN_ENDPOINT,
        user_information_endpoint=GITHUB_USER_INFORMATION_ENDPOINT,
    )
    for claim_type, json_key in claim_map:
        options.map_json_key(claim_type, json_key)
    return options


def _is_local(url: str) -> bool:
    return url.startswith("/") and not url.startswith("//") and not url.startswith("/\\")


class OAuthHandler:
    """Authorization-code flow for one provider."""

    __slots__ = ("_serializer", "name", "options")

    def __init__(self, name: str, options: OAuthOptions) -> None:
        options.validate(name)
        self.name = name
        self.options = options
        key = options.state_secret or secrets.token_urlsafe(32)
        self._serializer = URLSafeTimedSerializer(key, salt=f"strata.auth.oauth.{name}")

    @property
    def correlation_cookie(self) -> str:
        return f"{CORRELATION_COOKIE}.{self.name}"

    def redirect_uri(self, ctx: HttpContext) -> str:
        request = ctx.request
        return f"{request.scheme}://{request.host}{request.root_path}{self.options.callback_path}"

    # -- Handler --

    async def authenticate(self, ctx: HttpContext) -> Principal | None:  # noqa: ARG002
        # Remote schemes never authenticate requests themselves; the
        # sign-in scheme does once the callback has completed.
        return None

    async def challenge(self, ctx: HttpContext) -> Response:
        correlation = secrets.token_urlsafe(16)
        return_url = ctx.items.get(REDIRECT_ITEM) or ctx.request.url
        state = self._serializer.dumps({"c": correlation, "r": return_url})
        query = {
            "client_id": self.options.client_id,
            "redirect_uri": self.redirect_uri(ctx),
            "response_type": "code",
            "state": state,
        }
        if self.options.scope:
            query["scope"] = " ".join(self.options.scope)
        location = f"{self.options.authorization_endpoint}?{urlencode(query)}"
        return (
            Response(body="", status=302)
            .with_header("Location", location)
            .with_cookie(
                self.correlation_cookie,
                correlation,
                max_age=self.options.state_lifetime,
                path=ctx.request.root_path + self.options.callback_path,
                secure=ctx.request.is_secure,
            )
        )

    async def forbid(self, ctx: HttpContext) -> Response:  # noqa: ARG002
        return Response(body="Forbidden", status=403)

    # -- Callback --

    def _failure(self, ctx: HttpContext, reason: str) -> Response:
        logger.warning("OAuth callback for %s rejected: %s", self.name, reason)
        path = ctx.request.root_path + self.options.callback_path
        return Response(body=f"Authentication failed: {reason}", status=400).without_cookie(
            self.correlation_cookie, path
        )

    async def handle_request(self, ctx: HttpContext) -> Response | None:
        request = ctx.request
        if request.path != self.options.callback_path:
            return None

        error = request.query.get("error")
        if error:
            return self._failure(ctx, f"provider returned {error!r}")

        try:
            state = self._serializer.loads(
                request.query.get("state", ""), max_age=self.options.state_lifetime
            )
        except BadSignature:
            return self._failure(ctx, "invalid or expired state")

        correlation = request.cookies.get(self.correlation_cookie)
        if not correlation or not secrets.compare_digest(correlation, str(state.get("c", ""))):
            return self._failure(ctx, "correlation failed")

        code = request.query.get("code")
        if not code:
            return self._failure(ctx, "missing authorization code")

        try:
            async with self._backchannel() as client:
                tokens = await self.exchange_code(client, code, self.redirect_uri(ctx))
                access_token = tokens.get("access_token")
                if not access_token:
                    return self._failure(ctx, "token endpoint returned no access_token")
                user = await self.fetch_user(client, access_token)
        except httpx.HTTPError:
            logger.exception("OAuth backchannel request for %s failed", self.name)
            return Response(body="Bad Gateway", status=502)

        claims = self.map_claims(user)
        if self.options.save_tokens:
            claims["access_token"] = access_token
        principal = Principal.of(self.name, claims)

        signer = self._sign_in_handler(ctx)
        await signer.sign_in(ctx, principal)

        return_url = state.get("r") or "/"
        if not _is_local(return_url):
            return_url = "/"
        response = (
            Response(body="", status=302)
            .with_header("Location", return_url)
            .without_cookie(self.correlation_cookie, request.root_path + self.options.callback_path)
        )
        return merge_draft(ctx, response)

    # -- Backchannel --

    @asynccontextmanager
    async def _backchannel(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.options.backchannel is not None:
            yield self.options.backchannel
            return
        async with httpx.AsyncClient(timeout=self.options.backchannel_timeout) as client:
            yield client

    async def exchange_code(
        self, client: httpx.AsyncClient, code: str, redirect_uri: str
    ) -> dict[str, Any]:
        response = await client.post(
            self.options.token_endpoint,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": self.options.client_id,
                "client_secret": self.options.client_secret,
            },
            headers={"Accept": "application/json"},
        )
        response.raise_for_status()
        return response.json()

    async def fetch_user(self, client: httpx.AsyncClient, access_token: str) -> dict[str, Any]:
        if not self.options.user_information_endpoint:
            return {}
        response = await client.get(
            self.options.user_information_endpoint,
            headers={
                "Accept": "application/json",
                "Authorization": f"Bearer {access_token}",
            },
        )
        response.raise_for_status()
        return response.json()

    def map_claims(self, user: dict[str, Any]) -> dict[str, Any]:
        return {
            claim_type: user[json_key]
            for claim_type, json_key in self.options.claim_actions.items()
            if user.get(json_key) is not None
        }

    def _sign_in_handler(self, ctx: HttpContext) -> SignInHandler:
        scheme = self.options.sign_in_scheme
        if scheme is None:
            scheme = ctx.services.get_options(AuthenticationOptions).sign_in_scheme
        if scheme is None:
            msg = f"OAuth scheme {self.name!r} has no sign-in scheme to persist the identity."
            raise ConfigurationError(msg)
        handler = ctx.services.get_options(AuthenticationSchemes).get(scheme)
        if not isinstance(handler, SignInHandler):
            msg = f"Scheme {scheme!r} cannot sign identities in."
            raise ConfigurationError(msg)
        return handler

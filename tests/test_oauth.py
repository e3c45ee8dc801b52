"""Tests for OAuth sign-in: custom providers and the GitHub preset.

The provider's token and user-information endpoints are served by an
``httpx.MockTransport`` set as the scheme's backchannel.
"""

from urllib.parse import parse_qs, urlencode, urlsplit

import httpx
import pytest

from strata.application import Application
from strata.auth import AuthenticationOptions, AuthenticationSchemes, OAuthOptions, challenge
from strata.auth import requires_authentication
from strata.auth.oauth import (
    GITHUB_AUTHORIZATION_ENDPOINT,
    GITHUB_SCHEME,
    GITHUB_TOKEN_ENDPOINT,
    GITHUB_USER_INFORMATION_ENDPOINT,
)
from strata.context import HttpContext
from strata.errors import ConfigurationError
from strata.routing import router
from strata.testing import TestClient, set_cookies

CORRELATION = ".strata.correlation.Test"


def _provider(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/token":
        form = parse_qs(request.content.decode())
        if form.get("code") != ["good-code"] or form.get("client_secret") != ["shh"]:
            return httpx.Response(500, json={"error": "server_error"})
        return httpx.Response(200, json={"access_token": "provider-token"})
    if request.url.path == "/user":
        if request.headers.get("authorization") != "Bearer provider-token":
            return httpx.Response(401)
        return httpx.Response(200, json={"id": 99, "login": "octo", "email": None})
    return httpx.Response(404)


def _configure(opts: OAuthOptions) -> None:
    opts.client_id = "client"
    opts.client_secret = "shh"
    opts.callback_path = "/signin-test"
    opts.authorization_endpoint = "https://provider.test/authorize"
    opts.token_endpoint = "https://provider.test/token"
    opts.user_information_endpoint = "https://provider.test/user"
    opts.scope = ["read:user"]
    opts.map_json_key("sub", "id").map_json_key("name", "login").map_json_key("email", "email")
    opts.backchannel = httpx.AsyncClient(transport=httpx.MockTransport(_provider))


async def _me(ctx: HttpContext) -> dict[str, object]:
    return {"id": ctx.user.id, "name": ctx.user.name, "claims": sorted(ctx.user.claims)}


def _app() -> Application:
    secure = router().pipe_through(requires_authentication()).get("/me", _me).build()
    api = (
        router()
        .forward("/login", challenge(redirect_uri="/secure/me"))
        .forward("/secure", secure)
        .build()
    )
    return Application().router(api).use_custom_oauth("Test", _configure)


async def _start(client: TestClient) -> tuple[dict[str, list[str]], str]:
    response = await client.get("/login")
    assert response.status == 302
    query = parse_qs(urlsplit(response.header("location")).query)
    return query, set_cookies(response)[CORRELATION]


def _callback(**params: str) -> str:
    return "/signin-test?" + urlencode(params)


class TestChallenge:
    async def test_redirects_to_provider(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.get("/login")
        location = urlsplit(response.header("location"))
        query = parse_qs(location.query)
        endpoint = f"{location.scheme}://{location.netloc}{location.path}"
        assert endpoint == "https://provider.test/authorize"
        assert query["client_id"] == ["client"]
        assert query["response_type"] == ["code"]
        assert query["scope"] == ["read:user"]
        assert query["redirect_uri"] == ["http://testserver:80/signin-test"]
        assert CORRELATION in set_cookies(response)

    async def test_protected_route_challenges_with_provider(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.get("/secure/me")
        assert response.status == 302
        assert response.header("location").startswith("https://provider.test/authorize?")


class TestCallback:
    async def test_full_sign_in(self) -> None:
        async with TestClient(_app()) as client:
            query, correlation = await _start(client)
            callback = await client.get(
                _callback(code="good-code", state=query["state"][0]),
                headers={"Cookie": f"{CORRELATION}={correlation}"},
            )
            assert callback.status == 302
            assert callback.header("location") == "/secure/me"
            auth_cookie = set_cookies(callback)["strata_auth"]

            me = await client.get("/secure/me", headers={"Cookie": f"strata_auth={auth_cookie}"})
        assert me.status == 200
        assert me.text == '{"id":"99","name":"octo","claims":["name","sub"]}'

    async def test_missing_correlation_cookie(self) -> None:
        async with TestClient(_app()) as client:
            query, _ = await _start(client)
            response = await client.get(_callback(code="good-code", state=query["state"][0]))
        assert response.status == 400
        assert "correlation failed" in response.text

    async def test_invalid_state(self) -> None:
        async with TestClient(_app()) as client:
            _, correlation = await _start(client)
            response = await client.get(
                _callback(code="good-code", state="tampered"),
                headers={"Cookie": f"{CORRELATION}={correlation}"},
            )
        assert response.status == 400
        assert "invalid or expired state" in response.text

    async def test_provider_error(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.get(_callback(error="access_denied"))
        assert response.status == 400
        assert "access_denied" in response.text

    async def test_token_endpoint_failure_is_bad_gateway(self) -> None:
        async with TestClient(_app()) as client:
            query, correlation = await _start(client)
            response = await client.get(
                _callback(code="bad-code", state=query["state"][0]),
                headers={"Cookie": f"{CORRELATION}={correlation}"},
            )
        assert response.status == 502


class TestDeclarations:
    def test_custom_oauth_roles(self) -> None:
        services = _app().asgi_app().services
        options = services.get_options(AuthenticationOptions)
        assert options.default_scheme == "Cookies"
        assert options.challenge_scheme == "Test"
        assert options.sign_in_scheme == "Cookies"
        assert [h.name for h in services.get_options(AuthenticationSchemes)] == ["Cookies", "Test"]

    def test_incomplete_options_fail_at_composition(self) -> None:
        app = Application().router(router().build()).use_custom_oauth("Broken", lambda opts: None)
        with pytest.raises(ConfigurationError, match="client_id"):
            app.asgi_app()

    def test_github_preset(self) -> None:
        app = Application().router(router().build()).use_github_oauth(
            "id", "secret", "/signin-github", [("sub", "id"), ("name", "login")]
        )
        handler = app.asgi_app().services.get_options(AuthenticationSchemes).get(GITHUB_SCHEME)
        assert handler.options.authorization_endpoint == GITHUB_AUTHORIZATION_ENDPOINT
        assert handler.options.token_endpoint == GITHUB_TOKEN_ENDPOINT
        assert handler.options.user_information_endpoint == GITHUB_USER_INFORMATION_ENDPOINT
        assert handler.options.callback_path == "/signin-github"
        assert handler.options.claim_actions == {"sub": "id", "name": "login"}

    def test_github_with_config_keeps_endpoints(self) -> None:
        def configure(opts: OAuthOptions) -> None:
            opts.client_id = "id"
            opts.client_secret = "secret"
            opts.scope = ["user:email"]

        app = Application().router(router().build()).use_github_oauth_with_config(configure)
        handler = app.asgi_app().services.get_options(AuthenticationSchemes).get(GITHUB_SCHEME)
        assert handler.options.authorization_endpoint == GITHUB_AUTHORIZATION_ENDPOINT
        assert handler.options.scope == ["user:email"]

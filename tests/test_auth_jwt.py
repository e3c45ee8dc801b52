"""Tests for bearer-token authentication (use_jwt_authentication)."""

from dataclasses import replace

from strata.application import Application
from strata.auth import JwtBearerOptions, create_token, requires_authentication, requires_claim
from strata.auth.bearer import BEARER_SCHEME, JwtBearerHandler
from strata.context import HttpContext
from strata.routing import router
from strata.testing import TestClient

SECRET = "a-test-secret-that-is-long-enough-for-hs256"
ISSUER = "https://issuer.example.com"


async def _me(ctx: HttpContext) -> dict[str, object]:
    return {"id": ctx.user.id, "scheme": ctx.user.authentication_type}


def _api():
    protected = router().pipe_through(requires_authentication()).get("/me", _me).build()
    admin = (
        router().pipe_through(requires_claim("role", "admin")).get("/", lambda ctx: "admin").build()
    )
    return (
        router()
        .get("/public", lambda ctx: {"authenticated": ctx.user.is_authenticated})
        .forward("/api", protected)
        .forward("/admin", admin)
        .build()
    )


def _app() -> Application:
    return Application().router(_api()).use_jwt_authentication(SECRET, ISSUER)


def _token(subject: str, **kwargs: object) -> str:
    kwargs.setdefault("issuer", ISSUER)
    kwargs.setdefault("audience", ISSUER)
    return create_token(SECRET, subject=subject, **kwargs)  # type: ignore[arg-type]


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestJwtBearerHandler:
    def test_decode_round_trip(self) -> None:
        options = JwtBearerOptions(secret=SECRET, issuer=ISSUER, audience=ISSUER)
        handler = JwtBearerHandler(BEARER_SCHEME, options)
        token = _token("42")
        claims = handler.decode(token)
        assert claims["sub"] == "42"
        assert claims["iss"] == ISSUER


class TestUseJwtAuthentication:
    async def test_valid_token(self) -> None:
        token = _token("42")
        async with TestClient(_app()) as client:
            response = await client.get("/api/me", headers=_bearer(token))
        assert response.status == 200
        assert response.text == '{"id":"42","scheme":"Bearer"}'

    async def test_missing_token_is_challenged(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.get("/api/me")
        assert response.status == 401
        assert response.header("www-authenticate") == "Bearer"

    async def test_anonymous_allowed_on_public_route(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.get("/public")
        assert response.text == '{"authenticated":false}'

    async def test_bad_signature(self) -> None:
        token = create_token(
            "another-secret-of-sufficient-length-1234", subject="42", issuer=ISSUER, audience=ISSUER
        )
        async with TestClient(_app()) as client:
            response = await client.get("/api/me", headers=_bearer(token))
        assert response.status == 401
        assert response.header("www-authenticate") == 'Bearer error="invalid_token"'

    async def test_expired_token(self) -> None:
        token = _token("42", expires_in=-60)
        async with TestClient(_app()) as client:
            response = await client.get("/api/me", headers=_bearer(token))
        assert response.status == 401

    async def test_wrong_issuer(self) -> None:
        token = _token("42", issuer="https://other")
        async with TestClient(_app()) as client:
            assert (await client.get("/api/me", headers=_bearer(token))).status == 401

    async def test_audience_must_be_issuer(self) -> None:
        token = _token("42", audience="someone-else")
        async with TestClient(_app()) as client:
            assert (await client.get("/api/me", headers=_bearer(token))).status == 401

    async def test_non_bearer_authorization_ignored(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.get("/api/me", headers={"Authorization": "Basic dXNlcjpwdw=="})
        assert response.status == 401

    async def test_required_claim(self) -> None:
        admin = _token("1", claims={"role": "admin"})
        user = _token("2", claims={"role": "user"})
        async with TestClient(_app()) as client:
            assert (await client.get("/admin/", headers=_bearer(admin))).text == "admin"
            assert (await client.get("/admin/", headers=_bearer(user))).status == 403
            assert (await client.get("/admin/")).status == 401


class TestUseJwtAuthenticationWithConfig:
    async def test_configured_options(self) -> None:
        app = Application().router(_api()).use_jwt_authentication_with_config(
            lambda opts: replace(opts, secret=SECRET, realm="api", require_expiration=False)
        )
        token = create_token(SECRET, subject="7", expires_in=None)
        async with TestClient(app) as client:
            ok = await client.get("/api/me", headers=_bearer(token))
            challenged = await client.get("/api/me")
        assert ok.status == 200
        assert challenged.header("www-authenticate") == 'Bearer realm="api"'

    async def test_lifetime_validation_can_be_disabled(self) -> None:
        app = Application().router(_api()).use_jwt_authentication_with_config(
            lambda opts: replace(opts, secret=SECRET, validate_lifetime=False)
        )
        token = create_token(SECRET, subject="7", expires_in=-3600)
        async with TestClient(app) as client:
            assert (await client.get("/api/me", headers=_bearer(token))).status == 200

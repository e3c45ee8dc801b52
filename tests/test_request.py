"""Tests for strata.http.request: frozen Request with async body access."""

import pytest

from strata.http.request import Request


def _make_scope(**overrides: object) -> dict[str, object]:
    """Build a minimal valid ASGI HTTP scope."""
    base: dict[str, object] = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "GET",
        "path": "/",
        "query_string": b"",
        "root_path": "",
        "headers": [],
        "server": ("localhost", 8000),
        "client": ("127.0.0.1", 54321),
    }
    base.update(overrides)
    return base


def _make_receive(*bodies: bytes):
    """Create an ASGI receive callable that yields bodies."""
    messages = [
        {"type": "http.request", "body": body, "more_body": i < len(bodies) - 1}
        for i, body in enumerate(bodies)
    ] or [{"type": "http.request", "body": b"", "more_body": False}]
    it = iter(messages)

    async def receive():
        return next(it)

    return receive


class TestRequestFromASGI:
    def test_basic_fields(self) -> None:
        req = Request.from_asgi(_make_scope(method="POST", path="/users"), _make_receive())
        assert req.method == "POST"
        assert req.path == "/users"
        assert req.server == ("localhost", 8000)
        assert req.client == ("127.0.0.1", 54321)
        assert req.path_params == {}

    def test_headers_query_and_cookies(self) -> None:
        scope = _make_scope(
            headers=[(b"accept", b"*/*"), (b"cookie", b"session=abc; theme=dark")],
            query_string=b"q=hello&page=2",
        )
        req = Request.from_asgi(scope, _make_receive())
        assert req.headers["accept"] == "*/*"
        assert req.query["page"] == "2"
        assert req.cookies == {"session": "abc", "theme": "dark"}

    def test_missing_server_and_client(self) -> None:
        scope = _make_scope()
        del scope["server"]
        del scope["client"]
        req = Request.from_asgi(scope, _make_receive())
        assert req.server is None
        assert req.client is None
        assert req.host == "localhost"

    def test_root_path_stripped_on_segment_boundary(self) -> None:
        scope = _make_scope(root_path="/app", path="/app/users")
        assert Request.from_asgi(scope, _make_receive()).path == "/users"

    def test_root_path_prefix_of_segment_kept(self) -> None:
        scope = _make_scope(root_path="/app", path="/application")
        assert Request.from_asgi(scope, _make_receive()).path == "/application"


class TestRequestProperties:
    def test_host_from_header(self) -> None:
        req = Request.from_asgi(_make_scope(headers=[(b"host", b"example.com")]), _make_receive())
        assert req.host == "example.com"

    def test_host_from_server(self) -> None:
        assert Request.from_asgi(_make_scope(), _make_receive()).host == "localhost:8000"

    def test_url_and_absolute_url(self) -> None:
        scope = _make_scope(
            scheme="https",
            root_path="/app",
            path="/app/page",
            query_string=b"x=1",
            headers=[(b"host", b"example.com")],
        )
        req = Request.from_asgi(scope, _make_receive())
        assert req.is_secure is True
        assert req.url == "/app/page?x=1"
        assert req.absolute_url == "https://example.com/app/page?x=1"

    def test_with_path(self) -> None:
        req = Request(method="GET", path="/api/users")
        mounted = req.with_path("/users", root_path="/api")
        assert mounted.path == "/users"
        assert mounted.root_path == "/api"
        assert req.path == "/api/users"

    def test_frozen(self) -> None:
        req = Request(method="GET", path="/")
        with pytest.raises(AttributeError):
            req.path = "/other"  # type: ignore[misc]


class TestRequestBody:
    async def test_body_chunks_joined(self) -> None:
        req = Request.from_asgi(_make_scope(), _make_receive(b"hello ", b"world"))
        assert await req.body() == b"hello world"

    async def test_body_cached(self) -> None:
        req = Request.from_asgi(_make_scope(), _make_receive(b"once"))
        assert await req.body() == b"once"
        assert await req.text() == "once"

    async def test_json(self) -> None:
        req = Request.from_asgi(_make_scope(), _make_receive(b'{"a": 1}'))
        assert await req.json() == {"a": 1}

    async def test_body_survives_path_rewrite(self) -> None:
        req = Request.from_asgi(_make_scope(path="/api/x"), _make_receive(b"payload"))
        await req.body()
        assert await req.with_path("/x").body() == b"payload"

"""Tests for strata.errors and the error-handling decorator."""

import logging

import pytest

from strata.context import HttpContext
from strata.errors import (
    ConfigurationError,
    Forbidden,
    HTTPError,
    MethodNotAllowed,
    NotFound,
    StrataError,
    Unauthorized,
)
from strata.http.request import Request
from strata.http.response import Response
from strata.pipeline import Next, Outcome, Responded, decline
from strata.server.errors import (
    SERVER_LOGGER,
    UNHANDLED_MESSAGE,
    default_error_handler,
    error_handling,
)
from strata.services import ServiceCollection, add_core_services


def _ctx() -> HttpContext:
    provider = add_core_services(ServiceCollection()).build()
    return HttpContext(Request(method="GET", path="/boom"), provider.create_scope())


def _raising(exc: Exception):
    async def endpoint(ctx: HttpContext) -> Response:
        raise exc

    return endpoint


class TestHierarchy:
    def test_http_error_is_strata_error(self) -> None:
        assert issubclass(HTTPError, StrataError)

    def test_configuration_error_is_strata_error(self) -> None:
        assert issubclass(ConfigurationError, StrataError)

    def test_subclasses(self) -> None:
        for cls in (NotFound, MethodNotAllowed, Unauthorized, Forbidden):
            assert issubclass(cls, HTTPError)


class TestHTTPError:
    def test_str_with_detail(self) -> None:
        assert str(HTTPError(status=400, detail="Bad request body")) == "400: Bad request body"

    def test_str_without_detail(self) -> None:
        assert str(HTTPError(status=500)) == "500"

    def test_frozen(self) -> None:
        err = HTTPError(status=400)
        with pytest.raises(AttributeError):
            err.status = 500  # type: ignore[misc]

    def test_method_not_allowed_allow_header(self) -> None:
        err = MethodNotAllowed(frozenset({"POST", "GET"}))
        assert err.status == 405
        assert err.headers == (("Allow", "GET, POST"),)

    def test_unauthorized_scheme(self) -> None:
        assert Unauthorized(scheme="Bearer").headers == (("WWW-Authenticate", "Bearer"),)
        assert Unauthorized().headers == ()


class TestErrorHandling:
    async def test_passes_successful_responses_through(self) -> None:
        async def ok(ctx: HttpContext) -> Response:
            return Response("fine")

        response = await error_handling(default_error_handler)(ok)(_ctx())
        assert response.text == "fine"

    async def test_http_error_maps_to_status(self) -> None:
        endpoint = error_handling(default_error_handler)(_raising(NotFound()))
        response = await endpoint(_ctx())
        assert response.status == 404
        assert response.text == "Not Found"

    async def test_http_error_headers_are_kept(self) -> None:
        endpoint = error_handling(default_error_handler)(
            _raising(MethodNotAllowed(frozenset({"GET"})))
        )
        response = await endpoint(_ctx())
        assert response.header("Allow") == "GET"

    async def test_http_error_is_not_logged_as_failure(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        endpoint = error_handling(default_error_handler)(_raising(NotFound()))
        with caplog.at_level(logging.ERROR):
            await endpoint(_ctx())
        assert caplog.records == []

    async def test_default_handler_logs_once_and_hides_message(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        endpoint = error_handling(default_error_handler)(_raising(RuntimeError("secret detail")))
        with caplog.at_level(logging.ERROR, logger=SERVER_LOGGER):
            response = await endpoint(_ctx())
        assert response.status == 500
        assert "secret detail" not in response.text
        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert errors[0].getMessage() == UNHANDLED_MESSAGE % ("GET", "/boom")
        assert errors[0].name == SERVER_LOGGER

    async def test_draft_is_discarded_by_default_handler(self) -> None:
        ctx = _ctx()
        ctx.set_header("X-Partial", "1")
        response = await error_handling(default_error_handler)(_raising(ValueError()))(ctx)
        assert response.header("X-Partial") is None

    async def test_custom_handler_receives_exception_and_logger(self) -> None:
        seen: list[tuple[str, str]] = []

        def handler(exc: Exception, log: logging.Logger):
            seen.append((type(exc).__name__, log.name))

            async def interceptor(ctx: HttpContext, next: Next) -> Outcome:
                return Responded(Response(f"handled {exc}", status=503))

            return interceptor

        response = await error_handling(handler)(_raising(KeyError("k")))(_ctx())
        assert response.status == 503
        assert seen == [("KeyError", SERVER_LOGGER)]

    async def test_failing_handler_answers_500(self, caplog: pytest.LogCaptureFixture) -> None:
        def handler(exc: Exception, log: logging.Logger):
            raise RuntimeError("handler broke")

        with caplog.at_level(logging.ERROR):
            response = await error_handling(handler)(_raising(ValueError()))(_ctx())
        assert response.status == 500
        assert any("error handler failed" in r.getMessage() for r in caplog.records)

    async def test_declining_handler_answers_500(self) -> None:
        response = await error_handling(lambda exc, log: decline)(_raising(ValueError()))(_ctx())
        assert response.status == 500

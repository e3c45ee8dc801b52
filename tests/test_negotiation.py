"""Tests for strata.negotiation: handler return values to responses."""

import dataclasses

import pytest

from strata.context import HttpContext
from strata.http.request import Request
from strata.http.response import Redirect, Response
from strata.negotiation import negotiate
from strata.serialization import JsonSerializer
from strata.services import ServiceCollection


class TestNegotiatePassthrough:
    def test_response_passthrough(self) -> None:
        original = Response(body="hello", status=201)
        assert negotiate(original) is original

    def test_redirect(self) -> None:
        result = negotiate(Redirect("/login"))
        assert result.status == 302
        assert ("Location", "/login") in result.headers

    def test_redirect_301(self) -> None:
        assert negotiate(Redirect("/new", status=301)).status == 301


class TestNegotiateValues:
    def test_str_is_html(self) -> None:
        result = negotiate("<h1>hi</h1>")
        assert result.status == 200
        assert result.content_type.startswith("text/html")

    def test_bytes(self) -> None:
        assert negotiate(b"\x00\x01").content_type == "application/octet-stream"

    def test_dict_is_compact_json(self) -> None:
        result = negotiate({"a": 1, "b": [1, 2]})
        assert result.text == '{"a":1,"b":[1,2]}'
        assert result.content_type == "application/json; charset=utf-8"

    def test_list(self) -> None:
        assert negotiate([1, 2]).text == "[1,2]"

    def test_dataclass_values_inside_json(self) -> None:
        @dataclasses.dataclass
        class Point:
            x: int
            y: int

        assert negotiate({"p": Point(1, 2)}).text == '{"p":{"x":1,"y":2}}'

    def test_none_is_204(self) -> None:
        result = negotiate(None)
        assert result.status == 204
        assert result.body == ""

    def test_tuple_with_status(self) -> None:
        result = negotiate(("Created", 201))
        assert (result.status, result.text) == (201, "Created")

    def test_tuple_with_status_and_headers(self) -> None:
        result = negotiate(({"ok": True}, 202, {"X-Job": "7"}))
        assert result.status == 202
        assert result.header("X-Job") == "7"

    def test_unsupported_type(self) -> None:
        with pytest.raises(TypeError, match="Cannot convert"):
            negotiate(object())


class TestNegotiateSerializerService:
    def test_uses_registered_serializer(self) -> None:
        services = ServiceCollection().add_instance(
            JsonSerializer, JsonSerializer(content_type="application/problem+json")
        )
        ctx = HttpContext(Request(method="GET", path="/"), services.build().create_scope())
        assert negotiate({"x": 1}, ctx).content_type == "application/problem+json; charset=utf-8"

    def test_falls_back_without_registration(self) -> None:
        scope = ServiceCollection().build().create_scope()
        ctx = HttpContext(Request(method="GET", path="/"), scope)
        assert negotiate({"x": 1}, ctx).content_type == "application/json; charset=utf-8"

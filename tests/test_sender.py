"""Tests for strata.server.sender response emission rules."""

from strata.http.response import Response
from strata.server.sender import send_response


async def _emit(response: Response, *, head: bool = False) -> list[dict]:
    messages: list[dict] = []

    async def send(message: dict) -> None:
        messages.append(message)

    await send_response(response, send, head=head)
    return messages


class TestSendResponse:
    async def test_200_preserves_body(self) -> None:
        messages = await _emit(Response("ok"))
        headers = dict(messages[0]["headers"])
        assert messages[0]["status"] == 200
        assert headers[b"content-length"] == b"2"
        assert headers[b"content-type"] == b"text/html; charset=utf-8"
        assert messages[1]["body"] == b"ok"

    async def test_204_and_304_drop_body(self) -> None:
        for status in (204, 304):
            messages = await _emit(Response("unexpected-body").with_status(status))
            assert dict(messages[0]["headers"])[b"content-length"] == b"0"
            assert messages[1]["body"] == b""

    async def test_head_keeps_length_without_body(self) -> None:
        messages = await _emit(Response("hello"), head=True)
        assert dict(messages[0]["headers"])[b"content-length"] == b"5"
        assert messages[1]["body"] == b""

    async def test_manual_content_length_is_replaced(self) -> None:
        messages = await _emit(Response("ok").with_header("Content-Length", "99"))
        lengths = [v for k, v in messages[0]["headers"] if k == b"content-length"]
        assert lengths == [b"2"]

    async def test_cookies_become_set_cookie_headers(self) -> None:
        response = Response("ok").with_cookie("a", "1").without_cookie("b")
        messages = await _emit(response)
        cookies = [v for k, v in messages[0]["headers"] if k == b"set-cookie"]
        assert cookies[0].startswith(b"a=1;")
        assert cookies[1].startswith(b"b=; Max-Age=0")

"""Tests for strata.pipeline: tagged outcomes and interceptor composition."""

from strata.context import HttpContext
from strata.http.headers import Headers
from strata.http.request import Request
from strata.http.response import Response
from strata.pipeline import (
    Declined,
    Forwarded,
    Next,
    Outcome,
    Responded,
    chain,
    choose,
    compose,
    decline,
    forward,
    merge_draft,
    method,
    mount,
    redirect_to,
    respond,
    run,
    set_header,
    set_status,
    when,
)
from strata.services import ServiceCollection


def _headers(pairs: dict[str, str]) -> Headers:
    return Headers((k.encode("latin-1"), v.encode("latin-1")) for k, v in pairs.items())


def _ctx(
    method_: str = "GET", path: str = "/", headers: dict[str, str] | None = None
) -> HttpContext:
    request = Request(method=method_, path=path, headers=_headers(headers or {}))
    return HttpContext(request, ServiceCollection().build().create_scope())


def _recording(log: list[str], name: str):
    async def interceptor(ctx: HttpContext, next: Next) -> Outcome:
        log.append(name)
        return await next(ctx)

    return interceptor


async def _ok(ctx: HttpContext, next: Next) -> Outcome:
    return Responded(Response("ok"))


class TestRun:
    async def test_forward_reaches_terminal(self) -> None:
        ctx = _ctx()
        outcome = await run(forward, ctx)
        assert outcome == Forwarded(ctx)

    async def test_decline(self) -> None:
        outcome = await run(decline, _ctx())
        assert isinstance(outcome, Declined)

    async def test_respond_short_circuits(self) -> None:
        outcome = await run(respond({"a": 1}), _ctx())
        assert isinstance(outcome, Responded)
        assert outcome.response.content_type.startswith("application/json")


class TestCompose:
    async def test_first_runs_before_second(self) -> None:
        log: list[str] = []
        await run(compose(_recording(log, "f"), _recording(log, "g")), _ctx())
        assert log == ["f", "g"]

    async def test_chain_runs_in_declaration_order(self) -> None:
        log: list[str] = []
        pipeline = chain(*(_recording(log, name) for name in "abcde"))
        await run(pipeline, _ctx())
        assert log == ["a", "b", "c", "d", "e"]

    async def test_short_circuit_skips_the_rest(self) -> None:
        log: list[str] = []
        pipeline = chain(_recording(log, "a"), _ok, _recording(log, "never"))
        outcome = await run(pipeline, _ctx())
        assert isinstance(outcome, Responded)
        assert log == ["a"]

    async def test_decline_skips_the_rest(self) -> None:
        log: list[str] = []
        pipeline = chain(decline, _recording(log, "never"))
        assert isinstance(await run(pipeline, _ctx()), Declined)
        assert log == []

    async def test_empty_chain_forwards(self) -> None:
        ctx = _ctx()
        assert await run(chain(), ctx) == Forwarded(ctx)

    async def test_composition_is_associative(self) -> None:
        left: list[str] = []
        right: list[str] = []
        a, b, c = (_recording(left, n) for n in "abc")
        await run(compose(compose(a, b), c), _ctx())
        a, b, c = (_recording(right, n) for n in "abc")
        await run(compose(a, compose(b, c)), _ctx())
        assert left == right == ["a", "b", "c"]


class TestChoose:
    async def test_first_non_declining_alternative_wins(self) -> None:
        pipeline = choose(decline, respond("second"), respond("third"))
        outcome = await run(pipeline, _ctx())
        assert isinstance(outcome, Responded)
        assert outcome.response.text == "second"

    async def test_all_decline(self) -> None:
        assert isinstance(await run(choose(decline, decline), _ctx()), Declined)

    async def test_method_filter(self) -> None:
        pipeline = choose(
            chain(method("POST"), respond("post")),
            chain(method("GET"), respond("get")),
        )
        outcome = await run(pipeline, _ctx("GET"))
        assert outcome.response.text == "get"

    async def test_when(self) -> None:
        guarded = when(lambda ctx: ctx.request.path == "/admin", respond("admin"))
        assert isinstance(await run(guarded, _ctx(path="/")), Declined)
        assert isinstance(await run(guarded, _ctx(path="/admin")), Responded)


class TestDraft:
    async def test_set_header_writes_draft_and_forwards(self) -> None:
        ctx = _ctx()
        outcome = await run(set_header("X-Test", "1"), ctx)
        assert isinstance(outcome, Forwarded)
        assert ctx.response.header("X-Test") == "1"

    async def test_merge_draft_puts_draft_headers_first(self) -> None:
        ctx = _ctx()
        ctx.set_header("X-Draft", "d")
        merged = merge_draft(ctx, Response("body").with_header("X-Final", "f"))
        assert merged.headers == (("X-Draft", "d"), ("X-Final", "f"))
        assert merged.text == "body"


class TestMount:
    async def test_responded_is_merged_with_draft(self) -> None:
        endpoint = mount(chain(set_header("X-Test", "1"), respond("hi")))
        response = await endpoint(_ctx())
        assert response.text == "hi"
        assert response.header("X-Test") == "1"

    async def test_forwarded_returns_draft(self) -> None:
        endpoint = mount(chain(set_status(202), set_header("X-Only", "draft")))
        response = await endpoint(_ctx())
        assert response.status == 202
        assert response.header("X-Only") == "draft"

    async def test_declined_is_404(self) -> None:
        response = await mount(decline)(_ctx())
        assert response.status == 404

    async def test_redirect_to(self) -> None:
        response = await mount(redirect_to("/login"))(_ctx())
        assert response.status == 302
        assert response.header("Location") == "/login"

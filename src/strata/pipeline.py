"""Request-interceptor pipeline.

An interceptor is any callable matching::

    async def stage(ctx: HttpContext, next: Next) -> Outcome: ...

and ends in one of three ways:

- forward: ``return await next(ctx)``
- short-circuit: ``return Responded(response)``
- decline: ``return Declined()``, meaning "not mine"; an enclosing
  ``choose()`` then tries its next alternative

``Outcome`` is a tagged result rather than ``None``/exception control
flow, so the composition law stays explicit: in ``chain(f, g, h)`` the
request reaches ``g`` only if ``f`` forwards, and ``h`` only if ``g``
forwards. When the last stage forwards too, the terminal continuation
``succeed`` returns ``Forwarded(ctx)``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import reduce
from typing import Any

from strata.context import HttpContext
from strata.http.response import Response
from strata.negotiation import negotiate

# -- Outcomes --


@dataclass(frozen=True, slots=True)
class Forwarded:
    """Every stage forwarded; the context carries whatever was drafted."""

    context: HttpContext


@dataclass(frozen=True, slots=True)
class Responded:
    """A stage produced the final response."""

    response: Response


@dataclass(frozen=True, slots=True)
class Declined:
    """The stage does not handle this request."""

    reason: str = ""


type Outcome = Forwarded | Responded | Declined

type Next = Callable[[HttpContext], Awaitable[Outcome]]

type Interceptor = Callable[[HttpContext, Next], Awaitable[Outcome]]

# ctx.items key: methods a router would have accepted for a declined path.
ALLOWED_METHODS = "allowed_methods"


async def succeed(ctx: HttpContext) -> Outcome:
    """Terminal continuation: nothing left to forward to."""
    return Forwarded(ctx)


async def forward(ctx: HttpContext, next: Next) -> Outcome:
    """The identity interceptor."""
    return await next(ctx)


async def decline(ctx: HttpContext, next: Next) -> Outcome:  # noqa: ARG001
    """Interceptor that never handles anything."""
    return Declined()


# -- Composition --


def compose(first: Interceptor, second: Interceptor) -> Interceptor:
    """``first`` runs, and may hand over to ``second`` by forwarding."""

    async def composed(ctx: HttpContext, next: Next) -> Outcome:
        async def then(inner: HttpContext) -> Outcome:
            return await second(inner, next)

        return await first(ctx, then)

    return composed


def chain(*interceptors: Interceptor) -> Interceptor:
    """Compose left to right: the first argument is outermost."""
    if not interceptors:
        return forward
    return reduce(compose, interceptors)


def choose(*alternatives: Interceptor) -> Interceptor:
    """Try each alternative in order; the first that does not decline wins."""

    async def chosen(ctx: HttpContext, next: Next) -> Outcome:
        for alternative in alternatives:
            outcome = await alternative(ctx, next)
            if not isinstance(outcome, Declined):
                return outcome
        return Declined()

    return chosen


async def run(interceptor: Interceptor, ctx: HttpContext) -> Outcome:
    """Execute *interceptor* against *ctx* with ``succeed`` as terminal."""
    return await interceptor(ctx, succeed)


def merge_draft(ctx: HttpContext, response: Response) -> Response:
    """Apply the context's drafted headers and cookies to *response*.

    Drafted values come first so anything the final response sets itself
    follows them on the wire.
    """
    draft = ctx.response
    if not draft.headers and not draft.cookies:
        return response
    return Response(
        body=response.body,
        status=response.status,
        content_type=response.content_type,
        headers=(*draft.headers, *response.headers),
        cookies=(*draft.cookies, *response.cookies),
    )


def not_found_response() -> Response:
    return Response(body="Not Found", status=404, content_type="text/plain; charset=utf-8")


def method_not_allowed_response(allowed: frozenset[str]) -> Response:
    return Response(
        body="Method Not Allowed",
        status=405,
        content_type="text/plain; charset=utf-8",
        headers=(("Allow", ", ".join(sorted(allowed))),),
    )


def mount(pipeline: Interceptor) -> Callable[[HttpContext], Awaitable[Response]]:
    """Turn an interceptor pipeline into an endpoint.

    - ``Responded``: the response, merged with the context's draft
    - ``Forwarded``: the draft itself (nothing produced a final response)
    - ``Declined``: 405 with ``Allow`` when a router recorded the methods
      it would accept for this path, otherwise 404; merged with the draft
    """

    async def endpoint(ctx: HttpContext) -> Response:
        match await pipeline(ctx, succeed):
            case Responded(response=response):
                return merge_draft(ctx, response)
            case Forwarded(context=context):
                return context.response
            case Declined():
                allowed = ctx.items.get(ALLOWED_METHODS)
                if allowed:
                    return merge_draft(ctx, method_not_allowed_response(allowed))
                return merge_draft(ctx, not_found_response())

    return endpoint


# -- Building blocks --


def set_header(name: str, value: str) -> Interceptor:
    """Draft a response header, then forward."""

    async def interceptor(ctx: HttpContext, next: Next) -> Outcome:
        ctx.set_header(name, value)
        return await next(ctx)

    return interceptor


def set_status(status: int) -> Interceptor:
    """Draft a status code, then forward."""

    async def interceptor(ctx: HttpContext, next: Next) -> Outcome:
        ctx.set_status(status)
        return await next(ctx)

    return interceptor


def respond(value: Any) -> Interceptor:
    """Short-circuit with a fixed value (negotiated like a handler's return)."""

    async def interceptor(ctx: HttpContext, next: Next) -> Outcome:  # noqa: ARG001
        return Responded(negotiate(value, ctx))

    return interceptor


def redirect_to(url: str, *, permanent: bool = False) -> Interceptor:
    status = 301 if permanent else 302

    async def interceptor(ctx: HttpContext, next: Next) -> Outcome:  # noqa: ARG001
        return Responded(Response(body="").with_status(status).with_header("Location", url))

    return interceptor


def when(predicate: Callable[[HttpContext], bool], interceptor: Interceptor) -> Interceptor:
    """Run *interceptor* when *predicate* holds; otherwise decline."""

    async def guarded(ctx: HttpContext, next: Next) -> Outcome:
        if predicate(ctx):
            return await interceptor(ctx, next)
        return Declined()

    return guarded


def method(*methods: str) -> Interceptor:
    """Forward only for the given HTTP methods; decline the rest."""
    allowed = frozenset(m.upper() for m in methods)

    async def interceptor(ctx: HttpContext, next: Next) -> Outcome:
        if ctx.request.method in allowed:
            return await next(ctx)
        return Declined(f"method {ctx.request.method} not in {sorted(allowed)}")

    return interceptor


__all__ = [
    "ALLOWED_METHODS",
    "Declined",
    "Forwarded",
    "Interceptor",
    "Next",
    "Outcome",
    "Responded",
    "chain",
    "choose",
    "compose",
    "decline",
    "forward",
    "merge_draft",
    "mount",
    "not_found_response",
    "method",
    "method_not_allowed_response",
    "redirect_to",
    "respond",
    "run",
    "set_header",
    "set_status",
    "succeed",
    "when",
]

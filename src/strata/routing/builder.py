"""Immutable router builder.

``router()`` starts an empty ``RouterBuilder``; each method returns a new
builder, and ``build()`` compiles everything into a single interceptor
suitable for ``Application.router``::

    api = (
        router()
        .get("/", index)
        .get("/users/{id:int}", show_user)
        .post("/users", create_user)
        .forward("/admin", admin_pipeline)
        .not_found(lambda ctx: ("nothing here", 404))
    )
    app = Application().router(api.build())

Handlers receive the ``HttpContext`` plus converted path parameters as
keyword arguments, may be sync or async, and return anything
``negotiate`` understands or an ``Outcome``.

Dispatch order: declared routes, then forwarded sub-pipelines in
declaration order, then the not-found handler. With no not-found
handler an unmatched request declines, so an enclosing ``choose`` can
try something else and the mounted pipeline answers 404. A known path
with an unsupported method declines the same way, recording the methods
it accepts under ``ALLOWED_METHODS`` so the mounted pipeline answers 405.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from typing import Any

from strata._internal.invoke import invoke
from strata.context import HttpContext
from strata.errors import MethodNotAllowed, NotFound
from strata.negotiation import negotiate
from strata.pipeline import (
    ALLOWED_METHODS,
    Declined,
    Forwarded,
    Interceptor,
    Next,
    Outcome,
    Responded,
    chain,
)
from strata.routing.route import Route
from strata.routing.trie import Router, parse_path

type Handler = Callable[..., Any]

_OUTCOMES = (Forwarded, Responded, Declined)


async def _respond(handler: Handler, ctx: HttpContext, params: dict[str, Any]) -> Outcome:
    result = await invoke(handler, ctx, **params)
    if isinstance(result, _OUTCOMES):
        return result
    return Responded(negotiate(result, ctx))


def _under(prefix: str, path: str) -> str | None:
    """Return *path* relative to *prefix*, or ``None`` if it is not under it."""
    if path == prefix:
        return "/"
    if path.startswith(prefix + "/"):
        return path[len(prefix) :]
    return None


@dataclass(frozen=True, slots=True)
class RouterBuilder:
    """Accumulates routes; every method returns a new builder."""

    routes: tuple[Route, ...] = ()
    forwards: tuple[tuple[str, Interceptor], ...] = ()
    interceptors: tuple[Interceptor, ...] = ()
    fallback: Handler | None = None

    # -- Routes --

    def route(
        self,
        path: str,
        handler: Handler,
        methods: Iterable[str] = ("GET",),
        *,
        name: str | None = None,
    ) -> RouterBuilder:
        # Parse eagerly so malformed paths fail at declaration.
        parse_path(path)
        entry = Route(path, handler, frozenset(m.upper() for m in methods), name)
        return replace(self, routes=(*self.routes, entry))

    def get(self, path: str, handler: Handler, *, name: str | None = None) -> RouterBuilder:
        return self.route(path, handler, ("GET",), name=name)

    def post(self, path: str, handler: Handler, *, name: str | None = None) -> RouterBuilder:
        return self.route(path, handler, ("POST",), name=name)

    def put(self, path: str, handler: Handler, *, name: str | None = None) -> RouterBuilder:
        return self.route(path, handler, ("PUT",), name=name)

    def patch(self, path: str, handler: Handler, *, name: str | None = None) -> RouterBuilder:
        return self.route(path, handler, ("PATCH",), name=name)

    def delete(self, path: str, handler: Handler, *, name: str | None = None) -> RouterBuilder:
        return self.route(path, handler, ("DELETE",), name=name)

    # -- Composition --

    def forward(self, prefix: str, interceptor: Interceptor) -> RouterBuilder:
        """Hand requests under *prefix* to *interceptor* with the prefix stripped.

        The stripped prefix moves to ``request.root_path``. If the
        sub-pipeline declines, the original request is restored.
        """
        prefix = "/" + prefix.strip("/")
        return replace(self, forwards=(*self.forwards, (prefix, interceptor)))

    def pipe_through(self, interceptor: Interceptor) -> RouterBuilder:
        """Run *interceptor* in front of this router only."""
        return replace(self, interceptors=(*self.interceptors, interceptor))

    def not_found(self, handler: Handler) -> RouterBuilder:
        return replace(self, fallback=handler)

    # -- Build --

    def build(self) -> Interceptor:
        """Compile the routes into one interceptor.

        Raises ``ConfigurationError`` for conflicting or duplicate routes.
        """
        table = Router()
        for entry in self.routes:
            table.add(entry)
        table.compile()

        forwards = self.forwards
        fallback = self.fallback

        async def dispatch(ctx: HttpContext, next: Next) -> Outcome:
            request = ctx.request
            allowed: frozenset[str] = frozenset()
            try:
                match = table.match(request.method, request.path)
            except NotFound:
                match = None
            except MethodNotAllowed as exc:
                match = None
                allowed = exc.allowed
            if match is not None:
                ctx.request = request.with_path_params(match.path_params)
                return await _respond(match.route.handler, ctx, match.path_params)

            for prefix, sub in forwards:
                rest = _under(prefix, request.path)
                if rest is None:
                    continue
                ctx.request = request.with_path(rest, root_path=request.root_path + prefix)
                outcome = await sub(ctx, next)
                if not isinstance(outcome, Declined):
                    return outcome
                ctx.request = request

            if fallback is not None:
                return await _respond(fallback, ctx, {})
            if allowed:
                ctx.items[ALLOWED_METHODS] = ctx.items.get(ALLOWED_METHODS, frozenset()) | allowed
            return Declined(f"no route for {request.method} {request.path}")

        return chain(*self.interceptors, dispatch)


def router() -> RouterBuilder:
    """Start an empty router declaration."""
    return RouterBuilder()

"""Middleware protocol, Endpoint, and the app-config decorator type.

An endpoint is the low-level entry point the ASGI adapter calls::

    async def endpoint(ctx: HttpContext) -> Response: ...

App-config fragments are decorators ``Endpoint -> Endpoint``. Most of
them are built from a middleware, which is any callable matching::

    async def my_mw(ctx: HttpContext, next: Endpoint) -> Response: ...

No base class required. The framework checks the shape, not the lineage.
``use_middleware`` turns a middleware into an app-config decorator.
"""

from collections.abc import Awaitable, Callable
from typing import Protocol

from strata.context import HttpContext
from strata.http.response import Response

# The low-level request entry point, and the next step for a middleware
type Endpoint = Callable[[HttpContext], Awaitable[Response]]

# An app-config fragment
type AppConfig = Callable[[Endpoint], Endpoint]


class Middleware(Protocol):
    """Protocol for strata middleware.

    Accepts both functions and callable objects::

        # Function middleware
        async def timing(ctx: HttpContext, next: Endpoint) -> Response:
            start = time.monotonic()
            response = await next(ctx)
            elapsed = time.monotonic() - start
            return response.with_header("X-Time", f"{elapsed:.3f}")

        # Class middleware
        class RateLimiter:
            async def __call__(self, ctx: HttpContext, next: Endpoint) -> Response:
                ...
    """

    async def __call__(self, ctx: HttpContext, next: Endpoint) -> Response: ...


def use_middleware(middleware: Middleware) -> AppConfig:
    """Wrap *middleware* as an app-config decorator."""

    def decorate(endpoint: Endpoint) -> Endpoint:
        async def wrapped(ctx: HttpContext) -> Response:
            return await middleware(ctx, endpoint)

        return wrapped

    return decorate

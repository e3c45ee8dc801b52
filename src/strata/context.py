"""Per-request context.

``HttpContext`` is what travels along the pipeline: the immutable
request, the request's service scope, a free-form ``items`` dict, the
authenticated user, and a response *draft*. Stages that only want to add
a header or cookie write to the draft and forward; whatever final
response the pipeline produces is merged with the draft when the
pipeline is mounted.

``context_var`` holds the current context for code that cannot take it
as a parameter. The ASGI adapter sets it before dispatch and resets it
afterwards; ContextVar is task-local, so no locks are needed.
"""

from __future__ import annotations

from contextvars import ContextVar
from typing import Any

from strata.auth.principal import ANONYMOUS, Principal
from strata.http.request import Request
from strata.http.response import Response
from strata.services import ServiceProvider


class HttpContext:
    """Mutable per-request state shared by every pipeline stage."""

    __slots__ = ("items", "request", "response", "services", "user")

    def __init__(
        self,
        request: Request,
        services: ServiceProvider,
        *,
        items: dict[str, Any] | None = None,
        user: Principal = ANONYMOUS,
        response: Response | None = None,
    ) -> None:
        self.request = request
        self.services = services
        self.items: dict[str, Any] = items if items is not None else {}
        self.user = user
        self.response = response if response is not None else Response()

    # -- Draft helpers --

    def set_header(self, name: str, value: str) -> None:
        self.response = self.response.with_header(name, value)

    def set_status(self, status: int) -> None:
        self.response = self.response.with_status(status)

    def clear_response(self) -> None:
        """Discard everything written to the draft so far."""
        self.response = Response()

    def __repr__(self) -> str:
        return f"<HttpContext {self.request.method} {self.request.path}>"


context_var: ContextVar[HttpContext] = ContextVar("strata_context")


def get_context() -> HttpContext:
    """Return the current request's context.

    Raises ``LookupError`` if called outside a request.
    """
    return context_var.get()

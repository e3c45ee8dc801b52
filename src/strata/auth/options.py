"""Authentication scheme registry and defaults.

Each scheme is a named handler registered in the ``AuthenticationSchemes``
options registry. ``AuthenticationOptions`` names which scheme
authenticates requests, which one answers challenges, and which one
persists a sign-in (used by OAuth after a successful callback).

Registration is a service-config concern::

    services.configure(AuthenticationSchemes, lambda s: s.add(JwtBearerHandler("Bearer", opts)))
    services.configure(AuthenticationOptions, lambda o: replace(o, default_scheme="Bearer"))
"""

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from strata.auth.principal import Principal
from strata.context import HttpContext
from strata.errors import ConfigurationError
from strata.http.response import Response


@dataclass(frozen=True, slots=True)
class AuthenticationOptions:
    """Which schemes play which role.

    ``default_challenge_scheme`` and ``default_sign_in_scheme`` fall back
    to ``default_scheme`` when unset.
    """

    default_scheme: str | None = None
    default_challenge_scheme: str | None = None
    default_sign_in_scheme: str | None = None

    @property
    def challenge_scheme(self) -> str | None:
        return self.default_challenge_scheme or self.default_scheme

    @property
    def sign_in_scheme(self) -> str | None:
        return self.default_sign_in_scheme or self.default_scheme


@runtime_checkable
class AuthenticationHandler(Protocol):
    """What every scheme handler provides."""

    name: str

    async def authenticate(self, ctx: HttpContext) -> Principal | None: ...

    async def challenge(self, ctx: HttpContext) -> Response: ...

    async def forbid(self, ctx: HttpContext) -> Response: ...


@runtime_checkable
class SignInHandler(AuthenticationHandler, Protocol):
    """A scheme that can persist an identity (cookies)."""

    async def sign_in(self, ctx: HttpContext, principal: Principal) -> None: ...

    async def sign_out(self, ctx: HttpContext) -> None: ...


@runtime_checkable
class RemoteHandler(AuthenticationHandler, Protocol):
    """A scheme with its own callback endpoint (OAuth).

    ``handle_request`` returns a response when the request is its
    callback, otherwise ``None``.
    """

    async def handle_request(self, ctx: HttpContext) -> Response | None: ...


class AuthenticationSchemes:
    """Options registry of scheme handlers, in registration order.

    Adding a scheme under an existing name replaces it.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: dict[str, AuthenticationHandler] = {}

    def add(self, handler: AuthenticationHandler) -> "AuthenticationSchemes":
        self._handlers[handler.name] = handler
        return self

    def get(self, name: str) -> AuthenticationHandler:
        handler = self._handlers.get(name)
        if handler is None:
            registered = ", ".join(self._handlers) or "none"
            msg = f"No authentication scheme named {name!r} (registered: {registered})."
            raise ConfigurationError(msg)
        return handler

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __iter__(self) -> Iterator[AuthenticationHandler]:
        return iter(self._handlers.values())

    def __len__(self) -> int:
        return len(self._handlers)

"""Strata exception hierarchy.

Shared across the builder, composer, pipeline, and middleware so every
module raises and catches the same types.
"""

from dataclasses import dataclass


class StrataError(Exception):
    """Base for all strata-specific errors."""


class ConfigurationError(StrataError):
    """Raised when the declared application cannot be composed.

    Fatal: surfaced by ``compose()`` before any server is launched.
    """


@dataclass(frozen=True, slots=True)
class HTTPError(StrataError):
    """An error that maps directly to an HTTP status code.

    Raised by the router, middleware, or handlers. The error-handler
    decorator turns these into plain status responses; they are never
    treated as unhandled failures.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818
    """404: nothing in the pipeline handled the request."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class MethodNotAllowed(HTTPError):  # noqa: N818
    """405: route exists but not for this HTTP method.

    Includes an ``Allow`` header listing the valid methods.
    """

    def __init__(self, allowed: frozenset[str], detail: str = "") -> None:
        allow_value = ", ".join(sorted(allowed))
        default_detail = f"Method not allowed. Allowed methods: {allow_value}"
        super().__init__(
            status=405,
            detail=detail or default_detail,
            headers=(("Allow", allow_value),),
        )

    @property
    def allowed(self) -> frozenset[str]:
        """The methods named in the ``Allow`` header."""
        value = dict(self.headers).get("Allow", "")
        return frozenset(m.strip() for m in value.split(",") if m.strip())


class Unauthorized(HTTPError):  # noqa: N818
    """401: the request carries no valid credentials."""

    def __init__(self, detail: str = "Unauthorized", scheme: str | None = None) -> None:
        headers = (("WWW-Authenticate", scheme),) if scheme else ()
        super().__init__(status=401, detail=detail, headers=headers)


class Forbidden(HTTPError):  # noqa: N818
    """403: authenticated, but not allowed."""

    def __init__(self, detail: str = "Forbidden") -> None:
        super().__init__(status=403, detail=detail)

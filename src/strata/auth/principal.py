"""Authenticated identity.

A ``Principal`` is a bag of claims plus the scheme that produced it.
Requests that no scheme authenticated carry ``ANONYMOUS``, so handlers
never need a ``None`` check.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

NAME_IDENTIFIER = "sub"
NAME = "name"
EMAIL = "email"
ISSUER = "iss"


@dataclass(frozen=True, slots=True)
class Principal:
    """An identity described by string claims.

    ``authentication_type`` is the name of the scheme that authenticated
    the request, or ``None`` for the anonymous principal.
    """

    claims: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    authentication_type: str | None = None

    @classmethod
    def of(cls, scheme: str, claims: Mapping[str, object]) -> "Principal":
        """Build a principal, stringifying claim values."""
        flat = {key: str(value) for key, value in claims.items() if value is not None}
        return cls(claims=MappingProxyType(flat), authentication_type=scheme)

    @property
    def is_authenticated(self) -> bool:
        return self.authentication_type is not None

    @property
    def id(self) -> str:
        return self.claims.get(NAME_IDENTIFIER, "")

    @property
    def name(self) -> str | None:
        return self.claims.get(NAME)

    def find(self, claim: str) -> str | None:
        return self.claims.get(claim)

    def to_dict(self) -> dict[str, str]:
        return dict(self.claims)


ANONYMOUS = Principal()

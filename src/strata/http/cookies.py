"""Cookie header parsing and ``Set-Cookie`` values."""

from dataclasses import dataclass


def parse_cookies(header: str) -> dict[str, str]:
    """Name-value pairs from a ``Cookie`` header; the last duplicate wins."""
    pairs = (part.partition("=") for part in header.split(";"))
    return {name.strip(): value.strip() for name, sep, value in pairs if sep}


@dataclass(frozen=True, slots=True)
class SetCookie:
    """One ``Set-Cookie`` header; session and auth cookies default to HttpOnly."""

    name: str
    value: str
    max_age: int | None = None
    path: str = "/"
    domain: str | None = None
    secure: bool = False
    httponly: bool = True
    samesite: str = "lax"

    def to_header_value(self) -> str:
        attributes = (
            f"{self.name}={self.value}",
            f"Max-Age={self.max_age}" if self.max_age is not None else "",
            f"Path={self.path}" if self.path else "",
            f"Domain={self.domain}" if self.domain else "",
            "Secure" if self.secure else "",
            "HttpOnly" if self.httponly else "",
            f"SameSite={self.samesite}" if self.samesite else "",
        )
        return "; ".join(attribute for attribute in attributes if attribute)


def expired_cookie(name: str, path: str = "/") -> SetCookie:
    """Tell the client to drop *name*: empty value, ``Max-Age=0``."""
    return SetCookie(name=name, value="", max_age=0, path=path)

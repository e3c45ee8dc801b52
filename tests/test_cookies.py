"""Tests for strata.http.cookies: parse_cookies and SetCookie."""

import pytest

from strata.http.cookies import SetCookie, expired_cookie, parse_cookies


class TestParseCookies:
    def test_empty_string(self) -> None:
        assert parse_cookies("") == {}

    def test_multiple_cookies(self) -> None:
        result = parse_cookies("session=abc; theme=dark; lang=en")
        assert result == {"session": "abc", "theme": "dark", "lang": "en"}

    def test_whitespace_handling(self) -> None:
        assert parse_cookies("  session = abc ;  theme = dark  ") == {
            "session": "abc",
            "theme": "dark",
        }

    def test_value_with_equals(self) -> None:
        """Signed values end in base64 padding."""
        assert parse_cookies("strata_auth=abc.def==") == {"strata_auth": "abc.def=="}

    def test_no_equals_ignored(self) -> None:
        assert parse_cookies("session=abc; broken; theme=dark") == {
            "session": "abc",
            "theme": "dark",
        }

    def test_duplicate_keys_last_wins(self) -> None:
        assert parse_cookies("a=1; a=2") == {"a": "2"}


class TestSetCookie:
    def test_minimal(self) -> None:
        header = SetCookie(name="session", value="abc").to_header_value()
        assert header == "session=abc; Path=/; HttpOnly; SameSite=lax"

    def test_all_attributes(self) -> None:
        header = SetCookie(
            name="session",
            value="abc",
            max_age=3600,
            path="/app",
            domain=".example.com",
            secure=True,
            samesite="strict",
        ).to_header_value()
        assert "Max-Age=3600" in header
        assert "Path=/app" in header
        assert "Domain=.example.com" in header
        assert "Secure" in header
        assert "SameSite=strict" in header

    def test_expired_cookie(self) -> None:
        cookie = expired_cookie("session", path="/admin")
        assert cookie.to_header_value().startswith("session=; Max-Age=0; Path=/admin")

    def test_frozen(self) -> None:
        c = SetCookie(name="a", value="b")
        with pytest.raises(AttributeError):
            c.name = "c"  # type: ignore[misc]

    def test_optional_attributes_omitted(self) -> None:
        header = SetCookie(name="a", value="b").to_header_value()
        assert "Max-Age" not in header
        assert "Domain" not in header

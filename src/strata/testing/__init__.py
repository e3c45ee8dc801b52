"""Test utilities for strata applications.

    from strata.testing import TestClient
"""

from strata.testing.client import TestClient, set_cookies

__all__ = ["TestClient", "set_cookies"]

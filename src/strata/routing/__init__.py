"""Routing: immutable router builder over a compiled trie.

``router()`` returns a ``RouterBuilder``; ``build()`` turns it into the
interceptor handed to ``Application.router``.
"""

from strata.routing.builder import RouterBuilder, router
from strata.routing.route import Route, RouteMatch
from strata.routing.trie import Router, parse_path

__all__ = ["Route", "RouteMatch", "Router", "RouterBuilder", "parse_path", "router"]

"""Compiled route table with trie-based path matching.

Routes are added while a ``RouterBuilder`` is built and compiled into an
immutable lookup structure; matching is O(path depth).
"""

import re
from dataclasses import dataclass
from typing import Any

from strata.errors import ConfigurationError, MethodNotAllowed, NotFound
from strata.routing.params import CONVERTERS, convert_param
from strata.routing.route import PathSegment, Route, RouteMatch

_LEGACY_PARAM = re.compile(r"<[^>]*>")


def parse_path(path: str) -> list[PathSegment]:
    """Parse a route path string into segments.

    Examples::

        "/users"             -> [PathSegment("users")]
        "/users/{id}"        -> [PathSegment("users"), PathSegment("{id}", is_param=True, ...)]
        "/users/{id:int}"    -> [..., PathSegment("{id:int}", is_param=True, param_type="int")]
        "/files/{path:path}" -> [..., PathSegment("{path:path}", is_param=True, param_type="path")]

    Raises ``ConfigurationError`` for ``<name>`` parameters, unknown
    converters, and ``path`` parameters that are not the last segment.
    """
    if _LEGACY_PARAM.search(path):
        msg = f"Route {path!r} uses <name> parameters. Use {{name}} or {{name:type}} instead."
        raise ConfigurationError(msg)
    if not path.startswith("/"):
        msg = f"Route path must start with '/': {path!r}"
        raise ConfigurationError(msg)

    segments: list[PathSegment] = []
    parts = [part for part in path.strip("/").split("/") if part]
    for index, part in enumerate(parts):
        if part.startswith("{") and part.endswith("}"):
            inner = part[1:-1]
            if ":" in inner:
                param_name, param_type = inner.split(":", 1)
            else:
                param_name = inner
                param_type = "str"
            if not param_name.isidentifier():
                msg = f"Invalid parameter name {param_name!r} in route {path!r}"
                raise ConfigurationError(msg)
            if param_type not in CONVERTERS:
                msg = (
                    f"Unknown converter {param_type!r} in route {path!r}. "
                    f"Available: {', '.join(sorted(CONVERTERS))}"
                )
                raise ConfigurationError(msg)
            if param_type == "path" and index != len(parts) - 1:
                msg = f"{{{param_name}:path}} must be the last segment of {path!r}"
                raise ConfigurationError(msg)
            segments.append(
                PathSegment(
                    value=part,
                    is_param=True,
                    param_name=param_name,
                    param_type=param_type,
                )
            )
        else:
            segments.append(PathSegment(value=part))
    return segments


class _TrieNode:
    """A node in the route trie. Mutable during compilation only."""

    __slots__ = ("catch_all", "children", "param_child", "routes_by_method")

    def __init__(self) -> None:
        # Static segment children: "users" -> node
        self.children: dict[str, _TrieNode] = {}
        # Single parameter child (only one param pattern per level)
        self.param_child: _ParamEdge | None = None
        # Catch-all routes (path converter)
        self.catch_all: _CatchAllEdge | None = None
        # Routes at this node, keyed by HTTP method
        self.routes_by_method: dict[str, Route] = {}


@dataclass(slots=True)
class _ParamEdge:
    param_name: str
    param_type: str
    regex: re.Pattern[str]
    node: _TrieNode


@dataclass(slots=True)
class _CatchAllEdge:
    """Consumes the remaining path."""

    param_name: str
    routes_by_method: dict[str, Route]


class Router:
    """Trie-based route table.

    Usage::

        table = Router()
        table.add(Route("/users", handler, frozenset({"GET"})))
        table.add(Route("/users/{id:int}", handler, frozenset({"GET"})))
        table.compile()
        match = table.match("GET", "/users/42")
    """

    __slots__ = ("_compiled", "_root")

    def __init__(self) -> None:
        self._root = _TrieNode()
        self._compiled = False

    def add(self, route: Route) -> None:
        """Add a route. Must be called before compile()."""
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)

        node = self._root
        for seg in parse_path(route.path):
            if seg.param_type == "path" and seg.is_param:
                if node.catch_all is None:
                    node.catch_all = _CatchAllEdge(seg.param_name or "path", {})
                elif node.catch_all.param_name != seg.param_name:
                    msg = f"Conflicting catch-all parameter names at {route.path!r}"
                    raise ConfigurationError(msg)
                self._register(node.catch_all.routes_by_method, route)
                return

            if seg.is_param:
                edge = node.param_child
                if edge is None:
                    pattern = CONVERTERS[seg.param_type].pattern
                    edge = _ParamEdge(
                        param_name=seg.param_name or "",
                        param_type=seg.param_type,
                        regex=re.compile(f"^{pattern}$"),
                        node=_TrieNode(),
                    )
                    node.param_child = edge
                elif (edge.param_name, edge.param_type) != (seg.param_name, seg.param_type):
                    msg = (
                        f"Route {route.path!r} declares {seg.value} where another route "
                        f"declares {{{edge.param_name}:{edge.param_type}}}."
                    )
                    raise ConfigurationError(msg)
                node = edge.node
            else:
                node = node.children.setdefault(seg.value, _TrieNode())

        self._register(node.routes_by_method, route)

    @staticmethod
    def _register(table: dict[str, Route], route: Route) -> None:
        for method in route.methods:
            if method in table:
                msg = f"Duplicate route: {method} {route.path}"
                raise ConfigurationError(msg)
            table[method] = route

    @property
    def routes(self) -> list[Route]:
        """Every unique route, for introspection."""
        seen: set[int] = set()
        result: list[Route] = []
        self._collect_routes(self._root, seen, result)
        return result

    def _collect_routes(self, node: _TrieNode, seen: set[int], result: list[Route]) -> None:
        tables = [node.routes_by_method]
        if node.catch_all is not None:
            tables.append(node.catch_all.routes_by_method)
        for table in tables:
            for route in table.values():
                if id(route) not in seen:
                    seen.add(id(route))
                    result.append(route)
        for child in node.children.values():
            self._collect_routes(child, seen, result)
        if node.param_child is not None:
            self._collect_routes(node.param_child.node, seen, result)

    def compile(self) -> None:
        """Freeze the table. No more routes can be added."""
        self._compiled = True

    def match(self, method: str, path: str) -> RouteMatch:
        """Match a request against the table.

        Returns a ``RouteMatch`` with converted path parameters.
        Raises ``NotFound`` if no route matches the path.
        Raises ``MethodNotAllowed`` if the path matches but the method doesn't.
        """
        parts = [p for p in path.strip("/").split("/") if p]
        found = self._match_node(self._root, parts, 0, {})
        if found is None:
            raise NotFound(f"No route matches {method} {path!r}")

        table, raw_params = found
        route = table.get(method)
        if route is None and method == "HEAD":
            route = table.get("GET")
        if route is None:
            raise MethodNotAllowed(frozenset(table))

        params: dict[str, Any] = {}
        for segment in parse_path(route.path):
            if segment.is_param and segment.param_name in raw_params:
                name = segment.param_name
                params[name] = convert_param(raw_params[name], segment.param_type)
        return RouteMatch(route=route, path_params=params)

    def _match_node(
        self,
        node: _TrieNode,
        parts: list[str],
        index: int,
        params: dict[str, str],
    ) -> tuple[dict[str, Route], dict[str, str]] | None:
        if index == len(parts):
            if node.routes_by_method:
                return node.routes_by_method, params
            return None

        part = parts[index]

        # 1. Static child first (exact match)
        if part in node.children:
            result = self._match_node(node.children[part], parts, index + 1, params)
            if result is not None:
                return result

        # 2. Parameter child
        edge = node.param_child
        if edge is not None and edge.regex.match(part):
            result = self._match_node(
                edge.node, parts, index + 1, {**params, edge.param_name: part}
            )
            if result is not None:
                return result

        # 3. Catch-all
        if node.catch_all is not None:
            remaining = "/".join(parts[index:])
            return node.catch_all.routes_by_method, {
                **params,
                node.catch_all.param_name: remaining,
            }

        return None

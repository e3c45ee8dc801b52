"""Content negotiation: maps handler return values to Response objects.

isinstance-based dispatch, no magic, fully predictable. JSON goes
through the ``JsonSerializer`` registered in the request's services, so a
later ``service_config`` fragment can replace it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from strata.http.response import Redirect, Response
from strata.serialization import JsonSerializer

if TYPE_CHECKING:
    from strata.context import HttpContext

_FALLBACK_SERIALIZER = JsonSerializer()


def _serializer(ctx: HttpContext | None) -> JsonSerializer:
    if ctx is None:
        return _FALLBACK_SERIALIZER
    return ctx.services.get_optional(JsonSerializer, _FALLBACK_SERIALIZER)


def negotiate(value: Any, ctx: HttpContext | None = None) -> Response:
    """Convert a route handler's return value to a Response.

    Dispatch order:

    1. ``Response``            -> pass through
    2. ``Redirect``            -> status (302 by default) with Location header
    3. ``str``                 -> 200, text/html
    4. ``bytes``               -> 200, application/octet-stream
    5. ``dict`` / ``list``     -> 200, JSON via the registered serializer
    6. ``None``                -> 204, empty body
    7. ``(value, int)``        -> negotiate value, override status
    8. ``(value, int, dict)``  -> negotiate value, override status + headers
    """
    match value:
        case Response():
            return value
        case Redirect():
            return (
                Response(body="")
                .with_status(value.status)
                .with_header("Location", value.url)
                .with_headers(dict(value.headers))
            )
        case str():
            return Response(body=value, content_type="text/html; charset=utf-8")
        case bytes():
            return Response(body=value, content_type="application/octet-stream")
        case dict() | list():
            serializer = _serializer(ctx)
            return Response(
                body=serializer.dumps(value),
                content_type=f"{serializer.content_type}; charset=utf-8",
            )
        case None:
            return Response(body="", status=204)
        case (inner, int() as status):
            return negotiate(inner, ctx).with_status(status)
        case (inner, int() as status, dict() as headers):
            return negotiate(inner, ctx).with_status(status).with_headers(headers)
        case _:
            msg = (
                f"Cannot convert {type(value).__name__} to a response. "
                "Return str, bytes, dict, list, Response, Redirect, or an Outcome."
            )
            raise TypeError(msg)

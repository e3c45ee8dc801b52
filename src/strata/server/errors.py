"""Error handling around the mounted pipeline.

``error_handling(handler)`` is the decorator the composer installs
directly around the mounted pipeline, inside every declared app-config
decorator. It maps:

- ``HTTPError`` to a plain status response carrying the error's headers
  (debug-logged; these are expected outcomes, not failures)
- any other ``Exception`` to whatever the configured ``ErrorHandler``
  produces. The handler receives the exception and the ``strata.server``
  logger and returns an interceptor that is run against the same
  context.

If the error handler itself raises or declines, a plain 500 is returned
and the secondary failure is logged.
"""

import logging
from collections.abc import Callable

from strata.context import HttpContext
from strata.errors import HTTPError
from strata.http.response import Response
from strata.middleware.protocol import AppConfig, Endpoint
from strata.pipeline import (
    Declined,
    Forwarded,
    Interceptor,
    Next,
    Outcome,
    Responded,
    merge_draft,
    run,
)
from strata.services import LoggerFactory

logger = logging.getLogger("strata.server")

SERVER_LOGGER = "strata.server"

UNHANDLED_MESSAGE = "An unhandled exception has occurred while executing the request: %s %s"

type ErrorHandler = Callable[[Exception, logging.Logger], Interceptor]


def internal_error_response() -> Response:
    return Response(
        body="Internal Server Error",
        status=500,
        content_type="text/plain; charset=utf-8",
    )


def http_error_response(exc: HTTPError) -> Response:
    response = Response(
        body=exc.detail or f"Error {exc.status}",
        status=exc.status,
        content_type="text/plain; charset=utf-8",
    )
    for name, value in exc.headers:
        response = response.with_header(name, value)
    return response


def default_error_handler(exc: Exception, log: logging.Logger) -> Interceptor:
    """Log the failure once and answer with a generic 500.

    The exception message never reaches the client.
    """

    async def interceptor(ctx: HttpContext, next: Next) -> Outcome:  # noqa: ARG001
        log.error(UNHANDLED_MESSAGE, ctx.request.method, ctx.request.path, exc_info=exc)
        ctx.clear_response()
        return Responded(internal_error_response())

    return interceptor


def _server_logger(ctx: HttpContext) -> logging.Logger:
    factory = ctx.services.get_optional(LoggerFactory)
    if factory is None:
        return logger
    return factory.create(SERVER_LOGGER)


async def handle_internal_error(
    handler: ErrorHandler, exc: Exception, ctx: HttpContext
) -> Response:
    """Run *handler* for *exc* and turn its outcome into a response."""
    try:
        outcome = await run(handler(exc, _server_logger(ctx)), ctx)
    except Exception:
        logger.exception(
            "The error handler failed while handling %s %s",
            ctx.request.method,
            ctx.request.path,
        )
        return internal_error_response()

    match outcome:
        case Responded(response=response):
            return merge_draft(ctx, response)
        case Forwarded(context=context):
            return context.response
        case Declined():
            logger.error(
                "The error handler declined %s %s; answering 500",
                ctx.request.method,
                ctx.request.path,
            )
            return internal_error_response()


def error_handling(handler: ErrorHandler) -> AppConfig:
    """App-config decorator installing *handler* around an endpoint."""

    def decorate(endpoint: Endpoint) -> Endpoint:
        async def guarded(ctx: HttpContext) -> Response:
            try:
                return await endpoint(ctx)
            except HTTPError as exc:
                logger.debug(
                    "%d %s %s: %s", exc.status, ctx.request.method, ctx.request.path, exc.detail
                )
                return http_error_response(exc)
            except Exception as exc:
                return await handle_internal_error(handler, exc, ctx)

        return guarded

    return decorate

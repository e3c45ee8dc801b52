"""ASGI handler: translates ASGI scope/messages to strata types.

The only component that touches raw ASGI directly. Converts scope dicts
to typed Request objects, opens a service scope per request, runs the
composed endpoint, and sends the Response back through ASGI send().
"""

import logging
from contextvars import Token

from strata._internal.asgi import Receive, Scope, Send
from strata._internal.invoke import invoke
from strata.config import HostConfig
from strata.context import HttpContext, context_var
from strata.errors import HTTPError
from strata.http.request import Request
from strata.middleware.protocol import Endpoint
from strata.server.errors import http_error_response, internal_error_response
from strata.server.sender import send_response
from strata.services import ApplicationLifetime, ServiceProvider

logger = logging.getLogger("strata.server")


class StrataASGI:
    """The runnable ASGI application produced by composition.

    ``endpoint`` is the fully decorated entry point; ``services`` is the
    root provider, from which one scope is created per request.
    """

    __slots__ = ("endpoint", "host", "services")

    def __init__(self, endpoint: Endpoint, services: ServiceProvider, host: HostConfig) -> None:
        self.endpoint = endpoint
        self.services = services
        self.host = host

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        match scope["type"]:
            case "http":
                await self._handle_http(scope, receive, send)
            case "lifespan":
                await self._handle_lifespan(receive, send)
            case "websocket":
                # Not served: accept nothing, close the handshake.
                await receive()
                await send({"type": "websocket.close", "code": 1000})

    async def _handle_http(self, scope: Scope, receive: Receive, send: Send) -> None:
        if self.host.root_path and not scope.get("root_path"):
            scope = {**scope, "root_path": self.host.root_path}
        request = Request.from_asgi(scope, receive)
        ctx = HttpContext(request, self.services.create_scope())
        token: Token[HttpContext] = context_var.set(ctx)
        try:
            response = await self.endpoint(ctx)
        except HTTPError as exc:
            response = http_error_response(exc)
        except Exception:
            # Raised by an app-config decorator outside the error handler.
            logger.exception("500 %s %s", request.method, request.path)
            response = internal_error_response()
        finally:
            context_var.reset(token)

        await send_response(response, send, head=request.method == "HEAD")

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Run the ASGI lifespan protocol with the ``ApplicationLifetime`` hooks."""
        lifetime = self.services.get_options(ApplicationLifetime)
        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    for hook in lifetime.started:
                        await invoke(hook, self.services)
                except Exception as exc:
                    logger.exception("Application startup failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                logger.info("Application started")
                await send({"type": "lifespan.startup.complete"})

            elif msg_type == "lifespan.shutdown":
                try:
                    for hook in lifetime.stopping:
                        await invoke(hook, self.services)
                except Exception as exc:
                    logger.exception("Application shutdown failed")
                    await send({"type": "lifespan.shutdown.failed", "message": str(exc)})
                    return
                logger.info("Application stopped")
                await send({"type": "lifespan.shutdown.complete"})
                return

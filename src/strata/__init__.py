"""Strata: declare an ASGI application, compose it, run it.

Declarations accumulate in an immutable ``Application``; ``build()``
composes them in a fixed order and hands the result to a launcher.

Basic usage::

    from strata import Application, router, run

    api = router().get("/", lambda ctx: "Hello, World!").build()

    app = Application().router(api).url("http://127.0.0.1:8000")

    run(app.build())

Request pipelines are interceptor chains with tagged outcomes::

    from strata import Responded, chain, set_header

    secured = chain(set_header("X-Frame-Options", "DENY"), api)
"""

__version__ = "0.1.0"
__all__ = [
    "Application",
    "ApplicationState",
    "ComposedApplication",
    "ConfigurationError",
    "Declined",
    "Feature",
    "Forwarded",
    "HTTPError",
    "HostConfig",
    "HttpContext",
    "Interceptor",
    "MethodNotAllowed",
    "Next",
    "NotFound",
    "Outcome",
    "Redirect",
    "Request",
    "Responded",
    "Response",
    "ServiceCollection",
    "ServiceProvider",
    "StrataError",
    "chain",
    "choose",
    "compose",
    "get_configuration",
    "get_context",
    "router",
    "run",
    "set_header",
    "set_status",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import strata`` fast while providing a clean top-level API.
    """
    if name in (
        "Application",
        "ApplicationState",
        "ComposedApplication",
        "Feature",
        "compose",
        "get_configuration",
    ):
        from strata import application as _app

        return getattr(_app, name)

    if name == "HostConfig":
        from strata.config import HostConfig

        return HostConfig

    if name == "Request":
        from strata.http.request import Request

        return Request

    if name in ("Response", "Redirect"):
        from strata.http import response as _resp

        return getattr(_resp, name)

    if name in (
        "Declined",
        "Forwarded",
        "Interceptor",
        "Next",
        "Outcome",
        "Responded",
        "chain",
        "choose",
        "set_header",
        "set_status",
    ):
        from strata import pipeline as _pipeline

        return getattr(_pipeline, name)

    if name in ("HttpContext", "get_context"):
        from strata import context as _ctx

        return getattr(_ctx, name)

    if name in ("ServiceCollection", "ServiceProvider"):
        from strata import services as _services

        return getattr(_services, name)

    if name == "router":
        from strata.routing import router

        return router

    if name == "run":
        from strata.server.launcher import run

        return run

    if name in ("StrataError", "ConfigurationError", "HTTPError", "MethodNotAllowed", "NotFound"):
        from strata import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)

"""CORS: named policies and a standards-compliant middleware.

Policies are registered by name in the ``CorsPolicies`` options registry
and looked up by the middleware at request time::

    app = Application().use_cors(
        "frontend",
        lambda policy: policy.with_origins("https://example.com").allow_any_method(),
    )

A ``CORSMiddleware`` can also be given a ``CORSConfig`` directly.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from strata.context import HttpContext
from strata.http.response import Response
from strata.middleware.protocol import Endpoint

logger = logging.getLogger("strata.middleware")


@dataclass(frozen=True, slots=True)
class CORSConfig:
    """One CORS policy.

    All fields have secure defaults (nothing is allowed).
    ``"*"`` in ``allow_methods`` or ``allow_headers`` echoes whatever the
    preflight asks for.
    """

    allow_origins: tuple[str, ...] = ()
    allow_methods: tuple[str, ...] = ("GET", "HEAD", "OPTIONS")
    allow_headers: tuple[str, ...] = ()
    expose_headers: tuple[str, ...] = ()
    allow_credentials: bool = False
    max_age: int = 600  # 10 minutes


class CORSPolicyBuilder:
    """Mutable builder handed to ``use_cors`` configure callbacks.

    Every method returns the builder so calls chain.
    """

    __slots__ = (
        "_credentials",
        "_expose",
        "_headers",
        "_max_age",
        "_methods",
        "_origins",
    )

    def __init__(self) -> None:
        self._origins: list[str] = []
        self._methods: list[str] = []
        self._headers: list[str] = []
        self._expose: list[str] = []
        self._credentials = False
        self._max_age = 600

    def with_origins(self, *origins: str) -> "CORSPolicyBuilder":
        self._origins.extend(origin.rstrip("/") for origin in origins)
        return self

    def allow_any_origin(self) -> "CORSPolicyBuilder":
        self._origins = ["*"]
        return self

    def with_methods(self, *methods: str) -> "CORSPolicyBuilder":
        self._methods.extend(method.upper() for method in methods)
        return self

    def allow_any_method(self) -> "CORSPolicyBuilder":
        self._methods = ["*"]
        return self

    def with_headers(self, *headers: str) -> "CORSPolicyBuilder":
        self._headers.extend(headers)
        return self

    def allow_any_header(self) -> "CORSPolicyBuilder":
        self._headers = ["*"]
        return self

    def with_exposed_headers(self, *headers: str) -> "CORSPolicyBuilder":
        self._expose.extend(headers)
        return self

    def allow_credentials(self) -> "CORSPolicyBuilder":
        self._credentials = True
        return self

    def set_preflight_max_age(self, seconds: int) -> "CORSPolicyBuilder":
        self._max_age = seconds
        return self

    def build(self) -> CORSConfig:
        defaults = CORSConfig()
        return CORSConfig(
            allow_origins=tuple(self._origins),
            allow_methods=tuple(self._methods) or defaults.allow_methods,
            allow_headers=tuple(self._headers),
            expose_headers=tuple(self._expose),
            allow_credentials=self._credentials,
            max_age=self._max_age,
        )


class CorsPolicies:
    """Options registry of named CORS policies."""

    __slots__ = ("_policies",)

    def __init__(self) -> None:
        self._policies: dict[str, CORSConfig] = {}

    def add(
        self, name: str, configure: Callable[[CORSPolicyBuilder], object]
    ) -> "CorsPolicies":
        builder = CORSPolicyBuilder()
        configure(builder)
        self._policies[name] = builder.build()
        return self

    def get(self, name: str) -> CORSConfig | None:
        return self._policies.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._policies


class CORSMiddleware:
    """Standards-compliant CORS middleware.

    Handles:
    - Preflight ``OPTIONS`` requests (returns 204 with CORS headers)
    - Simple and actual requests (adds CORS headers to response)
    - Credential support (``Access-Control-Allow-Credentials``)
    - Wildcard origins (``"*"``) when credentials are disabled
    """

    __slots__ = ("_config", "_policy")

    def __init__(self, policy: str | CORSConfig) -> None:
        if isinstance(policy, CORSConfig):
            self._policy = None
            self._config: CORSConfig | None = policy
        else:
            self._policy = policy
            self._config = None

    def _resolve(self, ctx: HttpContext) -> CORSConfig | None:
        if self._config is not None:
            return self._config
        config = ctx.services.get_options(CorsPolicies).get(self._policy)
        if config is None:
            logger.warning("CORS policy %r is not registered; request left unchanged", self._policy)
        return config

    @staticmethod
    def _is_allowed_origin(config: CORSConfig, origin: str) -> bool:
        if "*" in config.allow_origins:
            return True
        return origin.rstrip("/") in config.allow_origins

    @staticmethod
    def _add_cors_headers(config: CORSConfig, response: Response, origin: str) -> Response:
        if "*" in config.allow_origins and not config.allow_credentials:
            response = response.with_header("Access-Control-Allow-Origin", "*")
        else:
            response = response.with_header("Access-Control-Allow-Origin", origin)
            response = response.with_header("Vary", "Origin")

        if config.allow_credentials:
            response = response.with_header("Access-Control-Allow-Credentials", "true")

        if config.expose_headers:
            response = response.with_header(
                "Access-Control-Expose-Headers", ", ".join(config.expose_headers)
            )
        return response

    def _preflight_response(self, config: CORSConfig, ctx: HttpContext, origin: str) -> Response:
        headers = ctx.request.headers
        response = self._add_cors_headers(config, Response(body="", status=204), origin)

        request_method = headers.get("access-control-request-method")
        if request_method:
            if "*" in config.allow_methods:
                methods = request_method
            else:
                methods = ", ".join(config.allow_methods)
            response = response.with_header("Access-Control-Allow-Methods", methods)

        if "*" in config.allow_headers:
            requested = headers.get("access-control-request-headers")
            if requested:
                response = response.with_header("Access-Control-Allow-Headers", requested)
        elif config.allow_headers:
            response = response.with_header(
                "Access-Control-Allow-Headers", ", ".join(config.allow_headers)
            )

        return response.with_header("Access-Control-Max-Age", str(config.max_age))

    async def __call__(self, ctx: HttpContext, next: Endpoint) -> Response:
        origin = ctx.request.headers.get("origin")
        if origin is None:
            return await next(ctx)

        config = self._resolve(ctx)
        if config is None or not self._is_allowed_origin(config, origin):
            return await next(ctx)

        is_preflight = "access-control-request-method" in ctx.request.headers
        if ctx.request.method == "OPTIONS" and is_preflight:
            return self._preflight_response(config, ctx, origin)

        response = await next(ctx)
        return self._add_cors_headers(config, response, origin)

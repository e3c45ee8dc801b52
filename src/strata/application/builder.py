"""The ``Application`` declaration builder.

Declarations chain fluently; each returns a new ``Application`` and never
changes the one it was called on::

    api = router().get("/", lambda ctx: "hello").build()

    app = (
        Application()
        .router(api)
        .pipe_through(set_header("X-Powered-By", "strata"))
        .use_gzip()
        .url("http://0.0.0.0:8080")
    )
    run(app.build())

``build()`` composes the declarations and hands the result to a
launcher. A missing router is a ``ConfigurationError`` raised before the
launcher is ever called.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from strata.application import features
from strata.application.composer import ComposedApplication, compose
from strata.application.state import (
    ApplicationState,
    Feature,
    HostConfigFn,
    ServiceConfigFn,
    add_app_config,
    add_feature,
    add_host_config,
    add_service_config,
    add_url,
    pipe_through,
    set_error_handler,
    set_router,
)
from strata.auth.bearer import JwtBearerOptions
from strata.auth.cookies import CookieAuthenticationOptions
from strata.auth.oauth import OAuthOptions
from strata.config import LoggingConfigurator
from strata.middleware.cors import CORSPolicyBuilder
from strata.middleware.protocol import AppConfig
from strata.pipeline import Interceptor
from strata.server.errors import ErrorHandler
from strata.server.handler import StrataASGI
from strata.server.launcher import Launcher, ServerHandle, UvicornLauncher


class Application:
    """Immutable, fluent accumulator of application declarations."""

    __slots__ = ("_state",)

    def __init__(self, state: ApplicationState | None = None) -> None:
        self._state = state if state is not None else ApplicationState()

    @property
    def state(self) -> ApplicationState:
        return self._state

    def _with(self, state: ApplicationState) -> Application:
        return Application(state)

    # -- Core declarations --

    def router(self, router: Interceptor) -> Application:
        """Declare the top-level router. It runs after every pipeline fragment."""
        return self._with(set_router(self._state, router))

    def pipe_through(self, interceptor: Interceptor) -> Application:
        """Run *interceptor* for every request, before later fragments and the router."""
        return self._with(pipe_through(self._state, interceptor))

    def error_handler(self, handler: ErrorHandler) -> Application:
        """Handle unhandled exceptions. The last declaration wins."""
        return self._with(set_error_handler(self._state, handler))

    def app_config(self, config: AppConfig) -> Application:
        """Wrap the application endpoint; earlier declarations wrap later ones."""
        return self._with(add_app_config(self._state, config))

    def host_config(self, config: HostConfigFn) -> Application:
        return self._with(add_host_config(self._state, config))

    def service_config(self, config: ServiceConfigFn) -> Application:
        return self._with(add_service_config(self._state, config))

    def url(self, url: str) -> Application:
        return self._with(add_url(self._state, url))

    def use(self, feature: Feature) -> Application:
        """Declare every part of *feature*."""
        return self._with(add_feature(self._state, feature))

    # -- Named declarations --

    def logging(self, configure: LoggingConfigurator) -> Application:
        return self.use(features.logging_hook(configure))

    def memory_cache(self) -> Application:
        return self.use(features.memory_cache())

    def use_gzip(self, level: int = 9) -> Application:
        return self.use(features.gzip(level))

    def use_static(self, path: str | Path) -> Application:
        return self.use(features.static_files(path))

    def use_config(self, factory: Callable[[], Any]) -> Application:
        return self.use(features.configuration(factory))

    def force_ssl(self) -> Application:
        return self.use(features.force_ssl())

    def use_cors(self, policy: str, configure: Callable[[CORSPolicyBuilder], Any]) -> Application:
        return self.use(features.cors(policy, configure))

    def use_jwt_authentication(self, secret: str, issuer: str) -> Application:
        return self.use(features.jwt_authentication(secret, issuer))

    def use_jwt_authentication_with_config(
        self, configure: Callable[[JwtBearerOptions], JwtBearerOptions]
    ) -> Application:
        return self.use(features.jwt_authentication_with_config(configure))

    def use_cookies_authentication(self, issuer: str) -> Application:
        return self.use(features.cookies_authentication(issuer))

    def use_cookies_authentication_with_config(
        self, configure: Callable[[CookieAuthenticationOptions], CookieAuthenticationOptions]
    ) -> Application:
        return self.use(features.cookies_authentication_with_config(configure))

    def use_github_oauth(
        self,
        client_id: str,
        client_secret: str,
        callback_path: str,
        claim_map: Iterable[tuple[str, str]] = (),
    ) -> Application:
        return self.use(features.github_oauth(client_id, client_secret, callback_path, claim_map))

    def use_github_oauth_with_config(self, configure: Callable[[OAuthOptions], Any]) -> Application:
        return self.use(features.github_oauth_with_config(configure))

    def use_custom_oauth(self, name: str, configure: Callable[[OAuthOptions], Any]) -> Application:
        return self.use(features.custom_oauth(name, configure))

    def use_iis(self) -> Application:
        return self.use(features.iis())

    # -- Finalize --

    def compose(self) -> ComposedApplication:
        return compose(self._state)

    def asgi_app(self) -> StrataASGI:
        """Compose and return the ASGI application without launching."""
        return compose(self._state).asgi_app()

    def build(self, launcher: Launcher | None = None) -> ServerHandle:
        """Compose the declarations and hand them to *launcher*.

        Raises ``ConfigurationError`` (before touching the launcher) when
        no router has been declared.
        """
        composed = compose(self._state)
        return (launcher or UvicornLauncher()).launch(composed)

    def __repr__(self) -> str:
        state = self._state
        return (
            f"<Application router={'yes' if state.router is not None else 'no'} "
            f"pipelines={len(state.pipelines)} urls={list(state.urls)}>"
        )

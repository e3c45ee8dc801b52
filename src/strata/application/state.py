"""Accumulated declarations of an application.

``ApplicationState`` is a frozen value. Every declaration is a pure
function ``(state, fragment) -> state`` that returns a new state and
leaves its argument untouched, so an intermediate state can be shared by
two configurations without either affecting the other.

Sequences are kept in declaration order. The composer decides, per
category, in which order they take effect.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace

from strata.config import HostConfig
from strata.middleware.protocol import AppConfig
from strata.pipeline import Interceptor
from strata.server.errors import ErrorHandler, default_error_handler
from strata.services import ServiceCollection

type HostConfigFn = Callable[[HostConfig], HostConfig]

type ServiceConfigFn = Callable[[ServiceCollection], ServiceCollection]


@dataclass(frozen=True, slots=True)
class ApplicationState:
    """Everything declared so far. Fragments are stored, never inspected."""

    router: Interceptor | None = None
    error_handler: ErrorHandler = default_error_handler
    pipelines: tuple[Interceptor, ...] = ()
    app_configs: tuple[AppConfig, ...] = ()
    host_configs: tuple[HostConfigFn, ...] = ()
    service_configs: tuple[ServiceConfigFn, ...] = ()
    urls: tuple[str, ...] = ()


def set_router(state: ApplicationState, router: Interceptor) -> ApplicationState:
    """Declare the top-level router; a later declaration replaces it."""
    return replace(state, router=router)


def pipe_through(state: ApplicationState, interceptor: Interceptor) -> ApplicationState:
    return replace(state, pipelines=(*state.pipelines, interceptor))


def set_error_handler(state: ApplicationState, handler: ErrorHandler) -> ApplicationState:
    """Declare the error handler; only the last declaration is kept."""
    return replace(state, error_handler=handler)


def add_app_config(state: ApplicationState, config: AppConfig) -> ApplicationState:
    return replace(state, app_configs=(*state.app_configs, config))


def add_host_config(state: ApplicationState, config: HostConfigFn) -> ApplicationState:
    return replace(state, host_configs=(*state.host_configs, config))


def add_service_config(state: ApplicationState, config: ServiceConfigFn) -> ApplicationState:
    return replace(state, service_configs=(*state.service_configs, config))


def add_url(state: ApplicationState, url: str) -> ApplicationState:
    return replace(state, urls=(*state.urls, url))


@dataclass(frozen=True, slots=True)
class Feature:
    """A named declaration's fragments, one optional part per category."""

    pipeline: Interceptor | None = None
    app: AppConfig | None = None
    host: HostConfigFn | None = None
    service: ServiceConfigFn | None = None


def add_feature(state: ApplicationState, feature: Feature) -> ApplicationState:
    """Append each part *feature* provides to its category."""
    if feature.pipeline is not None:
        state = pipe_through(state, feature.pipeline)
    if feature.app is not None:
        state = add_app_config(state, feature.app)
    if feature.host is not None:
        state = add_host_config(state, feature.host)
    if feature.service is not None:
        state = add_service_config(state, feature.service)
    return state

"""Composition: from accumulated declarations to a runnable application.

``compose(state)`` is pure. It fixes the order in which each category of
fragment takes effect:

- pipeline: ``chain(p1, ..., pn, router)``; the first declared fragment
  sees the request first and the router sees it last
- app configs: ``a1(a2(...an(error_handling(endpoint))))``; the first
  declared decorator is outermost and the error handler sits directly
  around the mounted pipeline
- host configs: applied first declared first, so the last write to a
  field wins
- service configs: the baseline registrations, then user fragments first
  declared first

Nothing is launched here; the launcher decides when (and whether) the
composed application runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import reduce

from strata.application.state import ApplicationState, HostConfigFn, ServiceConfigFn
from strata.config import HostConfig
from strata.errors import ConfigurationError
from strata.middleware.protocol import AppConfig, Endpoint
from strata.pipeline import Interceptor, chain, mount
from strata.server.errors import ErrorHandler, error_handling
from strata.server.handler import StrataASGI
from strata.services import ServiceCollection, add_core_services

logger = logging.getLogger("strata.server")

MISSING_ROUTER = "Router needs to be defined in strata application"


@dataclass(frozen=True, slots=True)
class ComposedApplication:
    """The effective configuration of one application.

    Everything is derived from the declarations; composing the same state
    twice gives two independent, behaviourally identical values.
    """

    pipeline: Interceptor
    error_handler: ErrorHandler
    app_configs: tuple[AppConfig, ...]
    host_configs: tuple[HostConfigFn, ...]
    service_configs: tuple[ServiceConfigFn, ...]
    urls: tuple[str, ...]

    def configure_app(self, endpoint: Endpoint) -> Endpoint:
        """Decorate *endpoint* with the error handler and every app config."""
        endpoint = error_handling(self.error_handler)(endpoint)
        for config in reversed(self.app_configs):
            endpoint = config(endpoint)
        return endpoint

    def configure_host(self, host: HostConfig) -> HostConfig:
        return reduce(lambda acc, config: config(acc), self.host_configs, host)

    def configure_services(self, services: ServiceCollection) -> ServiceCollection:
        services = add_core_services(services)
        for config in self.service_configs:
            services = config(services)
        return services

    def build_endpoint(self) -> Endpoint:
        """The mounted pipeline wrapped in the app configuration."""
        return self.configure_app(mount(self.pipeline))

    def asgi_app(self, host: HostConfig | None = None) -> StrataASGI:
        """Build the ASGI application with a fresh service provider.

        *host* defaults to the composed host configuration. It is
        registered as a service ahead of the baseline.
        """
        if host is None:
            host = self.configure_host(HostConfig())
        services = ServiceCollection().add_instance(HostConfig, host)
        provider = self.configure_services(services).build()
        return StrataASGI(self.build_endpoint(), provider, host)


def compose(state: ApplicationState) -> ComposedApplication:
    """Derive the effective configuration from *state*.

    Raises ``ConfigurationError`` when no router has been declared.
    """
    if state.router is None:
        raise ConfigurationError(MISSING_ROUTER)

    logger.debug(
        "Composing application: %d pipeline, %d app, %d host, %d service fragments",
        len(state.pipelines),
        len(state.app_configs),
        len(state.host_configs),
        len(state.service_configs),
    )
    return ComposedApplication(
        pipeline=chain(*state.pipelines, state.router),
        error_handler=state.error_handler,
        app_configs=state.app_configs,
        host_configs=state.host_configs,
        service_configs=state.service_configs,
        urls=state.urls,
    )

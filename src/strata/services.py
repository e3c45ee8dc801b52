"""Service registrations and per-request lookup.

A ``ServiceCollection`` is what service-config fragments receive and
return. It is only a list of registrations; nothing is constructed until
``build()`` produces a ``ServiceProvider`` and a handler asks for a key.

Keys are usually types, but any hashable works::

    services.add_singleton(DocumentStore, lambda sp: DocumentStore(sp.get(Settings)))
    services.add_instance("greeting", "hello")

Registering a key that is already present replaces the earlier
registration, so later fragments can override earlier ones.

Options follow a configure pattern: ``configure(GzipOptions, fn)`` queues
``fn`` and ``get_options(GzipOptions)`` folds every queued callback, in
registration order, over ``GzipOptions()``.

Thread safety:
    Singleton and scoped creation use a lock with a double-check, so a
    factory runs at most once per provider (or per scope) even when
    concurrent requests race on first use.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Hashable, Iterator
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from strata.serialization import JsonSerializer


class Lifetime(StrEnum):
    SINGLETON = "singleton"
    SCOPED = "scoped"
    TRANSIENT = "transient"


type ServiceFactory = Callable[[ServiceProvider], Any]


@dataclass(frozen=True, slots=True)
class ServiceDescriptor:
    """One registration: a key, its lifetime, and how to produce it."""

    key: Hashable
    lifetime: Lifetime
    factory: ServiceFactory


class ServiceCollection:
    """Ordered set of service registrations.

    Every ``add_*`` method returns the collection so registrations chain
    inside a single service-config fragment.
    """

    __slots__ = ("_configurators", "_descriptors")

    def __init__(self) -> None:
        self._descriptors: dict[Hashable, ServiceDescriptor] = {}
        self._configurators: dict[type, list[Callable[[Any], Any]]] = {}

    # -- Registration --

    def add(self, descriptor: ServiceDescriptor) -> ServiceCollection:
        # Re-insert so iteration order reflects the latest registration.
        self._descriptors.pop(descriptor.key, None)
        self._descriptors[descriptor.key] = descriptor
        return self

    def add_instance(self, key: Hashable, instance: Any) -> ServiceCollection:
        """Register an already-built singleton."""
        return self.add(ServiceDescriptor(key, Lifetime.SINGLETON, lambda _sp: instance))

    def add_singleton(self, key: Hashable, factory: ServiceFactory) -> ServiceCollection:
        """Register a factory called once per provider."""
        return self.add(ServiceDescriptor(key, Lifetime.SINGLETON, factory))

    def add_scoped(self, key: Hashable, factory: ServiceFactory) -> ServiceCollection:
        """Register a factory called once per request scope."""
        return self.add(ServiceDescriptor(key, Lifetime.SCOPED, factory))

    def add_transient(self, key: Hashable, factory: ServiceFactory) -> ServiceCollection:
        """Register a factory called on every lookup."""
        return self.add(ServiceDescriptor(key, Lifetime.TRANSIENT, factory))

    def configure[T](self, options_type: type[T], configure: Callable[[T], T]) -> ServiceCollection:
        """Queue a configure callback for an options type.

        The callback receives the current options value and returns the
        next one. Frozen dataclasses return ``replace(opts, ...)``;
        registries may mutate and return themselves.
        """
        self._configurators.setdefault(options_type, []).append(configure)
        return self

    # -- Introspection --

    def contains(self, key: Hashable) -> bool:
        return key in self._descriptors

    def __contains__(self, key: object) -> bool:
        return key in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)

    def __iter__(self) -> Iterator[ServiceDescriptor]:
        return iter(self._descriptors.values())

    def configurators(self, options_type: type) -> tuple[Callable[[Any], Any], ...]:
        return tuple(self._configurators.get(options_type, ()))

    def build(self) -> ServiceProvider:
        """Freeze the registrations into a root provider."""
        return ServiceProvider(
            dict(self._descriptors),
            {key: tuple(fns) for key, fns in self._configurators.items()},
        )


_MISSING: Any = object()


class ServiceProvider:
    """Resolves registered services.

    The root provider owns singletons. ``create_scope()`` returns a child
    provider that shares the root's singletons and owns its own scoped
    instances; the ASGI adapter creates one scope per request.
    """

    __slots__ = (
        "_configurators",
        "_descriptors",
        "_instances",
        "_lock",
        "_options",
        "_root",
    )

    def __init__(
        self,
        descriptors: dict[Hashable, ServiceDescriptor],
        configurators: dict[type, tuple[Callable[[Any], Any], ...]],
        *,
        root: ServiceProvider | None = None,
    ) -> None:
        self._descriptors = descriptors
        self._configurators = configurators
        self._root = root
        self._instances: dict[Hashable, Any] = {}
        self._options: dict[type, Any] = {}
        self._lock = threading.RLock()

    def create_scope(self) -> ServiceProvider:
        root = self._root or self
        return ServiceProvider(root._descriptors, root._configurators, root=root)

    def __contains__(self, key: object) -> bool:
        return key in self._descriptors

    def get(self, key: Hashable) -> Any:
        """Return the service registered under *key*.

        Raises ``LookupError`` if nothing is registered for it.
        """
        descriptor = self._descriptors.get(key)
        if descriptor is None:
            msg = f"No service registered for {_describe(key)}."
            raise LookupError(msg)

        match descriptor.lifetime:
            case Lifetime.TRANSIENT:
                return descriptor.factory(self)
            case Lifetime.SINGLETON:
                owner = self._root or self
                return owner._cached(descriptor, owner)
            case Lifetime.SCOPED:
                if self._root is None:
                    msg = (
                        f"Scoped service {_describe(key)} requested from the root "
                        "provider. Resolve it from a request scope (ctx.services)."
                    )
                    raise LookupError(msg)
                return self._cached(descriptor, self)

    def get_optional(self, key: Hashable, default: Any = None) -> Any:
        if key not in self._descriptors:
            return default
        return self.get(key)

    def get_options[T](self, options_type: type[T]) -> T:
        """Return ``options_type()`` with every configure callback applied."""
        owner = self._root or self
        value = owner._options.get(options_type, _MISSING)
        if value is not _MISSING:
            return value
        with owner._lock:
            value = owner._options.get(options_type, _MISSING)
            if value is _MISSING:
                value = options_type()
                for configure in owner._configurators.get(options_type, ()):
                    value = configure(value)
                owner._options[options_type] = value
        return value

    def _cached(self, descriptor: ServiceDescriptor, provider: ServiceProvider) -> Any:
        value = self._instances.get(descriptor.key, _MISSING)
        if value is not _MISSING:
            return value
        with self._lock:
            value = self._instances.get(descriptor.key, _MISSING)
            if value is _MISSING:
                value = descriptor.factory(provider)
                self._instances[descriptor.key] = value
        return value


def _describe(key: Hashable) -> str:
    if isinstance(key, type):
        return key.__qualname__
    return repr(key)


# -- Lifetime --


class ApplicationLifetime:
    """Options registry of startup and shutdown callbacks.

    Callbacks receive the root ``ServiceProvider`` and may be sync or
    async. They run in registration order during the ASGI lifespan::

        services.configure(ApplicationLifetime, lambda lt: lt.on_started(open_pool))
    """

    __slots__ = ("started", "stopping")

    def __init__(self) -> None:
        self.started: list[Callable[[ServiceProvider], Any]] = []
        self.stopping: list[Callable[[ServiceProvider], Any]] = []

    def on_started(self, callback: Callable[[ServiceProvider], Any]) -> ApplicationLifetime:
        self.started.append(callback)
        return self

    def on_stopping(self, callback: Callable[[ServiceProvider], Any]) -> ApplicationLifetime:
        self.stopping.append(callback)
        return self


# -- Baseline --


class LoggerFactory:
    """Hands out stdlib loggers; registered by the baseline."""

    __slots__ = ()

    def create(self, name: str) -> logging.Logger:
        return logging.getLogger(name)


def add_core_services(services: ServiceCollection) -> ServiceCollection:
    """Register what the request pipeline itself needs.

    Always applied before any user service-config fragment, so user
    fragments may override these keys.
    """
    services.add_instance(JsonSerializer, JsonSerializer())
    services.add_singleton(LoggerFactory, lambda _sp: LoggerFactory())
    return services

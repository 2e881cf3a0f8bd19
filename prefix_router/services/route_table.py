"""Immutable routing table: ordered prefix rules plus service descriptors."""
from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from pydantic import ValidationError

from prefix_router.core.errors import ConfigError, ServiceNotFound
from prefix_router.models.schemas import Route, RouterConfig, ServiceDescriptor


class RouteTable:
    """
    Ordered (path prefix -> service name) rules and the service map.

    Built once at startup and never mutated afterwards, so one instance is
    shared by every concurrent request without locking.
    """

    __slots__ = ("_routes", "_services")

    def __init__(self, routes: tuple[Route, ...], services: Mapping[str, ServiceDescriptor]):
        self._routes = routes
        self._services = MappingProxyType(dict(services))

    @classmethod
    def build(cls, routes: Iterable[Route], services: Mapping[str, ServiceDescriptor]) -> "RouteTable":
        """Validate references and freeze the table. Raises ConfigError."""
        routes = tuple(routes)
        for name, desc in services.items():
            if desc.name != name:
                raise ConfigError(f"service key {name!r} holds descriptor for {desc.name!r}")
        for i, route in enumerate(routes):
            if route.service_name not in services:
                raise ConfigError(
                    f"route #{i} ({route.path_prefix!r}) references unknown service {route.service_name!r}"
                )
        return cls(routes, services)

    @classmethod
    def from_config(cls, config: RouterConfig) -> "RouteTable":
        """Build a table from a validated routing configuration."""
        try:
            routes = [Route(path_prefix=r.path, service_name=r.service) for r in config.routes]
        except ValidationError as e:
            raise ConfigError(f"invalid route: {e}") from e
        services = {name: svc.descriptor(name) for name, svc in config.services.items()}
        return cls.build(routes, services)

    @property
    def routes(self) -> tuple[Route, ...]:
        return self._routes

    @property
    def services(self) -> Mapping[str, ServiceDescriptor]:
        return self._services

    def __len__(self) -> int:
        return len(self._routes)

    def find_match(self, path: str) -> Optional[Route]:
        """First route, in table order, whose prefix is a literal prefix of ``path``.

        Not segment-aware: "/api" also matches "/apiary".
        """
        for route in self._routes:
            if path.startswith(route.path_prefix):
                return route
        return None

    def lookup(self, service_name: str) -> ServiceDescriptor:
        """Return the descriptor for ``service_name`` or raise ServiceNotFound."""
        try:
            return self._services[service_name]
        except KeyError:
            raise ServiceNotFound(service_name) from None

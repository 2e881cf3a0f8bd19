"""Internal service bindings.

A binding is a hosting-environment capability: ``resolve(name)`` hands back a
forwarder that reaches the named service without an explicit network URL.
The Router only sees the BindingResolver protocol; the registry below is the
default implementation, fed from the ``[bindings]`` table of the config.
"""
from __future__ import annotations

import importlib
from typing import Mapping, Protocol

from prefix_router.core.errors import ConfigError, ServiceNotFound
from prefix_router.core.logging import get_logger
from prefix_router.models.schemas import OutboundRequest, RouterConfig, UpstreamResponse
from prefix_router.services.proxy import AsgiForwarder

log = get_logger("bindings")


class Forwarder(Protocol):
    """Request-forwarding entry point of a resolved service."""

    async def forward(self, outbound: OutboundRequest) -> UpstreamResponse:
        ...


class BindingResolver(Protocol):
    """Resolves a binding name to a forwarder; raises ServiceNotFound."""

    def resolve(self, name: str) -> Forwarder:
        ...


def load_asgi_app(target: str):
    """Import an ASGI app from a ``"package.module:attribute"`` string."""
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(f"binding target must look like 'module:attr', got {target!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"cannot import binding module {module_name!r}: {e}") from e
    try:
        app = getattr(module, attr)
    except AttributeError:
        raise ConfigError(f"module {module_name!r} has no attribute {attr!r}") from None
    if not callable(app):
        raise ConfigError(f"binding target {target!r} is not an ASGI callable")
    return app


class BindingRegistry:
    """Name -> forwarder map. Filled at startup, read-only while serving."""

    def __init__(self, forwarders: Mapping[str, Forwarder] | None = None):
        self._forwarders: dict[str, Forwarder] = dict(forwarders or {})

    @classmethod
    def from_config(cls, config: RouterConfig, timeout_s: float = 30.0) -> "BindingRegistry":
        """Import every ``[bindings]`` target and wrap it in an AsgiForwarder."""
        registry = cls()
        for name, target in config.bindings.items():
            registry.register(name, AsgiForwarder(load_asgi_app(target), name, timeout_s))
            log.info("binding %s -> %s", name, target)
        return registry

    def register(self, name: str, forwarder: Forwarder) -> None:
        self._forwarders[name] = forwarder

    def resolve(self, name: str) -> Forwarder:
        try:
            return self._forwarders[name]
        except KeyError:
            raise ServiceNotFound(name) from None

    def names(self) -> list[str]:
        return sorted(self._forwarders)

    async def aclose(self) -> None:
        """Close forwarders that own a connection pool."""
        for fwd in self._forwarders.values():
            close = getattr(fwd, "aclose", None)
            if close is not None:
                await close()

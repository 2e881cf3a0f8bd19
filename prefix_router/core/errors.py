"""Exception hierarchy for the router.

Configuration errors abort startup. Every other error is per-request and is
turned into an HTTP response by the Router.
"""
from __future__ import annotations


class RouterError(Exception):
    """Base for all router errors."""

    status_code: int = 500


class ConfigError(RouterError):
    """Routing table or settings are invalid. Fatal at load time."""


class NoRouteMatch(RouterError):
    """No configured prefix matches the request path."""

    status_code = 404

    def __init__(self, path: str):
        super().__init__(f"no route for {path!r}")
        self.path = path


class ServiceNotFound(RouterError):
    """A service name (or binding) is not registered."""

    def __init__(self, name: str):
        super().__init__(f"service {name!r} not found")
        self.name = name


class TransportFailure(RouterError):
    """The backend call failed before a response was received."""

    status_code = 502

    def __init__(self, message: str, *, timeout: bool = False):
        super().__init__(message)
        self.timeout = timeout
        if timeout:
            self.status_code = 504

"""Request routing: prefix match, outbound request construction, dispatch.

Each call is one linear pipeline with two decisions (match or not, external
or internal transport). Per-request errors become responses here; nothing is
retried.
"""
from __future__ import annotations

import httpx
from fastapi import Response
from fastapi.responses import PlainTextResponse
from prometheus_client import Counter

from prefix_router.core.errors import NoRouteMatch, ServiceNotFound, TransportFailure
from prefix_router.core.logging import get_logger
from prefix_router.models.schemas import (
    ExternalURL,
    OutboundRequest,
    ProxyRequest,
    Route,
    ServiceDescriptor,
)
from prefix_router.services.bindings import BindingResolver, Forwarder
from prefix_router.services.proxy import HttpForwarder, to_response
from prefix_router.services.route_table import RouteTable

log = get_logger("router")

ROUTED = Counter("router_routed_requests_total", "Requests matched to a service", ["service"])
UNMATCHED = Counter("router_unmatched_requests_total", "Requests with no matching route")
FAILURES = Counter("router_forward_failures_total", "Forward calls answered with an error", ["service", "status"])


class Router:
    """Matches requests against a RouteTable and forwards them."""

    def __init__(self, table: RouteTable, client: httpx.AsyncClient, bindings: BindingResolver):
        self._table = table
        self._external = HttpForwarder(client)
        self._bindings = bindings

    @property
    def table(self) -> RouteTable:
        return self._table

    def match(self, path: str) -> Route:
        """Return the route for ``path`` or raise NoRouteMatch."""
        route = self._table.find_match(path)
        if route is None:
            raise NoRouteMatch(path)
        return route

    async def route(self, request: ProxyRequest) -> Response:
        """Forward ``request`` to its service, or answer 404 when nothing matches."""
        try:
            route = self.match(request.path)
        except NoRouteMatch:
            UNMATCHED.inc()
            log.debug("no route for %s %s", request.method, request.path)
            return PlainTextResponse("Not Found", status_code=404)

        ROUTED.labels(service=route.service_name).inc()
        return await self.forward(request, route)

    async def forward(self, request: ProxyRequest, route: Route) -> Response:
        """Mirror ``request`` to the service of ``route`` and relay the reply."""
        service = route.service_name
        try:
            descriptor = self._table.lookup(service)
            forwarder = self._forwarder(descriptor)
            outbound = self.build_outbound(request, descriptor)
            upstream = await forwarder.forward(outbound)
        except ServiceNotFound as e:
            FAILURES.labels(service=service, status="500").inc()
            log.error("route %r: %s", route.path_prefix, e)
            return PlainTextResponse("Internal Server Error", status_code=500)
        except TransportFailure as e:
            FAILURES.labels(service=service, status=str(e.status_code)).inc()
            log.warning("upstream %s failed: %s", service, e)
            text = "Gateway Timeout" if e.timeout else "Bad Gateway"
            return PlainTextResponse(text, status_code=e.status_code)

        log.info("%s %s -> %s (%d)", request.method, request.path, service, upstream.status_code)
        return to_response(upstream, request.method)

    @staticmethod
    def build_outbound(request: ProxyRequest, descriptor: ServiceDescriptor) -> OutboundRequest:
        """Copy method, headers and body; retarget the URL.

        External services get ``base_url + path`` with no slash normalization.
        Bindings get the bare path, resolved by the binding itself.
        """
        target = request.path
        if isinstance(descriptor, ExternalURL):
            target = descriptor.base_url + request.path
        if request.query:
            target = f"{target}?{request.query}"
        return OutboundRequest(
            method=request.method,
            path=request.path,
            query=request.query,
            headers=httpx.Headers(request.headers.raw),
            body=request.body,
            url=target,
        )

    def _forwarder(self, descriptor: ServiceDescriptor) -> Forwarder:
        if isinstance(descriptor, ExternalURL):
            return self._external
        return self._bindings.resolve(descriptor.name)

"""API routes for the router service.

``admin`` holds the router's own probes and metrics and is mounted under the
admin prefix. ``proxy`` is the catch-all that hands every other request to
the Router.
"""
from __future__ import annotations

from fastapi import APIRouter, Request, Response
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

from prefix_router.core.logging import get_logger
from prefix_router.models.schemas import ProxyRequest
from prefix_router.services.router import Router

log = get_logger("api")
admin = APIRouter()
proxy = APIRouter()

REQUESTS = Counter("router_requests_total", "Total incoming router requests", ["method"])

PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE"]


def _get_router(request: Request) -> Router:
    """Return the app-scoped Router placed on ``app.state`` by create_app."""
    return request.app.state.router


@admin.get("/readyz")
async def readyz():
    """Readiness probe endpoint returning a minimal OK payload."""
    return {"status": "ok"}


@admin.get("/health")
async def health(request: Request):
    """Health check with the size of the loaded routing table."""
    table = _get_router(request).table
    return {"status": "OK", "routes": len(table), "services": len(table.services)}


@admin.get("/metrics")
async def metrics():
    """Prometheus exposition endpoint for router process metrics."""
    data = generate_latest()
    return PlainTextResponse(data.decode("utf-8"), media_type=CONTENT_TYPE_LATEST)


@proxy.api_route("/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def route_request(request: Request) -> Response:
    """Buffer the inbound request and let the Router forward it."""
    REQUESTS.labels(method=request.method).inc()
    inbound = await ProxyRequest.from_request(request)
    return await _get_router(request).route(inbound)

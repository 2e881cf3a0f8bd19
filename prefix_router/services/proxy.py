"""Reverse-proxy transports.

Dispatches a fully buffered OutboundRequest over httpx, either to an absolute
URL through the shared connection pool or to an in-process ASGI app, and
turns the upstream reply back into a response for the original caller.
"""
from __future__ import annotations

from typing import Iterable

import httpx
from fastapi import Response
from prometheus_client import Histogram

from prefix_router.core.errors import TransportFailure
from prefix_router.models.schemas import OutboundRequest, UpstreamResponse

UPSTREAM_LATENCY = Histogram("router_upstream_latency_seconds", "Upstream call latency seconds", ["transport"])

# RFC 9110 hop-by-hop headers (belong to one connection, not the message)
HOP_BY_HOP = {
    "connection", "keep-alive", "proxy-authenticate", "proxy-authorization",
    "te", "trailers", "transfer-encoding", "upgrade",
}


def _strip_hop_headers(raw: Iterable[tuple[bytes, bytes]], *extra: str) -> list[tuple[bytes, bytes]]:
    drop = HOP_BY_HOP.union(extra)
    return [(k, v) for k, v in raw if k.decode("latin-1").lower() not in drop]


def wire_headers(headers: httpx.Headers) -> list[tuple[bytes, bytes]]:
    """Headers as written to the wire: Host comes from the target authority."""
    return _strip_hop_headers(headers.raw, "host")


async def send(client: httpx.AsyncClient, outbound: OutboundRequest, *, transport: str) -> UpstreamResponse:
    """Send ``outbound`` with ``client`` and read the raw upstream reply.

    httpx transport errors become TransportFailure (timeouts flagged for 504).
    A URL httpx refuses to build is reported the same way, as a 502.
    """
    try:
        request = client.build_request(
            outbound.method, outbound.url, headers=wire_headers(outbound.headers), content=outbound.body
        )
    except httpx.InvalidURL as e:
        raise TransportFailure(f"cannot build request for {outbound.url!r}: {e}") from e

    try:
        with UPSTREAM_LATENCY.labels(transport=transport).time():
            upstream = await client.send(request, stream=True)
            try:
                # replies built in memory arrive already read
                if upstream.is_stream_consumed:
                    body = upstream.content
                else:
                    body = b"".join([chunk async for chunk in upstream.aiter_raw()])
            finally:
                await upstream.aclose()
    except httpx.TimeoutException as e:
        raise TransportFailure(f"timeout calling {request.url}: {e!r}", timeout=True) from e
    except (httpx.TransportError, httpx.StreamError) as e:
        raise TransportFailure(f"error calling {request.url}: {e!r}") from e

    return UpstreamResponse(status_code=upstream.status_code, headers=list(upstream.headers.raw), body=body)


class HttpForwarder:
    """Plain outbound fetch against the absolute URL of the request."""

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def forward(self, outbound: OutboundRequest) -> UpstreamResponse:
        return await send(self._client, outbound, transport="external")


class AsgiForwarder:
    """
    Forwards to an ASGI application running in the same process.

    Used for internal bindings: the service is reached by name, without a
    network URL. Relative request URLs resolve against ``http://<name>``.
    """

    def __init__(self, app, name: str, timeout_s: float = 30.0):
        self.name = name
        self._client = httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app),
            base_url=f"http://{name}",
            timeout=httpx.Timeout(timeout_s),
            follow_redirects=False,
        )

    async def forward(self, outbound: OutboundRequest) -> UpstreamResponse:
        return await send(self._client, outbound, transport="binding")

    async def aclose(self) -> None:
        await self._client.aclose()


def to_response(upstream: UpstreamResponse, method: str = "GET") -> Response:
    """Pass the upstream status, headers and body through to the caller.

    Content-Length is filled in for buffered bodies that lack one, except on
    replies that carry no body (1xx, 204, 304, any answer to HEAD).
    """
    resp = Response(content=upstream.body, status_code=upstream.status_code)
    headers = _strip_hop_headers(upstream.headers)
    bodyless = (
        method.upper() == "HEAD" or upstream.status_code < 200 or upstream.status_code in (204, 304)
    )
    if not bodyless and not any(k.lower() == b"content-length" for k, _ in headers):
        headers.append((b"content-length", str(len(upstream.body)).encode("latin-1")))
    resp.raw_headers = headers
    return resp

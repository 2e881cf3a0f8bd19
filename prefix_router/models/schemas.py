"""Pydantic models used by the router service.

Three groups: the routing-table file shape (``RouterConfig`` and friends),
the resolved table entries (``Route`` and the service descriptor union), and
the request/response values that travel through a forward call.
"""
from __future__ import annotations

from typing import Annotated, Literal, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator
from starlette.requests import Request


# ---- routing table file ----------------------------------------------------

class RouteConfig(BaseModel):
    """One ``[[routes]]`` entry: path prefix -> service name."""

    path: str
    service: str


class ServiceConfig(BaseModel):
    """One ``[services.<name>]`` entry. No url means internal binding."""

    url: str | None = None

    @field_validator("url")
    @classmethod
    def _absolute_http(cls, v: str | None) -> str | None:
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError(f"service url must be absolute http(s), got {v!r}")
        return v

    def descriptor(self, name: str) -> "ServiceDescriptor":
        if self.url is None:
            return InternalBinding(name=name)
        return ExternalURL(name=name, base_url=self.url)


class RouterConfig(BaseModel):
    """Validated routing configuration handed to the RouteTable."""

    routes: list[RouteConfig] = Field(default_factory=list)
    services: dict[str, ServiceConfig] = Field(default_factory=dict)
    # binding name -> "module:attr" of an ASGI app
    bindings: dict[str, str] = Field(default_factory=dict)


# ---- resolved table entries -------------------------------------------------

class Route(BaseModel):
    """A path-prefix rule. Position in the table is its priority."""

    model_config = ConfigDict(frozen=True)

    path_prefix: str = Field(min_length=1)
    service_name: str


class ExternalURL(BaseModel):
    """Service reached by an outbound fetch against ``base_url + path``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["external"] = "external"
    name: str
    base_url: str


class InternalBinding(BaseModel):
    """Service reached through the hosting environment's binding for ``name``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["binding"] = "binding"
    name: str


ServiceDescriptor = Annotated[Union[ExternalURL, InternalBinding], Field(discriminator="kind")]


# ---- forward call values ----------------------------------------------------

class ProxyRequest(BaseModel):
    """A fully buffered HTTP request: method, path, query, header multimap, body."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    method: str
    path: str
    query: str = ""
    headers: httpx.Headers = Field(default_factory=httpx.Headers)
    body: bytes = b""

    @field_validator("headers", mode="before")
    @classmethod
    def _as_multimap(cls, v: object) -> httpx.Headers:
        return v if isinstance(v, httpx.Headers) else httpx.Headers(v)

    @classmethod
    async def from_request(cls, request: Request) -> "ProxyRequest":
        """Read an inbound ASGI request, body included, into a ProxyRequest.

        The path keeps its percent-encoding as received on the wire.
        """
        raw_path = request.scope.get("raw_path")
        if raw_path:
            path = raw_path.split(b"?", 1)[0].decode("latin-1")
        else:
            path = request.url.path
        return cls(
            method=request.method,
            path=path,
            query=request.url.query,
            headers=httpx.Headers(request.headers.raw),
            body=await request.body(),
        )


class OutboundRequest(ProxyRequest):
    """The mirrored request about to be dispatched to ``url``."""

    url: str


class UpstreamResponse(BaseModel):
    """What a transport got back: status, raw header list, undecoded body."""

    model_config = ConfigDict(frozen=True)

    status_code: int
    headers: list[tuple[bytes, bytes]] = Field(default_factory=list)
    body: bytes = b""

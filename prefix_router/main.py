"""Router FastAPI application.

Builds the routing table from configuration, wires the admin and catch-all
routes, and owns the shared HTTP connection pool for the app's lifetime.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

import httpx
import uvicorn
from fastapi import FastAPI

from prefix_router.api.routes import admin, proxy
from prefix_router.core.config import Settings, load_config, load_settings
from prefix_router.core.logging import get_logger, setup_logging
from prefix_router.models.schemas import InternalBinding, RouterConfig
from prefix_router.services.bindings import BindingRegistry, BindingResolver
from prefix_router.services.route_table import RouteTable
from prefix_router.services.router import Router

log = get_logger("main")


def create_app(
    config: RouterConfig | None = None,
    bindings: BindingResolver | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create the router app.

    ``config`` defaults to the TOML file named by ``settings.routes_file`` and
    ``bindings`` to a BindingRegistry built from its ``[bindings]`` table. A
    ConfigError propagates, so a broken table never starts serving.
    """
    settings = settings or load_settings()
    if config is None:
        config = load_config(settings.routes_file)

    table = RouteTable.from_config(config)
    if bindings is None:
        bindings = BindingRegistry.from_config(config, settings.request_timeout_s)
    if isinstance(bindings, BindingRegistry):
        registered = set(bindings.names())
        for desc in table.services.values():
            if isinstance(desc, InternalBinding) and desc.name not in registered:
                log.warning("service %s has no url and no registered binding", desc.name)

    client = httpx.AsyncClient(timeout=httpx.Timeout(settings.request_timeout_s), follow_redirects=False)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan.

        Initializes logging and closes the shared HTTP pool and any binding
        pools on shutdown.
        """
        setup_logging(settings.log_level)
        log.info("serving %d routes over %d services", len(table), len(table.services))
        try:
            yield
        finally:
            await client.aclose()
            close = getattr(bindings, "aclose", None)
            if close is not None:
                await close()

    app = FastAPI(title="Prefix Router", version="0.1.0", lifespan=lifespan)
    app.state.router = Router(table, client, bindings)
    app.state.settings = settings
    app.include_router(admin, prefix=settings.admin_prefix)
    app.include_router(proxy)
    return app


def main() -> None:
    """Console entry point: serve ``create_app`` with uvicorn."""
    settings = load_settings()
    setup_logging(settings.log_level)
    uvicorn.run(
        "prefix_router.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

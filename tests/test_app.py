# tests/test_app.py
import httpx
import pytest
from fastapi import FastAPI, Request

from prefix_router.core.config import Settings
from prefix_router.core.errors import ConfigError
from prefix_router.main import create_app
from prefix_router.models.schemas import RouteConfig, RouterConfig, ServiceConfig
from prefix_router.services.bindings import BindingRegistry
from prefix_router.services.proxy import AsgiForwarder

# --- helpers ---------------------------------------------------------------

def _auth_app() -> FastAPI:
    app = FastAPI()

    @app.api_route("/auth/{rest:path}", methods=["GET", "DELETE"])
    async def whoami(rest: str, request: Request):
        return {"rest": rest, "method": request.method, "user": request.headers.get("x-user")}
    return app


def _config() -> RouterConfig:
    return RouterConfig(
        routes=[
            RouteConfig(path="/auth", service="auth"),
            # nothing listens on port 1
            RouteConfig(path="/down", service="down"),
        ],
        services={"auth": ServiceConfig(), "down": ServiceConfig(url="http://127.0.0.1:1")},
    )


def _client(app: FastAPI) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://router.local")


@pytest.fixture
def app():
    bindings = BindingRegistry({"auth": AsgiForwarder(_auth_app(), "auth")})
    return create_app(config=_config(), bindings=bindings, settings=Settings(request_timeout_s=2.0))

# --- tests ----------------------------------------------------------------

@pytest.mark.anyio
async def test_admin_endpoints(app):
    async with _client(app) as client:
        assert (await client.get("/__router/readyz")).json() == {"status": "ok"}
        assert (await client.get("/__router/health")).json() == {"status": "OK", "routes": 2, "services": 2}
        await client.get("/nowhere")
        metrics = await client.get("/__router/metrics")
    assert metrics.status_code == 200
    assert "router_requests_total" in metrics.text
    assert "router_unmatched_requests_total" in metrics.text


@pytest.mark.anyio
@pytest.mark.parametrize("method", ["GET", "POST", "PUT", "DELETE", "OPTIONS"])
async def test_unrouted_paths_are_404_for_any_method(app, method):
    async with _client(app) as client:
        resp = await client.request(method, "/no/such/route")
    assert resp.status_code == 404
    assert resp.text == "Not Found"


@pytest.mark.anyio
async def test_binding_reached_through_app(app):
    async with _client(app) as client:
        resp = await client.delete("/auth/session/9", headers={"x-user": "kim"})
    assert resp.status_code == 200
    assert resp.json() == {"rest": "session/9", "method": "DELETE", "user": "kim"}


@pytest.mark.anyio
async def test_unreachable_backend_is_502(app):
    async with _client(app) as client:
        resp = await client.get("/down/anything")
    assert resp.status_code == 502


@pytest.mark.anyio
async def test_missing_binding_is_500():
    app = create_app(config=_config(), bindings=BindingRegistry(), settings=Settings())
    async with _client(app) as client:
        resp = await client.get("/auth/me")
    assert resp.status_code == 500


def test_unknown_service_aborts_startup():
    config = RouterConfig(routes=[RouteConfig(path="/api", service="ghost")], services={})
    with pytest.raises(ConfigError):
        create_app(config=config, bindings=BindingRegistry(), settings=Settings())


def test_routes_file_from_settings(tmp_path):
    f = tmp_path / "routes.toml"
    f.write_text('[[routes]]\npath = "/api"\nservice = "backend"\n\n[services.backend]\nurl = "http://b"\n')
    app = create_app(settings=Settings(routes_file=str(f)))
    assert len(app.state.router.table) == 1


def test_missing_routes_file_aborts_startup(tmp_path):
    with pytest.raises(ConfigError):
        create_app(settings=Settings(routes_file=str(tmp_path / "absent.toml")))

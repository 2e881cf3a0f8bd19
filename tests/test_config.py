# tests/test_config.py
import logging
from pathlib import Path

import pytest

from prefix_router.core.config import Settings, load_config, load_settings
from prefix_router.core.errors import ConfigError
from prefix_router.core.logging import get_logger, setup_logging
from prefix_router.models.schemas import InternalBinding, OutboundRequest
from prefix_router.services.bindings import BindingRegistry, load_asgi_app
from prefix_router.services.route_table import RouteTable

ROUTES_TOML = """
[[routes]]
path = "/api"
service = "backend"

[[routes]]
path = "/auth"
service = "auth"

[services.backend]
url = "https://backend.example"

[services.auth]
"""


def test_load_config_keeps_route_order(tmp_path):
    f = tmp_path / "routes.toml"
    f.write_text(ROUTES_TOML)
    config = load_config(f)
    assert [(r.path, r.service) for r in config.routes] == [("/api", "backend"), ("/auth", "auth")]
    assert config.services["backend"].url == "https://backend.example"
    assert config.services["auth"].url is None
    assert config.bindings == {}


def test_bundled_routes_file_builds_a_table():
    config = load_config(Path(__file__).resolve().parent.parent / "routes.toml")
    table = RouteTable.from_config(config)
    assert table.find_match("/api/users").service_name == "backend"
    assert table.lookup("auth") == InternalBinding(name="auth")


def test_missing_file_is_config_error(tmp_path):
    with pytest.raises(ConfigError, match="cannot read"):
        load_config(tmp_path / "nope.toml")


def test_malformed_toml_is_config_error(tmp_path):
    f = tmp_path / "routes.toml"
    f.write_text("[[routes]\npath = ")
    with pytest.raises(ConfigError, match="malformed"):
        load_config(f)


def test_relative_service_url_is_config_error(tmp_path):
    f = tmp_path / "routes.toml"
    f.write_text('[services.backend]\nurl = "backend.example"\n')
    with pytest.raises(ConfigError, match="invalid"):
        load_config(f)


def test_load_settings_from_env(monkeypatch):
    monkeypatch.setenv("ROUTES_FILE", "/etc/router/routes.toml")
    monkeypatch.setenv("REQUEST_TIMEOUT_S", "5")
    monkeypatch.setenv("ADMIN_PREFIX", "/_admin/")
    s = load_settings()
    assert s.routes_file == "/etc/router/routes.toml"
    assert s.request_timeout_s == 5.0
    assert s.admin_prefix == "/_admin"


def test_load_settings_defaults(monkeypatch):
    for var in ("ROUTES_FILE", "REQUEST_TIMEOUT_S", "ADMIN_PREFIX", "LOG_LEVEL", "HOST", "PORT"):
        monkeypatch.delenv(var, raising=False)
    assert load_settings() == Settings()


def test_invalid_env_is_config_error(monkeypatch):
    monkeypatch.setenv("REQUEST_TIMEOUT_S", "soon")
    with pytest.raises(ConfigError):
        load_settings()


@pytest.mark.parametrize("target", ["no_colon", "prefix_router.missing_mod:app", "prefix_router.main:nothing"])
def test_bad_binding_target(target):
    with pytest.raises(ConfigError):
        load_asgi_app(target)


AUTH_SERVICE = """
from fastapi import FastAPI

app = FastAPI()

@app.get("/auth/ping")
async def ping():
    return {"pong": True}
"""


@pytest.mark.anyio
async def test_binding_registry_from_config(tmp_path, monkeypatch):
    (tmp_path / "auth_service.py").write_text(AUTH_SERVICE)
    monkeypatch.syspath_prepend(str(tmp_path))
    f = tmp_path / "routes.toml"
    f.write_text(ROUTES_TOML + '\n[bindings]\nauth = "auth_service:app"\n')

    registry = BindingRegistry.from_config(load_config(f))
    try:
        assert registry.names() == ["auth"]
        reply = await registry.resolve("auth").forward(
            OutboundRequest(method="GET", path="/auth/ping", url="/auth/ping")
        )
    finally:
        await registry.aclose()
    assert reply.status_code == 200
    assert reply.body == b'{"pong":true}'


def test_setup_logging_levels():
    setup_logging("debug")
    assert get_logger("router").getEffectiveLevel() == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.DEBUG

    setup_logging("INFO")
    assert get_logger("router").name == "prefix-router.router"
    assert get_logger("router").getEffectiveLevel() == logging.INFO
    assert logging.getLogger("httpx").level == logging.WARNING

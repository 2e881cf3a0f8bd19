"""Configuration for the router service.

Provides strongly-typed settings using Pydantic and a loader from environment
variables with defaults suitable for local development, plus the loader for
the TOML routing table.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, ValidationError

from prefix_router.core.errors import ConfigError
from prefix_router.models.schemas import RouterConfig


class Settings(BaseModel):
    """Pydantic settings for the router service."""
    routes_file: str = "routes.toml"
    request_timeout_s: float = 30.0
    admin_prefix: str = "/__router"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8080


def load_settings() -> Settings:
    """Load settings from environment variables and return a Settings object."""
    try:
        return Settings(
            routes_file=os.getenv("ROUTES_FILE", "routes.toml"),
            request_timeout_s=float(os.getenv("REQUEST_TIMEOUT_S", "30.0")),
            admin_prefix=os.getenv("ADMIN_PREFIX", "/__router").rstrip("/"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8080")),
        )
    except (ValidationError, ValueError) as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def load_config(path: str | Path) -> RouterConfig:
    """Parse and validate a TOML routing table file."""
    path = Path(path)
    try:
        with path.open("rb") as fh:
            raw = tomllib.load(fh)
    except OSError as e:
        raise ConfigError(f"cannot read routing table {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"malformed routing table {path}: {e}") from e

    try:
        return RouterConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"invalid routing table {path}: {e}") from e

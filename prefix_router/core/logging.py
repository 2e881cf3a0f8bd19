"""Logging configuration utilities for the router service."""
import logging
import os

SERVICE_NAME = "prefix-router"

# libraries whose per-request INFO lines duplicate the router's own forward log
_CHATTY = ("httpx", "httpcore")


def setup_logging(level: str | None = None) -> None:
    """Configure logging for the router from ``level`` or LOG_LEVEL.

    The level applies to the ``prefix-router.*`` loggers; the HTTP client
    libraries are held at WARNING unless DEBUG is requested.
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(format=f"%(asctime)s %(levelname)s [{SERVICE_NAME}] %(name)s - %(message)s")
    logging.getLogger(SERVICE_NAME).setLevel(level)
    for name in _CHATTY:
        logging.getLogger(name).setLevel(logging.DEBUG if level == "DEBUG" else logging.WARNING)


def get_logger(component: str) -> logging.Logger:
    """Return the logger for a router component, e.g. ``prefix-router.api``."""
    return logging.getLogger(f"{SERVICE_NAME}.{component}")

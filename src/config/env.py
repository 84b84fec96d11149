from __future__ import annotations

import os

from dotenv import load_dotenv

# Pydantic Settings reads .env through env_file; loading it into os.environ as well makes the
# unprefixed PORT and the OTEL_* variables visible to code that reads the environment directly.
if os.path.exists(".env"):
    load_dotenv(".env")

from config.settings import AppSettings as Settings, get_settings  # noqa: E402


def get_listen_address(host: str | None = None) -> tuple[str, int]:
    """
    Return (host, port) for the HTTP server; an explicit host wins over APP_HOST.
    """
    s = get_settings()
    return host or s.host, int(s.port)


def is_tracing_enabled() -> bool:
    """
    Return tracing flag (APP_ENABLE_TRACING), default False.
    """
    return bool(get_settings().enable_tracing)


__all__ = [
    "Settings",
    "get_settings",
    "get_listen_address",
    "is_tracing_enabled",
]

from __future__ import annotations

import os

from fastapi import FastAPI


def _apply_port_override(port: int | None) -> None:
    """
    Make an explicit --port visible to settings before the app is created.

    PORT is read by AppSettings; the cached settings object is reset so the override applies
    even if settings were loaded earlier in this process.
    """
    if port is None:
        return
    os.environ["PORT"] = str(port)
    from config.settings import get_settings

    get_settings.cache_clear()


def get_app(port: int | None = None) -> FastAPI:
    """
    Create and return a FastAPI app instance for serving or in-process TestClient usage.

    Delegates to the application factory at api.main.create_app().

    Returns:
        FastAPI: initialized application instance
    """
    _apply_port_override(port)
    from api.main import create_app

    return create_app()


__all__ = ["get_app"]

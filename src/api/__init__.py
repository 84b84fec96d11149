"""
API package initialization for the d.velop pilot MCP server.
Exposes the FastAPI application factory and default app for convenience.
"""

from .main import app, create_app  # noqa: F401

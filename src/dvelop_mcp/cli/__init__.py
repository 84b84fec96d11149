"""
CLI package for the d.velop pilot MCP server.

Exports convenience helpers for in-process usage:
- get_app(): FastAPI app factory with an optional port override
- describe_tools(): registered tool names, titles and schemas
- serve(): run the HTTP server with uvicorn
- to_json(): JSON serializer for CLI output
"""

from __future__ import annotations

from .app_factory import get_app
from .commands import describe_tools, serve, to_json

__all__ = [
    "get_app",
    "describe_tools",
    "serve",
    "to_json",
]

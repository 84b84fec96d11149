from __future__ import annotations

import json
from typing import Any

import uvicorn

from config.env import get_listen_address
from mcp_tools.registry import ToolRegistry


def to_json(payload: Any) -> str:
    """
    Serialize CLI output as stable, human-readable JSON.
    """
    return json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False)


def describe_tools(registry: ToolRegistry | None = None) -> list[dict[str, Any]]:
    """
    Return name, title, description and JSON schemas for every registered tool.
    """
    registry = registry or ToolRegistry()
    return [
        {
            "name": spec.name,
            "title": spec.title,
            "description": spec.description,
            "input_schema": spec.input_schema(),
            "output_schema": spec.output_schema(),
        }
        for spec in registry.list_specs()
    ]


def serve(host: str | None = None, port: int | None = None) -> None:
    """
    Run the HTTP server with uvicorn on the configured address (PORT defaults to 3000).
    """
    from dvelop_mcp.cli.app_factory import get_app

    app = get_app(port=port)
    bind_host, bind_port = get_listen_address(host)
    uvicorn.run(app, host=bind_host, port=bind_port, log_config=None)


__all__ = ["to_json", "describe_tools", "serve"]

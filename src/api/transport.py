from __future__ import annotations

import logging
from typing import Any

from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from security.request_context import RequestContext, bind

_LOGGER = logging.getLogger("dvelop_mcp")

# JSON-RPC error envelopes; id is null because the request id is unknown at this layer
METHOD_NOT_ALLOWED_BODY: dict[str, Any] = {
    "jsonrpc": "2.0",
    "error": {"code": -32000, "message": "Method not allowed."},
    "id": None,
}
INTERNAL_ERROR_BODY: dict[str, Any] = {
    "jsonrpc": "2.0",
    "error": {"code": -32603, "message": "Internal server error"},
    "id": None,
}


class McpTransportAdapter:
    """
    ASGI endpoint in front of the MCP streamable HTTP app.

    - Only POST reaches the MCP app; any other method gets a fixed 405 JSON-RPC error.
    - POST handling runs with a RequestContext built from the inbound headers bound, so tool
      handlers can read the caller's Authorization header.
    - If the MCP app raises before a response was started, a generic 500 JSON-RPC error is
      written; once a response has started nothing more is sent.
    """

    def __init__(self, mcp_app: ASGIApp) -> None:
        self.mcp_app = mcp_app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.mcp_app(scope, receive, send)
            return

        method = (scope.get("method") or "").upper()
        if method != "POST":
            _LOGGER.info("mcp.transport: rejected method=%s path=%s", method, scope.get("path"))
            response = JSONResponse(METHOD_NOT_ALLOWED_BODY, status_code=405)
            await response(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message.get("type") == "http.response.start":
                response_started = True
            await send(message)

        context = RequestContext.from_headers(scope.get("headers") or [])
        with bind(context):
            try:
                await self.mcp_app(scope, receive, send_wrapper)
            except Exception:
                _LOGGER.exception("Error handling MCP request")
                if not response_started:
                    response = JSONResponse(INTERNAL_ERROR_BODY, status_code=500)
                    await response(scope, receive, send)


__all__ = ["McpTransportAdapter", "METHOD_NOT_ALLOWED_BODY", "INTERNAL_ERROR_BODY"]

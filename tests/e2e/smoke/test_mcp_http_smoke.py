# pylint: disable=import-error,no-name-in-module
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from api.main import create_app

MCP_HEADERS = {
    "Accept": "application/json, text/event-stream",
    "Content-Type": "application/json",
}


def _rpc(request_id: int, method: str, params: dict | None = None) -> dict:
    message = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return message


@pytest.mark.integration
def test_streamable_http_lists_and_calls_tools(fake_upstream):
    """
    End-to-end over HTTP: the app lifespan starts the MCP session manager, tools/list returns
    the four tools, and tools/call forwards the caller's Authorization header upstream.
    """
    fake_upstream.add("POST", "/task/tasks", 201)
    app = create_app()

    with TestClient(app) as client:
        listed = client.post(
            "/mcp",
            json=_rpc(1, "tools/list", {}),
            headers={**MCP_HEADERS, "Authorization": "Bearer e2e-token"},
        )
        assert listed.status_code == 200, listed.text
        names = sorted(tool["name"] for tool in listed.json()["result"]["tools"])
        assert names == ["ask-assistant", "create-task", "list-tasks", "list-users"]

        called = client.post(
            "/mcp",
            json=_rpc(
                2,
                "tools/call",
                {
                    "name": "create-task",
                    "arguments": {
                        "subject": "Smoke test",
                        "assignees": ["u-1", "g-1"],
                        "dueDate": "2025-12-01T12:00:00Z",
                    },
                },
            ),
            headers={**MCP_HEADERS, "Authorization": "Bearer e2e-token"},
        )

    assert called.status_code == 200, called.text
    result = called.json()["result"]
    assert result["isError"] is False
    assert result["content"][0]["text"] == (
        '✅ Task "Smoke test" created successfully for 2 assignee(s).'
    )
    assert len(fake_upstream.requests) == 1
    assert fake_upstream.requests[0].headers["authorization"] == "Bearer e2e-token"


@pytest.mark.integration
def test_tool_call_without_authorization_is_an_error_result(fake_upstream):
    app = create_app()

    with TestClient(app) as client:
        resp = client.post(
            "/mcp",
            json=_rpc(3, "tools/call", {"name": "list-tasks", "arguments": {}}),
            headers=MCP_HEADERS,
        )

    assert resp.status_code == 200, resp.text
    result = resp.json()["result"]
    assert result["isError"] is True
    assert "Missing required header: authorization" in result["content"][0]["text"]
    assert fake_upstream.requests == []

# pylint: disable=import-error,no-name-in-module
import pytest
from fastmcp import Client
from fastmcp.exceptions import ToolError

from mcp_tools.server import SERVER_INSTRUCTIONS, build_mcp_server
from security.request_context import bind


@pytest.mark.integration
@pytest.mark.asyncio
async def test_server_lists_registry_tools_with_schemas(registry):
    server = build_mcp_server(registry)

    async with Client(server) as client:
        tools = {tool.name: tool for tool in await client.list_tools()}

    assert set(tools) == {"ask-assistant", "list-users", "create-task", "list-tasks"}
    assert "dueDate" in tools["create-task"].inputSchema["properties"]
    assert tools["create-task"].outputSchema is None
    assert "resources" in tools["list-users"].outputSchema["properties"]
    assert "_embedded" in tools["list-tasks"].outputSchema["properties"]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_server_announces_instructions(registry):
    server = build_mcp_server(registry)
    async with Client(server) as client:
        init = client.initialize_result
    assert init.serverInfo.name == "mcp-streamable-http"
    assert init.instructions == SERVER_INSTRUCTIONS


@pytest.mark.integration
@pytest.mark.asyncio
async def test_tool_call_reads_credentials_from_bound_request(registry, fake_upstream, auth_context):
    fake_upstream.add("POST", "/task/tasks", 201)
    server = build_mcp_server(registry)

    # Bound before connecting so the in-memory server tasks inherit the request context
    with bind(auth_context):
        async with Client(server) as client:
            result = await client.call_tool(
                "create-task",
                {"subject": "Audit", "assignees": ["u-1"], "dueDate": "2025-11-01"},
            )

    assert result.content[0].text == '✅ Task "Audit" created successfully for 1 assignee(s).'
    assert fake_upstream.requests[0].headers["authorization"] == "Bearer test-token"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_structured_content_is_returned_for_contract_tools(
    registry, fake_upstream, auth_context, make_user
):
    fake_upstream.add(
        "GET",
        "/identityprovider/scim/users",
        200,
        json_body={"totalResults": 1, "itemsPerPage": 1, "startIndex": 1, "resources": [make_user()]},
    )
    server = build_mcp_server(registry)

    with bind(auth_context):
        async with Client(server) as client:
            result = await client.call_tool("list-users", {})

    assert result.content[0].text == "Retrieved 1 users."
    assert result.structured_content["resources"][0]["id"] == "u-1"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_tool_failures_become_error_results(registry, fake_upstream):
    server = build_mcp_server(registry)

    async with Client(server) as client:
        with pytest.raises(ToolError) as excinfo:
            await client.call_tool("list-users", {})

    assert "Missing required header: authorization" in str(excinfo.value)
    assert fake_upstream.requests == []

"""
HTTP client for the d.velop services behind the MCP tools.

Every function reads the caller's Authorization header from the active request context and
forwards it verbatim. Non-success statuses are normalised into UpstreamError carrying status,
reason phrase and a best-effort copy of the response body.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any
from urllib.parse import quote

import httpx

from config.settings import get_settings
from observability.metrics import UPSTREAM_LATENCY_SECONDS, UPSTREAM_REQUEST_COUNT
from security.auth import require_authorization
from upstream.interface import MalformedResponse, UpstreamError

_LOGGER = logging.getLogger("dvelop_mcp.upstream")

PROMPTS_PATH = "/d42/api/v1/prompts"
SCIM_USERS_PATH = "/identityprovider/scim/users"
TASKS_PATH = "/task/tasks"
TASKS_SEARCH_PATH = "/task/tasks/search"

# Fixed filter: open tasks, oldest received first
TASK_SEARCH_FILTER: dict[str, Any] = {"orderBy": "received", "completed": False}

TASK_CREATED_STATUS = 201


def build_http_client() -> httpx.AsyncClient:
    """
    Create an AsyncClient bound to the configured upstream origin.

    Tests replace this factory to inject an httpx.MockTransport.
    """
    s = get_settings()
    return httpx.AsyncClient(base_url=s.upstream_origin, timeout=s.upstream_timeout_seconds)


def new_correlation_key() -> str:
    """
    Idempotency token for task creation: epoch milliseconds plus a random 0-999 suffix.

    Collisions are possible for calls in the same millisecond; the upstream treats the key as
    opaque.
    """
    return f"task-{int(time.time() * 1000)}-{random.randint(0, 999)}"


async def _read_body_text(response: httpx.Response) -> str:
    # A body that already failed to stream raises StreamConsumed (a RuntimeError) here
    try:
        await response.aread()
        return response.text
    except (httpx.HTTPError, UnicodeDecodeError, RuntimeError):
        return ""


async def _raise_upstream_error(operation: str, response: httpx.Response) -> None:
    body = await _read_body_text(response)
    raise UpstreamError(operation, response.status_code, response.reason_phrase, body)


async def _send(
    service: str,
    method: str,
    path: str,
    *,
    json_body: Any | None = None,
) -> httpx.Response:
    headers = {"Authorization": require_authorization()}
    if json_body is not None:
        headers["Content-Type"] = "application/json"

    start = time.monotonic()
    async with build_http_client() as client:
        request = client.build_request(method, path, headers=headers, json=json_body)
        # Streamed so a failing body read can be told apart from a failing request
        response = await client.send(request, stream=True)
        try:
            await response.aread()
        except httpx.HTTPError as e:
            await response.aclose()
            if response.is_success:
                raise
            # Error status still wins; the diagnostic body is reported as empty
            _LOGGER.warning(
                "upstream.body_unreadable: service=%s status=%s error=%s",
                service,
                response.status_code,
                e,
            )
    duration = max(0.0, time.monotonic() - start)

    UPSTREAM_LATENCY_SECONDS.labels(service=service).observe(duration)
    UPSTREAM_REQUEST_COUNT.labels(
        service=service, method=method, status=str(response.status_code)
    ).inc()
    _LOGGER.info(
        "upstream.call: service=%s method=%s path=%s status=%s duration=%.4fs",
        service,
        method,
        path,
        response.status_code,
        duration,
    )
    return response


def _json_payload(operation: str, response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise MalformedResponse(f"{operation}: response body is not valid JSON") from e


async def create_prompt(body: dict[str, Any]) -> str:
    """
    Create a prompt and return its identifier.

    Raises:
        UpstreamError: non-success status.
        MalformedResponse: body is not JSON or has no 'id'.
    """
    response = await _send("prompts", "POST", PROMPTS_PATH, json_body=body)
    if not response.is_success:
        await _raise_upstream_error("Prompt creation", response)
    data = _json_payload("Prompt creation", response)
    prompt_id = data.get("id") if isinstance(data, dict) else None
    if not prompt_id:
        raise MalformedResponse("Prompt id missing from the prompt service response")
    return str(prompt_id)


async def get_prompt(prompt_id: str) -> dict[str, Any]:
    """Read the current state of a prompt."""
    path = f"{PROMPTS_PATH}/{quote(prompt_id, safe='')}"
    response = await _send("prompts", "GET", path)
    if not response.is_success:
        await _raise_upstream_error("Polling", response)
    data = _json_payload("Polling", response)
    if not isinstance(data, dict):
        raise MalformedResponse("Prompt status response is not a JSON object")
    return data


async def list_users() -> Any:
    """Fetch the SCIM user directory; the raw payload is validated by the caller."""
    response = await _send("identity", "GET", SCIM_USERS_PATH)
    if not response.is_success:
        await _raise_upstream_error("User directory read", response)
    return _json_payload("User directory read", response)


async def create_task(
    subject: str,
    description: str | None,
    assignees: list[str],
    due_date: str,
) -> str:
    """
    Create a task and return the correlation key it was submitted with.

    Only status 201 counts as success; any other status, including other 2xx codes, raises
    UpstreamError with the response body as diagnostic text.
    """
    correlation_key = new_correlation_key()
    body: dict[str, Any] = {
        "subject": subject,
        "assignees": list(assignees),
        "correlationKey": correlation_key,
        "dueDate": due_date,
    }
    if description is not None:
        body["description"] = description

    response = await _send("tasks", "POST", TASKS_PATH, json_body=body)
    if response.status_code != TASK_CREATED_STATUS:
        await _raise_upstream_error("Task creation", response)
    return correlation_key


async def list_tasks() -> Any:
    """Search open tasks ordered by receipt date; the raw payload is validated by the caller."""
    response = await _send("tasks", "POST", TASKS_SEARCH_PATH, json_body=dict(TASK_SEARCH_FILTER))
    if not response.is_success:
        await _raise_upstream_error("Task search", response)
    return _json_payload("Task search", response)


__all__ = [
    "build_http_client",
    "new_correlation_key",
    "create_prompt",
    "get_prompt",
    "list_users",
    "create_task",
    "list_tasks",
    "TASK_SEARCH_FILTER",
]

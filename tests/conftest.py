import json
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Tuple

import pytest

# Make 'src' importable when running tests without installing the package
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

# Deterministic environment BEFORE importing app modules: fake upstream origin, no polling delay
os.environ.setdefault("APP_UPSTREAM_BASE_URL", "https://upstream.test")
os.environ.setdefault("APP_POLL_INTERVAL_SECONDS", "0")
os.environ.setdefault("APP_ENABLE_TRACING", "false")
os.environ.setdefault("APP_LOGGING_CONFIG_PATH", str(SRC_PATH / "config" / "logging.yaml"))

import httpx  # noqa: E402

from config.settings import get_settings  # noqa: E402
from mcp_tools.registry import ToolRegistry  # noqa: E402
from security.request_context import RequestContext  # noqa: E402
from upstream import client as upstream_client  # noqa: E402

get_settings.cache_clear()

UPSTREAM_ORIGIN = "https://upstream.test"
TEST_AUTHORIZATION = "Bearer test-token"


class FakeUpstream:
    """
    Scripted stand-in for the d.velop services, served through httpx.MockTransport.

    Responses are queued per (method, path); the last queued response repeats once the
    queue is drained. Every request that reaches the transport is recorded.
    """

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self._routes: Dict[Tuple[str, str], List[Callable[[httpx.Request], httpx.Response]]] = {}

    def add(
        self,
        method: str,
        path: str,
        status: int = 200,
        *,
        json_body: Any = None,
        text: str | None = None,
        stream: httpx.AsyncByteStream | None = None,
    ) -> "FakeUpstream":
        def _respond(request: httpx.Request) -> httpx.Response:
            if stream is not None:
                return httpx.Response(status, stream=stream)
            if json_body is not None:
                return httpx.Response(status, json=json_body)
            return httpx.Response(status, text=text or "")

        self._routes.setdefault((method.upper(), path), []).append(_respond)
        return self

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self._routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, text=f"no route for {request.method} {request.url.path}")
        respond = queue.pop(0) if len(queue) > 1 else queue[0]
        return respond(request)

    def json_of(self, index: int) -> Any:
        return json.loads(self.requests[index].content)

    def paths(self) -> List[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture
def fake_upstream(monkeypatch) -> FakeUpstream:
    """Route every upstream call through a FakeUpstream instead of the network."""
    fake = FakeUpstream()

    def _build() -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=UPSTREAM_ORIGIN, transport=httpx.MockTransport(fake.handle))

    monkeypatch.setattr(upstream_client, "build_http_client", _build)
    return fake


@pytest.fixture
def auth_context() -> RequestContext:
    """Request context carrying a bearer credential, as the transport would bind it."""
    return RequestContext.from_headers(
        {"Authorization": TEST_AUTHORIZATION, "Content-Type": "application/json"}
    )


@pytest.fixture(scope="session")
def registry() -> ToolRegistry:
    """Fresh ToolRegistry instance for tests."""
    return ToolRegistry()


def scim_user(user_id: str = "u-1", **overrides: Any) -> Dict[str, Any]:
    user: Dict[str, Any] = {
        "id": user_id,
        "userName": f"{user_id}@example.com",
        "displayName": f"User {user_id}",
        "emails": [{"value": f"{user_id}@example.com"}],
    }
    user.update(overrides)
    return user


def task_payload(subject: str = "Review contract", **overrides: Any) -> Dict[str, Any]:
    task: Dict[str, Any] = {
        "subject": subject,
        "assignedUsers": ["u-1"],
        "senderLabel": "Jane Doe",
        "sender": "u-2",
        "receiveDate": "2025-10-01T08:00:00Z",
        "dueDate": "2025-10-16",
        "priority": 50,
        "id": "t-1",
        "completed": False,
        "readByCurrentUser": False,
        "orderValue": 1,
        "actionScopes": {"complete": ["details"]},
        "undelivered": False,
        "_links": {"self": {"href": "/task/tasks/t-1"}},
    }
    task.update(overrides)
    return task


@pytest.fixture
def make_user() -> Callable[..., Dict[str, Any]]:
    return scim_user


@pytest.fixture
def make_task() -> Callable[..., Dict[str, Any]]:
    return task_payload

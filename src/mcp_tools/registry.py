from __future__ import annotations

import json
import logging
import re
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Annotated, Any, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    ValidationError,
)
from pydantic.alias_generators import to_camel

from config.settings import get_settings
from observability.metrics import TOOL_CALL_COUNT, TOOL_LATENCY_SECONDS
from observability.tracing import start_span
from security.auth import credential_scheme, require_authorization
from upstream import client as upstream
from upstream.interface import SchemaViolation
from upstream.polling import poll_prompt, prefix_citation_links

_LOGGER = logging.getLogger("dvelop_mcp")

RFC3339_DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}(T\d{2}:\d{2}:\d{2}(Z|([+-]\d{2}:\d{2})))?$"

NonEmptyStr = Annotated[str, Field(min_length=1)]
# JSON numbers only: no coercion from strings or booleans; ints stay ints
Number = Union[StrictInt, StrictFloat]

# Shape check only; the address is returned exactly as the directory sent it
_EMAIL_RE = re.compile(
    r"^(?!\.)(?!.*\.\.)([A-Z0-9_'+\-\.]*)[A-Z0-9_+-]@([A-Z0-9][A-Z0-9\-]*\.)+[A-Z]{2,}$",
    re.IGNORECASE,
)


def _check_email(value: str) -> str:
    if not _EMAIL_RE.fullmatch(value):
        raise ValueError("value is not a valid email address")
    return value


EmailAddress = Annotated[str, AfterValidator(_check_email)]


# ----------------------------
# Pydantic Models (IO Schemas)
# ----------------------------


class StrictModel(BaseModel):
    # Tool inputs: reject unknown arguments, accept camelCase wire names
    model_config = ConfigDict(
        extra="forbid", alias_generator=to_camel, populate_by_name=True, protected_namespaces=()
    )


class UpstreamModel(BaseModel):
    # Upstream payloads: keep declared fields, drop anything else
    model_config = ConfigDict(
        extra="ignore", alias_generator=to_camel, populate_by_name=True, protected_namespaces=()
    )


# 1) ask-assistant
class AskAssistantInput(StrictModel):
    question: str = Field(min_length=1, description="The question to ask the d.velop pilot.")


# 2) list-users / list-tasks take no arguments
class EmptyInput(StrictModel):
    pass


class ScimEmail(UpstreamModel):
    value: EmailAddress = Field(
        description="The user's email address.", json_schema_extra={"format": "email"}
    )


class ScimPhoto(UpstreamModel):
    value: str = Field(description="The photo URL.")
    type: str = Field(description="The type of photo.")


class ScimUser(UpstreamModel):
    id: str = Field(description="The unique user ID.")
    user_name: str = Field(description="The username.")
    display_name: str = Field(description="The display name of the user.")
    preferred_language: str | None = Field(
        default=None, description="The user's preferred language."
    )
    emails: list[ScimEmail] = Field(description="List of email addresses.")
    photos: list[ScimPhoto] | None = Field(default=None, description="List of photos.")
    title: str | None = Field(default=None, description="Job title of the user.")
    department: str | None = Field(default=None, description="Department of the user.")


class ListUsersOutput(UpstreamModel):
    total_results: Number = Field(description="Total number of users.")
    items_per_page: Number = Field(description="Number of items per page.")
    start_index: Number = Field(description="Start index of the current page.")
    resources: list[ScimUser] = Field(description="List of user resources.")


# 3) create-task
class CreateTaskInput(StrictModel):
    subject: str = Field(min_length=1, description="The subject/title of the task.")
    description: str | None = Field(default=None, description="A descriptive text of the task.")
    assignees: list[NonEmptyStr] = Field(
        min_length=1,
        description=(
            "List of user IDs or group IDs to assign the task to. "
            "Must be retrieved via the list-users tool."
        ),
    )
    due_date: str = Field(
        pattern=RFC3339_DATE_PATTERN,
        description="Due date in RFC3339 format (e.g., 2025-10-16 or 2025-10-16T00:00:00Z).",
    )


# 4) list-tasks
class Task(UpstreamModel):
    subject: str = Field(description="The subject or title of the task.")
    description: str | None = Field(default=None, description="Detailed description of the task.")
    assigned_users: list[str] = Field(description="Array of assigned user IDs.")
    assigned_groups: list[str] | None = Field(
        default=None, description="Array of assigned group IDs."
    )
    sender_label: str = Field(description="Display name of the sender.")
    sender: str = Field(description="Unique sender ID.")
    receive_date: str = Field(description="Date when the task was received.")
    due_date: str = Field(description="Deadline for the task.")
    priority: Number = Field(description="Priority level of the task.")
    id: str = Field(description="Unique identifier for the task.")
    completed: StrictBool = Field(description="Indicates whether the task is completed.")
    editor: str | None = Field(default=None, description="Editor ID if applicable.")
    editor_label: str | None = Field(default=None, description="Display name of the editor.")
    correlation_key: str | None = Field(
        default=None, description="Correlation key for idempotency."
    )
    read_by_current_user: StrictBool = Field(
        description="Indicates if the current user has read the task."
    )
    order_value: Number = Field(description="Numeric value for sorting tasks.")
    retention_time: str | None = Field(
        default=None, description="Retention period (e.g., P30D)."
    )
    lock_holder: str | None = Field(default=None, description="ID of the user holding the lock.")
    dms_references: list[str] | None = Field(
        default=None, description="References to related DMS documents."
    )
    action_scopes: dict[str, list[str]] = Field(
        description="Available actions and their scopes."
    )
    undelivered: StrictBool = Field(description="Indicates if the task was undelivered.")
    links: dict[str, Any] = Field(alias="_links", description="Hyperlinks related to the task.")


class TaskEmbedded(UpstreamModel):
    tasks: list[Task]


class ListTasksOutput(UpstreamModel):
    embedded: TaskEmbedded = Field(alias="_embedded")
    links: dict[str, Any] = Field(alias="_links", description="Links for the search result.")


# ---------------------------------
# Tool Spec, Reply, Error Mapping
# ---------------------------------


@dataclass(frozen=True)
class ToolReply:
    """Uniform tool result: one text block plus optional structured content."""

    text: str
    structured: dict[str, Any] | None = None


ToolAdapter = Callable[[BaseModel], Awaitable[ToolReply]]


@dataclass(frozen=True)
class ToolSpec:
    name: str
    title: str
    description: str
    input_model: type[BaseModel]
    output_model: type[BaseModel] | None = None
    adapter: ToolAdapter | None = None

    def input_schema(self) -> dict[str, Any]:
        return self.input_model.model_json_schema(by_alias=True)

    def output_schema(self) -> dict[str, Any] | None:
        if self.output_model is None:
            return None
        return self.output_model.model_json_schema(by_alias=True)


class UnknownTool(LookupError):
    """Raised when a tool name is not registered."""


def validate_output(tool_name: str, model: type[BaseModel], payload: Any) -> dict[str, Any]:
    """
    Validate an upstream payload against a tool's output contract.

    Returns the validated structure in wire form (camelCase, unknown fields dropped, absent
    optionals omitted). Raises SchemaViolation so no partial result leaves the tool.
    """
    try:
        validated = model.model_validate(payload)
    except ValidationError as e:
        raise SchemaViolation(tool_name, str(e)) from e
    return validated.model_dump(by_alias=True, exclude_none=True, mode="json")


def _sanitize_args_summary(tool_name: str, args: dict[str, Any]) -> dict[str, Any]:
    # Keep low-cardinality fields only; never echo question text or descriptions
    out: dict[str, Any] = {"tool_name": tool_name}
    if "assignees" in args and isinstance(args["assignees"], list):
        out["assignee_count"] = len(args["assignees"])
    if "due_date" in args:
        out["due_date"] = args["due_date"]
    return out


def _sanitize_result_summary(reply: ToolReply) -> dict[str, Any]:
    out: dict[str, Any] = {"text_length": len(reply.text)}
    if reply.structured is not None:
        out["structured_keys"] = sorted(reply.structured.keys())
    return out


# ---------------
# Tool Adapters
# ---------------


async def _adapter_ask_assistant(args: AskAssistantInput) -> ToolReply:
    require_authorization()
    s = get_settings()
    prompt_body = {
        "prompt": {"template": args.question},
        "context": {"type": "assistant", "assistantId": s.assistant_id},
    }
    prompt_id = await upstream.create_prompt(prompt_body)
    _LOGGER.info("ask-assistant: prompt created id=%s", prompt_id)
    payload = await poll_prompt(prompt_id)
    payload = prefix_citation_links(payload, s.citation_link_prefix)
    return ToolReply(text=json.dumps(payload, ensure_ascii=False), structured=payload)


async def _adapter_list_users(args: EmptyInput) -> ToolReply:
    require_authorization()
    data = await upstream.list_users()
    validated = validate_output("list-users", ListUsersOutput, data)
    return ToolReply(text=f"Retrieved {validated['totalResults']} users.", structured=validated)


async def _adapter_create_task(args: CreateTaskInput) -> ToolReply:
    require_authorization()
    correlation_key = await upstream.create_task(
        subject=args.subject,
        description=args.description,
        assignees=args.assignees,
        due_date=args.due_date,
    )
    _LOGGER.info("create-task: created correlation_key=%s", correlation_key)
    return ToolReply(
        text=(
            f'✅ Task "{args.subject}" created successfully for '
            f"{len(args.assignees)} assignee(s)."
        )
    )


async def _adapter_list_tasks(args: EmptyInput) -> ToolReply:
    require_authorization()
    data = await upstream.list_tasks()
    validated = validate_output("list-tasks", ListTasksOutput, data)
    tasks = validated["_embedded"]["tasks"]
    first = tasks[0]["subject"] if tasks else "none"
    return ToolReply(
        text=f'✅ Retrieved {len(tasks)} task(s). First task: "{first}".',
        structured=validated,
    )


class ToolRegistry:
    """
    Tool Registry with validation and observability.

    Methods:
      - register_tool(spec)
      - get_spec(name)
      - list_specs()
      - validate_args(name, args)
      - execute(name, args)
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}
        self._register_all()

    def register_tool(self, spec: ToolSpec) -> None:
        if not spec.name or not spec.adapter:
            raise ValueError("ToolSpec requires name and adapter")
        if spec.name in self._tools:
            raise ValueError(f"Tool already registered: {spec.name}")
        self._tools[spec.name] = spec

    def get_spec(self, name: str) -> ToolSpec | None:
        return self._tools.get(name)

    def list_specs(self) -> list[ToolSpec]:
        return list(self._tools.values())

    def validate_args(self, name: str, args: dict[str, Any] | None) -> BaseModel:
        spec = self.get_spec(name)
        if spec is None:
            raise UnknownTool(f"Unknown tool: {name}")
        return spec.input_model.model_validate(args or {})

    async def execute(self, name: str, args: dict[str, Any] | None) -> ToolReply:
        """
        Execute a tool with:
          1) name whitelist
          2) input validation
          3) adapter execution (adapters validate their own output contract)
          4) observability: logging, metrics, tracing

        Errors are logged and re-raised; the MCP server turns them into error results.
        """
        validated_input = self.validate_args(name, args)
        args_summary = _sanitize_args_summary(name, validated_input.model_dump())
        spec = self._tools[name]

        TOOL_CALL_COUNT.labels(tool_name=name).inc()
        start = time.monotonic()
        with start_span("tool.call", tool_name=name, args_summary=str(args_summary)):
            try:
                reply = await spec.adapter(validated_input)  # type: ignore[misc]
            except Exception as e:
                duration = max(0.0, time.monotonic() - start)
                TOOL_LATENCY_SECONDS.labels(tool_name=name).observe(duration)
                _LOGGER.error(
                    "tool.execute.error: name=%s duration=%.4fs credential=%s error=%s",
                    name,
                    duration,
                    credential_scheme(),
                    e,
                )
                raise

        duration = max(0.0, time.monotonic() - start)
        TOOL_LATENCY_SECONDS.labels(tool_name=name).observe(duration)
        _LOGGER.info(
            "tool.execute: name=%s duration=%.4fs args=%s result=%s",
            name,
            duration,
            args_summary,
            _sanitize_result_summary(reply),
        )
        return reply

    def _register_all(self) -> None:
        # 1) ask-assistant
        self.register_tool(
            ToolSpec(
                name="ask-assistant",
                title="d.velop pilot request",
                description=(
                    "Ask the d.velop pilot about quality assurance documents and get a response."
                ),
                input_model=AskAssistantInput,
                adapter=_adapter_ask_assistant,
            )
        )
        # 2) list-users
        self.register_tool(
            ToolSpec(
                name="list-users",
                title="List Users",
                description="Retrieve a list of all users from the SCIM endpoint.",
                input_model=EmptyInput,
                output_model=ListUsersOutput,
                adapter=_adapter_list_users,
            )
        )
        # 3) create-task; the upstream answers 201 with an empty body, so no output contract
        self.register_tool(
            ToolSpec(
                name="create-task",
                title="Create Task",
                description=(
                    "Creates a new task in the system with subject, description, assignees, "
                    "correlation key, and due date."
                ),
                input_model=CreateTaskInput,
                adapter=_adapter_create_task,
            )
        )
        # 4) list-tasks
        self.register_tool(
            ToolSpec(
                name="list-tasks",
                title="List Tasks",
                description="Retrieve all tasks sorted by received date in ascending order.",
                input_model=EmptyInput,
                output_model=ListTasksOutput,
                adapter=_adapter_list_tasks,
            )
        )


__all__ = [
    "ToolSpec",
    "ToolReply",
    "ToolRegistry",
    "UnknownTool",
    "validate_output",
    "AskAssistantInput",
    "CreateTaskInput",
    "EmptyInput",
    "ListUsersOutput",
    "ListTasksOutput",
]

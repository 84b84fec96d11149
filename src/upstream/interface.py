from __future__ import annotations


class UpstreamClientError(RuntimeError):
    """
    Base class for failures talking to the d.velop services.

    - Messages carry upstream diagnostics (status, reason, body) but never the forwarded
      credential.
    """


class UpstreamError(UpstreamClientError):
    """Non-success HTTP status from an upstream call."""

    def __init__(self, operation: str, status: int, status_text: str, body: str = "") -> None:
        self.operation = operation
        self.status = status
        self.status_text = status_text
        self.body = body
        super().__init__(f"{operation} failed: {status} {status_text} - {body}")


class MalformedResponse(UpstreamClientError):
    """Success status, but the payload lacks a field the caller depends on."""


class SchemaViolation(UpstreamClientError):
    """Upstream payload does not match a tool's declared output contract."""

    def __init__(self, tool_name: str, detail: str) -> None:
        self.tool_name = tool_name
        self.detail = detail
        super().__init__(f"{tool_name}: upstream payload does not match output contract: {detail}")


class PollTimeout(UpstreamClientError):
    """Prompt did not reach 'Completed' within the configured number of status reads."""

    def __init__(self, prompt_id: str, attempts: int) -> None:
        self.prompt_id = prompt_id
        self.attempts = attempts
        super().__init__(f"Prompt {prompt_id} not completed after {attempts} status checks")


__all__ = [
    "UpstreamClientError",
    "UpstreamError",
    "MalformedResponse",
    "SchemaViolation",
    "PollTimeout",
]

"""
Per-request context carrier.

The transport layer binds an immutable snapshot of the inbound request headers for the dynamic
extent of one request. Any code awaited from inside that extent, including tasks spawned from it
(asyncio copies contextvars into new tasks), can look headers up without the value being passed
down explicitly. Work started outside the extent, such as threads or tasks created before the
binding, does not observe it.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, TypeVar, Union

HeaderValue = Union[str, tuple[str, ...]]

T = TypeVar("T")


class MissingHeader(LookupError):
    """Raised when a required inbound header is absent or no request scope is active."""

    def __init__(self, header: str) -> None:
        super().__init__(f"Missing required header: {header}")
        self.header = header


def _decode(value: str | bytes) -> str:
    return value.decode("latin-1") if isinstance(value, bytes) else str(value)


@dataclass(frozen=True)
class RequestContext:
    """Read-only snapshot of one inbound request's headers, keyed by lowercase name."""

    headers: Mapping[str, HeaderValue] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_headers(cls, headers: Any) -> RequestContext:
        """
        Build a context from a mapping, a Starlette Headers object, or an ASGI header list.

        Header names are lower-cased. A header supplied several times keeps every value, in
        arrival order, as a tuple.
        """
        pairs: Iterable[tuple[Any, Any]]
        if headers is None:
            pairs = ()
        elif hasattr(headers, "raw"):
            # starlette.datastructures.Headers keeps duplicates only in .raw
            pairs = headers.raw
        elif isinstance(headers, Mapping):
            pairs = headers.items()
        else:
            pairs = headers

        grouped: dict[str, list[str]] = {}
        for raw_name, raw_value in pairs:
            name = _decode(raw_name).lower()
            values = raw_value if isinstance(raw_value, (list, tuple)) else [raw_value]
            grouped.setdefault(name, []).extend(_decode(v) for v in values)

        snapshot: dict[str, HeaderValue] = {
            name: values[0] if len(values) == 1 else tuple(values)
            for name, values in grouped.items()
        }
        return cls(headers=MappingProxyType(snapshot))

    def get(self, name: str) -> str | None:
        value = self.headers.get(name.lower())
        if isinstance(value, tuple):
            return value[0] if value else None
        return value


_CURRENT: ContextVar[RequestContext | None] = ContextVar("request_context", default=None)


def current() -> RequestContext | None:
    """Return the context bound to the running call tree, or None outside any scope."""
    return _CURRENT.get()


@contextmanager
def bind(context: RequestContext) -> Iterator[RequestContext]:
    """
    Make `context` the active snapshot until the block exits.

    Nested bindings shadow the outer one for their own extent; the outer snapshot is restored on
    exit, whether the block returns or raises.
    """
    token = _CURRENT.set(context)
    try:
        yield context
    finally:
        _CURRENT.reset(token)


async def run(context: RequestContext, body: Callable[..., Awaitable[T]], *args: Any) -> T:
    """Await body(*args) with `context` bound for its whole dynamic extent."""
    with bind(context):
        return await body(*args)


def get_header(name: str) -> str | None:
    ctx = _CURRENT.get()
    if ctx is None:
        return None
    return ctx.get(name)


def require_header(name: str) -> str:
    """
    Return the first value of `name`, raising MissingHeader only when it is absent.

    An empty value is returned as-is; callers that need a non-empty value check it themselves
    (see security.auth.require_authorization).
    """
    value = get_header(name)
    if value is None:
        raise MissingHeader(name)
    return value


__all__ = [
    "MissingHeader",
    "RequestContext",
    "bind",
    "current",
    "get_header",
    "require_header",
    "run",
]

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from config.settings import get_settings
from observability.metrics import PROMPT_POLL_ITERATIONS
from upstream import client
from upstream.interface import PollTimeout

_LOGGER = logging.getLogger("dvelop_mcp.upstream")

COMPLETED_STATUS = "Completed"


async def poll_prompt(
    prompt_id: str,
    *,
    interval: float | None = None,
    max_attempts: int | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> dict[str, Any]:
    """
    Wait until a prompt reports status 'Completed' and return that final payload.

    Each iteration sleeps `interval` seconds first, then reads the prompt. Any status other
    than the literal 'Completed' keeps waiting; a failed read raises UpstreamError immediately
    (only "not yet complete" is retried).

    Args:
        prompt_id: Identifier returned by create_prompt.
        interval: Seconds between reads; defaults to settings.poll_interval_seconds (5.0).
        max_attempts: Upper bound on status reads; defaults to settings.poll_max_attempts.
            None polls until completion.
        sleep: Awaitable delay function (injectable for tests).

    Raises:
        PollTimeout: max_attempts reads happened without reaching 'Completed'.
    """
    s = get_settings()
    delay = s.poll_interval_seconds if interval is None else interval
    limit = s.poll_max_attempts if max_attempts is None else max_attempts

    attempts = 0
    status = ""
    payload: dict[str, Any] = {}
    while status != COMPLETED_STATUS:
        if limit is not None and attempts >= limit:
            raise PollTimeout(prompt_id, attempts)
        await sleep(delay)
        payload = await client.get_prompt(prompt_id)
        attempts += 1
        PROMPT_POLL_ITERATIONS.inc()
        status = str(payload.get("status") or "")
        _LOGGER.debug("prompt.poll: id=%s attempt=%d status=%s", prompt_id, attempts, status)
    _LOGGER.info("prompt.completed: id=%s attempts=%d", prompt_id, attempts)
    return payload


def _citation_href_holder(citation: Any) -> dict[str, Any] | None:
    if not isinstance(citation, dict):
        return None
    links = citation.get("_links")
    if not isinstance(links, dict):
        return None
    source = links.get("sourceUri")
    return source if isinstance(source, dict) else None


def prefix_citation_links(payload: dict[str, Any], prefix: str) -> dict[str, Any]:
    """
    Prepend `prefix` to every citation's `_links.sourceUri.href` in place and return `payload`.

    Citations live at payload['result']['context']['citations']. The prefix is applied to any
    non-empty href, relative or not; citations without an href are left untouched.
    """
    result = payload.get("result") if isinstance(payload, dict) else None
    context = result.get("context") if isinstance(result, dict) else None
    citations = context.get("citations") if isinstance(context, dict) else None
    if not isinstance(citations, list):
        return payload

    for citation in citations:
        source = _citation_href_holder(citation)
        href = source.get("href") if source is not None else None
        if not href:
            continue
        source["href"] = f"{prefix}{href}"
        _LOGGER.debug("citation.link: original=%s prefixed=%s", href, source["href"])
    return payload


__all__ = ["COMPLETED_STATUS", "poll_prompt", "prefix_citation_links"]

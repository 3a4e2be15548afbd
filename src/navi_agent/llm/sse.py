"""
Server-sent event framing shared by the streaming providers.
"""

import json
from typing import Any, AsyncIterator

import httpx
import structlog

logger = structlog.get_logger()

DATA_PREFIX = "data:"
DONE_MARKER = "[DONE]"


def parse_data_line(line: str) -> dict[str, Any] | None:
    """Decode one SSE line into a JSON payload.

    Returns None for non-data lines and for payloads that are not a JSON
    object. The end-of-stream marker is handled by the caller.
    """
    if not line.startswith(DATA_PREFIX):
        return None
    data = line[len(DATA_PREFIX):].strip()
    if not data or data == DONE_MARKER:
        return None
    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed SSE payload", data=data[:200])
        return None
    return payload if isinstance(payload, dict) else None


def is_done_line(line: str) -> bool:
    return line.startswith(DATA_PREFIX) and line[len(DATA_PREFIX):].strip() == DONE_MARKER


async def iter_sse_payloads(response: httpx.Response) -> AsyncIterator[dict[str, Any]]:
    """Yield decoded `data:` payloads until `[DONE]` or connection close."""
    async for line in response.aiter_lines():
        if is_done_line(line):
            return
        payload = parse_data_line(line)
        if payload is not None:
            yield payload


def parse_tool_arguments(fragments: list[str]) -> dict[str, Any]:
    """Join streamed JSON fragments into a tool input object.

    Malformed or non-object JSON degrades to an empty input.
    """
    raw = "".join(fragments)
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Malformed tool arguments from provider", raw=raw[:200])
        return {}
    return value if isinstance(value, dict) else {}

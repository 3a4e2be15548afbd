"""
Anthropic Messages API provider.

Block-oriented SSE: message_start / content_block_start / content_block_delta /
content_block_stop / message_delta framing, tool arguments streamed as JSON
text fragments per block index.
"""

from dataclasses import dataclass, field
from typing import Any, AsyncIterator

import structlog

from ..config import ProviderConfig
from .base import (
    BaseProvider,
    ErrorEvent,
    Message,
    StopEvent,
    StreamEvent,
    TextEvent,
    ToolDefinition,
    ToolUseEvent,
    UsageEvent,
)
from .sse import parse_tool_arguments

logger = structlog.get_logger()

ANTHROPIC_VERSION = "2023-06-01"


@dataclass
class _ToolBlockBuilder:
    id: str
    name: str
    json_chunks: list[str] = field(default_factory=list)


class AnthropicProvider(BaseProvider):
    """Anthropic Claude provider."""

    name = "anthropic"

    def _convert_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        """Convert Messages to Anthropic format (the native block shape)."""
        return [msg.to_dict() for msg in messages]

    def _convert_tools(self, tools: list[ToolDefinition]) -> list[dict[str, Any]]:
        """Convert ToolDefinitions to Anthropic format."""
        return [tool.to_dict() for tool in tools]

    def build_request(
        self,
        config: ProviderConfig,
        messages: list[Message],
        system_prompt: str | None = None,
        tools: list[ToolDefinition] | None = None,
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        body: dict[str, Any] = {
            "model": config.model,
            "max_tokens": config.max_tokens,
            "messages": self._convert_messages(messages),
            "stream": True,
        }

        if system_prompt:
            body["system"] = system_prompt

        if tools:
            body["tools"] = self._convert_tools(tools)

        headers = {
            "Content-Type": "application/json",
            "x-api-key": config.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        return f"{config.base_url}/v1/messages", headers, body

    async def parse_stream(
        self, payloads: AsyncIterator[dict[str, Any]]
    ) -> AsyncIterator[StreamEvent]:
        tool_blocks: dict[int, _ToolBlockBuilder] = {}

        async for event in payloads:
            event_type = event.get("type")
            index = event.get("index")
            delta = event.get("delta") or {}

            if event_type == "message_start":
                usage = (event.get("message") or {}).get("usage") or {}
                yield UsageEvent(input_tokens=usage.get("input_tokens", 0) or 0)

            elif event_type == "content_block_start":
                block = event.get("content_block") or {}
                if block.get("type") == "tool_use" and index is not None:
                    tool_blocks[index] = _ToolBlockBuilder(
                        id=block.get("id", ""),
                        name=block.get("name", ""),
                    )

            elif event_type == "content_block_delta":
                if delta.get("type") == "text_delta" and delta.get("text"):
                    yield TextEvent(delta["text"])
                elif delta.get("type") == "input_json_delta" and index is not None:
                    builder = tool_blocks.get(index)
                    if builder and delta.get("partial_json"):
                        builder.json_chunks.append(delta["partial_json"])

            elif event_type == "content_block_stop" and index is not None:
                builder = tool_blocks.pop(index, None)
                if builder:
                    yield ToolUseEvent(
                        id=builder.id,
                        name=builder.name,
                        input=parse_tool_arguments(builder.json_chunks),
                    )

            elif event_type == "message_delta":
                usage = event.get("usage")
                if usage:
                    yield UsageEvent(output_tokens=usage.get("output_tokens", 0) or 0)
                if delta.get("stop_reason"):
                    yield StopEvent(delta["stop_reason"])

            elif event_type == "error":
                message = (event.get("error") or {}).get("message") or "Unknown stream error"
                logger.error("Anthropic stream error event", error=message)
                yield ErrorEvent(message)
                return

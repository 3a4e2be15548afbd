"""
OpenAI Chat Completions provider (also works with OpenRouter and compatible APIs).

Delta-chunk SSE: tool calls are addressed by integer index and completed by
an aggregate finish_reason.
"""

import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

import structlog

from ..config import ProviderConfig
from .base import (
    STOP_END_TURN,
    STOP_MAX_TOKENS,
    STOP_TOOL_USE,
    BaseProvider,
    ErrorEvent,
    Message,
    StopEvent,
    StreamEvent,
    TextBlock,
    TextEvent,
    ToolDefinition,
    ToolResultBlock,
    ToolUseBlock,
    ToolUseEvent,
    UsageEvent,
)
from .sse import parse_tool_arguments

logger = structlog.get_logger()

FINISH_REASON_MAP = {
    "stop": STOP_END_TURN,
    "tool_calls": STOP_TOOL_USE,
    "length": STOP_MAX_TOKENS,
}


@dataclass
class _ToolCallBuilder:
    id: str
    name: str
    arg_chunks: list[str] = field(default_factory=list)


def normalize_finish_reason(reason: str) -> str:
    return FINISH_REASON_MAP.get(reason, reason)


class OpenAIProvider(BaseProvider):
    """OpenAI GPT provider."""

    name = "openai"

    def _convert_messages(
        self, messages: list[Message], system_prompt: str | None = None
    ) -> list[dict[str, Any]]:
        """Convert Messages to OpenAI format."""
        converted: list[dict[str, Any]] = []

        if system_prompt:
            converted.append({"role": "system", "content": system_prompt})

        for msg in messages:
            if isinstance(msg.content, str):
                converted.append({"role": msg.role, "content": msg.content})
                continue

            if msg.role == "assistant":
                text_parts: list[str] = []
                tool_calls: list[dict[str, Any]] = []

                for block in msg.content:
                    if isinstance(block, TextBlock):
                        text_parts.append(block.text)
                    elif isinstance(block, ToolUseBlock):
                        tool_calls.append({
                            "id": block.id,
                            "type": "function",
                            "function": {
                                "name": block.name,
                                "arguments": json.dumps(block.input),
                            },
                        })

                assistant: dict[str, Any] = {
                    "role": "assistant",
                    "content": "".join(text_parts) if text_parts else None,
                }
                if tool_calls:
                    assistant["tool_calls"] = tool_calls
                converted.append(assistant)
            else:
                for block in msg.content:
                    if isinstance(block, ToolResultBlock):
                        converted.append({
                            "role": "tool",
                            "tool_call_id": block.tool_use_id,
                            "content": block.content,
                        })
                    elif isinstance(block, TextBlock):
                        converted.append({"role": "user", "content": block.text})

        return converted

    def _convert_tools(self, tools: list[ToolDefinition]) -> list[dict[str, Any]]:
        """Convert ToolDefinitions to OpenAI format."""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.input_schema,
                },
            }
            for tool in tools
        ]

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
            "messages": self._convert_messages(messages, system_prompt),
            "stream": True,
            "stream_options": {"include_usage": True},
        }

        if tools:
            body["tools"] = self._convert_tools(tools)

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {config.api_key}",
        }
        return f"{config.base_url}/v1/chat/completions", headers, body

    async def parse_stream(
        self, payloads: AsyncIterator[dict[str, Any]]
    ) -> AsyncIterator[StreamEvent]:
        builders: dict[int, _ToolCallBuilder] = {}

        async for chunk in payloads:
            error = chunk.get("error")
            if error:
                if isinstance(error, dict):
                    message = error.get("message") or "Unknown stream error"
                else:
                    message = str(error)
                logger.error("OpenAI stream error event", error=message)
                yield ErrorEvent(message)
                return

            choices = chunk.get("choices") or []
            choice = choices[0] if choices else {}
            delta = choice.get("delta") or {}

            if delta.get("content"):
                yield TextEvent(delta["content"])

            for tc in delta.get("tool_calls") or []:
                index = tc.get("index")
                if index is None:
                    continue
                function = tc.get("function") or {}
                if tc.get("id"):
                    builders[index] = _ToolCallBuilder(
                        id=tc["id"],
                        name=function.get("name") or "",
                    )
                builder = builders.get(index)
                if builder and function.get("arguments"):
                    builder.arg_chunks.append(function["arguments"])

            finish_reason = choice.get("finish_reason")
            if finish_reason:
                if finish_reason == "tool_calls":
                    for index in sorted(builders):
                        builder = builders[index]
                        yield ToolUseEvent(
                            id=builder.id,
                            name=builder.name,
                            input=parse_tool_arguments(builder.arg_chunks),
                        )
                    builders.clear()
                elif builders:
                    logger.warning(
                        "Discarding incomplete tool calls",
                        finish_reason=finish_reason,
                        pending=len(builders),
                    )
                    builders.clear()
                yield StopEvent(normalize_finish_reason(finish_reason))

            usage = chunk.get("usage")
            if usage:
                yield UsageEvent(
                    input_tokens=usage.get("prompt_tokens", 0) or 0,
                    output_tokens=usage.get("completion_tokens", 0) or 0,
                )

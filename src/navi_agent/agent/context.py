"""
Context management - keep the conversation within a token budget.

Token counts are estimated with a characters/4 heuristic; no tokenizer
dependency. All functions here are pure: they never mutate their inputs.
"""

import json
import math
from dataclasses import dataclass, field
from typing import Any, Literal

import structlog

from ..errors import ContextBudgetExhaustedError, ContextLimitExceededError
from ..llm.base import (
    ContentBlock,
    Message,
    TextBlock,
    ToolDefinition,
    ToolResultBlock,
    ToolUseBlock,
)

logger = structlog.get_logger()

CHARS_PER_TOKEN = 4

# Framing overhead for tool_use / tool_result blocks (ids, structure)
BLOCK_OVERHEAD_TOKENS = 10

DEFAULT_CONTEXT_LIMIT = 200_000

MODEL_CONTEXT_LIMITS: dict[str, int] = {
    "claude-sonnet-4-20250514": 200_000,
    "claude-opus-4-20250514": 200_000,
    "claude-haiku-35-20241022": 200_000,
    "gpt-4o": 128_000,
    "gpt-4o-mini": 128_000,
}

ContextStrategy = Literal["truncate", "error"]


@dataclass
class ContextConfig:
    """Token budget for a single model call."""

    max_context_tokens: int = DEFAULT_CONTEXT_LIMIT
    strategy: ContextStrategy = "truncate"
    reserved_tokens: int = 0


@dataclass
class TruncationResult:
    """Messages to send, plus how many were omitted."""

    messages: list[Message] = field(default_factory=list)
    dropped: int = 0


def get_context_limit(model: str) -> int:
    """Context window size for a model, defaulting for unknown models."""
    return MODEL_CONTEXT_LIMITS.get(model, DEFAULT_CONTEXT_LIMIT)


def _chars_to_tokens(length: int) -> int:
    return math.ceil(length / CHARS_PER_TOKEN)


def _compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _estimate_block_tokens(block: ContentBlock) -> int:
    if isinstance(block, TextBlock):
        return _chars_to_tokens(len(block.text))
    if isinstance(block, ToolUseBlock):
        return (
            _chars_to_tokens(len(block.name))
            + _chars_to_tokens(len(_compact_json(block.input)))
            + BLOCK_OVERHEAD_TOKENS
        )
    if isinstance(block, ToolResultBlock):
        return _chars_to_tokens(len(block.content)) + BLOCK_OVERHEAD_TOKENS
    return 0


def estimate_tokens(message: Message) -> int:
    """Estimate token count for a message."""
    if isinstance(message.content, str):
        return _chars_to_tokens(len(message.content))
    return sum(_estimate_block_tokens(block) for block in message.content)


def estimate_system_tokens(
    system_prompt: str | None,
    tools: list[ToolDefinition] | None,
) -> int:
    """Estimate tokens consumed by the system prompt and tool schemas."""
    total = 0
    if system_prompt:
        total += _chars_to_tokens(len(system_prompt))
    if tools:
        total += _chars_to_tokens(len(_compact_json([tool.to_dict() for tool in tools])))
    return total


def total_message_tokens(messages: list[Message]) -> int:
    return sum(estimate_tokens(msg) for msg in messages)


def truncate_messages(messages: list[Message], max_tokens: int) -> TruncationResult:
    """Drop the oldest messages (after the first) until the rest fit.

    The first message is always kept; the kept remainder is a contiguous
    tail of the conversation, in original order.
    """
    if not messages:
        return TruncationResult(messages=[], dropped=0)

    if total_message_tokens(messages) <= max_tokens:
        return TruncationResult(messages=list(messages), dropped=0)

    first = messages[0]
    first_tokens = estimate_tokens(first)

    if first_tokens > max_tokens:
        # Even the first message doesn't fit; send it alone and let the API decide
        return TruncationResult(messages=[first], dropped=len(messages) - 1)

    budget = max_tokens - first_tokens
    kept: list[Message] = []

    for msg in reversed(messages[1:]):
        tokens = estimate_tokens(msg)
        if tokens > budget:
            break
        kept.append(msg)
        budget -= tokens

    kept.reverse()
    result = [first, *kept]
    return TruncationResult(messages=result, dropped=len(messages) - len(result))


def manage_context(
    messages: list[Message],
    config: ContextConfig,
    system_prompt: str | None = None,
    tools: list[ToolDefinition] | None = None,
) -> TruncationResult:
    """Apply the context strategy to messages before sending.

    Raises:
        ContextBudgetExhaustedError: overhead alone fills the window.
        ContextLimitExceededError: over budget with the "error" strategy.
    """
    available = (
        config.max_context_tokens
        - estimate_system_tokens(system_prompt, tools)
        - config.reserved_tokens
    )

    if available <= 0:
        raise ContextBudgetExhaustedError(available)

    total = total_message_tokens(messages)

    if total <= available:
        return TruncationResult(messages=list(messages), dropped=0)

    if config.strategy == "error":
        raise ContextLimitExceededError(total, available)

    result = truncate_messages(messages, available)
    logger.info(
        "Context truncated",
        estimated_tokens=total,
        available_tokens=available,
        dropped=result.dropped,
    )
    return result

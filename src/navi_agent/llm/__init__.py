"""
LLM module for streaming multi-provider model access.

Providers:
- Anthropic Messages API (block-oriented SSE)
- OpenAI Chat Completions API (delta-chunk SSE, also OpenRouter/compatible)
"""

from .base import (
    BaseProvider,
    ContentBlock,
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
from .anthropic import AnthropicProvider
from .openai import OpenAIProvider
from .registry import get_provider, list_providers

__all__ = [
    "BaseProvider",
    "ContentBlock",
    "ErrorEvent",
    "Message",
    "StopEvent",
    "StreamEvent",
    "TextBlock",
    "TextEvent",
    "ToolDefinition",
    "ToolResultBlock",
    "ToolUseBlock",
    "ToolUseEvent",
    "UsageEvent",
    "AnthropicProvider",
    "OpenAIProvider",
    "get_provider",
    "list_providers",
]

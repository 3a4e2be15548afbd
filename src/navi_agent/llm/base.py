"""
Base types for LLM providers.

All providers normalize their wire protocol to the stream events defined here,
and all conversation content is expressed as typed content blocks.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, AsyncIterator, ClassVar, Literal, Union

import httpx
import structlog

from .sse import iter_sse_payloads

if TYPE_CHECKING:
    from ..config import ProviderConfig

logger = structlog.get_logger()

DEFAULT_TIMEOUT_SECONDS = 600.0

# Normalized stop reasons
STOP_END_TURN = "end_turn"
STOP_TOOL_USE = "tool_use"
STOP_MAX_TOKENS = "max_tokens"
STOP_SEQUENCE = "stop_sequence"


@dataclass
class ToolDefinition:
    """Wire-safe definition of a tool that the LLM can use."""

    name: str
    description: str
    input_schema: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


# --- Content blocks ---


@dataclass
class TextBlock:
    """Plain text content."""

    text: str
    type: ClassVar[str] = "text"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "text": self.text}


@dataclass
class ToolUseBlock:
    """A tool invocation requested by the model."""

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)
    type: ClassVar[str] = "tool_use"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "id": self.id,
            "name": self.name,
            "input": self.input,
        }


@dataclass
class ToolResultBlock:
    """The result of a tool invocation, sent back in a user message."""

    tool_use_id: str
    content: str
    is_error: bool = False
    type: ClassVar[str] = "tool_result"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type,
            "tool_use_id": self.tool_use_id,
            "content": self.content,
        }
        if self.is_error:
            data["is_error"] = True
        return data


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock]


def block_from_dict(data: dict[str, Any]) -> ContentBlock:
    """Rebuild a content block from its wire/dict shape."""
    block_type = data.get("type")
    if block_type == "text":
        return TextBlock(text=data.get("text", ""))
    if block_type == "tool_use":
        return ToolUseBlock(
            id=data.get("id", ""),
            name=data.get("name", ""),
            input=dict(data.get("input") or {}),
        )
    if block_type == "tool_result":
        return ToolResultBlock(
            tool_use_id=data.get("tool_use_id", ""),
            content=data.get("content", ""),
            is_error=bool(data.get("is_error", False)),
        )
    raise ValueError(f"Unknown content block type: {block_type!r}")


@dataclass
class Message:
    """A message in the conversation."""

    role: Literal["user", "assistant"]
    content: str | list[ContentBlock]

    @property
    def blocks(self) -> list[ContentBlock]:
        """Content as a list of blocks (string content becomes one text block)."""
        if isinstance(self.content, str):
            return [TextBlock(text=self.content)]
        return list(self.content)

    def to_dict(self) -> dict[str, Any]:
        if isinstance(self.content, str):
            return {"role": self.role, "content": self.content}
        return {
            "role": self.role,
            "content": [block.to_dict() for block in self.content],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        content = data.get("content", "")
        if not isinstance(content, str):
            content = [block_from_dict(block) for block in content]
        return cls(role=data["role"], content=content)


# --- Stream events ---


@dataclass(frozen=True)
class TextEvent:
    text: str
    type: ClassVar[str] = "text"


@dataclass(frozen=True)
class ToolUseEvent:
    id: str
    name: str
    input: dict[str, Any]
    type: ClassVar[str] = "tool_use"


@dataclass(frozen=True)
class UsageEvent:
    """Token usage reported by the backend. Callers accumulate additively."""

    input_tokens: int = 0
    output_tokens: int = 0
    type: ClassVar[str] = "usage"


@dataclass(frozen=True)
class StopEvent:
    reason: str
    type: ClassVar[str] = "stop"


@dataclass(frozen=True)
class ErrorEvent:
    """Terminal failure of a model call. Nothing follows it."""

    message: str
    type: ClassVar[str] = "error"


StreamEvent = Union[TextEvent, ToolUseEvent, UsageEvent, StopEvent, ErrorEvent]


class BaseProvider(ABC):
    """Base class for backend adapters.

    An adapter turns a conversation into a lazily produced sequence of
    normalized stream events, consuming exactly one HTTP streaming response
    per call to :meth:`send`. Subclasses supply the request shape and the
    wire-protocol parser; transport handling lives here.
    """

    name: ClassVar[str] = ""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._client = client
        self.timeout = timeout

    @property
    def provider_name(self) -> str:
        """Get the provider name."""
        return self.name

    @abstractmethod
    def build_request(
        self,
        config: "ProviderConfig",
        messages: list[Message],
        system_prompt: str | None = None,
        tools: list[ToolDefinition] | None = None,
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        """Translate a conversation into (url, headers, json body)."""
        pass

    @abstractmethod
    def parse_stream(self, payloads: AsyncIterator[dict[str, Any]]) -> AsyncIterator[StreamEvent]:
        """Turn decoded SSE payloads into normalized events."""
        pass

    async def send(
        self,
        config: "ProviderConfig",
        messages: list[Message],
        system_prompt: str | None = None,
        tools: list[ToolDefinition] | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Stream normalized events for one model call.

        A non-success status or a transport failure yields exactly one
        ErrorEvent and ends the sequence. The response is always closed
        before control returns to the caller.
        """
        url, headers, body = self.build_request(config, messages, system_prompt, tools)
        client = self._client or httpx.AsyncClient(timeout=self.timeout)

        try:
            async with client.stream("POST", url, headers=headers, json=body) as response:
                if not response.is_success:
                    text = (await response.aread()).decode("utf-8", errors="replace")
                    logger.error(
                        "Provider API error",
                        provider=self.name,
                        status=response.status_code,
                    )
                    yield ErrorEvent(f"API error {response.status_code}: {text}")
                    return

                async for event in self.parse_stream(iter_sse_payloads(response)):
                    yield event
                    if isinstance(event, ErrorEvent):
                        return

        except httpx.HTTPError as e:
            logger.error("Provider stream error", provider=self.name, error=str(e))
            yield ErrorEvent(f"Connection error: {e}")

        finally:
            if self._client is None:
                await client.aclose()

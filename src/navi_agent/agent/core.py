"""
Core agent implementation.

This is the brain of the system. For each turn it:
1. Fits the conversation into the context budget (truncating if allowed)
2. Streams a model response through the configured provider
3. Executes requested tools one at a time, in the order they were emitted
4. Feeds tool results back and repeats until the model stops calling tools

Tool failures never abort a turn; provider errors and context failures do.
"""

import contextlib
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import structlog

from ..config import ProviderConfig, Settings, get_settings
from ..errors import ProviderError
from ..llm.base import (
    STOP_END_TURN,
    STOP_TOOL_USE,
    BaseProvider,
    ContentBlock,
    ErrorEvent,
    Message,
    StopEvent,
    TextBlock,
    TextEvent,
    ToolDefinition,
    ToolResultBlock,
    ToolUseBlock,
    ToolUseEvent,
    UsageEvent,
)
from ..llm.registry import get_provider
from ..tools import ToolRegistry, needs_confirmation
from .context import ContextConfig, manage_context

logger = structlog.get_logger()

DEFAULT_MAX_ITERATIONS = 20

UNKNOWN_TOOL_MESSAGE = "Unknown tool: {name}"
DENIED_MESSAGE = "Tool execution denied by user."


@dataclass
class ConversationState:
    """Conversation history and usage counters, owned by the agent during a turn."""

    messages: list[Message] = field(default_factory=list)
    system_prompt: str | None = None
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    turns: int = 0

    def add_user_message(self, content: str | list[ContentBlock]) -> None:
        """Add a user message."""
        self.messages.append(Message(role="user", content=content))

    def add_assistant_message(self, content: str | list[ContentBlock]) -> None:
        """Add an assistant message."""
        self.messages.append(Message(role="assistant", content=content))

    def clear(self) -> None:
        """Reset messages and counters in place. The system prompt is kept."""
        self.messages.clear()
        self.total_input_tokens = 0
        self.total_output_tokens = 0
        self.turns = 0

    @property
    def total_tokens(self) -> int:
        return self.total_input_tokens + self.total_output_tokens

    @property
    def message_count(self) -> int:
        """Get the number of messages."""
        return len(self.messages)

    def to_dict(self) -> dict[str, Any]:
        """Plain, JSON-serializable record for session storage."""
        return {
            "messages": [msg.to_dict() for msg in self.messages],
            "system_prompt": self.system_prompt,
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
            "turns": self.turns,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversationState":
        return cls(
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
            system_prompt=data.get("system_prompt"),
            total_input_tokens=int(data.get("total_input_tokens", 0)),
            total_output_tokens=int(data.get("total_output_tokens", 0)),
            turns=int(data.get("turns", 0)),
        )


def _noop(*args: Any) -> None:
    pass


@dataclass
class AgentCallbacks:
    """Side-effect points exposed to the caller.

    `confirm_tool` is awaited before a dangerous tool runs; when it is None,
    dangerous tools run without confirmation.
    """

    on_text: Callable[[str], None] = _noop
    on_tool_call: Callable[[str, dict[str, Any]], None] = _noop
    on_tool_result: Callable[[str, str, bool], None] = _noop
    on_context_truncation: Callable[[int], None] = _noop
    confirm_tool: Callable[[str, dict[str, Any]], Awaitable[bool]] | None = None


@dataclass
class TurnResult:
    """Outcome of one turn."""

    stop_reason: str
    iterations: int
    reached_iteration_limit: bool = False


@dataclass
class _ModelResponse:
    text: str
    tool_calls: list[ToolUseBlock]
    stop_reason: str


class Agent:
    """Runs the model/tool loop for a conversation.

    The agent alternates streamed model calls with tool execution until the
    model stops requesting tools, bounded by `max_iterations`.
    """

    def __init__(
        self,
        provider: BaseProvider,
        provider_config: ProviderConfig,
        tool_registry: ToolRegistry | None = None,
        context_config: ContextConfig | None = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ):
        self.provider = provider
        self.provider_config = provider_config
        self.tool_registry = tool_registry
        self.context_config = context_config or ContextConfig()
        self.max_iterations = max_iterations

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        provider_name: str | None = None,
        tool_registry: ToolRegistry | None = None,
    ) -> "Agent":
        """Build an agent from application settings."""
        settings = settings or get_settings()
        provider_config = settings.get_provider_config(provider_name)
        return cls(
            provider=get_provider(provider_config.provider),
            provider_config=provider_config,
            tool_registry=tool_registry,
            context_config=settings.get_context_config(provider_config.provider),
            max_iterations=settings.max_iterations,
        )

    def _tool_definitions(self) -> list[ToolDefinition] | None:
        if self.tool_registry is None:
            return None
        return self.tool_registry.get_definitions() or None

    async def send_message(
        self,
        state: ConversationState,
        user_text: str,
        callbacks: AgentCallbacks | None = None,
    ) -> TurnResult:
        """Append a user message and run the turn to completion.

        Raises:
            ContextError: the conversation cannot fit the context window.
            ProviderError: the provider reported an error; the turn was aborted.
        """
        state.add_user_message(user_text)
        result = await self.run_turn(state, callbacks)
        state.turns += 1
        return result

    async def run_turn(
        self,
        state: ConversationState,
        callbacks: AgentCallbacks | None = None,
    ) -> TurnResult:
        """Run the agent loop over the current conversation."""
        callbacks = callbacks or AgentCallbacks()
        tools = self._tool_definitions()
        stop_reason = STOP_END_TURN

        for iteration in range(1, self.max_iterations + 1):
            truncation = manage_context(
                state.messages,
                self.context_config,
                state.system_prompt,
                tools,
            )
            if truncation.dropped > 0:
                callbacks.on_context_truncation(truncation.dropped)
                state.messages[:] = truncation.messages

            response = await self._stream_response(state, tools, callbacks)
            stop_reason = response.stop_reason

            assistant_content: list[ContentBlock] = []
            if response.text:
                assistant_content.append(TextBlock(text=response.text))
            assistant_content.extend(response.tool_calls)
            if assistant_content:
                state.add_assistant_message(assistant_content)

            if not response.tool_calls or stop_reason != STOP_TOOL_USE:
                return TurnResult(stop_reason=stop_reason, iterations=iteration)

            tool_results: list[ContentBlock] = []
            for tool_call in response.tool_calls:
                tool_results.append(await self._execute_tool(tool_call, callbacks))
            state.add_user_message(tool_results)

        logger.warning(
            "Reached maximum tool iterations",
            max_iterations=self.max_iterations,
            stop_reason=stop_reason,
        )
        return TurnResult(
            stop_reason=stop_reason,
            iterations=self.max_iterations,
            reached_iteration_limit=True,
        )

    async def _stream_response(
        self,
        state: ConversationState,
        tools: list[ToolDefinition] | None,
        callbacks: AgentCallbacks,
    ) -> _ModelResponse:
        """Consume one model call's events in arrival order."""
        text_chunks: list[str] = []
        tool_calls: list[ToolUseBlock] = []
        stop_reason = STOP_END_TURN

        events = self.provider.send(
            self.provider_config,
            state.messages,
            state.system_prompt,
            tools,
        )
        async with contextlib.aclosing(events):
            async for event in events:
                if isinstance(event, TextEvent):
                    text_chunks.append(event.text)
                    callbacks.on_text(event.text)
                elif isinstance(event, ToolUseEvent):
                    tool_calls.append(ToolUseBlock(
                        id=event.id,
                        name=event.name,
                        input=dict(event.input),
                    ))
                elif isinstance(event, UsageEvent):
                    state.total_input_tokens += event.input_tokens
                    state.total_output_tokens += event.output_tokens
                elif isinstance(event, StopEvent):
                    stop_reason = event.reason
                elif isinstance(event, ErrorEvent):
                    logger.error(
                        "Provider error, aborting turn",
                        provider=self.provider.provider_name,
                        error=event.message,
                    )
                    raise ProviderError(event.message, self.provider.provider_name)

        return _ModelResponse(
            text="".join(text_chunks),
            tool_calls=tool_calls,
            stop_reason=stop_reason,
        )

    async def _execute_tool(
        self,
        tool_call: ToolUseBlock,
        callbacks: AgentCallbacks,
    ) -> ToolResultBlock:
        """Run one tool call; every failure becomes an error result."""
        name = tool_call.name
        callbacks.on_tool_call(name, tool_call.input)

        tool = self.tool_registry.get(name) if self.tool_registry else None

        if tool is None:
            content, is_error = UNKNOWN_TOOL_MESSAGE.format(name=name), True

        elif (
            callbacks.confirm_tool is not None
            and needs_confirmation(name)
            and not await callbacks.confirm_tool(name, tool_call.input)
        ):
            logger.info("Tool execution denied", tool=name)
            content, is_error = DENIED_MESSAGE, True

        else:
            try:
                logger.info("Executing tool", tool=name, arguments=tool_call.input)
                content, is_error = str(await tool.execute(tool_call.input)), False
            except Exception as e:
                logger.warning("Tool execution error", tool=name, error=str(e))
                content, is_error = str(e) or type(e).__name__, True

        callbacks.on_tool_result(name, content, is_error)
        return ToolResultBlock(tool_use_id=tool_call.id, content=content, is_error=is_error)

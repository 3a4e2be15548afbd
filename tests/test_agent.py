"""
Tests for agent module.
"""

import os

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from navi_agent.agent.context import ContextConfig
from navi_agent.agent.core import Agent, AgentCallbacks, ConversationState
from navi_agent.config import ProviderConfig, Settings
from navi_agent.errors import ContextLimitExceededError, ProviderError
from navi_agent.llm import AnthropicProvider, OpenAIProvider
from navi_agent.llm.base import (
    BaseProvider,
    ErrorEvent,
    Message,
    StopEvent,
    TextBlock,
    TextEvent,
    ToolResultBlock,
    ToolUseBlock,
    ToolUseEvent,
    UsageEvent,
)
from navi_agent.tools import Tool, ToolParameter, ToolRegistry

CONFIG = ProviderConfig(
    provider="anthropic",
    api_key="test-key",
    model="test-model",
    base_url="https://api.test.com",
)


class ScriptedProvider(BaseProvider):
    """Replays one scripted event list per model call."""

    name = "scripted"

    def __init__(self, responses, repeat_last: bool = False):
        super().__init__()
        self.responses = list(responses)
        self.repeat_last = repeat_last
        self.calls: list[list[Message]] = []

    def build_request(self, config, messages, system_prompt=None, tools=None):
        return "", {}, {}

    async def parse_stream(self, payloads):
        return
        yield

    async def send(self, config, messages, system_prompt=None, tools=None):
        self.calls.append(list(messages))
        if self.repeat_last and len(self.responses) == 1:
            events = self.responses[0]
        else:
            events = self.responses.pop(0)
        for event in events:
            yield event


def make_tool(name: str, handler) -> Tool:
    return Tool(
        name=name,
        description=f"{name} tool",
        handler=handler,
        parameters=[ToolParameter(name="path", param_type="string", description="Path")],
    )


def make_agent(provider, tools=None, **kwargs) -> Agent:
    registry = ToolRegistry(tools) if tools is not None else None
    return Agent(provider=provider, provider_config=CONFIG, tool_registry=registry, **kwargs)


def tool_turn(tool_id: str = "t1", name: str = "read_file", tool_input=None):
    return [
        UsageEvent(input_tokens=10),
        TextEvent("Let me check."),
        ToolUseEvent(id=tool_id, name=name, input=tool_input or {"path": "notes.txt"}),
        UsageEvent(output_tokens=4),
        StopEvent("tool_use"),
    ]


def text_turn(text: str = "Done."):
    return [
        UsageEvent(input_tokens=20),
        TextEvent(text),
        UsageEvent(output_tokens=3),
        StopEvent("end_turn"),
    ]


# --- ConversationState ---


def test_conversation_state_add_messages():
    """Test adding user and assistant messages."""
    state = ConversationState()
    state.add_user_message("Hello!")
    state.add_assistant_message([TextBlock("Hi there!")])

    assert state.message_count == 2
    assert state.messages[0].role == "user"
    assert state.messages[0].content == "Hello!"
    assert state.messages[1].role == "assistant"


def test_conversation_state_clear_in_place():
    """Test clear resets history and counters but keeps the system prompt."""
    state = ConversationState(system_prompt="Be brief.")
    messages = state.messages
    state.add_user_message("Hello!")
    state.total_input_tokens = 10
    state.total_output_tokens = 5
    state.turns = 2

    state.clear()

    assert state.messages is messages
    assert state.messages == []
    assert state.total_tokens == 0
    assert state.turns == 0
    assert state.system_prompt == "Be brief."


def test_conversation_state_dict_round_trip():
    """Test the state survives serialization for session storage."""
    state = ConversationState(system_prompt="Be brief.", total_input_tokens=7, turns=1)
    state.add_user_message("read it")
    state.add_assistant_message([ToolUseBlock(id="t1", name="read_file", input={"path": "a"})])
    state.add_user_message([ToolResultBlock(tool_use_id="t1", content="oops", is_error=True)])

    restored = ConversationState.from_dict(state.to_dict())

    assert restored == state


# --- Agent loop ---


@pytest.mark.asyncio
async def test_text_turn():
    """Test a plain response is committed and counted."""
    provider = ScriptedProvider([[
        UsageEvent(input_tokens=10),
        TextEvent("Hello"),
        TextEvent(" there"),
        UsageEvent(output_tokens=5),
        StopEvent("end_turn"),
    ]])
    agent = make_agent(provider)
    state = ConversationState()
    chunks: list[str] = []

    result = await agent.send_message(state, "Hi", AgentCallbacks(on_text=chunks.append))

    assert chunks == ["Hello", " there"]
    assert result.stop_reason == "end_turn"
    assert result.iterations == 1
    assert not result.reached_iteration_limit
    assert state.messages == [
        Message(role="user", content="Hi"),
        Message(role="assistant", content=[TextBlock("Hello there")]),
    ]
    assert state.total_input_tokens == 10
    assert state.total_output_tokens == 5
    assert state.turns == 1


@pytest.mark.asyncio
async def test_tool_loop_feeds_results_back():
    """Test tool calls are executed and results sent on the next call."""
    provider = ScriptedProvider([tool_turn(), text_turn("The file says hi.")])
    read_file = AsyncMock(return_value="hi")
    agent = make_agent(provider, [make_tool("read_file", read_file)])
    state = ConversationState()
    on_tool_call = MagicMock()
    on_tool_result = MagicMock()

    result = await agent.send_message(
        state,
        "What is in notes.txt?",
        AgentCallbacks(on_tool_call=on_tool_call, on_tool_result=on_tool_result),
    )

    read_file.assert_awaited_once_with(path="notes.txt")
    on_tool_call.assert_called_once_with("read_file", {"path": "notes.txt"})
    on_tool_result.assert_called_once_with("read_file", "hi", False)

    assert result.iterations == 2
    assert [m.role for m in state.messages] == ["user", "assistant", "user", "assistant"]
    assert state.messages[1].content == [
        TextBlock("Let me check."),
        ToolUseBlock(id="t1", name="read_file", input={"path": "notes.txt"}),
    ]
    assert state.messages[2].content == [ToolResultBlock(tool_use_id="t1", content="hi")]
    assert len(provider.calls) == 2
    assert provider.calls[1][-1] == state.messages[2]
    assert state.total_input_tokens == 30
    assert state.total_output_tokens == 7
    assert state.turns == 1


@pytest.mark.asyncio
async def test_multiple_tool_results_follow_call_order():
    """Test each tool call gets exactly one result, in emission order."""
    provider = ScriptedProvider([
        [
            ToolUseEvent(id="a", name="list_dir", input={"path": "."}),
            ToolUseEvent(id="b", name="read_file", input={"path": "x"}),
            StopEvent("tool_use"),
        ],
        text_turn(),
    ])
    agent = make_agent(provider, [
        make_tool("list_dir", AsyncMock(return_value="x")),
        make_tool("read_file", AsyncMock(return_value="data")),
    ])
    state = ConversationState()

    await agent.send_message(state, "go")

    results = state.messages[2].content
    assert [r.tool_use_id for r in results] == ["a", "b"]
    assert [r.content for r in results] == ["x", "data"]


@pytest.mark.asyncio
async def test_unknown_tool_becomes_error_result():
    """Test a call to an unregistered tool does not abort the turn."""
    provider = ScriptedProvider([tool_turn(name="missing"), text_turn()])
    agent = make_agent(provider, [])
    state = ConversationState()

    result = await agent.send_message(state, "go")

    assert result.stop_reason == "end_turn"
    assert state.messages[2].content == [
        ToolResultBlock(tool_use_id="t1", content="Unknown tool: missing", is_error=True),
    ]


@pytest.mark.asyncio
async def test_tool_exception_becomes_error_result():
    """Test a failing tool reports its error to the model."""
    provider = ScriptedProvider([tool_turn(), text_turn()])
    failing = AsyncMock(side_effect=RuntimeError("Failed to read notes.txt: missing"))
    agent = make_agent(provider, [make_tool("read_file", failing)])
    state = ConversationState()

    await agent.send_message(state, "go")

    block = state.messages[2].content[0]
    assert block.is_error
    assert block.content == "Failed to read notes.txt: missing"


@pytest.mark.asyncio
async def test_dangerous_tool_denied():
    """Test a denied dangerous tool is never run."""
    provider = ScriptedProvider([tool_turn(name="exec", tool_input={"command": "rm -rf /"}), text_turn()])
    handler = AsyncMock(return_value="gone")
    agent = make_agent(provider, [make_tool("exec", handler)])
    confirm = AsyncMock(return_value=False)
    state = ConversationState()

    await agent.send_message(state, "clean up", AgentCallbacks(confirm_tool=confirm))

    confirm.assert_awaited_once_with("exec", {"command": "rm -rf /"})
    handler.assert_not_awaited()
    assert state.messages[2].content == [
        ToolResultBlock(tool_use_id="t1", content="Tool execution denied by user.", is_error=True),
    ]


@pytest.mark.asyncio
async def test_dangerous_tool_approved():
    """Test an approved dangerous tool runs."""
    provider = ScriptedProvider([tool_turn(name="write_file"), text_turn()])
    handler = AsyncMock(return_value="Wrote 2 bytes to notes.txt")
    agent = make_agent(provider, [make_tool("write_file", handler)])
    state = ConversationState()

    await agent.send_message(state, "save", AgentCallbacks(confirm_tool=AsyncMock(return_value=True)))

    handler.assert_awaited_once()
    assert not state.messages[2].content[0].is_error


@pytest.mark.asyncio
async def test_safe_tool_skips_confirmation():
    """Test safe tools never ask for confirmation."""
    provider = ScriptedProvider([tool_turn(), text_turn()])
    agent = make_agent(provider, [make_tool("read_file", AsyncMock(return_value="hi"))])
    confirm = AsyncMock(return_value=False)

    await agent.send_message(ConversationState(), "go", AgentCallbacks(confirm_tool=confirm))

    confirm.assert_not_awaited()


@pytest.mark.asyncio
async def test_provider_error_aborts_turn():
    """Test an error event raises and commits no assistant message."""
    provider = ScriptedProvider([[TextEvent("partial"), ErrorEvent("API error 500: boom")]])
    agent = make_agent(provider)
    state = ConversationState()

    with pytest.raises(ProviderError) as exc_info:
        await agent.send_message(state, "Hi")

    assert "API error 500" in str(exc_info.value)
    assert exc_info.value.provider == "scripted"
    assert state.messages == [Message(role="user", content="Hi")]
    assert state.turns == 0


@pytest.mark.asyncio
async def test_iteration_limit_stops_loop():
    """Test a model that always calls tools stops at the cap."""
    provider = ScriptedProvider([tool_turn()], repeat_last=True)
    handler = AsyncMock(return_value="again")
    agent = make_agent(provider, [make_tool("read_file", handler)], max_iterations=3)
    state = ConversationState()

    with patch("navi_agent.agent.core.logger") as mock_logger:
        result = await agent.send_message(state, "loop forever")

    assert result.reached_iteration_limit
    assert result.iterations == 3
    assert len(provider.calls) == 3
    assert handler.await_count == 3
    mock_logger.warning.assert_called_once()

    last = state.messages[-1]
    assert last.role == "user"
    assert isinstance(last.content[0], ToolResultBlock)
    tool_uses = [b for m in state.messages for b in m.blocks if isinstance(b, ToolUseBlock)]
    tool_results = [b for m in state.messages for b in m.blocks if isinstance(b, ToolResultBlock)]
    assert len(tool_uses) == len(tool_results) == 3


@pytest.mark.asyncio
async def test_tool_calls_ignored_without_tool_use_stop():
    """Test tool calls only run when the model stops for tool use."""
    provider = ScriptedProvider([[
        ToolUseEvent(id="t1", name="read_file", input={}),
        StopEvent("max_tokens"),
    ]])
    handler = AsyncMock(return_value="hi")
    agent = make_agent(provider, [make_tool("read_file", handler)])
    state = ConversationState()

    result = await agent.send_message(state, "go")

    assert result.stop_reason == "max_tokens"
    handler.assert_not_awaited()
    assert len(provider.calls) == 1


@pytest.mark.asyncio
async def test_context_truncation_reported():
    """Test truncation replaces history and notifies the caller."""
    provider = ScriptedProvider([text_turn()])
    agent = make_agent(provider, context_config=ContextConfig(max_context_tokens=60))
    state = ConversationState()
    state.add_user_message("a" * 40)
    state.add_assistant_message("b" * 80)
    state.add_user_message("c" * 80)
    on_truncation = MagicMock()

    await agent.send_message(state, "d" * 80, AgentCallbacks(on_context_truncation=on_truncation))

    on_truncation.assert_called_once_with(1)
    assert [m.content for m in provider.calls[0]] == ["a" * 40, "c" * 80, "d" * 80]
    assert state.messages[0].content == "a" * 40
    assert state.message_count == 4


@pytest.mark.asyncio
async def test_context_error_strategy_raises_before_call():
    """Test the error strategy fails the turn without calling the provider."""
    provider = ScriptedProvider([text_turn()])
    agent = make_agent(
        provider,
        context_config=ContextConfig(max_context_tokens=10, strategy="error"),
    )

    with pytest.raises(ContextLimitExceededError):
        await agent.send_message(ConversationState(), "x" * 400)

    assert provider.calls == []


def test_agent_from_settings():
    """Test building an agent from settings picks the named provider."""
    with patch.dict(os.environ, {}, clear=True):
        settings = Settings(
            _env_file=None,
            anthropic_api_key="sk-ant",
            openai_api_key="sk-oai",
            max_iterations=7,
        )

    agent = Agent.from_settings(settings)
    assert isinstance(agent.provider, AnthropicProvider)
    assert agent.max_iterations == 7
    assert agent.context_config.max_context_tokens == 200_000

    agent = Agent.from_settings(settings, provider_name="openai")
    assert isinstance(agent.provider, OpenAIProvider)
    assert agent.provider_config.model == "gpt-4o"
    assert agent.context_config.max_context_tokens == 128_000

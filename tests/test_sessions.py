"""
Tests for session persistence.
"""

import json
import re

from navi_agent.agent.core import ConversationState
from navi_agent.agent.session import SessionStore, generate_session_id
from navi_agent.llm.base import TextBlock, ToolResultBlock, ToolUseBlock


def make_state() -> ConversationState:
    state = ConversationState(system_prompt="Be brief.", total_input_tokens=12, total_output_tokens=3, turns=1)
    state.add_user_message("list files")
    state.add_assistant_message([TextBlock("Sure."), ToolUseBlock(id="t1", name="list_dir", input={"path": "."})])
    state.add_user_message([ToolResultBlock(tool_use_id="t1", content="a.txt")])
    return state


def test_generate_session_id_format():
    """Test ids are timestamped with a short random suffix."""
    session_id = generate_session_id()

    assert re.fullmatch(r"\d{8}-\d{6}-[a-z0-9]{4}", session_id)


def test_save_and_load(tmp_path):
    """Test a saved session restores the same conversation."""
    store = SessionStore(tmp_path)
    state = make_state()

    store.save("s1", state, model="test-model", provider="anthropic")
    loaded = store.load("s1")

    assert loaded is not None
    assert loaded.metadata.turns == 1
    assert loaded.metadata.total_tokens == 15
    assert loaded.to_state() == state


def test_save_keeps_created_at(tmp_path):
    """Test overwriting a session keeps its creation time."""
    store = SessionStore(tmp_path)
    state = make_state()

    first = store.save("s1", state, model="m", provider="anthropic")
    state.turns = 2
    second = store.save("s1", state, model="m", provider="anthropic")

    assert second.metadata.created_at == first.metadata.created_at
    assert second.metadata.updated_at >= first.metadata.updated_at
    assert store.load("s1").metadata.turns == 2


def test_load_missing_or_corrupt(tmp_path):
    """Test missing and unreadable sessions load as None."""
    store = SessionStore(tmp_path)
    (tmp_path / "broken.json").write_text("{not json")

    assert store.load("nope") is None
    assert store.load("broken") is None


def test_list_skips_corrupt_and_sorts_newest_first(tmp_path):
    """Test listing returns valid sessions, most recent first."""
    store = SessionStore(tmp_path)
    store.save("older", make_state(), model="m", provider="anthropic")
    store.save("newer", make_state(), model="m", provider="openai")
    (tmp_path / "broken.json").write_text("[]")

    sessions = store.list()

    assert {s.id for s in sessions} == {"newer", "older"}
    assert sessions[0].updated_at >= sessions[1].updated_at


def test_delete(tmp_path):
    """Test deleting a session."""
    store = SessionStore(tmp_path)
    store.save("s1", make_state(), model="m", provider="anthropic")

    assert store.delete("s1") is True
    assert store.delete("s1") is False
    assert store.load("s1") is None


def test_load_rejects_malformed_messages(tmp_path):
    """Test a valid envelope holding unreadable messages loads as None."""
    store = SessionStore(tmp_path)
    store.save("s1", make_state(), model="m", provider="anthropic")
    path = tmp_path / "s1.json"

    data = json.loads(path.read_text())
    data["state"]["messages"] = [{"role": "user", "content": [{"type": "image"}]}]
    path.write_text(json.dumps(data))
    assert store.load("s1") is None

    data["state"]["messages"] = [{"content": "no role"}]
    path.write_text(json.dumps(data))
    assert store.load("s1") is None

"""
Session persistence - save and restore conversations as JSON files.
"""

import secrets
import string
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, Field, ValidationError

from .core import ConversationState

logger = structlog.get_logger()

_ID_ALPHABET = string.ascii_lowercase + string.digits


class SessionMetadata(BaseModel):
    """Summary of a stored session."""

    id: str
    model: str
    provider: str
    turns: int = 0
    total_tokens: int = 0
    created_at: datetime
    updated_at: datetime


class SessionData(BaseModel):
    """A stored session: metadata plus the serialized conversation state."""

    metadata: SessionMetadata
    state: dict[str, Any] = Field(default_factory=dict)

    def to_state(self) -> ConversationState:
        return ConversationState.from_dict(self.state)


def generate_session_id() -> str:
    """Create an id like 20250101-120000-ab12."""
    now = datetime.now(timezone.utc)
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(4))
    return f"{now:%Y%m%d-%H%M%S}-{suffix}"


class SessionStore:
    """Stores conversation sessions as one JSON file per session."""

    def __init__(self, sessions_dir: str | Path):
        self.sessions_dir = Path(sessions_dir).expanduser()

    def _ensure_dir(self) -> None:
        self.sessions_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, session_id: str) -> Path:
        return self.sessions_dir / f"{session_id}.json"

    def save(
        self,
        session_id: str,
        state: ConversationState,
        model: str,
        provider: str,
    ) -> SessionData:
        """Write a session, keeping the original creation time on overwrite."""
        self._ensure_dir()

        existing = self.load(session_id)
        now = datetime.now(timezone.utc)

        data = SessionData(
            metadata=SessionMetadata(
                id=session_id,
                model=model,
                provider=provider,
                turns=state.turns,
                total_tokens=state.total_tokens,
                created_at=existing.metadata.created_at if existing else now,
                updated_at=now,
            ),
            state=state.to_dict(),
        )

        self._path(session_id).write_text(data.model_dump_json(indent=2), encoding="utf-8")
        logger.debug("Session saved", session_id=session_id, turns=state.turns)
        return data

    def load(self, session_id: str) -> SessionData | None:
        """Load a session; missing or unreadable files yield None.

        The stored conversation is rebuilt once here so that malformed
        messages are rejected at load time.
        """
        path = self._path(session_id)
        if not path.exists():
            return None

        try:
            data = SessionData.model_validate_json(path.read_text(encoding="utf-8"))
            data.to_state()
        except (OSError, ValidationError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Failed to load session", session_id=session_id, error=str(e))
            return None

        return data

    def list(self) -> list[SessionMetadata]:
        """List stored sessions, most recently updated first."""
        self._ensure_dir()

        sessions: list[SessionMetadata] = []
        for path in self.sessions_dir.glob("*.json"):
            try:
                data = SessionData.model_validate_json(path.read_text(encoding="utf-8"))
            except (OSError, ValidationError):
                logger.warning("Skipping corrupt session file", path=str(path))
                continue
            sessions.append(data.metadata)

        sessions.sort(key=lambda m: m.updated_at, reverse=True)
        return sessions

    def delete(self, session_id: str) -> bool:
        """Delete a session. Returns False when it does not exist."""
        path = self._path(session_id)
        if not path.exists():
            return False

        path.unlink()
        logger.info("Session deleted", session_id=session_id)
        return True

"""
Agent module - the brain of the system.

Includes:
- Agent: Model/tool loop with iteration cap and tool confirmation
- ConversationState: Conversation history and usage counters
- Context management: Token estimation and budget truncation
- SessionStore: JSON-file conversation persistence
"""

from .core import Agent, AgentCallbacks, ConversationState, TurnResult
from .context import ContextConfig, TruncationResult, estimate_tokens, manage_context
from .session import SessionData, SessionMetadata, SessionStore, generate_session_id

__all__ = [
    "Agent",
    "AgentCallbacks",
    "ConversationState",
    "TurnResult",
    "ContextConfig",
    "TruncationResult",
    "estimate_tokens",
    "manage_context",
    "SessionData",
    "SessionMetadata",
    "SessionStore",
    "generate_session_id",
]

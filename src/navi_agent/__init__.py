"""
navi-agent - a streaming conversational agent with a tool-execution loop.
"""

__version__ = "0.2.0"

from .agent import Agent, AgentCallbacks, ConversationState, TurnResult
from .config import ProviderConfig, Settings, get_settings
from .errors import (
    ConfigError,
    ContextBudgetExhaustedError,
    ContextError,
    ContextLimitExceededError,
    NaviError,
    ProviderError,
    UnknownProviderError,
)

__all__ = [
    "__version__",
    "Agent",
    "AgentCallbacks",
    "ConversationState",
    "TurnResult",
    "ProviderConfig",
    "Settings",
    "get_settings",
    "ConfigError",
    "ContextBudgetExhaustedError",
    "ContextError",
    "ContextLimitExceededError",
    "NaviError",
    "ProviderError",
    "UnknownProviderError",
]

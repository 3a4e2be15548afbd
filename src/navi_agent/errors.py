"""
Exceptions for fatal, turn-level failures.

Tool failures are never raised; they become error tool results.
"""


class NaviError(Exception):
    """Base exception for navi-agent."""

    pass


class ConfigError(NaviError):
    """Configuration-related errors (missing API key, bad provider)."""

    pass


class UnknownProviderError(ConfigError):
    """Provider name not present in the registry."""

    def __init__(self, name: str, available: list[str]):
        super().__init__(
            f'Unknown provider: "{name}". Available: {", ".join(available)}'
        )
        self.name = name
        self.available = available


class ContextError(NaviError):
    """The conversation cannot be fitted into the context window."""

    pass


class ContextBudgetExhaustedError(ContextError):
    """System prompt, tool schemas and reserved tokens leave no room for messages."""

    def __init__(self, available_tokens: int):
        super().__init__(
            "System prompt and tools consume the entire context window. "
            "Reduce system prompt size or tool count."
        )
        self.available_tokens = available_tokens


class ContextLimitExceededError(ContextError):
    """Messages exceed the budget and the strategy forbids truncation."""

    def __init__(self, estimated_tokens: int, available_tokens: int):
        super().__init__(
            f"Context limit exceeded: {estimated_tokens} estimated tokens, "
            f"{available_tokens} available. Use /clear or switch to truncate strategy."
        )
        self.estimated_tokens = estimated_tokens
        self.available_tokens = available_tokens


class ProviderError(NaviError):
    """The provider reported an error event; the turn was aborted."""

    def __init__(self, message: str, provider: str = ""):
        super().__init__(message)
        self.provider = provider

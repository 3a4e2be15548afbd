"""
Provider registry - maps provider names to adapter implementations.
"""

from typing import Any

from ..errors import UnknownProviderError
from .anthropic import AnthropicProvider
from .base import BaseProvider
from .openai import OpenAIProvider

PROVIDERS: dict[str, type[BaseProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
}


def get_provider(name: str, **kwargs: Any) -> BaseProvider:
    """Create the adapter registered under `name`.

    Keyword arguments (e.g. an httpx client) are passed to the adapter.
    """
    provider_cls = PROVIDERS.get(name)
    if provider_cls is None:
        raise UnknownProviderError(name, list_providers())
    return provider_cls(**kwargs)


def list_providers() -> list[str]:
    """List registered provider names."""
    return list(PROVIDERS)

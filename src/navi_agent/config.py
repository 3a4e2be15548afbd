"""
Configuration management for navi-agent

Uses pydantic-settings for environment variable parsing and validation.
"""

from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError, UnknownProviderError

if TYPE_CHECKING:
    from .agent.context import ContextConfig


PROVIDER_DEFAULTS: dict[str, dict[str, str]] = {
    "anthropic": {
        "base_url": "https://api.anthropic.com",
        "model": "claude-sonnet-4-20250514",
    },
    "openai": {
        "base_url": "https://api.openai.com",
        "model": "gpt-4o",
    },
}


class ProviderConfig(BaseModel):
    """Request options for a single provider call."""

    provider: str = "anthropic"
    api_key: str
    model: str
    base_url: str
    max_tokens: int = 4096


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Provider selection
    provider: str = Field(
        default="anthropic",
        validation_alias=AliasChoices("NAVI_PROVIDER", "provider"),
    )
    model: str | None = Field(
        default=None,
        validation_alias=AliasChoices("NAVI_MODEL", "model"),
    )
    max_tokens: int = Field(
        default=4096,
        validation_alias=AliasChoices("NAVI_MAX_TOKENS", "max_tokens"),
    )

    # API keys and endpoints
    anthropic_api_key: str = Field(default="", description="Anthropic API key")
    openai_api_key: str = Field(default="", description="OpenAI API key")
    anthropic_base_url: str = Field(default=PROVIDER_DEFAULTS["anthropic"]["base_url"])
    openai_base_url: str = Field(default=PROVIDER_DEFAULTS["openai"]["base_url"])

    # Context management
    context_strategy: Literal["truncate", "error"] = Field(
        default="truncate",
        validation_alias=AliasChoices("NAVI_CONTEXT_STRATEGY", "context_strategy"),
    )
    max_context_tokens: int | None = Field(
        default=None,
        validation_alias=AliasChoices("NAVI_MAX_CONTEXT_TOKENS", "max_context_tokens"),
        description="Override the model's context window size",
    )
    reserved_tokens: int = Field(
        default=4096,
        validation_alias=AliasChoices("NAVI_RESERVED_TOKENS", "reserved_tokens"),
        description="Tokens held back for the model's response",
    )

    # Agent loop
    max_iterations: int = Field(
        default=20,
        validation_alias=AliasChoices("NAVI_MAX_ITERATIONS", "max_iterations"),
    )

    # Sessions and logging
    sessions_dir: Path = Field(
        default=Path.home() / ".navi" / "sessions",
        validation_alias=AliasChoices("NAVI_SESSIONS_DIR", "sessions_dir"),
    )
    log_level: str = Field(
        default="WARNING",
        validation_alias=AliasChoices("NAVI_LOG_LEVEL", "log_level"),
    )

    @field_validator("provider", mode="before")
    @classmethod
    def normalize_provider(cls, v: str) -> str:
        return v.strip().lower() if isinstance(v, str) else v

    def resolve_model(self, provider: str | None = None) -> str:
        """Get the configured model, or the provider's default."""
        provider = provider or self.provider
        if self.model:
            return self.model
        defaults = PROVIDER_DEFAULTS.get(provider, PROVIDER_DEFAULTS["anthropic"])
        return defaults["model"]

    def get_provider_config(self, provider: str | None = None) -> ProviderConfig:
        """Get request configuration for a provider."""
        provider = provider or self.provider

        if provider not in PROVIDER_DEFAULTS:
            raise UnknownProviderError(provider, list(PROVIDER_DEFAULTS))

        api_key_map = {
            "anthropic": self.anthropic_api_key,
            "openai": self.openai_api_key,
        }
        base_url_map = {
            "anthropic": self.anthropic_base_url,
            "openai": self.openai_base_url,
        }

        api_key = api_key_map[provider] or self.anthropic_api_key
        if not api_key:
            env_key = f"{provider.upper()}_API_KEY"
            raise ConfigError(
                f"{env_key} is required. Set it in the environment or in a .env file."
            )

        return ProviderConfig(
            provider=provider,
            api_key=api_key,
            model=self.resolve_model(provider),
            base_url=base_url_map[provider].rstrip("/"),
            max_tokens=self.max_tokens,
        )

    def get_context_config(self, provider: str | None = None) -> "ContextConfig":
        """Get the context budget for the configured model."""
        from .agent.context import ContextConfig, get_context_limit

        max_context_tokens = self.max_context_tokens or get_context_limit(
            self.resolve_model(provider)
        )
        return ContextConfig(
            max_context_tokens=max_context_tokens,
            strategy=self.context_strategy,
            reserved_tokens=self.reserved_tokens,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

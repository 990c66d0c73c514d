"""
Configuration management for layered-agents

Uses pydantic-settings for environment variable parsing and validation.
"""

from datetime import timedelta
from functools import lru_cache
from typing import TYPE_CHECKING, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from .memory.models import InjectBudget

Provider = Literal["openai", "anthropic", "openrouter", "deepseek"]


class LLMConfig(BaseSettings):
    """Configuration for a single LLM provider."""

    model_config = SettingsConfigDict(extra="ignore")

    provider: Provider = "openai"
    model: str = "gpt-4o"
    api_key: str = ""
    base_url: str | None = None
    max_tokens: int = 4096
    temperature: float = 0.7


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # Application
    app_name: str = "layered-agents"
    debug: bool = False
    log_level: str = "INFO"

    # LLM Providers (API Keys)
    openai_api_key: str = Field(default="", description="OpenAI API key")
    anthropic_api_key: str = Field(default="", description="Anthropic API key for Claude")
    openrouter_api_key: str = Field(default="", description="OpenRouter API key")
    deepseek_api_key: str = Field(default="", description="DeepSeek API key")

    # Default model settings
    default_provider: Provider = "openai"
    default_model: str = Field(default="", description="Overrides the provider's default model")
    base_url: str = Field(default="", description="Overrides the provider's default endpoint")
    max_tokens: int = 4096
    temperature: float = 0.7

    # Agent loop
    terminal_marker: str = Field(default="[STOP]", description="Substring that ends an agent loop")
    max_agent_iterations: int = Field(default=20, ge=1, description="Model calls allowed per agent run")
    max_delegation_depth: int = Field(default=4, ge=1, description="Deepest allowed delegation level")
    delegation_scope: Literal["children", "registry"] = Field(
        default="children",
        description="Which agents a coordinator/manager may delegate to",
    )
    model_timeout_seconds: float | None = Field(default=None, description="Timeout for one model call")
    delegation_timeout_seconds: float | None = Field(
        default=None, description="Timeout for a whole delegated subtree"
    )

    # Memory
    inject_max_messages: int | None = Field(default=30, description="Raw turns considered per injection")
    inject_max_tokens: int | None = Field(default=None, description="Estimated token budget per injection")
    inject_time_window_seconds: int | None = Field(default=None, description="Only inject recent turns")
    compress_threshold: int = Field(default=6, description="Uncompressed turns that trigger compression")
    compress_take_count: int = Field(default=6, ge=1, description="Turns folded into one memory")
    merge_threshold: int = Field(default=4, ge=0, description="Active memories that trigger a merge (0 = off)")

    # Shell tool
    shell_workdir: str = Field(default=".", description="Working directory for run_safe_shell")
    shell_timeout_seconds: int = Field(default=10, description="Timeout for run_safe_shell")

    @field_validator("terminal_marker", mode="before")
    @classmethod
    def parse_terminal_marker(cls, v: str) -> str:
        v = v.strip() if v else ""
        if not v:
            raise ValueError("terminal_marker must not be empty")
        return v

    def inject_budget(self) -> "InjectBudget":
        """Build the injection budget from the memory settings."""
        from .memory.models import InjectBudget

        window = None
        if self.inject_time_window_seconds:
            window = timedelta(seconds=self.inject_time_window_seconds)
        return InjectBudget(
            max_messages=self.inject_max_messages,
            max_tokens=self.inject_max_tokens,
            time_window=window,
        )

    def get_llm_config(self, provider: str | None = None) -> LLMConfig:
        """Get LLM configuration for a provider."""
        provider = provider or self.default_provider

        api_key_map = {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "openrouter": self.openrouter_api_key,
            "deepseek": self.deepseek_api_key,
        }

        model_map = {
            "openai": "gpt-4o",
            "anthropic": "claude-sonnet-4-20250514",
            "openrouter": "anthropic/claude-sonnet-4",
            "deepseek": "deepseek-chat",
        }

        base_url_map = {
            "openai": None,
            "anthropic": None,
            "openrouter": "https://openrouter.ai/api/v1",
            "deepseek": "https://api.deepseek.com",
        }

        return LLMConfig(
            provider=provider,  # type: ignore
            model=self.default_model or model_map.get(provider, "gpt-4o"),
            api_key=api_key_map.get(provider, ""),
            base_url=self.base_url or base_url_map.get(provider),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

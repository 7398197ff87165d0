"""
Configuration management for StratForge.

Supports environment variables, .env files, and YAML configuration.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderSettings(BaseSettings):
    """Settings for the completion API and the remote tool services."""

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # OpenRouter (OpenAI-compatible chat completions)
    openrouter_api_key: SecretStr | None = Field(default=None, alias="OPENROUTER_API_KEY")
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        alias="OPENROUTER_BASE_URL",
    )

    # Solidity compiler and Python execution sandbox
    compiler_url: str = Field(
        default="https://solidity-compiler.up.railway.app/compile",
        alias="STRATFORGE_COMPILER_URL",
    )
    executor_url: str = Field(
        default="https://python-executor.up.railway.app/execute",
        alias="STRATFORGE_EXECUTOR_URL",
    )

    @property
    def has_openrouter(self) -> bool:
        """Check if OpenRouter is configured."""
        return self.openrouter_api_key is not None


class QueueSettings(BaseSettings):
    """Request queue budget and retry settings."""

    model_config = SettingsConfigDict(
        env_prefix="STRATFORGE_QUEUE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    requests_per_minute: int = Field(default=100, gt=0)
    retry_delay_seconds: float = Field(default=3.0, gt=0)
    max_retries: int = Field(default=3, ge=0)


class GenerationSettings(BaseSettings):
    """Model selection and sampling settings for the generation stages."""

    model_config = SettingsConfigDict(
        env_prefix="STRATFORGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Models per stage
    research_model: str = "perplexity/sonar-pro"
    architect_model: str = "anthropic/claude-sonnet-4"
    implementer_model: str = "anthropic/claude-sonnet-4"
    reviewer_model: str = "anthropic/claude-sonnet-4"

    # Sampling
    research_temperature: float = 0.2
    code_temperature: float = 0.1
    research_max_tokens: int = 4000
    architecture_max_tokens: int = 8000
    function_max_tokens: int = 1500
    review_max_tokens: int = 500

    # Implement/review attempts per function
    review_attempts: int = Field(default=2, ge=1)

    # HTTP timeout for compiler / executor calls
    http_timeout: float = 60.0

    # Local key storage
    credentials_path: Path = Field(
        default_factory=lambda: Path.home() / ".stratforge" / "keys"
    )

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in {"json", "console"}:
            raise ValueError(f"Invalid log format: {v}. Must be 'json' or 'console'")
        return v


class Settings(BaseSettings):
    """Combined application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    providers: ProviderSettings = Field(default_factory=ProviderSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)
    generation: GenerationSettings = Field(default_factory=GenerationSettings)

    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        import yaml

        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


def reload_settings() -> Settings:
    """Reload settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings()

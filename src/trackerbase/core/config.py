"""
Application configuration management using Pydantic Settings.

Loads configuration from environment variables and .env files.
"""

from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Application Settings
    # ==========================================================================
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level")
    json_logs: bool = Field(default=False, description="Emit JSON log lines")

    app_name: str = Field(default="TrackerBase", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    api_v1_prefix: str = Field(default="/api/v1", description="API v1 prefix")

    # CORS
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Any) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # ==========================================================================
    # Redis Configuration
    # ==========================================================================
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection string",
    )
    redis_max_connections: int = Field(default=10, description="Max Redis connections")

    # ==========================================================================
    # Dynamic Option Pipelines
    # ==========================================================================
    pipeline_cache_backend: str = Field(
        default="memory",
        description="Pipeline result cache backend (memory or redis)",
    )
    pipeline_cache_ttl_seconds: int = Field(
        default=300, description="Default TTL for cached pipeline results"
    )
    pipeline_cache_max_entries: int = Field(
        default=1000, description="Max results held by the in-memory pipeline cache"
    )
    pipeline_http_timeout_seconds: float = Field(
        default=10.0, description="Timeout for source.http_get requests"
    )
    pipeline_max_response_bytes: int = Field(
        default=1_000_000, description="Max body size accepted from connectors"
    )
    pipeline_max_options: int = Field(
        default=500, description="Max options returned by one pipeline run"
    )
    resolve_rate_limit_per_minute: int = Field(
        default=120, description="Resolve requests allowed per function per minute"
    )
    dynamic_option_secret_prefix: str = Field(
        default="DYNAMIC_OPTION_SECRET_",
        description="Environment prefix for connector secrets",
    )

    @field_validator("pipeline_cache_backend", mode="before")
    @classmethod
    def validate_cache_backend(cls, v: str) -> str:
        """Only memory and redis backends exist."""
        value = str(v).strip().lower()
        if value not in {"memory", "redis"}:
            raise ValueError("PIPELINE_CACHE_BACKEND must be 'memory' or 'redis'")
        return value

    # ==========================================================================
    # AI Option Extraction
    # ==========================================================================
    ai_api_key: str | None = Field(default=None, description="API key for the extraction model")
    ai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of an OpenAI-compatible chat completions API",
    )
    ai_model: str = Field(default="gpt-4o-mini", description="Extraction model name")
    ai_timeout_seconds: float = Field(default=20.0, description="Extraction request timeout")
    ai_max_rows: int = Field(default=500, description="Max rows returned by extraction")
    ai_max_prompt_chars: int = Field(
        default=24_000, description="Max characters of input data sent to the model"
    )

    @property
    def ai_enabled(self) -> bool:
        """Check if AI extraction is configured."""
        return bool(self.ai_api_key)

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


# Global settings instance
settings = get_settings()

"""Configuration settings for the marketplace service."""

from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field
from pathlib import Path


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: Optional[str] = Field(
        default=None,
        description="PostgreSQL URL (takes precedence over database_path)",
    )
    database_path: Path = Field(
        default=Path("data/marketplace.db"),
        description="Path to SQLite database",
    )

    # Sessions
    session_secret: str = Field(
        default="change-me-in-production",
        description="Secret used to sign session tokens",
    )
    session_cookie_name: str = Field(default="session", description="Session cookie name")
    session_ttl_hours: int = Field(default=168, description="Session lifetime in hours")

    # AI provider
    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key (AI assistance is disabled without it)",
    )
    ai_model: str = Field(default="gpt-4o-mini", description="Model used for text assistance")
    ai_timeout_seconds: float = Field(
        default=20.0, description="Upper bound for a single provider call"
    )
    ai_max_attempts: int = Field(
        default=2, description="Provider attempts before falling back"
    )

    # Offer comparison cache
    comparison_cache_ttl_seconds: int = Field(
        default=300, description="TTL for cached offer comparisons"
    )
    cache_max_items: int = Field(default=100, description="Max items in memory cache")

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    cors_origins: list[str] = Field(
        default=["http://localhost:3000"], description="Allowed CORS origins"
    )
    environment: str = Field(
        default="development",
        description="Environment: 'development' or 'production'",
    )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def is_postgres(self) -> bool:
        """Whether a PostgreSQL database is configured."""
        return bool(self.database_url)


settings = Settings()

"""
MindMate Application Settings

Configuration management using Pydantic Settings.
All sensitive values are loaded from environment variables.

SECURITY: Never log or expose settings containing secrets.
"""

from functools import lru_cache
from typing import Literal, Optional
from uuid import UUID

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL database configuration."""

    model_config = SettingsConfigDict(env_prefix="MINDMATE_DB_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    name: str = Field(default="mindmate_db", description="Database name")
    user: str = Field(default="mindmate_user", description="Database user")
    password: SecretStr = Field(default=SecretStr("dev_password"), description="Database password")
    pool_size: int = Field(default=10, ge=1, le=100, description="Connection pool size")
    max_overflow: int = Field(default=20, ge=0, le=100, description="Max overflow connections")
    url: Optional[str] = Field(
        default=None,
        description="Full async URL override (e.g. sqlite+aiosqlite:///:memory:)",
    )

    @property
    def async_url(self) -> str:
        """Generate async database URL for SQLAlchemy."""
        if self.url:
            return self.url
        password = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{password}@{self.host}:{self.port}/{self.name}"


class LLMSettings(BaseSettings):
    """
    Generative model configuration.

    The default provider is a local Ollama-style text-generation
    endpoint. Decoding is kept at low temperature so repeated runs
    over the same signals produce comparable assessments.
    """

    model_config = SettingsConfigDict(env_prefix="MINDMATE_LLM_")

    provider: Literal["ollama", "openai"] = Field(
        default="ollama",
        description="Model provider (ollama, openai)",
    )
    endpoint: str = Field(
        default="http://localhost:11434/api/generate",
        description="Local text-generation endpoint",
    )
    model: str = Field(default="gemma3:1b", description="Model identifier")
    temperature: float = Field(default=0.2, ge=0.0, le=1.0)
    top_p: float = Field(default=0.9, ge=0.0, le=1.0)
    max_tokens: int = Field(default=1024, ge=100, le=4096)
    timeout_seconds: float = Field(default=60.0, gt=0, le=600)
    openai_api_key: SecretStr = Field(default=SecretStr(""), description="OpenAI API key")
    openai_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for OpenAI-compatible servers",
    )


class AnalysisSettings(BaseSettings):
    """Analysis pipeline windows and the daily sweep."""

    model_config = SettingsConfigDict(env_prefix="MINDMATE_ANALYSIS_")

    recent_window_days: int = Field(default=3, ge=1, le=30)
    baseline_max_days: Optional[int] = Field(
        default=None,
        ge=1,
        description="Cap on baseline history; None means all history",
    )
    daily_sweep_enabled: bool = Field(default=False)
    daily_sweep_interval_hours: float = Field(default=24.0, gt=0)


class EscalationSettings(BaseSettings):
    """Support request escalation timing."""

    model_config = SettingsConfigDict(env_prefix="MINDMATE_ESCALATION_")

    buddy_timeout_minutes: int = Field(default=120, ge=1)
    community_timeout_minutes: int = Field(default=240, ge=1)
    global_timeout_minutes: int = Field(default=480, ge=1)
    reconcile_interval_seconds: float = Field(default=60.0, gt=0)
    scheduler_enabled: bool = Field(default=True)
    global_pool_limit: int = Field(default=50, ge=1, le=10000)


class MonitoringSettings(BaseSettings):
    """Error tracking configuration."""

    model_config = SettingsConfigDict(env_prefix="MINDMATE_MONITORING_")

    sentry_dsn: SecretStr = Field(default=SecretStr(""), description="Sentry DSN")
    traces_sample_rate: float = Field(default=0.1, ge=0.0, le=1.0)


class Settings(BaseSettings):
    """
    Main application settings.

    All configuration is loaded from environment variables with MINDMATE_ prefix.
    Sensitive values use SecretStr to prevent accidental logging.

    Usage:
        settings = get_settings()
        db_url = settings.database.async_url
    """

    model_config = SettingsConfigDict(
        env_prefix="MINDMATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    env: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Application environment"
    )
    debug: bool = Field(default=False, description="Debug mode - NEVER enable in production")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level"
    )
    api_version: str = Field(default="v1", description="API version prefix")
    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )
    admin_user_ids: list[UUID] = Field(
        default_factory=list,
        description="Users allowed on /admin routes (JSON list of ids)"
    )

    # Nested settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    escalation: EscalationSettings = Field(default_factory=EscalationSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.
    For testing, construct Settings directly and pass it in.

    Returns:
        Settings: Application settings instance
    """
    return Settings()

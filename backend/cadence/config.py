"""
Application configuration using Pydantic settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # App
    app_name: str = "Cadence"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./data/db.sqlite"

    # Detection policy (tunable, defaults preserve existing behavior)
    recurring_min_transactions: int = 3
    recurring_max_stddev_days: float = 5.0
    recurring_min_confidence: float = 0.7
    transaction_history_limit: int = 500

    # Subscription lifecycle
    zombie_flag_threshold: float = 0.7
    default_reminder_days_before: int = 3

    # Batch runner
    batch_max_workers: int = 4

    # AI Provider
    ai_provider: str = "openrouter"  # openrouter, ollama, openai, anthropic
    ai_model: str = "anthropic/claude-3-haiku"
    ai_base_url: Optional[str] = None  # For Ollama: http://localhost:11434

    # API Keys (optional based on provider)
    openrouter_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None

    # AI Feature Flags
    ai_clean_merchants: bool = True

    # Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    frontend_url: str = "http://localhost:5173"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False
    )


# Global settings instance
settings = Settings()

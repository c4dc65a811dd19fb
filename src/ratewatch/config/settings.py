"""Application settings and configuration management using Pydantic."""

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

# Floor enforced by the platform scheduler; requests are never made shorter.
MINIMUM_REFRESH_INTERVAL_MINUTES = 15

DEFAULT_BACKGROUND_JOB_ID = "com.ratewatch.alertCheck"


class Settings(BaseSettings):
    """Main application settings combining all configuration sections."""

    # Environment and deployment
    environment: str = "development"
    debug: bool = False

    # Database settings
    database_url: Optional[str] = None
    data_directory: str = "data"
    database_echo_sql: bool = False
    database_pool_pre_ping: bool = True

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "structured"  # 'structured' or 'plain'
    log_file_enabled: bool = True
    log_file_path: str = "data/ratewatch.log"
    log_max_file_size: str = "10MB"
    log_backup_count: int = 5

    # Background alert checking
    background_job_id: str = DEFAULT_BACKGROUND_JOB_ID
    background_permitted_job_ids: List[str] = [DEFAULT_BACKGROUND_JOB_ID]
    refresh_interval_minutes: int = MINIMUM_REFRESH_INTERVAL_MINUTES
    background_refresh_status: str = "available"
    low_power_mode: bool = False
    background_time_budget_seconds: float = 30.0
    check_on_launch: bool = True

    # Rate providers
    currency_provider: str = "hexarate"
    crypto_provider: str = "coingecko"
    provider_timeout_seconds: float = 30.0
    coingecko_api_key: Optional[str] = None

    # Notifications
    notification_channel: str = "log"
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",  # Ignore extra environment variables
    }

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment setting."""
        valid_environments = ["development", "testing", "production"]
        if v.lower() not in valid_environments:
            raise ValueError(f"Environment must be one of: {valid_environments}")
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Validate log format."""
        valid_formats = ["structured", "plain"]
        if v.lower() not in valid_formats:
            raise ValueError(f"Log format must be one of: {valid_formats}")
        return v.lower()

    @field_validator("refresh_interval_minutes")
    @classmethod
    def validate_interval(cls, v):
        """Validate the refresh interval respects the scheduler floor."""
        if v < MINIMUM_REFRESH_INTERVAL_MINUTES or v > 1440:
            raise ValueError(
                f"Refresh interval must be between {MINIMUM_REFRESH_INTERVAL_MINUTES} "
                "and 1440 minutes"
            )
        return v

    @field_validator("background_time_budget_seconds", "provider_timeout_seconds")
    @classmethod
    def validate_positive_seconds(cls, v):
        """Validate durations are positive."""
        if v <= 0:
            raise ValueError("Duration must be greater than zero seconds")
        return v

    @field_validator("background_refresh_status")
    @classmethod
    def validate_refresh_status(cls, v):
        """Validate background refresh status."""
        valid_statuses = ["available", "denied", "restricted", "unknown"]
        if v.lower() not in valid_statuses:
            raise ValueError(f"Background refresh status must be one of: {valid_statuses}")
        return v.lower()

    @field_validator("currency_provider")
    @classmethod
    def validate_currency_provider(cls, v):
        """Validate currency rate provider id."""
        valid_providers = ["hexarate", "yahoo"]
        if v.lower() not in valid_providers:
            raise ValueError(f"Currency provider must be one of: {valid_providers}")
        return v.lower()

    @field_validator("crypto_provider")
    @classmethod
    def validate_crypto_provider(cls, v):
        """Validate crypto price provider id."""
        valid_providers = ["coingecko", "binance"]
        if v.lower() not in valid_providers:
            raise ValueError(f"Crypto provider must be one of: {valid_providers}")
        return v.lower()

    @field_validator("notification_channel")
    @classmethod
    def validate_notification_channel(cls, v):
        """Validate notification channel."""
        valid_channels = ["log", "telegram"]
        if v.lower() not in valid_channels:
            raise ValueError(f"Notification channel must be one of: {valid_channels}")
        return v.lower()

    def get_database_url(self) -> str:
        """Get the complete database URL."""
        if self.database_url:
            return self.database_url

        # Default to SQLite in data directory
        db_dir = Path(self.data_directory)
        db_dir.mkdir(exist_ok=True)
        db_path = db_dir / "ratewatch.db"
        return f"sqlite:///{db_path}"

    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application configuration instance
    """
    return Settings()

"""
Configuration management for txsubmit.

Supports configuration via environment variables and .env files.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SubmitterConfig(BaseSettings):
    """
    Configuration settings for transaction submission.

    All settings can be configured via environment variables with the TXSUBMIT_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="TXSUBMIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )

    # Retry settings
    max_attempts: int = Field(
        default=3,
        ge=1,
        description="Maximum dispatch attempts for a single transaction"
    )
    retry_delay_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Delay before the first retry"
    )
    retry_backoff_factor: float = Field(
        default=2.0,
        ge=1,
        description="Multiplier applied to the delay after each failed attempt"
    )
    retry_max_delay_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Upper bound for the delay between attempts"
    )

    # Network settings
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for a single provider request"
    )
    confirmation_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Maximum time to wait for a broadcast transaction to confirm"
    )
    confirmation_poll_interval_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Delay between confirmation polls"
    )

    # Receipt store
    database_url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy database URL for the receipt store (disabled if unset)"
    )

    # Key management
    environment: str = Field(
        default="testnet",
        description="Deployment environment used in key identifiers"
    )
    key_prefix: str = Field(
        default="agent",
        description="Prefix for secret identifiers in the key backend"
    )
    key_store_path: str = Field(
        default="keys.json",
        description="Path of the JSON file used by the file key backend"
    )


# Global config instance
_config: Optional[SubmitterConfig] = None


def get_config() -> SubmitterConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = SubmitterConfig()
    return _config


def set_config(config: SubmitterConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config

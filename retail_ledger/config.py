"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerConfig(BaseSettings):
    """Retail ledger configuration"""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Bootstrap accounts
    seed_accounts: List[str] = ["Alice", "Bob"]
    seed_balance: int = 0

    # Settlement configuration
    lock_timeout_seconds: float = 5.0

    # API configuration
    api_host: str = "127.0.0.1"
    api_port: int = 8090

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return value

    @field_validator("seed_balance")
    @classmethod
    def _check_seed_balance(cls, value: int) -> int:
        if value < 0:
            raise ValueError("seed_balance cannot be negative")
        return value

    @field_validator("lock_timeout_seconds")
    @classmethod
    def _check_lock_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("lock_timeout_seconds must be positive")
        return value


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config

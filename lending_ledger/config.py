"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerConfig(BaseSettings):
    """Lending ledger configuration"""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        case_sensitive=False,
    )

    # Accounting rules
    collateral_annual_rate: int = 5 * 10 ** 16  # 5% scaled by 1e18
    compounding_periods: int = 12  # monthly
    accounting_mode: str = "legacy"  # legacy or corrected
    ledger_address: str = "ledger"
    owner_address: str = "owner"

    # Token symbols used by the bundled in-memory tokens
    stable_token_symbol: str = "USDL"
    reward_token_symbol: str = "RWD"
    collateral_token_symbol: str = "COLL"

    # Governance
    timelock_address: str = "timelock"
    timelock_min_delay_seconds: int = 2 * 24 * 3600

    # Authentication
    jwt_secret: str = "your-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expiry_hours: int = 24

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    api_workers: int = 1

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Feature flags
    enable_event_logging: bool = True


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

"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings


class LedgerConfig(BaseSettings):
    """Tagged ledger configuration"""

    # Value configuration
    amount_bits: int = 64  # Width of the unsigned quantity type
    max_batch_size: int = 256

    # API configuration
    api_title: str = "Tagged Ledger API"
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Feature flags
    enable_audit_logging: bool = True

    class Config:
        env_prefix = "LEDGER_"
        env_file = ".env"
        case_sensitive = False


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

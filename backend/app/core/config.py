"""
Application configuration settings for AI Job Master.

This module handles all configuration management including environment variables,
database settings, encryption and token secrets, LLM defaults, rate limits and
payment provider credentials using Pydantic Settings.

Features:
- Environment-based configuration (.env supported)
- Database connection settings
- In-process cache TTLs
- Security and API-key encryption settings
- Per-bucket rate limits
- Coinbase Commerce credentials
"""

import secrets
from functools import lru_cache
from typing import Any, Dict, List, Optional, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: Any) -> Any:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class Settings(BaseSettings):
    """Application settings with validation and type checking."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_assignment=True,
        extra="ignore",
    )

    # Application settings
    app_name: str = "AI Job Master"
    app_version: str = "1.0.0"
    debug: bool = False
    env: str = Field(default="development", validation_alias="ENVIRONMENT")
    app_url: str = "http://localhost:3000"

    # Security settings
    secret_key: str = Field(default="", validate_default=True)
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24
    email_verification_expire_hours: int = 48
    require_email_verification: bool = True

    # API key encryption (64 hex chars, or any string padded to 32 bytes)
    encryption_key: str = "your-32-character-secret-key!!"

    # CORS settings
    cors_origins: Union[List[str], str] = ["http://localhost:3000"]
    cors_allow_credentials: bool = True
    cors_allow_methods: Union[List[str], str] = ["*"]
    cors_allow_headers: Union[List[str], str] = ["*"]

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./ai_job_master.db"
    database_pool_size: int = 10
    database_max_overflow: int = 20
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600
    database_echo: bool = False

    # Cache settings (seconds)
    cache_ttl_seconds: int = 300
    cache_max_size: int = 1000
    model_cache_ttl_seconds: int = 600
    idempotency_ttl_seconds: int = 86400

    # LLM settings
    llm_timeout: int = 60
    cover_letter_max_tokens: int = 2000
    linkedin_max_tokens: int = 500
    email_max_tokens: int = 1000
    llm_temperature: float = 0.7

    # Rate limiting settings (slowapi limit strings)
    rate_limit_enabled: bool = True
    rate_limit_auth: str = "5/15minutes"
    rate_limit_generation: str = "20/hour"
    rate_limit_settings: str = "30/hour"
    rate_limit_general: str = "100/hour"

    # Payments
    coinbase_commerce_api_key: str = ""
    coinbase_webhook_secret: str = ""
    coinbase_api_url: str = "https://api.commerce.coinbase.com"
    plus_price_usd: str = "5.00"

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None
    log_max_bytes: int = 10485760  # 10MB
    log_backup_count: int = 5

    @field_validator("secret_key", mode="before")
    @classmethod
    def validate_secret_key(cls, v):
        """Generate secret key if not provided."""
        if not v:
            return secrets.token_urlsafe(32)
        if len(v) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters long")
        return v

    @field_validator("cors_origins", "cors_allow_methods", "cors_allow_headers", mode="before")
    @classmethod
    def parse_comma_separated(cls, v):
        """Parse comma-separated lists."""
        return _split_csv(v)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of: {', '.join(valid_levels)}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        if v.lower() not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be one of: json, text")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.env.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.env.lower() == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.env.lower() == "testing"

    @property
    def database_config(self) -> Dict[str, Any]:
        """Get database configuration dictionary."""
        return {
            "url": self.database_url,
            "pool_size": self.database_pool_size,
            "max_overflow": self.database_max_overflow,
            "pool_timeout": self.database_pool_timeout,
            "pool_recycle": self.database_pool_recycle,
            "echo": self.database_echo,
        }

    @property
    def rate_limits(self) -> Dict[str, str]:
        """Rate limit strings keyed by bucket name."""
        return {
            "auth": self.rate_limit_auth,
            "generation": self.rate_limit_generation,
            "settings": self.rate_limit_settings,
            "general": self.rate_limit_general,
        }


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings instance with all configuration loaded
    """
    return Settings()


# Global settings instance
settings = get_settings()

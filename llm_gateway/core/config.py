"""
Configuration management using Pydantic Settings.

All configuration values are loaded from environment variables
with sensible defaults where appropriate.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ROOT_DIR = Path(__file__).resolve().parent.parent.parent
ENV_FILE = ROOT_DIR / ".env"

load_dotenv(ENV_FILE)


class AppSettings(BaseSettings):
    """Application-level configuration."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_prefix="APP_",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    name: str = "llm-gateway"
    version: str = "0.1.0"
    env: Literal["development", "staging", "production"] = "development"
    api_host: str = "0.0.0.0"
    api_port: int = 8000


class LogSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_prefix="LOG_",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    level: str = "INFO"
    format: Literal["json", "text"] = "json"
    requests: bool = True


class GatewaySettings(BaseSettings):
    """Upstream transport and routing configuration."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_prefix="GATEWAY_",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Streams idle for longer than this are considered stalled
    stream_timeout_ms: int = Field(default=30000, ge=0)

    # None keeps the HTTP client's own default
    http_timeout_seconds: Optional[float] = Field(default=None, gt=0)

    team_header: str = "X-Team-ID"


class SecuritySettings(BaseSettings):
    """Credential encryption configuration."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_prefix="SECURITY_",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Fernet key (urlsafe base64 of 32 bytes) or 32 raw characters.
    # Empty means a key is generated per process.
    credentials_encryption_key: str = ""

    @field_validator("credentials_encryption_key")
    @classmethod
    def validate_encryption_key(cls, v: str) -> str:
        """Accept a raw 32-character key or a 44-character Fernet key."""
        if v and len(v) not in (32, 44):
            raise ValueError("SECURITY_CREDENTIALS_ENCRYPTION_KEY must be 32 raw or 44 Fernet characters")
        return v


class Settings(BaseSettings):
    """Main settings class that aggregates all configuration sections."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app: AppSettings = Field(default_factory=AppSettings)
    log: LogSettings = Field(default_factory=LogSettings)
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

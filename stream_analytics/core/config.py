"""Application configuration using Pydantic Settings"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).parent.parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Twitch OAuth
    client_id: str = Field(..., description="Twitch OAuth Client ID")
    client_secret: str = Field(..., description="Twitch OAuth Client Secret")

    # Server URLs
    backend_url: str = Field(
        default="http://localhost:3000",
        description="Public URL of this server, used to build the OAuth redirect URI",
    )
    allowed_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins",
    )

    # Environment
    environment: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3000, description="Server port")

    # Channel monitoring
    poll_interval_seconds: float = Field(
        default=120.0, gt=0, description="Seconds between stream status checks per channel"
    )
    max_consecutive_failures: int = Field(
        default=10,
        ge=0,
        description="Stop monitoring a channel after this many failed checks in a row (0 = never)",
    )
    http_timeout_seconds: float = Field(default=10.0, gt=0, description="Twitch API timeout")

    # Keep-Alive (Render)
    enable_keep_alive: bool = Field(default=True, description="Enable heartbeat keep-alive task")
    keep_alive_interval: int = Field(default=300, description="Heartbeat interval in seconds")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS allowed origins"""
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    @property
    def redirect_uri(self) -> str:
        """OAuth redirect URI registered with Twitch"""
        return f"{self.backend_url.rstrip('/')}/auth/callback"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()  # type: ignore[call-arg]

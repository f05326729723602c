"""
Configuration management.

Centralized environment variable management and validation.
"""

from typing import Literal, Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from shared.errors import ConfigError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # Allow case-insensitive env var matching
        extra="ignore"
    )

    # Supabase configuration
    supabase_url: str
    supabase_service_key: str

    # Bucket that receives rendered scene videos and thumbnails
    storage_bucket: str = "scene-composites"

    # PUBLIC_BASE_URL: Optional CDN origin in front of the bucket.
    # When set, artifact URLs are "{public_base_url}/{key}" instead of the
    # Supabase public object URL.
    public_base_url: Optional[str] = None

    # Shared secret expected in "Authorization: Bearer <secret>" on /compose
    composer_api_secret: str

    # Environment
    environment: Literal["development", "staging", "production", "test"] = "development"

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_dir: Optional[str] = "logs"  # Set empty to disable the rotating file handler

    # Scratch space for per-job working directories (defaults to the system temp dir)
    scratch_root: Optional[str] = None

    # HTTP server port
    port: int = 3001

    # Network timeouts
    download_timeout_seconds: float = 300.0
    webhook_timeout_seconds: float = 30.0

    @field_validator("supabase_url")
    @classmethod
    def validate_supabase_url(cls, v: str) -> str:
        """Validate Supabase URL format."""
        if not v:
            raise ConfigError("SUPABASE_URL is required")
        if not v.startswith(("http://", "https://")):
            raise ConfigError("SUPABASE_URL must be a valid HTTP/HTTPS URL")
        return v

    @field_validator("supabase_service_key")
    @classmethod
    def validate_supabase_service_key(cls, v: str) -> str:
        """Validate Supabase service key format."""
        if not v:
            raise ConfigError("SUPABASE_SERVICE_KEY is required")
        if len(v) < 50:  # Basic format check
            raise ConfigError("SUPABASE_SERVICE_KEY appears to be invalid")
        return v

    @field_validator("composer_api_secret")
    @classmethod
    def validate_composer_api_secret(cls, v: str) -> str:
        """Validate composer API secret."""
        if not v:
            raise ConfigError("COMPOSER_API_SECRET is required")
        if len(v) < 16:
            raise ConfigError("COMPOSER_API_SECRET must be at least 16 characters")
        return v

    @field_validator("public_base_url")
    @classmethod
    def validate_public_base_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate CDN base URL and strip the trailing slash."""
        if not v:
            return None
        if not v.startswith(("http://", "https://")):
            raise ConfigError("PUBLIC_BASE_URL must be a valid HTTP/HTTPS URL")
        return v.rstrip("/")


# Singleton instance
try:
    settings = Settings()
except Exception as e:
    # Re-raise as ConfigError for consistency
    if isinstance(e, ConfigError):
        raise
    raise ConfigError(f"Failed to load configuration: {str(e)}") from e

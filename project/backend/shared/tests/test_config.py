"""
Tests for configuration management.
"""

import pytest
from shared.config import Settings, ConfigError

VALID_ENV = {
    "SUPABASE_URL": "https://test.supabase.co",
    "SUPABASE_SERVICE_KEY": "test_service_key_1234567890123456789012345678901234567890",
    "COMPOSER_API_SECRET": "test_composer_secret_1234567890",
}


@pytest.fixture
def valid_env(monkeypatch):
    for key, value in VALID_ENV.items():
        monkeypatch.setenv(key, value)
    monkeypatch.delenv("PUBLIC_BASE_URL", raising=False)
    monkeypatch.delenv("STORAGE_BUCKET", raising=False)
    return monkeypatch


def test_settings_loads_valid_env(tmp_path, valid_env):
    """Test that settings load correctly from a .env file."""
    valid_env.setenv("ENVIRONMENT", "development")
    valid_env.setenv("LOG_LEVEL", "INFO")

    env_file = tmp_path / ".env"
    env_file.write_text("\n".join(f"{k}={v}" for k, v in VALID_ENV.items()))

    settings = Settings(_env_file=str(env_file))

    assert settings.supabase_url == "https://test.supabase.co"
    assert settings.environment == "development"
    assert settings.log_level == "INFO"


def test_settings_defaults(valid_env):
    """Test defaults for optional settings."""
    settings = Settings(_env_file=None)

    assert settings.storage_bucket == "scene-composites"
    assert settings.public_base_url is None
    assert settings.scratch_root is None
    assert settings.download_timeout_seconds == 300.0
    assert settings.webhook_timeout_seconds == 30.0
    assert settings.port == 3001


def test_settings_validates_supabase_url(valid_env):
    """Test that invalid Supabase URL raises ConfigError."""
    valid_env.setenv("SUPABASE_URL", "invalid-url")

    with pytest.raises(ConfigError, match="SUPABASE_URL must be a valid HTTP/HTTPS URL"):
        Settings(_env_file=None)


def test_settings_validates_service_key(valid_env):
    """Test that a short service key raises ConfigError."""
    valid_env.setenv("SUPABASE_SERVICE_KEY", "short")

    with pytest.raises(ConfigError, match="SUPABASE_SERVICE_KEY appears to be invalid"):
        Settings(_env_file=None)


def test_settings_validates_api_secret(valid_env):
    """Test that a short API secret raises ConfigError."""
    valid_env.setenv("COMPOSER_API_SECRET", "too-short")

    with pytest.raises(ConfigError, match="at least 16 characters"):
        Settings(_env_file=None)


def test_public_base_url_trailing_slash_stripped(valid_env):
    """Test that the CDN base URL is normalized."""
    valid_env.setenv("PUBLIC_BASE_URL", "https://cdn.example.com/")

    settings = Settings(_env_file=None)

    assert settings.public_base_url == "https://cdn.example.com"


def test_public_base_url_must_be_http(valid_env):
    """Test that a non-HTTP CDN base URL raises ConfigError."""
    valid_env.setenv("PUBLIC_BASE_URL", "cdn.example.com")

    with pytest.raises(ConfigError, match="PUBLIC_BASE_URL"):
        Settings(_env_file=None)

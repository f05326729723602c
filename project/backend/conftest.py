"""
Root pytest configuration.

Seeds the environment before any test module imports shared.config, whose
settings singleton is created at import time.
"""
import os

os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test_service_key_1234567890123456789012345678901234567890")
os.environ.setdefault("COMPOSER_API_SECRET", "test_composer_secret_1234567890")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("LOG_DIR", "")

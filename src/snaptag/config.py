"""Configuration management for snaptag.

Values come from environment variables, with Streamlit secrets as a fallback
when a ``secrets.toml`` is present. Values are trimmed and blank strings count
as missing, so a credential exported as ``""`` is reported as not configured.
"""

import os
from dataclasses import dataclass
from typing import Any

try:
    import streamlit as st

    STREAMLIT_AVAILABLE = True
except ImportError:
    STREAMLIT_AVAILABLE = False

from .logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_REGION = "us-east-1"
DEFAULT_VISION_MODEL = "gpt-4o-mini"
DEFAULT_STORAGE_TIMEOUT = 60.0
DEFAULT_TAGGER_TIMEOUT = 30.0


class Config:
    """Centralized configuration management using environment variables."""

    def __init__(self):
        self._cache = {}

    def get(self, key: str, default: Any = None, cast_type: type = str) -> Any:
        """Get configuration value from environment variables or Streamlit secrets.

        Args:
            key: Configuration key
            default: Default value if not found
            cast_type: Type to cast the value to (str, int, bool, float)

        Returns:
            Configuration value cast to the specified type
        """
        cache_key = f"{key}:{cast_type.__name__}"
        if cache_key in self._cache:
            return self._cache[cache_key]

        value = os.getenv(key)

        if value is None and STREAMLIT_AVAILABLE:
            try:
                value = st.secrets.get(key)
            except Exception:  # nosec B110
                # No secrets file outside a Streamlit deployment
                pass

        if isinstance(value, str):
            value = value.strip() or None

        if value is None:
            value = default

        if value is not None:
            try:
                if cast_type is bool:
                    if isinstance(value, str):
                        value = value.lower() in ("true", "1", "yes", "on")  # type: ignore[assignment]
                    else:
                        value = bool(value)  # type: ignore[assignment]
                elif cast_type is not str:
                    value = cast_type(value)
            except (ValueError, TypeError) as e:
                logger.warning("config_cast_failed", key=key, cast_type=cast_type.__name__, error=str(e))
                value = default

        self._cache[cache_key] = value
        return value

    def is_development(self) -> bool:
        """Check if running in development mode."""
        environment = self.get("ENVIRONMENT", "development").lower()
        return environment in ["development", "dev", "local", "test"]

    def is_production(self) -> bool:
        """Check if running in production mode."""
        environment = self.get("ENVIRONMENT", "development").lower()
        return environment in ["production", "prod"]

    def clear_cache(self):
        """Clear configuration cache."""
        self._cache.clear()


# Global configuration instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def get_env(key: str, default: Any = None, cast_type: type = str) -> Any:
    """Get configuration value with type casting."""
    return get_config().get(key, default, cast_type)


def is_development() -> bool:
    """Check if running in development mode."""
    return get_config().is_development()


@dataclass(frozen=True)
class StorageSettings:
    """Object storage credentials and location."""

    access_key_id: str | None
    secret_access_key: str | None
    bucket: str | None
    region: str = DEFAULT_REGION
    timeout: float = DEFAULT_STORAGE_TIMEOUT

    def missing_fields(self) -> list[str]:
        """Names of the required settings that are not set."""
        required = {
            "AWS_ACCESS_KEY_ID": self.access_key_id,
            "AWS_SECRET_ACCESS_KEY": self.secret_access_key,
            "S3_BUCKET_NAME": self.bucket,
        }
        return [name for name, value in required.items() if not value]

    @property
    def is_configured(self) -> bool:
        return not self.missing_fields()

    @property
    def host(self) -> str:
        return f"{self.bucket}.s3.{self.region}.amazonaws.com"


@dataclass(frozen=True)
class TaggerSettings:
    """Vision tagging provider settings."""

    openai_api_key: str | None
    model: str = DEFAULT_VISION_MODEL
    tagger_url: str | None = None
    timeout: float = DEFAULT_TAGGER_TIMEOUT


def get_storage_settings() -> StorageSettings:
    """Read object storage settings. Missing values are reported, not raised."""
    return StorageSettings(
        access_key_id=get_env("AWS_ACCESS_KEY_ID"),
        secret_access_key=get_env("AWS_SECRET_ACCESS_KEY"),
        bucket=get_env("S3_BUCKET_NAME"),
        region=get_env("AWS_REGION", DEFAULT_REGION),
        timeout=get_env("STORAGE_TIMEOUT_SECONDS", DEFAULT_STORAGE_TIMEOUT, float),
    )


def get_tagger_settings() -> TaggerSettings:
    """Read vision tagger settings."""
    return TaggerSettings(
        openai_api_key=get_env("OPENAI_API_KEY"),
        model=get_env("OPENAI_VISION_MODEL", DEFAULT_VISION_MODEL),
        tagger_url=get_env("TAGGER_URL"),
        timeout=get_env("TAGGER_TIMEOUT_SECONDS", DEFAULT_TAGGER_TIMEOUT, float),
    )


def get_database_path() -> str:
    """Get the DuckDB database path."""
    return str(get_env("DATABASE_PATH", "data/snaptag.duckdb"))


def get_tagging_mode() -> str:
    """Get tagging mode: 'sync' (default) or 'background'."""
    mode = str(get_env("TAGGING_MODE", "sync")).lower()
    if mode not in ("sync", "background"):
        logger.warning("unknown_tagging_mode", mode=mode, fallback="sync")
        return "sync"
    return mode


def get_auth_jwt_secret() -> str | None:
    """Get the shared secret used to verify caller tokens."""
    return get_env("AUTH_JWT_SECRET")


def get_environment() -> str:
    """Get current environment."""
    return str(get_env("ENVIRONMENT", "development"))

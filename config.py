"""Application configuration classes."""

from __future__ import annotations

import os

DEFAULT_FIAT_SYMBOLS = "NGN,USD,EUR,GBP"
DEFAULT_CRYPTO_IDS = "bitcoin:BTC,ethereum:ETH,tether:USDT"

POSITIVE_INT_SETTINGS = (
    "RATES_REFRESH_INTERVAL_SECONDS",
    "CIRCUIT_BREAKER_THRESHOLD",
    "HEALTH_MAX_CONSECUTIVE_FAILURES",
    "FALLBACK_MAX_AGE_SECONDS",
    "RATES_STALE_AFTER_SECONDS",
)
POSITIVE_FLOAT_SETTINGS = (
    "REQUEST_TIMEOUT_SECONDS",
    "CIRCUIT_BREAKER_TIMEOUT_SECONDS",
    "RETRY_MAX_DELAY_SECONDS",
)


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


def _get_optional_env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


class BaseConfig:
    """Base configuration shared across environments."""

    SCHEDULER_ENABLED = _get_env("SCHEDULER_ENABLED", "true").lower() == "true"
    SCHEDULER_TIMEZONE = _get_env("SCHEDULER_TIMEZONE", "UTC")
    SCHEDULER_REFRESH_ON_START = (
        _get_env("SCHEDULER_REFRESH_ON_START", "true").lower() == "true"
    )
    RATES_REFRESH_INTERVAL_SECONDS = int(_get_env("RATES_REFRESH_INTERVAL_SECONDS", "300"))
    RATES_CONCURRENT_FETCH = _get_env("RATES_CONCURRENT_FETCH", "true").lower() == "true"
    VALIDATE_PROVIDERS_ON_STARTUP = (
        _get_env("VALIDATE_PROVIDERS_ON_STARTUP", "true").lower() == "true"
    )

    APP_NAME = "fx-rate-ingestion"
    SECRET_KEY = _get_env("SECRET_KEY", "change-me")
    SQLALCHEMY_DATABASE_URI = _get_env("DATABASE_URL", "sqlite:///fx-rate-ingestion.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    REQUEST_TIMEOUT_SECONDS = float(_get_env("REQUEST_TIMEOUT_SECONDS", "10"))
    RETRY_MAX_RETRIES = int(_get_env("RETRY_MAX_RETRIES", "3"))
    RETRY_BASE_DELAY_SECONDS = float(_get_env("RETRY_BASE_DELAY_SECONDS", "1.0"))
    RETRY_MAX_DELAY_SECONDS = float(_get_env("RETRY_MAX_DELAY_SECONDS", "30"))
    CIRCUIT_BREAKER_THRESHOLD = int(_get_env("CIRCUIT_BREAKER_THRESHOLD", "5"))
    CIRCUIT_BREAKER_TIMEOUT_SECONDS = float(_get_env("CIRCUIT_BREAKER_TIMEOUT_SECONDS", "30"))
    HEALTH_MAX_CONSECUTIVE_FAILURES = int(_get_env("HEALTH_MAX_CONSECUTIVE_FAILURES", "3"))
    FALLBACK_MAX_AGE_SECONDS = int(_get_env("FALLBACK_MAX_AGE_SECONDS", "86400"))
    RATES_STALE_AFTER_SECONDS = int(_get_env("RATES_STALE_AFTER_SECONDS", "3600"))
    REFRESH_THROTTLE_SECONDS = int(_get_env("REFRESH_THROTTLE_SECONDS", "60"))

    FX_CANONICAL_BASE = _get_env("FX_CANONICAL_BASE", "USD")
    FIAT_SYMBOLS = _get_env("FIAT_SYMBOLS", DEFAULT_FIAT_SYMBOLS)
    CRYPTO_IDS = _get_env("CRYPTO_IDS", DEFAULT_CRYPTO_IDS)

    OPENEXCHANGERATES_APP_ID: str | None = _get_optional_env("OPENEXCHANGERATES_APP_ID")
    OPENEXCHANGERATES_BASE_URL = _get_env(
        "OPENEXCHANGERATES_BASE_URL", "https://openexchangerates.org/api"
    )
    EXCHANGERATE_API_KEY: str | None = _get_optional_env("EXCHANGERATE_API_KEY")
    EXCHANGERATE_API_BASE_URL = _get_env(
        "EXCHANGERATE_API_BASE_URL", "https://v6.exchangerate-api.com/v6"
    )
    COINGECKO_ENABLED = _get_env("COINGECKO_ENABLED", "true").lower() == "true"
    COINGECKO_API_KEY: str | None = _get_optional_env("COINGECKO_API_KEY")
    COINGECKO_BASE_URL = _get_env("COINGECKO_BASE_URL", "https://api.coingecko.com/api/v3")

    LOG_LEVEL = _get_env("LOG_LEVEL", "INFO")
    LOG_JSON_ENABLED = _get_env("LOG_JSON_ENABLED", "false").lower() == "true"
    LOG_FORMAT = _get_env("LOG_FORMAT", "%(asctime)s %(levelname)s [%(name)s] %(message)s")


class DevelopmentConfig(BaseConfig):
    """Configuration for local development."""

    DEBUG = True
    TESTING = False


class ProductionConfig(BaseConfig):
    """Configuration for production deployments."""

    DEBUG = False
    TESTING = False


class TestingConfig(BaseConfig):
    """Configuration used by the test-suite; never touches real providers."""

    DEBUG = False
    TESTING = True
    SCHEDULER_ENABLED = False
    VALIDATE_PROVIDERS_ON_STARTUP = False
    OPENEXCHANGERATES_APP_ID = None
    EXCHANGERATE_API_KEY = None
    COINGECKO_ENABLED = False
    RETRY_BASE_DELAY_SECONDS = 0.0


CONFIG_BY_ENV = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}


def get_config(config_name: str | None = None) -> type[BaseConfig]:
    """Return the config class for the requested environment.

    Args:
        config_name: Optional explicit config identifier. If omitted, the
            APP_ENV environment variable is consulted.

    Raises:
        KeyError: If the requested configuration is not defined.
        ValueError: If a resilience setting is out of range.
    """

    env_candidate = config_name if config_name is not None else os.getenv("APP_ENV", "development")
    env_name = (env_candidate or "development").lower()
    try:
        config_cls = CONFIG_BY_ENV[env_name]
    except KeyError as exc:
        raise KeyError(f"Unknown APP_ENV '{env_name}'") from exc

    _validate_resilience_settings(config_cls)
    return config_cls


def _validate_resilience_settings(config_cls: type[BaseConfig]) -> None:
    for name in POSITIVE_INT_SETTINGS:
        value = getattr(config_cls, name)
        if value <= 0:
            raise ValueError(f"{name} must be a positive integer, got {value!r}")

    for name in POSITIVE_FLOAT_SETTINGS:
        value = getattr(config_cls, name)
        if value <= 0:
            raise ValueError(f"{name} must be positive, got {value!r}")

    if config_cls.RETRY_MAX_RETRIES < 0:
        raise ValueError("RETRY_MAX_RETRIES cannot be negative")
    if config_cls.RETRY_BASE_DELAY_SECONDS < 0:
        raise ValueError("RETRY_BASE_DELAY_SECONDS cannot be negative")


def parse_symbols(raw: str | None) -> list[str]:
    """Split a comma-separated list of currency codes into uppercase codes."""

    if not raw:
        return []
    return [item.strip().upper() for item in raw.split(",") if item.strip()]


def parse_crypto_ids(raw: str | None) -> dict[str, str]:
    """Parse ``id:CODE`` pairs (e.g. ``bitcoin:BTC``) into an id -> code mapping."""

    mapping: dict[str, str] = {}
    if not raw:
        return mapping
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        coin_id, sep, code = item.partition(":")
        if not sep or not coin_id.strip() or not code.strip():
            raise ValueError(f"Invalid CRYPTO_IDS entry '{item}'. Expected 'id:CODE'.")
        mapping[coin_id.strip().lower()] = code.strip().upper()
    return mapping

"""Configuration module for the LeadLedger engine."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import urlparse

from dotenv import load_dotenv

from app.core.exceptions import ConfigurationError

load_dotenv()


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Config:
    """Runtime configuration with validation."""

    APP_NAME: str
    APP_VERSION: str
    ENV: str
    DEBUG: bool
    DATABASE_URL: str
    REDIS_URL: str
    LEAD_CACHE_TTL_SECONDS: int
    LEAD_CACHE_KEY_PREFIX: str
    CONTACT_PROVIDER_BASE_URL: str
    CONTACT_PROVIDER_API_KEY: str | None
    CONTACT_PROVIDER_TIMEOUT_SECONDS: int
    CONTACT_PROVIDER_PAGE_LIMIT: int
    FREE_TIER_LIMIT: int
    CREDITS_PER_LEAD: int
    MAX_LEADS_PER_REQUEST: int
    LEDGER_SETTLE_MAX_ATTEMPTS: int
    API_PREFIX: str
    LOG_LEVEL: str
    LOG_FILE: str

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"


def _build_config(env: str | None = None) -> Config:
    resolved_env = (env or os.getenv("ENV", "development")).strip().lower()
    debug = _as_bool(os.getenv("DEBUG"), default=(resolved_env != "production"))

    config = Config(
        APP_NAME="LeadLedger",
        APP_VERSION=os.getenv("APP_VERSION", "1.0.0"),
        ENV=resolved_env,
        DEBUG=debug if resolved_env != "production" else False,
        DATABASE_URL=os.getenv("DATABASE_URL", "sqlite:///./leadledger.db"),
        REDIS_URL=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
        LEAD_CACHE_TTL_SECONDS=int(os.getenv("LEAD_CACHE_TTL_SECONDS", "3600")),
        LEAD_CACHE_KEY_PREFIX=os.getenv("LEAD_CACHE_KEY_PREFIX", "lead_search"),
        CONTACT_PROVIDER_BASE_URL=os.getenv("CONTACT_PROVIDER_BASE_URL", "https://api.apollo.io/api/v1").rstrip("/"),
        CONTACT_PROVIDER_API_KEY=os.getenv("CONTACT_PROVIDER_API_KEY"),
        CONTACT_PROVIDER_TIMEOUT_SECONDS=int(os.getenv("CONTACT_PROVIDER_TIMEOUT_SECONDS", "30")),
        CONTACT_PROVIDER_PAGE_LIMIT=int(os.getenv("CONTACT_PROVIDER_PAGE_LIMIT", "100")),
        FREE_TIER_LIMIT=int(os.getenv("FREE_TIER_LIMIT", "5")),
        CREDITS_PER_LEAD=int(os.getenv("CREDITS_PER_LEAD", "1")),
        MAX_LEADS_PER_REQUEST=int(os.getenv("MAX_LEADS_PER_REQUEST", "1000")),
        LEDGER_SETTLE_MAX_ATTEMPTS=int(os.getenv("LEDGER_SETTLE_MAX_ATTEMPTS", "3")),
        API_PREFIX=os.getenv("API_PREFIX", "/api/v1"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
        LOG_FILE=os.getenv("LOG_FILE", "leadledger.log"),
    )
    _validate_config(config)
    return config


def _validate_database_url(database_url: str) -> None:
    parsed = urlparse(database_url)
    if parsed.scheme not in {"sqlite", "postgresql", "postgresql+psycopg2"}:
        raise ConfigurationError(
            "DATABASE_URL must use sqlite:// or postgresql:// style URL."
        )
    if parsed.scheme.startswith("postgresql") and not parsed.hostname:
        raise ConfigurationError("PostgreSQL DATABASE_URL is missing hostname.")


def _validate_config(config: Config) -> None:
    _validate_database_url(config.DATABASE_URL)

    if config.LEAD_CACHE_TTL_SECONDS < 1:
        raise ConfigurationError("LEAD_CACHE_TTL_SECONDS must be >= 1.")
    if config.CONTACT_PROVIDER_TIMEOUT_SECONDS < 1:
        raise ConfigurationError("CONTACT_PROVIDER_TIMEOUT_SECONDS must be >= 1.")
    if config.CONTACT_PROVIDER_PAGE_LIMIT < 1:
        raise ConfigurationError("CONTACT_PROVIDER_PAGE_LIMIT must be >= 1.")
    if config.FREE_TIER_LIMIT < 0:
        raise ConfigurationError("FREE_TIER_LIMIT must be >= 0.")
    if config.CREDITS_PER_LEAD < 1:
        raise ConfigurationError("CREDITS_PER_LEAD must be >= 1.")
    if config.MAX_LEADS_PER_REQUEST < 1:
        raise ConfigurationError("MAX_LEADS_PER_REQUEST must be >= 1.")
    if config.LEDGER_SETTLE_MAX_ATTEMPTS < 1:
        raise ConfigurationError("LEDGER_SETTLE_MAX_ATTEMPTS must be >= 1.")
    if config.LOG_LEVEL not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ConfigurationError("LOG_LEVEL must be one of DEBUG/INFO/WARNING/ERROR/CRITICAL.")
    if config.is_production and not config.CONTACT_PROVIDER_API_KEY:
        raise ConfigurationError("CONTACT_PROVIDER_API_KEY is required in production.")


@lru_cache(maxsize=8)
def get_config(env: str | None = None) -> Config:
    """Get validated configuration for the requested environment."""
    return _build_config(env)

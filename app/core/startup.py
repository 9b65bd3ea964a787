"""Process bootstrap: logging, store checks and table creation."""

from __future__ import annotations

import logging

from app.core.config import get_config
from app.core.exceptions import StoreUnavailable
from app.core.logging_config import configure_logging
from app.database.db import create_tables, get_active_database_url, verify_database_connection
from app.services.cache_gateway import CacheGateway

logger = logging.getLogger(__name__)


def validate_startup_config() -> None:
    """Refuse to start without a ledger store; warn about degraded collaborators.

    The cache is best-effort during acquisition, so an unreachable Redis is
    only reported. The ledger is not: credits cannot be settled without it.
    """
    config = get_config()
    if not verify_database_connection():
        raise StoreUnavailable("Ledger store is unreachable; refusing to start.")

    database_url = get_active_database_url()
    if config.is_production and database_url.startswith("sqlite"):
        logger.warning(
            "startup.ledger.sqlite_in_production",
            extra={"event": "startup.ledger.sqlite_in_production"},
        )
    if not config.CONTACT_PROVIDER_API_KEY:
        logger.warning(
            "startup.provider.api_key_missing",
            extra={"event": "startup.provider.api_key_missing"},
        )

    cache_ok = CacheGateway().ping()
    logger.info(
        "startup.checks.completed",
        extra={
            "event": "startup.checks.completed",
            "env": config.ENV,
            "ledger_backend": database_url.split("://", 1)[0],
            "cache_reachable": cache_ok,
            "free_tier_limit": config.FREE_TIER_LIMIT,
            "credits_per_lead": config.CREDITS_PER_LEAD,
        },
    )


def bootstrap() -> None:
    configure_logging()
    validate_startup_config()
    create_tables()

"""Health endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.config import get_config
from app.core.dependencies import get_cache_gateway
from app.database.db import verify_database_connection
from app.services.cache_gateway import CacheGateway

router = APIRouter(tags=["health"])


@router.get("/health")
def health(cache: CacheGateway = Depends(get_cache_gateway)) -> dict:
    cfg = get_config()
    database_ok = verify_database_connection()
    return {
        "status": "ok" if database_ok else "degraded",
        "service": cfg.APP_NAME,
        "version": cfg.APP_VERSION,
        "database": "ok" if database_ok else "unavailable",
        # The cache is best-effort; an outage does not degrade the service.
        "cache": "ok" if cache.ping() else "unavailable",
    }

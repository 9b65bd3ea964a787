from __future__ import annotations

import hashlib
import json
import logging
import re
from typing import Any

import redis

from app.core.config import get_config
from app.core.exceptions import StoreUnavailable
from app.schemas.leads import AcquisitionCriteria

logger = logging.getLogger(__name__)

MAX_KEY_LENGTH = 200
_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9:_\-]")


def build_fingerprint(criteria: AcquisitionCriteria, prefix: str | None = None) -> str:
    """Deterministic, order-independent cache key for a set of criteria."""
    prefix = prefix or get_config().LEAD_CACHE_KEY_PREFIX
    revenue = criteria.revenue_range
    normalized: dict[str, Any] = {
        "industries": sorted(value.lower() for value in criteria.industries),
        "roles": sorted(value.lower() for value in criteria.roles),
        "company_sizes": sorted(value.lower() for value in criteria.company_sizes),
        "countries": sorted(value.lower() for value in criteria.countries),
        "states": sorted(value.lower() for value in criteria.states),
        "cities": sorted(value.lower() for value in criteria.cities),
        "keywords": sorted(value.lower() for value in criteria.keywords),
        "technologies": sorted(value.lower() for value in criteria.technologies),
        "revenue": [revenue.min, revenue.max] if revenue is not None else None,
        "requirements": sorted(req.value for req in criteria.requirements),
        "lead_count": criteria.lead_count,
    }
    digest = hashlib.sha256(json.dumps(normalized, sort_keys=True).encode("utf-8")).hexdigest()
    # Truncate the prefix, never the digest.
    suffix = f":{criteria.lead_count}:{digest}"
    safe_prefix = _UNSAFE_KEY_CHARS.sub("_", prefix)
    return f"{safe_prefix[: MAX_KEY_LENGTH - len(suffix)]}{suffix}"


class CacheGateway:
    """Thin TTL key/value wrapper over redis.

    Failures are raised as StoreUnavailable; deciding whether a cache failure
    is fatal is left to the caller.
    """

    def __init__(self, client: redis.Redis | None = None, ttl_seconds: int | None = None) -> None:
        cfg = get_config()
        self.client = client if client is not None else redis.Redis.from_url(cfg.REDIS_URL, decode_responses=True)
        self.ttl_seconds = ttl_seconds or cfg.LEAD_CACHE_TTL_SECONDS

    def get(self, key: str) -> str | None:
        try:
            value = self.client.get(key)
        except redis.RedisError as exc:
            raise StoreUnavailable(f"Cache read failed: {exc}") from exc
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set_with_ttl(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        try:
            self.client.set(key, value, ex=ttl_seconds or self.ttl_seconds)
        except redis.RedisError as exc:
            raise StoreUnavailable(f"Cache write failed: {exc}") from exc
        logger.debug("cache.stored", extra={"event": "cache.stored", "key": key})

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            logger.warning("cache.ping.failed", extra={"event": "cache.ping.failed"})
            return False

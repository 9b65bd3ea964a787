from __future__ import annotations

import pytest
import redis

from app.core.exceptions import StoreUnavailable
from app.schemas.leads import AcquisitionCriteria
from app.services.cache_gateway import MAX_KEY_LENGTH, CacheGateway, build_fingerprint


class _BrokenRedis:
    def get(self, key):
        raise redis.ConnectionError("connection refused")

    def set(self, key, value, ex=None):
        raise redis.ConnectionError("connection refused")

    def ping(self):
        raise redis.ConnectionError("connection refused")


def test_fingerprint_is_order_and_case_independent():
    first = AcquisitionCriteria(industries=["Software", "Finance"], roles=["CTO", "CEO"], lead_count=25)
    second = AcquisitionCriteria(industries=["finance", "software"], roles=["CEO", "CTO"], lead_count=25)

    assert build_fingerprint(first, prefix="lead_search") == build_fingerprint(second, prefix="lead_search")


def test_fingerprint_changes_with_lead_count_and_facets():
    base = AcquisitionCriteria(industries=["Software"], lead_count=10)

    assert build_fingerprint(base, prefix="p") != build_fingerprint(base.model_copy(update={"lead_count": 11}), prefix="p")
    assert build_fingerprint(base, prefix="p") != build_fingerprint(
        AcquisitionCriteria(industries=["Software"], countries=["Canada"], lead_count=10), prefix="p"
    )


def test_fingerprint_is_ascii_safe_and_capped():
    key = build_fingerprint(AcquisitionCriteria(roles=["Directeur général"]), prefix="lead search/ünïcode" * 20)

    assert len(key) <= MAX_KEY_LENGTH
    assert key.isascii()
    assert " " not in key and "/" not in key


def test_set_and_get_round_trip_with_ttl(cache, fake_redis):
    cache.set_with_ttl("lead_search:key", '{"leads": []}', ttl_seconds=120)

    assert cache.get("lead_search:key") == '{"leads": []}'
    assert 0 < fake_redis.ttl("lead_search:key") <= 120
    assert cache.get("lead_search:missing") is None


def test_redis_errors_surface_as_store_unavailable():
    gateway = CacheGateway(client=_BrokenRedis(), ttl_seconds=60)

    with pytest.raises(StoreUnavailable):
        gateway.get("k")
    with pytest.raises(StoreUnavailable):
        gateway.set_with_ttl("k", "v")
    assert gateway.ping() is False

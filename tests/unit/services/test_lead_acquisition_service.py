from __future__ import annotations

import pytest

import app.services.contact_provider_client as provider_module
from app.core.enums import SearchStrategy
from app.core.exceptions import (
    NoResultsFound,
    ProviderAuthError,
    ProviderRateLimited,
    ProviderServerError,
    ProviderValidationError,
    StoreUnavailable,
)
from app.schemas.leads import AcquisitionCriteria
from app.services.cache_gateway import build_fingerprint
from app.services.contact_provider_client import ContactProviderClient, ProviderPage
from app.services.lead_acquisition_service import (
    LeadAcquisitionService,
    StrategyAttempt,
    StrategyOutcome,
    run_fallback,
)


class _ScriptedProvider:
    """Returns one scripted response per call, in order."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.shapes = []

    def search(self, shape):
        self.shapes.append(shape)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return ProviderPage(records=response, total_entries=len(response))


class _JsonResponse:
    status_code = 200
    headers: dict = {}
    text = ""

    def __init__(self, body):
        self._body = body

    def json(self):
        return self._body


class _BrokenCache:
    def get(self, key):
        raise StoreUnavailable("cache down")

    def set_with_ttl(self, key, value, ttl_seconds=None):
        raise StoreUnavailable("cache down")


def _service(session, cache, provider) -> LeadAcquisitionService:
    return LeadAcquisitionService(db=session, cache=cache, provider=provider)


def test_fourth_strategy_wins_after_three_empty_yields(session, cache, full_criteria, make_person):
    provider = _ScriptedProvider([[], [], [{"id": "junk"}], [make_person()]])

    result = _service(session, cache, provider).acquire(full_criteria)

    assert result.from_cache is False
    assert result.strategy is SearchStrategy.BROAD
    assert result.strategies_attempted == 4
    assert [lead.id for lead in result.leads] == ["p-1"]
    assert [shape.strategy for shape in provider.shapes] == [
        SearchStrategy.COMPLEX,
        SearchStrategy.SIMPLIFIED,
        SearchStrategy.MINIMAL,
        SearchStrategy.BROAD,
    ]


def test_second_acquire_is_served_from_cache(session, cache, full_criteria, make_person):
    provider = _ScriptedProvider([[make_person()]])
    service = _service(session, cache, provider)

    first = service.acquire(full_criteria)
    reordered = full_criteria.model_copy(update={"industries": list(reversed(full_criteria.industries))})
    second = service.acquire(reordered)

    assert first.from_cache is False
    assert second.from_cache is True
    assert second.leads == first.leads
    assert len(provider.shapes) == 1


def test_validation_and_server_errors_fall_through(session, cache, make_person):
    provider = _ScriptedProvider(
        [ProviderValidationError("bad filter", status_code=422), ProviderServerError("boom", status_code=502), [make_person()]]
    )
    criteria = AcquisitionCriteria(
        roles=["CTO", "CFO"], industries=["Software"], countries=["US"], company_sizes=["51-200"]
    )

    result = _service(session, cache, provider).acquire(criteria)

    assert result.strategy is SearchStrategy.MINIMAL
    assert result.strategies_attempted == 3


@pytest.mark.parametrize("error", [ProviderAuthError("bad key", 401), ProviderRateLimited("slow down")])
def test_auth_and_rate_limit_abort_the_chain(session, cache, full_criteria, error):
    provider = _ScriptedProvider([error, [], [], []])

    with pytest.raises(type(error)):
        _service(session, cache, provider).acquire(full_criteria)
    assert len(provider.shapes) == 1


def test_exhaustion_raises_no_results_with_last_error(session, cache, full_criteria):
    last = ProviderValidationError("still bad", status_code=400)
    provider = _ScriptedProvider([[], [], [], last])

    with pytest.raises(NoResultsFound) as exc:
        _service(session, cache, provider).acquire(full_criteria)
    assert exc.value.strategies_attempted == 4
    assert exc.value.last_error is last


def test_cache_failures_degrade_to_a_miss(session, full_criteria, make_person):
    provider = _ScriptedProvider([[make_person()], [make_person()]])
    service = _service(session, _BrokenCache(), provider)

    assert service.acquire(full_criteria).from_cache is False
    assert service.acquire(full_criteria).from_cache is False
    assert len(provider.shapes) == 2


def test_corrupt_cache_entry_is_ignored(session, cache, full_criteria, make_person, fake_redis):
    fake_redis.set(build_fingerprint(full_criteria), "{not json")
    provider = _ScriptedProvider([[make_person()]])

    result = _service(session, cache, provider).acquire(full_criteria)

    assert result.from_cache is False
    assert len(provider.shapes) == 1


def test_leads_are_truncated_to_requested_count(session, cache, make_person):
    records = [make_person(id=f"p-{i}") for i in range(5)]
    provider = _ScriptedProvider([records])

    result = _service(session, cache, provider).acquire(AcquisitionCriteria(roles=["CTO"], lead_count=3))

    assert len(result.leads) == 3
    assert result.total_found == 5


def test_run_fallback_returns_first_non_empty_outcome():
    calls = []

    def _attempt(strategy, leads):
        def run():
            calls.append(strategy)
            return StrategyOutcome(strategy=strategy, leads=leads)

        return StrategyAttempt(strategy=strategy, run=run)

    outcome, attempted = run_fallback(
        [
            _attempt(SearchStrategy.COMPLEX, []),
            _attempt(SearchStrategy.SIMPLIFIED, ["lead"]),
            _attempt(SearchStrategy.MINIMAL, ["other"]),
        ]
    )

    assert outcome.strategy is SearchStrategy.SIMPLIFIED
    assert attempted == 2
    assert calls == [SearchStrategy.COMPLEX, SearchStrategy.SIMPLIFIED]


def test_run_fallback_with_no_attempts_raises():
    with pytest.raises(NoResultsFound) as exc:
        run_fallback([])
    assert exc.value.last_error is None



def test_malformed_provider_page_moves_on_to_next_strategy(session, cache, make_person, monkeypatch):
    bodies = [
        {"people": [], "pagination": {"total_entries": "n/a"}},
        {"people": [make_person()], "pagination": {"total_entries": 1, "page": 1}},
    ]
    monkeypatch.setattr(provider_module.requests, "post", lambda *args, **kwargs: _JsonResponse(bodies.pop(0)))
    client = ContactProviderClient(api_key="test-key", base_url="https://provider.test/api/v1")
    criteria = AcquisitionCriteria(roles=["CTO", "CFO"], industries=["Software"], company_sizes=["51-200"])

    result = _service(session, cache, client).acquire(criteria)

    assert [lead.id for lead in result.leads] == ["p-1"]
    assert result.strategy is SearchStrategy.SIMPLIFIED
    assert result.strategies_attempted == 2
    assert bodies == []

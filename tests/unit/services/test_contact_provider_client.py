from __future__ import annotations

import pytest
import requests

import app.services.contact_provider_client as provider_module
from app.core.enums import SearchStrategy
from app.core.exceptions import (
    ProviderAuthError,
    ProviderRateLimited,
    ProviderServerError,
    ProviderValidationError,
)
from app.services.contact_provider_client import ContactProviderClient
from app.services.search_strategy_planner import QueryShape


class _Response:
    def __init__(self, status_code: int, body=None, headers=None, text: str = "") -> None:
        self.status_code = status_code
        self._body = body
        self.headers = headers or {}
        self.text = text

    def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


def _shape() -> QueryShape:
    return QueryShape(strategy=SearchStrategy.MINIMAL, per_page=10, titles=("CTO",))


def _client() -> ContactProviderClient:
    return ContactProviderClient(api_key="test-key", base_url="https://provider.test/api/v1/", timeout_seconds=7)


def test_search_posts_shape_payload_with_api_key(monkeypatch):
    calls = []

    def _post(url, json=None, headers=None, timeout=None):
        calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        return _Response(
            200,
            {
                "people": [{"id": "a"}],
                "contacts": [{"id": "b"}, "junk"],
                "pagination": {"page": 1, "total_entries": 340},
            },
        )

    monkeypatch.setattr(provider_module.requests, "post", _post)

    page = _client().search(_shape())

    assert [record["id"] for record in page.records] == ["a", "b"]
    assert page.total_entries == 340
    assert calls[0]["url"] == "https://provider.test/api/v1/mixed_people/search"
    assert calls[0]["headers"]["X-Api-Key"] == "test-key"
    assert calls[0]["json"]["person_titles"] == ["CTO"]
    assert calls[0]["json"]["include_similar_titles"] is True
    assert calls[0]["timeout"] == (5, 7)


@pytest.mark.parametrize(
    "status_code, error_type",
    [
        (401, ProviderAuthError),
        (403, ProviderAuthError),
        (429, ProviderRateLimited),
        (400, ProviderValidationError),
        (422, ProviderValidationError),
        (500, ProviderServerError),
        (503, ProviderServerError),
    ],
)
def test_status_codes_map_to_typed_errors(monkeypatch, status_code, error_type):
    monkeypatch.setattr(provider_module.requests, "post", lambda *a, **k: _Response(status_code, {}, text="nope"))

    with pytest.raises(error_type) as exc:
        _client().search(_shape())
    assert exc.value.status_code == status_code


def test_rate_limit_carries_retry_after(monkeypatch):
    monkeypatch.setattr(
        provider_module.requests,
        "post",
        lambda *a, **k: _Response(429, {}, headers={"Retry-After": "30"}),
    )

    with pytest.raises(ProviderRateLimited) as exc:
        _client().search(_shape())
    assert exc.value.retry_after == 30


def test_transport_failure_is_a_server_error(monkeypatch):
    def _post(*args, **kwargs):
        raise requests.exceptions.ReadTimeout("read timed out")

    monkeypatch.setattr(provider_module.requests, "post", _post)

    with pytest.raises(ProviderServerError):
        _client().search(_shape())


def test_unreadable_body_is_a_server_error(monkeypatch):
    monkeypatch.setattr(provider_module.requests, "post", lambda *a, **k: _Response(200, ValueError("bad json")))

    with pytest.raises(ProviderServerError):
        _client().search(_shape())


def test_missing_api_key_is_an_auth_error(monkeypatch):
    def _post(*args, **kwargs):
        raise AssertionError("no request expected")

    monkeypatch.setattr(provider_module.requests, "post", _post)

    with pytest.raises(ProviderAuthError):
        ContactProviderClient(api_key="", base_url="https://provider.test").search(_shape())


@pytest.mark.parametrize(
    "pagination",
    [
        {"total_entries": "n/a", "page": "first"},
        {"total_entries": None, "page": -2},
        {"total_entries": float("inf")},
        ["not", "a", "mapping"],
        "page=1",
    ],
)
def test_malformed_pagination_falls_back_to_record_count(monkeypatch, pagination):
    body = {"people": [{"id": "a"}, {"id": "b"}], "pagination": pagination}
    monkeypatch.setattr(provider_module.requests, "post", lambda *args, **kwargs: _Response(200, body))

    page = _client().search(_shape())

    assert len(page.records) == 2
    assert page.total_entries == 2
    assert page.page == 1

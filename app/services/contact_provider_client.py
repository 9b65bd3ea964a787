from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import requests

from app.core.config import get_config
from app.core.exceptions import (
    ProviderAuthError,
    ProviderRateLimited,
    ProviderServerError,
    ProviderValidationError,
)
from app.services.search_strategy_planner import QueryShape

logger = logging.getLogger(__name__)

SEARCH_PATH = "/mixed_people/search"
CONNECT_TIMEOUT_SECONDS = 5


@dataclass
class ProviderPage:
    records: list[dict[str, Any]] = field(default_factory=list)
    total_entries: int = 0
    page: int = 1


def _retry_after(response: requests.Response) -> int | None:
    value = response.headers.get("Retry-After")
    if value and value.strip().isdigit():
        return int(value.strip())
    return None


def _count(value: Any, default: int) -> int:
    """Pagination counters are informational; junk falls back to `default`."""
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return number if number > 0 else default


def _raise_for_status(response: requests.Response) -> None:
    status = response.status_code
    if status < 400:
        return
    detail = f"Contact provider returned {status}: {response.text[:200]}"
    if status in (401, 403):
        raise ProviderAuthError(detail, status_code=status)
    if status == 429:
        raise ProviderRateLimited(detail, status_code=status, retry_after=_retry_after(response))
    if status in (400, 422):
        raise ProviderValidationError(detail, status_code=status)
    raise ProviderServerError(detail, status_code=status)


class ContactProviderClient:
    """Stateless client for the people-search provider. One HTTP call per search."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout_seconds: int | None = None,
    ) -> None:
        cfg = get_config()
        self.api_key = api_key if api_key is not None else cfg.CONTACT_PROVIDER_API_KEY
        self.base_url = (base_url or cfg.CONTACT_PROVIDER_BASE_URL).rstrip("/")
        self.timeout_seconds = timeout_seconds or cfg.CONTACT_PROVIDER_TIMEOUT_SECONDS

    def search(self, shape: QueryShape) -> ProviderPage:
        if not self.api_key:
            raise ProviderAuthError("Contact provider API key is not configured.")

        payload = shape.to_payload()
        try:
            response = requests.post(
                f"{self.base_url}{SEARCH_PATH}",
                json=payload,
                headers={
                    "Content-Type": "application/json",
                    "Cache-Control": "no-cache",
                    "X-Api-Key": self.api_key,
                },
                timeout=(CONNECT_TIMEOUT_SECONDS, self.timeout_seconds),
            )
        except requests.exceptions.RequestException as exc:
            raise ProviderServerError(f"Contact provider request failed: {exc}") from exc

        _raise_for_status(response)
        try:
            body = response.json()
        except ValueError as exc:
            raise ProviderServerError("Contact provider returned an unreadable body.", status_code=response.status_code) from exc
        if not isinstance(body, dict):
            raise ProviderServerError("Contact provider returned an unexpected body.", status_code=response.status_code)

        records: list[dict[str, Any]] = []
        for key in ("people", "contacts"):
            items = body.get(key)
            if isinstance(items, list):
                records.extend(item for item in items if isinstance(item, dict))

        pagination = body.get("pagination")
        if not isinstance(pagination, dict):
            pagination = {}
        page = ProviderPage(
            records=records,
            total_entries=_count(pagination.get("total_entries"), len(records)),
            page=_count(pagination.get("page"), shape.page),
        )
        logger.info(
            "contact_provider.search.completed",
            extra={
                "event": "contact_provider.search.completed",
                "strategy": shape.strategy.value,
                "records": len(records),
                "total_entries": page.total_entries,
            },
        )
        return page

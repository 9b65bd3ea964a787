"""Acquisition orchestrator: cache, strategy fallback, persistence, settlement."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from app.core.enums import SearchStrategy
from app.core.exceptions import (
    InsufficientCredits,
    NoResultsFound,
    ProviderAuthError,
    ProviderRateLimited,
    ProviderServerError,
    ProviderValidationError,
    SettlementFailed,
    StoreUnavailable,
)
from app.schemas.leads import AcquisitionCriteria, AcquisitionOutcome, AcquisitionResult, Lead, validate_criteria
from app.services.base_service import BaseService
from app.services.cache_gateway import CacheGateway, build_fingerprint
from app.services.contact_provider_client import ContactProviderClient
from app.services.credit_ledger_service import CreditLedgerService
from app.services.lead_generation_store import LeadGenerationStore
from app.services.result_normalizer import normalize
from app.services.search_strategy_planner import QueryShape, plan
from app.services.settlement_reconciler import SettlementReconciler

logger = logging.getLogger(__name__)

# Errors that mean "this query shape did not work"; anything else aborts the chain.
STRATEGY_FAILURES = (ProviderValidationError, ProviderServerError)
FATAL_PROVIDER_ERRORS = (ProviderAuthError, ProviderRateLimited)


@dataclass
class StrategyOutcome:
    strategy: SearchStrategy
    leads: list[Lead] = field(default_factory=list)
    total_found: int = 0


@dataclass(frozen=True)
class StrategyAttempt:
    strategy: SearchStrategy
    run: Callable[[], StrategyOutcome]


def run_fallback(attempts: Sequence[StrategyAttempt]) -> tuple[StrategyOutcome, int]:
    """Evaluate attempts in order until one yields at least one lead.

    Returns the winning outcome and the number of attempts made. Auth and
    rate-limit errors propagate immediately. Validation and server errors
    are remembered and the next attempt runs.
    """
    last_error: Exception | None = None
    for index, attempt in enumerate(attempts, start=1):
        try:
            outcome = attempt.run()
        except FATAL_PROVIDER_ERRORS:
            logger.error(
                "lead_acquisition.strategy_aborted",
                extra={"event": "lead_acquisition.strategy_aborted", "strategy": attempt.strategy.value},
            )
            raise
        except STRATEGY_FAILURES as exc:
            last_error = exc
            logger.warning(
                "lead_acquisition.strategy_failed",
                extra={
                    "event": "lead_acquisition.strategy_failed",
                    "strategy": attempt.strategy.value,
                    "attempt": index,
                    "error": str(exc),
                },
            )
            continue

        if outcome.leads:
            return outcome, index
        logger.info(
            "lead_acquisition.strategy_empty",
            extra={"event": "lead_acquisition.strategy_empty", "strategy": attempt.strategy.value, "attempt": index},
        )

    raise NoResultsFound(len(attempts), last_error)


class LeadAcquisitionService(BaseService):
    """Top-level coordinator for acquiring leads and charging for them."""

    def __init__(
        self,
        db: Session | None = None,
        ledger: CreditLedgerService | None = None,
        cache: CacheGateway | None = None,
        provider: ContactProviderClient | None = None,
        store: LeadGenerationStore | None = None,
        reconciler: SettlementReconciler | None = None,
    ) -> None:
        super().__init__(db)
        self.ledger = ledger or CreditLedgerService(db=self.db)
        self.cache = cache or CacheGateway()
        self.provider = provider or ContactProviderClient()
        self.store = store or LeadGenerationStore(db=self.db)
        self.reconciler = reconciler or SettlementReconciler(db=self.db, ledger=self.ledger)

    def _read_cache(self, key: str) -> AcquisitionResult | None:
        try:
            raw = self.cache.get(key)
        except StoreUnavailable as exc:
            logger.warning("lead_acquisition.cache_read_failed", extra={"event": "lead_acquisition.cache_read_failed", "error": str(exc)})
            return None
        if not raw:
            return None
        try:
            return AcquisitionResult.model_validate_json(raw)
        except PydanticValidationError:
            logger.warning("lead_acquisition.cache_corrupt", extra={"event": "lead_acquisition.cache_corrupt", "key": key})
            return None

    def _write_cache(self, key: str, result: AcquisitionResult) -> None:
        try:
            self.cache.set_with_ttl(key, result.model_dump_json())
        except StoreUnavailable as exc:
            logger.warning("lead_acquisition.cache_write_failed", extra={"event": "lead_acquisition.cache_write_failed", "error": str(exc)})

    def _strategy_attempt(self, shape: QueryShape, criteria: AcquisitionCriteria) -> StrategyAttempt:
        def run() -> StrategyOutcome:
            page = self.provider.search(shape)
            leads = normalize(page.records, criteria)[: criteria.lead_count]
            return StrategyOutcome(strategy=shape.strategy, leads=leads, total_found=max(page.total_entries, len(leads)))

        return StrategyAttempt(strategy=shape.strategy, run=run)

    def acquire(self, criteria: AcquisitionCriteria | dict[str, Any]) -> AcquisitionResult:
        criteria = validate_criteria(criteria)
        started = time.perf_counter()
        key = build_fingerprint(criteria)

        cached = self._read_cache(key)
        if cached is not None:
            elapsed = int((time.perf_counter() - started) * 1000)
            logger.info(
                "lead_acquisition.cache_hit",
                extra={"event": "lead_acquisition.cache_hit", "key": key, "leads": len(cached.leads)},
            )
            return cached.model_copy(update={"from_cache": True, "elapsed_time_ms": elapsed})

        logger.info(
            "lead_acquisition.started",
            extra={
                "event": "lead_acquisition.started",
                "lead_count": criteria.lead_count,
                "total_filters": criteria.total_filters,
                "location_count": criteria.location_count,
                "complexity": criteria.complexity_level,
            },
        )
        attempts = [self._strategy_attempt(shape, criteria) for shape in plan(criteria)]
        outcome, attempted = run_fallback(attempts)

        result = AcquisitionResult(
            leads=outcome.leads,
            total_found=outcome.total_found,
            from_cache=False,
            elapsed_time_ms=int((time.perf_counter() - started) * 1000),
            strategy=outcome.strategy,
            strategies_attempted=attempted,
        )
        self._write_cache(key, result)
        logger.info(
            "lead_acquisition.completed",
            extra={
                "event": "lead_acquisition.completed",
                "strategy": outcome.strategy.value,
                "strategies_attempted": attempted,
                "leads": len(result.leads),
                "elapsed_ms": result.elapsed_time_ms,
            },
        )
        return result

    def acquire_and_settle(
        self,
        criteria: AcquisitionCriteria | dict[str, Any],
        user_id: str,
        workspace_id: str,
        campaign_name: str | None = None,
    ) -> AcquisitionOutcome:
        """Pre-check, acquire, persist, then charge for the actual yield.

        InsufficientCredits is raised before any provider call. A settlement
        failure after persistence is queued for reconciliation and raised as
        SettlementFailed carrying the record id.
        """
        criteria = validate_criteria(criteria)
        check = self.ledger.check_affordability(user_id, criteria.lead_count)
        if not check.can_afford:
            raise InsufficientCredits(
                check.reason or "Insufficient credits.",
                required=check.quote.total_cost,
                available=check.account.balance,
                free_units_available=check.account.free_units_available,
                max_obtainable=check.max_obtainable,
            )

        result = self.acquire(criteria)
        record_id = self.store.save(user_id, workspace_id, result.leads, criteria, result=result, campaign_name=campaign_name)

        try:
            deduction = self.ledger.settle(user_id, workspace_id, len(result.leads), reference_id=record_id)
        except (InsufficientCredits, StoreUnavailable) as exc:
            try:
                self.reconciler.record_pending(record_id, user_id, workspace_id, len(result.leads), exc)
            except StoreUnavailable:
                logger.exception(
                    "settlement.pending_not_recorded",
                    extra={"event": "settlement.pending_not_recorded", "record_id": record_id},
                )
            raise SettlementFailed(record_id, exc) from exc

        logger.info(
            "lead_acquisition.settled",
            extra={
                "event": "lead_acquisition.settled",
                "record_id": record_id,
                "user_id": user_id,
                "leads": len(result.leads),
                "credits_deducted": deduction.credits_deducted,
                "from_cache": result.from_cache,
            },
        )
        return AcquisitionOutcome(
            record_id=record_id,
            leads=result.leads,
            total_found=result.total_found,
            credits_deducted=deduction.credits_deducted,
            free_units_used=deduction.free_units_used,
            remaining_balance=deduction.remaining_balance,
            remaining_free_units=deduction.remaining_free_units,
            from_cache=result.from_cache,
            strategy=result.strategy,
            elapsed_time_ms=result.elapsed_time_ms,
        )

"""Hybrid free/paid credit ledger.

Every user gets a fixed number of free leads; anything above that costs
credits. Deduction happens only at settlement, for the leads that were
actually produced, inside one store-level transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import get_config
from app.core.enums import GRANT_SOURCES, USAGE_TYPES, TransactionType
from app.core.exceptions import InsufficientCredits, StoreUnavailable, ValidationError
from app.models import CreditAccount, CreditTransaction
from app.models.base import utcnow
from app.services.base_service import BaseService

logger = logging.getLogger(__name__)

CREDIT_PACKAGES: tuple[dict[str, Any], ...] = (
    {
        "id": "starter",
        "name": "Starter",
        "credits": 1000,
        "price": 99,
        "features": ["~200-500 leads", "Basic targeting", "Email support"],
    },
    {
        "id": "professional",
        "name": "Professional",
        "credits": 5000,
        "price": 299,
        "popular": True,
        "features": ["~1,000-2,500 leads", "Advanced targeting", "Priority support", "Analytics dashboard"],
    },
    {
        "id": "enterprise",
        "name": "Enterprise",
        "credits": 15000,
        "price": 799,
        "features": ["~3,000-7,500 leads", "Custom targeting", "Dedicated support", "API access", "Custom integrations"],
    },
)

_TIMEFRAME_DAYS = {"week": 7, "month": 30, "all": None}


@dataclass(frozen=True)
class AccountSnapshot:
    user_id: str
    balance: int
    free_units_consumed: int
    free_units_available: int
    total_purchased: int


@dataclass(frozen=True)
class CostQuote:
    free_units_used: int
    paid_units: int
    total_cost: int


@dataclass(frozen=True)
class AffordabilityCheck:
    can_afford: bool
    quote: CostQuote
    account: AccountSnapshot
    reason: str | None = None
    max_obtainable: int = 0


@dataclass(frozen=True)
class CreditDeductionResult:
    credits_deducted: int
    free_units_used: int
    remaining_balance: int
    remaining_free_units: int
    already_settled: bool = False


@dataclass(frozen=True)
class UsageStats:
    credits_used: int
    generations_count: int
    total_leads_generated: int
    free_units_used: int
    timeframe: str


def quote_cost(requested_count: int, free_units_available: int, unit_price: int = 1) -> CostQuote:
    """Split a lead count into free and paid units. Pure, no I/O."""
    if requested_count < 0:
        raise ValidationError("requested_count must not be negative.")
    free_units_used = min(requested_count, max(0, free_units_available))
    paid_units = requested_count - free_units_used
    return CostQuote(
        free_units_used=free_units_used,
        paid_units=paid_units,
        total_cost=paid_units * unit_price,
    )


class CreditLedgerService(BaseService):
    """Reads, quotes and mutates user credit balances."""

    def __init__(
        self,
        db: Session | None = None,
        free_tier_limit: int | None = None,
        unit_price: int | None = None,
        max_attempts: int | None = None,
    ) -> None:
        super().__init__(db)
        cfg = get_config()
        self.free_tier_limit = cfg.FREE_TIER_LIMIT if free_tier_limit is None else free_tier_limit
        self.unit_price = unit_price or cfg.CREDITS_PER_LEAD
        self.max_attempts = max_attempts or cfg.LEDGER_SETTLE_MAX_ATTEMPTS

    def free_units_available(self, free_units_consumed: int) -> int:
        return max(0, self.free_tier_limit - free_units_consumed)

    def _snapshot(self, account: CreditAccount) -> AccountSnapshot:
        return AccountSnapshot(
            user_id=account.user_id,
            balance=account.balance,
            free_units_consumed=account.free_units_consumed,
            free_units_available=self.free_units_available(account.free_units_consumed),
            total_purchased=account.total_purchased,
        )

    def _fetch_account(self, user_id: str, lock: bool = False) -> CreditAccount | None:
        query = self.db.query(CreditAccount).filter(CreditAccount.user_id == user_id).populate_existing()
        if lock:
            query = query.with_for_update()
        return query.first()

    def _load_or_create(self, user_id: str) -> CreditAccount:
        account = self._fetch_account(user_id)
        if account is not None:
            return account

        self.db.add(CreditAccount(user_id=user_id, balance=0, free_units_consumed=0, total_purchased=0))
        try:
            self.db.commit()
        except IntegrityError:
            # Another request created the row first.
            self.db.rollback()
        else:
            logger.info("credits.account.created", extra={"event": "credits.account.created", "user_id": user_id})

        account = self._fetch_account(user_id)
        if account is None:
            raise StoreUnavailable(f"Credit account for {user_id} could not be created.")
        return account

    def get_account(self, user_id: str) -> AccountSnapshot:
        with self.store_guard("get_account"):
            return self._snapshot(self._load_or_create(user_id))

    def max_obtainable(self, balance: int, free_units_available: int) -> int:
        """Leads the caller can still pay for, free units included."""
        return balance // self.unit_price + free_units_available

    def quote_cost(self, requested_count: int, free_units_available: int) -> CostQuote:
        return quote_cost(requested_count, free_units_available, self.unit_price)

    def check_affordability(self, user_id: str, requested_count: int) -> AffordabilityCheck:
        if requested_count < 1:
            raise ValidationError("requested_count must be a positive integer.")
        account = self.get_account(user_id)
        quote = self.quote_cost(requested_count, account.free_units_available)
        can_afford = quote.total_cost <= account.balance

        reason = None
        max_obtainable = self.max_obtainable(account.balance, account.free_units_available)
        if not can_afford:
            reason = (
                f"Insufficient credits: {requested_count} leads need {quote.total_cost} credits "
                f"but you have {account.balance}. You can generate up to {max_obtainable} leads "
                f"with your current balance ({account.free_units_available} free)."
            )
            logger.info(
                "credits.affordability.denied",
                extra={
                    "event": "credits.affordability.denied",
                    "user_id": user_id,
                    "requested_count": requested_count,
                    "required": quote.total_cost,
                    "balance": account.balance,
                },
            )
        return AffordabilityCheck(
            can_afford=can_afford,
            quote=quote,
            account=account,
            reason=reason,
            max_obtainable=max_obtainable,
        )

    def settle(
        self,
        user_id: str,
        workspace_id: str,
        actual_yield: int,
        reference_id: str | None = None,
    ) -> CreditDeductionResult:
        """Charge for `actual_yield` leads as one atomic unit.

        The account row is re-read inside the transaction and the balance is
        written with a guarded UPDATE on the observed values, so a concurrent
        settlement that changed the row in between forces a fresh retry
        instead of an overdraw.

        With a `reference_id`, a record that already has usage rows is not
        charged again; the result comes back with `already_settled=True`.
        """
        if actual_yield < 0:
            raise ValidationError("actual_yield must not be negative.")

        with self.store_guard("settle"):
            self._load_or_create(user_id)

        for attempt in range(1, self.max_attempts + 1):
            with self.store_guard("settle"):
                account = self._fetch_account(user_id, lock=True)
                if account is None:
                    raise StoreUnavailable(f"Credit account for {user_id} disappeared during settlement.")
                balance_before = account.balance
                free_consumed_before = account.free_units_consumed
                free_available = self.free_units_available(free_consumed_before)
                if reference_id is not None and self._has_usage_for(user_id, reference_id):
                    # A concurrent settlement of the same record commits its
                    # usage rows with the balance change, so a lost race
                    # always lands here on the retry.
                    self.rollback()
                    logger.info(
                        "credits.settle.already_settled",
                        extra={"event": "credits.settle.already_settled", "user_id": user_id, "reference_id": reference_id},
                    )
                    return CreditDeductionResult(0, 0, balance_before, free_available, already_settled=True)
                quote = self.quote_cost(actual_yield, free_available)

                if quote.total_cost > balance_before:
                    self.rollback()
                    max_obtainable = self.max_obtainable(balance_before, free_available)
                    logger.warning(
                        "credits.settle.insufficient",
                        extra={
                            "event": "credits.settle.insufficient",
                            "user_id": user_id,
                            "reference_id": reference_id,
                            "required": quote.total_cost,
                            "balance": balance_before,
                        },
                    )
                    raise InsufficientCredits(
                        f"Insufficient credits. Need {quote.total_cost}, have {balance_before}. "
                        f"You can generate up to {max_obtainable} leads with your current balance.",
                        required=quote.total_cost,
                        available=balance_before,
                        free_units_available=free_available,
                        max_obtainable=max_obtainable,
                    )

                if actual_yield == 0:
                    self.rollback()
                    return CreditDeductionResult(0, 0, balance_before, free_available)

                updated = self.db.execute(
                    update(CreditAccount)
                    .where(
                        CreditAccount.id == account.id,
                        CreditAccount.balance == balance_before,
                        CreditAccount.free_units_consumed == free_consumed_before,
                    )
                    .values(
                        balance=CreditAccount.balance - quote.total_cost,
                        free_units_consumed=CreditAccount.free_units_consumed + quote.free_units_used,
                        updated_at=utcnow(),
                    )
                    .execution_options(synchronize_session=False)
                ).rowcount
                if updated != 1:
                    self.rollback()
                    logger.warning(
                        "credits.settle.contention",
                        extra={"event": "credits.settle.contention", "user_id": user_id, "attempt": attempt},
                    )
                    continue

                balance_after = balance_before - quote.total_cost
                free_consumed_after = free_consumed_before + quote.free_units_used
                if quote.total_cost > 0:
                    self.db.add(
                        CreditTransaction(
                            user_id=user_id,
                            workspace_id=workspace_id,
                            amount=-quote.total_cost,
                            transaction_type=TransactionType.USAGE.value,
                            description=f"Lead generation: {actual_yield} leads",
                            reference_id=reference_id,
                            details={
                                "lead_count": actual_yield,
                                "free_units_used": quote.free_units_used,
                                "paid_units": quote.paid_units,
                                "unit_price": self.unit_price,
                                "balance_before": balance_before,
                                "balance_after": balance_after,
                            },
                        )
                    )
                if quote.free_units_used > 0:
                    self.db.add(
                        CreditTransaction(
                            user_id=user_id,
                            workspace_id=workspace_id,
                            amount=0,
                            transaction_type=TransactionType.FREE_USAGE.value,
                            description=f"Free leads used: {quote.free_units_used} leads",
                            reference_id=reference_id,
                            details={
                                "lead_count": actual_yield,
                                "free_units_used": quote.free_units_used,
                                "free_units_consumed_after": free_consumed_after,
                            },
                        )
                    )
                self.commit()

            result = CreditDeductionResult(
                credits_deducted=quote.total_cost,
                free_units_used=quote.free_units_used,
                remaining_balance=balance_after,
                remaining_free_units=self.free_units_available(free_consumed_after),
            )
            logger.info(
                "credits.settled",
                extra={
                    "event": "credits.settled",
                    "user_id": user_id,
                    "workspace_id": workspace_id,
                    "reference_id": reference_id,
                    "actual_yield": actual_yield,
                    "credits_deducted": result.credits_deducted,
                    "free_units_used": result.free_units_used,
                    "remaining_balance": result.remaining_balance,
                },
            )
            return result

        raise StoreUnavailable(
            f"Credit account for {user_id} kept changing during settlement; gave up after {self.max_attempts} attempts."
        )

    def _credit(
        self,
        user_id: str,
        amount: int,
        source: str,
        workspace_id: str | None,
        reference_id: str | None,
        description: str,
        extra_details: dict[str, Any] | None = None,
    ) -> AccountSnapshot:
        if amount <= 0:
            raise ValidationError("amount must be a positive integer.")
        if source not in GRANT_SOURCES:
            raise ValidationError(f"Unsupported credit source: {source}")

        with self.store_guard(source):
            self._load_or_create(user_id)
            purchased_increment = amount if source == TransactionType.PURCHASE.value else 0
            self.db.execute(
                update(CreditAccount)
                .where(CreditAccount.user_id == user_id)
                .values(
                    balance=CreditAccount.balance + amount,
                    total_purchased=CreditAccount.total_purchased + purchased_increment,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            account = self._fetch_account(user_id, lock=True)
            details: dict[str, Any] = {
                "source": source,
                "previous_balance": account.balance - amount,
                "new_balance": account.balance,
            }
            details.update(extra_details or {})
            self.db.add(
                CreditTransaction(
                    user_id=user_id,
                    workspace_id=workspace_id,
                    amount=amount,
                    transaction_type=source,
                    description=description,
                    reference_id=reference_id,
                    details=details,
                )
            )
            self.commit()
            snapshot = self._snapshot(account)

        logger.info(
            "credits.added",
            extra={
                "event": "credits.added",
                "user_id": user_id,
                "amount": amount,
                "source": source,
                "reference_id": reference_id,
                "new_balance": snapshot.balance,
            },
        )
        return snapshot

    def grant(
        self,
        user_id: str,
        amount: int,
        source: str = TransactionType.PURCHASE.value,
        reference_id: str | None = None,
        workspace_id: str | None = None,
        description: str | None = None,
    ) -> AccountSnapshot:
        """Add credits. Does not deduplicate; callers check `reference_id` first."""
        return self._credit(
            user_id,
            amount,
            source,
            workspace_id=workspace_id,
            reference_id=reference_id,
            description=description or f"Credits added: {source}",
        )

    def refund(
        self,
        user_id: str,
        amount: int,
        reason: str,
        workspace_id: str | None = None,
        original_transaction_id: str | None = None,
    ) -> AccountSnapshot:
        return self._credit(
            user_id,
            amount,
            TransactionType.REFUND.value,
            workspace_id=workspace_id,
            reference_id=original_transaction_id,
            description=f"Refund: {reason}",
            extra_details={"refund_reason": reason},
        )

    def history(self, user_id: str, limit: int = 50) -> list[CreditTransaction]:
        with self.store_guard("history"):
            return (
                self.db.query(CreditTransaction)
                .filter(CreditTransaction.user_id == user_id)
                .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
                .limit(limit)
                .all()
            )

    def has_transaction_for_reference(
        self,
        user_id: str,
        reference_id: str,
        kinds: tuple[str, ...] = USAGE_TYPES,
    ) -> bool:
        with self.store_guard("has_transaction_for_reference"):
            return self._has_usage_for(user_id, reference_id, kinds)

    def _has_usage_for(self, user_id: str, reference_id: str, kinds: tuple[str, ...] = USAGE_TYPES) -> bool:
        return (
            self.db.query(CreditTransaction.id)
            .filter(
                CreditTransaction.user_id == user_id,
                CreditTransaction.reference_id == reference_id,
                CreditTransaction.transaction_type.in_(kinds),
            )
            .first()
            is not None
        )

    def usage_stats(self, user_id: str, timeframe: str = "month") -> UsageStats:
        if timeframe not in _TIMEFRAME_DAYS:
            raise ValidationError("timeframe must be one of week, month, all.")
        days = _TIMEFRAME_DAYS[timeframe]

        with self.store_guard("usage_stats"):
            query = self.db.query(CreditTransaction).filter(
                CreditTransaction.user_id == user_id,
                CreditTransaction.transaction_type.in_(USAGE_TYPES),
            )
            if days is not None:
                since = datetime.now(timezone.utc) - timedelta(days=days)
                query = query.filter(CreditTransaction.created_at >= since)
            rows = query.all()

        credits_used = 0
        free_units_used = 0
        leads_by_generation: dict[str, int] = {}
        for row in rows:
            details = row.details or {}
            if row.transaction_type == TransactionType.USAGE.value:
                credits_used += abs(row.amount)
            else:
                free_units_used += int(details.get("free_units_used", 0))
            key = row.reference_id or f"tx:{row.id}"
            leads_by_generation[key] = max(leads_by_generation.get(key, 0), int(details.get("lead_count", 0)))

        return UsageStats(
            credits_used=credits_used,
            generations_count=len(leads_by_generation),
            total_leads_generated=sum(leads_by_generation.values()),
            free_units_used=free_units_used,
            timeframe=timeframe,
        )

    @staticmethod
    def credit_packages() -> list[dict[str, Any]]:
        return [dict(package) for package in CREDIT_PACKAGES]

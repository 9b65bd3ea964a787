from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.enums import SettlementStatus
from app.core.exceptions import InsufficientCredits, StoreUnavailable
from app.models import PendingSettlement
from app.models.base import utcnow
from app.services.base_service import BaseService
from app.services.credit_ledger_service import CreditLedgerService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconciliationSummary:
    attempted: int
    settled: int
    still_pending: int


class SettlementReconciler(BaseService):
    """Tracks lead generations that were persisted but not charged, and retries them."""

    def __init__(self, db: Session | None = None, ledger: CreditLedgerService | None = None) -> None:
        super().__init__(db)
        self.ledger = ledger or CreditLedgerService(db=self.db)

    def record_pending(
        self,
        record_id: str,
        user_id: str,
        workspace_id: str,
        lead_count: int,
        error: Exception,
    ) -> PendingSettlement:
        with self.store_guard("reconciliation.record_pending"):
            pending = self.db.query(PendingSettlement).filter(PendingSettlement.record_id == record_id).first()
            if pending is None:
                pending = PendingSettlement(
                    record_id=record_id,
                    user_id=user_id,
                    workspace_id=workspace_id,
                    lead_count=lead_count,
                    status=SettlementStatus.PENDING,
                    attempts=1,
                    last_error=str(error),
                )
                self.db.add(pending)
            else:
                pending.attempts += 1
                pending.last_error = str(error)
            try:
                self.commit()
            except IntegrityError:
                pending = self.db.query(PendingSettlement).filter(PendingSettlement.record_id == record_id).one()

        logger.warning(
            "settlement.pending",
            extra={
                "event": "settlement.pending",
                "record_id": record_id,
                "user_id": user_id,
                "lead_count": lead_count,
                "error": str(error),
            },
        )
        return pending

    def list_pending(self, user_id: str | None = None, limit: int = 100) -> list[PendingSettlement]:
        with self.store_guard("reconciliation.list_pending"):
            query = self.db.query(PendingSettlement).filter(PendingSettlement.status == SettlementStatus.PENDING)
            if user_id:
                query = query.filter(PendingSettlement.user_id == user_id)
            return query.order_by(PendingSettlement.created_at.asc()).limit(limit).all()

    def _mark_settled(self, pending: PendingSettlement) -> None:
        pending.status = SettlementStatus.SETTLED
        pending.settled_at = utcnow()
        pending.last_error = None
        self.commit()

    def retry_pending(self, user_id: str | None = None, limit: int = 100) -> ReconciliationSummary:
        """Re-attempt settlement for pending records.

        A record that already has a usage row referencing it is marked settled
        without charging again. The pre-check here only skips work; the
        guarantee comes from settle(), which repeats it under the balance guard.
        """
        pending_rows = self.list_pending(user_id=user_id, limit=limit)
        settled = 0
        for pending in pending_rows:
            record_id = pending.record_id
            if self.ledger.has_transaction_for_reference(pending.user_id, record_id):
                with self.store_guard("reconciliation.mark_settled"):
                    self._mark_settled(pending)
                settled += 1
                continue

            try:
                # settle() re-checks the reference inside its own transaction,
                # so a concurrent retry of the same record is not charged twice.
                deduction = self.ledger.settle(
                    pending.user_id, pending.workspace_id, pending.lead_count, reference_id=record_id
                )
            except (InsufficientCredits, StoreUnavailable) as exc:
                with self.store_guard("reconciliation.record_failure"):
                    pending = self.db.get(PendingSettlement, pending.id)
                    pending.attempts += 1
                    pending.last_error = str(exc)
                    self.commit()
                logger.warning(
                    "settlement.retry_failed",
                    extra={"event": "settlement.retry_failed", "record_id": record_id, "error": str(exc)},
                )
                continue

            with self.store_guard("reconciliation.mark_settled"):
                self._mark_settled(self.db.get(PendingSettlement, pending.id))
            settled += 1
            logger.info(
                "settlement.reconciled",
                extra={
                    "event": "settlement.reconciled",
                    "record_id": record_id,
                    "credits_deducted": deduction.credits_deducted,
                    "already_settled": deduction.already_settled,
                },
            )

        return ReconciliationSummary(
            attempted=len(pending_rows),
            settled=settled,
            still_pending=len(pending_rows) - settled,
        )

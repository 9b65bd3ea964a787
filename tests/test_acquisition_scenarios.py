from __future__ import annotations

import pytest

from app.core.enums import SettlementStatus, TransactionType
from app.core.exceptions import InsufficientCredits, SettlementFailed, StoreUnavailable
from app.models import CreditAccount, CreditTransaction, LeadGeneration, PendingSettlement
from app.schemas.leads import AcquisitionCriteria
from app.services.contact_provider_client import ProviderPage
from app.services.credit_ledger_service import CreditLedgerService, quote_cost
from app.services.lead_acquisition_service import LeadAcquisitionService


class _Provider:
    def __init__(self, records):
        self.records = records
        self.calls = 0

    def search(self, shape):
        self.calls += 1
        return ProviderPage(records=list(self.records), total_entries=len(self.records))


def _account(session, user_id: str, balance: int, free_units_consumed: int) -> None:
    session.add(CreditAccount(user_id=user_id, balance=balance, free_units_consumed=free_units_consumed, total_purchased=0))
    session.commit()


def _people(make_person, count: int):
    return [make_person(id=f"p-{i}", name=f"Person {i}") for i in range(count)]


def _service(session, cache, provider) -> LeadAcquisitionService:
    ledger = CreditLedgerService(db=session, free_tier_limit=5)
    return LeadAcquisitionService(db=session, ledger=ledger, cache=cache, provider=provider)


def test_affordability_boundary_cites_obtainable_leads(session):
    _account(session, "user-1", balance=3, free_units_consumed=5)

    check = CreditLedgerService(db=session, free_tier_limit=5).check_affordability("user-1", 4)

    assert check.can_afford is False
    assert check.account.free_units_available == 0
    assert "up to 3 leads" in check.reason


def test_mixed_free_and_paid_settlement(session):
    _account(session, "user-1", balance=10, free_units_consumed=3)
    ledger = CreditLedgerService(db=session, free_tier_limit=5)

    result = ledger.settle("user-1", "ws-1", actual_yield=5, reference_id="rec-1")

    assert result.credits_deducted == 3
    assert result.free_units_used == 2
    account = ledger.get_account("user-1")
    assert account.balance == 7
    assert account.free_units_consumed == 5
    rows = {
        row.transaction_type: row.amount
        for row in session.query(CreditTransaction).filter(CreditTransaction.reference_id == "rec-1")
    }
    assert rows == {TransactionType.USAGE.value: -3, TransactionType.FREE_USAGE.value: 0}


def test_charge_for_yield_not_request(session, cache, make_person):
    _account(session, "user-1", balance=50, free_units_consumed=0)
    service = _service(session, cache, _Provider(_people(make_person, 12)))

    outcome = service.acquire_and_settle(AcquisitionCriteria(roles=["CTO"], lead_count=20), "user-1", "ws-1")

    assert len(outcome.leads) == 12
    assert outcome.credits_deducted == quote_cost(12, free_units_available=5).total_cost == 7
    assert outcome.remaining_balance == 43
    assert outcome.remaining_free_units == 0
    record = session.get(LeadGeneration, outcome.record_id)
    assert record.lead_count == 12
    assert service.ledger.has_transaction_for_reference("user-1", outcome.record_id)


def test_insufficient_credits_raised_before_any_provider_call(session, cache, make_person):
    _account(session, "user-1", balance=3, free_units_consumed=5)
    provider = _Provider(_people(make_person, 4))

    with pytest.raises(InsufficientCredits) as exc:
        _service(session, cache, provider).acquire_and_settle(AcquisitionCriteria(roles=["CTO"], lead_count=4), "user-1", "ws-1")

    assert provider.calls == 0
    assert "up to 3 leads" in exc.value.reason
    assert exc.value.max_obtainable == 3


def test_cached_results_are_still_charged(session, cache, make_person):
    _account(session, "user-1", balance=20, free_units_consumed=5)
    provider = _Provider(_people(make_person, 2))
    service = _service(session, cache, provider)
    criteria = AcquisitionCriteria(roles=["CTO"], lead_count=2)

    service.acquire_and_settle(criteria, "user-1", "ws-1")
    second = service.acquire_and_settle(criteria, "user-1", "ws-1")

    assert second.from_cache is True
    assert provider.calls == 1
    assert second.remaining_balance == 16


def test_settlement_failure_is_queued_for_reconciliation(session, cache, make_person, monkeypatch):
    _account(session, "user-1", balance=10, free_units_consumed=5)
    service = _service(session, cache, _Provider(_people(make_person, 2)))

    def _fail(*args, **kwargs):
        raise StoreUnavailable("ledger offline")

    monkeypatch.setattr(service.ledger, "settle", _fail)

    with pytest.raises(SettlementFailed) as exc:
        service.acquire_and_settle(AcquisitionCriteria(roles=["CTO"], lead_count=2), "user-1", "ws-1")

    record_id = exc.value.record_id
    assert session.get(LeadGeneration, record_id) is not None
    pending = session.query(PendingSettlement).filter(PendingSettlement.record_id == record_id).one()
    assert pending.status is SettlementStatus.PENDING
    assert pending.lead_count == 2
    assert "ledger offline" in pending.last_error
    assert isinstance(exc.value.cause, StoreUnavailable)

    monkeypatch.undo()
    summary = service.reconciler.retry_pending(user_id="user-1")
    assert summary.settled == 1
    assert service.ledger.get_account("user-1").balance == 8

"""Credit balance and ledger endpoints for API v1."""

from __future__ import annotations

from dataclasses import asdict
from typing import Literal

from fastapi import APIRouter, Depends, Query

from app.core.dependencies import Caller, get_caller, get_ledger, get_reconciler
from app.schemas.credits import (
    AffordabilityResponse,
    CostEstimateRequest,
    CreditAccountResponse,
    CreditPackage,
    CreditTransactionResponse,
    SettlementRetryResponse,
    UsageStatsResponse,
)
from app.services.credit_ledger_service import CreditLedgerService
from app.services.settlement_reconciler import SettlementReconciler

router = APIRouter(prefix="/credits", tags=["credits"])


@router.get("", response_model=CreditAccountResponse)
def get_credits(
    caller: Caller = Depends(get_caller),
    ledger: CreditLedgerService = Depends(get_ledger),
) -> CreditAccountResponse:
    return CreditAccountResponse(**asdict(ledger.get_account(caller.user_id)))


@router.post("/estimate", response_model=AffordabilityResponse)
def estimate_cost(
    payload: CostEstimateRequest,
    caller: Caller = Depends(get_caller),
    ledger: CreditLedgerService = Depends(get_ledger),
) -> AffordabilityResponse:
    check = ledger.check_affordability(caller.user_id, payload.lead_count)
    return AffordabilityResponse(
        can_afford=check.can_afford,
        quote=asdict(check.quote),
        account=asdict(check.account),
        reason=check.reason,
        max_obtainable=check.max_obtainable,
    )


@router.get("/history", response_model=list[CreditTransactionResponse])
def credit_history(
    limit: int = Query(default=50, ge=1, le=500),
    caller: Caller = Depends(get_caller),
    ledger: CreditLedgerService = Depends(get_ledger),
) -> list[CreditTransactionResponse]:
    return [CreditTransactionResponse.model_validate(row) for row in ledger.history(caller.user_id, limit=limit)]


@router.get("/usage-stats", response_model=UsageStatsResponse)
def usage_stats(
    timeframe: Literal["week", "month", "all"] = Query(default="month"),
    caller: Caller = Depends(get_caller),
    ledger: CreditLedgerService = Depends(get_ledger),
) -> UsageStatsResponse:
    return UsageStatsResponse(**asdict(ledger.usage_stats(caller.user_id, timeframe=timeframe)))


@router.get("/packages", response_model=list[CreditPackage])
def credit_packages() -> list[CreditPackage]:
    return [CreditPackage(**package) for package in CreditLedgerService.credit_packages()]


@router.post("/settlements/retry", response_model=SettlementRetryResponse)
def retry_settlements(
    caller: Caller = Depends(get_caller),
    reconciler: SettlementReconciler = Depends(get_reconciler),
) -> SettlementRetryResponse:
    return SettlementRetryResponse(**asdict(reconciler.retry_pending(user_id=caller.user_id)))

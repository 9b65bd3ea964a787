"""Credit request/response schemas for API contracts."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CreditAccountResponse(BaseModel):
    user_id: str
    balance: int
    free_units_consumed: int
    free_units_available: int
    total_purchased: int


class CostQuoteResponse(BaseModel):
    free_units_used: int
    paid_units: int
    total_cost: int


class CostEstimateRequest(BaseModel):
    lead_count: int = Field(ge=1, le=1000)


class AffordabilityResponse(BaseModel):
    can_afford: bool
    quote: CostQuoteResponse
    account: CreditAccountResponse
    reason: str | None = None
    max_obtainable: int = 0


class CreditTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    workspace_id: str | None = None
    amount: int
    transaction_type: str
    description: str | None = None
    reference_id: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None


class UsageStatsResponse(BaseModel):
    credits_used: int
    generations_count: int
    total_leads_generated: int
    free_units_used: int
    timeframe: str


class CreditPackage(BaseModel):
    id: str
    name: str
    credits: int
    price: int
    popular: bool = False
    features: list[str] = Field(default_factory=list)


class SettlementRetryResponse(BaseModel):
    attempted: int
    settled: int
    still_pending: int

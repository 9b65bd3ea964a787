"""Pydantic schema package for API contracts."""

from app.schemas.common import ErrorEnvelope
from app.schemas.credits import (
    AffordabilityResponse,
    CostEstimateRequest,
    CostQuoteResponse,
    CreditAccountResponse,
    CreditPackage,
    CreditTransactionResponse,
    SettlementRetryResponse,
    UsageStatsResponse,
)
from app.schemas.leads import (
    AcquisitionCriteria,
    AcquisitionOutcome,
    AcquisitionResult,
    Lead,
    LeadGenerationDetail,
    LeadGenerationRequest,
    LeadGenerationSummary,
    LeadMetadata,
    QualityMetrics,
    RevenueRange,
)

__all__ = [
    "AcquisitionCriteria",
    "AcquisitionOutcome",
    "AcquisitionResult",
    "AffordabilityResponse",
    "CostEstimateRequest",
    "CostQuoteResponse",
    "CreditAccountResponse",
    "CreditPackage",
    "CreditTransactionResponse",
    "ErrorEnvelope",
    "Lead",
    "LeadGenerationDetail",
    "LeadGenerationRequest",
    "LeadGenerationSummary",
    "LeadMetadata",
    "QualityMetrics",
    "RevenueRange",
    "SettlementRetryResponse",
    "UsageStatsResponse",
]

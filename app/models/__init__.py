"""SQLAlchemy model package for the credit ledger and lead generation records."""

from app.models.base import Base
from app.models.credit_account import CreditAccount
from app.models.credit_transaction import CreditTransaction
from app.models.lead_generation import LeadGeneration
from app.models.pending_settlement import PendingSettlement

__all__ = [
    "Base",
    "CreditAccount",
    "CreditTransaction",
    "LeadGeneration",
    "PendingSettlement",
]

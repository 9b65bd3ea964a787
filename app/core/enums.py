"""Enums for the LeadLedger engine."""

from __future__ import annotations

from enum import Enum


class TransactionType(str, Enum):
    """Kinds of rows appended to the credit transaction log."""

    USAGE = "usage"
    FREE_USAGE = "free_usage"
    PURCHASE = "purchase"
    GRANT = "grant"
    BONUS = "bonus"
    REFUND = "refund"


class ContactRequirement(str, Enum):
    """Contact channels a caller can require on every returned lead."""

    EMAIL = "email"
    PHONE = "phone"
    LINKEDIN = "linkedin"


class SearchStrategy(str, Enum):
    """Query shapes, ordered from most to least specific."""

    COMPLEX = "complex"
    SIMPLIFIED = "simplified"
    MINIMAL = "minimal"
    BROAD = "broad"


class EmailStatus(str, Enum):
    VERIFIED = "verified"
    UNVERIFIED = "unverified"
    GUESSED = "guessed"
    UNAVAILABLE = "unavailable"


class SettlementStatus(str, Enum):
    PENDING = "pending"
    SETTLED = "settled"


GRANT_SOURCES = frozenset(
    {
        TransactionType.PURCHASE.value,
        TransactionType.GRANT.value,
        TransactionType.BONUS.value,
        TransactionType.REFUND.value,
    }
)
USAGE_TYPES = (TransactionType.USAGE.value, TransactionType.FREE_USAGE.value)

"""Custom exceptions for the LeadLedger engine."""

from __future__ import annotations


class LeadEngineException(Exception):
    """Base exception for the lead acquisition and credit ledger engine."""

    pass


class ValidationError(LeadEngineException):
    """Raised when validation fails."""

    pass


class NotFoundError(LeadEngineException):
    """Raised when a resource is not found."""

    pass


class ConfigurationError(LeadEngineException):
    """Raised when configuration is invalid."""

    pass


class StoreUnavailable(LeadEngineException):
    """Raised when the cache or the ledger store cannot be reached."""

    pass


class InsufficientCredits(LeadEngineException):
    """Raised when the balance cannot cover the paid part of a request."""

    def __init__(
        self,
        reason: str,
        required: int = 0,
        available: int = 0,
        free_units_available: int = 0,
        max_obtainable: int | None = None,
    ) -> None:
        super().__init__(reason)
        self.reason = reason
        self.required = required
        self.available = available
        self.free_units_available = free_units_available
        # Priced by the ledger; the fallback assumes one credit per lead.
        self.max_obtainable = available + free_units_available if max_obtainable is None else max_obtainable


class ProviderError(LeadEngineException):
    """Base class for contact provider failures."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderAuthError(ProviderError):
    """Provider rejected the API key (401/403)."""

    pass


class ProviderRateLimited(ProviderError):
    """Provider throttled the request (429)."""

    def __init__(self, message: str, status_code: int | None = 429, retry_after: int | None = None) -> None:
        super().__init__(message, status_code=status_code)
        self.retry_after = retry_after


class ProviderValidationError(ProviderError):
    """Provider rejected the query shape (400/422)."""

    pass


class ProviderServerError(ProviderError):
    """Provider failed server-side, timed out, or returned an unreadable body."""

    pass


class NoResultsFound(LeadEngineException):
    """Raised when every search strategy was exhausted without a single lead."""

    def __init__(self, strategies_attempted: int, last_error: Exception | None = None) -> None:
        detail = f"No leads found after {strategies_attempted} search strategies."
        if last_error is not None:
            detail = f"{detail} Last error: {last_error}"
        super().__init__(detail)
        self.strategies_attempted = strategies_attempted
        self.last_error = last_error


class SettlementFailed(LeadEngineException):
    """Leads were persisted but credits could not be settled.

    The record is queued for reconciliation; `record_id` can be used to retry.
    """

    def __init__(self, record_id: str, cause: Exception) -> None:
        super().__init__(f"Settlement pending for record {record_id}: {cause}")
        self.record_id = record_id
        self.cause = cause


class AuthenticationError(LeadEngineException):
    """Raised when the caller identity headers are missing."""

    pass

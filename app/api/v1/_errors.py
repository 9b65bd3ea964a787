"""Map engine exceptions onto HTTP error envelopes."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.exceptions import (
    AuthenticationError,
    InsufficientCredits,
    LeadEngineException,
    NoResultsFound,
    NotFoundError,
    ProviderAuthError,
    ProviderError,
    ProviderRateLimited,
    SettlementFailed,
    StoreUnavailable,
    ValidationError,
)
from app.schemas.common import ErrorEnvelope

logger = logging.getLogger(__name__)

# Order matters: subclasses before their bases.
_ERROR_MAP: tuple[tuple[type[Exception], int, str], ...] = (
    (AuthenticationError, 401, "UNAUTHENTICATED"),
    (InsufficientCredits, 402, "INSUFFICIENT_CREDITS"),
    (ValidationError, 400, "INVALID_CRITERIA"),
    (NoResultsFound, 404, "NO_RESULTS_FOUND"),
    (NotFoundError, 404, "NOT_FOUND"),
    (ProviderRateLimited, 429, "PROVIDER_RATE_LIMITED"),
    (ProviderAuthError, 502, "PROVIDER_AUTH_ERROR"),
    (ProviderError, 503, "PROVIDER_UNAVAILABLE"),
    (SettlementFailed, 409, "SETTLEMENT_PENDING"),
    (StoreUnavailable, 503, "STORE_UNAVAILABLE"),
)


def map_engine_error(exc: Exception) -> tuple[int, ErrorEnvelope]:
    for error_type, status_code, error_code in _ERROR_MAP:
        if isinstance(exc, error_type):
            break
    else:
        status_code, error_code = 500, "INTERNAL_ERROR"

    context: dict = {}
    if isinstance(exc, InsufficientCredits):
        context = {
            "required": exc.required,
            "available": exc.available,
            "free_units_available": exc.free_units_available,
            "max_obtainable": exc.max_obtainable,
        }
    elif isinstance(exc, NoResultsFound):
        context = {"strategies_attempted": exc.strategies_attempted}
    elif isinstance(exc, SettlementFailed):
        context = {"record_id": exc.record_id}
    elif isinstance(exc, ProviderRateLimited) and exc.retry_after is not None:
        context = {"retry_after": exc.retry_after}

    return status_code, ErrorEnvelope(error_code=error_code, detail=str(exc), context=context)


async def _engine_error_handler(request: Request, exc: LeadEngineException) -> JSONResponse:
    status_code, envelope = map_engine_error(exc)
    log = logger.error if status_code >= 500 else logger.info
    log(
        "api.request.failed",
        extra={
            "event": "api.request.failed",
            "path": request.url.path,
            "status_code": status_code,
            "error_code": envelope.error_code,
        },
    )
    headers = None
    if isinstance(exc, ProviderRateLimited) and exc.retry_after is not None:
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=status_code, content=envelope.model_dump(), headers=headers)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    detail = "; ".join(str(err.get("msg", "")) for err in exc.errors())
    envelope = ErrorEnvelope(error_code="INVALID_CRITERIA", detail=detail or "Invalid request.")
    return JSONResponse(status_code=400, content=envelope.model_dump())


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LeadEngineException, _engine_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

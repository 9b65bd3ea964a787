"""Dependency providers for API handlers."""

from __future__ import annotations

from collections.abc import Generator
from dataclasses import dataclass
from functools import lru_cache

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from app.core.exceptions import AuthenticationError
from app.database.db import get_db
from app.services.cache_gateway import CacheGateway
from app.services.contact_provider_client import ContactProviderClient
from app.services.credit_ledger_service import CreditLedgerService
from app.services.lead_acquisition_service import LeadAcquisitionService
from app.services.lead_generation_store import LeadGenerationStore
from app.services.settlement_reconciler import SettlementReconciler


@dataclass(frozen=True)
class Caller:
    user_id: str
    workspace_id: str


def get_db_session() -> Generator[Session, None, None]:
    """Yield SQLAlchemy session for dependency injection."""
    yield from get_db()


def get_caller(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
    x_workspace_id: str | None = Header(default=None, alias="X-Workspace-Id"),
) -> Caller:
    """Identity forwarded by the upstream authentication layer."""
    if not x_user_id or not x_user_id.strip():
        raise AuthenticationError("X-User-Id header is required.")
    user_id = x_user_id.strip()
    workspace_id = (x_workspace_id or "").strip() or user_id
    return Caller(user_id=user_id, workspace_id=workspace_id)


@lru_cache(maxsize=1)
def get_cache_gateway() -> CacheGateway:
    # redis-py clients hold a connection pool and are safe to share.
    return CacheGateway()


def get_contact_provider() -> ContactProviderClient:
    return ContactProviderClient()


def get_ledger(db: Session = Depends(get_db_session)) -> CreditLedgerService:
    return CreditLedgerService(db=db)


def get_lead_store(db: Session = Depends(get_db_session)) -> LeadGenerationStore:
    return LeadGenerationStore(db=db)


def get_reconciler(
    db: Session = Depends(get_db_session),
    ledger: CreditLedgerService = Depends(get_ledger),
) -> SettlementReconciler:
    return SettlementReconciler(db=db, ledger=ledger)


def get_acquisition_service(
    db: Session = Depends(get_db_session),
    ledger: CreditLedgerService = Depends(get_ledger),
    cache: CacheGateway = Depends(get_cache_gateway),
    provider: ContactProviderClient = Depends(get_contact_provider),
    store: LeadGenerationStore = Depends(get_lead_store),
    reconciler: SettlementReconciler = Depends(get_reconciler),
) -> LeadAcquisitionService:
    return LeadAcquisitionService(
        db=db,
        ledger=ledger,
        cache=cache,
        provider=provider,
        store=store,
        reconciler=reconciler,
    )

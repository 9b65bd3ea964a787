"""Session handling shared by the ledger-backed services."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import app.database.db as db_module
from app.core.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)


class BaseService:
    """Owns one SQLAlchemy session; request handlers pass theirs in."""

    def __init__(self, db: Session | None = None) -> None:
        self.db = db or db_module.SessionLocal()

    def commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def rollback(self) -> None:
        self.db.rollback()

    @contextmanager
    def store_guard(self, operation: str) -> Iterator[None]:
        """Run ``operation`` so that any ORM or driver failure surfaces as StoreUnavailable.

        The session is rolled back first, so a half-applied settlement or
        record insert is never left pending on the shared session.
        """
        try:
            yield
        except SQLAlchemyError as exc:
            self.rollback()
            logger.exception(
                "store.unavailable",
                extra={"event": "store.unavailable", "operation": operation, "component": type(self).__name__},
            )
            raise StoreUnavailable(f"Ledger store failed during {operation}.") from exc

"""Ledger store engine and sessions.

One engine serves both the credit ledger tables and the lead generation
records. SQLite is used for local work and tests; PostgreSQL is expected in
production, where ``SELECT ... FOR UPDATE`` backs the settlement lock.
"""

from __future__ import annotations

import logging
from collections.abc import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import get_config
from app.models import Base

logger = logging.getLogger(__name__)


def _build_engine(database_url: str, echo: bool = False) -> Engine:
    if database_url.startswith("sqlite"):
        # Sync handlers run on FastAPI's threadpool; the busy timeout lets
        # concurrent settlements wait on SQLite's writer lock.
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


engine = _build_engine(get_config().DATABASE_URL, echo=get_config().DEBUG)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_active_database_url() -> str:
    return engine.url.render_as_string(hide_password=True)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables() -> None:
    Base.metadata.create_all(bind=engine)
    logger.info(
        "database.tables.created",
        extra={
            "event": "database.tables.created",
            "backend": engine.url.get_backend_name(),
            "tables": sorted(Base.metadata.tables),
        },
    )


def verify_database_connection() -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error(
            "database.connection_failed",
            extra={"event": "database.connection_failed", "backend": engine.url.get_backend_name(), "error": str(exc)},
        )
        return False
    return True

"""Pending settlement model module."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Enum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.enums import SettlementStatus
from app.models.base import AuditMixin, Base


class PendingSettlement(Base, AuditMixin):
    """A persisted lead generation whose credits have not been settled yet."""

    __tablename__ = "pending_settlements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    record_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    workspace_id: Mapped[str] = mapped_column(String(255), nullable=False)
    lead_count: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[SettlementStatus] = mapped_column(
        Enum(SettlementStatus, values_callable=lambda e: [m.value for m in e]),
        default=SettlementStatus.PENDING,
        nullable=False,
        index=True,
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text)
    settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

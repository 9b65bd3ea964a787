"""Lead generation record model module."""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import JSON, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import AuditMixin, Base


def _new_record_id() -> str:
    return str(uuid.uuid4())


class LeadGeneration(Base, AuditMixin):
    """Durable record of one acquisition's leads and the criteria that produced them."""

    __tablename__ = "lead_generations"
    __table_args__ = (Index("idx_lead_generations_user_workspace", "user_id", "workspace_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_record_id)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    workspace_id: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    leads: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    criteria: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    lead_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_found: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    strategy: Mapped[str | None] = mapped_column(String(40))
    from_cache: Mapped[bool] = mapped_column(default=False, nullable=False)
    generation_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

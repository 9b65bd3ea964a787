"""Credit account model module."""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import AuditMixin, Base


class CreditAccount(Base, AuditMixin):
    """One row per user: paid balance plus free-tier consumption."""

    __tablename__ = "user_credits"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_user_credits_balance_non_negative"),
        CheckConstraint("free_units_consumed >= 0", name="ck_user_credits_free_units_non_negative"),
        CheckConstraint("total_purchased >= 0", name="ck_user_credits_total_purchased_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    free_units_consumed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_purchased: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<CreditAccount(user_id={self.user_id}, balance={self.balance}, "
            f"free_units_consumed={self.free_units_consumed})>"
        )

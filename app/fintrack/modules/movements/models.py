from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.fintrack.models import Base

if TYPE_CHECKING:
    from app.fintrack.models import User


class Movement(Base):
    __tablename__ = "movements"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_movements_amount_positive"),
        CheckConstraint("type IN ('INCOME', 'EXPENSE')", name="ck_movements_type"),
        Index("idx_movements_date", "date"),
        Index("idx_movements_type", "type"),
        Index("idx_movements_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Required
    concept: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)  # INCOME, EXPENSE

    # Optional
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # Owner (the admin who recorded it)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    # Timestamps
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=dt.datetime.utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=dt.datetime.utcnow)

    user: Mapped["User"] = relationship(back_populates="movements", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "concept": self.concept,
            "amount": float(self.amount),
            "date": self.date.isoformat(),
            "type": self.type,
            "description": self.description,
            "category": self.category,
            "user": self.user.to_summary() if self.user else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

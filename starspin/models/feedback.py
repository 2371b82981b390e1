from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .id_type import ID_TYPE

if TYPE_CHECKING:
    from .merchant import Merchant

POSITIVE_RATING_THRESHOLD = 4


class Feedback(Base):
    """A star rating left by a customer before spinning."""

    __tablename__ = "feedback"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, index=True, autoincrement=True)
    merchant_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_positive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    user_token: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    ip_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    merchant: Mapped["Merchant"] = relationship(back_populates="feedback")

    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="rating_range"),
        Index("ix_feedback_merchant_created", "merchant_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Feedback(id={self.id}, merchant_id={self.merchant_id}, "
            f"rating={self.rating}, is_positive={self.is_positive})>"
        )

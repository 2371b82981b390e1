from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, Float, ForeignKey, Integer, String, Text, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import Base
from .id_type import ID_TYPE

if TYPE_CHECKING:
    from .merchant import Merchant
    from .spin import Spin


class Prize(Base):
    """A reward a merchant puts on the wheel.

    ``probability`` is a relative weight; the weights of a merchant's prizes
    do not need to add up to any particular total.
    """

    __tablename__ = "prizes"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, index=True, autoincrement=True)
    merchant_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    probability: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    quantity: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True
    )  # Remaining stock; None means unlimited
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    merchant: Mapped["Merchant"] = relationship(back_populates="prizes")
    spins: Mapped[list["Spin"]] = relationship(back_populates="prize")

    __table_args__ = (
        CheckConstraint("probability >= 0", name="probability_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            "<Prize("
            f"id={self.id}, merchant_id={self.merchant_id}, name='{self.name}', "
            f"probability={self.probability}, quantity={self.quantity}"
            ")>"
        )

    @property
    def weight(self) -> float:
        return self.probability

    @property
    def in_stock(self) -> bool:
        return self.quantity is None or self.quantity > 0

    def consume_one(self) -> None:
        """Take one unit out of stock after the prize was won."""

        if self.quantity is None:
            return
        if self.quantity <= 0:
            raise ValueError(f"Prize '{self.name}' is out of stock")
        self.quantity -= 1

    @classmethod
    def get_for_merchant(cls, session: Session, merchant_id: int) -> list["Prize"]:
        stmt = select(cls).where(cls.merchant_id == merchant_id).order_by(cls.id)
        return list(session.scalars(stmt))

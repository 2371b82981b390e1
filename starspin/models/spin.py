from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from ..db.utils import as_utc, dt_iso
from .base import Base
from .id_type import ID_TYPE

if TYPE_CHECKING:
    from .merchant import Merchant
    from .prize import Prize

COUPON_TTL = timedelta(hours=24)


class Spin(Base):
    """A completed spin of a merchant's wheel."""

    __tablename__ = "spins"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, index=True, autoincrement=True)
    merchant_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False
    )
    prize_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("prizes.id", ondelete="SET NULL"), nullable=True
    )
    outcome: Mapped[str] = mapped_column(
        String(20), nullable=False
    )  # "prize", "unlucky" or "retry"
    user_token: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    ip_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    merchant: Mapped["Merchant"] = relationship(back_populates="spins")
    prize: Mapped[Optional["Prize"]] = relationship(back_populates="spins")
    coupon: Mapped[Optional["Coupon"]] = relationship(
        back_populates="spin", cascade="all, delete", uselist=False
    )

    __table_args__ = (
        Index("ix_spins_merchant_token_created", "merchant_id", "user_token", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Spin(id={self.id}, merchant_id={self.merchant_id}, "
            f"outcome='{self.outcome}', prize_id={self.prize_id})>"
        )

    @classmethod
    def find_since(
        cls,
        session: Session,
        merchant_id: int,
        user_token: str,
        since: datetime,
        *,
        exclude_outcome: Optional[str] = None,
    ) -> Optional["Spin"]:
        """Return the latest spin by ``user_token`` at ``merchant_id`` since ``since``."""

        stmt = select(cls).where(
            cls.merchant_id == merchant_id,
            cls.user_token == user_token,
            cls.created_at >= since,
        )
        if exclude_outcome is not None:
            stmt = stmt.where(cls.outcome != exclude_outcome)
        stmt = stmt.order_by(cls.created_at.desc(), cls.id.desc())
        return session.scalars(stmt).first()


class Coupon(Base):
    """Redeemable code issued for a winning spin."""

    __tablename__ = "coupons"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, index=True, autoincrement=True)
    spin_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("spins.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    merchant_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    prize_name: Mapped[str] = mapped_column(String(255), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    spin: Mapped["Spin"] = relationship(back_populates="coupon")
    merchant: Mapped["Merchant"] = relationship(back_populates="coupons")

    def __repr__(self) -> str:
        return (
            "<Coupon("
            f"id={self.id}, code='{self.code}', merchant_id={self.merchant_id}, "
            f"used={self.used}, expires_at={dt_iso(self.expires_at)}"
            ")>"
        )

    @classmethod
    def get_by_code(cls, session: Session, code: str) -> Optional["Coupon"]:
        """Retrieve a coupon by its unique code."""

        return session.scalar(select(cls).where(cls.code == code))

    def is_expired(self, *, reference_time: Optional[datetime] = None) -> bool:
        """Check if the coupon has expired relative to ``reference_time``."""

        ref = reference_time or datetime.now(timezone.utc)
        return as_utc(self.expires_at) <= as_utc(ref)

    def time_left(self, *, reference_time: Optional[datetime] = None) -> timedelta:
        """Time until expiry, clamped at zero."""

        ref = reference_time or datetime.now(timezone.utc)
        return max(as_utc(self.expires_at) - as_utc(ref), timedelta(0))

    def mark_used(self, *, timestamp: Optional[datetime] = None) -> None:
        """Mark the coupon as used and set the redemption timestamp."""

        if self.used:
            return
        self.used = True
        self.used_at = timestamp or datetime.now(timezone.utc)

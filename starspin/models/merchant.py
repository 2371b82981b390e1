from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from ..wheel.segments import WheelSegment, build_wheel_segments
from .base import Base
from .id_type import ID_TYPE

if TYPE_CHECKING:
    from .feedback import Feedback
    from .loyalty import LoyaltyClient, LoyaltyReward
    from .prize import Prize
    from .spin import Coupon, Spin

WORKFLOW_WEB = "web"
WORKFLOW_WHATSAPP = "whatsapp"

DEFAULT_WELCOME_POINTS = 50
DEFAULT_POINTS_PER_PURCHASE = 10
DEFAULT_PURCHASE_THRESHOLD = 1000.0


class Merchant(Base):
    """A shop that runs a prize wheel for its customers."""

    __tablename__ = "merchants"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, index=True, autoincrement=True)
    public_id: Mapped[str] = mapped_column(
        String(36), nullable=False, unique=True, default=lambda: str(uuid.uuid4())
    )  # Appears in QR codes and customer-facing URLs
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    business_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    logo_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    google_review_link: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    whatsapp_message_template: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    workflow_mode: Mapped[str] = mapped_column(
        String(20), nullable=False, default=WORKFLOW_WEB
    )
    unlucky_probability: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    retry_probability: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    loyalty_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    welcome_points: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_WELCOME_POINTS
    )
    points_per_purchase: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_POINTS_PER_PURCHASE
    )
    purchase_amount_threshold: Mapped[float] = mapped_column(
        Float, nullable=False, default=DEFAULT_PURCHASE_THRESHOLD
    )  # Amount spent that earns points_per_purchase points
    loyalty_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="THB")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    prizes: Mapped[list["Prize"]] = relationship(
        back_populates="merchant",
        cascade="all, delete",
        order_by="Prize.id",
    )
    feedback: Mapped[list["Feedback"]] = relationship(
        back_populates="merchant", cascade="all, delete"
    )
    spins: Mapped[list["Spin"]] = relationship(
        back_populates="merchant", cascade="all, delete"
    )
    coupons: Mapped[list["Coupon"]] = relationship(
        back_populates="merchant", cascade="all, delete"
    )
    loyalty_clients: Mapped[list["LoyaltyClient"]] = relationship(
        back_populates="merchant", cascade="all, delete"
    )
    loyalty_rewards: Mapped[list["LoyaltyReward"]] = relationship(
        back_populates="merchant", cascade="all, delete", order_by="LoyaltyReward.id"
    )

    def __repr__(self) -> str:
        return (
            "<Merchant("
            f"id={self.id}, public_id='{self.public_id}', "
            f"business_name='{self.business_name}', workflow_mode='{self.workflow_mode}'"
            ")>"
        )

    @classmethod
    def get_by_public_id(cls, session: Session, public_id: str) -> Optional["Merchant"]:
        """Fetch a merchant by the identifier embedded in its QR code."""

        return session.scalar(select(cls).where(cls.public_id == public_id))

    @classmethod
    def get_by_email(cls, session: Session, email: str) -> Optional["Merchant"]:
        return session.scalar(select(cls).where(cls.email == email))

    @property
    def display_name(self) -> str:
        return self.business_name or self.name or "StarSpin"

    @property
    def uses_whatsapp(self) -> bool:
        return self.workflow_mode == WORKFLOW_WHATSAPP

    def wheel_segments(self) -> list[WheelSegment]:
        """Segments currently shown on this merchant's wheel."""

        return build_wheel_segments(
            self.prizes,
            unlucky_probability=self.unlucky_probability or 0.0,
            retry_probability=self.retry_probability or 0.0,
        )

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import Base
from .id_type import ID_TYPE

if TYPE_CHECKING:
    from .merchant import Merchant

CLIENT_ACTIVE = "active"
CLIENT_INACTIVE = "inactive"

TX_WELCOME = "welcome"
TX_PURCHASE = "purchase"
TX_REDEEM = "redeem"

REDEMPTION_PENDING = "pending"
REDEMPTION_USED = "used"


class LoyaltyClient(Base):
    """A customer's loyalty card at one merchant."""

    __tablename__ = "loyalty_clients"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, index=True, autoincrement=True)
    merchant_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    card_id: Mapped[str] = mapped_column(String(32), nullable=False)  # e.g. STAR-2024-0001
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_purchases: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_spent: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    qr_code_data: Mapped[str] = mapped_column(
        String(36), nullable=False, unique=True, default=lambda: str(uuid.uuid4())
    )  # Encoded in the card's QR code
    user_token: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=CLIENT_ACTIVE)
    last_visit: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    merchant: Mapped["Merchant"] = relationship(back_populates="loyalty_clients")
    transactions: Mapped[list["PointsTransaction"]] = relationship(
        back_populates="client", cascade="all, delete", order_by="PointsTransaction.id"
    )
    redemptions: Mapped[list["RedeemedReward"]] = relationship(
        back_populates="client", cascade="all, delete"
    )

    __table_args__ = (
        UniqueConstraint("merchant_id", "card_id", name="merchant_card_id"),
        CheckConstraint("points >= 0", name="points_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            "<LoyaltyClient("
            f"id={self.id}, merchant_id={self.merchant_id}, card_id='{self.card_id}', "
            f"points={self.points}, status='{self.status}'"
            ")>"
        )

    @classmethod
    def find_by_contact(
        cls,
        session: Session,
        merchant_id: int,
        *,
        phone: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Optional["LoyaltyClient"]:
        """Look a card up by phone first, then by (lower-cased) email."""

        if phone:
            client = session.scalar(
                select(cls).where(cls.merchant_id == merchant_id, cls.phone == phone)
            )
            if client is not None:
                return client
        if email:
            return session.scalar(
                select(cls).where(
                    cls.merchant_id == merchant_id, cls.email == email.lower()
                )
            )
        return None

    @classmethod
    def get_by_qr_code(cls, session: Session, qr_code_data: str) -> Optional["LoyaltyClient"]:
        return session.scalar(select(cls).where(cls.qr_code_data == qr_code_data))

    @property
    def is_active(self) -> bool:
        return self.status == CLIENT_ACTIVE

    def apply_points(
        self, points: int, kind: str, description: Optional[str] = None
    ) -> "PointsTransaction":
        """Change the balance and append the matching ledger entry."""

        balance = self.points + points
        if balance < 0:
            raise ValueError(
                f"Card {self.card_id} has {self.points} points, {-points} required"
            )
        self.points = balance
        tx = PointsTransaction(
            merchant_id=self.merchant_id,
            type=kind,
            points=points,
            balance_after=balance,
            description=description,
        )
        self.transactions.append(tx)
        return tx


class PointsTransaction(Base):
    """Ledger entry for every change to a card's point balance."""

    __tablename__ = "points_transactions"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, index=True, autoincrement=True)
    client_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("loyalty_clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    merchant_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # welcome, purchase, redeem
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    client: Mapped["LoyaltyClient"] = relationship(back_populates="transactions")

    def __repr__(self) -> str:
        return (
            f"<PointsTransaction(id={self.id}, client_id={self.client_id}, "
            f"type='{self.type}', points={self.points}, balance_after={self.balance_after})>"
        )


class LoyaltyReward(Base):
    """Something a card holder can buy with points."""

    __tablename__ = "loyalty_rewards"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, index=True, autoincrement=True)
    merchant_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="product"
    )  # discount, product, service
    value: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    points_cost: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    quantity_available: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True
    )  # None means unlimited
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    merchant: Mapped["Merchant"] = relationship(back_populates="loyalty_rewards")
    redemptions: Mapped[list["RedeemedReward"]] = relationship(back_populates="reward")

    __table_args__ = (
        CheckConstraint("points_cost > 0", name="points_cost_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"<LoyaltyReward(id={self.id}, merchant_id={self.merchant_id}, "
            f"name='{self.name}', points_cost={self.points_cost})>"
        )

    @property
    def available(self) -> bool:
        return self.is_active and (
            self.quantity_available is None or self.quantity_available > 0
        )


class RedeemedReward(Base):
    """A reward a card holder paid for with points."""

    __tablename__ = "redeemed_rewards"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, index=True, autoincrement=True)
    client_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("loyalty_clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    reward_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("loyalty_rewards.id", ondelete="SET NULL"), nullable=True
    )
    merchant_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    points_spent: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=REDEMPTION_PENDING)
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    client: Mapped["LoyaltyClient"] = relationship(back_populates="redemptions")
    reward: Mapped[Optional["LoyaltyReward"]] = relationship(back_populates="redemptions")

    def __repr__(self) -> str:
        return (
            f"<RedeemedReward(id={self.id}, client_id={self.client_id}, "
            f"reward_id={self.reward_id}, status='{self.status}')>"
        )

    def mark_used(self, *, timestamp: Optional[datetime] = None) -> None:
        if self.status == REDEMPTION_USED:
            return
        self.status = REDEMPTION_USED
        self.used_at = timestamp or datetime.now(timezone.utc)

"""Utility helpers for the models package."""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

CODE_PREFIX_LENGTH = 3
CODE_SUFFIX_LENGTH = 8
FALLBACK_PREFIX = "STR"


def coupon_prefix(business_name: Optional[str]) -> str:
    """Upper-cased first letters of the business name used to prefix coupon codes."""

    letters = "".join(ch for ch in (business_name or "") if ch.isalnum())
    prefix = letters[:CODE_PREFIX_LENGTH].upper()
    return prefix or FALLBACK_PREFIX


def generate_coupon_code(
    business_name: Optional[str],
    session: Optional[Session] = None,
    max_attempts: int = 32,
) -> str:
    """Return a coupon code such as ``CAF-1A2B3C4D``.

    When a session is provided, the helper retries if the generated value is
    already present (or pending) in ``Coupon.code``.
    """

    coupon_cls = None
    if session is not None:
        from .spin import Coupon

        coupon_cls = Coupon

    prefix = coupon_prefix(business_name)
    attempts = 0
    while attempts < max_attempts:
        suffix = uuid.uuid4().hex[:CODE_SUFFIX_LENGTH].upper()
        candidate = f"{prefix}-{suffix}"

        if session is not None and coupon_cls is not None:
            collision = any(
                isinstance(obj, coupon_cls) and obj.code == candidate
                for obj in session.new
            )
            if not collision:
                collision = (
                    session.scalar(
                        select(coupon_cls.id).where(coupon_cls.code == candidate)
                    )
                    is not None
                )
            if collision:
                attempts += 1
                continue

        return candidate

    raise RuntimeError("Unable to generate a unique coupon code after multiple attempts")


CARD_PREFIX = "STAR"


def generate_card_id(session: Session, merchant_id: int, year: int) -> str:
    """Next loyalty card number for a merchant, e.g. ``STAR-2024-0007``.

    Numbers run per merchant and per year and are at least four digits wide.
    """

    from .loyalty import LoyaltyClient

    prefix = f"{CARD_PREFIX}-{year}-"
    existing = session.scalars(
        select(LoyaltyClient.card_id).where(
            LoyaltyClient.merchant_id == merchant_id,
            LoyaltyClient.card_id.like(f"{prefix}%"),
        )
    )
    highest = 0
    for card_id in existing:
        suffix = card_id[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"{prefix}{highest + 1:04d}"

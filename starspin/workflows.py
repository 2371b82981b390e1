import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

import requests
from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from .db.utils import as_utc
from .errors import (
    CouponUnavailable,
    InvalidInput,
    RateLimited,
    RewardUnavailable,
    SpinNotAllowed,
)
from .models import (
    Coupon,
    Feedback,
    LoyaltyClient,
    LoyaltyReward,
    Merchant,
    PointsTransaction,
    Prize,
    RedeemedReward,
    Spin,
)
from .models.feedback import POSITIVE_RATING_THRESHOLD
from .models.loyalty import CLIENT_ACTIVE, REDEMPTION_USED, TX_PURCHASE, TX_REDEEM, TX_WELCOME
from .models.merchant import (
    DEFAULT_POINTS_PER_PURCHASE,
    DEFAULT_PURCHASE_THRESHOLD,
    DEFAULT_WELCOME_POINTS,
)
from .models.spin import COUPON_TTL
from .models.utils import generate_card_id, generate_coupon_code
from .validation import hash_ip, is_valid_phone, mask_phone, normalize_phone
from .wheel.segments import KIND_PRIZE, KIND_RETRY, KIND_UNLUCKY, WheelSegment
from .wheel.selector import RandomSource, select_prize

if TYPE_CHECKING:
    from .messaging.whapi import WhapiClient
    from .ratelimit import RateLimiter

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5

INVITATION_RATE_LIMIT = 5
CONGRATULATION_RATE_LIMIT = 10
COMBINED_RATE_LIMIT = 5
RATE_LIMIT_WINDOW_MS = 60_000


def _now(now: Optional[datetime]) -> datetime:
    return as_utc(now) if now is not None else datetime.now(timezone.utc)


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def start_of_day(moment: datetime) -> datetime:
    """Midnight (UTC) of the day containing ``moment``."""
    return as_utc(moment).replace(hour=0, minute=0, second=0, microsecond=0)


def submit_feedback(
    session: Session,
    merchant: Merchant,
    rating: int,
    comment: Optional[str] = None,
    *,
    user_token: Optional[str] = None,
    customer_email: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> Feedback:
    """Store a customer's rating for ``merchant``.

    Ratings of four stars and above are flagged as positive, which is what
    the dashboard counts as a conversion.

    Raises
    ------
    InvalidInput
        If ``rating`` is not an integer between 1 and 5.
    """
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise InvalidInput("rating must be an integer")
    if not MIN_RATING <= rating <= MAX_RATING:
        raise InvalidInput(f"rating must be between {MIN_RATING} and {MAX_RATING}")

    feedback = Feedback(
        merchant_id=merchant.id,
        rating=rating,
        comment=(comment or "").strip() or None,
        customer_email=customer_email,
        is_positive=rating >= POSITIVE_RATING_THRESHOLD,
        user_token=user_token,
        ip_hash=hash_ip(ip_address),
    )
    session.add(feedback)
    session.flush()
    return feedback


def has_spun_today(
    session: Session,
    merchant: Merchant,
    user_token: Optional[str],
    now: Optional[datetime] = None,
) -> bool:
    """Whether ``user_token`` already spent today's spin at ``merchant``.

    A spin that landed on RETRY does not count.
    """
    if not user_token:
        return False
    since = start_of_day(_now(now))
    return (
        Spin.find_since(
            session, merchant.id, user_token, since, exclude_outcome=KIND_RETRY
        )
        is not None
    )


def record_spin(
    session: Session,
    merchant: Merchant,
    segment: WheelSegment,
    *,
    user_token: Optional[str] = None,
    ip_address: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Spin:
    """Persist the outcome of a finished spin.

    For a prize outcome the prize's stock is decremented and a coupon valid
    for 24 hours is issued; ``spin.coupon`` holds it afterwards.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    merchant : Merchant
        Merchant whose wheel was spun.
    segment : WheelSegment
        Segment returned by the selector.
    user_token : Optional[str]
        Anonymous token identifying the customer's device.
    ip_address : Optional[str]
        Client IP; only its salted hash is stored.
    now : Optional[datetime]
        Override for the current time.

    Returns
    -------
    Spin
        The flushed ``Spin`` row.
    """
    moment = _now(now)
    prize: Optional[Prize] = None

    if segment.kind == KIND_PRIZE:
        if segment.prize_id is None:
            raise InvalidInput("Prize segment has no prize_id")
        prize = session.get(Prize, segment.prize_id)
        if prize is None or prize.merchant_id != merchant.id:
            raise LookupError(
                f"Prize {segment.prize_id} does not belong to merchant {merchant.id}"
            )
        prize.consume_one()
    elif segment.kind not in (KIND_UNLUCKY, KIND_RETRY):
        raise InvalidInput(f"Unknown segment kind '{segment.kind}'")

    spin = Spin(
        merchant_id=merchant.id,
        prize_id=prize.id if prize is not None else None,
        outcome=segment.kind,
        user_token=user_token,
        ip_hash=hash_ip(ip_address),
        created_at=moment,
    )
    session.add(spin)
    session.flush()

    if prize is not None:
        coupon = Coupon(
            spin_id=spin.id,
            merchant_id=merchant.id,
            code=generate_coupon_code(merchant.business_name, session=session),
            prize_name=prize.name,
            expires_at=moment + COUPON_TTL,
            created_at=moment,
        )
        spin.coupon = coupon
        session.add(coupon)
        session.flush()
        logger.info(
            f"Spin {spin.id} at merchant {merchant.id} won prize {prize.id}, "
            f"coupon {coupon.code} issued"
        )
    else:
        logger.info(f"Spin {spin.id} at merchant {merchant.id} landed on {segment.kind}")

    return spin


def play_spin(
    session: Session,
    merchant: Merchant,
    *,
    user_token: Optional[str] = None,
    rng: Optional[RandomSource] = None,
    ip_address: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Spin:
    """Select an outcome on the merchant's wheel and persist it.

    Raises
    ------
    SpinNotAllowed
        If ``user_token`` already spun at this merchant today.
    InvalidInput
        If the merchant has no segments to spin.
    """
    moment = _now(now)
    if has_spun_today(session, merchant, user_token, now=moment):
        raise SpinNotAllowed("This customer already spun the wheel today")

    segment = select_prize(merchant.wheel_segments(), rng=rng)
    return record_spin(
        session,
        merchant,
        segment,
        user_token=user_token,
        ip_address=ip_address,
        now=moment,
    )


def redeem_coupon(
    session: Session,
    code: str,
    *,
    merchant: Optional[Merchant] = None,
    now: Optional[datetime] = None,
) -> Coupon:
    """Mark a coupon as used when a merchant scans it.

    Raises
    ------
    LookupError
        If no coupon with ``code`` exists (for ``merchant`` when given).
    CouponUnavailable
        If the coupon was already used or has expired.
    """
    coupon = Coupon.get_by_code(session, code.strip().upper())
    if coupon is None or (merchant is not None and coupon.merchant_id != merchant.id):
        raise LookupError(f"Coupon '{code}' not found")

    moment = _now(now)
    if coupon.used:
        raise CouponUnavailable(f"Coupon '{coupon.code}' was already used")
    if coupon.is_expired(reference_time=moment):
        raise CouponUnavailable(f"Coupon '{coupon.code}' has expired")

    coupon.mark_used(timestamp=moment)
    session.flush()
    return coupon


@dataclass(frozen=True)
class MerchantStats:
    """Dashboard figures for one merchant."""

    total_reviews: int
    positive_reviews: int
    negative_reviews: int
    average_rating: float
    conversion_rate: int
    total_spins: int


def merchant_stats(session: Session, merchant: Merchant) -> MerchantStats:
    """Aggregate feedback and spin counts for ``merchant``.

    ``average_rating`` is rounded to one decimal and ``conversion_rate`` is
    the share of positive reviews as a whole percentage.
    """
    total, positive, rating_sum = session.execute(
        select(
            func.count(Feedback.id),
            func.coalesce(func.sum(case((Feedback.is_positive.is_(True), 1), else_=0)), 0),
            func.coalesce(func.sum(Feedback.rating), 0),
        ).where(Feedback.merchant_id == merchant.id)
    ).one()
    spins = session.scalar(
        select(func.count(Spin.id)).where(Spin.merchant_id == merchant.id)
    )

    total = int(total or 0)
    positive = int(positive or 0)
    average = float(rating_sum) / total if total else 0.0
    conversion = (positive / total) * 100 if total else 0.0
    return MerchantStats(
        total_reviews=total,
        positive_reviews=positive,
        negative_reviews=total - positive,
        average_rating=_round_half_up(average, 1),
        conversion_rate=int(_round_half_up(conversion)),
        total_spins=int(spins or 0),
    )


def _enforce_rate_limit(
    limiter: Optional["RateLimiter"], prefix: str, client_ip: Optional[str], limit: int
) -> None:
    # Requests without a client address cannot be told apart, so they are not limited.
    if limiter is None or not client_ip:
        return
    decision = limiter.check(f"{prefix}:{client_ip}", limit, RATE_LIMIT_WINDOW_MS)
    if not decision.allowed:
        raise RateLimited(
            "Too many requests, please try again later",
            retry_after=decision.retry_after_seconds,
        )


def send_spin_invitation(
    merchant: Merchant,
    phone_number: str,
    *,
    language: str = "fr",
    client: Optional["WhapiClient"] = None,
    limiter: Optional["RateLimiter"] = None,
    client_ip: Optional[str] = None,
    base_url: Optional[str] = None,
) -> str:
    """Send the customer a WhatsApp link to the merchant's wheel.

    Returns
    -------
    str
        Message id reported by the gateway.

    Raises
    ------
    RateLimited
        If ``limiter`` rejects the request for ``client_ip``.
    InvalidInput
        If ``phone_number`` is not a valid international number.
    ValueError
        If the merchant does not use the WhatsApp workflow.
    """
    from .messaging.messages import invitation_message, spin_url

    _enforce_rate_limit(limiter, "whatsapp", client_ip, INVITATION_RATE_LIMIT)
    if not is_valid_phone(phone_number):
        raise InvalidInput("Invalid phone number")
    if not merchant.uses_whatsapp:
        raise ValueError(f"WhatsApp workflow is not enabled for merchant {merchant.id}")

    if client is None:
        from .messaging.whapi import WhapiClient

        client = WhapiClient()

    url = spin_url(merchant.public_id, phone=phone_number, base_url=base_url)
    body = invitation_message(
        merchant.display_name,
        url,
        language=language,
        template=merchant.whatsapp_message_template,
    )
    response = client.send_text(phone_number, body)
    logger.info(
        f"Spin invitation sent for merchant {merchant.id} to {mask_phone(phone_number)}"
    )
    return client.message_id(response)


def send_congratulation(
    coupon: Coupon,
    phone_number: str,
    *,
    language: str = "fr",
    client: Optional["WhapiClient"] = None,
    limiter: Optional["RateLimiter"] = None,
    client_ip: Optional[str] = None,
    base_url: Optional[str] = None,
) -> Optional[str]:
    """Send the winner a WhatsApp message with a link to their coupon.

    Returns ``None`` without sending when the merchant does not use the
    WhatsApp workflow; otherwise the gateway's message id.
    """
    from .messaging.messages import congratulation_message, coupon_url

    _enforce_rate_limit(
        limiter, "whatsapp-congrats", client_ip, CONGRATULATION_RATE_LIMIT
    )
    if not is_valid_phone(phone_number):
        raise InvalidInput("Invalid phone number")

    merchant = coupon.merchant
    if not merchant.uses_whatsapp:
        logger.debug(f"Congratulation skipped: merchant {merchant.id} uses the web workflow")
        return None

    if client is None:
        from .messaging.whapi import WhapiClient

        client = WhapiClient()

    url = coupon_url(merchant.public_id, coupon.code, base_url=base_url)
    response = client.send_text(
        phone_number, congratulation_message(coupon.prize_name, url, language=language)
    )
    return client.message_id(response)


# ---------------------------------------------------------------------------
# Loyalty cards
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoyaltyRegistration:
    """Result of :func:`register_loyalty_client`."""

    client: LoyaltyClient
    is_new: bool
    welcome_points: int


def register_loyalty_client(
    session: Session,
    merchant: Merchant,
    *,
    name: Optional[str] = None,
    phone: Optional[str] = None,
    email: Optional[str] = None,
    user_token: Optional[str] = None,
    now: Optional[datetime] = None,
) -> LoyaltyRegistration:
    """Create a loyalty card for a customer, or find the one they already hold.

    A new card is credited with the merchant's welcome points and the credit
    is written to the points ledger. For an existing card only the last visit
    and the feedback ``user_token`` are refreshed.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    merchant : Merchant
        Merchant running the loyalty programme.
    name, phone, email : Optional[str]
        Contact details. At least one of ``phone`` and ``email`` is required;
        existing cards are matched on phone first, then on email.
    user_token : Optional[str]
        Token linking the card to the customer's feedback and spins.
    now : Optional[datetime]
        Override for the current time.

    Raises
    ------
    ValueError
        If the merchant has not enabled the loyalty programme.
    InvalidInput
        If no contact is given or ``phone`` is not a valid number.
    """
    if not merchant.loyalty_enabled:
        raise ValueError(f"Loyalty program is not enabled for merchant {merchant.id}")
    if not phone and not email:
        raise InvalidInput("A phone number or an email address is required")
    if phone:
        if not is_valid_phone(phone):
            raise InvalidInput("Invalid phone number")
        phone = normalize_phone(phone)
    email = email.strip().lower() if email else None

    moment = _now(now)
    existing = LoyaltyClient.find_by_contact(session, merchant.id, phone=phone, email=email)
    if existing is not None:
        existing.last_visit = moment
        if user_token:
            existing.user_token = user_token
        session.flush()
        return LoyaltyRegistration(client=existing, is_new=False, welcome_points=0)

    welcome = (
        merchant.welcome_points
        if merchant.welcome_points is not None
        else DEFAULT_WELCOME_POINTS
    )
    card = LoyaltyClient(
        merchant_id=merchant.id,
        card_id=generate_card_id(session, merchant.id, moment.year),
        name=name,
        phone=phone,
        email=email,
        points=0,
        total_purchases=0,
        total_spent=0.0,
        user_token=user_token,
        last_visit=moment,
        created_at=moment,
    )
    session.add(card)
    session.flush()
    if welcome > 0:
        card.apply_points(welcome, TX_WELCOME, "Welcome points")
        session.flush()

    logger.info(
        f"Loyalty card {card.card_id} created at merchant {merchant.id} "
        f"with {welcome} welcome point(s)"
    )
    return LoyaltyRegistration(client=card, is_new=True, welcome_points=welcome)


def award_purchase_points(
    session: Session,
    card: LoyaltyClient,
    amount: float,
    *,
    now: Optional[datetime] = None,
) -> Optional[PointsTransaction]:
    """Record a purchase on ``card`` and credit the points it earns.

    Every full ``purchase_amount_threshold`` spent earns
    ``points_per_purchase`` points. Returns the ledger entry, or ``None``
    when the amount was too small to earn anything.
    """
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidInput("amount must be a number")
    if not math.isfinite(amount) or amount <= 0:
        raise InvalidInput("amount must be a positive number")
    if not card.is_active:
        raise ValueError(f"Loyalty card {card.card_id} is not active")

    merchant = card.merchant
    threshold = merchant.purchase_amount_threshold or DEFAULT_PURCHASE_THRESHOLD
    per_step = (
        merchant.points_per_purchase
        if merchant.points_per_purchase is not None
        else DEFAULT_POINTS_PER_PURCHASE
    )
    earned = int(amount // threshold) * per_step

    card.total_purchases += 1
    card.total_spent += float(amount)
    card.last_visit = _now(now)

    tx = None
    if earned > 0:
        tx = card.apply_points(earned, TX_PURCHASE, f"Purchase of {amount:g}")
    session.flush()
    return tx


def redeem_loyalty_reward(
    session: Session,
    card: LoyaltyClient,
    reward: LoyaltyReward,
    *,
    now: Optional[datetime] = None,
) -> RedeemedReward:
    """Spend points from ``card`` on ``reward``.

    Raises
    ------
    LookupError
        If the reward belongs to another merchant.
    RewardUnavailable
        If the reward is inactive or sold out, or the card lacks the points.
    """
    if reward.merchant_id != card.merchant_id:
        raise LookupError(
            f"Reward {reward.id} does not belong to merchant {card.merchant_id}"
        )
    if not card.is_active:
        raise RewardUnavailable(f"Loyalty card {card.card_id} is not active")
    if not reward.available:
        raise RewardUnavailable(f"Reward '{reward.name}' is not available")
    if card.points < reward.points_cost:
        raise RewardUnavailable(
            f"Card {card.card_id} has {card.points} points, "
            f"'{reward.name}' costs {reward.points_cost}"
        )

    moment = _now(now)
    card.apply_points(-reward.points_cost, TX_REDEEM, f"Reward: {reward.name}")
    if reward.quantity_available is not None:
        reward.quantity_available -= 1
    redemption = RedeemedReward(
        merchant_id=card.merchant_id,
        reward_id=reward.id,
        points_spent=reward.points_cost,
        created_at=moment,
    )
    card.redemptions.append(redemption)
    card.last_visit = moment
    session.flush()
    logger.info(f"Card {card.card_id} redeemed reward {reward.id}")
    return redemption


@dataclass(frozen=True)
class LoyaltyStats:
    """Loyalty programme figures for one merchant."""

    total_clients: int
    active_clients: int
    total_points_issued: int
    total_points_redeemed: int
    total_rewards_redeemed: int
    average_points_per_client: int


def loyalty_stats(session: Session, merchant: Merchant) -> LoyaltyStats:
    """Aggregate loyalty cards, point movements and used rewards for ``merchant``."""
    total, active = session.execute(
        select(
            func.count(LoyaltyClient.id),
            func.coalesce(
                func.sum(case((LoyaltyClient.status == CLIENT_ACTIVE, 1), else_=0)), 0
            ),
        ).where(LoyaltyClient.merchant_id == merchant.id)
    ).one()
    issued, spent = session.execute(
        select(
            func.coalesce(
                func.sum(case((PointsTransaction.points > 0, PointsTransaction.points), else_=0)), 0
            ),
            func.coalesce(
                func.sum(case((PointsTransaction.points < 0, -PointsTransaction.points), else_=0)), 0
            ),
        ).where(PointsTransaction.merchant_id == merchant.id)
    ).one()
    used = session.scalar(
        select(func.count(RedeemedReward.id)).where(
            RedeemedReward.merchant_id == merchant.id,
            RedeemedReward.status == REDEMPTION_USED,
        )
    )

    total = int(total or 0)
    issued = int(issued or 0)
    return LoyaltyStats(
        total_clients=total,
        active_clients=int(active or 0),
        total_points_issued=issued,
        total_points_redeemed=int(spent or 0),
        total_rewards_redeemed=int(used or 0),
        average_points_per_client=int(_round_half_up(issued / total)) if total else 0,
    )


def send_loyalty_welcome(
    card: LoyaltyClient,
    phone_number: str,
    *,
    is_new_client: bool,
    language: str = "fr",
    client: Optional["WhapiClient"] = None,
    limiter: Optional["RateLimiter"] = None,
    client_ip: Optional[str] = None,
    base_url: Optional[str] = None,
) -> str:
    """Send one WhatsApp message linking to both the wheel and the loyalty card.

    The message is sent with URL buttons; if the gateway rejects that, it is
    sent again as plain text with the links inline.

    Raises
    ------
    RateLimited
        If ``limiter`` rejects the request for ``client_ip``.
    InvalidInput
        If ``phone_number`` is not a valid international number.
    ValueError
        If the merchant does not use the WhatsApp workflow.
    """
    from .messaging.messages import card_url, combined_message, spin_url

    _enforce_rate_limit(limiter, "whatsapp-combined", client_ip, COMBINED_RATE_LIMIT)
    if not is_valid_phone(phone_number):
        raise InvalidInput("Invalid phone number")
    merchant = card.merchant
    if not merchant.uses_whatsapp:
        raise ValueError(f"WhatsApp workflow is not enabled for merchant {merchant.id}")

    if client is None:
        from .messaging.whapi import WhapiClient

        client = WhapiClient()

    message = combined_message(
        merchant.display_name,
        is_new_client=is_new_client,
        points=card.points,
        spin_link=spin_url(
            merchant.public_id, phone=phone_number, base_url=base_url, language=language
        ),
        card_link=card_url(card.qr_code_data, base_url=base_url),
        language=language,
    )
    try:
        response = client.send_url_buttons(
            phone_number,
            header=message.header,
            body=message.body,
            footer=message.footer,
            buttons=[
                (message.spin_button, message.spin_url),
                (message.card_button, message.card_url),
            ],
        )
    except requests.HTTPError:
        logger.warning("Interactive WhatsApp message rejected, falling back to text")
        response = client.send_text(phone_number, message.as_text())
    return client.message_id(response)

from .base import Base

# import models so metadata.create_all can discover mappers
from .merchant import Merchant  # noqa: F401
from .prize import Prize  # noqa: F401
from .feedback import Feedback  # noqa: F401
from .spin import Coupon, Spin  # noqa: F401
from .loyalty import LoyaltyClient, LoyaltyReward, PointsTransaction, RedeemedReward  # noqa: F401

__all__ = [
    "Base",
    "Merchant",
    "Prize",
    "Feedback",
    "Spin",
    "Coupon",
    "LoyaltyClient",
    "PointsTransaction",
    "LoyaltyReward",
    "RedeemedReward",
]

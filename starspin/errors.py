"""Exception types raised by the StarSpin package."""

from __future__ import annotations


class InvalidInput(ValueError):
    """Raised when a wheel operation receives unusable input.

    Examples are an empty prize list, a negative weight or a segment index
    outside the wheel.
    """


class SpinNotAllowed(RuntimeError):
    """Raised when a customer is not eligible to spin the wheel again."""


class CouponUnavailable(ValueError):
    """Raised when a coupon can no longer be redeemed (used or expired)."""


class RewardUnavailable(ValueError):
    """Raised when a loyalty reward cannot be redeemed with a given card."""


class RateLimited(RuntimeError):
    """Raised when a caller exceeds the allowed request rate."""

    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after


__all__ = [
    "CouponUnavailable",
    "InvalidInput",
    "RateLimited",
    "RewardUnavailable",
    "SpinNotAllowed",
]

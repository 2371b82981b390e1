"""WhatsApp messaging for spin invitations and prize notifications."""

from .messages import (
    CombinedMessage,
    card_url,
    combined_message,
    congratulation_message,
    coupon_url,
    invitation_message,
    spin_url,
)
from .whapi import WhapiClient

__all__ = [
    "CombinedMessage",
    "WhapiClient",
    "card_url",
    "combined_message",
    "congratulation_message",
    "coupon_url",
    "invitation_message",
    "spin_url",
]

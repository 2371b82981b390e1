"""Building the list of wheel segments shown to a customer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

PRIZE_COLORS = (
    "#2D6A4F",
    "#40916C",
    "#52B788",
    "#74C69D",
    "#95D5B2",
    "#1E88E5",
    "#42A5F5",
    "#64B5F6",
    "#7E57C2",
    "#9575CD",
)
UNLUCKY_COLOR = "#DC2626"
RETRY_COLOR = "#F59E0B"
LIGHT_TEXT = "#FFFFFF"
DARK_TEXT = "#1F2937"

MAX_LABEL_LENGTH = 12

KIND_PRIZE = "prize"
KIND_UNLUCKY = "unlucky"
KIND_RETRY = "retry"


class PrizeLike(Protocol):
    id: Optional[int]
    name: str
    probability: float
    quantity: Optional[int]


@dataclass(frozen=True)
class WheelSegment:
    """One slice of the wheel.

    ``weight`` drives the selector. ``prize_id`` is set only for
    ``kind == "prize"``.
    """

    id: str
    name: str
    weight: float
    kind: str = KIND_PRIZE
    color: str = PRIZE_COLORS[0]
    text_color: str = LIGHT_TEXT
    prize_id: Optional[int] = None

    @property
    def is_prize(self) -> bool:
        return self.kind == KIND_PRIZE

    @property
    def label(self) -> str:
        """Name shortened for display on the wheel."""
        if len(self.name) > MAX_LABEL_LENGTH:
            return self.name[:MAX_LABEL_LENGTH] + "..."
        return self.name


def build_wheel_segments(
    prizes: Iterable[PrizeLike],
    unlucky_probability: float = 0.0,
    retry_probability: float = 0.0,
) -> list[WheelSegment]:
    """Return the segments of a merchant's wheel in display order.

    Prizes come first in the given order, coloured from :data:`PRIZE_COLORS`.
    Out-of-stock prizes (``quantity == 0``) are left off. The UNLUCKY and
    RETRY sentinels follow when their probability is positive.
    """
    segments: list[WheelSegment] = []
    for prize in prizes:
        if prize.quantity is not None and prize.quantity <= 0:
            continue
        segments.append(
            WheelSegment(
                id=str(prize.id),
                name=prize.name,
                weight=float(prize.probability),
                kind=KIND_PRIZE,
                color=PRIZE_COLORS[len(segments) % len(PRIZE_COLORS)],
                text_color=LIGHT_TEXT,
                prize_id=prize.id,
            )
        )

    if unlucky_probability and unlucky_probability > 0:
        segments.append(
            WheelSegment(
                id=KIND_UNLUCKY,
                name="#UNLUCKY#",
                weight=float(unlucky_probability),
                kind=KIND_UNLUCKY,
                color=UNLUCKY_COLOR,
                text_color=LIGHT_TEXT,
            )
        )
    if retry_probability and retry_probability > 0:
        segments.append(
            WheelSegment(
                id=KIND_RETRY,
                name="#RETRY#",
                weight=float(retry_probability),
                kind=KIND_RETRY,
                color=RETRY_COLOR,
                text_color=DARK_TEXT,
            )
        )
    return segments


__all__ = [
    "KIND_PRIZE",
    "KIND_RETRY",
    "KIND_UNLUCKY",
    "PRIZE_COLORS",
    "WheelSegment",
    "build_wheel_segments",
]

"""Mapping between wheel segments and rotation angles.

Angles are in degrees, measured clockwise. Segment ``0`` starts at the top of
the wheel where the pointer sits, and segment ``i`` spans
``[i * width, (i + 1) * width)``.
"""

from __future__ import annotations

import math

from ..errors import InvalidInput

FULL_TURN = 360.0
DEFAULT_EXTRA_TURNS = 5


def segment_width(count: int) -> float:
    """Angular width of one segment on a wheel with ``count`` segments."""
    if count <= 0:
        raise InvalidInput("A wheel needs at least one segment")
    return FULL_TURN / count


def resting_angle(index: int, count: int) -> float:
    """Rotation that brings the midpoint of segment ``index`` under the pointer."""
    width = segment_width(count)
    if not 0 <= index < count:
        raise InvalidInput(f"Segment index {index} is outside a wheel of {count}")
    return FULL_TURN - (index * width + width / 2)


def target_rotation(
    index: int,
    count: int,
    current_rotation: float = 0.0,
    extra_turns: int = DEFAULT_EXTRA_TURNS,
) -> float:
    """Compute the cumulative rotation at which segment ``index`` lands on the pointer.

    Parameters
    ----------
    index : int
        Position of the selected segment.
    count : int
        Number of segments on the wheel.
    current_rotation : float, default: 0.0
        Cumulative rotation the wheel is showing before the spin.
    extra_turns : int, default: DEFAULT_EXTRA_TURNS
        Full turns added for visual effect.

    Returns
    -------
    float
        New cumulative rotation. It is at least
        ``current_rotation + extra_turns * 360`` and, reduced modulo 360,
        equals :func:`resting_angle` for ``index``.
    """
    if extra_turns < 0:
        raise InvalidInput("extra_turns must not be negative")
    resting = resting_angle(index, count)
    # Spins accumulate, so only the offset from the current resting position
    # is added on top of the extra turns.
    offset = (resting - current_rotation) % FULL_TURN
    return current_rotation + extra_turns * FULL_TURN + offset


def landed_index(rotation: float, count: int) -> int:
    """Return the segment shown under the pointer at ``rotation``.

    This is a display helper; outcomes are never derived from it.
    """
    width = segment_width(count)
    under_pointer = (-rotation) % FULL_TURN
    return int(math.floor(under_pointer / width)) % count


__all__ = [
    "DEFAULT_EXTRA_TURNS",
    "FULL_TURN",
    "landed_index",
    "resting_angle",
    "segment_width",
    "target_rotation",
]

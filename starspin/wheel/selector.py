"""Weighted random selection of wheel outcomes."""

from __future__ import annotations

import math
import random
from operator import attrgetter
from typing import Callable, Optional, Sequence, TypeVar

from ..errors import InvalidInput

T = TypeVar("T")

RandomSource = Callable[[], float]
"""Callable returning a uniformly distributed float in ``[0, 1)``."""

_default_weight: Callable[[object], float] = attrgetter("weight")


def validate_weights(
    prizes: Sequence[T],
    weight: Callable[[T], float] = _default_weight,
) -> list[float]:
    """Return the weights of ``prizes`` after checking the selection preconditions.

    Parameters
    ----------
    prizes : Sequence[T]
        Ordered outcomes on the wheel.
    weight : Callable[[T], float], default: ``attrgetter("weight")``
        Accessor returning the relative weight of an outcome.

    Returns
    -------
    list[float]
        Weights in the same order as ``prizes``.

    Raises
    ------
    InvalidInput
        If ``prizes`` is empty or any weight is negative or not finite.
    """
    if not prizes:
        raise InvalidInput("At least one prize is required to spin the wheel")

    weights: list[float] = []
    for position, prize in enumerate(prizes):
        try:
            value = float(weight(prize))
        except (TypeError, ValueError) as exc:
            raise InvalidInput(
                f"Prize at position {position} has a non-numeric weight"
            ) from exc
        if not math.isfinite(value):
            raise InvalidInput(f"Prize at position {position} has a non-finite weight")
        if value < 0:
            raise InvalidInput(
                f"Prize at position {position} has a negative weight ({value})"
            )
        weights.append(value)
    return weights


def select_index(
    prizes: Sequence[T],
    rng: Optional[RandomSource] = None,
    weight: Callable[[T], float] = _default_weight,
) -> int:
    """Pick the position of one outcome with probability proportional to its weight.

    A single draw ``r = rng() * total`` is made and the weights are subtracted
    from it in order; the first outcome that brings the remainder to zero or
    below wins. Weights do not need to sum to one.

    Parameters
    ----------
    prizes : Sequence[T]
        Ordered outcomes on the wheel.
    rng : Optional[RandomSource], default: None
        Source of uniform randomness in ``[0, 1)``. Defaults to
        :func:`random.random`; inject a seeded or fixed source for
        deterministic results.
    weight : Callable[[T], float], default: ``attrgetter("weight")``
        Accessor returning the relative weight of an outcome.

    Returns
    -------
    int
        Index into ``prizes`` of the selected outcome.

    Raises
    ------
    InvalidInput
        If ``prizes`` is empty or a weight is negative.
    ValueError
        If ``rng`` returns a value outside ``[0, 1)``.

    Notes
    -----
    Zero-weight outcomes are skipped so that they can never win while some
    weight is positive, even on a draw of exactly ``0.0``. When every weight
    is zero the first outcome is returned.
    """
    weights = validate_weights(prizes, weight)
    largest = max(weights)
    if largest <= 0:
        return 0
    # Scaled to the largest weight so the sum stays within float range.
    weights = [value / largest for value in weights]
    total = math.fsum(weights)

    draw = (rng or random.random)()
    if not 0.0 <= draw < 1.0:
        raise ValueError(f"Random source returned {draw!r}, expected a value in [0, 1)")

    remainder = draw * total
    last_positive = 0
    for index, value in enumerate(weights):
        if value == 0:
            continue
        last_positive = index
        remainder -= value
        if remainder <= 0:
            return index

    # Rounding can leave a tiny positive remainder after the final entry.
    return last_positive


def select_prize(
    prizes: Sequence[T],
    rng: Optional[RandomSource] = None,
    weight: Callable[[T], float] = _default_weight,
) -> T:
    """Return the outcome chosen by :func:`select_index`."""
    return prizes[select_index(prizes, rng=rng, weight=weight)]


__all__ = ["RandomSource", "select_index", "select_prize", "validate_weights"]

"""Sequencing of a single wheel spin: select, animate, complete."""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass
from operator import attrgetter
from typing import Callable, Generic, Optional, Sequence, TypeVar

from .angles import DEFAULT_EXTRA_TURNS, target_rotation
from .scheduler import ScheduledTask, Scheduler
from .selector import RandomSource, select_index

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_SPIN_DURATION_MS = 4000


class SpinState(str, enum.Enum):
    IDLE = "idle"
    SPINNING = "spinning"


@dataclass(frozen=True)
class Celebration:
    """Particle burst shown when a spin finishes."""

    particle_count: int = 100
    spread: float = 70.0
    origin_y: float = 0.6


@dataclass(frozen=True)
class SpinPlan(Generic[T]):
    """Everything decided when a spin starts.

    Attributes
    ----------
    index : int
        Position of the selected outcome in the list passed to
        :meth:`SpinOrchestrator.start_spin`.
    outcome : T
        The selected outcome. This is what the completion callback receives.
    start_rotation : float
        Cumulative rotation before the spin.
    target_rotation : float
        Cumulative rotation the animation moves to.
    duration_ms : float
        Length of the animation.
    """

    index: int
    outcome: T
    start_rotation: float
    target_rotation: float
    duration_ms: float


class SpinOrchestrator(Generic[T]):
    """Runs spins one at a time against an injected scheduler.

    The orchestrator owns the wheel's cumulative rotation and the spinning
    flag. A spin picks its outcome up front, derives the animation target
    from it, and reports that same outcome once the animation time elapses.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        *,
        rng: Optional[RandomSource] = None,
        weight: Callable[[T], float] = attrgetter("weight"),
        extra_turns: int = DEFAULT_EXTRA_TURNS,
        duration_ms: float = DEFAULT_SPIN_DURATION_MS,
        celebration: Optional[Celebration] = Celebration(),
        on_celebrate: Optional[Callable[[Celebration], None]] = None,
        initial_rotation: float = 0.0,
    ) -> None:
        """Create an orchestrator.

        Parameters
        ----------
        scheduler : Scheduler
            Used to schedule the end of the animation.
        rng : Optional[RandomSource], default: None
            Random source forwarded to the selector.
        weight : Callable[[T], float], default: ``attrgetter("weight")``
            Accessor for outcome weights.
        extra_turns : int, default: DEFAULT_EXTRA_TURNS
            Full turns added to every spin.
        duration_ms : float, default: DEFAULT_SPIN_DURATION_MS
            Fixed length of the animation.
        celebration : Optional[Celebration], default: Celebration()
            Effect passed to ``on_celebrate``; ``None`` disables it.
        on_celebrate : Optional[Callable[[Celebration], None]], default: None
            Hook that renders the celebration when a spin completes.
        initial_rotation : float, default: 0.0
            Rotation the wheel is showing when the orchestrator is created.
        """
        if duration_ms < 0:
            raise ValueError("duration_ms must not be negative")
        self._scheduler = scheduler
        self._rng = rng
        self._weight = weight
        self._extra_turns = extra_turns
        self._duration_ms = duration_ms
        self._celebration = celebration
        self._on_celebrate = on_celebrate

        self._lock = threading.RLock()
        self._state = SpinState.IDLE
        self._rotation = float(initial_rotation)
        self._task: Optional[ScheduledTask] = None
        self._current: Optional[SpinPlan[T]] = None

    @property
    def state(self) -> SpinState:
        return self._state

    @property
    def is_spinning(self) -> bool:
        return self._state is SpinState.SPINNING

    @property
    def rotation(self) -> float:
        """Cumulative rotation of the wheel (the animation target while spinning)."""
        return self._rotation

    @property
    def current_plan(self) -> Optional[SpinPlan[T]]:
        return self._current

    def start_spin(
        self,
        prizes: Sequence[T],
        on_complete: Callable[[T], None],
    ) -> Optional[SpinPlan[T]]:
        """Start a spin over ``prizes``.

        Returns the :class:`SpinPlan` of the new spin, or ``None`` when a spin
        is already in flight (the request is ignored).

        Raises
        ------
        InvalidInput
            If ``prizes`` is empty or has a negative weight. Nothing is
            scheduled and the orchestrator stays idle.
        """
        with self._lock:
            if self._state is SpinState.SPINNING:
                logger.debug("Spin request ignored: a spin is already in progress")
                return None

            index = select_index(prizes, rng=self._rng, weight=self._weight)
            target = target_rotation(
                index,
                len(prizes),
                current_rotation=self._rotation,
                extra_turns=self._extra_turns,
            )
            plan = SpinPlan(
                index=index,
                outcome=prizes[index],
                start_rotation=self._rotation,
                target_rotation=target,
                duration_ms=self._duration_ms,
            )
            self._rotation = target
            self._state = SpinState.SPINNING
            self._current = plan
            self._task = self._scheduler.call_later(
                self._duration_ms, lambda: self._finish(plan, on_complete)
            )
            logger.debug(
                f"Spin started: segment {index} of {len(prizes)}, "
                f"rotation {plan.start_rotation:.1f} -> {target:.1f}"
            )
            return plan

    def cancel(self) -> bool:
        """Abort the spin in flight without calling its completion callback.

        The wheel keeps the target rotation of the aborted spin. Returns
        ``True`` when a spin was cancelled.
        """
        with self._lock:
            if self._task is None:
                return False
            self._task.cancel()
            self._task = None
            self._current = None
            self._state = SpinState.IDLE
            logger.debug("Spin cancelled before completion")
            return True

    def _finish(self, plan: SpinPlan[T], on_complete: Callable[[T], None]) -> None:
        with self._lock:
            if self._current is not plan:
                # Cancelled after the timer already fired.
                return
            self._task = None
            self._current = None
            self._state = SpinState.IDLE

        if self._on_celebrate is not None and self._celebration is not None:
            try:
                self._on_celebrate(self._celebration)
            except Exception:
                logger.exception("Celebration hook failed; completing spin anyway")
        on_complete(plan.outcome)


__all__ = [
    "Celebration",
    "DEFAULT_SPIN_DURATION_MS",
    "SpinOrchestrator",
    "SpinPlan",
    "SpinState",
]

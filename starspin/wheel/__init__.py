"""Prize wheel: weighted selection, angle mapping and spin sequencing."""

from .angles import (
    DEFAULT_EXTRA_TURNS,
    landed_index,
    resting_angle,
    segment_width,
    target_rotation,
)
from .orchestrator import (
    Celebration,
    DEFAULT_SPIN_DURATION_MS,
    SpinOrchestrator,
    SpinPlan,
    SpinState,
)
from .scheduler import ManualScheduler, ScheduledTask, ThreadingScheduler
from .segments import WheelSegment, build_wheel_segments
from .selector import select_index, select_prize, validate_weights

__all__ = [
    "Celebration",
    "DEFAULT_EXTRA_TURNS",
    "DEFAULT_SPIN_DURATION_MS",
    "ManualScheduler",
    "ScheduledTask",
    "SpinOrchestrator",
    "SpinPlan",
    "SpinState",
    "ThreadingScheduler",
    "WheelSegment",
    "build_wheel_segments",
    "landed_index",
    "resting_angle",
    "segment_width",
    "select_index",
    "select_prize",
    "target_rotation",
    "validate_weights",
]

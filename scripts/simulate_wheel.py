"""Spin a demo wheel many times on a simulated clock and print frequencies."""

from __future__ import annotations

import argparse
import logging
import random
from collections import Counter

from starspin.wheel import ManualScheduler, SpinOrchestrator, WheelSegment


DEMO_SEGMENTS = [
    WheelSegment(id="1", name="Free espresso", weight=30.0, prize_id=1),
    WheelSegment(id="2", name="Croissant", weight=20.0, prize_id=2),
    WheelSegment(id="3", name="Brunch for two", weight=1.0, prize_id=3),
    WheelSegment(id="unlucky", name="#UNLUCKY#", weight=39.0, kind="unlucky"),
    WheelSegment(id="retry", name="#RETRY#", weight=10.0, kind="retry"),
]


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--spins", type=int, default=10_000)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    scheduler = ManualScheduler()
    orchestrator = SpinOrchestrator(scheduler, rng=random.Random(args.seed).random)
    counts: Counter[str] = Counter()

    for _ in range(args.spins):
        orchestrator.start_spin(DEMO_SEGMENTS, lambda seg: counts.update([seg.name]))
        scheduler.advance(orchestrator.current_plan.duration_ms)

    total_weight = sum(seg.weight for seg in DEMO_SEGMENTS)
    for seg in DEMO_SEGMENTS:
        observed = counts[seg.name] / args.spins * 100
        expected = seg.weight / total_weight * 100
        print(f"{seg.name:<16} {observed:6.2f}%  (expected {expected:5.2f}%)")
    print(f"Final rotation: {orchestrator.rotation:.1f} deg")


if __name__ == "__main__":
    main()

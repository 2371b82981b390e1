from __future__ import annotations

import unittest

from starspin.errors import InvalidInput
from starspin.wheel import (
    DEFAULT_EXTRA_TURNS,
    landed_index,
    resting_angle,
    segment_width,
    target_rotation,
)


def distance_to_pointer(angle: float) -> float:
    """Shortest angular distance between ``angle`` and 0 degrees."""
    reduced = angle % 360
    return min(reduced, 360 - reduced)


class AngleMapperTests(unittest.TestCase):
    def test_segment_width(self) -> None:
        self.assertEqual(segment_width(4), 90)
        self.assertEqual(segment_width(1), 360)

    def test_first_spin_from_rest(self) -> None:
        self.assertEqual(resting_angle(0, 4), 315)
        self.assertEqual(target_rotation(0, 4), DEFAULT_EXTRA_TURNS * 360 + 315)
        self.assertEqual(target_rotation(2, 4, extra_turns=0), 135)

    def test_selected_midpoint_lands_under_pointer(self) -> None:
        for count in range(1, 13):
            width = 360 / count
            for index in range(count):
                for current in (0.0, 123.4, 2115.0, 7777.7):
                    with self.subTest(count=count, index=index, current=current):
                        target = target_rotation(index, count, current)
                        midpoint = index * width + width / 2
                        self.assertAlmostEqual(
                            distance_to_pointer(target + midpoint), 0.0, places=6
                        )
                        self.assertGreaterEqual(
                            target, current + DEFAULT_EXTRA_TURNS * 360
                        )
                        self.assertLess(
                            target, current + (DEFAULT_EXTRA_TURNS + 1) * 360
                        )
                        self.assertEqual(landed_index(target, count), index)

    def test_extra_turns_only_shift_by_full_turns(self) -> None:
        for current in (0.0, 45.0, 1900.5):
            first = target_rotation(3, 8, current, extra_turns=5)
            again = target_rotation(3, 8, current, extra_turns=5)
            bare = target_rotation(3, 8, current, extra_turns=0)
            self.assertEqual(first, again)
            self.assertAlmostEqual(first - bare, 5 * 360)

    def test_successive_spins_keep_increasing(self) -> None:
        rotation = 0.0
        for index in (2, 0, 5, 5, 1):
            new_rotation = target_rotation(index, 6, rotation)
            self.assertGreater(new_rotation, rotation)
            self.assertEqual(landed_index(new_rotation, 6), index)
            rotation = new_rotation

    def test_invalid_arguments(self) -> None:
        with self.assertRaises(InvalidInput):
            segment_width(0)
        with self.assertRaises(InvalidInput):
            resting_angle(4, 4)
        with self.assertRaises(InvalidInput):
            resting_angle(-1, 4)
        with self.assertRaises(InvalidInput):
            target_rotation(0, 4, extra_turns=-1)


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import unittest
from types import SimpleNamespace

from starspin.wheel import build_wheel_segments
from starspin.wheel.segments import PRIZE_COLORS, RETRY_COLOR, UNLUCKY_COLOR, WheelSegment


def prize(id: int, name: str, probability: float = 1.0, quantity=None):
    return SimpleNamespace(id=id, name=name, probability=probability, quantity=quantity)


class WheelSegmentTests(unittest.TestCase):
    def test_prizes_then_sentinels(self) -> None:
        segments = build_wheel_segments(
            [prize(1, "Coffee", 3), prize(2, "Cake", 1)],
            unlucky_probability=5,
            retry_probability=2,
        )
        self.assertEqual([s.kind for s in segments], ["prize", "prize", "unlucky", "retry"])
        self.assertEqual([s.weight for s in segments], [3.0, 1.0, 5.0, 2.0])
        self.assertEqual(segments[0].prize_id, 1)
        self.assertEqual(segments[0].id, "1")
        self.assertIsNone(segments[2].prize_id)
        self.assertEqual(segments[2].color, UNLUCKY_COLOR)
        self.assertEqual(segments[3].color, RETRY_COLOR)
        self.assertEqual(segments[3].text_color, "#1F2937")

    def test_sentinels_omitted_when_probability_is_zero(self) -> None:
        segments = build_wheel_segments([prize(1, "Coffee")])
        self.assertEqual(len(segments), 1)
        self.assertTrue(segments[0].is_prize)

    def test_out_of_stock_prizes_are_left_off(self) -> None:
        segments = build_wheel_segments(
            [prize(1, "Gone", quantity=0), prize(2, "Left", quantity=3), prize(3, "Always")]
        )
        self.assertEqual([s.prize_id for s in segments], [2, 3])

    def test_colours_cycle_through_palette(self) -> None:
        prizes = [prize(i, f"P{i}") for i in range(len(PRIZE_COLORS) + 2)]
        segments = build_wheel_segments(prizes)
        self.assertEqual(segments[0].color, PRIZE_COLORS[0])
        self.assertEqual(segments[len(PRIZE_COLORS)].color, PRIZE_COLORS[0])
        self.assertEqual(segments[len(PRIZE_COLORS) + 1].color, PRIZE_COLORS[1])

    def test_label_truncates_long_names(self) -> None:
        self.assertEqual(WheelSegment(id="1", name="Free dessert!", weight=1).label, "Free dessert...")
        self.assertEqual(WheelSegment(id="1", name="Free coffee", weight=1).label, "Free coffee")


if __name__ == "__main__":
    unittest.main()

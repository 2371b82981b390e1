import unittest

from starspin.ratelimit import RateLimitDecision, RateLimiter
from starspin.validation import hash_ip, is_valid_phone, is_valid_uuid, mask_phone


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestRateLimiter(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.limiter = RateLimiter(clock=self.clock)

    def test_allows_up_to_limit_within_window(self):
        first = self.limiter.check("ip", 2, 1000)
        second = self.limiter.check("ip", 2, 1000)
        self.assertTrue(first.allowed)
        self.assertEqual(first.remaining, 1)
        self.assertTrue(second.allowed)
        self.assertEqual(second.remaining, 0)

        self.clock.now = 400
        with self.assertLogs("starspin.ratelimit", level="WARNING"):
            denied = self.limiter.check("ip", 2, 1000)
        self.assertFalse(denied.allowed)
        self.assertEqual(denied.reset_in_ms, 600)
        self.assertEqual(denied.retry_after_seconds, 1)

    def test_window_resets(self):
        self.limiter.check("ip", 1, 1000)
        self.clock.now = 1000
        self.assertTrue(self.limiter.check("ip", 1, 1000).allowed)

    def test_keys_are_independent(self):
        self.limiter.check("a", 1, 1000)
        self.assertTrue(self.limiter.check("b", 1, 1000).allowed)

    def test_purge_expired(self):
        self.limiter.check("a", 1, 1000)
        self.limiter.check("b", 1, 5000)
        self.clock.now = 2000
        self.assertEqual(self.limiter.purge_expired(), 1)

    def test_check_drops_windows_of_idle_keys(self):
        for i in range(1000):
            self.clock.now = i * 120_000
            self.limiter.check(f"ip-{i}", 5, 60_000)
        self.assertEqual(self.limiter.tracked_keys, 1)

    def test_active_windows_survive_sweep(self):
        self.limiter.check("a", 1, 1000)
        self.clock.now = 500
        self.limiter.check("b", 1, 1000)
        self.clock.now = 1200
        self.limiter.check("c", 1, 1000)
        self.assertEqual(self.limiter.tracked_keys, 2)
        self.assertFalse(self.limiter.check("b", 1, 1000).allowed)

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            self.limiter.check("a", 0, 1000)
        with self.assertRaises(ValueError):
            self.limiter.check("a", 1, 0)

    def test_retry_after_rounds_up(self):
        self.assertEqual(RateLimitDecision(False, 0, 59_500).retry_after_seconds, 60)
        self.assertEqual(RateLimitDecision(False, 0, 0).retry_after_seconds, 0)


class TestValidation(unittest.TestCase):
    def test_uuid(self):
        self.assertTrue(is_valid_uuid("3f2b8c1e-9a4d-4e2f-8b7a-1c2d3e4f5a6b"))
        self.assertTrue(is_valid_uuid("3F2B8C1E-9A4D-4E2F-8B7A-1C2D3E4F5A6B"))
        self.assertFalse(is_valid_uuid("3f2b8c1e9a4d4e2f8b7a1c2d3e4f5a6b"))
        self.assertFalse(is_valid_uuid("not-a-uuid"))
        self.assertFalse(is_valid_uuid(None))

    def test_phone(self):
        self.assertTrue(is_valid_phone("+33612345678"))
        self.assertTrue(is_valid_phone("+33 6 12-34-56-78"))
        self.assertTrue(is_valid_phone("447911123456"))
        self.assertFalse(is_valid_phone("0612345678"))
        self.assertFalse(is_valid_phone("+1234"))
        self.assertFalse(is_valid_phone("+33abc45678"))
        self.assertFalse(is_valid_phone(""))

    def test_mask_phone(self):
        self.assertEqual(mask_phone("+33612345678"), "*********678")
        self.assertEqual(mask_phone("12"), "***")

    def test_hash_ip(self):
        self.assertIsNone(hash_ip(None, salt="s"))
        first = hash_ip("10.0.0.1", salt="s")
        self.assertEqual(first, hash_ip(" 10.0.0.1 ", salt="s"))
        self.assertNotEqual(first, hash_ip("10.0.0.1", salt="other"))
        self.assertEqual(len(first), 64)


if __name__ == "__main__":
    unittest.main()

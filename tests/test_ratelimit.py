from __future__ import annotations

import threading
import unittest

from honeywall.ratelimit import RateLimiter


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


class TestRateLimiter(unittest.TestCase):
    def test_101st_request_in_window_denied(self) -> None:
        clock = FakeClock()
        limiter = RateLimiter(max_requests=100, window_seconds=60, clock=clock)
        results = [limiter.allow("key") for _ in range(101)]
        self.assertTrue(all(results[:100]))
        self.assertFalse(results[100])
        # denial is sticky for the rest of the window
        self.assertFalse(limiter.allow("key"))

    def test_window_resets_after_expiry(self) -> None:
        clock = FakeClock()
        limiter = RateLimiter(max_requests=2, window_seconds=60, clock=clock)
        self.assertTrue(limiter.allow("key"))
        self.assertTrue(limiter.allow("key"))
        self.assertFalse(limiter.allow("key"))
        clock.now += 60
        self.assertFalse(limiter.allow("key"))
        clock.now += 0.001
        self.assertTrue(limiter.allow("key"))

    def test_credentials_are_independent(self) -> None:
        limiter = RateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
        self.assertTrue(limiter.allow("a"))
        self.assertFalse(limiter.allow("a"))
        self.assertTrue(limiter.allow("b"))

    def test_sweep_drops_only_expired_windows(self) -> None:
        clock = FakeClock()
        limiter = RateLimiter(max_requests=5, window_seconds=60, clock=clock)
        limiter.allow("old")
        clock.now += 30
        limiter.allow("fresh")
        clock.now += 31
        self.assertEqual(limiter.sweep(), 1)
        self.assertEqual(len(limiter), 1)

    def test_concurrent_calls_never_overshoot(self) -> None:
        limiter = RateLimiter(max_requests=100, window_seconds=60, clock=FakeClock())
        allowed: list[bool] = []
        lock = threading.Lock()

        def worker() -> None:
            for _ in range(50):
                ok = limiter.allow("shared")
                with lock:
                    allowed.append(ok)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(allowed), 400)
        self.assertEqual(sum(allowed), 100)


if __name__ == "__main__":
    unittest.main()

"""
Fixed-window rate limiter keyed by API credential.

One `RateLimiter` lives for the life of the app (created in the lifespan
hook).  Counter updates are serialised by a lock, so concurrent requests
sharing a credential can never undercount.  `sweep_loop()` runs as a
background task and drops expired windows to keep memory bounded.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger("honeywall.ratelimit")


@dataclass
class RateLimitRecord:
    count: int
    reset_at: float


class RateLimiter:
    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._records: dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()

    def allow(self, credential: str) -> bool:
        now = self._clock()
        with self._lock:
            record = self._records.get(credential)
            if record is None or now > record.reset_at:
                self._records[credential] = RateLimitRecord(1, now + self.window_seconds)
                return True
            if record.count >= self.max_requests:
                return False
            record.count += 1
            return True

    def sweep(self) -> int:
        """Forget every credential whose window has expired."""
        now = self._clock()
        with self._lock:
            expired = [key for key, rec in self._records.items() if now > rec.reset_at]
            for key in expired:
                del self._records[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    async def sweep_loop(self, interval: float) -> None:
        logger.info("Rate-limit sweep started (interval=%ss)", interval)
        while True:
            await asyncio.sleep(interval)
            try:
                dropped = self.sweep()
                if dropped:
                    logger.debug("Swept %d expired rate-limit windows", dropped)
            except Exception as exc:
                logger.exception("Rate-limit sweep error: %s", exc)

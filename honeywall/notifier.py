"""
Change notifier – fans newly stored events out to live subscribers.

Each subscriber owns a bounded asyncio.Queue.  `publish()` never waits: a
subscriber that has fallen behind far enough to fill its queue is closed and
removed, and must fall back to a window query.  Events stored before a
subscriber joined are never replayed.
"""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from .models import Event

logger = logging.getLogger("honeywall.notifier")

_CLOSED = object()


class Subscription:
    def __init__(self, notifier: "ChangeNotifier", maxsize: int) -> None:
        self._notifier = notifier
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize + 1)
        self._maxsize = maxsize
        self.closed = False

    def _offer(self, event: Event) -> bool:
        if self.closed:
            return False
        if self._queue.qsize() >= self._maxsize:
            self._close()
            return False
        self._queue.put_nowait(event)
        return True

    def _close(self) -> None:
        if not self.closed:
            self.closed = True
            # Slot reserved by maxsize + 1
            self._queue.put_nowait(_CLOSED)

    async def get(self, timeout: float | None = None) -> Event | None:
        """Next event, or None once the subscription is closed."""
        item = await asyncio.wait_for(self._queue.get(), timeout)
        if item is _CLOSED:
            return None
        return item

    def close(self) -> None:
        self._notifier.unsubscribe(self)

    def __aiter__(self) -> AsyncIterator[Event]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Event]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc) -> None:
        self.close()


class ChangeNotifier:
    def __init__(self, queue_size: int = 1000) -> None:
        self.queue_size = queue_size
        self._subscribers: list[Subscription] = []

    def subscribe(self) -> Subscription:
        sub = Subscription(self, self.queue_size)
        self._subscribers.append(sub)
        logger.debug("Subscriber added (%d active)", len(self._subscribers))
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)
        sub._close()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, events: list[Event]) -> None:
        for sub in list(self._subscribers):
            for event in events:
                if not sub._offer(event):
                    logger.warning("Dropping slow subscriber (queue full)")
                    self.unsubscribe(sub)
                    break

"""
Fan-out of assistant event payloads to websocket subscribers.

The dispatcher loop is the only publisher. Each subscriber gets its own
bounded queue; a slow subscriber loses its OLDEST payloads, never blocks
the publisher and never affects other subscribers.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from constants import EVENT_HUB_SUBSCRIBER_QUEUE_SIZE
from observability.logger import log_event


Payload = dict[str, Any]


@dataclass
class DropCounters:
    """
    Drop counters for observability.
    """
    overflow: int = 0


class EventHub:
    """
    Broadcast registry.

    Lifecycle per subscriber:
    1. subscribe()   -> queue
    2. await queue.get() until done
    3. unsubscribe(queue)
    """

    def __init__(self, *, max_backlog: int = EVENT_HUB_SUBSCRIBER_QUEUE_SIZE) -> None:
        if max_backlog <= 0:
            raise ValueError("max_backlog must be > 0")

        self._max_backlog = max_backlog
        self._subscribers: set[asyncio.Queue[Payload]] = set()
        self.drops = DropCounters()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue[Payload]:
        queue: asyncio.Queue[Payload] = asyncio.Queue(maxsize=self._max_backlog)
        self._subscribers.add(queue)
        log_event({"event_type": "HUB_SUBSCRIBED", "subscribers": len(self._subscribers)})
        return queue

    def unsubscribe(self, queue: asyncio.Queue[Payload]) -> None:
        """Idempotent."""
        if queue in self._subscribers:
            self._subscribers.discard(queue)
            log_event({"event_type": "HUB_UNSUBSCRIBED", "subscribers": len(self._subscribers)})

    def broadcast(self, payload: Payload) -> int:
        """
        Queue payload for every subscriber.

        Returns:
            Number of subscribers the payload was queued for.
        """
        for queue in self._subscribers:
            if queue.full():
                queue.get_nowait()
                self.drops.overflow += 1
            queue.put_nowait(payload)
        return len(self._subscribers)

"""
Event channel between the state machine and its single consumer.

Rules:
- Exactly one producer (the state machine) and one consumer.
- publish() never blocks and never drops once the channel is open.
- Events are delivered in publish order.
- Before open(), nothing is retained: late consumers only see the future.
"""

from __future__ import annotations

import asyncio

from assistant.events import Event
from observability.logger import log_event


class EventChannel:
    """
    Unbounded single-consumer queue.

    Lifecycle:
    1. State machine publishes events (dropped while closed)
    2. Consumer calls open() once when it subscribes
    3. Consumer awaits get() forever
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Event] = asyncio.Queue()
        self._open: bool = False

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        """
        Start retaining events for the consumer.

        Raises RuntimeError on a second call: the channel is not restartable.
        """
        if self._open:
            raise RuntimeError("event channel already has a consumer")
        self._open = True

    def publish(self, event: Event) -> bool:
        """
        Hand an event to the consumer.

        Returns:
            True if queued
            False if no consumer has subscribed yet
        """
        if not self._open:
            log_event({
                "event_type": "EVENT_DROPPED_NO_CONSUMER",
                "dropped_type": event.event_type.value,
            })
            return False

        self._queue.put_nowait(event)
        return True

    async def get(self) -> Event:
        """Suspend until the next event is available."""
        return await self._queue.get()

    def __len__(self) -> int:
        return self._queue.qsize()

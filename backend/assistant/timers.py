"""
Named one-shot timer slots.

Responsibilities:
- Arm / disarm timers by name
- Guarantee at most one live timer per name
- Run the timer's callback on expiry

Non-responsibilities:
- NO decisions about what a timeout means
- NO knowledge of assistant states
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

from observability.logger import log_error, log_event


TimerCallback = Callable[[], Awaitable[None]]


@dataclass
class _ArmedTimer:
    duration_ms: int
    task: asyncio.Task[None]


class TimerSlots:
    """
    Tagged-handle timer registry.

    Arming a name cancels any previous timer under the same name first,
    so a stale instance can never fire. A timer removes itself from its
    slot before running its callback, which lets the callback disarm
    every slot without cancelling itself.
    """

    def __init__(self) -> None:
        self._timers: dict[str, _ArmedTimer] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def arm(self, name: str, duration_ms: int, on_fire: TimerCallback) -> None:
        """Start or replace the timer called ``name``."""
        self.disarm(name)

        async def _timer_task() -> None:
            try:
                await asyncio.sleep(duration_ms / 1000.0)
            except asyncio.CancelledError:
                # Timer was disarmed - this is normal
                return

            armed = self._timers.get(name)
            if armed is not None and armed.task is asyncio.current_task():
                del self._timers[name]

            log_event({
                "event_type": "TIMER_FIRED",
                "timer": name,
                "duration_ms": duration_ms,
            })
            try:
                await on_fire()
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_error("TIMER_CALLBACK_FAILED", exc, timer=name)

        self._timers[name] = _ArmedTimer(
            duration_ms=duration_ms,
            task=asyncio.create_task(_timer_task()),
        )

    def disarm(self, name: str) -> bool:
        """
        Cancel the timer called ``name`` if it is armed.

        Idempotent: returns False when nothing was armed.
        """
        armed = self._timers.pop(name, None)
        if armed is None:
            return False
        if not armed.task.done():
            armed.task.cancel()
        return True

    def disarm_all(self) -> None:
        for name in list(self._timers):
            self.disarm(name)

    def is_armed(self, name: str) -> bool:
        return name in self._timers

    def duration_ms(self, name: str) -> int | None:
        """Duration the live timer ``name`` was armed with, if any."""
        armed = self._timers.get(name)
        return armed.duration_ms if armed is not None else None

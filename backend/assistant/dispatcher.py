"""
The assistant's single downstream loop.

VoiceAssistant is the one consumer of the state machine's event stream.
Every event is logged and passed through to the caller (console or
websocket hub); Command events additionally start a responder task.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator

from adapters.llm.responder import CommandResponder
from assistant.enums.state import VoiceState
from assistant.events import Command, Event
from assistant.machine import VoiceStateMachine
from assistant.serialization import event_to_payload
from capture.store import AudioStore
from observability.logger import log_error, log_event


class VoiceAssistant:
    """
    Facade over a wired state machine and its command responder.

    Lifecycle:
    1. start()   -> recognizer running (unless starting muted)
    2. events()  -> iterate forever; Commands are answered in the background
    3. shutdown() -> responder tasks cancelled, engines stopped, audio released
    """

    def __init__(
        self,
        *,
        machine: VoiceStateMachine,
        responder: CommandResponder,
        store: AudioStore,
    ) -> None:
        self._machine = machine
        self._responder = responder
        self._store = store
        self._tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Pass-through API
    # ------------------------------------------------------------------

    @property
    def machine(self) -> VoiceStateMachine:
        return self._machine

    @property
    def state(self) -> VoiceState:
        return self._machine.state

    @property
    def is_muted(self) -> bool:
        return self._machine.is_muted

    @property
    def pending_commands(self) -> int:
        return len(self._tasks)

    def start(self) -> None:
        self._machine.start()

    def toggle_mute(self) -> None:
        self._machine.toggle_mute()

    async def speak(self, text: str) -> None:
        await self._machine.speak(text)

    # ------------------------------------------------------------------
    # Event loop
    # ------------------------------------------------------------------

    async def events(self) -> AsyncIterator[Event]:
        async for event in self._machine.events():
            log_event({"event_type": "ASSISTANT_EVENT", **event_to_payload(event)})

            if isinstance(event, Command):
                self._schedule(event)

            yield event

    def _schedule(self, command: Command) -> None:
        task = asyncio.create_task(self._respond(command))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _respond(self, command: Command) -> None:
        try:
            await self._responder.handle(command)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_error("RESPONDER_CRASHED", exc)

    async def shutdown(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._machine.shutdown()
        self._store.release_all()

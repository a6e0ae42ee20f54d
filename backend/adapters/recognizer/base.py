"""
Recognizer adapter contract.

This module defines the *interface only*: no endpointing, timers, or
state decisions live here.

Key invariants:
- The adapter reports what the engine heard; it never changes assistant state.
- start() and stop() are synchronous requests and MUST be idempotent.
- Notifications go to exactly one bound listener.
- A session may end on its own at any time; the listener decides whether
  to restart it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Protocol


# =============================================================================
# Result types
# =============================================================================

@dataclass(frozen=True)
class RecognitionResult:
    """Best transcript for one recognized segment."""
    transcript: str
    is_final: bool


@dataclass(frozen=True)
class RecognitionResults:
    """
    One result notification.

    Only results[result_index:] changed since the previous notification;
    earlier entries are settled and must not be re-read.
    """
    result_index: int
    results: tuple[RecognitionResult, ...]

    def split(self) -> tuple[str, str]:
        """Return (interim_text, newly_finalized_text) for the changed results."""
        interim = ""
        final = ""
        for result in self.results[self.result_index:]:
            if result.is_final:
                final += result.transcript
            else:
                interim += result.transcript
        return interim, final


# =============================================================================
# Listener
# =============================================================================

class RecognizerListener(Protocol):
    """Receiver of recognizer notifications (the state machine)."""

    async def on_result(self, results: RecognitionResults) -> None: ...

    async def on_error(self, kind: str, detail: str | None = None) -> None: ...

    async def on_speech_start(self) -> None: ...

    async def on_speech_end(self) -> None: ...

    async def on_session_end(self) -> None: ...


# =============================================================================
# Adapter
# =============================================================================

class Recognizer(ABC):
    """
    Abstract continuous speech recognizer.

    Implementations are responsible for:
    - Owning their own audio input
    - Producing interim and final results
    - Reporting errors by kind ("aborted", "no-speech", "network", ...)
    - Reporting speech start/end and session end

    Non-responsibilities:
    - No wake-phrase matching
    - No timers
    - No restarting on their own after a session ends
    """

    def __init__(self) -> None:
        self._listener: RecognizerListener | None = None

    def bind(self, listener: RecognizerListener) -> None:
        """Attach the single listener. Rebinding replaces the previous one."""
        self._listener = listener

    @property
    def listener(self) -> RecognizerListener | None:
        return self._listener

    @abstractmethod
    def start(self) -> None:
        """
        Begin a recognition session.

        Contract:
        - Returns immediately; the session opens asynchronously.
        - No-op if a session is already running.
        """
        raise NotImplementedError

    @abstractmethod
    def stop(self) -> None:
        """
        End the current recognition session.

        Contract:
        - Returns immediately.
        - No-op if no session is running.
        - The listener receives on_error("aborted") and then on_session_end().
        """
        raise NotImplementedError

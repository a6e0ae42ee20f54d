"""
Assistant event definitions.

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- Events are created by the state machine and only by the state machine.
- ts_ms is assigned at emission time from the machine's monotonic clock.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from assistant.enums.state import VoiceState


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Discriminants for the closed set of events a consumer can observe.
    """

    STATE_CHANGE = "statechange"
    TRANSCRIPT = "transcript"
    COMMAND = "command"
    SPEECH_START = "speakstart"
    SPEECH_END = "speakend"
    ERROR = "error"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: monotonic emission timestamp (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


# =============================================================================
# Concrete Events
# =============================================================================

@dataclass(frozen=True)
class StateChange(Event):
    """The assistant moved to a new state."""
    state: VoiceState


@dataclass(frozen=True)
class Transcript(Event):
    """
    A transcript fragment from the recognizer.

    Interim fragments (is_final=False) may be revised by later ones.
    """
    text: str
    is_final: bool


@dataclass(frozen=True)
class Command(Event):
    """
    A user utterance has been captured and is ready for a responder.

    audio_locator is None when nothing was recorded.
    """
    audio_locator: str | None
    extension: str | None = None


@dataclass(frozen=True)
class SpeechStart(Event):
    """Synthesized playback of text has started."""
    text: str


@dataclass(frozen=True)
class SpeechEnd(Event):
    """Synthesized playback has finished."""


@dataclass(frozen=True)
class ErrorEvent(Event):
    """
    A recoverable error was absorbed by the assistant.

    message is human readable; cause is kept for diagnostics.
    """
    message: str
    cause: BaseException | None = None

"""
Authoritative assistant state enumeration.

Rules:
- This enum defines ONLY the turn-lifecycle states.
- No behavior, no helper methods, no side effects.
- Transitions are performed exclusively by the state machine.
"""

from __future__ import annotations

from enum import Enum


class VoiceState(str, Enum):
    """
    Mutually exclusive states of the voice assistant.

    Exactly one value is current at any time.
    """

    LISTENING_FOR_WAKE_WORD = "LISTENING_FOR_WAKE_WORD"
    ACTIVATING = "ACTIVATING"
    RECORDING_USER_SPEECH = "RECORDING_USER_SPEECH"
    PROCESSING_USER_SPEECH = "PROCESSING_USER_SPEECH"
    MUTED = "MUTED"
    SPEAKING = "SPEAKING"

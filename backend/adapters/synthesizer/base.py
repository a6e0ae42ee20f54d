"""
Synthesizer adapter contract.

This module defines the *interface only*: no state transitions, no
recognizer coordination.

Key invariants:
- speak() completes when playback of that text has finished.
- speak() raises SynthesisError on provider or playback failure.
- cancel_all() stops playback immediately; an interrupted speak() returns
  normally (interruption is not a failure).
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class Synthesizer(ABC):
    """
    Abstract text-to-speech engine with local playback.

    Non-responsibilities:
    - No chunking policy
    - No knowledge of assistant state or mute
    - No retries
    """

    @abstractmethod
    async def speak(self, text: str) -> None:
        """
        Synthesize and play ``text``.

        Raises:
            SynthesisError if synthesis or playback failed.
        """
        raise NotImplementedError

    @abstractmethod
    def cancel_all(self) -> None:
        """
        Stop any in-flight synthesis and playback.

        Contract:
        - Synchronous and idempotent.
        - No-op when nothing is playing.
        """
        raise NotImplementedError

"""
Error taxonomy for the voice assistant.

Only bootstrap failures and SynthesisError (to the speak() caller) ever
leave the state machine; everything else is absorbed and reported as an
ErrorEvent on the event stream.
"""

from __future__ import annotations

from constants import RECOGNITION_ERROR_ABORTED, RECOGNITION_ERROR_NO_SPEECH


class VoiceAssistantError(Exception):
    """Base class for all assistant errors."""


# ---------------------------------------------------------------------
# Recognition
# ---------------------------------------------------------------------

class RecognitionError(VoiceAssistantError):
    """Error reported by the recognizer, identified by its kind string."""

    def __init__(self, kind: str, detail: str | None = None) -> None:
        self.kind = kind
        self.detail = detail
        message = f"Recognition Error: '{kind}'"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class RecognitionTransientError(RecognitionError):
    """Recognition was aborted by a programmatic stop. Ignored."""


class RecognitionNoSpeech(RecognitionError):
    """Recognizer heard nothing. Treated as an end-of-utterance signal."""


class RecognitionFatalError(RecognitionError):
    """Any other recognizer failure. Surfaced; the utterance is completed."""


def classify_recognition_error(kind: str, detail: str | None = None) -> RecognitionError:
    """Map a recognizer error kind onto the taxonomy."""
    if kind == RECOGNITION_ERROR_ABORTED:
        return RecognitionTransientError(kind, detail)
    if kind == RECOGNITION_ERROR_NO_SPEECH:
        return RecognitionNoSpeech(kind, detail)
    return RecognitionFatalError(kind, detail)


# ---------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------

class CaptureUnavailable(VoiceAssistantError):
    """Capture device missing or permission denied."""


class CaptureFinalizeError(VoiceAssistantError):
    """Captured audio could not be turned into a locator."""


class CaptureSessionConflict(VoiceAssistantError):
    """A capture session was started while another one is still live."""


# ---------------------------------------------------------------------
# Synthesis
# ---------------------------------------------------------------------

class SynthesisError(VoiceAssistantError):
    """Speech synthesis or playback failed."""


# ---------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------

class AssistantUnavailable(VoiceAssistantError):
    """A required platform capability or credential is missing."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            "The following features are not available: "
            f"{', '.join(self.missing)}."
        )

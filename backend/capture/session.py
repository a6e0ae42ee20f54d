"""
Capture session: one microphone recording bound to one utterance.

Lifecycle:
1. begin()      -> engine stream opened, chunks start arriving
2. append_chunk -> called by the engine's delivery path only
3. finalize()   -> stream flushed, audio encoded, locator returned
   OR discard() -> stream aborted, audio dropped

A session is closed by exactly one finalize() or discard().
"""

from __future__ import annotations

from dataclasses import dataclass

from assistant.errors import CaptureFinalizeError, CaptureUnavailable
from capture.engine import CaptureConstraints, CaptureEngine, CaptureStream
from capture.store import AudioStore
from constants import FALLBACK_AUDIO_EXTENSION
from observability.logger import log_event


@dataclass(frozen=True)
class CapturedAudio:
    """A finalized recording."""
    locator: str
    extension: str
    mime_type: str


def extension_for_mime_type(mime_type: str | None) -> str:
    """
    File extension for a media type such as ``audio/wav;codecs=1``.

    Falls back to "bin" when no subtype can be determined.
    """
    if not mime_type:
        return FALLBACK_AUDIO_EXTENSION
    essence = mime_type.split(";", 1)[0].strip()
    _, _, subtype = essence.partition("/")
    return subtype.strip().lower() or FALLBACK_AUDIO_EXTENSION


class CaptureSession:
    """
    Append-only buffer of chunks from one engine stream.

    Exclusively owned by the state machine for its whole life.
    """

    def __init__(self, *, store: AudioStore, constraints: CaptureConstraints) -> None:
        self._store = store
        self._constraints = constraints
        self._stream: CaptureStream | None = None
        self._chunks: list[bytes] = []
        self._accepting: bool = True
        self._closed: bool = False

    @classmethod
    async def begin(
        cls,
        *,
        engine: CaptureEngine,
        store: AudioStore,
        constraints: CaptureConstraints | None = None,
    ) -> CaptureSession:
        """
        Open a new recording.

        Raises:
            CaptureUnavailable when the engine cannot open a stream, whatever
            the engine raised.
        """
        session = cls(store=store, constraints=constraints or CaptureConstraints())
        try:
            session._stream = await engine.begin(session._constraints, session.append_chunk)
        except CaptureUnavailable:
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            raise CaptureUnavailable(f"{type(exc).__name__}: {exc}") from exc
        log_event({
            "event_type": "CAPTURE_STARTED",
            "mime_type": session._stream.mime_type,
        })
        return session

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def mime_type(self) -> str | None:
        return self._stream.mime_type if self._stream is not None else None

    # ------------------------------------------------------------------
    # Engine delivery
    # ------------------------------------------------------------------

    def append_chunk(self, data: bytes) -> None:
        if not self._accepting:
            return
        self._chunks.append(bytes(data))

    # ------------------------------------------------------------------
    # Terminal operations
    # ------------------------------------------------------------------

    async def finalize(self) -> CapturedAudio | None:
        """
        Stop recording and encode everything captured.

        Returns:
            CapturedAudio, or None when no chunk was ever recorded.

        Raises:
            CaptureFinalizeError if the engine failed to stop or the audio
            could not be encoded.
        """
        self._mark_closed()

        try:
            if self._stream is not None:
                await self._stream.stop()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            self._chunks = []
            raise CaptureFinalizeError("Failed to process recorded audio.") from exc
        finally:
            self._accepting = False

        chunks = self._chunks
        self._chunks = []

        if not chunks:
            log_event({
                "event_type": "CAPTURE_EMPTY",
                "message": "No audio chunks recorded. Cannot create audio file.",
            })
            return None

        try:
            locator = await self._store.save(chunks, self._constraints.sample_rate_hz)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            raise CaptureFinalizeError("Failed to process recorded audio.") from exc

        mime_type = self.mime_type or self._constraints.mime_type
        captured = CapturedAudio(
            locator=locator,
            extension=extension_for_mime_type(mime_type),
            mime_type=mime_type,
        )
        log_event({
            "event_type": "CAPTURE_FINALIZED",
            "locator": captured.locator,
            "chunks": len(chunks),
        })
        return captured

    def discard(self) -> None:
        """Abort recording and drop all captured audio."""
        self._mark_closed()
        self._accepting = False
        if self._stream is not None:
            self._stream.abort()
        dropped = len(self._chunks)
        self._chunks = []
        log_event({"event_type": "CAPTURE_DISCARDED", "chunks": dropped})

    def _mark_closed(self) -> None:
        if self._closed:
            raise RuntimeError("capture session already finalized or discarded")
        self._closed = True

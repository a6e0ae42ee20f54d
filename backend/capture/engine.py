"""
Capture engine contract.

The engine only opens and closes recording streams and pushes raw chunks
to whoever asked for them. Buffering, encoding and locators belong to
CaptureSession / AudioStore.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

from constants import AUDIO_CHANNELS, AUDIO_SAMPLE_RATE_HZ, CAPTURE_MIME_TYPE


ChunkSink = Callable[[bytes], None]


@dataclass(frozen=True)
class CaptureConstraints:
    """Requested recording format."""
    sample_rate_hz: int = AUDIO_SAMPLE_RATE_HZ
    channels: int = AUDIO_CHANNELS
    mime_type: str = CAPTURE_MIME_TYPE


class CaptureStream(ABC):
    """Handle for one open recording stream."""

    @property
    @abstractmethod
    def mime_type(self) -> str:
        """Negotiated media type of the recorded audio."""
        raise NotImplementedError

    @abstractmethod
    async def stop(self) -> None:
        """
        Stop recording and flush.

        Every chunk recorded before stop() is delivered before it returns.
        """
        raise NotImplementedError

    @abstractmethod
    def abort(self) -> None:
        """Stop recording immediately; pending chunks may be lost."""
        raise NotImplementedError


class CaptureEngine(ABC):
    """Abstract microphone recorder."""

    @abstractmethod
    async def begin(self, constraints: CaptureConstraints, on_chunk: ChunkSink) -> CaptureStream:
        """
        Open a recording stream delivering chunks to ``on_chunk``.

        Raises:
            CaptureUnavailable if no device is usable or access is denied.
        """
        raise NotImplementedError

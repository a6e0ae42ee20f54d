"""
Storage for finalized recordings.

Locators are filesystem paths of WAV files written with soundfile. The
store owns those files: consumers read them and release them when done.
"""

from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path
from uuid import uuid4

import soundfile as sf

from audio.pcm import join_pcm16
from constants import CAPTURE_FILE_PREFIX
from observability.logger import log_event


class AudioStore:
    """Encodes captured PCM16 chunks to WAV files and hands out locators."""

    def __init__(self, directory: str | None = None) -> None:
        if directory is None:
            self._dir = Path(tempfile.mkdtemp(prefix="voice-capture-"))
        else:
            self._dir = Path(directory)
            self._dir.mkdir(parents=True, exist_ok=True)
        self._locators: set[str] = set()

    @property
    def directory(self) -> Path:
        return self._dir

    async def save(self, chunks: list[bytes], sample_rate_hz: int) -> str:
        """
        Encode chunks into a new WAV file off the event loop.

        Returns:
            The locator of the written file.
        """
        locator = await asyncio.to_thread(self._write, list(chunks), sample_rate_hz)
        self._locators.add(locator)
        return locator

    def read(self, locator: str) -> bytes:
        return Path(locator).read_bytes()

    def release(self, locator: str) -> None:
        """Delete a recording. Idempotent."""
        self._locators.discard(locator)
        Path(locator).unlink(missing_ok=True)
        log_event({"event_type": "CAPTURE_RELEASED", "locator": locator})

    def release_all(self) -> None:
        for locator in list(self._locators):
            self.release(locator)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _write(self, chunks: list[bytes], sample_rate_hz: int) -> str:
        samples = join_pcm16(chunks)
        path = self._dir / f"{CAPTURE_FILE_PREFIX}{uuid4().hex[:12]}.wav"
        sf.write(str(path), samples, sample_rate_hz, subtype="PCM_16", format="WAV")
        return str(path)

"""
Microphone input stream bridged onto the asyncio loop.

sounddevice invokes its callback on a PortAudio thread. The callback does
no processing: it copies the block and hops onto the event loop with
call_soon_threadsafe, where chunks are numbered and delivered in order.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable

import sounddevice as sd

from audio.frames import AudioChunk
from constants import (
    AUDIO_CHANNELS,
    AUDIO_DTYPE,
    AUDIO_SAMPLE_RATE_HZ,
    AUDIO_SAMPLES_PER_BLOCK,
)
from observability.logger import log_event


ChunkHandler = Callable[[AudioChunk], None]


class MicrophoneStream:
    """
    One PortAudio input stream delivering PCM16 mono chunks.

    open() raises sounddevice.PortAudioError when no input device is
    usable; callers translate that into their own error type.
    """

    def __init__(
        self,
        *,
        on_chunk: ChunkHandler,
        sample_rate_hz: int = AUDIO_SAMPLE_RATE_HZ,
        block_samples: int = AUDIO_SAMPLES_PER_BLOCK,
        device: int | str | None = None,
    ) -> None:
        self._on_chunk = on_chunk
        self._sample_rate_hz = sample_rate_hz
        self._block_samples = block_samples
        self._device = device

        self._stream: sd.RawInputStream | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._next_seq: int = 0
        self._delivering: bool = False

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    def open(self) -> None:
        """Start capturing. Must be called from the event loop thread."""
        if self._stream is not None:
            return

        self._loop = asyncio.get_running_loop()
        stream = sd.RawInputStream(
            samplerate=self._sample_rate_hz,
            channels=AUDIO_CHANNELS,
            dtype=AUDIO_DTYPE,
            blocksize=self._block_samples,
            device=self._device,
            callback=self._audio_callback,
        )
        stream.start()
        self._stream = stream
        self._delivering = True

    def stop(self) -> None:
        """
        Stop the PortAudio stream.

        Blocks already handed to the loop are still delivered; call close()
        after they have run to stop delivery entirely.
        """
        stream = self._stream
        if stream is not None and stream.active:
            stream.stop()

    def close(self) -> None:
        """Stop delivery and release the device. Idempotent."""
        self._delivering = False
        stream = self._stream
        self._stream = None
        if stream is not None:
            stream.stop()
            stream.close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _audio_callback(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:  # pylint: disable=unused-argument
        if status:
            log_event({"event_type": "MIC_STATUS", "status": str(status)})

        data = bytes(indata)
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._deliver, data)

    def _deliver(self, data: bytes) -> None:
        if not self._delivering:
            return

        chunk = AudioChunk(
            sequence_num=self._next_seq,
            pcm_bytes=data,
            ts_ms=time.time_ns() // 1_000_000,
        )
        self._next_seq += 1
        self._on_chunk(chunk)

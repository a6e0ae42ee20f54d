"""sounddevice-backed capture engine: one PortAudio input stream per recording."""

from __future__ import annotations

import asyncio

import sounddevice as sd

from assistant.errors import CaptureUnavailable
from audio.frames import AudioChunk
from audio.microphone import MicrophoneStream
from capture.engine import CaptureConstraints, CaptureEngine, CaptureStream, ChunkSink
from observability.logger import log_event


class _MicrophoneCaptureStream(CaptureStream):

    def __init__(self, mic: MicrophoneStream, mime_type: str) -> None:
        self._mic = mic
        self._mime_type = mime_type

    @property
    def mime_type(self) -> str:
        return self._mime_type

    async def stop(self) -> None:
        self._mic.stop()
        # Let blocks already queued by the PortAudio thread reach the session
        await asyncio.sleep(0)
        self._mic.close()

    def abort(self) -> None:
        self._mic.close()


class SoundDeviceCaptureEngine(CaptureEngine):
    """Opens a fresh PortAudio input stream per recording."""

    def __init__(self, *, device: int | str | None = None) -> None:
        self._device = device

    async def begin(self, constraints: CaptureConstraints, on_chunk: ChunkSink) -> CaptureStream:
        def _forward(chunk: AudioChunk) -> None:
            on_chunk(chunk.pcm_bytes)

        mic = MicrophoneStream(
            on_chunk=_forward,
            sample_rate_hz=constraints.sample_rate_hz,
            device=self._device,
        )
        try:
            mic.open()
        except (sd.PortAudioError, ValueError) as exc:
            raise CaptureUnavailable(f"Could not get user media: {exc}") from exc

        log_event({
            "event_type": "CAPTURE_STREAM_OPENED",
            "mime_type": constraints.mime_type,
            "sample_rate_hz": constraints.sample_rate_hz,
        })
        return _MicrophoneCaptureStream(mic, constraints.mime_type)

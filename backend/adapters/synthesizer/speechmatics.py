"""
Speechmatics synthesizer with local playback.

Role in the system:
- Receives one complete text per speak() call.
- Performs one Speechmatics TTS call, raw PCM16 16kHz mono.
- Plays the audio on the default output device via sounddevice.
- Returns when playback finished, or early when cancel_all() interrupts it.

Architectural constraints:
- No state machine transitions or recognizer coordination.
- No retries.
- Provider and playback failures surface as SynthesisError.

Concurrency & cancellation:
- One asyncio task per speak() call.
- cancel_all() cancels every task and stops the output device; the
  interrupted speak() calls return normally.
"""
from __future__ import annotations

import asyncio
import time

import sounddevice as sd
from speechmatics.tts import AsyncClient, OutputFormat, Voice  # pyright: ignore[reportMissingTypeStubs]  # pylint: disable=no-name-in-module, import-error

from adapters.synthesizer.base import Synthesizer
from assistant.errors import SynthesisError
from audio.pcm import pcm16le_to_float32
from constants import TTS_PROVIDER_CHUNK_SIZE, TTS_SAMPLE_RATE_HZ
from observability.logger import log_event


class SpeechmaticsSynthesizer(Synthesizer):
    """
    Speechmatics batch TTS + sounddevice playback.
    """

    _VOICE_MAP: dict[str, Voice] = {
        "sarah": Voice.SARAH,
        "theo": Voice.THEO,
        "megan": Voice.MEGAN,
    }

    def __init__(
        self,
        *,
        api_key: str,
        voice: str = "sarah",
        device: int | str | None = None,
    ) -> None:
        self._api_key = api_key
        self._voice = self._resolve_voice(voice)
        self._device = device

        self._tasks: set[asyncio.Task[None]] = set()
        self._interrupted: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Synthesizer contract
    # ------------------------------------------------------------------

    async def speak(self, text: str) -> None:
        task = asyncio.create_task(self._run(text))
        self._tasks.add(task)
        try:
            await task
        except asyncio.CancelledError:
            if task in self._interrupted:
                log_event({"event_type": "TTS_INTERRUPTED", "chars": len(text)})
                return
            task.cancel()
            raise
        finally:
            self._tasks.discard(task)
            self._interrupted.discard(task)

    def cancel_all(self) -> None:
        if not self._tasks:
            return

        for task in self._tasks:
            if not task.done():
                self._interrupted.add(task)
                task.cancel()

        # Unblocks a pending sd.wait() in the playback thread
        sd.stop()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _run(self, text: str) -> None:
        try:
            t0 = time.monotonic_ns()
            pcm_bytes = await self._synthesize(text)
            t1 = time.monotonic_ns()
            log_event({
                "event_type": "TTS_SYNTH_METRICS",
                "chars": len(text),
                "bytes": len(pcm_bytes),
                "synth_ns": t1 - t0,
            })
            await self._play(pcm_bytes)

        except asyncio.CancelledError:
            raise

        except Exception as exc:  # pylint: disable=broad-exception-caught
            raise SynthesisError(f"{type(exc).__name__}: {exc}") from exc

    async def _synthesize(self, text: str) -> bytes:
        async with AsyncClient(api_key=self._api_key) as client:
            async with await client.generate(
                text=text,
                voice=self._voice,
                output_format=OutputFormat.RAW_PCM_16000,
            ) as response:
                buffer = bytearray()
                async for chunk in response.content.iter_chunked(TTS_PROVIDER_CHUNK_SIZE):
                    buffer.extend(chunk)

        # Drop a trailing odd byte (truncated sample)
        if len(buffer) % 2 == 1:
            del buffer[-1]
        return bytes(buffer)

    async def _play(self, pcm_bytes: bytes) -> None:
        samples = pcm16le_to_float32(pcm_bytes)
        if samples.size == 0:
            return

        sd.play(samples, samplerate=TTS_SAMPLE_RATE_HZ, device=self._device)
        await asyncio.to_thread(sd.wait)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @classmethod
    def _resolve_voice(cls, voice: str) -> Voice:
        """
        Convert user-facing voice string to Speechmatics Voice enum.

        Defaults to SARAH if unknown.
        """
        return cls._VOICE_MAP.get(voice.lower(), Voice.SARAH)

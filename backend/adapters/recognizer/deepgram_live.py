"""
Deepgram live streaming recognizer.

Session model:
- One session = one Deepgram WebSocket + one microphone input stream.
- start() opens a session in the background; stop() tears it down.
- Deepgram VAD events drive speech start / end notifications.
- When the socket closes on its own the listener gets on_session_end()
  and decides whether to start again.

Design constraints:
- Adapter must not know about assistant states.
- Listener notifications are fire-and-forget tasks, created in the
  order the messages arrived.
"""

from __future__ import annotations

import asyncio
import json
import urllib.parse
from typing import Any, Coroutine

import sounddevice as sd
from websockets.legacy.client import (
    connect as ws_connect,
    WebSocketClientProtocol,
)

from adapters.recognizer.base import Recognizer, RecognitionResult, RecognitionResults
from audio.frames import AudioChunk
from audio.microphone import MicrophoneStream
from constants import (
    AUDIO_CHANNELS,
    AUDIO_SAMPLE_RATE_HZ,
    RECOGNITION_ERROR_ABORTED,
    RECOGNITION_ERROR_AUDIO_CAPTURE,
    RECOGNITION_ERROR_NETWORK,
    RECOGNIZER_MAX_MESSAGE_BYTES,
    RECOGNIZER_UTTERANCE_END_MS,
)
from observability.logger import log_debug, log_error, log_event


_CLOSE_STREAM_MESSAGE = json.dumps({"type": "CloseStream"})


def results_from_message(data: dict[str, Any]) -> RecognitionResults | None:
    """
    Convert a Deepgram ``Results`` message into a result notification.

    Each Deepgram message carries exactly one segment, so the changed
    range always starts at index 0. Messages without text yield None.
    """
    channel = data.get("channel") or {}
    alternatives = channel.get("alternatives") or []
    if not alternatives:
        return None

    transcript = (alternatives[0].get("transcript") or "").strip()
    if not transcript:
        return None

    return RecognitionResults(
        result_index=0,
        results=(RecognitionResult(
            transcript=transcript,
            is_final=bool(data.get("is_final")),
        ),),
    )


class DeepgramLiveRecognizer(Recognizer):
    """
    Continuous recognizer over Deepgram's /v1/listen WebSocket API.

    Audio comes from the default input device (or ``device``) as PCM16
    mono at AUDIO_SAMPLE_RATE_HZ.
    """

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "nova-2",
        language: str | None = "en-US",
        punctuate: bool = True,
        utterance_end_ms: int = RECOGNIZER_UTTERANCE_END_MS,
        device: int | str | None = None,
    ) -> None:
        super().__init__()
        self._api_key = api_key
        self._model = model
        self._language = language
        self._punctuate = punctuate
        self._utterance_end_ms = utterance_end_ms
        self._device = device

        self._session_task: asyncio.Task[None] | None = None
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def is_running(self) -> bool:
        return self._session_task is not None

    # -------------------------------------------------------------------------
    # Recognizer contract
    # -------------------------------------------------------------------------

    def start(self) -> None:
        if self._session_task is not None:
            return
        self._session_task = asyncio.create_task(self._run_session())
        log_event({"event_type": "RECOGNIZER_STARTING", "model": self._model})

    def stop(self) -> None:
        task = self._session_task
        if task is None:
            return

        self._session_task = None
        if not task.done():
            task.cancel()

        log_event({"event_type": "RECOGNIZER_STOPPED"})
        self._notify_error(RECOGNITION_ERROR_ABORTED)
        self._notify_session_end()

    async def drain(self) -> None:
        """Wait for every listener notification dispatched so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # -------------------------------------------------------------------------
    # Notification dispatch
    # -------------------------------------------------------------------------

    def _dispatch(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(self._guarded(coro))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _guarded(self, coro: Coroutine[Any, Any, None]) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_error("RECOGNIZER_LISTENER_FAILED", e)

    def _notify_error(self, kind: str, detail: str | None = None) -> None:
        listener = self._listener
        if listener is not None:
            self._dispatch(listener.on_error(kind, detail))

    def _notify_session_end(self) -> None:
        listener = self._listener
        if listener is not None:
            self._dispatch(listener.on_session_end())

    async def handle_message(self, data: dict[str, Any]) -> None:
        """Route one decoded Deepgram message to the listener."""
        listener = self._listener
        if listener is None:
            return

        msg_type = data.get("type")
        log_debug({"event_type": "RECOGNIZER_MESSAGE", "type": msg_type})

        if msg_type == "Results":
            results = results_from_message(data)
            if results is not None:
                self._dispatch(listener.on_result(results))

        elif msg_type == "SpeechStarted":
            self._dispatch(listener.on_speech_start())

        elif msg_type == "UtteranceEnd":
            self._dispatch(listener.on_speech_end())

        elif msg_type == "Error":
            detail = data.get("description") or data.get("message") or data.get("err_msg")
            self._notify_error(RECOGNITION_ERROR_NETWORK, detail)

        # Metadata and anything unknown is ignored

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    def _build_url(self) -> str:
        params: dict[str, str] = {
            "model": self._model,
            "encoding": "linear16",
            "sample_rate": str(AUDIO_SAMPLE_RATE_HZ),
            "channels": str(AUDIO_CHANNELS),
            "interim_results": "true",
            "vad_events": "true",
            "utterance_end_ms": str(int(self._utterance_end_ms)),
            "punctuate": "true" if self._punctuate else "false",
        }
        if self._language:
            params["language"] = self._language

        qs = urllib.parse.urlencode(params)
        return f"wss://api.deepgram.com/v1/listen?{qs}"

    def _is_current(self) -> bool:
        return self._session_task is not None and self._session_task is asyncio.current_task()

    def _end_session(self, kind: str | None = None, detail: str | None = None) -> None:
        """Report a session that ended on its own. No-op after stop()."""
        if not self._is_current():
            return
        self._session_task = None
        if kind is not None:
            self._notify_error(kind, detail)
        self._notify_session_end()

    async def _run_session(self) -> None:
        headers = {"Authorization": f"Token {self._api_key}"}

        try:
            ws = await ws_connect(
                self._build_url(),
                extra_headers=headers,
                max_size=RECOGNIZER_MAX_MESSAGE_BYTES,
                ping_interval=None,
            )
        except asyncio.CancelledError:
            return
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_error("RECOGNIZER_CONNECT_FAILED", e)
            self._end_session(RECOGNITION_ERROR_NETWORK, repr(e))
            return

        outbound: asyncio.Queue[bytes] = asyncio.Queue()

        def _on_chunk(chunk: AudioChunk) -> None:
            outbound.put_nowait(chunk.pcm_bytes)

        mic = MicrophoneStream(
            on_chunk=_on_chunk,
            sample_rate_hz=AUDIO_SAMPLE_RATE_HZ,
            device=self._device,
        )
        sender: asyncio.Task[None] | None = None

        try:
            try:
                mic.open()
            except sd.PortAudioError as e:
                log_error("RECOGNIZER_MIC_FAILED", e)
                self._end_session(RECOGNITION_ERROR_AUDIO_CAPTURE, str(e))
                return

            log_event({"event_type": "RECOGNIZER_SESSION_OPEN"})
            sender = asyncio.create_task(self._send_loop(ws, outbound))

            async for raw in ws:
                if isinstance(raw, bytes):
                    continue
                try:
                    data = json.loads(raw)
                except ValueError as e:
                    log_error("RECOGNIZER_BAD_MESSAGE", e)
                    continue
                await self.handle_message(data)

            log_event({"event_type": "RECOGNIZER_SESSION_CLOSED"})
            self._end_session()

        except asyncio.CancelledError:
            return
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_error("RECOGNIZER_RECV_FAILED", e)
            self._end_session(RECOGNITION_ERROR_NETWORK, repr(e))
        finally:
            mic.close()
            if sender is not None and not sender.done():
                sender.cancel()
            await self._close_socket(ws)

    async def _send_loop(self, ws: WebSocketClientProtocol, outbound: asyncio.Queue[bytes]) -> None:
        try:
            while True:
                pcm_bytes = await outbound.get()
                await ws.send(pcm_bytes)
        except asyncio.CancelledError:
            return
        except Exception as e:  # pylint: disable=broad-exception-caught
            # Receive loop sees the broken socket and reports it
            log_error("RECOGNIZER_SEND_FAILED", e)

    @staticmethod
    async def _close_socket(ws: WebSocketClientProtocol) -> None:
        try:
            await ws.send(_CLOSE_STREAM_MESSAGE)
        except Exception:  # pylint: disable=broad-exception-caught
            pass
        try:
            await ws.close()
        except Exception:  # pylint: disable=broad-exception-caught
            pass

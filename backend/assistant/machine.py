"""
Voice assistant state machine.

Responsibilities:
- Own the current VoiceState (single mutator: _set_state)
- Start / stop the recognizer
- Start / finalize / discard the capture session
- Arm / disarm the endpointing timers
- Emit every event consumers can observe, in order

Inputs are recognizer notifications, timer expiry and the public API
(toggle_mute, speak, finish_processing). All of them run on one event
loop, but may interleave at any await point, so every transition starts
by checking the state it is allowed to run from.

Non-responsibilities:
- Handling Command events (see assistant.dispatcher)
- Wake-phrase semantics beyond calling the matcher
- Voice activity detection
"""

from __future__ import annotations

import asyncio
import time
from typing import AsyncIterator, Callable

from adapters.recognizer.base import Recognizer, RecognitionResults
from adapters.synthesizer.base import Synthesizer
from assistant.channel import EventChannel
from assistant.enums.state import VoiceState
from assistant.errors import (
    CaptureFinalizeError,
    CaptureSessionConflict,
    CaptureUnavailable,
    RecognitionNoSpeech,
    RecognitionTransientError,
    SynthesisError,
    classify_recognition_error,
)
from assistant.events import (
    Command,
    ErrorEvent,
    Event,
    EventType,
    SpeechEnd,
    SpeechStart,
    StateChange,
    Transcript,
)
from assistant.timers import TimerSlots
from assistant.wake_word import WakePhraseMatcher
from capture.engine import CaptureConstraints, CaptureEngine
from capture.session import CaptureSession
from capture.store import AudioStore
from constants import (
    END_OF_UTTERANCE_TIMEOUT_NO_SPEECH_MS,
    END_OF_UTTERANCE_TIMEOUT_SPEECH_MS,
    NO_SPEECH_AFTER_WAKE_TIMEOUT_MS,
    TIMER_END_OF_UTTERANCE,
    TIMER_NO_SPEECH_AFTER_WAKE,
)
from observability.logger import log_error, log_event


def _monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


_CAPTURING_STATES = (VoiceState.ACTIVATING, VoiceState.RECORDING_USER_SPEECH)


class VoiceStateMachine:
    """
    Turn lifecycle of a wake-phrase voice assistant.

    LISTENING_FOR_WAKE_WORD -> ACTIVATING -> RECORDING_USER_SPEECH
        -> PROCESSING_USER_SPEECH -> (dispatcher) -> LISTENING_FOR_WAKE_WORD

    MUTED is entered from any state via toggle_mute() and left the same way.
    SPEAKING is entered from any non-muted state via speak().

    Guarantees:
    - Exactly one StateChange per actual state change, none for no-ops
    - At most one live CaptureSession
    - At most one live timer per slot
    - Recognizer is never running while the synthesizer speaks
    """

    def __init__(
        self,
        *,
        recognizer: Recognizer,
        capture_engine: CaptureEngine,
        capture_store: AudioStore,
        synthesizer: Synthesizer,
        wake_matcher: WakePhraseMatcher | None = None,
        initial_state: VoiceState = VoiceState.LISTENING_FOR_WAKE_WORD,
        timers: TimerSlots | None = None,
        channel: EventChannel | None = None,
        clock: Callable[[], int] = _monotonic_ms,
        capture_constraints: CaptureConstraints | None = None,
    ) -> None:
        self._recognizer = recognizer
        self._capture_engine = capture_engine
        self._capture_store = capture_store
        self._synthesizer = synthesizer
        self._wake_matcher = wake_matcher or WakePhraseMatcher()
        self._timers = timers if timers is not None else TimerSlots()
        self._channel = channel if channel is not None else EventChannel()
        self._clock = clock
        self._capture_constraints = capture_constraints or CaptureConstraints()

        self._state = initial_state
        self._capture: CaptureSession | None = None
        self._final_transcript_since_recording = ""
        self._activation_seq = 0
        self._speak_lock = asyncio.Lock()

        recognizer.bind(self)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> VoiceState:
        return self._state

    def current_state(self) -> VoiceState:
        return self._state

    @property
    def is_muted(self) -> bool:
        return self._state is VoiceState.MUTED

    @property
    def has_live_capture(self) -> bool:
        return self._capture is not None

    @property
    def final_transcript_since_recording(self) -> str:
        return self._final_transcript_since_recording

    def _set_state(self, new_state: VoiceState) -> None:
        if self._state is new_state:
            return

        prev_state = self._state
        self._state = new_state
        log_event({
            "event_type": "STATE_CHANGE",
            "from": prev_state.value,
            "to": new_state.value,
        })
        self._emit(StateChange(
            event_type=EventType.STATE_CHANGE,
            ts_ms=self._clock(),
            state=new_state,
        ))

    def _emit(self, event: Event) -> None:
        self._channel.publish(event)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin listening unless the assistant starts muted."""
        log_event({"event_type": "ASSISTANT_STARTED", "state": self._state.value})
        if not self.is_muted:
            self._recognizer.start()

    async def events(self) -> AsyncIterator[Event]:
        """
        The assistant's event stream.

        On first iteration a StateChange for the current state is emitted,
        then every later event is yielded in emission order, forever.
        Single consumer: iterating a second stream raises RuntimeError.
        """
        self._channel.open()
        self._emit(StateChange(
            event_type=EventType.STATE_CHANGE,
            ts_ms=self._clock(),
            state=self._state,
        ))
        while True:
            yield await self._channel.get()

    def toggle_mute(self) -> None:
        """
        Mute or unmute.

        Muting cancels everything in flight (recognition, playback, capture,
        timers) before the state changes, within this one call.
        """
        if self._state is VoiceState.MUTED:
            self._set_state(VoiceState.LISTENING_FOR_WAKE_WORD)
            log_event({"event_type": "UNMUTED"})
            self._recognizer.start()
            return

        log_event({"event_type": "MUTING", "state": self._state.value})
        self._recognizer.stop()
        self._synthesizer.cancel_all()
        if self._state in _CAPTURING_STATES:
            self._teardown_capture()
        self._set_state(VoiceState.MUTED)

    async def speak(self, text: str) -> None:
        """
        Speak ``text`` with the recognizer paused.

        No-op while muted. Calls made while another speak() is in flight
        are queued and run in order.

        Raises:
            SynthesisError after reporting it as an ErrorEvent.
        """
        async with self._speak_lock:
            if self.is_muted:
                log_event({"event_type": "SPEAK_SKIPPED_MUTED", "chars": len(text)})
                return

            if self._state in _CAPTURING_STATES:
                self._teardown_capture()

            self._set_state(VoiceState.SPEAKING)
            self._recognizer.stop()
            self._emit(SpeechStart(
                event_type=EventType.SPEECH_START,
                ts_ms=self._clock(),
                text=text,
            ))

            try:
                await self._synthesizer.speak(text)
            except SynthesisError as exc:
                self._emit(ErrorEvent(
                    event_type=EventType.ERROR,
                    ts_ms=self._clock(),
                    message=f"TTS Error: {exc}",
                    cause=exc,
                ))
                self._restore_after_speech()
                raise
            except asyncio.CancelledError:
                self._restore_after_speech()
                raise

            self._emit(SpeechEnd(
                event_type=EventType.SPEECH_END,
                ts_ms=self._clock(),
            ))
            self._restore_after_speech()

    def finish_processing(self) -> None:
        """Return to listening once a Command has been handled. Never un-mutes."""
        if self._state is VoiceState.PROCESSING_USER_SPEECH:
            self._set_state(VoiceState.LISTENING_FOR_WAKE_WORD)

    def shutdown(self) -> None:
        """Release everything the machine owns. State is left as is."""
        self._timers.disarm_all()
        if self._capture is not None:
            self._capture.discard()
            self._capture = None
        self._recognizer.stop()
        self._synthesizer.cancel_all()
        log_event({"event_type": "ASSISTANT_SHUTDOWN", "state": self._state.value})

    # ------------------------------------------------------------------
    # Recognizer notifications
    # ------------------------------------------------------------------

    async def on_result(self, results: RecognitionResults) -> None:
        if self.is_muted:
            return

        interim, final = results.split()

        if interim:
            self._emit(Transcript(
                event_type=EventType.TRANSCRIPT,
                ts_ms=self._clock(),
                text=interim,
                is_final=False,
            ))
        if final:
            self._emit(Transcript(
                event_type=EventType.TRANSCRIPT,
                ts_ms=self._clock(),
                text=final,
                is_final=True,
            ))

        if self._state is VoiceState.LISTENING_FOR_WAKE_WORD:
            if self._wake_matcher.accepts(interim + final):
                log_event({"event_type": "WAKE_PHRASE_DETECTED", "text": interim + final})
                await self._activate()

        elif self._state is VoiceState.RECORDING_USER_SPEECH:
            self._final_transcript_since_recording += final

            has_speech = len(self._final_transcript_since_recording) + len(interim) > 0
            timeout_ms = (
                END_OF_UTTERANCE_TIMEOUT_SPEECH_MS if has_speech
                else END_OF_UTTERANCE_TIMEOUT_NO_SPEECH_MS
            )
            self._timers.arm(TIMER_END_OF_UTTERANCE, timeout_ms, self._stop_recording)

    async def on_error(self, kind: str, detail: str | None = None) -> None:
        error = classify_recognition_error(kind, detail)

        if isinstance(error, RecognitionTransientError):
            log_event({"event_type": "RECOGNITION_ABORTED", "message": "Ignoring."})
            return

        if isinstance(error, RecognitionNoSpeech):
            log_event({"event_type": "RECOGNITION_NO_SPEECH", "state": self._state.value})
            await self._stop_recording()
            return

        self._emit(ErrorEvent(
            event_type=EventType.ERROR,
            ts_ms=self._clock(),
            message=str(error),
            cause=error,
        ))
        log_error("RECOGNITION_ERROR", error, kind=kind, state=self._state.value)

        if self._state is VoiceState.RECORDING_USER_SPEECH:
            await self._stop_recording()

    async def on_speech_start(self) -> None:
        if (
            self._state is VoiceState.RECORDING_USER_SPEECH
            and self._timers.is_armed(TIMER_NO_SPEECH_AFTER_WAKE)
        ):
            self._timers.disarm(TIMER_NO_SPEECH_AFTER_WAKE)
            log_event({"event_type": "NO_SPEECH_GUARD_CLEARED"})

    async def on_speech_end(self) -> None:
        log_event({"event_type": "RECOGNITION_SPEECH_END", "state": self._state.value})

    async def on_session_end(self) -> None:
        if self._state in (VoiceState.SPEAKING, VoiceState.MUTED):
            return
        log_event({"event_type": "RECOGNITION_RESTART", "state": self._state.value})
        self._recognizer.start()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def _activate(self) -> None:
        if self._state is not VoiceState.LISTENING_FOR_WAKE_WORD:
            return
        if self._capture is not None:
            raise CaptureSessionConflict("a capture session is already live")

        self._set_state(VoiceState.ACTIVATING)
        self._final_transcript_since_recording = ""
        self._activation_seq += 1
        activation = self._activation_seq

        try:
            session = await CaptureSession.begin(
                engine=self._capture_engine,
                store=self._capture_store,
                constraints=self._capture_constraints,
            )
        except CaptureUnavailable as exc:
            log_error("CAPTURE_UNAVAILABLE", exc)
            self._emit(ErrorEvent(
                event_type=EventType.ERROR,
                ts_ms=self._clock(),
                message=f"Could not start audio recording: {exc}",
                cause=exc,
            ))
            if self._state is VoiceState.ACTIVATING and activation == self._activation_seq:
                self._set_state(VoiceState.LISTENING_FOR_WAKE_WORD)
            return

        if self._state is not VoiceState.ACTIVATING or activation != self._activation_seq:
            # Muted or preempted while the engine was opening
            log_event({"event_type": "ACTIVATION_ABANDONED", "state": self._state.value})
            session.discard()
            return

        self._capture = session
        self._set_state(VoiceState.RECORDING_USER_SPEECH)
        self._timers.arm(
            TIMER_NO_SPEECH_AFTER_WAKE,
            NO_SPEECH_AFTER_WAKE_TIMEOUT_MS,
            self._on_no_speech_after_wake,
        )

    async def _on_no_speech_after_wake(self) -> None:
        log_event({
            "event_type": "NO_SPEECH_AFTER_WAKE",
            "message": "No speech detected, cancelling recording.",
        })
        await self._stop_recording()

    async def _stop_recording(self) -> None:
        if self._state is not VoiceState.RECORDING_USER_SPEECH:
            return

        self._set_state(VoiceState.PROCESSING_USER_SPEECH)
        self._timers.disarm_all()

        session = self._capture
        self._capture = None

        captured = None
        if session is not None:
            try:
                captured = await session.finalize()
            except CaptureFinalizeError as exc:
                log_error("CAPTURE_FINALIZE_FAILED", exc)
                self._emit(ErrorEvent(
                    event_type=EventType.ERROR,
                    ts_ms=self._clock(),
                    message=f"Error processing audio: {exc}",
                    cause=exc,
                ))

        self._emit(Command(
            event_type=EventType.COMMAND,
            ts_ms=self._clock(),
            audio_locator=captured.locator if captured is not None else None,
            extension=captured.extension if captured is not None else None,
        ))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _teardown_capture(self) -> None:
        self._timers.disarm_all()
        if self._capture is not None:
            self._capture.discard()
            self._capture = None

    def _restore_after_speech(self) -> None:
        if self.is_muted:
            return
        self._set_state(VoiceState.LISTENING_FOR_WAKE_WORD)
        self._recognizer.start()

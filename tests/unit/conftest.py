# pylint: disable=missing-module-docstring,missing-function-docstring,missing-class-docstring
from __future__ import annotations

import asyncio
import itertools
from typing import Any, Awaitable, Callable

import pytest

from adapters.recognizer.base import Recognizer, RecognitionResult, RecognitionResults
from adapters.synthesizer.base import Synthesizer
from assistant.channel import EventChannel
from assistant.enums.state import VoiceState
from assistant.errors import SynthesisError
from assistant.events import Event, EventType
from assistant.machine import VoiceStateMachine
from capture.engine import CaptureConstraints, CaptureEngine, CaptureStream, ChunkSink
from observability import logger


# ---------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------

@pytest.fixture(autouse=True)
def log_lines(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """Capture logger output instead of writing to stdout."""
    captured: list[str] = []
    monkeypatch.setattr(logger, "_print", captured.append)
    monkeypatch.setattr(logger, "_json_output", True)
    monkeypatch.setattr(logger, "_debug_enabled", False)
    return captured


# ---------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------

class FakeRecognizer(Recognizer):

    def __init__(self) -> None:
        super().__init__()
        self.running = False
        self.starts = 0
        self.stops = 0

    def start(self) -> None:
        if self.running:
            return
        self.running = True
        self.starts += 1

    def stop(self) -> None:
        if not self.running:
            return
        self.running = False
        self.stops += 1


class FakeCaptureStream(CaptureStream):

    def __init__(self, sink: ChunkSink, mime_type: str) -> None:
        self._sink = sink
        self._mime_type = mime_type
        self.pending: list[bytes] = []
        self.stop_fails_with: Exception | None = None
        self.stopped = False
        self.aborted = False

    @property
    def mime_type(self) -> str:
        return self._mime_type

    def push(self, data: bytes) -> None:
        """Deliver a chunk right away."""
        self._sink(data)

    async def stop(self) -> None:
        if self.stop_fails_with is not None:
            raise self.stop_fails_with
        for data in self.pending:
            self._sink(data)
        self.pending = []
        self.stopped = True

    def abort(self) -> None:
        self.pending = []
        self.aborted = True


class FakeCaptureEngine(CaptureEngine):

    def __init__(self) -> None:
        self.streams: list[FakeCaptureStream] = []
        self.fail_with: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.mime_type = "audio/wav"

    @property
    def last_stream(self) -> FakeCaptureStream:
        return self.streams[-1]

    async def begin(self, constraints: CaptureConstraints, on_chunk: ChunkSink) -> CaptureStream:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        stream = FakeCaptureStream(on_chunk, self.mime_type)
        self.streams.append(stream)
        return stream


class FakeStore:

    def __init__(self) -> None:
        self.saved: dict[str, list[bytes]] = {}
        self.released: list[str] = []
        self.fail_with: Exception | None = None
        self._seq = itertools.count(1)

    async def save(self, chunks: list[bytes], sample_rate_hz: int) -> str:  # pylint: disable=unused-argument
        if self.fail_with is not None:
            raise self.fail_with
        locator = f"mem://capture-{next(self._seq)}"
        self.saved[locator] = list(chunks)
        return locator

    def read(self, locator: str) -> bytes:
        return b"".join(self.saved[locator])

    def release(self, locator: str) -> None:
        self.released.append(locator)
        self.saved.pop(locator, None)

    def release_all(self) -> None:
        for locator in list(self.saved):
            self.release(locator)


class FakeSynthesizer(Synthesizer):

    def __init__(self) -> None:
        self.spoken: list[str] = []
        self.fail_with: SynthesisError | None = None
        self.gate: asyncio.Event | None = None
        self.cancels = 0

    async def speak(self, text: str) -> None:
        self.spoken.append(text)
        if self.fail_with is not None:
            raise self.fail_with
        if self.gate is not None:
            await self.gate.wait()

    def cancel_all(self) -> None:
        self.cancels += 1
        if self.gate is not None:
            self.gate.set()


class FakeTimers:
    """Records arms; expiry happens only when a test calls fire()."""

    def __init__(self) -> None:
        self.armed: dict[str, tuple[int, Callable[[], Awaitable[None]]]] = {}
        self.history: list[tuple[str, int]] = []

    def arm(self, name: str, duration_ms: int, on_fire: Callable[[], Awaitable[None]]) -> None:
        self.armed[name] = (duration_ms, on_fire)
        self.history.append((name, duration_ms))

    def disarm(self, name: str) -> bool:
        return self.armed.pop(name, None) is not None

    def disarm_all(self) -> None:
        self.armed.clear()

    def is_armed(self, name: str) -> bool:
        return name in self.armed

    def duration_ms(self, name: str) -> int | None:
        armed = self.armed.get(name)
        return armed[0] if armed is not None else None

    async def fire(self, name: str) -> None:
        _, on_fire = self.armed.pop(name)
        await on_fire()


class RecordingChannel(EventChannel):
    """EventChannel that also keeps every published event in a list."""

    def __init__(self) -> None:
        super().__init__()
        self.events: list[Event] = []

    def publish(self, event: Event) -> bool:
        queued = super().publish(event)
        if queued:
            self.events.append(event)
        return queued

    def of_type(self, event_type: EventType) -> list[Any]:
        return [e for e in self.events if e.event_type is event_type]

    def states(self) -> list[VoiceState]:
        return [e.state for e in self.of_type(EventType.STATE_CHANGE)]


def results(*segments: tuple[str, bool], result_index: int = 0) -> RecognitionResults:
    return RecognitionResults(
        result_index=result_index,
        results=tuple(RecognitionResult(transcript=t, is_final=f) for t, f in segments),
    )


# ---------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------

@pytest.fixture
def recognizer() -> FakeRecognizer:
    return FakeRecognizer()


@pytest.fixture
def engine() -> FakeCaptureEngine:
    return FakeCaptureEngine()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def synthesizer() -> FakeSynthesizer:
    return FakeSynthesizer()


@pytest.fixture
def timers() -> FakeTimers:
    return FakeTimers()


@pytest.fixture
def channel() -> RecordingChannel:
    ch = RecordingChannel()
    ch.open()
    return ch


@pytest.fixture
def make_machine(
    recognizer: FakeRecognizer,
    engine: FakeCaptureEngine,
    store: FakeStore,
    synthesizer: FakeSynthesizer,
    timers: FakeTimers,
    channel: RecordingChannel,
) -> Callable[..., VoiceStateMachine]:
    def _make(initial_state: VoiceState = VoiceState.LISTENING_FOR_WAKE_WORD) -> VoiceStateMachine:
        ticks = itertools.count(start=1000, step=10)
        return VoiceStateMachine(
            recognizer=recognizer,
            capture_engine=engine,
            capture_store=store,  # type: ignore[arg-type]
            synthesizer=synthesizer,
            initial_state=initial_state,
            timers=timers,  # type: ignore[arg-type]
            channel=channel,
            clock=lambda: next(ticks),
        )
    return _make


@pytest.fixture
def machine(make_machine: Callable[..., VoiceStateMachine]) -> VoiceStateMachine:
    return make_machine()

# pylint: disable=missing-module-docstring,missing-function-docstring
from __future__ import annotations

import pytest

from assistant.enums.state import VoiceState
from assistant.events import EventType
from constants import (
    END_OF_UTTERANCE_TIMEOUT_NO_SPEECH_MS,
    END_OF_UTTERANCE_TIMEOUT_SPEECH_MS,
    NO_SPEECH_AFTER_WAKE_TIMEOUT_MS,
    TIMER_END_OF_UTTERANCE,
    TIMER_NO_SPEECH_AFTER_WAKE,
)

from conftest import results


async def _wake(machine) -> None:
    await machine.on_result(results(("ok metallica ", True)))


# ---------------------------------------------------------------------
# Wake phrase -> recording
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_wake_phrase_activates_and_starts_recording(machine, channel, timers, engine) -> None:
    await machine.on_result(results(("ok met", False)))
    assert machine.state is VoiceState.LISTENING_FOR_WAKE_WORD

    await machine.on_result(results(("ok metallica ", True)))

    assert channel.states() == [
        VoiceState.ACTIVATING,
        VoiceState.RECORDING_USER_SPEECH,
    ]
    assert machine.state is VoiceState.RECORDING_USER_SPEECH
    assert machine.current_state() is VoiceState.RECORDING_USER_SPEECH
    assert machine.final_transcript_since_recording == ""
    assert machine.has_live_capture
    assert len(engine.streams) == 1
    assert timers.duration_ms(TIMER_NO_SPEECH_AFTER_WAKE) == NO_SPEECH_AFTER_WAKE_TIMEOUT_MS


@pytest.mark.asyncio
async def test_transcripts_are_emitted_interim_then_final(machine, channel) -> None:
    await machine.on_result(results(("hello ", True), ("wor", False)))

    transcripts = channel.of_type(EventType.TRANSCRIPT)
    assert [(t.text, t.is_final) for t in transcripts] == [
        ("wor", False),
        ("hello ", True),
    ]


@pytest.mark.asyncio
async def test_only_changed_results_are_read(machine, channel) -> None:
    await machine.on_result(results(("ok metallica", True), ("what", False), result_index=1))

    # The settled wake phrase at index 0 must not trigger activation again
    assert machine.state is VoiceState.LISTENING_FOR_WAKE_WORD
    assert [t.text for t in channel.of_type(EventType.TRANSCRIPT)] == ["what"]


@pytest.mark.asyncio
async def test_non_matching_text_does_not_activate(machine, channel, engine) -> None:
    await machine.on_result(results(("okay metal band", True)))

    assert machine.state is VoiceState.LISTENING_FOR_WAKE_WORD
    assert channel.states() == []
    assert engine.streams == []


# ---------------------------------------------------------------------
# Endpointing
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_end_of_utterance_timeout_without_text(machine, timers, channel) -> None:
    await _wake(machine)
    await machine.on_result(results(("", False)))

    assert timers.duration_ms(TIMER_END_OF_UTTERANCE) == END_OF_UTTERANCE_TIMEOUT_NO_SPEECH_MS

    await timers.fire(TIMER_END_OF_UTTERANCE)

    assert machine.state is VoiceState.PROCESSING_USER_SPEECH
    commands = channel.of_type(EventType.COMMAND)
    assert len(commands) == 1
    assert commands[0].audio_locator is None
    assert timers.armed == {}


@pytest.mark.asyncio
async def test_end_of_utterance_timeout_shrinks_once_text_arrives(machine, timers) -> None:
    await _wake(machine)

    await machine.on_result(results(("turn on", False)))
    assert timers.duration_ms(TIMER_END_OF_UTTERANCE) == END_OF_UTTERANCE_TIMEOUT_SPEECH_MS

    await machine.on_result(results(("turn on the lights", True)))
    assert machine.final_transcript_since_recording == "turn on the lights"
    assert timers.duration_ms(TIMER_END_OF_UTTERANCE) == END_OF_UTTERANCE_TIMEOUT_SPEECH_MS

    # Re-arming replaced the slot rather than stacking timers
    assert list(timers.armed) == [TIMER_NO_SPEECH_AFTER_WAKE, TIMER_END_OF_UTTERANCE]


@pytest.mark.asyncio
async def test_recorded_audio_reaches_command(machine, timers, channel, engine, store) -> None:
    await _wake(machine)
    engine.last_stream.push(b"\x01\x00\x02\x00")
    engine.last_stream.pending.append(b"\x03\x00")

    await machine.on_result(results(("lights", True)))
    await timers.fire(TIMER_END_OF_UTTERANCE)

    command = channel.of_type(EventType.COMMAND)[0]
    assert command.audio_locator is not None
    assert command.extension == "wav"
    # Chunks flushed by stop() are part of the recording
    assert store.saved[command.audio_locator] == [b"\x01\x00\x02\x00", b"\x03\x00"]
    assert engine.last_stream.stopped
    assert not machine.has_live_capture


@pytest.mark.asyncio
async def test_no_speech_error_ends_recording_like_a_timeout(machine, channel, timers) -> None:
    await _wake(machine)

    await machine.on_error("no-speech")

    assert machine.state is VoiceState.PROCESSING_USER_SPEECH
    assert len(channel.of_type(EventType.COMMAND)) == 1
    assert channel.of_type(EventType.ERROR) == []
    assert timers.armed == {}


@pytest.mark.asyncio
async def test_no_speech_guard_fires_when_nothing_is_said(machine, channel, timers) -> None:
    await _wake(machine)

    await timers.fire(TIMER_NO_SPEECH_AFTER_WAKE)

    assert machine.state is VoiceState.PROCESSING_USER_SPEECH
    assert channel.of_type(EventType.COMMAND)[0].audio_locator is None


@pytest.mark.asyncio
async def test_speech_start_clears_no_speech_guard(machine, timers) -> None:
    await _wake(machine)
    assert timers.is_armed(TIMER_NO_SPEECH_AFTER_WAKE)

    await machine.on_speech_start()

    assert not timers.is_armed(TIMER_NO_SPEECH_AFTER_WAKE)
    assert machine.state is VoiceState.RECORDING_USER_SPEECH


@pytest.mark.asyncio
async def test_stop_recording_is_a_noop_outside_recording(machine, timers, channel) -> None:
    await _wake(machine)
    await timers.fire(TIMER_NO_SPEECH_AFTER_WAKE)
    await machine.on_error("no-speech")
    await machine.on_error("no-speech")

    assert len(channel.of_type(EventType.COMMAND)) == 1
    assert timers.armed == {}


@pytest.mark.asyncio
async def test_finish_processing_returns_to_listening(machine, channel) -> None:
    await _wake(machine)
    await machine.on_error("no-speech")

    machine.finish_processing()

    assert machine.state is VoiceState.LISTENING_FOR_WAKE_WORD
    assert channel.states()[-1] is VoiceState.LISTENING_FOR_WAKE_WORD


@pytest.mark.asyncio
async def test_finish_processing_is_ignored_elsewhere(machine, channel) -> None:
    machine.finish_processing()
    machine.toggle_mute()
    machine.finish_processing()

    assert machine.state is VoiceState.MUTED
    assert channel.states() == [VoiceState.MUTED]


# ---------------------------------------------------------------------
# Mute
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_mute_while_recording_discards_capture(machine, channel, timers, engine, recognizer) -> None:
    machine.start()
    await _wake(machine)
    engine.last_stream.push(b"\x00\x00")

    machine.toggle_mute()

    assert machine.state is VoiceState.MUTED
    assert engine.last_stream.aborted
    assert not machine.has_live_capture
    assert timers.armed == {}
    assert not recognizer.running
    assert channel.of_type(EventType.COMMAND) == []


@pytest.mark.asyncio
async def test_toggle_mute_twice_restores_state(machine, channel, recognizer) -> None:
    machine.start()

    machine.toggle_mute()
    machine.toggle_mute()

    assert machine.state is VoiceState.LISTENING_FOR_WAKE_WORD
    assert channel.states() == [VoiceState.MUTED, VoiceState.LISTENING_FOR_WAKE_WORD]
    assert recognizer.running


@pytest.mark.asyncio
async def test_results_are_ignored_while_muted(make_machine, channel, engine) -> None:
    machine = make_machine(VoiceState.MUTED)

    await machine.on_result(results(("ok metallica", True)))

    assert channel.events == []
    assert engine.streams == []


@pytest.mark.asyncio
async def test_start_muted_does_not_start_recognizer(make_machine, recognizer) -> None:
    machine = make_machine(VoiceState.MUTED)

    machine.start()

    assert not recognizer.running


@pytest.mark.asyncio
async def test_session_end_restarts_recognizer_unless_muted_or_speaking(make_machine, recognizer) -> None:
    machine = make_machine()
    await machine.on_session_end()
    assert recognizer.starts == 1

    muted = make_machine(VoiceState.MUTED)
    recognizer.running = False
    await muted.on_session_end()
    assert recognizer.starts == 1


# ---------------------------------------------------------------------
# Recognizer errors
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_aborted_error_is_ignored(machine, channel) -> None:
    await _wake(machine)

    await machine.on_error("aborted")

    assert machine.state is VoiceState.RECORDING_USER_SPEECH
    assert channel.of_type(EventType.ERROR) == []


@pytest.mark.asyncio
async def test_other_errors_are_reported_and_complete_the_utterance(machine, channel) -> None:
    await _wake(machine)

    await machine.on_error("network", "socket closed")

    errors = channel.of_type(EventType.ERROR)
    assert len(errors) == 1
    assert errors[0].message == "Recognition Error: 'network' (socket closed)"
    assert errors[0].cause.kind == "network"
    assert machine.state is VoiceState.PROCESSING_USER_SPEECH
    assert len(channel.of_type(EventType.COMMAND)) == 1


@pytest.mark.asyncio
async def test_errors_while_listening_do_not_change_state(machine, channel) -> None:
    await machine.on_error("audio-capture")

    assert machine.state is VoiceState.LISTENING_FOR_WAKE_WORD
    assert channel.of_type(EventType.ERROR)[0].message == "Recognition Error: 'audio-capture'"


# ---------------------------------------------------------------------
# Event ordering
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_event_timestamps_never_decrease(machine, channel, timers) -> None:
    machine.start()
    await machine.on_result(results(("ok", False)))
    await _wake(machine)
    await machine.on_result(results(("what time is it", True)))
    await timers.fire(TIMER_END_OF_UTTERANCE)
    machine.finish_processing()
    await machine.speak("noon")

    stamps = [e.ts_ms for e in channel.events]
    assert len(stamps) > 5
    assert stamps == sorted(stamps)

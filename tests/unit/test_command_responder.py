# pylint: disable=missing-module-docstring,missing-function-docstring,missing-class-docstring
from __future__ import annotations

import base64
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any

import pytest

from adapters.llm.prompts import build_system_prompt
from adapters.llm.responder import CommandResponder
from assistant.errors import SynthesisError
from assistant.events import Command, EventType
from constants import RESPONDER_EMPTY_REPLY


class FakeCompletions:

    def __init__(self, reply: str | None = None, error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeClient:

    def __init__(self, completions: FakeCompletions) -> None:
        self.chat = SimpleNamespace(completions=completions)


class FakeOutput:

    def __init__(self, fail_speak: bool = False) -> None:
        self.spoken: list[str] = []
        self.finished = 0
        self.fail_speak = fail_speak

    async def speak(self, text: str) -> None:
        self.spoken.append(text)
        if self.fail_speak:
            raise SynthesisError("no voice")

    def finish_processing(self) -> None:
        self.finished += 1


def _command(locator: str | None, extension: str | None = "wav") -> Command:
    return Command(
        event_type=EventType.COMMAND,
        ts_ms=0,
        audio_locator=locator,
        extension=extension,
    )


async def _saved(store, data: bytes) -> str:
    return await store.save([data], 16_000)


def _responder(completions: FakeCompletions, store, output: FakeOutput) -> CommandResponder:
    return CommandResponder(
        client=FakeClient(completions),
        model="test/model",
        store=store,
        output=output,
    )


@pytest.mark.asyncio
async def test_reply_is_spoken_and_recording_released(store) -> None:
    completions = FakeCompletions(reply="  It is noon.  ")
    output = FakeOutput()
    locator = await _saved(store, b"RIFFdata")

    await _responder(completions, store, output).handle(_command(locator))

    assert output.spoken == ["It is noon."]
    assert output.finished == 1
    assert store.released == [locator]

    call = completions.calls[0]
    assert call["model"] == "test/model"
    assert call["extra_body"]["reasoning"] == {"effort": "high", "exclude": False, "enabled": True}

    system, user = call["messages"]
    assert system["role"] == "system"
    assert system["content"][0]["text"].startswith("Current time: ")
    audio = user["content"][0]
    assert audio["type"] == "input_audio"
    assert audio["input_audio"]["format"] == "wav"
    assert base64.b64decode(audio["input_audio"]["data"]) == b"RIFFdata"


@pytest.mark.asyncio
async def test_empty_reply_apologizes(store) -> None:
    output = FakeOutput()
    locator = await _saved(store, b"x")

    await _responder(FakeCompletions(reply=""), store, output).handle(_command(locator))

    assert output.spoken == [RESPONDER_EMPTY_REPLY]
    assert output.finished == 1


@pytest.mark.asyncio
async def test_provider_failure_is_spoken(store) -> None:
    output = FakeOutput()
    locator = await _saved(store, b"x")
    completions = FakeCompletions(error=RuntimeError("rate limited"))

    await _responder(completions, store, output).handle(_command(locator))

    assert output.spoken == ["I'm sorry, rate limited"]
    assert output.finished == 1
    assert store.released == [locator]


@pytest.mark.asyncio
async def test_failure_without_message_uses_generic_apology(store) -> None:
    output = FakeOutput()
    locator = await _saved(store, b"x")

    await _responder(FakeCompletions(error=RuntimeError()), store, output).handle(_command(locator))

    assert output.spoken == ["I'm sorry, there was an error"]


@pytest.mark.asyncio
async def test_failed_apology_still_finishes(store, log_lines: list[str]) -> None:
    output = FakeOutput(fail_speak=True)
    locator = await _saved(store, b"x")

    await _responder(FakeCompletions(reply="hi"), store, output).handle(_command(locator))

    assert output.spoken == ["hi", "I'm sorry, no voice"]
    assert output.finished == 1
    assert any('"APOLOGY_FAILED"' in line for line in log_lines)


@pytest.mark.asyncio
async def test_command_without_audio_only_finishes(store) -> None:
    completions = FakeCompletions(reply="unused")
    output = FakeOutput()

    await _responder(completions, store, output).handle(_command(None, None))

    assert completions.calls == []
    assert output.spoken == []
    assert output.finished == 1


def test_system_prompt_carries_iso_time() -> None:
    moment = datetime(2026, 3, 1, 12, 30, tzinfo=timezone.utc)

    prompt = build_system_prompt(moment)

    assert prompt.startswith("Current time: 2026-03-01T12:30:00+00:00. ")
    assert "concisely" in prompt

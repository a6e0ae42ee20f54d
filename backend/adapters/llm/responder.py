"""
Command responder.

Turns one Command event into one spoken reply:
1. Read the captured recording behind the locator
2. Send it to an audio-capable chat model (OpenRouter, OpenAI-compatible API)
3. Speak the reply through the state machine
4. Release the recording and hand control back (finish_processing)

The responder never touches assistant state directly; speak() and
finish_processing() are the only calls it makes into the machine.
"""

from __future__ import annotations

import base64
import time
from typing import Any, Protocol

from adapters.llm.prompts import build_system_prompt
from assistant.errors import SynthesisError
from assistant.events import Command
from capture.store import AudioStore
from constants import (
    LLM_REASONING_EFFORT,
    RESPONDER_EMPTY_REPLY,
    RESPONDER_GENERIC_ERROR,
)
from observability.logger import log_error, log_event


class SpeechOutput(Protocol):
    """The part of the state machine the responder talks to."""

    async def speak(self, text: str) -> None: ...

    def finish_processing(self) -> None: ...


class CommandResponder:
    """
    One LLM round-trip per command.

    Design notes:
    - client is an openai.AsyncOpenAI (or anything with the same
      chat.completions.create coroutine), injected for testability.
    - Failures are spoken as an apology; nothing propagates to the caller.
    """

    def __init__(
        self,
        *,
        client: Any,
        model: str,
        store: AudioStore,
        output: SpeechOutput,
    ) -> None:
        self._client = client
        self._model = model
        self._store = store
        self._output = output

    async def handle(self, command: Command) -> None:
        if command.audio_locator is None:
            log_event({"event_type": "COMMAND_WITHOUT_AUDIO"})
            self._output.finish_processing()
            return

        locator = command.audio_locator
        try:
            reply = await self._ask(locator, command.extension or "wav")
            if reply:
                await self._output.speak(reply)
            else:
                log_event({"event_type": "LLM_EMPTY_REPLY", "message": "No response text from LLM."})
                await self._output.speak(RESPONDER_EMPTY_REPLY)

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_error("COMMAND_FAILED", exc, locator=locator)
            await self._apologize(exc)

        finally:
            self._store.release(locator)
            self._output.finish_processing()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _ask(self, locator: str, audio_format: str) -> str | None:
        audio_b64 = base64.b64encode(self._store.read(locator)).decode("ascii")

        messages: list[dict[str, Any]] = [
            {
                "role": "system",
                "content": [{"type": "text", "text": build_system_prompt()}],
            },
            {
                "role": "user",
                "content": [{
                    "type": "input_audio",
                    "input_audio": {"data": audio_b64, "format": audio_format},
                }],
            },
        ]

        log_event({"event_type": "LLM_CALL_START", "model": self._model})
        t0 = time.monotonic_ns()

        response = await self._client.chat.completions.create(
            model=self._model,
            messages=messages,
            extra_body={
                "reasoning": {
                    "effort": LLM_REASONING_EFFORT,
                    "exclude": False,
                    "enabled": True,
                },
            },
        )

        log_event({
            "event_type": "LLM_CALL_DONE",
            "model": self._model,
            "latency_ns": time.monotonic_ns() - t0,
        })
        return self._extract_text(response)

    async def _apologize(self, exc: BaseException) -> None:
        message = str(exc) or RESPONDER_GENERIC_ERROR
        try:
            await self._output.speak(f"I'm sorry, {message}")
        except SynthesisError as speak_exc:
            log_error("APOLOGY_FAILED", speak_exc)

    @staticmethod
    def _extract_text(response: Any) -> str | None:
        choices = getattr(response, "choices", None) or []
        if not choices:
            return None
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if isinstance(content, str) and content.strip():
            return content.strip()
        return None

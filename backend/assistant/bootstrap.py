"""
Assistant construction from AppConfig.

Responsibilities:
- Verify required platform capabilities and credentials up front
- Build the concrete engines and wire them to one state machine
- Fail construction outright (AssistantUnavailable) when anything is missing
"""

from __future__ import annotations

from typing import Any

import sounddevice as sd
from openai import AsyncOpenAI

from adapters.llm.responder import CommandResponder
from adapters.recognizer.deepgram_live import DeepgramLiveRecognizer
from adapters.synthesizer.speechmatics import SpeechmaticsSynthesizer
from assistant.dispatcher import VoiceAssistant
from assistant.enums.state import VoiceState
from assistant.errors import AssistantUnavailable
from assistant.machine import VoiceStateMachine
from assistant.wake_word import WakePhraseMatcher
from capture.microphone_engine import SoundDeviceCaptureEngine
from capture.store import AudioStore
from config import AppConfig
from observability.logger import log_event


def _has_device(kind: str) -> bool:
    try:
        sd.query_devices(kind=kind)
    except (sd.PortAudioError, ValueError):
        return False
    return True


def missing_capabilities(config: AppConfig, *, devices: Any = None) -> list[str]:
    """
    Names of every capability the assistant needs but does not have.

    ``devices`` overrides the device check (``kind -> bool``) for tests.
    """
    has_device = devices or _has_device
    missing: list[str] = []

    if not has_device("input"):
        missing.append("Audio input device")
    if not has_device("output"):
        missing.append("Audio output device")
    if not config.deepgram_api_key:
        missing.append("Speech recognition (DEEPGRAM_API_KEY)")
    if not config.speechmatics_api_key:
        missing.append("Speech synthesis (SPEECHMATICS_API_KEY)")
    if not config.openrouter_api_key:
        missing.append("Command responder (OPENROUTER_API_KEY)")

    return missing


def build_assistant(config: AppConfig) -> VoiceAssistant:
    """
    Wire a ready-to-start VoiceAssistant.

    Raises:
        AssistantUnavailable listing every missing capability.
        ValueError if the configured wake phrase pattern does not compile.
    """
    missing = missing_capabilities(config)
    if missing:
        raise AssistantUnavailable(missing)

    matcher = WakePhraseMatcher(config.wake_phrase_pattern)
    store = AudioStore(config.capture_dir)

    recognizer = DeepgramLiveRecognizer(
        api_key=config.deepgram_api_key or "",
        model=config.deepgram_model,
        language=config.deepgram_language,
    )
    synthesizer = SpeechmaticsSynthesizer(
        api_key=config.speechmatics_api_key or "",
        voice=config.speechmatics_voice,
    )

    machine = VoiceStateMachine(
        recognizer=recognizer,
        capture_engine=SoundDeviceCaptureEngine(),
        capture_store=store,
        synthesizer=synthesizer,
        wake_matcher=matcher,
        initial_state=(
            VoiceState.MUTED if config.start_muted
            else VoiceState.LISTENING_FOR_WAKE_WORD
        ),
    )

    responder = CommandResponder(
        client=AsyncOpenAI(
            api_key=config.openrouter_api_key,
            base_url=config.llm_base_url,
        ),
        model=config.llm_model,
        store=store,
        output=machine,
    )

    log_event({
        "event_type": "ASSISTANT_BUILT",
        "env": config.env,
        "initial_state": machine.state.value,
        "wake_phrase": matcher.pattern,
        "capture_dir": str(store.directory),
    })

    return VoiceAssistant(machine=machine, responder=responder, store=store)

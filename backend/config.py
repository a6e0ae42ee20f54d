"""
Process settings for the assistant.

Covers:
- Credentials and model choices for recognizer, synthesizer and responder
- Startup behavior (wake phrase, start muted, log format)

Behavioral timings live in constants.py; nothing here changes after load.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    DEFAULT_LLM_BASE_URL,
    DEFAULT_LLM_MODEL,
    DEFAULT_WAKE_PHRASE_PATTERN,
)


def _flag(name: str, default: str) -> bool:
    return os.environ.get(name, default) == "1"


@dataclass(frozen=True)
class AppConfig:
    """
    Frozen settings snapshot.

    Built once by main or the ASGI entrypoint.
    Passed downward to bootstrap code, which wires the concrete engines.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str
    log_level: str
    enable_json_logs: bool

    # ------------------------------------------------------------------
    # Assistant behavior
    # ------------------------------------------------------------------

    wake_phrase_pattern: str
    start_muted: bool

    # ------------------------------------------------------------------
    # Recognizer
    # ------------------------------------------------------------------

    deepgram_api_key: str | None
    deepgram_model: str
    deepgram_language: str

    # ------------------------------------------------------------------
    # Synthesizer
    # ------------------------------------------------------------------

    speechmatics_api_key: str | None
    speechmatics_voice: str

    # ------------------------------------------------------------------
    # Command responder
    # ------------------------------------------------------------------

    openrouter_api_key: str | None
    llm_base_url: str
    llm_model: str

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    capture_dir: str | None

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Read every setting from os.environ.

        Missing credentials are allowed here; bootstrap decides whether
        the assistant can run without them.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            enable_json_logs=_flag("ENABLE_JSON_LOGS", "1"),

            wake_phrase_pattern=os.environ.get(
                "WAKE_PHRASE_PATTERN", DEFAULT_WAKE_PHRASE_PATTERN
            ),
            start_muted=_flag("START_MUTED", "1"),

            deepgram_api_key=os.environ.get("DEEPGRAM_API_KEY"),
            deepgram_model=os.environ.get("DEEPGRAM_MODEL", "nova-2"),
            deepgram_language=os.environ.get("DEEPGRAM_LANGUAGE", "en-US"),

            speechmatics_api_key=os.environ.get("SPEECHMATICS_API_KEY"),
            speechmatics_voice=os.environ.get("SPEECHMATICS_VOICE", "sarah"),

            openrouter_api_key=os.environ.get("OPENROUTER_API_KEY"),
            llm_base_url=os.environ.get("LLM_BASE_URL", DEFAULT_LLM_BASE_URL),
            llm_model=os.environ.get("LLM_MODEL", DEFAULT_LLM_MODEL),

            capture_dir=os.environ.get("CAPTURE_DIR") or None,
        )

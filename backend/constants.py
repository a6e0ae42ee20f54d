"""
BEHAVIOR-AS-CONSTANTS
---------------------
Single source of truth for all behavioral constants of the assistant.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Deployment-specific values (keys, voices, models) live in config.py instead.
"""

from __future__ import annotations

from typing import Final

# =============================================================================
# Audio Format (PCM16 mono @ 16kHz)
# =============================================================================

AUDIO_SAMPLE_RATE_HZ: Final[int] = 16_000
AUDIO_CHANNELS: Final[int] = 1
AUDIO_DTYPE: Final[str] = "int16"

# Microphone block size delivered by the capture/recognizer streams
AUDIO_BLOCK_MS: Final[int] = 100
AUDIO_SAMPLES_PER_BLOCK: Final[int] = (AUDIO_SAMPLE_RATE_HZ * AUDIO_BLOCK_MS) // 1000

# =============================================================================
# Endpointing
# =============================================================================

# Guard against a false wake-phrase trigger followed by no speech at all
NO_SPEECH_AFTER_WAKE_TIMEOUT_MS: Final[int] = 15_000

# End-of-utterance silence: long grace before any text, short once speech flows
END_OF_UTTERANCE_TIMEOUT_NO_SPEECH_MS: Final[int] = 5_000
END_OF_UTTERANCE_TIMEOUT_SPEECH_MS: Final[int] = 1_700

# Timer slot names
TIMER_NO_SPEECH_AFTER_WAKE: Final[str] = "no_speech_after_wake"
TIMER_END_OF_UTTERANCE: Final[str] = "end_of_utterance"

# =============================================================================
# Wake phrase
# =============================================================================

# Case-insensitive; any run of non-letters between keyword and anchor word
DEFAULT_WAKE_PHRASE_PATTERN: Final[str] = r"(?:ok|okay)[^a-z]+metallica"

# =============================================================================
# Recognizer error kinds
# =============================================================================

RECOGNITION_ERROR_ABORTED: Final[str] = "aborted"
RECOGNITION_ERROR_NO_SPEECH: Final[str] = "no-speech"
RECOGNITION_ERROR_NETWORK: Final[str] = "network"
RECOGNITION_ERROR_AUDIO_CAPTURE: Final[str] = "audio-capture"

# Live recognizer stream tuning
RECOGNIZER_UTTERANCE_END_MS: Final[int] = 1_000
RECOGNIZER_MAX_MESSAGE_BYTES: Final[int] = 2**22

# =============================================================================
# Capture / locators
# =============================================================================

CAPTURE_MIME_TYPE: Final[str] = "audio/wav"
FALLBACK_AUDIO_EXTENSION: Final[str] = "bin"
CAPTURE_FILE_PREFIX: Final[str] = "command-audio-"

# =============================================================================
# Speech synthesis
# =============================================================================

TTS_SAMPLE_RATE_HZ: Final[int] = 16_000
TTS_PROVIDER_CHUNK_SIZE: Final[int] = 4096

# Spoken right after unmuting from the control surface
UNMUTE_ACKNOWLEDGEMENT: Final[str] = "listening"

# =============================================================================
# Command responder
# =============================================================================

DEFAULT_LLM_BASE_URL: Final[str] = "https://openrouter.ai/api/v1"
DEFAULT_LLM_MODEL: Final[str] = "mistralai/voxtral-small-24b-2507"
LLM_REASONING_EFFORT: Final[str] = "high"

RESPONDER_EMPTY_REPLY: Final[str] = "I'm sorry, I didn't get that."
RESPONDER_GENERIC_ERROR: Final[str] = "there was an error"

# =============================================================================
# Control server
# =============================================================================

# Per-websocket backlog; oldest payloads are dropped past this depth
EVENT_HUB_SUBSCRIBER_QUEUE_SIZE: Final[int] = 256

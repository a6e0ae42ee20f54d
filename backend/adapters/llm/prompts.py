from __future__ import annotations

from datetime import datetime, timezone


SYSTEM_PROMPT_TEMPLATE: str = (
    "Current time: {now}. "
    "User uploads audio of what they want, answer request concisely. "
    "Answer in English with plain words and characters a text-to-speech voice can read aloud. "
    "Do not use markdown, lists, emoji or formatting."
)


def build_system_prompt(now: datetime | None = None) -> str:
    """System prompt for one command, stamped with the current UTC time (ISO 8601)."""
    moment = now or datetime.now(timezone.utc)
    return SYSTEM_PROMPT_TEMPLATE.format(now=moment.isoformat())

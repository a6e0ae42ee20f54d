"""
Event serialization for logs and the control surface.

Responsibilities:
- Convert any assistant event into a JSON-safe dict.

Non-responsibilities:
- No transport
- No logging
- No filtering of which events are sent where
"""

from __future__ import annotations

from dataclasses import fields
from enum import Enum
from typing import Any

from assistant.events import Event


def describe_cause(cause: BaseException | None) -> str | None:
    """Render an exception as ``"<Type>: <message>"``."""
    if cause is None:
        return None
    return f"{type(cause).__name__}: {cause}"


def event_to_payload(event: Event) -> dict[str, Any]:
    """
    Serialize an event into a flat dict.

    Output format:
        {"type": "<event_type>", "ts_ms": ..., <event fields>}

    Rules:
    - Enum values are rendered by value
    - Exceptions are rendered with describe_cause()
    """
    payload: dict[str, Any] = {
        "type": event.event_type.value,
        "ts_ms": event.ts_ms,
    }

    for f in fields(event):
        if f.name in ("event_type", "ts_ms"):
            continue
        value = getattr(event, f.name)
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, BaseException):
            value = describe_cause(value)
        payload[f.name] = value

    return payload

"""
JSONL event logger.

- Write one JSON object per line
- Output to stdout
- No buffering, no batching
- No side effects beyond logging

configure() switches to a plain "EVENT_TYPE key=value" rendering for
local runs and controls whether debug events are written at all.
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Mapping, Callable


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print

_json_output: bool = True
_debug_enabled: bool = False


def configure(*, json_output: bool = True, level: str = "INFO") -> None:
    """Set output format and verbosity. Called once at process startup."""
    global _json_output, _debug_enabled  # pylint: disable=global-statement
    _json_output = json_output
    _debug_enabled = level.upper() == "DEBUG"


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _format_plain(record: Mapping[str, Any]) -> str:
    fields = " ".join(
        f"{key}={value}"
        for key, value in record.items()
        if key not in ("event_type", "ts_ms")
    )
    head = f"{record.get('ts_ms')} {record.get('event_type', '-')}"
    return f"{head} {fields}" if fields else head


def log_event(event: Mapping[str, Any]) -> None:
    """
    Write a single JSONL event to stdout.

    The caller supplies the event dict; ``ts_ms`` is filled in
    with wall-clock milliseconds when the caller did not provide one.

    This function:
    - Serializes to JSON
    - Writes exactly one line
    - Flushes immediately (no buffering)
    - Never raises
    """
    record: dict[str, Any] = dict(event)
    record.setdefault("ts_ms", _now_ms())

    if not _json_output:
        _print(_format_plain(record))
        return

    try:
        line = json.dumps(record, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        # Last-resort fallback: logging must never crash the assistant
        fallback: dict[str, Any] = {
            "ts_ms": record.get("ts_ms"),
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)


def log_debug(event: Mapping[str, Any]) -> None:
    """log_event for high-frequency diagnostics; dropped unless level is DEBUG."""
    if _debug_enabled:
        log_event(event)


def log_error(event_type: str, exc: BaseException, **fields: Any) -> None:
    """Log an exception under ``event_type`` with its type and message."""
    log_event({
        "event_type": event_type,
        "exception": type(exc).__name__,
        "message": str(exc),
        **fields,
    })

"""Wake-phrase matching over (possibly interim) transcript text."""

from __future__ import annotations

import re

from constants import DEFAULT_WAKE_PHRASE_PATTERN


class WakePhraseMatcher:
    """
    Stateless, case-insensitive wake-phrase predicate.

    The default pattern accepts "ok metallica", "Okay, Metallica" and
    similar: any run of non-letters may separate keyword and anchor word.
    """

    def __init__(self, pattern: str | re.Pattern[str] = DEFAULT_WAKE_PHRASE_PATTERN) -> None:
        if isinstance(pattern, re.Pattern):
            self._regex = pattern
            return
        try:
            self._regex = re.compile(pattern, re.IGNORECASE)
        except re.error as exc:
            raise ValueError(f"invalid wake phrase pattern {pattern!r}: {exc}") from exc

    @property
    def pattern(self) -> str:
        return self._regex.pattern

    def accepts(self, text: str) -> bool:
        return bool(text) and self._regex.search(text) is not None

"""
Audio chunk primitives.

Pure data containers only.
No behavior, no queues, no timing logic.
"""

from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class AudioChunk:
    """
    One block of microphone audio as delivered by an input stream.

    sequence_num:
        Monotonic per-stream counter, starting at 0.
        Used for gap detection and debugging only.

    pcm_bytes:
        Raw PCM16 little-endian mono bytes.

    ts_ms:
        Wall-clock timestamp (milliseconds) when the block was received.
        Used for observability only (not control logic).
    """
    sequence_num: int
    pcm_bytes: bytes
    ts_ms: int

    @property
    def sample_count(self) -> int:
        return len(self.pcm_bytes) // 2

"""PCM conversion utilities."""
import numpy as np


def pcm16le_to_float32(pcm_bytes: bytes) -> np.ndarray:
    """
    Convert PCM16 little-endian mono bytes to float32 in [-1.0, 1.0).

    Runtime-safe, adapter-agnostic utility.
    No resampling. No channel mixing.
    """
    if len(pcm_bytes) % 2 != 0:
        # Truncated sample; caller should treat as malformed block upstream.
        pcm_bytes = pcm_bytes[: len(pcm_bytes) - 1]

    audio_i16 = np.frombuffer(pcm_bytes, dtype="<i2")  # little-endian int16
    audio_f32 = audio_i16.astype(np.float32) / 32768.0
    return audio_f32


def join_pcm16(chunks: list[bytes]) -> np.ndarray:
    """
    Concatenate PCM16 blocks into one int16 sample array.

    Odd trailing bytes of each block are dropped.
    """
    if not chunks:
        return np.zeros(0, dtype=np.int16)
    arrays = [
        np.frombuffer(chunk[: len(chunk) - (len(chunk) % 2)], dtype="<i2")
        for chunk in chunks
    ]
    return np.concatenate(arrays).astype(np.int16, copy=False)

"""PCM conversion utilities."""
import numpy as np


def pcm16le_to_int16(pcm_bytes: bytes) -> np.ndarray:
    """
    View PCM16 little-endian mono bytes as an int16 array.

    A trailing odd byte is dropped (truncated sample).
    """
    if len(pcm_bytes) % 2 != 0:
        # Truncated sample; caller should treat as malformed chunk upstream.
        pcm_bytes = pcm_bytes[: len(pcm_bytes) - 1]
    return np.frombuffer(pcm_bytes, dtype="<i2")  # little-endian int16


def int16_to_float32(samples: np.ndarray) -> np.ndarray:
    """Scale int16 samples to float32 in [-1.0, 1.0)."""
    return samples.astype(np.float32) / 32768.0


"""
G.711 µ-law companding (PCM16 <-> 8-bit).

Encoding law:
- magnitude clipped to 32635, biased by 0x84
- exponent = segment lookup on bits 7..14 of the biased magnitude
- mantissa = 4 bits below the segment's leading one
- sign bit 0x80, whole byte bit-inverted

Decoding uses the standard 256-entry expansion table, so chunks produced
here play back on any G.711 decoder.

Vectorized with numpy; no per-sample Python loops.
"""

from __future__ import annotations

import numpy as np

from audio.pcm import int16_to_float32, pcm16le_to_int16
from spec import MULAW_BIAS, MULAW_CLIP


# Segment (exponent) for each value of (biased_magnitude >> 7) & 0xFF
_EXP_LUT = np.array(
    [max(i.bit_length() - 1, 0) for i in range(256)],
    dtype=np.int32,
)


def _build_expansion_table() -> np.ndarray:
    codes = np.arange(256, dtype=np.int32)
    inverted = ~codes & 0xFF
    sign = inverted & 0x80
    exponent = (inverted >> 4) & 0x07
    mantissa = inverted & 0x0F
    magnitude = (((mantissa << 3) + MULAW_BIAS) << exponent) - MULAW_BIAS
    return np.where(sign != 0, -magnitude, magnitude).astype(np.int16)


ULAW_TO_LINEAR: np.ndarray = _build_expansion_table()


def encode_samples(samples: np.ndarray) -> np.ndarray:
    """
    Compress int16 samples to µ-law codes (uint8).

    Extreme inputs (-32768, 32767) are clipped, never wrapped.
    """
    x = np.asarray(samples, dtype=np.int32)
    sign = np.where(x < 0, 0x80, 0x00).astype(np.int32)
    magnitude = np.minimum(np.abs(x), MULAW_CLIP) + MULAW_BIAS
    exponent = _EXP_LUT[(magnitude >> 7) & 0xFF]
    mantissa = (magnitude >> (exponent + 3)) & 0x0F
    codes = ~(sign | (exponent << 4) | mantissa) & 0xFF
    return codes.astype(np.uint8)


def decode_samples(codes: np.ndarray) -> np.ndarray:
    """Expand µ-law codes (uint8) to int16 samples."""
    return ULAW_TO_LINEAR[np.asarray(codes, dtype=np.uint8)]


def pcm16le_to_mulaw(pcm_bytes: bytes) -> bytes:
    """Convert PCM16 little-endian mono bytes to µ-law bytes (one per sample)."""
    if not pcm_bytes:
        return b""
    return encode_samples(pcm16le_to_int16(pcm_bytes)).tobytes()


def mulaw_to_pcm16le(mulaw_bytes: bytes) -> bytes:
    """Convert µ-law bytes to PCM16 little-endian mono bytes."""
    if not mulaw_bytes:
        return b""
    codes = np.frombuffer(mulaw_bytes, dtype=np.uint8)
    return decode_samples(codes).astype("<i2").tobytes()


def mulaw_to_float32(mulaw_bytes: bytes) -> np.ndarray:
    """Convert µ-law bytes to a float32 waveform in [-1.0, 1.0)."""
    codes = np.frombuffer(mulaw_bytes, dtype=np.uint8)
    return int16_to_float32(decode_samples(codes))

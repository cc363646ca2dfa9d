# pylint: disable=missing-module-docstring,missing-function-docstring

import numpy as np

from audio.mulaw import (
    ULAW_TO_LINEAR,
    decode_samples,
    encode_samples,
    mulaw_to_float32,
    mulaw_to_pcm16le,
    pcm16le_to_mulaw,
)
from audio.pcm import int16_to_float32


def sine(amplitude: float, n: int = 4800, freq_hz: float = 440.0) -> np.ndarray:
    t = np.arange(n) / 48000
    return np.round(amplitude * np.sin(2 * np.pi * freq_hz * t)).astype(np.int16)


def test_expansion_table_matches_g711():
    assert ULAW_TO_LINEAR[0xFF] == 0
    assert ULAW_TO_LINEAR[0x7F] == 0
    assert ULAW_TO_LINEAR[0x80] == 32124
    assert ULAW_TO_LINEAR[0x00] == -32124
    assert ULAW_TO_LINEAR[0xF0] == 120


def test_extremes_clip_without_wrapping():
    samples = np.array([32767, -32768, -32767, 0], dtype=np.int16)
    codes = encode_samples(samples)

    assert codes.dtype == np.uint8
    decoded = decode_samples(codes)
    assert decoded[0] == 32124
    assert decoded[1] == -32124
    assert decoded[2] == -32124
    assert decoded[3] == 0


def test_roundtrip_error_bound_on_waveform():
    original = np.concatenate([sine(20000), sine(300, freq_hz=1000), sine(32767)])
    decoded = decode_samples(encode_samples(original))

    error = np.abs(original.astype(np.int32) - decoded.astype(np.int32))
    assert error.max() <= 1024

    # Quantization is fine near zero
    small = np.abs(original) <= 100
    assert error[small].max() <= 8


def test_encoding_is_monotonic():
    ramp = np.arange(-32768, 32768, 7, dtype=np.int32).astype(np.int16)
    decoded = decode_samples(encode_samples(ramp)).astype(np.int32)
    assert np.all(np.diff(decoded) >= 0)


def test_byte_helpers():
    pcm = sine(12000, n=480).astype("<i2").tobytes()
    mulaw = pcm16le_to_mulaw(pcm)

    assert len(mulaw) == 480
    back = mulaw_to_pcm16le(mulaw)
    assert len(back) == len(pcm)

    floats = mulaw_to_float32(mulaw)
    assert floats.dtype == np.float32
    assert np.all(np.abs(floats) <= 1.0)

    assert pcm16le_to_mulaw(b"") == b""
    assert mulaw_to_pcm16le(b"") == b""


def test_float_output_uses_int16_scale():
    assert int16_to_float32(np.array([-32768, 0, 16384], dtype=np.int16)).tolist() == [-1.0, 0.0, 0.5]

    floats = mulaw_to_float32(bytes([0x80, 0x00, 0xFF]))
    assert floats.tolist() == [32124 / 32768, -32124 / 32768, 0.0]

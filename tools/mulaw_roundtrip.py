"""
Measure µ-law quantization damage on a PCM16 file and write the round trip
as a WAV for listening.

    python tools/mulaw_roundtrip.py capture.pcm [roundtrip.wav] [--rate 48000]
"""

import argparse
import wave
from pathlib import Path

import numpy as np

from audio.mulaw import decode_samples, encode_samples
from audio.pcm import pcm16le_to_int16
from spec import AUDIO_SAMPLE_RATE_HZ


def roundtrip(pcm_bytes: bytes) -> tuple[np.ndarray, np.ndarray]:
    original = pcm16le_to_int16(pcm_bytes)
    decoded = decode_samples(encode_samples(original))
    return original, decoded


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("input", help="raw PCM16 mono little-endian")
    parser.add_argument("output", nargs="?", default="roundtrip.wav")
    parser.add_argument("--rate", type=int, default=AUDIO_SAMPLE_RATE_HZ)
    args = parser.parse_args()

    pcm = Path(args.input).read_bytes()
    pcm = pcm[: len(pcm) - (len(pcm) % 2)]
    original, decoded = roundtrip(pcm)

    errors = np.abs(original.astype(np.int32) - decoded.astype(np.int32))
    if errors.size:
        print(f"μ-law quantization error: max={errors.max()}, avg={errors.mean():.1f}")

    with wave.open(args.output, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(args.rate)
        wf.writeframes(decoded.astype("<i2").tobytes())

    print("Done.")
    print(f"Input PCM bytes: {len(pcm)}")
    print(f"μ-law bytes: {original.size}")
    print(f"Output WAV: {args.output}")


if __name__ == "__main__":
    main()

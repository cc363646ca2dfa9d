"""
Producer-side audio encoder.

Turns raw capture reads (PCM16 mono little-endian, any read size) into
~50ms µ-law AudioChunks at the wire rate.

Pipeline per chunk:
    capture reads -> PcmChunkAligner (exact chunk boundaries, no loss)
                  -> resample to 48kHz (only if the capture rate differs)
                  -> µ-law
"""

from __future__ import annotations

from math import gcd

import numpy as np
from scipy import signal

from audio.frames import AudioChunk
from audio.mulaw import encode_samples
from audio.pcm import pcm16le_to_int16
from spec import (
    AUDIO_CHUNK_MS,
    AUDIO_SAMPLE_RATE_HZ,
    PCM_SAMPLE_WIDTH_BYTES,
)


class PcmChunkAligner:
    """Rechunk PCM reads to exact chunk boundaries without loss."""

    def __init__(self, chunk_bytes: int) -> None:
        if chunk_bytes <= 0 or chunk_bytes % PCM_SAMPLE_WIDTH_BYTES:
            raise ValueError("chunk_bytes must be a positive whole number of samples")
        self.chunk_bytes = chunk_bytes
        self._buffer = b""

    def add(self, pcm16_bytes: bytes) -> list[bytes]:
        """Add audio and return complete chunks."""
        self._buffer += pcm16_bytes
        chunks: list[bytes] = []

        while len(self._buffer) >= self.chunk_bytes:
            chunks.append(self._buffer[:self.chunk_bytes])
            self._buffer = self._buffer[self.chunk_bytes:]

        return chunks

    def drain(self) -> bytes:
        """Return and clear whatever partial chunk is buffered (whole samples only)."""
        usable = len(self._buffer) - (len(self._buffer) % PCM_SAMPLE_WIDTH_BYTES)
        out = self._buffer[:usable]
        self._buffer = b""
        return out

    def clear_buffer(self) -> None:
        """Clear the aligner's internal buffer"""
        self._buffer = b""


class AudioEncoder:
    """
    Stateful PCM16 -> µ-law chunk encoder for one capture session.

    Resampling (when needed) is per chunk and stateless, so chunk
    boundaries may carry tiny filter edge effects; at 50ms chunks this is
    inaudible next to µ-law quantization.
    """

    def __init__(
        self,
        *,
        capture_rate_hz: int = AUDIO_SAMPLE_RATE_HZ,
        chunk_ms: int = AUDIO_CHUNK_MS,
    ) -> None:
        if capture_rate_hz <= 0:
            raise ValueError("capture_rate_hz must be > 0")
        if chunk_ms <= 0:
            raise ValueError("chunk_ms must be > 0")

        self.capture_rate_hz = capture_rate_hz
        samples_per_chunk = (capture_rate_hz * chunk_ms) // 1000
        self._aligner = PcmChunkAligner(samples_per_chunk * PCM_SAMPLE_WIDTH_BYTES)

        g = gcd(AUDIO_SAMPLE_RATE_HZ, capture_rate_hz)
        self._up = AUDIO_SAMPLE_RATE_HZ // g
        self._down = capture_rate_hz // g

        self.chunks_encoded = 0

    def push(self, pcm16_bytes: bytes) -> list[AudioChunk]:
        """Feed one capture read; return every chunk it completed."""
        return [self._encode(raw) for raw in self._aligner.add(pcm16_bytes)]

    def flush(self) -> list[AudioChunk]:
        """Encode the trailing partial chunk (if any). No padding."""
        raw = self._aligner.drain()
        if not raw:
            return []
        return [self._encode(raw)]

    def reset(self) -> None:
        """Forget buffered audio (capture restarted)."""
        self._aligner.clear_buffer()

    def _encode(self, raw: bytes) -> AudioChunk:
        samples = pcm16le_to_int16(raw)

        if self._up != self._down:
            resampled = signal.resample_poly(samples.astype(np.float64), self._up, self._down)
            samples = np.clip(np.round(resampled), -32768, 32767).astype(np.int16)

        self.chunks_encoded += 1
        return AudioChunk(payload=encode_samples(samples).tobytes())

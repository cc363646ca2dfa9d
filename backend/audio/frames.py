"""
Audio chunk primitives.

Pure data containers only.
No behavior beyond derived durations, no queues, no timing logic.
"""

from __future__ import annotations
from dataclasses import dataclass

from spec import (
    AUDIO_CHANNELS,
    AUDIO_SAMPLE_RATE_HZ,
    MULAW_SAMPLE_WIDTH_BYTES,
    samples_to_seconds,
)


@dataclass(frozen=True)
class AudioChunk:
    """
    Canonical audio chunk carried by the framing protocol.

    payload:
        µ-law encoded samples, one byte per sample.
        Chunk boundaries are arbitrary (encoder buffer size, nominally ~50ms).

    sample_rate_hz / channels:
        Fixed by the wire format (48kHz mono). Carried so consumers never
        hard-code them.
    """
    payload: bytes
    sample_rate_hz: int = AUDIO_SAMPLE_RATE_HZ
    channels: int = AUDIO_CHANNELS

    @property
    def sample_count(self) -> int:
        """Number of samples per channel in this chunk."""
        return len(self.payload) // (MULAW_SAMPLE_WIDTH_BYTES * self.channels)

    @property
    def duration_s(self) -> float:
        """Exact playback duration: sample count / sample rate."""
        return samples_to_seconds(self.sample_count, self.sample_rate_hz)

"""
Viewer-side audio playback.

µ-law chunk -> float32 waveform -> scheduled on the audio clock -> sink.

The output device and its clock are injected (AudioSink / AudioClock) so the
scheduling logic runs the same against a sound card or a test fake.
"""

from __future__ import annotations

import time
from typing import Optional, Protocol

import numpy as np

from audio.frames import AudioChunk
from audio.mulaw import mulaw_to_float32
from observability.logger import log_event
from playback.scheduler import AudioScheduler, Correction, ScheduleDecision


class AudioClock(Protocol):
    def now_s(self) -> float:
        ...


class AudioSink(Protocol):
    def play_at(self, samples: np.ndarray, sample_rate_hz: int, start_s: float) -> None:
        """Queue float32 mono samples to start at start_s on the sink's clock."""
        ...


class MonotonicClock:
    """Fallback clock for sinks that do not expose their own."""

    def now_s(self) -> float:
        return time.monotonic()


class AudioPlayer:
    """
    Decodes and schedules incoming AudioChunks.

    Single-threaded: call from the receive loop only.
    """

    def __init__(
        self,
        sink: AudioSink,
        *,
        clock: Optional[AudioClock] = None,
        scheduler: Optional[AudioScheduler] = None,
    ) -> None:
        self._sink = sink
        self._clock: AudioClock = clock or MonotonicClock()
        self.scheduler = scheduler or AudioScheduler()
        self.chunks_played = 0

    def play(self, chunk: AudioChunk) -> Optional[ScheduleDecision]:
        """Schedule one chunk. Empty chunks are ignored (None)."""
        if not chunk.payload:
            return None

        samples = mulaw_to_float32(chunk.payload)
        decision = self.scheduler.schedule(chunk.duration_s, self._clock.now_s())
        self._sink.play_at(samples, chunk.sample_rate_hz, decision.start_s)
        self.chunks_played += 1

        if decision.correction in (Correction.UNDERRUN, Correction.OVERRUN):
            log_event({
                "event_type": "PLAYBACK_AUDIO_RESYNC",
                "correction": decision.correction.value,
                "start_s": round(decision.start_s, 4),
                "underruns": self.scheduler.underruns,
                "overruns": self.scheduler.overruns,
            })
        return decision

    def reset(self) -> None:
        self.scheduler.reset()

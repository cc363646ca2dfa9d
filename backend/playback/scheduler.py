"""
Audio jitter-buffer scheduler.

Keeps a running "next playback time" on the audio clock so chunks that
arrive in bursts still play back to back.

Rules per chunk (all times in seconds on the audio clock):
- no anchor, or next < now (underrun): start at now + safety
- next - now > max lead (overrun):      start at now + resync lead
- otherwise:                            start at next
Then next = start + chunk duration.

No timers, no audio I/O. Deterministic given (duration, now).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from spec import AUDIO_MAX_LEAD_S, AUDIO_RESYNC_LEAD_S, AUDIO_UNDERRUN_SAFETY_S


class Correction(str, Enum):
    """What the scheduler did to the anchor for one chunk."""
    NONE = "none"
    START = "start"          # first chunk since reset
    UNDERRUN = "underrun"
    OVERRUN = "overrun"


@dataclass(frozen=True)
class ScheduleDecision:
    start_s: float
    next_s: float
    correction: Correction


class AudioScheduler:
    def __init__(
        self,
        *,
        underrun_safety_s: float = AUDIO_UNDERRUN_SAFETY_S,
        max_lead_s: float = AUDIO_MAX_LEAD_S,
        resync_lead_s: float = AUDIO_RESYNC_LEAD_S,
    ) -> None:
        if underrun_safety_s < 0 or resync_lead_s < 0:
            raise ValueError("safety offsets must be >= 0")
        if max_lead_s <= resync_lead_s:
            raise ValueError("max_lead_s must exceed resync_lead_s")

        self._safety_s = underrun_safety_s
        self._max_lead_s = max_lead_s
        self._resync_s = resync_lead_s
        self._next_s: Optional[float] = None
        self.underruns = 0
        self.overruns = 0

    @property
    def next_time_s(self) -> Optional[float]:
        return self._next_s

    def schedule(self, duration_s: float, now_s: float) -> ScheduleDecision:
        if duration_s < 0:
            raise ValueError("duration_s must be >= 0")

        if self._next_s is None:
            start, correction = now_s + self._safety_s, Correction.START
        elif self._next_s < now_s:
            start, correction = now_s + self._safety_s, Correction.UNDERRUN
            self.underruns += 1
        elif self._next_s - now_s > self._max_lead_s:
            start, correction = now_s + self._resync_s, Correction.OVERRUN
            self.overruns += 1
        else:
            start, correction = self._next_s, Correction.NONE

        self._next_s = start + duration_s
        return ScheduleDecision(start_s=start, next_s=self._next_s, correction=correction)

    def reset(self) -> None:
        """Drop the anchor; the next chunk restarts from real time."""
        self._next_s = None

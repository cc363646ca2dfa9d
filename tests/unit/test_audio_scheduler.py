# pylint: disable=missing-module-docstring,missing-function-docstring

import numpy as np
import pytest

from audio.frames import AudioChunk
from playback.audio import AudioPlayer
from playback.scheduler import AudioScheduler, Correction
from spec import AUDIO_MAX_LEAD_S, AUDIO_UNDERRUN_SAFETY_S

CHUNK_S = 0.05


def test_first_chunk_gets_safety_prebuffer():
    sched = AudioScheduler()
    decision = sched.schedule(CHUNK_S, now_s=10.0)

    assert decision.correction is Correction.START
    assert decision.start_s == pytest.approx(10.0 + AUDIO_UNDERRUN_SAFETY_S)
    assert sched.next_time_s == pytest.approx(10.1)


def test_back_to_back_chunks_are_contiguous():
    sched = AudioScheduler()
    first = sched.schedule(CHUNK_S, now_s=0.0)
    second = sched.schedule(CHUNK_S, now_s=0.01)
    third = sched.schedule(0.02, now_s=0.02)

    assert second.correction is Correction.NONE
    assert second.start_s == pytest.approx(first.next_s)
    assert third.start_s == pytest.approx(second.next_s)
    assert third.next_s == pytest.approx(third.start_s + 0.02)


def test_burst_after_500ms_stall_stays_bounded():
    sched = AudioScheduler()
    now = 0.0
    for _ in range(4):
        sched.schedule(CHUNK_S, now_s=now)
        now += CHUNK_S

    # Network stall: nothing for 500ms, then a burst arrives at once
    now += 0.5
    decisions = [sched.schedule(CHUNK_S, now_s=now) for _ in range(20)]

    recovery = decisions[0]
    assert recovery.correction is Correction.UNDERRUN
    assert recovery.start_s == pytest.approx(now + AUDIO_UNDERRUN_SAFETY_S)

    for d in decisions:
        assert d.start_s >= now
        assert d.next_s <= now + AUDIO_MAX_LEAD_S + AUDIO_UNDERRUN_SAFETY_S + CHUNK_S + 1e-9

    assert any(d.correction is Correction.OVERRUN for d in decisions)
    assert sched.underruns == 1


def test_overrun_snaps_back_near_real_time():
    sched = AudioScheduler()
    sched.schedule(1.0, now_s=0.0)  # next = 1.05

    decision = sched.schedule(CHUNK_S, now_s=0.1)

    assert decision.correction is Correction.OVERRUN
    assert decision.start_s == pytest.approx(0.15)
    assert sched.overruns == 1


def test_reset_drops_anchor():
    sched = AudioScheduler()
    sched.schedule(CHUNK_S, now_s=0.0)
    sched.reset()

    assert sched.next_time_s is None
    assert sched.schedule(CHUNK_S, now_s=5.0).correction is Correction.START


def test_invalid_tuning():
    with pytest.raises(ValueError):
        AudioScheduler(max_lead_s=0.01, resync_lead_s=0.05)


class FakeClock:
    def __init__(self) -> None:
        self.t = 0.0

    def now_s(self) -> float:
        return self.t


class FakeSink:
    def __init__(self) -> None:
        self.calls: list[tuple[np.ndarray, int, float]] = []

    def play_at(self, samples: np.ndarray, sample_rate_hz: int, start_s: float) -> None:
        self.calls.append((samples, sample_rate_hz, start_s))


def test_player_decodes_and_schedules():
    clock = FakeClock()
    sink = FakeSink()
    player = AudioPlayer(sink, clock=clock)

    chunk = AudioChunk(payload=b"\xff" * 2400)
    player.play(chunk)
    clock.t = 0.02
    player.play(chunk)

    assert len(sink.calls) == 2
    samples, rate, start = sink.calls[0]
    assert samples.dtype == np.float32
    assert samples.shape == (2400,)
    assert np.all(samples == 0.0)
    assert rate == 48000
    assert start == pytest.approx(0.05)
    assert sink.calls[1][2] == pytest.approx(0.10)


def test_player_ignores_empty_chunks_and_resets():
    sink = FakeSink()
    player = AudioPlayer(sink, clock=FakeClock())

    assert player.play(AudioChunk(payload=b"")) is None
    player.play(AudioChunk(payload=b"\xff" * 10))
    player.reset()

    assert player.scheduler.next_time_s is None
    assert len(sink.calls) == 1

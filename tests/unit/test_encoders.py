# pylint: disable=missing-module-docstring,missing-function-docstring

import io

import numpy as np
import pytest
from PIL import Image

from audio.encoder import AudioEncoder, PcmChunkAligner
from spec import AUDIO_CHUNK_PCM_BYTES, AUDIO_SAMPLES_PER_CHUNK
from video.encoder import (
    EncoderSettings,
    FrameEncoder,
    RawFrame,
    compute_capture_size,
    rgba_rows_to_array,
)
from video.frames import FitHint, Orientation


def rgba_frame(width: int, height: int, *, padding: int = 0, ts_ms: int = 0) -> RawFrame:
    row_stride = width * 4 + padding
    rows = []
    for y in range(height):
        row = bytes((x * 10 % 256, y * 20 % 256, 128, 255)[c] for x in range(width) for c in range(4))
        rows.append(row + b"\xee" * padding)
    buffer = b"".join(rows)
    # The last row's padding may be missing in real capture buffers
    if padding:
        buffer = buffer[:-padding]
    return RawFrame(
        buffer=buffer,
        width=width,
        height=height,
        pixel_stride=4,
        row_stride=row_stride,
        capture_ts_ms=ts_ms,
    )


# ---------------------------------------------------------------------
# Video
# ---------------------------------------------------------------------

def test_compute_capture_size_preserves_aspect():
    assert compute_capture_size(2560, 1440, 1280) == (1280, 720)
    assert compute_capture_size(1080, 2400, 1280) == (576, 1280)
    assert compute_capture_size(640, 480, 1280) == (640, 480)
    assert compute_capture_size(0, 480, 1280) == (0, 0)


def test_row_padding_is_cropped():
    raw = rgba_frame(4, 3, padding=8)
    pixels = rgba_rows_to_array(raw)

    assert pixels.shape == (3, 4, 4)
    assert pixels[1, 2].tolist() == [20, 20, 128, 255]
    assert not np.any(pixels == 0xEE)


def test_short_buffer_is_rejected():
    raw = rgba_frame(4, 3)
    bad = RawFrame(raw.buffer[:-1], 4, 3, 4, 16, 0)
    with pytest.raises(ValueError):
        rgba_rows_to_array(bad)


def test_encoder_downscales_and_tags_orientation():
    encoder = FrameEncoder(EncoderSettings(max_dim=8, fit=FitHint.COVER))
    frame = encoder.encode(rgba_frame(16, 4, padding=4))

    assert frame is not None
    assert (frame.width, frame.height) == (8, 2)
    assert frame.orientation is Orientation.LANDSCAPE
    assert frame.fit is FitHint.COVER

    with Image.open(io.BytesIO(frame.image_bytes)) as img:
        assert img.format == "JPEG"
        assert img.size == (8, 2)


def test_encoder_throttles_to_target_fps():
    encoder = FrameEncoder(EncoderSettings(target_fps=10))

    assert encoder.encode(rgba_frame(2, 2, ts_ms=0)) is not None
    assert encoder.encode(rgba_frame(2, 2, ts_ms=50)) is None
    assert encoder.encode(rgba_frame(2, 2, ts_ms=99)) is None
    assert encoder.encode(rgba_frame(2, 2, ts_ms=100)) is not None

    assert encoder.frames_encoded == 2
    assert encoder.frames_throttled == 2

    encoder.reset()
    assert encoder.should_accept(101)


def test_encoder_logs_every_30_frames(monkeypatch: pytest.MonkeyPatch):
    events: list[dict] = []
    monkeypatch.setattr("video.encoder.log_event", events.append)
    encoder = FrameEncoder(EncoderSettings(target_fps=10))

    for i in range(60):
        assert encoder.encode(rgba_frame(2, 2, ts_ms=i * 100)) is not None

    assert [e["event_type"] for e in events] == ["VIDEO_FRAMES_ENCODED"] * 2
    assert [e["frames"] for e in events] == [30, 60]


def test_invalid_settings():
    with pytest.raises(ValueError):
        EncoderSettings(target_fps=0)
    with pytest.raises(ValueError):
        EncoderSettings(jpeg_quality=101)


# ---------------------------------------------------------------------
# Audio
# ---------------------------------------------------------------------

def test_aligner_rechunks_without_loss():
    aligner = PcmChunkAligner(8)

    assert aligner.add(b"\x01" * 5) == []
    assert aligner.add(b"\x02" * 13) == [b"\x01" * 5 + b"\x02" * 3, b"\x02" * 8]
    assert aligner.drain() == b"\x02" * 2
    assert aligner.drain() == b""


def test_audio_encoder_emits_50ms_chunks():
    encoder = AudioEncoder()
    pcm = b"\x00\x10" * (AUDIO_SAMPLES_PER_CHUNK * 2 + 50)

    chunks = encoder.push(pcm)

    assert len(chunks) == 2
    for chunk in chunks:
        assert len(chunk.payload) == AUDIO_SAMPLES_PER_CHUNK
        assert chunk.duration_s == pytest.approx(0.05)

    tail = encoder.flush()
    assert len(tail) == 1
    assert len(tail[0].payload) == 50
    assert encoder.chunks_encoded == 3


def test_audio_encoder_resamples_other_capture_rates():
    encoder = AudioEncoder(capture_rate_hz=16000)
    t = np.arange(800) / 16000
    pcm = np.round(8000 * np.sin(2 * np.pi * 300 * t)).astype("<i2").tobytes()

    chunks = encoder.push(pcm)

    assert len(chunks) == 1
    assert len(chunks[0].payload) == AUDIO_SAMPLES_PER_CHUNK
    assert len(pcm) * 3 == AUDIO_CHUNK_PCM_BYTES


def test_audio_encoder_reset_drops_partial_chunk():
    encoder = AudioEncoder()
    encoder.push(b"\x00\x00" * 10)
    encoder.reset()
    assert encoder.flush() == []

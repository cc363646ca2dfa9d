"""
Producer-side video encoder.

Input contract (from the capture subsystem):
- RGBA_8888 frame buffers with pixel stride and row stride
  (row stride may include padding past width * pixel_stride)
- a capture timestamp in milliseconds

Output: Frame objects carrying a bounded-size JPEG and orientation
metadata, at most one per `1000 // target_fps` ms. Frames arriving faster
are dropped, never queued.
"""

from __future__ import annotations

import io
from dataclasses import dataclass

import numpy as np
from PIL import Image

from observability.logger import log_event
from spec import (
    ENCODER_FRAMES_LOG_EVERY,
    ENCODER_JPEG_QUALITY_DEFAULT,
    ENCODER_MAX_DIM_DEFAULT,
    ENCODER_TARGET_FPS_DEFAULT,
    frame_interval_ms,
)
from video.frames import FitHint, Frame, Orientation


RGBA_PIXEL_STRIDE = 4


@dataclass(frozen=True)
class RawFrame:
    """
    One captured RGBA frame as handed over by the capture subsystem.

    buffer:
        height rows of row_stride bytes each (the last row may be short
        by its padding).
    """
    buffer: bytes
    width: int
    height: int
    pixel_stride: int
    row_stride: int
    capture_ts_ms: int


@dataclass(frozen=True)
class EncoderSettings:
    """Encoder tuning, set when capture starts."""
    target_fps: int = ENCODER_TARGET_FPS_DEFAULT
    jpeg_quality: int = ENCODER_JPEG_QUALITY_DEFAULT
    max_dim: int = ENCODER_MAX_DIM_DEFAULT
    fit: FitHint = FitHint.UNSET

    def __post_init__(self) -> None:
        if self.target_fps <= 0:
            raise ValueError("target_fps must be > 0")
        if not 1 <= self.jpeg_quality <= 100:
            raise ValueError("jpeg_quality must be within 1..100")
        if self.max_dim <= 0:
            raise ValueError("max_dim must be > 0")


def compute_capture_size(width: int, height: int, max_dim: int) -> tuple[int, int]:
    """
    Scale (width, height) down so the longest side is at most max_dim.

    Aspect ratio is preserved; sizes never scale up.
    """
    if width <= 0 or height <= 0:
        return (0, 0)
    if width <= max_dim and height <= max_dim:
        return (width, height)
    scale = max_dim / max(width, height)
    return (max(1, int(width * scale)), max(1, int(height * scale)))


def rgba_rows_to_array(raw: RawFrame) -> np.ndarray:
    """
    Crop row padding and return an (height, width, 4) uint8 array.

    Raises:
        ValueError if the buffer cannot hold the declared geometry.
    """
    if raw.width <= 0 or raw.height <= 0:
        raise ValueError(f"empty frame geometry {raw.width}x{raw.height}")
    if raw.pixel_stride != RGBA_PIXEL_STRIDE:
        raise ValueError(f"unsupported pixel_stride {raw.pixel_stride} (RGBA only)")
    row_bytes = raw.width * raw.pixel_stride
    if raw.row_stride < row_bytes:
        raise ValueError(f"row_stride {raw.row_stride} < width * pixel_stride {row_bytes}")

    needed = raw.row_stride * (raw.height - 1) + row_bytes
    if len(raw.buffer) < needed:
        raise ValueError(f"buffer holds {len(raw.buffer)} bytes, need {needed}")

    flat = np.frombuffer(raw.buffer, dtype=np.uint8, count=needed)
    # Pad the final row out to a full stride so every row reshapes uniformly
    padded = np.concatenate(
        [flat, np.zeros(raw.row_stride * raw.height - needed, dtype=np.uint8)]
    )
    rows = padded.reshape(raw.height, raw.row_stride)[:, :row_bytes]
    return np.ascontiguousarray(rows).reshape(raw.height, raw.width, RGBA_PIXEL_STRIDE)


class FrameEncoder:
    """
    Throttling JPEG encoder for one capture session.

    Not thread-safe: feed it from the single capture callback thread.
    """

    def __init__(self, settings: EncoderSettings | None = None) -> None:
        self.settings = settings or EncoderSettings()
        self._last_accepted_ts_ms: int | None = None
        self.frames_encoded = 0
        self.frames_throttled = 0

    def should_accept(self, capture_ts_ms: int) -> bool:
        """Return True if a frame captured at capture_ts_ms passes the FPS gate."""
        if self._last_accepted_ts_ms is None:
            return True
        interval = frame_interval_ms(self.settings.target_fps)
        return capture_ts_ms - self._last_accepted_ts_ms >= interval

    def encode(self, raw: RawFrame) -> Frame | None:
        """
        Encode a captured frame, or return None if it was throttled.

        Raises:
            ValueError if the buffer does not match its declared geometry.
        """
        if not self.should_accept(raw.capture_ts_ms):
            self.frames_throttled += 1
            return None
        self._last_accepted_ts_ms = raw.capture_ts_ms

        pixels = rgba_rows_to_array(raw)
        image = Image.fromarray(pixels).convert("RGB")

        target_w, target_h = compute_capture_size(raw.width, raw.height, self.settings.max_dim)
        if (target_w, target_h) != (raw.width, raw.height):
            image = image.resize((target_w, target_h), Image.Resampling.BILINEAR)

        out = io.BytesIO()
        image.save(out, format="JPEG", quality=self.settings.jpeg_quality)

        self.frames_encoded += 1
        if self.frames_encoded % ENCODER_FRAMES_LOG_EVERY == 0:
            log_event({
                "event_type": "VIDEO_FRAMES_ENCODED",
                "frames": self.frames_encoded,
                "throttled": self.frames_throttled,
                "size": [target_w, target_h],
            })

        return Frame(
            width=target_w,
            height=target_h,
            image_bytes=out.getvalue(),
            orientation=Orientation.from_shape(target_w, target_h),
            fit=self.settings.fit,
            capture_ts_ms=raw.capture_ts_ms,
        )

    def reset(self) -> None:
        """Restart throttling (e.g. after a display change)."""
        self._last_accepted_ts_ms = None

"""
Viewer-side video presentation.

Decoded frames become "current" either immediately or after the configured
buffering delay (lets audio scheduling catch up). Presenting a frame
releases the previous one. A frame older than the current one is never
presented.
"""

from __future__ import annotations

import asyncio
import io
from dataclasses import dataclass
from typing import Optional, Protocol

from PIL import Image, UnidentifiedImageError

from observability.logger import log_event
from playback.layout import Layout, compute_layout
from protocol.framing import VideoMessage, VideoMeta
from spec import PLAYBACK_VIDEO_DELAY_MS_DEFAULT, PLAYBACK_VIDEO_DELAY_MS_MAX


@dataclass
class PresentedFrame:
    """A decoded frame plus the metadata it arrived with."""
    seq: int
    image: Image.Image
    meta: VideoMeta

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def layout(self, view_width: int, view_height: int) -> Layout:
        return compute_layout(
            self.width, self.height, view_width, view_height,
            self.meta.orientation, self.meta.fit,
        )

    def release(self) -> None:
        self.image.close()


class FrameSink(Protocol):
    def show(self, frame: PresentedFrame) -> None:
        """Display frame. The presenter releases it once it is replaced."""
        ...


class VideoPresenter:
    """
    Holds the current frame and the pending (delayed) ones.

    Must be driven from the event loop thread; delayed presentation uses
    loop.call_later.
    """

    def __init__(
        self,
        sink: FrameSink,
        *,
        delay_ms: int = PLAYBACK_VIDEO_DELAY_MS_DEFAULT,
    ) -> None:
        self._sink = sink
        self._delay_ms = 0
        self.set_delay_ms(delay_ms)
        self._seq = 0
        self._current: Optional[PresentedFrame] = None
        self._pending: dict[int, tuple[asyncio.TimerHandle, PresentedFrame]] = {}
        self.frames_presented = 0
        self.frames_stale = 0
        self.decode_errors = 0

    @property
    def delay_ms(self) -> int:
        return self._delay_ms

    @property
    def current(self) -> Optional[PresentedFrame]:
        return self._current

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def set_delay_ms(self, delay_ms: int) -> None:
        """Applies to frames submitted from now on; pending frames keep their timers."""
        self._delay_ms = max(0, min(int(delay_ms), PLAYBACK_VIDEO_DELAY_MS_MAX))

    def submit(self, message: VideoMessage) -> Optional[int]:
        """
        Decode and present (now or after the delay).

        Returns:
            The frame's sequence number, or None if it could not be decoded.
        """
        try:
            image = Image.open(io.BytesIO(message.image_bytes))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            self.decode_errors += 1
            log_event({
                "event_type": "PLAYBACK_FRAME_DECODE_FAILED",
                "bytes": len(message.image_bytes),
                "error": str(e),
                "decode_errors": self.decode_errors,
            })
            return None

        self._seq += 1
        frame = PresentedFrame(seq=self._seq, image=image, meta=message.meta)

        if self._delay_ms <= 0:
            self._present(frame)
        else:
            loop = asyncio.get_running_loop()
            handle = loop.call_later(self._delay_ms / 1000, self._present_delayed, frame)
            self._pending[frame.seq] = (handle, frame)
        return frame.seq

    def _present_delayed(self, frame: PresentedFrame) -> None:
        self._pending.pop(frame.seq, None)
        self._present(frame)

    def _present(self, frame: PresentedFrame) -> None:
        previous = self._current
        if previous is not None and frame.seq <= previous.seq:
            # Delay was lowered while this one waited; a newer frame already won
            self.frames_stale += 1
            frame.release()
            return

        self._current = frame
        self._sink.show(frame)
        self.frames_presented += 1
        if previous is not None:
            previous.release()

    def reset(self) -> None:
        """Cancel pending frames and release the current one."""
        for handle, frame in self._pending.values():
            handle.cancel()
            frame.release()
        self._pending.clear()
        if self._current is not None:
            self._current.release()
            self._current = None

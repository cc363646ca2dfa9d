"""
Viewport layout for a decoded frame.

Pure geometry: no image data, no drawing. The display surface applies the
result (rotate, scale, translate) however it renders.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from spec import COVER_ASPECT_TOLERANCE
from video.frames import FitHint, Orientation


class FitMode(str, Enum):
    COVER = "cover"        # fill the viewport, crop overflow
    CONTAIN = "contain"    # fit within the viewport, letterbox


@dataclass(frozen=True)
class Layout:
    """
    Where and how to draw one frame.

    draw_width / draw_height are the on-screen size of the content after
    rotation and scaling. offset_x / offset_y place its top-left corner in
    viewport coordinates; they are negative when cover crops.
    """
    rotate: bool
    mode: FitMode
    scale: float
    draw_width: float
    draw_height: float
    offset_x: float
    offset_y: float


def should_rotate(frame_width: int, frame_height: int, orientation: Orientation) -> bool:
    """True when the declared orientation disagrees with the frame's shape."""
    is_landscape = frame_width > frame_height
    if orientation is Orientation.PORTRAIT:
        return is_landscape
    if orientation is Orientation.LANDSCAPE:
        return not is_landscape
    return False


def compute_layout(
    frame_width: int,
    frame_height: int,
    view_width: int,
    view_height: int,
    orientation: Orientation = Orientation.UNKNOWN,
    fit: FitHint = FitHint.UNSET,
) -> Layout:
    """
    Compute rotation, fit mode and placement for one frame.

    Raises:
        ValueError on non-positive dimensions.
    """
    if min(frame_width, frame_height, view_width, view_height) <= 0:
        raise ValueError(
            f"dimensions must be > 0 (frame {frame_width}x{frame_height}, "
            f"view {view_width}x{view_height})"
        )

    rotate = should_rotate(frame_width, frame_height, orientation)
    content_w, content_h = (frame_height, frame_width) if rotate else (frame_width, frame_height)

    content_aspect = content_w / content_h
    view_aspect = view_width / view_height

    if fit is FitHint.COVER:
        mode = FitMode.COVER
    elif fit is FitHint.UNSET and content_w > content_h \
            and abs(content_aspect - view_aspect) < COVER_ASPECT_TOLERANCE:
        mode = FitMode.COVER
    else:
        mode = FitMode.CONTAIN

    sx = view_width / content_w
    sy = view_height / content_h
    scale = max(sx, sy) if mode is FitMode.COVER else min(sx, sy)

    draw_w = content_w * scale
    draw_h = content_h * scale
    return Layout(
        rotate=rotate,
        mode=mode,
        scale=scale,
        draw_width=draw_w,
        draw_height=draw_h,
        offset_x=(view_width - draw_w) / 2,
        offset_y=(view_height - draw_h) / 2,
    )

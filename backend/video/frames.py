"""
Video frame primitives.

Pure data containers only.
No decoding, no scheduling.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Orientation(str, Enum):
    """Orientation the producer declares for a frame."""

    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: object) -> Orientation:
        """Map a wire value to an Orientation; anything unrecognized is UNKNOWN."""
        if isinstance(value, str):
            try:
                return cls(value.lower())
            except ValueError:
                pass
        return cls.UNKNOWN

    @classmethod
    def from_shape(cls, width: int, height: int) -> Orientation:
        """Orientation implied by pixel dimensions (square is UNKNOWN)."""
        if width > height:
            return cls.LANDSCAPE
        if height > width:
            return cls.PORTRAIT
        return cls.UNKNOWN


class FitHint(str, Enum):
    """Scaling preference the producer attaches to a frame."""

    COVER = "cover"
    CONTAIN = "contain"
    UNSET = "unset"

    @classmethod
    def parse(cls, value: object) -> FitHint:
        """Map a wire value to a FitHint; anything unrecognized is UNSET."""
        if isinstance(value, str):
            try:
                return cls(value.lower())
            except ValueError:
                pass
        return cls.UNSET


@dataclass(frozen=True)
class Frame:
    """
    One compressed video frame.

    width / height:
        Pixel size of the encoded image (after downscaling).

    capture_ts_ms:
        Wall-clock capture time on the producer. Observability only;
        playback timing is driven by arrival, not by this value.

    image_bytes:
        JPEG payload. Opaque to the relay.
    """
    width: int
    height: int
    image_bytes: bytes
    orientation: Orientation = Orientation.UNKNOWN
    fit: FitHint = FitHint.UNSET
    capture_ts_ms: int = 0

# backend/protocol/framing.py
"""
Binary framing for the media/control channel.

Every transport message carries exactly one protocol message:

- Audio:
    1 byte   tag = 0x01
    N bytes  µ-law payload

- Video:
    1 byte   tag = 0x02
    4 bytes  meta_len (u32, little-endian)
    meta_len bytes UTF-8 JSON metadata {"orientation", "fit", ...}
    N bytes  JPEG payload

- Config:
    1 byte   tag = 0x03
    N bytes  UTF-8 JSON {"delayMs", ...}

Decoding is fail-soft: bad metadata/config JSON reads as an empty object,
unknown keys are ignored, unknown tags decode to None.

Usage example:

    try:
        msg = decode_message(payload)
    except MalformedMessage as e:
        log_event({"event_type": "FRAME_DECODE_ERROR", "error": str(e)})
        return

    if isinstance(msg, VideoMessage):
        presenter.on_frame(msg)
"""

from __future__ import annotations

import json
import struct
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

from audio.frames import AudioChunk
from protocol.errors import MalformedMessage
from spec import (
    CONFIG_KEY_DELAY_MS,
    MSG_TAG_AUDIO,
    MSG_TAG_CONFIG,
    MSG_TAG_VIDEO,
    PLAYBACK_VIDEO_DELAY_MS_MAX,
    VIDEO_HEADER_BYTES,
)
from video.frames import FitHint, Frame, Orientation


# -------------------------
# Message schema
# -------------------------

@dataclass(frozen=True)
class VideoMeta:
    """
    Closed view of the video metadata object.

    extras:
        Keys this version does not understand. Preserved for observability
        and re-encoding; never interpreted.
    """
    orientation: Orientation = Orientation.UNKNOWN
    fit: FitHint = FitHint.UNSET
    extras: Mapping[str, Any] = field(default_factory=dict)

    def to_json_obj(self) -> dict[str, Any]:
        obj: dict[str, Any] = dict(self.extras)
        if self.orientation is not Orientation.UNKNOWN:
            obj["orientation"] = self.orientation.value
        if self.fit is not FitHint.UNSET:
            obj["fit"] = self.fit.value
        return obj

    @staticmethod
    def from_json_obj(obj: Mapping[str, Any]) -> VideoMeta:
        return VideoMeta(
            orientation=Orientation.parse(obj.get("orientation")),
            fit=FitHint.parse(obj.get("fit")),
            extras={k: v for k, v in obj.items() if k not in ("orientation", "fit")},
        )


@dataclass(frozen=True)
class PlaybackConfig:
    """
    Closed view of the config object.

    delay_ms:
        Target client-side video buffering delay. None means "not present",
        which leaves the receiver's current value untouched.
    """
    delay_ms: Optional[int] = None

    def to_json_obj(self) -> dict[str, Any]:
        if self.delay_ms is None:
            return {}
        return {CONFIG_KEY_DELAY_MS: self.delay_ms}

    @staticmethod
    def from_json_obj(obj: Mapping[str, Any]) -> PlaybackConfig:
        raw = obj.get(CONFIG_KEY_DELAY_MS)
        # bool is an int subclass; reject it explicitly
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            return PlaybackConfig()
        if raw != raw:  # NaN
            return PlaybackConfig()
        delay = int(min(max(raw, 0), PLAYBACK_VIDEO_DELAY_MS_MAX))
        return PlaybackConfig(delay_ms=delay)


@dataclass(frozen=True)
class AudioMessage:
    chunk: AudioChunk


@dataclass(frozen=True)
class VideoMessage:
    """
    meta_bytes:
        The metadata exactly as it appeared on the wire.
    """
    meta: VideoMeta
    meta_bytes: bytes
    image_bytes: bytes


@dataclass(frozen=True)
class ConfigMessage:
    config: PlaybackConfig


Message = Union[AudioMessage, VideoMessage, ConfigMessage]


# -------------------------
# Low-level helpers
# -------------------------

def _u32_le(value: int) -> bytes:
    return struct.pack("<I", value)


def _read_u32_le(buf: bytes, offset: int = 0) -> int:
    return struct.unpack_from("<I", buf, offset)[0]


def _dump_json(obj: Mapping[str, Any]) -> bytes:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def load_json_object(raw: bytes) -> dict[str, Any]:
    """
    Parse a UTF-8 JSON object, returning {} for anything else.

    Pure function; never raises.
    """
    if not raw:
        return {}
    try:
        obj = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return {}
    if not isinstance(obj, dict):
        return {}
    return obj


# -------------------------
# Encoding
# -------------------------

def encode_audio(chunk: AudioChunk) -> bytes:
    """Encode an audio chunk."""
    return bytes((MSG_TAG_AUDIO,)) + chunk.payload


def encode_video(meta: VideoMeta, image_bytes: bytes) -> bytes:
    """
    Encode a video message.

    meta_len is exact; nothing is padded.
    """
    meta_bytes = _dump_json(meta.to_json_obj())
    return bytes((MSG_TAG_VIDEO,)) + _u32_le(len(meta_bytes)) + meta_bytes + image_bytes


def encode_frame(frame: Frame) -> bytes:
    """Encode a Frame using its orientation/fit as metadata."""
    return encode_video(
        VideoMeta(orientation=frame.orientation, fit=frame.fit),
        frame.image_bytes,
    )


def encode_config(config: PlaybackConfig) -> bytes:
    """Encode a config message."""
    return bytes((MSG_TAG_CONFIG,)) + _dump_json(config.to_json_obj())


# -------------------------
# Decoding
# -------------------------

def peek_tag(payload: bytes) -> Optional[int]:
    """Return the type tag without decoding, or None for an empty payload."""
    return payload[0] if payload else None


def decode_message(payload: bytes) -> Optional[Message]:
    """
    Decode one protocol message.

    Returns:
        The decoded message, or None for an unrecognized tag.

    Raises:
        MalformedMessage if the payload is empty or the video header is
        truncated / declares more metadata than the message holds.
    """
    if not payload:
        raise MalformedMessage("empty message")

    tag = payload[0]

    if tag == MSG_TAG_AUDIO:
        return AudioMessage(chunk=AudioChunk(payload=bytes(payload[1:])))

    if tag == MSG_TAG_VIDEO:
        if len(payload) < VIDEO_HEADER_BYTES:
            raise MalformedMessage(
                f"video header truncated: {len(payload)} < {VIDEO_HEADER_BYTES}"
            )
        meta_len = _read_u32_le(payload, 1)
        meta_end = VIDEO_HEADER_BYTES + meta_len
        if meta_end > len(payload):
            raise MalformedMessage(
                f"video meta_len {meta_len} exceeds message "
                f"({len(payload) - VIDEO_HEADER_BYTES} bytes after header)"
            )
        meta_bytes = bytes(payload[VIDEO_HEADER_BYTES:meta_end])
        return VideoMessage(
            meta=VideoMeta.from_json_obj(load_json_object(meta_bytes)),
            meta_bytes=meta_bytes,
            image_bytes=bytes(payload[meta_end:]),
        )

    if tag == MSG_TAG_CONFIG:
        obj = load_json_object(bytes(payload[1:]))
        return ConfigMessage(config=PlaybackConfig.from_json_obj(obj))

    return None


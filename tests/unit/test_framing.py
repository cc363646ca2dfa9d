# pylint: disable=missing-module-docstring,missing-function-docstring

import json
import struct

import pytest

from audio.frames import AudioChunk
from protocol.errors import MalformedMessage
from protocol.framing import (
    AudioMessage,
    ConfigMessage,
    PlaybackConfig,
    VideoMessage,
    VideoMeta,
    decode_message,
    encode_audio,
    encode_config,
    encode_frame,
    encode_video,
    peek_tag,
)
from spec import MSG_TAG_AUDIO, MSG_TAG_CONFIG, MSG_TAG_VIDEO, PLAYBACK_VIDEO_DELAY_MS_MAX
from video.frames import FitHint, Frame, Orientation


JPEG_STUB = b"\xff\xd8\xff\xe0fake-jpeg\xff\xd9"


def video_message(meta: bytes, image: bytes = JPEG_STUB) -> bytes:
    return bytes((MSG_TAG_VIDEO,)) + struct.pack("<I", len(meta)) + meta + image


# ---------------------------------------------------------------------
# Video
# ---------------------------------------------------------------------

def test_portrait_cover_frame_roundtrip_is_byte_identical():
    frame = Frame(
        width=720,
        height=1280,
        image_bytes=JPEG_STUB,
        orientation=Orientation.PORTRAIT,
        fit=FitHint.COVER,
    )
    wire = encode_frame(frame)

    msg = decode_message(wire)

    assert isinstance(msg, VideoMessage)
    assert msg.image_bytes == JPEG_STUB
    assert json.loads(msg.meta_bytes) == {"orientation": "portrait", "fit": "cover"}
    assert msg.meta.orientation is Orientation.PORTRAIT
    assert msg.meta.fit is FitHint.COVER
    # Re-encoding the decoded metadata reproduces the wire bytes exactly
    assert encode_video(msg.meta, msg.image_bytes) == wire


def test_video_header_layout_is_exact():
    wire = encode_video(VideoMeta(orientation=Orientation.LANDSCAPE), b"IMG")
    meta = b'{"orientation":"landscape"}'

    assert wire[0] == MSG_TAG_VIDEO
    assert struct.unpack_from("<I", wire, 1)[0] == len(meta)
    assert wire[5:5 + len(meta)] == meta
    assert wire[5 + len(meta):] == b"IMG"


def test_unknown_enum_values_and_extra_keys_are_tolerated():
    meta = b'{"orientation":"diagonal","fit":"stretch","rotation":90}'
    msg = decode_message(video_message(meta))

    assert isinstance(msg, VideoMessage)
    assert msg.meta.orientation is Orientation.UNKNOWN
    assert msg.meta.fit is FitHint.UNSET
    assert msg.meta.extras == {"rotation": 90}
    assert msg.image_bytes == JPEG_STUB


@pytest.mark.parametrize("meta", [b"not json", b"\xff\xfe", b"[1,2]", b""])
def test_bad_metadata_decodes_as_empty_object(meta: bytes):
    msg = decode_message(video_message(meta))

    assert isinstance(msg, VideoMessage)
    assert msg.meta == VideoMeta()
    assert msg.image_bytes == JPEG_STUB


def test_truncated_video_header_is_malformed():
    with pytest.raises(MalformedMessage):
        decode_message(bytes((MSG_TAG_VIDEO, 0x01, 0x00)))


def test_meta_len_beyond_message_is_malformed():
    wire = bytes((MSG_TAG_VIDEO,)) + struct.pack("<I", 100) + b"{}"
    with pytest.raises(MalformedMessage):
        decode_message(wire)


# ---------------------------------------------------------------------
# Audio / config / misc
# ---------------------------------------------------------------------

def test_audio_roundtrip():
    chunk = AudioChunk(payload=bytes(range(256)) * 10)
    wire = encode_audio(chunk)

    assert wire[0] == MSG_TAG_AUDIO
    msg = decode_message(wire)
    assert isinstance(msg, AudioMessage)
    assert msg.chunk.payload == chunk.payload
    assert msg.chunk.sample_rate_hz == 48000


def test_config_roundtrip_and_unknown_keys_ignored():
    wire = encode_config(PlaybackConfig(delay_ms=250))
    assert wire[0] == MSG_TAG_CONFIG
    assert decode_message(wire) == ConfigMessage(config=PlaybackConfig(delay_ms=250))

    wire = bytes((MSG_TAG_CONFIG,)) + b'{"delayMs":120,"volume":3}'
    assert decode_message(wire) == ConfigMessage(config=PlaybackConfig(delay_ms=120))


@pytest.mark.parametrize(
    "body, expected",
    [
        (b"garbage", None),
        (b'{"delayMs":"soon"}', None),
        (b'{"delayMs":true}', None),
        (b'{"delayMs":-40}', 0),
        (b'{"delayMs":99999}', PLAYBACK_VIDEO_DELAY_MS_MAX),
        (b'{"delayMs":80.7}', 80),
    ],
)
def test_config_delay_is_validated(body: bytes, expected):
    msg = decode_message(bytes((MSG_TAG_CONFIG,)) + body)
    assert isinstance(msg, ConfigMessage)
    assert msg.config.delay_ms == expected


def test_unknown_tag_decodes_to_none():
    assert decode_message(b"\x7fwhatever") is None


def test_empty_message_is_malformed():
    with pytest.raises(MalformedMessage):
        decode_message(b"")


def test_peek_tag():
    assert peek_tag(b"") is None
    assert peek_tag(encode_audio(AudioChunk(payload=b"\x00"))) == MSG_TAG_AUDIO

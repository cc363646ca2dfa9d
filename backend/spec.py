"""
SPEC-AS-CONSTANTS
-----------------
Single source of truth for all behavioral invariants in the system.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Audio Format (µ-law mono @ 48kHz, ~50ms chunks)
# =============================================================================

AUDIO_SAMPLE_RATE_HZ: Final[int] = 48_000
AUDIO_CHANNELS: Final[int] = 1
PCM_SAMPLE_WIDTH_BYTES: Final[int] = 2  # PCM16 (signed) capture input
MULAW_SAMPLE_WIDTH_BYTES: Final[int] = 1  # 8-bit companded on the wire

AUDIO_CHUNK_MS: Final[int] = 50
AUDIO_SAMPLES_PER_CHUNK: Final[int] = (AUDIO_SAMPLE_RATE_HZ * AUDIO_CHUNK_MS) // 1000
AUDIO_CHUNK_PCM_BYTES: Final[int] = AUDIO_SAMPLES_PER_CHUNK * PCM_SAMPLE_WIDTH_BYTES

# =============================================================================
# µ-law companding (G.711)
# =============================================================================

MULAW_BIAS: Final[int] = 0x84
MULAW_CLIP: Final[int] = 32635

# =============================================================================
# Framing Protocol (one transport message == one protocol message)
# =============================================================================

MSG_TAG_AUDIO: Final[int] = 0x01
MSG_TAG_VIDEO: Final[int] = 0x02
MSG_TAG_CONFIG: Final[int] = 0x03

MSG_TAG_BYTES: Final[int] = 1
VIDEO_META_LEN_BYTES: Final[int] = 4  # u32, little-endian
VIDEO_HEADER_BYTES: Final[int] = MSG_TAG_BYTES + VIDEO_META_LEN_BYTES

CONFIG_KEY_DELAY_MS: Final[str] = "delayMs"

# =============================================================================
# Encoder defaults (producer side)
# =============================================================================

ENCODER_TARGET_FPS_DEFAULT: Final[int] = 30
ENCODER_JPEG_QUALITY_DEFAULT: Final[int] = 60
ENCODER_MAX_DIM_DEFAULT: Final[int] = 1280
ENCODER_FRAMES_LOG_EVERY: Final[int] = 30

# =============================================================================
# Playback: video
# =============================================================================

PLAYBACK_VIDEO_DELAY_MS_DEFAULT: Final[int] = 0
PLAYBACK_VIDEO_DELAY_MS_MAX: Final[int] = 5_000

# Cover (fill-and-crop) when landscape content is this close to the viewport
COVER_ASPECT_TOLERANCE: Final[float] = 0.22

# =============================================================================
# Playback: audio jitter buffer
# =============================================================================

# Pre-buffer inserted when the schedule has fallen behind real time
AUDIO_UNDERRUN_SAFETY_S: Final[float] = 0.05

# Schedule lead beyond which we snap back to real time
AUDIO_MAX_LEAD_S: Final[float] = 0.30

# Forward offset applied when snapping back after an overrun
AUDIO_RESYNC_LEAD_S: Final[float] = 0.05

# =============================================================================
# Client reconnection backoff
# =============================================================================

CLIENT_RECONNECT_INITIAL_MS: Final[int] = 1_000
CLIENT_RECONNECT_MAX_MS: Final[int] = 8_000

# =============================================================================
# Relay backpressure
# =============================================================================

# Media messages buffered per viewer before new media is shed
VIEWER_OUTBOX_MAX_MEDIA_DEFAULT: Final[int] = 64

# Control (JSON) messages buffered per connection before they are shed
OUTBOX_MAX_CONTROL: Final[int] = 256

# Fan-out drop logging cadence (per stream)
FANOUT_DROP_LOG_EVERY: Final[int] = 30

# =============================================================================
# Pairing
# =============================================================================

PAIRING_SCHEME_DEFAULT: Final[str] = "homecast://connect"
SESSION_ID_RANDOM_HEX_CHARS: Final[int] = 8
SESSION_IDLE_TTL_S_DEFAULT: Final[float] = 600.0
SESSION_PRUNE_INTERVAL_S: Final[float] = 30.0

SSE_RETRY_MS: Final[int] = 1_500

# LAN address scoring used when no BACKEND_URL override is configured
LAN_PREFIX_SCORES: Final[Tuple[Tuple[str, int], ...]] = (
    ("192.168.", 30),
    ("10.", 20),
)
LAN_PRIVATE_172_SCORE: Final[int] = 10
LAN_INTERFACE_NAME_SCORES: Final[Tuple[Tuple[str, int], ...]] = (
    ("wi-fi", 5),
    ("wifi", 5),
    ("wlan", 5),
    ("ethernet", 3),
)

# =============================================================================
# Helper Functions
# =============================================================================

def samples_to_seconds(num_samples: int, sample_rate_hz: int = AUDIO_SAMPLE_RATE_HZ) -> float:
    """
    Convert a sample count to a duration in seconds.

    Non-positive input returns 0.0.
    """
    if num_samples <= 0 or sample_rate_hz <= 0:
        return 0.0
    return num_samples / sample_rate_hz


def frame_interval_ms(target_fps: int) -> int:
    """
    Minimum spacing between accepted frames for a target FPS.

    Non-positive FPS disables throttling (returns 0).
    """
    if target_fps <= 0:
        return 0
    return 1000 // target_fps

"""
Viewer playback engine.

Responsibilities:
- Join a stream over the relay websocket
- Dispatch decoded framing messages to the audio player and video presenter
- Apply config (video buffering delay) to later frames
- On transport loss: drop the audio anchor and buffered frames, show DOWN,
  reconnect with capped exponential backoff
- On stream-ended: same reset, then re-join through the same backoff

NOT responsible for:
- Rendering (FrameSink) or audio output (AudioSink)
- Pairing (done before the engine starts)
"""

from __future__ import annotations

import asyncio
import json
from enum import Enum
from typing import Callable, Optional

from websockets.asyncio.client import ClientConnection, connect as ws_connect
from websockets.exceptions import WebSocketException

from observability.logger import log_event
from playback.audio import AudioPlayer
from playback.connection_status import ConnectionStatus
from playback.retry import (
    RetryAttempt,
    get_reconnect_delay_ms,
    next_attempt,
    reset_attempt,
)
from playback.video import VideoPresenter
from protocol import signaling
from protocol.errors import MalformedMessage
from protocol.framing import AudioMessage, ConfigMessage, VideoMessage, decode_message
from protocol.signaling import OutboundType
from spec import CLIENT_RECONNECT_INITIAL_MS, CLIENT_RECONNECT_MAX_MS


class ControlAction(str, Enum):
    """What the run loop should do after a control message."""
    CONTINUE = "continue"
    REJOIN = "rejoin"


class PlaybackEngine:
    """
    One viewer session against one stream id.

    handle_message / handle_control / on_transport_lost are synchronous and
    usable without a socket; run() wires them to a websocket.
    """

    def __init__(
        self,
        *,
        stream_id: str,
        audio: AudioPlayer,
        video: VideoPresenter,
        on_status: Optional[Callable[[ConnectionStatus], None]] = None,
        reconnect_initial_ms: int = CLIENT_RECONNECT_INITIAL_MS,
        reconnect_max_ms: int = CLIENT_RECONNECT_MAX_MS,
    ) -> None:
        self.stream_id = stream_id
        self.audio = audio
        self.video = video
        self._on_status = on_status
        self._reconnect_initial_ms = reconnect_initial_ms
        self._reconnect_max_ms = reconnect_max_ms
        self._status = ConnectionStatus.DOWN
        self._attempt: RetryAttempt = reset_attempt()
        self._stopped = asyncio.Event()
        self._ws: Optional[ClientConnection] = None
        self.malformed = 0

    # -------------------------
    # Status
    # -------------------------

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def attempt(self) -> RetryAttempt:
        return self._attempt

    def _set_status(self, status: ConnectionStatus) -> None:
        if status is self._status:
            return
        self._status = status
        log_event({
            "event_type": "PLAYBACK_CONNECTION_STATUS",
            "stream_id": self.stream_id,
            "status": status.value,
        })
        if self._on_status is not None:
            self._on_status(status)

    # -------------------------
    # Inbound
    # -------------------------

    def handle_message(self, data: bytes) -> None:
        """Dispatch one binary framing message."""
        try:
            message = decode_message(data)
        except MalformedMessage as e:
            self.malformed += 1
            log_event({
                "event_type": "PROTOCOL_MALFORMED_MESSAGE",
                "stream_id": self.stream_id,
                "detail": str(e),
                "count": self.malformed,
            })
            return

        if isinstance(message, AudioMessage):
            self.audio.play(message.chunk)
        elif isinstance(message, VideoMessage):
            self.video.submit(message)
        elif isinstance(message, ConfigMessage):
            if message.config.delay_ms is not None:
                self.video.set_delay_ms(message.config.delay_ms)
        # Unknown tags decode to None and are ignored

    def handle_control(self, text: str) -> ControlAction:
        """Interpret one relay control message."""
        try:
            data = json.loads(text)
        except ValueError:
            return ControlAction.CONTINUE
        if not isinstance(data, dict):
            return ControlAction.CONTINUE

        msg_type = data.get("type")

        if msg_type == OutboundType.JOINED.value:
            self._attempt = reset_attempt()
            self._set_status(ConnectionStatus.UP)
            return ControlAction.CONTINUE

        if msg_type == OutboundType.STREAM_ENDED.value:
            log_event({"event_type": "PLAYBACK_STREAM_ENDED", "stream_id": self.stream_id})
            self.reset()
            return ControlAction.REJOIN

        if msg_type == OutboundType.ERROR.value:
            log_event({
                "event_type": "PLAYBACK_JOIN_REJECTED",
                "stream_id": self.stream_id,
                "code": data.get("code"),
                "message": data.get("message"),
            })
            # Producer not up yet (or gone): try again later
            if self._status is not ConnectionStatus.UP:
                return ControlAction.REJOIN

        return ControlAction.CONTINUE

    def reset(self) -> None:
        """Discard the audio anchor and every buffered frame."""
        self.audio.reset()
        self.video.reset()

    def on_transport_lost(self) -> None:
        self.reset()
        self._set_status(ConnectionStatus.DOWN)

    def next_reconnect_delay_ms(self) -> int:
        """Delay for the upcoming reconnect; advances the attempt counter."""
        delay = get_reconnect_delay_ms(
            self._attempt,
            initial_ms=self._reconnect_initial_ms,
            max_ms=self._reconnect_max_ms,
        )
        self._attempt = next_attempt(self._attempt)
        return delay

    # -------------------------
    # Transport loop
    # -------------------------

    async def run(self, url: str) -> None:
        """
        Connect, join, play; reconnect with backoff until stop().

        One-shot: once stopped (even before run starts) the engine stays stopped.
        """
        while not self._stopped.is_set():
            self._set_status(ConnectionStatus.CONNECTING)
            try:
                await self._session(url)
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                log_event({
                    "event_type": "PLAYBACK_TRANSPORT_LOST",
                    "stream_id": self.stream_id,
                    "exception": type(e).__name__,
                    "message": str(e),
                })
            self.on_transport_lost()

            if self._stopped.is_set():
                break

            delay_ms = self.next_reconnect_delay_ms()
            log_event({
                "event_type": "PLAYBACK_RECONNECT_SCHEDULED",
                "stream_id": self.stream_id,
                "delay_ms": delay_ms,
                "attempt": self._attempt.attempt,
            })
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=delay_ms / 1000)
            except asyncio.TimeoutError:
                pass

    async def _session(self, url: str) -> None:
        async with ws_connect(url, max_size=None) as ws:
            if self._stopped.is_set():
                return
            self._ws = ws
            try:
                await ws.send(json.dumps({
                    "type": signaling.SignalType.JOIN_VIEWER.value,
                    "streamId": self.stream_id,
                }))
                async for raw in ws:
                    if isinstance(raw, bytes):
                        self.handle_message(raw)
                    elif self.handle_control(raw) is ControlAction.REJOIN:
                        return
            finally:
                self._ws = None

    async def stop(self) -> None:
        """End run(): no further reconnects; closes the live socket."""
        self._stopped.set()
        ws = self._ws
        if ws is not None:
            await ws.close()

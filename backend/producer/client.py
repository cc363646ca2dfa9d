"""
Producer-side relay client.

Declares a stream on the relay websocket, then publishes framing messages:
encoded video frames, µ-law audio chunks and playback config. Control
messages coming back (producer-ok, viewer-joined, viewer-left,
producer-replaced, relayed signaling) are logged and handed to an optional
callback.

Capture itself is an external collaborator: feed RawFrame / PCM reads in.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Mapping, Optional

from websockets.asyncio.client import ClientConnection, connect as ws_connect
from websockets.exceptions import ConnectionClosed

from audio.encoder import AudioEncoder
from audio.frames import AudioChunk
from observability.logger import log_event
from protocol.framing import PlaybackConfig, encode_audio, encode_config, encode_frame
from protocol.signaling import OutboundType, SignalType
from video.encoder import FrameEncoder, RawFrame
from video.frames import Frame


class ProducerClient:
    """
    One capture session publishing to one stream id.

    Usage:
        client = ProducerClient(url, stream_id="living-room")
        await client.connect()
        await client.send_raw_frame(raw)
        await client.send_pcm(pcm_bytes)
        await client.close()
    """

    def __init__(
        self,
        url: str,
        *,
        stream_id: str,
        metadata: Optional[Mapping[str, Any]] = None,
        frame_encoder: Optional[FrameEncoder] = None,
        audio_encoder: Optional[AudioEncoder] = None,
        on_control: Optional[Callable[[dict[str, Any]], None]] = None,
    ) -> None:
        self.url = url
        self.stream_id = stream_id
        self.metadata = dict(metadata or {})
        self.frame_encoder = frame_encoder or FrameEncoder()
        self.audio_encoder = audio_encoder or AudioEncoder()
        self._on_control = on_control

        self._ws: Optional[ClientConnection] = None
        self._recv_task: Optional[asyncio.Task[None]] = None
        self.viewers: set[str] = set()
        self.replaced = False
        self.frames_sent = 0
        self.chunks_sent = 0

    @property
    def connected(self) -> bool:
        return self._ws is not None

    # -------------------------
    # Lifecycle
    # -------------------------

    async def connect(self) -> None:
        """Open the websocket and declare the stream."""
        self._ws = await ws_connect(self.url, max_size=None)
        await self._ws.send(json.dumps({
            "type": SignalType.DECLARE_PRODUCER.value,
            "streamId": self.stream_id,
            "metadata": self.metadata,
        }))
        self._recv_task = asyncio.create_task(self._recv_loop())
        log_event({
            "event_type": "PRODUCER_CONNECTED",
            "stream_id": self.stream_id,
            "url": self.url,
        })

    async def close(self) -> None:
        ws = self._ws
        self._ws = None

        if self._recv_task is not None and not self._recv_task.done():
            self._recv_task.cancel()
            try:
                await self._recv_task
            except asyncio.CancelledError:
                pass
        self._recv_task = None

        if ws is not None:
            await ws.close()

        self.frame_encoder.reset()
        self.audio_encoder.reset()
        log_event({
            "event_type": "PRODUCER_CLOSED",
            "stream_id": self.stream_id,
            "frames_sent": self.frames_sent,
            "chunks_sent": self.chunks_sent,
        })

    # -------------------------
    # Publishing
    # -------------------------

    async def _send(self, payload: bytes) -> None:
        if self._ws is None:
            raise RuntimeError("producer is not connected")
        await self._ws.send(payload)

    async def send_frame(self, frame: Frame) -> None:
        await self._send(encode_frame(frame))
        self.frames_sent += 1

    async def send_raw_frame(self, raw: RawFrame) -> bool:
        """
        Encode and send one captured frame.

        Returns False if the FPS throttle dropped it.
        """
        frame = self.frame_encoder.encode(raw)
        if frame is None:
            return False
        await self.send_frame(frame)
        return True

    async def send_chunk(self, chunk: AudioChunk) -> None:
        await self._send(encode_audio(chunk))
        self.chunks_sent += 1

    async def send_pcm(self, pcm16_bytes: bytes) -> int:
        """Encode one capture read; returns the number of chunks sent."""
        chunks = self.audio_encoder.push(pcm16_bytes)
        for chunk in chunks:
            await self.send_chunk(chunk)
        return len(chunks)

    async def send_config(self, config: PlaybackConfig) -> None:
        await self._send(encode_config(config))

    async def send_signal(
        self,
        kind: SignalType,
        payload: Any,
        *,
        target_viewer_id: Optional[str] = None,
    ) -> None:
        """Send an offer / ice-candidate to one viewer (or all when untargeted)."""
        if self._ws is None:
            raise RuntimeError("producer is not connected")
        message: dict[str, Any] = {"type": kind.value, "payload": payload}
        if target_viewer_id is not None:
            message["targetViewerId"] = target_viewer_id
        await self._ws.send(json.dumps(message))

    # -------------------------
    # Control channel
    # -------------------------

    def handle_control(self, message: dict[str, Any]) -> None:
        """Track viewers and eviction from relay control messages."""
        msg_type = message.get("type")
        viewer_id = message.get("viewerId")

        if msg_type == OutboundType.VIEWER_JOINED.value and isinstance(viewer_id, str):
            self.viewers.add(viewer_id)
        elif msg_type == OutboundType.VIEWER_LEFT.value and isinstance(viewer_id, str):
            self.viewers.discard(viewer_id)
        elif msg_type == OutboundType.PRODUCER_REPLACED.value:
            self.replaced = True
            self.viewers.clear()
        elif msg_type == OutboundType.ERROR.value:
            log_event({
                "event_type": "PRODUCER_RELAY_ERROR",
                "stream_id": self.stream_id,
                "code": message.get("code"),
                "message": message.get("message"),
            })

        if self._on_control is not None:
            self._on_control(message)

    async def _recv_loop(self) -> None:
        ws = self._ws
        if ws is None:
            return
        try:
            async for raw in ws:
                if isinstance(raw, bytes):
                    continue
                try:
                    message = json.loads(raw)
                except ValueError:
                    continue
                if isinstance(message, dict):
                    self.handle_control(message)
        except ConnectionClosed as e:
            log_event({
                "event_type": "PRODUCER_CONNECTION_CLOSED",
                "stream_id": self.stream_id,
                "code": e.rcvd.code if e.rcvd is not None else None,
            })

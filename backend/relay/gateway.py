"""
Relay gateway: one instance per websocket.

Responsibilities:
- Own the Connection (and its Outbox) for this socket
- Parse inbound signaling JSON and dispatch to the router
- Hand binary framing messages to the router for fan-out
- Turn relay errors into `error` replies; nothing here closes the socket
- Run the disconnect cascade exactly once

NOT responsible for:
- Socket I/O (server.routes drains the outbox)
- Decoding media payloads (the relay forwards bytes unmodified)
"""

from __future__ import annotations

from typing import Any

from observability.logger import log_event
from protocol import signaling
from protocol.errors import MalformedMessage
from protocol.framing import peek_tag
from protocol.signaling import (
    DeclareProducer,
    JoinViewer,
    ListActiveStreams,
    SignalingMessage,
    parse_inbound,
)
from relay.connection import Connection
from relay.errors import RelayError
from relay.outbox import Outbox
from relay.router import RelayRouter
from spec import FANOUT_DROP_LOG_EVERY, OUTBOX_MAX_CONTROL, VIEWER_OUTBOX_MAX_MEDIA_DEFAULT


class RelayGateway:
    """
    Boundary between one websocket and the shared RelayRouter.

    Methods are synchronous and never await: every reply goes into the
    connection outbox, which the route's sender task drains.
    """

    def __init__(
        self,
        *,
        router: RelayRouter,
        outbox_max_media: int = VIEWER_OUTBOX_MAX_MEDIA_DEFAULT,
        outbox_max_control: int = OUTBOX_MAX_CONTROL,
    ) -> None:
        self._router = router
        self.connection = Connection(
            outbox=Outbox(max_media=outbox_max_media, max_control=outbox_max_control)
        )
        self._fanout_drops = 0
        self._drop_events = 0
        self._malformed = 0

    @property
    def connection_id(self) -> str:
        return self.connection.connection_id

    @property
    def outbox(self) -> Outbox:
        return self.connection.outbox

    # -------------------------
    # Lifecycle
    # -------------------------

    def on_ws_connect(self) -> None:
        """Queue the hello message carrying this connection's id."""
        self.connection.send_control(signaling.hello(self.connection_id))
        log_event({
            "event_type": "WS_CONNECTED",
            "connection_id": self.connection_id,
        })

    def on_ws_disconnect(self, *, reason: str) -> None:
        """Run the router's disconnect cascade. Safe to call more than once."""
        if self.connection.is_disposed:
            return

        role = self.connection.role.value
        stream_id = self.connection.stream_id
        self._router.disconnect(self.connection)

        log_event({
            "event_type": "WS_DISCONNECTED",
            "connection_id": self.connection_id,
            "reason": reason,
            "role": role,
            "stream_id": stream_id,
            "outbox": self.outbox.snapshot(),
        })

    # -------------------------
    # Inbound
    # -------------------------

    def on_json_message(self, text: str) -> None:
        """Handle one signaling text frame."""
        try:
            message = parse_inbound(text)
        except MalformedMessage as e:
            self._on_malformed(str(e))
            self._reply_error("malformed", str(e))
            return

        try:
            self._dispatch(message)
        except RelayError as e:
            log_event({
                "event_type": "RELAY_REQUEST_REJECTED",
                "connection_id": self.connection_id,
                "stream_id": self.connection.stream_id,
                "error": type(e).__name__,
                "code": e.code,
                "message": str(e),
            })
            self._reply_error(e.code, str(e) or type(e).__name__)

    def on_binary_message(self, data: bytes) -> None:
        """Fan one framing message out to the stream's viewers."""
        if peek_tag(data) is None:
            self._on_malformed("empty binary message")
            return

        try:
            result = self._router.publish_media(self.connection, data)
        except RelayError as e:
            self._reply_error(e.code, str(e))
            return

        if result.dropped:
            self._fanout_drops += result.dropped
            self._drop_events += 1
            if self._drop_events % FANOUT_DROP_LOG_EVERY == 1:
                log_event({
                    "event_type": "RELAY_FANOUT_DROPS",
                    "connection_id": self.connection_id,
                    "stream_id": self.connection.stream_id,
                    "dropped_total": self._fanout_drops,
                    "delivered": result.delivered,
                })

    # -------------------------
    # Dispatch
    # -------------------------

    def _dispatch(self, message: Any) -> None:
        if isinstance(message, DeclareProducer):
            self._router.declare_producer(
                self.connection, message.stream_id, message.metadata
            )
        elif isinstance(message, JoinViewer):
            self._router.join_viewer(self.connection, message.stream_id)
        elif isinstance(message, ListActiveStreams):
            self.connection.send_control(
                signaling.streams(self._router.list_active_streams())
            )
        elif isinstance(message, SignalingMessage):
            self._router.relay_signal(self.connection, message)

    def _reply_error(self, code: str, message: str) -> None:
        self.connection.send_control(signaling.error(code, message))

    def _on_malformed(self, detail: str) -> None:
        self._malformed += 1
        log_event({
            "event_type": "PROTOCOL_MALFORMED_MESSAGE",
            "connection_id": self.connection_id,
            "detail": detail,
            "count": self._malformed,
        })

"""
Relay router: producer/viewer membership, media fan-out, signaling relay.

Responsibilities:
- Keep the stream table (stream_id -> producer + viewers)
- Apply the producer conflict policy (replace or reject)
- Fan media out to every viewer outbox without awaiting
- Relay offer / answer / ice-candidate between producer and viewers
- Run the disconnect cascade (stream-ended / viewer-left)

Non-responsibilities:
- No sockets: everything outbound goes into Connection.outbox
- No parsing: callers hand in decoded signaling and raw media bytes

Locking:
- `_table_lock` guards insert/remove/list on the stream table.
- Each _StreamRecord has its own lock for membership and fan-out.
- Order is record lock -> table lock (disconnect), never the reverse.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from config import PRODUCER_POLICY_REJECT, PRODUCER_POLICY_REPLACE
from observability.logger import log_event
from protocol import signaling
from protocol.signaling import SignalingMessage
from relay.connection import Connection, ConnectionRole
from relay.errors import PermissionDenied, StreamConflict, StreamNotFound


@dataclass(frozen=True)
class FanoutResult:
    """Per-message fan-out outcome."""
    delivered: int = 0
    dropped: int = 0


@dataclass
class _StreamRecord:
    stream_id: str
    producer: Connection
    metadata: Mapping[str, Any] = field(default_factory=dict)
    created_at: float = field(default_factory=time.monotonic)
    viewers: dict[str, Connection] = field(default_factory=dict)
    closed: bool = False
    media_messages: int = 0
    media_drops: int = 0

    def __post_init__(self) -> None:
        self.lock = threading.Lock()


class RelayRouter:
    """
    Process-wide relay state.

    Owned by the app (app.state.router) and shared by every websocket.
    """

    def __init__(self, *, conflict_policy: str = PRODUCER_POLICY_REPLACE) -> None:
        if conflict_policy not in (PRODUCER_POLICY_REPLACE, PRODUCER_POLICY_REJECT):
            raise ValueError(f"unknown producer conflict policy: {conflict_policy!r}")
        self._policy = conflict_policy
        self._table_lock = threading.Lock()
        self._streams: dict[str, _StreamRecord] = {}

    def _lookup(self, stream_id: str) -> Optional[_StreamRecord]:
        with self._table_lock:
            return self._streams.get(stream_id)

    # -------------------------
    # Membership
    # -------------------------

    def declare_producer(
        self,
        conn: Connection,
        stream_id: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """
        Make conn the producer of stream_id.

        Returns:
            True if an existing producer was replaced.

        Raises:
            IllegalTransition if conn already has a role.
            StreamConflict under the reject policy when the stream is live.
        """
        conn.check_unbound()
        metadata = dict(metadata or {})

        while True:
            with self._table_lock:
                record = self._streams.get(stream_id)
                if record is None:
                    conn.bind_producer(stream_id)
                    self._streams[stream_id] = _StreamRecord(
                        stream_id=stream_id, producer=conn, metadata=metadata
                    )
                    conn.send_control(signaling.producer_ok(stream_id, replaced=False))
                    log_event({
                        "event_type": "RELAY_STREAM_CREATED",
                        "stream_id": stream_id,
                        "connection_id": conn.connection_id,
                    })
                    return False

            with record.lock:
                if record.closed:
                    # Lost a race with the old producer's disconnect; start over
                    continue
                if self._policy == PRODUCER_POLICY_REJECT:
                    raise StreamConflict(f"stream {stream_id!r} already has a producer")

                previous = record.producer
                conn.bind_producer(stream_id)
                record.producer = conn
                record.metadata = metadata

                previous.detach()
                previous.send_control(signaling.producer_replaced(stream_id), terminal=True)

                conn.send_control(signaling.producer_ok(stream_id, replaced=True))
                for viewer_id in record.viewers:
                    conn.send_control(signaling.viewer_joined(stream_id, viewer_id))

                viewer_count = len(record.viewers)

            log_event({
                "event_type": "RELAY_PRODUCER_REPLACED",
                "stream_id": stream_id,
                "connection_id": conn.connection_id,
                "previous_connection_id": previous.connection_id,
                "viewers": viewer_count,
            })
            return True

    def join_viewer(self, conn: Connection, stream_id: str) -> None:
        """
        Attach conn as a viewer of stream_id.

        Raises:
            IllegalTransition if conn already has a role.
            StreamNotFound if the stream has no live producer.
        """
        conn.check_unbound()
        record = self._lookup(stream_id)
        if record is None:
            raise StreamNotFound(stream_id)

        with record.lock:
            if record.closed:
                raise StreamNotFound(stream_id)
            conn.bind_viewer(stream_id)
            record.viewers[conn.connection_id] = conn
            conn.send_control(signaling.joined(stream_id))
            record.producer.send_control(
                signaling.viewer_joined(stream_id, conn.connection_id)
            )
            viewer_count = len(record.viewers)

        log_event({
            "event_type": "RELAY_VIEWER_JOINED",
            "stream_id": stream_id,
            "connection_id": conn.connection_id,
            "viewers": viewer_count,
        })

    # -------------------------
    # Media + signaling
    # -------------------------

    def _producer_record(self, conn: Connection) -> _StreamRecord:
        if conn.role is not ConnectionRole.PRODUCER or conn.stream_id is None:
            raise PermissionDenied("only a stream's producer may publish media")
        record = self._lookup(conn.stream_id)
        if record is None:
            raise PermissionDenied("stream is gone")
        return record

    def publish_media(self, conn: Connection, message: bytes) -> FanoutResult:
        """
        Deliver one framed media message, unmodified, to every viewer.

        A full viewer outbox drops the message for that viewer only.

        Raises:
            PermissionDenied unless conn is the stream's current producer.
        """
        record = self._producer_record(conn)
        delivered = 0
        dropped = 0
        with record.lock:
            if record.closed or record.producer is not conn:
                raise PermissionDenied("only a stream's producer may publish media")
            for viewer in record.viewers.values():
                if viewer.outbox.offer_media(message):
                    delivered += 1
                else:
                    dropped += 1
            record.media_messages += 1
            record.media_drops += dropped
        return FanoutResult(delivered=delivered, dropped=dropped)

    def relay_signal(self, conn: Connection, signal: SignalingMessage) -> int:
        """
        Forward offer / answer / ice-candidate.

        producer -> target viewer, or every viewer when no target is named.
        viewer   -> producer.

        Returns:
            Number of connections the message was queued for. Missing
            targets are a silent no-op (0).

        Raises:
            PermissionDenied if conn is not attached to a stream.
        """
        role = conn.role
        stream_id = conn.stream_id
        if role not in (ConnectionRole.PRODUCER, ConnectionRole.VIEWER) or stream_id is None:
            raise PermissionDenied("connection is not attached to a stream")

        record = self._lookup(stream_id)
        if record is None:
            return 0

        with record.lock:
            if record.closed:
                return 0

            if role is ConnectionRole.PRODUCER:
                if record.producer is not conn:
                    raise PermissionDenied("connection is no longer the producer")
                if signal.target_viewer_id is not None:
                    target = record.viewers.get(signal.target_viewer_id)
                    targets = [target] if target is not None else []
                else:
                    targets = list(record.viewers.values())
            else:
                if conn.connection_id not in record.viewers:
                    return 0
                targets = [record.producer]

            outbound = signaling.relayed(
                signal,
                source_id=conn.connection_id,
                source_role=role.value,
                stream_id=stream_id,
            )
            return sum(1 for target in targets if target.send_control(outbound))

    # -------------------------
    # Disconnect cascade
    # -------------------------

    def disconnect(self, conn: Connection) -> None:
        """
        Dispose conn and notify the other side of its stream.

        producer: stream removed, every viewer gets exactly one stream-ended
                  and is detached.
        viewer:   removed from the viewer set, producer gets viewer-left.

        Idempotent.
        """
        role = conn.role
        stream_id = conn.stream_id
        record = self._lookup(stream_id) if stream_id is not None else None

        if record is not None and role is ConnectionRole.PRODUCER:
            self._end_stream(record, conn)
        elif record is not None and role is ConnectionRole.VIEWER:
            self._remove_viewer(record, conn)

        conn.dispose()

    def _end_stream(self, record: _StreamRecord, producer: Connection) -> None:
        with record.lock:
            if record.closed or record.producer is not producer:
                return
            record.closed = True
            viewers = list(record.viewers.values())
            record.viewers.clear()
            for viewer in viewers:
                viewer.send_control(signaling.stream_ended(record.stream_id), terminal=True)
                viewer.detach()
            with self._table_lock:
                if self._streams.get(record.stream_id) is record:
                    del self._streams[record.stream_id]

        log_event({
            "event_type": "RELAY_STREAM_ENDED",
            "stream_id": record.stream_id,
            "connection_id": producer.connection_id,
            "viewers_notified": len(viewers),
            "media_messages": record.media_messages,
            "media_drops": record.media_drops,
        })

    def _remove_viewer(self, record: _StreamRecord, viewer: Connection) -> None:
        with record.lock:
            if record.viewers.pop(viewer.connection_id, None) is None:
                return
            if not record.closed:
                record.producer.send_control(
                    signaling.viewer_left(record.stream_id, viewer.connection_id)
                )
            viewer_count = len(record.viewers)

        log_event({
            "event_type": "RELAY_VIEWER_LEFT",
            "stream_id": record.stream_id,
            "connection_id": viewer.connection_id,
            "viewers": viewer_count,
        })

    # -------------------------
    # Introspection
    # -------------------------

    def list_active_streams(self) -> list[str]:
        with self._table_lock:
            return sorted(self._streams)

    def describe_streams(self) -> list[dict[str, Any]]:
        """Stream ids with viewer counts and producer metadata, sorted by id."""
        with self._table_lock:
            records = sorted(self._streams.values(), key=lambda r: r.stream_id)

        out: list[dict[str, Any]] = []
        for record in records:
            with record.lock:
                if record.closed:
                    continue
                out.append({
                    "streamId": record.stream_id,
                    "viewers": len(record.viewers),
                    "metadata": dict(record.metadata),
                })
        return out

    def viewer_ids(self, stream_id: str) -> list[str]:
        """Viewer connection ids of a live stream (empty if unknown)."""
        record = self._lookup(stream_id)
        if record is None:
            return []
        with record.lock:
            return list(record.viewers)

"""
Relay connection record and its role FSM.

    UNBOUND --declare-producer--> PRODUCER
    UNBOUND --join-viewer-------> VIEWER
    any     --disconnect--------> DISPOSED (terminal)

A role is taken once. An evicted producer or a viewer whose stream ended
keeps its role but loses its stream association (stream_id -> None).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from relay.errors import IllegalTransition
from relay.outbox import Outbox


class ConnectionRole(str, Enum):
    UNBOUND = "unbound"
    PRODUCER = "producer"
    VIEWER = "viewer"
    DISPOSED = "disposed"


def new_connection_id() -> str:
    return f"conn_{uuid4().hex[:12]}"


class Connection:
    """
    One websocket peer as seen by the relay.

    The router mutates role/stream_id under the owning stream's lock; the
    connection's own handler only reads them.
    """

    def __init__(self, *, outbox: Outbox, connection_id: Optional[str] = None) -> None:
        self.connection_id = connection_id or new_connection_id()
        self.outbox = outbox
        self.role = ConnectionRole.UNBOUND
        self.stream_id: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"Connection({self.connection_id!r}, role={self.role.value}, "
            f"stream_id={self.stream_id!r})"
        )

    # -------------------------
    # Transitions
    # -------------------------

    def _bind(self, role: ConnectionRole, stream_id: str) -> None:
        if self.role is not ConnectionRole.UNBOUND:
            raise IllegalTransition(
                f"{self.connection_id}: {self.role.value} -> {role.value} not allowed"
            )
        self.role = role
        self.stream_id = stream_id

    def bind_producer(self, stream_id: str) -> None:
        self._bind(ConnectionRole.PRODUCER, stream_id)

    def bind_viewer(self, stream_id: str) -> None:
        self._bind(ConnectionRole.VIEWER, stream_id)

    def detach(self) -> None:
        """Drop the stream association; the role stays."""
        self.stream_id = None

    def dispose(self) -> None:
        """Terminal. Closes the outbox so the sender task can finish."""
        self.role = ConnectionRole.DISPOSED
        self.stream_id = None
        self.outbox.close()

    # -------------------------
    # Helpers
    # -------------------------

    @property
    def is_disposed(self) -> bool:
        return self.role is ConnectionRole.DISPOSED

    def check_unbound(self) -> None:
        """Raise IllegalTransition unless a role can still be taken."""
        if self.role is not ConnectionRole.UNBOUND:
            raise IllegalTransition(
                f"{self.connection_id}: already {self.role.value}"
            )

    def send_control(self, message: dict[str, Any], *, terminal: bool = False) -> bool:
        return self.outbox.offer_control(message, terminal=terminal)

"""
Signaling message schema for the relay websocket (JSON text frames).

Inbound (client -> relay):
    {"type": "declare-producer", "streamId": "...", "metadata": {...}?}
    {"type": "join-viewer", "streamId": "..."}
    {"type": "offer", "payload": ..., "targetViewerId": "..."?}
    {"type": "answer", "payload": ...}
    {"type": "ice-candidate", "payload": ..., "targetViewerId": "..."?}
    {"type": "list-active-streams"}

Outbound (relay -> client) messages are built by the helpers at the bottom
of this module so every producer of control traffic spells them the same.

Rules:
- The set of inbound types is closed; anything else is MalformedMessage.
- Unknown keys are ignored (forward compatibility).
- Payloads (SDP, ICE candidates) are opaque; the relay never inspects them.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Union

from protocol.errors import MalformedMessage


class SignalType(str, Enum):
    """Inbound message types understood by the relay."""

    DECLARE_PRODUCER = "declare-producer"
    JOIN_VIEWER = "join-viewer"
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"
    LIST_ACTIVE_STREAMS = "list-active-streams"


class OutboundType(str, Enum):
    """Outbound message types emitted by the relay."""

    HELLO = "hello"
    PRODUCER_OK = "producer-ok"
    PRODUCER_REPLACED = "producer-replaced"
    JOINED = "joined"
    STREAMS = "streams"
    ERROR = "error"
    STREAM_ENDED = "stream-ended"
    VIEWER_JOINED = "viewer-joined"
    VIEWER_LEFT = "viewer-left"


RELAYED_TYPES = frozenset({SignalType.OFFER, SignalType.ANSWER, SignalType.ICE_CANDIDATE})


# =============================================================================
# Inbound schema
# =============================================================================

@dataclass(frozen=True)
class DeclareProducer:
    stream_id: str
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class JoinViewer:
    stream_id: str


@dataclass(frozen=True)
class ListActiveStreams:
    pass


@dataclass(frozen=True)
class SignalingMessage:
    """
    offer / answer / ice-candidate.

    target_viewer_id:
        Only meaningful producer -> viewer. None means "every viewer"
        (compat mode).
    """
    kind: SignalType
    payload: Any
    target_viewer_id: Optional[str] = None


InboundMessage = Union[DeclareProducer, JoinViewer, ListActiveStreams, SignalingMessage]


def _require_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedMessage(f"'{key}' must be a non-empty string")
    return value


def parse_inbound(text: str) -> InboundMessage:
    """
    Parse one inbound signaling frame.

    Raises:
        MalformedMessage on bad JSON, a non-object body, an unknown type,
        or a missing required field.
    """
    try:
        data = json.loads(text)
    except ValueError as e:
        raise MalformedMessage(f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedMessage("signaling message must be a JSON object")

    raw_type = data.get("type")
    try:
        msg_type = SignalType(raw_type)
    except ValueError as e:
        raise MalformedMessage(f"unknown message type: {raw_type!r}") from e

    if msg_type is SignalType.DECLARE_PRODUCER:
        metadata = data.get("metadata")
        return DeclareProducer(
            stream_id=_require_str(data, "streamId"),
            metadata=metadata if isinstance(metadata, dict) else {},
        )

    if msg_type is SignalType.JOIN_VIEWER:
        return JoinViewer(stream_id=_require_str(data, "streamId"))

    if msg_type is SignalType.LIST_ACTIVE_STREAMS:
        return ListActiveStreams()

    if "payload" not in data:
        raise MalformedMessage(f"'{msg_type.value}' requires a payload")

    target = data.get("targetViewerId")
    if target is not None and not isinstance(target, str):
        raise MalformedMessage("'targetViewerId' must be a string")

    return SignalingMessage(
        kind=msg_type,
        payload=data["payload"],
        target_viewer_id=target or None,
    )


# =============================================================================
# Outbound builders
# =============================================================================

def hello(connection_id: str) -> dict[str, Any]:
    return {"type": OutboundType.HELLO.value, "connectionId": connection_id}


def producer_ok(stream_id: str, *, replaced: bool) -> dict[str, Any]:
    return {"type": OutboundType.PRODUCER_OK.value, "streamId": stream_id, "replaced": replaced}


def producer_replaced(stream_id: str) -> dict[str, Any]:
    return {"type": OutboundType.PRODUCER_REPLACED.value, "streamId": stream_id}


def joined(stream_id: str) -> dict[str, Any]:
    return {"type": OutboundType.JOINED.value, "streamId": stream_id}


def streams(stream_ids: list[str]) -> dict[str, Any]:
    return {"type": OutboundType.STREAMS.value, "streams": stream_ids}


def error(code: str, message: str) -> dict[str, Any]:
    return {"type": OutboundType.ERROR.value, "code": code, "message": message}


def stream_ended(stream_id: str) -> dict[str, Any]:
    return {"type": OutboundType.STREAM_ENDED.value, "streamId": stream_id}


def viewer_joined(stream_id: str, viewer_id: str) -> dict[str, Any]:
    return {"type": OutboundType.VIEWER_JOINED.value, "streamId": stream_id, "viewerId": viewer_id}


def viewer_left(stream_id: str, viewer_id: str) -> dict[str, Any]:
    return {"type": OutboundType.VIEWER_LEFT.value, "streamId": stream_id, "viewerId": viewer_id}


def relayed(
    signal: SignalingMessage,
    *,
    source_id: str,
    source_role: str,
    stream_id: str,
) -> dict[str, Any]:
    """Outbound form of an offer / answer / ice-candidate."""
    out: dict[str, Any] = {
        "type": signal.kind.value,
        "payload": signal.payload,
        "from": source_id,
        "sourceRole": source_role,
        "streamId": stream_id,
    }
    if signal.target_viewer_id is not None:
        out["targetViewerId"] = signal.target_viewer_id
    return out

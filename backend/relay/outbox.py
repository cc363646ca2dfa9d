"""
Bounded per-connection outbound queue.

Requirements:
- Fan-out never awaits: offers are synchronous and never block
- Media and control traffic have separate caps
- Overflow drops the NEW media message for this connection only
- Drop reasons distinguishable for observability
- FIFO across both kinds (one send order per connection)
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Deque, Optional, Union

from spec import OUTBOX_MAX_CONTROL, VIEWER_OUTBOX_MAX_MEDIA_DEFAULT


# bytes -> binary websocket frame, dict -> JSON text frame
OutboundItem = Union[bytes, dict[str, Any]]


class DropReason(str, Enum):
    """
    Reason an outbound message was dropped.
    """
    MEDIA_OVERFLOW = "media_overflow"
    CONTROL_OVERFLOW = "control_overflow"
    CLOSED = "closed"


@dataclass
class DropCounters:
    """
    Drop counters for observability.
    """
    media_overflow: int = 0
    control_overflow: int = 0
    closed: int = 0


class Outbox:
    """
    Bounded FIFO of outbound messages for one connection.

    Producers (router fan-out, gateway replies) call offer_*; exactly one
    sender task drains it with `await get()`.
    """

    def __init__(
        self,
        *,
        max_media: int = VIEWER_OUTBOX_MAX_MEDIA_DEFAULT,
        max_control: int = OUTBOX_MAX_CONTROL,
    ) -> None:
        if max_media <= 0:
            raise ValueError("max_media must be > 0")
        if max_control <= 0:
            raise ValueError("max_control must be > 0")

        self._max_media = max_media
        self._max_control = max_control
        self._items: Deque[tuple[bool, OutboundItem]] = deque()
        self._media = 0
        self._control = 0
        self._closed = False
        self._ready = asyncio.Event()
        self.drops: DropCounters = DropCounters()

    # -------------------------
    # Producer side
    # -------------------------

    def offer_media(self, data: bytes) -> bool:
        """
        Enqueue one binary media message.

        Returns:
            True if enqueued
            False if dropped (full or closed)
        """
        if self._closed:
            self.drops.closed += 1
            return False
        if self._media >= self._max_media:
            self.drops.media_overflow += 1
            return False

        self._items.append((True, data))
        self._media += 1
        self._ready.set()
        return True

    def offer_control(self, message: dict[str, Any], *, terminal: bool = False) -> bool:
        """
        Enqueue one JSON control message. Same return contract as offer_media.

        terminal:
            Last message of a stream association (stream-ended,
            producer-replaced). Skips the control cap; each connection gets
            at most one per role.
        """
        if self._closed:
            self.drops.closed += 1
            return False
        if self._control >= self._max_control and not terminal:
            self.drops.control_overflow += 1
            return False

        self._items.append((False, message))
        self._control += 1
        self._ready.set()
        return True

    # -------------------------
    # Consumer side
    # -------------------------

    def get_nowait(self) -> Optional[OutboundItem]:
        """Pop the oldest message, or None if empty."""
        if not self._items:
            return None
        is_media, item = self._items.popleft()
        if is_media:
            self._media -= 1
        else:
            self._control -= 1
        return item

    async def get(self) -> Optional[OutboundItem]:
        """
        Wait for the next message.

        Returns None once the outbox is closed and fully drained.
        """
        while not self._items:
            if self._closed:
                return None
            self._ready.clear()
            await self._ready.wait()
        return self.get_nowait()

    def close(self) -> None:
        """
        Refuse further offers. Already queued messages can still be drained.
        Idempotent.
        """
        self._closed = True
        self._ready.set()

    # -------------------------
    # Introspection helpers
    # -------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._items)

    def total_drops(self) -> int:
        return self.drops.media_overflow + self.drops.control_overflow + self.drops.closed

    def snapshot(self) -> dict[str, int]:
        """
        Lightweight snapshot for logging.
        """
        return {
            "queued_media": self._media,
            "queued_control": self._control,
            "dropped_media_overflow": self.drops.media_overflow,
            "dropped_control_overflow": self.drops.control_overflow,
            "dropped_closed": self.drops.closed,
            "dropped_total": self.total_drops(),
        }

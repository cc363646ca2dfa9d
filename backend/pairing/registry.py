"""
Pairing session registry.

Responsibilities:
- Allocate pairing sessions (the id encoded in the QR deep link)
- Record the endpoint URL the capture device binds to a session
- Deliver a single "ready" notification to every pending subscriber
- Answer polling reads from the same state (no second source of truth)
- Drop idle sessions after a tunable TTL

Non-responsibilities:
- No HTTP, no SSE framing (see server.routes)
- No QR rendering

Concurrency:
- One table lock guards insert/remove/lookup.
- Each session carries its own lock; bind/subscribe on one session never
  waits on another session.
"""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass, field
from itertools import count
from typing import Callable, Optional
from uuid import uuid4

from observability.logger import log_event
from protocol.errors import NotFound
from spec import SESSION_ID_RANDOM_HEX_CHARS, SESSION_IDLE_TTL_S_DEFAULT


# ------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------

class SessionNotFound(NotFound):
    """Raised when a pairing session id is unknown (never created, or pruned)."""


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(value: int) -> str:
    if value <= 0:
        return "0"
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def new_session_id() -> str:
    """Random hex prefix + base36 wall-clock ms suffix."""
    random_part = uuid4().hex[:SESSION_ID_RANDOM_HEX_CHARS]
    return random_part + _base36(time.time_ns() // 1_000_000)


# ------------------------------------------------------------------
# Subscription (single-shot notification channel)
# ------------------------------------------------------------------

_subscription_ids = count(1)


class Subscription:
    """
    One-time "ready" notification for a pairing session.

    States: pending -> fired | cancelled. Both end states are final.

    `wait()` must be awaited from an event loop; `notify()` and `cancel()`
    are synchronous and may be called from anywhere on that loop.
    """

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self.subscription_id = next(_subscription_ids)
        self._event = asyncio.Event()
        self._url: Optional[str] = None
        self._cancelled = False

    @property
    def fired(self) -> bool:
        return self._url is not None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def url(self) -> Optional[str]:
        return self._url

    def notify(self, url: str) -> bool:
        """Deliver the ready URL. Returns False if already fired or cancelled."""
        if self._url is not None or self._cancelled:
            return False
        self._url = url
        self._event.set()
        return True

    def cancel(self) -> None:
        """Abandon the subscription. Idempotent; no effect after firing."""
        if self._url is not None or self._cancelled:
            return
        self._cancelled = True
        self._event.set()

    async def wait(self) -> Optional[str]:
        """Wait for the ready URL; None if cancelled first."""
        await self._event.wait()
        return self._url


# ------------------------------------------------------------------
# Session record
# ------------------------------------------------------------------

@dataclass
class PairingSession:
    """Mutable record for one pairing session. Owned by SessionRegistry."""

    session_id: str
    created_at: float = field(default_factory=time.monotonic)
    last_seen: float = field(default_factory=time.monotonic)
    bound_endpoint_url: Optional[str] = None

    def __post_init__(self) -> None:
        self.lock = threading.Lock()
        self._pending: dict[int, Subscription] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # Callers hold self.lock for the three helpers below

    def add_pending(self, sub: Subscription) -> None:
        self._pending[sub.subscription_id] = sub

    def remove_pending(self, subscription_id: int) -> None:
        self._pending.pop(subscription_id, None)

    def drain_pending(self) -> list[Subscription]:
        pending = list(self._pending.values())
        self._pending.clear()
        return pending

    def log_context(self) -> dict[str, object]:
        return {
            "session_id": self.session_id,
            "bound": self.bound_endpoint_url is not None,
            "pending_subscribers": len(self._pending),
        }


# ------------------------------------------------------------------
# Registry
# ------------------------------------------------------------------

class SessionRegistry:
    """
    Process-wide table of pairing sessions.

    Owned by the app (app.state.sessions) and injected into handlers.
    """

    def __init__(
        self,
        *,
        idle_ttl_s: float = SESSION_IDLE_TTL_S_DEFAULT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._idle_ttl_s = idle_ttl_s
        self._clock = clock
        self._table_lock = threading.Lock()
        self._sessions: dict[str, PairingSession] = {}

    # -------------------------
    # Lookup
    # -------------------------

    def _get(self, session_id: str) -> PairingSession:
        with self._table_lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def __len__(self) -> int:
        with self._table_lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._table_lock:
            return session_id in self._sessions

    # -------------------------
    # Operations
    # -------------------------

    def create_session(self, session_id: Optional[str] = None) -> PairingSession:
        """
        Allocate a fresh session with no bound endpoint.

        session_id is normally generated; an explicit one must be unused.

        Raises:
            ValueError if an explicit session_id is already registered.
        """
        now = self._clock()
        with self._table_lock:
            if session_id is None:
                session_id = new_session_id()
                while session_id in self._sessions:
                    session_id = new_session_id()
            elif session_id in self._sessions:
                raise ValueError(f"session {session_id!r} already exists")
            session = PairingSession(session_id=session_id, created_at=now, last_seen=now)
            self._sessions[session_id] = session

        log_event({"event_type": "PAIRING_SESSION_CREATED", "session_id": session_id})
        return session

    def bind_endpoint(self, session_id: str, url: str) -> int:
        """
        Bind (or re-bind) the endpoint URL and notify pending subscribers.

        Returns:
            Number of subscribers notified.

        Raises:
            SessionNotFound if the session is unknown.
            ValueError if url is empty.
        """
        if not url:
            raise ValueError("url must be non-empty")

        session = self._get(session_id)
        with session.lock:
            session.bound_endpoint_url = url
            session.last_seen = self._clock()
            pending = session.drain_pending()

        notified = sum(1 for sub in pending if sub.notify(url))

        log_event({
            "event_type": "PAIRING_SESSION_BOUND",
            "session_id": session_id,
            "url": url,
            "notified": notified,
        })
        return notified

    def subscribe(self, session_id: str) -> Subscription:
        """
        Register for the one-time ready notification.

        If the session is already bound, the returned subscription has
        already fired with the bound URL.

        Raises:
            SessionNotFound if the session is unknown.
        """
        session = self._get(session_id)
        sub = Subscription(session_id)
        with session.lock:
            session.last_seen = self._clock()
            url = session.bound_endpoint_url
            if url is None:
                session.add_pending(sub)
        if url is not None:
            sub.notify(url)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        """Remove and cancel a subscription. Idempotent; unknown sessions are fine."""
        with self._table_lock:
            session = self._sessions.get(sub.session_id)
        if session is not None:
            with session.lock:
                session.remove_pending(sub.subscription_id)
        sub.cancel()

    def status(self, session_id: str) -> Optional[str]:
        """
        Polling read of the bound endpoint URL (None until bound).

        Raises:
            SessionNotFound if the session is unknown.
        """
        session = self._get(session_id)
        with session.lock:
            session.last_seen = self._clock()
            return session.bound_endpoint_url

    # -------------------------
    # Garbage collection
    # -------------------------

    def prune_idle(self, now: Optional[float] = None) -> list[str]:
        """
        Remove sessions idle for longer than the TTL with nobody waiting.

        A TTL of 0 disables pruning.
        """
        if self._idle_ttl_s <= 0:
            return []
        now = self._clock() if now is None else now

        removed: list[str] = []
        with self._table_lock:
            for session_id, session in list(self._sessions.items()):
                with session.lock:
                    idle = now - session.last_seen
                    if idle > self._idle_ttl_s and session.pending_count == 0:
                        del self._sessions[session_id]
                        removed.append(session_id)

        if removed:
            log_event({
                "event_type": "PAIRING_SESSIONS_PRUNED",
                "count": len(removed),
                "session_ids": removed,
            })
        return removed

"""
Relay error taxonomy.

Every error here is per-request: the gateway replies with an `error`
message and the router state is left untouched.
"""

from __future__ import annotations

from protocol.errors import NotFound


class RelayError(Exception):
    """Base class for relay request failures."""

    code = "relay_error"


class StreamNotFound(NotFound, RelayError):
    """Raised when a viewer joins a stream that has no live producer."""

    code = "not_found"


class PermissionDenied(RelayError):
    """Raised when a connection acts outside its role (e.g. a viewer publishing media)."""

    code = "permission_denied"


class StreamConflict(RelayError):
    """Raised under the `reject` policy when a stream already has a live producer."""

    code = "stream_conflict"


class IllegalTransition(RelayError):
    """Raised when a connection asks for a role change its FSM does not allow."""

    code = "illegal_transition"

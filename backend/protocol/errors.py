"""
Error taxonomy shared across the relay, pairing and playback layers.

None of these are process-fatal. Boundary handlers translate them into
protocol replies (HTTP 404, websocket `error` messages) and keep serving.
"""

from __future__ import annotations


class ProtocolError(Exception):
    """Base class for wire protocol errors."""


class MalformedMessage(ProtocolError):
    """
    Raised when a message cannot be interpreted at all.

    Recovered locally: the receiver logs it and ignores the message.
    The connection stays alive.
    """


class NotFound(Exception):
    """Base class for lookups against an unknown or expired identifier."""

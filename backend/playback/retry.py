"""
Reconnect backoff helpers.

Purpose:
- Centralize the viewer reconnect schedule (1s, 2s, 4s, 8s, 8s, ...)
- Keep the engine's run loop free of arithmetic

This module contains NO timers, NO async, NO side effects.
"""
from __future__ import annotations

from dataclasses import dataclass

from spec import CLIENT_RECONNECT_INITIAL_MS, CLIENT_RECONNECT_MAX_MS


# =============================================================================
# Retry State
# =============================================================================

@dataclass(frozen=True)
class RetryAttempt:
    """
    Immutable reconnect attempt counter.

    Semantics:
    - attempt == 0: no failure since the last successful join.
    - attempt >= 1: that many consecutive failed connections.
    """
    attempt: int


def next_attempt(current: RetryAttempt) -> RetryAttempt:
    """Return a new RetryAttempt with attempt incremented by 1."""
    return RetryAttempt(attempt=current.attempt + 1)


def reset_attempt() -> RetryAttempt:
    """Returns a fresh retry attempt counter."""
    return RetryAttempt(attempt=0)


# =============================================================================
# Delay Calculation
# =============================================================================

def get_reconnect_delay_ms(
    attempt: RetryAttempt,
    *,
    initial_ms: int = CLIENT_RECONNECT_INITIAL_MS,
    max_ms: int = CLIENT_RECONNECT_MAX_MS,
) -> int:
    """
    Delay before reconnect attempt N: initial * 2**N, capped at max_ms.
    """
    if attempt.attempt < 0:
        raise ValueError("attempt must be >= 0")
    # Cap the exponent too so a long outage cannot overflow the shift
    exponent = min(attempt.attempt, max_ms.bit_length())
    return min(initial_ms << exponent, max_ms)

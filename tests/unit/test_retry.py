# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from playback.retry import RetryAttempt, get_reconnect_delay_ms, next_attempt, reset_attempt


def test_backoff_doubles_to_cap():
    attempt = reset_attempt()
    delays = []
    for _ in range(7):
        delays.append(get_reconnect_delay_ms(attempt))
        attempt = next_attempt(attempt)

    assert delays == [1000, 2000, 4000, 8000, 8000, 8000, 8000]


def test_long_outage_stays_capped():
    assert get_reconnect_delay_ms(RetryAttempt(attempt=10_000)) == 8000


def test_reset_returns_to_initial():
    assert get_reconnect_delay_ms(reset_attempt()) == 1000


def test_negative_attempt():
    with pytest.raises(ValueError):
        get_reconnect_delay_ms(RetryAttempt(attempt=-1))

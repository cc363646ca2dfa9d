# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
from typing import Any

import pytest

from observability import logger
from producer.client import ProducerClient


def make_client() -> tuple[ProducerClient, list[dict[str, Any]]]:
    seen: list[dict[str, Any]] = []
    client = ProducerClient("ws://relay.invalid/ws", stream_id="s1", on_control=seen.append)
    return client, seen


def test_tracks_viewers():
    client, seen = make_client()

    client.handle_control({"type": "producer-ok", "streamId": "s1", "replaced": False})
    client.handle_control({"type": "viewer-joined", "viewerId": "v1"})
    client.handle_control({"type": "viewer-joined", "viewerId": "v2"})
    client.handle_control({"type": "viewer-left", "viewerId": "v1"})

    assert client.viewers == {"v2"}
    assert len(seen) == 4


def test_replacement_clears_viewers():
    client, _ = make_client()
    client.handle_control({"type": "viewer-joined", "viewerId": "v1"})
    client.handle_control({"type": "producer-replaced", "streamId": "s1"})

    assert client.replaced
    assert client.viewers == set()


def test_relay_error_is_logged(monkeypatch: pytest.MonkeyPatch):
    events: list[dict[str, Any]] = []
    monkeypatch.setattr("producer.client.log_event", events.append)

    client, _ = make_client()
    client.handle_control({"type": "error", "code": "stream_conflict", "message": "s1"})

    assert events[0]["event_type"] == "PRODUCER_RELAY_ERROR"
    assert events[0]["code"] == "stream_conflict"


def test_sending_before_connect_fails(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(logger, "_print", lambda line: None)
    client, _ = make_client()

    assert not client.connected
    with pytest.raises(RuntimeError):
        asyncio.run(client.send_pcm(b"\x00\x00" * 4800))

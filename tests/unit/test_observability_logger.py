# pylint: disable=missing-module-docstring,missing-function-docstring

import json
from typing import Any

import pytest

from observability import logger


@pytest.fixture
def captured(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    lines: list[str] = []
    monkeypatch.setattr(logger, "_print", lines.append)
    monkeypatch.setattr(logger, "_json_lines", True)
    return lines


def test_log_event_emits_valid_jsonl(captured: list[str]) -> None:
    """
    - log_event emits exactly one JSONL line
    - payload fields are serialized as-is, plus a timestamp
    - output sink is patchable
    """
    payload: dict[str, Any] = {
        "event_type": "TEST",
        "value": 123,
    }

    logger.log_event(payload)

    assert len(captured) == 1

    decoded = json.loads(captured[0])
    assert isinstance(decoded.pop("ts_ms"), int)
    assert decoded == payload


def test_caller_timestamp_is_kept(captured: list[str]) -> None:
    logger.log_event({"event_type": "TEST", "ts_ms": 42})
    assert json.loads(captured[0])["ts_ms"] == 42


def test_unserializable_event_falls_back(captured: list[str]) -> None:
    logger.log_event({"event_type": "TEST", "blob": object()})

    decoded = json.loads(captured[0])
    assert decoded["event_type"] == "LOGGER_SERIALIZATION_ERROR"
    assert "TEST" in decoded["original_event_repr"]


def test_plain_lines(captured: list[str], monkeypatch: pytest.MonkeyPatch) -> None:
    logger.configure(enable_json_logs=False)
    try:
        logger.log_event({"event_type": "WS_CONNECTED", "ts_ms": 1, "connection_id": "c1"})
    finally:
        monkeypatch.setattr(logger, "_json_lines", True)

    assert captured == ["WS_CONNECTED ts_ms=1 connection_id=c1"]

# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from config import PRODUCER_POLICY_REJECT, AppConfig


def test_defaults_from_empty_env(monkeypatch: pytest.MonkeyPatch):
    for key in (
        "PORT", "BACKEND_URL", "PRODUCER_CONFLICT_POLICY",
        "VIEWER_OUTBOX_MAX_MEDIA", "SESSION_IDLE_TTL_S", "CORS_ALLOW_ORIGINS",
    ):
        monkeypatch.delenv(key, raising=False)

    config = AppConfig.load_from_env()

    assert config.port == 3000
    assert config.backend_url is None
    assert config.producer_conflict_policy == "replace"
    assert config.viewer_outbox_max_media == 64
    assert config.cors_allow_origins == ("*",)


def test_env_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("BACKEND_URL", "  https://relay.example  ")
    monkeypatch.setenv("PRODUCER_CONFLICT_POLICY", "REJECT")
    monkeypatch.setenv("VIEWER_OUTBOX_MAX_MEDIA", "8")
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "http://a, http://b")
    monkeypatch.setenv("ENABLE_JSON_LOGS", "0")

    config = AppConfig.load_from_env()

    assert config.port == 8080
    assert config.backend_url == "https://relay.example"
    assert config.producer_conflict_policy == PRODUCER_POLICY_REJECT
    assert config.viewer_outbox_max_media == 8
    assert config.cors_allow_origins == ("http://a", "http://b")
    assert config.enable_json_logs is False


def test_invalid_values_are_rejected():
    with pytest.raises(ValueError):
        AppConfig(producer_conflict_policy="merge")
    with pytest.raises(ValueError):
        AppConfig(viewer_outbox_max_media=0)
    with pytest.raises(ValueError):
        AppConfig(session_idle_ttl_s=-1)

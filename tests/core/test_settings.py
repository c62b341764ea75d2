"""Tests for RefreshQueueSettings."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from refresh_queue.core.settings import RefreshQueueSettings, get_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in (
        "REFRESH_QUEUE_FREQUENCY_SECONDS",
        "REFRESH_QUEUE_RELAY_BUFFER",
        "REFRESH_QUEUE_LOG_LEVEL",
        "REFRESH_QUEUE_JSON_LOGS",
        "REFRESH_QUEUE_SERVICE_NAME",
    ):
        monkeypatch.delenv(var, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestRefreshQueueSettings:
    """Test settings defaults and environment overrides."""

    def test_defaults(self):
        settings = RefreshQueueSettings(_env_file=None)
        assert settings.frequency == timedelta(0)
        assert settings.relay_buffer == 1
        assert settings.log_level == "INFO"
        assert settings.json_logs is None
        assert settings.service_name == "refresh-queue"

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("REFRESH_QUEUE_FREQUENCY_SECONDS", "300")
        monkeypatch.setenv("REFRESH_QUEUE_RELAY_BUFFER", "4")
        monkeypatch.setenv("REFRESH_QUEUE_JSON_LOGS", "true")
        settings = RefreshQueueSettings(_env_file=None)
        assert settings.frequency == timedelta(minutes=5)
        assert settings.relay_buffer == 4
        assert settings.json_logs is True

    def test_log_level_is_normalized(self):
        assert RefreshQueueSettings(_env_file=None, log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            RefreshQueueSettings(_env_file=None, log_level="chatty")

    def test_negative_frequency_rejected(self):
        with pytest.raises(ValidationError):
            RefreshQueueSettings(_env_file=None, frequency_seconds=-1)

    def test_zero_relay_buffer_rejected(self):
        with pytest.raises(ValidationError):
            RefreshQueueSettings(_env_file=None, relay_buffer=0)

    def test_get_settings_is_cached(self, monkeypatch):
        monkeypatch.setenv("REFRESH_QUEUE_SERVICE_NAME", "groups")
        first = get_settings()
        monkeypatch.setenv("REFRESH_QUEUE_SERVICE_NAME", "other")
        assert get_settings() is first
        assert first.service_name == "groups"

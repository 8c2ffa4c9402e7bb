"""
Tests for settings and node environment helpers.
"""

import pytest
from pydantic import ValidationError

from runseq.config import (
    EVENT_SERVER_IP_ADDRESS_ENV,
    EVENT_SERVER_PORT_NUMBER_ENV,
    Settings,
    get_settings,
    node_environment,
)
from runseq.utils.logger import LogLevel


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        EVENT_SERVER_IP_ADDRESS_ENV,
        EVENT_SERVER_PORT_NUMBER_ENV,
        "RUNSEQ_POLL_INTERVAL",
        "RUNSEQ_LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    """Defaults and environment overrides."""

    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.event_server_ip_address == "127.0.0.1"
        assert settings.event_server_port_number == 8765
        assert settings.poll_interval == 0.005
        assert settings.completion_poll_interval == 1.0
        assert settings.event_server_url == "http://127.0.0.1:8765"

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(EVENT_SERVER_PORT_NUMBER_ENV, "9000")
        monkeypatch.setenv("runseq_log_level", "debug")
        settings = Settings()
        assert settings.event_server_port_number == 9000
        assert settings.logger_level is LogLevel.DEBUG

    def test_invalid_port(self) -> None:
        with pytest.raises(ValidationError):
            Settings(event_server_port_number=70000)

    def test_invalid_poll_interval(self) -> None:
        with pytest.raises(ValidationError):
            Settings(poll_interval=0)

    def test_invalid_log_level(self) -> None:
        with pytest.raises(ValueError, match="Unknown log level"):
            Settings(log_level="loud").logger_level

    def test_get_settings_cached(self) -> None:
        assert get_settings() is get_settings()


class TestNodeEnvironment:
    """Environment handed to started nodes."""

    def test_contains_coordinator_address(self) -> None:
        env = node_environment("10.0.0.1", 8765)
        assert env == {
            EVENT_SERVER_IP_ADDRESS_ENV: "10.0.0.1",
            EVENT_SERVER_PORT_NUMBER_ENV: "8765",
        }

    def test_extra_is_not_mutated(self) -> None:
        extra = {"A": "1"}
        env = node_environment("h", 1, extra)
        assert env["A"] == "1"
        assert extra == {"A": "1"}

    def test_round_trip_through_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for key, value in node_environment("192.168.0.9", 4321).items():
            monkeypatch.setenv(key, value)
        assert Settings().event_server_url == "http://192.168.0.9:4321"

"""
Tests for the structured run logger.
"""

import io
import sys

import pytest

from runseq.utils.logger import LogLevel, RunLogger


def _logger(level: LogLevel):
    """Helper: logger writing to a StringIO."""
    stream = io.StringIO()
    return RunLogger(level=level, stream=stream), stream


class TestLevels:
    """Filtering by level."""

    def test_silent(self) -> None:
        logger, stream = _logger(LogLevel.SILENT)
        logger.error("boom")
        logger.sequence_completed()
        assert stream.getvalue() == ""

    def test_normal_shows_warnings_not_info(self) -> None:
        logger, stream = _logger(LogLevel.NORMAL)
        logger.info("hidden")
        logger.warning("careful")
        assert stream.getvalue() == "[WARNING] careful\n"

    def test_verbose_hides_debug(self) -> None:
        logger, stream = _logger(LogLevel.VERBOSE)
        logger.debug("hidden")
        logger.info("shown")
        assert stream.getvalue() == "[INFO] shown\n"

    def test_debug_shows_all(self) -> None:
        logger, stream = _logger(LogLevel.DEBUG)
        logger.debug("d")
        logger.info("i")
        assert stream.getvalue() == "[DEBUG] d\n[INFO] i\n"

    def test_silent_factory(self) -> None:
        assert RunLogger.silent().level is LogLevel.SILENT

    def test_default_stream_bound_at_creation(self, monkeypatch: pytest.MonkeyPatch) -> None:
        first, second = io.StringIO(), io.StringIO()
        monkeypatch.setattr(sys, "stdout", first)
        logger = RunLogger(LogLevel.NORMAL)
        monkeypatch.setattr(sys, "stdout", second)
        logger.warning("w")
        assert first.getvalue() == "[WARNING] w\n"
        assert second.getvalue() == ""


class TestFormatting:
    """Message formats."""

    def test_kwargs(self) -> None:
        logger, stream = _logger(LogLevel.DEBUG)
        logger.debug("Resolved e2", depends_on=["e1"])
        assert stream.getvalue() == "[DEBUG] Resolved e2\n  depends_on: ['e1']\n"

    def test_event_received(self) -> None:
        logger, stream = _logger(LogLevel.VERBOSE)
        logger.event_received("e1", 2)
        assert stream.getvalue() == "[EVENT] e1 received (2 pending)\n"

    def test_outcomes(self) -> None:
        logger, stream = _logger(LogLevel.NORMAL)
        logger.sequence_completed()
        logger.sequence_timed_out("too slow")
        lines = stream.getvalue().splitlines()
        assert lines[0].startswith("COMPLETED")
        assert lines[1] == "TIMEOUT: too slow"

    def test_statistics(self) -> None:
        logger, stream = _logger(LogLevel.VERBOSE)
        logger.statistics({"pending_events": 0})
        assert stream.getvalue() == "=== Statistics ===\n  Pending Events: 0\n"


class TestFromName:
    """LogLevel.from_name."""

    @pytest.mark.parametrize("name, level", [
        ("silent", LogLevel.SILENT),
        ("Normal", LogLevel.NORMAL),
        (" VERBOSE ", LogLevel.VERBOSE),
        ("debug", LogLevel.DEBUG),
    ])
    def test_known(self, name: str, level: LogLevel) -> None:
        assert LogLevel.from_name(name) is level

    def test_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown log level"):
            LogLevel.from_name("chatty")

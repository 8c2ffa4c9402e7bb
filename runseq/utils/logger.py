"""
Structured logging for runseq.

Provides configurable log levels (silent, normal, verbose, debug) with
consistent formatting for event receipts, run progress and statistics.
Every component accepts an optional logger and defaults to a silent one.
"""

from __future__ import annotations

import sys
import threading
from enum import Enum
from typing import Any, Dict, Optional, TextIO


class LogLevel(Enum):
    """
    Logging levels.

    SILENT:  No output at all.
    NORMAL:  Warnings, errors and the final run outcome.
    VERBOSE: Progress information and statistics.
    DEBUG:   Per-request and per-poll detail.
    """

    SILENT = 0
    NORMAL = 1
    VERBOSE = 2
    DEBUG = 3

    @classmethod
    def from_name(cls, name: str) -> LogLevel:
        """
        Look up a level by case-insensitive name.

        Raises:
            ValueError: If ``name`` is not a level name.
        """
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(
                f"Unknown log level '{name}', expected one of "
                f"{[level.name.lower() for level in cls]}"
            ) from None


class RunLogger:
    """
    Structured logger shared by the compiler, coordinator and runtime.

    Output is filtered by the configured log level. Writes are
    serialized so that lines from concurrent threads do not interleave.

    Attributes:
        level: The minimum log level to display.
        stream: The output stream (defaults to stdout).
    """

    def __init__(
        self,
        level: LogLevel = LogLevel.NORMAL,
        stream: Optional[TextIO] = None,
    ) -> None:
        """
        Initialize logger with level and output stream.

        Args:
            level: Minimum log level to display.
            stream: Output stream (default: ``sys.stdout`` as it is when
                the logger is created).
        """
        self.level: LogLevel = level
        self.stream: TextIO = stream if stream is not None else sys.stdout
        self._lock = threading.Lock()

    @classmethod
    def silent(cls) -> RunLogger:
        return cls(level=LogLevel.SILENT)

    def enabled(self, level: LogLevel) -> bool:
        return self.level.value >= level.value

    def debug(self, message: str, **kwargs: Any) -> None:
        """
        Log a debug message (only shown at DEBUG level).

        Args:
            message: The message to log.
            **kwargs: Additional key-value pairs to include.
        """
        if self.enabled(LogLevel.DEBUG):
            self._write_block(f"[DEBUG] {message}", kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """
        Log an info message (shown at VERBOSE and DEBUG levels).

        Args:
            message: The message to log.
            **kwargs: Additional key-value pairs to include.
        """
        if self.enabled(LogLevel.VERBOSE):
            self._write_block(f"[INFO] {message}", kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log a warning (shown at NORMAL level and above)."""
        if self.enabled(LogLevel.NORMAL):
            self._write_block(f"[WARNING] {message}", kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log an error (shown at NORMAL level and above)."""
        if self.enabled(LogLevel.NORMAL):
            self._write_block(f"[ERROR] {message}", kwargs)

    def event_received(self, name: str, pending: int) -> None:
        """
        Log the first receipt of an event (shown at VERBOSE level).

        Args:
            name: The received event.
            pending: Number of sequence events still outstanding.
        """
        if self.enabled(LogLevel.VERBOSE):
            self._write(f"[EVENT] {name} received ({pending} pending)")

    def sequence_completed(self) -> None:
        """Log run sequence completion (shown at NORMAL level and above)."""
        if self.enabled(LogLevel.NORMAL):
            self._write("COMPLETED: All run sequence events were received")

    def sequence_timed_out(self, reason: str) -> None:
        if self.enabled(LogLevel.NORMAL):
            self._write(f"TIMEOUT: {reason}")

    def statistics(self, stats: Dict[str, Any]) -> None:
        """
        Log run statistics (shown at VERBOSE level and above).

        Args:
            stats: Dictionary of statistic names to values.
        """
        if self.enabled(LogLevel.VERBOSE):
            lines = ["=== Statistics ==="]
            for key, value in stats.items():
                label = key.replace("_", " ").title()
                lines.append(f"  {label}: {value}")
            self._write("\n".join(lines))

    def _write_block(self, header: str, kwargs: Dict[str, Any]) -> None:
        lines = [header]
        for k, v in kwargs.items():
            lines.append(f"  {k}: {v}")
        self._write("\n".join(lines))

    def _write(self, message: str) -> None:
        """Write a line to the output stream."""
        with self._lock:
            self.stream.write(message + "\n")
            self.stream.flush()

"""
Exception hierarchy for runseq.

Compile-time problems derive from :class:`CompileError` and are raised
before any node is started. Run-time problems are timeouts, cancelled
polls and runtime engine failures.
"""

from __future__ import annotations

from typing import Optional


class RunSeqError(Exception):
    """Base class for all runseq errors."""

    pass


class NameConflictError(RunSeqError):
    """Raised when two deployment entities share the same name."""

    pass


class CompileError(RunSeqError):
    """
    Base class for run sequence compilation errors.

    Attributes:
        offset: Character offset into the run sequence, if known.
    """

    def __init__(self, message: str, offset: Optional[int] = None) -> None:
        super().__init__(message)
        self.offset: Optional[int] = offset


class ParseError(CompileError):
    """Malformed run sequence: bad character, grammar or parentheses."""

    pass


class DuplicateEventError(CompileError):
    """An event name appears more than once in the run sequence."""

    pass


class UnknownEventError(CompileError):
    """The run sequence references an event that is not declared."""

    pass


class UnmatchedBlockError(CompileError):
    """A BLOCK marker has no matching UNBLOCK later in the sequence."""

    pass


class BadReferenceError(CompileError):
    """An event references a node or event that does not fit."""

    pass


class RuntimeEngineError(RunSeqError):
    """Raised by runtime engines when an environment action fails."""

    pass


class RunTimeoutError(RunSeqError, TimeoutError):
    """The run did not complete within the allowed time."""

    pass


class PollCancelledError(RunSeqError):
    """A dependency poll was cancelled before its condition held."""

    pass

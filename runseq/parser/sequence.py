"""
Convenience entry points for parsing run sequences.
"""

from __future__ import annotations

from typing import Tuple

from runseq.parser.ast_nodes import Sequence
from runseq.parser.grammar import SequenceParser

_parser = SequenceParser()


def parse_sequence(text: str) -> Sequence:
    """
    Parse a run sequence expression.

    Args:
        text: The expression, e.g. ``"a * (b | c) * d"``.

    Returns:
        The root :class:`Sequence` node.

    Raises:
        ParseError: If the expression is malformed.
    """
    return _parser.parse(text)


def event_names(text: str) -> Tuple[str, ...]:
    """Return the event names of a run sequence in textual order."""
    return parse_sequence(text).names()

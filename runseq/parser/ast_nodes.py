"""
Abstract syntax tree node definitions for run sequences.

A run sequence is a list of terms joined by ``*`` or ``|``. A term is
either a single event reference or a parenthesised group, which is
itself a :class:`Sequence`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Tuple

AND = "*"
OR = "|"


class Term(ABC):
    """Base class for run sequence nodes."""

    @abstractmethod
    def names(self) -> Tuple[str, ...]:
        """Return every event name under this node, in textual order."""

    @abstractmethod
    def __str__(self) -> str:
        """Return the canonical text of this node."""


@dataclass(frozen=True)
class EventRef(Term):
    """
    A reference to a declared event.

    Attributes:
        name: The event name.
        offset: Character offset of the name in the source text.
    """

    name: str
    offset: int = 0

    def names(self) -> Tuple[str, ...]:
        return (self.name,)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Sequence(Term):
    """
    Terms joined by ordering operators.

    ``operators[i]`` joins ``terms[i]`` and ``terms[i + 1]``, so there is
    always exactly one operator fewer than there are terms.

    Attributes:
        terms: Event references and nested groups.
        operators: ``"*"`` or ``"|"`` between consecutive terms.
    """

    terms: Tuple[Term, ...]
    operators: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate operator count and values."""
        if not self.terms:
            raise ValueError("A sequence needs at least one term")
        if len(self.operators) != len(self.terms) - 1:
            raise ValueError(
                f"Expected {len(self.terms) - 1} operators, "
                f"got {len(self.operators)}"
            )
        for op in self.operators:
            if op not in (AND, OR):
                raise ValueError(f"Unknown operator '{op}'")

    def append(self, operator: str, term: Term) -> Sequence:
        """Return a new sequence extended by ``operator term``."""
        return Sequence(self.terms + (term,), self.operators + (operator,))

    def names(self) -> Tuple[str, ...]:
        result: Tuple[str, ...] = ()
        for term in self.terms:
            result += term.names()
        return result

    def __str__(self) -> str:
        parts = [_term_str(self.terms[0])]
        for op, term in zip(self.operators, self.terms[1:]):
            parts.append(op)
            parts.append(_term_str(term))
        return " ".join(parts)


def _term_str(term: Term) -> str:
    if isinstance(term, Sequence):
        return f"({term})"
    return str(term)

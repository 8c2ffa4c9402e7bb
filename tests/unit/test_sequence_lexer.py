"""
Tests for the run sequence lexer.

Tests cover token types, whitespace handling, token positions and
invalid characters.
"""

import pytest

from runseq.errors import ParseError
from runseq.parser.lexer import SequenceLexer


@pytest.fixture
def lexer() -> SequenceLexer:
    """Return a fresh lexer instance."""
    return SequenceLexer()


def _types(lexer: SequenceLexer, text: str):
    """Helper: tokenize text and return token types."""
    return [tok.type for tok in lexer.tokenize(text)]


class TestTokens:
    """Test recognition of each token type."""

    def test_single_event(self, lexer: SequenceLexer) -> None:
        tokens = list(lexer.tokenize("n1Started"))
        assert len(tokens) == 1
        assert tokens[0].type == "EVENT"
        assert tokens[0].value == "n1Started"

    def test_event_with_digits_and_underscore(self, lexer: SequenceLexer) -> None:
        tokens = list(lexer.tokenize("_2nd_event_9"))
        assert [t.value for t in tokens] == ["_2nd_event_9"]

    def test_operators_and_parens(self, lexer: SequenceLexer) -> None:
        assert _types(lexer, "a*(b|c)") == [
            "EVENT", "AND", "LPAREN", "EVENT", "OR", "EVENT", "RPAREN",
        ]

    def test_empty_input(self, lexer: SequenceLexer) -> None:
        assert _types(lexer, "") == []


class TestWhitespace:
    """Whitespace between tokens is ignored."""

    def test_spaces_and_tabs(self, lexer: SequenceLexer) -> None:
        assert _types(lexer, " a \t*\tb ") == ["EVENT", "AND", "EVENT"]

    def test_newlines(self, lexer: SequenceLexer) -> None:
        assert _types(lexer, "a *\n b\r\n| c") == [
            "EVENT", "AND", "EVENT", "OR", "EVENT",
        ]

    def test_positions_count_whitespace(self, lexer: SequenceLexer) -> None:
        tokens = list(lexer.tokenize("ab  *  cd"))
        assert [t.lexpos for t in tokens] == [0, 4, 7]


class TestInvalidCharacters:
    """Characters outside the alphabet raise ParseError with an offset."""

    def test_ampersand(self, lexer: SequenceLexer) -> None:
        with pytest.raises(ParseError, match="Invalid character '&'") as info:
            list(lexer.tokenize("a & b"))
        assert info.value.offset == 2

    def test_dot_in_name(self, lexer: SequenceLexer) -> None:
        with pytest.raises(ParseError) as info:
            list(lexer.tokenize("a*b.c"))
        assert info.value.offset == 3

    def test_lexer_is_reusable_after_error(self, lexer: SequenceLexer) -> None:
        with pytest.raises(ParseError):
            list(lexer.tokenize("a-b"))
        assert _types(lexer, "a*b") == ["EVENT", "AND", "EVENT"]

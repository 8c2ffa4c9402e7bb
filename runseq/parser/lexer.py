"""
Lexical analyzer for run sequence expressions.

Tokenizes a run sequence string into event names, the two ordering
operators and parentheses.
"""

from __future__ import annotations

from typing import Iterator

import ply.lex as lex

from runseq.errors import ParseError


class SequenceLexer:
    """
    Lexical analyzer for run sequences.

    Token Types:
        EVENT           - Event names (letters, digits, underscore)
        AND             - ``*``, sequential ordering
        OR              - ``|``, concurrent ordering
        LPAREN, RPAREN  - Grouping
    """

    tokens = (
        "EVENT",
        "AND",
        "OR",
        "LPAREN",
        "RPAREN",
    )

    # Ignored characters
    t_ignore = " \t\r\n"

    t_EVENT = r"[A-Za-z0-9_]+"
    t_AND = r"\*"
    t_OR = r"\|"
    t_LPAREN = r"\("
    t_RPAREN = r"\)"

    def __init__(self) -> None:
        self.lexer = lex.lex(module=self, optimize=False)

    def t_error(self, t):
        """Handle invalid characters."""
        raise ParseError(
            f"Invalid character '{t.value[0]}' at index {t.lexpos}",
            offset=t.lexpos,
        )

    def tokenize(self, text: str) -> Iterator[lex.LexToken]:
        """
        Yield the tokens of ``text``.

        Args:
            text: The run sequence expression.

        Raises:
            ParseError: On a character outside the token alphabet.
        """
        lexer = self.lexer.clone()
        lexer.input(text)
        while True:
            token = lexer.token()
            if token is None:
                return
            yield token

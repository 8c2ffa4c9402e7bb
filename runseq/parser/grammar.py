"""
Parser for run sequence expressions.

Grammar::

    sequence : term
             | sequence AND term
             | sequence OR term
    term     : EVENT
             | LPAREN sequence RPAREN

Both operators share one precedence level and associate to the left;
parentheses are the only way to group.
"""

from __future__ import annotations

import ply.yacc as yacc

from runseq.errors import ParseError
from runseq.parser.ast_nodes import AND, OR, EventRef, Sequence
from runseq.parser.lexer import SequenceLexer


class _PLYParser:
    """PLY grammar rules for run sequences."""

    tokens = SequenceLexer.tokens

    start = "sequence"

    # --- Sequences ---

    def p_sequence_term(self, p):
        "sequence : term"
        p[0] = Sequence((p[1],))

    def p_sequence_and(self, p):
        "sequence : sequence AND term"
        p[0] = p[1].append(AND, p[3])

    def p_sequence_or(self, p):
        "sequence : sequence OR term"
        p[0] = p[1].append(OR, p[3])

    # --- Terms ---

    def p_term_event(self, p):
        "term : EVENT"
        p[0] = EventRef(p[1], p.lexpos(1))

    def p_term_group(self, p):
        "term : LPAREN sequence RPAREN"
        p[0] = p[2]

    def p_error(self, p):
        """Handle parse errors."""
        if p is None:
            raise ParseError("Unexpected end of run sequence")
        raise ParseError(
            f"Unexpected token '{p.value}' at index {p.lexpos}",
            offset=p.lexpos,
        )


class SequenceParser:
    """
    Public run sequence parser.

    Usage::

        parser = SequenceParser()
        ast = parser.parse("a * (b | c) * d")
    """

    def __init__(self) -> None:
        self._lexer = SequenceLexer()
        self._parser = yacc.yacc(
            module=_PLYParser(),
            debug=False,
            write_tables=False,
            errorlog=yacc.NullLogger(),
        )

    def parse(self, text: str) -> Sequence:
        """
        Parse a run sequence string into an AST.

        Args:
            text: The run sequence expression.

        Returns:
            The root :class:`Sequence`.

        Raises:
            ParseError: If the text is empty or malformed.
        """
        if not text.strip():
            raise ParseError("Empty run sequence", offset=0)
        depth = 0
        for index, char in enumerate(text):
            if char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
                if depth < 0:
                    raise ParseError(
                        f"Unbalanced ')' at index {index}", offset=index
                    )
        if depth > 0:
            raise ParseError(
                f"Unbalanced '(': {depth} group(s) left open",
                offset=text.rfind("("),
            )
        lexer = self._lexer.lexer.clone()
        try:
            return self._parser.parse(text, lexer=lexer)
        except ParseError as exc:
            if exc.offset is None:
                exc.offset = len(text)
            raise

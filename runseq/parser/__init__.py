"""
Run sequence parser for runseq.

Provides lexical analysis, parsing and AST construction for run
sequence expressions built from event names, ``*`` (sequential),
``|`` (concurrent) and parentheses.
"""

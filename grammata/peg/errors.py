# grammata/peg/errors.py
from __future__ import annotations
from typing import Optional, Tuple


class GrammarError(SyntaxError):
    """Malformed grammar: bad DSL text, misplaced <sym>, left recursion."""


class UnknownRule(GrammarError):
    def __init__(self, name: str, grammar: Optional[str] = None):
        where = f" in grammar '{grammar}'" if grammar else ""
        super().__init__(f"undefined rule '{name}'{where}")
        self.name = name
        self.grammar = grammar


class ParseFailed(SyntaxError):
    """Raised on request for a failed top-level parse."""

    def __init__(self, message: str, position: int, rule: Optional[str],
                 expected: Tuple[str, ...] = (), goal: Optional[str] = None):
        super().__init__(message)
        self.position = position
        self.rule = rule
        self.expected = expected
        self.goal = goal


class StackExhausted(RecursionError):
    """Rule recursion without progress, or too deep to continue."""

    def __init__(self, message: str, rule: Optional[str] = None, position: int = -1):
        super().__init__(message)
        self.rule = rule
        self.position = position


class ActionError(RuntimeError):
    pass

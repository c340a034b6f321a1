# grammata/peg/__init__.py
"""Grammar engine for grammata.

This package provides:
- AST nodes for rule bodies (literals, classes, sequences, choices,
  repetition with separators, lookahead, sub-rule calls, goals, captures)
- A grammar registry with inheritance and proto-rule groups
- A grammar text parser (`grammar NAME is PARENT { ... }`)
- A Packrat (memoizing) matcher producing match trees
- An action dispatcher that reduces match trees to payloads
"""

from .ast import (
    Literal, CharClass, Any, Anchor, Ref, Sym, Before, Repeat, Seq, Choice,
    Longest, Goal, Capture,
)
from .errors import GrammarError, UnknownRule, ParseFailed, StackExhausted, ActionError
from .grammar import Grammar, Rule, RuleKind, ProtoGroup
from .match import Match
from .actions import ActionTable, PayloadSlot, apply
from .engine import MatchConfig, Packrat
from .parser import parse_grammars
from .runtime import (
    Failure, GrammarProgram, parse, subparse, parse_or_raise, load_grammar,
)

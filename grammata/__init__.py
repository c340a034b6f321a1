"""grammata: declarative grammars with inheritance, match trees and actions."""

from .peg import (
    Grammar, Rule, RuleKind, ProtoGroup, Match, ActionTable, PayloadSlot,
    MatchConfig, Failure, GrammarProgram,
    GrammarError, UnknownRule, ParseFailed, StackExhausted, ActionError,
    apply, parse, subparse, parse_or_raise, parse_grammars, load_grammar,
)

__version__ = "0.1.0"

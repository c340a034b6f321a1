# grammata/peg/runtime.py
"""Top-level matching entrypoints.

`parse` never raises for ordinary syntax errors: it returns a `Failure`
carrying the furthest position reached and what was expected there.
Structural problems (unknown rules, runaway recursion) raise.
"""

from __future__ import annotations
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple, Union

from .actions import ActionTable, apply
from .engine import MatchConfig, Packrat
from .errors import ParseFailed, StackExhausted
from .grammar import Grammar
from .loader import load_grammar_text
from .match import Match
from .parser import parse_grammars


def _line_bounds(src: str, pos: int) -> Tuple[int, int]:
    """[start, end) of the line holding pos."""
    start = src.rfind("\n", 0, pos)
    start = 0 if start < 0 else start + 1
    end = src.find("\n", pos)
    end = len(src) if end < 0 else end
    return start, end

def _caret_snippet(src: str, pos: int) -> str:
    """The line holding pos with a caret (^) under it."""
    start, end = _line_bounds(src, pos)
    line = src[start:end]
    col = (pos - start) + 1
    caret = " " * (col - 1) + "^"
    return f"{line}\n{caret}"


@dataclass(frozen=True)
class Failure:
    text: str = field(repr=False)
    position: int
    rule: Optional[str]
    expected: Tuple[str, ...] = ()
    goal: Optional[str] = None

    def __bool__(self) -> bool:
        return False

    @property
    def line(self) -> int:
        return self.text.count("\n", 0, self.position) + 1

    @property
    def column(self) -> int:
        return self.position - _line_bounds(self.text, self.position)[0] + 1

    def message(self) -> str:
        if self.goal is not None:
            what = f"couldn't find final {self.goal}"
        elif self.expected:
            what = "expected " + " or ".join(self.expected)
        else:
            what = "no match"
        where = f" in <{self.rule}>" if self.rule else ""
        return f"Parse failed at {self.line}:{self.column}{where}: {what}"

    def __str__(self) -> str:
        return self.message()

    def exception(self) -> ParseFailed:
        return ParseFailed(
            self.message() + "\n" + _caret_snippet(self.text, self.position),
            self.position, self.rule, self.expected, self.goal)


Result = Union[Match, Failure]

# Each nesting level of the input costs the matcher a dozen or so Python
# frames. The interpreter limit is raised for the duration of a match, up to
# a hard ceiling; MatchConfig.max_depth and re-entry detection remain the
# real stops.
_FRAMES_PER_CHAR = 16
_FRAME_CEILING = 12000

_limit_lock = threading.Lock()
_limit_users = 0
_saved_limit = 0


@contextmanager
def _recursion_room(text_len: int) -> Iterator[None]:
    global _limit_users, _saved_limit
    with _limit_lock:
        current = sys.getrecursionlimit()
        if _limit_users == 0:
            _saved_limit = current
        wanted = min(_saved_limit + _FRAMES_PER_CHAR * text_len, _FRAME_CEILING)
        if wanted > current:
            sys.setrecursionlimit(wanted)
        _limit_users += 1
    try:
        yield
    finally:
        with _limit_lock:
            _limit_users -= 1
            if _limit_users == 0:
                sys.setrecursionlimit(_saved_limit)


def _run(grammar: Grammar, start: str, text: str, pos: int, anchored: bool,
         actions: Any, config: Optional[MatchConfig]) -> Result:
    config = config or MatchConfig()
    if config.validate:
        grammar.validate()
    grammar.resolve(start)

    engine = Packrat(grammar, text, config)
    try:
        with _recursion_room(len(text) - pos):
            m = engine.call(start, pos)
    except StackExhausted:
        raise
    except RecursionError as e:
        raise StackExhausted(f"recursion limit reached while matching '{start}'", start, pos) from e

    if m is not None and anchored and m.end != len(text):
        engine.expect(m.end, "end of input")
        m = None
    if m is None:
        f = engine.failure
        if f.position < 0:
            return Failure(text, pos, start, (f"<{start}>",))
        return Failure(text, f.position, f.rule or start, tuple(f.expected), f.goal)

    if actions is not None:
        if not isinstance(actions, ActionTable):
            actions = ActionTable.from_object(actions)
        apply(m, actions)
    return m


def parse(grammar: Grammar, start: str, text: str, anchored: bool = True, *,
          actions: Any = None, config: Optional[MatchConfig] = None) -> Result:
    """Match `start` at offset 0; anchored parses must consume all of `text`."""
    return _run(grammar, start, text, 0, anchored, actions, config)


def subparse(grammar: Grammar, start: str, text: str, pos: int = 0, *,
             actions: Any = None, config: Optional[MatchConfig] = None) -> Result:
    """Match `start` at `pos` without requiring the rest of the input."""
    return _run(grammar, start, text, pos, False, actions, config)


def parse_or_raise(grammar: Grammar, start: str, text: str, anchored: bool = True, *,
                   actions: Any = None, config: Optional[MatchConfig] = None) -> Match:
    result = parse(grammar, start, text, anchored, actions=actions, config=config)
    if isinstance(result, Failure):
        raise result.exception()
    return result


@dataclass
class GrammarProgram:
    """Grammars loaded from one source text, in declaration order."""
    grammars: Dict[str, Grammar]

    @classmethod
    def from_source(cls, src: str, known: Optional[Dict[str, Grammar]] = None,
                    validate: bool = True) -> "GrammarProgram":
        grammars = parse_grammars(src, known)
        if validate:
            for g in grammars.values():
                g.validate()
        return cls(grammars)

    @classmethod
    def from_file(cls, path: Union[str, Path], known: Optional[Dict[str, Grammar]] = None,
                  validate: bool = True) -> "GrammarProgram":
        return cls.from_source(load_grammar_text(path), known, validate)

    @property
    def main(self) -> Grammar:
        """The last grammar declared."""
        return list(self.grammars.values())[-1]

    def __getitem__(self, name: str) -> Grammar:
        return self.grammars[name]

    def __contains__(self, name: str) -> bool:
        return name in self.grammars


def load_grammar(src: str, known: Optional[Dict[str, Grammar]] = None) -> Grammar:
    return GrammarProgram.from_source(src, known).main

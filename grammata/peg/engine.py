# grammata/peg/engine.py
from __future__ import annotations
import sys
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Optional, Set, Tuple

import regex

from .ast import (
    Literal, CharClass, Any, Anchor, Ref, Sym, Before, Repeat, Seq, Choice,
    Longest, Goal, Capture, Node, capture_names, describe,
)
from .errors import GrammarError, StackExhausted
from .grammar import Grammar, ProtoGroup, Rule, Entry
from .match import Match

# Packrat engine:
# - Memoize rule applications (rule, tag, pos) -> Match | None
# - Re-entering a rule at the same position while it is still running means
#   the grammar recurses without consuming input; that raises StackExhausted.
# - Expressions evaluate to the end position or None. Captures go to a log
#   list `caps` of (name, Match, listy) which is truncated on backtrack.

_MISSING = object()


def _eprint(*args, **kw) -> None:
    print(*args, file=sys.stderr, **kw)


@lru_cache(maxsize=None)
def _compile_class(cc: CharClass):
    return regex.compile(cc.pattern())


@dataclass
class MatchConfig:
    memoize: bool = True
    max_depth: Optional[int] = None  # nested rule calls allowed, None = unlimited
    validate: bool = False           # run grammar validation before matching
    debug: bool = False              # trace rule calls on stderr


@dataclass
class FailureInfo:
    position: int = -1
    rule: Optional[str] = None
    expected: List[str] = field(default_factory=list)
    goal: Optional[str] = None


class Packrat:
    def __init__(self, g: Grammar, text: str, config: Optional[MatchConfig] = None):
        self.g = g
        self.text = text
        self.n = len(text)
        self.config = config or MatchConfig()
        self.memo: Dict[Tuple[str, Optional[str], int], Optional[Match]] = {}
        self.failure = FailureInfo()
        self._entries: Dict[str, Entry] = {}
        self._active: Set[Tuple[str, Optional[str], int]] = set()
        self._stack: List[str] = []
        self._quiet = 0  # >0 while inside lookahead or implicit whitespace

    # ---- Public entrypoint for one rule ----
    def call(self, name: str, pos: int) -> Optional[Match]:
        entry = self._entries.get(name)
        if entry is None:
            entry = self._entries[name] = self.g.resolve(name)
        if isinstance(entry, ProtoGroup):
            return self._dispatch(entry, pos)
        return self._apply(entry, pos)

    def expect(self, pos: int, what: str, goal: bool = False) -> None:
        """Record a failure; the furthest position wins, goals win ties."""
        if self._quiet:
            return
        f = self.failure
        rule = self._stack[-1] if self._stack else None
        if goal:
            if pos >= f.position:
                f.position, f.rule, f.expected, f.goal = pos, rule, [what], what
            return
        if pos > f.position:
            f.position, f.rule, f.expected, f.goal = pos, rule, [what], None
        elif pos == f.position and f.goal is None and what not in f.expected:
            f.expected.append(what)

    # ---- Rule application with memoization ----
    def _apply(self, rule: Rule, pos: int) -> Optional[Match]:
        key = (rule.name, rule.tag, pos)
        if self.config.memoize:
            cached = self.memo.get(key, _MISSING)
            if cached is not _MISSING:
                return cached
        if key in self._active:
            raise StackExhausted(
                f"rule '{rule.qualified_name}' re-entered at {pos} without consuming input",
                rule.qualified_name, pos)
        if self.config.max_depth is not None and len(self._stack) >= self.config.max_depth:
            raise StackExhausted(
                f"rule nesting deeper than {self.config.max_depth} at {pos}",
                rule.qualified_name, pos)

        self._active.add(key)
        self._stack.append(rule.qualified_name)
        if self.config.debug:
            _eprint(f"{'  ' * (len(self._stack) - 1)}> {rule.qualified_name} @{pos}")
        caps: list = []
        try:
            end = self._eval(rule.expr, pos, caps, rule)
        finally:
            self._active.discard(key)
            self._stack.pop()

        result = None
        if end is not None:
            result = Match.build(self.text, pos, end, rule.name, rule.tag, caps)
        if self.config.debug:
            status = f"ok [{pos},{end})" if result is not None else "fail"
            _eprint(f"{'  ' * len(self._stack)}< {rule.qualified_name} {status}")
        if self.config.memoize and not self._quiet:
            self.memo[key] = result
        return result

    def _dispatch(self, group: ProtoGroup, pos: int) -> Optional[Match]:
        best: Optional[Match] = None
        for alt in group.alternatives:
            m = self._apply(alt, pos)
            # strictly longer only: ties keep the earlier alternative
            if m is not None and (best is None or m.end > best.end):
                best = m
        return best

    def _ws(self, pos: int, rule: Rule) -> int:
        if not rule.sigspace:
            return pos
        self._quiet += 1
        try:
            m = self.call("ws", pos)
        finally:
            self._quiet -= 1
        return pos if m is None else m.end

    # ---- Evaluator for expressions ----
    def _eval(self, node: Node, pos: int, caps: list, rule: Rule) -> Optional[int]:
        text = self.text

        if isinstance(node, Literal):
            if text.startswith(node.text, pos):
                return pos + len(node.text)
            self.expect(pos, repr(node.text))
            return None

        if isinstance(node, CharClass):
            if pos < self.n and _compile_class(node).match(text, pos):
                return pos + 1
            self.expect(pos, node.pattern())
            return None

        if isinstance(node, Any):
            if pos < self.n:
                return pos + 1
            self.expect(pos, "any character")
            return None

        if isinstance(node, Anchor):
            if (node.kind == "^" and pos == 0) or (node.kind == "$" and pos == self.n):
                return pos
            self.expect(pos, describe(node))
            return None

        if isinstance(node, Ref):
            m = self.call(node.name, pos)
            if m is None:
                self.expect(pos, f"<{node.name}>")
                return None
            if node.capture:
                caps.append((node.capture, m, False))
            return m.end

        if isinstance(node, Sym):
            if rule.tag is None:
                raise GrammarError(f"<sym> used outside a proto alternative in '{rule.name}'")
            if text.startswith(rule.tag, pos):
                end = pos + len(rule.tag)
                caps.append(("sym", Match(text, pos, end), False))
                return end
            self.expect(pos, repr(rule.tag))
            return None

        if isinstance(node, Before):
            self._quiet += 1
            try:
                ok = self._eval(node.node, pos, [], rule) is not None
            finally:
                self._quiet -= 1
            if ok != node.negated:
                return pos
            self.expect(pos, ("not " if node.negated else "") + describe(node.node))
            return None

        if isinstance(node, Repeat):
            return self._repeat(node, pos, caps, rule)

        if isinstance(node, Seq):
            mark = len(caps)
            cur = pos
            for i, it in enumerate(node.items):
                if i:
                    cur = self._ws(cur, rule)
                end = self._eval(it, cur, caps, rule)
                if end is None:
                    del caps[mark:]
                    return None
                cur = end
            return cur

        if isinstance(node, Choice):
            mark = len(caps)
            for it in node.alts:
                end = self._eval(it, pos, caps, rule)
                if end is not None:
                    return end
                del caps[mark:]
            return None

        if isinstance(node, Longest):
            best_end: Optional[int] = None
            best_caps: list = []
            for it in node.alts:
                tmp: list = []
                end = self._eval(it, pos, tmp, rule)
                if end is not None and (best_end is None or end > best_end):
                    best_end, best_caps = end, tmp
            if best_end is not None:
                caps.extend(best_caps)
            return best_end

        if isinstance(node, Goal):
            return self._goal(node, pos, caps, rule)

        if isinstance(node, Capture):
            sub: list = []
            end = self._eval(node.node, pos, sub, rule)
            if end is None:
                return None
            caps.append((node.name, Match.build(text, pos, end, "", None, sub), False))
            return end

        raise AssertionError(f"unknown node: {node!r}")

    def _repeat(self, node: Repeat, pos: int, caps: list, rule: Rule) -> Optional[int]:
        mark = len(caps)
        cur = pos
        count = 0
        while node.max is None or count < node.max:
            at = len(caps)
            start = cur
            if count:
                start = self._ws(cur, rule)
                if node.sep is not None:
                    start = self._eval(node.sep, start, caps, rule)
                    if start is None:
                        del caps[at:]
                        break
                    start = self._ws(start, rule)
            end = self._eval(node.node, start, caps, rule)
            if end is None:
                # a separator with nothing after it is given back
                del caps[at:]
                break
            if node.is_list:
                for i in range(at, len(caps)):
                    name, m, _ = caps[i]
                    caps[i] = (name, m, True)
            count += 1
            if end == cur:
                # zero-width: repeat only as often as the minimum requires
                if count >= node.min:
                    break
                continue
            cur = end

        if node.trailing and node.sep is not None and count:
            at = len(caps)
            end = self._eval(node.sep, self._ws(cur, rule), caps, rule)
            if end is None:
                del caps[at:]
            else:
                cur = end

        if count < node.min:
            del caps[mark:]
            return None
        if node.is_list:
            for name in capture_names(node):
                caps.append((name, None, True))
        return cur

    def _goal(self, node: Goal, pos: int, caps: list, rule: Rule) -> Optional[int]:
        mark = len(caps)
        cur = self._eval(node.open, pos, caps, rule)
        if cur is not None:
            cur = self._eval(node.body, self._ws(cur, rule), caps, rule)
        if cur is None:
            del caps[mark:]
            return None
        cur = self._ws(cur, rule)
        closing: list = []
        end = self._eval(node.close, cur, closing, rule)
        if end is None:
            self.expect(cur, describe(node.close), goal=True)
            del caps[mark:]
            return None
        # the closer anchors the construct; it keeps named captures only
        caps.extend(c for c in closing if c[0] is not None)
        return end

# grammata/peg/ast.py
from __future__ import annotations
from dataclasses import dataclass
from functools import lru_cache
from typing import Tuple, Optional, FrozenSet, Union

# ---- Expression nodes ----
# Nodes are frozen and hold tuples only, so they hash and can key caches.

@dataclass(frozen=True)
class Literal:
    text: str  # unescaped text

@dataclass(frozen=True)
class CharClass:
    negated: bool = False
    # ranges are inclusive (lo..hi) code points
    ranges: Tuple[Tuple[int, int], ...] = ()
    singles: str = ""
    # backslash classes allowed inside a class: d, w, s, h
    escapes: str = ""
    # Unicode property names, e.g. "L", "Lu", "XID_Start"
    props: Tuple[str, ...] = ()

    def pattern(self) -> str:
        """Source of an equivalent single-character `regex` pattern."""
        parts = []
        for lo, hi in self.ranges:
            parts.append(f"{_esc(chr(lo))}-{_esc(chr(hi))}")
        parts.extend(_esc(ch) for ch in self.singles)
        for e in self.escapes:
            parts.append(r"\t\p{Zs}" if e == "h" else "\\" + e)
        parts.extend(f"\\p{{{p}}}" for p in self.props)
        body = "".join(parts)
        if not body:
            # empty class: never matches, its negation matches anything
            return r"[\s\S]" if self.negated else r"[^\s\S]"
        return f"[{'^' if self.negated else ''}{body}]"

@dataclass(frozen=True)
class Any:
    pass

@dataclass(frozen=True)
class Anchor:
    kind: str  # '^' start of input, '$' end of input

@dataclass(frozen=True)
class Ref:
    name: str
    capture: Optional[str] = None  # capture name; None for <.name>

@dataclass(frozen=True)
class Sym:
    """<sym>: the tag of the proto alternative being matched."""

@dataclass(frozen=True)
class Before:
    node: "Node"
    negated: bool = False  # <!before X>

@dataclass(frozen=True)
class Repeat:
    node: "Node"
    min: int = 0
    max: Optional[int] = None  # None = unbounded
    sep: Optional["Node"] = None
    trailing: bool = False  # %% allows a final separator

    @property
    def is_list(self) -> bool:
        return self.max is None or self.max > 1

@dataclass(frozen=True)
class Seq:
    items: Tuple["Node", ...]

@dataclass(frozen=True)
class Choice:
    alts: Tuple["Node", ...]  # ordered, first success wins

@dataclass(frozen=True)
class Longest:
    alts: Tuple["Node", ...]  # longest match wins, ties to the earliest

@dataclass(frozen=True)
class Goal:
    """`open ~ close body`: matched as open, body, close."""
    open: "Node"
    close: "Node"
    body: "Node"

@dataclass(frozen=True)
class Capture:
    node: "Node"
    name: Optional[str] = None  # None = positional

Node = Union[Literal, CharClass, Any, Anchor, Ref, Sym, Before, Repeat,
             Seq, Choice, Longest, Goal, Capture]


def _esc(ch: str) -> str:
    if ch in "\\]^-[":
        return "\\" + ch
    if ord(ch) < 0x20 or ch == "\x7f":
        return f"\\x{ord(ch):02x}"
    return ch


def describe(node: Node) -> str:
    """Short human form of a node for diagnostics."""
    if isinstance(node, Literal):
        return repr(node.text)
    if isinstance(node, CharClass):
        return node.pattern()
    if isinstance(node, Any):
        return "any character"
    if isinstance(node, Anchor):
        return "start of input" if node.kind == "^" else "end of input"
    if isinstance(node, Ref):
        return f"<{node.name}>"
    if isinstance(node, Sym):
        return "<sym>"
    if isinstance(node, Capture):
        return describe(node.node)
    if isinstance(node, Seq) and node.items:
        return describe(node.items[0])
    return type(node).__name__.lower()


@lru_cache(maxsize=None)
def capture_names(node: Node) -> FrozenSet[str]:
    """Names captured directly by `node` in the enclosing rule's match."""
    if isinstance(node, Ref):
        return frozenset([node.capture]) if node.capture else frozenset()
    if isinstance(node, Sym):
        return frozenset(["sym"])
    if isinstance(node, Capture):
        return frozenset([node.name]) if node.name else frozenset()
    if isinstance(node, Repeat):
        out = capture_names(node.node)
        return out | capture_names(node.sep) if node.sep is not None else out
    if isinstance(node, Seq):
        return frozenset().union(*(capture_names(n) for n in node.items))
    if isinstance(node, (Choice, Longest)):
        return frozenset().union(*(capture_names(n) for n in node.alts))
    if isinstance(node, Goal):
        return capture_names(node.open) | capture_names(node.close) | capture_names(node.body)
    return frozenset()

# grammata/peg/analysis.py
"""Static checks over a grammar's rule-call graph.

- every <name> must resolve somewhere in the inheritance chain
- <sym> may only appear inside a proto alternative
- no cycle of rule calls may be reachable without consuming input
  (left recursion); such a grammar would loop forever at match time
"""

from __future__ import annotations
from typing import Dict, List, Set, Tuple

from .ast import (
    Node, Literal, CharClass, Any, Anchor, Ref, Sym, Before, Repeat,
    Seq, Choice, Longest, Goal, Capture,
)
from .errors import GrammarError, UnknownRule
from .grammar import Grammar, ProtoGroup, Rule


def _rules_of(g: Grammar) -> Dict[str, List[Rule]]:
    out: Dict[str, List[Rule]] = {}
    for name in g.names(builtins=True):
        entry = g.lookup(name)
        if isinstance(entry, ProtoGroup):
            out[name] = list(entry.alternatives)
        else:
            out[name] = [entry]
    return out


def _children(node: Node) -> Tuple[Node, ...]:
    if isinstance(node, (Before, Capture)):
        return (node.node,)
    if isinstance(node, Repeat):
        return (node.node,) if node.sep is None else (node.node, node.sep)
    if isinstance(node, Seq):
        return node.items
    if isinstance(node, (Choice, Longest)):
        return node.alts
    if isinstance(node, Goal):
        return (node.open, node.close, node.body)
    return ()


def _check_refs(g: Grammar, rule: Rule, node: Node) -> None:
    if isinstance(node, Ref) and g.lookup(node.name) is None:
        raise UnknownRule(node.name, g.name)
    if isinstance(node, Sym) and rule.tag is None:
        raise GrammarError(f"<sym> used outside a proto alternative in '{rule.name}'")
    for child in _children(node):
        _check_refs(g, rule, child)


def compute_nullable(rules: Dict[str, List[Rule]]) -> Set[str]:
    """Rule names that can succeed without consuming input (fixed point)."""
    nullable: Set[str] = set()

    def nullable_expr(node: Node) -> bool:
        if isinstance(node, Literal):
            return node.text == ""
        if isinstance(node, (CharClass, Any, Sym)):
            return False
        if isinstance(node, (Anchor, Before)):
            return True
        if isinstance(node, Ref):
            return node.name in nullable
        if isinstance(node, Repeat):
            return node.min == 0 or nullable_expr(node.node)
        if isinstance(node, Seq):
            return all(nullable_expr(n) for n in node.items)
        if isinstance(node, (Choice, Longest)):
            return any(nullable_expr(n) for n in node.alts)
        if isinstance(node, Goal):
            return all(nullable_expr(n) for n in (node.open, node.body, node.close))
        if isinstance(node, Capture):
            return nullable_expr(node.node)
        raise AssertionError(f"unknown node: {node!r}")

    changed = True
    while changed:
        changed = False
        for name, alts in rules.items():
            if name in nullable:
                continue
            if any(nullable_expr(r.expr) for r in alts):
                nullable.add(name)
                changed = True
    return nullable


def left_calls(node: Node, nullable: Set[str], sigspace: bool = False) -> Set[str]:
    """Rules `node` may call before it has consumed anything."""

    def is_nullable(n: Node) -> bool:
        # nullable_expr without recomputing the fixed point
        if isinstance(n, Ref):
            return n.name in nullable
        if isinstance(n, Literal):
            return n.text == ""
        if isinstance(n, (CharClass, Any, Sym)):
            return False
        if isinstance(n, Repeat):
            return n.min == 0 or is_nullable(n.node)
        if isinstance(n, Seq):
            return all(is_nullable(i) for i in n.items)
        if isinstance(n, (Choice, Longest)):
            return any(is_nullable(a) for a in n.alts)
        if isinstance(n, Goal):
            return all(is_nullable(i) for i in (n.open, n.body, n.close))
        if isinstance(n, Capture):
            return is_nullable(n.node)
        return True

    def walk(n: Node) -> Set[str]:
        if isinstance(n, Ref):
            return {n.name}
        if isinstance(n, Seq):
            out: Set[str] = set()
            for i, item in enumerate(n.items):
                if i and sigspace:
                    out.add("ws")
                out |= walk(item)
                if not is_nullable(item):
                    break
            return out
        if isinstance(n, Goal):
            out = set()
            for item in (n.open, n.body, n.close):
                out |= walk(item)
                if not is_nullable(item):
                    break
            return out
        if isinstance(n, Repeat):
            out = walk(n.node)
            if n.sep is not None and is_nullable(n.node):
                out |= walk(n.sep)
            return out
        out = set()
        for child in _children(n):
            out |= walk(child)
        return out

    return walk(node)


def find_left_recursion(g: Grammar) -> List[str]:
    """A cycle of rule names callable without progress, or [] if none."""
    rules = _rules_of(g)
    nullable = compute_nullable(rules)
    edges: Dict[str, Set[str]] = {}
    for name, alts in rules.items():
        targets: Set[str] = set()
        for r in alts:
            targets |= left_calls(r.expr, nullable, r.sigspace)
        edges[name] = {t for t in targets if t in rules}

    WHITE, GREY, BLACK = 0, 1, 2
    color = {name: WHITE for name in rules}
    path: List[str] = []

    def dfs(name: str) -> List[str]:
        color[name] = GREY
        path.append(name)
        for nxt in sorted(edges[name]):
            if color[nxt] == GREY:
                return path[path.index(nxt):] + [nxt]
            if color[nxt] == WHITE:
                cycle = dfs(nxt)
                if cycle:
                    return cycle
        path.pop()
        color[name] = BLACK
        return []

    for name in rules:
        if color[name] == WHITE:
            cycle = dfs(name)
            if cycle:
                return cycle
    return []


def validate_grammar(g: Grammar) -> None:
    for name, alts in _rules_of(g).items():
        for r in alts:
            _check_refs(g, r, r.expr)
    cycle = find_left_recursion(g)
    if cycle:
        raise GrammarError(f"left recursion in grammar '{g.name}': {' -> '.join(cycle)}")

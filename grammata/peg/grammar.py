# grammata/peg/grammar.py
"""Grammar registry.

A `Grammar` is a table of named rules plus an optional parent. Lookups fall
through the parent chain, then the builtin rules. Proto groups are merged
across the chain: the nearest definition of a tag wins, new tags are added
after the inherited ones.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Dict, Iterator, List, Optional, Tuple, Union

from .ast import Node, CharClass, Ref, Repeat, Seq
from .errors import GrammarError, UnknownRule


class RuleKind:
    TOKEN = "token"   # no implicit whitespace
    RULE  = "rule"    # <.ws> tried between atoms
    REGEX = "regex"   # raw lexical atom, no implicit whitespace
    ALL = (TOKEN, RULE, REGEX)


@dataclass(frozen=True)
class Rule:
    name: str
    expr: Node
    kind: str = RuleKind.TOKEN
    tag: Optional[str] = None  # set on proto alternatives

    def __post_init__(self):
        if self.kind not in RuleKind.ALL:
            raise GrammarError(f"unknown rule kind {self.kind!r} for '{self.name}'")

    @property
    def sigspace(self) -> bool:
        return self.kind == RuleKind.RULE

    @property
    def qualified_name(self) -> str:
        return self.name if self.tag is None else f"{self.name}:sym<{self.tag}>"


@dataclass(frozen=True)
class ProtoGroup:
    name: str
    alternatives: Tuple[Rule, ...] = ()

    @property
    def tags(self) -> List[str]:
        return [alt.tag for alt in self.alternatives]

    def with_alternative(self, alt: Rule) -> "ProtoGroup":
        alts = list(self.alternatives)
        for i, old in enumerate(alts):
            if old.tag == alt.tag:
                alts[i] = alt
                break
        else:
            alts.append(alt)
        return replace(self, alternatives=tuple(alts))

    def extended(self, child: "ProtoGroup") -> "ProtoGroup":
        merged = self
        for alt in child.alternatives:
            merged = merged.with_alternative(alt)
        return merged


Entry = Union[Rule, ProtoGroup]


class Grammar:
    def __init__(self, name: str = "", parent: Optional["Grammar"] = None):
        self.name = name
        self.parent = parent
        self._rules: Dict[str, Entry] = {}

    @classmethod
    def derive(cls, parent: "Grammar", name: Optional[str] = None) -> "Grammar":
        """New empty grammar inheriting every rule of `parent`."""
        return cls(name if name is not None else f"{parent.name}+", parent)

    def __repr__(self) -> str:
        base = f" is {self.parent.name}" if self.parent is not None else ""
        return f"<Grammar {self.name}{base} rules={len(self._rules)}>"

    # ---- registration ----
    def register(self, name: str, rule: Rule) -> Rule:
        if rule.name != name:
            rule = replace(rule, name=name)
        if rule.tag is not None:
            return self.add_alternative(name, rule.tag, rule)
        self._rules[name] = rule
        return rule

    def declare_proto(self, name: str) -> ProtoGroup:
        entry = self._rules.get(name)
        if isinstance(entry, ProtoGroup):
            return entry
        group = ProtoGroup(name)
        self._rules[name] = group
        return group

    def add_alternative(self, group: str, tag: str, rule: Rule) -> Rule:
        entry = self._rules.get(group)
        if isinstance(entry, Rule):
            raise GrammarError(
                f"'{group}' is a plain rule in grammar '{self.name}'; "
                f"cannot add alternative sym<{tag}>")
        if entry is None:
            entry = ProtoGroup(group)
        alt = replace(rule, name=group, tag=tag)
        self._rules[group] = entry.with_alternative(alt)
        return alt

    # ---- resolution ----
    def lineage(self) -> Iterator["Grammar"]:
        g: Optional[Grammar] = self
        while g is not None:
            yield g
            g = g.parent

    def own(self, name: str) -> Optional[Entry]:
        return self._rules.get(name)

    def lookup(self, name: str) -> Optional[Entry]:
        """Resolve `name`, or None when no grammar in the chain defines it."""
        chain = list(self.lineage())
        for i, g in enumerate(chain):
            entry = g._rules.get(name)
            if entry is None:
                continue
            if isinstance(entry, Rule):
                return entry
            groups = [entry]
            for anc in chain[i + 1:]:
                up = anc._rules.get(name)
                if up is None:
                    continue
                if not isinstance(up, ProtoGroup):
                    break
                groups.append(up)
            merged = groups[-1]
            for grp in reversed(groups[:-1]):
                merged = merged.extended(grp)
            return merged
        return BUILTINS.get(name)

    def resolve(self, name: str) -> Entry:
        entry = self.lookup(name)
        if entry is None:
            raise UnknownRule(name, self.name)
        return entry

    def __contains__(self, name: str) -> bool:
        return self.lookup(name) is not None

    def names(self, builtins: bool = False) -> List[str]:
        """Every rule name visible from this grammar, ancestors first."""
        seen: Dict[str, None] = {}
        for g in reversed(list(self.lineage())):
            for name in g._rules:
                seen.setdefault(name, None)
        if builtins:
            for name in BUILTINS:
                seen.setdefault(name, None)
        return list(seen)

    def validate(self) -> "Grammar":
        """Check references and left recursion; returns self."""
        from .analysis import validate_grammar
        validate_grammar(self)
        return self


# ---- builtin rules ----

def _builtin(name: str, expr: Node) -> Rule:
    return Rule(name, expr, RuleKind.TOKEN)

_ALPHA = CharClass(singles="_", props=("L",))

BUILTINS: Dict[str, Rule] = {
    r.name: r for r in (
        _builtin("ws", Repeat(CharClass(escapes="s"))),
        _builtin("alpha", _ALPHA),
        _builtin("digit", CharClass(escapes="d")),
        _builtin("alnum", CharClass(singles="_", escapes="d", props=("L",))),
        _builtin("xdigit", CharClass(ranges=((0x30, 0x39), (0x41, 0x46), (0x61, 0x66)))),
        _builtin("space", CharClass(escapes="s")),
        _builtin("upper", CharClass(props=("Lu",))),
        _builtin("lower", CharClass(props=("Ll",))),
        _builtin("ident", Seq((Ref("alpha"), Repeat(CharClass(escapes="w"))))),
    )
}

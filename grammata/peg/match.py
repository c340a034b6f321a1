# grammata/peg/match.py
"""Match tree produced by the engine.

A `Match` is fixed once the engine builds it. The only later write is the
payload, done once by the action dispatcher through a `PayloadSlot`.
"""

from __future__ import annotations
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

_UNSET = object()

Capture = Union["Match", List["Match"]]


class Match:
    __slots__ = ("source", "start", "end", "rule_name", "alt_tag",
                 "named", "positional", "_payload")

    def __init__(self, source: str, start: int, end: int, rule_name: str = "",
                 alt_tag: Optional[str] = None,
                 named: Optional[Dict[str, Capture]] = None,
                 positional: Optional[List["Match"]] = None):
        self.source = source
        self.start = start
        self.end = end
        self.rule_name = rule_name
        self.alt_tag = alt_tag
        self.named: Dict[str, Capture] = named or {}
        self.positional: List[Match] = positional or []
        self._payload: Any = _UNSET

    @classmethod
    def build(cls, source: str, start: int, end: int, rule_name: str,
              alt_tag: Optional[str], caps: list) -> "Match":
        """Fold the engine's capture log into named/positional captures.

        `caps` holds (name, node, listy) in close order. A name becomes a
        list when any entry is listy or it was captured more than once;
        a listy entry with node None only marks the name as a list.
        """
        groups: Dict[str, List[Match]] = {}
        listy = set()
        positional: List[Match] = []
        for name, node, is_list in caps:
            if name is None:
                positional.append(node)
                continue
            bucket = groups.setdefault(name, [])
            if node is not None:
                bucket.append(node)
            if is_list:
                listy.add(name)
        named: Dict[str, Capture] = {}
        for name, nodes in groups.items():
            if name in listy or len(nodes) != 1:
                named[name] = nodes
            else:
                named[name] = nodes[0]
        return cls(source, start, end, rule_name, alt_tag, named, positional)

    # ---- span / text ----
    @property
    def span(self) -> Tuple[int, int]:
        return self.start, self.end

    @property
    def text(self) -> str:
        return self.source[self.start:self.end]

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        tag = f":sym<{self.alt_tag}>" if self.alt_tag is not None else ""
        return f"<Match {self.rule_name or '?'}{tag} [{self.start},{self.end}) {self.text!r}>"

    def __bool__(self) -> bool:
        return True

    # ---- captures ----
    def __getitem__(self, key: Union[str, int]) -> Capture:
        if isinstance(key, int):
            return self.positional[key]
        return self.named[key]

    def __contains__(self, name: str) -> bool:
        return name in self.named

    def get(self, name: str, default: Any = None) -> Any:
        return self.named.get(name, default)

    def all(self, name: str) -> List["Match"]:
        """Captures under `name` as a list, whatever their shape."""
        cap = self.named.get(name)
        if cap is None:
            return []
        return list(cap) if isinstance(cap, list) else [cap]

    def keys(self) -> List[str]:
        return list(self.named)

    def children(self) -> List["Match"]:
        """Every captured node, left to right by start offset."""
        out: List[Match] = []
        for cap in self.named.values():
            if isinstance(cap, list):
                out.extend(cap)
            else:
                out.append(cap)
        out.extend(self.positional)
        # stable: equal starts keep capture order
        out.sort(key=lambda m: m.start)
        return out

    def walk(self) -> Iterator["Match"]:
        """Pre-order iteration over this node and its descendants."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children()))

    # ---- payload ----
    @property
    def has_payload(self) -> bool:
        return self._payload is not _UNSET

    @property
    def made(self) -> Any:
        return None if self._payload is _UNSET else self._payload

    def dump(self, indent: int = 0, label: Optional[str] = None) -> str:
        """Indented text form, one node per line."""
        pad = "  " * indent
        head = f"{label}: " if label is not None else ""
        lines = [f"{pad}{head}{self!r}"]
        if self.has_payload:
            lines.append(f"{pad}  => {self._payload!r}")
        for name, cap in self.named.items():
            if isinstance(cap, list):
                if not cap:
                    lines.append(f"{pad}  {name}: []")
                for i, m in enumerate(cap):
                    lines.append(m.dump(indent + 1, f"{name}[{i}]"))
            else:
                lines.append(cap.dump(indent + 1, name))
        for i, m in enumerate(self.positional):
            lines.append(m.dump(indent + 1, str(i)))
        return "\n".join(lines)

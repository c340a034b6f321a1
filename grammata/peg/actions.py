# grammata/peg/actions.py
"""Action tables and the post-order dispatch pass.

Actions are looked up by (rule_name, alt_tag). A node without an action keeps
an unset payload; that is how uninteresting nodes are passed over.
"""

from __future__ import annotations
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .errors import ActionError
from .match import Match

Key = Tuple[str, Optional[str]]
Callback = Callable[[Match, "PayloadSlot"], None]


class PayloadSlot:
    """Write handle for one node's payload. Writable once."""
    __slots__ = ("_match",)

    def __init__(self, match: Match):
        self._match = match

    def make(self, value: Any) -> None:
        m = self._match
        if m.has_payload:
            raise ActionError(f"payload of {m!r} already made")
        m._payload = value

    @property
    def is_set(self) -> bool:
        return self._match.has_payload

    @property
    def value(self) -> Any:
        return self._match.made


class ActionTable:
    def __init__(self, actions: Optional[Mapping[Key, Callback]] = None):
        self._table: Dict[Key, Callback] = {}
        for (rule_name, tag), cb in (actions or {}).items():
            self.register(rule_name, cb, tag)

    @classmethod
    def from_object(cls, obj: Any) -> "ActionTable":
        """Collect public methods: `pair` -> ("pair", None),
        `value__number` -> ("value", "number")."""
        table = cls()
        for attr in dir(obj):
            if attr.startswith("_"):
                continue
            fn = getattr(obj, attr)
            if not callable(fn):
                continue
            rule_name, _, tag = attr.partition("__")
            table.register(rule_name, fn, tag or None)
        return table

    def register(self, rule_name: str, callback: Callback, tag: Optional[str] = None) -> Callback:
        self._table[(rule_name, tag)] = callback
        return callback

    def on(self, rule_name: str, tag: Optional[str] = None):
        """Decorator form of `register`."""
        def deco(fn: Callback) -> Callback:
            return self.register(rule_name, fn, tag)
        return deco

    def lookup(self, rule_name: str, tag: Optional[str] = None) -> Optional[Callback]:
        return self._table.get((rule_name, tag))

    def __contains__(self, key: Key) -> bool:
        return key in self._table

    def __len__(self) -> int:
        return len(self._table)


def apply(match: Match, actions: ActionTable) -> Match:
    """Run actions bottom-up, children left to right before their parent."""
    seen = set()
    stack = [(match, False)]
    while stack:
        node, done = stack.pop()
        if done:
            cb = actions.lookup(node.rule_name, node.alt_tag) if node.rule_name else None
            if cb is not None:
                cb(node, PayloadSlot(node))
            continue
        # memoized nodes can be captured twice; visit each once
        if id(node) in seen:
            continue
        seen.add(id(node))
        stack.append((node, True))
        for child in reversed(node.children()):
            stack.append((child, False))
    return match

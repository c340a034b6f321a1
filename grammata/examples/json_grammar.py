# grammata/examples/json_grammar.py
"""JSON as a grammata grammar, with actions building Python values.

    >>> from_json('{"a": [1, 2.5, true, null]}')
    {'a': [1, 2.5, True, None]}

`JSONC` derives from `JSON` and only overrides `ws`, so it also accepts
`// line comments` wherever whitespace is allowed.
"""

from __future__ import annotations
from typing import Any

from ..peg import ActionTable, Grammar, GrammarProgram, Match, PayloadSlot, parse_or_raise

JSON_SOURCE = r"""
grammar JSON {
    rule TOP        { ^ [ <object> | <array> ] $ }
    rule object     { '{' ~ '}' <pairlist> }
    rule pairlist   { <pair>* % ',' }
    rule pair       { <string> ':' <value> }
    rule array      { '[' ~ ']' <arraylist> }
    rule arraylist  { <value>* % ',' }

    token ws { \s* }

    proto token value {*}
    token value:sym<number> {
        '-'?
        [ 0 | <[1..9]> <[0..9]>* ]
        [ '.' <[0..9]>+ ]?
        [ <[eE]> <[+\-]>? <[0..9]>+ ]?
    }
    token value:sym<true>   { <sym> }
    token value:sym<false>  { <sym> }
    token value:sym<null>   { <sym> }
    token value:sym<object> { <object> }
    token value:sym<array>  { <array> }
    token value:sym<string> { <string> }

    token string     { '"' ~ '"' [ <str> | <str_escape> ]* }
    token str        { <-["\\\x00..\x1f]>+ }
    token str_escape { '\\' [ <["\\/bfnrt]> | u <xdigit> ** 4 ] }
}

grammar JSONC is JSON {
    token ws { [ \s+ | '//' \N* ]* }
}
"""

_program = GrammarProgram.from_source(JSON_SOURCE)
JSON: Grammar = _program["JSON"]
JSONC: Grammar = _program["JSONC"]

_ESCAPES = {
    '"': '"', "\\": "\\", "/": "/",
    "b": "\b", "f": "\f", "n": "\n", "r": "\r", "t": "\t",
}


class JSONActions:
    def TOP(self, m: Match, slot: PayloadSlot) -> None:
        slot.make(m.children()[0].made)

    def object(self, m: Match, slot: PayloadSlot) -> None:
        slot.make(dict(m["pairlist"].made))

    def pairlist(self, m: Match, slot: PayloadSlot) -> None:
        slot.make([p.made for p in m["pair"]])

    def pair(self, m: Match, slot: PayloadSlot) -> None:
        slot.make((m["string"].made, m["value"].made))

    def array(self, m: Match, slot: PayloadSlot) -> None:
        slot.make(m["arraylist"].made)

    def arraylist(self, m: Match, slot: PayloadSlot) -> None:
        slot.make([v.made for v in m["value"]])

    def value__number(self, m: Match, slot: PayloadSlot) -> None:
        text = m.text
        if any(c in text for c in ".eE"):
            slot.make(float(text))
        else:
            slot.make(int(text))

    def value__true(self, m: Match, slot: PayloadSlot) -> None:
        slot.make(True)

    def value__false(self, m: Match, slot: PayloadSlot) -> None:
        slot.make(False)

    def value__null(self, m: Match, slot: PayloadSlot) -> None:
        slot.make(None)

    def value__object(self, m: Match, slot: PayloadSlot) -> None:
        slot.make(m["object"].made)

    def value__array(self, m: Match, slot: PayloadSlot) -> None:
        slot.make(m["array"].made)

    def value__string(self, m: Match, slot: PayloadSlot) -> None:
        slot.make(m["string"].made)

    def string(self, m: Match, slot: PayloadSlot) -> None:
        slot.make("".join(part.made for part in m.children()))

    def str(self, m: Match, slot: PayloadSlot) -> None:
        slot.make(m.text)

    def str_escape(self, m: Match, slot: PayloadSlot) -> None:
        body = m.text[1:]
        if body[0] == "u":
            slot.make(chr(int(body[1:], 16)))
        else:
            slot.make(_ESCAPES[body])


ACTIONS = ActionTable.from_object(JSONActions())


def from_json(text: str, grammar: Grammar = JSON) -> Any:
    """Parse a JSON document; raises ParseFailed on bad input."""
    return parse_or_raise(grammar, "TOP", text, actions=ACTIONS).made

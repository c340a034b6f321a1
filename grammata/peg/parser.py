# grammata/peg/parser.py
from __future__ import annotations
import regex as re
from typing import Dict, List, Optional, Tuple

from .ast import (
    Literal, CharClass, Any, Anchor, Ref, Sym, Before, Repeat, Seq, Choice,
    Longest, Goal, Capture, Node,
)
from .errors import GrammarError
from .grammar import Grammar, Rule, RuleKind

# Grammar text we parse:
#   source    := grammar*
#   grammar   := "grammar" NAME ("is" NAME)? "{" decl* "}" ";"?
#   decl      := "proto" KIND IDENT "{" "*" "}"
#              | KIND IDENT (":sym<" TAG ">")? "{" alt "}"
#   KIND      := "token" | "rule" | "regex"
#
#   alt       := "|"? longest ("|" longest)*          ordered choice
#   longest   := seq ("||" seq)*                       longest match
#   seq       := (quantified | "~" quantified quantified)*
#   quantified:= atom (("?"|"*"|"+"|"**" count) (("%"|"%%") atom)?)?
#   count     := INT (".." (INT|"*"))?
#   atom      := literal | WORD | "." | "^" | "$" | "\" escape
#              | "[" alt "]" | "(" alt ")" | "$<" IDENT ">=" atom
#              | "<" assertion ">"
#   assertion := IDENT | "." IDENT | IDENT "=" "."? IDENT | "sym"
#              | ("?"|"!")? "before" alt | ("?"|"!") IDENT
#              | "-"? class ("+" class)*
#   class     := "[" items "]" | ":" PROPERTY
#
# Comments run from "#" to end of line. Whitespace inside bodies is
# insignificant; `rule` declarations match <.ws> between atoms instead.

_IDENT_RE = re.compile(r"[\p{XID_Start}_][\p{XID_Continue}]*")
_WORD_RE = re.compile(r"\w+")
_INT_RE = re.compile(r"[0-9]+")
_PROP_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

# stop characters for a sequence
_SEQ_END = "|])}>"

# backslash classes usable in bodies: letter -> (escape, negated)
_BODY_CLASSES = {
    "d": ("d", False), "D": ("d", True),
    "w": ("w", False), "W": ("w", True),
    "s": ("s", False), "S": ("s", True),
    "h": ("h", False), "H": ("h", True),
}


class _TS:
    def __init__(self, src: str):
        self.s = src
        self.i = 0
        self.n = len(src)

    def _peek(self, k: int = 0) -> Optional[str]:
        j = self.i + k
        if j >= self.n:
            return None
        return self.s[j]

    def _starts(self, lit: str) -> bool:
        return self.s.startswith(lit, self.i)

    def _bump(self, n: int = 1) -> None:
        self.i += n

    def _eof(self) -> bool:
        return self.i >= self.n

    def _err(self, msg: str) -> GrammarError:
        line = self.s.count("\n", 0, self.i) + 1
        col = self.i - (self.s.rfind("\n", 0, self.i) + 1) + 1
        return GrammarError(f"grammar parse error at {line}:{col}: {msg}")

    def _skip_ws(self) -> None:
        while not self._eof():
            ch = self._peek()
            if ch.isspace():
                self._bump(1)
                continue
            if ch == "#":
                while not self._eof() and self._peek() != "\n":
                    self._bump(1)
                continue
            break

    def _eat(self, lit: str) -> None:
        self._skip_ws()
        if not self._starts(lit):
            raise self._err(f"expected {lit!r}")
        self._bump(len(lit))

    def _try_eat(self, lit: str) -> bool:
        self._skip_ws()
        if self._starts(lit):
            self._bump(len(lit))
            return True
        return False

    def _ident(self) -> str:
        self._skip_ws()
        m = _IDENT_RE.match(self.s, self.i)
        if not m:
            raise self._err("expected identifier")
        self.i = m.end()
        return m.group(0)

    def _qualified_ident(self) -> str:
        # Grammar names may be qualified: JSON::Tiny
        parts = [self._ident()]
        while self._starts("::"):
            self._bump(2)
            parts.append(self._ident())
        return "::".join(parts)

    def _keyword(self, word: str) -> bool:
        self._skip_ws()
        m = _IDENT_RE.match(self.s, self.i)
        if m and m.group(0) == word:
            self.i = m.end()
            return True
        return False

    def _hexval(self, ch: Optional[str]) -> int:
        if ch is not None and ch in "0123456789abcdefABCDEF":
            return int(ch, 16)
        raise self._err("invalid hex digit")

    def _read_escape(self) -> str:
        c = self._peek()
        if c is None:
            raise self._err("unterminated escape")
        if c == "n": self._bump(1); return "\n"
        if c == "r": self._bump(1); return "\r"
        if c == "t": self._bump(1); return "\t"
        if c == "x":
            self._bump(1)
            h1 = self._peek(); self._bump(1)
            h2 = self._peek(); self._bump(1)
            return chr(self._hexval(h1) * 16 + self._hexval(h2))
        if c == "u":
            self._bump(1)
            val = 0
            for _ in range(4):
                h = self._peek(); self._bump(1)
                val = (val << 4) + self._hexval(h)
            return chr(val)
        # fallback: literal next char
        self._bump(1)
        return c

    def _literal(self) -> Literal:
        self._skip_ws()
        q = self._peek()
        if q not in ("'", '"'):
            raise self._err("expected quote")
        self._bump(1)
        out = []
        while not self._eof():
            c = self._peek()
            if c == q:
                self._bump(1)
                break
            if c == "\\":
                self._bump(1)
                out.append(self._read_escape())
            else:
                out.append(c)
                self._bump(1)
        else:
            raise self._err("unterminated string")
        return Literal("".join(out))

    # --- character classes ---

    def _class_items(self) -> CharClass:
        # after "[" ; reads up to and including "]"
        ranges: List[Tuple[int, int]] = []
        singles: List[str] = []
        escapes: List[str] = []

        def read_char() -> Tuple[str, bool]:
            if self._eof():
                raise self._err("unterminated char class")
            c = self._peek()
            if c == "\\":
                self._bump(1)
                nxt = self._peek()
                if nxt is not None and nxt in "dwsh":
                    self._bump(1)
                    return nxt, True
                return self._read_escape(), False
            self._bump(1)
            return c, False

        while True:
            self._skip_ws()
            if self._eof():
                raise self._err("unterminated char class")
            if self._peek() == "]":
                self._bump(1)
                break
            a, is_escape = read_char()
            if is_escape:
                escapes.append(a)
                continue
            self._skip_ws()
            if self._starts(".."):
                self._bump(2)
                self._skip_ws()
                b, b_escape = read_char()
                if b_escape:
                    raise self._err("class escape cannot end a range")
                if ord(a) > ord(b):
                    a, b = b, a
                ranges.append((ord(a), ord(b)))
            else:
                singles.append(a)
        return CharClass(ranges=tuple(ranges), singles="".join(singles),
                         escapes="".join(escapes))

    def _class_term(self) -> CharClass:
        self._skip_ws()
        if self._try_eat("["):
            return self._class_items()
        if self._try_eat(":"):
            m = _PROP_RE.match(self.s, self.i)
            if not m:
                raise self._err("expected Unicode property name")
            self.i = m.end()
            return CharClass(props=(m.group(0),))
        raise self._err("expected '[' or ':' in character class")

    def _class_expr(self) -> CharClass:
        # after "<"; reads up to and including ">"
        negated = self._try_eat("-")
        self._try_eat("+")
        cc = self._class_term()
        while self._try_eat("+"):
            more = self._class_term()
            cc = CharClass(ranges=cc.ranges + more.ranges,
                           singles=cc.singles + more.singles,
                           escapes=cc.escapes + more.escapes,
                           props=cc.props + more.props)
        self._eat(">")
        if negated:
            cc = CharClass(True, cc.ranges, cc.singles, cc.escapes, cc.props)
        return cc

    # --- grammar declarations ---

    def parse_source(self, known: Optional[Dict[str, Grammar]] = None) -> Dict[str, Grammar]:
        known = dict(known or {})
        out: Dict[str, Grammar] = {}
        while True:
            self._skip_ws()
            if self._eof():
                break
            if not self._keyword("grammar"):
                raise self._err("expected 'grammar'")
            name = self._qualified_ident()
            parent = None
            if self._keyword("is"):
                pname = self._qualified_ident()
                parent = out.get(pname) or known.get(pname)
                if parent is None:
                    raise self._err(f"unknown parent grammar '{pname}'")
            g = Grammar(name, parent)
            self._eat("{")
            while not self._try_eat("}"):
                if self._eof():
                    raise self._err(f"unclosed grammar '{name}'")
                self._parse_decl(g)
            self._try_eat(";")
            if name in out:
                raise self._err(f"duplicate grammar '{name}'")
            out[name] = g
        if not out:
            raise self._err("no grammar declared")
        return out

    def _parse_decl(self, g: Grammar) -> None:
        word = self._ident()
        if word == "proto":
            self._kind()
            name = self._ident()
            self._eat("{")
            if not self._try_eat("*"):
                self._eat("<...>")
            self._eat("}")
            g.declare_proto(name)
            return
        if word not in RuleKind.ALL:
            raise self._err(f"expected rule declaration, got {word!r}")
        name = self._ident()
        tag = None
        if self._starts(":sym<"):
            self._bump(5)
            end = self.s.find(">", self.i)
            if end == -1:
                raise self._err("unterminated :sym<...>")
            tag = self.s[self.i:end]
            self.i = end + 1
        self._eat("{")
        expr = self._parse_alt()
        self._eat("}")
        if tag is None and isinstance(g.own(name), Rule):
            raise self._err(f"duplicate rule '{name}'")
        g.register(name, Rule(name, expr, word, tag))

    def _kind(self) -> str:
        kind = self._ident()
        if kind not in RuleKind.ALL:
            raise self._err(f"expected token, rule or regex, got {kind!r}")
        return kind

    # --- recursive descent for expressions ---

    def _parse_alt(self) -> Node:
        self._skip_ws()
        if self._starts("|") and not self._starts("||"):
            self._bump(1)
        alts = [self._parse_longest()]
        while True:
            self._skip_ws()
            if not self._starts("|") or self._starts("||"):
                break
            self._bump(1)
            alts.append(self._parse_longest())
        if len(alts) == 1:
            return alts[0]
        return Choice(tuple(alts))

    def _parse_longest(self) -> Node:
        self._try_eat("||")
        alts = [self._parse_seq()]
        while self._try_eat("||"):
            alts.append(self._parse_seq())
        if len(alts) == 1:
            return alts[0]
        return Longest(tuple(alts))

    def _parse_seq(self) -> Node:
        items: List[Node] = []
        while True:
            self._skip_ws()
            ch = self._peek()
            if ch is None or ch in _SEQ_END:
                break
            if ch == "~":
                self._bump(1)
                if not items:
                    raise self._err("'~' needs an atom before it")
                goal = self._parse_quantified()
                body = self._parse_quantified()
                items[-1] = Goal(items[-1], goal, body)
                continue
            items.append(self._parse_quantified())
        if not items:
            return Seq(())  # empty sequence (epsilon)
        if len(items) == 1:
            return items[0]
        return Seq(tuple(items))

    def _parse_quantified(self) -> Node:
        atom = self._parse_atom()
        self._skip_ws()
        if self._try_eat("**"):
            lo, hi = self._count()
        elif self._try_eat("?"):
            lo, hi = 0, 1
        elif self._try_eat("*"):
            lo, hi = 0, None
        elif self._try_eat("+"):
            lo, hi = 1, None
        else:
            return atom
        self._skip_ws()
        if self._try_eat("%%"):
            return Repeat(atom, lo, hi, self._parse_atom(), True)
        if self._try_eat("%"):
            return Repeat(atom, lo, hi, self._parse_atom(), False)
        return Repeat(atom, lo, hi)

    def _count(self) -> Tuple[int, Optional[int]]:
        self._skip_ws()
        m = _INT_RE.match(self.s, self.i)
        if not m:
            raise self._err("expected repetition count after '**'")
        self.i = m.end()
        lo = int(m.group(0))
        if not self._starts(".."):
            return lo, lo
        self._bump(2)
        if self._starts("*"):
            self._bump(1)
            return lo, None
        m = _INT_RE.match(self.s, self.i)
        if not m:
            raise self._err("expected upper bound after '..'")
        self.i = m.end()
        hi = int(m.group(0))
        if hi < lo:
            raise self._err(f"empty repetition range {lo}..{hi}")
        return lo, hi

    def _parse_atom(self) -> Node:
        self._skip_ws()
        ch = self._peek()
        if ch is None:
            raise self._err("unexpected end of grammar")
        if ch in ("'", '"'):
            return self._literal()
        if ch == "[":
            self._bump(1)
            e = self._parse_alt()
            self._eat("]")
            return e
        if ch == "(":
            self._bump(1)
            e = self._parse_alt()
            self._eat(")")
            return Capture(e)
        if self._starts("$<"):
            self._bump(2)
            name = self._ident()
            self._eat(">")
            self._eat("=")
            target = self._parse_atom()
            if isinstance(target, Ref):
                return Ref(target.name, name)
            return Capture(target, name)
        if ch == "$":
            self._bump(1)
            return Anchor("$")
        if ch == "^":
            self._bump(1)
            return Anchor("^")
        if ch == ".":
            self._bump(1)
            return Any()
        if ch == "\\":
            self._bump(1)
            return self._backslash()
        if ch == "<":
            self._bump(1)
            return self._assertion()
        m = _WORD_RE.match(self.s, self.i)
        if m:
            self.i = m.end()
            return Literal(m.group(0))
        raise self._err(f"unquoted punctuation {ch!r}; quote it or escape it with '\\'")

    def _backslash(self) -> Node:
        c = self._peek()
        if c is None:
            raise self._err("unterminated escape")
        if c in _BODY_CLASSES:
            self._bump(1)
            esc, neg = _BODY_CLASSES[c]
            return CharClass(negated=neg, escapes=esc)
        if c == "N":
            self._bump(1)
            return CharClass(negated=True, singles="\n")
        return Literal(self._read_escape())

    def _assertion(self) -> Node:
        # after "<"
        self._skip_ws()
        if self._starts("[") or self._starts("-") or self._starts("+") or self._starts(":"):
            return self._class_expr()
        if self._starts("!") or self._starts("?"):
            negated = self._peek() == "!"
            self._bump(1)
            if self._keyword("before"):
                node = self._parse_alt()
                self._eat(">")
                return Before(node, negated)
            name = self._ident()
            self._eat(">")
            return Before(Ref(name), negated)
        if self._try_eat("."):
            name = self._ident()
            self._eat(">")
            return Ref(name)
        name = self._ident()
        if name == "before":
            node = self._parse_alt()
            self._eat(">")
            return Before(node)
        if name == "sym" and self._try_eat(">"):
            return Sym()
        if self._try_eat("="):
            self._try_eat(".")
            target = self._ident()
            self._eat(">")
            return Ref(target, name)
        self._eat(">")
        return Ref(name, name)


def parse_grammars(src: str, known: Optional[Dict[str, Grammar]] = None) -> Dict[str, Grammar]:
    """Parse every `grammar NAME { ... }` in `src`.

    `known` supplies grammars that `is PARENT` may refer to besides those
    defined earlier in the same text.
    """
    ts = _TS(src)
    return ts.parse_source(known)

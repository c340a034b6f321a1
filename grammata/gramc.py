# grammata/gramc.py
"""gramc – grammata CLI

Examples:
    $ gramc check grammars/json.g -D
    $ gramc parse grammars/json.g --text '{"a": 1}'
    $ gramc parse grammars/json.g --grammar JSONC --rule TOP --input doc.json -D

Commands
--------
- check : load a grammar file, validate every grammar in it, print a summary
- parse : match input text against a grammar rule and print the match tree

Debug mode (-D/--debug) prints loading steps and, for `parse`, a trace of
every rule call on stderr.
"""

from __future__ import annotations
import argparse
import sys
from typing import Optional

# ------------------------------
# helpers
# ------------------------------

def _eprint(*args, **kw) -> None:
    print(*args, file=sys.stderr, **kw)

# ------------------------------
# loading
# ------------------------------

def _load_program(grammar_path: str, debug: bool):
    from .peg.runtime import GrammarProgram

    program = GrammarProgram.from_file(grammar_path, validate=False)
    if debug: _eprint("[DEBUG] grammars parsed | %s" % ", ".join(program.grammars))
    for g in program.grammars.values():
        g.validate()
        if debug: _eprint("[DEBUG] grammar %s validated | rules=%d" % (g.name, len(g.names())))
    return program

# ------------------------------
# debug output
# ------------------------------

def _print_grammar_summary(g) -> None:
    from .peg.grammar import ProtoGroup

    parent = f" is {g.parent.name}" if g.parent is not None else ""
    _eprint(f"\n[GRAMMAR] {g.name}{parent}")
    for name in g.names():
        entry = g.lookup(name)
        own = "" if g.own(name) is not None else "  (inherited)"
        if isinstance(entry, ProtoGroup):
            _eprint(f"  proto {name}: {', '.join(entry.tags) or '(no alternatives)'}{own}")
        else:
            _eprint(f"  {entry.kind:<5} {name}{own}")

# ------------------------------
# commands
# ------------------------------

def cmd_check(args) -> int:
    from .peg.errors import GrammarError
    try:
        program = _load_program(args.file, debug=args.debug)
    except GrammarError as e:
        _eprint("[GRAMMAR ERROR]")
        _eprint(str(e))
        return 2
    except OSError as e:
        _eprint("[ERROR]", type(e).__name__, str(e))
        return 2

    if args.debug:
        for g in program.grammars.values():
            _print_grammar_summary(g)

    for g in program.grammars.values():
        print(f"[CHECK OK] grammar={g.name} rules={len(g.names())}")
    return 0


def cmd_parse(args) -> int:
    from .peg.errors import GrammarError, StackExhausted
    from .peg.engine import MatchConfig
    from .peg.loader import load_text
    from .peg.runtime import Failure, parse
    try:
        program = _load_program(args.file, debug=args.debug)
        g = program[args.grammar] if args.grammar else program.main
        text = args.text if args.text is not None else load_text(args.input)
    except KeyError:
        _eprint(f"[ERROR] no grammar named {args.grammar!r} in {args.file}")
        return 2
    except GrammarError as e:
        _eprint("[GRAMMAR ERROR]")
        _eprint(str(e))
        return 2
    except OSError as e:
        _eprint("[ERROR]", type(e).__name__, str(e))
        return 2

    config = MatchConfig(debug=args.debug, max_depth=args.max_depth)
    try:
        result = parse(g, args.rule, text, anchored=not args.no_anchor, config=config)
    except (GrammarError, StackExhausted) as e:
        _eprint("[GRAMMAR ERROR]", type(e).__name__, str(e))
        return 2

    if isinstance(result, Failure):
        _eprint("[PARSE FAILED]")
        _eprint(str(result.exception()))
        return 1
    print(result.dump())
    return 0

# ------------------------------
# entrypoint
# ------------------------------

def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="gramc", description="grammata grammar CLI")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p_check = sub.add_parser("check", help="load and validate the grammars in a file")
    p_check.add_argument("file", help="grammar file")
    p_check.add_argument("-D", "--debug", action="store_true", help="print rule summaries")
    p_check.set_defaults(func=cmd_check)

    p_parse = sub.add_parser("parse", help="match input against a grammar rule")
    p_parse.add_argument("file", help="grammar file")
    p_parse.add_argument("-g", "--grammar", help="grammar name (default: last in file)")
    p_parse.add_argument("-r", "--rule", default="TOP", help="start rule (default: TOP)")
    p_parse.add_argument("--no-anchor", action="store_true",
                         help="do not require the rule to consume the whole input")
    p_parse.add_argument("--max-depth", type=int, default=None, help="limit nested rule calls")
    p_parse.add_argument("-D", "--debug", action="store_true", help="trace rule calls on stderr")
    src_group = p_parse.add_mutually_exclusive_group(required=True)
    src_group.add_argument("--text", help="input text")
    src_group.add_argument("--input", help="input file path")
    p_parse.set_defaults(func=cmd_parse)

    args = ap.parse_args(argv)
    return int(args.func(args))

if __name__ == "__main__":
    sys.exit(main())

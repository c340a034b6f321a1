import sys
from concurrent.futures import ThreadPoolExecutor

import pytest

from grammata import (
    Failure, Grammar, GrammarError, Match, MatchConfig, ParseFailed, Rule,
    StackExhausted, UnknownRule, load_grammar, parse, parse_grammars,
    parse_or_raise, subparse,
)
from grammata.examples.json_grammar import JSON, from_json
from grammata.peg import Literal, Ref, Seq

DOCS = [
    "{}",
    "[]",
    '{"a": 1}',
    '[1, 2.5, -3e2, "x", true, false, null]',
    '{ "nested" : { "list" : [ [], {} ] } }',
    '  [ "with \\"escape\\" and \\u00e9" ]  ',
]


@pytest.mark.parametrize("doc", DOCS)
def test_anchored_parse_spans_whole_input(doc):
    m = parse(JSON, "TOP", doc)
    assert isinstance(m, Match)
    assert m.span == (0, len(doc))


@pytest.mark.parametrize("doc", DOCS)
def test_memoization_does_not_change_results(doc):
    a = parse(JSON, "TOP", doc)
    b = parse(JSON, "TOP", doc, config=MatchConfig(memoize=False))
    assert a.dump() == b.dump()


def test_unanchored_and_subparse(top):
    g = top("'a'")
    assert not parse(g, "TOP", "ab")
    assert parse(g, "TOP", "ab", anchored=False).span == (0, 1)
    w = top("\\w+")
    assert subparse(w, "TOP", "hi there", 3).span == (3, 8)


def test_failure_reports_furthest_position():
    f = parse(JSON, "TOP", "[1, 2 x]")
    assert isinstance(f, Failure)
    assert not f
    assert f.position == 6
    assert f.goal == "']'"


def test_failure_line_and_column():
    f = parse(JSON, "TOP", "[1,\n 2 x]")
    assert f.position == 7
    assert (f.line, f.column) == (2, 4)
    assert "2:4" in f.message()
    assert str(f) == f.message()


def test_failure_expected_alternatives(top):
    f = parse(top("'a' | 'b'"), "TOP", "c")
    assert f.position == 0
    assert f.expected == ("'a'", "'b'")
    assert f.rule == "TOP"
    assert "expected 'a' or 'b'" in f.message()


def test_failure_for_trailing_input(top):
    f = parse(top("'a'"), "TOP", "ab")
    assert f.position == 1
    assert "end of input" in f.expected


def test_failure_exception_has_caret():
    f = parse(JSON, "TOP", "[1, 2 x]")
    exc = f.exception()
    assert isinstance(exc, ParseFailed)
    assert isinstance(exc, SyntaxError)
    assert exc.position == 6
    assert str(exc).endswith("[1, 2 x]\n      ^")


def test_parse_or_raise():
    assert parse_or_raise(JSON, "TOP", "[1]").span == (0, 3)
    with pytest.raises(ParseFailed) as ei:
        parse_or_raise(JSON, "TOP", "[1,]")
    assert ei.value.position == 3


def test_unknown_start_rule_raises():
    with pytest.raises(UnknownRule):
        parse(JSON, "nope", "{}")


def test_left_recursion_without_validation_raises_stack_exhausted():
    g = Grammar("L")
    g.register("e", Rule("e", Seq((Ref("e", "e"), Literal("+")))))
    with pytest.raises(StackExhausted) as ei:
        parse(g, "e", "1+")
    assert ei.value.rule == "e"
    assert ei.value.position == 0


def test_left_recursion_caught_by_validate_option():
    g = parse_grammars("grammar L { token e { <e> '+' } }")["L"]
    with pytest.raises(GrammarError, match="left recursion"):
        parse(g, "e", "+", config=MatchConfig(validate=True))


def test_max_depth():
    g = load_grammar("grammar P { token p { '(' <p>? ')' } }")
    cfg = MatchConfig(max_depth=3)
    assert parse(g, "p", "(())", config=cfg)
    with pytest.raises(StackExhausted):
        parse(g, "p", "(((())))", config=cfg)


def test_deeply_nested_valid_input_parses():
    limit = sys.getrecursionlimit()
    depth = 500
    doc = "[" * depth + "]" * depth
    assert parse(JSON, "TOP", doc).span == (0, 2 * depth)
    value = from_json(doc)
    for _ in range(depth - 1):
        assert len(value) == 1
        value = value[0]
    assert value == []
    assert sys.getrecursionlimit() == limit


def test_deep_input_raises_stack_exhausted():
    doc = "[" * 5000 + "]" * 5000
    with pytest.raises(StackExhausted):
        parse(JSON, "TOP", doc)


def test_concurrent_parses_share_a_grammar():
    docs = DOCS * 4
    expected = [parse(JSON, "TOP", d).dump() for d in docs]
    with ThreadPoolExecutor(max_workers=4) as ex:
        got = list(ex.map(lambda d: parse(JSON, "TOP", d).dump(), docs))
    assert got == expected


def test_debug_trace(top, capsys):
    parse(top("'a'"), "TOP", "a", config=MatchConfig(debug=True))
    err = capsys.readouterr().err
    assert "> TOP @0" in err
    assert "< TOP ok [0,1)" in err

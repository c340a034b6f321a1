from grammata import Failure, Match, load_grammar, parse, subparse


# ---- leaves ----

def test_literal(top):
    g = top("'abc'")
    m = parse(g, "TOP", "abc")
    assert isinstance(m, Match)
    assert m.span == (0, 3)
    assert m.text == "abc"

    f = parse(g, "TOP", "abd")
    assert isinstance(f, Failure)
    assert f.position == 0
    assert f.expected == ("'abc'",)


def test_char_class_ranges(top):
    g = top("<[a..c]>+")
    assert parse(g, "TOP", "abcab").span == (0, 5)
    f = parse(g, "TOP", "abd")
    assert isinstance(f, Failure)
    assert f.position == 2


def test_negated_class_and_unicode_properties(top):
    assert parse(top("<:Lu> <:Ll>+"), "TOP", "Éte")
    assert not parse(top("<:Lu> <:Ll>+"), "TOP", "éte")
    g = top("<-[x]>")
    assert parse(g, "TOP", "y")
    assert not parse(g, "TOP", "x")
    assert parse(top("<:L + [_]>+"), "TOP", "a_b")


def test_backslash_classes(top):
    g = top(r"\d+ \s \w+ \N")
    assert parse(g, "TOP", "12 ab!")
    assert not parse(g, "TOP", "12 ab\n")
    assert parse(top(r"\D \S"), "TOP", "a!")
    assert not parse(top(r"\D"), "TOP", "7")


def test_any_and_anchors(top):
    assert parse(top(". ."), "TOP", "xy")
    assert not parse(top(". ."), "TOP", "x")
    assert not subparse(top("'a' $"), "TOP", "ab")
    assert subparse(top("'a' $"), "TOP", "a")
    assert not subparse(top("^ 'b'"), "TOP", "ab", 1)
    assert subparse(top("'b'"), "TOP", "ab", 1).span == (1, 2)


# ---- sequences and choices ----

def test_sequence_backtracks_captures():
    g = load_grammar("""
        grammar T {
            token TOP { [ <a> 'z' | <a> <b> ] }
            token a { 'a' }
            token b { 'b' }
        }
    """)
    m = parse(g, "TOP", "ab")
    # the capture of the failed first branch is dropped
    assert isinstance(m["a"], Match)
    assert m["b"].span == (1, 2)


def test_rule_kind_matches_whitespace_between_atoms(top):
    g = top("'a' 'b'", kind="rule")
    assert parse(g, "TOP", "a   b")
    assert parse(g, "TOP", "ab")
    assert not parse(top("'a' 'b'"), "TOP", "a b")
    assert not parse(top("'a' 'b'", kind="regex"), "TOP", "a b")


def test_rule_kind_uses_overridden_ws():
    g = load_grammar("""
        grammar T {
            rule TOP { 'a' 'b' }
            token ws { '-'* }
        }
    """)
    assert parse(g, "TOP", "a--b")
    assert not parse(g, "TOP", "a b")


def test_ordered_choice_takes_first_success(top):
    assert subparse(top("'a' | 'ab'"), "TOP", "ab").span == (0, 1)


def test_longest_choice_takes_longest(top):
    assert subparse(top("'a' || 'ab'"), "TOP", "ab").span == (0, 2)


def test_longest_choice_tie_goes_to_first_declared(top):
    g = top("$<first>=['ab'] || $<second>=['a' 'b']")
    for _ in range(5):
        m = parse(g, "TOP", "ab")
        assert "first" in m
        assert "second" not in m


def test_proto_group_longest_match_and_tie():
    g = load_grammar("""
        grammar T {
            proto token thing {*}
            token thing:sym<short> { 'a' }
            token thing:sym<long>  { 'ab' }
            token thing:sym<also>  { 'a' 'b' }
        }
    """)
    m = parse(g, "thing", "ab")
    assert m.rule_name == "thing"
    assert m.alt_tag == "long"
    assert parse(g, "thing", "a").alt_tag == "short"


# ---- repetition ----

DIGITS = """
    grammar T {
        token TOP { %s }
        token d { \\d }
    }
"""


def digits(body):
    return load_grammar(DIGITS % body)


def test_separated_repetition():
    g = digits("<d>+ % ','")
    m = parse(g, "TOP", "1,2,3")
    assert [d.text for d in m["d"]] == ["1", "2", "3"]


def test_separator_without_following_item_is_given_back():
    g = digits("<d>+ % ','")
    assert subparse(g, "TOP", "1,2,").span == (0, 3)
    f = parse(g, "TOP", "1,2,")
    assert isinstance(f, Failure)
    assert f.position == 4


def test_trailing_separator_allowed_with_double_percent():
    m = parse(digits("<d>+ %% ','"), "TOP", "1,2,")
    assert m.span == (0, 4)
    assert len(m["d"]) == 2


def test_repetition_counts():
    g = digits("<d> ** 2..3")
    assert parse(g, "TOP", "12")
    assert parse(g, "TOP", "123")
    assert not parse(g, "TOP", "1")
    assert not parse(g, "TOP", "1234")
    assert parse(digits("<d> ** 2"), "TOP", "12")
    assert parse(digits("<d> ** 1..*"), "TOP", "12345")


def test_optional_capture_is_single_node():
    g = digits("<d>? 'x'")
    assert isinstance(parse(g, "TOP", "1x")["d"], Match)
    assert "d" not in parse(g, "TOP", "x")


def test_star_with_no_matches_gives_empty_list():
    m = parse(digits("<d>* 'x'"), "TOP", "x")
    assert m["d"] == []
    assert m.all("d") == []


def test_zero_width_repetition_terminates(top):
    assert parse(top("[ 'a'? ]* 'b'"), "TOP", "aab")


def test_zero_width_repetition_counts_real_iterations():
    src = "grammar T { token TOP { %s } token e { '' } }"
    m = parse(load_grammar(src % "<e> ** 3"), "TOP", "")
    assert len(m["e"]) == 3
    m = parse(load_grammar(src % "<e>*"), "TOP", "")
    assert len(m["e"]) == 1
    m = parse(load_grammar(src % "<e> ** 2..4 % ','"), "TOP", ",")
    assert m.span == (0, 1)
    assert len(m["e"]) == 2
    assert not parse(load_grammar(src % "<e> ** 3 % ','"), "TOP", ",")


def test_separator_in_rule_kind_allows_whitespace():
    g = load_grammar("""
        grammar T {
            rule TOP { <d>+ % ',' }
            token d { \\d }
        }
    """)
    assert len(parse(g, "TOP", "1 , 2 ,3")["d"]) == 3


# ---- lookahead ----

def test_negative_lookahead(top):
    g = top("<!before 'x'> .")
    assert parse(g, "TOP", "a")
    assert not parse(g, "TOP", "x")


def test_positive_lookahead_consumes_nothing(top):
    g = top("<before 'ab'> 'a' 'b'")
    assert parse(g, "TOP", "ab").span == (0, 2)
    assert not parse(top("<?before 'a'> \\w+"), "TOP", "bcd")
    assert parse(top("<?before 'a'> \\w+"), "TOP", "abc")


# ---- sub-rule calls and captures ----

def test_named_alias_and_silent_calls():
    g = load_grammar("""
        grammar T {
            token TOP { <a> <b=a> <.a> }
            token a { 'a' }
        }
    """)
    m = parse(g, "TOP", "aaa")
    assert m["a"].span == (0, 1)
    assert m["b"].span == (1, 2)
    assert m["b"].rule_name == "a"
    assert m.keys() == ["a", "b"]


def test_repeated_name_becomes_list():
    g = load_grammar("""
        grammar T {
            token TOP { <a> '-' <a> }
            token a { \\w }
        }
    """)
    m = parse(g, "TOP", "x-y")
    assert [a.text for a in m["a"]] == ["x", "y"]


def test_positional_captures(top):
    m = parse(top("( 'a' ) ( 'b' ( 'c' ) )"), "TOP", "abc")
    assert m[0].text == "a"
    assert m[1].text == "bc"
    assert m[1][0].text == "c"
    assert m[0].rule_name == ""


def test_named_group_capture(top):
    m = parse(top("$<word>=[ \\w+ ] ' ' $<num>=[ \\d+ ]"), "TOP", "hello 42")
    assert m["word"].text == "hello"
    assert m["num"].text == "42"


# ---- goal-directed bracketing ----

GOAL = """
    grammar T {
        rule R { '{' ~ '}' <x> }
        token x { \\d+ }
    }
"""


def test_goal_matches_bracketed_body():
    g = load_grammar(GOAL)
    assert parse(g, "R", "{12}").span == (0, 4)
    assert parse(g, "R", "{ 12 }")["x"].text == "12"


def test_missing_goal_is_attributed_to_goal():
    g = load_grammar(GOAL)
    f = parse(g, "R", "{12")
    assert isinstance(f, Failure)
    assert f.goal == "'}'"
    assert f.position == 3
    assert "couldn't find final '}'" in f.message()


def test_goal_failure_position_after_body():
    f = parse(load_grammar(GOAL), "R", "{12 x")
    assert f.goal == "'}'"
    assert f.position == 4


def test_goal_capture_is_not_positional(top):
    m = parse(top("'(' ~ (')') ( \\w+ )"), "TOP", "(ab)")
    assert len(m.positional) == 1
    assert m[0].text == "ab"


# ---- match tree ----

def test_match_children_are_ordered_by_start():
    g = load_grammar("""
        grammar T {
            token TOP { <b=x> <a=x> ( <x> ) }
            token x { \\w }
        }
    """)
    m = parse(g, "TOP", "pqr")
    assert [c.text for c in m.children()] == ["p", "q", "r"]
    assert [n.text for n in m.walk()] == ["pqr", "p", "q", "r", "r"]
    assert str(m) == "pqr"
    assert m.get("missing", 0) == 0
    assert not m.has_payload
    assert "TOP" in m.dump()

"""Property-based tests for the compiler pipeline."""

from __future__ import annotations

import json

from hypothesis import given, settings
from hypothesis import strategies as st

from mathspan.compiler import compile_math_with_subexpressions
from mathspan.parser import numberize, parse_math
from mathspan.source import FileId

leaves = st.one_of(
    st.sampled_from(list("abcxyz")),
    st.integers(min_value=0, max_value=999).map(str),
    st.sampled_from(["alpha", "beta", "pi", "oo", "sum", "sin"]),
)


def _combine(children: st.SearchStrategy[str]) -> st.SearchStrategy[str]:
    pair = st.tuples(children, children)
    return st.one_of(
        pair.map(lambda p: f"{p[0]} + {p[1]}"),
        pair.map(lambda p: f"{p[0]} = {p[1]}"),
        pair.map(lambda p: f"({p[0]})/({p[1]})"),
        pair.map(lambda p: f"{p[0]}^({p[1]})"),
        pair.map(lambda p: f"{p[0]}_({p[1]})"),
        pair.map(lambda p: f"sqrt({p[0]} - {p[1]})"),
        pair.map(lambda p: f"frac({p[0]}, {p[1]})"),
        pair.map(lambda p: f"abs({p[0]} {p[1]})"),
        pair.map(lambda p: f"({p[0]}, {p[1]})"),
    )


expressions = st.recursive(leaves, _combine, max_leaves=10)

noise = st.text(
    alphabet=st.sampled_from(list("ab xy12+-*/^_()[]{}|,;&'\\\"√=<>αβ")),
    max_size=40,
)


nested = st.builds(
    lambda wrap, depth: wrap[0] * depth + "x" + wrap[1] * depth,
    st.sampled_from([
        ("(", ")"), ("[", "]"), ("{", "}"), ("|", "|"), ("sqrt(", ")"),
        ("x^(", ")"), ("x_", ""), ("√", ""), ("a/", ""), ("#(", ")"),
        ("#[", "]"), ("#(-", ")"), ("#(1 + ", ")"),
    ]),
    st.integers(min_value=1, max_value=400),
)


def records(text: str) -> list[dict]:
    result = json.loads(compile_math_with_subexpressions(text))
    assert "error" not in result, result
    return result["subexpressions"]


@settings(deadline=None, max_examples=60)
@given(expressions)
def test_well_formed_expressions_compile(text):
    assert records(text)


@settings(deadline=None, max_examples=60)
@given(expressions)
def test_record_text_matches_source_range(text):
    data = text.encode("utf-8")
    for rec in records(text):
        assert rec["text"] == data[rec["source_start"]:rec["source_end"]].decode("utf-8")


@settings(deadline=None, max_examples=60)
@given(expressions)
def test_root_record_encloses_all_others(text):
    root, *rest = records(text)
    assert (root["source_start"], root["source_end"]) == (0, len(text.encode("utf-8")))
    eps = 1e-9
    for rec in rest:
        assert rec["width"] >= 0 and rec["height"] >= 0
        assert rec["glyph_lines"] >= 1
        assert rec["glyph_lines"] <= root["glyph_lines"]
        assert root["x"] - eps <= rec["x"]
        assert root["y"] - eps <= rec["y"]
        assert rec["x"] + rec["width"] <= root["x"] + root["width"] + eps
        assert rec["y"] + rec["height"] <= root["y"] + root["height"] + eps


@settings(deadline=None, max_examples=60)
@given(expressions)
def test_record_ranges_are_distinct(text):
    ranges = [(r["source_start"], r["source_end"]) for r in records(text)]
    assert len(ranges) == len(set(ranges))


@settings(deadline=None, max_examples=40)
@given(expressions)
def test_numbering_is_dense_and_unique(text):
    _, ranges = numberize(parse_math(text), FileId("/prop.typ"))
    assert sorted(ranges) == list(range(2, 2 + len(ranges)))


@settings(deadline=None, max_examples=40)
@given(expressions)
def test_output_is_deterministic(text):
    assert compile_math_with_subexpressions(text) == compile_math_with_subexpressions(text)


@settings(deadline=None, max_examples=150)
@given(noise)
def test_arbitrary_input_always_yields_json(text):
    result = json.loads(compile_math_with_subexpressions(text))
    assert set(result) in ({"error"}, {"svg", "subexpressions"})


@settings(deadline=None, max_examples=80)
@given(nested)
def test_deeply_nested_input_always_yields_json(text):
    result = json.loads(compile_math_with_subexpressions(text))
    assert set(result) in ({"error"}, {"svg", "subexpressions"})

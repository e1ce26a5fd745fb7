"""Tests for the math parser, span numbering and source resolution."""

from __future__ import annotations

import pytest

from mathspan.ast_nodes import (
    Array,
    Binary,
    ContentBlock,
    Dict,
    FieldAccess,
    FuncCall,
    Ident,
    Int,
    Linebreak,
    Math,
    MathAlignPoint,
    MathAttach,
    MathDelimited,
    MathFrac,
    MathIdent,
    MathRoot,
    MathShorthand,
    MathText,
    Named,
    Parenthesized,
    Str,
    Unary,
)
from mathspan.errors import CompileError
from mathspan.lexer import MAX_NESTING
from mathspan.parser import Unnumberable, numberize, parse_math
from mathspan.source import DETACHED, ByteRange, FileId, Source, Span, line_col

FILE = FileId("/test.typ")


def parse(source: str) -> Math:
    """Helper: parse source into a Math root."""
    return parse_math(source)


def first(source: str):
    """Helper: parse source and return its first expression."""
    return parse(source).exprs[0]


def code(source: str):
    """Helper: parse an embedded code expression."""
    return first("#" + source)


def parse_error_codes(source: str) -> list[str]:
    with pytest.raises(CompileError) as exc_info:
        parse_math(source)
    return [d.code for d in exc_info.value.diagnostics]


def parse_error_messages(source: str) -> list[str]:
    with pytest.raises(CompileError) as exc_info:
        parse_math(source)
    return [d.message for d in exc_info.value.diagnostics]


class TestParserMath:
    def test_empty(self):
        root = parse("")
        assert root.exprs == []
        assert root.range == ByteRange(0, 0)

    def test_sequence(self):
        root = parse("a+b")
        assert [e.text for e in root.exprs] == ["a", "+", "b"]
        assert root.range == ByteRange(0, 3)

    def test_identifier(self):
        expr = first("alpha")
        assert isinstance(expr, MathIdent)
        assert expr.name == "alpha"

    def test_shorthand(self):
        expr = first("->")
        assert isinstance(expr, MathShorthand)
        assert expr.symbol == "→"

    def test_fraction(self):
        expr = first("a/b")
        assert isinstance(expr, MathFrac)
        assert expr.num.text == "a"
        assert expr.denom.text == "b"
        assert expr.range == ByteRange(0, 3)

    def test_fraction_is_left_associative(self):
        expr = first("a/b/c")
        assert isinstance(expr, MathFrac)
        assert isinstance(expr.num, MathFrac)
        assert expr.denom.text == "c"

    def test_fraction_binds_looser_than_attachment(self):
        expr = first("x^2/y")
        assert isinstance(expr, MathFrac)
        assert isinstance(expr.num, MathAttach)

    def test_sub_and_superscript(self):
        expr = first("x_i^2")
        assert isinstance(expr, MathAttach)
        assert expr.base.text == "x"
        assert expr.bottom.text == "i"
        assert expr.top.text == "2"
        assert expr.primes is None
        assert expr.range == ByteRange(0, 5)

    def test_repeated_superscripts_nest_to_the_right(self):
        expr = first("x^a^b")
        assert expr.base.text == "x"
        assert expr.bottom is None
        assert isinstance(expr.top, MathAttach)
        assert expr.top.base.text == "a"
        assert expr.top.top.text == "b"
        assert expr.top.range == ByteRange(2, 5)

    def test_repeated_subscripts_nest_to_the_right(self):
        expr = first("x_a_b")
        assert expr.top is None
        assert expr.bottom.base.text == "a"
        assert expr.bottom.bottom.text == "b"

    def test_third_script_attaches_to_the_second(self):
        expr = first("x^a_b^c")
        assert expr.top.text == "a"
        assert isinstance(expr.bottom, MathAttach)
        assert expr.bottom.base.text == "b"
        assert expr.bottom.top.text == "c"
        assert expr.range == ByteRange(0, 7)

    def test_nested_superscript_takes_its_own_subscript(self):
        expr = first("x^a^b_c")
        assert expr.bottom is None
        assert expr.top.base.text == "a"
        assert expr.top.top.text == "b"
        assert expr.top.bottom.text == "c"

    def test_primes(self):
        expr = first("f''")
        assert isinstance(expr, MathAttach)
        assert expr.primes.count == 2
        assert expr.primes.range == ByteRange(1, 3)

    def test_parenthesized_group(self):
        expr = first("(a+b)")
        assert isinstance(expr, MathDelimited)
        assert expr.open.text == "("
        assert expr.close.text == ")"
        assert expr.body.range == ByteRange(1, 4)
        assert len(expr.body.exprs) == 3

    def test_absolute_value_bars(self):
        expr = first("|x|")
        assert isinstance(expr, MathDelimited)
        assert expr.open.text == "|"
        assert expr.close.text == "|"

    def test_lone_bar_is_text(self):
        expr = first("|x")
        assert isinstance(expr, MathText)
        assert expr.text == "|"

    def test_unmatched_closer_is_text(self):
        expr = first(")")
        assert isinstance(expr, MathText)

    def test_square_root_sign(self):
        expr = first("√x")
        assert isinstance(expr, MathRoot)
        assert expr.index is None
        assert expr.range == ByteRange(0, 4)

    def test_cube_root_sign(self):
        expr = first("∛x")
        assert expr.index == 3

    def test_align_point_and_linebreak(self):
        root = parse("a &= b \\ c")
        assert any(isinstance(e, MathAlignPoint) for e in root.exprs)
        assert any(isinstance(e, Linebreak) for e in root.exprs)

    def test_string(self):
        expr = first('"if"')
        assert isinstance(expr, Str)
        assert expr.value == "if"


class TestParserMathCalls:
    def test_call(self):
        expr = first("sqrt(x)")
        assert isinstance(expr, FuncCall)
        assert expr.callee.name == "sqrt"
        assert [a.text for a in expr.args.items] == ["x"]

    def test_call_needs_adjacent_paren(self):
        root = parse("sqrt (x)")
        assert isinstance(root.exprs[0], MathIdent)
        assert isinstance(root.exprs[1], MathDelimited)

    def test_multi_item_argument_is_math(self):
        expr = first("sqrt(x+1)")
        arg = expr.args.items[0]
        assert isinstance(arg, Math)
        assert arg.range == ByteRange(5, 8)

    def test_several_arguments(self):
        expr = first("frac(a, b)")
        assert [a.text for a in expr.args.items] == ["a", "b"]

    def test_rows(self):
        expr = first("mat(1, 2; 3, 4)")
        rows = expr.args.items
        assert all(isinstance(r, Array) for r in rows)
        assert [[c.text for c in r.items] for r in rows] == [["1", "2"], ["3", "4"]]
        assert rows[0].range == ByteRange(4, 8)

    def test_named_argument(self):
        expr = first('vec(1, 2, delim: "[")')
        named = expr.args.items[-1]
        assert isinstance(named, Named)
        assert named.name == "delim"
        assert named.expr.value == "["


class TestParserCode:
    def test_precedence(self):
        expr = code("(1 + 2 * 3)")
        assert isinstance(expr, Parenthesized)
        inner = expr.expr
        assert isinstance(inner, Binary)
        assert inner.op == "+"
        assert isinstance(inner.rhs, Binary)
        assert inner.rhs.op == "*"

    def test_not_binds_looser_than_comparison(self):
        expr = code("(not true and false)").expr
        assert isinstance(expr, Binary)
        assert expr.op == "and"
        assert isinstance(expr.lhs, Unary)

    def test_unary_minus(self):
        expr = code("(-1 - 2)").expr
        assert expr.op == "-"
        assert isinstance(expr.lhs, Unary)
        assert isinstance(expr.lhs.expr, Int)

    def test_array(self):
        expr = code("(1, 2)")
        assert isinstance(expr, Array)
        assert len(expr.items) == 2

    def test_single_item_array(self):
        expr = code("(1,)")
        assert isinstance(expr, Array)
        assert len(expr.items) == 1

    def test_empty_array_and_dict(self):
        assert isinstance(code("()"), Array)
        assert isinstance(code("(:)"), Dict)

    def test_dict(self):
        expr = code("(a: 1, b: 2)")
        assert isinstance(expr, Dict)
        assert [i.name for i in expr.items] == ["a", "b"]

    def test_call_with_named_and_content(self):
        expr = code("f(x: 1)[y]")
        assert isinstance(expr, FuncCall)
        assert isinstance(expr.callee, Ident)
        named, block = expr.args.items
        assert isinstance(named, Named)
        assert isinstance(block, ContentBlock)

    def test_field_access(self):
        expr = code("calc.pi")
        assert isinstance(expr, FieldAccess)
        assert expr.field == "pi"
        assert expr.target.name == "calc"

    def test_content_block(self):
        expr = code("[a b]")
        assert isinstance(expr, ContentBlock)
        assert [e.text for e in expr.body.exprs] == ["a", "b"]


class TestParserErrors:
    def test_dangling_infix(self):
        assert parse_error_messages("a +") == ['expected expression after "+"']

    def test_missing_denominator(self):
        assert parse_error_codes("a/") == ["E202"]

    def test_missing_superscript(self):
        assert parse_error_messages("x^") == ["missing superscript"]

    def test_missing_radicand(self):
        assert parse_error_codes("√") == ["E204"]

    def test_script_without_base(self):
        assert parse_error_codes("^x") == ["E205"]

    def test_unclosed_delimiter(self):
        assert parse_error_codes("(a") == ["E206"]

    def test_unclosed_argument_list(self):
        assert parse_error_codes("sqrt(a") == ["E207"]

    def test_code_expression_expected(self):
        assert parse_error_codes("#(1 +)") == ["E210"]

    def test_mixed_dict(self):
        assert parse_error_codes("#(a: 1, 2)") == ["E211"]

    def test_keyed_argument(self):
        assert parse_error_codes("#f((a): 1)") == ["E212"]

    def test_lexer_errors_propagate(self):
        with pytest.raises(CompileError):
            parse_math('"open')


class TestParserNesting:
    def test_nesting_within_limit(self):
        depth = MAX_NESTING - 1
        expr = first("(" * depth + "a" + ")" * depth)
        assert isinstance(expr, MathDelimited)

    def test_nested_delimiters(self):
        assert parse_error_codes("(" * 200 + "a" + ")" * 200) == ["E213"]

    def test_message(self):
        assert parse_error_messages("√" * 100 + "x") == [
            f"maximum nesting depth of {MAX_NESTING} exceeded",
        ]

    def test_nested_scripts(self):
        assert parse_error_codes("x" + "^x" * 100) == ["E213"]

    def test_fraction_chain(self):
        assert parse_error_codes("a" + "/a" * 100) == ["E213"]

    def test_binary_chain(self):
        assert parse_error_codes("#(" + "1 + " * 100 + "1)") == ["E213"]

    def test_unary_chain(self):
        assert parse_error_codes("#(" + "-" * 100 + "1)") == ["E213"]

    def test_field_chain(self):
        assert parse_error_codes("#x" + ".y" * 100) == ["E213"]

    def test_flat_sequences_are_not_nesting(self):
        assert len(parse("a + " * 300 + "a").exprs) == 601

    def test_depth_is_restored_between_siblings(self):
        tree = parse("(" * 40 + "a" + ")" * 40 + " " + "(" * 40 + "b" + ")" * 40)
        assert len(tree.exprs) == 2


class TestNumberize:
    def test_pre_order(self):
        tree, ranges = numberize(parse("a+b"), FILE)
        assert tree.span == Span(FILE, 2)
        assert [e.span.number for e in tree.exprs] == [3, 4, 5]
        assert ranges == {
            2: ByteRange(0, 3),
            3: ByteRange(0, 1),
            4: ByteRange(1, 2),
            5: ByteRange(2, 3),
        }

    def test_parent_before_children(self):
        tree, _ = numberize(parse("a/b"), FILE)
        frac = tree.exprs[0]
        assert frac.span.number == 3
        assert frac.num.span.number == 4
        assert frac.denom.span.number == 5

    def test_nested_fields_follow_declaration_order(self):
        tree, _ = numberize(parse("(a)"), FILE)
        delim = tree.exprs[0]
        numbers = [
            delim.span.number, delim.open.span.number, delim.body.span.number,
            delim.body.exprs[0].span.number, delim.close.span.number,
        ]
        assert numbers == [3, 4, 5, 6, 7]

    def test_unnumbered_tree_is_detached(self):
        assert parse("a").exprs[0].span == DETACHED

    def test_numbers_are_unique(self):
        _, ranges = numberize(parse("sum_(i=1)^n x_i / (1 + sqrt(2))"), FILE)
        assert min(ranges) == 2
        assert sorted(ranges) == list(range(2, 2 + len(ranges)))

    def test_too_small_interval(self):
        with pytest.raises(Unnumberable):
            numberize(parse("a+b"), FILE, within=range(2, 4))


class TestSource:
    def make(self, text: str) -> Source:
        tree, ranges = numberize(parse(text), FILE)
        return Source(FILE, text, tree, ranges)

    def test_resolves_own_spans(self):
        source = self.make("a+b")
        assert source.range(Span(FILE, 4)) == ByteRange(1, 2)

    def test_foreign_and_detached_spans(self):
        source = self.make("a+b")
        assert source.range(Span(FileId("/other.typ"), 4)) is None
        assert source.range(DETACHED) is None
        assert source.range(Span(FILE, 999)) is None

    def test_text_at_multibyte(self):
        source = self.make("α+β")
        assert len(source) == 5
        assert source.text_at(ByteRange(3, 5)) == "β"

    def test_line_col(self):
        assert line_col(b"a\nbc", 3) == (2, 2)
        assert line_col("αb".encode("utf-8"), 2) == (1, 2)

    def test_invalid_range(self):
        with pytest.raises(ValueError):
            ByteRange(3, 2)

    def test_range_contains(self):
        assert ByteRange(0, 5).contains(ByteRange(1, 5))
        assert not ByteRange(1, 5).contains(ByteRange(0, 2))

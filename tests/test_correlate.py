"""Tests for span extraction, frame fragment collection and correlation."""

from __future__ import annotations

import pytest

from mathspan.correlate import (
    AstSpanEntry,
    FrameFragment,
    Subexpression,
    collect_frame_fragments,
    correlate,
    extract_ast_spans,
)
from mathspan.fonts import FontInfo
from mathspan.frame import WHITE, Frame, Glyph, LineGeometry, Shape, ShapeItem, TextItem
from mathspan.geometry import BoundingBox, Point, Rect, normalize_bbox
from mathspan.parser import numberize, parse_math
from mathspan.source import DETACHED, ByteRange
from tests.helpers import FAKE_FILE, FakeResolver, span

FONT = FontInfo("New Computer Modern Math", 400)


def entry_texts(text: str) -> list[str]:
    """Helper: parse and number text, then list the extracted entry texts."""
    tree, ranges = numberize(parse_math(text), FAKE_FILE)
    return [e.text for e in extract_ast_spans(tree, text, FakeResolver(ranges))]


def run(chars: str, number: int = 3, size: float = 11.0) -> TextItem:
    glyphs = [Glyph(ch, 0.5, 0.0, (span(number), 0)) for ch in chars]
    return TextItem(FONT, size, WHITE, chars, glyphs)


def entry(start: int, end: int, text: str = "") -> AstSpanEntry:
    return AstSpanEntry(span(2), ByteRange(start, end), text)


def fragment(start: int, end: int, x0: float, x1: float, y0: float, y1: float) -> FrameFragment:
    return FrameFragment(ByteRange(start, end), BoundingBox(x0, x1, y0, y1))


class TestNormalizeBbox:
    def test_orders_corners(self):
        bbox = normalize_bbox(Rect(Point(0.0, 2.5), Point(5.0, -7.5)), Point(1.0, 10.0))
        assert bbox == BoundingBox(1.0, 6.0, 2.5, 12.5)

    def test_already_ordered(self):
        bbox = normalize_bbox(Rect(Point(0.0, 0.0), Point(2.0, 3.0)), Point(0.0, 0.0))
        assert (bbox.width, bbox.height) == (2.0, 3.0)

    def test_unordered_box_rejected(self):
        with pytest.raises(ValueError):
            BoundingBox(2.0, 1.0, 0.0, 0.0)

    def test_merge(self):
        a = BoundingBox(0.0, 1.0, 0.0, 1.0)
        b = BoundingBox(2.0, 3.0, -1.0, 0.5)
        assert a.merge(b) == BoundingBox(0.0, 3.0, -1.0, 1.0)


class TestExtractAstSpans:
    def test_root_first_then_children(self):
        assert entry_texts("a+b") == ["a+b", "a", "+", "b"]

    def test_duplicate_ranges_listed_once(self):
        assert entry_texts("a/b") == ["a/b", "a", "b"]

    def test_attachment_scripts(self):
        assert entry_texts("x^(y+1)") == ["x^(y+1)", "x", "(y+1)", "y", "+", "1"]

    def test_sub_before_sup(self):
        assert entry_texts("x^a_b") == ["x^a_b", "x", "b", "a"]

    def test_repeated_scripts_keep_every_script(self):
        assert entry_texts("x^a^b") == ["x^a^b", "x", "a^b", "a", "b"]
        assert entry_texts("x_a_b") == ["x_a_b", "x", "a_b", "a", "b"]

    def test_third_script_nests_in_the_second(self):
        assert entry_texts("x^a_b^c") == ["x^a_b^c", "x", "b^c", "b", "c", "a"]

    def test_root_radicand(self):
        assert entry_texts("√x") == ["√x", "x"]

    def test_call_skips_named_arguments(self):
        assert entry_texts('vec(1, delim: "[")') == ['vec(1, delim: "[")', "vec", "1"]

    def test_code_expressions(self):
        assert entry_texts("#(1 + 2)") == ["#(1 + 2)", "(1 + 2)", "1 + 2", "1", "2"]

    def test_array_items_and_spread(self):
        assert entry_texts("#(1, ..x)") == ["#(1, ..x)", "(1, ..x)", "1", "x"]

    def test_dict_named_and_keyed(self):
        assert entry_texts('#(a: 1, "k": x)') == [
            '#(a: 1, "k": x)', '(a: 1, "k": x)', "1", '"k"', "x",
        ]

    def test_dict_spread(self):
        assert entry_texts("#(a: 1, ..d)") == ["#(a: 1, ..d)", "(a: 1, ..d)", "1", "d"]

    def test_content_block(self):
        assert entry_texts("#[a + b]") == ["#[a + b]", "[a + b]", "a", "+", "b"]

    def test_unary_operand(self):
        assert entry_texts("#(-x)") == ["#(-x)", "(-x)", "-x", "x"]

    def test_multibyte_text(self):
        assert entry_texts("α+β") == ["α+β", "α", "+", "β"]

    def test_unresolvable_spans_are_skipped(self):
        tree, _ = numberize(parse_math("a+b"), FAKE_FILE)
        assert extract_ast_spans(tree, "a+b", FakeResolver()) == []

    def test_ranges_past_the_text_are_skipped(self):
        tree, ranges = numberize(parse_math("a+b"), FAKE_FILE)
        entries = extract_ast_spans(tree, "a", FakeResolver(ranges))
        assert [e.text for e in entries] == ["a"]


class TestCollectFrameFragments:
    def test_text_in_group(self):
        inner = Frame.soft(5.5, 8.25, 2.75)
        inner.push(Point(0.0, 8.25), run("x"))
        frame = Frame.soft(20.0, 20.0, 20.0)
        frame.push_group(Point(10.0, 20.0), inner)

        [frag] = collect_frame_fragments(frame, FakeResolver({3: ByteRange(0, 1)}))
        assert frag.range == ByteRange(0, 1)
        assert frag.bbox == BoundingBox(10.0, 15.5, 20.0, 31.0)

    def test_offset(self):
        frame = Frame.soft(5.5, 8.25, 2.75)
        frame.push(Point(0.0, 8.25), run("x"))
        [frag] = collect_frame_fragments(
            frame, FakeResolver({3: ByteRange(0, 1)}), Point(1.0, 1.0),
        )
        assert (frag.bbox.x0, frag.bbox.y0) == (1.0, 1.0)

    def test_run_range_spans_all_glyphs(self):
        item = run("ab")
        item.glyphs[1] = Glyph("b", 0.5, 0.0, (span(4), 0))
        frame = Frame.soft(11.0, 8.25, 2.75)
        frame.push(Point(0.0, 8.25), item)
        resolver = FakeResolver({3: ByteRange(0, 1), 4: ByteRange(2, 3)})
        [frag] = collect_frame_fragments(frame, resolver)
        assert frag.range == ByteRange(0, 3)

    def test_unresolved_runs_are_skipped(self):
        frame = Frame.soft(5.5, 8.25, 2.75)
        frame.push(Point(0.0, 8.25), run("x"))
        assert collect_frame_fragments(frame, FakeResolver()) == []

    def test_shape(self):
        bar = Shape(LineGeometry(Point(10.0, 0.0)), stroke=WHITE, stroke_width=0.5)
        frame = Frame.soft(10.0, 5.0, 5.0)
        frame.push(Point(0.0, 5.0), ShapeItem(bar, span(3)))
        frame.push(Point(0.0, 6.0), ShapeItem(bar, DETACHED))
        [frag] = collect_frame_fragments(frame, FakeResolver({3: ByteRange(0, 3)}))
        assert frag.bbox == BoundingBox(0.0, 10.0, 4.75, 5.25)


class TestCorrelate:
    def test_merges_contained_fragments(self):
        fragments = [
            fragment(0, 1, 0.0, 5.0, 0.0, 10.0),
            fragment(2, 3, 8.0, 12.0, 2.0, 11.0),
        ]
        [record] = correlate([entry(0, 3, "a+b")], fragments)
        assert record == Subexpression(
            text="a+b", x=0.0, y=0.0, width=12.0, height=11.0,
            source_start=0, source_end=3, glyph_lines=2,
        )

    def test_equal_range_counts(self):
        [record] = correlate([entry(0, 3)], [fragment(0, 3, 0.0, 1.0, 0.0, 1.0)])
        assert record.glyph_lines == 1

    def test_partial_overlap_does_not_count(self):
        [record] = correlate(
            [entry(0, 3)],
            [fragment(0, 3, 0.0, 1.0, 0.0, 1.0), fragment(2, 5, 0.0, 9.0, 0.0, 9.0)],
        )
        assert record.glyph_lines == 1
        assert record.width == 1.0

    def test_entries_without_fragments_are_dropped(self):
        records = correlate(
            [entry(0, 1, "a"), entry(2, 3, "b")],
            [fragment(0, 1, 0.0, 1.0, 0.0, 1.0)],
        )
        assert [r.text for r in records] == ["a"]

    def test_order_follows_entries(self):
        fragments = [fragment(0, 3, 0.0, 1.0, 0.0, 1.0)]
        records = correlate([entry(0, 3, "outer"), entry(0, 3, "same")], fragments)
        assert [r.text for r in records] == ["outer", "same"]

    def test_to_dict_keys(self):
        [record] = correlate([entry(0, 1, "a")], [fragment(0, 1, 0.0, 1.0, 0.0, 1.0)])
        assert list(record.to_dict()) == [
            "text", "x", "y", "width", "height", "source_start", "source_end", "glyph_lines",
        ]

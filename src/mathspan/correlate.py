"""Correlates source subexpressions with the regions they occupy in a frame.

Three passes, all pure:

1. `extract_ast_spans` walks the syntax tree and lists every node's span and
   byte range, root first, one entry per distinct range.
2. `collect_frame_fragments` walks the laid-out frame and lists the absolute
   bounding box and source range of every text run and shape.
3. `correlate` merges, for each syntax entry, the boxes of all fragments whose
   range lies inside the entry's range.

Spans that do not resolve (detached, or from another file) are skipped
silently. Entries without any fragment are dropped.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from mathspan.ast_nodes import (
    Array,
    Binary,
    ContentBlock,
    Dict,
    FuncCall,
    Keyed,
    Math,
    MathAttach,
    MathDelimited,
    MathFrac,
    MathRoot,
    Named,
    Node,
    Parenthesized,
    Spread,
    Unary,
)
from mathspan.frame import Frame, GroupItem, ShapeItem, TextItem
from mathspan.geometry import ORIGIN, BoundingBox, Point, normalize_bbox
from mathspan.logger import get_logger
from mathspan.source import ByteRange, Source, Span, SpanResolver

log = get_logger(__name__)


@dataclass(frozen=True)
class AstSpanEntry:
    span: Span
    range: ByteRange
    text: str


@dataclass(frozen=True)
class FrameFragment:
    range: ByteRange
    bbox: BoundingBox


@dataclass(frozen=True)
class Subexpression:
    """A source substring and the rendered region it occupies."""

    text: str
    x: float
    y: float
    width: float
    height: float
    source_start: int
    source_end: int
    glyph_lines: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "source_start": self.source_start,
            "source_end": self.source_end,
            "glyph_lines": self.glyph_lines,
        }


# ── AST spans ────────────────────────────────────────────────────


def _child_exprs(node: Node) -> list[Node]:
    """Children whose spans count as subexpressions of *node*."""
    if isinstance(node, Math):
        return list(node.exprs)
    if isinstance(node, MathFrac):
        return [node.num, node.denom]
    if isinstance(node, MathAttach):
        children: list[Node] = [node.base]
        if node.bottom is not None:
            children.append(node.bottom)
        if node.top is not None:
            children.append(node.top)
        return children
    if isinstance(node, MathRoot):
        return [node.radicand]
    if isinstance(node, MathDelimited):
        return list(node.body.exprs)
    if isinstance(node, FuncCall):
        positional = [a for a in node.args.items if not isinstance(a, (Named, Spread))]
        return [node.callee, *positional]
    if isinstance(node, Parenthesized):
        return [node.expr]
    if isinstance(node, Array):
        return [i.expr if isinstance(i, Spread) else i for i in node.items]
    if isinstance(node, Dict):
        children = []
        for item in node.items:
            if isinstance(item, Keyed):
                children.extend([item.key, item.expr])
            else:
                children.append(item.expr)
        return children
    if isinstance(node, ContentBlock):
        return list(node.body.exprs)
    if isinstance(node, Binary):
        return [node.lhs, node.rhs]
    if isinstance(node, Unary):
        return [node.expr]
    return []


def extract_ast_spans(root: Math, text: str, resolver: SpanResolver) -> list[AstSpanEntry]:
    """List the span, range and text of every node under *root*.

    The root comes first. A range seen before is not listed again, and
    ranges extending past the end of *text* are skipped.
    """
    data = text.encode("utf-8")
    entries: list[AstSpanEntry] = []
    seen: set[ByteRange] = set()

    def visit(node: Node) -> None:
        rng = resolver.range(node.span)
        if rng is not None and rng.end <= len(data) and rng not in seen:
            seen.add(rng)
            entries.append(AstSpanEntry(
                node.span, rng, data[rng.start:rng.end].decode("utf-8", errors="replace"),
            ))
        for child in _child_exprs(node):
            visit(child)

    visit(root)
    return entries


# ── Frame fragments ──────────────────────────────────────────────


def collect_frame_fragments(
    frame: Frame, resolver: SpanResolver, offset: Point = ORIGIN,
) -> list[FrameFragment]:
    """List the absolute box and source range of every run and shape."""
    fragments: list[FrameFragment] = []
    _collect(frame, resolver, offset, fragments)
    return fragments


def _collect(
    frame: Frame, resolver: SpanResolver, offset: Point, out: list[FrameFragment],
) -> None:
    for pos, item in frame.items:
        origin = offset + pos
        if isinstance(item, GroupItem):
            _collect(item.frame, resolver, origin, out)
        elif isinstance(item, TextItem):
            start: int | None = None
            end: int | None = None
            for glyph in item.glyphs:
                rng = resolver.range(glyph.span[0])
                if rng is None:
                    continue
                start = rng.start if start is None else min(start, rng.start)
                end = rng.end if end is None else max(end, rng.end)
            if start is not None and end is not None:
                out.append(FrameFragment(ByteRange(start, end), normalize_bbox(item.bbox(), origin)))
        elif isinstance(item, ShapeItem):
            rng = resolver.range(item.span)
            if rng is not None:
                out.append(FrameFragment(rng, normalize_bbox(item.shape.bbox(), origin)))


# ── Correlation ──────────────────────────────────────────────────


def correlate(
    entries: list[AstSpanEntry], fragments: list[FrameFragment],
) -> list[Subexpression]:
    """Merge the fragments contained in each entry's range."""
    records: list[Subexpression] = []
    for entry in entries:
        bbox: BoundingBox | None = None
        count = 0
        for fragment in fragments:
            if entry.range.contains(fragment.range):
                bbox = fragment.bbox if bbox is None else bbox.merge(fragment.bbox)
                count += 1
        if bbox is None:
            continue
        records.append(Subexpression(
            text=entry.text,
            x=bbox.x0,
            y=bbox.y0,
            width=bbox.width,
            height=bbox.height,
            source_start=entry.range.start,
            source_end=entry.range.end,
            glyph_lines=count,
        ))
    return records


def extract_subexpressions(root: Math, source: Source, frame: Frame) -> list[Subexpression]:
    """Subexpressions of *root* with the frame regions they render to."""
    entries = extract_ast_spans(root, source.text, source)
    fragments = collect_frame_fragments(frame, source)
    records = correlate(entries, fragments)
    log.debug(
        "correlated %d spans with %d fragments into %d subexpressions",
        len(entries), len(fragments), len(records),
    )
    return records

"""Math layout: positions typeset content in a frame.

The layouter walks the content tree and produces nested frames. Rows of atoms
are spaced by their class (ordinary, binary, relation, ...), fractions,
scripts, roots, delimiters and grids are composed from sub-frames, and the
top-level equation is split into lines and alignment columns.

All lengths are in points. Font metrics are scaled by the current text size,
which shrinks in scripts and fractions.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Mapping

from mathspan.content import (
    AlignPointElem,
    AttachElem,
    BinomElem,
    CasesElem,
    Content,
    EquationElem,
    FracElem,
    LinebreakElem,
    LrElem,
    MatElem,
    OpElem,
    OverlineElem,
    PrimesElem,
    RootElem,
    SequenceElem,
    TextElem,
    UnderlineElem,
    UprightElem,
    VecElem,
)
from mathspan.errors import CompileError, Diagnostic, error
from mathspan.fonts import FontCatalog, FontInfo, font_catalog
from mathspan.frame import (
    Color,
    Frame,
    Glyph,
    LineGeometry,
    RectGeometry,
    Shape,
    ShapeItem,
    TagItem,
    TextItem,
)
from mathspan.geometry import ORIGIN, Point, Size
from mathspan.logger import get_logger
from mathspan.source import Span, SpanResolver

log = get_logger(__name__)

MAX_DEPTH = 64


# ── Styles ───────────────────────────────────────────────────────


class MathSize(Enum):
    DISPLAY = "display"
    TEXT = "text"
    SCRIPT = "script"
    SCRIPT_SCRIPT = "script-script"

    @property
    def scale(self) -> float:
        return _SCALES[self]

    def script(self) -> MathSize:
        if self in (MathSize.DISPLAY, MathSize.TEXT):
            return MathSize.SCRIPT
        return MathSize.SCRIPT_SCRIPT

    def fraction(self) -> MathSize:
        if self is MathSize.DISPLAY:
            return MathSize.TEXT
        if self is MathSize.TEXT:
            return MathSize.SCRIPT
        return MathSize.SCRIPT_SCRIPT


_SCALES = {
    MathSize.DISPLAY: 1.0,
    MathSize.TEXT: 1.0,
    MathSize.SCRIPT: 0.7,
    MathSize.SCRIPT_SCRIPT: 0.5,
}


class Style(Enum):
    FONT_FAMILIES = auto()
    FONT_WEIGHT = auto()
    TEXT_SIZE = auto()
    FILL = auto()
    MATH_SIZE = auto()
    UPRIGHT = auto()


Styles = Mapping[Style, Any]


class StyleChain:
    """A linked list of style maps; lookups walk from the innermost map out."""

    def __init__(self, local: Styles, parent: StyleChain | None = None) -> None:
        self.local = dict(local)
        self.parent = parent

    def get(self, key: Style) -> Any:
        chain: StyleChain | None = self
        while chain is not None:
            if key in chain.local:
                return chain.local[key]
            chain = chain.parent
        raise KeyError(key)

    def chain(self, local: Styles) -> StyleChain:
        return StyleChain(local, self)


@dataclass(frozen=True)
class Region:
    """Space available to the layout; infinite sides grow with the content."""

    size: Size
    expand: tuple[bool, bool] = (False, False)

    @classmethod
    def unbounded(cls) -> Region:
        return cls(Size(math.inf, math.inf))


# ── Atom classes and spacing ─────────────────────────────────────


class AtomClass(Enum):
    ORD = auto()
    OP = auto()
    BIN = auto()
    REL = auto()
    OPEN = auto()
    CLOSE = auto()
    PUNCT = auto()


_BIN_CHARS = frozenset("+−×·⋅÷±∓∗∘∧∨∩∪⊕⊗")
_REL_CHARS = frozenset("=<>≤≥≠≈≔≡∼∝∈∉⊂⊃⊆⊇→←↔⇒⇔⟶⟵⟹⟸↦⤇≪≫:")
_OPEN_CHARS = frozenset("([{⟨⌊⌈⟦")
_CLOSE_CHARS = frozenset(")]}⟩⌋⌉⟧")
_PUNCT_CHARS = frozenset(",;")
_LARGE_CHARS = frozenset("∑∏∐⋃⋂∫∬∭∮")

# Upright even when alone.
_UPRIGHT_LETTERS = frozenset("ΑΒΓΔΕΖΗΘΙΚΛΜΝΞΟΠΡΣΤΥΦΧΨΩℝℕℤℚℂ∂∇∞")


def _text_class(text: str) -> AtomClass:
    if len(text) != 1:
        return AtomClass.ORD
    if text in _BIN_CHARS:
        return AtomClass.BIN
    if text in _REL_CHARS:
        return AtomClass.REL
    if text in _OPEN_CHARS:
        return AtomClass.OPEN
    if text in _CLOSE_CHARS:
        return AtomClass.CLOSE
    if text in _PUNCT_CHARS:
        return AtomClass.PUNCT
    if text in _LARGE_CHARS:
        return AtomClass.OP
    return AtomClass.ORD


def _is_italic(text: str) -> bool:
    return len(text) == 1 and text.isalpha() and text not in _UPRIGHT_LETTERS


def _fixup_binaries(classes: list[AtomClass]) -> list[AtomClass]:
    """A binary operator without operands on both sides is ordinary."""
    fixed = list(classes)
    for i, cls in enumerate(fixed):
        if cls is not AtomClass.BIN:
            continue
        prev = fixed[i - 1] if i > 0 else None
        nxt = fixed[i + 1] if i + 1 < len(fixed) else None
        if prev in (None, AtomClass.BIN, AtomClass.OP, AtomClass.REL,
                    AtomClass.OPEN, AtomClass.PUNCT):
            fixed[i] = AtomClass.ORD
        elif nxt in (None, AtomClass.REL, AtomClass.CLOSE, AtomClass.PUNCT):
            fixed[i] = AtomClass.ORD
    return fixed


def _spacing(left: AtomClass, right: AtomClass, script: bool) -> float:
    """Space between two atoms in mu (1/18 em)."""
    if left is AtomClass.BIN or right is AtomClass.BIN:
        return 0.0 if script else 4.0
    if left is AtomClass.REL or right is AtomClass.REL:
        if left is right:
            return 0.0
        return 0.0 if script else 5.0
    if left is AtomClass.OP and right is not AtomClass.OPEN:
        return 3.0
    if right is AtomClass.OP and left is not AtomClass.OPEN:
        return 3.0
    if left is AtomClass.PUNCT:
        return 0.0 if script else 3.0
    return 0.0


# ── Layouter ─────────────────────────────────────────────────────


@dataclass
class _Fragment:
    frame: Frame
    cls: AtomClass = AtomClass.ORD
    limits: bool = False


# (x, baseline shift downwards, frame, push as group)
_Part = tuple[float, float, Frame, bool]


class _TooDeep(Exception):
    def __init__(self, span: Span) -> None:
        self.span = span
        super().__init__("maximum math nesting depth exceeded")


class MathLayouter:
    """Lays out math content with one resolved font list."""

    def __init__(self, fonts: list[FontInfo], resolver: SpanResolver | None = None) -> None:
        self.fonts = fonts
        self.resolver = resolver
        self.diagnostics: list[Diagnostic] = []
        self._depth = 0

    def _error(self, code: str, message: str, span: Span) -> None:
        rng = self.resolver.range(span) if self.resolver is not None else None
        self.diagnostics.append(error(code, message, rng))

    @property
    def _font(self) -> FontInfo:
        return self.fonts[0]

    @staticmethod
    def _font_size(styles: StyleChain) -> float:
        return styles.get(Style.TEXT_SIZE) * styles.get(Style.MATH_SIZE).scale

    # ── Dispatch ─────────────────────────────────────────────────

    def layout(self, elem: Content, styles: StyleChain) -> _Fragment:
        self._depth += 1
        try:
            if self._depth > MAX_DEPTH:
                raise _TooDeep(elem.span)
            return self._layout(elem, styles)
        finally:
            self._depth -= 1

    def _layout(self, elem: Content, styles: StyleChain) -> _Fragment:
        if isinstance(elem, SequenceElem):
            return self._layout_row(list(elem.children), styles)
        if isinstance(elem, TextElem):
            return self._layout_text(elem, styles)
        if isinstance(elem, OpElem):
            frame = self._shape(elem.text, self._font_size(styles), elem.span, styles, italic=False)
            return _Fragment(frame, AtomClass.OP, elem.limits)
        if isinstance(elem, PrimesElem):
            frame = self._shape("′" * elem.count, self._font_size(styles), elem.span, styles, italic=False)
            return _Fragment(frame)
        if isinstance(elem, FracElem):
            return _Fragment(self._layout_frac(elem, styles))
        if isinstance(elem, AttachElem):
            return self._layout_attach(elem, styles)
        if isinstance(elem, RootElem):
            return _Fragment(self._layout_root(elem, styles))
        if isinstance(elem, LrElem):
            body = self.layout(elem.body, styles).frame
            return _Fragment(self._wrap(body, elem.open, elem.close, styles))
        if isinstance(elem, VecElem):
            grid = self._layout_grid([[c] for c in elem.children], styles)
            return _Fragment(self._wrap_str(grid, elem.delim[0], elem.delim[1], elem.span, styles))
        if isinstance(elem, MatElem):
            grid = self._layout_grid([list(r) for r in elem.rows], styles)
            return _Fragment(self._wrap_str(grid, elem.delim[0], elem.delim[1], elem.span, styles))
        if isinstance(elem, CasesElem):
            grid = self._layout_grid([[c] for c in elem.children], styles, centered=False)
            return _Fragment(self._wrap_str(grid, elem.delim, "", elem.span, styles))
        if isinstance(elem, BinomElem):
            grid = self._layout_grid([[elem.upper], [elem.lower]], styles)
            return _Fragment(self._wrap_str(grid, "(", ")", elem.span, styles))
        if isinstance(elem, OverlineElem):
            return _Fragment(self._layout_line(elem.body, elem.span, styles, over=True))
        if isinstance(elem, UnderlineElem):
            return _Fragment(self._layout_line(elem.body, elem.span, styles, over=False))
        if isinstance(elem, UprightElem):
            return self.layout(elem.body, styles.chain({Style.UPRIGHT: True}))
        if isinstance(elem, EquationElem):
            return self.layout(elem.body, styles)
        if isinstance(elem, (AlignPointElem, LinebreakElem)):
            return _Fragment(Frame.soft())
        raise TypeError(f"cannot lay out {type(elem).__name__}")

    # ── Text ─────────────────────────────────────────────────────

    def _layout_text(self, elem: TextElem, styles: StyleChain) -> _Fragment:
        size = self._font_size(styles)
        cls = _text_class(elem.text)
        large = cls is AtomClass.OP and styles.get(Style.MATH_SIZE) is MathSize.DISPLAY
        if large:
            size *= 1.4
        italic = (not elem.upright and not styles.get(Style.UPRIGHT)
                  and _is_italic(elem.text))
        frame = self._shape(elem.text, size, elem.span, styles, italic)
        if large:
            # Center large operators on the math axis.
            axis = self._font.axis_height * self._font_size(styles)
            shift = self._font.axis_height * size - axis
            frame = self._compose([(0.0, shift, frame, False)])
        return _Fragment(frame, cls, elem.limits)

    def _shape(
        self, text: str, size: float, span: Span, styles: StyleChain, italic: bool,
    ) -> Frame:
        """Shape *text* into text runs, one run per font."""
        fill: Color = styles.get(Style.FILL)
        runs: list[tuple[FontInfo, list[Glyph], str]] = []
        offset = 0
        for ch in text:
            font = FontCatalog.find(self.fonts, ch)
            if font is None:
                families = ", ".join(f.family for f in self.fonts)
                self._error("E401", f'no glyph for "{ch}" in font family {families}', span)
                return Frame.soft()
            glyph = Glyph(ch, font.advance(ch), 0.0, (span, offset))
            offset += len(ch.encode("utf-8"))
            if runs and runs[-1][0] is font:
                runs[-1][1].append(glyph)
                runs[-1] = (font, runs[-1][1], runs[-1][2] + ch)
            else:
                runs.append((font, [glyph], ch))

        if not runs:
            return Frame.soft()

        ascent = max(font.ascender * size for font, _, _ in runs)
        descent = max(-font.descender * size for font, _, _ in runs)
        items = [TextItem(font, size, fill, run_text, glyphs, italic)
                 for font, glyphs, run_text in runs]
        frame = Frame.soft(sum(item.width() for item in items), ascent, descent)
        x = 0.0
        for item in items:
            frame.push(Point(x, ascent), item)
            x += item.width()
        return frame

    # ── Rows ─────────────────────────────────────────────────────

    def _flatten(self, children: list[Content]) -> list[Content]:
        flat: list[Content] = []
        for child in children:
            if isinstance(child, SequenceElem):
                flat.extend(self._flatten(list(child.children)))
            else:
                flat.append(child)
        return flat

    def _layout_row(self, children: list[Content], styles: StyleChain) -> _Fragment:
        flat = [c for c in self._flatten(children)
                if not isinstance(c, (AlignPointElem, LinebreakElem))]
        frags = [self.layout(child, styles) for child in flat]
        frags = [f for f in frags if not (f.frame.is_empty() and f.frame.width == 0)]
        if not frags:
            return _Fragment(Frame.soft())
        if len(frags) == 1:
            return frags[0]

        classes = _fixup_binaries([f.cls for f in frags])
        script = styles.get(Style.MATH_SIZE) in (MathSize.SCRIPT, MathSize.SCRIPT_SCRIPT)
        mu = self._font_size(styles) / 18
        parts: list[_Part] = []
        x = 0.0
        for i, frag in enumerate(frags):
            if i > 0:
                x += _spacing(classes[i - 1], classes[i], script) * mu
            parts.append((x, 0.0, frag.frame, False))
            x += frag.frame.width
        return _Fragment(self._compose(parts, x))

    @staticmethod
    def _compose(parts: list[_Part], width: float | None = None) -> Frame:
        """Place frames relative to a shared baseline."""
        ascent = max((f.ascent - shift for _, shift, f, _ in parts), default=0.0)
        descent = max((f.descent + shift for _, shift, f, _ in parts), default=0.0)
        if width is None:
            width = max((x + f.width for x, _, f, _ in parts), default=0.0)
        frame = Frame.soft(width, ascent, descent)
        for x, shift, sub, group in parts:
            pos = Point(x, ascent + shift - sub.ascent)
            if group:
                frame.push_group(pos, sub)
            else:
                frame.push_frame(pos, sub)
        return frame

    # ── Fractions ────────────────────────────────────────────────

    def _layout_frac(self, elem: FracElem, styles: StyleChain) -> Frame:
        size = styles.get(Style.MATH_SIZE)
        inner = styles.chain({Style.MATH_SIZE: size.fraction()})
        num = self.layout(elem.num, inner).frame
        den = self.layout(elem.denom, inner).frame

        fs = self._font_size(styles)
        thickness = self._font.rule_thickness * fs
        axis = self._font.axis_height * fs
        gap = (3.0 if size is MathSize.DISPLAY else 1.5) * thickness
        pad = 0.1 * fs
        width = max(num.width, den.width) + 2 * pad

        num_shift = -(axis + thickness / 2 + gap + num.descent)
        den_shift = -axis + thickness / 2 + gap + den.ascent
        frame = self._compose([
            ((width - num.width) / 2, num_shift, num, True),
            ((width - den.width) / 2, den_shift, den, True),
        ], width)

        fill: Color = styles.get(Style.FILL)
        bar = Shape(LineGeometry(Point(width, 0.0)), stroke=fill, stroke_width=thickness)
        frame.push(Point(0.0, frame.ascent - axis), ShapeItem(bar, elem.span))
        return frame

    # ── Attachments ──────────────────────────────────────────────

    def _layout_attach(self, elem: AttachElem, styles: StyleChain) -> _Fragment:
        base_frag = self.layout(elem.base, styles)
        base = base_frag.frame
        size = styles.get(Style.MATH_SIZE)
        script_styles = styles.chain({Style.MATH_SIZE: size.script()})
        top = self.layout(elem.top, script_styles).frame if elem.top is not None else None
        bottom = self.layout(elem.bottom, script_styles).frame if elem.bottom is not None else None
        primes = self.layout(elem.primes, styles).frame if elem.primes is not None else None

        fs = self._font_size(styles)
        if base_frag.limits and size is MathSize.DISPLAY and (top or bottom):
            gap = 0.15 * fs
            width = max(base.width, top.width if top else 0.0, bottom.width if bottom else 0.0)
            parts: list[_Part] = [((width - base.width) / 2, 0.0, base, False)]
            if top is not None:
                parts.append(((width - top.width) / 2, -(base.ascent + gap + top.descent), top, True))
            if bottom is not None:
                parts.append(((width - bottom.width) / 2, base.descent + gap + bottom.ascent, bottom, True))
            if primes is not None:
                parts.append((width, 0.0, primes, False))
                width += primes.width
            return _Fragment(self._compose(parts, width), base_frag.cls)

        parts = [(0.0, 0.0, base, False)]
        x = base.width
        if primes is not None:
            parts.append((x, 0.0, primes, False))
            x += primes.width

        sup_shift = max(0.45 * fs, base.ascent - 0.25 * fs)
        sub_shift = max(0.2 * fs, base.descent * 0.8)
        if top is not None and bottom is not None:
            min_gap = 4 * self._font.rule_thickness * fs
            gap = (sup_shift - top.descent) - (bottom.ascent - sub_shift)
            if gap < min_gap:
                sub_shift += min_gap - gap

        script_width = 0.0
        if top is not None:
            parts.append((x, -sup_shift, top, True))
            script_width = top.width
        if bottom is not None:
            parts.append((x, sub_shift, bottom, True))
            script_width = max(script_width, bottom.width)
        if top is not None or bottom is not None:
            script_width += 0.05 * fs
        return _Fragment(self._compose(parts, x + script_width), base_frag.cls)

    # ── Roots ────────────────────────────────────────────────────

    def _layout_root(self, elem: RootElem, styles: StyleChain) -> Frame:
        radicand = self.layout(elem.radicand, styles).frame
        fs = self._font_size(styles)
        thickness = self._font.rule_thickness * fs
        gap = 1.5 * thickness

        inner_height = radicand.height + gap + thickness
        sign_size = max(fs, inner_height * 1.05)
        sign = self._shape("√", sign_size, elem.span, styles, italic=False)
        line_top = radicand.ascent + gap + thickness
        sign_shift = sign.ascent - line_top

        parts: list[_Part] = []
        sign_x = 0.0
        if elem.index is not None:
            index_styles = styles.chain({Style.MATH_SIZE: MathSize.SCRIPT_SCRIPT})
            index = self.layout(elem.index, index_styles).frame
            sign_bottom = sign_shift + sign.descent
            index_shift = sign_bottom - 0.55 * sign.height - index.descent
            parts.append((0.0, index_shift, index, True))
            sign_x = max(0.0, index.width - 0.5 * sign.width)

        radicand_x = sign_x + sign.width
        parts.append((sign_x, sign_shift, sign, False))
        parts.append((radicand_x, 0.0, radicand, True))
        frame = self._compose(parts)

        fill: Color = styles.get(Style.FILL)
        line = Shape(RectGeometry(Size(radicand.width, thickness)), fill=fill)
        frame.push(Point(radicand_x, frame.ascent - line_top), ShapeItem(line, elem.span))
        return frame

    # ── Delimiters ───────────────────────────────────────────────

    def _wrap(
        self, body: Frame, open_: Content | None, close: Content | None, styles: StyleChain,
    ) -> Frame:
        """Surround *body* with delimiters scaled to its extent around the axis."""
        fs = self._font_size(styles)
        axis = self._font.axis_height * fs
        extent = 2 * max(body.ascent - axis, body.descent + axis)
        delim_size = fs if extent <= fs * 1.01 else extent

        parts: list[_Part] = []
        x = 0.0
        if open_ is not None:
            frame = self._delimiter(open_, delim_size, styles)
            parts.append((x, self._font.axis_height * delim_size - axis, frame, False))
            x += frame.width
        parts.append((x, 0.0, body, False))
        x += body.width
        if close is not None:
            frame = self._delimiter(close, delim_size, styles)
            parts.append((x, self._font.axis_height * delim_size - axis, frame, False))
            x += frame.width
        return self._compose(parts, x)

    def _wrap_str(
        self, body: Frame, open_: str, close: str, span: Span, styles: StyleChain,
    ) -> Frame:
        return self._wrap(
            body,
            TextElem(open_, upright=True, span=span) if open_ else None,
            TextElem(close, upright=True, span=span) if close else None,
            styles,
        )

    def _delimiter(self, elem: Content, size: float, styles: StyleChain) -> Frame:
        if isinstance(elem, TextElem):
            return self._shape(elem.text, size, elem.span, styles, italic=False)
        return self.layout(elem, styles).frame

    # ── Grids ────────────────────────────────────────────────────

    def _layout_grid(
        self, rows: list[list[Content]], styles: StyleChain, centered: bool = True,
    ) -> Frame:
        """Lay out cells in rows and columns, vertically centered on the axis."""
        cells = [[self.layout(c, styles).frame for c in row] for row in rows]
        fs = self._font_size(styles)
        axis = self._font.axis_height * fs
        col_gap = 0.5 * fs
        row_gap = 0.3 * fs
        min_ascent = self._font.ascender * fs
        min_descent = -self._font.descender * fs

        ncols = max((len(row) for row in cells), default=0)
        col_widths = [
            max((row[j].width for row in cells if j < len(row)), default=0.0)
            for j in range(ncols)
        ]
        row_metrics = [
            (max([min_ascent, *(c.ascent for c in row)]),
             max([min_descent, *(c.descent for c in row)]))
            for row in cells
        ]
        width = sum(col_widths) + col_gap * max(0, ncols - 1)
        height = sum(a + d for a, d in row_metrics) + row_gap * max(0, len(cells) - 1)

        frame = Frame.soft(width, height / 2 + axis, height / 2 - axis)
        y = 0.0
        for row, (ascent, descent) in zip(cells, row_metrics):
            x = 0.0
            for j, cell in enumerate(row):
                dx = (col_widths[j] - cell.width) / 2 if centered else 0.0
                frame.push_group(Point(x + dx, y + ascent - cell.ascent), cell)
                x += col_widths[j] + col_gap
            y += ascent + descent + row_gap
        return frame

    # ── Over- and underlines ─────────────────────────────────────

    def _layout_line(self, body_elem: Content, span: Span, styles: StyleChain, over: bool) -> Frame:
        body = self.layout(body_elem, styles).frame
        fs = self._font_size(styles)
        thickness = self._font.rule_thickness * fs
        gap = 3 * thickness
        fill: Color = styles.get(Style.FILL)
        rule = ShapeItem(Shape(RectGeometry(Size(body.width, thickness)), fill=fill), span)

        if over:
            frame = Frame.soft(body.width, body.ascent + gap + thickness, body.descent)
            frame.push(ORIGIN, rule)
            frame.push_frame(Point(0.0, gap + thickness), body)
        else:
            frame = Frame.soft(body.width, body.ascent, body.descent + gap + thickness)
            frame.push_frame(ORIGIN, body)
            frame.push(Point(0.0, body.height + gap), rule)
        return frame

    # ── Equations ────────────────────────────────────────────────

    def layout_equation(self, equation: EquationElem, styles: StyleChain) -> Frame:
        """Split the body into lines and alignment columns and stack them."""
        lines: list[list[list[Content]]] = [[[]]]
        for child in self._flatten([equation.body]):
            if isinstance(child, LinebreakElem):
                lines.append([[]])
            elif isinstance(child, AlignPointElem):
                lines[-1].append([])
            else:
                lines[-1][-1].append(child)

        segments = [[self._layout_row(seg, styles).frame for seg in line] for line in lines]
        ncols = max(len(line) for line in segments)
        col_widths = [
            max((line[j].width for line in segments if j < len(line)), default=0.0)
            for j in range(ncols)
        ]
        width = sum(col_widths)

        line_frames: list[Frame] = []
        for line in segments:
            ascent = max(seg.ascent for seg in line)
            descent = max(seg.descent for seg in line)
            frame = Frame.soft(width, ascent, descent)
            col_x = 0.0
            for j, seg in enumerate(line):
                if ncols == 1:
                    x = (width - seg.width) / 2
                elif j % 2 == 0:
                    x = col_x + col_widths[j] - seg.width
                else:
                    x = col_x
                frame.push_frame(Point(x, ascent - seg.ascent), seg)
                col_x += col_widths[j]
            line_frames.append(frame)

        leading = 0.65 * self._font_size(styles) if len(line_frames) > 1 else 0.0
        height = sum(f.height for f in line_frames) + leading * (len(line_frames) - 1)
        first = line_frames[0]
        result = Frame(Size(width, height), baseline=first.ascent)
        result.push(ORIGIN, TagItem("start", equation.span))
        y = 0.0
        for frame in line_frames:
            result.push_group(Point(0.0, y), frame)
            y += frame.height + leading
        result.push(Point(width, height), TagItem("end", equation.span))
        return result


def layout_equation_block(
    equation: EquationElem,
    styles: Styles,
    region: Region,
    resolver: SpanResolver | None = None,
) -> Frame:
    """Lay out a block equation. Raises CompileError with layout diagnostics."""
    chain = StyleChain(styles)
    fonts = font_catalog().select(chain.get(Style.FONT_FAMILIES), chain.get(Style.FONT_WEIGHT))
    if not fonts:
        families = ", ".join(chain.get(Style.FONT_FAMILIES))
        raise CompileError([error("E403", f"no font could be found for families: {families}")])

    layouter = MathLayouter(fonts, resolver)
    try:
        frame = layouter.layout_equation(equation, chain)
    except _TooDeep as exc:
        layouter._error("E402", f"maximum math nesting depth of {MAX_DEPTH} exceeded", exc.span)
    if layouter.diagnostics:
        raise CompileError(layouter.diagnostics)

    if region.expand[0] and math.isfinite(region.size.width) and region.size.width > frame.width:
        centered = Frame(Size(region.size.width, frame.height), baseline=frame.baseline)
        centered.push_frame(Point((region.size.width - frame.width) / 2, 0.0), frame)
        frame = centered

    log.debug("laid out equation: %.2fx%.2fpt, %d items",
              frame.width, frame.height, len(frame.items))
    return frame

"""Laid-out frames: positioned text runs, shapes, groups and tags.

Frame coordinates start at the top-left corner and grow to the right and
downwards. A text item is positioned at the start of its baseline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from mathspan.fonts import FontInfo
from mathspan.geometry import ORIGIN, Point, Rect, Size
from mathspan.source import Span


@dataclass(frozen=True)
class Color:
    r: int
    g: int
    b: int

    def to_hex(self) -> str:
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"


WHITE = Color(255, 255, 255)


@dataclass(frozen=True)
class Glyph:
    """One shaped glyph. Advances are in em; ``span`` is the source span
    plus the byte offset of the glyph's character inside that span's text.
    """

    char: str
    x_advance: float
    x_offset: float
    span: tuple[Span, int]


@dataclass
class TextItem:
    font: FontInfo
    size: float
    fill: Color
    text: str
    glyphs: list[Glyph]
    italic: bool = False

    def width(self) -> float:
        return sum(g.x_advance for g in self.glyphs) * self.size

    def bbox(self) -> Rect:
        """Box of the run relative to its baseline origin.

        The corners follow font convention: the first corner is at the
        descender and the second at the ascender, so in frame coordinates
        the first corner is the lower one.
        """
        return Rect(
            Point(0.0, -self.font.descender * self.size),
            Point(self.width(), -self.font.ascender * self.size),
        )


@dataclass(frozen=True)
class LineGeometry:
    """A stroked line from the item position to ``delta``."""

    delta: Point


@dataclass(frozen=True)
class RectGeometry:
    size: Size


Geometry = Union[LineGeometry, RectGeometry]


@dataclass
class Shape:
    geometry: Geometry
    fill: Color | None = None
    stroke: Color | None = None
    stroke_width: float = 0.0

    def bbox(self) -> Rect:
        if isinstance(self.geometry, RectGeometry):
            size = self.geometry.size
            return Rect(ORIGIN, Point(size.width, size.height))
        delta = self.geometry.delta
        half = self.stroke_width / 2
        return Rect(
            Point(min(0.0, delta.x), min(0.0, delta.y) - half),
            Point(max(0.0, delta.x), max(0.0, delta.y) + half),
        )


@dataclass
class ShapeItem:
    shape: Shape
    span: Span


@dataclass
class GroupItem:
    frame: Frame


@dataclass
class TagItem:
    """Marks where an element starts or ends in the frame."""

    kind: str  # "start" or "end"
    span: Span


FrameItem = Union[GroupItem, TextItem, ShapeItem, TagItem]


@dataclass
class Frame:
    """A finished layout: a size, a baseline and positioned items."""

    size: Size
    baseline: float = 0.0
    items: list[tuple[Point, FrameItem]] = field(default_factory=list)

    @classmethod
    def soft(cls, width: float = 0.0, ascent: float = 0.0, descent: float = 0.0) -> Frame:
        return cls(Size(width, ascent + descent), baseline=ascent)

    @property
    def width(self) -> float:
        return self.size.width

    @property
    def height(self) -> float:
        return self.size.height

    @property
    def ascent(self) -> float:
        return self.baseline

    @property
    def descent(self) -> float:
        return self.size.height - self.baseline

    def is_empty(self) -> bool:
        return not self.items

    def push(self, pos: Point, item: FrameItem) -> None:
        self.items.append((pos, item))

    def push_frame(self, pos: Point, frame: Frame) -> None:
        """Inline the items of *frame* at *pos*."""
        for item_pos, item in frame.items:
            self.items.append((pos + item_pos, item))

    def push_group(self, pos: Point, frame: Frame) -> None:
        """Add *frame* as a nested group at *pos*."""
        self.items.append((pos, GroupItem(frame)))

"""Points, sizes and boxes in typographic points (y grows downwards)."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def __add__(self, other: Point) -> Point:
        return Point(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Point) -> Point:
        return Point(self.x - other.x, self.y - other.y)


ORIGIN = Point(0.0, 0.0)


@dataclass(frozen=True)
class Size:
    width: float
    height: float


@dataclass(frozen=True)
class Rect:
    """Two corners of a rectangle, in whatever order the producer emits."""

    min: Point
    max: Point


@dataclass(frozen=True)
class BoundingBox:
    """An axis-aligned box with ``x0 <= x1`` and ``y0 <= y1``."""

    x0: float
    x1: float
    y0: float
    y1: float

    def __post_init__(self) -> None:
        if self.x0 > self.x1 or self.y0 > self.y1:
            raise ValueError(f"unordered bounding box {self}")

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        return self.y1 - self.y0

    def merge(self, other: BoundingBox) -> BoundingBox:
        """Smallest box containing both boxes."""
        return BoundingBox(
            min(self.x0, other.x0),
            max(self.x1, other.x1),
            min(self.y0, other.y0),
            max(self.y1, other.y1),
        )


def normalize_bbox(rect: Rect, offset: Point) -> BoundingBox:
    """Translate *rect* by *offset* and order its corners per axis."""
    a = rect.min + offset
    b = rect.max + offset
    return BoundingBox(
        x0=min(a.x, b.x),
        x1=max(a.x, b.x),
        y0=min(a.y, b.y),
        y1=max(a.y, b.y),
    )

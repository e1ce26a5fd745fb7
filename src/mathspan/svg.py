"""SVG export of laid-out frames."""

from __future__ import annotations

import xml.etree.ElementTree as ET

from mathspan.frame import Frame, GroupItem, LineGeometry, RectGeometry, ShapeItem, TagItem, TextItem
from mathspan.geometry import Point

_SVG_NS = "http://www.w3.org/2000/svg"


def _num(value: float) -> str:
    """Format a length with at most three decimals."""
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def _translate(pos: Point) -> str:
    return f"translate({_num(pos.x)} {_num(pos.y)})"


def svg_frame(frame: Frame) -> str:
    """Render *frame* as a standalone SVG document."""
    root = ET.Element("svg", {
        "xmlns": _SVG_NS,
        "class": "typst-doc",
        "width": _num(frame.width),
        "height": _num(frame.height),
        "viewBox": f"0 0 {_num(frame.width)} {_num(frame.height)}",
    })
    _write_frame(root, frame)
    return ET.tostring(root, encoding="unicode")


def _write_frame(parent: ET.Element, frame: Frame) -> None:
    for pos, item in frame.items:
        if isinstance(item, GroupItem):
            group = ET.SubElement(parent, "g", {"transform": _translate(pos)})
            _write_frame(group, item.frame)
        elif isinstance(item, TextItem):
            _write_text(parent, pos, item)
        elif isinstance(item, ShapeItem):
            _write_shape(parent, pos, item)
        elif isinstance(item, TagItem):
            continue


def _write_text(parent: ET.Element, pos: Point, item: TextItem) -> None:
    xs: list[str] = []
    x = 0.0
    for glyph in item.glyphs:
        xs.append(_num((x + glyph.x_offset) * item.size))
        x += glyph.x_advance
    attrs = {
        "transform": _translate(pos),
        "x": " ".join(xs),
        "y": "0",
        "font-family": item.font.family,
        "font-size": _num(item.size),
        "font-weight": str(item.font.weight),
        "fill": item.fill.to_hex(),
    }
    if item.italic:
        attrs["font-style"] = "italic"
    elem = ET.SubElement(parent, "text", attrs)
    elem.text = item.text


def _write_shape(parent: ET.Element, pos: Point, item: ShapeItem) -> None:
    shape = item.shape
    geometry = shape.geometry
    if isinstance(geometry, RectGeometry):
        attrs = {
            "transform": _translate(pos),
            "width": _num(geometry.size.width),
            "height": _num(geometry.size.height),
            "fill": shape.fill.to_hex() if shape.fill else "none",
        }
        ET.SubElement(parent, "rect", attrs)
    elif isinstance(geometry, LineGeometry):
        attrs = {
            "transform": _translate(pos),
            "d": f"M 0 0 L {_num(geometry.delta.x)} {_num(geometry.delta.y)}",
            "fill": "none",
            "stroke": shape.stroke.to_hex() if shape.stroke else "none",
            "stroke-width": _num(shape.stroke_width),
        }
        ET.SubElement(parent, "path", attrs)

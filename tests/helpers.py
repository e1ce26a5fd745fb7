"""Shared test helpers for the mathspan test suite."""

from __future__ import annotations

import json

from mathspan.compiler import compile_math_with_subexpressions, parse_source
from mathspan.content import Content
from mathspan.evaluator import Vm
from mathspan.library import Scope, library
from mathspan.source import ByteRange, FileId, Span

FAKE_FILE = FileId("fake.typ")


class FakeResolver:
    """Resolves spans of FAKE_FILE from a fixed table."""

    def __init__(self, table: dict[int, ByteRange] | None = None) -> None:
        self.table = table or {}

    def range(self, span: Span) -> ByteRange | None:
        if span.file != FAKE_FILE:
            return None
        return self.table.get(span.number)


def span(number: int) -> Span:
    return Span(FAKE_FILE, number)


def evaluate(text: str) -> Content:
    """Parse, number and evaluate text, returning the body content."""
    source = parse_source(text)
    return Vm(source, Scope(parent=library())).eval(source.root)


def render(text: str) -> dict:
    """Compile text through the JSON entry point and decode the result."""
    return json.loads(compile_math_with_subexpressions(text))


def records_by_text(text: str) -> dict[str, dict]:
    """Compile text and index the subexpressions by their text."""
    result = render(text)
    assert "error" not in result, result
    return {rec["text"]: rec for rec in result["subexpressions"]}

"""Compiles a math expression to SVG plus subexpression geometry.

Each call is independent: the expression is parsed, numbered, evaluated,
laid out, correlated and exported, with every stage checked before the next
one runs.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from mathspan.ast_nodes import Math
from mathspan.content import EquationElem
from mathspan.correlate import Subexpression, extract_subexpressions
from mathspan.errors import CompileError, Diagnostic
from mathspan.evaluator import Vm
from mathspan.frame import WHITE
from mathspan.layout import MathSize, Region, Style, Styles, layout_equation_block
from mathspan.lexer import Lexer
from mathspan.library import Scope, library
from mathspan.logger import get_logger
from mathspan.parser import Parser, Unnumberable, numberize
from mathspan.source import FileId, Source
from mathspan.svg import svg_frame

log = get_logger(__name__)

FILE_ID = FileId("/main.typ")

FALLBACK = '{"error":"JSON serialization failed"}'


class ErrorKind(Enum):
    """Pipeline stage that failed, with its message prefix."""

    NUMBERIZE = "Failed to numberize spans"
    PARSE = "Parse error"
    CAST = "Failed to cast to Math"
    EVAL = "Eval error"
    PACK = "Failed to pack equation"
    LAYOUT = "Layout error"

    @property
    def has_details(self) -> bool:
        return self in (ErrorKind.PARSE, ErrorKind.EVAL, ErrorKind.LAYOUT)


class MathCompileError(Exception):
    """A failed compilation: the stage and the diagnostics it produced."""

    def __init__(self, kind: ErrorKind, diagnostics: list[Diagnostic] | None = None) -> None:
        self.kind = kind
        self.diagnostics = diagnostics or []
        super().__init__(self.message)

    @property
    def message(self) -> str:
        if not self.kind.has_details:
            return self.kind.value
        return f"{self.kind.value}: " + "\n".join(d.message for d in self.diagnostics)


@dataclass
class MathResult:
    svg: str
    subexpressions: list[Subexpression] = field(default_factory=list)
    source: Source | None = field(default=None, repr=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "svg": self.svg,
            "subexpressions": [s.to_dict() for s in self.subexpressions],
        }


def default_styles() -> Styles:
    """Fixed render styles used for every request."""
    return {
        Style.MATH_SIZE: MathSize.DISPLAY,
        Style.FONT_WEIGHT: 450,
        Style.FONT_FAMILIES: ("New Computer Modern Math",),
        Style.FILL: WHITE,
        Style.TEXT_SIZE: 11.0,
        Style.UPRIGHT: False,
    }


def parse_source(text: str) -> Source:
    """Parse and number *text*. Raises MathCompileError."""
    try:
        tokens = Lexer(text, str(FILE_ID)).lex()
        root = Parser(tokens, str(FILE_ID)).parse()
    except CompileError as exc:
        raise MathCompileError(ErrorKind.PARSE, exc.diagnostics) from exc
    try:
        numbered, ranges = numberize(root, FILE_ID)
    except Unnumberable as exc:
        raise MathCompileError(ErrorKind.NUMBERIZE) from exc
    return Source(FILE_ID, text, numbered, ranges)


def compile_math(text: str) -> MathResult:
    """Compile *text* to SVG and subexpressions. Raises MathCompileError."""
    log.debug("compiling %d bytes of math", len(text.encode("utf-8")))
    try:
        source = parse_source(text)
        root = source.root
        if not isinstance(root, Math):
            raise MathCompileError(ErrorKind.CAST)

        scope = Scope(parent=library(), name="global")
        try:
            body = Vm(source, scope).eval(root)
        except CompileError as exc:
            raise MathCompileError(ErrorKind.EVAL, exc.diagnostics) from exc
        log.debug("evaluated math")

        equation = EquationElem(body, block=True, span=root.span).pack().to_packed(EquationElem)
        if equation is None:
            raise MathCompileError(ErrorKind.PACK)

        try:
            frame = layout_equation_block(equation, default_styles(), Region.unbounded(), source)
        except CompileError as exc:
            raise MathCompileError(ErrorKind.LAYOUT, exc.diagnostics) from exc
    except MathCompileError as exc:
        log.info("compilation failed (%s): %s", exc.kind.name, exc.message)
        raise

    subexpressions = extract_subexpressions(root, source, frame)
    svg = svg_frame(frame)
    log.debug("rendered %d bytes of SVG", len(svg))
    return MathResult(svg, subexpressions, source)


def compile_math_with_subexpressions(text: str) -> str:
    """Compile *text* and return the result as a JSON string.

    Never raises: failures become ``{"error": "..."}``.
    """
    try:
        payload: dict[str, Any] = compile_math(text).to_dict()
    except MathCompileError as exc:
        payload = {"error": exc.message}
    try:
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError):
        log.info("JSON serialization failed")
        return FALLBACK

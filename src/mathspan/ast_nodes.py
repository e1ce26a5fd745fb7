"""Syntax tree for math expressions and embedded code.

Every node records the byte range it was parsed from and a span. Spans start
out detached and are assigned by `mathspan.parser.numberize`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from mathspan.source import DETACHED, ByteRange, Span

# ── Math ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Math:
    exprs: list[Expr]
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class MathText:
    """A letter, a number or any other single-character atom."""

    text: str
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class MathIdent:
    name: str
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class MathShorthand:
    text: str
    symbol: str
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class MathAlignPoint:
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class Linebreak:
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class MathDelimited:
    open: MathText
    body: Math
    close: MathText
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class MathPrimes:
    count: int
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class MathAttach:
    base: Expr
    bottom: Expr | None
    top: Expr | None
    primes: MathPrimes | None
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class MathFrac:
    num: Expr
    denom: Expr
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class MathRoot:
    index: int | None  # None for a square root
    radicand: Expr
    range: ByteRange
    span: Span = DETACHED


# ── Code ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Ident:
    name: str
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class Int:
    value: int
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class Float:
    value: float
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class Str:
    value: str
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class Bool:
    value: bool
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class NoneLit:
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class AutoLit:
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class Parenthesized:
    expr: Expr
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class Named:
    name: str
    expr: Expr
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class Keyed:
    key: Expr
    expr: Expr
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class Spread:
    expr: Expr
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class Array:
    items: list[Expr | Spread]
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class Dict:
    items: list[Named | Keyed | Spread]
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class ContentBlock:
    body: Math
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class Args:
    items: list[Expr | Named | Spread]
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class FuncCall:
    callee: Expr
    args: Args
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class FieldAccess:
    target: Expr
    field: str
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class Binary:
    lhs: Expr
    op: str
    rhs: Expr
    range: ByteRange
    span: Span = DETACHED


@dataclass(frozen=True)
class Unary:
    op: str
    expr: Expr
    range: ByteRange
    span: Span = DETACHED


Expr = Union[
    Math, MathText, MathIdent, MathShorthand, MathAlignPoint, Linebreak,
    MathDelimited, MathPrimes, MathAttach, MathFrac, MathRoot,
    Ident, Int, Float, Str, Bool, NoneLit, AutoLit,
    Parenthesized, Array, Dict, ContentBlock, FuncCall, FieldAccess,
    Binary, Unary,
]

Node = Union[Expr, Named, Keyed, Spread, Args]

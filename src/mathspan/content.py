"""Typeset content: the elements that evaluation produces and layout consumes.

Every element carries the span of the syntax node it came from. Elements are
immutable; `Content.spanned` returns a copy with a span attached.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Generic, TypeVar

from mathspan.source import DETACHED, Span

T = TypeVar("T", bound="Content")


@dataclass(frozen=True)
class Content:
    """Base class of all elements."""

    span: Span = field(default=DETACHED, kw_only=True)

    def spanned(self: T, span: Span) -> T:
        """Attach *span* unless the element already has one."""
        if self.span.is_detached():
            return replace(self, span=span)
        return self

    def pack(self) -> Packed:
        return Packed(self)


@dataclass(frozen=True)
class Packed(Generic[T]):
    """Type-erased element, recovered with `to_packed`."""

    elem: Content

    def to_packed(self, cls: type[T]) -> T | None:
        if isinstance(self.elem, cls):
            return self.elem
        return None


@dataclass(frozen=True)
class SequenceElem(Content):
    children: tuple[Content, ...] = ()


@dataclass(frozen=True)
class TextElem(Content):
    text: str
    upright: bool = False
    limits: bool = False


@dataclass(frozen=True)
class OpElem(Content):
    """An upright operator name such as ``sin`` or ``lim``."""

    text: str
    limits: bool = False


@dataclass(frozen=True)
class FracElem(Content):
    num: Content
    denom: Content


@dataclass(frozen=True)
class PrimesElem(Content):
    count: int


@dataclass(frozen=True)
class AttachElem(Content):
    base: Content
    top: Content | None = None
    bottom: Content | None = None
    primes: PrimesElem | None = None


@dataclass(frozen=True)
class RootElem(Content):
    index: Content | None
    radicand: Content


@dataclass(frozen=True)
class LrElem(Content):
    """Body between two delimiters scaled to its height."""

    open: Content | None
    body: Content
    close: Content | None


@dataclass(frozen=True)
class AlignPointElem(Content):
    pass


@dataclass(frozen=True)
class LinebreakElem(Content):
    pass


@dataclass(frozen=True)
class VecElem(Content):
    children: tuple[Content, ...]
    delim: tuple[str, str] = ("(", ")")


@dataclass(frozen=True)
class MatElem(Content):
    rows: tuple[tuple[Content, ...], ...]
    delim: tuple[str, str] = ("(", ")")


@dataclass(frozen=True)
class CasesElem(Content):
    children: tuple[Content, ...]
    delim: str = "{"


@dataclass(frozen=True)
class BinomElem(Content):
    upper: Content
    lower: Content


@dataclass(frozen=True)
class OverlineElem(Content):
    body: Content


@dataclass(frozen=True)
class UnderlineElem(Content):
    body: Content


@dataclass(frozen=True)
class UprightElem(Content):
    body: Content


@dataclass(frozen=True)
class EquationElem(Content):
    body: Content
    block: bool = True


def sequence(children: list[Content], span: Span = DETACHED) -> Content:
    """A sequence, or the only child if there is exactly one."""
    if len(children) == 1 and span.is_detached():
        return children[0]
    return SequenceElem(tuple(children), span=span)

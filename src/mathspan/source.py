"""Source text, opaque spans and span resolution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from mathspan.ast_nodes import Math


@dataclass(frozen=True)
class FileId:
    """Identity of a virtual source file."""

    path: str

    def __str__(self) -> str:
        return self.path


@dataclass(frozen=True)
class Span:
    """An opaque handle linking a syntax node or glyph back to its source.

    A span does not know its own location. It only becomes a byte range
    when looked up in the `Source` it was numbered for.
    """

    file: FileId | None
    number: int

    def is_detached(self) -> bool:
        return self.file is None

    def __str__(self) -> str:
        if self.file is None:
            return "<detached>"
        return f"{self.file}#{self.number}"


DETACHED = Span(None, 1)

# Span numbers available to a whole file. 0 and 1 are reserved.
FULL = range(2, 1 << 47)


@dataclass(frozen=True)
class ByteRange:
    """Half-open ``[start, end)`` byte interval into UTF-8 source text."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.start > self.end:
            raise ValueError(f"invalid byte range [{self.start}, {self.end})")

    def __len__(self) -> int:
        return self.end - self.start

    def contains(self, other: ByteRange) -> bool:
        """True if *other* lies fully inside this range (equality included)."""
        return other.start >= self.start and other.end <= self.end

    def __str__(self) -> str:
        return f"[{self.start}, {self.end})"


class SpanResolver(Protocol):
    """Anything that can turn a span into a byte range."""

    def range(self, span: Span) -> ByteRange | None: ...


class Source:
    """A numbered source file: text, syntax tree and span table."""

    def __init__(
        self,
        file_id: FileId,
        text: str,
        root: Math,
        ranges: dict[int, ByteRange],
    ) -> None:
        self.file_id = file_id
        self.text = text
        self.root = root
        self.data = text.encode("utf-8")
        self._ranges = ranges

    def __len__(self) -> int:
        return len(self.data)

    def range(self, span: Span) -> ByteRange | None:
        """Resolve *span* to its byte range, or None if it is not ours."""
        if span.file != self.file_id:
            return None
        return self._ranges.get(span.number)

    def text_at(self, rng: ByteRange) -> str:
        """Decode the source text covered by *rng*."""
        return self.data[rng.start:rng.end].decode("utf-8", errors="replace")

    def line_col(self, offset: int) -> tuple[int, int]:
        """Return the 1-indexed (line, column) of a byte offset."""
        return line_col(self.data, offset)


def line_col(data: bytes, offset: int) -> tuple[int, int]:
    """Return the 1-indexed (line, column) of *offset* in UTF-8 *data*.

    Columns count characters, not bytes.
    """
    offset = max(0, min(offset, len(data)))
    head = data[:offset]
    line = head.count(b"\n") + 1
    line_start = head.rfind(b"\n") + 1
    col = len(head[line_start:].decode("utf-8", errors="replace")) + 1
    return line, col

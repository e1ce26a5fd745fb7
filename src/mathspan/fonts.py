"""Font catalog with the metrics layout needs.

No font files are read. The catalog describes a small set of built-in faces
by their vertical metrics, per-character advances and Unicode coverage. It
is built once per process on first use and never mutated afterwards.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass, field
from typing import Sequence

from mathspan.logger import get_logger

log = get_logger(__name__)

# Unicode blocks covered by the math face.
_MATH_COVERAGE: tuple[tuple[int, int], ...] = (
    (0x0020, 0x007E),    # Basic Latin
    (0x00A0, 0x024F),    # Latin-1 and Latin Extended
    (0x0370, 0x03FF),    # Greek
    (0x2000, 0x206F),    # General Punctuation
    (0x2070, 0x209F),    # Super- and subscripts
    (0x2100, 0x214F),    # Letterlike Symbols
    (0x2190, 0x21FF),    # Arrows
    (0x2200, 0x22FF),    # Mathematical Operators
    (0x2300, 0x23FF),    # Miscellaneous Technical
    (0x25A0, 0x25FF),    # Geometric Shapes
    (0x27C0, 0x27FF),    # Misc Math Symbols A, Supplemental Arrows A
    (0x2900, 0x2AFF),    # Supplemental Arrows B, Misc Math Symbols B, Supplemental Operators
    (0x1D400, 0x1D7FF),  # Mathematical Alphanumeric Symbols
)

_TEXT_COVERAGE: tuple[tuple[int, int], ...] = (
    (0x0020, 0x007E),
    (0x00A0, 0x024F),
    (0x0370, 0x03FF),
    (0x2000, 0x206F),
)

# Advance widths in em.
_ADVANCE_GROUPS: tuple[tuple[str, float], ...] = (
    ("0123456789", 0.5),
    ("abcdeghknopqsuvxyz", 0.5),
    ("fijlrt", 0.33),
    ("mw", 0.78),
    ("ABCDEFGHIJKLNOPQRSTUVXYZ", 0.72),
    ("MW", 0.92),
    (" ", 0.33),
    (".,;:!'`", 0.28),
    ("()[]{}|‖⌊⌋⌈⌉⟨⟩⟦⟧", 0.39),
    ("+−=<>×÷±∓·⋅∗≤≥≠≈≔≡∼∈∉⊂⊃⊆⊇∝∧∨∩∪", 0.78),
    ("→←↔⇒⇔↦⤇", 1.0),
    ("⟶⟵⟹⟸", 1.6),
    ("∑∏∐⋃⋂", 1.05),
    ("∫∬∭∮", 0.56),
    ("√∛∜", 0.83),
    ("∞", 1.0),
    ("…", 1.17),
    ("′″‴", 0.28),
)

_ADVANCES: dict[str, float] = {
    ch: width for chars, width in _ADVANCE_GROUPS for ch in chars
}


@dataclass(frozen=True)
class FontInfo:
    """Metrics of one font face. Vertical metrics are in em, y-up."""

    family: str
    weight: int
    style: str = "normal"
    ascender: float = 0.75
    descender: float = -0.25
    axis_height: float = 0.25
    rule_thickness: float = 0.04
    default_advance: float = 0.55
    coverage: tuple[tuple[int, int], ...] = _MATH_COVERAGE
    advances: dict[str, float] = field(default_factory=lambda: dict(_ADVANCES), compare=False)

    def covers(self, ch: str) -> bool:
        cp = ord(ch)
        return any(lo <= cp <= hi for lo, hi in self.coverage)

    def advance(self, ch: str) -> float:
        return self.advances.get(ch, self.default_advance)


class FontCatalog:
    """Read-only collection of font faces."""

    def __init__(self, fonts: Sequence[FontInfo]) -> None:
        self._fonts = tuple(fonts)

    def __len__(self) -> int:
        return len(self._fonts)

    def families(self) -> list[str]:
        seen: list[str] = []
        for font in self._fonts:
            if font.family not in seen:
                seen.append(font.family)
        return seen

    def select(self, families: Sequence[str], weight: int) -> list[FontInfo]:
        """Resolve a family preference list to one face per known family.

        Within a family the upright face closest in weight wins.
        """
        selected: list[FontInfo] = []
        for family in families:
            faces = [f for f in self._fonts if f.family == family]
            if not faces:
                continue
            faces.sort(key=lambda f: (f.style != "normal", abs(f.weight - weight)))
            selected.append(faces[0])
        return selected

    @staticmethod
    def find(fonts: Sequence[FontInfo], ch: str) -> FontInfo | None:
        """First face in *fonts* that has a glyph for *ch*."""
        for font in fonts:
            if font.covers(ch):
                return font
        return None


@functools.cache
def font_catalog() -> FontCatalog:
    """The process-wide font catalog."""
    fonts = [
        FontInfo("New Computer Modern Math", 400),
        FontInfo("New Computer Modern", 400, coverage=_TEXT_COVERAGE),
        FontInfo("New Computer Modern", 700, coverage=_TEXT_COVERAGE),
        FontInfo("New Computer Modern", 400, "italic", coverage=_TEXT_COVERAGE),
    ]
    log.debug("built font catalog with %d faces", len(fonts))
    return FontCatalog(fonts)

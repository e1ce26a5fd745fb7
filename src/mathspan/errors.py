"""Compiler-style diagnostics and their terminal rendering."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from mathspan.source import line_col

if TYPE_CHECKING:
    from mathspan.source import ByteRange


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"
    NOTE = "note"


# ANSI color codes
_COLORS = {
    Severity.ERROR: "\033[1;31m",    # bold red
    Severity.WARNING: "\033[1;33m",  # bold yellow
    Severity.NOTE: "\033[1;36m",     # bold cyan
}
_BOLD = "\033[1m"
_BLUE = "\033[1;34m"
_RESET = "\033[0m"


@dataclass(frozen=True)
class DiagnosticLabel:
    """Points at a byte range of the source text."""

    range: ByteRange | None
    message: str = ""


@dataclass
class Diagnostic:
    """A single diagnostic message with optional labels and notes."""

    severity: Severity
    code: str
    message: str
    labels: list[DiagnosticLabel] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    @property
    def range(self) -> ByteRange | None:
        """Range of the first label that has one."""
        for label in self.labels:
            if label.range is not None:
                return label.range
        return None


def error(code: str, message: str, rng: ByteRange | None = None) -> Diagnostic:
    """Shorthand for an error diagnostic with a single primary label."""
    return Diagnostic(
        severity=Severity.ERROR,
        code=code,
        message=message,
        labels=[DiagnosticLabel(range=rng)],
    )


class DiagnosticRenderer:
    """Renders diagnostics against in-memory source text."""

    def __init__(self, *, color: bool = True, filename: str = "<input>") -> None:
        self.color = color
        self.filename = filename

    def _c(self, code: str) -> str:
        return code if self.color else ""

    def render(self, diag: Diagnostic, source: str = "") -> str:
        data = source.encode("utf-8")
        lines: list[str] = []
        sev = diag.severity
        color = _COLORS[sev]

        # Header: error[E201]: message
        lines.append(
            f"{self._c(color)}{sev.value}[{diag.code}]{self._c(_RESET)}"
            f"{self._c(_BOLD)}: {diag.message}{self._c(_RESET)}"
        )

        for label in diag.labels:
            if label.range is None:
                continue
            start_line, start_col = line_col(data, label.range.start)
            end_line, end_col = line_col(data, label.range.end)
            lines.append(
                f"  {self._c(_BLUE)}-->{self._c(_RESET)} "
                f"{self.filename}:{start_line}:{start_col}"
            )
            gutter = f"{start_line:>4}"
            lines.append(f"  {self._c(_BLUE)}   |{self._c(_RESET)}")

            source_lines = source.splitlines()
            if 1 <= start_line <= len(source_lines):
                lines.append(
                    f"  {self._c(_BLUE)}{gutter} |{self._c(_RESET)} "
                    f"{source_lines[start_line - 1]}"
                )
                if start_line == end_line:
                    caret_len = max(1, end_col - start_col)
                    padding = " " * (start_col - 1)
                    lines.append(
                        f"  {self._c(_BLUE)}   |{self._c(_RESET)} "
                        f"{padding}{self._c(color)}{'^' * caret_len}{self._c(_RESET)}"
                    )

            if label.message:
                lines.append(
                    f"  {self._c(_BLUE)}   |{self._c(_RESET)}   "
                    f"{self._c(color)}{label.message}{self._c(_RESET)}"
                )

        for note in diag.notes:
            lines.append(f"  {self._c(_BLUE)}={self._c(_RESET)} note: {note}")

        return "\n".join(lines)


class CompileError(Exception):
    """Batch error carrying one or more diagnostics from a single stage."""

    def __init__(self, diagnostics: list[Diagnostic]) -> None:
        self.diagnostics = diagnostics
        messages = [d.message for d in diagnostics]
        super().__init__(f"{len(diagnostics)} error(s): {'; '.join(messages)}")

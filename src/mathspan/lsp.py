"""mathspan language server: pygls-based LSP for math documents.

Each document holds a single math expression. The server publishes compile
diagnostics, answers hover requests with the rendered region of the
innermost subexpression under the cursor, and completes library names.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from lsprotocol import types as lsp
from pygls.lsp.server import LanguageServer

from mathspan import __version__
from mathspan.compiler import MathCompileError, MathResult, compile_math
from mathspan.correlate import Subexpression
from mathspan.errors import Diagnostic, Severity
from mathspan.library import library
from mathspan.source import ByteRange

# ── Conversion helpers ────────────────────────────────────────────

_SEVERITY_MAP = {
    Severity.ERROR: lsp.DiagnosticSeverity.Error,
    Severity.WARNING: lsp.DiagnosticSeverity.Warning,
    Severity.NOTE: lsp.DiagnosticSeverity.Information,
}


def offset_to_position(text: str, offset: int) -> lsp.Position:
    """Convert a UTF-8 byte offset to a 0-indexed LSP position (UTF-16 columns)."""
    data = text.encode("utf-8")
    offset = max(0, min(offset, len(data)))
    head = data[:offset].decode("utf-8", errors="ignore")
    line = head.count("\n")
    col_text = head[head.rfind("\n") + 1:]
    return lsp.Position(line=line, character=len(col_text.encode("utf-16-le")) // 2)


def range_to_lsp(text: str, rng: ByteRange) -> lsp.Range:
    return lsp.Range(
        start=offset_to_position(text, rng.start),
        end=offset_to_position(text, rng.end),
    )


def position_to_offset(text: str, position: lsp.Position) -> int:
    """Convert a 0-indexed LSP position to a UTF-8 byte offset."""
    lines = text.split("\n")
    if position.line >= len(lines):
        return len(text.encode("utf-8"))
    offset = sum(len(line.encode("utf-8")) + 1 for line in lines[:position.line])
    units = 0
    for ch in lines[position.line]:
        if units >= position.character:
            break
        units += len(ch.encode("utf-16-le")) // 2
        offset += len(ch.encode("utf-8"))
    return offset


def _whole_document(text: str) -> lsp.Range:
    return range_to_lsp(text, ByteRange(0, len(text.encode("utf-8"))))


def _compile_diag(text: str, d: Diagnostic, prefix: str) -> lsp.Diagnostic:
    """Convert a mathspan Diagnostic to an LSP Diagnostic."""
    rng = range_to_lsp(text, d.range) if d.range is not None else _whole_document(text)
    return lsp.Diagnostic(
        range=rng,
        severity=_SEVERITY_MAP.get(d.severity, lsp.DiagnosticSeverity.Error),
        source="mathspan",
        code=d.code,
        message=f"{prefix}: {d.message}",
    )


@dataclass
class DocumentState:
    """Cached compile result for a single open document."""

    source: str = ""
    result: MathResult | None = None
    diagnostics: list[lsp.Diagnostic] = field(default_factory=list)


# ── Server ────────────────────────────────────────────────────────

server = LanguageServer(
    "mathspan-lsp", __version__,
    text_document_sync_kind=lsp.TextDocumentSyncKind.Full,
)
_state: dict[str, DocumentState] = {}

_COMPLETIONS = sorted(library().names())


def _analyze(uri: str, source: str) -> DocumentState:
    """Compile the document, cache the result and return the state."""
    ds = DocumentState(source=source)
    try:
        ds.result = compile_math(source)
    except MathCompileError as e:
        if e.diagnostics:
            ds.diagnostics = [_compile_diag(source, d, e.kind.value) for d in e.diagnostics]
        else:
            ds.diagnostics = [lsp.Diagnostic(
                range=_whole_document(source),
                severity=lsp.DiagnosticSeverity.Error,
                source="mathspan",
                message=e.message,
            )]
    except Exception as e:
        ds.diagnostics = [lsp.Diagnostic(
            range=_whole_document(source),
            severity=lsp.DiagnosticSeverity.Error,
            source="mathspan",
            message=f"[internal] {e}",
        )]
    _state[uri] = ds
    return ds


def _innermost(records: list[Subexpression], offset: int) -> Subexpression | None:
    """The shortest record whose source range contains *offset*."""
    best: Subexpression | None = None
    for rec in records:
        if rec.source_start <= offset <= rec.source_end:
            if best is None or (rec.source_end - rec.source_start) < (best.source_end - best.source_start):
                best = rec
    return best


def _publish(uri: str, ds: DocumentState) -> None:
    server.text_document_publish_diagnostics(lsp.PublishDiagnosticsParams(
        uri=uri,
        diagnostics=ds.diagnostics,
    ))


# ── LSP Feature Handlers ─────────────────────────────────────────


@server.feature(lsp.TEXT_DOCUMENT_DID_OPEN)
def did_open(params: lsp.DidOpenTextDocumentParams) -> None:
    uri = params.text_document.uri
    _publish(uri, _analyze(uri, params.text_document.text))


@server.feature(lsp.TEXT_DOCUMENT_DID_CHANGE)
def did_change(params: lsp.DidChangeTextDocumentParams) -> None:
    uri = params.text_document.uri
    # Full sync: the last change holds the whole text
    source = params.content_changes[-1].text if params.content_changes else ""
    _publish(uri, _analyze(uri, source))


@server.feature(lsp.TEXT_DOCUMENT_DID_CLOSE)
def did_close(params: lsp.DidCloseTextDocumentParams) -> None:
    _state.pop(params.text_document.uri, None)


@server.feature(lsp.TEXT_DOCUMENT_HOVER)
def hover(params: lsp.HoverParams) -> lsp.Hover | None:
    ds = _state.get(params.text_document.uri)
    if ds is None or ds.result is None:
        return None

    offset = position_to_offset(ds.source, params.position)
    rec = _innermost(ds.result.subexpressions, offset)
    if rec is None:
        return None

    content = (
        f"`{rec.text}`\n\n"
        f"x: {rec.x:.2f}pt, y: {rec.y:.2f}pt, "
        f"{rec.width:.2f} × {rec.height:.2f}pt ({rec.glyph_lines} fragments)"
    )
    return lsp.Hover(
        contents=lsp.MarkupContent(kind=lsp.MarkupKind.Markdown, value=content),
        range=range_to_lsp(ds.source, ByteRange(rec.source_start, rec.source_end)),
    )


@server.feature(lsp.TEXT_DOCUMENT_COMPLETION)
def completion(params: lsp.CompletionParams) -> lsp.CompletionList:
    items = [
        lsp.CompletionItem(label=name, kind=lsp.CompletionItemKind.Constant)
        for name in _COMPLETIONS
    ]
    return lsp.CompletionList(is_incomplete=False, items=items)


def main() -> None:
    """Start the mathspan language server on stdio."""
    server.start_io()

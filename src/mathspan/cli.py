"""mathspan CLI."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from mathspan import __version__
from mathspan.compiler import MathCompileError, MathResult, compile_math, parse_source
from mathspan.config import MathspanConfig, load_config_or_default
from mathspan.errors import DiagnosticRenderer
from mathspan.source import Source


def _read_input(expr: str | None, file: str | None) -> tuple[str, str]:
    """Return the expression text and a display name for diagnostics."""
    if file is not None:
        return Path(file).read_text(encoding="utf-8"), file
    if expr is not None:
        return expr, "<expr>"
    return sys.stdin.read(), "<stdin>"


def _report(exc: MathCompileError, text: str, filename: str, config: MathspanConfig) -> None:
    renderer = DiagnosticRenderer(color=config.output.color, filename=filename)
    if not exc.diagnostics:
        click.echo(f"error: {exc.message}", err=True)
    for diag in exc.diagnostics:
        click.echo(renderer.render(diag, text), err=True)


def _compile(text: str, filename: str, config: MathspanConfig) -> MathResult:
    try:
        return compile_math(text)
    except MathCompileError as exc:
        _report(exc, text, filename, config)
        raise SystemExit(1)


def _write(output: str | None, data: str) -> None:
    if output is None:
        click.echo(data)
    else:
        Path(output).write_text(data + "\n", encoding="utf-8")


@click.group()
@click.version_option(__version__, prog_name="mathspan")
@click.option("--verbose", "-v", is_flag=True, help="Log pipeline stages to stderr.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """Render Typst math to SVG with subexpression geometry."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
    ctx.obj = load_config_or_default()


@main.command()
@click.argument("expr", required=False)
@click.option("--file", "-f", "file", type=click.Path(exists=True, dir_okay=False),
              help="Read the expression from a file.")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write JSON here.")
@click.pass_obj
def render(config: MathspanConfig, expr: str | None, file: str | None, output: str | None) -> None:
    """Print the SVG and subexpressions of EXPR as JSON."""
    text, filename = _read_input(expr, file)
    try:
        payload = compile_math(text).to_dict()
    except MathCompileError as exc:
        _report(exc, text, filename, config)
        _write(output, json.dumps({"error": exc.message}, ensure_ascii=False))
        raise SystemExit(1)

    indent = config.output.indent
    separators = (",", ":") if indent is None else None
    _write(output, json.dumps(payload, ensure_ascii=False, indent=indent, separators=separators))


@main.command()
@click.argument("expr", required=False)
@click.option("--file", "-f", "file", type=click.Path(exists=True, dir_okay=False),
              help="Read the expression from a file.")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the SVG here.")
@click.pass_obj
def svg(config: MathspanConfig, expr: str | None, file: str | None, output: str | None) -> None:
    """Render EXPR to SVG."""
    text, filename = _read_input(expr, file)
    result = _compile(text, filename, config)
    _write(output, result.svg)


@main.command()
@click.argument("expr", required=False)
@click.option("--file", "-f", "file", type=click.Path(exists=True, dir_okay=False),
              help="Read the expression from a file.")
@click.pass_obj
def spans(config: MathspanConfig, expr: str | None, file: str | None) -> None:
    """List the subexpressions of EXPR with their boxes."""
    text, filename = _read_input(expr, file)
    result = _compile(text, filename, config)

    click.echo(f"{'range':>10}  {'x':>7} {'y':>7} {'width':>7} {'height':>7}  {'n':>3}  text")
    for rec in result.subexpressions:
        rng = f"{rec.source_start}..{rec.source_end}"
        click.echo(
            f"{rng:>10}  {rec.x:7.2f} {rec.y:7.2f} {rec.width:7.2f} {rec.height:7.2f}"
            f"  {rec.glyph_lines:>3}  {_highlight(rec.text, config.output.color)}"
        )


def _highlight(text: str, color: bool) -> str:
    if not color:
        return text
    from pygments import highlight
    from pygments.formatters import TerminalFormatter

    from mathspan.highlight import MathLexer

    return highlight(text, MathLexer(), TerminalFormatter()).rstrip("\n")


@main.command()
@click.argument("expr", required=False)
@click.option("--file", "-f", "file", type=click.Path(exists=True, dir_okay=False),
              help="Read the expression from a file.")
@click.pass_obj
def view(config: MathspanConfig, expr: str | None, file: str | None) -> None:
    """View the syntax tree of EXPR with spans and byte ranges."""
    text, filename = _read_input(expr, file)
    try:
        source = parse_source(text)
    except MathCompileError as exc:
        _report(exc, text, filename, config)
        raise SystemExit(1)

    _dump_ast(source.root, source, 0)


def _dump_ast(node: object, source: Source, depth: int) -> None:
    """Print a readable syntax tree dump."""
    indent = "  " * depth
    name = type(node).__name__
    fields = node.__dataclass_fields__  # type: ignore[attr-defined]

    rng = source.range(node.span)  # type: ignore[attr-defined]
    where = f" {rng} {source.text_at(rng)!r}" if rng is not None else ""
    click.echo(f"{indent}{name} #{node.span.number}{where}")  # type: ignore[attr-defined]
    for field_name in fields:
        if field_name in ("span", "range"):
            continue
        value = getattr(node, field_name)
        if isinstance(value, list):
            if value:
                click.echo(f"{indent}  {field_name}:")
                for item in value:
                    _dump_ast(item, source, depth + 2)
            else:
                click.echo(f"{indent}  {field_name}: []")
        elif hasattr(value, "__dataclass_fields__"):
            click.echo(f"{indent}  {field_name}:")
            _dump_ast(value, source, depth + 2)
        elif value is not None:
            click.echo(f"{indent}  {field_name}: {value!r}")


@main.command()
def lsp() -> None:
    """Start the mathspan language server."""
    from mathspan.lsp import main as lsp_main

    lsp_main()

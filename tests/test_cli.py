"""Tests for the mathspan CLI, config, error rendering and highlighting."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner
from pygments.token import Name, Operator

from mathspan.cli import main
from mathspan.config import MathspanConfig, find_config, load_config, load_config_or_default
from mathspan.errors import DiagnosticRenderer, error
from mathspan.highlight import MathLexer
from mathspan.source import ByteRange


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Run in an empty directory so no stray mathspan.toml is picked up."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


def write_config(path, body: str) -> None:
    (path / "mathspan.toml").write_text(body)


# --- CLI tests ---


class TestCLI:
    def test_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        for command in ("render", "svg", "spans", "view", "lsp"):
            assert command in result.output

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_render(self, runner, workdir):
        result = runner.invoke(main, ["render", "a+b"])
        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert [r["text"] for r in payload["subexpressions"]] == ["a+b", "a", "+", "b"]

    def test_render_is_compact_by_default(self, runner, workdir):
        result = runner.invoke(main, ["render", "x"])
        assert result.output.count("\n") == 1

    def test_render_indent_from_config(self, runner, workdir):
        write_config(workdir, "[output]\nindent = 2\n")
        result = runner.invoke(main, ["render", "x"])
        assert result.exit_code == 0
        assert '\n  "svg": ' in result.output

    def test_render_from_file(self, runner, workdir):
        (workdir / "eq.typm").write_text("x^2", encoding="utf-8")
        result = runner.invoke(main, ["render", "--file", "eq.typm"])
        assert result.exit_code == 0
        assert json.loads(result.output)["subexpressions"][0]["text"] == "x^2"

    def test_render_from_stdin(self, runner, workdir):
        result = runner.invoke(main, ["render"], input="y")
        assert result.exit_code == 0
        assert json.loads(result.output)["subexpressions"][0]["text"] == "y"

    def test_render_to_output_file(self, runner, workdir):
        result = runner.invoke(main, ["render", "x", "-o", "out.json"])
        assert result.exit_code == 0
        payload = json.loads((workdir / "out.json").read_text(encoding="utf-8"))
        assert payload["svg"].startswith("<svg")

    def test_render_error(self, runner, workdir):
        result = runner.invoke(main, ["render", "foo"])
        assert result.exit_code == 1
        assert '{"error": "Eval error: unknown variable: foo"}' in result.output
        assert "error[E310]" in result.output

    def test_svg(self, runner, workdir):
        result = runner.invoke(main, ["svg", "a/b"])
        assert result.exit_code == 0
        assert result.output.startswith("<svg")
        assert "<path" in result.output

    def test_svg_error_renders_diagnostic(self, runner, workdir):
        write_config(workdir, "[output]\ncolor = false\n")
        result = runner.invoke(main, ["svg", "a +"])
        assert result.exit_code == 1
        assert 'error[E201]: expected expression after "+"' in result.output
        assert "--> <expr>:1:3" in result.output

    def test_spans(self, runner, workdir):
        write_config(workdir, "[output]\ncolor = false\n")
        result = runner.invoke(main, ["spans", "a+b"])
        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0].split() == ["range", "x", "y", "width", "height", "n", "text"]
        assert lines[1].split()[0] == "0..3"
        assert lines[1].endswith("a+b")
        assert len(lines) == 5

    def test_spans_highlighted(self, runner, workdir):
        result = runner.invoke(main, ["spans", "sqrt(x)"], color=True)
        assert result.exit_code == 0
        assert "\x1b[" in result.output

    def test_view(self, runner, workdir):
        result = runner.invoke(main, ["view", "a+b"])
        assert result.exit_code == 0
        assert "Math #2 [0, 3) 'a+b'" in result.output
        assert "MathText #3 [0, 1) 'a'" in result.output
        assert "text: '+'" in result.output

    def test_view_parse_error(self, runner, workdir):
        result = runner.invoke(main, ["view", "x^"])
        assert result.exit_code == 1
        assert "missing superscript" in result.output


# --- Config tests ---


class TestConfig:
    def test_defaults(self, workdir):
        config = load_config_or_default()
        assert config == MathspanConfig()
        assert config.output.indent is None
        assert config.output.color

    def test_find_config_walks_up(self, workdir):
        write_config(workdir, "")
        nested = workdir / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config(nested) == (workdir / "mathspan.toml").resolve()

    def test_find_config_missing(self, workdir):
        with pytest.raises(FileNotFoundError):
            find_config(workdir)

    def test_load_output_section(self, workdir):
        write_config(workdir, "[output]\nindent = 4\ncolor = false\n")
        config = load_config(workdir / "mathspan.toml")
        assert config.output.indent == 4
        assert not config.output.color

    def test_invalid_indent(self, workdir):
        write_config(workdir, '[output]\nindent = "wide"\n')
        with pytest.raises(ValueError, match="output.indent"):
            load_config(workdir / "mathspan.toml")

    def test_invalid_color(self, workdir):
        write_config(workdir, '[output]\ncolor = "false"\n')
        with pytest.raises(ValueError, match="output.color"):
            load_config(workdir / "mathspan.toml")


# --- Error rendering tests ---


class TestDiagnosticRenderer:
    def test_plain(self):
        diag = error("E310", "unknown variable: foo", ByteRange(4, 7))
        out = DiagnosticRenderer(color=False, filename="eq").render(diag, "a + foo")
        lines = out.splitlines()
        assert lines[0] == "error[E310]: unknown variable: foo"
        assert lines[1] == "  --> eq:1:5"
        assert "   1 | a + foo" in out
        assert lines[-1].endswith("    ^^^")

    def test_color(self):
        diag = error("E310", "unknown variable: foo", ByteRange(0, 3))
        out = DiagnosticRenderer(color=True).render(diag, "foo")
        assert "\033[1;31m" in out

    def test_multibyte_columns(self):
        diag = error("E310", "unknown variable: foo", ByteRange(5, 8))
        out = DiagnosticRenderer(color=False).render(diag, "α + foo")
        assert "<input>:1:5" in out
        assert out.splitlines()[-1].endswith("    ^^^")


# --- Highlighting tests ---


class TestMathLexer:
    def tokens(self, text: str) -> list[tuple]:
        return [(t, v) for t, v in MathLexer().get_tokens(text) if v.strip()]

    def test_variables_and_operators(self):
        assert self.tokens("x + y") == [
            (Name.Variable, "x"), (Operator, "+"), (Name.Variable, "y"),
        ]

    def test_function_call(self):
        assert self.tokens("sqrt(x)")[0] == (Name.Function, "sqrt")

    def test_shorthand(self):
        assert (Operator, "->") in self.tokens("a -> b")

"""Pygments lexer for Typst math expressions."""

from pygments.lexer import RegexLexer, bygroups
from pygments.token import (
    Keyword,
    Name,
    Number,
    Operator,
    Punctuation,
    String,
    Text,
    Whitespace,
)


class MathLexer(RegexLexer):
    """Pygments lexer for Typst math mode."""

    name = "Typst math"
    aliases = ["typst-math"]
    filenames = ["*.typm"]
    mimetypes = ["text/x-typst-math"]

    tokens = {
        "root": [
            (r"\s+", Whitespace),
            (r'"', String, "string"),
            # Embedded code: #name, #name(, #( and #[
            (r"(#)(true|false|none|auto)\b", bygroups(Punctuation, Keyword.Constant)),
            (r"(#)([A-Za-z_][A-Za-z0-9_]*)", bygroups(Punctuation, Name.Function)),
            (r"#", Punctuation),
            # Escapes and linebreaks
            (r"\\\S", String.Escape),
            (r"\\", Punctuation),
            (r"[0-9]+(\.[0-9]+)?", Number),
            # Function calls and multi-letter identifiers (with .fields)
            (r"[A-Za-z]{2,}(\.[A-Za-z]+)*(?=\()", Name.Function),
            (r"[A-Za-z]{2,}(\.[A-Za-z]+)*", Name.Constant),
            (r"[A-Za-z]", Name.Variable),
            # Shorthands, longest first
            (r"-->|<--|==>|<==|<->|<=>|\|->|\|=>|->|<-|=>|<=|>=|!=|:=|<<|>>|~~|\.\.\.", Operator),
            (r"[\^_/'&]", Operator),
            (r"[+\-*=<>]", Operator),
            (r"[()\[\]{}|,;:]", Punctuation),
            (r"[√∛∜]", Operator),
            (r".", Text),
        ],
        "string": [
            (r'\\.', String.Escape),
            (r'"', String, "#pop"),
            (r'[^"\\]+', String),
        ],
    }

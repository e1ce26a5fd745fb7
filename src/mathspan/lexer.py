"""Lexer for Typst-style math expressions.

Produces a flat token stream from math-mode source text. A ``#`` switches to
code mode for a single embedded expression; parenthesized code may nest
``[...]`` content blocks, which switch back to math mode. Token ranges are
UTF-8 byte offsets.
"""

from __future__ import annotations

from mathspan.errors import CompileError, Diagnostic, error
from mathspan.source import ByteRange
from mathspan.tokens import (
    CODE_KEYWORDS,
    CODE_OPERATORS,
    MATH_PUNCT,
    ROOT_SIGNS,
    SHORTHAND_ORDER,
    SHORTHANDS,
    Token,
    TokenKind,
)

_STRING_ESCAPES = {"n": "\n", "t": "\t", "\\": "\\", '"': '"'}

# Deepest nesting of code groups and content blocks.
MAX_NESTING = 64


class _TooDeep(Exception):
    """Internal exception that stops lexing of overly nested code."""


class Lexer:
    """Tokenizes math source text."""

    def __init__(self, source: str, filename: str = "<input>") -> None:
        self.source = source
        self.filename = filename
        self.pos = 0      # character index
        self.offset = 0   # byte offset of self.pos
        self.tokens: list[Token] = []
        self.diagnostics: list[Diagnostic] = []
        self.depth = 0

    def lex(self) -> list[Token]:
        """Tokenize the entire source and return the token list."""
        try:
            self._lex_math(closer=None)
        except _TooDeep:
            raise CompileError(self.diagnostics) from None
        self._emit(TokenKind.EOF, "", self.offset)
        if self.diagnostics:
            raise CompileError(self.diagnostics)
        return self.tokens

    # ── Helpers ───────────────────────────────────────────────────

    def _at_end(self) -> bool:
        return self.pos >= len(self.source)

    def _peek(self, offset: int = 0) -> str:
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return '\0'

    def _starts_with(self, text: str) -> bool:
        return self.source.startswith(text, self.pos)

    def _advance(self) -> str:
        ch = self.source[self.pos]
        self.pos += 1
        self.offset += len(ch.encode("utf-8"))
        return ch

    def _advance_by(self, count: int) -> str:
        return "".join(self._advance() for _ in range(count))

    def _emit(self, kind: TokenKind, value: str, start: int) -> Token:
        tok = Token(kind, value, ByteRange(start, self.offset))
        self.tokens.append(tok)
        return tok

    def _error(self, message: str, start: int, code: str = "E100") -> None:
        self.diagnostics.append(error(code, message, ByteRange(start, self.offset)))

    def _descend(self, start: int) -> None:
        self.depth += 1
        if self.depth > MAX_NESTING:
            self._error(f"maximum nesting depth of {MAX_NESTING} exceeded", start, "E106")
            raise _TooDeep

    def _skip_whitespace(self) -> None:
        while not self._at_end() and self.source[self.pos].isspace():
            self._advance()

    # ── Math mode ────────────────────────────────────────────────

    def _lex_math(self, closer: str | None) -> bool:
        """Lex math tokens until *closer* at bracket depth zero (or the end).

        Returns False if the input ended before the closer was seen.
        """
        depth = 0
        while True:
            self._skip_whitespace()
            if self._at_end():
                return closer is None
            if closer is not None and depth == 0 and self._peek() == closer:
                return True
            tok = self._lex_math_token()
            if tok.kind == TokenKind.LBRACKET:
                depth += 1
            elif tok.kind == TokenKind.RBRACKET:
                depth -= 1

    def _lex_math_token(self) -> Token:
        start = self.offset
        ch = self._peek()

        if ch == '#':
            self._advance()
            tok = self._emit(TokenKind.HASH, '#', start)
            self._lex_embedded()
            return tok
        if ch == '"':
            return self._lex_string()
        if ch == '\\':
            return self._lex_backslash()
        if ch.isdigit():
            return self._lex_math_number()
        if ch.isalpha():
            return self._lex_math_word()
        if ch in ROOT_SIGNS:
            self._advance()
            return self._emit(TokenKind.ROOT, ch, start)

        for shorthand in SHORTHAND_ORDER:
            if self._starts_with(shorthand):
                self._advance_by(len(shorthand))
                return self._emit(TokenKind.SHORTHAND, shorthand, start)

        if ch in MATH_PUNCT:
            self._advance()
            return self._emit(MATH_PUNCT[ch], ch, start)

        self._advance()
        return self._emit(TokenKind.TEXT, ch, start)

    def _lex_backslash(self) -> Token:
        start = self.offset
        self._advance()  # '\'
        if self._at_end() or self._peek().isspace():
            return self._emit(TokenKind.LINEBREAK, '\\', start)
        escaped = self._advance()
        return self._emit(TokenKind.ESCAPE, escaped, start)

    def _lex_math_number(self) -> Token:
        start = self.offset
        text = ""
        while not self._at_end() and self._peek().isdigit():
            text += self._advance()
        if self._peek() == '.' and self._peek(1).isdigit():
            text += self._advance()
            while not self._at_end() and self._peek().isdigit():
                text += self._advance()
        return self._emit(TokenKind.TEXT, text, start)

    def _lex_math_word(self) -> Token:
        """A lone letter is text; a run of letters is an identifier.

        Identifiers may continue with ``.name`` segments (``arrow.r``).
        """
        start = self.offset
        word = ""
        while not self._at_end() and self._peek().isalpha():
            word += self._advance()
        if len(word) == 1:
            return self._emit(TokenKind.TEXT, word, start)
        while self._peek() == '.' and self._peek(1).isalpha():
            word += self._advance()
            while not self._at_end() and self._peek().isalpha():
                word += self._advance()
        return self._emit(TokenKind.IDENT, word, start)

    def _lex_string(self) -> Token:
        start = self.offset
        self._advance()  # opening quote
        value = ""
        while not self._at_end() and self._peek() != '"':
            ch = self._advance()
            if ch == '\\' and not self._at_end():
                esc = self._advance()
                value += _STRING_ESCAPES.get(esc, esc)
            else:
                value += ch
        if self._at_end():
            self._error("unclosed string", start, "E101")
            return self._emit(TokenKind.STRING, value, start)
        self._advance()  # closing quote
        return self._emit(TokenKind.STRING, value, start)

    # ── Code mode ────────────────────────────────────────────────

    def _lex_embedded(self) -> None:
        """Lex the single code expression following a '#'."""
        ch = self._peek()
        if ch.isalpha() or ch == '_':
            self._lex_code_word()
        elif ch.isdigit():
            self._lex_code_number()
        elif ch == '"':
            self._lex_string()
        elif ch == '(':
            self._lex_code_group()
        elif ch == '[':
            self._lex_content_block()
        else:
            self._error("expected expression after '#'", self.offset - 1, "E102")
            return

        # Postfix calls, trailing content blocks and field access must be
        # directly attached; anything after whitespace is math again.
        while True:
            if self._peek() == '(':
                self._lex_code_group()
            elif self._peek() == '[':
                self._lex_content_block()
            elif self._peek() == '.' and (self._peek(1).isalpha() or self._peek(1) == '_'):
                start = self.offset
                self._advance()
                self._emit(TokenKind.DOT, '.', start)
                self._lex_code_word()
            else:
                break

    def _lex_code_group(self) -> None:
        """Lex '(' ... ')' in code mode, including nested groups."""
        start = self.offset
        self._advance()
        self._emit(TokenKind.LPAREN, '(', start)
        self._descend(start)
        try:
            self._lex_code_group_body(start)
        finally:
            self.depth -= 1

    def _lex_code_group_body(self, start: int) -> None:
        while True:
            self._skip_whitespace()
            if self._at_end():
                self._error("unclosed parenthesis", start, "E103")
                return
            ch = self._peek()
            if ch == ')':
                close = self.offset
                self._advance()
                self._emit(TokenKind.RPAREN, ')', close)
                return
            if ch == '(':
                self._lex_code_group()
            elif ch == '[':
                self._lex_content_block()
            else:
                self._lex_code_token()

    def _lex_content_block(self) -> None:
        """Lex '[' math ']' inside code."""
        start = self.offset
        self._advance()
        self._emit(TokenKind.LBRACKET, '[', start)
        self._descend(start)
        try:
            closed = self._lex_math(closer=']')
        finally:
            self.depth -= 1
        if not closed:
            self._error("unclosed content block", start, "E104")
            return
        close = self.offset
        self._advance()
        self._emit(TokenKind.RBRACKET, ']', close)

    def _lex_code_token(self) -> None:
        ch = self._peek()
        if ch.isalpha() or ch == '_':
            self._lex_code_word()
            return
        if ch.isdigit():
            self._lex_code_number()
            return
        if ch == '"':
            self._lex_string()
            return
        start = self.offset
        for text, kind in CODE_OPERATORS:
            if self._starts_with(text):
                self._advance_by(len(text))
                self._emit(kind, text, start)
                return
        self._advance()
        self._error(f"unexpected character in code: {ch!r}", start, "E105")

    def _lex_code_word(self) -> None:
        start = self.offset
        word = ""
        while not self._at_end() and (self._peek().isalnum() or self._peek() == '_'):
            word += self._advance()
        self._emit(CODE_KEYWORDS.get(word, TokenKind.IDENT), word, start)

    def _lex_code_number(self) -> None:
        start = self.offset
        text = ""
        while not self._at_end() and self._peek().isdigit():
            text += self._advance()
        if self._peek() == '.' and self._peek(1).isdigit():
            text += self._advance()
            while not self._at_end() and self._peek().isdigit():
                text += self._advance()
            self._emit(TokenKind.FLOAT, text, start)
            return
        self._emit(TokenKind.INT, text, start)

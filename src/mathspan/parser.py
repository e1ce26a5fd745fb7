"""Parser for Typst-style math expressions.

Transforms a token stream into a syntax tree. Math mode is parsed by
recursive descent (sequence > fraction > attachment > atom); code embedded
with ``#`` uses a Pratt expression parser with binding powers.
"""

from __future__ import annotations

from dataclasses import fields, is_dataclass, replace

from mathspan.ast_nodes import (
    Args,
    Array,
    AutoLit,
    Binary,
    Bool,
    ContentBlock,
    Dict,
    Expr,
    FieldAccess,
    Float,
    FuncCall,
    Ident,
    Int,
    Keyed,
    Linebreak,
    Math,
    MathAlignPoint,
    MathAttach,
    MathDelimited,
    MathFrac,
    MathIdent,
    MathPrimes,
    MathRoot,
    MathShorthand,
    MathText,
    Named,
    NoneLit,
    Parenthesized,
    Spread,
    Str,
    Unary,
)
from mathspan.errors import CompileError, Diagnostic, error
from mathspan.lexer import MAX_NESTING, Lexer
from mathspan.source import FULL, ByteRange, FileId, Span
from mathspan.tokens import DELIMITER_PAIRS, ROOT_SIGNS, SHORTHANDS, Token, TokenKind

# ── Binding powers for the code Pratt parser ────────────────────

# (left_bp, right_bp) for infix operators
_INFIX_BP: dict[TokenKind, tuple[int, int]] = {
    TokenKind.OR: (1, 2),
    TokenKind.AND: (3, 4),
    TokenKind.EQ_EQ: (5, 6),
    TokenKind.NOT_EQ: (5, 6),
    TokenKind.LT: (5, 6),
    TokenKind.LE: (5, 6),
    TokenKind.GT: (5, 6),
    TokenKind.GE: (5, 6),
    TokenKind.PLUS: (7, 8),
    TokenKind.MINUS: (7, 8),
    TokenKind.STAR: (9, 10),
    TokenKind.SLASH: (9, 10),
}

_PREFIX_BP = 11  # right bp for unary - and +
_NOT_BP = 5      # `not` binds looser than comparison operands

_OP_STRINGS: dict[TokenKind, str] = {
    TokenKind.PLUS: '+', TokenKind.MINUS: '-', TokenKind.STAR: '*',
    TokenKind.SLASH: '/', TokenKind.EQ_EQ: '==', TokenKind.NOT_EQ: '!=',
    TokenKind.LT: '<', TokenKind.LE: '<=', TokenKind.GT: '>',
    TokenKind.GE: '>=', TokenKind.AND: 'and', TokenKind.OR: 'or',
}

# Symbols that need an operand on their right.
_INFIX_SYMBOLS = frozenset(
    "+−=<>×·⋅÷±∓∗→←↔⇒⇔≤≥≠≔≈≪≫⟶⟵⟹⟸↦"
)

_ARG_STOPS = frozenset({TokenKind.COMMA, TokenKind.SEMICOLON, TokenKind.RPAREN})


class Parser:
    """Parses a list of tokens into a math syntax tree."""

    def __init__(self, tokens: list[Token], filename: str = "<input>") -> None:
        self.tokens = tokens
        self.pos = 0
        self.filename = filename
        self.diagnostics: list[Diagnostic] = []
        self.depth = 0

    # ── Token access ─────────────────────────────────────────────

    def _current(self) -> Token:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return self.tokens[-1]  # EOF

    def _peek(self, offset: int = 0) -> Token:
        idx = self.pos + offset
        if idx < len(self.tokens):
            return self.tokens[idx]
        return self.tokens[-1]

    def _at(self, kind: TokenKind) -> bool:
        return self._current().kind == kind

    def _at_any(self, *kinds: TokenKind) -> bool:
        return self._current().kind in kinds

    def _advance(self) -> Token:
        tok = self._current()
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return tok

    def _expect(self, kind: TokenKind) -> Token:
        if self._current().kind == kind:
            return self._advance()
        tok = self._current()
        self._error(f"expected {kind.name}, got {tok.kind.name} ({tok.value!r})", tok.range)
        return tok

    def _error(self, message: str, rng: ByteRange, code: str = "E200") -> None:
        self.diagnostics.append(error(code, message, rng))

    def _descend(self, rng: ByteRange) -> None:
        self.depth += 1
        if self.depth > MAX_NESTING:
            self._error(f"maximum nesting depth of {MAX_NESTING} exceeded", rng, "E213")
            raise _TooDeep

    @staticmethod
    def _span(start: ByteRange, end: ByteRange) -> ByteRange:
        """Build a range from the start of one range to the end of another."""
        return ByteRange(start.start, max(start.start, end.end))

    def _adjacent(self, rng: ByteRange, tok: Token) -> bool:
        return rng.end == tok.range.start

    def _at_seq_end(self, stops: frozenset[TokenKind]) -> bool:
        return self._at(TokenKind.EOF) or self._current().kind in stops

    # ── Top level ────────────────────────────────────────────────

    def parse(self) -> Math:
        """Parse the entire token stream into a Math root."""
        try:
            exprs = self._parse_math_seq(frozenset())
        except _TooDeep:
            raise CompileError(self.diagnostics) from None
        end = self._current().range.end
        if self.diagnostics:
            raise CompileError(self.diagnostics)
        return Math(exprs, ByteRange(0, end))

    # ── Math mode ────────────────────────────────────────────────

    def _parse_math_seq(self, stops: frozenset[TokenKind]) -> list[Expr]:
        """Parse math expressions until EOF or one of *stops*."""
        exprs: list[Expr] = []
        while not self._at_seq_end(stops):
            before = self.pos
            try:
                expr = self._parse_frac(stops)
            except _ParseError:
                if self.pos == before:
                    self._advance()
                continue
            if exprs and self._is_infix(expr) and self._at_seq_end(stops):
                symbol = expr.symbol if isinstance(expr, MathShorthand) else expr.text
                self._error(f'expected expression after "{symbol}"', expr.range, "E201")
            exprs.append(expr)
        return exprs

    @staticmethod
    def _is_infix(expr: Expr) -> bool:
        if isinstance(expr, MathShorthand):
            return expr.symbol in _INFIX_SYMBOLS
        if isinstance(expr, MathText):
            return expr.text in _INFIX_SYMBOLS
        return False

    def _parse_frac(self, stops: frozenset[TokenKind]) -> Expr:
        lhs = self._parse_attach(stops)
        nested = 0
        try:
            while self._at(TokenKind.SLASH):
                slash = self._advance()
                if self._at_seq_end(stops):
                    self._error("missing denominator", slash.range, "E202")
                    break
                # Each fraction nests the previous one as its numerator.
                self._descend(slash.range)
                nested += 1
                rhs = self._parse_attach(stops)
                lhs = MathFrac(lhs, rhs, self._span(lhs.range, rhs.range))
        finally:
            self.depth -= nested
        return lhs

    def _parse_attach(self, stops: frozenset[TokenKind], stop: TokenKind | None = None) -> Expr:
        """Parse an atom with its primes and scripts.

        Scripts are right-associative: ``x^a^b`` is ``x^(a^b)``. A superscript
        stops before a ``_`` (and a subscript before a ``^``) so that the
        other script attaches to the same base, as in ``x^a_b``.
        """
        base = self._parse_atom(stops)
        end = base.range

        primes: MathPrimes | None = None
        if self._at(TokenKind.PRIME) and not isinstance(base, MathPrimes):
            primes = self._parse_primes()
            end = primes.range

        scripts: dict[TokenKind, Expr] = {}
        if self._at_any(TokenKind.UNDERSCORE, TokenKind.HAT) and not self._at(stop):
            op = self._advance()
            other = TokenKind.HAT if op.kind == TokenKind.UNDERSCORE else TokenKind.UNDERSCORE
            script = self._parse_script(op, stops, other)
            if script is not None:
                scripts[op.kind] = script
                end = script.range
                if self._at(other):
                    op = self._advance()
                    script = self._parse_script(op, stops, None)
                    if script is not None:
                        scripts[op.kind] = script
                        end = script.range

        if primes is None and not scripts:
            return base
        return MathAttach(
            base, scripts.get(TokenKind.UNDERSCORE), scripts.get(TokenKind.HAT), primes,
            self._span(base.range, end),
        )

    def _parse_script(
        self, op: Token, stops: frozenset[TokenKind], stop: TokenKind | None,
    ) -> Expr | None:
        if self._at_seq_end(stops):
            which = "subscript" if op.kind == TokenKind.UNDERSCORE else "superscript"
            self._error(f"missing {which}", op.range, "E203")
            return None
        self._descend(op.range)
        try:
            return self._parse_attach(stops, stop)
        finally:
            self.depth -= 1

    def _parse_primes(self) -> MathPrimes:
        start = self._current().range
        count = 0
        end = start
        while self._at(TokenKind.PRIME):
            end = self._advance().range
            count += 1
        return MathPrimes(count, self._span(start, end))

    def _parse_atom(self, stops: frozenset[TokenKind]) -> Expr:
        """Parse a single math atom."""
        self._descend(self._current().range)
        try:
            return self._parse_atom_kind(stops)
        finally:
            self.depth -= 1

    def _parse_atom_kind(self, stops: frozenset[TokenKind]) -> Expr:
        tok = self._current()
        kind = tok.kind

        if kind == TokenKind.IDENT:
            nxt = self._peek(1)
            if nxt.kind == TokenKind.LPAREN and self._adjacent(tok.range, nxt):
                return self._parse_math_call()
            self._advance()
            return MathIdent(tok.value, tok.range)

        if kind in (TokenKind.TEXT, TokenKind.ESCAPE):
            self._advance()
            return MathText(tok.value, tok.range)

        if kind == TokenKind.SHORTHAND:
            self._advance()
            return MathShorthand(tok.value, SHORTHANDS[tok.value], tok.range)

        if kind == TokenKind.STRING:
            self._advance()
            return Str(tok.value, tok.range)

        if kind == TokenKind.ROOT:
            self._advance()
            if self._at_seq_end(stops):
                self._error("missing radicand", tok.range, "E204")
                return MathText(tok.value, tok.range)
            radicand = self._parse_atom(stops)
            return MathRoot(ROOT_SIGNS[tok.value], radicand, self._span(tok.range, radicand.range))

        if kind == TokenKind.PRIME:
            return self._parse_primes()

        if kind == TokenKind.AMP:
            self._advance()
            return MathAlignPoint(tok.range)

        if kind == TokenKind.LINEBREAK:
            self._advance()
            return Linebreak(tok.range)

        if kind == TokenKind.HASH:
            self._advance()
            return self._parse_code_postfix(self._parse_code_atom())

        if kind in DELIMITER_PAIRS:
            return self._parse_delimited(DELIMITER_PAIRS[kind])

        if kind == TokenKind.BAR and self._has_closing_bar(stops):
            return self._parse_delimited(TokenKind.BAR)

        if kind in (TokenKind.HAT, TokenKind.UNDERSCORE):
            self._advance()
            self._error(f'expected base before "{tok.value}"', tok.range, "E205")
            raise _ParseError

        # Unmatched closers, separators outside calls and the like are plain text.
        self._advance()
        return MathText(tok.value, tok.range)

    def _has_closing_bar(self, stops: frozenset[TokenKind]) -> bool:
        """Scan ahead for a matching '|' at the same nesting depth."""
        depth = 0
        idx = self.pos + 1
        while idx < len(self.tokens):
            kind = self.tokens[idx].kind
            if kind == TokenKind.EOF:
                return False
            if depth == 0 and kind in stops:
                return False
            if kind in DELIMITER_PAIRS:
                depth += 1
            elif kind in DELIMITER_PAIRS.values():
                if depth == 0:
                    return False
                depth -= 1
            elif kind == TokenKind.BAR and depth == 0:
                return True
            idx += 1
        return False

    def _parse_delimited(self, close_kind: TokenKind) -> MathDelimited:
        open_tok = self._advance()
        open_node = MathText(open_tok.value, open_tok.range)
        body_exprs = self._parse_math_seq(frozenset({close_kind}))
        if self._at(close_kind):
            close_tok = self._advance()
            close_node = MathText(close_tok.value, close_tok.range)
        else:
            self._error("unclosed delimiter", open_tok.range, "E206")
            at = self._current().range.start
            close_node = MathText("", ByteRange(at, at))
        body = Math(body_exprs, ByteRange(open_node.range.end, close_node.range.start))
        return MathDelimited(
            open_node, body, close_node, self._span(open_node.range, close_node.range),
        )

    def _parse_math_call(self) -> FuncCall:
        """Parse ``ident(args)`` in math mode.

        Arguments are separated by commas; semicolons group the positional
        arguments seen so far into array rows (``mat(1, 2; 3, 4)``).
        """
        name_tok = self._advance()
        callee = MathIdent(name_tok.value, name_tok.range)
        lparen = self._advance()

        row: list[Expr] = []
        rows: list[list[Expr]] = []
        named: list[Named] = []
        has_rows = False
        while not self._at(TokenKind.RPAREN):
            if self._at(TokenKind.EOF):
                break
            arg = self._parse_math_arg()
            if isinstance(arg, Named):
                named.append(arg)
            else:
                row.append(arg)
            if self._at(TokenKind.COMMA):
                self._advance()
            elif self._at(TokenKind.SEMICOLON):
                self._advance()
                rows.append(row)
                row = []
                has_rows = True

        if self._at(TokenKind.RPAREN):
            rparen = self._advance()
        else:
            self._error("unclosed argument list", lparen.range, "E207")
            rparen = self._current()

        positional: list[Expr] = list(row)
        if has_rows:
            if row:
                rows.append(row)
            positional = [
                Array(list(r), self._span(r[0].range, r[-1].range))
                for r in rows if r
            ]

        args = Args([*positional, *named], self._span(lparen.range, rparen.range))
        return FuncCall(callee, args, self._span(callee.range, rparen.range))

    def _parse_math_arg(self) -> Expr | Named:
        tok = self._current()
        nxt = self._peek(1)
        if (tok.kind in (TokenKind.TEXT, TokenKind.IDENT)
                and tok.value.isalpha()
                and nxt.kind == TokenKind.COLON):
            self._advance()
            self._advance()  # ':'
            value = self._parse_arg_value()
            return Named(tok.value, value, self._span(tok.range, value.range))
        return self._parse_arg_value()

    def _parse_arg_value(self) -> Expr:
        start = self._current().range.start
        exprs = self._parse_math_seq(_ARG_STOPS)
        if len(exprs) == 1:
            return exprs[0]
        end = exprs[-1].range.end if exprs else start
        return Math(exprs, ByteRange(start, end))

    # ── Code mode ────────────────────────────────────────────────

    def _parse_code_atom(self) -> Expr:
        tok = self._current()
        kind = tok.kind

        if kind == TokenKind.IDENT:
            self._advance()
            return Ident(tok.value, tok.range)
        if kind == TokenKind.INT:
            self._advance()
            return Int(int(tok.value), tok.range)
        if kind == TokenKind.FLOAT:
            self._advance()
            return Float(float(tok.value), tok.range)
        if kind == TokenKind.STRING:
            self._advance()
            return Str(tok.value, tok.range)
        if kind == TokenKind.BOOL:
            self._advance()
            return Bool(tok.value == "true", tok.range)
        if kind == TokenKind.NONE:
            self._advance()
            return NoneLit(tok.range)
        if kind == TokenKind.AUTO:
            self._advance()
            return AutoLit(tok.range)
        if kind == TokenKind.LPAREN:
            return self._parse_code_paren()
        if kind == TokenKind.LBRACKET:
            return self._parse_content_block()

        self._error(f"expected expression, found {kind.name} ({tok.value!r})", tok.range, "E210")
        raise _ParseError

    def _parse_code_postfix(self, expr: Expr) -> Expr:
        """Calls, trailing content blocks and field access."""
        nested = 0
        try:
            while True:
                tok = self._current()
                if tok.kind == TokenKind.LPAREN and self._adjacent(expr.range, tok):
                    self._descend(tok.range)
                    nested += 1
                    expr = self._parse_code_call(expr)
                    continue
                if tok.kind == TokenKind.LBRACKET and self._adjacent(expr.range, tok):
                    self._descend(tok.range)
                    nested += 1
                    block = self._parse_content_block()
                    args = Args([block], block.range)
                    expr = FuncCall(expr, args, self._span(expr.range, block.range))
                    continue
                if tok.kind == TokenKind.DOT:
                    self._descend(tok.range)
                    nested += 1
                    self._advance()
                    field_tok = self._expect(TokenKind.IDENT)
                    expr = FieldAccess(expr, field_tok.value, self._span(expr.range, field_tok.range))
                    continue
                return expr
        finally:
            self.depth -= nested

    def _parse_code_expr(self, min_bp: int) -> Expr:
        """Parse a code expression using Pratt parsing with binding powers."""
        self._descend(self._current().range)
        nested = 1
        try:
            left = self._parse_code_prefix()

            while True:
                tok = self._current()
                if tok.kind not in _INFIX_BP:
                    break
                left_bp, right_bp = _INFIX_BP[tok.kind]
                if left_bp < min_bp:
                    break
                op_tok = self._advance()
                self._descend(op_tok.range)
                nested += 1
                right = self._parse_code_expr(right_bp)
                left = Binary(
                    left, _OP_STRINGS[op_tok.kind], right,
                    self._span(left.range, right.range),
                )
        finally:
            self.depth -= nested

        return left

    def _parse_code_prefix(self) -> Expr:
        tok = self._current()
        if tok.kind in (TokenKind.MINUS, TokenKind.PLUS):
            self._advance()
            operand = self._parse_code_expr(_PREFIX_BP)
            return Unary(tok.value, operand, self._span(tok.range, operand.range))
        if tok.kind == TokenKind.NOT:
            self._advance()
            operand = self._parse_code_expr(_NOT_BP)
            return Unary("not", operand, self._span(tok.range, operand.range))
        return self._parse_code_postfix(self._parse_code_atom())

    def _parse_code_paren(self) -> Expr:
        """Parenthesized expression, array or dictionary."""
        lparen = self._advance()

        if self._at(TokenKind.RPAREN):
            rparen = self._advance()
            return Array([], self._span(lparen.range, rparen.range))
        if self._at(TokenKind.COLON) and self._peek(1).kind == TokenKind.RPAREN:
            self._advance()
            rparen = self._advance()
            return Dict([], self._span(lparen.range, rparen.range))

        items: list[Expr | Named | Keyed | Spread] = []
        trailing_comma = False
        while not self._at(TokenKind.RPAREN) and not self._at(TokenKind.EOF):
            items.append(self._parse_code_item())
            trailing_comma = False
            if not self._at(TokenKind.COMMA):
                break
            self._advance()
            trailing_comma = True
        rparen = self._expect(TokenKind.RPAREN)
        rng = self._span(lparen.range, rparen.range)

        keyed = [i for i in items if isinstance(i, (Named, Keyed))]
        if keyed:
            if any(not isinstance(i, (Named, Keyed, Spread)) for i in items):
                self._error("cannot mix positional and named items", rng, "E211")
            return Dict([i for i in items if isinstance(i, (Named, Keyed, Spread))], rng)
        if len(items) == 1 and not trailing_comma and not isinstance(items[0], Spread):
            return Parenthesized(items[0], rng)
        return Array(items, rng)

    def _parse_code_item(self) -> Expr | Named | Keyed | Spread:
        if self._at(TokenKind.DOT_DOT):
            dots = self._advance()
            expr = self._parse_code_expr(0)
            return Spread(expr, self._span(dots.range, expr.range))
        expr = self._parse_code_expr(0)
        if self._at(TokenKind.COLON):
            self._advance()
            value = self._parse_code_expr(0)
            if isinstance(expr, Ident):
                return Named(expr.name, value, self._span(expr.range, value.range))
            return Keyed(expr, value, self._span(expr.range, value.range))
        return expr

    def _parse_code_call(self, callee: Expr) -> FuncCall:
        lparen = self._advance()
        items: list[Expr | Named | Spread] = []
        while not self._at(TokenKind.RPAREN) and not self._at(TokenKind.EOF):
            item = self._parse_code_item()
            if isinstance(item, Keyed):
                self._error("expected identifier as argument name", item.key.range, "E212")
                item = item.expr
            items.append(item)
            if not self._at(TokenKind.COMMA):
                break
            self._advance()
        rparen = self._expect(TokenKind.RPAREN)
        end = rparen.range

        while self._at(TokenKind.LBRACKET) and self._adjacent(end, self._current()):
            block = self._parse_content_block()
            items.append(block)
            end = block.range

        args = Args(items, self._span(lparen.range, end))
        return FuncCall(callee, args, self._span(callee.range, end))

    def _parse_content_block(self) -> ContentBlock:
        lbracket = self._advance()
        exprs = self._parse_math_seq(frozenset({TokenKind.RBRACKET}))
        rbracket = self._expect(TokenKind.RBRACKET)
        body = Math(exprs, ByteRange(lbracket.range.end, max(lbracket.range.end, rbracket.range.start)))
        return ContentBlock(body, self._span(lbracket.range, rbracket.range))


class _ParseError(Exception):
    """Internal exception for parser error recovery."""


class _TooDeep(Exception):
    """Internal exception that abandons an overly nested parse."""


# ── Entry points ─────────────────────────────────────────────────


def parse_math(text: str, filename: str = "<input>") -> Math:
    """Lex and parse *text* as a math expression. Raises CompileError."""
    tokens = Lexer(text, filename).lex()
    return Parser(tokens, filename).parse()


class Unnumberable(Exception):
    """The span number interval is too small for the tree."""


def numberize(
    root: Math, file_id: FileId, within: range = FULL,
) -> tuple[Math, dict[int, ByteRange]]:
    """Assign a span to every node of *root*, numbered in pre-order.

    Returns the rebuilt tree and the span-number to byte-range table that a
    `Source` needs to resolve those spans.
    """
    numbers = iter(within)
    ranges: dict[int, ByteRange] = {}

    def visit(node):
        try:
            number = next(numbers)
        except StopIteration:
            raise Unnumberable(
                f"{len(within)} span numbers are not enough for this tree"
            ) from None
        ranges[number] = node.range
        changes = {}
        for f in fields(node):
            if f.name in ("range", "span"):
                continue
            value = getattr(node, f.name)
            if _is_node(value):
                changes[f.name] = visit(value)
            elif isinstance(value, list):
                changes[f.name] = [visit(v) if _is_node(v) else v for v in value]
        return replace(node, span=Span(file_id, number), **changes)

    return visit(root), ranges


def _is_node(value: object) -> bool:
    return is_dataclass(value) and hasattr(value, "span") and hasattr(value, "range")

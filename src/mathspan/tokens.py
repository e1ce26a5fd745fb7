"""Token kinds and token representation for the math lexer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mathspan.source import ByteRange


class TokenKind(Enum):
    # Math atoms
    TEXT = auto()
    IDENT = auto()
    SHORTHAND = auto()
    STRING = auto()
    ESCAPE = auto()
    ROOT = auto()

    # Math structure
    HAT = auto()
    UNDERSCORE = auto()
    SLASH = auto()
    PRIME = auto()
    AMP = auto()
    LINEBREAK = auto()
    HASH = auto()

    # Delimiters
    LPAREN = auto()
    RPAREN = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    LBRACE = auto()
    RBRACE = auto()
    BAR = auto()

    # Punctuation
    COMMA = auto()
    SEMICOLON = auto()
    COLON = auto()
    DOT = auto()
    DOT_DOT = auto()

    # Code literals
    INT = auto()
    FLOAT = auto()
    BOOL = auto()
    NONE = auto()
    AUTO = auto()

    # Code operators
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    EQ_EQ = auto()
    NOT_EQ = auto()
    LT = auto()
    LE = auto()
    GT = auto()
    GE = auto()
    AND = auto()
    OR = auto()
    NOT = auto()

    # Special
    EOF = auto()


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str
    range: ByteRange


# Math-mode shorthands and the symbol each one stands for.
SHORTHANDS: dict[str, str] = {
    "...": "…",
    "-->": "⟶",
    "<--": "⟵",
    "==>": "⟹",
    "<==": "⟸",
    "<->": "↔",
    "<=>": "⇔",
    "|->": "↦",
    "|=>": "⤇",
    "->": "→",
    "<-": "←",
    "=>": "⇒",
    "<=": "≤",
    ">=": "≥",
    "!=": "≠",
    ":=": "≔",
    "<<": "≪",
    ">>": "≫",
    "~~": "≈",
    "||": "‖",
    "[|": "⟦",
    "|]": "⟧",
    "-": "−",
    "*": "∗",
}

# Longest shorthand first so "-->" wins over "->" and "-".
SHORTHAND_ORDER = sorted(SHORTHANDS, key=len, reverse=True)

ROOT_SIGNS: dict[str, int | None] = {"√": None, "∛": 3, "∜": 4}

MATH_PUNCT: dict[str, TokenKind] = {
    "^": TokenKind.HAT,
    "_": TokenKind.UNDERSCORE,
    "/": TokenKind.SLASH,
    "'": TokenKind.PRIME,
    "&": TokenKind.AMP,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    "|": TokenKind.BAR,
    ",": TokenKind.COMMA,
    ";": TokenKind.SEMICOLON,
    ":": TokenKind.COLON,
}

CODE_KEYWORDS: dict[str, TokenKind] = {
    "true": TokenKind.BOOL,
    "false": TokenKind.BOOL,
    "none": TokenKind.NONE,
    "auto": TokenKind.AUTO,
    "and": TokenKind.AND,
    "or": TokenKind.OR,
    "not": TokenKind.NOT,
}

# Code-mode operators, longest first.
CODE_OPERATORS: list[tuple[str, TokenKind]] = [
    ("==", TokenKind.EQ_EQ),
    ("!=", TokenKind.NOT_EQ),
    ("<=", TokenKind.LE),
    (">=", TokenKind.GE),
    ("..", TokenKind.DOT_DOT),
    ("<", TokenKind.LT),
    (">", TokenKind.GT),
    ("+", TokenKind.PLUS),
    ("-", TokenKind.MINUS),
    ("*", TokenKind.STAR),
    ("/", TokenKind.SLASH),
    (".", TokenKind.DOT),
    (",", TokenKind.COMMA),
    (":", TokenKind.COLON),
    (";", TokenKind.SEMICOLON),
]

# Opening delimiter token -> matching closing token.
DELIMITER_PAIRS: dict[TokenKind, TokenKind] = {
    TokenKind.LPAREN: TokenKind.RPAREN,
    TokenKind.LBRACKET: TokenKind.RBRACKET,
    TokenKind.LBRACE: TokenKind.RBRACE,
}

CLOSERS = frozenset(DELIMITER_PAIRS.values())

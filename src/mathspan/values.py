"""Runtime values of the evaluator and the argument list passed to functions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Union

from mathspan.content import Content, SequenceElem, TextElem
from mathspan.source import Span


class _Auto:
    _instance: _Auto | None = None

    def __new__(cls) -> _Auto:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "auto"


AUTO = _Auto()


@dataclass(frozen=True)
class Symbol:
    """A named character such as ``pi`` or ``sum``."""

    text: str
    limits: bool = False


@dataclass(frozen=True)
class Func:
    name: str
    impl: Callable[[Args], Any]

    def __repr__(self) -> str:
        return self.name


Value = Union[None, bool, int, float, str, _Auto, Symbol, Func, Content, list, dict]


class EvalError(Exception):
    """Raised inside evaluation; turned into a diagnostic by the VM."""

    def __init__(self, message: str, span: Span, code: str = "E300") -> None:
        self.message = message
        self.span = span
        self.code = code
        super().__init__(message)


def type_name(value: Value) -> str:
    if value is None:
        return "none"
    if value is AUTO:
        return "auto"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Symbol):
        return "symbol"
    if isinstance(value, Func):
        return "function"
    if isinstance(value, Content):
        return "content"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "dictionary"
    return type(value).__name__


def repr_value(value: Value) -> str:
    """Code-like representation of a value."""
    if value is None:
        return "none"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return '"' + value.replace('"', '\\"') + '"'
    if isinstance(value, Symbol):
        return value.text
    if isinstance(value, list):
        inner = ", ".join(repr_value(v) for v in value)
        return f"({inner},)" if len(value) == 1 else f"({inner})"
    if isinstance(value, dict):
        if not value:
            return "(:)"
        inner = ", ".join(f"{k}: {repr_value(v)}" for k, v in value.items())
        return f"({inner})"
    if isinstance(value, Content):
        return "[..]"
    return repr(value)


def display(value: Value, span: Span) -> Content:
    """Turn a value into content shown in math."""
    if isinstance(value, Content):
        return value.spanned(span)
    if value is None:
        return SequenceElem((), span=span)
    if isinstance(value, Symbol):
        return TextElem(value.text, limits=value.limits, span=span)
    if isinstance(value, str):
        return TextElem(value, upright=True, span=span)
    if isinstance(value, bool) or value is AUTO:
        return TextElem(repr_value(value), upright=True, span=span)
    if isinstance(value, (int, float)):
        return TextElem(repr_value(value), span=span)
    return TextElem(repr_value(value), upright=True, span=span)


class Args:
    """Evaluated call arguments.

    Functions take what they need with `eat`, `expect` and `named`, then
    call `finish` so that leftovers are reported.
    """

    def __init__(
        self,
        span: Span,
        positional: list[tuple[Value, Span]] | None = None,
        named: dict[str, tuple[Value, Span]] | None = None,
    ) -> None:
        self.span = span
        self.positional = positional or []
        self.named_args = named or {}

    def __len__(self) -> int:
        return len(self.positional)

    def eat(self) -> Value | None:
        if not self.positional:
            return None
        value, _ = self.positional.pop(0)
        return value

    def expect(self, what: str) -> Value:
        if not self.positional:
            raise EvalError(f"missing argument: {what}", self.span, "E312")
        return self.eat()

    def expect_content(self, what: str) -> Content:
        if not self.positional:
            raise EvalError(f"missing argument: {what}", self.span, "E312")
        value, span = self.positional.pop(0)
        return display(value, span)

    def named(self, name: str, default: Value = None) -> Value:
        if name in self.named_args:
            value, _ = self.named_args.pop(name)
            return value
        return default

    def all_content(self) -> list[Content]:
        items = [display(value, span) for value, span in self.positional]
        self.positional = []
        return items

    def all(self) -> list[tuple[Value, Span]]:
        items = self.positional
        self.positional = []
        return items

    def finish(self) -> None:
        if self.positional:
            _, span = self.positional[0]
            raise EvalError("unexpected argument", span, "E312")
        for name, (_, span) in self.named_args.items():
            raise EvalError(f"unexpected argument: {name}", span, "E313")

"""The standard scope: symbols, operator names and math functions."""

from __future__ import annotations

from typing import Callable

from mathspan.content import (
    AttachElem,
    BinomElem,
    CasesElem,
    Content,
    FracElem,
    LrElem,
    MatElem,
    OpElem,
    OverlineElem,
    RootElem,
    TextElem,
    UnderlineElem,
    UprightElem,
    VecElem,
)
from mathspan.values import Args, EvalError, Func, Symbol, Value, display, type_name


class Scope:
    """A single scope level mapping names to values."""

    def __init__(self, parent: Scope | None = None, name: str = "") -> None:
        self.parent = parent
        self.name = name
        self._values: dict[str, Value] = {}

    def define(self, name: str, value: Value) -> None:
        self._values[name] = value

    def lookup(self, name: str) -> tuple[bool, Value]:
        """Return ``(found, value)`` searching this scope and its parents."""
        if name in self._values:
            return True, self._values[name]
        if self.parent is not None:
            return self.parent.lookup(name)
        return False, None

    def names(self) -> list[str]:
        names = list(self._values)
        if self.parent is not None:
            names.extend(n for n in self.parent.names() if n not in self._values)
        return names


# ── Symbols ──────────────────────────────────────────────────────

_GREEK = {
    "alpha": "α", "beta": "β", "gamma": "γ", "delta": "δ", "epsilon": "ε",
    "epsilon.alt": "ϵ", "zeta": "ζ", "eta": "η", "theta": "θ", "theta.alt": "ϑ",
    "iota": "ι", "kappa": "κ", "lambda": "λ", "mu": "μ", "nu": "ν", "xi": "ξ",
    "omicron": "ο", "pi": "π", "rho": "ρ", "sigma": "σ", "tau": "τ",
    "upsilon": "υ", "phi": "φ", "phi.alt": "ϕ", "chi": "χ", "psi": "ψ",
    "omega": "ω",
    "Alpha": "Α", "Beta": "Β", "Gamma": "Γ", "Delta": "Δ", "Theta": "Θ",
    "Lambda": "Λ", "Xi": "Ξ", "Pi": "Π", "Sigma": "Σ", "Upsilon": "Υ",
    "Phi": "Φ", "Psi": "Ψ", "Omega": "Ω",
}

_SYMBOLS = {
    "infinity": "∞", "oo": "∞", "partial": "∂", "nabla": "∇", "dif": "d",
    "Dif": "D", "prime": "′", "degree": "°", "ell": "ℓ", "planck": "ℎ",
    "dots": "…", "dots.h": "…", "dots.c": "⋯", "dots.v": "⋮", "dots.down": "⋱",
    "times": "×", "div": "÷", "dot": "⋅", "dot.op": "⋅", "plus": "+",
    "minus": "−", "plus.minus": "±", "minus.plus": "∓", "ast": "∗",
    "circle.small": "∘", "compose": "∘",
    "eq": "=", "eq.not": "≠", "lt": "<", "gt": ">", "lt.eq": "≤", "gt.eq": "≥",
    "approx": "≈", "equiv": "≡", "prop": "∝", "tilde.op": "∼",
    "in": "∈", "in.not": "∉", "subset": "⊂", "supset": "⊃",
    "subset.eq": "⊆", "supset.eq": "⊇", "union": "∪", "sect": "∩",
    "and": "∧", "or": "∨", "not": "¬", "forall": "∀", "exists": "∃",
    "emptyset": "∅", "arrow.r": "→", "arrow.l": "←", "arrow.l.r": "↔",
    "arrow.r.double": "⇒", "arrow.l.r.double": "⇔", "arrow.r.long": "⟶",
    "arrow.r.bar": "↦", "arrow.t": "↑", "arrow.b": "↓", "to": "→",
    "implies": "⇒", "iff": "⇔", "mapsto": "↦",
    "RR": "ℝ", "NN": "ℕ", "ZZ": "ℤ", "QQ": "ℚ", "CC": "ℂ",
    "angle.l": "⟨", "angle.r": "⟩", "bar.v": "|", "bar.v.double": "‖",
    "colon": ":", "comma": ",", "star": "⋆", "qed": "∎",
}

# Large operators; `limits` puts their scripts above and below in display style.
_LARGE = {
    "sum": ("∑", True), "product": ("∏", True), "coproduct": ("∐", True),
    "union.big": ("⋃", True), "sect.big": ("⋂", True),
    "integral": ("∫", False), "integral.double": ("∬", False),
    "integral.triple": ("∭", False), "integral.cont": ("∮", False),
}

_OPERATORS = [
    "arccos", "arcsin", "arctan", "arg", "cos", "cosh", "cot", "coth", "csc",
    "deg", "det", "dim", "exp", "gcd", "hom", "ker", "lcm", "lg", "ln", "log",
    "mod", "sec", "sin", "sinh", "tan", "tanh", "tr",
]
_LIMIT_OPERATORS = {
    "lim": "lim", "liminf": "lim inf", "limsup": "lim sup", "max": "max",
    "min": "min", "sup": "sup", "inf": "inf", "Pr": "Pr",
}


# ── Functions ────────────────────────────────────────────────────

_FUNCS: dict[str, Callable[[Args], Value]] = {}


def _func(name: str) -> Callable[[Callable[[Args], Value]], Callable[[Args], Value]]:
    def register(impl: Callable[[Args], Value]) -> Callable[[Args], Value]:
        _FUNCS[name] = impl
        return impl
    return register


def _delimited(args: Args, open_: str, close: str) -> Content:
    body = args.expect_content("body")
    args.finish()
    return LrElem(
        TextElem(open_, span=args.span), body, TextElem(close, span=args.span),
        span=args.span,
    )


def _delim_pair(value: Value, span, default: tuple[str, str]) -> tuple[str, str]:
    if value is None:
        return default
    if isinstance(value, str) and value in _DELIM_PAIRS:
        return _DELIM_PAIRS[value]
    raise EvalError(f"invalid delimiter: {value!r}", span, "E312")


_DELIM_PAIRS = {
    "(": ("(", ")"), "[": ("[", "]"), "{": ("{", "}"), "|": ("|", "|"),
    "||": ("‖", "‖"), "⟨": ("⟨", "⟩"),
}


@_func("frac")
def _frac(args: Args) -> Value:
    num = args.expect_content("numerator")
    denom = args.expect_content("denominator")
    args.finish()
    return FracElem(num, denom, span=args.span)


@_func("sqrt")
def _sqrt(args: Args) -> Value:
    radicand = args.expect_content("radicand")
    args.finish()
    return RootElem(None, radicand, span=args.span)


@_func("root")
def _root(args: Args) -> Value:
    index = args.expect_content("index")
    radicand = args.expect_content("radicand")
    args.finish()
    return RootElem(index, radicand, span=args.span)


@_func("abs")
def _abs(args: Args) -> Value:
    return _delimited(args, "|", "|")


@_func("norm")
def _norm(args: Args) -> Value:
    return _delimited(args, "‖", "‖")


@_func("floor")
def _floor(args: Args) -> Value:
    return _delimited(args, "⌊", "⌋")


@_func("ceil")
def _ceil(args: Args) -> Value:
    return _delimited(args, "⌈", "⌉")


@_func("lr")
def _lr(args: Args) -> Value:
    body = args.expect_content("body")
    args.finish()
    if isinstance(body, LrElem):
        return body
    return LrElem(None, body, None, span=args.span)


@_func("vec")
def _vec(args: Args) -> Value:
    delim = _delim_pair(args.named("delim"), args.span, ("(", ")"))
    children = tuple(args.all_content())
    args.finish()
    return VecElem(children, delim, span=args.span)


@_func("mat")
def _mat(args: Args) -> Value:
    delim = _delim_pair(args.named("delim"), args.span, ("(", ")"))
    rows: list[tuple[Content, ...]] = []
    loose: list[Content] = []
    for value, span in args.all():
        if isinstance(value, list):
            rows.append(tuple(display(cell, span) for cell in value))
        else:
            loose.append(display(value, span))
    if loose:
        rows.append(tuple(loose))
    args.finish()
    return MatElem(tuple(rows), delim, span=args.span)


@_func("cases")
def _cases(args: Args) -> Value:
    delim = args.named("delim", "{")
    if not isinstance(delim, str):
        raise EvalError(f"expected string, found {type_name(delim)}", args.span, "E312")
    children = tuple(args.all_content())
    args.finish()
    return CasesElem(children, delim, span=args.span)


@_func("binom")
def _binom(args: Args) -> Value:
    upper = args.expect_content("upper")
    lower = args.expect_content("lower")
    args.finish()
    return BinomElem(upper, lower, span=args.span)


@_func("attach")
def _attach(args: Args) -> Value:
    base = args.expect_content("base")
    top = args.named("t")
    bottom = args.named("b")
    args.finish()
    return AttachElem(
        base,
        top=display(top, args.span) if top is not None else None,
        bottom=display(bottom, args.span) if bottom is not None else None,
        span=args.span,
    )


@_func("op")
def _op(args: Args) -> Value:
    text = args.expect("text")
    limits = args.named("limits", False)
    args.finish()
    if isinstance(text, TextElem):
        text = text.text
    if not isinstance(text, str):
        raise EvalError(f"expected string, found {type_name(text)}", args.span, "E312")
    if not isinstance(limits, bool):
        raise EvalError(f"expected boolean, found {type_name(limits)}", args.span, "E312")
    return OpElem(text, limits, span=args.span)


@_func("upright")
def _upright(args: Args) -> Value:
    body = args.expect_content("body")
    args.finish()
    return UprightElem(body, span=args.span)


@_func("overline")
def _overline(args: Args) -> Value:
    body = args.expect_content("body")
    args.finish()
    return OverlineElem(body, span=args.span)


@_func("underline")
def _underline(args: Args) -> Value:
    body = args.expect_content("body")
    args.finish()
    return UnderlineElem(body, span=args.span)


def library() -> Scope:
    """Build a fresh standard scope."""
    scope = Scope(name="std")
    for name, text in {**_GREEK, **_SYMBOLS}.items():
        scope.define(name, Symbol(text))
    for name, (text, limits) in _LARGE.items():
        scope.define(name, Symbol(text, limits))
    for name in _OPERATORS:
        scope.define(name, OpElem(name))
    for name, text in _LIMIT_OPERATORS.items():
        scope.define(name, OpElem(text, limits=True))
    for name, impl in _FUNCS.items():
        scope.define(name, Func(name, impl))
    return scope

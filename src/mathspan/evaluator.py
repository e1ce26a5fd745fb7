"""Evaluates a math syntax tree into typeset content."""

from __future__ import annotations

from mathspan.ast_nodes import (
    Args as ArgsNode,
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
from mathspan.content import (
    AlignPointElem,
    AttachElem,
    Content,
    FracElem,
    LinebreakElem,
    LrElem,
    PrimesElem,
    RootElem,
    SequenceElem,
    TextElem,
)
from mathspan.errors import CompileError, Diagnostic, error
from mathspan.library import Scope
from mathspan.source import Span, SpanResolver
from mathspan.values import AUTO, Args, EvalError, Func, Value, display, type_name


class Vm:
    """Evaluates one math tree against a scope.

    Errors in one expression do not stop evaluation of its siblings; all
    diagnostics are raised together at the end as a `CompileError`.
    """

    def __init__(self, resolver: SpanResolver, scope: Scope) -> None:
        self.resolver = resolver
        self.scope = scope
        self.diagnostics: list[Diagnostic] = []

    def eval(self, math: Math) -> Content:
        content = self._eval_math(math)
        if self.diagnostics:
            raise CompileError(self.diagnostics)
        return content

    def _report(self, err: EvalError) -> None:
        self.diagnostics.append(error(err.code, err.message, self.resolver.range(err.span)))

    # ── Math ─────────────────────────────────────────────────────

    def _eval_math(self, math: Math) -> Content:
        children: list[Content] = []
        for expr in math.exprs:
            try:
                children.append(self._eval_content(expr))
            except EvalError as err:
                self._report(err)
        return SequenceElem(tuple(children), span=math.span)

    def _eval_content(self, expr: Expr) -> Content:
        return display(self._eval(expr), expr.span)

    def _eval_stripped(self, expr: Expr) -> Content:
        """Evaluate, dropping one level of round parentheses."""
        if (isinstance(expr, MathDelimited)
                and expr.open.text == "(" and expr.close.text == ")"):
            return self._eval_math(expr.body)
        return self._eval_content(expr)

    def _eval(self, expr: Expr) -> Value:
        if isinstance(expr, Math):
            return self._eval_math(expr)
        if isinstance(expr, MathText):
            return TextElem(expr.text, span=expr.span)
        if isinstance(expr, MathIdent):
            return self._lookup(expr.name, expr.span)
        if isinstance(expr, MathShorthand):
            return TextElem(expr.symbol, span=expr.span)
        if isinstance(expr, MathAlignPoint):
            return AlignPointElem(span=expr.span)
        if isinstance(expr, Linebreak):
            return LinebreakElem(span=expr.span)
        if isinstance(expr, MathPrimes):
            return PrimesElem(expr.count, span=expr.span)
        if isinstance(expr, MathDelimited):
            return LrElem(
                TextElem(expr.open.text, span=expr.open.span),
                self._eval_math(expr.body),
                TextElem(expr.close.text, span=expr.close.span),
                span=expr.span,
            )
        if isinstance(expr, MathAttach):
            return self._eval_attach(expr)
        if isinstance(expr, MathFrac):
            return FracElem(
                self._eval_stripped(expr.num),
                self._eval_stripped(expr.denom),
                span=expr.span,
            )
        if isinstance(expr, MathRoot):
            index = None
            if expr.index is not None:
                index = TextElem(str(expr.index), span=expr.span)
            return RootElem(index, self._eval_stripped(expr.radicand), span=expr.span)

        # Code
        if isinstance(expr, Ident):
            return self._lookup(expr.name, expr.span)
        if isinstance(expr, (Int, Float, Str, Bool)):
            return expr.value
        if isinstance(expr, NoneLit):
            return None
        if isinstance(expr, AutoLit):
            return AUTO
        if isinstance(expr, Parenthesized):
            return self._eval(expr.expr)
        if isinstance(expr, Array):
            return self._eval_array(expr)
        if isinstance(expr, Dict):
            return self._eval_dict(expr)
        if isinstance(expr, ContentBlock):
            return self._eval_math(expr.body)
        if isinstance(expr, FuncCall):
            return self._eval_call(expr)
        if isinstance(expr, FieldAccess):
            return self._eval_field(expr)
        if isinstance(expr, Binary):
            return self._eval_binary(expr)
        if isinstance(expr, Unary):
            return self._eval_unary(expr)
        raise EvalError(f"cannot evaluate {type(expr).__name__}", expr.span)

    def _lookup(self, name: str, span: Span) -> Value:
        found, value = self.scope.lookup(name)
        if not found:
            raise EvalError(f"unknown variable: {name}", span, "E310")
        return value

    def _eval_attach(self, expr: MathAttach) -> Content:
        base = self._eval_content(expr.base)
        top = self._eval_stripped(expr.top) if expr.top is not None else None
        bottom = self._eval_stripped(expr.bottom) if expr.bottom is not None else None
        primes = None
        if expr.primes is not None:
            primes = PrimesElem(expr.primes.count, span=expr.primes.span)
        return AttachElem(base, top=top, bottom=bottom, primes=primes, span=expr.span)

    # ── Calls ────────────────────────────────────────────────────

    def _eval_call(self, expr: FuncCall) -> Value:
        callee = self._eval(expr.callee)
        if not isinstance(callee, Func):
            if isinstance(expr.callee, MathIdent):
                return self._eval_call_as_content(expr, callee)
            raise EvalError(f"expected function, found {type_name(callee)}", expr.callee.span, "E311")
        args = self._eval_args(expr.args, expr.span)
        return callee.impl(args)

    def _eval_call_as_content(self, expr: FuncCall, callee: Value) -> Content:
        """In math, ``name(args)`` with a non-function name is shown as is."""
        body: list[Content] = []
        for i, item in enumerate(expr.args.items):
            if i:
                body.append(TextElem(",", span=expr.args.span))
            if isinstance(item, Named):
                body.append(TextElem(item.name + ":", upright=True, span=item.span))
                item = item.expr
            elif isinstance(item, Spread):
                item = item.expr
            body.append(self._eval_content(item))
        delimited = LrElem(
            TextElem("(", span=expr.args.span),
            SequenceElem(tuple(body), span=expr.args.span),
            TextElem(")", span=expr.args.span),
            span=expr.args.span,
        )
        return SequenceElem((display(callee, expr.callee.span), delimited), span=expr.span)

    def _eval_args(self, node: ArgsNode, call_span: Span) -> Args:
        args = Args(call_span)
        for item in node.items:
            if isinstance(item, Named):
                args.named_args[item.name] = (self._eval(item.expr), item.span)
            elif isinstance(item, Spread):
                value = self._eval(item.expr)
                if isinstance(value, list):
                    args.positional.extend((v, item.span) for v in value)
                elif isinstance(value, dict):
                    args.named_args.update({k: (v, item.span) for k, v in value.items()})
                else:
                    raise EvalError(f"cannot spread {type_name(value)}", item.span)
            else:
                args.positional.append((self._eval(item), item.span))
        return args

    # ── Collections ──────────────────────────────────────────────

    def _eval_array(self, expr: Array) -> list:
        items: list = []
        for item in expr.items:
            if isinstance(item, Spread):
                value = self._eval(item.expr)
                if not isinstance(value, list):
                    raise EvalError(f"cannot spread {type_name(value)} into array", item.span)
                items.extend(value)
            else:
                items.append(self._eval(item))
        return items

    def _eval_dict(self, expr: Dict) -> dict:
        result: dict = {}
        for item in expr.items:
            if isinstance(item, Named):
                result[item.name] = self._eval(item.expr)
            elif isinstance(item, Keyed):
                key = self._eval(item.key)
                if not isinstance(key, str):
                    raise EvalError(f"expected string key, found {type_name(key)}", item.key.span)
                result[key] = self._eval(item.expr)
            else:
                value = self._eval(item.expr)
                if not isinstance(value, dict):
                    raise EvalError(f"cannot spread {type_name(value)} into dictionary", item.span)
                result.update(value)
        return result

    def _eval_field(self, expr: FieldAccess) -> Value:
        target = self._eval(expr.target)
        if isinstance(target, dict):
            if expr.field in target:
                return target[expr.field]
            raise EvalError(f"dictionary does not contain key {expr.field!r}", expr.span, "E315")
        raise EvalError(f"cannot access fields on type {type_name(target)}", expr.span, "E315")

    # ── Operators ────────────────────────────────────────────────

    def _eval_unary(self, expr: Unary) -> Value:
        value = self._eval(expr.expr)
        if expr.op == "not":
            if isinstance(value, bool):
                return not value
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            return -value if expr.op == "-" else value
        raise EvalError(f"cannot apply '{expr.op}' to {type_name(value)}", expr.span, "E313")

    def _eval_binary(self, expr: Binary) -> Value:
        op = expr.op
        lhs = self._eval(expr.lhs)

        if op in ("and", "or"):
            if not isinstance(lhs, bool):
                raise EvalError(f"cannot apply '{op}' to {type_name(lhs)}", expr.span, "E313")
            if op == "and" and not lhs:
                return False
            if op == "or" and lhs:
                return True
            rhs = self._eval(expr.rhs)
            if not isinstance(rhs, bool):
                raise EvalError(f"cannot apply '{op}' to {type_name(rhs)}", expr.span, "E313")
            return rhs

        rhs = self._eval(expr.rhs)
        if op == "==":
            return lhs == rhs
        if op == "!=":
            return lhs != rhs

        numeric = _is_number(lhs) and _is_number(rhs)
        if op in ("<", "<=", ">", ">=") and (numeric or (isinstance(lhs, str) and isinstance(rhs, str))):
            return {"<": lhs < rhs, "<=": lhs <= rhs, ">": lhs > rhs, ">=": lhs >= rhs}[op]

        if op == "+":
            if numeric or (isinstance(lhs, str) and isinstance(rhs, str)):
                return lhs + rhs
            if isinstance(lhs, list) and isinstance(rhs, list):
                return lhs + rhs
            if isinstance(lhs, Content) or isinstance(rhs, Content):
                return SequenceElem(
                    (display(lhs, expr.lhs.span), display(rhs, expr.rhs.span)),
                    span=expr.span,
                )
        if op == "-" and numeric:
            return lhs - rhs
        if op == "*":
            if numeric:
                return lhs * rhs
            if isinstance(lhs, (str, list)) and _is_int(rhs):
                return lhs * rhs
        if op == "/" and numeric:
            if rhs == 0:
                raise EvalError("cannot divide by zero", expr.span, "E314")
            result = lhs / rhs
            if isinstance(lhs, int) and isinstance(rhs, int) and result == int(result):
                return int(result)
            return result

        raise EvalError(
            f"cannot apply '{op}' to {type_name(lhs)} and {type_name(rhs)}",
            expr.span, "E313",
        )


def _is_number(value: Value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value: Value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)

"""Typst math to SVG with subexpression geometry."""

__version__ = "0.1.0"

from mathspan.compiler import (  # noqa: E402
    ErrorKind,
    MathCompileError,
    MathResult,
    compile_math,
    compile_math_with_subexpressions,
)

__all__ = [
    "ErrorKind",
    "MathCompileError",
    "MathResult",
    "__version__",
    "compile_math",
    "compile_math_with_subexpressions",
]

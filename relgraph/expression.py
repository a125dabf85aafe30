"""Parsing and numeric compilation of relation expressions.

The widget notation is close to what a calculator accepts: implicit
multiplication (``2x``, ``xy``, ``3(x+1)``), ``^`` for powers, the constants
``e``, ``pi`` and ``i``, ``ln`` and ``log`` for the natural logarithm and a
fixed table of named functions. :func:`parse_math` turns such text into a
SymPy expression and :func:`compile_expression` turns that into a vectorised
callable built on :mod:`relgraph.numpify`.

Evaluation never raises for bad inputs: exceptions, complex values and
non-finite results all come back as ``nan`` so that a curve shows a gap
instead of aborting the plot.
"""

from __future__ import annotations

import logging
import string
from typing import Any, Dict, Iterable, Mapping, Tuple, Union

import numpy as np
import sympy as sp
from sympy.parsing.sympy_parser import (
    convert_xor,
    implicit_multiplication_application,
    parse_expr,
    standard_transformations,
)

from .numpify import NumpifiedFunction, numpify_cached

__all__ = [
    "RelationParseError",
    "KNOWN_CONSTANTS",
    "KNOWN_FUNCTIONS",
    "parse_math",
    "free_variable_names",
    "compile_expression",
    "CompiledExpression",
]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class RelationParseError(ValueError):
    """Raised when a piece of relation text is not a valid expression."""

    def __init__(self, text: str, reason: str = "") -> None:
        self.text = text
        message = f"Cannot parse {text!r} as an expression"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


KNOWN_CONSTANTS = frozenset({"e", "pi", "i"})

KNOWN_FUNCTIONS = frozenset(
    {
        "abs", "cbrt", "ceil", "cube", "exp", "expm1", "fix", "floor", "gcd",
        "lcm", "ln", "log", "log10", "log1p", "log2", "norm", "nthroot", "pow",
        "round", "sign", "sqrt", "square", "factorial", "gamma",
        "combinations", "permutations", "cumsum", "mad", "max", "mean",
        "median", "min", "mode", "prod", "std", "sum", "variance", "acos",
        "acosh", "acot", "acoth", "acsc", "acsch", "asec", "asech", "asin",
        "asinh", "atan", "atan2", "atanh", "cos", "cosh", "cot", "coth", "csc",
        "csch", "sec", "sech", "sin", "sinh", "tan", "tanh",
    }
)

_TRANSFORMATIONS = standard_transformations + (implicit_multiplication_application, convert_xor)

_u = sp.Symbol("_u")
_v = sp.Symbol("_v")


def _nthroot(x: Any, n: Any) -> Any:
    x = np.asarray(x, dtype=float)
    n = np.asarray(n, dtype=float)
    root = np.sign(x) * np.abs(x) ** (1.0 / n)
    return np.where((x < 0) & (np.mod(n, 2) == 0), np.nan, root)


def _integer_op(op: Any) -> Any:
    def apply(a: Any, b: Any) -> Any:
        a = np.asarray(a, dtype=float)
        b = np.asarray(b, dtype=float)
        ok = (a == np.round(a)) & (b == np.round(b))
        out = op(np.where(ok, a, 0).astype(np.int64), np.where(ok, b, 0).astype(np.int64))
        return np.where(ok, out, np.nan)

    return apply


def _reduce(op: Any, **kwargs: Any) -> Any:
    def apply(*values: Any) -> Any:
        return op(np.broadcast_arrays(*[np.asarray(v, dtype=float) for v in values]), axis=0, **kwargs)

    return apply


# Names whose NumPy implementation is supplied at compile time.
_BOUND_FUNCTIONS: Dict[str, Any] = {
    "cbrt": np.cbrt,
    "fix": np.fix,
    "round": lambda x: np.floor(np.asarray(x, dtype=float) + 0.5),
    "nthroot": _nthroot,
    "gcd": _integer_op(np.gcd),
    "lcm": _integer_op(np.lcm),
    "mean": _reduce(np.mean),
    "median": _reduce(np.median),
    "std": _reduce(np.std, ddof=1),
    "variance": _reduce(np.var, ddof=1),
    "sum": _reduce(np.sum),
    "prod": _reduce(np.prod),
}

_UNDEFINED = {name: sp.Function(name) for name in _BOUND_FUNCTIONS}

F_NUMPY: Mapping[Any, Any] = {_UNDEFINED[name]: impl for name, impl in _BOUND_FUNCTIONS.items()}

_FUNCTION_NAMES: Dict[str, Any] = {
    "abs": sp.Abs,
    "norm": sp.Abs,
    "ceil": sp.ceiling,
    "floor": sp.floor,
    "sign": sp.sign,
    "exp": sp.exp,
    "expm1": sp.Lambda(_u, sp.exp(_u) - 1),
    "ln": sp.log,
    "log": sp.log,
    "log10": sp.Lambda(_u, sp.log(_u) / sp.log(10)),
    "log2": sp.Lambda(_u, sp.log(_u) / sp.log(2)),
    "log1p": sp.Lambda(_u, sp.log(1 + _u)),
    "sqrt": sp.sqrt,
    "square": sp.Lambda(_u, _u**2),
    "cube": sp.Lambda(_u, _u**3),
    "pow": sp.Lambda((_u, _v), _u**_v),
    "factorial": sp.factorial,
    "gamma": sp.gamma,
    "combinations": sp.Lambda((_u, _v), sp.factorial(_u) / (sp.factorial(_v) * sp.factorial(_u - _v))),
    "permutations": sp.Lambda((_u, _v), sp.factorial(_u) / sp.factorial(_u - _v)),
    "max": sp.Max,
    "min": sp.Min,
    "sin": sp.sin,
    "cos": sp.cos,
    "tan": sp.tan,
    "sec": sp.Lambda(_u, 1 / sp.cos(_u)),
    "csc": sp.Lambda(_u, 1 / sp.sin(_u)),
    "cot": sp.Lambda(_u, 1 / sp.tan(_u)),
    "asin": sp.asin,
    "acos": sp.acos,
    "atan": sp.atan,
    "atan2": sp.atan2,
    "asec": sp.Lambda(_u, sp.acos(1 / _u)),
    "acsc": sp.Lambda(_u, sp.asin(1 / _u)),
    "acot": sp.Lambda(_u, sp.atan(1 / _u)),
    "sinh": sp.sinh,
    "cosh": sp.cosh,
    "tanh": sp.tanh,
    "sech": sp.Lambda(_u, 1 / sp.cosh(_u)),
    "csch": sp.Lambda(_u, 1 / sp.sinh(_u)),
    "coth": sp.Lambda(_u, 1 / sp.tanh(_u)),
    "asinh": sp.asinh,
    "acosh": sp.acosh,
    "atanh": sp.atanh,
    "asech": sp.Lambda(_u, sp.acosh(1 / _u)),
    "acsch": sp.Lambda(_u, sp.asinh(1 / _u)),
    "acoth": sp.Lambda(_u, sp.atanh(1 / _u)),
    **_UNDEFINED,
}

# Single letters are plain symbols so that ``x(x+1)`` multiplies and ``xy``
# splits into ``x*y``.
_LETTERS: Dict[str, Any] = {
    ch: sp.Symbol(ch) for ch in string.ascii_lowercase if ch not in KNOWN_CONSTANTS
}

_LOCAL_NAMES: Dict[str, Any] = {
    **_LETTERS,
    **_FUNCTION_NAMES,
    "e": sp.E,
    "pi": sp.pi,
    "i": sp.I,
}

_GLOBAL_NAMES: Dict[str, Any] = {
    "Integer": sp.Integer,
    "Float": sp.Float,
    "Rational": sp.Rational,
    "Symbol": sp.Symbol,
    "Function": sp.Function,
}


def parse_math(text: str) -> sp.Expr:
    """Parse widget notation into a SymPy expression.

    Raises
    ------
    RelationParseError
        If ``text`` is empty, is not valid notation, or does not denote a
        scalar expression (equations, tuples and comparisons are rejected).
    """
    if not isinstance(text, str):
        raise TypeError(f"parse_math expects a string, got {type(text)}")
    source = text.strip()
    if not source:
        raise RelationParseError(text, "empty expression")
    try:
        expr = parse_expr(
            source,
            local_dict=dict(_LOCAL_NAMES),
            global_dict=dict(_GLOBAL_NAMES),
            transformations=_TRANSFORMATIONS,
        )
    except Exception as exc:
        raise RelationParseError(text, str(exc) or type(exc).__name__) from exc
    if not isinstance(expr, sp.Expr):
        raise RelationParseError(text, f"not a scalar expression ({type(expr).__name__})")
    return expr


def free_variable_names(expr: sp.Basic) -> Tuple[str, ...]:
    """Return the sorted names of free symbols in ``expr``."""
    return tuple(sorted(sym.name for sym in expr.free_symbols))


class CompiledExpression:
    """A relation expression compiled for fast numeric evaluation.

    Calls accept positional arguments in ``variables`` order or keyword
    bindings by name; scalars give a ``float`` and arrays give a float
    ``ndarray`` of the broadcast shape.

    Examples
    --------
    >>> f = compile_expression("2x+5", ("x",))
    >>> f(1.0)
    7.0
    >>> f(x=np.array([0.0, 1.0])).tolist()
    [5.0, 7.0]
    """

    __slots__ = ("expr", "variables", "_fn")

    def __init__(self, expr: sp.Expr, variables: Tuple[str, ...], fn: NumpifiedFunction) -> None:
        self.expr = expr
        self.variables = variables
        self._fn = fn

    def __repr__(self) -> str:
        return f"CompiledExpression({self.expr!r}, variables={self.variables!r})"

    def _bind(self, args: Tuple[Any, ...], bindings: Mapping[str, Any]) -> list[Any]:
        if args and bindings:
            raise TypeError("Pass values either positionally or by name, not both")
        if args:
            if len(args) != len(self.variables):
                raise TypeError(
                    f"Expected {len(self.variables)} value(s) for {self.variables}, got {len(args)}"
                )
            return list(args)
        missing = [name for name in self.variables if name not in bindings]
        if missing:
            raise TypeError(f"Missing value(s) for: {', '.join(missing)}")
        return [bindings[name] for name in self.variables]

    def __call__(self, *args: Any, **bindings: Any) -> Any:
        values = [np.asarray(v, dtype=float) for v in self._bind(args, bindings)]
        shape = np.broadcast_shapes(*(v.shape for v in values)) if values else ()
        with np.errstate(all="ignore"):
            try:
                out = _as_real(self._fn(*values), shape)
            except Exception as exc:
                logger.debug("vectorised evaluation of %s failed (%s); evaluating pointwise", self.expr, exc)
                out = self._pointwise(values, shape)
        if out.shape == ():
            return float(out)
        return out

    def _pointwise(self, values: list[np.ndarray], shape: Tuple[int, ...]) -> np.ndarray:
        out = np.full(shape, np.nan)
        broadcast = np.broadcast_arrays(*values) if values else []
        for idx in np.ndindex(*shape):
            try:
                out[idx] = _as_real(self._fn(*[b[idx] for b in broadcast]), ())
            except Exception:
                out[idx] = np.nan
        return out


def _as_real(raw: Any, shape: Tuple[int, ...]) -> np.ndarray:
    """Coerce an evaluation result to a real float array of ``shape``."""
    arr = np.asarray(raw)
    if arr.dtype == object:
        arr = arr.astype(complex)
    if np.iscomplexobj(arr):
        arr = np.where(arr.imag == 0, arr.real, np.nan)
    arr = arr.astype(float)
    arr = np.where(np.isfinite(arr), arr, np.nan)
    return np.broadcast_to(arr, shape).copy()


def compile_expression(
    source: Union[str, sp.Expr],
    variables: Iterable[str] = ("x",),
) -> CompiledExpression:
    """Compile relation text (or a parsed expression) for numeric evaluation.

    Parameters
    ----------
    source : str or sympy.Expr
        Expression text in widget notation, or an already parsed expression.
    variables : iterable of str
        Names bound at call time, in positional order.

    Returns
    -------
    CompiledExpression

    Raises
    ------
    RelationParseError
        If ``source`` is text that does not parse.
    ValueError
        If the expression uses symbols outside ``variables`` or a function
        with no numeric implementation.
    """
    expr = parse_math(source) if isinstance(source, str) else source
    names = tuple(variables)
    symbols = tuple(sp.Symbol(name) for name in names)
    fn = numpify_cached(expr, vars=symbols, f_numpy=F_NUMPY)
    return CompiledExpression(expr, names, fn)

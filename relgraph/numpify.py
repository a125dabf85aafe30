"""
numpify: compile relation expressions into NumPy callables
==========================================================

The plotter samples every pixel column on each redraw and the contour tracer
evaluates a whole corner grid at once, so a parsed relation is compiled once
into a small generated Python function that works on arrays.

Generated functions take positional arguments named ``_a0``, ``_a1``, ... in
the order of ``vars``, so any SymPy symbol name (``lambda``, ``x_1``) is safe.

Functions that SymPy's NumPy printer leaves as bare calls (``gamma``,
``factorial`` and the undefined helpers such as ``nthroot``) must be bound to
a callable, through ``f_numpy`` or :data:`FALLBACK_IMPLEMENTATIONS`. An
unbound one is reported before any code is generated.

Logging
-------
Silent by default. Enable with::

    import logging
    logging.getLogger("relgraph.numpify").setLevel(logging.DEBUG)
"""

from __future__ import annotations

from functools import lru_cache
import logging
import math
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple, Union

import numpy as np
import sympy as sp
from sympy.core.function import FunctionClass
from sympy.printing.numpy import NumPyPrinter


__all__ = [
    "numpify",
    "numpify_cached",
    "NumpifiedFunction",
    "FALLBACK_IMPLEMENTATIONS",
]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


_Vars = Optional[Union[sp.Symbol, Iterable[sp.Symbol]]]
_Bindings = Tuple[Tuple[str, Callable[..., Any]], ...]

_CACHE_SIZE = 256


def _gamma(x: Any) -> Any:
    return np.vectorize(math.gamma, otypes=[float])(x)


def _factorial(x: Any) -> Any:
    return np.vectorize(lambda v: math.gamma(v + 1.0), otypes=[float])(x)


FALLBACK_IMPLEMENTATIONS: Mapping[str, Callable[..., Any]] = {
    "gamma": _gamma,
    "factorial": _factorial,
}


class NumpifiedFunction:
    """A generated NumPy function together with the expression it computes."""

    __slots__ = ("_fn", "expr", "vars", "source")

    def __init__(
        self,
        fn: Callable[..., Any],
        expr: sp.Basic,
        vars: Tuple[sp.Symbol, ...],
        source: str,
    ) -> None:
        self._fn = fn
        self.expr = expr
        self.vars = vars
        self.source = source

    def __call__(self, *values: Any) -> Any:
        if len(values) != len(self.vars):
            raise TypeError(
                f"Expected {len(self.vars)} argument(s) ({', '.join(self.var_names)}), got {len(values)}"
            )
        return self._fn(*values)

    @property
    def var_names(self) -> Tuple[str, ...]:
        return tuple(sym.name for sym in self.vars)

    def __repr__(self) -> str:
        return f"NumpifiedFunction({self.expr!r}, vars=({', '.join(self.var_names)}))"


def numpify(
    expr: Any,
    *,
    vars: _Vars = None,
    f_numpy: Optional[Mapping[Any, Callable[..., Any]]] = None,
    cache: bool = True,
) -> NumpifiedFunction:
    """Compile a SymPy expression into a NumPy-evaluable function.

    Parameters
    ----------
    expr : sympy.Basic or str
        The expression. Anything :func:`sympy.sympify` accepts is allowed.
    vars : Symbol or iterable of Symbol, optional
        Positional arguments of the compiled function. ``None`` means every
        free symbol, in ``sympy.default_sort_key`` order.
    f_numpy : mapping, optional
        SymPy function classes (or applied functions) mapped to NumPy
        implementations.
    cache : bool
        Reuse a previous compile of the same inputs. ``False`` always builds a
        new function.

    Raises
    ------
    TypeError
        If ``expr`` or ``vars`` is not SymPy-compatible.
    ValueError
        If ``expr`` has free symbols outside ``vars`` or calls a function with
        no NumPy implementation.
    """
    expr, vars_tuple, bindings = _prepare(expr, vars, f_numpy)
    if cache:
        return _compile_cached(expr, vars_tuple, bindings)
    return _compile(expr, vars_tuple, bindings)


def numpify_cached(
    expr: Any,
    *,
    vars: _Vars = None,
    f_numpy: Optional[Mapping[Any, Callable[..., Any]]] = None,
) -> NumpifiedFunction:
    """Cached :func:`numpify`.

    Re-plotting on every pan or zoom compiles the same relation strings again,
    so compiles are kept in an LRU cache keyed on the expression, ``vars`` and
    the function bindings. ``numpify_cached.cache_info()`` and
    ``numpify_cached.cache_clear()`` expose the cache.
    """
    return numpify(expr, vars=vars, f_numpy=f_numpy, cache=True)


def _prepare(
    expr: Any, vars: _Vars, f_numpy: Optional[Mapping[Any, Callable[..., Any]]]
) -> Tuple[sp.Basic, Tuple[sp.Symbol, ...], _Bindings]:
    try:
        expr = sp.sympify(expr)
    except (sp.SympifyError, TypeError) as exc:
        raise TypeError(f"numpify expects a SymPy-compatible expression, got {type(expr)}") from exc
    if not isinstance(expr, sp.Basic):
        raise TypeError(f"numpify expects a SymPy expression, got {type(expr)}")

    if vars is None:
        vars_tuple = tuple(sorted(expr.free_symbols, key=sp.default_sort_key))
    elif isinstance(vars, sp.Symbol):
        vars_tuple = (vars,)
    else:
        vars_tuple = tuple(vars)
        if not all(isinstance(v, sp.Symbol) for v in vars_tuple):
            raise TypeError("vars must be a SymPy Symbol or an iterable of SymPy Symbols")

    unbound = {s.name for s in expr.free_symbols} - {v.name for v in vars_tuple}
    if unbound:
        raise ValueError(
            f"Expression contains unbound symbols: {', '.join(sorted(unbound))}. "
            f"Expected only ({', '.join(v.name for v in vars_tuple)})."
        )

    bound: Dict[str, Callable[..., Any]] = {}
    for key, impl in (f_numpy or {}).items():
        if isinstance(key, sp.Function):
            key = key.func
        if not isinstance(key, FunctionClass):
            raise TypeError(f"f_numpy keys must be SymPy function classes, got {type(key)}")
        if not callable(impl):
            raise TypeError(f"Implementation for {key.__name__} must be callable, got {type(impl)}")
        bound[key.__name__] = impl
    for app in expr.atoms(sp.Function):
        name = app.func.__name__
        if name not in bound and name in FALLBACK_IMPLEMENTATIONS:
            bound[name] = FALLBACK_IMPLEMENTATIONS[name]

    return expr, vars_tuple, tuple(sorted(bound.items(), key=lambda item: item[0]))


def _needs_binding(printer: NumPyPrinter, app: sp.Function) -> bool:
    """True when ``app`` has no NumPy spelling and prints as a bare call."""
    try:
        code = printer.doprint(app).strip()
    except Exception:
        # strict printers raise PrintMethodNotImplementedError instead
        return True
    return code.startswith(f"{app.func.__name__}(")


def _compile(expr: sp.Basic, vars_tuple: Tuple[sp.Symbol, ...], bindings: _Bindings) -> NumpifiedFunction:
    impls = dict(bindings)
    # bound names print as bare calls that resolve in the generated namespace
    printer = NumPyPrinter(
        settings={"user_functions": {name: name for name in impls}, "allow_unknown_functions": True}
    )

    unprintable = sorted(
        {
            app.func.__name__
            for app in expr.atoms(sp.Function)
            if app.func.__name__ not in impls and _needs_binding(printer, app)
        }
    )
    if unprintable:
        raise ValueError(
            f"Expression contains function(s) without a NumPy implementation: {', '.join(unprintable)}"
        )

    args = [f"_a{i}" for i in range(len(vars_tuple))]
    body = printer.doprint(expr.xreplace({v: sp.Symbol(a) for v, a in zip(vars_tuple, args)}))

    lines = [f"def _generated({', '.join(args)}):"]
    lines += [f"    {a} = numpy.asarray({a})" for a in args]
    if args and not expr.free_symbols:
        # constants still follow the shape of the sample grid
        lines.append(f"    return ({body}) + numpy.zeros(numpy.broadcast({', '.join(args)}).shape)")
    else:
        lines.append(f"    return {body}")
    source = "\n".join(lines)

    namespace: Dict[str, Any] = {"numpy": np, **impls}
    exec(source, namespace)
    logger.debug("numpify: compiled %s over %s", expr, [v.name for v in vars_tuple])
    return NumpifiedFunction(namespace["_generated"], expr, vars_tuple, source)


_compile_cached = lru_cache(maxsize=_CACHE_SIZE)(_compile)

numpify_cached.cache_info = _compile_cached.cache_info  # type: ignore[attr-defined]
numpify_cached.cache_clear = _compile_cached.cache_clear  # type: ignore[attr-defined]

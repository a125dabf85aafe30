"""Point evaluation of notation strings and piecewise relations."""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping, Optional

import numpy as np

from .expression import compile_expression

__all__ = ["evalstr", "evaluate"]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def evalstr(text: str, scope: Optional[Mapping[str, Any]] = None) -> float:
    """Evaluate ``text`` to a real number, or NaN if that is not possible.

    Parameters
    ----------
    text : str
        Expression in widget notation, e.g. ``"pi/2"`` or ``"2a^2-b"``.
    scope : mapping, optional
        Values for names used in ``text``.

    Examples
    --------
    >>> evalstr("2^3")
    8.0
    >>> math.isnan(evalstr("sqrt(-1)"))
    True
    """
    bindings = dict(scope or {})
    try:
        value = compile_expression(text, tuple(bindings))(**bindings)
    except (ValueError, TypeError) as exc:
        logger.debug("evalstr(%r) failed: %s", text, exc)
        return math.nan
    if np.ndim(value) != 0:
        return math.nan
    return float(value)


def evaluate(relation: str, x: Optional[float] = None, variable: str = "x") -> float:
    """Evaluate a possibly piecewise relation at ``x``.

    Point and hole segments contribute no value; a hole at ``x`` makes the
    result NaN. The first segment whose restriction contains ``x`` is used, and
    NaN is returned when no segment applies. Without ``x`` the relation is
    evaluated as a constant expression.

    Examples
    --------
    >>> evaluate("{ 2x (-oo,4); x^2-1 [4, 5] }", 4)
    15.0
    >>> math.isnan(evaluate("1/(x+1)^2; x != -1", -1))
    True
    """
    from .functions import remove_function_name
    from .interval import is_asymptote, is_point, parse_restriction, split_pieces

    text = relation.lower()
    if x is None:
        return evalstr(text)

    pieces = []
    for piece in split_pieces(text):
        if is_point(piece):
            continue
        expression, interval = parse_restriction(piece)
        if is_asymptote(piece) or (interval.hole is not None and not expression):
            if interval.hole == x:
                return math.nan
            continue
        if interval.hole == x:
            return math.nan
        pieces.append((expression, interval))

    for expression, interval in pieces:
        if interval.contains(x):
            try:
                fn = compile_expression(remove_function_name(expression), (variable,))
            except (ValueError, TypeError) as exc:
                logger.debug("evaluate: cannot compile %r: %s", expression, exc)
                return math.nan
            return float(fn(x))
    return math.nan

"""Elementary numeric helpers shared by the parser, plotter and tracer.

Everything here is a pure function or an immutable constant. The signed
infinity sentinels are the values used throughout ``relgraph`` to represent
unbounded interval endpoints.
"""

from __future__ import annotations

import math
from typing import Any, Sequence

__all__ = [
    "PI",
    "E",
    "LN2",
    "LN10",
    "PHI",
    "PREC",
    "POSITIVE_INFINITY",
    "NEGATIVE_INFINITY",
    "round_to",
    "frac",
    "scalemap",
    "sgn",
    "odd",
    "even",
    "ln",
    "log",
    "sqr",
    "cbrt",
    "quadrant",
    "is_infinite",
]

PI = math.pi
E = math.e
LN2 = math.log(2.0)
LN10 = math.log(10.0)
PHI = (1.0 + math.sqrt(5.0)) / 2.0
PREC = 1e-16

POSITIVE_INFINITY = math.inf
NEGATIVE_INFINITY = -math.inf


def round_to(x: float, digits: int = 0) -> float:
    """Round ``x`` to ``digits`` decimals, halves rounding up.

    This mirrors the half-up convention used by the graphing widget
    (``round_to(2.5) == 3.0`` and ``round_to(-2.5) == -2.0``) rather than
    Python's banker's rounding.
    """
    scale = 10.0 ** digits
    return math.floor(x * scale + 0.5) / scale


def frac(x: float) -> float:
    """Return the fractional part of ``|x|``."""
    x = abs(x)
    return x - math.floor(x)


def scalemap(x: Any, domain: Sequence[float], range: Sequence[float]) -> Any:
    """Map ``x`` linearly from ``domain`` onto ``range``.

    Parameters
    ----------
    x : float or numpy.ndarray
        Value(s) to map. Arrays are mapped element-wise.
    domain : sequence of two floats
        Input interval ``(d0, d1)``. ``d0`` maps to ``range[0]``.
    range : sequence of two floats
        Output interval. It may be reversed (``(10, 0)``), which is how pixel
        rows map onto a y-axis that grows upwards.

    Returns
    -------
    float or numpy.ndarray
        Mapped value(s). Values outside ``domain`` extrapolate linearly.

    Examples
    --------
    >>> scalemap(15, (6, 25), (42, 93))  # doctest: +ELLIPSIS
    66.157...
    >>> scalemap(2, (0, 10), (10, 0))
    8.0
    """
    return (x - domain[0]) / (domain[1] - domain[0]) * (range[1] - range[0]) + range[0]


def sgn(a: float) -> float:
    """Return ``a / |a|``; NaN for zero and NaN inputs."""
    if a == 0 or math.isnan(a):
        return math.nan
    return math.copysign(1.0, a)


def odd(x: int) -> bool:
    return x % 2 == 1


def even(x: int) -> bool:
    return x % 2 == 0


def ln(x: float) -> float:
    return math.log(x)


def log(x: float) -> float:
    """Base-10 logarithm."""
    return math.log(x) / LN10


def sqr(x: float) -> float:
    return x * x


def cbrt(x: float) -> float:
    """Real cube root, defined for negative inputs as well."""
    return math.copysign(abs(x) ** (1.0 / 3.0), x)


def quadrant(x: float, y: float) -> int:
    """Return the quadrant (1-4) of ``(x, y)``; axis points fall to 2, 3 or 4."""
    if x > 0:
        return 1 if y > 0 else 4
    return 2 if y > 0 else 3


def is_infinite(value: float) -> bool:
    """Return True for either infinity sentinel."""
    return value == POSITIVE_INFINITY or value == NEGATIVE_INFINITY

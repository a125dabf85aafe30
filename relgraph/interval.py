"""Interval and domain-restriction notation.

A relation may end with a restriction on its independent variable::

    y = 2x+5 (-2, 5]          # interval literal
    y = x^2 on [0, oo)        # optionally introduced by "on"
    y = 1/x x != 0            # a hole
    <2t, -8t-1> (-4, 3]       # parametric, restricted in t

Interval sides are sub-expressions (``f(a)``, ``2a^2-b``, ``pi/2``), and a side
mentioning ``inf`` or ``oo`` is the infinity matching its position. A trailing
restriction must follow whitespace, ``>``, ``;`` or the keyword ``on`` (or
start the text), so function calls such as ``atan2(1, x)`` are never read as
intervals.

Point convention
----------------
``(a, b)`` on its own is a solid point and ``[a, b]`` a hollow point. Both
brackets must be of the same kind and neither side may be infinite.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
import re
from typing import Any, List, Optional, Tuple

import numpy as np

from .dmath import NEGATIVE_INFINITY, POSITIVE_INFINITY, is_infinite
from .evaluation import evalstr

__all__ = [
    "Interval",
    "split_pieces",
    "get_interval",
    "remove_interval",
    "splice_interval",
    "parse_restriction",
    "get_lower_endpoint",
    "get_upper_endpoint",
    "get_endpoints",
    "get_hole_value",
    "is_interval",
    "is_point",
    "is_closed_point",
    "is_open_point",
    "is_asymptote",
    "lower_bound_open",
    "lower_bound_closed",
    "upper_bound_open",
    "upper_bound_closed",
    "is_between",
    "finite_or_none",
]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


# One level of nested parentheses is allowed inside a side: "(f(a), 2)".
_SIDE = r"(?:[^,()\[\]]|\([^()]*\))+"
_INTERVAL_BODY = rf"[(\[]\s*{_SIDE}\s*,\s*{_SIDE}\s*[)\]]"
_HOLE_BODY = r"[a-z]\s*!=\s*[^;=<>!]+?"
_LEAD = r"(?:^|(?<=[\s>;])|(?<=on))"

INTERVAL_PATTERN = re.compile(
    rf"^(?P<open>[(\[])\s*(?P<lower>(?:{_SIDE})?)\s*,\s*(?P<upper>(?:{_SIDE})?)\s*(?P<close>[)\]])$"
)
HOLE_PATTERN = re.compile(r"^(?P<variable>[a-z])\s*!=\s*(?P<value>[^;=<>!]+?)$", re.IGNORECASE)
RESTRICTION_PATTERN = re.compile(
    rf"{_LEAD}(?P<restriction>{_INTERVAL_BODY}|{_HOLE_BODY})\s*$", re.IGNORECASE
)
# Written without a lead-in ("y=2x+5(-2,5]"); only literals that cannot be call arguments.
BARE_INTERVAL_PATTERN = re.compile(rf"(?P<restriction>{_INTERVAL_BODY})\s*$", re.IGNORECASE)
_ON_SUFFIX = re.compile(r"\s*on$", re.IGNORECASE)
_INFINITY_WORDS = ("inf", "oo")

_CLOSING = {"(": ")", "[": "]", "{": "}", "<": ">"}


@dataclass(frozen=True)
class Interval:
    """A restriction of the independent variable.

    Bounds may be the infinity sentinels; each side is open or closed on its
    own, and an optional single ``hole`` is excluded. An inverted interval
    (``lower > upper``) is empty rather than an error.
    """

    lower: float = NEGATIVE_INFINITY
    upper: float = POSITIVE_INFINITY
    lower_closed: bool = False
    upper_closed: bool = False
    hole: Optional[float] = None

    @classmethod
    def universal(cls) -> "Interval":
        return cls()

    @classmethod
    def from_restriction(cls, restriction: str) -> "Interval":
        """Build an interval from restriction text (interval literal or hole)."""
        text = restriction.strip()
        if not text:
            return cls()
        if is_asymptote(text):
            return cls(hole=get_hole_value(text))
        lower, upper = get_endpoints(text)
        interval = cls(
            lower=lower,
            upper=upper,
            lower_closed=lower_bound_closed(text),
            upper_closed=upper_bound_closed(text),
        )
        if lower > upper:
            logger.debug("Interval %r is inverted and therefore empty", text)
        return interval

    @property
    def is_empty(self) -> bool:
        if np.isnan(self.lower) or np.isnan(self.upper):
            return True
        if self.lower > self.upper:
            return True
        if self.lower == self.upper:
            return not (self.lower_closed and self.upper_closed) or self.hole == self.lower
        return False

    @property
    def is_universal(self) -> bool:
        return self.lower == NEGATIVE_INFINITY and self.upper == POSITIVE_INFINITY and self.hole is None

    def contains(self, x: Any) -> Any:
        """Return whether ``x`` lies in the interval; element-wise for arrays."""
        values = np.asarray(x, dtype=float)
        with np.errstate(invalid="ignore"):
            above = values >= self.lower if self.lower_closed else values > self.lower
            below = values <= self.upper if self.upper_closed else values < self.upper
            inside = above & below
            if self.hole is not None:
                inside = inside & (values != self.hole)
        if inside.ndim == 0:
            return bool(inside)
        return inside

    def clamp(self, lo: float, hi: float) -> Tuple[float, float]:
        """Replace infinite bounds by the viewport ``[lo, hi]``."""
        start = lo if self.lower == NEGATIVE_INFINITY else self.lower
        end = hi if self.upper == POSITIVE_INFINITY else self.upper
        return start, end

    def with_hole(self, hole: Optional[float]) -> "Interval":
        return replace(self, hole=hole)

    def __str__(self) -> str:
        if self.is_universal:
            return ""
        if self.lower == NEGATIVE_INFINITY and self.upper == POSITIVE_INFINITY:
            return f"x != {_format(self.hole)}"
        text = (
            ("[" if self.lower_closed else "(")
            + f"{_format(self.lower)}, {_format(self.upper)}"
            + ("]" if self.upper_closed else ")")
        )
        if self.hole is not None:
            text += f" x != {_format(self.hole)}"
        return text


def _format(value: Optional[float]) -> str:
    if value is None:
        return ""
    if value == POSITIVE_INFINITY:
        return "oo"
    if value == NEGATIVE_INFINITY:
        return "-oo"
    return f"{value:g}"


def split_pieces(relation: str) -> List[str]:
    """Split a piecewise relation into its segments.

    Outer curly braces are removed and the text is split on ``;`` at bracket
    depth zero. Empty segments are dropped.

    >>> split_pieces("{ 2x (-oo,4); x^2-1 [4, 5] }")
    ['2x (-oo,4)', 'x^2-1 [4, 5]']
    """
    text = relation.strip()
    if text.startswith("{") and text.endswith("}"):
        text = text[1:-1]
    pieces: List[str] = []
    depth = 0
    start = 0
    for i, ch in enumerate(text):
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth = max(depth - 1, 0)
        elif ch == ";" and depth == 0:
            pieces.append(text[start:i])
            start = i + 1
    pieces.append(text[start:])
    return [p.strip() for p in pieces if p.strip()]


def _restriction_match(relation: str) -> Optional[re.Match]:
    match = RESTRICTION_PATTERN.search(relation)
    if match:
        return match
    bare = BARE_INTERVAL_PATTERN.search(relation)
    if bare is None:
        return None
    body = bare.group("restriction")
    # "(a,b)" glued to a name is a call such as atan2(1,x)
    if body.startswith("[") or body.endswith("]") or any(word in body.lower() for word in _INFINITY_WORDS):
        return bare
    return None


def get_interval(relation: str) -> str:
    """Return the trailing restriction of ``relation``, or ``''``."""
    match = _restriction_match(relation)
    return match.group("restriction").strip() if match else ""


def remove_interval(relation: str) -> str:
    """Return ``relation`` without its trailing restriction (and "on" keyword).

    A relation with no restriction is returned unchanged.
    """
    match = _restriction_match(relation)
    if not match:
        return relation
    head = relation[: match.start("restriction")].rstrip()
    return _ON_SUFFIX.sub("", head).rstrip()


def splice_interval(relation: str) -> Tuple[str, str]:
    """Split ``relation`` into ``(expression, restriction)``.

    >>> splice_interval("y=2x+5 (-2,5]")
    ('y=2x+5', '(-2,5]')
    """
    return remove_interval(relation), get_interval(relation)


def parse_restriction(relation: str) -> Tuple[str, Interval]:
    """Split ``relation`` into its expression and parsed :class:`Interval`."""
    expression, restriction = splice_interval(relation)
    return expression, Interval.from_restriction(restriction)


def _compact(text: str) -> str:
    return re.sub(r"\s+", "", text)


def _endpoint(side: str, infinity: float) -> float:
    if any(word in side for word in _INFINITY_WORDS):
        return infinity
    return evalstr(side)


def get_endpoints(interval: str) -> Tuple[float, float]:
    """Return ``(lower, upper)`` of an interval literal.

    Empty text (no restriction) is the universal interval. Sides that do not
    evaluate come back as NaN.
    """
    match = INTERVAL_PATTERN.match(_compact(interval))
    if not match:
        return NEGATIVE_INFINITY, POSITIVE_INFINITY
    return (
        _endpoint(match.group("lower"), NEGATIVE_INFINITY),
        _endpoint(match.group("upper"), POSITIVE_INFINITY),
    )


def get_lower_endpoint(interval: str) -> float:
    return get_endpoints(interval)[0]


def get_upper_endpoint(interval: str) -> float:
    return get_endpoints(interval)[1]


def get_hole_value(restriction: str) -> float:
    """Return the excluded value of ``x != c``; NaN if not a hole."""
    match = HOLE_PATTERN.match(restriction.strip())
    if not match:
        return float("nan")
    return evalstr(match.group("value"))


def is_interval(text: str) -> bool:
    return INTERVAL_PATTERN.match(_compact(text)) is not None


def is_point(relation: str) -> bool:
    """Return True if ``relation`` is exactly a point ``(a, b)`` or ``[a, b]``."""
    match = INTERVAL_PATTERN.match(_compact(relation))
    if not match or _CLOSING[match.group("open")] != match.group("close"):
        return False
    lower, upper = match.group("lower"), match.group("upper")
    if not lower or not upper:
        return False
    return not any(word in lower or word in upper for word in _INFINITY_WORDS)


def is_closed_point(relation: str) -> bool:
    """A solid point, written ``(a, b)``."""
    return is_point(relation) and relation.strip().startswith("(")


def is_open_point(relation: str) -> bool:
    """A hollow point, written ``[a, b]``."""
    return is_point(relation) and relation.strip().startswith("[")


def is_asymptote(relation: str) -> bool:
    """Return True if ``relation`` is exactly a hole marker ``x != c``."""
    return HOLE_PATTERN.match(relation.strip()) is not None


def lower_bound_open(interval: str) -> bool:
    return is_interval(interval) and interval.strip().startswith("(")


def lower_bound_closed(interval: str) -> bool:
    return is_interval(interval) and interval.strip().startswith("[")


def upper_bound_open(interval: str) -> bool:
    return is_interval(interval) and interval.strip().endswith(")")


def upper_bound_closed(interval: str) -> bool:
    return is_interval(interval) and interval.strip().endswith("]")


def is_between(x: Any, lower: float, upper: float, closed: bool = False) -> Any:
    """Return whether ``x`` lies between ``lower`` and ``upper``.

    ``closed`` applies to both bounds. An inverted range contains nothing.

    >>> is_between(10, 0, 10), is_between(10, 0, 10, True)
    (False, True)
    """
    if closed:
        return (lower <= x) & (x <= upper)
    return (lower < x) & (x < upper)


def finite_or_none(value: float) -> Optional[float]:
    """Return ``value`` unless it is NaN or an infinity sentinel."""
    if value is None or np.isnan(value) or is_infinite(value):
        return None
    return value

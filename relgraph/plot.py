"""Plot orchestration: relation text in, surface primitives out.

Purpose
-------
Turn a relation such as ``"{ 2x (-oo,4); x^2-1 [4, 5]; -x+4 (5,oo) }"`` into
curves, points, endpoint circles and asymptote lines on a
:class:`~relgraph.surface.Surface`, and update them in place on re-plot.

Concepts and structure
----------------------
A relation is lower-cased, stripped of its outer braces and split on
top-level ``;``. Every segment is classified (:func:`relgraph.functions.classify`)
and drawn by the helper for its family. The result of one segment is a
:class:`PlotPiece`, which owns the surface handles that render it.

Re-plot contract
----------------
Passing the pieces of a previous call as ``pieces=`` hides them all first,
then reuses them in order by matching ``kind`` (``curve``, ``point``,
``asymptote``). A reused piece keeps its handles: the curve, the endpoint
circles and the point markers are moved and re-styled, never recreated.
Extra pieces are allocated when the count grows; pieces left over stay hidden
and are returned after the active ones (``active=False``) so a later call can
reuse them. Implicit contours are the exception: they are removed and drawn
afresh on every re-plot.

Failures are local: a segment that cannot be classified, compiled or drawn is
logged with ``logger.warning`` and skipped, and the other segments still draw.

Examples
--------
>>> from relgraph.surface import Surface
>>> surface = Surface(x_range=(-10, 10), y_range=(-10, 10))
>>> pieces = plot(surface, "y = 2x+5 (-2, 5]")
>>> pieces[0].lower_endpoint.solid, pieces[0].upper_endpoint.solid
(False, True)
>>> pieces = plot(surface, "y = 2x+5 [-2, 3)", pieces=pieces)  # same handles, moved
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import math
from typing import Any, Callable, List, Optional, Sequence, Tuple

import numpy as np

from .dmath import NEGATIVE_INFINITY, POSITIVE_INFINITY
from .expression import CompiledExpression, compile_expression
from .functions import (
    Classification,
    RelationKind,
    classify,
    convert_implicit_equation,
    remove_function_name,
    split_equation,
    split_parametric,
)
from .implicit import ImplicitTracer
from .interval import (
    Interval,
    finite_or_none,
    get_endpoints,
    get_hole_value,
    is_asymptote,
    is_between,
    is_closed_point,
    split_pieces,
    splice_interval,
)
from .plot_style import DEFAULT_VARIABLE, MAX_SAMPLES, POLAR_T_LIMIT, POLAR_T_RANGE, PlotStyle, resolve_style
from .surface import Curve, Point, Segment, Surface

__all__ = [
    "PlotPiece",
    "plot",
    "plot_function",
    "plot_x_function",
    "plot_point",
    "plot_endpoint",
    "plot_polar",
    "plot_parametric",
    "plot_sequence",
    "plot_implicit",
    "plot_asymptote",
    "get_plot_piece",
    "remove_pieces",
]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

_tracer = ImplicitTracer()


@dataclass(eq=False)
class PlotPiece:
    """The renderable unit produced from one relation segment.

    ``kind`` is ``"curve"``, ``"point"`` or ``"asymptote"``. The handle fields
    are owned by the piece and mutated in place on re-plot.
    """

    kind: str
    relation_kind: Optional[RelationKind] = None
    relation: str = ""
    restriction: str = ""
    interval: Interval = field(default_factory=Interval)
    curve: Optional[Curve] = None
    lower_endpoint: Optional[Point] = None
    upper_endpoint: Optional[Point] = None
    hole: Optional[Point] = None
    point: Optional[Point] = None
    segment: Optional[Segment] = None
    contours: List[Curve] = field(default_factory=list)
    coords: Optional[Tuple[float, float]] = None
    solid: bool = True
    active: bool = False
    function: Optional[CompiledExpression] = field(default=None, repr=False)

    def handles(self) -> List[Any]:
        singles = (self.curve, self.lower_endpoint, self.upper_endpoint, self.hole, self.point, self.segment)
        return [h for h in singles if h is not None] + list(self.contours)

    def hide(self) -> None:
        for handle in self.handles():
            handle.hide()
        self.active = False

    def remove(self, surface: Surface) -> None:
        for handle in self.handles():
            surface.remove(handle)
        self.curve = self.lower_endpoint = self.upper_endpoint = None
        self.hole = self.point = self.segment = None
        self.contours = []
        self.active = False


def get_plot_piece(pieces: Sequence[PlotPiece]) -> Optional[PlotPiece]:
    """Return the first curve piece of ``pieces``, if any."""
    for piece in pieces:
        if piece.kind == "curve":
            return piece
    return None


def remove_pieces(surface: Surface, pieces: Sequence[PlotPiece]) -> None:
    """Delete every handle owned by ``pieces`` from ``surface``."""
    with surface.suspend_update():
        for piece in pieces:
            piece.remove(surface)


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def _piece(piece: Optional[PlotPiece], kind: str, relation_kind: Optional[RelationKind]) -> PlotPiece:
    if piece is None:
        return PlotPiece(kind, relation_kind)
    if piece.relation_kind is RelationKind.IMPLICIT and relation_kind is not RelationKind.IMPLICIT:
        for contour in piece.contours:
            contour.surface.remove(contour)
        piece.contours = []
    piece.kind = kind
    piece.relation_kind = relation_kind
    return piece


def _style(style: Optional[PlotStyle], options: dict) -> PlotStyle:
    return style if style is not None else resolve_style(**options)


def _curve(surface: Surface, piece: PlotPiece, style: PlotStyle, mode: str = "lines") -> Curve:
    curve = piece.curve if piece.curve is not None else surface.create_curve()
    curve.set_style(color=style.color, width=style.width, dash=style.dash, mode=mode, marker_size=style.size)
    curve.visible = True
    piece.curve = curve
    return curve


def _parameter_samples(lo: float, hi: float, density: float) -> np.ndarray:
    """Samples from ``lo`` to ``hi`` inclusive with step ``density``."""
    if not (math.isfinite(lo) and math.isfinite(hi)) or hi < lo:
        return np.empty(0)
    count = int(math.floor((hi - lo) / density)) + 1
    if count > MAX_SAMPLES:
        logger.debug("Capping %d parameter samples at %d", count, MAX_SAMPLES)
        return np.linspace(lo, hi, MAX_SAMPLES)
    samples = lo + density * np.arange(count)
    if samples[-1] < hi:
        samples = np.append(samples, hi)
    return samples


def _exclude(values: np.ndarray, holes: Sequence[float]) -> np.ndarray:
    keep = np.ones(values.shape, dtype=bool)
    for hole in holes:
        keep &= values != hole
    return keep


def _limit_value(fn: Callable[[Any], Any], c: float) -> float:
    """Return ``fn(c)``, or its two-sided limit when ``c`` is a removable gap.

    NaN means there is no finite value nearby (a pole, a jump, or no
    definition at all).
    """
    value = fn(c)
    if math.isfinite(value):
        return value
    estimates = []
    for delta in (1e-6, 1e-5):
        step = delta * max(1.0, abs(c))
        left, right = fn(c - step), fn(c + step)
        if not (math.isfinite(left) and math.isfinite(right)):
            return math.nan
        if abs(left - right) > 1e-3 * max(1.0, abs(left), abs(right)):
            return math.nan
        estimates.append(0.5 * (left + right))
    near, far = estimates
    if abs(near - far) <= 1e-3 * max(1.0, abs(near)):
        return near
    return math.nan


def plot_endpoint(
    surface: Surface,
    coords: Sequence[float],
    solid: bool,
    color: str,
    point: Optional[Point] = None,
    size: Optional[float] = None,
) -> Point:
    """Draw a filled (``solid``) or hollow circle at ``coords``.

    An existing ``point`` is moved and re-styled instead of creating a new one.
    """
    if point is None:
        return surface.create_point(coords, color=color, solid=solid, size=size)
    point.move_to(coords).set_style(color=color, solid=solid, size=size)
    point.show()
    return point


def _endpoint_marker(
    surface: Surface,
    bound: float,
    closed: bool,
    view: Tuple[float, float],
    at: Callable[[float], Tuple[float, float]],
    style: PlotStyle,
    existing: Optional[Point],
) -> Optional[Point]:
    """Place the marker of a finite, in-view bound; otherwise keep it hidden."""
    if finite_or_none(bound) is not None and is_between(bound, view[0], view[1]):
        return plot_endpoint(surface, at(bound), closed, style.color, existing, style.size)
    if existing is not None:
        existing.hide()
    return existing


# ---------------------------------------------------------------------------
# Per-family helpers
# ---------------------------------------------------------------------------

def plot_function(
    surface: Surface,
    relation: str,
    *,
    variable: str = "x",
    holes: Sequence[float] = (),
    piece: Optional[PlotPiece] = None,
    style: Optional[PlotStyle] = None,
    **style_options: Any,
) -> PlotPiece:
    """Plot ``y = f(x)``, optionally restricted, with open/closed endpoint circles.

    The curve is lazy: it is sampled once per pixel column at render time and
    is NaN (a gap) outside the interval and at ``holes``.
    """
    style = _style(style, style_options)
    expression, restriction = splice_interval(relation)
    expression = remove_function_name(expression)
    fn = compile_expression(expression, (variable,))
    interval = Interval.from_restriction(restriction)

    piece = _piece(piece, "curve", RelationKind.FUNCTION_OF_X)
    piece.relation, piece.restriction, piece.interval, piece.function = expression, restriction, interval, fn

    def y_of(x: np.ndarray) -> np.ndarray:
        inside = np.asarray(interval.contains(x)) & _exclude(x, holes)
        return np.where(inside, fn(x), np.nan)

    curve = _curve(surface, piece, style)
    curve.set_function(lambda x: x, y_of, parameter="x")
    curve.update_curve()

    bounds = surface.get_bounds()
    view = (bounds.xmin, bounds.xmax)
    at = lambda v: (v, fn(v))  # noqa: E731
    piece.lower_endpoint = _endpoint_marker(
        surface, interval.lower, interval.lower_closed, view, at, style, piece.lower_endpoint
    )
    piece.upper_endpoint = _endpoint_marker(
        surface, interval.upper, interval.upper_closed, view, at, style, piece.upper_endpoint
    )
    piece.active = True
    return piece


def plot_x_function(
    surface: Surface,
    relation: str,
    *,
    variable: str = "y",
    piece: Optional[PlotPiece] = None,
    style: Optional[PlotStyle] = None,
    **style_options: Any,
) -> PlotPiece:
    """Plot ``x = g(y)``; :func:`plot_function` with the axes swapped."""
    style = _style(style, style_options)
    expression, restriction = splice_interval(relation)
    expression = remove_function_name(expression)
    fn = compile_expression(expression, (variable,))
    interval = Interval.from_restriction(restriction)

    piece = _piece(piece, "curve", RelationKind.FUNCTION_OF_Y)
    piece.relation, piece.restriction, piece.interval, piece.function = expression, restriction, interval, fn

    def x_of(y: np.ndarray) -> np.ndarray:
        return np.where(interval.contains(y), fn(y), np.nan)

    curve = _curve(surface, piece, style)
    curve.set_function(x_of, lambda y: y, parameter="y")
    curve.update_curve()

    bounds = surface.get_bounds()
    view = (bounds.ymin, bounds.ymax)
    at = lambda v: (fn(v), v)  # noqa: E731
    piece.lower_endpoint = _endpoint_marker(
        surface, interval.lower, interval.lower_closed, view, at, style, piece.lower_endpoint
    )
    piece.upper_endpoint = _endpoint_marker(
        surface, interval.upper, interval.upper_closed, view, at, style, piece.upper_endpoint
    )
    piece.active = True
    return piece


def plot_point(
    surface: Surface,
    coords: Sequence[float],
    *,
    solid: bool = True,
    piece: Optional[PlotPiece] = None,
    style: Optional[PlotStyle] = None,
    **style_options: Any,
) -> PlotPiece:
    """Plot a single solid or hollow point."""
    style = _style(style, style_options)
    piece = _piece(piece, "point", RelationKind.POINT)
    x, y = coords
    piece.coords = (float(x), float(y))
    piece.solid = bool(solid)
    piece.point = plot_endpoint(surface, piece.coords, piece.solid, style.color, piece.point, style.size)
    piece.active = True
    return piece


def _polar_range(restriction: str, interval: Interval) -> Tuple[float, float]:
    if not restriction or is_asymptote(restriction):
        return POLAR_T_RANGE
    lo = -POLAR_T_LIMIT if interval.lower == NEGATIVE_INFINITY else interval.lower
    hi = POLAR_T_LIMIT if interval.upper == POSITIVE_INFINITY else interval.upper
    return lo, hi


def plot_polar(
    surface: Surface,
    relation: str,
    *,
    variable: str = "t",
    piece: Optional[PlotPiece] = None,
    style: Optional[PlotStyle] = None,
    **style_options: Any,
) -> PlotPiece:
    """Plot ``r = f(t)`` sampled every ``density`` radians.

    ``t`` runs over ``[0, 2*pi]`` unless a restriction is given; infinite
    restriction bounds become ``-12*pi`` and ``12*pi``.
    """
    style = _style(style, style_options)
    expression, restriction = splice_interval(relation)
    expression = remove_function_name(expression)
    fn = compile_expression(expression, (variable,))
    interval = Interval.from_restriction(restriction)

    piece = _piece(piece, "curve", RelationKind.POLAR)
    piece.relation, piece.restriction, piece.interval, piece.function = expression, restriction, interval, fn

    t = _parameter_samples(*_polar_range(restriction, interval), style.density)
    r = np.where(interval.contains(t), fn(t), np.nan) if t.size else t
    _curve(surface, piece, style).set_data(r * np.cos(t), r * np.sin(t)).update()
    for marker in (piece.lower_endpoint, piece.upper_endpoint, piece.hole):
        if marker is not None:
            marker.hide()
    piece.active = True
    return piece


def plot_parametric(
    surface: Surface,
    relation: str,
    *,
    variable: str = "t",
    piece: Optional[PlotPiece] = None,
    style: Optional[PlotStyle] = None,
    **style_options: Any,
) -> PlotPiece:
    """Plot ``<x(t), y(t)>`` with endpoint circles and a hole marker.

    Without restriction bounds, ``t`` runs from ``min(xmin, ymin)`` to
    ``max(xmax, ymax)`` of the visible area.
    """
    style = _style(style, style_options)
    expression, restriction = splice_interval(relation)
    parts = split_parametric(expression)
    if parts is None:
        raise ValueError(f"Not a parametric pair: {expression!r}")
    x_fn = compile_expression(parts[0], (variable,))
    y_fn = compile_expression(parts[1], (variable,))
    interval = Interval.from_restriction(restriction)

    piece = _piece(piece, "curve", RelationKind.PARAMETRIC)
    piece.relation, piece.restriction, piece.interval, piece.function = expression, restriction, interval, None

    bounds = surface.get_bounds()
    lo, hi = interval.clamp(min(bounds.xmin, bounds.ymin), max(bounds.xmax, bounds.ymax))
    t = _parameter_samples(lo, hi, style.density)
    keep = interval.contains(t) if t.size else np.zeros(0, dtype=bool)
    xs = np.where(keep, x_fn(t), np.nan) if t.size else t
    ys = np.where(keep, y_fn(t), np.nan) if t.size else t
    _curve(surface, piece, style).set_data(xs, ys).update()

    at = lambda v: (x_fn(v), y_fn(v))  # noqa: E731
    unbounded = (NEGATIVE_INFINITY, POSITIVE_INFINITY)
    piece.lower_endpoint = _endpoint_marker(
        surface, interval.lower, interval.lower_closed, unbounded, at, style, piece.lower_endpoint
    )
    piece.upper_endpoint = _endpoint_marker(
        surface, interval.upper, interval.upper_closed, unbounded, at, style, piece.upper_endpoint
    )
    if interval.hole is not None and math.isfinite(interval.hole):
        piece.hole = plot_endpoint(surface, at(interval.hole), False, style.color, piece.hole, style.size)
    elif piece.hole is not None:
        piece.hole.hide()
    piece.active = True
    return piece


def plot_sequence(
    surface: Surface,
    relation: str,
    *,
    variable: str = "n",
    piece: Optional[PlotPiece] = None,
    style: Optional[PlotStyle] = None,
    **style_options: Any,
) -> PlotPiece:
    """Plot ``a = f(n)`` as markers at the integers ``n`` in view and in the restriction."""
    style = _style(style, style_options)
    expression, restriction = splice_interval(relation)
    expression = remove_function_name(expression)
    fn = compile_expression(expression, (variable,))
    interval = Interval.from_restriction(restriction)

    piece = _piece(piece, "curve", RelationKind.SEQUENCE)
    piece.relation, piece.restriction, piece.interval, piece.function = expression, restriction, interval, fn

    bounds = surface.get_bounds()
    first, last = math.ceil(bounds.xmin), math.floor(bounds.xmax)
    n = np.arange(first, min(last, first + MAX_SAMPLES - 1) + 1, dtype=float)
    n = n[interval.contains(n)] if n.size else n
    values = fn(n) if n.size else n
    _curve(surface, piece, style, mode="markers").set_data(n, values).update()
    piece.active = True
    return piece


def plot_implicit(
    surface: Surface,
    relation: str,
    *,
    axes: Tuple[str, str] = ("x", "y"),
    fast: bool = False,
    piece: Optional[PlotPiece] = None,
    style: Optional[PlotStyle] = None,
    **style_options: Any,
) -> PlotPiece:
    """Trace ``lhs = rhs`` (or ``expr = 0``) with the contour tracer.

    Restrictions are ignored. Contours from a previous plot of ``piece`` are
    removed and every polyline becomes a new curve.
    """
    style = _style(style, style_options)
    expression = splice_interval(relation)[0]
    if split_equation(expression)[0] is not None:
        expression = convert_implicit_equation(expression)
    fn = compile_expression(expression, axes)

    piece = _piece(piece, "curve", RelationKind.IMPLICIT)
    piece.relation, piece.restriction, piece.interval, piece.function = expression, "", Interval(), fn
    for contour in piece.contours:
        surface.remove(contour)
    piece.contours = []

    bounds = surface.get_bounds()
    polylines = _tracer.trace(
        fn,
        (bounds.xmin, bounds.xmax, bounds.ymin, bounds.ymax),
        (surface.width_px, surface.height_px),
        fast=fast,
    )
    logger.debug("plot_implicit(%r): %d polyline(s)", expression, len(polylines))
    for line in polylines:
        contour = surface.create_curve(color=style.color, width=style.width, dash=style.dash)
        contour.set_data(line[:, 0], line[:, 1]).show()
        piece.contours.append(contour)
    piece.active = True
    return piece


def plot_asymptote(
    surface: Surface,
    value: float,
    *,
    functions: Sequence[Tuple[Callable[[Any], Any], Interval]] = (),
    piece: Optional[PlotPiece] = None,
    style: Optional[PlotStyle] = None,
    **style_options: Any,
) -> PlotPiece:
    """Mark the excluded value ``x = value``.

    If one of ``functions`` (pairs of evaluator and interval) has a finite
    value or removable gap there, a hollow circle is drawn on that curve.
    Otherwise a dashed vertical line spans the visible y-range.
    """
    style = _style(style, style_options)
    piece = _piece(piece, "asymptote", RelationKind.ASYMPTOTE)
    piece.relation, piece.restriction = "", f"x != {value:g}"
    piece.interval = Interval(hole=value)

    y = math.nan
    for fn, interval in functions:
        if interval.with_hole(None).contains(value):
            y = _limit_value(fn, value)
            break

    if math.isfinite(y):
        piece.hole = plot_endpoint(surface, (value, y), False, style.color, piece.hole, style.size)
        if piece.segment is not None:
            piece.segment.hide()
    else:
        bounds = surface.get_bounds()
        segment = piece.segment if piece.segment is not None else surface.create_segment(
            (value, bounds.ymin), (value, bounds.ymax)
        )
        segment.move_to((value, bounds.ymin), (value, bounds.ymax))
        segment.set_style(color=style.color, width=style.width, dash="dash").show()
        piece.segment = segment
        if piece.hole is not None:
            piece.hole.hide()
    piece.active = True
    return piece


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

def _take(pool: List[PlotPiece], kind: str) -> Optional[PlotPiece]:
    for i, piece in enumerate(pool):
        if piece.kind == kind:
            return pool.pop(i)
    return None


def plot(
    surface: Surface,
    relation: str,
    *,
    color: Optional[str] = None,
    width: Optional[float] = None,
    thickness: Optional[float] = None,
    dashed: Optional[bool] = None,
    density: Optional[float] = None,
    variable: str = DEFAULT_VARIABLE,
    size: Optional[float] = None,
    pieces: Optional[Sequence[PlotPiece]] = None,
    fast: bool = False,
) -> List[PlotPiece]:
    """Plot ``relation`` on ``surface``.

    Parameters
    ----------
    surface : Surface
        Where to draw.
    relation : str
        One relation or a piecewise ``{ a; b; ... }`` list of segments.
    color, width, thickness, dashed, density, size
        Style options; see :data:`relgraph.plot_style.PLOT_STYLE_OPTIONS`.
    variable : str
        Independent variable of bare expressions and ``y = ...``.
    pieces : sequence of PlotPiece, optional
        Result of a previous call to update in place.
    fast : bool
        Coarse implicit tracing, for interactive dragging.

    Returns
    -------
    list of PlotPiece
        Active pieces in drawing order, followed by hidden leftovers.

    Raises
    ------
    ValueError
        For invalid style options.
    """
    style = resolve_style(color=color, width=width, thickness=thickness, dashed=dashed, density=density, size=size)
    pool = list(pieces or [])
    drawn: List[PlotPiece] = []
    spare: List[PlotPiece] = []

    with surface.suspend_update():
        for piece in pool:
            piece.hide()

        classified = []
        for segment in split_pieces(relation.lower()):
            try:
                classified.append((segment, classify(segment, variable)))
            except Exception as exc:
                logger.warning("Skipping %r: cannot classify (%s)", segment, exc)

        holes = [
            h for h in (get_hole_value(s) for s, c in classified if c.kind is RelationKind.ASYMPTOTE)
            if math.isfinite(h)
        ]

        for segment, classification in classified:
            if classification.kind is RelationKind.ASYMPTOTE:
                continue
            kind = "point" if classification.kind is RelationKind.POINT else "curve"
            piece = _take(pool, kind)
            try:
                drawn.append(_dispatch(surface, segment, classification, style, piece, holes, fast))
            except Exception as exc:
                logger.warning("Skipping %r (%s): %s", segment, classification.kind.value, exc)
                if piece is not None:
                    spare.append(piece)

        functions = [
            (p.function, p.interval) for p in drawn
            if p.relation_kind is RelationKind.FUNCTION_OF_X and p.function is not None
        ]
        for value in holes:
            piece = _take(pool, "asymptote")
            try:
                drawn.append(plot_asymptote(surface, value, functions=functions, piece=piece, style=style))
            except Exception as exc:
                logger.warning("Skipping asymptote x = %g: %s", value, exc)
                if piece is not None:
                    spare.append(piece)

    return drawn + pool + spare


def _dispatch(
    surface: Surface,
    segment: str,
    classification: Classification,
    style: PlotStyle,
    piece: Optional[PlotPiece],
    holes: Sequence[float],
    fast: bool,
) -> PlotPiece:
    kind = classification.kind
    if kind is RelationKind.POINT:
        return plot_point(surface, get_endpoints(segment), solid=is_closed_point(segment), piece=piece, style=style)
    if kind is RelationKind.FUNCTION_OF_X:
        return plot_function(surface, segment, variable=classification.variable, holes=holes, piece=piece, style=style)
    if kind is RelationKind.FUNCTION_OF_Y:
        return plot_x_function(surface, segment, variable=classification.variable, piece=piece, style=style)
    if kind is RelationKind.POLAR:
        return plot_polar(surface, segment, variable=classification.variable, piece=piece, style=style)
    if kind is RelationKind.PARAMETRIC:
        return plot_parametric(surface, segment, variable=classification.variable, piece=piece, style=style)
    if kind is RelationKind.SEQUENCE:
        return plot_sequence(surface, segment, variable=classification.variable, piece=piece, style=style)
    if kind is RelationKind.IMPLICIT:
        variables = classification.variables
        axes = (variables[0], variables[1]) if len(variables) == 2 and set(variables) != {"x", "y"} else ("x", "y")
        return plot_implicit(surface, segment, axes=axes, fast=fast, piece=piece, style=style)
    raise ValueError(f"no plot family for variables {classification.variables}")

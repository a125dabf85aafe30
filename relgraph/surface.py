"""Plotly-backed rendering surface.

Purpose
-------
The plot helpers draw through a small set of primitives: curves, points and
line segments, the visible bounds, and a scoped suspend/resume bracket. This
module implements them on a Plotly figure (``go.Figure`` by default, or a
``go.FigureWidget`` for live notebook use).

Concepts and structure
----------------------
Every primitive is a handle (:class:`Curve`, :class:`Point`, :class:`Segment`)
owning exactly one Plotly trace. A handle keeps its state locally and pushes it
into the trace on :meth:`~_Handle.update`. The surface owns handle lifetime;
plot pieces only mutate handles through their setters, so a handle (and its
trace) keeps its identity across re-plots.

While :meth:`Surface.suspend_update` is active, pushes are queued and then
applied together in one ``figure.batch_update()`` when the outermost bracket
exits, including when it exits with an exception.

Important gotchas
-----------------
- Trace creation and removal happen immediately, never inside a Plotly batch.
- A lazy curve (see :meth:`Curve.set_function`) is re-sampled once per pixel
  column (or row) on every :meth:`Curve.update_curve` and on
  :meth:`Surface.set_bounds`.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import Any, Callable, Dict, Iterator, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np
import plotly.graph_objects as go

from .dmath import scalemap
from .plot_style import DEFAULT_COLOR, DEFAULT_POINT_SIZE, DEFAULT_WIDTH, HOLLOW_FILL, SOLID_SETTING

__all__ = ["Bounds", "Surface", "Curve", "Point", "Segment"]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

Producer = Callable[[np.ndarray], Any]

DEFAULT_X_RANGE: Tuple[float, float] = (-4.0, 4.0)
DEFAULT_Y_RANGE: Tuple[float, float] = (-3.0, 3.0)
DEFAULT_WIDTH_PX = 600
DEFAULT_HEIGHT_PX = 450


class Bounds(NamedTuple):
    xmin: float
    xmax: float
    ymin: float
    ymax: float


class _Handle:
    """Base class of surface primitives; one Plotly trace per handle."""

    kind = "handle"

    def __init__(self, surface: "Surface", trace: go.Scatter) -> None:
        self.surface = surface
        self.trace = trace
        self.visible = False
        self.removed = False

    def update(self) -> None:
        """Push local state into the trace (queued while the surface is suspended)."""
        self.surface._push(self)

    def show(self) -> None:
        self.visible = True
        self.update()

    def hide(self) -> None:
        self.visible = False
        self.update()

    def _apply(self) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        state = "removed" if self.removed else ("visible" if self.visible else "hidden")
        return f"<{type(self).__name__} {state}>"


class Curve(_Handle):
    """A polyline, either from explicit points or from lazy producers."""

    kind = "curve"

    def __init__(self, surface: "Surface", trace: go.Scatter) -> None:
        super().__init__(surface, trace)
        self.x = np.empty(0)
        self.y = np.empty(0)
        self.color = DEFAULT_COLOR
        self.width = DEFAULT_WIDTH
        self.dash = SOLID_SETTING
        self.mode = "lines"
        self.marker_size = DEFAULT_POINT_SIZE
        self._x_of: Optional[Producer] = None
        self._y_of: Optional[Producer] = None
        self._parameter = "x"

    @property
    def is_lazy(self) -> bool:
        return self._x_of is not None

    def set_style(
        self,
        *,
        color: Optional[str] = None,
        width: Optional[float] = None,
        dash: Optional[str] = None,
        mode: Optional[str] = None,
        marker_size: Optional[float] = None,
    ) -> "Curve":
        if color is not None:
            self.color = color
        if width is not None:
            self.width = float(width)
        if dash is not None:
            self.dash = dash
        if mode is not None:
            self.mode = mode
        if marker_size is not None:
            self.marker_size = float(marker_size)
        return self

    def set_data(self, x: Sequence[float], y: Sequence[float]) -> "Curve":
        """Replace the point list and drop any lazy producers."""
        self._x_of = self._y_of = None
        self.x = np.asarray(x, dtype=float)
        self.y = np.asarray(y, dtype=float)
        return self

    def set_function(self, x_of: Producer, y_of: Producer, parameter: str = "x") -> "Curve":
        """Use lazy producers sampled at render time.

        ``parameter`` is ``"x"`` to sample once per pixel column across the
        visible x-range, or ``"y"`` to sample once per pixel row across the
        visible y-range. Each producer maps the sample array to coordinates and
        may return NaN for gaps.
        """
        if parameter not in ("x", "y"):
            raise ValueError(f"parameter must be 'x' or 'y', got {parameter!r}")
        self._x_of, self._y_of, self._parameter = x_of, y_of, parameter
        return self

    def update_curve(self) -> None:
        """Re-sample lazy producers for the current bounds, then push."""
        if self._x_of is not None and self._y_of is not None:
            samples = self.surface.pixel_samples(self._parameter)
            with np.errstate(all="ignore"):
                self.x = np.broadcast_to(np.asarray(self._x_of(samples), dtype=float), samples.shape).copy()
                self.y = np.broadcast_to(np.asarray(self._y_of(samples), dtype=float), samples.shape).copy()
        self.update()

    def _apply(self) -> None:
        self.trace.x = self.x
        self.trace.y = self.y
        self.trace.mode = self.mode
        self.trace.line = {"color": self.color, "width": self.width, "dash": self.dash}
        self.trace.marker = {"color": self.color, "size": self.marker_size}
        self.trace.visible = self.visible


class Point(_Handle):
    """A marker that is solid (filled) or hollow (white fill, colored outline)."""

    kind = "point"

    def __init__(self, surface: "Surface", trace: go.Scatter) -> None:
        super().__init__(surface, trace)
        self.coords: Tuple[float, float] = (float("nan"), float("nan"))
        self.color = DEFAULT_COLOR
        self.size = DEFAULT_POINT_SIZE
        self.solid = True

    def move_to(self, coords: Sequence[float]) -> "Point":
        x, y = coords
        self.coords = (float(x), float(y))
        return self

    def set_style(
        self, *, color: Optional[str] = None, solid: Optional[bool] = None, size: Optional[float] = None
    ) -> "Point":
        if color is not None:
            self.color = color
        if solid is not None:
            self.solid = bool(solid)
        if size is not None:
            self.size = float(size)
        return self

    @property
    def fill_color(self) -> str:
        return self.color if self.solid else HOLLOW_FILL

    def _apply(self) -> None:
        self.trace.x = [self.coords[0]]
        self.trace.y = [self.coords[1]]
        self.trace.marker = {
            "color": self.fill_color,
            "size": self.size,
            "line": {"color": self.color, "width": 2},
        }
        self.trace.visible = self.visible


class Segment(_Handle):
    """A straight line between two coordinate pairs."""

    kind = "segment"

    def __init__(self, surface: "Surface", trace: go.Scatter) -> None:
        super().__init__(surface, trace)
        self.start: Tuple[float, float] = (0.0, 0.0)
        self.end: Tuple[float, float] = (0.0, 0.0)
        self.color = DEFAULT_COLOR
        self.width = DEFAULT_WIDTH
        self.dash = SOLID_SETTING

    def move_to(self, start: Sequence[float], end: Sequence[float]) -> "Segment":
        self.start = (float(start[0]), float(start[1]))
        self.end = (float(end[0]), float(end[1]))
        return self

    def set_style(
        self, *, color: Optional[str] = None, width: Optional[float] = None, dash: Optional[str] = None
    ) -> "Segment":
        if color is not None:
            self.color = color
        if width is not None:
            self.width = float(width)
        if dash is not None:
            self.dash = dash
        return self

    def _apply(self) -> None:
        self.trace.x = [self.start[0], self.end[0]]
        self.trace.y = [self.start[1], self.end[1]]
        self.trace.line = {"color": self.color, "width": self.width, "dash": self.dash}
        self.trace.visible = self.visible


class Surface:
    """Drawing surface over a Plotly figure.

    Parameters
    ----------
    figure : plotly.graph_objects.Figure, optional
        Figure to draw on; a fresh ``go.Figure`` when omitted. A
        ``go.FigureWidget`` works the same way and reflects user pan/zoom in
        :meth:`get_bounds`.
    x_range, y_range : tuple of float
        Initial visible bounds.
    width_px, height_px : int
        Pixel size used for per-pixel sampling and the figure layout.

    Examples
    --------
    >>> surface = Surface(x_range=(-10, 10), y_range=(-10, 10))
    >>> surface.get_bounds()
    Bounds(xmin=-10.0, xmax=10.0, ymin=-10.0, ymax=10.0)
    """

    def __init__(
        self,
        figure: Optional[go.Figure] = None,
        *,
        x_range: Tuple[float, float] = DEFAULT_X_RANGE,
        y_range: Tuple[float, float] = DEFAULT_Y_RANGE,
        width_px: int = DEFAULT_WIDTH_PX,
        height_px: int = DEFAULT_HEIGHT_PX,
    ) -> None:
        if width_px <= 0 or height_px <= 0:
            raise ValueError(f"Pixel size must be positive, got {width_px}x{height_px}")
        self.figure = go.Figure() if figure is None else figure
        self.width_px = int(width_px)
        self.height_px = int(height_px)
        self._handles: List[_Handle] = []
        self._dirty: Dict[int, _Handle] = {}
        self._suspended = 0
        self.figure.update_layout(
            width=self.width_px,
            height=self.height_px,
            showlegend=False,
            xaxis={"range": [float(x_range[0]), float(x_range[1])]},
            yaxis={"range": [float(y_range[0]), float(y_range[1])]},
        )

    # ------------------------------------------------------------------
    # Bounds
    # ------------------------------------------------------------------

    def get_bounds(self) -> Bounds:
        """Return the currently visible ``(xmin, xmax, ymin, ymax)``."""
        xr = self.figure.layout.xaxis.range
        yr = self.figure.layout.yaxis.range
        return Bounds(float(xr[0]), float(xr[1]), float(yr[0]), float(yr[1]))

    def set_bounds(self, xmin: float, xmax: float, ymin: float, ymax: float) -> None:
        """Change the visible bounds and re-sample lazy curves."""
        if not (xmin < xmax and ymin < ymax):
            raise ValueError(f"Invalid bounds: x=({xmin}, {xmax}) y=({ymin}, {ymax})")
        with self.suspend_update():
            self.figure.layout.xaxis.range = [float(xmin), float(xmax)]
            self.figure.layout.yaxis.range = [float(ymin), float(ymax)]
            for handle in self._handles:
                if isinstance(handle, Curve) and handle.is_lazy:
                    handle.update_curve()

    def pixel_samples(self, axis: str = "x") -> np.ndarray:
        """Return one sample per pixel column (``"x"``) or row (``"y"``)."""
        bounds = self.get_bounds()
        if axis == "x":
            n, lo, hi = self.width_px, bounds.xmin, bounds.xmax
        else:
            n, lo, hi = self.height_px, bounds.ymin, bounds.ymax
        return scalemap(np.arange(n + 1, dtype=float), (0, n), (lo, hi))

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def _add_trace(self, mode: str) -> go.Scatter:
        self.figure.add_scatter(x=[], y=[], mode=mode, visible=False, showlegend=False, hoverinfo="x+y")
        return self.figure.data[-1]

    def create_curve(self, **style: Any) -> Curve:
        curve = Curve(self, self._add_trace("lines")).set_style(**style)
        self._handles.append(curve)
        return curve

    def create_point(self, coords: Sequence[float], **style: Any) -> Point:
        point = Point(self, self._add_trace("markers")).move_to(coords).set_style(**style)
        self._handles.append(point)
        point.show()
        return point

    def create_segment(self, start: Sequence[float], end: Sequence[float], **style: Any) -> Segment:
        segment = Segment(self, self._add_trace("lines")).move_to(start, end).set_style(**style)
        self._handles.append(segment)
        segment.show()
        return segment

    def remove(self, handle: Optional[_Handle]) -> None:
        """Delete ``handle``'s trace from the figure; a no-op for None or removed handles."""
        if handle is None or handle.removed:
            return
        self.figure.data = tuple(trace for trace in self.figure.data if trace is not handle.trace)
        handle.removed = True
        self._dirty.pop(id(handle), None)
        self._handles = [h for h in self._handles if h is not handle]

    @property
    def handles(self) -> Tuple[_Handle, ...]:
        return tuple(self._handles)

    # ------------------------------------------------------------------
    # Batching
    # ------------------------------------------------------------------

    @property
    def suspended(self) -> bool:
        return self._suspended > 0

    @contextmanager
    def suspend_update(self) -> Iterator["Surface"]:
        """Queue handle pushes and apply them in one batch on exit.

        Brackets nest; only the outermost exit flushes. The flush runs even
        when the body raises.
        """
        self._suspended += 1
        try:
            yield self
        finally:
            self._suspended -= 1
            if self._suspended == 0:
                self._flush()

    def _push(self, handle: _Handle) -> None:
        if handle.removed:
            return
        if self._suspended:
            self._dirty[id(handle)] = handle
            return
        with self.figure.batch_update():
            handle._apply()

    def _flush(self) -> None:
        pending = list(self._dirty.values())
        self._dirty.clear()
        if not pending:
            return
        logger.debug("Flushing %d queued handle update(s)", len(pending))
        with self.figure.batch_update():
            for handle in pending:
                if not handle.removed:
                    handle._apply()

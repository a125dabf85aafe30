"""Marching-squares tracing of implicit curves ``f(x, y) = 0``.

Purpose
-------
Approximate the zero set of a real function of two variables over a
rectangular domain by polylines, for relations such as ``x^2 + x*y^3 = 4``
that cannot be solved for either variable.

Concepts and structure
----------------------
The domain is cut into a grid of about one cell per 8 target pixels per axis
(a fixed 8x8 grid in fast mode, used while the user is dragging). Corner
values are computed once for the whole grid in a single vectorised call and
shared by neighbouring cells.

Each cell gets a 4-bit code from its corner signs (``nw=8, ne=4, se=2,
sw=1``; a bit is set when the corner is positive). The code selects, from a
lookup table, which cell edges the contour crosses; the crossing points are
found by linear interpolation along the edge. Codes 5 and 10 are saddles:
they are split into four children, first down to a shallow depth for every
cell, then, in a second pass, further down to the maximum depth for the
saddles still unresolved. At the maximum depth the value at the cell centre
decides how the saddle is connected.

Segments are stitched into chains held in an index-based arena. A segment
extends a chain whose end matches one of its points within the tolerance, or
joins two chains, or closes a chain into a loop. When too many chains are
open at once the oldest is flushed to the output unfinished, which bounds
memory at the cost of a split in a long contour.

A cell is empty (skipped) when any corner is not finite, when all four
corners share a strict sign, or when three or more corners are exactly zero.
This is the condition ``((zero + 1) | pos | neg) >= 4`` over the corner
counts.

Examples
--------
>>> polylines = trace_implicit(lambda x, y: x**2 + y**2 - 4, (-3, 3, -3, 3))
>>> len(polylines) >= 1
True
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Sequence, Set, Tuple

import numpy as np

__all__ = [
    "PathPoint",
    "CellStatus",
    "GridCell",
    "ImplicitTracer",
    "trace_implicit",
    "paths_to_polylines",
    "EDGE_TABLE",
    "SADDLE_CODES",
    "SADDLE_TABLE",
]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

Function2D = Callable[[Any, Any], Any]
Coord = Tuple[float, float]

PIXELS_PER_CELL = 8
FAST_GRID = 8
SHALLOW_DEPTH = 1
MAX_DEPTH = 4
TOLERANCE = 1e-6
MAX_OPEN_CHAINS = 512

NW, NE, SE, SW = 8, 4, 2, 1

# Cell edges: bottom, right, top, left.
B, R, T, L = "B", "R", "T", "L"

EDGE_TABLE: Dict[int, Tuple[Tuple[str, str], ...]] = {
    0: (),
    1: ((L, B),),
    2: ((B, R),),
    3: ((L, R),),
    4: ((T, R),),
    6: ((T, B),),
    7: ((L, T),),
    8: ((L, T),),
    9: ((T, B),),
    11: ((T, R),),
    12: ((L, R),),
    13: ((B, R),),
    14: ((L, B),),
    15: (),
}

SADDLE_CODES = frozenset({5, 10})

# (code, centre is positive) -> segments
SADDLE_TABLE: Dict[Tuple[int, bool], Tuple[Tuple[str, str], ...]] = {
    (5, True): ((L, T), (B, R)),
    (5, False): ((T, R), (L, B)),
    (10, True): ((T, R), (L, B)),
    (10, False): ((L, T), (B, R)),
}


class PathPoint(NamedTuple):
    """A point of the flat output path; ``continues`` is False at a subpath start."""

    x: float
    y: float
    continues: bool


class CellStatus:
    """Corner sign counts of a cell and whether a contour can cross it."""

    __slots__ = ("pos", "neg", "zero", "valid", "empty")

    def __init__(self) -> None:
        self.pos = self.neg = self.zero = 0
        self.valid = False
        self.empty = True

    def assess(self, values: Sequence[float]) -> None:
        self.pos = sum(1 for v in values if v > 0)
        self.neg = sum(1 for v in values if v < 0)
        self.zero = sum(1 for v in values if v == 0)
        self.valid = all(math.isfinite(v) for v in values)
        self.empty = not self.valid or ((self.zero + 1) | self.pos | self.neg) >= 4

    def __repr__(self) -> str:
        return (
            f"CellStatus(pos={self.pos}, neg={self.neg}, zero={self.zero}, "
            f"valid={self.valid}, empty={self.empty})"
        )


class GridCell:
    """A rectangle with its four corner values; children are allocated once and reused."""

    __slots__ = ("x0", "y0", "x1", "y1", "nw", "ne", "se", "sw", "depth", "status", "children")

    def __init__(self) -> None:
        self.x0 = self.y0 = self.x1 = self.y1 = 0.0
        self.nw = self.ne = self.se = self.sw = math.nan
        self.depth = 0
        self.status = CellStatus()
        self.children: Optional[List["GridCell"]] = None

    def set(
        self, x0: float, y0: float, x1: float, y1: float,
        nw: float, ne: float, se: float, sw: float, depth: int = 0,
    ) -> "GridCell":
        self.x0, self.y0, self.x1, self.y1 = x0, y0, x1, y1
        self.nw, self.ne, self.se, self.sw = nw, ne, se, sw
        self.depth = depth
        self.status.assess((nw, ne, se, sw))
        return self

    @property
    def code(self) -> int:
        return (
            (NW if self.nw > 0 else 0)
            | (NE if self.ne > 0 else 0)
            | (SE if self.se > 0 else 0)
            | (SW if self.sw > 0 else 0)
        )

    @property
    def center(self) -> Coord:
        return (0.5 * (self.x0 + self.x1), 0.5 * (self.y0 + self.y1))

    def edge_point(self, edge: str) -> Coord:
        """Return where the contour crosses ``edge``.

        Interpolation always runs from the lower or left corner so that cells
        sharing an edge produce bit-identical points.
        """
        if edge == B:
            return _lerp(self.x0, self.y0, self.x1, self.y0, self.sw, self.se)
        if edge == T:
            return _lerp(self.x0, self.y1, self.x1, self.y1, self.nw, self.ne)
        if edge == L:
            return _lerp(self.x0, self.y0, self.x0, self.y1, self.sw, self.nw)
        return _lerp(self.x1, self.y0, self.x1, self.y1, self.se, self.ne)

    def split(self, f: Function2D) -> List["GridCell"]:
        """Fill the four children (sw, se, ne, nw) with freshly evaluated midpoints."""
        if self.children is None:
            self.children = [GridCell() for _ in range(4)]
        xm, ym = self.center
        mb, mr, mt, ml, c = _sample(
            f,
            np.array([xm, self.x1, xm, self.x0, xm]),
            np.array([self.y0, ym, self.y1, ym, ym]),
        ).tolist()
        d = self.depth + 1
        sw_child, se_child, ne_child, nw_child = self.children
        sw_child.set(self.x0, self.y0, xm, ym, ml, c, mb, self.sw, d)
        se_child.set(xm, self.y0, self.x1, ym, c, mr, self.se, mb, d)
        ne_child.set(xm, ym, self.x1, self.y1, mt, self.ne, mr, c, d)
        nw_child.set(self.x0, ym, xm, self.y1, self.nw, mt, c, ml, d)
        return self.children

    def __repr__(self) -> str:
        return f"GridCell(({self.x0:g}, {self.y0:g})-({self.x1:g}, {self.y1:g}), depth={self.depth}, {self.status!r})"


def _lerp(xa: float, ya: float, xb: float, yb: float, va: float, vb: float) -> Coord:
    d = va - vb
    t = va / d if d != 0 else 0.5
    return (xa + t * (xb - xa), ya + t * (yb - ya))


def _sample(f: Function2D, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    """Evaluate ``f`` element-wise; failures and non-finite values become NaN."""
    with np.errstate(all="ignore"):
        try:
            values = np.broadcast_to(np.asarray(f(xs, ys), dtype=float), xs.shape).copy()
        except Exception as exc:
            logger.debug("Vectorised evaluation failed (%s); sampling point by point", exc)
            values = np.full(xs.shape, np.nan)
            for idx in np.ndindex(*xs.shape):
                try:
                    values[idx] = float(f(float(xs[idx]), float(ys[idx])))
                except Exception:
                    values[idx] = np.nan
    values[~np.isfinite(values)] = np.nan
    return values


class _ChainArena:
    """Open polyline chains referenced by index, with endpoint lookup."""

    def __init__(self, tolerance: float = TOLERANCE, max_open: int = MAX_OPEN_CHAINS) -> None:
        self.tolerance = tolerance
        self.max_open = max_open
        self._chains: List[Optional[List[Coord]]] = []
        self._open: Dict[int, None] = {}
        self._ends: Dict[Tuple[int, int], Set[Tuple[int, int]]] = {}
        self.output: List[List[Coord]] = []
        self.forced_flushes = 0

    def _key(self, p: Coord) -> Tuple[int, int]:
        return (int(math.floor(p[0] / self.tolerance)), int(math.floor(p[1] / self.tolerance)))

    def _close(self, p: Coord, q: Coord) -> bool:
        return abs(p[0] - q[0]) <= self.tolerance and abs(p[1] - q[1]) <= self.tolerance

    def _register(self, cid: int, end: int) -> None:
        chain = self._chains[cid]
        point = chain[0] if end == 0 else chain[-1]
        self._ends.setdefault(self._key(point), set()).add((cid, end))

    def _unregister(self, cid: int, end: int) -> None:
        chain = self._chains[cid]
        point = chain[0] if end == 0 else chain[-1]
        key = self._key(point)
        bucket = self._ends.get(key)
        if bucket is not None:
            bucket.discard((cid, end))
            if not bucket:
                del self._ends[key]

    def _find(self, p: Coord, exclude: Optional[Tuple[int, int]] = None) -> Optional[Tuple[int, int]]:
        kx, ky = self._key(p)
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                for cid, end in self._ends.get((kx + dx, ky + dy), ()):
                    chain = self._chains[cid]
                    if (cid, end) == exclude or chain is None:
                        continue
                    if self._close(p, chain[0] if end == 0 else chain[-1]):
                        return cid, end
        return None

    def _new(self, points: List[Coord]) -> int:
        cid = len(self._chains)
        self._chains.append(points)
        self._open[cid] = None
        self._register(cid, 0)
        self._register(cid, 1)
        if len(self._open) > self.max_open:
            oldest = next(iter(self._open))
            self.forced_flushes += 1
            self._retire(oldest)
        return cid

    def _retire(self, cid: int, registered: bool = True) -> None:
        if registered:
            self._unregister(cid, 0)
            self._unregister(cid, 1)
        chain = self._chains[cid]
        self._chains[cid] = None
        self._open.pop(cid, None)
        if chain is not None and len(chain) >= 2:
            self.output.append(chain)

    def _attach(self, cid: int, end: int, point: Coord) -> None:
        self._unregister(cid, end)
        chain = self._chains[cid]
        if end == 0:
            chain.insert(0, point)
        else:
            chain.append(point)
        self._register(cid, end)

    def add(self, p: Coord, q: Coord) -> None:
        """Add the segment ``p``-``q``, extending, joining or closing chains."""
        if self._close(p, q):
            return
        at_p = self._find(p)
        at_q = self._find(q, exclude=at_p)
        if at_p is None and at_q is None:
            self._new([p, q])
        elif at_q is None:
            self._attach(at_p[0], at_p[1], q)
        elif at_p is None:
            self._attach(at_q[0], at_q[1], p)
        elif at_p[0] == at_q[0]:
            cid = at_p[0]
            self._unregister(cid, 0)
            self._unregister(cid, 1)
            chain = self._chains[cid]
            chain.append(chain[0])
            self._retire(cid, registered=False)
        else:
            self._join(at_p, at_q)

    def _join(self, at_p: Tuple[int, int], at_q: Tuple[int, int]) -> None:
        first, first_end = at_p
        second, second_end = at_q
        for cid in (first, second):
            self._unregister(cid, 0)
            self._unregister(cid, 1)
        head = self._chains[first]
        tail = self._chains[second]
        if first_end == 0:
            head.reverse()
        if second_end == 1:
            tail.reverse()
        head.extend(tail)
        self._chains[second] = None
        self._open.pop(second, None)
        self._register(first, 0)
        self._register(first, 1)

    def finish(self) -> List[List[Coord]]:
        for cid in list(self._open):
            self._retire(cid)
        return self.output


class ImplicitTracer:
    """Reusable marching-squares tracer.

    The cell grid is allocated once per grid size and overwritten on every
    call to :meth:`trace`. A tracer must not be re-entered (for example from
    a ``finish`` callback); doing so raises ``RuntimeError``.
    """

    def __init__(
        self,
        *,
        pixels_per_cell: int = PIXELS_PER_CELL,
        fast_grid: int = FAST_GRID,
        shallow_depth: int = SHALLOW_DEPTH,
        max_depth: int = MAX_DEPTH,
        tolerance: float = TOLERANCE,
        max_open_chains: int = MAX_OPEN_CHAINS,
    ) -> None:
        if not 0 <= shallow_depth <= max_depth:
            raise ValueError("Expected 0 <= shallow_depth <= max_depth")
        if pixels_per_cell < 1 or fast_grid < 1:
            raise ValueError("Cell sizes must be positive")
        self.pixels_per_cell = pixels_per_cell
        self.fast_grid = fast_grid
        self.shallow_depth = shallow_depth
        self.max_depth = max_depth
        self.tolerance = tolerance
        self.max_open_chains = max_open_chains
        self._grid: List[List[GridCell]] = []
        self._grid_shape: Tuple[int, int] = (0, 0)
        self._busy = False
        self._f: Optional[Function2D] = None
        self._arena: Optional[_ChainArena] = None

    def grid_shape(self, resolution: Sequence[int], fast: bool = False) -> Tuple[int, int]:
        """Return ``(columns, rows)`` of the grid for a pixel ``resolution``."""
        if fast:
            return self.fast_grid, self.fast_grid
        width_px, height_px = resolution
        if width_px <= 0 or height_px <= 0:
            raise ValueError(f"Resolution must be positive, got {tuple(resolution)}")
        return (
            max(1, math.ceil(width_px / self.pixels_per_cell)),
            max(1, math.ceil(height_px / self.pixels_per_cell)),
        )

    def _cells(self, columns: int, rows: int) -> List[List[GridCell]]:
        if self._grid_shape != (columns, rows):
            logger.debug("Allocating %dx%d cell grid", columns, rows)
            self._grid = [[GridCell() for _ in range(columns)] for _ in range(rows)]
            self._grid_shape = (columns, rows)
        return self._grid

    def trace(
        self,
        f: Function2D,
        domain: Sequence[float],
        resolution: Sequence[int] = (600, 600),
        *,
        fast: bool = False,
        finish: Optional[Callable[[List[PathPoint]], Any]] = None,
    ) -> List[np.ndarray]:
        """Trace ``f(x, y) = 0`` over ``domain = (xmin, xmax, ymin, ymax)``.

        Parameters
        ----------
        f : callable
            ``f(x, y)``; called with NumPy arrays, and with floats when an
            array call raises.
        domain : sequence of four floats
            ``(xmin, xmax, ymin, ymax)``.
        resolution : (int, int)
            Target pixel size ``(width, height)``; about one cell per 8 pixels.
        fast : bool
            Use the coarse fixed grid.
        finish : callable, optional
            Receives the flat list of :class:`PathPoint` before returning.

        Returns
        -------
        list of numpy.ndarray
            One ``(N, 2)`` array of ``(x, y)`` rows per polyline. Closed loops
            repeat their first point at the end.

        Raises
        ------
        RuntimeError
            If called while a trace is already running on this tracer.
        ValueError
            If the domain is empty or the resolution is not positive.
        """
        if self._busy:
            raise RuntimeError("ImplicitTracer.trace() is not reentrant")
        xmin, xmax, ymin, ymax = (float(v) for v in domain)
        if not (xmin < xmax and ymin < ymax):
            raise ValueError(f"Invalid domain {tuple(domain)}")
        columns, rows = self.grid_shape(resolution, fast)

        self._busy = True
        try:
            self._f = f
            self._arena = _ChainArena(self.tolerance, self.max_open_chains)
            xs = np.linspace(xmin, xmax, columns + 1)
            ys = np.linspace(ymin, ymax, rows + 1)
            gx, gy = np.meshgrid(xs, ys)
            values = _sample(f, gx, gy)
            grid = self._cells(columns, rows)

            pending: List[GridCell] = []
            for j in range(rows):
                for i in range(columns):
                    cell = grid[j][i].set(
                        xs[i], ys[j], xs[i + 1], ys[j + 1],
                        values[j + 1, i], values[j + 1, i + 1], values[j, i + 1], values[j, i],
                    )
                    if not cell.status.empty:
                        self._refine(cell, self.shallow_depth, pending)

            logger.debug("Second pass over %d unresolved saddle cell(s)", len(pending))
            for cell in pending:
                self._refine(cell, self.max_depth, None)

            chains = self._arena.finish()
            if self._arena.forced_flushes:
                logger.debug("Flushed %d open chain(s) early", self._arena.forced_flushes)
            polylines = [np.asarray(chain, dtype=float) for chain in chains]
            if finish is not None:
                finish(_flatten(chains))
            return polylines
        finally:
            self._f = None
            self._arena = None
            self._busy = False

    def _refine(self, cell: GridCell, limit: int, pending: Optional[List[GridCell]]) -> None:
        code = cell.code
        if code not in SADDLE_CODES:
            self._emit(cell, EDGE_TABLE[code])
            return
        if cell.depth >= limit:
            if pending is not None and limit < self.max_depth:
                pending.append(cell)
                return
            self._emit(cell, SADDLE_TABLE[(code, self._centre_positive(cell))])
            return
        for child in cell.split(self._f):
            if not child.status.empty:
                self._refine(child, limit, pending)

    def _centre_positive(self, cell: GridCell) -> bool:
        cx, cy = cell.center
        value = float(_sample(self._f, np.array([cx]), np.array([cy]))[0])
        if math.isnan(value):
            value = 0.25 * (cell.nw + cell.ne + cell.se + cell.sw)
        return value > 0

    def _emit(self, cell: GridCell, edges: Iterable[Tuple[str, str]]) -> None:
        for a, b in edges:
            self._arena.add(cell.edge_point(a), cell.edge_point(b))


def _flatten(chains: Iterable[Sequence[Coord]]) -> List[PathPoint]:
    path: List[PathPoint] = []
    for chain in chains:
        for k, (x, y) in enumerate(chain):
            path.append(PathPoint(float(x), float(y), k > 0))
    return path


def paths_to_polylines(path: Iterable[PathPoint]) -> List[np.ndarray]:
    """Split a flat :class:`PathPoint` list into one ``(N, 2)`` array per subpath."""
    polylines: List[np.ndarray] = []
    current: List[Coord] = []
    for point in path:
        if not point.continues and current:
            polylines.append(np.asarray(current, dtype=float))
            current = []
        current.append((point.x, point.y))
    if current:
        polylines.append(np.asarray(current, dtype=float))
    return polylines


_default_tracer = ImplicitTracer()


def trace_implicit(
    f: Function2D,
    domain: Sequence[float],
    resolution: Sequence[int] = (600, 600),
    *,
    fast: bool = False,
    finish: Optional[Callable[[List[PathPoint]], Any]] = None,
) -> List[np.ndarray]:
    """Trace ``f(x, y) = 0`` with the shared module-level tracer.

    See :meth:`ImplicitTracer.trace`.
    """
    return _default_tracer.trace(f, domain, resolution, fast=fast, finish=finish)

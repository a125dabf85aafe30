"""Marching-squares tracing of implicit curves."""

from __future__ import annotations

import numpy as np
import pytest

from relgraph import implicit as implicit_module
from relgraph.expression import compile_expression
from relgraph.implicit import (
    EDGE_TABLE,
    SADDLE_CODES,
    SADDLE_TABLE,
    CellStatus,
    GridCell,
    ImplicitTracer,
    paths_to_polylines,
    trace_implicit,
)


def _circle(radius: float):
    return lambda x, y: x**2 + y**2 - radius**2


def test_circle_is_one_closed_loop_near_the_true_curve() -> None:
    polylines = ImplicitTracer().trace(_circle(2.0), (-3, 3, -3, 3), (400, 400))

    assert len(polylines) == 1
    (loop,) = polylines
    assert loop.shape[1] == 2
    assert np.allclose(loop[0], loop[-1])
    assert np.allclose(np.hypot(loop[:, 0], loop[:, 1]), 2.0, atol=0.01)


def test_unit_circle_with_compiled_expression() -> None:
    f = compile_expression("x^2+y^2-1", ("x", "y"))
    polylines = trace_implicit(f, (-2, 2, -2, 2))
    points = np.vstack(polylines)
    assert np.allclose(np.hypot(points[:, 0], points[:, 1]), 1.0, atol=0.01)


def test_fast_mode_uses_the_coarse_grid() -> None:
    tracer = ImplicitTracer()
    assert tracer.grid_shape((600, 600), fast=True) == (8, 8)
    assert tracer.grid_shape((600, 450)) == (75, 57)

    polylines = tracer.trace(_circle(2.0), (-3, 3, -3, 3), fast=True)
    points = np.vstack(polylines)
    assert np.allclose(np.hypot(points[:, 0], points[:, 1]), 2.0, atol=0.1)


def test_no_zero_crossing_gives_no_polylines() -> None:
    assert trace_implicit(lambda x, y: x**2 + y**2 + 1, (-1, 1, -1, 1)) == []


def test_undefined_regions_are_skipped() -> None:
    f = compile_expression("y - ln(x)", ("x", "y"))
    polylines = trace_implicit(f, (-2, 3, -2, 2), (200, 200))
    points = np.vstack(polylines)
    assert np.all(points[:, 0] > 0)
    right = points[points[:, 0] > 0.5]
    assert len(right)
    assert np.allclose(right[:, 1], np.log(right[:, 0]), atol=0.05)


def test_finish_receives_the_flat_path() -> None:
    received = []
    polylines = trace_implicit(_circle(1.0), (-2, 2, -2, 2), (100, 100), finish=received.extend)

    assert received
    assert received[0].continues is False
    assert all(p.continues for p in received[1 : len(polylines[0])])
    rebuilt = paths_to_polylines(received)
    assert len(rebuilt) == len(polylines)
    for a, b in zip(rebuilt, polylines):
        assert np.array_equal(a, b)


def test_trace_is_not_reentrant() -> None:
    tracer = ImplicitTracer()

    def finish(_path) -> None:
        tracer.trace(_circle(1.0), (-2, 2, -2, 2))

    with pytest.raises(RuntimeError, match="not reentrant"):
        tracer.trace(_circle(1.0), (-2, 2, -2, 2), finish=finish)
    # the tracer is usable again afterwards
    assert tracer.trace(_circle(1.0), (-2, 2, -2, 2), (100, 100))


def test_invalid_domain_and_resolution() -> None:
    tracer = ImplicitTracer()
    with pytest.raises(ValueError):
        tracer.trace(_circle(1.0), (2, -2, -2, 2))
    with pytest.raises(ValueError):
        tracer.trace(_circle(1.0), (-2, 2, -2, 2), (0, 100))


def test_cell_status_emptiness_rule() -> None:
    status = CellStatus()
    status.assess([1.0, 2.0, 3.0, 4.0])
    assert status.empty
    status.assess([1.0, -1.0, 1.0, 1.0])
    assert not status.empty
    status.assess([0.0, 0.0, 0.0, 1.0])
    assert status.empty
    status.assess([np.nan, -1.0, 1.0, 1.0])
    assert status.empty


def test_lookup_tables_cover_every_code() -> None:
    assert set(EDGE_TABLE) | set(SADDLE_CODES) == set(range(16))
    assert EDGE_TABLE[0] == EDGE_TABLE[15] == ()
    for code in SADDLE_CODES:
        assert len(SADDLE_TABLE[(code, True)]) == 2
        assert len(SADDLE_TABLE[(code, False)]) == 2


def test_saddle_cell_is_subdivided_into_two_branches(monkeypatch) -> None:
    split_codes = []
    original_split = GridCell.split

    def recording_split(self, f):
        split_codes.append(self.code)
        return original_split(self, f)

    monkeypatch.setattr(GridCell, "split", recording_split)

    def f(x, y):
        return x * y - 0.001

    # 9x9 cells: the centre cell straddles the origin with a saddle sign pattern
    polylines = ImplicitTracer().trace(f, (-1, 1, -1, 1), (72, 72))

    assert set(split_codes) & set(SADDLE_CODES)
    assert len(polylines) == 2
    for line in polylines:
        assert np.allclose(f(line[:, 0], line[:, 1]), 0.0, atol=1e-9)
        # each branch stays in one quadrant
        assert np.all(line[:, 0] * line[:, 1] > 0)


def test_separately_started_arms_are_joined(monkeypatch) -> None:
    joins = []
    original_join = implicit_module._ChainArena._join

    def recording_join(self, at_p, at_q):
        joins.append((at_p, at_q))
        return original_join(self, at_p, at_q)

    monkeypatch.setattr(implicit_module._ChainArena, "_join", recording_join)

    def f(x, y):
        return y + x**2 - 0.5

    # both arms enter through the sides and only meet at the apex
    polylines = ImplicitTracer().trace(f, (-1, 1, -1, 1))

    assert joins
    assert len(polylines) == 1
    (arc,) = polylines
    assert np.allclose(f(arc[:, 0], arc[:, 1]), 0.0, atol=1e-3)
    assert {round(abs(arc[0, 0]), 6), round(abs(arc[-1, 0]), 6)} == {1.0}


def test_open_chain_limit_flushes_chains_early() -> None:
    def f(x, y):
        return np.sin(5 * x) * np.sin(5 * y) - 0.5

    domain = (-2, 2, -2, 2)
    default = ImplicitTracer().trace(f, domain)
    limited = ImplicitTracer(max_open_chains=2).trace(f, domain)

    assert len(limited) > len(default)
    for line in limited:
        assert len(line) >= 2
        assert np.allclose(f(line[:, 0], line[:, 1]), 0.0, atol=0.05)
    assert len(np.vstack(limited)) >= len(np.vstack(default))

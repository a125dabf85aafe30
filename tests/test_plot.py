"""End-to-end plotting of relations onto a surface."""

from __future__ import annotations

import numpy as np
import pytest

from relgraph.functions import RelationKind
from relgraph.plot import (
    get_plot_piece,
    plot,
    plot_endpoint,
    plot_function,
    plot_point,
    remove_pieces,
)
from relgraph.surface import Surface


def _surface() -> Surface:
    return Surface(x_range=(-10, 10), y_range=(-10, 10), width_px=200, height_px=200)


def test_restricted_function_gets_endpoint_circles() -> None:
    surface = _surface()
    (piece,) = plot(surface, "y = 2x+5 (-2, 5]")

    assert piece.kind == "curve"
    assert piece.relation_kind is RelationKind.FUNCTION_OF_X
    assert piece.curve.visible
    assert piece.lower_endpoint.solid is False
    assert piece.lower_endpoint.coords == pytest.approx((-2.0, 1.0))
    assert piece.upper_endpoint.solid is True
    assert piece.upper_endpoint.coords == pytest.approx((5.0, 15.0))

    x, y = piece.curve.x, piece.curve.y
    assert np.all(np.isnan(y[x < -2]))
    assert np.all(np.isnan(y[x > 5]))
    assert y[np.argmin(np.abs(x))] == pytest.approx(5.0)


def test_replot_updates_handles_in_place() -> None:
    surface = _surface()
    pieces = plot(surface, "y = 2x+5 (-2, 5]")
    piece = pieces[0]
    curve, lower, upper = piece.curve, piece.lower_endpoint, piece.upper_endpoint
    traces = len(surface.figure.data)

    again = plot(surface, "y = 2x+5 [-2, 3)", pieces=pieces)

    assert again[0] is piece
    assert piece.curve is curve
    assert piece.lower_endpoint is lower
    assert piece.upper_endpoint is upper
    assert lower.solid is True
    assert upper.solid is False
    assert upper.coords == pytest.approx((3.0, 11.0))
    assert len(surface.figure.data) == traces


def test_piecewise_relation_draws_every_segment() -> None:
    surface = _surface()
    pieces = plot(surface, "{ 2x (-oo,4); x^2-1 [4, 5]; -x+4 (5,oo) }")

    assert [p.active for p in pieces] == [True, True, True]
    first, middle, last = pieces
    assert first.lower_endpoint is None
    assert first.upper_endpoint.solid is False
    assert middle.lower_endpoint.solid and middle.upper_endpoint.solid
    assert middle.upper_endpoint.coords == pytest.approx((5.0, 24.0))
    assert last.lower_endpoint.coords == pytest.approx((5.0, -1.0))
    assert last.upper_endpoint is None


def test_leftover_pieces_stay_hidden_for_reuse() -> None:
    surface = _surface()
    pieces = plot(surface, "{ 2x (-oo,4); x^2-1 [4, 5]; -x+4 (5,oo) }")
    again = plot(surface, "y = x", pieces=pieces)

    assert len(again) == 3
    assert again[0].active
    assert not again[1].active and not again[2].active
    assert not again[1].curve.visible
    assert not again[1].lower_endpoint.visible


def test_points_are_solid_or_hollow() -> None:
    surface = _surface()
    (solid,) = plot(surface, "(2, 5)")
    (hollow,) = plot(surface, "[2, 5]")

    assert solid.kind == "point"
    assert solid.coords == (2.0, 5.0)
    assert solid.point.fill_color == solid.point.color
    assert hollow.solid is False
    assert hollow.point.fill_color == "white"


def test_removable_hole_is_a_hollow_circle() -> None:
    surface = _surface()
    pieces = plot(surface, "{ (x^2-1)/(x-1); x != 1 }")

    curve, asymptote = pieces
    assert asymptote.kind == "asymptote"
    assert asymptote.segment is None
    assert asymptote.hole.solid is False
    assert asymptote.hole.coords == pytest.approx((1.0, 2.0), abs=1e-4)
    assert not np.any(curve.curve.x[~np.isnan(curve.curve.y)] == 1.0)


def test_pole_is_a_dashed_vertical_line() -> None:
    surface = _surface()
    pieces = plot(surface, "{ 1/x; x != 0 }")

    asymptote = pieces[-1]
    assert asymptote.hole is None
    assert asymptote.segment.visible
    assert asymptote.segment.dash == "dash"
    assert asymptote.segment.start == (0.0, -10.0)
    assert asymptote.segment.end == (0.0, 10.0)


def test_implicit_relation_is_traced_into_contours() -> None:
    surface = _surface()
    pieces = plot(surface, "x^2+y^2=4")

    (piece,) = pieces
    assert piece.relation_kind is RelationKind.IMPLICIT
    assert piece.contours
    old = list(piece.contours)
    for contour in old:
        radius = np.hypot(contour.x, contour.y)
        assert np.allclose(radius, 2.0, atol=0.1)

    plot(surface, "x^2+y^2=9", pieces=pieces)
    assert all(contour.removed for contour in old)
    assert all(np.allclose(np.hypot(c.x, c.y), 3.0, atol=0.1) for c in piece.contours)


def test_other_families() -> None:
    surface = _surface()
    polar, parametric, sequence, sideways = plot(
        surface, "{ r = 2; <cos(t), sin(t)> [0, pi]; a = 1/n [1, 5]; x = y^2 }"
    )

    assert polar.relation_kind is RelationKind.POLAR
    assert np.allclose(np.hypot(polar.curve.x, polar.curve.y), 2.0)

    assert parametric.relation_kind is RelationKind.PARAMETRIC
    assert parametric.lower_endpoint.coords == pytest.approx((1.0, 0.0))
    assert parametric.upper_endpoint.coords == pytest.approx((-1.0, 0.0), abs=1e-9)

    assert sequence.curve.mode == "markers"
    assert sequence.curve.x.tolist() == [1.0, 2.0, 3.0, 4.0, 5.0]
    assert sequence.curve.y.tolist() == pytest.approx([1.0, 0.5, 1 / 3, 0.25, 0.2])

    assert sideways.relation_kind is RelationKind.FUNCTION_OF_Y
    assert np.allclose(sideways.curve.x, sideways.curve.y**2)


def test_bad_segments_are_skipped() -> None:
    surface = _surface()
    pieces = plot(surface, "{ y = x; z = a+b+c; y = 2x+* }")
    assert len(pieces) == 1
    assert pieces[0].relation == "x"


def test_style_options() -> None:
    surface = _surface()
    (piece,) = plot(surface, "y = x", color="red", dashed=True, thickness=3)
    assert piece.curve.color == "red"
    assert piece.curve.dash == "dash"
    assert piece.curve.width == 3.0
    with pytest.raises(ValueError):
        plot(surface, "y = x", width=2, thickness=3)


def test_remove_pieces_clears_the_figure() -> None:
    surface = _surface()
    pieces = plot(surface, "{ y = 2x+5 (-2, 5]; (1, 1) }")
    assert get_plot_piece(pieces) is pieces[0]
    remove_pieces(surface, pieces)
    assert len(surface.figure.data) == 0
    assert pieces[0].curve is None and pieces[1].point is None


def test_plot_function_hides_markers_that_leave_the_view() -> None:
    surface = _surface()
    piece = plot_function(surface, "y = x^2 [-3, 2]", color="green")
    assert piece.curve.color == "green"
    assert piece.lower_endpoint.coords == pytest.approx((-3.0, 9.0))
    assert piece.upper_endpoint.coords == pytest.approx((2.0, 4.0))
    lower = piece.lower_endpoint

    again = plot_function(surface, "y = x^2 [-30, 2]", piece=piece)
    assert again is piece
    assert piece.lower_endpoint is lower
    assert not lower.visible
    assert piece.upper_endpoint.visible


def test_plot_endpoint_and_point_reuse_handles() -> None:
    surface = _surface()
    marker = plot_endpoint(surface, (1, 2), True, "red")
    assert plot_endpoint(surface, (3, 4), False, "red", marker) is marker
    assert marker.coords == (3.0, 4.0)
    assert marker.solid is False

    piece = plot_point(surface, (0, 0), solid=False)
    assert plot_point(surface, (1, 1), piece=piece).point is piece.point
    assert piece.coords == (1.0, 1.0)
    assert piece.solid is True


def test_space_free_restriction_plots_with_endpoints() -> None:
    surface = _surface()
    (piece,) = plot(surface, "y=2x+5(-2,5]")
    assert piece.relation_kind is RelationKind.FUNCTION_OF_X
    assert piece.lower_endpoint.coords == pytest.approx((-2.0, 1.0))
    assert piece.upper_endpoint.solid is True

"""Interval notation: splitting, endpoints, points and holes."""

from __future__ import annotations

import math

import numpy as np
import pytest

from relgraph.interval import (
    Interval,
    get_endpoints,
    get_hole_value,
    get_interval,
    get_lower_endpoint,
    get_upper_endpoint,
    is_asymptote,
    is_between,
    is_closed_point,
    is_interval,
    is_open_point,
    is_point,
    lower_bound_closed,
    lower_bound_open,
    parse_restriction,
    remove_interval,
    splice_interval,
    split_pieces,
    upper_bound_closed,
    upper_bound_open,
)


def test_splice_interval_splits_expression_and_restriction() -> None:
    assert splice_interval("y=2x+5 (-2,5]") == ("y=2x+5", "(-2,5]")
    assert get_endpoints("(-2,5]") == (-2.0, 5.0)
    assert lower_bound_open("(-2,5]")
    assert upper_bound_closed("(-2,5]")


def test_on_keyword_is_removed_with_the_restriction() -> None:
    assert remove_interval("y = x^2 on [0, oo)") == "y = x^2"
    assert get_interval("y = x^2 on [0, oo)") == "[0, oo)"


def test_relation_without_restriction_is_unchanged() -> None:
    assert remove_interval("y = x^2") == "y = x^2"
    assert get_interval("y = x^2") == ""
    assert get_endpoints("") == (-math.inf, math.inf)


def test_function_call_arguments_are_not_an_interval() -> None:
    assert get_interval("y = atan2(1,x)") == ""
    assert remove_interval("y = atan2(1,x)") == "y = atan2(1,x)"


def test_endpoint_sides_are_expressions() -> None:
    lower, upper = get_endpoints("[pi/2, 2^3)")
    assert lower == pytest.approx(math.pi / 2)
    assert upper == pytest.approx(8.0)
    assert get_endpoints("(-inf, oo)") == (-math.inf, math.inf)


def test_point_detection() -> None:
    assert is_point("(2, 5)")
    assert is_point("[2,5]")
    assert is_closed_point("(2, 5)")
    assert is_open_point("[2, 5]")
    assert not is_point("(2, 5]")
    assert not is_point("(-oo, 5)")
    assert not is_point("y = 2x")


def test_hole_restriction() -> None:
    assert is_asymptote("x != 2")
    assert get_hole_value("x != 2") == pytest.approx(2.0)
    assert math.isnan(get_hole_value("(1, 2)"))
    interval = Interval.from_restriction("x != 2")
    assert not interval.contains(2.0)
    assert interval.contains(2.5)


def test_split_pieces_respects_brackets() -> None:
    pieces = split_pieces("{ 2x (-oo,4); x^2-1 [4, 5]; -x+4 (5,oo) }")
    assert pieces == ["2x (-oo,4)", "x^2-1 [4, 5]", "-x+4 (5,oo)"]


def test_is_between_open_and_closed() -> None:
    assert not is_between(10, 0, 10)
    assert is_between(10, 0, 10, True)
    assert not is_between(1, 5, 0, True)


def test_interval_contains_is_elementwise() -> None:
    interval = Interval.from_restriction("(-2, 5]")
    mask = interval.contains(np.array([-2.0, 0.0, 5.0, 6.0]))
    assert mask.tolist() == [False, True, True, False]


def test_inverted_interval_is_empty() -> None:
    interval = Interval.from_restriction("[5, 1]")
    assert interval.is_empty
    assert not interval.contains(3.0)


def test_interval_text_round_trips() -> None:
    interval = Interval.from_restriction("(-2, 5]")
    assert str(interval) == "(-2, 5]"
    assert Interval.from_restriction(str(interval)) == interval
    assert str(Interval.from_restriction("[0, oo)")) == "[0, oo)"


def test_clamp_replaces_infinite_bounds() -> None:
    assert Interval.from_restriction("[0, oo)").clamp(-10, 10) == (0.0, 10)


def test_parse_restriction_gives_expression_and_interval() -> None:
    expression, interval = parse_restriction("y = 2x+5 [-2, 3)")
    assert expression == "y = 2x+5"
    assert interval == Interval(lower=-2.0, upper=3.0, lower_closed=True, upper_closed=False)

    expression, interval = parse_restriction("y = x")
    assert expression == "y = x"
    assert interval.is_universal


def test_single_endpoint_helpers_and_bracket_predicates() -> None:
    assert get_lower_endpoint("[1, 4)") == 1.0
    assert get_upper_endpoint("[1, 4)") == 4.0
    assert get_upper_endpoint("(0, oo)") == math.inf
    assert math.isnan(get_lower_endpoint("(a, 2)"))

    assert is_interval("[1, 4)")
    assert not is_interval("y = 2x")
    assert lower_bound_closed("[1, 4)") and not lower_bound_open("[1, 4)")
    assert upper_bound_open("[1, 4)") and not upper_bound_closed("[1, 4)")
    assert not upper_bound_open("x != 1")


def test_on_keyword_glued_to_the_expression() -> None:
    assert remove_interval("y=2x+5on (1.8,-2.5)") == "y=2x+5"
    assert get_interval("y=2x+5on (1.8,-2.5)") == "(1.8,-2.5)"
    assert remove_interval("r=sin(2t)on(0,2pi)") == "r=sin(2t)"
    assert get_interval("r=sin(2t)on(0,2pi)") == "(0,2pi)"


def test_space_free_restriction_without_lead_in() -> None:
    assert splice_interval("y=2x+5(-2,5]") == ("y=2x+5", "(-2,5]")
    assert splice_interval("y=x^2[0,3)") == ("y=x^2", "[0,3)")
    assert splice_interval("y=1/x(0,oo)") == ("y=1/x", "(0,oo)")
    # a plain "(a,b)" glued to a name stays a call
    assert splice_interval("y=atan2(1,x)") == ("y=atan2(1,x)", "")

"""Relation classification and equation rewriting."""

from __future__ import annotations

import pytest

from relgraph.functions import (
    RelationKind,
    classify,
    convert_implicit_equation,
    get_function_name,
    get_variables,
    is_implicit_equation,
    remove_function_name,
    split_equation,
    split_parametric,
)


@pytest.mark.parametrize(
    ("relation", "kind"),
    [
        ("y=2x-5", RelationKind.FUNCTION_OF_X),
        ("2x-5", RelationKind.FUNCTION_OF_X),
        ("f(x) = x^2", RelationKind.FUNCTION_OF_X),
        ("y = 2x+5 (-2, 5]", RelationKind.FUNCTION_OF_X),
        ("x = y^2", RelationKind.FUNCTION_OF_Y),
        ("g(y) = 3y", RelationKind.FUNCTION_OF_Y),
        ("r = 2cos(t)", RelationKind.POLAR),
        ("<2t, -8t-1> (-4, 3]", RelationKind.PARAMETRIC),
        ("a = 1/n", RelationKind.SEQUENCE),
        ("x^2+x*y^3=4", RelationKind.IMPLICIT),
        ("x^2+y^2=4", RelationKind.IMPLICIT),
        ("(2, 5)", RelationKind.POINT),
        ("[2, 5]", RelationKind.POINT),
        ("x != 3", RelationKind.ASYMPTOTE),
        ("z = a+b+c", RelationKind.UNKNOWN),
    ],
)
def test_classify_kinds(relation: str, kind: RelationKind) -> None:
    assert classify(relation).kind is kind


def test_classification_carries_variable_and_target() -> None:
    result = classify("f(t) = t^2")
    assert result.kind is RelationKind.FUNCTION_OF_X
    assert result.variable == "t"
    assert result.target_name == "f"
    assert classify("y = 2t", variable="t").variable == "t"


def test_classify_is_idempotent_under_restriction_removal() -> None:
    assert classify("y = 2x+5 (-2, 5]") == classify("y = 2x+5")


def test_split_equation_ignores_comparisons() -> None:
    assert split_equation("y = 2x") == ("y", "2x")
    assert split_equation("x != 2") == (None, "x != 2")
    assert split_equation("2x") == (None, "2x")


def test_split_parametric_needs_one_top_level_comma() -> None:
    assert split_parametric("<cos(t), sin(t)>") == ("cos(t)", "sin(t)")
    assert split_parametric("<atan2(t, 1), t>") == ("atan2(t, 1)", "t")
    assert split_parametric("<t>") is None


def test_function_name_helpers() -> None:
    assert get_function_name("y=2x") == "y"
    assert get_function_name("f(x) = x^2 [0, 1]") == "f"
    assert get_function_name("2x") == ""
    assert remove_function_name("f(x) = x^2") == "x^2"
    assert remove_function_name("x^2+y^2=4") == "x^2+y^2=4"


def test_get_variables_skips_constants_and_functions() -> None:
    assert get_variables("y = sin(x) + e + pi") == ("x",)
    assert get_variables("f(t) = 3") == ("t",)
    assert get_variables("x^2+x*y^3=4") == ("x", "y")


def test_implicit_equation_helpers() -> None:
    assert is_implicit_equation("x^2+y^2=4")
    assert not is_implicit_equation("y = x^2")
    assert convert_implicit_equation("x^2+y^2=4") == "x^2+y^2-4"
    assert convert_implicit_equation("x*y = 2x-y") == "x*y-2x+y"
    assert convert_implicit_equation("x = 2^-y") == "x-2^-y"
    assert convert_implicit_equation("x = 1e-3y") == "x-1e-3y"


def test_space_free_restriction_is_a_function_of_x() -> None:
    assert classify("y=2x+5(-2,5]").kind is RelationKind.FUNCTION_OF_X
    assert classify("y=2x+5on (1.8,3)").kind is RelationKind.FUNCTION_OF_X

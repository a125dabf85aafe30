"""Relation classification.

:func:`classify` decides which plot family a relation belongs to by looking at
its assignment target and its free variables. Rules are applied in order and
the first match wins:

====================================================  ==================
Relation                                              Kind
====================================================  ==================
``(a, b)`` or ``[a, b]``                              POINT
``x != c``                                            ASYMPTOTE
``<x(t), y(t)>``, free variables within ``{t}``       PARAMETRIC
target ``y`` (or none), free vars within ``{x}``      FUNCTION_OF_X
target ``x`` (or none), free vars within ``{y}``      FUNCTION_OF_Y
target ``r``, free vars within ``{t}``                POLAR
other named target, free vars within ``{n}``          SEQUENCE
exactly two free variables                            IMPLICIT
not parseable                                         IMPLICIT
anything else                                         UNKNOWN
====================================================  ==================

Function-assignment forms (``f(x) = ...``, ``g(y) = ...``) use the declared
argument as the independent variable.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import re
from typing import FrozenSet, Optional, Tuple

from .expression import KNOWN_CONSTANTS, KNOWN_FUNCTIONS, RelationParseError, free_variable_names, parse_math
from .interval import is_asymptote, is_point, remove_interval

__all__ = [
    "RelationKind",
    "Classification",
    "classify",
    "get_variables",
    "get_function_name",
    "remove_function_name",
    "split_equation",
    "split_parametric",
    "is_implicit_equation",
    "convert_implicit_equation",
]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class RelationKind(str, Enum):
    POINT = "point"
    ASYMPTOTE = "asymptote"
    FUNCTION_OF_X = "function_of_x"
    FUNCTION_OF_Y = "function_of_y"
    POLAR = "polar"
    PARAMETRIC = "parametric"
    SEQUENCE = "sequence"
    IMPLICIT = "implicit"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Classification:
    """Result of :func:`classify`.

    ``variable`` is the independent variable (the horizontal axis variable for
    implicit relations), ``target_name`` the assigned name or ``""`` and
    ``variables`` the sorted free variable names.
    """

    kind: RelationKind
    variable: str = "x"
    target_name: str = ""
    variables: Tuple[str, ...] = ()


_NAME_TARGET = re.compile(r"^\s*(?P<name>[a-z]\w*)\s*$", re.IGNORECASE)
_FUNCTION_TARGET = re.compile(r"^\s*(?P<name>[a-z]\w*)\s*\(\s*(?P<arg>[a-z]\w*)\s*\)\s*$", re.IGNORECASE)
_PARAMETRIC = re.compile(r"^\s*<(?P<body>.*)>\s*$", re.DOTALL)
_IMPLICIT_AXES: Tuple[str, str] = ("x", "y")


def split_equation(relation: str) -> Tuple[Optional[str], str]:
    """Split at the first ``=`` into ``(lhs, rhs)``; ``lhs`` is None without one.

    ``!=``, ``<=`` and ``>=`` are not treated as assignments.
    """
    for i, ch in enumerate(relation):
        if ch != "=":
            continue
        before = relation[i - 1] if i > 0 else ""
        after = relation[i + 1] if i + 1 < len(relation) else ""
        if (before and before in "!<>=") or after == "=":
            continue
        return relation[:i].strip(), relation[i + 1 :].strip()
    return None, relation.strip()


def _top_level_commas(text: str) -> list[int]:
    depth = 0
    commas = []
    for i, ch in enumerate(text):
        if ch in "([{<":
            depth += 1
        elif ch in ")]}>":
            depth -= 1
        elif ch == "," and depth == 0:
            commas.append(i)
    return commas


def split_parametric(relation: str) -> Optional[Tuple[str, str]]:
    """Return ``(x_of_t, y_of_t)`` for ``<x(t), y(t)>``, else None."""
    match = _PARAMETRIC.match(relation)
    if not match:
        return None
    body = match.group("body")
    commas = _top_level_commas(body)
    if len(commas) != 1:
        return None
    return body[: commas[0]].strip(), body[commas[0] + 1 :].strip()


def get_function_name(relation: str) -> str:
    """Return the assigned name of ``relation`` (``y`` in ``y=...``, ``f`` in ``f(x)=...``)."""
    lhs, _ = split_equation(remove_interval(relation))
    if lhs is None:
        return ""
    for pattern in (_NAME_TARGET, _FUNCTION_TARGET):
        match = pattern.match(lhs)
        if match:
            return match.group("name").lower()
    return ""


def _declared_argument(relation: str) -> str:
    lhs, _ = split_equation(relation)
    match = _FUNCTION_TARGET.match(lhs) if lhs is not None else None
    return match.group("arg").lower() if match else ""


def remove_function_name(relation: str) -> str:
    """Return the right hand side of an assignment, or ``relation`` itself."""
    lhs, rhs = split_equation(relation)
    if lhs is None:
        return relation.strip()
    if _NAME_TARGET.match(lhs) or _FUNCTION_TARGET.match(lhs):
        return rhs
    return relation.strip()


def get_variables(relation: str) -> Tuple[str, ...]:
    """Return the sorted free variable names of ``relation``.

    Constants (``e``, ``pi``, ``i``), known function names and the assignment
    target are not variables. A function-assignment argument is.

    Raises
    ------
    RelationParseError
        If a side of the relation cannot be parsed.
    """
    text = remove_interval(relation)
    parametric = split_parametric(text)
    if parametric is not None:
        sides = list(parametric)
    else:
        lhs, rhs = split_equation(text)
        sides = [rhs]
        if lhs is not None and not (_NAME_TARGET.match(lhs) or _FUNCTION_TARGET.match(lhs)):
            sides.append(lhs)
    names: set[str] = set()
    for side in sides:
        names.update(free_variable_names(parse_math(side)))
    argument = _declared_argument(text)
    if argument:
        names.add(argument)
    return tuple(sorted(names - KNOWN_CONSTANTS - KNOWN_FUNCTIONS))


def is_implicit_equation(relation: str) -> bool:
    """Return True if ``relation`` does not parse as an explicit expression."""
    try:
        parse_math(remove_function_name(remove_interval(relation)))
    except RelationParseError:
        return True
    return False


def _is_term_sign(text: str, i: int) -> bool:
    """Return True if the sign at ``text[i]`` starts a new term."""
    head = text[:i].rstrip()
    previous = head[-1:]
    if previous in ("*", "/", "^"):
        return False
    # exponent of a literal such as 1e-5
    if previous in ("e", "E") and head[-2:-1].isdigit() and text[i + 1 : i + 2].isdigit():
        return False
    return True


def _flip_signs(rhs: str) -> str:
    out = []
    depth = 0
    for i, ch in enumerate(rhs):
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        elif ch in "+-" and depth == 0 and _is_term_sign(rhs, i):
            ch = "-" if ch == "+" else "+"
        out.append(ch)
    return "".join(out)


def convert_implicit_equation(relation: str) -> str:
    """Rewrite ``lhs = rhs`` as the single expression ``lhs - (rhs)`` term by term.

    Every top-level signed term on the right hand side has its sign flipped
    and is appended to the left hand side.

    >>> convert_implicit_equation("x^2+y^2=4")
    'x^2+y^2-4'
    >>> convert_implicit_equation("x*y = 2x-y")
    'x*y-2x+y'
    """
    lhs, rhs = split_equation(relation)
    if lhs is None:
        return relation.strip()
    if not rhs.startswith(("+", "-")):
        rhs = "+" + rhs
    return lhs + _flip_signs(rhs)


def _within(variables: FrozenSet[str], allowed: str) -> bool:
    return variables <= {allowed}


def _implicit_axes(variables: Tuple[str, ...]) -> Tuple[str, str]:
    if set(variables) <= set(_IMPLICIT_AXES):
        return _IMPLICIT_AXES
    return variables[0], variables[1]


def classify(relation: str, variable: str = "x") -> Classification:
    """Classify one relation segment.

    Parameters
    ----------
    relation : str
        A single segment; a trailing restriction is ignored.
    variable : str, optional
        Independent variable of bare and ``y = ...`` relations.

    Returns
    -------
    Classification

    Examples
    --------
    >>> classify("y=2x-5").kind
    <RelationKind.FUNCTION_OF_X: 'function_of_x'>
    >>> classify("x^2+x*y^3=4").kind
    <RelationKind.IMPLICIT: 'implicit'>
    """
    text = relation.strip()
    if is_point(text):
        return Classification(RelationKind.POINT, variable="", variables=())
    if is_asymptote(text):
        return Classification(RelationKind.ASYMPTOTE, variable=text.split("!=")[0].strip().lower())

    text = remove_interval(text)
    try:
        variables = get_variables(text)
    except RelationParseError as exc:
        logger.debug("classify(%r): unparseable, treating as implicit (%s)", relation, exc)
        return Classification(RelationKind.IMPLICIT)
    free = frozenset(variables)

    if split_parametric(text) is not None:
        if _within(free, "t"):
            return Classification(RelationKind.PARAMETRIC, "t", "", variables)
        return _unknown(relation, variables)

    target = get_function_name(text)
    argument = _declared_argument(text)
    has_equation = split_equation(text)[0] is not None

    if argument:
        result = _classify_function_assignment(target, argument, free, variables)
        if result is not None:
            return result
    elif not has_equation or target:
        result = _classify_target(target, variable, free, variables)
        if result is not None:
            return result

    if len(variables) == 2 or (has_equation and variables and free <= set(_IMPLICIT_AXES)):
        horizontal, _ = _implicit_axes(variables) if len(variables) == 2 else _IMPLICIT_AXES
        result = Classification(RelationKind.IMPLICIT, horizontal, "", variables)
        logger.debug("classify(%r) -> %s", relation, result)
        return result
    return _unknown(relation, variables)


def _classify_target(
    target: str, variable: str, free: FrozenSet[str], variables: Tuple[str, ...]
) -> Optional[Classification]:
    if target in ("", "y") and _within(free, variable):
        return Classification(RelationKind.FUNCTION_OF_X, variable, "y", variables)
    if target in ("", "x") and _within(free, "y"):
        return Classification(RelationKind.FUNCTION_OF_Y, "y", "x", variables)
    if target == "r" and _within(free, "t"):
        return Classification(RelationKind.POLAR, "t", "r", variables)
    if target not in ("", "x", "y", "r"):
        if "n" in free and _within(free, "n"):
            return Classification(RelationKind.SEQUENCE, "n", target, variables)
        if _within(free, variable):
            return Classification(RelationKind.FUNCTION_OF_X, variable, target, variables)
    return None


def _classify_function_assignment(
    target: str, argument: str, free: FrozenSet[str], variables: Tuple[str, ...]
) -> Optional[Classification]:
    if not _within(free, argument):
        return None
    if argument == "y":
        return Classification(RelationKind.FUNCTION_OF_Y, "y", target, variables)
    if target == "r" and argument == "t":
        return Classification(RelationKind.POLAR, "t", target, variables)
    if argument == "n":
        return Classification(RelationKind.SEQUENCE, "n", target, variables)
    return Classification(RelationKind.FUNCTION_OF_X, argument, target, variables)


def _unknown(relation: str, variables: Tuple[str, ...]) -> Classification:
    logger.debug("classify(%r): no plot family for variables %s", relation, variables)
    return Classification(RelationKind.UNKNOWN, "", "", variables)

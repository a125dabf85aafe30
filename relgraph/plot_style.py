"""Plot-style option contracts and defaults shared by the plotting helpers.

This module centralizes the discoverable style keyword metadata, the default
values used when a keyword is omitted, and alias resolution rules used by
:func:`relgraph.plot.plot` and the per-family helpers. Keeping them here gives
tests a single place to lock style semantics.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

PLOT_STYLE_OPTIONS: dict[str, str] = {
    "color": "Line and marker color. Accepts CSS-like names (e.g., red), hex (#RRGGBB), or rgb()/rgba() strings.",
    "width": "Line width in pixels. Larger values draw thicker lines.",
    "thickness": "Alias for width.",
    "dashed": "Draw the curve with a dashed line pattern instead of a solid one.",
    "density": "Parameter step for polar and parametric sampling (default 0.01).",
    "variable": "Independent variable of bare expressions and y = f(...) relations.",
    "size": "Marker size of points and endpoint circles, in pixels.",
}

DEFAULT_COLOR = "blue"
DEFAULT_WIDTH = 2.0
DEFAULT_DENSITY = 0.01
DEFAULT_POINT_SIZE = 8.0
DEFAULT_VARIABLE = "x"
DASH_SETTING = "dash"
SOLID_SETTING = "solid"
HOLLOW_FILL = "white"

POLAR_T_RANGE: tuple[float, float] = (0.0, 2.0 * math.pi)
POLAR_T_LIMIT = 12.0 * math.pi

# Upper bound on parameter samples per curve.
MAX_SAMPLES = 200_000


@dataclass(frozen=True)
class PlotStyle:
    """Resolved style values for one :func:`relgraph.plot.plot` call."""

    color: str = DEFAULT_COLOR
    width: float = DEFAULT_WIDTH
    dashed: bool = False
    density: float = DEFAULT_DENSITY
    size: float = DEFAULT_POINT_SIZE

    @property
    def dash(self) -> str:
        return DASH_SETTING if self.dashed else SOLID_SETTING


def resolve_style_aliases(
    *,
    width: int | float | None,
    thickness: int | float | None,
) -> int | float | None:
    """Resolve the ``width``/``thickness`` alias pair into one value.

    Raises
    ------
    ValueError
        If alias and canonical values are both provided with different values.
    """
    if thickness is not None:
        if width is not None and width != thickness:
            raise ValueError(
                "plot() received both width= and thickness= with different values; use only one."
            )
        width = thickness if width is None else width
    return width


def resolve_style(
    *,
    color: Optional[str] = None,
    width: int | float | None = None,
    thickness: int | float | None = None,
    dashed: Optional[bool] = None,
    density: int | float | None = None,
    size: int | float | None = None,
) -> PlotStyle:
    """Fill omitted style values with defaults and validate the rest.

    Raises
    ------
    ValueError
        If ``density``, ``width`` or ``size`` is not a positive number, or the
        width aliases conflict.
    """
    width = resolve_style_aliases(width=width, thickness=thickness)
    style = PlotStyle(
        color=DEFAULT_COLOR if color is None else str(color),
        width=DEFAULT_WIDTH if width is None else float(width),
        dashed=False if dashed is None else bool(dashed),
        density=DEFAULT_DENSITY if density is None else float(density),
        size=DEFAULT_POINT_SIZE if size is None else float(size),
    )
    for name in ("width", "density", "size"):
        value = getattr(style, name)
        if not math.isfinite(value) or value <= 0:
            raise ValueError(f"{name} must be a positive finite number, got {value!r}")
    return style


__all__ = [
    "PLOT_STYLE_OPTIONS",
    "PlotStyle",
    "resolve_style",
    "resolve_style_aliases",
    "DEFAULT_COLOR",
    "DEFAULT_WIDTH",
    "DEFAULT_DENSITY",
    "DEFAULT_POINT_SIZE",
    "DEFAULT_VARIABLE",
    "DASH_SETTING",
    "SOLID_SETTING",
    "HOLLOW_FILL",
    "POLAR_T_RANGE",
    "POLAR_T_LIMIT",
    "MAX_SAMPLES",
]

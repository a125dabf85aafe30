"""Top-level public API for the ``relgraph`` package.

This module re-exports the plotting surface, the relation helpers and the
contour tracer so users can import from a single namespace, for example:

>>> from relgraph import Surface, plot  # doctest: +SKIP

Both the high-level :func:`plot` dispatcher and the lower-level building
blocks (classification, interval parsing, compiled expressions and the
implicit tracer) are exposed for integrations that drive a surface directly.
"""

# Optional explicit module handle to avoid callable/module name ambiguity.
from . import dmath as dmath_module
from .evaluation import evalstr, evaluate
from .expression import (
    KNOWN_CONSTANTS,
    KNOWN_FUNCTIONS,
    CompiledExpression,
    RelationParseError,
    compile_expression,
    parse_math,
)
from .functions import (
    Classification,
    RelationKind,
    classify,
    convert_implicit_equation,
    get_function_name,
    get_variables,
    is_implicit_equation,
    remove_function_name,
)
from .implicit import ImplicitTracer, PathPoint, trace_implicit
from .interval import (
    Interval,
    get_endpoints,
    get_hole_value,
    get_interval,
    is_asymptote,
    is_between,
    is_interval,
    is_point,
    remove_interval,
    splice_interval,
    split_pieces,
)
from .numpify import NumpifiedFunction, numpify, numpify_cached
from .plot import (
    PlotPiece,
    get_plot_piece,
    plot,
    plot_asymptote,
    plot_endpoint,
    plot_function,
    plot_implicit,
    plot_parametric,
    plot_point,
    plot_polar,
    plot_sequence,
    plot_x_function,
    remove_pieces,
)
from .plot_style import PLOT_STYLE_OPTIONS, PlotStyle, resolve_style
from .surface import Bounds, Curve, Point, Segment, Surface


def plot_style_options() -> dict[str, str]:
    """Return the supported ``plot()`` style keywords and their descriptions."""
    return dict(PLOT_STYLE_OPTIONS)

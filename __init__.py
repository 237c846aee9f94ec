"""Top-level public API for the ``xyplot_toolkit`` package.

Re-exports the plotting surface so users can import from a single namespace:

>>> from xyplot_toolkit import XYPlotRegion, determine_large_tick_step  # doctest: +SKIP

Both the high-level region and the lower-level building blocks (sampler,
contour extractor, tick algorithm, oracle) are exposed for hosts that drive
the pieces themselves.
"""

import logging

from .axis_scaler import (
    MANTISSAS,
    MIN_PHYSICAL_TICK_STEP,
    AxisRange,
    TickStep,
    determine_large_tick_step,
    world_to_screen,
)
from .AxisSnapshot import AxisSnapshot, RegionSnapshot
from .contour import Point, Segment, configuration_index, extract_contour
from .diagnostics import (
    Diagnostic,
    DiagnosticLog,
    EvaluationTypeError,
    MatrixShapeError,
    PlotDiagnosticWarning,
    PlotError,
    PlotPolicyError,
    TooManyUnknownsError,
)
from .evaluation import (
    EvalResult,
    EvaluationContext,
    Oracle,
    ResultKind,
    SympyOracle,
    System,
    classify_value,
    column,
)
from .expression_dispatch import ExpressionDispatcher, SamplingWindow
from .field_sampler import Grid, ScalarFieldSampler
from .plot_region import DEFAULT_POINTS, XYPlotRegion
from .plot_render import region_figure, trace_to_plotly
from .region_registry import RegionRegistry
from .shapes import Shape, ShapeKind, build_shape, shape_outline
from .sheet_properties import PropertiesSource, PropertySource, apply_sheet_properties
from .traces import (
    DEFAULT_LINE_COLORS,
    PlotMethod,
    TextLabel,
    Trace,
    TraceBuffer,
    TraceKind,
    TraceStyle,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

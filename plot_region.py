"""XY plot region: expressions, axes and traces of one plot on a sheet.

Purpose
-------
``XYPlotRegion`` is the public entry point of ``xyplot_toolkit``. It owns the
plotted expressions, the two axis records, the resolution setting and the
trace slots, and runs one evaluation pass per sheet recalculation.

Concepts and structure
----------------------
- :class:`~xyplot_toolkit.expression_dispatch.ExpressionDispatcher` decides
  how each expression is drawn.
- :class:`~xyplot_toolkit.traces.TraceBuffer` keeps trace data plus the
  styles that survive across passes.
- :class:`~xyplot_toolkit.diagnostics.DiagnosticLog` holds the user-visible
  messages of the last pass.
- :class:`~xyplot_toolkit.region_registry.RegionRegistry` (optional) tracks
  live regions of a session.

Architecture notes
------------------
An evaluation pass is synchronous and single-shot::

    settings from sheet (if enabled) -> begin pass -> dispatch expressions
    -> prune stale slots

Errors confined to one expression become diagnostics; anything else empties
the slots not yet filled (keeping their styles) and propagates.

Important gotchas
-----------------
- Pan and zoom are disabled while settings come from the sheet, because the
  next pass would overwrite them anyway.
- Implicit plots cost ``points**2`` oracle calls per expression.

Examples
--------
>>> import sympy as sp
>>> x, y = sp.symbols("x y")
>>> region = XYPlotRegion([sp.sin(x), x**2 + y**2 - 0.5], points=20)
>>> region.evaluate()  # doctest: +SKIP
>>> [trace.kind.value for trace in region.traces]  # doctest: +SKIP
['points', 'segments']
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import plotly.graph_objects as go

from .AxisSnapshot import AxisSnapshot, RegionSnapshot
from .axis_scaler import AxisRange
from .diagnostics import DiagnosticLog
from .evaluation import EvaluationContext, Oracle, SympyOracle, as_float
from .expression_dispatch import ExpressionDispatcher, SamplingWindow
from .plot_render import region_figure
from .region_registry import RegionRegistry
from .sheet_properties import PropertiesSource, apply_sheet_properties
from .traces import DEFAULT_LINE_COLORS, TraceBuffer

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

DEFAULT_POINTS = 100
DEFAULT_X_AXIS: Tuple[float, float, float] = (-5.0, 5.0, 2.5)
DEFAULT_Y_AXIS: Tuple[float, float, float] = (-1.0, 1.0, 0.5)
DEFAULT_PLOT_SIZE: Tuple[float, float] = (400.0, 300.0)


def _axis(value: Any, default: Tuple[float, float, float]) -> AxisRange:
    if value is None:
        return AxisRange(*default)
    if isinstance(value, AxisRange):
        return value
    if isinstance(value, AxisSnapshot):
        return value.to_axis()
    lo, hi, tick = value
    return AxisRange(as_float(lo), as_float(hi), as_float(tick))


class XYPlotRegion:
    """One plot region on a sheet.

    Parameters
    ----------
    expressions : iterable, optional
        SymPy expressions, equations, ``System`` objects or matrix literals.
        Each item fills one or more trace slots.
    x_axis, y_axis : AxisRange or (min, max, tick), optional
        Axis records; defaults ``(-5, 5, 2.5)`` and ``(-1, 1, 0.5)``.
    points : int, default=100
        Resolution: x positions for function plots, ``points - 1`` cells per
        axis for implicit plots.
    plot_size : tuple[float, float], default=(400, 300)
        Plot area in pixels, used for tick rescaling and pan.
    properties_source : PropertiesSource, optional
        Where settings come from on each pass.
    oracle : Oracle, optional
        Evaluation backend; :class:`SympyOracle` by default.
    palette : sequence of str, optional
        Default trace colors.
    registry : RegionRegistry, optional
        Session registry to join; the region leaves it in :meth:`dispose`.
    emit_warnings : bool, default=True
        Also emit diagnostics through :mod:`warnings`.
    """

    def __init__(
        self,
        expressions: Iterable[Any] = (),
        *,
        x_axis: Any = None,
        y_axis: Any = None,
        points: int = DEFAULT_POINTS,
        plot_size: Tuple[float, float] = DEFAULT_PLOT_SIZE,
        properties_source: Optional[PropertiesSource] = None,
        oracle: Optional[Oracle] = None,
        palette: Sequence[str] = DEFAULT_LINE_COLORS,
        registry: Optional[RegionRegistry] = None,
        emit_warnings: bool = True,
    ) -> None:
        self.expressions: List[Any] = list(expressions)
        self.x_axis = _axis(x_axis, DEFAULT_X_AXIS)
        self.y_axis = _axis(y_axis, DEFAULT_Y_AXIS)
        self.points = points
        self.plot_size = plot_size
        self.properties_source = properties_source or PropertiesSource()
        self.oracle: Oracle = oracle if oracle is not None else SympyOracle()
        self.traces = TraceBuffer(palette)
        self.diagnostics = DiagnosticLog(emit_warnings=emit_warnings)
        self._dispatcher = ExpressionDispatcher(self.oracle, self.traces, self.diagnostics)
        self._registry = registry
        self.id: Optional[str] = registry.register(self) if registry is not None else None
        self._disposed = False

    # --- Settings ---

    @property
    def points(self) -> int:
        """Return the resolution setting."""
        return self._points

    @points.setter
    def points(self, value: Any) -> None:
        count = int(as_float(value)) if isinstance(value, str) else int(value)
        if count < 2:
            raise ValueError("points must be >= 2")
        self._points = count

    @property
    def plot_size(self) -> Tuple[float, float]:
        """Return the plot area ``(width, height)`` in pixels."""
        return self._plot_size

    @plot_size.setter
    def plot_size(self, value: Tuple[float, float]) -> None:
        width, height = (float(v) for v in value)
        if width <= 0 or height <= 0:
            raise ValueError("plot_size must be positive")
        self._plot_size = (width, height)

    @property
    def interactive(self) -> bool:
        """True when pan and zoom may change the axes."""
        return not self.properties_source.from_sheet

    @property
    def window(self) -> SamplingWindow:
        """Return the sampling window of the next pass."""
        return SamplingWindow(self.x_axis.min, self.x_axis.max, self.y_axis.min, self.y_axis.max, self.points)

    # --- Evaluation ---

    def evaluate(self, context: Optional[Mapping[Any, Any]] = None) -> TraceBuffer:
        """Run one evaluation pass and return the trace buffer.

        Parameters
        ----------
        context : EvaluationContext or mapping, optional
            Sheet definitions. A plain mapping is wrapped in an
            :class:`EvaluationContext`.

        Returns
        -------
        TraceBuffer
            ``self.traces``, holding one slot per plotted item.

        Notes
        -----
        Diagnostics of the previous pass are cleared first. Expression-level
        failures are recorded in :attr:`diagnostics`; other exceptions empty
        the remaining slots and propagate.
        """
        if not isinstance(context, EvaluationContext):
            context = EvaluationContext(context)
        if self.properties_source.from_sheet:
            applied = apply_sheet_properties(self, context, self.oracle, self.properties_source.index)
            logger.debug("applied sheet properties %s", applied)

        window = self.window
        self.diagnostics.clear()
        self.traces.begin_pass()
        try:
            for expr in self.expressions:
                self._dispatcher.dispatch(expr, context, window)
        except Exception:
            self.traces.clear_pending()
            raise
        self.traces.finish_pass()
        logger.info(
            "evaluated %d expressions into %d traces (%d diagnostics)",
            len(self.expressions),
            len(self.traces),
            len(self.diagnostics),
        )
        return self.traces

    # --- Axis interaction ---

    def rescale_ticks(self) -> None:
        """Recompute both large-tick steps for the current plot size."""
        width, height = self.plot_size
        self.x_axis.rescale(width)
        self.y_axis.rescale(height)

    def zoom(self, direction: int) -> bool:
        """Zoom both axes by one wheel step; return False when interaction is disabled."""
        if not self.interactive:
            return False
        width, height = self.plot_size
        self.x_axis.zoom(direction, width)
        self.y_axis.zoom(direction, height)
        return True

    def pan(self, dx: float, dy: float) -> bool:
        """Move the view by a pointer drag of ``(dx, dy)`` screen pixels.

        Screen y grows downwards, so dragging down moves the y range up.
        """
        if not self.interactive:
            return False
        width, height = self.plot_size
        self.x_axis.pan(dx, width)
        self.y_axis.pan(-dy, height)
        return True

    # --- Persistence ---

    def snapshot(self) -> RegionSnapshot:
        """Return an immutable snapshot of the persisted settings."""
        return RegionSnapshot(
            x_axis=AxisSnapshot.from_axis(self.x_axis),
            y_axis=AxisSnapshot.from_axis(self.y_axis),
            points=self.points,
            plot_size=self.plot_size,
            properties_source=self.properties_source,
        )

    @classmethod
    def from_snapshot(cls, snapshot: RegionSnapshot, expressions: Iterable[Any] = (), **kwargs: Any) -> "XYPlotRegion":
        """Build a region with the settings stored in ``snapshot``."""
        return cls(
            expressions,
            x_axis=snapshot.x_axis.to_axis(),
            y_axis=snapshot.y_axis.to_axis(),
            points=snapshot.points,
            plot_size=snapshot.plot_size,
            properties_source=snapshot.properties_source,
            **kwargs,
        )

    def clone(self) -> "XYPlotRegion":
        """Copy expressions, settings and trace styles into a new region.

        The clone joins the same registry under a fresh id. Trace data is
        not copied; the clone fills it on its first pass.
        """
        region = XYPlotRegion(
            self.expressions,
            x_axis=AxisRange(*self.x_axis.as_triple(), mantissas=self.x_axis.mantissas),
            y_axis=AxisRange(*self.y_axis.as_triple(), mantissas=self.y_axis.mantissas),
            points=self.points,
            plot_size=self.plot_size,
            properties_source=self.properties_source,
            oracle=self.oracle,
            palette=self.traces.palette,
            registry=self._registry,
            emit_warnings=self.diagnostics.emit_warnings,
        )
        region.traces.restore_styles(self.traces.styles())
        return region

    def dispose(self) -> None:
        """Leave the registry. Safe to call more than once."""
        if self._disposed:
            return
        self._disposed = True
        if self._registry is not None:
            self._registry.unregister(self)

    # --- Rendering ---

    def to_plotly(self) -> go.Figure:
        """Return a Plotly figure of the current traces."""
        return region_figure(self)

    def __repr__(self) -> str:
        return (
            f"XYPlotRegion(id={self.id!r}, expressions={len(self.expressions)}, "
            f"x_axis={self.x_axis.as_triple()}, y_axis={self.y_axis.as_triple()}, points={self.points})"
        )


__all__ = [
    "DEFAULT_PLOT_SIZE",
    "DEFAULT_POINTS",
    "DEFAULT_X_AXIS",
    "DEFAULT_Y_AXIS",
    "XYPlotRegion",
]

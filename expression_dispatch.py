"""Route plotted expressions to the matching production path.

Purpose
-------
Given one user expression and the sheet definitions, decide how it is drawn
and fill exactly one trace slot per plotted item:

======================  =================================================
free variables          production path
======================  =================================================
0                       evaluate once; scalar -> flat line, matrix ->
                        polyline / polylines / labels / shapes, system ->
                        recurse over sub-expressions
1                       sample at ``points`` x positions over the x-axis
2 (one named t or x)    implicit curve: grid sampling + marching squares
2 (other names)         policy error
more                    policy error ("Too many unknowns.")
======================  =================================================

Architecture notes
------------------
- Failures that belong to one expression are raised as
  :class:`~xyplot_toolkit.diagnostics.PlotError` inside the branch and caught
  in :meth:`ExpressionDispatcher.dispatch`, which records a diagnostic and
  occupies the slot with an empty trace. Sub-expressions of a system are
  dispatched one by one, so one failure does not affect its siblings.
- Branching is on :class:`~xyplot_toolkit.evaluation.ResultKind`, never on
  caught exceptions from the oracle.
- ``sympy.Eq(lhs, rhs)`` is plotted as ``lhs - rhs`` at level 0.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

import numpy as np
import sympy as sp
from sympy.core.symbol import Symbol

from .contour import extract_contour
from .diagnostics import (
    DiagnosticLog,
    EvaluationTypeError,
    MatrixShapeError,
    PlotError,
    PlotPolicyError,
    TooManyUnknownsError,
)
from .evaluation import EvalResult, EvaluationContext, Oracle, ResultKind, System, type_error_message
from .field_sampler import ScalarFieldSampler
from .shapes import Shape, build_shape, parse_color
from .traces import TextLabel, TraceBuffer, TraceKind

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

# Variables that may take the horizontal axis of an implicit plot, by priority.
IMPLICIT_AXIS_NAMES: Tuple[str, ...] = ("t", "x")

_MAX_RESOLVE_DEPTH = 32


@dataclass(frozen=True)
class SamplingWindow:
    """World extent and resolution of one evaluation pass.

    Parameters
    ----------
    xmin, xmax, ymin, ymax : float
        Axis extents.
    points : int
        Number of x positions for function plots; implicit grids use
        ``points - 1`` cells per axis.
    """

    xmin: float
    xmax: float
    ymin: float
    ymax: float
    points: int

    def __post_init__(self) -> None:
        if int(self.points) < 2:
            raise ValueError("points must be >= 2")
        object.__setattr__(self, "points", int(self.points))

    def x_positions(self) -> np.ndarray:
        """Return ``points`` evenly spaced x values, both endpoints included."""
        step = (self.xmax - self.xmin) / (self.points - 1)
        return np.arange(self.points) * step + self.xmin

    @property
    def extent(self) -> Tuple[float, float, float, float]:
        return (self.xmin, self.xmax, self.ymin, self.ymax)


def as_level_expression(expr: Any) -> Any:
    """Rewrite ``Eq(lhs, rhs)`` as ``lhs - rhs``; other values pass through."""
    if isinstance(expr, sp.Equality):
        return expr.lhs - expr.rhs
    return expr


def implicit_axes(free: Tuple[Symbol, ...]) -> Tuple[Symbol, Symbol]:
    """Pick ``(horizontal, vertical)`` variables for a two-variable expression.

    Raises
    ------
    PlotPolicyError
        If neither variable is named ``t`` or ``x``.
    """
    a, b = free
    for name in IMPLICIT_AXIS_NAMES:
        if a.name == name:
            return a, b
        if b.name == name:
            return b, a
    raise PlotPolicyError(f"Pair ({a},{b}) must have an explicit form.")


class ExpressionDispatcher:
    """Classify expressions and append their traces to a :class:`TraceBuffer`.

    Parameters
    ----------
    oracle : Oracle
        Evaluation backend.
    buffer : TraceBuffer
        Destination of the produced traces.
    diagnostics : DiagnosticLog, optional
        Destination of user-visible, non-fatal messages.
    sampler : ScalarFieldSampler, optional
        Grid sampler for implicit curves; built from ``oracle`` by default.
    """

    def __init__(
        self,
        oracle: Oracle,
        buffer: TraceBuffer,
        diagnostics: Optional[DiagnosticLog] = None,
        *,
        sampler: Optional[ScalarFieldSampler] = None,
    ) -> None:
        self.oracle = oracle
        self.buffer = buffer
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        self.sampler = sampler if sampler is not None else ScalarFieldSampler(oracle, self.diagnostics)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def dispatch(self, expr: Any, context: EvaluationContext, window: SamplingWindow) -> None:
        """Plot ``expr``; never raises :class:`PlotError`."""
        expr = as_level_expression(self._resolve(expr, context))
        if isinstance(expr, System):
            for item in expr.args:
                self.dispatch(item, context, window)
            return
        try:
            self._dispatch(expr, context, window)
        except PlotError as exc:
            if exc.expression is None:
                exc.expression = expr
            self.diagnostics.report_error(exc)
            self.buffer.add_cleared(expression=expr)

    def _resolve(self, expr: Any, context: EvaluationContext) -> Any:
        """Follow a bare symbol to its definition when that is a system or matrix."""
        for _ in range(_MAX_RESOLVE_DEPTH):
            if not (isinstance(expr, Symbol) and context.is_defined(expr)):
                return expr
            value = context[expr]
            if not isinstance(value, (System, Symbol, list, tuple, np.ndarray, sp.MatrixBase)):
                return expr
            expr = value
        return expr

    def _dispatch(self, expr: Any, context: EvaluationContext, window: SamplingWindow) -> None:
        free = context.free_variables(expr)
        logger.debug("dispatching %s with free variables %s", expr, free)
        if len(free) == 0:
            self._plot_constant(expr, context, window)
        elif len(free) == 1:
            self._plot_function(expr, free[0], context, window)
        elif len(free) == 2:
            x_var, y_var = implicit_axes(free)
            self._plot_implicit(expr, x_var, y_var, context, window)
        else:
            raise TooManyUnknownsError("Too many unknowns.")

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    def _plot_constant(self, expr: Any, context: EvaluationContext, window: SamplingWindow) -> None:
        result = self.oracle.evaluate(expr, context=context)
        if result.kind is ResultKind.SYSTEM:
            for item in result.items:
                self.dispatch(item, context, window)
        elif result.kind is ResultKind.MATRIX:
            self.plot_matrix(result, expr)
        elif result.is_real:
            xs = window.x_positions()
            self.buffer.add(TraceKind.POINTS, np.column_stack((xs, np.full_like(xs, result.value))), expression=expr)
        elif result.is_text:
            self.buffer.add(TraceKind.POINTS, (), expression=expr)
        elif result.kind is ResultKind.COMPLEX:
            raise EvaluationTypeError(type_error_message(result.kind), expr)
        else:
            raise PlotError(result.message or "Evaluation failed.", expr)

    def _plot_function(
        self, expr: Any, var: Symbol, context: EvaluationContext, window: SamplingWindow
    ) -> None:
        xs = window.x_positions()
        ys = np.full_like(xs, np.nan)
        offending: Optional[ResultKind] = None
        for i, x in enumerate(xs):
            result = self.oracle.evaluate(expr, {var: float(x)}, context)
            if result.is_real:
                ys[i] = result.value
            elif result.kind not in (ResultKind.ERROR, ResultKind.SCALAR) and offending is None:
                offending = result.kind
        if offending is not None:
            self.diagnostics.report(type_error_message(offending), expr, category="type")
        self.buffer.add(TraceKind.POINTS, np.column_stack((xs, ys)), expression=expr)

    def _plot_implicit(
        self,
        expr: Any,
        x_var: Symbol,
        y_var: Symbol,
        context: EvaluationContext,
        window: SamplingWindow,
    ) -> None:
        cells = window.points - 1
        grid = self.sampler.sample(expr, x_var, y_var, window.extent, (cells, cells), context)
        segments = extract_contour(grid, 0.0)
        self.buffer.add(TraceKind.SEGMENTS, segments, expression=expr)

    # ------------------------------------------------------------------
    # Matrix results
    # ------------------------------------------------------------------

    def plot_matrix(self, result: EvalResult, expr: Any = None) -> None:
        """Dispatch a matrix result by its column layout."""
        rows, cols = result.shape
        if cols == 1 and rows > 0:
            first = result.cell(0, 0)
            if first.kind is ResultKind.MATRIX and first.cols == 1:
                self.buffer.add(TraceKind.SHAPES, self._shapes(result), expression=expr)
                return
            if first.kind is ResultKind.MATRIX and first.cols == 2:
                self.buffer.add(TraceKind.POLYLINES, self._polylines(result), expression=expr)
                return
            raise MatrixShapeError("2-5 cols allowed.", expr)
        if cols == 2:
            self.buffer.add(TraceKind.POINTS, self._polyline(result, expr), expression=expr)
        elif 3 <= cols <= 5:
            self.buffer.add(TraceKind.LABELS, self._labels(result), expression=expr)
        else:
            raise MatrixShapeError("2-5 cols allowed.", expr)

    def _polyline(self, result: EvalResult, expr: Any) -> np.ndarray:
        points = np.empty((result.rows, 2), dtype=float)
        complained = False
        for n in range(result.rows):
            x, y = result.cell(n, 0), result.cell(n, 1)
            if not complained and ResultKind.COMPLEX in (x.kind, y.kind):
                self.diagnostics.report("Complex numbers not allowed.", expr, category="type")
                complained = True
            points[n] = (x.to_double(), y.to_double())
        return points

    @staticmethod
    def _polylines(result: EvalResult) -> List[np.ndarray]:
        lines = []
        for n in range(result.rows):
            item = result.cell(n, 0)
            if item.kind is not ResultKind.MATRIX or item.cols != 2:
                continue
            lines.append(
                np.array(
                    [[item.cell(k, 0).to_double(), item.cell(k, 1).to_double()] for k in range(item.rows)],
                    dtype=float,
                ).reshape(-1, 2)
            )
        return lines

    @staticmethod
    def _shapes(result: EvalResult) -> List[Shape]:
        shapes = []
        for n in range(result.rows):
            group = result.cell(n, 0)
            if group.kind is not ResultKind.MATRIX:
                continue
            for k in range(group.rows):
                item = group.cell(k, 0)
                if item.kind is not ResultKind.MATRIX:
                    continue
                try:
                    shapes.append(build_shape(item))
                except (ValueError, TypeError, EvaluationTypeError) as exc:
                    logger.debug("skipping shape %d.%d: %s", n, k, exc)
        return shapes

    @staticmethod
    def _labels(result: EvalResult) -> List[TextLabel]:
        rows, cols = result.shape
        labels = []
        for n in range(rows):
            try:
                x = result.cell(n, 0).to_double()
                y = result.cell(n, 1).to_double()
                text_cell = result.cell(n, 2)
                text = text_cell.text if text_cell.is_text else ""
                if not text:
                    continue
                extra = {}
                if cols > 3:
                    extra.update(size=result.cell(n, 3).to_double(), size_manual=True)
                if cols > 4:
                    color = parse_color(result.value[n, 4])
                    if color is None:
                        continue
                    extra.update(color=color, color_manual=True)
            except EvaluationTypeError as exc:
                logger.debug("skipping label row %d: %s", n, exc)
                continue
            labels.append(TextLabel(text, x, y, **extra))
        return labels


__all__ = [
    "ExpressionDispatcher",
    "IMPLICIT_AXIS_NAMES",
    "SamplingWindow",
    "as_level_expression",
    "implicit_axes",
]

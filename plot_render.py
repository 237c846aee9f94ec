"""Plotly adapter for evaluated traces.

Purpose
-------
Converts :class:`~xyplot_toolkit.traces.Trace` objects into
``plotly.graph_objects.Scatter`` traces and a whole region into a
``plotly.graph_objects.Figure``. This is the only place that knows about the
renderer.

Important gotchas
-----------------
- Non-finite coordinates (from degenerate contour cells, failed function
  samples or empty ranges) are never drawn and never raise: point coordinates
  become ``None`` (a gap in the line), segments and shapes with any
  non-finite coordinate are dropped.
- All contour segments of a trace go into a single scatter, separated by
  ``None`` so Plotly does not join them.
- Large ticks are passed explicitly (``tickmode="array"``) so culled axes
  show only their outer ticks.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
import plotly.graph_objects as go

from .axis_scaler import AxisRange
from .contour import Segment
from .shapes import PLOTLY_DASH, Shape, shape_outline
from .traces import PlotMethod, TextLabel, Trace, TraceKind

if TYPE_CHECKING:
    from .plot_region import XYPlotRegion

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def _coords(values: Iterable[float]) -> List[Optional[float]]:
    return [float(v) if np.isfinite(v) else None for v in values]


def _line_dict(color: str, width: float, dash: str) -> Dict[str, Any]:
    return {"color": color, "width": width, "dash": PLOTLY_DASH.get(dash, "solid")}


def _join_with_gaps(lines: Sequence[np.ndarray]) -> tuple[List[Optional[float]], List[Optional[float]]]:
    xs: List[Optional[float]] = []
    ys: List[Optional[float]] = []
    for line in lines:
        if len(line) == 0:
            continue
        if xs:
            xs.append(None)
            ys.append(None)
        xs.extend(_coords(line[:, 0]))
        ys.extend(_coords(line[:, 1]))
    return xs, ys


def _segments_xy(segments: Sequence[Segment]) -> tuple[List[Optional[float]], List[Optional[float]]]:
    xs: List[Optional[float]] = []
    ys: List[Optional[float]] = []
    for seg in segments:
        if not seg.is_finite:
            continue
        xs.extend((seg.start.x, seg.end.x, None))
        ys.extend((seg.start.y, seg.end.y, None))
    return xs, ys


def _curve_kwargs(trace: Trace) -> Dict[str, Any]:
    """Mode, line and marker settings of a point or polyline trace."""
    style = trace.style
    line = _line_dict(style.color, style.thickness, style.dash)
    if style.plot_method is PlotMethod.MARKERS:
        out: Dict[str, Any] = {"mode": "markers"}
    else:
        out = {"mode": "lines+markers" if style.symbol else "lines"}
        if style.plot_method is PlotMethod.SPLINES:
            line["shape"] = "spline"
    out["line"] = line
    if style.symbol or style.plot_method is PlotMethod.MARKERS:
        out["marker"] = {"symbol": style.symbol or "circle", "color": style.color}
    return out


def _label_scatter(labels: Sequence[TextLabel], base: Dict[str, Any]) -> go.Scatter:
    kept = [lb for lb in labels if np.isfinite(lb.x) and np.isfinite(lb.y)]
    return go.Scatter(
        x=[lb.x for lb in kept],
        y=[lb.y for lb in kept],
        mode="text",
        text=[lb.text for lb in kept],
        textposition=["middle center" if lb.is_symbol else "top right" for lb in kept],
        textfont={"size": [lb.size for lb in kept], "color": [lb.color for lb in kept]},
        **base,
    )


def _shape_scatter(shape: Shape, trace: Trace, base: Dict[str, Any]) -> Optional[go.Scatter]:
    outline = shape_outline(shape)
    if not np.all(np.isfinite(outline)):
        return None
    style = trace.style
    width = style.thickness if shape.line_width is None else shape.line_width
    kwargs: Dict[str, Any] = dict(base)
    kwargs["line"] = _line_dict(shape.line_color or style.color, width, shape.dash)
    if shape.is_closed and shape.fill_color:
        kwargs.update(fill="toself", fillcolor=shape.fill_color)
    return go.Scatter(x=outline[:, 0], y=outline[:, 1], mode="lines", **kwargs)


def trace_to_plotly(trace: Trace) -> List[go.Scatter]:
    """Return the Plotly scatters drawing ``trace`` (empty for empty traces)."""
    if trace.is_empty:
        return []
    style = trace.style
    base: Dict[str, Any] = {"name": style.name, "legendgroup": style.name}
    if style.y2:
        base["yaxis"] = "y2"

    if trace.kind is TraceKind.POINTS:
        return [
            go.Scatter(
                x=_coords(trace.data[:, 0]),
                y=_coords(trace.data[:, 1]),
                **_curve_kwargs(trace),
                **base,
            )
        ]
    if trace.kind is TraceKind.POLYLINES:
        xs, ys = _join_with_gaps(trace.data)
        return [go.Scatter(x=xs, y=ys, **_curve_kwargs(trace), **base)]
    if trace.kind is TraceKind.SEGMENTS:
        xs, ys = _segments_xy(trace.data)
        return [
            go.Scatter(x=xs, y=ys, mode="lines", line=_line_dict(style.color, style.thickness, style.dash), **base)
        ]
    if trace.kind is TraceKind.LABELS:
        return [_label_scatter(trace.data, base)]

    scatters = []
    for shape in trace.data:
        scatter = _shape_scatter(shape, trace, {**base, "showlegend": not scatters})
        if scatter is not None:
            scatters.append(scatter)
    return scatters


def axis_layout(axis: AxisRange) -> Dict[str, Any]:
    """Plotly axis settings for range and large ticks."""
    return {
        "range": [axis.min, axis.max],
        "tickmode": "array",
        "tickvals": axis.tick_values(),
        "zeroline": True,
    }


def region_figure(region: "XYPlotRegion") -> go.Figure:
    """Build a Plotly figure showing every trace of ``region``."""
    fig = go.Figure()
    uses_y2 = False
    for trace in region.traces:
        uses_y2 = uses_y2 or trace.style.y2
        for scatter in trace_to_plotly(trace):
            fig.add_trace(scatter)

    width, height = region.plot_size
    layout: Dict[str, Any] = {
        "xaxis": axis_layout(region.x_axis),
        "yaxis": axis_layout(region.y_axis),
        "width": int(width),
        "height": int(height),
        "showlegend": len(region.traces) > 1,
        "margin": {"l": 40, "r": 20, "t": 20, "b": 40},
    }
    if uses_y2:
        layout["yaxis2"] = {"overlaying": "y", "side": "right"}
    fig.update_layout(**layout)
    logger.debug("rendered %d traces into %d plotly traces", len(region.traces), len(fig.data))
    return fig


__all__ = ["axis_layout", "region_figure", "trace_to_plotly"]

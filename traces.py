"""Trace slots produced by an evaluation pass.

Purpose
-------
Holds the ordered list of plotted traces of one region. Each evaluation pass
replaces trace *data* wholesale, while the *style* of a slot (color, name,
plot method, marker, secondary-axis flag) survives across passes so user
edits are not lost when the sheet is recalculated.

Concepts and structure
----------------------
- :class:`TraceKind` says what primitives a trace carries.
- :class:`TraceStyle` is the persistent part of a slot.
- :class:`TraceBuffer` implements the pass protocol::

      buffer.begin_pass()
      buffer.add(TraceKind.POINTS, points)     # slot 0
      buffer.add_cleared()                     # slot 1 (failed expression)
      buffer.finish_pass()                     # prune slots >= 2

Important gotchas
-----------------
- Default colors are assigned from the palette by slot index only when a
  slot is created. Re-adding into an existing slot keeps its color.
- A failed expression still occupies its slot (empty data) so slots after
  it keep their styles.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .contour import Point, Segment

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

DEFAULT_LINE_COLORS: Tuple[str, ...] = (
    "blue",
    "red",
    "green",
    "fuchsia",
    "darkorange",
    "saddlebrown",
)

LABEL_SYMBOLS = frozenset({"+", ".", "*", "o", "x"})


class TraceKind(Enum):
    """Primitive type carried by a trace."""

    POINTS = "points"
    POLYLINES = "polylines"
    SEGMENTS = "segments"
    LABELS = "labels"
    SHAPES = "shapes"


class PlotMethod(Enum):
    LINES = "lines"
    SPLINES = "splines"
    MARKERS = "markers"
    LABELS = "labels"
    SHAPES = "shapes"


_FORCED_METHOD = {
    TraceKind.SEGMENTS: PlotMethod.LINES,
    TraceKind.LABELS: PlotMethod.LABELS,
    TraceKind.SHAPES: PlotMethod.SHAPES,
}

_KEPT_METHODS = {
    TraceKind.POINTS: (PlotMethod.LINES, PlotMethod.SPLINES, PlotMethod.MARKERS),
    TraceKind.POLYLINES: (PlotMethod.LINES, PlotMethod.SPLINES),
}


def coerce_plot_method(kind: TraceKind, current: PlotMethod) -> PlotMethod:
    """Return the plot method a slot of ``kind`` may use, given its current one.

    Segment, label and shape traces have a fixed method. Point and polyline
    traces keep a compatible method and fall back to :attr:`PlotMethod.LINES`.
    """
    forced = _FORCED_METHOD.get(kind)
    if forced is not None:
        return forced
    if current in _KEPT_METHODS[kind]:
        return current
    return PlotMethod.LINES


@dataclass(frozen=True)
class TextLabel:
    """Text placed at a world position.

    ``size_manual``/``color_manual`` record whether the size or color came
    from the data rather than the defaults.
    """

    text: str
    x: float
    y: float
    size: float = 10.0
    color: str = "black"
    size_manual: bool = False
    color_manual: bool = False

    @property
    def is_symbol(self) -> bool:
        """True for the one-character marker labels ``+ . * o x``."""
        return self.text in LABEL_SYMBOLS


@dataclass(frozen=True)
class TraceStyle:
    """Persistent per-slot appearance."""

    color: str
    name: str = ""
    plot_method: PlotMethod = PlotMethod.LINES
    thickness: float = 1.0
    dash: str = "solid"
    symbol: Optional[str] = None
    y2: bool = False


@dataclass(frozen=True, eq=False)
class Trace:
    """One plotted curve or primitive collection.

    Parameters
    ----------
    kind : TraceKind
    data : Any
        ``POINTS``: ``(n, 2)`` float array. ``POLYLINES``: tuple of such arrays.
        ``SEGMENTS``: tuple of :class:`~xyplot_toolkit.contour.Segment`.
        ``LABELS``: tuple of :class:`TextLabel`. ``SHAPES``: tuple of
        :class:`~xyplot_toolkit.shapes.Shape`.
    style : TraceStyle
    expression : str or None
        Printed source expression.
    cleared : bool
        True when the source expression failed and the slot carries no data.
    """

    kind: TraceKind
    data: Any
    style: TraceStyle
    expression: Optional[str] = None
    cleared: bool = False

    def __len__(self) -> int:
        return len(self.data)

    @property
    def is_empty(self) -> bool:
        return len(self.data) == 0


def _normalize_data(kind: TraceKind, data: Any) -> Any:
    if kind is TraceKind.POINTS:
        arr = np.asarray(data, dtype=float).reshape(-1, 2)
        arr.flags.writeable = False
        return arr
    if kind is TraceKind.POLYLINES:
        out = []
        for line in data:
            arr = np.asarray(line, dtype=float).reshape(-1, 2)
            arr.flags.writeable = False
            out.append(arr)
        return tuple(out)
    if kind is TraceKind.SEGMENTS:
        return tuple(
            s if isinstance(s, Segment) else Segment(Point(*s[0]), Point(*s[1])) for s in data
        )
    return tuple(data)


class TraceBuffer:
    """Ordered trace slots of one plot region.

    Parameters
    ----------
    palette : sequence of str, optional
        Default colors, cycled by slot index.
    """

    def __init__(self, palette: Sequence[str] = DEFAULT_LINE_COLORS) -> None:
        if not palette:
            raise ValueError("palette must not be empty")
        self._palette = tuple(palette)
        self._slots: List[Trace] = []
        self._count = 0

    @property
    def palette(self) -> Tuple[str, ...]:
        return self._palette

    @property
    def count(self) -> int:
        """Number of slots filled during the current pass."""
        return self._count

    def default_style(self, index: int, kind: TraceKind) -> TraceStyle:
        return TraceStyle(
            color=self._palette[index % len(self._palette)],
            name=f"Trace {index + 1}",
            plot_method=coerce_plot_method(kind, PlotMethod.LINES),
        )

    def begin_pass(self) -> None:
        self._count = 0

    def add(
        self,
        kind: TraceKind,
        data: Any,
        *,
        expression: Any = None,
        cleared: bool = False,
    ) -> Trace:
        """Fill the next slot with ``data``, creating the slot if needed."""
        kind = TraceKind(kind)
        index = self._count
        self._count += 1
        printed = None if expression is None else str(expression)
        payload = _normalize_data(kind, data)

        if index < len(self._slots):
            old = self._slots[index].style
            style = replace(old, plot_method=coerce_plot_method(kind, old.plot_method))
            trace = Trace(kind, payload, style, printed, cleared)
            self._slots[index] = trace
        else:
            trace = Trace(kind, payload, self.default_style(index, kind), printed, cleared)
            self._slots.append(trace)
        return trace

    def add_cleared(self, *, expression: Any = None) -> Trace:
        """Occupy the next slot with an empty trace for a failed expression."""
        kind = TraceKind.POINTS
        if self._count < len(self._slots):
            kind = self._slots[self._count].kind
        return self.add(kind, (), expression=expression, cleared=True)

    def finish_pass(self) -> None:
        """Drop slots beyond the ones filled in this pass."""
        if len(self._slots) > self._count:
            logger.debug("pruning %d stale trace slots", len(self._slots) - self._count)
        del self._slots[self._count:]

    def clear_pending(self) -> None:
        """Empty the slots not yet filled in this pass, keeping their styles."""
        for index in range(self._count, len(self._slots)):
            old = self._slots[index]
            self._slots[index] = Trace(old.kind, _normalize_data(old.kind, ()), old.style, old.expression, True)

    def set_style(self, index: int, **changes: Any) -> TraceStyle:
        """Update the style of an existing slot."""
        trace = self._slots[index]
        if "plot_method" in changes:
            changes["plot_method"] = PlotMethod(changes["plot_method"])
        style = replace(trace.style, **changes)
        self._slots[index] = replace(trace, style=style)
        return style

    def styles(self) -> Tuple[TraceStyle, ...]:
        return tuple(trace.style for trace in self._slots)

    def restore_styles(self, styles: Sequence[TraceStyle]) -> None:
        """Pre-create slots carrying ``styles`` (used when cloning a region)."""
        self._slots = [
            Trace(TraceKind.POINTS, _normalize_data(TraceKind.POINTS, ()), style, None, True)
            for style in styles
        ]
        self._count = 0

    def __getitem__(self, index: int) -> Trace:
        return self._slots[index]

    def __iter__(self) -> Iterator[Trace]:
        return iter(tuple(self._slots))

    def __len__(self) -> int:
        return len(self._slots)

    def __repr__(self) -> str:
        kinds = ", ".join(trace.kind.value for trace in self._slots)
        return f"TraceBuffer([{kinds}])"


__all__ = [
    "DEFAULT_LINE_COLORS",
    "LABEL_SYMBOLS",
    "PlotMethod",
    "TextLabel",
    "Trace",
    "TraceBuffer",
    "TraceKind",
    "TraceStyle",
    "coerce_plot_method",
]

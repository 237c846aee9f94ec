"""Vector shapes described by matrix data.

A shape is written in the worksheet as a column matrix::

    ["circle"; [cx; cy; r]; line color; dash; line width; fill color]

Only the first two rows are required. Colors are names (``"red"``) or ARGB
integers, dash names are ``solid``, ``dash``, ``dot``, ``dashdot`` and
``dashdotdot``, angles of ``arc`` and ``pie`` are in radians and measured
counter-clockwise.

:func:`build_shape` validates the data once. :func:`shape_outline` is the
single exhaustive ``match`` over :class:`ShapeKind` turning a shape into
world-space outline points for the renderer.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Tuple

import numpy as np

from .evaluation import EvalResult, ResultKind, classify_value

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

DASH_STYLES: Tuple[str, ...] = ("solid", "dash", "dot", "dashdot", "dashdotdot")

# Plotly has no dash-dot-dot preset; a custom dash list keeps the look.
PLOTLY_DASH = {
    "solid": "solid",
    "dash": "dash",
    "dot": "dot",
    "dashdot": "dashdot",
    "dashdotdot": "10px,4px,2px,4px,2px,4px",
}

_COLOR_NAME = re.compile(r"^(#[0-9a-fA-F]{6}|#[0-9a-fA-F]{8}|[A-Za-z]+)$")


class ShapeKind(Enum):
    LINE = "line"
    RECT = "rect"
    ROUNDRECT = "roundrect"
    CIRCLE = "circle"
    ELLIPSE = "ellipse"
    ARC = "arc"
    POLYGON = "polygon"
    PIE = "pie"
    POLYLINE = "polyline"
    SPLINE = "spline"
    BEZIER = "bezier"


# Number of scalar parameters for the parametric kinds.
PARAMETER_COUNTS = {
    ShapeKind.LINE: 4,
    ShapeKind.RECT: 4,
    ShapeKind.ROUNDRECT: 5,
    ShapeKind.CIRCLE: 3,
    ShapeKind.ELLIPSE: 4,
    ShapeKind.ARC: 6,
    ShapeKind.PIE: 6,
}

POINT_KINDS = frozenset({ShapeKind.POLYGON, ShapeKind.POLYLINE, ShapeKind.SPLINE, ShapeKind.BEZIER})

CLOSED_KINDS = frozenset(
    {
        ShapeKind.RECT,
        ShapeKind.ROUNDRECT,
        ShapeKind.CIRCLE,
        ShapeKind.ELLIPSE,
        ShapeKind.POLYGON,
        ShapeKind.PIE,
    }
)


@dataclass(frozen=True, eq=False)
class Shape:
    """Validated shape.

    Parameters
    ----------
    kind : ShapeKind
    data : numpy.ndarray
        1-D parameter vector for parametric kinds, ``(n, 2)`` points for
        polygon, polyline, spline and bezier.
    line_color : str or None
        Explicit outline color; ``None`` uses the trace color.
    dash : str
        One of :data:`DASH_STYLES`.
    line_width : float or None
        Explicit outline width; ``None`` uses the trace thickness.
    fill_color : str or None
        Fill for closed kinds; ``None`` leaves the shape unfilled.
    """

    kind: ShapeKind
    data: np.ndarray
    line_color: Optional[str] = None
    dash: str = "solid"
    line_width: Optional[float] = None
    fill_color: Optional[str] = None

    @property
    def is_closed(self) -> bool:
        return self.kind in CLOSED_KINDS


def argb_to_rgba(value: int) -> str:
    """Convert a signed or unsigned 32-bit ARGB integer to a CSS ``rgba()`` string.

    >>> argb_to_rgba(0xFFFF0000)
    'rgba(255, 0, 0, 1)'
    """
    v = int(value) & 0xFFFFFFFF
    a, r, g, b = (v >> 24) & 0xFF, (v >> 16) & 0xFF, (v >> 8) & 0xFF, v & 0xFF
    alpha = round(a / 255, 3)
    return f"rgba({r}, {g}, {b}, {alpha:g})"


def parse_color(value: Any) -> Optional[str]:
    """Return a renderer color for a cell value, or ``None`` if it is not a color."""
    result = classify_value(value)
    if result.is_text:
        text = result.text.strip()
        if _COLOR_NAME.match(text):
            return text.lower()
        return None
    if result.is_real and math.isfinite(result.value):
        return argb_to_rgba(int(result.value))
    return None


def _vector(result: EvalResult) -> List[float]:
    """Flatten a row or column matrix of numbers."""
    if result.kind is not ResultKind.MATRIX:
        raise ValueError("shape data must be a matrix")
    rows, cols = result.shape
    if rows != 1 and cols != 1:
        raise ValueError("shape parameters must be a row or column vector")
    return [result.cell(i, j).to_double() for i in range(rows) for j in range(cols)]


def _points(result: EvalResult) -> np.ndarray:
    if result.kind is not ResultKind.MATRIX or result.cols != 2:
        raise ValueError("shape points must be an n x 2 matrix")
    return np.array(
        [[result.cell(i, 0).to_double(), result.cell(i, 1).to_double()] for i in range(result.rows)],
        dtype=float,
    ).reshape(-1, 2)


def build_shape(value: Any) -> Shape:
    """Parse a shape column matrix into a :class:`Shape`.

    Raises
    ------
    ValueError
        If the kind is unknown or the data has the wrong layout.
    """
    result = classify_value(value)
    if result.kind is not ResultKind.MATRIX or result.cols != 1 or result.rows < 2:
        raise ValueError("a shape is a column matrix with at least two rows")
    rows = result.rows

    name = result.cell(0, 0)
    if not name.is_text or not name.text:
        raise ValueError("shape kind must be a non-empty text")
    try:
        kind = ShapeKind(name.text)
    except ValueError:
        raise ValueError(f"unknown shape kind {name.text!r}") from None

    data_cell = result.cell(1, 0)
    if kind in POINT_KINDS:
        data = _points(data_cell)
        minimum = 4 if kind is ShapeKind.BEZIER else 2
        if len(data) < minimum:
            raise ValueError(f"{kind.value} needs at least {minimum} points")
        if kind is ShapeKind.BEZIER and (len(data) - 1) % 3:
            raise ValueError("bezier needs 1 + 3k points")
    else:
        data = np.array(_vector(data_cell), dtype=float)
        expected = PARAMETER_COUNTS[kind]
        if len(data) < expected:
            raise ValueError(f"{kind.value} needs {expected} parameters")
        data = data[:expected]
    data.flags.writeable = False

    line_color = parse_color(result.value[2, 0]) if rows > 2 else None
    dash = "solid"
    if rows > 3:
        dash_cell = result.cell(3, 0)
        if dash_cell.is_text and dash_cell.text in DASH_STYLES:
            dash = dash_cell.text
    line_width = float(result.cell(4, 0).to_double()) if rows > 4 else None
    fill_color = parse_color(result.value[5, 0]) if rows > 5 else None

    return Shape(kind, data, line_color, dash, line_width, fill_color)


def _ellipse_points(cx, cy, rx, ry, start, sweep, samples):
    theta = start + sweep * np.linspace(0.0, 1.0, samples)
    return np.column_stack((cx + rx * np.cos(theta), cy + ry * np.sin(theta)))


def _close(points: np.ndarray) -> np.ndarray:
    return np.vstack((points, points[:1]))


def _cubic(p0, p1, p2, p3, samples: int) -> np.ndarray:
    t = np.linspace(0.0, 1.0, samples)[:, None]
    u = 1.0 - t
    return u**3 * p0 + 3 * u**2 * t * p1 + 3 * u * t**2 * p2 + t**3 * p3


def _cardinal_spline(points: np.ndarray, samples: int, tension: float = 0.5) -> np.ndarray:
    """Cardinal spline through ``points`` as chained cubic Bezier pieces."""
    padded = np.vstack((points[:1], points, points[-1:]))
    pieces = []
    for i in range(1, len(padded) - 2):
        p0, p1 = padded[i], padded[i + 1]
        c1 = p0 + tension / 3.0 * (padded[i + 1] - padded[i - 1])
        c2 = p1 - tension / 3.0 * (padded[i + 2] - padded[i])
        piece = _cubic(p0, c1, c2, p1, samples)
        pieces.append(piece if not pieces else piece[1:])
    return np.vstack(pieces)


def _bezier_chain(points: np.ndarray, samples: int) -> np.ndarray:
    pieces = []
    for i in range(0, len(points) - 1, 3):
        piece = _cubic(points[i], points[i + 1], points[i + 2], points[i + 3], samples)
        pieces.append(piece if not pieces else piece[1:])
    return np.vstack(pieces)


def _rounded_rect(x, y, w, h, r, samples):
    x0, x1 = sorted((x, x + w))
    y0, y1 = sorted((y, y + h))
    r = max(0.0, min(abs(r), (x1 - x0) / 2, (y1 - y0) / 2))
    quarter = math.pi / 2
    corners = (
        (x1 - r, y0 + r, -quarter),
        (x1 - r, y1 - r, 0.0),
        (x0 + r, y1 - r, quarter),
        (x0 + r, y0 + r, 2 * quarter),
    )
    return _close(
        np.vstack([_ellipse_points(cx, cy, r, r, start, quarter, samples) for cx, cy, start in corners])
    )


def shape_outline(shape: Shape, samples: int = 64) -> np.ndarray:
    """Return the outline of ``shape`` as ``(n, 2)`` world points.

    Closed kinds repeat their first point at the end.
    """
    d = shape.data
    match shape.kind:
        case ShapeKind.LINE:
            return np.array([[d[0], d[1]], [d[2], d[3]]], dtype=float)
        case ShapeKind.RECT:
            x, y, w, h = d
            return np.array([[x, y], [x + w, y], [x + w, y + h], [x, y + h], [x, y]], dtype=float)
        case ShapeKind.ROUNDRECT:
            return _rounded_rect(*d, max(2, samples // 4))
        case ShapeKind.CIRCLE:
            return _ellipse_points(d[0], d[1], d[2], d[2], 0.0, 2 * math.pi, samples)
        case ShapeKind.ELLIPSE:
            return _ellipse_points(d[0], d[1], d[2], d[3], 0.0, 2 * math.pi, samples)
        case ShapeKind.ARC:
            return _ellipse_points(*d, samples)
        case ShapeKind.PIE:
            center = np.array([[d[0], d[1]]])
            return np.vstack((center, _ellipse_points(*d, samples), center))
        case ShapeKind.POLYGON:
            return _close(np.asarray(d, dtype=float))
        case ShapeKind.POLYLINE:
            return np.asarray(d, dtype=float)
        case ShapeKind.SPLINE:
            return _cardinal_spline(np.asarray(d, dtype=float), max(2, samples // 4))
        case ShapeKind.BEZIER:
            return _bezier_chain(np.asarray(d, dtype=float), max(2, samples // 4))
        case _:
            raise AssertionError(f"unhandled shape kind {shape.kind!r}")


__all__ = [
    "DASH_STYLES",
    "PLOTLY_DASH",
    "Shape",
    "ShapeKind",
    "argb_to_rgba",
    "build_shape",
    "parse_color",
    "shape_outline",
]

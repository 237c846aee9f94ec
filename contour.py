"""Marching-squares contour extraction with centroid saddle disambiguation.

Purpose
-------
Turns a :class:`~xyplot_toolkit.field_sampler.Grid` and an iso-level into
independent line segments approximating ``f(x, y) = level``.

Concepts and structure
----------------------
Each grid cell contributes five samples: the four corners in the fixed
winding order top-left, top-right, bottom-right, bottom-left, plus their
arithmetic mean (the *center*). A 4-bit configuration index is built from the
corners only (bit ``k`` set iff ``corner[k] < level``). The two saddle
configurations, 5 and 10, are resolved with the center::

    if index == 10 and center < level: index = 5
    elif index == 5 and center < level: index = 10

A center exactly equal to the level is "not below" and leaves the index
unchanged.

Edges are numbered by the corner pair they join: 0 = top (TL-TR),
1 = right (TR-BR), 2 = bottom (BR-BL), 3 = left (BL-TL).

Important gotchas
-----------------
- Segments are never chained into polylines; renderers draw them one by one.
- Degenerate edges (equal corner values) are not special-cased. They can
  yield ``NaN``/``inf`` coordinates, which renderers must filter.
- NaN samples compare as "not below", so undefined nodes behave like nodes
  above the level.

Examples
--------
>>> import numpy as np
>>> from xyplot_toolkit.field_sampler import Grid
>>> grid = Grid(np.array([[-1.0, 1.0], [-1.0, 1.0]]), 0.0, 0.0, 1.0, 1.0)
>>> extract_contour(grid)
[Segment(start=Point(x=1.0, y=0.5), end=Point(x=0.0, y=0.5))]
"""

from __future__ import annotations

import logging
import math
from typing import Any, List, NamedTuple, Sequence, Tuple

import numpy as np

from .field_sampler import Grid

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

# Bit e set iff edge e is crossed for the configuration.
EDGE_TABLE: Tuple[int, ...] = (0, 9, 3, 10, 6, 15, 5, 12, 12, 5, 15, 6, 10, 3, 9, 0)

# Edge pairs joined by a segment, per configuration.
TRI_TABLE: Tuple[Tuple[Tuple[int, int], ...], ...] = (
    (),
    ((0, 3),),
    ((0, 1),),
    ((1, 3),),
    ((1, 2),),
    ((0, 3), (1, 2)),
    ((0, 2),),
    ((2, 3),),
    ((2, 3),),
    ((0, 2),),
    ((0, 1), (2, 3)),
    ((1, 2),),
    ((1, 3),),
    ((0, 1),),
    ((0, 3),),
    (),
)

# (x, y) offsets of TL, TR, BR, BL in cell units, relative to the lower-left node.
CORNER_OFFSETS: Tuple[Tuple[int, int], ...] = ((0, 1), (1, 1), (1, 0), (0, 0))

EDGE_CORNERS: Tuple[Tuple[int, int], ...] = ((0, 1), (1, 2), (2, 3), (3, 0))

SADDLE_INDICES = (5, 10)


class Point(NamedTuple):
    x: float
    y: float

    @property
    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y)


class Segment(NamedTuple):
    start: Point
    end: Point

    @property
    def is_finite(self) -> bool:
        return self.start.is_finite and self.end.is_finite


def resolve_saddle(index: int, center: float, level: float) -> int:
    """Reclassify saddle configurations 5/10 using the cell center."""
    if index not in SADDLE_INDICES:
        return index
    if index == 10 and center < level:
        return 5
    elif index == 5 and center < level:
        return 10
    return index


def configuration_index(corners: Sequence[float], level: float = 0.0) -> int:
    """Return the disambiguated configuration of one cell.

    Parameters
    ----------
    corners : sequence of 4 floats
        Samples in TL, TR, BR, BL order.
    level : float
        Iso-level.
    """
    if len(corners) != 4:
        raise ValueError("a cell has exactly four corners")
    index = 0
    for k, value in enumerate(corners):
        if value < level:
            index |= 1 << k
    center = sum(corners) / 4.0
    return resolve_saddle(index, center, level)


def cell_corner_values(values: np.ndarray) -> Tuple[np.ndarray, ...]:
    """Split a node array into per-cell TL, TR, BR, BL and center arrays."""
    tl = values[:-1, 1:]
    tr = values[1:, 1:]
    br = values[1:, :-1]
    bl = values[:-1, :-1]
    center = (tl + tr + br + bl) / 4.0
    return tl, tr, br, bl, center


def configuration_indices(values: np.ndarray, level: float = 0.0) -> np.ndarray:
    """Vectorised :func:`configuration_index` over every cell of a node array.

    Returns an ``int`` array of shape ``(nx, ny)``.
    """
    tl, tr, br, bl, center = cell_corner_values(np.asarray(values, dtype=float))
    index = (
        (tl < level).astype(int)
        | ((tr < level).astype(int) << 1)
        | ((br < level).astype(int) << 2)
        | ((bl < level).astype(int) << 3)
    )
    # 5 and 10 are complements in four bits, so a flip is 15 - index.
    flip = np.isin(index, SADDLE_INDICES) & (center < level)
    return np.where(flip, 15 - index, index)


def interpolate(level: float, p1: Any, p2: Any, v1: Any, v2: Any) -> Tuple[np.ndarray, np.ndarray]:
    """Linear interpolation of the level crossing between two corners.

    Works element-wise on arrays. ``p1``/``p2`` are ``(x, y)`` pairs. A zero
    denominator produces ``NaN``/``inf`` rather than an exception.
    """
    x1, y1 = (np.asarray(c, dtype=float) for c in p1)
    x2, y2 = (np.asarray(c, dtype=float) for c in p2)
    with np.errstate(divide="ignore", invalid="ignore"):
        t = (level - np.asarray(v1, dtype=float)) / (np.asarray(v2, dtype=float) - np.asarray(v1, dtype=float))
        return x1 + t * (x2 - x1), y1 + t * (y2 - y1)


def extract_contour(grid: Grid, level: float = 0.0) -> List[Segment]:
    """Return the segments of ``f = level`` over ``grid``.

    Cells are visited with the x index outer and the y index inner; segments
    of one cell are emitted in table order.
    """
    level = float(level)
    values = grid.values
    indices = configuration_indices(values, level)
    crossed = np.asarray(EDGE_TABLE)[indices] != 0
    if not crossed.any():
        return []

    corner_values = cell_corner_values(values)[:4]
    shape = indices.shape
    xs, ys = grid.x_nodes, grid.y_nodes
    corner_points = [
        (
            np.broadcast_to(xs[ox : ox + shape[0]][:, None], shape),
            np.broadcast_to(ys[oy : oy + shape[1]][None, :], shape),
        )
        for ox, oy in CORNER_OFFSETS
    ]
    edge_points = [
        interpolate(level, corner_points[a], corner_points[b], corner_values[a], corner_values[b])
        for a, b in EDGE_CORNERS
    ]

    segments: List[Segment] = []
    for n, m in zip(*np.nonzero(crossed)):
        for a, b in TRI_TABLE[indices[n, m]]:
            start = Point(float(edge_points[a][0][n, m]), float(edge_points[a][1][n, m]))
            end = Point(float(edge_points[b][0][n, m]), float(edge_points[b][1][n, m]))
            segments.append(Segment(start, end))

    logger.debug("extracted %d segments from %d crossed cells", len(segments), int(crossed.sum()))
    return segments


__all__ = [
    "CORNER_OFFSETS",
    "EDGE_CORNERS",
    "EDGE_TABLE",
    "Point",
    "SADDLE_INDICES",
    "Segment",
    "TRI_TABLE",
    "configuration_index",
    "configuration_indices",
    "extract_contour",
    "interpolate",
    "resolve_saddle",
]

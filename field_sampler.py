"""Regular-grid sampling of a two-variable expression.

Purpose
-------
Produces the scalar field consumed by :mod:`xyplot_toolkit.contour`. Each
grid node costs exactly one oracle call; this is the dominant cost of
implicit plotting and nothing is cached between passes.

Architecture notes
------------------
- Nodes are independent, so a failing node never aborts the grid: it is
  stored as ``NaN`` and the pass continues.
- Non-real results (complex, matrix, system) and failed evaluations are
  each reported once per sampled expression through the supplied
  :class:`DiagnosticLog`, not once per node. A failure is reported with the
  message of the first failing node.
- The grid is indexed ``values[n, m]`` with ``n`` along x and ``m`` along y.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Tuple

import numpy as np
from sympy.core.symbol import Symbol

from .diagnostics import DiagnosticLog
from .evaluation import Oracle, ResultKind, type_error_message

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

Extent = Tuple[float, float, float, float]


@dataclass(frozen=True, eq=False)
class Grid:
    """Immutable scalar samples on a regular lattice.

    Parameters
    ----------
    values : numpy.ndarray
        Array of shape ``(nx + 1, ny + 1)``; ``values[n, m]`` is the sample at
        ``(xmin + n*dx, ymin + m*dy)``.
    xmin, ymin : float
        World coordinates of node ``(0, 0)``.
    dx, dy : float
        Cell size.
    """

    values: np.ndarray
    xmin: float
    ymin: float
    dx: float
    dy: float

    def __post_init__(self) -> None:
        values = np.array(self.values, dtype=float)
        if values.ndim != 2 or values.shape[0] < 2 or values.shape[1] < 2:
            raise ValueError("grid values must be a 2-D array with at least 2x2 nodes")
        values.flags.writeable = False
        object.__setattr__(self, "values", values)

    @classmethod
    def from_extent(cls, values: Any, extent: Extent) -> "Grid":
        """Build a grid whose nodes span ``(xmin, xmax, ymin, ymax)`` inclusively."""
        arr = np.asarray(values, dtype=float)
        if arr.ndim != 2 or arr.shape[0] < 2 or arr.shape[1] < 2:
            raise ValueError("grid values must be a 2-D array with at least 2x2 nodes")
        xmin, xmax, ymin, ymax = (float(v) for v in extent)
        nx, ny = arr.shape[0] - 1, arr.shape[1] - 1
        return cls(arr, xmin, ymin, (xmax - xmin) / nx, (ymax - ymin) / ny)

    @property
    def nx(self) -> int:
        """Number of cells along x."""
        return self.values.shape[0] - 1

    @property
    def ny(self) -> int:
        """Number of cells along y."""
        return self.values.shape[1] - 1

    @property
    def x_nodes(self) -> np.ndarray:
        return self.xmin + self.dx * np.arange(self.nx + 1)

    @property
    def y_nodes(self) -> np.ndarray:
        return self.ymin + self.dy * np.arange(self.ny + 1)


class ScalarFieldSampler:
    """Evaluate ``f(x, y)`` on an ``(N+1) x (M+1)`` node lattice through an oracle.

    Parameters
    ----------
    oracle : Oracle
        Evaluation backend; called once per node.
    diagnostics : DiagnosticLog, optional
        Destination for the once-per-expression type and failure diagnostics.
    """

    def __init__(self, oracle: Oracle, diagnostics: Optional[DiagnosticLog] = None) -> None:
        self._oracle = oracle
        self._diagnostics = diagnostics

    def sample(
        self,
        expr: Any,
        x_var: Symbol,
        y_var: Symbol,
        extent: Extent,
        counts: Tuple[int, int],
        context: Optional[Mapping[Symbol, Any]] = None,
    ) -> Grid:
        """Sample ``expr`` with ``x_var`` along x and ``y_var`` along y.

        Parameters
        ----------
        extent : tuple
            ``(xmin, xmax, ymin, ymax)`` in world units.
        counts : tuple[int, int]
            Cell counts ``(N, M)``; the grid has ``(N+1) x (M+1)`` nodes.

        Returns
        -------
        Grid
        """
        n_cells, m_cells = (int(c) for c in counts)
        if n_cells < 1 or m_cells < 1:
            raise ValueError("grid counts must be >= 1 in both directions")
        xmin, xmax, ymin, ymax = (float(v) for v in extent)
        dx = (xmax - xmin) / n_cells
        dy = (ymax - ymin) / m_cells

        values = np.full((n_cells + 1, m_cells + 1), np.nan, dtype=float)
        offending: Optional[ResultKind] = None
        first_failure: Optional[str] = None
        failures = 0

        for n in range(n_cells + 1):
            x = n * dx + xmin
            for m in range(m_cells + 1):
                y = m * dy + ymin
                result = self._oracle.evaluate(expr, {x_var: x, y_var: y}, context)
                if result.is_real:
                    values[n, m] = result.value
                elif result.kind is ResultKind.ERROR or result.is_text:
                    failures += 1
                    if first_failure is None:
                        first_failure = result.message if not result.is_text else "The type of result is text."
                elif offending is None:
                    offending = result.kind

        logger.debug(
            "sampled %s on %dx%d nodes (%d failed)", expr, n_cells + 1, m_cells + 1, failures
        )
        if self._diagnostics is not None:
            if offending is not None:
                self._diagnostics.report(type_error_message(offending), expr, category="type")
            if first_failure is not None:
                self._diagnostics.report(first_failure or "Evaluation failed.", expr, category="error")

        return Grid(values, xmin, ymin, dx, dy)


__all__ = ["Extent", "Grid", "ScalarFieldSampler"]

from __future__ import annotations

import math

import numpy as np
import pytest
import sympy as sp

from xyplot_toolkit.contour import (
    CORNER_OFFSETS,
    EDGE_CORNERS,
    EDGE_TABLE,
    SADDLE_INDICES,
    TRI_TABLE,
    Point,
    Segment,
    configuration_index,
    configuration_indices,
    extract_contour,
    resolve_saddle,
)
from xyplot_toolkit.evaluation import SympyOracle
from xyplot_toolkit.field_sampler import Grid, ScalarFieldSampler

try:
    from hypothesis import given
    from hypothesis import strategies as st
except ModuleNotFoundError:  # pragma: no cover - environment-specific fallback
    pytest.skip("hypothesis is required for property-based tests", allow_module_level=True)


SAMPLES = st.floats(min_value=-10.0, max_value=10.0, allow_nan=False, allow_infinity=False)


def _cell(tl: float, tr: float, br: float, bl: float) -> np.ndarray:
    """Node array of a single cell (``values[n, m]``, n along x)."""
    return np.array([[bl, tl], [br, tr]], dtype=float)


def test_tables_agree_on_crossed_edges() -> None:
    for index, pairs in enumerate(TRI_TABLE):
        mask = 0
        for a, b in pairs:
            mask |= (1 << a) | (1 << b)
        assert mask == EDGE_TABLE[index]


@pytest.mark.parametrize("corners", [(1.0, 2.0, 3.0, 4.0), (-1.0, -2.0, -3.0, -4.0)])
def test_cell_on_one_side_emits_nothing(corners) -> None:
    grid = Grid(_cell(*corners), 0.0, 0.0, 1.0, 1.0)
    assert extract_contour(grid) == []


def test_single_cell_crossing_matches_hand_computation() -> None:
    grid = Grid(np.array([[-1.0, 1.0], [-1.0, 1.0]]), 0.0, 0.0, 1.0, 1.0)
    assert extract_contour(grid) == [Segment(Point(1.0, 0.5), Point(0.0, 0.5))]


def test_bits_follow_corner_winding_order() -> None:
    assert configuration_index((-1.0, 1.0, 1.0, 1.0)) == 1
    assert configuration_index((1.0, -1.0, 1.0, 1.0)) == 2
    assert configuration_index((1.0, 1.0, -1.0, 1.0)) == 4
    assert configuration_index((1.0, 1.0, 1.0, -1.0)) == 8
    assert configuration_index((1.0, 1.0, 1.0, 1.0)) == 0
    assert configuration_index((-1.0, -1.0, -1.0, -1.0)) == 15


def test_saddle_is_reclassified_when_center_is_below_level() -> None:
    # TL and BR below 0.5, center 0.0 below too.
    assert configuration_index((-1.0, 1.0, -1.0, 1.0), level=0.5) == 10
    # TR and BL below 0.5, center 0.0 below too.
    assert configuration_index((1.0, -1.0, 1.0, -1.0), level=0.5) == 5


def test_saddle_keeps_index_when_center_is_above_level() -> None:
    assert configuration_index((-1.0, 1.0, -1.0, 1.0), level=-0.5) == 5
    assert configuration_index((1.0, -1.0, 1.0, -1.0), level=-0.5) == 10


def test_saddle_center_equal_to_level_is_not_below() -> None:
    assert configuration_index((-1.0, 1.0, -1.0, 1.0), level=0.0) == 5
    assert configuration_index((1.0, -1.0, 1.0, -1.0), level=0.0) == 10
    assert resolve_saddle(5, 0.0, 0.0) == 5
    assert resolve_saddle(10, 0.0, 0.0) == 10


def test_resolve_saddle_leaves_other_indices_alone() -> None:
    for index in range(16):
        if index not in (5, 10):
            assert resolve_saddle(index, -100.0, 0.0) == index


def test_vectorised_indices_flip_only_saddles() -> None:
    # Three cells along x with centers below the level: raw indices 5, 10 and 3.
    values = np.array([[1.0, -1.0], [-1.0, 1.0], [1.0, -1.0], [1.0, -1.0]])
    indices = configuration_indices(values, level=0.5)
    assert [int(i) for i in indices[:, 0]] == [10, 5, 3]
    for n in range(3):
        corners = (values[n, 1], values[n + 1, 1], values[n + 1, 0], values[n, 0])
        assert configuration_index(corners, 0.5) == int(indices[n, 0])
    assert resolve_saddle(3, -100.0, 0.0) == 3 and 3 not in SADDLE_INDICES


def test_saddle_cell_emits_two_segments() -> None:
    grid = Grid(_cell(-1.0, 1.0, -1.0, 1.0), 0.0, 0.0, 1.0, 1.0)
    assert len(extract_contour(grid)) == 2


def test_segments_are_emitted_with_x_index_outer() -> None:
    values = np.array([[-1.0, 1.0], [-1.0, 1.0], [-1.0, 1.0]])
    segments = extract_contour(Grid(values, 0.0, 0.0, 1.0, 1.0))
    assert [seg.start.x for seg in segments] == [1.0, 2.0]
    assert [seg.end.x for seg in segments] == [0.0, 1.0]


def test_level_shifts_the_contour() -> None:
    grid = Grid(np.array([[0.0, 4.0], [0.0, 4.0]]), 0.0, 0.0, 1.0, 1.0)
    (segment,) = extract_contour(grid, level=1.0)
    assert segment.start.y == pytest.approx(0.25)
    assert segment.end.y == pytest.approx(0.25)


def test_nan_nodes_do_not_raise() -> None:
    values = np.array([[np.nan, -1.0], [1.0, np.nan]])
    segments = extract_contour(Grid(values, 0.0, 0.0, 1.0, 1.0))
    assert isinstance(segments, list)


def test_end_to_end_parabola_produces_a_real_segment() -> None:
    x, y = sp.symbols("x y")
    grid = ScalarFieldSampler(SympyOracle()).sample(x**2 - y, x, y, (-1.0, 1.0, -1.0, 1.0), (2, 2))
    segments = extract_contour(grid, 0.0)
    assert segments
    assert any(seg.is_finite and seg.start != seg.end for seg in segments)


@given(corners=st.tuples(SAMPLES, SAMPLES, SAMPLES, SAMPLES), level=SAMPLES)
def test_saddle_resolution_is_deterministic(corners, level) -> None:
    first = configuration_index(corners, level)
    assert configuration_index(corners, level) == first
    assert int(configuration_indices(_cell(*corners), level)[0, 0]) == first


def _cell_crossings(grid: Grid, n: int, m: int, level: float) -> list:
    """Level crossings on the crossed edges of cell ``(n, m)``, each with its ``t``."""
    corners = [(n + ox, m + oy) for ox, oy in CORNER_OFFSETS]
    crossings = []
    for a, b in EDGE_CORNERS:
        (na, ma), (nb, mb) = corners[a], corners[b]
        v1, v2 = grid.values[na, ma], grid.values[nb, mb]
        if (v1 < level) == (v2 < level):
            continue
        t = (level - v1) / (v2 - v1)
        xa, ya = grid.x_nodes[na], grid.y_nodes[ma]
        xb, yb = grid.x_nodes[nb], grid.y_nodes[mb]
        crossings.append((t, Point(xa + t * (xb - xa), ya + t * (yb - ya))))
    return crossings


def _matches(p: Point, q: Point, tol: float = 1e-9) -> bool:
    return math.isclose(p.x, q.x, abs_tol=tol) and math.isclose(p.y, q.y, abs_tol=tol)


@given(values=st.lists(SAMPLES, min_size=9, max_size=9), level=SAMPLES)
def test_endpoints_are_convex_combinations_of_edge_corners(values, level) -> None:
    grid = Grid(np.array(values).reshape(3, 3), -1.0, 0.0, 0.5, 2.0)
    cells = [(n, m) for n in range(grid.nx) for m in range(grid.ny)]
    for seg in extract_contour(grid, level):
        assert seg.is_finite
        owners = []
        for n, m in cells:
            crossings = _cell_crossings(grid, n, m, level)
            if all(any(_matches(p, q) for _, q in crossings) for p in seg):
                owners.append(crossings)
        assert owners, f"{seg} does not join two crossings of one cell"
        for crossings in owners:
            assert all(0.0 <= t <= 1.0 for t, _ in crossings)

from __future__ import annotations

import numpy as np
import plotly.graph_objects as go
import pytest
import sympy as sp

from xyplot_toolkit.AxisSnapshot import AxisSnapshot, RegionSnapshot
from xyplot_toolkit.evaluation import EvaluationContext, SympyOracle
from xyplot_toolkit.plot_region import DEFAULT_POINTS, XYPlotRegion
from xyplot_toolkit.region_registry import RegionRegistry
from xyplot_toolkit.sheet_properties import (
    PropertiesSource,
    PropertySource,
    apply_sheet_properties,
)
from xyplot_toolkit.traces import TraceKind


class ExplodingOracle(SympyOracle):
    """Oracle that fails hard once ``armed`` is set."""

    armed = False

    def evaluate(self, expr, bindings=None, context=None):
        if self.armed:
            raise RuntimeError("backend crashed")
        return super().evaluate(expr, bindings, context)


def test_defaults() -> None:
    region = XYPlotRegion()
    assert region.x_axis.as_triple() == (-5.0, 5.0, 2.5)
    assert region.y_axis.as_triple() == (-1.0, 1.0, 0.5)
    assert region.points == DEFAULT_POINTS
    assert region.plot_size == (400.0, 300.0)
    assert region.interactive
    assert region.id is None


def test_settings_are_validated() -> None:
    with pytest.raises(ValueError):
        XYPlotRegion(points=1)
    with pytest.raises(ValueError):
        XYPlotRegion(plot_size=(0, 300))
    assert XYPlotRegion(points="50").points == 50
    assert XYPlotRegion(x_axis=("-pi", "pi", 1)).x_axis.max == pytest.approx(np.pi)


def test_evaluate_fills_one_slot_per_item(make_region, xy) -> None:
    x, y = xy
    region = make_region(sp.sin(x), x**2 + y**2 - 0.5, points=11)
    traces = region.evaluate()
    assert traces is region.traces
    assert [trace.kind for trace in traces] == [TraceKind.POINTS, TraceKind.SEGMENTS]
    assert len(traces[0]) == 11
    np.testing.assert_allclose(traces[0].data[[0, -1], 0], [-5.0, 5.0])


def test_evaluate_accepts_a_plain_mapping(make_region, xy) -> None:
    x, _ = xy
    region = make_region(sp.Symbol("k") * x, points=3)
    region.evaluate({"k": 2})
    np.testing.assert_allclose(region.traces[0].data[:, 1], [-10.0, 0.0, 10.0])


def test_stale_slots_are_pruned_and_styles_kept(make_region, xy) -> None:
    x, _ = xy
    region = make_region(x, 2 * x, 3 * x, points=5)
    region.evaluate()
    region.traces.set_style(0, color="black", name="line")

    region.expressions = [x + 1]
    region.evaluate()

    assert len(region.traces) == 1
    assert region.traces[0].style.color == "black"
    assert region.traces[0].style.name == "line"


def test_diagnostics_belong_to_the_last_pass(make_region, xy) -> None:
    x, y = xy
    region = make_region(x + y + sp.Symbol("z"), points=5)
    region.evaluate()
    assert region.diagnostics.messages == ("Too many unknowns.",)

    region.expressions = [x]
    region.evaluate()
    assert len(region.diagnostics) == 0


def test_unexpected_errors_clear_remaining_slots_and_propagate(xy) -> None:
    x, _ = xy
    oracle = ExplodingOracle()
    region = XYPlotRegion([x, 2 * x], points=5, oracle=oracle, emit_warnings=False)
    region.evaluate()
    region.traces.set_style(1, color="navy")

    oracle.armed = True
    with pytest.raises(RuntimeError, match="backend crashed"):
        region.evaluate()

    assert len(region.traces) == 2
    assert all(trace.cleared and trace.is_empty for trace in region.traces)
    assert region.traces[1].style.color == "navy"


def test_rescale_ticks_uses_plot_size(make_region) -> None:
    region = make_region(x_axis=(0, 1, 1), y_axis=(0, 90, 1))
    region.rescale_ticks()
    assert region.x_axis.tick == pytest.approx(0.2)
    assert region.y_axis.tick == pytest.approx(20.0)


def test_zoom_and_pan(make_region) -> None:
    region = make_region()
    assert region.zoom(1)
    assert region.x_axis.bounds == pytest.approx((-4.0, 4.0))
    assert region.y_axis.bounds == pytest.approx((-0.8, 0.8))

    region = make_region()
    assert region.pan(40, 0)
    assert region.x_axis.bounds == pytest.approx((-6.0, 4.0))
    assert region.pan(0, 30)
    assert region.y_axis.bounds == pytest.approx((-0.8, 1.2))


def test_snapshot_round_trip(make_region) -> None:
    region = make_region(
        x_axis=(-2, 3, 1),
        points=42,
        plot_size=(640, 480),
        properties_source=PropertiesSource(3, PropertySource.SHEET),
    )
    snapshot = region.snapshot()
    assert snapshot.x_axis == AxisSnapshot(-2.0, 3.0, 1.0)

    restored = RegionSnapshot.from_dict(snapshot.to_dict())
    assert restored == snapshot

    rebuilt = XYPlotRegion.from_snapshot(restored, emit_warnings=False)
    assert rebuilt.snapshot() == snapshot


def test_snapshot_without_source_uses_defaults() -> None:
    data = {
        "x_axis": {"min": -1, "max": 1, "tick": 0.5},
        "y_axis": {"min": 0, "max": 2, "tick": 1},
        "points": 10,
        "plot_size": [400, 300],
    }
    snapshot = RegionSnapshot.from_dict(data)
    assert snapshot.properties_source == PropertiesSource()
    assert snapshot.y_axis.as_triple() == (0.0, 2.0, 1.0)


def test_registry_tracks_regions_and_clones(make_region, xy) -> None:
    x, _ = xy
    registry = RegionRegistry()
    first = make_region(x, points=5, registry=registry)
    second = make_region(2 * x, points=5, registry=registry)
    assert registry.ids() == ["xyplot-1", "xyplot-2"]
    assert registry[first.id] is first
    assert registry.register(first) == first.id

    first.evaluate()
    first.traces.set_style(0, color="black")
    copy = first.clone()
    assert copy.id == "xyplot-3"
    assert copy in registry
    copy.evaluate()
    assert copy.traces[0].style.color == "black"
    assert copy.x_axis is not first.x_axis

    first.dispose()
    first.dispose()
    assert first not in registry
    assert registry.ids() == ["xyplot-2", "xyplot-3"]
    assert registry.unregister("xyplot-2")
    assert registry.get("xyplot-2") is None
    assert second.id == "xyplot-2"


def test_evaluate_all_runs_every_region(make_region, xy) -> None:
    x, _ = xy
    registry = RegionRegistry(prefix="plot")
    regions = [make_region(k * x, points=3, registry=registry) for k in (1, 2)]
    registry.evaluate_all(EvaluationContext())
    assert [len(region.traces) for region in regions] == [1, 1]
    assert registry.ids() == ["plot-1", "plot-2"]


def test_sheet_properties_override_region_settings(make_region, xy) -> None:
    x, _ = xy
    context = EvaluationContext(
        {
            "XYPlot.XLimMin": [-10, -2],
            "XYPlot.XLimMax": [10, 2],
            "XYPlot.Points": [200, 5],
            "XYPlot.YTick": [0.1, -1],
        }
    )
    region = make_region(x, properties_source=PropertiesSource(2, "sheet"))
    region.evaluate(context)

    assert region.x_axis.bounds == (-2.0, 2.0)
    assert region.points == 5
    assert region.y_axis.tick == 0.5
    np.testing.assert_allclose(region.traces[0].data[:, 0], [-2.0, -1.0, 0.0, 1.0, 2.0])


def test_sheet_source_disables_pan_and_zoom(make_region) -> None:
    region = make_region(properties_source=PropertiesSource(source=PropertySource.SHEET))
    assert not region.interactive
    assert region.zoom(1) is False
    assert region.pan(10, 10) is False
    assert region.x_axis.as_triple() == (-5.0, 5.0, 2.5)


def test_apply_sheet_properties_skips_bad_entries(make_region) -> None:
    region = make_region()
    context = EvaluationContext(
        {
            "XYPlot.XTick": [1],
            "XYPlot.YLimMin": [-3],
            "XYPlot.YLimMax": "oops",
            "XYPlot.Points": [2.5],
        }
    )
    applied = apply_sheet_properties(region, context, SympyOracle(), 1)
    assert applied == ["XYPlot.XTick", "XYPlot.YLimMin"]
    assert region.x_axis.tick == 1.0
    assert region.y_axis.min == -3.0
    assert region.points == DEFAULT_POINTS


def test_properties_source_is_one_based() -> None:
    with pytest.raises(ValueError):
        PropertiesSource(0)


def test_to_plotly_builds_a_figure(make_region, xy) -> None:
    x, _ = xy
    region = make_region(x, -x, points=5)
    region.evaluate()
    fig = region.to_plotly()
    assert isinstance(fig, go.Figure)
    assert len(fig.data) == 2
    assert tuple(fig.layout.xaxis.range) == (-5.0, 5.0)
    assert fig.layout.showlegend is True

from __future__ import annotations

import numpy as np
import pytest

from xyplot_toolkit.contour import Point, Segment
from xyplot_toolkit.traces import (
    DEFAULT_LINE_COLORS,
    PlotMethod,
    TextLabel,
    TraceBuffer,
    TraceKind,
    coerce_plot_method,
)


def _fill(buffer: TraceBuffer, count: int) -> None:
    buffer.begin_pass()
    for i in range(count):
        buffer.add(TraceKind.POINTS, [[i, i]])
    buffer.finish_pass()


def test_palette_cycles_by_slot_index() -> None:
    buffer = TraceBuffer()
    _fill(buffer, 8)
    colors = [trace.style.color for trace in buffer]
    assert colors[:6] == list(DEFAULT_LINE_COLORS)
    assert colors[6:] == ["blue", "red"]
    assert [trace.style.name for trace in buffer][:2] == ["Trace 1", "Trace 2"]


def test_existing_slot_keeps_its_style_across_passes() -> None:
    buffer = TraceBuffer()
    _fill(buffer, 2)
    buffer.set_style(1, color="black", name="data", y2=True)

    buffer.begin_pass()
    buffer.add(TraceKind.POINTS, [[0, 0]])
    buffer.add(TraceKind.POINTS, [[1, 1], [2, 2]])
    buffer.finish_pass()

    assert buffer[1].style.color == "black"
    assert buffer[1].style.name == "data"
    assert buffer[1].style.y2 is True
    assert len(buffer[1]) == 2


def test_finish_pass_prunes_unused_slots() -> None:
    buffer = TraceBuffer()
    _fill(buffer, 4)
    _fill(buffer, 1)
    assert len(buffer) == 1


def test_clear_pending_empties_but_keeps_slots() -> None:
    buffer = TraceBuffer()
    _fill(buffer, 3)
    buffer.set_style(2, color="navy")

    buffer.begin_pass()
    buffer.add(TraceKind.POINTS, [[5, 5]])
    buffer.clear_pending()

    assert len(buffer) == 3
    assert buffer[1].is_empty and buffer[1].cleared
    assert buffer[2].style.color == "navy"


def test_add_cleared_occupies_a_slot() -> None:
    buffer = TraceBuffer()
    buffer.begin_pass()
    buffer.add_cleared(expression="bad")
    buffer.add(TraceKind.POINTS, [[0, 1]])
    buffer.finish_pass()

    assert len(buffer) == 2
    assert buffer[0].cleared and buffer[0].expression == "bad"
    assert buffer[1].style.color == "red"


def test_plot_method_is_forced_or_kept_by_kind() -> None:
    assert coerce_plot_method(TraceKind.SEGMENTS, PlotMethod.SPLINES) is PlotMethod.LINES
    assert coerce_plot_method(TraceKind.LABELS, PlotMethod.LINES) is PlotMethod.LABELS
    assert coerce_plot_method(TraceKind.SHAPES, PlotMethod.LINES) is PlotMethod.SHAPES
    assert coerce_plot_method(TraceKind.POINTS, PlotMethod.SPLINES) is PlotMethod.SPLINES
    assert coerce_plot_method(TraceKind.POINTS, PlotMethod.LABELS) is PlotMethod.LINES
    assert coerce_plot_method(TraceKind.POLYLINES, PlotMethod.MARKERS) is PlotMethod.LINES


def test_slot_switching_kind_updates_plot_method() -> None:
    buffer = TraceBuffer()
    buffer.begin_pass()
    buffer.add(TraceKind.LABELS, [TextLabel("a", 0.0, 0.0)])
    buffer.finish_pass()
    assert buffer[0].style.plot_method is PlotMethod.LABELS

    buffer.begin_pass()
    buffer.add(TraceKind.POINTS, [[0, 0]])
    buffer.finish_pass()
    assert buffer[0].style.plot_method is PlotMethod.LINES


def test_data_is_normalised_per_kind() -> None:
    buffer = TraceBuffer()
    buffer.begin_pass()
    points = buffer.add(TraceKind.POINTS, [[0, 1], [2, 3]])
    lines = buffer.add(TraceKind.POLYLINES, [[[0, 0], [1, 1]], [[2, 2], [3, 3], [4, 4]]])
    segments = buffer.add(TraceKind.SEGMENTS, [((0, 0), (1, 1))])
    buffer.finish_pass()

    assert points.data.shape == (2, 2)
    with pytest.raises(ValueError):
        points.data[0, 0] = 9.0
    assert [len(line) for line in lines.data] == [2, 3]
    assert segments.data[0] == Segment(Point(0, 0), Point(1, 1))


def test_label_symbols() -> None:
    assert TextLabel("+", 0.0, 0.0).is_symbol
    assert not TextLabel("peak", 0.0, 0.0).is_symbol


def test_empty_palette_is_rejected() -> None:
    with pytest.raises(ValueError):
        TraceBuffer(palette=())


def test_restore_styles_preseeds_slots() -> None:
    source = TraceBuffer()
    _fill(source, 2)
    source.set_style(0, plot_method="splines")

    target = TraceBuffer()
    target.restore_styles(source.styles())
    target.begin_pass()
    target.add(TraceKind.POINTS, np.zeros((3, 2)))
    target.finish_pass()

    assert target[0].style.plot_method is PlotMethod.SPLINES
    assert len(target) == 1

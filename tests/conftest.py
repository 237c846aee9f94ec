from __future__ import annotations

import warnings
from typing import Any, Dict, List, Optional

import pytest
import sympy as sp

from xyplot_toolkit.diagnostics import PlotDiagnosticWarning
from xyplot_toolkit.evaluation import EvalResult, SympyOracle
from xyplot_toolkit.plot_region import XYPlotRegion


class RecordingOracle(SympyOracle):
    """SympyOracle that remembers every binding it was asked about."""

    def __init__(self) -> None:
        super().__init__()
        self.bindings: List[Dict[Any, Any]] = []

    def evaluate(self, expr: Any, bindings: Optional[Dict[Any, Any]] = None, context: Any = None) -> EvalResult:
        self.bindings.append(dict(bindings or {}))
        return super().evaluate(expr, bindings, context)


@pytest.fixture
def xy():
    return sp.symbols("x y")


@pytest.fixture
def oracle() -> RecordingOracle:
    return RecordingOracle()


@pytest.fixture(autouse=True)
def _quiet_plot_diagnostics():
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", PlotDiagnosticWarning)
        yield


@pytest.fixture
def make_region():
    """Factory for regions that keep diagnostics out of the warnings machinery."""

    def factory(*expressions: Any, **kwargs: Any) -> XYPlotRegion:
        kwargs.setdefault("emit_warnings", False)
        return XYPlotRegion(expressions, **kwargs)

    return factory

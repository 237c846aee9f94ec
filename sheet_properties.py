"""Region settings read from sheet variables.

When a region's :class:`PropertiesSource` is :attr:`PropertySource.SHEET`,
the axis limits, tick steps and resolution are taken from column vectors
defined on the sheet instead of from the region itself::

    XYPlot.XLimMin := [-10; -2]     # region with index 2 uses -2
    XYPlot.Points  := [200; 50]

Each key maps to an explicit converter and setter in
:data:`SHEET_PROPERTIES`. A missing key, a non-matrix value, an index out of
range or a value the converter rejects leaves that one setting unchanged.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, List, Tuple

from sympy.core.symbol import Symbol

from .diagnostics import EvaluationTypeError
from .evaluation import EvaluationContext, Oracle, ResultKind

if TYPE_CHECKING:
    from .plot_region import XYPlotRegion

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class PropertySource(Enum):
    """Where a region takes its axis and resolution settings from."""

    REGION = "region"
    SHEET = "sheet"


@dataclass(frozen=True)
class PropertiesSource:
    """Settings source of a region plus its 1-based row in the sheet vectors."""

    index: int = 1
    source: PropertySource = PropertySource.REGION

    def __post_init__(self) -> None:
        if int(self.index) < 1:
            raise ValueError("properties index is 1-based and must be >= 1")
        object.__setattr__(self, "index", int(self.index))
        object.__setattr__(self, "source", PropertySource(self.source))

    @property
    def from_sheet(self) -> bool:
        return self.source is PropertySource.SHEET


def _finite(value: float) -> float:
    if not math.isfinite(value):
        raise ValueError(f"{value!r} is not finite")
    return value


def _positive(value: float) -> float:
    if not _finite(value) > 0:
        raise ValueError(f"{value!r} is not positive")
    return value


def _point_count(value: float) -> int:
    if not float(value).is_integer() or value < 2:
        raise ValueError(f"{value!r} is not an integer >= 2")
    return int(value)


@dataclass(frozen=True)
class SheetProperty:
    """One sheet key with its converter and region setter."""

    key: str
    convert: Callable[[float], Any]
    apply: Callable[["XYPlotRegion", Any], None]


def _set_axis(axis: str, attr: str) -> Callable[["XYPlotRegion", Any], None]:
    def apply(region: "XYPlotRegion", value: Any) -> None:
        setattr(getattr(region, axis), attr, value)

    return apply


def _set_points(region: "XYPlotRegion", value: int) -> None:
    region.points = value


SHEET_PROPERTIES: Tuple[SheetProperty, ...] = (
    SheetProperty("XYPlot.XLimMin", _finite, _set_axis("x_axis", "min")),
    SheetProperty("XYPlot.XLimMax", _finite, _set_axis("x_axis", "max")),
    SheetProperty("XYPlot.XTick", _positive, _set_axis("x_axis", "tick")),
    SheetProperty("XYPlot.YLimMin", _finite, _set_axis("y_axis", "min")),
    SheetProperty("XYPlot.YLimMax", _finite, _set_axis("y_axis", "max")),
    SheetProperty("XYPlot.YTick", _positive, _set_axis("y_axis", "tick")),
    SheetProperty("XYPlot.Points", _point_count, _set_points),
)


def apply_sheet_properties(
    region: "XYPlotRegion",
    context: EvaluationContext,
    oracle: Oracle,
    index: int,
) -> List[str]:
    """Apply every defined sheet property to ``region``.

    Parameters
    ----------
    index : int
        1-based row of the column vectors to use.

    Returns
    -------
    list[str]
        Keys that were applied.
    """
    applied: List[str] = []
    for prop in SHEET_PROPERTIES:
        if not context.is_defined(prop.key):
            continue
        result = oracle.evaluate(Symbol(prop.key), context=context)
        if result.kind is not ResultKind.MATRIX or not 0 < index <= result.rows:
            logger.debug("ignoring %s: not a column vector with row %d", prop.key, index)
            continue
        try:
            value = prop.convert(result.cell(index - 1, 0).to_double())
        except (EvaluationTypeError, ValueError) as exc:
            logger.debug("ignoring %s: %s", prop.key, exc)
            continue
        prop.apply(region, value)
        applied.append(prop.key)
    return applied


__all__ = [
    "PropertiesSource",
    "PropertySource",
    "SHEET_PROPERTIES",
    "SheetProperty",
    "apply_sheet_properties",
]

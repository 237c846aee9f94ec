"""Immutable snapshots of the persisted state of a plot region.

Only axis limits/ticks, resolution, plot size and the properties source are
persisted. Each snapshot converts to and from plain dictionaries so hosts can
store it in whatever document format they use.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple

from .axis_scaler import AxisRange
from .sheet_properties import PropertiesSource, PropertySource


@dataclass(frozen=True)
class AxisSnapshot:
    """Immutable ``(min, max, tick)`` record of one axis.

    Parameters
    ----------
    min, max : float
        World extent.
    tick : float
        Large-tick step.
    """

    min: float
    max: float
    tick: float

    @classmethod
    def from_axis(cls, axis: AxisRange) -> "AxisSnapshot":
        return cls(*axis.as_triple())

    def to_axis(self) -> AxisRange:
        return AxisRange(self.min, self.max, self.tick)

    def to_dict(self) -> Dict[str, float]:
        return {"min": self.min, "max": self.max, "tick": self.tick}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AxisSnapshot":
        return cls(float(data["min"]), float(data["max"]), float(data["tick"]))

    def as_triple(self) -> Tuple[float, float, float]:
        return (self.min, self.max, self.tick)


@dataclass(frozen=True)
class RegionSnapshot:
    """Immutable record of a region's persisted settings.

    Parameters
    ----------
    x_axis, y_axis : AxisSnapshot
        Axis limits and ticks.
    points : int
        Resolution setting.
    plot_size : tuple[float, float]
        Plot area ``(width, height)`` in pixels.
    properties_source : PropertiesSource
        Where settings are read from on evaluation.
    """

    x_axis: AxisSnapshot
    y_axis: AxisSnapshot
    points: int
    plot_size: Tuple[float, float]
    properties_source: PropertiesSource = PropertiesSource()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x_axis": self.x_axis.to_dict(),
            "y_axis": self.y_axis.to_dict(),
            "points": self.points,
            "plot_size": list(self.plot_size),
            "properties_source": {
                "index": self.properties_source.index,
                "source": self.properties_source.source.value,
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RegionSnapshot":
        """Rebuild a snapshot; a missing properties source means the defaults."""
        source = data.get("properties_source") or {}
        width, height = data["plot_size"]
        return cls(
            x_axis=AxisSnapshot.from_dict(data["x_axis"]),
            y_axis=AxisSnapshot.from_dict(data["y_axis"]),
            points=int(data["points"]),
            plot_size=(float(width), float(height)),
            properties_source=PropertiesSource(
                int(source.get("index", 1)),
                PropertySource(source.get("source", PropertySource.REGION.value)),
            ),
        )

    def __repr__(self) -> str:
        return (
            f"RegionSnapshot(x_axis={self.x_axis.as_triple()}, "
            f"y_axis={self.y_axis.as_triple()}, points={self.points})"
        )

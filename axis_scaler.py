"""Axis ranges and "nice" large-tick spacing.

Purpose
-------
Chooses a tick step of the form ``m * 10**e`` with ``m`` from a mantissa set
(``{1, 2, 5}`` by default) such that ticks are at least
``MIN_PHYSICAL_TICK_STEP`` pixels apart where possible, while always leaving
room for at least two ticks on the axis.

Concepts and structure
----------------------
- :func:`determine_large_tick_step` is the pure algorithm.
- :class:`AxisRange` is the session-scoped axis record (min, max, tick)
  mutated by zoom/pan interaction and dialog edits, and persisted as a
  ``(min, max, tick)`` triple.

Examples
--------
>>> determine_large_tick_step(0.0, 10.0, 400.0)
TickStep(step=2.0, cull_middle=False)
>>> determine_large_tick_step(3.0, 3.0, 400.0).step
1.0
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, NamedTuple, Sequence, Tuple

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

MIN_PHYSICAL_TICK_STEP = 60.0
MAX_TICK_COUNT = 1000
MANTISSAS: Tuple[float, ...] = (1.0, 2.0, 5.0)
ZERO_RANGE_EPSILON = 1000 * math.ulp(0.0)
ZOOM_FRACTION = 0.1


class TickStep(NamedTuple):
    """Result of :func:`determine_large_tick_step`.

    ``cull_middle`` is True when the step had to be shrunk to fit two ticks;
    tick drawing should then show only the two outermost ticks.
    """

    step: float
    cull_middle: bool


def determine_large_tick_step(
    world_min: float,
    world_max: float,
    physical_length: float,
    *,
    min_physical_step: float = MIN_PHYSICAL_TICK_STEP,
    mantissas: Sequence[float] = MANTISSAS,
) -> TickStep:
    """Return the world spacing between large ticks.

    Parameters
    ----------
    world_min, world_max : float
        Axis extent in world units (order does not matter).
    physical_length : float
        Axis length in pixels; must be positive.
    min_physical_step : float, optional
        Preferred minimum pixel distance between ticks.
    mantissas : sequence of float, optional
        Increasing mantissa set.

    Returns
    -------
    TickStep
        ``step`` satisfies ``step / range * physical_length <= physical_length / 2``.
    """
    if math.isnan(world_min) or math.isnan(world_max):
        raise ValueError("world extent of axis not set")
    if not physical_length > 0:
        raise ValueError("physical_length must be > 0")
    mantissas = tuple(float(m) for m in mantissas)
    if not mantissas or any(b <= a for a, b in zip(mantissas, mantissas[1:])):
        raise ValueError("mantissas must be a non-empty increasing sequence")

    world_range = abs(world_max - world_min)
    if world_range < ZERO_RANGE_EPSILON:
        return TickStep(1.0, False)

    approx_step = min_physical_step / physical_length * world_range
    log_step = math.log10(approx_step)
    exponent = math.floor(log_step)
    mantissa = 10.0 ** (log_step - exponent)

    # Largest mantissa not above the approximate one, then the next one up.
    index = len(mantissas) - 1
    for i in range(1, len(mantissas)):
        if mantissa < mantissas[i]:
            index = i - 1
            break
    index += 1
    if index == len(mantissas):
        index = 0
        exponent += 1

    cull_middle = False
    step = 10.0**exponent * mantissas[index]
    while step / world_range * physical_length > physical_length / 2:
        cull_middle = True
        index -= 1
        if index == -1:
            index = len(mantissas) - 1
            exponent -= 1
        step = 10.0**exponent * mantissas[index]

    return TickStep(step, cull_middle)


@dataclass
class AxisRange:
    """Mutable axis record: world extent plus large-tick step.

    Parameters
    ----------
    min, max : float
        World extent.
    tick : float
        Large-tick spacing in world units.
    mantissas : tuple of float
        Mantissa set used when rescaling.
    """

    min: float
    max: float
    tick: float
    mantissas: Tuple[float, ...] = field(default=MANTISSAS)
    cull_middle: bool = False

    def __post_init__(self) -> None:
        self.min = float(self.min)
        self.max = float(self.max)
        self.tick = float(self.tick)
        self.mantissas = tuple(float(m) for m in self.mantissas)

    @property
    def length(self) -> float:
        return abs(self.max - self.min)

    @property
    def bounds(self) -> Tuple[float, float]:
        return (min(self.min, self.max), max(self.min, self.max))

    def rescale(self, physical_length: float) -> TickStep:
        """Recompute :attr:`tick` for an axis drawn over ``physical_length`` pixels."""
        result = determine_large_tick_step(
            self.min, self.max, physical_length, mantissas=self.mantissas
        )
        self.tick, self.cull_middle = result.step, result.cull_middle
        return result

    def zoom(self, direction: int, physical_length: float | None = None) -> None:
        """Shrink (``direction > 0``) or grow (``direction < 0``) the range by 10% per side.

        When ``physical_length`` is given the tick step is recomputed.
        """
        delta = ZOOM_FRACTION * (1 if direction > 0 else -1 if direction < 0 else 0) * (self.max - self.min)
        self.min += delta
        self.max -= delta
        if physical_length is not None:
            self.rescale(physical_length)

    def pan(self, pixel_delta: float, physical_length: float) -> None:
        """Shift the range by a pointer drag of ``pixel_delta`` pixels.

        Dragging towards larger screen coordinates moves the content along,
        so the window moves the opposite way.
        """
        if not physical_length > 0:
            raise ValueError("physical_length must be > 0")
        shift = (self.max - self.min) / physical_length * pixel_delta
        self.min -= shift
        self.max -= shift

    def tick_values(self, *, cull_middle: bool | None = None) -> List[float]:
        """Return the large-tick positions inside the axis extent.

        Ticks sit at integer multiples of :attr:`tick`. With ``cull_middle``
        (defaulting to the flag of the last :meth:`rescale`) only the first
        and last tick are kept. A tick too fine for the extent is replaced by
        a nice step giving at most ``MAX_TICK_COUNT`` intervals.
        """
        lo, hi = self.bounds
        tick = self.tick
        if not tick > 0 or not (math.isfinite(lo) and math.isfinite(hi)):
            return []
        if (hi - lo) / tick > MAX_TICK_COUNT:
            tick = determine_large_tick_step(lo, hi, MAX_TICK_COUNT * MIN_PHYSICAL_TICK_STEP).step
            logger.debug("tick %g too fine for [%g, %g], using %g", self.tick, lo, hi, tick)
        begin = math.trunc(lo / tick)
        if begin * tick < lo:
            begin += 1
        end = math.trunc(hi / tick)
        if end * tick > hi:
            end -= 1
        ticks = [i * tick for i in range(begin, end + 1)]
        cull = self.cull_middle if cull_middle is None else cull_middle
        if cull and len(ticks) > 2:
            ticks = [ticks[0], ticks[-1]]
        return ticks

    def as_triple(self) -> Tuple[float, float, float]:
        return (self.min, self.max, self.tick)


def world_to_screen(
    x: float,
    y: float,
    x_axis: AxisRange,
    y_axis: AxisRange,
    plot_left: float,
    plot_bottom: float,
    plot_width: float,
    plot_height: float,
) -> Tuple[float, float]:
    """Affine world-to-pixel transform (screen y grows downwards)."""
    screen_x = plot_left + (x - x_axis.min) * plot_width / (x_axis.max - x_axis.min)
    screen_y = plot_bottom - (y - y_axis.min) * plot_height / (y_axis.max - y_axis.min)
    return screen_x, screen_y


__all__ = [
    "AxisRange",
    "MANTISSAS",
    "MAX_TICK_COUNT",
    "MIN_PHYSICAL_TICK_STEP",
    "TickStep",
    "determine_large_tick_step",
    "world_to_screen",
]

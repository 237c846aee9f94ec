"""Session-owned registry of live plot regions.

Regions register when they are created with a registry and unregister in
:meth:`~xyplot_toolkit.plot_region.XYPlotRegion.dispose`. Ids are stable for
the lifetime of the registry and never reused, so a clone always gets a
fresh id.
"""

from __future__ import annotations

import itertools
import logging
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional

if TYPE_CHECKING:
    from .evaluation import EvaluationContext
    from .plot_region import XYPlotRegion

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class RegionRegistry:
    """Explicit id -> region mapping owned by a plugin session.

    Parameters
    ----------
    prefix : str
        Prefix of generated ids (``"xyplot-1"``, ``"xyplot-2"``, ...).
    """

    def __init__(self, prefix: str = "xyplot") -> None:
        self._prefix = prefix
        self._regions: Dict[str, "XYPlotRegion"] = {}
        self._ids = itertools.count(1)

    def register(self, region: "XYPlotRegion") -> str:
        """Add ``region`` under a fresh id and return the id."""
        for region_id, existing in self._regions.items():
            if existing is region:
                return region_id
        region_id = f"{self._prefix}-{next(self._ids)}"
        self._regions[region_id] = region
        logger.debug("registered region %s", region_id)
        return region_id

    def unregister(self, region: Any) -> bool:
        """Remove a region given by object or id; return whether it was present."""
        if isinstance(region, str):
            removed = self._regions.pop(region, None)
            return removed is not None
        for region_id, existing in list(self._regions.items()):
            if existing is region:
                del self._regions[region_id]
                logger.debug("unregistered region %s", region_id)
                return True
        return False

    def get(self, region_id: str) -> Optional["XYPlotRegion"]:
        return self._regions.get(region_id)

    def __getitem__(self, region_id: str) -> "XYPlotRegion":
        return self._regions[region_id]

    def __contains__(self, item: Any) -> bool:
        if isinstance(item, str):
            return item in self._regions
        return any(existing is item for existing in self._regions.values())

    def ids(self) -> List[str]:
        return list(self._regions)

    def __iter__(self) -> Iterator["XYPlotRegion"]:
        return iter(list(self._regions.values()))

    def __len__(self) -> int:
        return len(self._regions)

    def evaluate_all(self, context: Optional["EvaluationContext"] = None) -> None:
        """Run one evaluation pass on every registered region, in registration order."""
        for region in self:
            region.evaluate(context)

    def __repr__(self) -> str:
        return f"RegionRegistry({self.ids()!r})"


__all__ = ["RegionRegistry"]

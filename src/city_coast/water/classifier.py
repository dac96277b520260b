"""Land/water classification over the published water geometry.

Generators never mutate the classifier while they run.  They build a
complete ``WaterSnapshot`` and publish it in one assignment, so any reader
sees either the previous world or the new one.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace

import shapely
from shapely.geometry.base import BaseGeometry

from city_coast.water.types import Point

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WaterSnapshot:
    """Published water geometry for one world.

    Attributes:
        sea: Sea polygon, or None for a world without sea
        lands: Island and landmass polygons; these win over the river
        river: River boundary polygon, or None
    """

    sea: BaseGeometry | None = None
    lands: tuple[BaseGeometry, ...] = ()
    river: BaseGeometry | None = None


EMPTY_SNAPSHOT = WaterSnapshot()

SnapshotListener = Callable[[WaterSnapshot], None]


def _prepare(snapshot: WaterSnapshot) -> None:
    for geom in (snapshot.sea, snapshot.river, *snapshot.lands):
        if geom is not None:
            shapely.prepare(geom)


class LandWaterClassifier:
    """Answers "is this point land?" against the current snapshot.

    Args:
        snapshot: Initial geometry; defaults to a world with no water
        ignore_river: Treat river water as land
    """

    def __init__(
        self,
        snapshot: WaterSnapshot | None = None,
        ignore_river: bool = False,
    ) -> None:
        self._snapshot = snapshot if snapshot is not None else EMPTY_SNAPSHOT
        _prepare(self._snapshot)
        self.ignore_river = ignore_river
        self._listeners: list[SnapshotListener] = []

    @property
    def snapshot(self) -> WaterSnapshot:
        return self._snapshot

    def add_listener(self, listener: SnapshotListener) -> None:
        """Call *listener* with every snapshot published from now on."""
        self._listeners.append(listener)

    def publish(self, snapshot: WaterSnapshot) -> None:
        """Replace the current geometry with *snapshot* and notify listeners."""
        _prepare(snapshot)
        self._snapshot = snapshot
        logger.debug(
            "Published water snapshot: sea=%s lands=%d river=%s",
            snapshot.sea is not None,
            len(snapshot.lands),
            snapshot.river is not None,
        )
        for listener in self._listeners:
            listener(snapshot)

    def reset(self) -> None:
        self.publish(EMPTY_SNAPSHOT)

    def is_land(self, point: Point) -> bool:
        snap = self._snapshot
        x, y = point
        if snap.sea is not None and shapely.contains_xy(snap.sea, x, y):
            return False
        for land in snap.lands:
            if shapely.contains_xy(land, x, y):
                return True
        if (
            not self.ignore_river
            and snap.river is not None
            and shapely.contains_xy(snap.river, x, y)
        ):
            return False
        return True

    def is_water(self, point: Point) -> bool:
        return not self.is_land(point)

    def without_sea(self) -> "LandWaterClassifier":
        """Detached classifier over the current snapshot with the sea removed."""
        return LandWaterClassifier(replace(self._snapshot, sea=None), self.ignore_river)

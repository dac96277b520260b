"""Spatial index of accepted streamline samples."""

import math
from collections.abc import Iterable

from city_coast.water.types import Point, WorldBounds


class CollisionGrid:
    """Uniform bucket grid with cell size ``dsep``.

    Points outside the world are still stored; cells are keyed by integer
    coordinates rather than laid out in a fixed array.
    """

    def __init__(self, world: WorldBounds, dsep: float) -> None:
        self.world = world
        self.dsep = dsep
        self._cells: dict[tuple[int, int], list[Point]] = {}

    def __len__(self) -> int:
        return sum(len(v) for v in self._cells.values())

    def _cell(self, point: Point) -> tuple[int, int]:
        return (
            math.floor((point[0] - self.world.origin_x) / self.dsep),
            math.floor((point[1] - self.world.origin_y) / self.dsep),
        )

    def add_sample(self, point: Point) -> None:
        self._cells.setdefault(self._cell(point), []).append(point)

    def add_polyline(self, points: Iterable[Point]) -> None:
        for point in points:
            self.add_sample(point)

    def is_valid_sample(self, point: Point, d_sq: float | None = None) -> bool:
        """True if no stored sample lies within ``sqrt(d_sq)`` of *point*.

        Defaults to ``dsep ** 2``.
        """
        if d_sq is None:
            d_sq = self.dsep * self.dsep
        radius = max(1, math.ceil(math.sqrt(d_sq) / self.dsep))
        cx, cy = self._cell(point)
        px, py = point
        for x in range(cx - radius, cx + radius + 1):
            for y in range(cy - radius, cy + radius + 1):
                for sx, sy in self._cells.get((x, y), ()):
                    if (sx - px) ** 2 + (sy - py) ** 2 < d_sq:
                        return False
        return True


class StreamlineStore:
    """Accepted streamlines split by eigenvector family.

    Each family has its own collision grid so that major lines only repel
    major lines unless a caller asks to test both.
    """

    def __init__(self, world: WorldBounds, dsep: float) -> None:
        self.world = world
        self.dsep = dsep
        self.major_grid = CollisionGrid(world, dsep)
        self.minor_grid = CollisionGrid(world, dsep)
        self.streamlines_major: list[list[Point]] = []
        self.streamlines_minor: list[list[Point]] = []
        self.all_streamlines: list[list[Point]] = []
        self.all_streamlines_simple: list[list[Point]] = []
        # Lines drawn as roads but not used for separation tests
        self.secondary_roads: list[list[Point]] = []

    def grid(self, major: bool) -> CollisionGrid:
        return self.major_grid if major else self.minor_grid

    def add(self, simplified: list[Point], densified: list[Point], major: bool) -> None:
        """Register an accepted streamline and index its densified samples."""
        self.all_streamlines_simple.append(simplified)
        self.all_streamlines.append(densified)
        if major:
            self.streamlines_major.append(densified)
        else:
            self.streamlines_minor.append(densified)
        self.grid(major).add_polyline(densified)

    def add_secondary(self, simplified: list[Point]) -> None:
        self.secondary_roads.append(simplified)
        self.all_streamlines_simple.append(simplified)

    def is_valid_sample(
        self,
        major: bool,
        point: Point,
        d_sq: float | None = None,
        collide_both: bool = False,
    ) -> bool:
        valid = self.grid(major).is_valid_sample(point, d_sq)
        if collide_both:
            valid = valid and self.grid(not major).is_valid_sample(point, d_sq)
        return valid

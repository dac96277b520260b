"""Streamline-based continental coastline and river generation.

A coastline is one streamline of the flow field that crosses the whole
world.  It is grown from a random seed in both directions at once, closed
into a loop if the two fronts meet again, and extended a few steps past
its ends so it leaves the world rectangle.  The rectangle is then split
along it and the smaller face becomes the sea.

A river is grown the same way along the other eigenvector family, buffered
into water and corridor polygons, and its corridor outline is cut into two
bank roads.
"""

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass

import numpy as np

from city_coast.water.collision import StreamlineStore
from city_coast.water.field import FlowField, RK4Integrator, Vector
from city_coast.water.polygons import (
    buffer_line,
    clip_to_world,
    contains_points,
    densify_polyline,
    ring_points,
    sea_polygon_from_line,
    simplify_polyline,
    split_world,
    to_polygon,
)
from city_coast.water.types import (
    CoastlineResult,
    ContinentalConfig,
    Point,
    RiverResult,
    StreamlineConfig,
    WorldBounds,
)

logger = logging.getLogger(__name__)

# Whole-streamline attempts per feature
TRIES = 100

# Endpoint extension past the last integrated point, in steps
EXTENSION_STEPS = 5


@dataclass
class _Front:
    """One direction of a bidirectional integration."""

    seed: Point
    original_dir: Vector
    previous_dir: Vector
    previous_point: Point
    points: list[Point]
    valid: bool = True


def _dot(a: Vector, b: Vector) -> float:
    return a[0] * b[0] + a[1] * b[1]


def _dist_sq(a: Point, b: Point) -> float:
    return (a[0] - b[0]) ** 2 + (a[1] - b[1]) ** 2


def _extend_point(tip: Point, before: Point, length: float) -> Point:
    dx = tip[0] - before[0]
    dy = tip[1] - before[1]
    norm = math.hypot(dx, dy)
    if norm == 0:
        return tip
    return (tip[0] + dx / norm * length, tip[1] + dy / norm * length)


class StreamlineGenerator:
    """Grows coastline and river streamlines into a shared store.

    The flow field is passed to each call, so one generator can integrate
    the coastline and the river against differently masked views.
    """

    def __init__(
        self,
        world: WorldBounds,
        config: StreamlineConfig,
        store: StreamlineStore,
        rng: np.random.Generator,
    ) -> None:
        self.world = world
        self.config = config
        self.store = store
        self.rng = rng

        self._dsep_sq = config.dsep**2
        self._dtest_sq = config.dtest**2
        self._circle_join_sq = config.dcirclejoin**2
        self._degenerate_sq = (0.1 * config.dstep) ** 2

    def find_seed(
        self,
        major: bool,
        is_land: Callable[[Point], bool] | None = None,
    ) -> Point | None:
        """Random world point clear of existing streamlines and on land.

        Returns None once ``seed_tries`` candidates have been rejected.
        """
        for _ in range(self.config.seed_tries):
            seed = self.world.random_point(self.rng)
            if not self.store.is_valid_sample(major, seed, self._dsep_sq):
                continue
            if is_land is not None and not is_land(seed):
                continue
            return seed
        return None

    def integrate_streamline(self, field: FlowField, seed: Point, major: bool) -> list[Point]:
        """Integrate from *seed* forward and backward simultaneously.

        Stops when both fronts are done, when they meet again after having
        separated (a closed loop), or after ``path_iterations`` steps.
        """
        integrator = RK4Integrator(field, self.config.dstep)
        d = integrator.integrate(seed, major)
        if _dot(d, d) < self._degenerate_sq:
            return [seed]

        neg_d = (-d[0], -d[1])
        forward_point = (seed[0] + d[0], seed[1] + d[1])
        backward_point = (seed[0] + neg_d[0], seed[1] + neg_d[1])
        forward = _Front(seed, d, d, forward_point, [seed], self.world.contains(forward_point))
        backward = _Front(seed, neg_d, neg_d, backward_point, [], self.world.contains(backward_point))

        collide_both = self.rng.random() < self.config.collide_early
        points_escaped = False

        for _ in range(self.config.path_iterations):
            if not (forward.valid or backward.valid):
                break
            self._step(integrator, forward, major, collide_both)
            self._step(integrator, backward, major, collide_both)

            gap_sq = _dist_sq(forward.previous_point, backward.previous_point)
            if not points_escaped and gap_sq > self._circle_join_sq:
                points_escaped = True
            if points_escaped and gap_sq <= self._circle_join_sq:
                forward.points.append(forward.previous_point)
                forward.points.append(backward.previous_point)
                backward.points.append(backward.previous_point)
                break

        backward.points.reverse()
        return backward.points + forward.points

    def _step(
        self,
        integrator: RK4Integrator,
        front: _Front,
        major: bool,
        collide_both: bool,
    ) -> None:
        if not front.valid:
            return
        front.points.append(front.previous_point)

        direction = integrator.integrate(front.previous_point, major)
        if _dot(direction, direction) < self._degenerate_sq:
            front.valid = False
            return
        if _dot(direction, front.previous_dir) < 0:
            direction = (-direction[0], -direction[1])

        next_point = (
            front.previous_point[0] + direction[0],
            front.previous_point[1] + direction[1],
        )
        if (
            self.world.contains(next_point)
            and self.store.is_valid_sample(major, next_point, self._dtest_sq, collide_both)
            and not self._streamline_turned(front, next_point, direction)
        ):
            front.previous_point = next_point
            front.previous_dir = direction
        else:
            # The stopping point is kept so the line reaches past the obstacle
            front.points.append(next_point)
            front.valid = False

    @staticmethod
    def _streamline_turned(front: _Front, point: Point, direction: Vector) -> bool:
        """True once a front has turned more than 180 degrees back on its seed."""
        original = front.original_dir
        if _dot(original, direction) >= 0:
            return False
        perpendicular = (original[1], -original[0])
        offset = (point[0] - front.seed[0], point[1] - front.seed[1])
        is_left = _dot(offset, perpendicular) < 0
        direction_up = _dot(direction, perpendicular) > 0
        return is_left == direction_up

    def extend_streamline(self, streamline: list[Point]) -> list[Point]:
        """Push both ends out along their end tangents."""
        if len(streamline) < 2:
            return list(streamline)
        length = self.config.dstep * EXTENSION_STEPS
        head = _extend_point(streamline[0], streamline[1], length)
        tail = _extend_point(streamline[-1], streamline[-2], length)
        return [head, *streamline, tail]

    def reaches_edges(self, streamline: list[Point]) -> bool:
        return (
            len(streamline) >= 2
            and self.world.is_outside(streamline[0])
            and self.world.is_outside(streamline[-1])
        )

    def _grow_edge_to_edge(
        self,
        field: FlowField,
        major: bool | None,
        is_land: Callable[[Point], bool] | None,
        feature: str,
    ) -> tuple[list[Point], list[Point], bool] | None:
        """Retry until a streamline spans the world.

        Returns ``(raw, extended, major)`` or None after logging why.
        """
        for _ in range(min(self.config.tries, TRIES)):
            line_major = bool(self.rng.random() < 0.5) if major is None else major
            seed = self.find_seed(line_major, is_land)
            if seed is None:
                logger.warning(
                    "No valid %s seed after %d tries", feature, self.config.seed_tries
                )
                return None
            raw = self.integrate_streamline(field, seed, line_major)
            if self.reaches_edges(raw):
                extended = self.extend_streamline(raw)
                return raw, extended, line_major

        logger.warning(
            "Failed to generate %s reaching the world edges after %d attempts",
            feature,
            min(self.config.tries, TRIES),
        )
        return None

    def create_coast(
        self,
        field: FlowField,
        simplify_tolerance: float,
        is_land: Callable[[Point], bool] | None = None,
    ) -> CoastlineResult | None:
        """Generate the coastline and the sea it cuts off.

        Args:
            field: Field view to integrate, with noise already applied
            simplify_tolerance: Douglas-Peucker tolerance for the road copy
            is_land: Seeds failing this predicate are rejected

        Returns:
            The coastline, or None if no edge-to-edge streamline was found
        """
        grown = self._grow_edge_to_edge(field, None, is_land, "coastline")
        if grown is None:
            return None
        raw, extended, major = grown

        simplified = simplify_polyline(extended, simplify_tolerance)
        sea = sea_polygon_from_line(self.world, simplified)
        if sea is None:
            logger.warning("Coastline did not split the world into land and sea")

        densified = densify_polyline(simplified, self.config.dstep)
        self.store.add(simplified, densified, major)

        return CoastlineResult(
            raw=raw,
            coastline=extended,
            simplified=simplified,
            densified=densified,
            sea_polygon=sea,
            major=major,
        )

    def create_river(
        self,
        field: FlowField,
        coast: CoastlineResult,
        config: ContinentalConfig,
        simplify_tolerance: float,
        is_land: Callable[[Point], bool] | None = None,
    ) -> RiverResult | None:
        """Generate a river across the coastline's eigenvector family.

        *field* must not mask the sea, otherwise the river could never reach
        the world edge on the sea side.
        """
        grown = self._grow_edge_to_edge(field, not coast.major, is_land, "river")
        if grown is None:
            return None
        _raw, river, major = grown

        water = buffer_line(river, config.river_size - config.river_bank_size)
        corridor = buffer_line(river, config.river_size)
        result = RiverResult(
            centerline=river,
            water_polygon=water,
            corridor_polygon=corridor,
            major=major,
        )
        if corridor is None:
            logger.warning("River corridor could not be buffered; no bank roads")
            return result

        outline = densify_polyline(ring_points(corridor), self.config.dstep, closed=True)[:-1]
        # Start the ring at an off-screen vertex so each bank is contiguous
        first_off = next(
            (i for i, p in enumerate(outline) if self.world.is_outside(p)), 0
        )
        outline = outline[first_off:] + outline[:first_off]

        keep = np.array([not self.world.is_outside(p) for p in outline], dtype=bool)
        keep &= ~contains_points(coast.sea_polygon, outline)
        # The bank side is the face holding the most kept outline points;
        # a corner triangle cut off by the river may hold none
        in_split = np.zeros(len(outline), dtype=bool)
        for face in split_world(self.world, river):
            inside = contains_points(face, outline)
            if np.count_nonzero(inside & keep) > np.count_nonzero(in_split & keep):
                in_split = inside

        bank = [p for p, k, s in zip(outline, keep, in_split) if k and s]
        other_bank = [p for p, k, s in zip(outline, keep, in_split) if k and not s]
        if not bank or not other_bank:
            logger.warning(
                "River banks could not be split (%d/%d points)", len(bank), len(other_bank)
            )
            result.boundary = clip_to_world(water, self.world, coast.sea_polygon)
            return result

        if _dist_sq(bank[0], other_bank[0]) < _dist_sq(bank[0], other_bank[-1]):
            other_bank.reverse()

        bank_road = simplify_polyline(bank, simplify_tolerance)
        other_road = simplify_polyline(other_bank, simplify_tolerance)
        self.store.add(bank_road, densify_polyline(bank_road, self.config.dstep), major)
        self.store.add_secondary(other_road)

        result.primary_bank = bank_road
        result.secondary_bank = other_road
        result.boundary = to_polygon(bank_road + other_road)
        if result.boundary is None:
            result.boundary = clip_to_world(water, self.world, coast.sea_polygon)
        return result

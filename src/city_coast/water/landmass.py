"""Geometric landmass synthesis.

Land is built first, directly as polygons, and the sea is whatever is
left of the world rectangle.  No flow field is involved.
"""

import logging
import math
from dataclasses import dataclass, field

import numpy as np
from shapely.errors import GEOSException, TopologicalError
from shapely.geometry import Polygon, box
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

from city_coast.water.polygons import (
    convex_hull,
    largest_polygon,
    subtract_from_world,
    to_polygon,
)
from city_coast.water.types import LandmassConfig, LandmassType, Point, WorldBounds

logger = logging.getLogger(__name__)

# Base radius as a fraction of (short world side * primary_landmass_size)
RADIUS_FACTORS: dict[LandmassType, float] = {
    LandmassType.CONTINENT: 0.4,
    LandmassType.PENINSULA: 0.3,
    LandmassType.ISLAND_CHAIN: 0.35,
    LandmassType.ARCHIPELAGO: 0.3,
}

# (frequency, weight) of the radial harmonics shaping an organic circle
COARSE_HARMONICS = ((3, 0.3), (5, 0.2), (8, 0.15), (12, 0.1))
FINE_HARMONICS = ((20, 0.08), (30, 0.05))

# Organic radius stays within these multiples of the base radius
MIN_RADIUS_FACTOR = 0.4
MAX_RADIUS_FACTOR = 1.6

# Peninsula neck width as a fraction of the edge it grows from
PENINSULA_BASE_WIDTH = 0.3

WORLD_EDGES = ("north", "south", "east", "west")


@dataclass
class LandmassResult:
    """Polygons produced by one landmass synthesis run."""

    landmass_type: LandmassType
    primary: Polygon | None
    secondary: list[Polygon] = field(default_factory=list)
    sea_polygon: BaseGeometry | None = None

    @property
    def polygons(self) -> list[Polygon]:
        lands = [self.primary] if self.primary is not None else []
        return lands + self.secondary

    @property
    def coastline(self) -> list[Point]:
        """Primary landmass outline, for consumers expecting a single coastline."""
        if self.primary is None:
            return []
        return [(float(x), float(y)) for x, y in self.primary.exterior.coords]


def organic_radius(
    angle: float,
    phases: list[float],
    complexity: float,
) -> float:
    """Radius multiplier at *angle* from a sum of phase-shifted harmonics."""
    variation = 1.0
    harmonics = COARSE_HARMONICS + (FINE_HARMONICS if complexity > 0.5 else ())
    for k, ((freq, weight), phase) in enumerate(zip(harmonics, phases)):
        wave = math.sin if k % 2 == 0 else math.cos
        variation += wave(angle * freq + phase) * weight
    return max(MIN_RADIUS_FACTOR, min(MAX_RADIUS_FACTOR, variation))


def organic_circle(
    center: Point,
    radius: float,
    complexity: float,
    rng: np.random.Generator,
) -> list[Point]:
    """Closed ring of 32-48 samples around *center* with a wobbly radius."""
    num_segments = int(rng.integers(32, 48))
    num_harmonics = len(COARSE_HARMONICS) + len(FINE_HARMONICS)
    phases = [float(p) for p in rng.uniform(0.0, math.pi, num_harmonics)]
    cx, cy = center
    points = []
    for i in range(num_segments):
        angle = i / num_segments * math.tau
        r = radius * organic_radius(angle, phases, complexity)
        points.append((cx + math.cos(angle) * r, cy + math.sin(angle) * r))
    return points


def continent_control_points(
    center: Point,
    base_radius: float,
    rng: np.random.Generator,
) -> list[Point]:
    """8-12 points around *center* at 70-130% of the base radius."""
    num_points = int(rng.integers(8, 12))
    cx, cy = center
    points = []
    for i in range(num_points):
        angle = i / num_points * math.tau
        r = base_radius * float(rng.uniform(0.7, 1.3))
        points.append((cx + math.cos(angle) * r, cy + math.sin(angle) * r))
    return points


def perturb_vertices(
    points: list[Point],
    max_variation: float,
    rng: np.random.Generator,
) -> list[Point]:
    """Move each vertex up to ``max_variation / 2`` in a random direction."""
    out = []
    for x, y in points:
        offset = (float(rng.random()) - 0.5) * max_variation
        angle = float(rng.random()) * math.tau
        out.append((x + math.cos(angle) * offset, y + math.sin(angle) * offset))
    return out


class SolidLandmassGenerator:
    """Builds primary and secondary landmass polygons for a world.

    Args:
        world: World rectangle
        config: Landmass parameters
        rng: Source of all shape randomness
    """

    def __init__(
        self,
        world: WorldBounds,
        config: LandmassConfig,
        rng: np.random.Generator,
    ) -> None:
        self.world = world
        self.config = config
        self.rng = rng

    def base_radius(self, landmass_type: LandmassType, size: float) -> float:
        short_side = min(self.world.width, self.world.height)
        return short_side * size * RADIUS_FACTORS[landmass_type]

    def generate(self) -> LandmassResult:
        """Generate the configured landmasses and the sea around them."""
        cfg = self.config
        primary = self.generate_primary(
            cfg.landmass_type, cfg.primary_landmass_size, cfg.coastal_complexity
        )
        result = LandmassResult(landmass_type=cfg.landmass_type, primary=primary)

        if cfg.secondary.enabled and primary is not None:
            result.secondary = self.generate_secondary(primary)

        result.sea_polygon = subtract_from_world(self.world, result.polygons)

        logger.info(
            "Generated %s landmass (%.0f area) with %d secondary landmasses",
            cfg.landmass_type.value,
            primary.area if primary is not None else 0.0,
            len(result.secondary),
        )
        return result

    def generate_primary(
        self,
        landmass_type: LandmassType,
        size: float,
        complexity: float,
    ) -> Polygon | None:
        """Primary landmass polygon centered in the world.

        Args:
            landmass_type: Shape family
            size: Fraction of the world's short side
            complexity: Coastline detail in [0, 1]

        Returns:
            A valid polygon, or None if the shape degenerated
        """
        landmass_type = LandmassType(landmass_type)
        center = self.world.center
        radius = self.base_radius(landmass_type, size)

        if landmass_type in (LandmassType.CONTINENT, LandmassType.ARCHIPELAGO):
            hull = convex_hull(continent_control_points(center, radius, self.rng))
            return to_polygon(perturb_vertices(hull, radius * 0.2, self.rng))

        body = to_polygon(organic_circle(center, radius, complexity, self.rng))
        if landmass_type == LandmassType.ISLAND_CHAIN or body is None:
            return body
        return self._attach_to_edge(body, self._random_edge())

    def _random_edge(self) -> str:
        return WORLD_EDGES[int(self.rng.integers(0, len(WORLD_EDGES)))]

    def peninsula_base(self, edge: str) -> Polygon:
        """Rectangle flush with *edge* reaching in to the world center."""
        w = self.world
        cx, cy = w.center
        if edge in ("north", "south"):
            half = w.width * PENINSULA_BASE_WIDTH / 2
            if edge == "north":
                return box(cx - half, cy, cx + half, w.max_y)
            return box(cx - half, w.origin_y, cx + half, cy)
        half = w.height * PENINSULA_BASE_WIDTH / 2
        if edge == "east":
            return box(cx, cy - half, w.max_x, cy + half)
        return box(w.origin_x, cy - half, cx, cy + half)

    def _attach_to_edge(self, body: Polygon, edge: str) -> Polygon:
        base = self.peninsula_base(edge)
        try:
            merged = unary_union([base, body])
        except (GEOSException, TopologicalError, ValueError) as e:
            logger.warning("Failed to join peninsula to %s edge: %s", edge, e)
            return body
        joined = largest_polygon(merged)
        if joined is None:
            logger.warning("Peninsula union with %s edge was empty", edge)
            return body
        return joined

    def generate_secondary(self, primary: Polygon) -> list[Polygon]:
        """Smaller organic landmasses around *primary* that touch nothing."""
        cfg = self.config.secondary
        base = self.base_radius(self.config.landmass_type, self.config.primary_landmass_size)
        cx, cy = self.world.center
        reach = math.sqrt(primary.area / math.pi)

        placed: list[Polygon] = []
        for index in range(cfg.count):
            radius = base * float(self.rng.uniform(*cfg.size_range))
            polygon = None
            for _ in range(cfg.placement_attempts):
                # proximity 1.0 hugs the primary coast; 0.0 pushes out a full base radius
                gap = (1.0 - cfg.proximity_factor) * base
                distance = reach + radius * MAX_RADIUS_FACTOR + gap * float(self.rng.random())
                angle = float(self.rng.random()) * math.tau
                center = (cx + math.cos(angle) * distance, cy + math.sin(angle) * distance)
                if not self.world.contains(center):
                    continue
                candidate = to_polygon(
                    organic_circle(center, radius, self.config.coastal_complexity, self.rng)
                )
                if candidate is None or candidate.intersects(primary):
                    continue
                if any(candidate.intersects(other) for other in placed):
                    continue
                polygon = candidate
                break
            if polygon is None:
                logger.warning("Could not place secondary landmass %d", index + 1)
                continue
            placed.append(polygon)
        return placed

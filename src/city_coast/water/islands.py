"""Heightmap island orchestration.

Each island is an independent diamond-square heightmap, shaped by a radial
mask into a single landmass, normalized to [-1, 1] and contoured.  Islands
that fail validation are discarded, never retried.
"""

import logging
import time
from collections.abc import Iterator

import numpy as np
from numpy.typing import NDArray
from shapely.geometry import Polygon

from city_coast.water.collision import StreamlineStore
from city_coast.water.diamond_square import (
    DiamondSquare,
    apply_atoll_profile,
    apply_island_mask,
    apply_volcanic_profile,
    nearest_power_of_two,
    normalize_heightmap,
)
from city_coast.water.marching_squares import (
    MarchingSquares,
    contour_area,
    heightmap_to_world,
)
from city_coast.water.polygons import densify_polyline, simplify_polyline
from city_coast.water.types import (
    HeightmapIslandConfig,
    IslandFeatures,
    Point,
    WorldBounds,
    derive_seed,
)

logger = logging.getLogger(__name__)

# Heightmap seed stride between consecutive islands
ISLAND_SEED_STRIDE = 1337


def pick_island_center(
    world: WorldBounds,
    existing: list[Point],
    rng: np.random.Generator,
    min_distance: float = 800.0,
    attempts: int = 50,
) -> Point | None:
    """Random world point at least *min_distance* from every existing center."""
    for _ in range(attempts):
        candidate = world.random_point(rng)
        if all(
            (candidate[0] - cx) ** 2 + (candidate[1] - cy) ** 2 >= min_distance**2
            for cx, cy in existing
        ):
            return candidate
    return None


def find_peaks(heightmap: NDArray[np.float64], min_height: float) -> list[Point]:
    """Interior cells above *min_height* strictly higher than all 8 neighbors."""
    h = heightmap
    core = h[1:-1, 1:-1]
    is_peak = core > min_height
    for dx in (-1, 0, 1):
        for dy in (-1, 0, 1):
            if dx == 0 and dy == 0:
                continue
            neighbor = h[1 + dx : h.shape[0] - 1 + dx, 1 + dy : h.shape[1] - 1 + dy]
            is_peak &= core > neighbor
    xs, ys = np.nonzero(is_peak)
    return [(float(x + 1), float(y + 1)) for x, y in zip(xs, ys)]


def _flood_fill(
    mask: NDArray[np.bool_],
    visited: NDArray[np.bool_],
    start_x: int,
    start_y: int,
) -> list[tuple[int, int]]:
    """Flood fill to find connected region."""
    w, h = mask.shape
    stack = [(start_x, start_y)]
    cells = []

    while stack:
        x, y = stack.pop()
        if x < 0 or x >= w or y < 0 or y >= h:
            continue
        if visited[x, y] or not mask[x, y]:
            continue

        visited[x, y] = True
        cells.append((x, y))

        # 4-connectivity
        stack.extend([(x - 1, y), (x + 1, y), (x, y - 1), (x, y + 1)])

    return cells


def find_valleys(
    heightmap: NDArray[np.float64],
    sea_level: float,
    max_height: float,
    min_cells: int = 6,
) -> list[list[Point]]:
    """Connected clusters of land cells lying between sea level and *max_height*.

    Cells at or below *sea_level* are excluded, so valleys are on-land
    depressions only.
    """
    mask = (heightmap > sea_level) & (heightmap < max_height)
    visited = np.zeros_like(mask, dtype=bool)
    valleys = []
    for x, y in zip(*np.nonzero(mask)):
        if visited[x, y]:
            continue
        cells = _flood_fill(mask, visited, int(x), int(y))
        if len(cells) >= min_cells:
            valleys.append([(float(cx), float(cy)) for cx, cy in cells])
    return valleys


def build_island_heightmap(
    config: HeightmapIslandConfig,
    size: int,
    seed: int | None,
    rng: np.random.Generator,
) -> NDArray[np.float64]:
    """Raw fractal grid shaped into a masked island in [-1, 1]."""
    heightmap = DiamondSquare().generate(size, config.smoothness, seed=seed)
    if config.volcano_mode:
        heightmap = apply_volcanic_profile(heightmap)
    elif config.atoll_mode:
        heightmap = apply_atoll_profile(heightmap)

    falloff = config.falloff_factor * float(rng.uniform(0.9, 1.1))
    heightmap = apply_island_mask(heightmap, falloff)
    return normalize_heightmap(heightmap, -1.0, 1.0)


def extract_island_features(
    heightmap: NDArray[np.float64],
    center: Point,
    config: HeightmapIslandConfig,
    marching: MarchingSquares | None = None,
) -> IslandFeatures:
    """Contour a normalized island heightmap into world-space features."""
    ms = marching or MarchingSquares()
    size = heightmap.shape[0] - 1
    scale = config.world_scale

    coast = ms.extract_coastline(heightmap, config.sea_level)
    coastline = heightmap_to_world(coast.points, center, size, scale) if coast else []

    beaches = [
        heightmap_to_world(contour.points, center, size, scale)
        for contours in ms.extract_multiple_contours(heightmap, config.beach_thresholds)
        for contour in contours
    ]

    peaks = heightmap_to_world(find_peaks(heightmap, config.peak_threshold), center, size, scale)

    valleys = [
        heightmap_to_world(cells, center, size, scale)
        for cells in find_valleys(
            heightmap,
            config.sea_level,
            config.sea_level + config.valley_depth,
            config.min_valley_cells,
        )
    ]

    return IslandFeatures(
        coastline=coastline,
        beaches=beaches,
        peaks=peaks,
        valleys=valleys,
        heightmap=heightmap,
        center=center,
    )


def is_valid_island(features: IslandFeatures, config: HeightmapIslandConfig) -> bool:
    if len(features.coastline) < config.min_coastline_points:
        return False
    if contour_area(features.coastline) <= config.min_island_area:
        return False
    return features.polygon is not None


def register_island(
    store: StreamlineStore,
    features: IslandFeatures,
    major: bool,
    dstep: float,
    simplify_tolerance: float,
) -> None:
    """Add a closed island coastline to the collision store."""
    if not features.coastline:
        return
    simplified = simplify_polyline(features.coastline, simplify_tolerance)
    densified = densify_polyline(simplified, dstep, closed=len(simplified) > 2)
    store.add(simplified, densified, major)


def iter_islands(
    config: HeightmapIslandConfig,
    world: WorldBounds,
    rng: np.random.Generator,
    store: StreamlineStore | None = None,
    dstep: float = 1.0,
    simplify_tolerance: float = 10.0,
    base_seed: int | None = None,
) -> Iterator[IslandFeatures]:
    """Generate islands one at a time.

    Yields each accepted island; rejected ones are logged and skipped.
    Callers may stop iterating between islands to cancel the rest.

    Args:
        config: Island parameters
        world: World rectangle islands are placed in
        rng: Source of placement and falloff randomness
        store: Accepted coastlines are registered here when given
        dstep: Sample spacing of registered coastlines
        simplify_tolerance: Douglas-Peucker tolerance for registered coastlines
        base_seed: Heightmap seed base when ``config.seed`` is unset

    Yields:
        IslandFeatures in world coordinates
    """
    seed = config.seed if config.seed is not None else base_seed
    ms = MarchingSquares()
    centers: list[Point] = []
    accepted = 0

    for index in range(config.num_islands):
        center = pick_island_center(
            world, centers, rng, config.min_distance, config.placement_attempts
        )
        if center is None:
            logger.warning("Could not find a valid position for island %d", index + 1)
            continue

        variation = float(rng.uniform(-config.size_variation, config.size_variation))
        size = nearest_power_of_two(max(64, round(config.base_size * (1 + variation))))
        island_seed = derive_seed(seed if seed is not None else 0, index * ISLAND_SEED_STRIDE)

        t0 = time.perf_counter()
        heightmap = build_island_heightmap(config, size, island_seed, rng)
        features = extract_island_features(heightmap, center, config, ms)

        if not is_valid_island(features, config):
            logger.warning(
                "Discarding invalid island %d (%d coastline points)",
                index + 1,
                len(features.coastline),
            )
            continue

        centers.append(center)
        if store is not None:
            register_island(store, features, accepted % 2 == 0, dstep, simplify_tolerance)
        accepted += 1

        logger.info(
            "Generated island %d at (%.0f, %.0f) grid=%d with %d coastline points in %.1fms",
            index + 1,
            center[0],
            center[1],
            size,
            len(features.coastline),
            (time.perf_counter() - t0) * 1000,
        )
        yield features


def generate_islands(
    config: HeightmapIslandConfig,
    world: WorldBounds,
    rng: np.random.Generator,
    store: StreamlineStore | None = None,
    dstep: float = 1.0,
    simplify_tolerance: float = 10.0,
    base_seed: int | None = None,
) -> list[IslandFeatures]:
    return list(
        iter_islands(config, world, rng, store, dstep, simplify_tolerance, base_seed)
    )


def island_polygons(islands: list[IslandFeatures]) -> list[Polygon]:
    return [p for p in (island.polygon for island in islands) if p is not None]

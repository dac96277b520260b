"""Diamond-square heightmap synthesis for heightmap islands.

Grids are ``(size + 1) x (size + 1)`` float arrays indexed ``[x, y]``.
Every pass operates on strided views of the grid, so the subdivision runs
as a flat loop over step sizes rather than a recursion.
"""

import logging
import math
from collections.abc import Iterator

import numpy as np
from numpy.typing import NDArray

from city_coast.water.types import InvalidSizeError

logger = logging.getLogger(__name__)

# Smallest grid the island orchestrator will request
MIN_GRID_SIZE = 64


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def nearest_power_of_two(n: float, minimum: int = MIN_GRID_SIZE) -> int:
    """Round *n* to the nearest power of two, never going below *minimum*."""
    return int(2 ** round(math.log2(max(float(minimum), float(n)))))


class DiamondSquare:
    """Fractal midpoint-displacement heightmap generator.

    Calls that pass a ``seed`` get a fresh generator for that seed and are
    bit-identical across runs.  Unseeded calls draw from the instance's own
    generator, which is itself seeded by ``seed`` at construction.
    """

    def __init__(self, seed: int | None = None) -> None:
        self._rng = np.random.default_rng(seed)

    def generate(
        self,
        size: int,
        smoothness: float,
        seed: int | None = None,
    ) -> NDArray[np.float64]:
        """Generate a heightmap.

        Args:
            size: Grid side length; must be a power of two
            smoothness: Initial perturbation scale, halved every pass
            seed: Optional seed for a reproducible grid

        Returns:
            Array of shape ``(size + 1, size + 1)``

        Raises:
            InvalidSizeError: If *size* is not a power of two
        """
        grid = None
        for _step, grid in self.iter_passes(size, smoothness, seed=seed):
            pass
        logger.debug("Generated %dx%d heightmap (seed=%s)", size + 1, size + 1, seed)
        return grid

    def iter_passes(
        self,
        size: int,
        smoothness: float,
        seed: int | None = None,
    ) -> Iterator[tuple[int, NDArray[np.float64]]]:
        """Yield ``(step, grid)`` after each diamond+square pass.

        The same grid object is yielded every time and is complete once the
        iterator is exhausted.  Lets a scheduler interleave other work
        between passes on large grids.
        """
        if not isinstance(size, (int, np.integer)) or size < 2 or not is_power_of_two(int(size)):
            raise InvalidSizeError(f"Size must be a power of 2, got {size}")
        rng = self._rng if seed is None else np.random.default_rng(seed)
        return self._passes(int(size), smoothness, rng)

    @staticmethod
    def _passes(
        size: int,
        smoothness: float,
        rng: np.random.Generator,
    ) -> Iterator[tuple[int, NDArray[np.float64]]]:
        grid = np.zeros((size + 1, size + 1), dtype=np.float64)

        # Corners are seeded independently
        grid[[0, 0, size, size], [0, size, 0, size]] = rng.uniform(-1.0, 1.0, 4)

        step = size
        scale = smoothness
        while step > 1:
            _diamond_pass(grid, step, scale, rng)
            _square_pass(grid, step, scale, rng)
            yield step, grid
            step //= 2
            scale /= 2.0


def _diamond_pass(
    grid: NDArray[np.float64],
    step: int,
    scale: float,
    rng: np.random.Generator,
) -> None:
    """Set every square center to the mean of its four corners plus noise."""
    size = grid.shape[0] - 1
    half = step // 2
    avg = (
        grid[0:size:step, 0:size:step]
        + grid[step::step, 0:size:step]
        + grid[0:size:step, step::step]
        + grid[step::step, step::step]
    ) / 4.0
    grid[half::step, half::step] = avg + rng.uniform(-1.0, 1.0, avg.shape) * scale


def _square_pass(
    grid: NDArray[np.float64],
    step: int,
    scale: float,
    rng: np.random.Generator,
) -> None:
    """Set every edge midpoint to the mean of its in-bounds axis neighbors plus noise."""
    half = step // 2
    # Lattice of every point at a multiple of `half`; edge midpoints are the
    # lattice points whose index sum is odd.  Basic slicing keeps it a view.
    lattice = grid[::half, ::half]
    m = lattice.shape[0]

    padded = np.pad(lattice, 1, constant_values=np.nan)
    neighbors = np.stack(
        [
            padded[:-2, 1:-1],
            padded[2:, 1:-1],
            padded[1:-1, :-2],
            padded[1:-1, 2:],
        ]
    )
    counts = np.sum(~np.isnan(neighbors), axis=0)
    sums = np.nansum(neighbors, axis=0)

    ii, jj = np.indices((m, m))
    targets = (ii + jj) % 2 == 1
    avg = sums[targets] / counts[targets]
    lattice[targets] = avg + rng.uniform(-1.0, 1.0, avg.shape) * scale


def normalize_heightmap(
    heightmap: NDArray[np.float64],
    min_value: float = 0.0,
    max_value: float = 1.0,
) -> NDArray[np.float64]:
    """Linearly rescale *heightmap* to ``[min_value, max_value]``.

    A constant heightmap has no range to stretch and is returned unchanged.
    """
    lo = float(heightmap.min())
    hi = float(heightmap.max())
    value_range = hi - lo
    if value_range == 0:
        return heightmap
    return (heightmap - lo) / value_range * (max_value - min_value) + min_value


def _radial_distance(heightmap: NDArray[np.float64]) -> tuple[NDArray[np.float64], float]:
    """Distance of every cell from the grid center, and the half-size."""
    size = heightmap.shape[0] - 1
    center = size / 2
    x, y = np.indices(heightmap.shape, dtype=np.float64)
    return np.hypot(x - center, y - center), center


def apply_island_mask(
    heightmap: NDArray[np.float64],
    falloff_factor: float = 2.0,
) -> NDArray[np.float64]:
    """Reshape a raw fractal grid into a single solid island.

    Cells within 70% of the island radius get a high base elevation with
    damped variation; the 70-100% ring falls off with ``z ** falloff_factor``;
    everything beyond the radius is pushed well below sea level.
    """
    dist, center = _radial_distance(heightmap)
    normalized = dist / (center * 0.9)

    inner = 0.6 + np.maximum(0.0, heightmap * 0.4)

    zone = np.clip((normalized - 0.7) / 0.3, 0.0, 1.0)
    multiplier = np.maximum(0.0, 1.0 - zone**falloff_factor)
    ring = 0.6 * multiplier + np.maximum(0.0, heightmap * 0.3 * multiplier)

    return np.where(normalized <= 0.7, inner, np.where(normalized <= 1.0, ring, -0.5))


def apply_volcanic_profile(heightmap: NDArray[np.float64]) -> NDArray[np.float64]:
    """Add a steep central cone."""
    dist, center = _radial_distance(heightmap)
    normalized = np.minimum(1.0, dist / (center * 0.8))
    return heightmap + (1.0 - normalized) ** 1.5 * 0.8


def apply_atoll_profile(heightmap: NDArray[np.float64]) -> NDArray[np.float64]:
    """Raise a reef ring and sink a central lagoon."""
    dist, center = _radial_distance(heightmap)
    inner_radius = center * 0.3
    outer_radius = center * 0.8

    ring_position = (dist - inner_radius) / (outer_radius - inner_radius)
    reef = np.sin(ring_position * np.pi) * 0.4
    lagoon = -(1.0 - dist / inner_radius) * 0.5

    modification = np.where(
        dist < inner_radius,
        lagoon,
        np.where(dist <= outer_radius, reef, 0.0),
    )
    return heightmap + modification

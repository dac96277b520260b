"""Type definitions for coastline, river and island generation."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np
from numpy.typing import NDArray
from shapely.geometry import Polygon, box

Point = tuple[float, float]


class ConfigurationError(ValueError):
    """Generation parameters are invalid or contradict each other."""


class InvalidSizeError(ConfigurationError):
    """Heightmap grid dimension is not a power of two."""


class CoastMode(str, Enum):
    """How the land/water partition of a world is produced."""

    CONTINENTAL = "continental"
    HEIGHTMAP_ISLAND = "heightmap_island"
    SOLID_LANDMASS = "solid_landmass"


class LandmassType(str, Enum):
    """Shapes produced by the solid landmass synthesizer."""

    CONTINENT = "continent"
    PENINSULA = "peninsula"
    ISLAND_CHAIN = "island_chain"
    ARCHIPELAGO = "archipelago"


def derive_seed(seed: int | None, salt: int) -> int | None:
    """Derive a sub-seed for one generation step, or None for unseeded runs."""
    if seed is None:
        return None
    return abs(seed ^ salt)


@dataclass(frozen=True)
class WorldBounds:
    """Axis-aligned world rectangle in world units."""

    origin_x: float = 0.0
    origin_y: float = 0.0
    width: float = 2000.0
    height: float = 2000.0

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ConfigurationError(
                f"World dimensions must be positive, got {self.width}x{self.height}"
            )

    @property
    def max_x(self) -> float:
        return self.origin_x + self.width

    @property
    def max_y(self) -> float:
        return self.origin_y + self.height

    @property
    def center(self) -> Point:
        return (self.origin_x + self.width / 2, self.origin_y + self.height / 2)

    @property
    def area(self) -> float:
        return self.width * self.height

    def contains(self, point: Point) -> bool:
        """True if *point* lies inside the world or on its boundary."""
        x, y = point
        return self.origin_x <= x <= self.max_x and self.origin_y <= y <= self.max_y

    def is_outside(self, point: Point) -> bool:
        """True if *point* lies strictly outside the world rectangle."""
        x, y = point
        return x < self.origin_x or x > self.max_x or y < self.origin_y or y > self.max_y

    def random_point(self, rng: np.random.Generator) -> Point:
        return (
            self.origin_x + float(rng.random()) * self.width,
            self.origin_y + float(rng.random()) * self.height,
        )

    def rectangle(self) -> Polygon:
        return box(self.origin_x, self.origin_y, self.max_x, self.max_y)


@dataclass(frozen=True)
class NoiseParams:
    """Rotational noise applied to the flow field while integrating."""

    enabled: bool = True
    size: float = 30.0  # Spatial frequency divisor, in world units
    angle: float = 20.0  # Maximum rotation in degrees

    @property
    def angle_radians(self) -> float:
        return math.radians(self.angle)


@dataclass
class StreamlineConfig:
    """Integration parameters shared by coastline and river streamlines."""

    dsep: float = 20.0  # Minimum seed separation from existing streamlines
    dtest: float = 15.0  # Separation tested while integrating
    dstep: float = 1.0  # Integration step length
    dcirclejoin: float = 5.0  # Front distance that closes a loop
    path_iterations: int = 10000
    seed_tries: int = 100
    collide_early: float = 0.0  # Probability of testing both grids
    tries: int = 100  # Whole-streamline attempts before giving up

    def __post_init__(self) -> None:
        if self.dstep <= 0:
            raise ConfigurationError(f"dstep must be positive, got {self.dstep}")
        if self.dsep <= 0 or self.dtest <= 0:
            raise ConfigurationError("dsep and dtest must be positive")
        if self.tries < 1 or self.seed_tries < 1 or self.path_iterations < 1:
            raise ConfigurationError("tries, seed_tries and path_iterations must be >= 1")


@dataclass
class ContinentalConfig:
    """Configuration for the streamline coastline and river."""

    coast_noise: NoiseParams = field(default_factory=NoiseParams)
    river_noise: NoiseParams = field(default_factory=NoiseParams)

    # Only a single river is supported in continental mode
    num_rivers: int = 1

    # Outer corridor half-width and the bank strip inside it
    river_size: float = 30.0
    river_bank_size: float = 10.0

    simplify_tolerance: float = 10.0

    def __post_init__(self) -> None:
        if self.num_rivers not in (0, 1):
            raise ConfigurationError(
                f"num_rivers must be 0 or 1 in continental mode, got {self.num_rivers}"
            )
        if not 0 <= self.river_bank_size < self.river_size:
            raise ConfigurationError(
                "river_bank_size must be non-negative and smaller than river_size"
            )


@dataclass
class HeightmapIslandConfig:
    """Configuration for heightmap (diamond-square) islands."""

    num_islands: int = 3
    base_size: int = 256  # Grid side before power-of-two rounding
    size_variation: float = 0.3  # +/- fraction of base_size
    smoothness: float = 0.5  # Initial perturbation scale

    # Contour thresholds in normalized [-1, 1] elevation
    sea_level: float = 0.0
    beach_level: float = 0.1

    world_scale: float = 2.0  # World units per grid cell
    falloff_factor: float = 2.0  # Edge steepness of the island mask

    # Mutually exclusive radial profiles
    volcano_mode: bool = False
    atoll_mode: bool = False

    # Placement
    min_distance: float = 800.0
    placement_attempts: int = 50

    # Feature extraction and validation
    peak_threshold: float = 0.6
    valley_depth: float = 0.3  # Valleys lie below sea_level + valley_depth
    min_valley_cells: int = 6
    min_coastline_points: int = 10
    min_island_area: float = 1000.0

    # Handed to downstream field consumers; islands themselves are not integrated
    coast_noise: NoiseParams = field(default_factory=NoiseParams)

    seed: int | None = None

    def __post_init__(self) -> None:
        if self.volcano_mode and self.atoll_mode:
            raise ConfigurationError("volcano_mode and atoll_mode are mutually exclusive")
        if self.num_islands < 0:
            raise ConfigurationError(f"num_islands must be >= 0, got {self.num_islands}")
        if self.base_size < 1:
            raise ConfigurationError(f"base_size must be positive, got {self.base_size}")
        if not 0 <= self.size_variation < 1:
            raise ConfigurationError("size_variation must be in [0, 1)")
        if self.world_scale <= 0:
            raise ConfigurationError("world_scale must be positive")

    @property
    def beach_thresholds(self) -> list[float]:
        """Stacked beach band thresholds, lowest first."""
        return [self.sea_level + 0.1, self.sea_level + 0.2, self.beach_level]


@dataclass
class SecondaryLandmassConfig:
    """Smaller landmasses scattered around the primary one."""

    enabled: bool = False
    count: int = 2
    size_range: tuple[float, float] = (0.1, 0.3)  # Relative to primary radius
    proximity_factor: float = 0.7  # 1.0 hugs the primary landmass
    placement_attempts: int = 20

    def __post_init__(self) -> None:
        low, high = self.size_range
        if not 0 < low <= high:
            raise ConfigurationError(f"Invalid secondary size_range {self.size_range}")
        if not 0 <= self.proximity_factor <= 1:
            raise ConfigurationError("proximity_factor must be in [0, 1]")


@dataclass
class LandmassConfig:
    """Configuration for geometric (non-field) landmass synthesis."""

    landmass_type: LandmassType = LandmassType.CONTINENT
    primary_landmass_size: float = 0.6  # Fraction of the world's short side
    coastal_complexity: float = 0.7  # Enables fine harmonics above 0.5
    secondary: SecondaryLandmassConfig = field(default_factory=SecondaryLandmassConfig)

    def __post_init__(self) -> None:
        try:
            self.landmass_type = LandmassType(self.landmass_type)
        except ValueError as e:
            raise ConfigurationError(f"Unknown landmass type: {self.landmass_type}") from e
        if not 0 < self.primary_landmass_size <= 1:
            raise ConfigurationError("primary_landmass_size must be in (0, 1]")
        if not 0 <= self.coastal_complexity <= 1:
            raise ConfigurationError("coastal_complexity must be in [0, 1]")


@dataclass
class WaterConfig:
    """Top-level configuration for one water generation cycle.

    All randomness derives from ``seed``; leave it unset for a fresh world.
    """

    mode: CoastMode = CoastMode.CONTINENTAL
    world: WorldBounds = field(default_factory=WorldBounds)
    seed: int | None = None

    streamlines: StreamlineConfig = field(default_factory=StreamlineConfig)
    continental: ContinentalConfig = field(default_factory=ContinentalConfig)
    islands: HeightmapIslandConfig = field(default_factory=HeightmapIslandConfig)
    landmass: LandmassConfig = field(default_factory=LandmassConfig)

    def __post_init__(self) -> None:
        try:
            self.mode = CoastMode(self.mode)
        except ValueError as e:
            raise ConfigurationError(f"Unknown coast mode: {self.mode}") from e


@dataclass
class Contour:
    """One iso-elevation polyline in grid coordinates."""

    points: list[Point]
    closed: bool = False

    def __len__(self) -> int:
        return len(self.points)


@dataclass
class IslandFeatures:
    """Everything extracted from one heightmap island, in world coordinates."""

    coastline: list[Point]
    beaches: list[list[Point]]  # Ordered by elevation band
    peaks: list[Point]
    valleys: list[list[Point]]
    heightmap: NDArray[np.float64]
    center: Point

    @property
    def grid_size(self) -> int:
        return self.heightmap.shape[0] - 1

    @property
    def polygon(self) -> Polygon | None:
        """Coastline as a valid polygon, or None if it cannot form one."""
        from city_coast.water.polygons import to_polygon

        return to_polygon(self.coastline)


@dataclass
class CoastlineResult:
    """A world-spanning coastline streamline and the sea it bounds."""

    raw: list[Point]  # Integrated path before edge extension
    coastline: list[Point]  # Extended path, used for drawing
    simplified: list[Point]
    densified: list[Point]
    sea_polygon: Polygon | None
    major: bool


@dataclass
class RiverResult:
    """A river centerline, its water and corridor polygons and bank roads."""

    centerline: list[Point]
    water_polygon: Polygon | None  # Inner offset, the river itself
    corridor_polygon: Polygon | None  # Outer offset, river plus banks
    primary_bank: list[Point] = field(default_factory=list)
    secondary_bank: list[Point] = field(default_factory=list)
    boundary: Polygon | None = None  # Both banks joined, used for land tests
    major: bool = True


@dataclass
class TerrainFeature:
    """A single water/land feature in GeoJSON-like format."""

    type: str  # "sea", "coastline", "river", "river_bank", "island", "landmass", ...
    geometry: dict[str, Any]  # GeoJSON geometry
    properties: dict[str, Any] = field(default_factory=dict)

"""Tests for geometric landmass synthesis."""

import math

import numpy as np
import pytest
from shapely.geometry import Point as ShapelyPoint

from city_coast.water.landmass import (
    MAX_RADIUS_FACTOR,
    MIN_RADIUS_FACTOR,
    SolidLandmassGenerator,
    continent_control_points,
    organic_circle,
    organic_radius,
)
from city_coast.water.types import (
    ConfigurationError,
    LandmassConfig,
    LandmassType,
    SecondaryLandmassConfig,
    WorldBounds,
)


@pytest.fixture
def world():
    return WorldBounds(0.0, 0.0, 2000.0, 2000.0)


def make_generator(world, seed=3, **kwargs):
    return SolidLandmassGenerator(world, LandmassConfig(**kwargs), np.random.default_rng(seed))


class TestOrganicShapes:
    """Tests for the radial shape helpers."""

    def test_radius_is_clamped(self):
        phases = [0.0] * 6
        for i in range(360):
            r = organic_radius(math.radians(i), phases, 1.0)
            assert MIN_RADIUS_FACTOR <= r <= MAX_RADIUS_FACTOR

    def test_low_complexity_drops_fine_harmonics(self):
        """Only the coarse harmonics contribute at complexity <= 0.5."""
        coarse_only = [0.1, 0.2, 0.3, 0.4, 0.0, 0.0]
        changed_fine = [0.1, 0.2, 0.3, 0.4, 1.0, 2.0]

        assert organic_radius(0.7, coarse_only, 0.3) == organic_radius(0.7, changed_fine, 0.3)
        assert organic_radius(0.7, coarse_only, 0.9) != organic_radius(0.7, changed_fine, 0.9)

    def test_organic_circle_samples(self, rng):
        points = organic_circle((100.0, 100.0), 50.0, 0.7, rng)

        assert 32 <= len(points) < 48
        for point in points:
            d = math.dist(point, (100.0, 100.0))
            assert 50.0 * MIN_RADIUS_FACTOR - 1e-9 <= d <= 50.0 * MAX_RADIUS_FACTOR + 1e-9

    def test_control_points(self, rng):
        points = continent_control_points((0.0, 0.0), 100.0, rng)

        assert 8 <= len(points) < 12
        for point in points:
            assert 70.0 - 1e-9 <= math.dist(point, (0.0, 0.0)) <= 130.0 + 1e-9


class TestPrimaryLandmass:
    """Tests for primary landmass shapes."""

    @pytest.mark.parametrize("landmass_type", list(LandmassType))
    def test_valid_polygon_for_every_type(self, world, landmass_type):
        gen = make_generator(world, landmass_type=landmass_type)
        polygon = gen.generate_primary(landmass_type, 0.6, 0.7)

        assert polygon is not None
        assert polygon.is_valid
        assert polygon.area > 0

    @pytest.mark.parametrize(
        "landmass_type",
        [LandmassType.CONTINENT, LandmassType.ARCHIPELAGO, LandmassType.ISLAND_CHAIN],
    )
    def test_centered_shapes_contain_center(self, world, landmass_type):
        gen = make_generator(world, landmass_type=landmass_type)
        polygon = gen.generate_primary(landmass_type, 0.6, 0.7)

        assert polygon.contains(ShapelyPoint(world.center))

    def test_continent_stays_inside_world(self, world):
        polygon = make_generator(world).generate_primary(LandmassType.CONTINENT, 0.6, 0.7)
        minx, miny, maxx, maxy = polygon.bounds

        assert minx > 0 and miny > 0
        assert maxx < world.max_x and maxy < world.max_y

    @pytest.mark.parametrize("seed", [1, 2, 3, 4])
    def test_peninsula_reaches_an_edge(self, world, seed):
        gen = make_generator(world, seed=seed, landmass_type=LandmassType.PENINSULA)
        polygon = gen.generate_primary(LandmassType.PENINSULA, 0.6, 0.7)
        minx, miny, maxx, maxy = polygon.bounds

        touches = [
            minx == pytest.approx(world.origin_x),
            miny == pytest.approx(world.origin_y),
            maxx == pytest.approx(world.max_x),
            maxy == pytest.approx(world.max_y),
        ]
        assert any(touches)

    def test_peninsula_base(self, world):
        gen = make_generator(world)

        assert gen.peninsula_base("north").bounds == (700.0, 1000.0, 1300.0, 2000.0)
        assert gen.peninsula_base("west").bounds == (0.0, 700.0, 1000.0, 1300.0)

    def test_base_radius(self, world):
        gen = make_generator(world)

        assert gen.base_radius(LandmassType.CONTINENT, 0.5) == pytest.approx(400.0)
        assert gen.base_radius(LandmassType.PENINSULA, 0.5) == pytest.approx(300.0)


class TestGenerate:
    """Tests for full landmass generation."""

    def test_sea_is_world_minus_land(self, world):
        result = make_generator(world).generate()

        assert result.primary is not None
        assert result.secondary == []
        assert result.sea_polygon.area + result.primary.area == pytest.approx(world.area)
        assert not result.sea_polygon.contains(ShapelyPoint(world.center))

    def test_coastline_is_primary_ring(self, world):
        result = make_generator(world).generate()

        assert result.coastline[0] == result.coastline[-1]
        assert len(result.coastline) >= 4

    def test_secondary_landmasses_do_not_touch(self, world):
        config = LandmassConfig(
            secondary=SecondaryLandmassConfig(enabled=True, count=3, placement_attempts=50)
        )
        result = SolidLandmassGenerator(world, config, np.random.default_rng(11)).generate()

        assert result.secondary
        for i, land in enumerate(result.secondary):
            assert not land.intersects(result.primary)
            for other in result.secondary[i + 1 :]:
                assert not land.intersects(other)
        assert len(result.polygons) == 1 + len(result.secondary)

    def test_unknown_type_rejected(self):
        with pytest.raises(ConfigurationError):
            LandmassConfig(landmass_type="plateau")

    def test_string_type_coerced(self):
        assert LandmassConfig(landmass_type="peninsula").landmass_type is LandmassType.PENINSULA

    def test_invalid_secondary_sizes(self):
        with pytest.raises(ConfigurationError):
            SecondaryLandmassConfig(size_range=(0.5, 0.1))

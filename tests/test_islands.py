"""Tests for heightmap island generation."""

import logging
import math

import numpy as np
import pytest
from shapely.geometry import Point as ShapelyPoint

from city_coast.water.collision import StreamlineStore
from city_coast.water.islands import (
    build_island_heightmap,
    extract_island_features,
    find_peaks,
    find_valleys,
    generate_islands,
    is_valid_island,
    iter_islands,
    pick_island_center,
)
from city_coast.water.types import HeightmapIslandConfig, IslandFeatures, WorldBounds


@pytest.fixture
def island_config():
    """Small islands so each one builds quickly."""
    return HeightmapIslandConfig(num_islands=3, base_size=64, seed=42)


class TestPlacement:
    """Tests for island center placement."""

    def test_first_center_is_inside_world(self, rng):
        world = WorldBounds(0.0, 0.0, 1000.0, 1000.0)
        center = pick_island_center(world, [], rng)

        assert center is not None
        assert world.contains(center)

    def test_respects_min_distance(self, rng):
        world = WorldBounds(0.0, 0.0, 4000.0, 4000.0)
        existing = [(2000.0, 2000.0)]
        center = pick_island_center(world, existing, rng, min_distance=800.0)

        assert center is not None
        assert math.dist(center, existing[0]) >= 800.0

    def test_none_when_world_is_full(self, rng):
        """No point of a 1000x1000 world is 800 away from its center."""
        world = WorldBounds(0.0, 0.0, 1000.0, 1000.0)

        assert pick_island_center(world, [(500.0, 500.0)], rng, min_distance=800.0) is None


class TestPeaksAndValleys:
    """Tests for peak and valley extraction."""

    def test_single_peak(self):
        hm = np.zeros((11, 11))
        hm[5, 5] = 1.0

        assert find_peaks(hm, 0.5) == [(5.0, 5.0)]

    def test_peak_below_threshold_ignored(self):
        hm = np.zeros((11, 11))
        hm[5, 5] = 0.4

        assert find_peaks(hm, 0.5) == []

    def test_plateau_is_not_a_peak(self):
        """Peaks must be strictly higher than every neighbor."""
        hm = np.zeros((11, 11))
        hm[5, 5] = 1.0
        hm[5, 6] = 1.0

        assert find_peaks(hm, 0.5) == []

    def test_border_cells_are_never_peaks(self):
        hm = np.zeros((11, 11))
        hm[0, 5] = 1.0

        assert find_peaks(hm, 0.5) == []

    def test_valleys_need_min_cells(self):
        hm = np.full((10, 10), -1.0)
        hm[2, 2:8] = 0.1  # 6 connected cells
        hm[7, 7:9] = 0.1  # 2 connected cells

        valleys = find_valleys(hm, 0.0, 0.3, min_cells=6)

        assert len(valleys) == 1
        assert sorted(valleys[0]) == [(2.0, float(y)) for y in range(2, 8)]

    def test_valleys_exclude_sea_and_highland(self):
        hm = np.full((10, 10), -1.0)
        hm[2, :] = 0.9

        assert find_valleys(hm, 0.0, 0.3, min_cells=1) == []


class TestIslandHeightmap:
    """Tests for building a single island heightmap."""

    def test_normalized_range(self, island_config, rng):
        hm = build_island_heightmap(island_config, 64, 7, rng)

        assert hm.shape == (65, 65)
        assert hm.min() == pytest.approx(-1.0)
        assert hm.max() == pytest.approx(1.0)

    def test_border_is_sea(self, island_config, rng):
        hm = build_island_heightmap(island_config, 64, 7, rng)

        assert (hm[0, :] < island_config.sea_level).all()
        assert (hm[:, -1] < island_config.sea_level).all()

    def test_center_is_land(self, island_config, rng):
        hm = build_island_heightmap(island_config, 64, 7, rng)

        assert hm[32, 32] > island_config.sea_level

    def test_volcano_mode(self, rng):
        config = HeightmapIslandConfig(volcano_mode=True)
        hm = build_island_heightmap(config, 64, 7, rng)

        assert hm[32, 32] > config.sea_level
        assert hm[0, 0] < config.sea_level

    def test_deterministic(self, island_config):
        h1 = build_island_heightmap(island_config, 64, 7, np.random.default_rng(1))
        h2 = build_island_heightmap(island_config, 64, 7, np.random.default_rng(1))

        assert np.array_equal(h1, h2)


class TestIslandFeatures:
    """Tests for feature extraction from an island heightmap."""

    def test_coastline_surrounds_center(self, island_config, rng):
        hm = build_island_heightmap(island_config, 64, 3, rng)
        center = (1000.0, 1000.0)
        features = extract_island_features(hm, center, island_config)

        assert len(features.coastline) >= island_config.min_coastline_points
        polygon = features.polygon
        assert polygon is not None
        assert polygon.contains(ShapelyPoint(center))
        max_reach = 32 * island_config.world_scale * math.sqrt(2)
        for point in features.coastline:
            assert math.dist(point, center) <= max_reach

    def test_valid_island(self, island_config, rng):
        hm = build_island_heightmap(island_config, 64, 3, rng)
        features = extract_island_features(hm, (500.0, 500.0), island_config)

        assert is_valid_island(features, island_config)

    def test_empty_coastline_is_invalid(self, island_config):
        features = IslandFeatures(
            coastline=[],
            beaches=[],
            peaks=[],
            valleys=[],
            heightmap=np.zeros((65, 65)),
            center=(0.0, 0.0),
        )

        assert not is_valid_island(features, island_config)
        assert features.polygon is None

    def test_tiny_island_is_invalid(self, island_config):
        features = IslandFeatures(
            coastline=[(float(i), float(i % 2)) for i in range(12)],
            beaches=[],
            peaks=[],
            valleys=[],
            heightmap=np.zeros((65, 65)),
            center=(0.0, 0.0),
        )

        assert not is_valid_island(features, island_config)


class TestGenerateIslands:
    """Tests for generating several islands."""

    def test_generates_requested_count(self, island_config, rng):
        islands = generate_islands(island_config, WorldBounds(), rng)

        assert len(islands) == 3

    def test_centers_are_spaced(self, island_config, rng):
        islands = generate_islands(island_config, WorldBounds(), rng)

        for i, a in enumerate(islands):
            for b in islands[i + 1 :]:
                assert math.dist(a.center, b.center) >= island_config.min_distance

    def test_deterministic_for_seed(self, island_config):
        first = generate_islands(island_config, WorldBounds(), np.random.default_rng(5))
        second = generate_islands(island_config, WorldBounds(), np.random.default_rng(5))

        assert [i.center for i in first] == [i.center for i in second]
        assert [i.coastline for i in first] == [i.coastline for i in second]

    def test_placement_failure_skips_island(self, rng, caplog):
        config = HeightmapIslandConfig(num_islands=3, base_size=64, min_distance=5000.0)

        with caplog.at_level(logging.WARNING):
            islands = generate_islands(config, WorldBounds(0.0, 0.0, 1000.0, 1000.0), rng)

        assert len(islands) == 1
        assert "Could not find a valid position" in caplog.text

    def test_registers_coastlines_in_store(self, island_config, rng):
        world = WorldBounds()
        store = StreamlineStore(world, 20.0)
        islands = generate_islands(island_config, world, rng, store=store)

        assert len(store.all_streamlines) == len(islands)
        # Families alternate, starting with major
        assert len(store.streamlines_major) == 2
        assert len(store.streamlines_minor) == 1

    def test_zero_islands(self, rng):
        config = HeightmapIslandConfig(num_islands=0)

        assert generate_islands(config, WorldBounds(), rng) == []

    def test_iteration_is_lazy(self, island_config, rng):
        """Stopping after one island leaves the rest ungenerated."""
        islands = iter_islands(island_config, WorldBounds(), rng)
        first = next(islands)
        islands.close()

        assert len(first.coastline) > 0

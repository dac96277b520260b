"""Tests for land/water classification."""

import numpy as np
import pytest
from shapely.geometry import box

from city_coast.water.classifier import EMPTY_SNAPSHOT, LandWaterClassifier, WaterSnapshot


@pytest.fixture
def coastal_snapshot():
    """Sea on the west half, an island in it, and a river on land."""
    return WaterSnapshot(
        sea=box(0, 0, 50, 100),
        lands=(box(10, 40, 20, 60),),
        river=box(70, 0, 80, 100),
    )


class TestIsLand:
    """Tests for LandWaterClassifier.is_land."""

    def test_empty_world_is_all_land(self):
        classifier = LandWaterClassifier()

        assert classifier.is_land((0.0, 0.0))
        assert classifier.is_land((1e6, -1e6))

    def test_sea_is_water(self, coastal_snapshot):
        classifier = LandWaterClassifier(coastal_snapshot)

        assert classifier.is_water((30.0, 10.0))
        assert classifier.is_land((60.0, 10.0))

    def test_sea_wins_over_island(self, coastal_snapshot):
        """A point in both the sea and an island polygon is water."""
        classifier = LandWaterClassifier(coastal_snapshot)

        assert classifier.is_water((15.0, 50.0))

    def test_island_outside_sea_is_land(self):
        snapshot = WaterSnapshot(sea=None, lands=(box(10, 10, 20, 20),), river=box(0, 0, 30, 30))
        classifier = LandWaterClassifier(snapshot)

        assert classifier.is_land((15.0, 15.0))
        assert classifier.is_water((25.0, 25.0))

    def test_river_is_water(self, coastal_snapshot):
        classifier = LandWaterClassifier(coastal_snapshot)

        assert classifier.is_water((75.0, 50.0))

    def test_ignore_river(self, coastal_snapshot):
        classifier = LandWaterClassifier(coastal_snapshot, ignore_river=True)

        assert classifier.is_land((75.0, 50.0))
        assert classifier.is_water((30.0, 10.0))

    def test_agrees_with_polygons(self, coastal_snapshot):
        """Random points classify the same as direct polygon tests."""
        classifier = LandWaterClassifier(coastal_snapshot)
        rng = np.random.default_rng(0)
        for x, y in rng.uniform(0.5, 99.5, size=(1000, 2)):
            in_sea = x < 50
            in_river = 70 < x < 80
            assert classifier.is_land((x, y)) == (not in_sea and not in_river)


class TestPublish:
    """Tests for snapshot publication."""

    def test_publish_replaces_snapshot(self, coastal_snapshot):
        classifier = LandWaterClassifier()
        classifier.publish(coastal_snapshot)

        assert classifier.snapshot is coastal_snapshot
        assert classifier.is_water((30.0, 10.0))

    def test_reset(self, coastal_snapshot):
        classifier = LandWaterClassifier(coastal_snapshot)
        classifier.reset()

        assert classifier.snapshot is EMPTY_SNAPSHOT
        assert classifier.is_land((30.0, 10.0))

    def test_listeners_receive_snapshots(self, coastal_snapshot):
        classifier = LandWaterClassifier()
        received = []
        classifier.add_listener(received.append)

        classifier.publish(coastal_snapshot)
        classifier.reset()

        assert received == [coastal_snapshot, EMPTY_SNAPSHOT]

    def test_without_sea_is_detached(self, coastal_snapshot):
        classifier = LandWaterClassifier(coastal_snapshot)
        detached = classifier.without_sea()

        assert detached.is_land((30.0, 10.0))
        assert detached.is_water((75.0, 50.0))

        classifier.reset()
        assert detached.is_water((75.0, 50.0))
        assert detached.snapshot.sea is None

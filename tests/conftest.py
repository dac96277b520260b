"""Pytest configuration and fixtures for water generation tests."""

import math

import numpy as np
import pytest

from city_coast.water.field import GridBasis, TensorField
from city_coast.water.types import NoiseParams, StreamlineConfig, WorldBounds


@pytest.fixture
def rng():
    """Seeded random generator."""
    return np.random.default_rng(1234)


@pytest.fixture
def small_world():
    """A 300x300 world at the origin."""
    return WorldBounds(0.0, 0.0, 300.0, 300.0)


@pytest.fixture
def uniform_field():
    """Field whose major direction is horizontal everywhere."""
    return TensorField([GridBasis(center=(0.0, 0.0), size=1e6, decay=0.0, theta=0.0)])


@pytest.fixture
def diagonal_field():
    """Field whose major direction runs at 45 degrees everywhere."""
    return TensorField([GridBasis(center=(0.0, 0.0), size=1e6, decay=0.0, theta=math.pi / 4)])


@pytest.fixture
def streamline_config():
    """Integration parameters sized for a small world."""
    return StreamlineConfig(dsep=20.0, dtest=15.0, dstep=1.0, path_iterations=2000, tries=10)


@pytest.fixture
def no_noise():
    return NoiseParams(enabled=False)

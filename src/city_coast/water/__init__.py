"""Coastline, river and island generation for procedural maps."""

from city_coast.water.classifier import LandWaterClassifier, WaterSnapshot
from city_coast.water.diamond_square import DiamondSquare, nearest_power_of_two, normalize_heightmap
from city_coast.water.field import FieldView, RotationalNoise, Tensor, TensorField
from city_coast.water.generator import WaterGenerator, WaterResult
from city_coast.water.islands import generate_islands, iter_islands
from city_coast.water.landmass import LandmassResult, SolidLandmassGenerator
from city_coast.water.marching_squares import MarchingSquares
from city_coast.water.streamlines import StreamlineGenerator
from city_coast.water.types import (
    CoastMode,
    ConfigurationError,
    ContinentalConfig,
    HeightmapIslandConfig,
    InvalidSizeError,
    LandmassConfig,
    LandmassType,
    NoiseParams,
    StreamlineConfig,
    WaterConfig,
    WorldBounds,
)

__all__ = [
    "CoastMode",
    "ConfigurationError",
    "ContinentalConfig",
    "DiamondSquare",
    "FieldView",
    "HeightmapIslandConfig",
    "InvalidSizeError",
    "LandWaterClassifier",
    "LandmassConfig",
    "LandmassResult",
    "LandmassType",
    "MarchingSquares",
    "NoiseParams",
    "RotationalNoise",
    "SolidLandmassGenerator",
    "StreamlineConfig",
    "StreamlineGenerator",
    "Tensor",
    "TensorField",
    "WaterConfig",
    "WaterGenerator",
    "WaterResult",
    "WaterSnapshot",
    "WorldBounds",
    "generate_islands",
    "iter_islands",
    "nearest_power_of_two",
    "normalize_heightmap",
]

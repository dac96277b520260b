"""Water generation entry points.

Each ``CoastMode`` maps to a plain function that builds a complete
``WaterResult`` from the config, an optional flow field and a random
generator.  ``WaterGenerator`` runs the selected one and publishes the
outcome to a ``LandWaterClassifier`` in a single step.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import numpy as np
from shapely.geometry import LineString, Polygon
from shapely.geometry.base import BaseGeometry

from city_coast.water.classifier import LandWaterClassifier, WaterSnapshot
from city_coast.water.collision import StreamlineStore
from city_coast.water.field import FieldView, FlowField, RotationalNoise, TensorField
from city_coast.water.islands import generate_islands, island_polygons, iter_islands
from city_coast.water.landmass import LandmassResult, SolidLandmassGenerator
from city_coast.water.polygons import geometry_to_geojson, subtract_from_world
from city_coast.water.streamlines import StreamlineGenerator
from city_coast.water.types import (
    CoastlineResult,
    CoastMode,
    IslandFeatures,
    NoiseParams,
    RiverResult,
    TerrainFeature,
    WaterConfig,
    WorldBounds,
    derive_seed,
)

logger = logging.getLogger(__name__)

# Salt for the noise seed handed to downstream field views
FIELD_NOISE_SALT = 0x5EA


@dataclass
class WaterResult:
    """Everything one generation cycle produced."""

    mode: CoastMode
    world: WorldBounds
    sea_polygon: BaseGeometry | None = None
    coastline: CoastlineResult | None = None
    river: RiverResult | None = None
    islands: list[IslandFeatures] = field(default_factory=list)
    landmass: LandmassResult | None = None
    streamlines: StreamlineStore | None = None
    flow_field: FlowField | None = None
    noise: NoiseParams | None = None  # Noise downstream consumers should apply

    def land_polygons(self) -> list[Polygon]:
        lands = island_polygons(self.islands)
        if self.landmass is not None:
            lands.extend(self.landmass.polygons)
        return lands

    def snapshot(self) -> WaterSnapshot:
        river = None
        if self.river is not None:
            # Without split banks the water itself still counts as river
            river = self.river.boundary
            if river is None:
                river = self.river.water_polygon
        return WaterSnapshot(sea=self.sea_polygon, lands=tuple(self.land_polygons()), river=river)

    def to_features(self) -> list[TerrainFeature]:
        """Flatten the result into GeoJSON-like features."""
        features: list[TerrainFeature] = []

        def add(feature_type: str, geom: BaseGeometry | None, **properties: Any) -> None:
            geojson = geometry_to_geojson(geom)
            if geojson is not None:
                features.append(TerrainFeature(feature_type, geojson, properties))

        add("sea", self.sea_polygon, mode=self.mode.value)

        if self.coastline is not None and len(self.coastline.simplified) >= 2:
            add("coastline", LineString(self.coastline.simplified), major=self.coastline.major)

        if self.river is not None:
            add("river", self.river.water_polygon)
            add("river_corridor", self.river.corridor_polygon)
            for role, bank in (
                ("primary", self.river.primary_bank),
                ("secondary", self.river.secondary_bank),
            ):
                if len(bank) >= 2:
                    add("river_bank", LineString(bank), role=role)

        for index, island in enumerate(self.islands):
            add(
                "island",
                island.polygon,
                index=index,
                grid_size=island.grid_size,
                peaks=len(island.peaks),
                valleys=len(island.valleys),
            )
            for band, beach in enumerate(island.beaches):
                if len(beach) >= 2:
                    add("beach", LineString(beach), island=index, band=band)

        if self.landmass is not None:
            add("landmass", self.landmass.primary, role="primary",
                landmass_type=self.landmass.landmass_type.value)
            for secondary in self.landmass.secondary:
                add("landmass", secondary, role="secondary",
                    landmass_type=self.landmass.landmass_type.value)

        return features

    def features_to_geojson(self) -> dict[str, Any]:
        """Convert features to GeoJSON FeatureCollection."""
        return {
            "type": "FeatureCollection",
            "features": [
                {
                    "type": "Feature",
                    "geometry": f.geometry,
                    "properties": {"feature_type": f.type, **f.properties},
                }
                for f in self.to_features()
            ],
        }


def _noise_seed(rng: np.random.Generator) -> int:
    return int(rng.integers(0, 2**31 - 1))


def generate_continental(
    config: WaterConfig,
    flow_field: FlowField | None,
    rng: np.random.Generator,
) -> WaterResult:
    """One world-spanning coastline and, optionally, one river.

    Args:
        config: Generation parameters
        flow_field: Field to trace; a random one is built when None
        rng: Source of all randomness for this cycle

    Returns:
        WaterResult with ``coastline`` (and ``river``) set when found
    """
    world = config.world
    cc = config.continental
    if flow_field is None:
        flow_field = TensorField.recommended(world, rng)

    store = StreamlineStore(world, config.streamlines.dsep)
    streamlines = StreamlineGenerator(world, config.streamlines, store, rng)
    result = WaterResult(
        mode=CoastMode.CONTINENTAL,
        world=world,
        streamlines=store,
        flow_field=flow_field,
        noise=cc.coast_noise,
    )

    # Private classifier: the shared one only sees the finished world
    provisional = LandWaterClassifier()
    coast_view = FieldView(
        flow_field,
        is_land=provisional.is_land,
        noise=RotationalNoise(cc.coast_noise, _noise_seed(rng)),
    )

    t0 = time.perf_counter()
    coast = streamlines.create_coast(coast_view, cc.simplify_tolerance, provisional.is_land)
    t_coast = time.perf_counter()
    if coast is None:
        logger.warning("No coastline generated; skipping river")
        return result

    result.coastline = coast
    result.sea_polygon = coast.sea_polygon

    if cc.num_rivers > 0:
        provisional.publish(WaterSnapshot(sea=coast.sea_polygon))
        river_land = provisional.without_sea()
        river_view = FieldView(
            flow_field,
            is_land=river_land.is_land,
            noise=RotationalNoise(cc.river_noise, _noise_seed(rng)),
        )
        result.river = streamlines.create_river(
            river_view, coast, cc, cc.simplify_tolerance, river_land.is_land
        )

    logger.info(
        "[Water] Continental timings: coast=%.1fms river=%.1fms (%d coast points)",
        (t_coast - t0) * 1000,
        (time.perf_counter() - t_coast) * 1000,
        len(coast.simplified),
    )
    return result


def _island_result(
    config: WaterConfig,
    islands: list[IslandFeatures],
    store: StreamlineStore,
    flow_field: FlowField | None,
) -> WaterResult:
    sea = subtract_from_world(config.world, island_polygons(islands))
    return WaterResult(
        mode=CoastMode.HEIGHTMAP_ISLAND,
        world=config.world,
        sea_polygon=sea,
        islands=islands,
        streamlines=store,
        flow_field=flow_field,
        noise=config.islands.coast_noise,
    )


def generate_heightmap_islands(
    config: WaterConfig,
    flow_field: FlowField | None,
    rng: np.random.Generator,
) -> WaterResult:
    """Scattered heightmap islands in an open sea. Rivers are not generated."""
    store = StreamlineStore(config.world, config.streamlines.dsep)
    islands = generate_islands(
        config.islands,
        config.world,
        rng,
        store=store,
        dstep=config.streamlines.dstep,
        simplify_tolerance=config.continental.simplify_tolerance,
        base_seed=config.seed,
    )
    return _island_result(config, islands, store, flow_field)


def generate_solid_landmass(
    config: WaterConfig,
    flow_field: FlowField | None,
    rng: np.random.Generator,
) -> WaterResult:
    """Land-first geometric landmasses; the sea is what remains."""
    landmass = SolidLandmassGenerator(config.world, config.landmass, rng).generate()
    return WaterResult(
        mode=CoastMode.SOLID_LANDMASS,
        world=config.world,
        sea_polygon=landmass.sea_polygon,
        landmass=landmass,
        flow_field=flow_field,
    )


ModeHandler = Callable[[WaterConfig, FlowField | None, np.random.Generator], WaterResult]

_MODE_HANDLERS: dict[CoastMode, ModeHandler] = {
    CoastMode.CONTINENTAL: generate_continental,
    CoastMode.HEIGHTMAP_ISLAND: generate_heightmap_islands,
    CoastMode.SOLID_LANDMASS: generate_solid_landmass,
}


class WaterGenerator:
    """Runs one coast mode and publishes the result.

    Args:
        config: Generation parameters, including the mode
        flow_field: External field to trace in continental mode
        classifier: Classifier to publish to; a fresh one is created if omitted
    """

    def __init__(
        self,
        config: WaterConfig,
        flow_field: FlowField | None = None,
        classifier: LandWaterClassifier | None = None,
    ) -> None:
        self.config = config
        self.flow_field = flow_field
        self.classifier = classifier if classifier is not None else LandWaterClassifier()
        self.result: WaterResult | None = None

    def generate(self) -> WaterResult:
        """Generate synchronously and publish."""
        logger.info("Generating water (mode=%s, seed=%s)", self.config.mode.value, self.config.seed)
        t_start = time.perf_counter()

        rng = np.random.default_rng(self.config.seed)
        result = _MODE_HANDLERS[self.config.mode](self.config, self.flow_field, rng)

        self._publish(result, t_start)
        return result

    async def generate_async(self) -> WaterResult:
        """Generate, yielding to the event loop between discrete steps.

        Cancelling the awaiting task between islands abandons the cycle;
        nothing is published in that case.
        """
        logger.info("Generating water (mode=%s, seed=%s)", self.config.mode.value, self.config.seed)
        t_start = time.perf_counter()
        rng = np.random.default_rng(self.config.seed)
        await asyncio.sleep(0)

        if self.config.mode != CoastMode.HEIGHTMAP_ISLAND:
            result = _MODE_HANDLERS[self.config.mode](self.config, self.flow_field, rng)
        else:
            store = StreamlineStore(self.config.world, self.config.streamlines.dsep)
            islands: list[IslandFeatures] = []
            for island in iter_islands(
                self.config.islands,
                self.config.world,
                rng,
                store=store,
                dstep=self.config.streamlines.dstep,
                simplify_tolerance=self.config.continental.simplify_tolerance,
                base_seed=self.config.seed,
            ):
                islands.append(island)
                await asyncio.sleep(0)
            result = _island_result(self.config, islands, store, self.flow_field)

        self._publish(result, t_start)
        return result

    def _publish(self, result: WaterResult, t_start: float) -> None:
        self.classifier.publish(result.snapshot())
        self.result = result
        logger.info(
            "[Water] %s generation complete in %.1fms (sea=%s, lands=%d, river=%s)",
            result.mode.value,
            (time.perf_counter() - t_start) * 1000,
            result.sea_polygon is not None,
            len(result.land_polygons()),
            result.river is not None,
        )

    def field_view(self) -> FieldView:
        """Land-masked, noise-rotated view of the field for downstream tracing.

        Raises:
            RuntimeError: If nothing has been generated yet or no field is known
        """
        if self.result is None:
            raise RuntimeError("field_view() called before generate()")
        flow_field = self.flow_field if self.flow_field is not None else self.result.flow_field
        if flow_field is None:
            raise RuntimeError(f"No flow field available in {self.result.mode.value} mode")

        noise = None
        if self.result.noise is not None:
            seed = derive_seed(self.config.seed, FIELD_NOISE_SALT) or 0
            noise = RotationalNoise(self.result.noise, seed)
        return FieldView(flow_field, is_land=self.classifier.is_land, noise=noise)

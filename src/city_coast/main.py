"""Command-line entry point: generate one world from settings."""

import asyncio
import json
import logging
import sys

from city_coast.config import settings
from city_coast.water import WaterGenerator


def setup_logging() -> None:
    """Configure logging for the generator."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


async def main() -> None:
    """Generate a world and log (or write) the result."""
    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("City Coast generator starting...")

    generator = WaterGenerator(settings.water_config())
    result = await generator.generate_async()

    features = result.to_features()
    logger.info(
        "Generated %d features (%d islands, %d land polygons)",
        len(features),
        len(result.islands),
        len(result.land_polygons()),
    )

    if settings.output_path:
        with open(settings.output_path, "w", encoding="utf-8") as f:
            json.dump(result.features_to_geojson(), f)
        logger.info("Wrote GeoJSON to %s", settings.output_path)


def run() -> None:
    """Entry point for the generator."""
    asyncio.run(main())


if __name__ == "__main__":
    run()

"""Process configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from city_coast.water.types import (
    CoastMode,
    ContinentalConfig,
    HeightmapIslandConfig,
    LandmassConfig,
    LandmassType,
    NoiseParams,
    WaterConfig,
    WorldBounds,
)


class Settings(BaseSettings):
    """Settings loaded from environment variables (``CITY_COAST_`` prefix)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CITY_COAST_",
    )

    # Logging
    log_level: str = "info"

    # World
    mode: CoastMode = CoastMode.CONTINENTAL
    seed: int | None = None
    world_width: float = 2000.0
    world_height: float = 2000.0

    # Continental coastline
    noise_enabled: bool = True
    noise_size: float = 30.0
    noise_angle: float = 20.0
    num_rivers: int = 1

    # Heightmap islands
    num_islands: int = 3
    island_base_size: int = 256
    volcano_mode: bool = False
    atoll_mode: bool = False

    # Solid landmass
    landmass_type: LandmassType = LandmassType.CONTINENT
    secondary_landmasses: bool = False

    # Write the generated features here as GeoJSON
    output_path: str | None = None

    def water_config(self) -> WaterConfig:
        """Build generation parameters from these settings."""
        noise = NoiseParams(
            enabled=self.noise_enabled, size=self.noise_size, angle=self.noise_angle
        )
        landmass = LandmassConfig(landmass_type=self.landmass_type)
        landmass.secondary.enabled = self.secondary_landmasses
        return WaterConfig(
            mode=self.mode,
            world=WorldBounds(width=self.world_width, height=self.world_height),
            seed=self.seed,
            continental=ContinentalConfig(coast_noise=noise, num_rivers=self.num_rivers),
            islands=HeightmapIslandConfig(
                num_islands=self.num_islands,
                base_size=self.island_base_size,
                volcano_mode=self.volcano_mode,
                atoll_mode=self.atoll_mode,
                coast_noise=noise,
            ),
            landmass=landmass,
        )


settings = Settings()

"""Runtime configuration for MC Agent."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven runtime settings."""

    model_config = SettingsConfigDict(env_prefix="MC_AGENT_", env_file=".env", extra="ignore")

    app_name: str = "mc-agent"
    log_level: str = "INFO"
    minecraft_adapter: str = Field(default="demo", description="World backend: demo or minescript.")

    scan_radius: int = 32
    scan_height_range: int = 10
    sightline_max_distance: int = 16
    terrain_grid_step: int = 4

    checkpoint_interval: int = 5
    update_interval_ms: int = 1000
    stuck_threshold_ms: int = 5000
    arrival_tolerance: float = 2.0
    search_node_budget: int = Field(default=10_000, description="Node budget handed to the route search.")
    notable_block_radius: int = 16

    landmark_visibility_radius: float = 16.0
    resource_range: float = 32.0
    memory_snapshot_path: str | None = None
    path_cache_max_entries: int | None = Field(
        default=None,
        description="Evict least-recently-used path records beyond this size; unbounded when unset.",
    )

    max_goal_attempts: int = 3


settings = Settings()

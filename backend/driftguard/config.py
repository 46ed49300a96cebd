"""Application configuration."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Redis (shared blackboard store)
    redis_url: str = "redis://localhost:6379/0"
    redis_max_connections: int = 20

    # Pheromone policy file (decay rates, thresholds, portfolio defaults)
    policy_path: Path | None = None

    # Event channel: per-subscriber buffer, oldest events dropped on overflow
    event_buffer_size: int = 100

    # Dashboard snapshot cadence in seconds
    snapshot_interval: float = 0.5

    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    debug: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

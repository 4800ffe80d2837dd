"""Application configuration loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is read from env vars (or a .env file)."""

    # --- Core ---
    allow_all_cors: bool = True
    log_level: str = "INFO"
    seed_data_path: str = ""  # JSON file with jobs/contractors/assignments; empty = start empty

    # --- Recommendations ---
    recommendation_timeout_seconds: float = 10.0
    max_parallel_scoring: int = 0  # 0 = score every candidate at once

    # --- Google Distance ---
    use_google_distance: bool = False
    google_maps_api_key: str = ""
    distance_cache_ttl_seconds: int = 24 * 3600

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()

"""Tests for settings loading."""

from app.config import Settings, get_settings


def test_get_settings_is_cached() -> None:
    assert get_settings() is get_settings()


def test_defaults() -> None:
    settings = Settings(_env_file=None)
    assert settings.recommendation_timeout_seconds == 10.0
    assert settings.distance_cache_ttl_seconds == 24 * 3600
    assert not settings.use_google_distance

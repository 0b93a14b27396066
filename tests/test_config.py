"""Tests for configuration."""

from game.config import GameConfig


def test_defaults():
    config = GameConfig()

    assert config.capture_radius_m < config.discover_radius_m
    assert config.capture_time_basic_ms < config.capture_time_advanced_ms < config.capture_time_core_ms
    assert config.active_spawn_radius == (config.spawn_radius_min, config.spawn_radius_max)


def test_fake_sensor_profile():
    config = GameConfig(fake_sensors=True)

    assert config.active_spawn_radius == (6.0, 20.0)
    assert config.active_spawn_step == 8.0
    assert config.active_min_nodes == 4


def test_env_override(monkeypatch):
    monkeypatch.setenv("FIELDGLOW_HOME_RADIUS_M", "35")
    monkeypatch.setenv("FIELDGLOW_FAKE_SENSORS", "true")

    config = GameConfig()

    assert config.home_radius_m == 35.0
    assert config.fake_sensors is True

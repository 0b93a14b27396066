# game/config.py

from pydantic_settings import BaseSettings


class GameConfig(BaseSettings):
    """Tunable constants for the fieldglow game engine."""

    # Node spawning (meters)
    spawn_radius_min: float = 20.0
    spawn_radius_max: float = 80.0
    spawn_step_m: float = 20.0  # Distance walked before a fresh batch
    spawn_batch_min: int = 3
    spawn_batch_max: int = 7
    min_active_nodes: int = 2

    # Gameplay radii (meters)
    discover_radius_m: float = 25.0
    capture_radius_m: float = 12.0
    home_radius_m: float = 20.0

    # Capture timing (milliseconds)
    capture_time_basic_ms: float = 2000.0
    capture_time_advanced_ms: float = 3500.0
    capture_time_core_ms: float = 5000.0
    capture_tick_ms: float = 16.0
    carrying_ms: float = 400.0

    # Evacuation (milliseconds)
    evac_duration_ms: float = 4000.0
    evac_dismiss_ms: float = 60000.0

    # Reticle cone half-angle (degrees)
    reticle_half_angle_deg: float = 18.0

    # Outdoor / indoor heuristic
    outdoor_accuracy_max_m: float = 20.0
    outdoor_speed_min_mps: float = 0.3
    indoor_accuracy_min_m: float = 25.0
    indoor_hold_ms: float = 6000.0
    jitter_threshold_m: float = 0.5

    # Companion presentation offset (meters)
    companion_distance_min: float = 1.2
    companion_distance_max: float = 2.5

    # Synthetic sensors (desk testing without GPS)
    fake_sensors: bool = False
    fake_accuracy_m: float = 12.0
    fake_accuracy_jitter_m: float = 6.0
    fake_speed_mps: float = 0.5
    fake_spawn_radius_min: float = 6.0
    fake_spawn_radius_max: float = 20.0
    fake_spawn_step_m: float = 8.0
    fake_min_active_nodes: int = 4
    fake_move_speed_active: float = 1.4
    fake_move_speed_idle: float = 0.3
    fake_move_tick_ms: float = 250.0
    fake_motion_window_ms: float = 1500.0
    fake_motion_heading_delta_deg: float = 6.0

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_prefix = "FIELDGLOW_"

    @property
    def active_spawn_radius(self) -> tuple[float, float]:
        """Spawn distance bounds for the current sensor mode."""
        if self.fake_sensors:
            return (self.fake_spawn_radius_min, self.fake_spawn_radius_max)
        return (self.spawn_radius_min, self.spawn_radius_max)

    @property
    def active_spawn_step(self) -> float:
        """Distance since the last spawn that triggers another batch."""
        return self.fake_spawn_step_m if self.fake_sensors else self.spawn_step_m

    @property
    def active_min_nodes(self) -> int:
        """Minimum number of uncaptured nodes kept around the player."""
        return self.fake_min_active_nodes if self.fake_sensors else self.min_active_nodes


# Global config instance
config = GameConfig()

# game/sensors.py

"""Outdoor/indoor classification from noisy GPS and compass readings.

GPS accuracy alone flickers near doorways and windows, so "outdoor" also needs
either a compass fix or some movement. "Indoor" is debounced: the candidate
condition must hold for ``indoor_hold_ms`` before it counts.
"""

from typing import Optional

from .config import GameConfig
from .state import HoldTimer


def detect_outdoor(
    accuracy: Optional[float],
    speed: Optional[float],
    has_heading: bool,
    config: GameConfig,
) -> bool:
    """Raw outdoor reading for a single sample.

    Args:
        accuracy: GPS horizontal accuracy in meters (smaller is better)
        speed: GPS speed in m/s
        has_heading: Whether a compass heading fix exists
        config: Thresholds

    Returns:
        True when the sample looks like open sky
    """
    if accuracy is None or accuracy > config.outdoor_accuracy_max_m:
        return False
    moving = speed is not None and speed > config.outdoor_speed_min_mps
    return has_heading or moving


def resolve_outdoor(detected: bool, manual_outdoor: bool, manual_home: bool) -> bool:
    """Apply the player's manual overrides. Manual home wins."""
    if manual_home:
        return False
    if manual_outdoor:
        return True
    return detected


def is_indoor_candidate(
    distance_to_home: float,
    accuracy: Optional[float],
    config: GameConfig,
) -> bool:
    """Near home with a degraded fix."""
    return (
        distance_to_home < config.home_radius_m
        and accuracy is not None
        and accuracy >= config.indoor_accuracy_min_m
    )


def update_indoor(
    hold: HoldTimer,
    candidate: bool,
    now_ms: float,
    manual_home: bool,
    hold_ms: float,
) -> tuple[HoldTimer, bool]:
    """Advance the indoor debounce.

    Args:
        hold: Current debounce timer
        candidate: Whether this sample is an indoor candidate
        now_ms: Sample time
        manual_home: Player override, bypasses the debounce
        hold_ms: How long the candidacy must hold

    Returns:
        (updated timer, indoor flag)
    """
    hold = hold.update(candidate, now_ms)
    if manual_home:
        return hold, True
    return hold, hold.held_for(now_ms, hold_ms)


def fill_missing_readings(
    accuracy: Optional[float],
    speed: Optional[float],
    config: GameConfig,
    jitter: float = 0.0,
) -> tuple[Optional[float], Optional[float]]:
    """Substitute synthetic readings when running without real sensors.

    Outside synthetic-sensor mode a missing reading stays missing.
    """
    if not config.fake_sensors:
        return accuracy, speed
    if accuracy is None:
        accuracy = config.fake_accuracy_m + jitter
    if speed is None:
        speed = config.fake_speed_mps
    return accuracy, speed

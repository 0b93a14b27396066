# game/rewards.py

"""Capture countdown and reward-tier weighting."""

import math
import random
from uuid import UUID

from .config import GameConfig
from .state import CaptureAttempt, Companion, Node, RewardTier

# Baseline weights and the increments each progress signal adds
ADVANCED_BASE = 0.20
CORE_BASE = 0.05
ADVANCED_MAX = 0.60
CORE_MAX = 0.30
BASIC_FLOOR = 0.10

DISTANCE_STEPS_M = (200.0, 600.0)
DURATION_STEPS_MIN = (5.0, 10.0)
COMPANION_STEPS = (3, 5)


def capture_duration_ms(tier: RewardTier, config: GameConfig) -> float:
    """How long the player must hold to capture a node of ``tier``."""
    if tier == RewardTier.ADVANCED:
        return config.capture_time_advanced_ms
    if tier == RewardTier.CORE:
        return config.capture_time_core_ms
    return config.capture_time_basic_ms


def start_capture(node: Node, now_ms: float, config: GameConfig) -> CaptureAttempt:
    return CaptureAttempt(
        node_id=node.id,
        started_at=now_ms,
        duration_ms=capture_duration_ms(node.tier, config),
    )


def capture_progress(attempt: CaptureAttempt, now_ms: float) -> float:
    """Elapsed/total ratio clamped to [0, 1]."""
    if attempt.duration_ms <= 0:
        return 1.0
    elapsed = max(0.0, now_ms - attempt.started_at)
    return min(elapsed / attempt.duration_ms, 1.0)


def tier_weights(
    distance_walked: float,
    duration_min: float,
    companions: int,
) -> dict[RewardTier, float]:
    """Probability of each tier given how far the session has progressed.

    Advanced and Core weights only ever grow with distance, duration and
    companion count; Basic takes what is left, never below its floor.

    Args:
        distance_walked: Meters walked this session
        duration_min: Session duration in minutes
        companions: Companions rescued so far

    Returns:
        Mapping of tier to probability; values sum to 1
    """
    advanced = ADVANCED_BASE
    core = CORE_BASE

    if distance_walked > DISTANCE_STEPS_M[0]:
        advanced += 0.10
    if distance_walked > DISTANCE_STEPS_M[1]:
        advanced += 0.10
        core += 0.05
    if duration_min > DURATION_STEPS_MIN[0]:
        advanced += 0.10
    if duration_min > DURATION_STEPS_MIN[1]:
        core += 0.05
    if companions >= COMPANION_STEPS[0]:
        advanced += 0.10
    if companions >= COMPANION_STEPS[1]:
        core += 0.05

    advanced = min(advanced, ADVANCED_MAX)
    core = min(core, CORE_MAX)
    basic = max(BASIC_FLOOR, 1.0 - advanced - core)

    return {RewardTier.BASIC: basic, RewardTier.ADVANCED: advanced, RewardTier.CORE: core}


def roll_reward_tier(weights: dict[RewardTier, float], rng: random.Random) -> RewardTier:
    """Weighted draw, checking the rarest tier first."""
    roll = rng.random()
    cumulative = 0.0
    for tier in (RewardTier.CORE, RewardTier.ADVANCED, RewardTier.BASIC):
        cumulative += weights[tier]
        if roll < cumulative:
            return tier
    return RewardTier.BASIC


def make_companion(node: Node, config: GameConfig, rng: random.Random) -> Companion:
    """Create the companion rescued from ``node``.

    The offset places it somewhere in front of the player, within the
    configured distance band.
    """
    angle = (rng.random() - 0.5) * math.pi * 1.2
    radius = rng.uniform(config.companion_distance_min, config.companion_distance_max)
    offset = (math.sin(angle) * radius, 0.0, -math.cos(angle) * radius)
    return Companion(id=f"comp_{random_id(rng)}", tier=node.tier, offset=offset)


def random_id(rng: random.Random) -> str:
    """Short id drawn from the session's seeded generator."""
    return UUID(int=rng.getrandbits(128), version=4).hex[:12]

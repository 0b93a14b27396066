# tests/test_rewards.py

"""Tests for capture timing and reward weighting."""

import random
from collections import Counter

import pytest

from game.config import GameConfig
from game.rewards import (
    BASIC_FLOOR,
    capture_duration_ms,
    capture_progress,
    make_companion,
    roll_reward_tier,
    start_capture,
    tier_weights,
)
from game.state import Node, NodeType, RewardTier
from spatial.geo import Coordinate


@pytest.fixture
def node():
    return Node(
        id="node_a",
        type=NodeType.EDGE,
        tier=RewardTier.ADVANCED,
        geo_position=Coordinate(0.0, 0.0),
    )


class TestCaptureTiming:
    """Test the capture countdown."""

    def test_duration_grows_with_tier(self):
        config = GameConfig()
        basic = capture_duration_ms(RewardTier.BASIC, config)
        advanced = capture_duration_ms(RewardTier.ADVANCED, config)
        core = capture_duration_ms(RewardTier.CORE, config)
        assert basic < advanced < core

    def test_progress(self, node):
        attempt = start_capture(node, 1000.0, GameConfig())
        assert attempt.duration_ms == 3500.0

        assert capture_progress(attempt, 1000.0) == 0.0
        assert capture_progress(attempt, 1000.0 + 1750.0) == pytest.approx(0.5)
        assert capture_progress(attempt, 99999.0) == 1.0

    def test_progress_never_negative(self, node):
        attempt = start_capture(node, 1000.0, GameConfig())
        assert capture_progress(attempt, 500.0) == 0.0


class TestTierWeights:
    """Test reward weighting."""

    def test_baseline(self):
        weights = tier_weights(0.0, 0.0, 0)
        assert weights[RewardTier.ADVANCED] == pytest.approx(0.20)
        assert weights[RewardTier.CORE] == pytest.approx(0.05)
        assert weights[RewardTier.BASIC] == pytest.approx(0.75)

    @pytest.mark.parametrize(
        "distance, minutes, companions",
        [(0, 0, 0), (250, 0, 0), (700, 0, 0), (0, 6, 0), (0, 11, 0), (0, 0, 3), (0, 0, 5), (700, 11, 5)],
    )
    def test_normalized(self, distance, minutes, companions):
        weights = tier_weights(distance, minutes, companions)
        assert sum(weights.values()) == pytest.approx(1.0)
        assert weights[RewardTier.BASIC] >= BASIC_FLOOR

    def test_monotonic_in_progress(self):
        """Rarer tiers never get less likely as the session progresses."""
        steps = [(0, 0, 0), (250, 0, 0), (700, 0, 0), (700, 6, 0), (700, 11, 0), (700, 11, 3), (700, 11, 5)]
        previous = None
        for distance, minutes, companions in steps:
            weights = tier_weights(distance, minutes, companions)
            if previous:
                assert weights[RewardTier.ADVANCED] >= previous[RewardTier.ADVANCED]
                assert weights[RewardTier.CORE] >= previous[RewardTier.CORE]
            previous = weights

    def test_clamped(self):
        weights = tier_weights(10_000, 120, 50)
        assert weights[RewardTier.ADVANCED] <= 0.60
        assert weights[RewardTier.CORE] <= 0.30


class TestRollTier:
    """Test weighted draws."""

    def test_respects_weights(self):
        rng = random.Random(11)
        weights = tier_weights(0.0, 0.0, 0)
        counts = Counter(roll_reward_tier(weights, rng) for _ in range(5000))

        assert counts[RewardTier.BASIC] / 5000 == pytest.approx(0.75, abs=0.03)
        assert counts[RewardTier.ADVANCED] / 5000 == pytest.approx(0.20, abs=0.03)
        assert counts[RewardTier.CORE] / 5000 == pytest.approx(0.05, abs=0.02)

    def test_certain_tier(self):
        weights = {RewardTier.BASIC: 0.0, RewardTier.ADVANCED: 0.0, RewardTier.CORE: 1.0}
        assert roll_reward_tier(weights, random.Random(0)) == RewardTier.CORE


class TestCompanion:
    """Test companion creation."""

    def test_companion_inherits_tier(self, node):
        companion = make_companion(node, GameConfig(), random.Random(4))

        assert companion.tier == node.tier
        assert companion.id.startswith("comp_")

    def test_offset_in_front_of_player(self, node):
        config = GameConfig()
        rng = random.Random(8)
        for _ in range(100):
            x, y, z = make_companion(node, config, rng).offset
            radius = (x * x + z * z) ** 0.5
            assert config.companion_distance_min - 1e-9 <= radius <= config.companion_distance_max + 1e-9
            assert y == 0.0
            # At most ~108 degrees either side of straight ahead
            assert z <= 0.31 * radius

"""Pytest configuration and shared fixtures."""

import random

import pytest

from game.config import GameConfig
from game.events import Event, EventType
from game.machine import transition
from game.session import GameSession
from game.state import Node, NodeType, RewardTier, SessionState
from game.time import ManualClock
from spatial.geo import Coordinate, destination_point, geo_to_local

ORIGIN = Coordinate(latitude=37.7749, longitude=-122.4194)


@pytest.fixture
def origin():
    """Fixed start position used across tests."""
    return ORIGIN


@pytest.fixture
def config():
    """Config with initial spawns pushed far away and short timers."""
    return GameConfig(
        spawn_radius_min=400.0,
        spawn_radius_max=500.0,
        spawn_step_m=1000.0,
        capture_time_basic_ms=200.0,
        capture_time_advanced_ms=300.0,
        capture_time_core_ms=400.0,
        capture_tick_ms=5.0,
        carrying_ms=50.0,
        evac_duration_ms=100.0,
    )


@pytest.fixture
def rng():
    """Seeded random source."""
    return random.Random(42)


@pytest.fixture
def manual_clock():
    """Clock that only moves when the test advances it."""
    return ManualClock()


@pytest.fixture
async def session(config, manual_clock):
    """Initialized session driven by a manual clock."""
    game = GameSession(config=config, clock=manual_clock, seed=7)
    await game.initialize()
    yield game
    await game.shutdown()


@pytest.fixture
def machine(config, rng):
    """Drive the pure transition function with explicit timestamps.

    ``machine(state, EventType.X, t, **data)`` returns ``(state, effects)``.
    """

    def apply(state, event_type, timestamp_ms, **data):
        return transition(state, Event.create(event_type, timestamp_ms, data), config, rng)

    return apply


@pytest.fixture
def started(machine, origin):
    """A session started at the origin, facing north."""
    state, _ = machine(SessionState(), EventType.SESSION_STARTED, 0.0, position=origin.to_dict())
    return state


def place_node(
    state: SessionState,
    bearing: float,
    distance: float,
    tier: RewardTier = RewardTier.BASIC,
    center: Coordinate = ORIGIN,
    node_id: str | None = None,
) -> Node:
    """Drop a node ``distance`` meters from ``center`` along ``bearing``."""
    geo_position = destination_point(center, distance, bearing)
    node = Node(
        id=node_id or f"node_test_{len(state.nodes)}",
        type=NodeType.JUNCTION,
        tier=tier,
        geo_position=geo_position,
        local_position=geo_to_local(center, geo_position),
    )
    state.nodes.append(node)
    return node


def position_data(position: Coordinate, accuracy=5.0, speed=1.0, heading=None) -> dict:
    """Payload for a POSITION_UPDATED event."""
    return {
        "position": position.to_dict(),
        "accuracy": accuracy,
        "speed": speed,
        "heading": heading,
    }

# game/spawner.py

"""Node batches: how many, what type, which reward tier."""

import random
from typing import Callable

from spatial.generator import generate_candidate
from spatial.geo import Coordinate, distance_meters, geo_to_local

from .config import GameConfig
from .logging import get_logger
from .rewards import random_id
from .state import Node, NodeType, RewardTier

logger = get_logger(__name__)

NODE_TYPE_WEIGHTS: dict[NodeType, float] = {
    NodeType.JUNCTION: 0.33,
    NodeType.OPEN_SPACE: 0.33,
    NodeType.EDGE: 0.34,
}


class NodeSpawner:
    """Creates batches of undiscovered nodes around the player."""

    def __init__(self, config: GameConfig, rng: random.Random):
        self.config = config
        self.rng = rng

    def roll_type(self) -> NodeType:
        types = list(NODE_TYPE_WEIGHTS)
        return self.rng.choices(types, weights=[NODE_TYPE_WEIGHTS[t] for t in types])[0]

    def spawn_batch(
        self,
        center: Coordinate,
        heading: float,
        roll_tier: Callable[[], RewardTier],
    ) -> list[Node]:
        """Generate a fresh batch of nodes ahead of ``center``.

        Args:
            center: Player position
            heading: Direction of travel in degrees
            roll_tier: Draws a reward tier for each node

        Returns:
            New nodes, all undiscovered and uncaptured
        """
        count = self.rng.randint(self.config.spawn_batch_min, self.config.spawn_batch_max)
        min_dist, max_dist = self.config.active_spawn_radius

        nodes = []
        for _ in range(count):
            geo_position = generate_candidate(center, heading, min_dist, max_dist, self.rng)
            nodes.append(
                Node(
                    id=f"node_{random_id(self.rng)}",
                    type=self.roll_type(),
                    tier=roll_tier(),
                    geo_position=geo_position,
                    local_position=geo_to_local(center, geo_position),
                )
            )

        logger.debug("nodes.spawned", count=count, heading=heading)
        return nodes

    def should_spawn(
        self,
        active_count: int,
        last_spawn_pos: Coordinate | None,
        position: Coordinate,
    ) -> bool:
        """Too few live nodes left, or the player walked far enough."""
        if active_count < self.config.active_min_nodes:
            return True
        if last_spawn_pos is None:
            return False
        return distance_meters(last_spawn_pos, position) >= self.config.active_spawn_step

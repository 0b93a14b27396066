# spatial/generator.py

"""Candidate positions for new nodes, biased toward the direction of travel."""

import random

from .geo import Coordinate, destination_point, normalize_heading

# Half-width of the cone ahead of the player that new nodes fall into
SPAWN_CONE_HALF_ANGLE_DEG = 60.0


def generate_candidate(
    center: Coordinate,
    heading: float,
    min_dist: float,
    max_dist: float,
    rng: random.Random,
) -> Coordinate:
    """Pick a point ahead of the player.

    Args:
        center: Player position
        heading: Direction of travel in degrees
        min_dist: Minimum distance in meters
        max_dist: Maximum distance in meters
        rng: Random source

    Returns:
        A coordinate between ``min_dist`` and ``max_dist`` away, within
        +/- 60 degrees of ``heading``
    """
    dist = rng.uniform(min_dist, max_dist)
    bias = rng.uniform(-SPAWN_CONE_HALF_ANGLE_DEG, SPAWN_CONE_HALF_ANGLE_DEG)
    return destination_point(center, dist, normalize_heading(heading + bias))

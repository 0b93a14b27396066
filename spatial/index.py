# spatial/index.py

"""Spatial indexing using R-tree for proximity queries over live nodes."""

import math
from typing import TYPE_CHECKING, Optional

import rtree.index

from game.events import Feedback, FeedbackType
from game.logging import get_logger

from .geo import EARTH_RADIUS_M, Coordinate, distance_meters

if TYPE_CHECKING:
    from game.session import GameSession

logger = get_logger(__name__)

# Meters per degree of latitude on the spherical earth
METERS_PER_DEGREE = math.pi * EARTH_RADIUS_M / 180.0


class NodeIndex:
    """R-tree index of uncaptured node positions.

    Keys are (longitude, latitude) points. Kept in sync with the session via
    feedback handlers: spawned nodes are inserted, captured nodes removed,
    and a reset empties the index.
    """

    def __init__(self):
        self.session: Optional["GameSession"] = None
        self._rtree = self._new_rtree()

        # rtree needs integer ids, nodes have string ids
        self._keys: dict[str, int] = {}
        self._positions: dict[str, Coordinate] = {}
        self._next_key = 0

        self.logger = get_logger(f"{__name__}.NodeIndex")
        self.logger.info("node_index.created")

    @staticmethod
    def _new_rtree() -> rtree.index.Index:
        properties = rtree.index.Property()
        properties.dimension = 2
        return rtree.index.Index(properties=properties)

    async def initialize(self, session: "GameSession") -> None:
        """Attach to a session and register feedback handlers.

        Args:
            session: Session whose nodes should be indexed
        """
        self.session = session

        session.on_feedback(FeedbackType.NODES_SPAWNED, self._handle_nodes_spawned)
        session.on_feedback(FeedbackType.NODE_CAPTURED, self._handle_node_captured)
        session.on_feedback(FeedbackType.SESSION_RESET, self._handle_session_reset)

        self.logger.info("node_index.initialized")

    def insert(self, node_id: str, position: Coordinate) -> None:
        """Insert a node, replacing any previous entry with the same id."""
        if node_id in self._keys:
            self.remove(node_id)

        key = self._next_key
        self._next_key += 1

        bbox = (position.longitude, position.latitude, position.longitude, position.latitude)
        self._rtree.insert(key, bbox, obj=node_id)
        self._keys[node_id] = key
        self._positions[node_id] = position

        self.logger.debug(
            "node.indexed",
            node_id=node_id,
            latitude=position.latitude,
            longitude=position.longitude,
        )

    def remove(self, node_id: str) -> None:
        if node_id not in self._keys:
            return

        position = self._positions.pop(node_id)
        key = self._keys.pop(node_id)
        bbox = (position.longitude, position.latitude, position.longitude, position.latitude)
        self._rtree.delete(key, bbox)

        self.logger.debug("node.removed_from_index", node_id=node_id)

    def query_radius(self, center: Coordinate, radius_m: float) -> list[tuple[str, float]]:
        """Find nodes within ``radius_m`` meters of ``center``.

        The R-tree narrows candidates with a degree bounding box; the exact
        great-circle distance decides membership.

        Args:
            center: Query point
            radius_m: Search radius in meters

        Returns:
            List of (node_id, distance) tuples, nearest first
        """
        if radius_m < 0:
            return []

        lat_span = radius_m / METERS_PER_DEGREE
        cos_lat = math.cos(math.radians(center.latitude))
        if cos_lat < 1e-9 or lat_span >= 90.0:
            lon_span = 180.0
        else:
            lon_span = min(lat_span / cos_lat, 180.0)

        bbox = (
            center.longitude - lon_span,
            max(center.latitude - lat_span, -90.0),
            center.longitude + lon_span,
            min(center.latitude + lat_span, 90.0),
        )

        results = []
        for node_id in self._rtree.intersection(bbox, objects="raw"):
            dist = distance_meters(center, self._positions[node_id])
            if dist <= radius_m:
                results.append((node_id, dist))

        results.sort(key=lambda x: x[1])
        return results

    def nearest(self, point: Coordinate, k: int = 1) -> list[tuple[str, float]]:
        """Find the ``k`` nearest nodes to a point.

        Args:
            point: Query point
            k: Number of nodes to return

        Returns:
            List of (node_id, distance) tuples, sorted by distance
        """
        if k <= 0 or not self._positions:
            return []

        # Degree-space nearest is only an approximation of great-circle
        # order, so over-fetch and re-rank
        bbox = (point.longitude, point.latitude, point.longitude, point.latitude)
        fetch = min(len(self._positions), k * 4)
        candidates = list(self._rtree.nearest(bbox, fetch, objects="raw"))

        results = [(node_id, distance_meters(point, self._positions[node_id])) for node_id in set(candidates)]
        results.sort(key=lambda x: x[1])
        return results[:k]

    def get_node_count(self) -> int:
        return len(self._positions)

    def clear(self) -> None:
        """Clear all nodes from index."""
        self._rtree = self._new_rtree()
        self._keys.clear()
        self._positions.clear()

        self.logger.info("node_index.cleared")

    # Feedback handlers

    async def _handle_nodes_spawned(self, feedback: Feedback) -> None:
        for node in feedback.data["nodes"]:
            self.insert(node["id"], Coordinate(latitude=node["latitude"], longitude=node["longitude"]))

    async def _handle_node_captured(self, feedback: Feedback) -> None:
        self.remove(feedback.data["node_id"])

    async def _handle_session_reset(self, feedback: Feedback) -> None:
        self.clear()

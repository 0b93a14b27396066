# tests/test_node_index.py

"""Tests for the R-tree node index."""

import pytest

from game.events import Feedback, FeedbackType
from spatial import NodeIndex
from spatial.geo import Coordinate, destination_point

CENTER = Coordinate(latitude=48.8566, longitude=2.3522)


@pytest.fixture
def index():
    return NodeIndex()


class TestNodeIndexBasics:
    """Test basic index operations."""

    def test_create_index(self, index):
        assert index.get_node_count() == 0

    def test_insert_and_remove(self, index):
        index.insert("node_a", CENTER)
        assert index.get_node_count() == 1

        index.remove("node_a")
        assert index.get_node_count() == 0
        assert index.query_radius(CENTER, 10.0) == []

    def test_remove_nonexistent_node(self, index):
        """Removing an unknown node doesn't raise."""
        index.remove("node_missing")
        assert index.get_node_count() == 0

    def test_reinsert_replaces(self, index):
        index.insert("node_a", CENTER)
        moved = destination_point(CENTER, 100.0, 0.0)
        index.insert("node_a", moved)

        assert index.get_node_count() == 1
        assert index.query_radius(CENTER, 10.0) == []
        assert [node_id for node_id, _ in index.query_radius(moved, 10.0)] == ["node_a"]

    def test_clear(self, index):
        for i in range(10):
            index.insert(f"node_{i}", destination_point(CENTER, 10.0 * i, 45.0))

        index.clear()

        assert index.get_node_count() == 0
        assert index.query_radius(CENTER, 1000.0) == []


class TestNodeIndexQueries:
    """Test proximity queries."""

    @pytest.fixture
    def ring(self, index):
        """Nodes every 45 degrees at 10, 30 and 60 m."""
        for distance in (10.0, 30.0, 60.0):
            for bearing in range(0, 360, 45):
                index.insert(f"node_{int(distance)}_{bearing}", destination_point(CENTER, distance, bearing))
        return index

    def test_query_radius(self, ring):
        results = ring.query_radius(CENTER, 35.0)

        assert len(results) == 16
        assert all(dist <= 35.0 for _, dist in results)

    def test_query_radius_sorted(self, ring):
        distances = [dist for _, dist in ring.query_radius(CENTER, 100.0)]
        assert distances == sorted(distances)
        assert len(distances) == 24

    def test_query_excludes_bbox_corners(self, index):
        """Points inside the bounding box but outside the circle are dropped."""
        corner = destination_point(CENTER, 45.0, 45.0)
        index.insert("node_corner", corner)

        assert index.query_radius(CENTER, 40.0) == []

    def test_negative_radius(self, ring):
        assert ring.query_radius(CENTER, -1.0) == []

    def test_nearest(self, ring):
        index = ring
        index.insert("node_close", destination_point(CENTER, 2.0, 10.0))

        nearest = index.nearest(CENTER, k=3)

        assert nearest[0][0] == "node_close"
        assert len(nearest) == 3
        assert nearest[0][1] == pytest.approx(2.0, rel=0.01)

    def test_nearest_empty(self, index):
        assert index.nearest(CENTER) == []

    def test_high_latitude(self, index):
        north = Coordinate(latitude=89.9, longitude=0.0)
        index.insert("node_polar", destination_point(north, 20.0, 90.0))

        assert [node_id for node_id, _ in index.query_radius(north, 25.0)] == ["node_polar"]


class TestNodeIndexFeedback:
    """Test the feedback-driven sync."""

    @pytest.mark.asyncio
    async def test_spawn_capture_reset(self, index):
        spawned = Feedback(
            feedback_type=FeedbackType.NODES_SPAWNED,
            data={
                "nodes": [
                    {"id": "node_a", "latitude": CENTER.latitude, "longitude": CENTER.longitude},
                    {"id": "node_b", "latitude": CENTER.latitude + 0.001, "longitude": CENTER.longitude},
                ]
            },
        )
        await index._handle_nodes_spawned(spawned)
        assert index.get_node_count() == 2

        await index._handle_node_captured(
            Feedback(feedback_type=FeedbackType.NODE_CAPTURED, data={"node_id": "node_a"})
        )
        assert index.get_node_count() == 1

        await index._handle_session_reset(Feedback(feedback_type=FeedbackType.SESSION_RESET))
        assert index.get_node_count() == 0

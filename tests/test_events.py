"""Tests for input events, feedback effects and event validation."""

import math
from uuid import uuid4

import pytest

from game.events import Event, EventType, EventValidator, Feedback, FeedbackType
from game.exceptions import EventValidationError

POSITION = {"latitude": 37.7749, "longitude": -122.4194}


class TestEvent:
    """Test Event construction."""

    def test_create(self):
        event = Event.create(EventType.TICK, 12.5)

        assert event.event_type == EventType.TICK
        assert event.timestamp_ms == 12.5
        assert event.data == {}

    def test_string_type_is_converted(self):
        event = Event(event_type="sensor.position", data={"position": POSITION})
        assert event.event_type == EventType.POSITION_UPDATED

    def test_unknown_string_type_is_kept(self):
        event = Event(event_type="custom.thing")
        assert event.event_type == "custom.thing"

    def test_event_is_immutable(self):
        event = Event.create(EventType.TICK, 0.0)
        with pytest.raises(AttributeError):
            event.timestamp_ms = 5.0

    def test_hash_based_on_event_id(self):
        event_id = uuid4()
        event = Event(event_type=EventType.TICK, event_id=event_id)
        assert hash(event) == hash(event_id)

    def test_to_dict(self):
        event = Event.create(EventType.SIMULATE_TURN, 10.0, {"degrees": 15.0})
        data = event.to_dict()

        assert data["event_type"] == "debug.turn"
        assert data["timestamp_ms"] == 10.0
        assert data["data"] == {"degrees": 15.0}
        assert data["event_id"] == str(event.event_id)


class TestFeedback:
    """Test feedback effects."""

    def test_to_dict(self):
        feedback = Feedback(feedback_type=FeedbackType.NODE_DISCOVERED, timestamp_ms=5.0, data={"node_id": "n"})
        data = feedback.to_dict()

        assert data["feedback_type"] == "node.discovered"
        assert data["data"] == {"node_id": "n"}

    def test_unique_ids(self):
        a = Feedback(feedback_type=FeedbackType.SESSION_RESET)
        b = Feedback(feedback_type=FeedbackType.SESSION_RESET)
        assert len({a, b}) == 2


class TestEventValidator:
    """Test EventValidator functionality."""

    def test_valid_position_update(self):
        event = Event.create(
            EventType.POSITION_UPDATED,
            1.0,
            {"position": POSITION, "accuracy": 5.0, "speed": None, "heading": 90},
        )
        EventValidator.validate(event)

    def test_missing_required_field(self):
        event = Event.create(EventType.POSITION_UPDATED, 1.0, {"accuracy": 5.0})
        with pytest.raises(EventValidationError, match="missing required field"):
            EventValidator.validate(event)

    def test_wrong_type(self):
        event = Event.create(EventType.ORIENTATION_UPDATED, 1.0, {"heading": "north"})
        with pytest.raises(EventValidationError, match="wrong type"):
            EventValidator.validate(event)

    def test_bool_is_not_a_number(self):
        event = Event.create(EventType.SIMULATE_MOVE, 1.0, {"meters": True})
        assert not EventValidator.is_valid(event)

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
    def test_non_finite_reading(self, value):
        event = Event.create(EventType.POSITION_UPDATED, 1.0, {"position": POSITION, "accuracy": value})
        assert not EventValidator.is_valid(event)

    @pytest.mark.parametrize(
        "position",
        [
            {"latitude": 91.0, "longitude": 0.0},
            {"latitude": 0.0, "longitude": 181.0},
            {"latitude": "x", "longitude": 0.0},
            {"latitude": 1.0},
            {"latitude": math.nan, "longitude": 0.0},
        ],
    )
    def test_bad_position(self, position):
        event = Event.create(EventType.POSITION_UPDATED, 1.0, {"position": position})
        with pytest.raises(EventValidationError):
            EventValidator.validate(event)

    def test_bad_timestamp(self):
        event = Event.create(EventType.TICK, math.nan)
        assert not EventValidator.is_valid(event)

    def test_unknown_event_type(self):
        assert not EventValidator.is_valid(Event(event_type="custom.thing"))

    def test_actions_need_no_payload(self):
        for event_type in (EventType.CAPTURE_BEGIN, EventType.EVACUATE, EventType.TICK, EventType.SESSION_RESET):
            assert EventValidator.is_valid(Event.create(event_type, 1.0))

    def test_start_without_position(self):
        assert EventValidator.is_valid(Event.create(EventType.SESSION_STARTED, 0.0, {"position": None}))

# game/events.py

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from .exceptions import EventValidationError


class EventType(str, Enum):
    """Input event enumeration (sensor samples, player actions, timer ticks)."""

    SESSION_STARTED = "session.start"
    SESSION_RESET = "session.reset"
    POSITION_UPDATED = "sensor.position"
    ORIENTATION_UPDATED = "sensor.orientation"
    CAPTURE_BEGIN = "capture.begin"
    CAPTURE_END = "capture.end"
    EVACUATE = "evac.confirm"
    EMERGENCY_EVACUATE = "evac.emergency"
    CONTINUE_EXPLORING = "evac.continue"
    MANUAL_OUTDOOR_TOGGLED = "override.outdoor"
    MANUAL_HOME_TOGGLED = "override.home"
    DEBUG_TOGGLED = "debug.toggle"
    SIMULATE_MOVE = "debug.move"
    SIMULATE_TURN = "debug.turn"
    WALK_TICK = "debug.walk_tick"
    TICK = "clock.tick"


class FeedbackType(str, Enum):
    """One-shot notifications for haptic, audio and visual consumers."""

    SESSION_STARTED = "session.started"
    SESSION_RESET = "session.reset"
    SESSION_COMPLETED = "session.completed"
    NODES_SPAWNED = "nodes.spawned"
    NODE_DISCOVERED = "node.discovered"
    TARGET_ACQUIRED = "target.acquired"
    CAPTURE_STARTED = "capture.started"
    CAPTURE_CANCELLED = "capture.cancelled"
    NODE_CAPTURED = "node.captured"
    EVAC_READY_ENTERED = "evac.ready"
    EVAC_TRIGGERED = "evac.triggered"


@dataclass(frozen=True)
class Event:
    """Immutable input event processed by the session state machine."""

    event_type: EventType | str
    timestamp_ms: float = 0.0  # Monotonic milliseconds
    data: dict[str, Any] = field(default_factory=dict)
    event_id: UUID = field(default_factory=uuid4)

    def __post_init__(self):
        # Convert string to EventType if needed
        if isinstance(self.event_type, str):
            try:
                object.__setattr__(self, "event_type", EventType(self.event_type))
            except ValueError:
                # Keep as string if not a known EventType
                pass

    def __hash__(self) -> int:
        """Make events hashable for use in sets/deduplication."""
        return hash(self.event_id)

    @classmethod
    def create(
        cls,
        event_type: EventType | str,
        timestamp_ms: float,
        data: Optional[dict[str, Any]] = None,
    ) -> "Event":
        """Factory method for creating events."""
        return cls(event_type=event_type, timestamp_ms=timestamp_ms, data=data or {})

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary representation."""
        return {
            "event_id": str(self.event_id),
            "timestamp_ms": self.timestamp_ms,
            "event_type": (
                self.event_type.value if isinstance(self.event_type, EventType) else self.event_type
            ),
            "data": self.data,
        }


@dataclass(frozen=True)
class Feedback:
    """One-shot effect produced by a state transition."""

    feedback_type: FeedbackType
    timestamp_ms: float = 0.0
    data: dict[str, Any] = field(default_factory=dict)
    feedback_id: UUID = field(default_factory=uuid4)

    def __hash__(self) -> int:
        return hash(self.feedback_id)

    def to_dict(self) -> dict[str, Any]:
        """Convert feedback to dictionary representation."""
        return {
            "feedback_id": str(self.feedback_id),
            "timestamp_ms": self.timestamp_ms,
            "feedback_type": self.feedback_type.value,
            "data": self.data,
        }


_NUMBER = (int, float)
_OPTIONAL_NUMBER = (int, float, type(None))


class EventValidator:
    """Lightweight validator for input event data."""

    # Define required fields for each event type
    SCHEMAS: dict[str, dict[str, Any]] = {
        EventType.SESSION_STARTED: {
            "required": [],
            "types": {"position": (dict, type(None)), "heading": _OPTIONAL_NUMBER},
        },
        EventType.POSITION_UPDATED: {
            "required": ["position"],
            "types": {
                "position": dict,
                "heading": _OPTIONAL_NUMBER,
                "accuracy": _OPTIONAL_NUMBER,
                "speed": _OPTIONAL_NUMBER,
            },
        },
        EventType.ORIENTATION_UPDATED: {
            "required": ["heading"],
            "types": {"heading": _NUMBER},
        },
        EventType.SIMULATE_MOVE: {
            "required": ["meters"],
            "types": {"meters": _NUMBER},
        },
        EventType.SIMULATE_TURN: {
            "required": ["degrees"],
            "types": {"degrees": _NUMBER},
        },
    }

    @classmethod
    def validate(cls, event: Event) -> None:
        """Validate event data against schema.

        Args:
            event: Event to validate

        Raises:
            EventValidationError: If validation fails
        """
        event_type = event.event_type

        if not isinstance(event_type, EventType):
            raise EventValidationError(f"Unknown event type: {event_type}")

        if not isinstance(event.timestamp_ms, _NUMBER) or not math.isfinite(event.timestamp_ms):
            raise EventValidationError(f"Event {event_type.value} has invalid timestamp")

        schema = cls.SCHEMAS.get(event_type)
        if not schema:
            # Action events carry no payload
            return

        # Check required fields
        for field_name in schema.get("required", []):
            if field_name not in event.data:
                raise EventValidationError(
                    f"Event {event_type.value} missing required field: {field_name}"
                )

        # Check field types
        type_specs = schema.get("types", {})
        for field_name, expected_type in type_specs.items():
            if field_name in event.data:
                value = event.data[field_name]
                # bool is an int subclass but never a valid reading
                if isinstance(value, bool) or not isinstance(value, expected_type):
                    raise EventValidationError(
                        f"Event {event_type.value} field '{field_name}' has wrong type: "
                        f"expected {expected_type}, got {type(value)}"
                    )
                if isinstance(value, float) and not math.isfinite(value):
                    raise EventValidationError(
                        f"Event {event_type.value} field '{field_name}' is not finite"
                    )

        position = event.data.get("position")
        if isinstance(position, dict):
            cls._validate_position(event_type, position)

    @classmethod
    def _validate_position(cls, event_type: EventType, position: dict[str, Any]) -> None:
        """Check a serialized coordinate for range and type."""
        try:
            lat = float(position["latitude"])
            lon = float(position["longitude"])
        except (KeyError, TypeError, ValueError) as e:
            raise EventValidationError(
                f"Event {event_type.value} has malformed position: {position}"
            ) from e

        if not (math.isfinite(lat) and math.isfinite(lon)):
            raise EventValidationError(f"Event {event_type.value} position is not finite")
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
            raise EventValidationError(
                f"Event {event_type.value} position out of range: ({lat}, {lon})"
            )

    @classmethod
    def is_valid(cls, event: Event) -> bool:
        """Check if event is valid without raising exceptions.

        Args:
            event: Event to validate

        Returns:
            True if valid, False otherwise
        """
        try:
            cls.validate(event)
            return True
        except EventValidationError:
            return False



"""Game engine: sensor fusion, session state machine and async runtime."""

# Modules without spatial dependencies load first; spatial.index imports them
from .config import GameConfig
from .logging import configure_logging, get_logger
from .exceptions import (
    EventException,
    EventValidationError,
    FeedbackHandlerException,
    FieldglowException,
    HandlerExecutionError,
    InvalidActionError,
    SessionException,
    StaleEventError,
)
from .events import Event, EventType, EventValidator, Feedback, FeedbackType
from .event_handlers import FeedbackHandler, FeedbackHandlerRegistry
from .state import (
    GamePhase,
    Node,
    NodeType,
    RewardTier,
    SessionState,
    SessionStats,
)
from .machine import transition
from .session import GameSession
from .time import GameClock, ManualClock

__all__ = [
    # Core classes
    "GameConfig",
    "GameSession",
    "GameClock",
    "ManualClock",
    "SessionState",
    "SessionStats",
    "GamePhase",
    "Node",
    "NodeType",
    "RewardTier",
    "Event",
    "EventType",
    "EventValidator",
    "Feedback",
    "FeedbackType",
    "FeedbackHandler",
    "FeedbackHandlerRegistry",
    "transition",
    "configure_logging",
    "get_logger",
    # Exceptions
    "FieldglowException",
    "EventException",
    "EventValidationError",
    "SessionException",
    "InvalidActionError",
    "StaleEventError",
    "FeedbackHandlerException",
    "HandlerExecutionError",
]

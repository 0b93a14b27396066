# game/exceptions.py

"""Exception hierarchy for the fieldglow game engine."""


class FieldglowException(Exception):
    """Base exception for all fieldglow errors."""

    pass


# Event Exceptions
class EventException(FieldglowException):
    """Base exception for input event handling."""

    pass


class EventValidationError(EventException):
    """Raised when an input event fails validation."""

    pass


# Session Exceptions
class SessionException(FieldglowException):
    """Base exception for session operations."""

    pass


class InvalidActionError(SessionException):
    """Raised when a player action is not allowed in the current phase."""

    pass


class StaleEventError(SessionException):
    """Raised when an event refers to state that has already moved on."""

    pass


# Feedback Handler Exceptions
class FeedbackHandlerException(FieldglowException):
    """Base exception for feedback handler operations."""

    pass


class HandlerExecutionError(FeedbackHandlerException):
    """Raised when a feedback handler fails during execution."""

    pass

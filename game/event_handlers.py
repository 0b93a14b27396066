# game/event_handlers.py

"""Feedback subscriptions.

Haptics, audio, the UI stream and the spatial index all learn about the game
through one-shot ``Feedback`` effects. Subscribers either follow one feedback
type or every effect the session produces.
"""

from collections import defaultdict
from typing import Awaitable, Callable, Optional

from .events import Feedback, FeedbackType
from .exceptions import HandlerExecutionError
from .logging import get_logger

logger = get_logger(__name__)

FeedbackHandler = Callable[[Feedback], Awaitable[None]]


def _type_key(feedback_type: FeedbackType | str) -> str:
    return feedback_type.value if isinstance(feedback_type, FeedbackType) else feedback_type


class FeedbackHandlerRegistry:
    """Typed and catch-all feedback subscribers, called in subscription order."""

    def __init__(self):
        self._by_type: dict[str, list[FeedbackHandler]] = defaultdict(list)
        self._listeners: list[FeedbackHandler] = []

    def on(self, feedback_type: FeedbackType | str, handler: FeedbackHandler) -> None:
        key = _type_key(feedback_type)
        self._by_type[key].append(handler)
        logger.debug("feedback.subscribed", feedback_type=key)

    def on_all(self, handler: FeedbackHandler) -> None:
        self._listeners.append(handler)
        logger.debug("feedback.listener_added", listeners=len(self._listeners))

    def off(self, feedback_type: FeedbackType | str, handler: FeedbackHandler) -> bool:
        """Returns False when ``handler`` was not subscribed to the type."""
        handlers = self._by_type.get(_type_key(feedback_type))
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        return True

    def off_all(self, handler: FeedbackHandler) -> bool:
        if handler not in self._listeners:
            return False
        self._listeners.remove(handler)
        return True

    def clear(self) -> None:
        self._by_type.clear()
        self._listeners.clear()

    async def dispatch(self, feedback: Feedback, fail_fast: bool = False) -> None:
        """Deliver ``feedback`` to its typed subscribers, then to listeners.

        A failing subscriber is logged and skipped. With ``fail_fast`` the
        first failure is raised as ``HandlerExecutionError`` instead.
        """
        key = _type_key(feedback.feedback_type)
        # Snapshot so a subscriber may unsubscribe itself mid-dispatch
        subscribers = [*self._by_type.get(key, ()), *self._listeners]

        failures = 0
        for handler in subscribers:
            error = await self._invoke(handler, feedback, key)
            if error is None:
                continue
            if fail_fast:
                raise HandlerExecutionError(
                    f"{_handler_name(handler)} failed on {key}: {error}"
                ) from error
            failures += 1

        if failures:
            logger.warning("feedback.partially_delivered", feedback_type=key, failures=failures)

    async def _invoke(self, handler: FeedbackHandler, feedback: Feedback, key: str) -> Optional[Exception]:
        try:
            await handler(feedback)
        except Exception as e:
            logger.error(
                "feedback.handler_failed",
                feedback_type=key,
                feedback_id=str(feedback.feedback_id),
                handler=_handler_name(handler),
                error=str(e),
            )
            return e
        return None


def _handler_name(handler: FeedbackHandler) -> str:
    return getattr(handler, "__name__", repr(handler))

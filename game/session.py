# game/session.py

import asyncio
import random
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from spatial.index import NodeIndex

from spatial.geo import Coordinate

from .config import GameConfig
from .event_handlers import FeedbackHandler, FeedbackHandlerRegistry
from .events import Event, EventType, EventValidator, Feedback, FeedbackType
from .exceptions import EventValidationError
from .logging import get_logger
from .machine import transition
from .state import GamePhase, SessionState
from .time import GameClock


class GameSession:
    """Async runtime around the session state machine.

    Every input, whether a sensor sample, a player action or a timer tick,
    becomes an ``Event`` that is validated, stamped with the session clock and
    pushed through ``transition`` under a single lock. Feedback effects are
    dispatched to subscribers after the lock is released.
    """

    def __init__(
        self,
        config: Optional[GameConfig] = None,
        clock: Optional[GameClock] = None,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
        session_id: Optional[UUID] = None,
    ):
        self.session_id = session_id or uuid4()
        self.config = config or GameConfig()
        self.clock = clock or GameClock()
        self.rng = rng or random.Random(seed)
        self.state = SessionState()
        self.event_count = 0
        self.logger = get_logger(f"{__name__}.GameSession")
        self._initialized = False

        self._lock = asyncio.Lock()
        self._feedback_handlers = FeedbackHandlerRegistry()
        self._timers: dict[str, asyncio.Task] = {}

        self.node_index: Optional["NodeIndex"] = None

    async def initialize(self) -> None:
        """Attach the spatial index to the feedback stream."""
        from spatial.index import NodeIndex

        self.node_index = NodeIndex()
        await self.node_index.initialize(self)

        self._initialized = True

        self.logger.info(
            "session.initialized",
            session_id=str(self.session_id),
            fake_sensors=self.config.fake_sensors,
        )

    async def shutdown(self) -> None:
        """Cancel pending timers and drop subscriptions."""
        await self._cancel_timers()
        self._feedback_handlers.clear()
        self._initialized = False
        self.logger.info("session.shutdown", session_id=str(self.session_id))

    # Event processing

    async def process_event(self, event: Event) -> list[Feedback]:
        """Validate and apply one event, then dispatch its feedback.

        Invalid events are logged and dropped.

        Returns:
            Feedback effects produced by the event
        """
        try:
            EventValidator.validate(event)
        except EventValidationError as e:
            self.logger.warning(
                "event.rejected",
                event_type=str(event.event_type),
                event_id=str(event.event_id),
                error=str(e),
            )
            return []

        async with self._lock:
            self.state, effects = transition(self.state, event, self.config, self.rng)
            self.event_count += 1
            self._sync_timers()

        for feedback in effects:
            await self._feedback_handlers.dispatch(feedback, fail_fast=False)

        return effects

    async def _emit(self, event_type: EventType, data: Optional[dict[str, Any]] = None) -> list[Feedback]:
        event = Event.create(event_type, self.clock.now_ms(), data)
        return await self.process_event(event)

    # Player actions and sensor inputs

    async def start(
        self,
        position: Optional[Coordinate] = None,
        heading: Optional[float] = None,
    ) -> list[Feedback]:
        """Start a session at ``position``, or at (0, 0) without a fix."""
        return await self._emit(
            EventType.SESSION_STARTED,
            {
                "position": position.to_dict() if position else None,
                "heading": heading,
            },
        )

    async def on_position_update(
        self,
        position: Coordinate,
        heading: Optional[float] = None,
        accuracy: Optional[float] = None,
        speed: Optional[float] = None,
    ) -> list[Feedback]:
        return await self._emit(
            EventType.POSITION_UPDATED,
            {
                "position": position.to_dict(),
                "heading": heading,
                "accuracy": accuracy,
                "speed": speed,
            },
        )

    async def on_orientation_update(self, heading: float) -> list[Feedback]:
        return await self._emit(EventType.ORIENTATION_UPDATED, {"heading": heading})

    async def begin_capture(self) -> list[Feedback]:
        return await self._emit(EventType.CAPTURE_BEGIN)

    async def end_capture(self) -> list[Feedback]:
        return await self._emit(EventType.CAPTURE_END)

    async def evacuate(self) -> list[Feedback]:
        return await self._emit(EventType.EVACUATE)

    async def emergency_evacuate(self) -> list[Feedback]:
        return await self._emit(EventType.EMERGENCY_EVACUATE)

    async def continue_exploring(self) -> list[Feedback]:
        return await self._emit(EventType.CONTINUE_EXPLORING)

    async def reset(self) -> list[Feedback]:
        """Cancel every pending timer, then return to a fresh idle session."""
        await self._cancel_timers()
        return await self._emit(EventType.SESSION_RESET)

    async def toggle_manual_outdoor(self) -> list[Feedback]:
        return await self._emit(EventType.MANUAL_OUTDOOR_TOGGLED)

    async def toggle_manual_home(self) -> list[Feedback]:
        return await self._emit(EventType.MANUAL_HOME_TOGGLED)

    async def toggle_debug(self) -> list[Feedback]:
        return await self._emit(EventType.DEBUG_TOGGLED)

    async def simulate_move(self, meters: float) -> list[Feedback]:
        """Walk ``meters`` along the current heading (debug mode)."""
        return await self._emit(EventType.SIMULATE_MOVE, {"meters": meters})

    async def simulate_turn(self, degrees: float) -> list[Feedback]:
        """Rotate the heading by ``degrees`` (debug mode)."""
        return await self._emit(EventType.SIMULATE_TURN, {"degrees": degrees})

    async def tick(self) -> list[Feedback]:
        """Process a clock tick now. Timers call this; tests may too."""
        return await self._emit(EventType.TICK)

    # Output

    def snapshot(self) -> dict[str, Any]:
        """Read-only view of the session for rendering."""
        snapshot = self.state.snapshot()
        snapshot["session_id"] = str(self.session_id)
        snapshot["event_count"] = self.event_count
        return snapshot

    def query_nodes_in_radius(
        self,
        radius_m: float,
        center: Optional[Coordinate] = None,
    ) -> list[tuple[str, float]]:
        """Uncaptured nodes within ``radius_m`` of ``center`` (default: player).

        Returns:
            List of (node_id, distance) tuples, nearest first
        """
        center = center or self.state.current_pos
        if self.node_index is None or center is None:
            return []
        return self.node_index.query_radius(center, radius_m)

    # Feedback subscriptions

    def on_feedback(self, feedback_type: FeedbackType | str, handler: FeedbackHandler) -> None:
        """Subscribe to a specific feedback type."""
        self._feedback_handlers.on(feedback_type, handler)

    def off_feedback(self, feedback_type: FeedbackType | str, handler: FeedbackHandler) -> bool:
        return self._feedback_handlers.off(feedback_type, handler)

    def add_feedback_listener(self, listener: FeedbackHandler) -> None:
        """Subscribe to ALL feedback effects."""
        self._feedback_handlers.on_all(listener)

    def remove_feedback_listener(self, listener: FeedbackHandler) -> bool:
        return self._feedback_handlers.off_all(listener)

    def get_status(self) -> dict[str, Any]:
        return {
            "session_id": str(self.session_id),
            "state": self.state.phase.value,
            "message": self.state.message,
            "current_time_ms": self.clock.now_ms(),
            "event_count": self.event_count,
            "node_count": len(self.state.nodes),
            "indexed_nodes": self.node_index.get_node_count() if self.node_index else 0,
            "companions": len(self.state.companions),
            "debug_mode": self.state.debug_mode,
            "fake_sensors": self.config.fake_sensors,
            "pending_timers": sorted(name for name, task in self._timers.items() if not task.done()),
        }

    # Timers

    def _sync_timers(self) -> None:
        """Start the timer tasks the current state needs.

        Timers re-read their deadline from state on every wake-up and exit on
        their own once it is gone, so nothing is cancelled here.
        """
        state = self.state
        self._ensure_timer(
            "capture",
            state.phase == GamePhase.CAPTURING and state.capture is not None,
            self._capture_loop,
        )
        self._ensure_timer("carrying", state.carrying is not None, lambda: self._await_deadline("carrying"))
        self._ensure_timer("evac", state.evac is not None, lambda: self._await_deadline("evac"))
        self._ensure_timer(
            "walk",
            self.config.fake_sensors and state.started and state.phase != GamePhase.RESULT,
            self._walk_loop,
        )

    def _ensure_timer(self, name: str, wanted: bool, factory: Callable[[], Awaitable[None]]) -> None:
        task = self._timers.get(name)
        if task is not None and task.done():
            del self._timers[name]
            task = None

        if wanted and task is None:
            self._timers[name] = asyncio.create_task(self._run_timer(name, factory))
            self.logger.debug("timer.started", timer=name)

    async def _run_timer(self, name: str, factory: Callable[[], Awaitable[None]]) -> None:
        try:
            await factory()
        except asyncio.CancelledError:
            self.logger.debug("timer.cancelled", timer=name)
            raise
        except Exception as e:
            self.logger.error("timer.failed", timer=name, error=str(e), exc_info=True)

    async def _await_deadline(self, attr: str) -> None:
        """Sleep until the deadline stored in ``state.<attr>`` and fire a tick."""
        poll = self.config.capture_tick_ms / 1000.0
        while True:
            deadline = getattr(self.state, attr)
            if deadline is None:
                return

            delay = self.clock.seconds_until(deadline.at_ms)
            if delay > 0:
                await asyncio.sleep(delay)
                continue

            await self.tick()
            if getattr(self.state, attr) == deadline:
                # Tick landed before the deadline; try again shortly
                await asyncio.sleep(poll)

    async def _capture_loop(self) -> None:
        interval = self.config.capture_tick_ms / 1000.0
        while self.state.phase == GamePhase.CAPTURING and self.state.capture is not None:
            await asyncio.sleep(interval)
            await self.tick()

    async def _walk_loop(self) -> None:
        interval = self.config.fake_move_tick_ms / 1000.0
        while self.state.started and self.state.phase != GamePhase.RESULT:
            await asyncio.sleep(interval)
            await self._emit(EventType.WALK_TICK)

    async def _cancel_timers(self) -> None:
        current = asyncio.current_task()
        tasks = [task for task in self._timers.values() if task is not current and not task.done()]
        self._timers.clear()

        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            self.logger.debug("timers.cancelled", count=len(tasks))

# game/machine.py

"""Session state machine.

``transition`` is a pure function of ``(state, event)``: it works on a copy of
the session aggregate and returns the new state together with the one-shot
feedback effects the event produced. Time comes only from event timestamps
and randomness only from the injected generator, so a session can be replayed
exactly from its event log.
"""

import copy
import math
import random
from dataclasses import replace
from typing import Callable, Optional

from spatial.geo import (
    Coordinate,
    angular_difference,
    bearing_degrees,
    destination_point,
    distance_meters,
    geo_to_local,
    normalize_heading,
)

from . import rewards, sensors
from .config import GameConfig
from .events import Event, EventType, EventValidator, Feedback, FeedbackType
from .exceptions import EventValidationError, InvalidActionError, StaleEventError
from .logging import get_logger
from .spawner import NodeSpawner
from .state import (
    ACTIVE_PHASES,
    Deadline,
    GamePhase,
    Node,
    RewardRecord,
    RewardTier,
    SessionState,
    SessionStats,
)

logger = get_logger(__name__)

# How many processed event ids are remembered for duplicate detection
RECENT_EVENT_WINDOW = 64

Transition = tuple[SessionState, list[Feedback]]


def transition(
    state: SessionState,
    event: Event,
    config: GameConfig,
    rng: random.Random,
) -> Transition:
    """Apply one event to the session.

    Invalid actions and stale or duplicate events leave the state untouched
    and produce no effects.

    Args:
        state: Current session state (not modified)
        event: Input event
        config: Game constants
        rng: Random source for spawns, tiers and companion offsets

    Returns:
        (new state, feedback effects)
    """
    step = _Step(copy.deepcopy(state), event, config, rng)
    try:
        step.run()
    except (InvalidActionError, StaleEventError) as e:
        logger.debug(
            "action.ignored",
            event_type=_event_name(event),
            phase=state.phase.value,
            reason=str(e),
        )
        return state, []
    return step.state, step.effects


def _event_name(event: Event) -> str:
    return event.event_type.value if isinstance(event.event_type, EventType) else str(event.event_type)


class _Step:
    """Working copy of the state plus the effects collected for one event."""

    def __init__(self, state: SessionState, event: Event, config: GameConfig, rng: random.Random):
        self.state = state
        self.event = event
        self.config = config
        self.rng = rng
        self.spawner = NodeSpawner(config, rng)
        self.effects: list[Feedback] = []
        self.now = state.last_event_ms

        self._handlers: dict[EventType, Callable[[], None]] = {
            EventType.SESSION_STARTED: self._start,
            EventType.SESSION_RESET: self._reset,
            EventType.POSITION_UPDATED: self._position,
            EventType.ORIENTATION_UPDATED: self._orientation,
            EventType.CAPTURE_BEGIN: self._begin_capture,
            EventType.CAPTURE_END: self._end_capture,
            EventType.EVACUATE: self._evacuate,
            EventType.EMERGENCY_EVACUATE: self._emergency_evacuate,
            EventType.CONTINUE_EXPLORING: self._continue_exploring,
            EventType.MANUAL_OUTDOOR_TOGGLED: self._toggle_manual_outdoor,
            EventType.MANUAL_HOME_TOGGLED: self._toggle_manual_home,
            EventType.DEBUG_TOGGLED: self._toggle_debug,
            EventType.SIMULATE_MOVE: self._simulate_move,
            EventType.SIMULATE_TURN: self._simulate_turn,
            EventType.WALK_TICK: self._walk_tick,
            EventType.TICK: self._tick,
        }

    def run(self) -> None:
        try:
            EventValidator.validate(self.event)
        except EventValidationError as e:
            raise InvalidActionError(f"malformed event: {e}") from e

        # Time never runs backwards inside a session
        self.now = max(float(self.event.timestamp_ms), self.state.last_event_ms)

        if self.event.event_id in self.state.recent_event_ids:
            raise StaleEventError(f"event {self.event.event_id} already processed")

        handler = self._handlers.get(self.event.event_type)
        if handler is None:
            raise InvalidActionError(f"unsupported event type {self.event.event_type}")

        handler()

        self.state.last_event_ms = self.now
        recent = self.state.recent_event_ids + (self.event.event_id,)
        self.state.recent_event_ids = recent[-RECENT_EVENT_WINDOW:]

    # Helpers

    def emit(self, feedback_type: FeedbackType, **data) -> None:
        self.effects.append(Feedback(feedback_type=feedback_type, timestamp_ms=self.now, data=data))

    def set_phase(self, phase: GamePhase, message: Optional[str] = None) -> None:
        if self.state.phase != phase:
            logger.info(
                "phase.changed",
                from_phase=self.state.phase.value,
                to_phase=phase.value,
                at_ms=self.now,
            )
        self.state.phase = phase
        if message:
            self.state.message = message

    def require_session(self) -> None:
        if self.state.origin is None or self.state.phase in (GamePhase.IDLE, GamePhase.RESULT):
            raise InvalidActionError("no session in progress")

    def roll_tier(self) -> RewardTier:
        stats = self.state.stats
        weights = rewards.tier_weights(
            stats.distance_walked,
            stats.duration_minutes(self.now),
            len(self.state.companions),
        )
        return rewards.roll_reward_tier(weights, self.rng)

    def spawn(self, center: Coordinate, heading: float) -> None:
        nodes = self.spawner.spawn_batch(center, heading, self.roll_tier)
        self.state.nodes.extend(nodes)
        self.state.last_spawn_pos = center
        self.emit(
            FeedbackType.NODES_SPAWNED,
            nodes=[
                {
                    "id": node.id,
                    "type": node.type.value,
                    "tier": node.tier.value,
                    "latitude": node.geo_position.latitude,
                    "longitude": node.geo_position.longitude,
                }
                for node in nodes
            ],
        )

    def in_reticle(self, node: Node) -> bool:
        # Without a compass fix the cone check would block capture forever
        if not self.state.heading_available:
            return True
        bearing = bearing_degrees(self.state.current_pos, node.geo_position)
        return angular_difference(bearing, self.state.heading) <= self.config.reticle_half_angle_deg

    def eligible_target(self) -> Optional[Node]:
        """Nearest discovered, uncaptured node in range and inside the reticle."""
        position = self.state.current_pos
        if position is None:
            return None

        best: Optional[Node] = None
        best_dist = math.inf
        for node in self.state.nodes:
            if not node.discovered or node.captured:
                continue
            dist = distance_meters(position, node.geo_position)
            if dist >= self.config.capture_radius_m or dist >= best_dist:
                continue
            if not self.in_reticle(node):
                continue
            best, best_dist = node, dist
        return best

    def refresh_capture_readiness(self) -> None:
        if self.state.phase not in (GamePhase.OUTDOOR_SEARCH, GamePhase.CAPTURE_READY):
            return

        target = self.eligible_target()
        if target is None:
            self.state.targeted_node_id = None
            if self.state.phase == GamePhase.CAPTURE_READY:
                self.set_phase(GamePhase.OUTDOOR_SEARCH, "Scanning Sector...")
            return

        self.state.targeted_node_id = target.id
        if self.state.phase != GamePhase.CAPTURE_READY:
            self.set_phase(GamePhase.CAPTURE_READY, "Signal Locked")
            self.emit(FeedbackType.TARGET_ACQUIRED, node_id=target.id, tier=target.tier.value)

    def evac_suppressed(self) -> bool:
        suppression = self.state.evac_suppression
        if suppression is None:
            return False
        if suppression.expired(self.now):
            self.state.evac_suppression = None
            return False
        return True

    def check_evac(self) -> None:
        state = self.state
        precondition = (
            state.distance_to_home() < self.config.home_radius_m
            and len(state.companions) > 0
            and state.indoor
        )

        if precondition and state.phase in ACTIVE_PHASES and not self.evac_suppressed():
            self.enter_evac_ready()
        elif not precondition and state.phase == GamePhase.EVAC_READY:
            self.set_phase(GamePhase.OUTDOOR_SEARCH, "Exploration Active")

    def enter_evac_ready(self) -> None:
        if self.state.phase == GamePhase.CAPTURING:
            self.cancel_capture(reason="evac_ready")
        self.state.carrying = None
        self.state.targeted_node_id = None
        self.set_phase(GamePhase.EVAC_READY, "Base Proximity Detected")
        self.emit(
            FeedbackType.EVAC_READY_ENTERED,
            distance_to_home=self.state.distance_to_home(),
            companions=len(self.state.companions),
        )

    def cancel_capture(self, reason: str) -> None:
        attempt = self.state.capture
        self.state.capture = None
        self.state.targeted_node_id = None
        if attempt is not None:
            logger.info("capture.cancelled", node_id=attempt.node_id, reason=reason)
            self.emit(FeedbackType.CAPTURE_CANCELLED, node_id=attempt.node_id, reason=reason)

    def refresh_nodes(self, position: Coordinate) -> None:
        """Recompute player-relative vectors and latch discoveries."""
        for node in self.state.nodes:
            if node.captured:
                continue
            node.local_position = geo_to_local(position, node.geo_position)
            if node.discovered:
                continue
            dist = distance_meters(position, node.geo_position)
            if dist < self.config.discover_radius_m:
                node.discovered = True
                logger.info("node.discovered", node_id=node.id, distance=round(dist, 2))
                self.emit(
                    FeedbackType.NODE_DISCOVERED,
                    node_id=node.id,
                    tier=node.tier.value,
                    type=node.type.value,
                    distance=dist,
                )

    def accumulate_stats(self, position: Coordinate) -> None:
        state = self.state

        if state.outdoor:
            last_tick = state.last_outdoor_tick if state.last_outdoor_tick is not None else self.now
            state.stats.outdoor_time_ms += max(0.0, self.now - last_tick)
            state.last_outdoor_tick = self.now
        else:
            state.last_outdoor_tick = None

        if state.last_stat_pos is None:
            state.last_stat_pos = position
            return
        delta = distance_meters(state.last_stat_pos, position)
        if delta > self.config.jitter_threshold_m:
            state.stats.distance_walked += delta
            state.last_stat_pos = position

    def apply_position(
        self,
        position: Coordinate,
        heading: Optional[float],
        accuracy: Optional[float],
        speed: Optional[float],
        simulated: bool = False,
    ) -> None:
        """The single path every position sample goes through, real or simulated."""
        self.require_session()
        state = self.state

        if state.debug_mode and not simulated:
            raise InvalidActionError("real position ignored while in debug mode")

        if heading is not None:
            state.heading = normalize_heading(heading)
            state.heading_available = True

        jitter = self.rng.random() * self.config.fake_accuracy_jitter_m if self.config.fake_sensors else 0.0
        accuracy, speed = sensors.fill_missing_readings(accuracy, speed, self.config, jitter)
        state.accuracy = accuracy
        state.speed = speed

        detected = sensors.detect_outdoor(accuracy, speed, state.heading_available, self.config)
        state.outdoor = sensors.resolve_outdoor(detected, state.manual_outdoor, state.manual_home)

        self.accumulate_stats(position)
        state.current_pos = position

        candidate = sensors.is_indoor_candidate(state.distance_to_home(), accuracy, self.config)
        state.indoor_hold, state.indoor = sensors.update_indoor(
            state.indoor_hold,
            candidate,
            self.now,
            state.manual_home,
            self.config.indoor_hold_ms,
        )

        self.check_evac()
        self.refresh_nodes(position)

        if self.spawner.should_spawn(len(state.active_nodes()), state.last_spawn_pos, position):
            self.spawn(position, heading if heading is not None else state.heading)

        self.refresh_capture_readiness()

    # Event handlers

    def _start(self) -> None:
        state = self.state
        if state.phase != GamePhase.IDLE:
            raise InvalidActionError("session already started")

        raw_position = self.event.data.get("position")
        if raw_position:
            position = _parse_coordinate(raw_position)
        else:
            # No location fix: play at null island with simulated movement
            position = Coordinate(latitude=0.0, longitude=0.0)
            if not self.config.fake_sensors:
                state.debug_mode = True

        heading = self.event.data.get("heading")
        if heading is not None:
            state.heading = normalize_heading(heading)
            state.heading_available = True

        state.origin = position
        state.current_pos = position
        state.last_stat_pos = position
        state.stats = SessionStats(start_time=self.now)

        if self.config.fake_sensors:
            state.accuracy = self.config.fake_accuracy_m
            state.speed = self.config.fake_speed_mps
            state.last_walk_tick_ms = self.now
            state.last_motion_ms = self.now

        self.set_phase(GamePhase.OUTDOOR_SEARCH, "Scanning Sector...")
        self.emit(FeedbackType.SESSION_STARTED, origin=position.to_dict())
        logger.info(
            "session.started",
            latitude=position.latitude,
            longitude=position.longitude,
            debug_mode=state.debug_mode,
        )

        self.spawn(position, state.heading)

    def _reset(self) -> None:
        previous = self.state
        self.state = SessionState(last_event_ms=self.now)
        self.emit(FeedbackType.SESSION_RESET, previous_phase=previous.phase.value)
        logger.info(
            "session.reset",
            previous_phase=previous.phase.value,
            companions=len(previous.companions),
        )

    def _position(self) -> None:
        data = self.event.data
        self.apply_position(
            _parse_coordinate(data["position"]),
            heading=data.get("heading"),
            accuracy=data.get("accuracy"),
            speed=data.get("speed"),
        )

    def _orientation(self) -> None:
        state = self.state
        heading = normalize_heading(self.event.data["heading"])
        last = state.last_sensor_heading
        if last is None or angular_difference(heading, last) > self.config.fake_motion_heading_delta_deg:
            state.last_motion_ms = self.now
        state.last_sensor_heading = heading

        if state.debug_mode:
            # Turning the device still counts as motion, but the simulated heading stays
            return

        state.heading = heading
        state.heading_available = True
        self.refresh_capture_readiness()

    def _begin_capture(self) -> None:
        state = self.state
        if state.phase != GamePhase.CAPTURE_READY:
            raise InvalidActionError(f"cannot begin capture from {state.phase.value}")

        target = self.eligible_target()
        if target is None:
            raise InvalidActionError("no capture-eligible target")

        state.capture = rewards.start_capture(target, self.now, self.config)
        state.targeted_node_id = target.id
        self.set_phase(GamePhase.CAPTURING, "Stabilizing Signal...")
        self.emit(
            FeedbackType.CAPTURE_STARTED,
            node_id=target.id,
            tier=target.tier.value,
            duration_ms=state.capture.duration_ms,
        )
        logger.info("capture.started", node_id=target.id, tier=target.tier.value)

    def _end_capture(self) -> None:
        if self.state.phase != GamePhase.CAPTURING:
            raise InvalidActionError("no capture in progress")

        self.cancel_capture(reason="released")
        self.set_phase(GamePhase.CAPTURE_READY)
        self.refresh_capture_readiness()

    def _tick(self) -> None:
        state = self.state

        if state.phase == GamePhase.CAPTURING and state.capture is not None:
            self.advance_capture()

        if state.phase == GamePhase.CARRYING and state.carrying and state.carrying.expired(self.now):
            state.carrying = None
            self.set_phase(GamePhase.OUTDOOR_SEARCH, "Scanning Sector...")
            self.refresh_capture_readiness()

        if state.phase == GamePhase.EVAC_ANIM and state.evac and state.evac.expired(self.now):
            state.evac = None
            self.set_phase(GamePhase.RESULT, "Evacuation Complete")
            self.emit(
                FeedbackType.SESSION_COMPLETED,
                stats=state.stats.to_dict(),
                companions=len(state.companions),
            )
            logger.info(
                "session.completed",
                companions=len(state.companions),
                rewards=state.stats.rewards_collected,
                distance=round(state.stats.distance_walked, 1),
            )

        self.evac_suppressed()

    def advance_capture(self) -> None:
        attempt = self.state.capture
        progress = rewards.capture_progress(attempt, self.now)
        self.state.capture = replace(attempt, progress=progress)
        if progress < 1.0:
            return

        try:
            self.complete_capture()
        except StaleEventError as e:
            logger.warning("capture.stale_completion", node_id=attempt.node_id, reason=str(e))
            self.state.capture = None
            self.state.targeted_node_id = None
            self.set_phase(GamePhase.OUTDOOR_SEARCH, "Scanning Sector...")
            self.refresh_capture_readiness()

    def complete_capture(self) -> None:
        state = self.state
        attempt = state.capture
        node = state.get_node(attempt.node_id)
        if node is None:
            raise StaleEventError(f"capture target {attempt.node_id} no longer exists")
        if node.captured:
            raise StaleEventError(f"node {node.id} already captured")

        node.captured = True
        companion = rewards.make_companion(node, self.config, self.rng)
        state.companions.append(companion)
        state.reward_log.append(RewardRecord(node_id=node.id, type=node.type, tier=node.tier))
        state.stats.rewards_collected += 1

        state.capture = None
        state.targeted_node_id = None
        state.carrying = Deadline.after(self.now, self.config.carrying_ms)
        self.set_phase(GamePhase.CARRYING, "Entity Stabilized")
        self.emit(
            FeedbackType.NODE_CAPTURED,
            node_id=node.id,
            tier=node.tier.value,
            type=node.type.value,
            companion_id=companion.id,
            rewards_collected=state.stats.rewards_collected,
        )
        logger.info(
            "capture.completed",
            node_id=node.id,
            tier=node.tier.value,
            companions=len(state.companions),
        )

    def _evacuate(self) -> None:
        if self.state.phase != GamePhase.EVAC_READY:
            raise InvalidActionError(f"cannot evacuate from {self.state.phase.value}")
        if not self.state.companions:
            raise InvalidActionError("no companions to evacuate")
        self.start_evac(emergency=False)

    def _emergency_evacuate(self) -> None:
        phase = self.state.phase
        if phase not in ACTIVE_PHASES and phase != GamePhase.EVAC_READY:
            raise InvalidActionError(f"cannot evacuate from {phase.value}")
        if phase == GamePhase.CAPTURING:
            self.cancel_capture(reason="evacuation")
        self.start_evac(emergency=True)

    def start_evac(self, emergency: bool) -> None:
        state = self.state
        state.capture = None
        state.carrying = None
        state.targeted_node_id = None
        state.evac = Deadline.after(self.now, self.config.evac_duration_ms)
        state.evac_started_at = self.now
        self.set_phase(GamePhase.EVAC_ANIM, "Evacuation Sequence Initiated")
        self.emit(
            FeedbackType.EVAC_TRIGGERED,
            companions=len(state.companions),
            emergency=emergency,
            duration_ms=self.config.evac_duration_ms,
        )
        logger.info("evac.triggered", companions=len(state.companions), emergency=emergency)

    def _continue_exploring(self) -> None:
        state = self.state
        if state.phase != GamePhase.EVAC_READY:
            raise InvalidActionError(f"cannot continue exploring from {state.phase.value}")

        state.evac_suppression = Deadline.after(self.now, self.config.evac_dismiss_ms)
        state.manual_home = False
        state.indoor = state.indoor_hold.held_for(self.now, self.config.indoor_hold_ms)
        self.set_phase(GamePhase.OUTDOOR_SEARCH, "Exploration Active")
        self.refresh_capture_readiness()

    def _toggle_manual_outdoor(self) -> None:
        state = self.state
        state.manual_outdoor = not state.manual_outdoor
        if state.manual_outdoor:
            state.manual_home = False
            state.outdoor = True
        logger.info("override.outdoor", enabled=state.manual_outdoor)

    def _toggle_manual_home(self) -> None:
        state = self.state
        state.manual_home = not state.manual_home
        logger.info("override.home", enabled=state.manual_home)

        if state.manual_home:
            state.manual_outdoor = False
            state.outdoor = False
            state.indoor = True
            # An explicit "I'm home" outranks an earlier "continue exploring"
            state.evac_suppression = None
        else:
            state.indoor = state.indoor_hold.held_for(self.now, self.config.indoor_hold_ms)

        if state.origin is not None and state.current_pos is not None:
            self.check_evac()
            self.refresh_capture_readiness()

    def _toggle_debug(self) -> None:
        self.require_session()
        self.state.debug_mode = not self.state.debug_mode
        logger.info("debug.toggled", enabled=self.state.debug_mode)

    def _simulate_move(self) -> None:
        self.require_session()
        state = self.state
        state.debug_mode = True
        target = destination_point(state.current_pos, self.event.data["meters"], state.heading)
        self.apply_position(target, heading=state.heading, accuracy=None, speed=0.0, simulated=True)

    def _simulate_turn(self) -> None:
        self.require_session()
        state = self.state
        state.debug_mode = True
        state.heading = normalize_heading(state.heading + self.event.data["degrees"])
        state.heading_available = True
        state.last_motion_ms = self.now
        self.refresh_capture_readiness()

    def _walk_tick(self) -> None:
        """Synthetic walking along the current heading."""
        self.require_session()
        state = self.state
        config = self.config
        if not config.fake_sensors:
            raise InvalidActionError("synthetic walking needs fake sensors")

        last_tick = state.last_walk_tick_ms if state.last_walk_tick_ms is not None else self.now
        dt = max(0.0, self.now - last_tick) / 1000.0
        state.last_walk_tick_ms = self.now

        active = (
            state.last_motion_ms is not None
            and self.now - state.last_motion_ms < config.fake_motion_window_ms
        )
        speed = config.fake_move_speed_active if active else config.fake_move_speed_idle
        distance = speed * dt
        if distance <= 0.01:
            return

        target = destination_point(state.current_pos, distance, state.heading)
        accuracy = config.fake_accuracy_m + self.rng.random() * config.fake_accuracy_jitter_m
        self.apply_position(target, heading=state.heading, accuracy=accuracy, speed=speed, simulated=True)


def _parse_coordinate(raw) -> Coordinate:
    if isinstance(raw, Coordinate):
        return raw
    try:
        return Coordinate.from_dict(raw)
    except (AttributeError, TypeError, ValueError) as e:
        raise InvalidActionError(f"malformed position: {raw}") from e

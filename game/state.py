# game/state.py

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from spatial.geo import Coordinate, LocalVector, distance_meters, geo_to_local


class GamePhase(str, Enum):
    """Session phases of the exploration game."""

    IDLE = "IDLE"
    OUTDOOR_SEARCH = "OUTDOOR_SEARCH"
    CAPTURE_READY = "CAPTURE_READY"
    CAPTURING = "CAPTURING"
    CARRYING = "CARRYING"
    EVAC_READY = "EVAC_READY"
    EVAC_ANIM = "EVAC_ANIM"
    RESULT = "RESULT"


# Phases in which the player is out exploring and evac may kick in
ACTIVE_PHASES = frozenset(
    {
        GamePhase.OUTDOOR_SEARCH,
        GamePhase.CAPTURE_READY,
        GamePhase.CAPTURING,
        GamePhase.CARRYING,
    }
)


class NodeType(str, Enum):
    JUNCTION = "Junction"
    OPEN_SPACE = "Open Space"
    EDGE = "Edge"


class RewardTier(str, Enum):
    BASIC = "basic"
    ADVANCED = "advanced"
    CORE = "core"

    @property
    def label(self) -> str:
        """Player-facing name of the tier."""
        return _TIER_LABELS[self]


_TIER_LABELS = {
    RewardTier.BASIC: "Warm Light",
    RewardTier.ADVANCED: "Radiant Core",
    RewardTier.CORE: "Stellar Fragment",
}


@dataclass
class Node:
    """A collectible point materialized near the player."""

    id: str
    type: NodeType
    tier: RewardTier
    geo_position: Coordinate
    local_position: LocalVector = (0.0, 0.0, 0.0)  # Relative to the player
    discovered: bool = False
    captured: bool = False

    @property
    def active(self) -> bool:
        return not self.captured

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "tier": self.tier.value,
            "tier_label": self.tier.label,
            "geo_position": self.geo_position.to_dict(),
            "local_position": list(self.local_position),
            "discovered": self.discovered,
            "captured": self.captured,
        }


@dataclass(frozen=True)
class Companion:
    """Entity rescued by a successful capture, carried back home."""

    id: str
    tier: RewardTier
    offset: LocalVector

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "tier": self.tier.value, "offset": list(self.offset)}


@dataclass(frozen=True)
class RewardRecord:
    """Append-only log entry written once per capture."""

    node_id: str
    type: NodeType
    tier: RewardTier

    def to_dict(self) -> dict[str, Any]:
        return {"node_id": self.node_id, "type": self.type.value, "tier": self.tier.value}


@dataclass
class SessionStats:
    """Counters accumulated during a session. Never decrease until reset."""

    start_time: float = 0.0
    distance_walked: float = 0.0
    rewards_collected: int = 0
    outdoor_time_ms: float = 0.0

    def duration_minutes(self, now_ms: float) -> float:
        return max(0.0, now_ms - self.start_time) / 60000.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_time": self.start_time,
            "distance_walked": self.distance_walked,
            "rewards_collected": self.rewards_collected,
            "outdoor_time_ms": self.outdoor_time_ms,
        }


@dataclass(frozen=True)
class Deadline:
    """An instant in session time after which something happens."""

    at_ms: float

    @classmethod
    def after(cls, now_ms: float, delay_ms: float) -> "Deadline":
        return cls(at_ms=now_ms + delay_ms)

    def expired(self, now_ms: float) -> bool:
        return now_ms >= self.at_ms

    def remaining(self, now_ms: float) -> float:
        return max(0.0, self.at_ms - now_ms)


@dataclass(frozen=True)
class HoldTimer:
    """Debounce timer: a condition must hold continuously for a duration.

    ``started_at`` is None while the condition is not holding.
    """

    started_at: Optional[float] = None

    def update(self, condition: bool, now_ms: float) -> "HoldTimer":
        """Advance the timer with a fresh sample of the condition."""
        if not condition:
            return HoldTimer()
        if self.started_at is None:
            return HoldTimer(started_at=now_ms)
        return self

    def held_for(self, now_ms: float, hold_ms: float) -> bool:
        return self.started_at is not None and now_ms - self.started_at >= hold_ms


@dataclass(frozen=True)
class CaptureAttempt:
    """A capture countdown bound to a single target node."""

    node_id: str
    started_at: float
    duration_ms: float
    progress: float = 0.0


@dataclass
class SessionState:
    """Everything the session knows. Owned exclusively by the state machine."""

    phase: GamePhase = GamePhase.IDLE
    message: str = "System Offline"

    origin: Optional[Coordinate] = None
    current_pos: Optional[Coordinate] = None
    heading: float = 0.0
    heading_available: bool = False
    accuracy: Optional[float] = None
    speed: Optional[float] = None

    outdoor: bool = False
    indoor: bool = False
    manual_outdoor: bool = False
    manual_home: bool = False
    debug_mode: bool = False

    nodes: list[Node] = field(default_factory=list)
    companions: list[Companion] = field(default_factory=list)
    reward_log: list[RewardRecord] = field(default_factory=list)
    stats: SessionStats = field(default_factory=SessionStats)

    capture: Optional[CaptureAttempt] = None
    targeted_node_id: Optional[str] = None

    # Timers
    carrying: Optional[Deadline] = None
    evac: Optional[Deadline] = None
    evac_started_at: Optional[float] = None
    evac_suppression: Optional[Deadline] = None
    indoor_hold: HoldTimer = field(default_factory=HoldTimer)

    # Bookkeeping anchors
    last_stat_pos: Optional[Coordinate] = None
    last_outdoor_tick: Optional[float] = None
    last_spawn_pos: Optional[Coordinate] = None
    last_motion_ms: Optional[float] = None
    last_sensor_heading: Optional[float] = None
    last_walk_tick_ms: Optional[float] = None
    last_event_ms: float = 0.0
    recent_event_ids: tuple[UUID, ...] = ()

    @property
    def started(self) -> bool:
        return self.origin is not None and self.phase != GamePhase.IDLE

    @property
    def capture_progress(self) -> float:
        return self.capture.progress if self.capture else 0.0

    def active_nodes(self) -> list[Node]:
        return [node for node in self.nodes if node.active]

    def get_node(self, node_id: str) -> Optional[Node]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def distance_to_home(self) -> float:
        if self.origin is None or self.current_pos is None:
            return 0.0
        return distance_meters(self.current_pos, self.origin)

    def snapshot(self) -> dict[str, Any]:
        """Read-only view for rendering and UI consumers."""
        player_local = (
            list(geo_to_local(self.origin, self.current_pos))
            if self.origin and self.current_pos
            else None
        )
        return {
            "state": self.phase.value,
            "message": self.message,
            "nodes": [node.to_dict() for node in self.nodes],
            "companions": [companion.to_dict() for companion in self.companions],
            "stats": self.stats.to_dict(),
            "reward_log": [record.to_dict() for record in self.reward_log],
            "current_pos": self.current_pos.to_dict() if self.current_pos else None,
            "origin_pos": self.origin.to_dict() if self.origin else None,
            "player_local": player_local,
            "distance_to_home": self.distance_to_home(),
            "heading": self.heading,
            "heading_available": self.heading_available,
            "gps_accuracy": self.accuracy,
            "gps_speed": self.speed,
            "outdoor": self.outdoor,
            "indoor": self.indoor,
            "manual_outdoor": self.manual_outdoor,
            "manual_home": self.manual_home,
            "debug_mode": self.debug_mode,
            "capture_progress": self.capture_progress,
            "targeted_node_id": self.targeted_node_id,
            "evac_started_at": self.evac_started_at,
        }

# game/time.py

import time
from typing import Optional


class GameClock:
    """Monotonic millisecond clock used to stamp every processed event.

    Readings start near zero when the clock is created and never go backwards,
    so differences between two readings are always safe to accumulate.
    """

    def __init__(self, time_scale: float = 1.0):
        if time_scale <= 0:
            raise ValueError("Time scale must be positive")
        self._time_scale = time_scale
        self._started = time.monotonic()

    def now_ms(self) -> float:
        """Milliseconds elapsed since the clock was created."""
        return (time.monotonic() - self._started) * 1000.0 * self._time_scale

    def seconds_until(self, deadline_ms: float) -> float:
        """Real seconds to sleep before ``deadline_ms`` is reached."""
        return max(0.0, (deadline_ms - self.now_ms()) / 1000.0 / self._time_scale)

    @property
    def time_scale(self) -> float:
        return self._time_scale


class ManualClock(GameClock):
    """Clock that only moves when told to. Used by tests and replays."""

    def __init__(self, start_ms: float = 0.0):
        super().__init__()
        self._now = start_ms

    def now_ms(self) -> float:
        return self._now

    def advance(self, delta_ms: float) -> float:
        """Move time forward by ``delta_ms`` and return the new reading."""
        if delta_ms < 0:
            raise ValueError("Manual clock cannot go backwards")
        self._now += delta_ms
        return self._now

    def set(self, value_ms: float) -> None:
        """Jump to an absolute reading, never backwards."""
        self._now = max(self._now, value_ms)

    def seconds_until(self, deadline_ms: float) -> float:
        # Poll quickly: nothing advances this clock except the caller
        return 0.005 if deadline_ms > self._now else 0.0


def format_duration(ms: Optional[float]) -> str:
    """Format a duration as MM:SS or HH:MM:SS."""
    total_seconds = int((ms or 0.0) // 1000)
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60

    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"

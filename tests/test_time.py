"""Unit tests for the game clocks."""

import asyncio

import pytest

from game.time import GameClock, ManualClock, format_duration


@pytest.mark.asyncio
async def test_clock_starts_near_zero():
    clock = GameClock()
    assert clock.now_ms() == pytest.approx(0.0, abs=50.0)
    assert clock.time_scale == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_clock_advances():
    clock = GameClock()
    before = clock.now_ms()
    await asyncio.sleep(0.05)
    assert clock.now_ms() - before >= 40.0


@pytest.mark.asyncio
async def test_time_scale():
    clock = GameClock(time_scale=10.0)
    await asyncio.sleep(0.05)
    assert clock.now_ms() >= 400.0


def test_invalid_time_scale():
    with pytest.raises(ValueError):
        GameClock(time_scale=0.0)


def test_seconds_until():
    clock = GameClock(time_scale=2.0)
    assert clock.seconds_until(clock.now_ms() + 2000.0) == pytest.approx(1.0, abs=0.05)
    assert clock.seconds_until(-1.0) == 0.0


def test_manual_clock():
    clock = ManualClock(start_ms=100.0)
    assert clock.now_ms() == 100.0

    assert clock.advance(50.0) == 150.0
    clock.set(120.0)
    assert clock.now_ms() == 150.0

    with pytest.raises(ValueError):
        clock.advance(-1.0)


def test_manual_clock_polls_until_deadline():
    clock = ManualClock()
    assert clock.seconds_until(10.0) > 0.0
    clock.advance(10.0)
    assert clock.seconds_until(10.0) == 0.0


@pytest.mark.parametrize(
    "ms, expected",
    [(0.0, "00:00"), (None, "00:00"), (61_000.0, "01:01"), (3_725_000.0, "01:02:05")],
)
def test_format_duration(ms, expected):
    assert format_duration(ms) == expected

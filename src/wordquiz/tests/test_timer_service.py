"""Tests for the answer timer."""
import asyncio

import pytest

from wordquiz.config import settings
from wordquiz.services.timer_service import AnswerTimer


def test_default_duration() -> None:
    timer = AnswerTimer()

    assert timer.duration == settings.game.timer_duration
    assert timer.time_left == timer.duration
    assert not timer.running


@pytest.mark.asyncio
async def test_counts_down_and_times_out() -> None:
    timer = AnswerTimer(duration=3, tick_seconds=0.01)
    ticks = []
    timeouts = []

    task = timer.start(ticks.append, lambda: timeouts.append(True))
    assert timer.running
    await task

    assert ticks == [2, 1, 0]
    assert timeouts == [True]
    assert timer.time_left == 0
    assert not timer.running


@pytest.mark.asyncio
async def test_cancel_stops_countdown() -> None:
    timer = AnswerTimer(duration=3, tick_seconds=0.01)
    timeouts = []

    task = timer.start(on_timeout=lambda: timeouts.append(True))
    timer.cancel()
    await asyncio.sleep(0.05)

    assert task.cancelled()
    assert timeouts == []
    assert not timer.running
    timer.cancel()


@pytest.mark.asyncio
async def test_restart_replaces_running_countdown() -> None:
    timer = AnswerTimer(duration=2, tick_seconds=0.01)
    timeouts = []

    first = timer.start(on_timeout=lambda: timeouts.append("first"))
    await asyncio.sleep(0.015)
    second = timer.start(on_timeout=lambda: timeouts.append("second"))
    assert timer.time_left == 2
    await second

    assert first.cancelled()
    assert timeouts == ["second"]


@pytest.mark.asyncio
async def test_timeout_callback_can_restart_timer() -> None:
    timer = AnswerTimer(duration=1, tick_seconds=0.01)
    restarted = []

    def on_timeout() -> None:
        if not restarted:
            restarted.append(timer.start())

    await timer.start(on_timeout=on_timeout)

    assert len(restarted) == 1
    await restarted[0]
    assert not restarted[0].cancelled()

"""Tests for the pausable session clock."""

import asyncio

import pytest

from pacesetter.engine.clock import SessionClock


def test_call_later_fires_once_at_deadline():
    clock = SessionClock()
    fired = []
    clock.call_later(2.0, lambda: fired.append(clock.now()))
    clock.advance(1.5)
    assert fired == []
    clock.advance(1.0)
    assert fired == [2.0]
    clock.advance(10.0)
    assert fired == [2.0]
    assert clock.now() == pytest.approx(12.5)


def test_timers_fire_in_deadline_order_within_one_advance():
    clock = SessionClock()
    order = []
    clock.call_later(3.0, lambda: order.append("c"))
    clock.call_later(1.0, lambda: order.append("a"))
    clock.call_later(2.0, lambda: order.append("b"))
    clock.advance(5.0)
    assert order == ["a", "b", "c"]


def test_call_every_repeats_until_cancelled():
    clock = SessionClock()
    hits = []
    handle = clock.call_every(1.0, lambda: hits.append(clock.now()))
    clock.advance(3.5)
    assert hits == [1.0, 2.0, 3.0]
    handle.cancel()
    clock.advance(5.0)
    assert len(hits) == 3


def test_call_every_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        SessionClock().call_every(0, lambda: None)


def test_pause_freezes_time_and_timers():
    clock = SessionClock()
    fired = []
    clock.call_later(1.0, lambda: fired.append(True))
    assert clock.pause() is True
    assert clock.pause() is False
    clock.advance(10.0)
    assert clock.now() == 0.0
    assert fired == []
    assert clock.resume() is True
    clock.advance(1.0)
    assert fired == [True]


def test_callback_that_pauses_stops_advance():
    clock = SessionClock()
    later = []
    clock.call_later(1.0, clock.pause)
    clock.call_later(2.0, lambda: later.append(True))
    clock.advance(5.0)
    assert clock.paused
    assert clock.now() == 1.0
    assert later == []


def test_failing_callback_is_logged_not_raised(caplog):
    clock = SessionClock()
    after = []

    def boom():
        raise RuntimeError("boom")

    clock.call_later(1.0, boom)
    clock.call_later(1.5, lambda: after.append(True))
    clock.advance(2.0)
    assert after == [True]
    assert any("boom" in r.getMessage() for r in caplog.records)


def test_reset_cancels_everything():
    clock = SessionClock()
    clock.call_every(1.0, lambda: None)
    clock.advance(2.5)
    clock.reset()
    assert clock.now() == 0.0
    assert clock.pending == 0


@pytest.mark.asyncio
async def test_sleep_resolves_on_logical_time():
    clock = SessionClock()
    done = []

    async def sleeper():
        await clock.sleep(5.0)
        done.append(clock.now())

    task = asyncio.create_task(sleeper())
    await asyncio.sleep(0)
    clock.advance(4.0)
    await asyncio.sleep(0)
    assert done == []
    clock.advance(1.0)
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert done == [5.0]
    await task


@pytest.mark.asyncio
async def test_cancelled_sleep_releases_its_timer():
    clock = SessionClock()
    task = asyncio.create_task(clock.sleep(5.0))
    await asyncio.sleep(0)
    assert clock.pending == 1
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert clock.pending == 0

"""Tests for weighted task selection and the task scheduler."""

import random

import pytest

from pacesetter.config import GameConfig
from pacesetter.engine.clock import SessionClock
from pacesetter.session.catalog import DEFAULT_ACTIONS, catalog_for_config
from pacesetter.session.events import SessionEventEmitter, SessionEventType
from pacesetter.session.summary import SessionSummary
from pacesetter.session.tasks import (
    Action,
    Intensity,
    TaskOutcome,
    TaskScheduler,
    weighted_pick,
)


def _scheduler(seed=0):
    clock = SessionClock()
    emitter = SessionEventEmitter()
    return clock, emitter, TaskScheduler(clock, rng=random.Random(seed), emitter=emitter)


def test_weighted_pick_follows_weights():
    a = Action("A", "A", weight=10)
    b = Action("B", "B", weight=90)
    rng = random.Random(2024)
    counts = {"A": 0, "B": 0}
    for _ in range(10_000):
        counts[weighted_pick([a, b], rng).id] += 1
    ratio = counts["B"] / counts["A"]
    assert 7.5 < ratio < 10.8


def test_weighted_pick_empty():
    assert weighted_pick([], random.Random(0)) is None


def test_register_catalog_drops_invalid_and_duplicates():
    _, _, sched = _scheduler()
    count = sched.register_catalog([
        Action("a", "A"),
        Action("a", "A again"),
        Action("", "No id"),
        Action("z", "Zero", weight=0),
        Action("b", "B"),
    ])
    assert count == 2
    assert [a.id for a in sched.catalog] == ["a", "b"]


def test_filters_by_gender_and_intensity():
    _, _, sched = _scheduler()
    sched.register_catalog([
        Action("light", "Light"),
        Action("hard", "Hard", min_intensity=Intensity.INTENSE),
        Action("male-only", "M", genders=("male",)),
    ])
    assert {a.id for a in sched.eligible()} == {"light", "hard", "male-only"}
    assert {a.id for a in sched.eligible(intensity="light")} == {"light", "male-only"}
    assert {a.id for a in sched.eligible(gender="female")} == {"light", "hard"}
    assert {a.id for a in sched.eligible(gender="female", intensity=Intensity.MODERATE)} == {"light"}


def test_no_eligible_action_leaves_current_empty():
    _, _, sched = _scheduler()
    sched.register_catalog([Action("hard", "Hard", min_intensity=Intensity.INTENSE)])
    assert sched.select_next(intensity="light") is None
    assert sched.current is None


def test_select_never_overwrites_current():
    _, emitter, sched = _scheduler()
    selected = []
    emitter.subscribe(SessionEventType.TASK_SELECTED, lambda e: selected.append(e.data["action"]))
    sched.register_catalog([Action("a", "A"), Action("b", "B")])
    first = sched.select_next()
    assert first is not None
    assert sched.select_next() is None
    assert sched.current is first
    assert selected == [first.id]


def test_complete_and_skip_record_history():
    clock, emitter, sched = _scheduler()
    finished = []
    emitter.subscribe(SessionEventType.TASK_FINISHED, lambda e: finished.append(e.data["outcome"]))
    sched.register_catalog([Action("a", "A")])
    sched.select_next()
    clock.advance(12.0)
    record = sched.complete_action(12.0)
    assert record.outcome is TaskOutcome.COMPLETED
    assert record.finished_at == 12.0
    sched.select_next()
    skipped = sched.skip_current()
    assert skipped.duration_seconds == 0.0
    assert sched.skip_current() is None
    assert finished == ["completed", "skipped"]

    summary = SessionSummary.from_history(sched.history)
    assert summary.tasks_completed == 1
    assert summary.tasks_skipped == 1
    assert summary.total_task_seconds == 12.0
    assert summary.completion_rate == pytest.approx(0.5)


def test_interval_selection_runs_on_clock_and_respects_pause():
    clock, _, sched = _scheduler()
    sched.register_catalog([Action("a", "A")])
    assert sched.start(15.0) is True
    assert sched.start(15.0) is False
    clock.advance(14.0)
    assert sched.current is None
    clock.advance(1.0)
    assert sched.current is not None

    sched.complete_action(1.0)
    sched.pause()
    clock.advance(30.0)
    assert sched.current is None
    sched.resume()
    clock.advance(15.0)
    assert sched.current is not None

    sched.stop()
    assert not sched.running
    assert sched.current is None
    assert len(sched.history) == 1


def test_interval_waits_while_busy():
    clock, emitter, sched = _scheduler()
    picks = []
    emitter.subscribe(SessionEventType.TASK_SELECTED, lambda e: picks.append(e))
    sched.register_catalog([Action("a", "A")])
    sched.start(5.0)
    clock.advance(30.0)
    assert len(picks) == 1


def test_intensity_parse():
    assert Intensity.parse("Moderate") is Intensity.MODERATE
    assert Intensity.parse(None) is None
    assert Intensity.parse(" light ") is Intensity.LIGHT
    with pytest.raises(ValueError, match="light, moderate, intense"):
        Intensity.parse("extreme")


def test_catalog_respects_config_toggles():
    ids = {a.id for a in catalog_for_config(GameConfig())}
    assert "slow-down" in ids
    assert "head-only" not in ids
    cfg = GameConfig(tasks={**GameConfig().tasks, "slow-down": False, "head-only": True})
    ids = {a.id for a in catalog_for_config(cfg)}
    assert "slow-down" not in ids
    assert "head-only" in ids


def test_default_catalog_ids_are_unique_and_weighted():
    ids = [a.id for a in DEFAULT_ACTIONS]
    assert len(ids) == len(set(ids))
    assert all(a.weight > 0 for a in DEFAULT_ACTIONS)

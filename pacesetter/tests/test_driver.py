"""Tests for the per-second session driver."""

import asyncio
import random

import pytest

from pacesetter.config import GameConfig
from pacesetter.engine.cadence import CadenceEngine, CadencePhase, FLOW_PHASES, RUIN_PHASES
from pacesetter.engine.clock import SessionClock
from pacesetter.session.driver import DriverPhase, FINALE_SETTLE_S, RUINED_FOLLOWUP_S, SessionDriver
from pacesetter.session.events import SessionEventEmitter, SessionEventType
from pacesetter.session.plan import EventKind, FinaleType, ScheduledEvent, SessionPlan


CFG = GameConfig(stroke_speed_min=1.0, stroke_speed_max=4.0, edge_cooldown_s=5.0)


def _plan(duration=300.0, events=(), finale=FinaleType.ORGASM):
    return SessionPlan(
        duration_seconds=duration,
        warm_up_end_seconds=0.1 * duration,
        middle_end_seconds=0.9 * duration,
        taper_duration_seconds=float(int(duration // 3)),
        events=tuple(events),
        finale_type=finale,
    )


def _rig(config=CFG, audio=None):
    clock = SessionClock()
    emitter = SessionEventEmitter()
    cadence = CadenceEngine(config, clock, audio=audio, emitter=emitter, rng=random.Random(3))
    driver = SessionDriver(config, cadence, clock, emitter)
    cadence.start()
    return clock, emitter, cadence, driver


def test_without_plan_driver_is_inert():
    _, _, cadence, driver = _rig()
    assert driver.tick(100.0, None) is DriverPhase.INERT
    assert cadence.speed == 1.0


def test_warm_up_ramps_from_min_toward_mid():
    _, _, cadence, driver = _rig()
    plan = _plan()
    driver.tick(0.0, plan)
    assert cadence.speed == pytest.approx(1.0)
    driver.tick(15.0, plan)
    assert cadence.speed == pytest.approx(1.75)
    driver.tick(29.0, plan)
    assert cadence.speed == pytest.approx(1.0 + 1.5 * 29 / 30)
    assert driver.phase is DriverPhase.WARM_UP


def test_branches_run_in_timeline_order():
    _, emitter, _, driver = _rig()
    plan = _plan(finale=FinaleType.DENIED)
    phases = []
    emitter.subscribe(SessionEventType.DRIVER_PHASE, lambda e: phases.append(e.data["phase"]))
    for t in range(0, int(plan.total_seconds) + 3):
        driver.tick(float(t), plan)
    assert phases == ["warm_up", "events", "finale_ramp", "finale", "taper", "complete"]


def test_orgasm_finale_sets_phase_at_duration():
    _, emitter, cadence, driver = _rig()
    plan = _plan()
    finales = []
    emitter.subscribe(SessionEventType.FINALE, lambda e: finales.append(e.data["finale"]))
    driver.tick(299.0, plan)
    assert cadence.phase is CadencePhase.ACTIVE
    driver.tick(300.0, plan)
    assert cadence.phase is CadencePhase.ORGASM
    assert cadence.speed == 4.0
    assert cadence.orgasms == 1
    # latched: a second tick at the same time does not re-fire
    driver.tick(300.0, plan)
    assert cadence.orgasms == 1
    assert finales == ["orgasm"]


def test_finale_ramp_eases_toward_max():
    _, _, cadence, driver = _rig()
    plan = _plan()
    cadence.set_speed(2.0)
    driver.tick(270.0, plan)
    assert cadence.speed == pytest.approx(2.0)
    driver.tick(285.0, plan)
    assert cadence.speed == pytest.approx(3.0)
    driver.tick(299.9, plan)
    assert cadence.speed <= 4.0


def test_denied_finale_stops_then_taper_settles_at_mid():
    _, _, cadence, driver = _rig()
    plan = _plan(finale=FinaleType.DENIED)
    driver.tick(300.0, plan)
    assert cadence.speed == 0.0
    assert cadence.notification == "Denied - hands off"
    driver.tick(300.0 + FINALE_SETTLE_S - 1, plan)
    assert cadence.speed == 0.0
    driver.tick(300.0 + FINALE_SETTLE_S, plan)
    assert cadence.speed == pytest.approx(CFG.mid_speed)


def test_orgasm_taper_decreases_from_max_to_mid():
    _, _, cadence, driver = _rig()
    plan = _plan()
    driver.tick(300.0, plan)
    driver.tick(300.0 + FINALE_SETTLE_S, plan)
    assert cadence.speed == pytest.approx(4.0)
    driver.tick(399.0, plan)
    assert CFG.mid_speed <= cadence.speed < 4.0


def test_completion_latches_once():
    _, emitter, cadence, driver = _rig()
    plan = _plan(finale=FinaleType.DENIED)
    completes = []
    emitter.subscribe(SessionEventType.SESSION_COMPLETE, lambda e: completes.append(e))
    driver.tick(300.0, plan)
    driver.tick(400.0, plan)
    driver.tick(401.0, plan)
    driver.tick(500.0, plan)
    assert plan.session_complete is True
    assert len(completes) == 1
    assert cadence.notification == "Session complete"
    assert cadence.speed == pytest.approx(CFG.mid_speed)


def test_missed_events_are_skipped_at_ramp():
    _, emitter, _, driver = _rig()
    plan = _plan(events=[ScheduledEvent(EventKind.EDGE, 100.0)])
    missed = []
    emitter.subscribe(SessionEventType.EVENTS_MISSED, lambda e: missed.append(e.data["count"]))
    driver.tick(275.0, plan)
    assert missed == [1]
    assert plan.remaining_events == 0
    assert plan.skipped_events == 1


def test_event_without_event_loop_is_retried_not_dropped():
    _, _, cadence, driver = _rig()
    plan = _plan(events=[ScheduledEvent(EventKind.EDGE, 50.0)])
    driver.tick(60.0, plan)
    # no running loop, so the flow could not start; the event stays pending
    assert plan.next_event_index == 0
    assert cadence.phase is CadencePhase.ACTIVE


@pytest.mark.asyncio
async def test_due_event_starts_flow_and_advances_cursor():
    clock, emitter, cadence, driver = _rig()
    plan = _plan(events=[ScheduledEvent(EventKind.EDGE, 50.0), ScheduledEvent(EventKind.RUIN, 52.0)])
    fired = []
    emitter.subscribe(SessionEventType.EVENT_FIRED, lambda e: fired.append(e.data["kind"]))

    driver.tick(49.0, plan)
    assert fired == []
    driver.tick(50.0, plan)
    assert fired == ["edge"]
    assert plan.next_event_index == 1
    assert cadence.phase is CadencePhase.EDGE_BUILDUP

    # second event is due but waits for the edge flow
    speed_during_flow = cadence.speed
    driver.tick(53.0, plan)
    assert plan.next_event_index == 1
    assert cadence.speed == speed_during_flow
    assert cadence.phase in FLOW_PHASES

    cadence.abort_flow()
    await asyncio.sleep(0)
    driver.tick(54.0, plan)
    assert fired == ["edge", "ruin"]
    assert cadence.phase is CadencePhase.RUIN_BUILDUP
    cadence.reset()
    await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_finale_aborts_in_flight_flow():
    _, _, cadence, driver = _rig()
    plan = _plan()
    assert cadence.trigger_edge() is True
    await asyncio.sleep(0)
    driver.tick(300.0, plan)
    assert cadence.flow is None
    assert cadence.phase is CadencePhase.ORGASM
    await asyncio.sleep(0)


def test_warm_up_leaves_flow_speed_alone():
    _, _, cadence, driver = _rig()
    plan = _plan()
    cadence.set_phase(CadencePhase.EDGE_COOLDOWN)
    cadence.set_speed(0.0)
    driver.tick(20.0, plan)
    assert cadence.speed == 0.0


def test_cancel_returns_to_inert():
    _, _, _, driver = _rig()
    driver.tick(10.0, _plan())
    driver.cancel()
    assert driver.phase is DriverPhase.INERT


@pytest.mark.asyncio
async def test_ruined_finale_runs_ruin_flow_then_posts_followup():
    clock, emitter, cadence, driver = _rig()
    plan = _plan(finale=FinaleType.RUINED)
    messages = []
    emitter.subscribe(SessionEventType.NOTIFICATION, lambda e: messages.append(e.data["message"]))

    driver.tick(300.0, plan)
    assert plan.finale_triggered
    assert cadence.flow_active
    assert cadence.phase in RUIN_PHASES

    elapsed = 0.0
    while elapsed < RUINED_FOLLOWUP_S + 1.0:
        clock.advance(0.5)
        elapsed += 0.5
        await asyncio.sleep(0)
        await asyncio.sleep(0)

    assert cadence.ruins_fired == 1
    assert "Ruined - let go" in messages
    assert "Ruined" in messages
    assert messages.index("Ruined - let go") < messages.index("Ruined")
    cadence.reset()
    await asyncio.sleep(0)


def test_ruined_finale_without_event_loop_stops_cadence():
    clock, _, cadence, driver = _rig()
    plan = _plan(finale=FinaleType.RUINED)
    driver.tick(299.0, plan)
    assert cadence.speed > 0

    driver.tick(300.0, plan)
    assert plan.finale_triggered
    assert not cadence.flow_active
    assert cadence.speed == 0.0

    clock.advance(RUINED_FOLLOWUP_S - 1.0)
    assert cadence.notification != "Ruined"
    clock.advance(1.5)
    assert cadence.notification == "Ruined"

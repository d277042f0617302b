"""
Session Driver - maps elapsed session time onto cadence commands.

``SessionDriver.tick(t, plan)`` is called once per second of unpaused
session time. Exactly one branch runs per tick, evaluated in order:

1. Warm-up      t < warm_up_end        ramp min -> mid-range
2. Events       t < middle_end         fire at most one due event
3. Finale ramp  t < duration           ease current speed toward max
4. Finale       first tick >= duration apply finale (latched once)
5. Taper        t < duration + taper   settle toward mid speed
6. Complete     otherwise              completion notice (latched once)

The driver never writes speed or phase while a cadence flow is active.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional

from ..engine.audio import VoiceLine
from ..engine.cadence import CadencePhase
from .events import SessionEvent, SessionEventEmitter, SessionEventType
from .plan import EventKind, FinaleType, SessionPlan

if TYPE_CHECKING:
    from ..config import GameConfig
    from ..engine.cadence import CadenceEngine
    from ..engine.clock import SessionClock, TimerHandle


FINALE_SETTLE_S = 15.0
RUINED_FOLLOWUP_S = 15.0


class DriverPhase(str, Enum):
    INERT = "inert"
    WARM_UP = "warm_up"
    EVENTS = "events"
    FINALE_RAMP = "finale_ramp"
    FINALE = "finale"
    TAPER = "taper"
    COMPLETE = "complete"


class SessionDriver:
    """
    Per-second pacing controller.

    Usage:
        driver = SessionDriver(config, cadence, clock, emitter)
        driver.tick(elapsed_seconds, plan)   # once per whole second
        driver.cancel()                      # teardown
    """

    def __init__(
        self,
        config: "GameConfig",
        cadence: "CadenceEngine",
        clock: "SessionClock",
        emitter: Optional[SessionEventEmitter] = None,
    ):
        self.config = config.sanitized()
        self.cadence = cadence
        self.clock = clock
        self.emitter = emitter or SessionEventEmitter()
        self.logger = logging.getLogger(__name__)

        self._phase = DriverPhase.INERT
        self._followup: Optional["TimerHandle"] = None
        self._settled = False

    @property
    def phase(self) -> DriverPhase:
        return self._phase

    def cancel(self) -> None:
        """Drop pending deferred work and return to INERT."""
        if self._followup is not None:
            self._followup.cancel()
            self._followup = None
        self._phase = DriverPhase.INERT
        self._settled = False

    # ------------------------------------------------------------------ tick
    def tick(self, elapsed: float, plan: Optional[SessionPlan]) -> DriverPhase:
        """Run one pacing step at *elapsed* seconds; returns the branch taken.

        Without a plan the driver is inert. Values past the end of the
        session are treated as the completion branch.
        """
        if plan is None:
            return DriverPhase.INERT
        t = max(0.0, float(elapsed))

        if t < plan.warm_up_end_seconds:
            self._enter(DriverPhase.WARM_UP, t)
            self._warm_up(t, plan)
        elif t < plan.middle_end_seconds:
            self._enter(DriverPhase.EVENTS, t)
            self._fire_due_event(t, plan)
        elif t < plan.duration_seconds:
            self._enter(DriverPhase.FINALE_RAMP, t)
            self._skip_missed_events(plan)
            self._finale_ramp(t, plan)
        elif not plan.finale_triggered:
            self._enter(DriverPhase.FINALE, t)
            self._skip_missed_events(plan)
            self._trigger_finale(plan)
        elif t < plan.total_seconds:
            self._enter(DriverPhase.TAPER, t)
            self._taper(t, plan)
        else:
            self._enter(DriverPhase.COMPLETE, t)
            self._complete(plan)
        return self._phase

    def _enter(self, phase: DriverPhase, t: float) -> None:
        if phase is self._phase:
            return
        self.logger.info("[driver] %s -> %s at t=%.1fs", self._phase.value, phase.value, t)
        self._phase = phase
        self.emitter.emit(SessionEvent(SessionEventType.DRIVER_PHASE, data={"phase": phase.value, "t": t}))

    def _owns_cadence(self) -> bool:
        return self.cadence.phase is CadencePhase.ACTIVE and not self.cadence.flow_active

    # -------------------------------------------------------------- branches
    def _warm_up(self, t: float, plan: SessionPlan) -> None:
        if not self._owns_cadence():
            return
        lo = self.config.stroke_speed_min
        hi = self.config.stroke_speed_max
        progress = t / plan.warm_up_end_seconds if plan.warm_up_end_seconds > 0 else 1.0
        self.cadence.set_speed(lo + 0.5 * (hi - lo) * min(1.0, progress))

    def _fire_due_event(self, t: float, plan: SessionPlan) -> None:
        event = plan.due_event(t)
        if event is None:
            return
        index = plan.next_event_index
        if self.cadence.flow_active:
            self.logger.debug("[driver] %s at %.1fs waiting: flow in progress", event.kind.value, event.at_seconds)
            return
        if event.kind is EventKind.EDGE:
            fired = self.cadence.trigger_edge()
        else:
            fired = self.cadence.trigger_ruin()
        if not fired:
            return
        plan.advance_cursor(index)
        self.logger.info(
            "[driver] Fired %s #%d (scheduled %.1fs, now %.1fs)", event.kind.value, index + 1, event.at_seconds, t
        )
        self.emitter.emit(SessionEvent(
            SessionEventType.EVENT_FIRED,
            data={"kind": event.kind.value, "index": index, "at_seconds": event.at_seconds, "t": t},
        ))

    def _skip_missed_events(self, plan: SessionPlan) -> None:
        pending = plan.remaining_events
        if pending <= 0:
            return
        skipped = plan.skip_remaining_events()
        self.logger.warning("[driver] %d scheduled event(s) missed before the finale ramp", skipped)
        self.emitter.emit(SessionEvent(SessionEventType.EVENTS_MISSED, data={"count": skipped}))

    def _finale_ramp(self, t: float, plan: SessionPlan) -> None:
        if not self._owns_cadence():
            return
        window = plan.duration_seconds - plan.middle_end_seconds
        progress = (t - plan.middle_end_seconds) / window if window > 0 else 1.0
        progress = max(0.0, min(1.0, progress))
        current = self.cadence.speed
        target = current + (self.config.stroke_speed_max - current) * progress
        self.cadence.set_speed(target)

    def _trigger_finale(self, plan: SessionPlan) -> None:
        if not plan.mark_finale_triggered():
            return
        if self.cadence.flow_active:
            self.cadence.abort_flow()
        finale = plan.finale_type
        self.logger.info("[driver] Finale: %s", finale.value)

        if finale is FinaleType.ORGASM:
            self.cadence.mark_orgasm()
            self.cadence.set_speed(self.config.stroke_speed_max)
            self.cadence.announce("Climax now", VoiceLine.ORGASM)
        elif finale is FinaleType.DENIED:
            self.cadence.set_speed(0.0)
            self.cadence.announce("Denied - hands off", VoiceLine.MOCK)
        else:
            if not self.cadence.trigger_ruin():
                self.cadence.set_speed(0.0)
            self._followup = self.clock.call_later(RUINED_FOLLOWUP_S, self._ruined_followup, name="ruined-followup")

        self.emitter.emit(SessionEvent(SessionEventType.FINALE, data={"finale": finale.value}))

    def _ruined_followup(self) -> None:
        self._followup = None
        self.cadence.announce("Ruined", VoiceLine.TEASE, clear_after=RUINED_FOLLOWUP_S)

    def _taper(self, t: float, plan: SessionPlan) -> None:
        into = t - plan.duration_seconds
        if into < FINALE_SETTLE_S or self.cadence.flow_active:
            return
        mid = self.config.mid_speed
        if plan.finale_type is FinaleType.ORGASM:
            window = plan.taper_duration_seconds - FINALE_SETTLE_S
            progress = (into - FINALE_SETTLE_S) / window if window > 0 else 1.0
            progress = max(0.0, min(1.0, progress))
            top = self.config.stroke_speed_max
            self.cadence.set_speed(top - (top - mid) * progress)
            return
        if self.cadence.phase is not CadencePhase.ACTIVE:
            self.cadence.set_phase(CadencePhase.ACTIVE)
        self.cadence.set_speed(mid)

    def _complete(self, plan: SessionPlan) -> None:
        if plan.mark_complete():
            self.logger.info("[driver] Session complete")
            self.cadence.announce("Session complete", VoiceLine.AFTERCARE)
            self.emitter.emit(SessionEvent(SessionEventType.SESSION_COMPLETE, data={"finale": plan.finale_type.value}))
        if self._settled or self.cadence.flow_active:
            return
        if self.cadence.phase is not CadencePhase.ACTIVE:
            self.cadence.set_phase(CadencePhase.ACTIVE)
        self.cadence.set_speed(self.config.mid_speed)
        self._settled = True

"""
Session Planner - one-shot synthesis of a session's timeline.

``create_plan(config, rng)`` samples the session length, derives the phase
boundaries, scatters the configured number of Edge/Ruin events across the
middle of the session and rolls the finale outcome. The returned
``SessionPlan`` is immutable apart from the event cursor and two one-shot
latches, which only ``SessionDriver`` advances.

Timeline (t in seconds of unpaused session time):

    0 ─ warm-up ─ warm_up_end ─ events ─ middle_end ─ ramp ─ duration
      ─ taper ─ duration + taper_duration (complete)
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from ..config import GameConfig

logger = logging.getLogger(__name__)

WARM_UP_FRACTION = 0.10
MIDDLE_END_FRACTION = 0.90
FINALE_ROLL_SPAN = 100.0


class EventKind(str, Enum):
    EDGE = "edge"
    RUIN = "ruin"


class FinaleType(str, Enum):
    ORGASM = "orgasm"
    DENIED = "denied"
    RUINED = "ruined"


@dataclass(frozen=True)
class ScheduledEvent:
    kind: EventKind
    at_seconds: float

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "at_seconds": round(self.at_seconds, 3)}


@dataclass
class SessionPlan:
    """
    Pre-computed schedule for one session.

    Attributes:
        duration_seconds: Active session length (finale fires here)
        warm_up_end_seconds: End of the warm-up ramp (10% of duration)
        middle_end_seconds: End of the event window (90% of duration)
        taper_duration_seconds: Post-finale settle window, floor(duration / 3)
        events: Scheduled events sorted ascending by at_seconds
        finale_type: Outcome rolled once at creation
        finale_roll: The draw that chose finale_type
        next_event_index: Number of events already fired (monotonic)
        finale_triggered: One-shot latch set when the finale fires
        session_complete: One-shot latch set when the taper ends
    """
    duration_seconds: float
    warm_up_end_seconds: float
    middle_end_seconds: float
    taper_duration_seconds: float
    events: tuple[ScheduledEvent, ...]
    finale_type: FinaleType
    finale_roll: float = 0.0
    next_event_index: int = 0
    finale_triggered: bool = False
    session_complete: bool = False
    skipped_events: int = field(default=0)

    @property
    def total_seconds(self) -> float:
        return self.duration_seconds + self.taper_duration_seconds

    @property
    def remaining_events(self) -> int:
        return len(self.events) - self.next_event_index

    def next_event(self) -> Optional[ScheduledEvent]:
        """The first event that has not fired yet, or None."""
        if self.next_event_index < len(self.events):
            return self.events[self.next_event_index]
        return None

    def due_event(self, elapsed: float) -> Optional[ScheduledEvent]:
        """The next event if its time has come at *elapsed*."""
        event = self.next_event()
        if event is not None and event.at_seconds <= elapsed:
            return event
        return None

    def advance_cursor(self, expected_index: int) -> bool:
        """Move the cursor past *expected_index*.

        Idempotent: returns False (and does nothing) unless the cursor is
        currently at *expected_index*, so replaying the same step twice
        cannot skip an event.
        """
        if expected_index != self.next_event_index or expected_index >= len(self.events):
            return False
        self.next_event_index += 1
        return True

    def skip_remaining_events(self) -> int:
        """Mark every unfired event as passed; returns how many were skipped."""
        skipped = self.remaining_events
        if skipped > 0:
            self.next_event_index = len(self.events)
            self.skipped_events += skipped
        return skipped

    def mark_finale_triggered(self) -> bool:
        """Set the finale latch; True only on the first call."""
        if self.finale_triggered:
            return False
        self.finale_triggered = True
        return True

    def mark_complete(self) -> bool:
        """Set the completion latch; True only on the first call."""
        if self.session_complete:
            return False
        self.session_complete = True
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "duration_seconds": round(self.duration_seconds, 3),
            "warm_up_end_seconds": round(self.warm_up_end_seconds, 3),
            "middle_end_seconds": round(self.middle_end_seconds, 3),
            "taper_duration_seconds": self.taper_duration_seconds,
            "total_seconds": round(self.total_seconds, 3),
            "events": [e.to_dict() for e in self.events],
            "finale_type": self.finale_type.value,
            "finale_roll": round(self.finale_roll, 3),
            "next_event_index": self.next_event_index,
            "finale_triggered": self.finale_triggered,
            "session_complete": self.session_complete,
        }


def finale_roll_span(config: "GameConfig") -> float:
    """Width of the finale draw: 100, or the weight total when it exceeds 100."""
    total = config.finale_orgasm_prob + config.finale_denied_prob + config.finale_ruined_prob
    return max(FINALE_ROLL_SPAN, total)


def choose_finale(config: "GameConfig", roll: float) -> FinaleType:
    """Map a draw in [0, finale_roll_span) onto the cumulative bands.

    Bands run Orgasm, Denied, then Ruined; whatever the first two bands do
    not cover falls to Ruined, including the remainder when the weights sum
    to less than 100.
    """
    orgasm_edge = config.finale_orgasm_prob
    denied_edge = orgasm_edge + config.finale_denied_prob
    if roll < orgasm_edge:
        return FinaleType.ORGASM
    if roll < denied_edge:
        return FinaleType.DENIED
    return FinaleType.RUINED


def _event_time(rng: random.Random, start: float, end: float) -> float:
    # uniform over [start, end)
    return start + rng.random() * (end - start)


def create_plan(config: "GameConfig", rng: Optional[random.Random] = None) -> SessionPlan:
    """Build a SessionPlan from *config* and the random source *rng*.

    Pure given the same config and the same sequence of draws. The config is
    clamped first, so anomalous ranges never raise.
    """
    cfg = config.sanitized()
    rng = rng or random.Random()

    minutes = rng.uniform(cfg.game_duration_min, cfg.game_duration_max)
    duration = max(1.0, minutes * 60.0)
    warm_up_end = WARM_UP_FRACTION * duration
    middle_end = MIDDLE_END_FRACTION * duration
    taper = float(math.floor(duration / 3.0))

    edge_count = rng.randint(cfg.edges_min, cfg.edges_max)
    ruin_count = rng.randint(cfg.ruined_orgasms_min, cfg.ruined_orgasms_max)

    events = [ScheduledEvent(EventKind.EDGE, _event_time(rng, warm_up_end, middle_end)) for _ in range(edge_count)]
    events += [ScheduledEvent(EventKind.RUIN, _event_time(rng, warm_up_end, middle_end)) for _ in range(ruin_count)]
    events.sort(key=lambda e: e.at_seconds)

    roll = rng.random() * finale_roll_span(cfg)
    finale = choose_finale(cfg, roll)

    plan = SessionPlan(
        duration_seconds=duration,
        warm_up_end_seconds=warm_up_end,
        middle_end_seconds=middle_end,
        taper_duration_seconds=taper,
        events=tuple(events),
        finale_type=finale,
        finale_roll=roll,
    )
    logger.info(
        "[session] Plan: %.0fs (+%.0fs taper), %d edges, %d ruins, finale=%s",
        duration, taper, edge_count, ruin_count, finale.value,
    )
    return plan

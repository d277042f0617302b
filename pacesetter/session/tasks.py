"""
Task Scheduler - periodic weighted-random side activities.

Independently of the cadence, the scheduler picks an ``Action`` from the
registered catalog on a fixed interval and holds it as ``current`` until it
is completed or skipped. At most one action is in flight; a new pick never
overwrites the current one.

Selection:
    eligible = catalog filtered by gender applicability and by
               min_intensity <= requested tier
    pick     = cumulative-weight scan with one uniform draw over the total
               weight; falls through to the last candidate
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Iterable, Optional, Sequence

from .events import SessionEvent, SessionEventEmitter, SessionEventType

if TYPE_CHECKING:
    from ..engine.clock import SessionClock, TimerHandle


class Intensity(IntEnum):
    LIGHT = 0
    MODERATE = 1
    INTENSE = 2

    @classmethod
    def parse(cls, value: "Intensity | str | None") -> Optional["Intensity"]:
        if value is None or isinstance(value, Intensity):
            return value
        name = str(value).strip().upper()
        if name not in cls.__members__:
            valid = ", ".join(m.lower() for m in cls.__members__)
            raise ValueError(f"unknown intensity {value!r} (expected one of: {valid})")
        return cls[name]


class TaskCategory(str, Enum):
    SPEED = "speed"
    STYLE = "style"
    INTENSITY = "intensity"
    SPECIAL = "special"


class TaskOutcome(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Action:
    """
    One selectable side activity.

    Attributes:
        id: Unique identifier (matches a GameConfig.tasks toggle key)
        label: Short display name
        description: Instruction text
        category: Grouping for display and filtering
        weight: Relative selection probability (> 0)
        min_intensity: Lowest requested tier at which the action is eligible
        genders: Applicable genders; empty means everyone
        tags: Free-form labels
        duration_s: Countdown before auto-completion (None = session default)
    """
    id: str
    label: str
    description: str = ""
    category: TaskCategory = TaskCategory.SPEED
    weight: float = 1.0
    min_intensity: Intensity = Intensity.LIGHT
    genders: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    duration_s: Optional[float] = None

    def applies_to(self, gender: Optional[str]) -> bool:
        return not gender or not self.genders or gender in self.genders

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "description": self.description,
            "category": self.category.value,
            "weight": self.weight,
            "min_intensity": self.min_intensity.name.lower(),
        }


@dataclass(frozen=True)
class TaskRecord:
    action: Action
    outcome: TaskOutcome
    duration_seconds: float
    finished_at: float = 0.0

    def to_dict(self) -> dict:
        return {
            "action": self.action.id,
            "label": self.action.label,
            "outcome": self.outcome.value,
            "duration_seconds": round(self.duration_seconds, 3),
            "finished_at": round(self.finished_at, 3),
        }


def weighted_pick(actions: Sequence[Action], rng: random.Random) -> Optional[Action]:
    """Weighted random selection; None for an empty sequence."""
    if not actions:
        return None
    total = sum(a.weight for a in actions)
    roll = rng.random() * total
    for action in actions:
        roll -= action.weight
        if roll <= 0:
            return action
    return actions[-1]


class TaskScheduler:
    """
    Holds the catalog, the current action and the history of finished ones.

    Usage:
        scheduler = TaskScheduler(clock, rng=random.Random(7))
        scheduler.register_catalog(actions)
        scheduler.start(interval_s=15.0)
        ...
        scheduler.complete_action(duration_seconds=30.0)
    """

    def __init__(
        self,
        clock: "SessionClock",
        *,
        rng: Optional[random.Random] = None,
        emitter: Optional[SessionEventEmitter] = None,
    ):
        self.clock = clock
        self.rng = rng or random.Random()
        self.emitter = emitter or SessionEventEmitter()
        self.logger = logging.getLogger(__name__)

        self._catalog: tuple[Action, ...] = ()
        self._current: Optional[Action] = None
        self._history: list[TaskRecord] = []
        self._paused = False
        self._interval_s: Optional[float] = None
        self._timer: Optional["TimerHandle"] = None
        self._gender: Optional[str] = None
        self._intensity: Optional[Intensity] = None

    # ------------------------------------------------------------ accessors
    @property
    def catalog(self) -> tuple[Action, ...]:
        return self._catalog

    @property
    def current(self) -> Optional[Action]:
        return self._current

    @property
    def busy(self) -> bool:
        return self._current is not None

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def running(self) -> bool:
        return self._timer is not None

    @property
    def interval_s(self) -> Optional[float]:
        return self._interval_s

    @property
    def history(self) -> tuple[TaskRecord, ...]:
        return tuple(self._history)

    # -------------------------------------------------------------- catalog
    def register_catalog(self, actions: Iterable[Action]) -> int:
        """Replace the catalog; invalid or duplicate actions are dropped.

        Returns:
            Number of actions registered
        """
        accepted: list[Action] = []
        seen: set[str] = set()
        for action in actions:
            if not action.id or action.weight <= 0:
                self.logger.warning("[tasks] Dropping invalid action %r (weight=%s)", action.id, action.weight)
                continue
            if action.id in seen:
                self.logger.warning("[tasks] Dropping duplicate action %r", action.id)
                continue
            seen.add(action.id)
            accepted.append(action)
        self._catalog = tuple(accepted)
        self.logger.info("[tasks] Registered %d action(s)", len(accepted))
        return len(accepted)

    # ------------------------------------------------------------ lifecycle
    def start(
        self,
        interval_s: float,
        *,
        gender: Optional[str] = None,
        intensity: "Intensity | str | None" = None,
    ) -> bool:
        """Begin periodic selection every *interval_s* seconds of session time.

        The interval is fixed until ``stop()``; changing it needs a restart.
        """
        if self._timer is not None:
            self.logger.warning("[tasks] Scheduler already running")
            return False
        self._interval_s = max(1.0, float(interval_s))
        self._gender = gender
        self._intensity = Intensity.parse(intensity)
        self._paused = False
        self._timer = self.clock.call_every(self._interval_s, self._on_interval, name="task-interval")
        self.logger.info("[tasks] Scheduler started (every %.1fs)", self._interval_s)
        return True

    def stop(self) -> None:
        """Cancel the interval and clear the current action (history kept)."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._current = None
        self._paused = False
        self.logger.debug("[tasks] Scheduler stopped")

    def pause(self) -> bool:
        if self._paused:
            return False
        self._paused = True
        return True

    def resume(self) -> bool:
        if not self._paused:
            return False
        self._paused = False
        return True

    def clear_history(self) -> None:
        self._history.clear()

    def _on_interval(self) -> None:
        if self._paused or self.busy:
            return
        self.select_next(self._gender, self._intensity)

    # ------------------------------------------------------------ selection
    def eligible(
        self,
        gender: Optional[str] = None,
        intensity: "Intensity | str | None" = None,
    ) -> list[Action]:
        tier = Intensity.parse(intensity)
        return [
            a for a in self._catalog
            if a.applies_to(gender) and (tier is None or a.min_intensity <= tier)
        ]

    def select_next(
        self,
        gender: Optional[str] = None,
        intensity: "Intensity | str | None" = None,
    ) -> Optional[Action]:
        """Pick the next action and make it current.

        Returns None (leaving ``current`` unset) when an action is already in
        flight or nothing is eligible.
        """
        if self.busy:
            return None
        picked = weighted_pick(self.eligible(gender, intensity), self.rng)
        if picked is None:
            self.logger.debug("[tasks] No eligible action (gender=%s, intensity=%s)", gender, intensity)
            return None
        self._current = picked
        self.logger.info("[tasks] Selected %s", picked.id)
        self.emitter.emit(SessionEvent(SessionEventType.TASK_SELECTED, data={"action": picked.id, "label": picked.label}))
        return picked

    def complete_action(self, duration_seconds: float = 0.0) -> Optional[TaskRecord]:
        return self._finish(TaskOutcome.COMPLETED, duration_seconds)

    def skip_current(self) -> Optional[TaskRecord]:
        return self._finish(TaskOutcome.SKIPPED, 0.0)

    def _finish(self, outcome: TaskOutcome, duration_seconds: float) -> Optional[TaskRecord]:
        action = self._current
        if action is None:
            return None
        record = TaskRecord(action, outcome, max(0.0, float(duration_seconds)), self.clock.now())
        self._history.append(record)
        self._current = None
        self.logger.info("[tasks] %s %s (%.0fs)", outcome.value.capitalize(), action.id, record.duration_seconds)
        self.emitter.emit(SessionEvent(
            SessionEventType.TASK_FINISHED,
            data={"action": action.id, "outcome": outcome.value, "duration_seconds": record.duration_seconds},
        ))
        return record

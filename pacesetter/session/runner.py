"""
Session Runner - owns and drives one pacing session.

The SessionRunner holds every piece of per-session state explicitly:
- SessionClock (the single pausable time source)
- CadenceEngine (speed, phase, beats, Edge/Ruin flows)
- TaskScheduler (+ per-task countdown)
- SessionDriver and the SessionPlan it advances
- optional MediaQueue (dwell-timed advance) and AudioSink (+ ambient cues)

Architecture:
    SessionRunner.update(dt) called every frame (60fps)
    → advance the clock (timers, flow sleeps, task interval fire here)
    → SessionDriver.tick() once per whole elapsed second
    → CadenceEngine.tick() beat accumulator with the same dt
    → AudioSink.update() housekeeping

Pause freezes the clock, so it suspends everything, flows included.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Iterable, Optional

from ..engine.audio import AmbientCueScheduler, AudioSink, VoiceLine
from ..engine.cadence import CadenceEngine, CadencePhase
from ..engine.clock import SessionClock
from .catalog import catalog_for_config
from .driver import SessionDriver
from .events import SessionEvent, SessionEventEmitter, SessionEventType
from .plan import SessionPlan, create_plan
from .summary import SessionSummary
from .tasks import Action, Intensity, TaskScheduler

if TYPE_CHECKING:
    from ..config import GameConfig
    from ..content.media_queue import MediaQueue
    from ..engine.clock import TimerHandle


FRAME_GAP_WARN_S = 1.0
SIMULATION_GRACE_S = 120.0


class SessionState(Enum):
    """Session execution states."""
    STOPPED = auto()    # Not running, can be started
    RUNNING = auto()    # Active execution
    PAUSED = auto()     # Paused, can be resumed


class SessionRunner:
    """
    Session context for one pacing session.

    Usage:
        runner = SessionRunner(config, audio=sink, media=queue)
        runner.start()

        # In main loop (60fps), inside a running asyncio loop:
        runner.update(dt)

        runner.pause(); runner.resume()
        runner.stop()            # last_summary holds the stats
    """

    def __init__(
        self,
        config: "GameConfig",
        *,
        audio: Optional[AudioSink] = None,
        media: Optional["MediaQueue"] = None,
        catalog: Optional[Iterable[Action]] = None,
        emitter: Optional[SessionEventEmitter] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[SessionClock] = None,
        gender: Optional[str] = None,
        intensity: "Intensity | str | None" = None,
    ):
        self.config = config.sanitized()
        self.rng = rng or random.Random()
        self.clock = clock or SessionClock()
        self.event_emitter = emitter or SessionEventEmitter()
        self.audio = audio or AudioSink()
        self.media = media
        self.gender = gender
        self.intensity = Intensity.parse(intensity)
        self.logger = logging.getLogger(__name__)

        self.cadence = CadenceEngine(
            self.config, self.clock, audio=self.audio, emitter=self.event_emitter, rng=self.rng
        )
        self.tasks = TaskScheduler(self.clock, rng=self.rng, emitter=self.event_emitter)
        self.driver = SessionDriver(self.config, self.cadence, self.clock, self.event_emitter)
        self.ambient = AmbientCueScheduler(self.clock, self.audio, self._ambient_speed, rng=self.rng)
        self._catalog = list(catalog) if catalog is not None else catalog_for_config(self.config)

        self.plan: Optional[SessionPlan] = None
        self.last_summary: Optional[SessionSummary] = None
        self._state = SessionState.STOPPED
        self._start_time = 0.0
        self._driver_second = 0

        self._task_timer: Optional["TimerHandle"] = None
        self._task_started_at = 0.0
        self._task_deadline = 0.0
        self._media_timer: Optional["TimerHandle"] = None

        self.event_emitter.subscribe(SessionEventType.TASK_SELECTED, self._on_task_selected)

    # ------------------------------------------------------------ accessors
    @property
    def state(self) -> SessionState:
        return self._state

    def is_running(self) -> bool:
        return self._state is SessionState.RUNNING

    def is_paused(self) -> bool:
        return self._state is SessionState.PAUSED

    def is_stopped(self) -> bool:
        return self._state is SessionState.STOPPED

    @property
    def elapsed(self) -> float:
        """Unpaused seconds since start (0 without a plan)."""
        if self.plan is None:
            return 0.0
        return max(0.0, self.clock.now() - self._start_time)

    @property
    def remaining(self) -> float:
        """Seconds until the taper ends."""
        if self.plan is None:
            return 0.0
        return max(0.0, self.plan.total_seconds - self.elapsed)

    @property
    def task_time_left(self) -> float:
        if self._task_timer is None:
            return 0.0
        return max(0.0, self._task_deadline - self.clock.now())

    def _ambient_speed(self) -> float:
        if self.cadence.phase is CadencePhase.IDLE:
            return 0.0
        return self.cadence.speed

    # ------------------------------------------------------------ lifecycle
    def start(self) -> bool:
        """Create the plan and start cadence, tasks, media and ambient cues."""
        if self._state is not SessionState.STOPPED:
            self.logger.warning("[session] Cannot start: state is %s", self._state.name)
            return False

        self.tasks.clear_history()
        self.tasks.register_catalog(self._catalog)
        self.plan = create_plan(self.config, self.rng)
        self._start_time = self.clock.now()
        self._driver_second = 0
        self.last_summary = None

        self.cadence.reset()
        self.cadence.start(self.config.stroke_speed_min)
        self.tasks.start(self.config.task_frequency_s, gender=self.gender, intensity=self.intensity)

        if self.media is not None:
            if self.media.current_item() is None:
                self.media.request_more()
            self.media.resume()
            self._schedule_media()

        if self.config.ambient_enabled:
            self.ambient.start()
        self.audio.play_voice_line(VoiceLine.INTRO)

        self._state = SessionState.RUNNING
        self.logger.info(
            "[session] Started: %.0fs + %.0fs taper, %d event(s), %d action(s)",
            self.plan.duration_seconds, self.plan.taper_duration_seconds,
            len(self.plan.events), len(self.tasks.catalog),
        )
        self.event_emitter.emit(SessionEvent(SessionEventType.SESSION_START, data=self.plan.to_dict()))
        return True

    def pause(self) -> bool:
        if self._state is not SessionState.RUNNING:
            self.logger.warning("[session] Cannot pause: state is %s", self._state.name)
            return False
        self.clock.pause()
        self.cadence.pause()
        self.tasks.pause()
        if self.media is not None:
            self.media.pause()
        self._state = SessionState.PAUSED
        self.logger.info("[session] Paused at t=%.1fs", self.elapsed)
        self.event_emitter.emit(SessionEvent(SessionEventType.SESSION_PAUSE, data={"elapsed": self.elapsed}))
        return True

    def resume(self) -> bool:
        if self._state is not SessionState.PAUSED:
            self.logger.warning("[session] Cannot resume: state is %s", self._state.name)
            return False
        self.clock.resume()
        self.cadence.resume()
        self.tasks.resume()
        if self.media is not None:
            self.media.resume()
        self._state = SessionState.RUNNING
        self.logger.info("[session] Resumed at t=%.1fs", self.elapsed)
        self.event_emitter.emit(SessionEvent(SessionEventType.SESSION_RESUME, data={"elapsed": self.elapsed}))
        return True

    def stop(self) -> bool:
        """Tear down: cancel flows and timers, reset state, keep last_summary."""
        if self._state is SessionState.STOPPED:
            return False
        summary = self.summary()
        self.last_summary = summary

        self.cadence.reset()
        self.driver.cancel()
        self._cancel_task_timer()
        self.tasks.stop()
        if self._media_timer is not None:
            self._media_timer.cancel()
            self._media_timer = None
        if self.media is not None:
            self.media.pause()
        self.ambient.stop()
        self.audio.stop()
        self.clock.cancel_all()
        self.clock.resume()

        self.plan = None
        self._state = SessionState.STOPPED
        self.logger.info(
            "[session] Stopped after %.1fs (edges=%d ruins=%d tasks=%d/%d)",
            summary.elapsed_seconds, summary.edges_fired, summary.ruins_fired,
            summary.tasks_completed, summary.tasks_completed + summary.tasks_skipped,
        )
        self.event_emitter.emit(SessionEvent(SessionEventType.SESSION_STOP, data=summary.to_dict()))
        return True

    # ---------------------------------------------------------------- frame
    def update(self, dt: float) -> None:
        """Advance the session by *dt* seconds of wall time.

        Driver first, beat second, so the beat accumulator reads the speed
        the driver just applied.
        """
        if self._state is SessionState.STOPPED:
            return
        if dt > FRAME_GAP_WARN_S:
            self.logger.warning("[session] Large frame gap: %.2fs", dt)
        if self._state is SessionState.RUNNING and dt > 0:
            self.clock.advance(dt)
            elapsed = self.elapsed
            while self.plan is not None and self._driver_second + 1 <= elapsed:
                self._driver_second += 1
                self.driver.tick(float(self._driver_second), self.plan)
            self.cadence.tick(dt * 1000.0)
        self.audio.update()

    # ---------------------------------------------------------------- tasks
    def _on_task_selected(self, event: SessionEvent) -> None:
        action = self.tasks.current
        if action is None or self._state is SessionState.STOPPED:
            return
        self._cancel_task_timer()
        duration = action.duration_s or self.config.task_duration_s
        self._task_started_at = self.clock.now()
        self._task_deadline = self._task_started_at + duration
        self._task_timer = self.clock.call_later(duration, self._auto_complete_task, name="task-countdown")

    def _auto_complete_task(self) -> None:
        self._task_timer = None
        self.tasks.complete_action(self.clock.now() - self._task_started_at)

    def _cancel_task_timer(self) -> None:
        if self._task_timer is not None:
            self._task_timer.cancel()
            self._task_timer = None

    def skip_task(self) -> bool:
        if not self.tasks.busy:
            return False
        self._cancel_task_timer()
        self.tasks.skip_current()
        return True

    def complete_task(self) -> bool:
        """Complete the current action early, crediting the time spent."""
        if not self.tasks.busy:
            return False
        self._cancel_task_timer()
        self.tasks.complete_action(self.clock.now() - self._task_started_at)
        return True

    # ---------------------------------------------------------------- media
    def _schedule_media(self) -> None:
        if self._media_timer is not None:
            self._media_timer.cancel()
        item = self.media.current_item() if self.media is not None else None
        dwell = self.config.slide_duration_s
        if item is not None and item.is_video and item.duration:
            dwell = float(item.duration)
        self._media_timer = self.clock.call_later(dwell, self._on_media_dwell, name="media-dwell")

    def _on_media_dwell(self) -> None:
        self._media_timer = None
        if self.media is None:
            return
        self.media.advance()
        self._schedule_media()

    def advance_media(self) -> bool:
        if self.media is None or self._state is SessionState.STOPPED:
            return False
        self.media.advance()
        self._schedule_media()
        return True

    def previous_media(self) -> bool:
        if self.media is None or self._state is SessionState.STOPPED:
            return False
        self.media.go_back()
        self._schedule_media()
        return True

    # ---------------------------------------------------------------- stats
    def summary(self) -> SessionSummary:
        if self._state is SessionState.STOPPED and self.last_summary is not None:
            return self.last_summary
        snap = self.cadence.snapshot()
        return SessionSummary.from_history(
            self.tasks.history,
            edges_fired=snap.edges_fired,
            ruins_fired=snap.ruins_fired,
            orgasms=snap.orgasms,
            total_strokes=snap.total_strokes,
            elapsed_seconds=self.elapsed,
            remaining_seconds=self.remaining,
            finale_type=self.plan.finale_type.value if self.plan else None,
            complete=bool(self.plan and self.plan.session_complete),
        )

    def status(self) -> dict[str, Any]:
        """Flat view for UI refresh."""
        current = self.tasks.current
        item = self.media.current_item() if self.media is not None else None
        return {
            "state": self._state.name,
            "elapsed": self.elapsed,
            "remaining": self.remaining,
            "driver_phase": self.driver.phase.value,
            "cadence": self.cadence.snapshot().to_dict(),
            "task": current.to_dict() if current else None,
            "task_time_left": self.task_time_left,
            "media": item.to_dict() if item else None,
        }

    # ------------------------------------------------------------- drivers
    async def simulate(self, step: float = 0.05, max_seconds: Optional[float] = None) -> SessionSummary:
        """Fast-forward a whole session on the logical clock.

        Yields to the event loop after every step so flow tasks advance.
        Stops when the completion latch fires or after *max_seconds*.
        """
        if self._state is SessionState.STOPPED:
            self.start()
        step = max(0.001, float(step))
        limit = max_seconds
        if limit is None and self.plan is not None:
            limit = self.plan.total_seconds + SIMULATION_GRACE_S
        while self._state is SessionState.RUNNING and self.plan is not None:
            if self.plan.session_complete or (limit is not None and self.elapsed >= limit):
                break
            self.update(step)
            await asyncio.sleep(0)
        return self.summary()

    async def run(self, frame_interval: float = 1.0 / 60.0, *, stop_when_complete: bool = False) -> SessionSummary:
        """Drive the session from wall-clock time until stopped."""
        if self._state is SessionState.STOPPED:
            self.start()
        last = time.monotonic()
        while self._state is not SessionState.STOPPED:
            await asyncio.sleep(frame_interval)
            now = time.monotonic()
            self.update(now - last)
            last = now
            if stop_when_complete and self.plan is not None and self.plan.session_complete:
                self.stop()
        return self.summary()

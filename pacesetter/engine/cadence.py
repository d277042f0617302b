"""
Cadence Engine - stroke speed, phase, beat emission and Edge/Ruin flows.

The engine owns one scalar ``speed`` (beats per second, 0 = stopped), a
discrete ``CadencePhase`` and two scripted asynchronous flows:

    Edge: EDGE_BUILDUP (max, 8-15s) -> EDGE_RIDE (0.3*max, 5-25s)
          -> EDGE_COOLDOWN (0, edge_cooldown_s) -> ACTIVE (random speed)
    Ruin: RUIN_BUILDUP (max, 6-12s) -> RUINED (0, 5-15s)
          -> RUIN_COOLDOWN (random speed, 3s) -> ACTIVE

While a flow runs it is the only writer of ``speed`` and ``phase``; callers
must check ``flow_active`` before writing either. Flows are asyncio tasks
whose waits are ``SessionClock.sleep`` calls, so pausing the session clock
freezes them. Every step re-checks a per-flow token after waking, and
``abort_flow()`` / ``reset()`` cancel the task, so a stale flow can never
write into a reset engine.

Architecture:
    SessionRunner.update(dt)
    -> SessionDriver.tick(t, plan)       (writes target speed when no flow)
    -> CadenceEngine.tick(dt_ms)         (beat accumulator reads that speed)
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections import deque
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import TYPE_CHECKING, Optional

from ..logging_utils import BEAT_TRACE_TAG, BurstSampler
from ..session.events import SessionEvent, SessionEventEmitter, SessionEventType
from .audio import AudioSink, VoiceLine

if TYPE_CHECKING:
    from ..config import GameConfig
    from .clock import SessionClock, TimerHandle


class CadencePhase(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    EDGE_BUILDUP = "edge_buildup"
    EDGE_RIDE = "edge_ride"
    EDGE_COOLDOWN = "edge_cooldown"
    RUIN_BUILDUP = "ruin_buildup"
    RUINED = "ruined"
    RUIN_COOLDOWN = "ruin_cooldown"
    ORGASM = "orgasm"


EDGE_PHASES = frozenset({
    CadencePhase.EDGE_BUILDUP,
    CadencePhase.EDGE_RIDE,
    CadencePhase.EDGE_COOLDOWN,
})
RUIN_PHASES = frozenset({
    CadencePhase.RUIN_BUILDUP,
    CadencePhase.RUINED,
    CadencePhase.RUIN_COOLDOWN,
})
FLOW_PHASES = EDGE_PHASES | RUIN_PHASES


class FlowKind(str, Enum):
    EDGE = "edge"
    RUIN = "ruin"


EDGE_BUILDUP_HOLD_S = (8.0, 15.0)
EDGE_RIDE_HOLD_S = (5.0, 25.0)
EDGE_RIDE_FACTOR = 0.3
RUIN_BUILDUP_HOLD_S = (6.0, 12.0)
RUINED_HOLD_S = (5.0, 15.0)
RESUME_GRACE_S = 3.0
BEAT_RING_SIZE = 60


@dataclass(frozen=True)
class CadenceSnapshot:
    """Read-only view of cadence state for stats and UI."""
    speed: float
    phase: CadencePhase
    paused: bool
    flow: Optional[FlowKind]
    edges_fired: int
    ruins_fired: int
    orgasms: int
    total_strokes: int
    notification: Optional[str]
    recent_beats: tuple[float, ...]

    def to_dict(self) -> dict:
        return {
            "speed": round(self.speed, 4),
            "phase": self.phase.value,
            "paused": self.paused,
            "flow": self.flow.value if self.flow else None,
            "edges_fired": self.edges_fired,
            "ruins_fired": self.ruins_fired,
            "orgasms": self.orgasms,
            "total_strokes": self.total_strokes,
            "notification": self.notification,
        }


class CadenceEngine:
    """
    Stroke cadence state machine.

    Usage:
        engine = CadenceEngine(config, clock)
        engine.start()                 # ACTIVE at stroke_speed_min
        engine.set_speed(2.0)
        engine.tick(16.7)              # per frame; True when a beat fired
        engine.trigger_edge()          # inside a running event loop
    """

    def __init__(
        self,
        config: "GameConfig",
        clock: "SessionClock",
        *,
        audio: Optional[AudioSink] = None,
        emitter: Optional[SessionEventEmitter] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config.sanitized()
        self.clock = clock
        self.audio = audio or AudioSink()
        self.emitter = emitter or SessionEventEmitter()
        self.rng = rng or random.Random()
        self.logger = logging.getLogger(__name__)

        self._speed = 0.0
        self._phase = CadencePhase.IDLE
        self._paused = False
        self._accum_ms = 0.0

        self.edges_fired = 0
        self.ruins_fired = 0
        self.orgasms = 0
        self.total_strokes = 0
        self._beats: deque[float] = deque(maxlen=BEAT_RING_SIZE)
        self._beat_sampler = BurstSampler(interval_s=5.0)

        self._notification: Optional[str] = None
        self._notification_timer: Optional["TimerHandle"] = None

        self._flow_kind: Optional[FlowKind] = None
        self._flow_task: Optional[asyncio.Task] = None
        self._flow_token = 0

    # ------------------------------------------------------------ accessors
    @property
    def speed(self) -> float:
        return self._speed

    @property
    def phase(self) -> CadencePhase:
        return self._phase

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def notification(self) -> Optional[str]:
        return self._notification

    @property
    def flow(self) -> Optional[FlowKind]:
        return self._flow_kind

    @property
    def flow_active(self) -> bool:
        """True while an Edge/Ruin flow owns speed and phase."""
        return self._flow_kind is not None or self._phase in FLOW_PHASES

    @property
    def recent_beats(self) -> tuple[float, ...]:
        return tuple(self._beats)

    def snapshot(self) -> CadenceSnapshot:
        return CadenceSnapshot(
            speed=self._speed,
            phase=self._phase,
            paused=self._paused,
            flow=self._flow_kind,
            edges_fired=self.edges_fired,
            ruins_fired=self.ruins_fired,
            orgasms=self.orgasms,
            total_strokes=self.total_strokes,
            notification=self._notification,
            recent_beats=tuple(self._beats),
        )

    # ------------------------------------------------------------- writers
    def clamp_speed(self, value: float) -> float:
        """Clamp to [stroke_speed_min, stroke_speed_max]; <= 0 means stopped."""
        if not value or value <= 0:
            return 0.0
        return max(self.config.stroke_speed_min, min(self.config.stroke_speed_max, float(value)))

    def set_speed(self, value: float) -> float:
        """Store a clamped speed and return it.

        A positive speed while IDLE promotes the phase to ACTIVE so a
        running cadence is never reported as idle.
        """
        new_speed = self.clamp_speed(value)
        if new_speed == self._speed:
            return new_speed
        self._speed = new_speed
        self.audio.set_intensity(new_speed)
        if new_speed > 0 and self._phase is CadencePhase.IDLE:
            self.set_phase(CadencePhase.ACTIVE)
        return new_speed

    def set_phase(self, phase: CadencePhase) -> None:
        phase = CadencePhase(phase)
        if phase is self._phase:
            return
        previous = self._phase
        self._phase = phase
        if phase is CadencePhase.IDLE and self._speed > 0:
            self._speed = 0.0
            self.audio.set_intensity(0.0)
        self.logger.debug("[cadence] Phase %s -> %s (speed=%.2f)", previous.value, phase.value, self._speed)
        self.emitter.emit(SessionEvent(
            SessionEventType.PHASE_CHANGE,
            data={"from": previous.value, "to": phase.value, "speed": round(self._speed, 3)},
        ))

    def set_notification(self, message: Optional[str], *, clear_after: Optional[float] = None) -> None:
        """Show *message* (None clears), optionally clearing it after a delay
        of session time. A newer message cancels a pending clear."""
        if self._notification_timer is not None:
            self._notification_timer.cancel()
            self._notification_timer = None
        if message != self._notification:
            self._notification = message
            self.emitter.emit(SessionEvent(SessionEventType.NOTIFICATION, data={"message": message}))
        if message is not None and clear_after is not None:
            self._notification_timer = self.clock.call_later(
                clear_after, partial(self._clear_notification, message), name="notification-clear"
            )

    def _clear_notification(self, message: str) -> None:
        self._notification_timer = None
        if self._notification == message:
            self._notification = None
            self.emitter.emit(SessionEvent(SessionEventType.NOTIFICATION, data={"message": None}))

    def announce(
        self,
        message: Optional[str],
        voice: Optional[VoiceLine] = None,
        *,
        clear_after: Optional[float] = None,
    ) -> None:
        """Set a notification and play its voice line."""
        self.set_notification(message, clear_after=clear_after)
        if voice is not None:
            self.audio.play_voice_line(voice)

    def random_speed(self) -> float:
        """Random speed biased toward the middle of the configured range."""
        lo = self.clamp_speed(self.config.stroke_speed_min * 1.5)
        hi = self.clamp_speed(self.config.stroke_speed_max / 1.4)
        if hi < lo:
            lo, hi = hi, lo
        return self.rng.uniform(lo, hi)

    # ------------------------------------------------------------ lifecycle
    def start(self, speed: Optional[float] = None) -> None:
        """Begin stroking: phase ACTIVE at *speed* (default stroke_speed_min)."""
        self._accum_ms = 0.0
        self._paused = False
        self.set_phase(CadencePhase.ACTIVE)
        self.set_speed(self.config.stroke_speed_min if speed is None else speed)
        self.logger.info("[cadence] Started at %.2f beats/s", self._speed)

    def pause(self) -> bool:
        """Freeze beat accumulation only (flows keep their own timers)."""
        if self._paused:
            return False
        self._paused = True
        return True

    def resume(self) -> bool:
        if not self._paused:
            return False
        self._paused = False
        return True

    def reset(self) -> None:
        """Cancel any flow and pending notification clear; back to IDLE with
        zeroed counters."""
        self._cancel_flow_task()
        if self._notification_timer is not None:
            self._notification_timer.cancel()
            self._notification_timer = None
        self._notification = None
        self._speed = 0.0
        self._phase = CadencePhase.IDLE
        self._paused = False
        self._accum_ms = 0.0
        self.edges_fired = 0
        self.ruins_fired = 0
        self.orgasms = 0
        self.total_strokes = 0
        self._beats.clear()
        self._beat_sampler.flush()
        self.audio.set_intensity(0.0)
        self.logger.debug("[cadence] Reset to idle")

    # ----------------------------------------------------------------- beats
    def tick(self, delta_ms: float) -> bool:
        """Advance the beat accumulator; returns True when a beat fired.

        The accumulator resets on each beat (remainder is dropped).
        """
        if self._paused or self._speed <= 0 or delta_ms <= 0:
            return False
        self._accum_ms += float(delta_ms)
        interval_ms = 1000.0 / self._speed
        if self._accum_ms < interval_ms:
            return False
        self._accum_ms = 0.0
        self._beat()
        return True

    def _beat(self) -> None:
        self.total_strokes += 1
        self._beats.append(self.clock.now())
        self.audio.play_tick()
        self.emitter.emit(SessionEvent(
            SessionEventType.BEAT,
            data={"count": self.total_strokes, "speed": round(self._speed, 3)},
        ))
        burst = self._beat_sampler.record()
        if burst:
            self.logger.debug("%s %d beats, speed=%.2f phase=%s", BEAT_TRACE_TAG, burst, self._speed, self._phase.value)

    def mark_orgasm(self) -> None:
        self.orgasms += 1
        self.set_phase(CadencePhase.ORGASM)

    # ----------------------------------------------------------------- flows
    def trigger_edge(self) -> bool:
        """Start the Edge flow; False (no-op) if a flow is already active."""
        return self._trigger(FlowKind.EDGE)

    def trigger_ruin(self) -> bool:
        """Start the Ruin flow; False (no-op) if a flow is already active."""
        return self._trigger(FlowKind.RUIN)

    def _trigger(self, kind: FlowKind) -> bool:
        if self.flow_active:
            busy = self._flow_kind.value if self._flow_kind else self._phase.value
            self.logger.info("[cadence] %s flow rejected: %s in progress", kind.value, busy)
            self.emitter.emit(SessionEvent(
                SessionEventType.FLOW_REJECTED, data={"kind": kind.value, "busy": busy}
            ))
            return False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.logger.warning("[cadence] %s flow needs a running event loop; ignored", kind.value)
            return False

        self._flow_token += 1
        token = self._flow_token
        self._flow_kind = kind
        if kind is FlowKind.EDGE:
            self._enter(CadencePhase.EDGE_BUILDUP, self.config.stroke_speed_max)
            self.announce("Edge - build it up", VoiceLine.EDGE_BUILDUP)
            coro = self._run_edge(token)
        else:
            self._enter(CadencePhase.RUIN_BUILDUP, self.config.stroke_speed_max)
            self.announce("Ruin - faster", VoiceLine.RUIN_BUILDUP)
            coro = self._run_ruin(token)

        task = loop.create_task(coro, name=f"cadence-{kind.value}-{token}")
        task.add_done_callback(partial(self._on_flow_done, token))
        self._flow_task = task
        self.logger.info("[cadence] %s flow started", kind.value)
        self.emitter.emit(SessionEvent(SessionEventType.FLOW_START, data={"kind": kind.value}))
        return True

    def _owns(self, token: int) -> bool:
        return token == self._flow_token and self._flow_kind is not None

    def _enter(self, phase: CadencePhase, speed: float) -> None:
        self.set_phase(phase)
        self.set_speed(speed)

    async def _run_edge(self, token: int) -> None:
        await self.clock.sleep(self.rng.uniform(*EDGE_BUILDUP_HOLD_S))
        if not self._owns(token):
            return
        self._enter(CadencePhase.EDGE_RIDE, self.config.stroke_speed_max * EDGE_RIDE_FACTOR)
        self.announce("Slow down - ride the edge", VoiceLine.EDGE_RIDE)

        await self.clock.sleep(self.rng.uniform(*EDGE_RIDE_HOLD_S))
        if not self._owns(token):
            return
        self.edges_fired += 1
        self._enter(CadencePhase.EDGE_COOLDOWN, 0.0)
        self.announce("Hands off", VoiceLine.EDGE_COOLDOWN)

        await self.clock.sleep(self.config.edge_cooldown_s)
        if not self._owns(token):
            return
        self._finish_flow(token)
        self.set_speed(self.random_speed())
        self.announce("Back to stroking", VoiceLine.COMMAND, clear_after=RESUME_GRACE_S)

    async def _run_ruin(self, token: int) -> None:
        await self.clock.sleep(self.rng.uniform(*RUIN_BUILDUP_HOLD_S))
        if not self._owns(token):
            return
        self.ruins_fired += 1
        self._enter(CadencePhase.RUINED, 0.0)
        self.announce("Ruined - let go", VoiceLine.RUIN_MOMENT)

        await self.clock.sleep(self.rng.uniform(*RUINED_HOLD_S))
        if not self._owns(token):
            return
        self._enter(CadencePhase.RUIN_COOLDOWN, self.random_speed())
        self.announce("Start again, slowly", VoiceLine.RUIN_COOLDOWN)

        await self.clock.sleep(RESUME_GRACE_S)
        if not self._owns(token):
            return
        self._finish_flow(token)
        self.set_notification(None)

    def _finish_flow(self, token: int) -> None:
        kind = self._flow_kind
        self._flow_kind = None
        self._flow_token += 1
        self.set_phase(CadencePhase.ACTIVE)
        self.logger.info("[cadence] %s flow finished (edges=%d ruins=%d)", kind.value, self.edges_fired, self.ruins_fired)
        self.emitter.emit(SessionEvent(SessionEventType.FLOW_END, data={"kind": kind.value, "aborted": False}))

    def _on_flow_done(self, token: int, task: asyncio.Task) -> None:
        if self._flow_task is task:
            self._flow_task = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        self.logger.error("[cadence] Flow task crashed: %s", exc, exc_info=exc)
        self.emitter.emit(SessionEvent(SessionEventType.ERROR, data={"source": "cadence", "error": str(exc)}))
        if self._owns(token):
            # hand control back so pacing can continue on the next tick
            self._flow_kind = None
            self._flow_token += 1
            self.set_phase(CadencePhase.ACTIVE)
            self.set_speed(self.random_speed())

    def abort_flow(self) -> bool:
        """Cancel the in-flight flow and return control in ACTIVE.

        Speed is left where the flow put it. Returns False if no flow ran.
        """
        if not self.flow_active:
            return False
        kind = self._flow_kind
        self._cancel_flow_task()
        if self._phase in FLOW_PHASES:
            self.set_phase(CadencePhase.ACTIVE)
        self.logger.info("[cadence] %s flow aborted", kind.value if kind else "stale")
        self.emitter.emit(SessionEvent(
            SessionEventType.FLOW_END,
            data={"kind": kind.value if kind else None, "aborted": True},
        ))
        return True

    def _cancel_flow_task(self) -> None:
        self._flow_token += 1
        self._flow_kind = None
        task, self._flow_task = self._flow_task, None
        if task is not None and not task.done():
            task.cancel()

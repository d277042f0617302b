"""Session event system for broadcasting pacing state changes.

Provides event types, event data structures, and event emitter for decoupled
communication between the session core (runner, driver, cadence engine, task
scheduler, media queue) and UI/logging consumers.

Usage:
    emitter = SessionEventEmitter()
    emitter.subscribe(SessionEventType.FLOW_START, lambda evt: print(f"Flow: {evt.data}"))
    emitter.emit(SessionEvent(SessionEventType.FLOW_START, data={"kind": "edge"}))
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Any, Iterable, Optional
import logging
import time


class SessionEventType(Enum):
    """Types of events that can occur during a session."""

    # Session lifecycle
    SESSION_START = auto()     # Session started (plan created)
    SESSION_PAUSE = auto()     # Session paused
    SESSION_RESUME = auto()    # Session resumed from pause
    SESSION_STOP = auto()      # Session torn down
    SESSION_COMPLETE = auto()  # Taper finished; completion latch fired

    # Driver
    DRIVER_PHASE = auto()      # Driver moved to a new plan phase
    EVENT_FIRED = auto()       # Scheduled edge/ruin event started its flow
    EVENTS_MISSED = auto()     # Scheduled events skipped at the finale ramp
    FINALE = auto()            # Finale outcome applied

    # Cadence
    PHASE_CHANGE = auto()      # Cadence phase changed
    BEAT = auto()              # One beat emitted
    NOTIFICATION = auto()      # Notification text set or cleared
    FLOW_START = auto()        # Edge/Ruin flow accepted
    FLOW_END = auto()          # Edge/Ruin flow returned control
    FLOW_REJECTED = auto()     # Flow invocation refused (another flow active)

    # Tasks
    TASK_SELECTED = auto()     # Action became current
    TASK_FINISHED = auto()     # Action completed or skipped

    # Media
    MEDIA_ADVANCE = auto()     # Queue pointer moved
    MEDIA_LOW = auto()         # Queue running low; more items requested

    # Error events
    ERROR = auto()             # Recoverable error inside the core


# Emitted several times per second; kept out of the debug log.
QUIET_EVENT_TYPES = frozenset({SessionEventType.BEAT})


@dataclass
class SessionEvent:
    """Represents a session event with optional payload data.

    Attributes:
        event_type: Type of event that occurred
        data: Optional dictionary with event-specific data
        timestamp: Optional timestamp (can be set by emitter)
    """
    event_type: SessionEventType
    data: Optional[dict[str, Any]] = None
    timestamp: Optional[float] = None

    def __str__(self) -> str:
        """Human-readable event representation."""
        if self.data:
            data_str = ", ".join(f"{k}={v}" for k, v in self.data.items())
            return f"SessionEvent({self.event_type.name}, {data_str})"
        return f"SessionEvent({self.event_type.name})"


class SessionEventEmitter:
    """Event bus for session state changes.

    Allows components to subscribe to specific event types and receive
    notifications when those events occur. Supports multiple subscribers
    per event type, plus wildcard subscribers that see every event.

    Subscriber exceptions are logged and swallowed so a broken consumer can
    never stall pacing.
    """

    def __init__(self, quiet_types: Iterable[SessionEventType] = QUIET_EVENT_TYPES):
        self._subscribers: dict[SessionEventType, list[Callable[[SessionEvent], None]]] = {}
        self._wildcard: list[Callable[[SessionEvent], None]] = []
        self._quiet = frozenset(quiet_types)
        self.logger = logging.getLogger(__name__)

    def subscribe(
        self,
        event_type: SessionEventType,
        callback: Callable[[SessionEvent], None]
    ) -> None:
        """Subscribe to a specific event type.

        Args:
            event_type: Type of event to listen for
            callback: Function to call when event occurs (receives SessionEvent)
        """
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []

        if callback not in self._subscribers[event_type]:
            self._subscribers[event_type].append(callback)
            self.logger.debug(f"[events] Subscribed to {event_type.name} (total={len(self._subscribers[event_type])})")

    def subscribe_all(self, callback: Callable[[SessionEvent], None]) -> None:
        """Subscribe to every event type."""
        if callback not in self._wildcard:
            self._wildcard.append(callback)

    def unsubscribe(
        self,
        event_type: SessionEventType,
        callback: Callable[[SessionEvent], None]
    ) -> None:
        if event_type in self._subscribers:
            if callback in self._subscribers[event_type]:
                self._subscribers[event_type].remove(callback)
                self.logger.debug(f"[events] Unsubscribed from {event_type.name} (total={len(self._subscribers[event_type])})")
        if callback in self._wildcard:
            self._wildcard.remove(callback)

    def emit(self, event: SessionEvent) -> None:
        """Emit an event to all subscribed callbacks.

        Args:
            event: The event to emit
        """
        if event.timestamp is None:
            event.timestamp = time.time()

        if event.event_type not in self._quiet:
            self.logger.debug(f"[events] Emitting: {event}")

        callbacks = list(self._subscribers.get(event.event_type, ())) + list(self._wildcard)
        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                self.logger.error(f"[events] Callback error for {event.event_type.name}: {e}", exc_info=True)

    def clear_all(self) -> None:
        """Remove all event subscribers (useful for testing/cleanup)."""
        self._subscribers.clear()
        self._wildcard.clear()
        self.logger.debug("[events] Cleared all subscribers")

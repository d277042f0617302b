"""
Session pacing for Pacesetter.

Core Components:
- SessionPlan / create_plan: one-shot timeline (duration, events, finale)
- TaskScheduler: periodic weighted-random side activities
- SessionDriver (session.driver): per-second plan -> cadence controller
- SessionRunner (session.runner): session context owning all of the above

The driver and runner import the cadence engine, which itself publishes
through this package's event bus, so they are imported from their modules
rather than re-exported here.
"""

from .events import (
    SessionEventType,
    SessionEvent,
    SessionEventEmitter
)

from .plan import (
    EventKind,
    FinaleType,
    ScheduledEvent,
    SessionPlan,
    choose_finale,
    create_plan,
)

from .tasks import (
    Action,
    Intensity,
    TaskCategory,
    TaskOutcome,
    TaskRecord,
    TaskScheduler,
    weighted_pick,
)

from .summary import SessionSummary

__all__ = [
    # Event system
    'SessionEventType',
    'SessionEvent',
    'SessionEventEmitter',

    # Planning
    'EventKind',
    'FinaleType',
    'ScheduledEvent',
    'SessionPlan',
    'choose_finale',
    'create_plan',

    # Tasks
    'Action',
    'Intensity',
    'TaskCategory',
    'TaskOutcome',
    'TaskRecord',
    'TaskScheduler',
    'weighted_pick',

    'SessionSummary',
]

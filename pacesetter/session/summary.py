"""Read-only session totals for the stats view."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from .tasks import TaskOutcome, TaskRecord


@dataclass(frozen=True)
class SessionSummary:
    tasks_completed: int = 0
    tasks_skipped: int = 0
    total_task_seconds: float = 0.0
    edges_fired: int = 0
    ruins_fired: int = 0
    orgasms: int = 0
    total_strokes: int = 0
    elapsed_seconds: float = 0.0
    remaining_seconds: float = 0.0
    finale_type: Optional[str] = None
    complete: bool = False
    history: tuple[TaskRecord, ...] = field(default_factory=tuple)

    @property
    def completion_rate(self) -> float:
        """Completed / (completed + skipped), 0.0 when nothing finished."""
        finished = self.tasks_completed + self.tasks_skipped
        return self.tasks_completed / finished if finished else 0.0

    @classmethod
    def from_history(cls, history: tuple[TaskRecord, ...], **totals: Any) -> "SessionSummary":
        completed = [r for r in history if r.outcome is TaskOutcome.COMPLETED]
        return cls(
            tasks_completed=len(completed),
            tasks_skipped=len(history) - len(completed),
            total_task_seconds=sum(r.duration_seconds for r in history),
            history=tuple(history),
            **totals,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "tasks_completed": self.tasks_completed,
            "tasks_skipped": self.tasks_skipped,
            "total_task_seconds": round(self.total_task_seconds, 3),
            "completion_rate": round(self.completion_rate, 4),
            "edges_fired": self.edges_fired,
            "ruins_fired": self.ruins_fired,
            "orgasms": self.orgasms,
            "total_strokes": self.total_strokes,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "remaining_seconds": round(self.remaining_seconds, 3),
            "finale_type": self.finale_type,
            "complete": self.complete,
            "history": [r.to_dict() for r in self.history],
        }

    def format_text(self) -> str:
        minutes, seconds = divmod(int(self.total_task_seconds), 60)
        lines = [
            f"Tasks completed : {self.tasks_completed}",
            f"Tasks skipped   : {self.tasks_skipped}",
            f"Task time       : {minutes}m {seconds}s",
            f"Completion rate : {round(self.completion_rate * 100)}%",
            f"Edges           : {self.edges_fired}",
            f"Ruins           : {self.ruins_fired}",
            f"Orgasms         : {self.orgasms}",
            f"Strokes         : {self.total_strokes}",
            f"Elapsed         : {self.elapsed_seconds:.0f}s",
            f"Remaining       : {self.remaining_seconds:.0f}s",
            f"Finale          : {self.finale_type or '-'}",
            f"Complete        : {'yes' if self.complete else 'no'}",
        ]
        return "\n".join(lines)

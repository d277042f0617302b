"""Built-in task catalog.

Action ids match the keys of ``GameConfig.tasks``; ``catalog_for_config``
keeps only the enabled ones.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .tasks import Action, Intensity, TaskCategory

if TYPE_CHECKING:
    from ..config import GameConfig


DEFAULT_ACTIONS: tuple[Action, ...] = (
    Action(
        "slow-down", "Slow Down",
        "Reduce your pace to a crawl for the next interval.",
        TaskCategory.SPEED, weight=15, min_intensity=Intensity.LIGHT, tags=("speed", "slow"),
    ),
    Action(
        "speed-up", "Speed Up",
        "Double your pace for the next interval.",
        TaskCategory.SPEED, weight=20, min_intensity=Intensity.MODERATE, tags=("speed", "fast"),
    ),
    Action(
        "double-strokes", "Double Strokes",
        "Two strokes on every beat.",
        TaskCategory.SPEED, weight=10, min_intensity=Intensity.MODERATE, tags=("speed",),
    ),
    Action(
        "halved-strokes", "Halved Strokes",
        "One stroke on every second beat.",
        TaskCategory.SPEED, weight=10, min_intensity=Intensity.LIGHT, tags=("speed",),
    ),
    Action(
        "teasing-strokes", "Teasing Strokes",
        "Slow, full-length strokes regardless of the beat.",
        TaskCategory.SPEED, weight=10, min_intensity=Intensity.LIGHT, tags=("speed", "slow"),
    ),
    Action(
        "random-speeds", "Random Speeds",
        "Change pace whenever you like, but never stop.",
        TaskCategory.SPEED, weight=8, min_intensity=Intensity.MODERATE, tags=("speed",),
    ),
    Action(
        "acceleration-cycles", "Acceleration Cycles",
        "Start slow and speed up steadily, then start over.",
        TaskCategory.SPEED, weight=6, min_intensity=Intensity.INTENSE, tags=("speed",),
    ),
    Action(
        "red-light-green-light", "Red Light, Green Light",
        "Freeze whenever the beat pauses; move when it resumes.",
        TaskCategory.SPECIAL, weight=5, min_intensity=Intensity.MODERATE, tags=("game",),
    ),
    Action(
        "dominant-hand", "Dominant Hand",
        "Use your dominant hand only.",
        TaskCategory.STYLE, weight=12, min_intensity=Intensity.LIGHT, tags=("style", "hand"),
    ),
    Action(
        "non-dominant-hand", "Other Hand",
        "Switch to your non-dominant hand.",
        TaskCategory.STYLE, weight=8, min_intensity=Intensity.LIGHT, tags=("style", "hand"),
    ),
    Action(
        "head-only", "Tip Only",
        "Short strokes at the tip only.",
        TaskCategory.STYLE, weight=6, min_intensity=Intensity.MODERATE, genders=("male",), tags=("style",),
    ),
    Action(
        "shaft-only", "Shaft Only",
        "Keep strokes to the shaft.",
        TaskCategory.STYLE, weight=6, min_intensity=Intensity.LIGHT, genders=("male",), tags=("style",),
    ),
    Action(
        "overhand-grip", "Overhand Grip",
        "Switch to an overhand grip.",
        TaskCategory.STYLE, weight=6, min_intensity=Intensity.MODERATE, tags=("style", "grip"),
    ),
)


def catalog_for_config(config: "GameConfig", actions: tuple[Action, ...] = DEFAULT_ACTIONS) -> list[Action]:
    """Actions whose toggle is enabled in ``config.tasks``; unknown ids stay on."""
    return [a for a in actions if config.tasks.get(a.id, True)]

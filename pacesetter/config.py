"""
Game Configuration - per-session snapshot of pacing ranges and toggles.

A GameConfig holds the numeric ranges (durations, speeds, event counts,
finale weights, cooldowns) and audio/task toggles that shape one session.
The core never rejects a config: ``sanitized()`` clamps anomalies (inverted
ranges, negative values) into a usable shape instead.

Persisting the config is a convenience for the CLI and GUI; the format is a
flat JSON object. Keys from the original camelCase store are accepted on load.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from .platform_paths import get_config_path

logger = logging.getLogger(__name__)

MIN_DURATION_MINUTES = 1.0 / 60.0   # one second
MIN_STROKE_SPEED = 0.05
MIN_TASK_FREQUENCY_S = 1.0

DEFAULT_TASK_TOGGLES: Dict[str, bool] = {
    "slow-down": True,
    "speed-up": True,
    "double-strokes": True,
    "halved-strokes": True,
    "teasing-strokes": True,
    "random-speeds": True,
    "acceleration-cycles": False,
    "red-light-green-light": False,
    "dominant-hand": True,
    "non-dominant-hand": False,
    "head-only": False,
    "shaft-only": False,
    "overhand-grip": False,
}

# camelCase keys from the original persisted store
_LEGACY_KEYS: Dict[str, str] = {
    "gameDurationMin": "game_duration_min",
    "gameDurationMax": "game_duration_max",
    "strokeSpeedMin": "stroke_speed_min",
    "strokeSpeedMax": "stroke_speed_max",
    "edgesMin": "edges_min",
    "edgesMax": "edges_max",
    "edgeCooldown": "edge_cooldown_s",
    "edgeCooldownSec": "edge_cooldown_s",
    "ruinedOrgasmsMin": "ruined_orgasms_min",
    "ruinedOrgasmsMax": "ruined_orgasms_max",
    "finaleOrgasmProb": "finale_orgasm_prob",
    "finaleDeniedProb": "finale_denied_prob",
    "finaleRuinedProb": "finale_ruined_prob",
    "taskFrequency": "task_frequency_s",
    "taskFrequencySec": "task_frequency_s",
    "slideDuration": "slide_duration_s",
}


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def _finite(value: Any, fallback: float) -> float:
    """*value* as a float, or *fallback* when it is NaN, infinite or not a number."""
    try:
        v = float(value)
    except (TypeError, ValueError):
        return float(fallback)
    return v if math.isfinite(v) else float(fallback)


@dataclass(frozen=True)
class GameConfig:
    """
    Read-only snapshot of session parameters.

    Attributes:
        game_duration_min/max: Active session length bounds in minutes
        stroke_speed_min/max: Cadence bounds in beats per second
        edges_min/max: Number of scheduled edge events
        edge_cooldown_s: Hands-off hold at the end of an edge
        ruined_orgasms_min/max: Number of scheduled ruin events
        finale_*_prob: Finale weights (need not sum to 100)
        task_frequency_s: Interval between task selections
        task_duration_s: Countdown before a selected task auto-completes
        slide_duration_s: Media dwell for items without a known duration
        tasks: Catalog action id -> enabled
    """
    game_duration_min: float = 5.0
    game_duration_max: float = 15.0

    stroke_speed_min: float = 0.25
    stroke_speed_max: float = 4.0

    edges_min: int = 0
    edges_max: int = 3
    edge_cooldown_s: float = 30.0

    ruined_orgasms_min: int = 0
    ruined_orgasms_max: int = 0

    finale_orgasm_prob: float = 50.0
    finale_denied_prob: float = 20.0
    finale_ruined_prob: float = 30.0

    task_frequency_s: float = 15.0
    task_duration_s: float = 30.0
    slide_duration_s: float = 10.0

    voice_enabled: bool = True
    ambient_enabled: bool = True
    metronome_enabled: bool = True
    master_volume: float = 0.8
    ui_volume: float = 0.7

    tasks: Dict[str, bool] = field(default_factory=lambda: dict(DEFAULT_TASK_TOGGLES))

    def sanitized(self) -> GameConfig:
        """Return a copy with every range clamped into a usable shape.

        Paired bounds keep their minimum and raise the maximum to at least
        the minimum. A non-finite minimum falls back to its default and a
        non-finite maximum to the minimum. Never raises.
        """
        d = GameConfig.__dataclass_fields__

        def base(name: str) -> float:
            return _finite(getattr(self, name), d[name].default)

        dur_min = max(MIN_DURATION_MINUTES, base("game_duration_min"))
        dur_max = max(dur_min, _finite(self.game_duration_max, dur_min))

        speed_min = max(MIN_STROKE_SPEED, base("stroke_speed_min"))
        speed_max = max(speed_min, _finite(self.stroke_speed_max, speed_min))

        edges_min = max(0, int(base("edges_min")))
        edges_max = max(edges_min, int(_finite(self.edges_max, edges_min)))

        ruins_min = max(0, int(base("ruined_orgasms_min")))
        ruins_max = max(ruins_min, int(_finite(self.ruined_orgasms_max, ruins_min)))

        return replace(
            self,
            game_duration_min=dur_min,
            game_duration_max=dur_max,
            stroke_speed_min=speed_min,
            stroke_speed_max=speed_max,
            edges_min=edges_min,
            edges_max=edges_max,
            edge_cooldown_s=max(0.0, base("edge_cooldown_s")),
            ruined_orgasms_min=ruins_min,
            ruined_orgasms_max=ruins_max,
            finale_orgasm_prob=max(0.0, base("finale_orgasm_prob")),
            finale_denied_prob=max(0.0, base("finale_denied_prob")),
            finale_ruined_prob=max(0.0, base("finale_ruined_prob")),
            task_frequency_s=max(MIN_TASK_FREQUENCY_S, base("task_frequency_s")),
            task_duration_s=max(1.0, base("task_duration_s")),
            slide_duration_s=max(1.0, base("slide_duration_s")),
            master_volume=_clamp(base("master_volume"), 0.0, 1.0),
            ui_volume=_clamp(base("ui_volume"), 0.0, 1.0),
            tasks=dict(self.tasks),
        )

    @property
    def mid_speed(self) -> float:
        return (self.stroke_speed_min + self.stroke_speed_max) / 2.0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["tasks"] = dict(self.tasks)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> GameConfig:
        """Deserialize from dict, accepting snake_case or legacy camelCase keys.

        Unknown keys are ignored; values that cannot be coerced to the field
        type fall back to the default.
        """
        defaults = cls()
        known = {f.name: f for f in fields(cls)}
        values: Dict[str, Any] = {}
        for raw_key, raw_value in (data or {}).items():
            key = _LEGACY_KEYS.get(raw_key, raw_key)
            if key not in known:
                logger.debug("[config] Ignoring unknown key %r", raw_key)
                continue
            default = getattr(defaults, key)
            coerced = _coerce(raw_value, default)
            if coerced is None:
                logger.warning("[config] Bad value for %s: %r (using default %r)", key, raw_value, default)
                continue
            values[key] = coerced
        if "tasks" in values:
            merged = dict(DEFAULT_TASK_TOGGLES)
            merged.update(values["tasks"])
            values["tasks"] = merged
        return cls(**values)

    def with_updates(self, **updates: Any) -> GameConfig:
        """Return a copy with *updates* applied (coerced like ``from_dict``)."""
        data = self.to_dict()
        data.update(updates)
        return GameConfig.from_dict(data)


def _coerce(value: Any, default: Any) -> Any:
    """Coerce *value* to the type of *default*; None when impossible."""
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in {"1", "true", "yes", "on"}:
                return True
            if lowered in {"0", "false", "no", "off"}:
                return False
            return None
        if isinstance(value, (int, float)):
            return bool(value)
        return None
    if isinstance(default, (int, float)):
        try:
            number = float(value)
        except (TypeError, ValueError, OverflowError):
            return None
        if not math.isfinite(number):
            return None
        return int(number) if isinstance(default, int) else number
    if isinstance(default, dict):
        if not isinstance(value, dict):
            return None
        return {str(k): bool(v) for k, v in value.items()}
    return value


def load_config(path: Optional[Path] = None) -> GameConfig:
    """Load a config JSON file.

    A missing file yields defaults; unreadable or invalid JSON is logged and
    also yields defaults.
    """
    path = Path(path) if path else get_config_path()
    if not path.exists():
        logger.debug("[config] No config at %s, using defaults", path)
        return GameConfig()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("[config] Failed to read %s: %s (using defaults)", path, exc)
        return GameConfig()
    if not isinstance(data, dict):
        logger.warning("[config] %s does not contain a JSON object (using defaults)", path)
        return GameConfig()
    return GameConfig.from_dict(data)


def save_config(config: GameConfig, path: Optional[Path] = None) -> Path:
    """Save config as indented JSON, creating parent directories.

    Raises:
        OSError: If the file cannot be written
    """
    path = Path(path) if path else get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2, ensure_ascii=False)
    logger.info("[config] Saved config to %s", path)
    return path

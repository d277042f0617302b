"""Pacesetter command-line interface.

Argparse-based CLI that initializes logging early. Exposed via
``python -m pacesetter``.

Commands:
    run        Start the GUI (default)
    plan       Print a session plan as JSON
    simulate   Fast-forward one full session headless and print the summary
    config     Show, edit or reset the saved configuration
    selftest   Import-and-init smoke test
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import random
from pathlib import Path
from typing import Any, Optional

# Suppress pygame support prompt so JSON outputs (plan, simulate --json) remain clean.
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

from .config import DEFAULT_TASK_TOGGLES, GameConfig, load_config, save_config
from .logging_utils import LogMode, get_default_log_path, setup_logging
from .platform_paths import get_config_path


def _add_logging_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Set log level (default: INFO)",
    )
    parser.add_argument(
        "--log-mode",
        choices=[mode.value for mode in LogMode],
        default=LogMode.NORMAL.value,
        help="Logging preset: quiet suppresses console info, perf forces DEBUG and beat traces",
    )
    parser.add_argument(
        "--log-file",
        default=str(get_default_log_path()),
        help="Path to log file (default: per-user Pacesetter directory)",
    )
    parser.add_argument(
        "--log-format",
        choices=["plain", "json"],
        default="plain",
        help="Log format (plain or json)",
    )


def _build_logging_parent() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    _add_logging_args(parent)
    return parent


def _load(args) -> GameConfig:
    path = getattr(args, "config", None)
    return load_config(Path(path) if path else None)


def _rng(args) -> random.Random:
    seed = getattr(args, "seed", None)
    return random.Random(seed) if seed is not None else random.Random()


def _parse_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def apply_overrides(config: GameConfig, pairs: list[str]) -> GameConfig:
    """Apply ``KEY=VALUE`` overrides; ``tasks.<id>=false`` toggles an action.

    Raises:
        ValueError: On a malformed pair or an unknown key
    """
    data = config.to_dict()
    for pair in pairs:
        if "=" not in pair:
            raise ValueError(f"expected KEY=VALUE, got {pair!r}")
        key, raw = pair.split("=", 1)
        key = key.strip()
        value = _parse_value(raw.strip())
        if key.startswith("tasks."):
            action_id = key[len("tasks."):]
            if action_id not in DEFAULT_TASK_TOGGLES:
                raise ValueError(f"unknown task {action_id!r}")
            data["tasks"][action_id] = bool(value)
            continue
        if key not in data:
            raise ValueError(f"unknown config key {key!r}")
        data[key] = value
    return GameConfig.from_dict(data)


def selftest() -> int:
    """Fast import-and-init smoke test. Returns exit code."""
    try:
        import PyQt6  # noqa: F401  # Ensure UI deps import
        import qasync  # noqa: F401
        from .engine import audio, cadence, clock, tones  # noqa: F401
        from .session.runner import SessionRunner

        runner = SessionRunner(GameConfig(), rng=random.Random(0))
        summary = asyncio.run(runner.simulate(step=0.25, max_seconds=5.0))
        runner.stop()
        if summary.total_strokes <= 0:
            raise RuntimeError("cadence produced no beats")

        msg = "Selftest OK: imports + headless session tick"
        logging.getLogger(__name__).info(msg)
        print(msg)
        return 0
    except Exception as e:
        logging.getLogger(__name__).error("Selftest failed: %s", e)
        return 1


def cmd_plan(args) -> int:
    from .session.plan import create_plan

    plan = create_plan(_load(args), _rng(args))
    print(json.dumps(plan.to_dict(), indent=2))
    return 0


def cmd_simulate(args) -> int:
    from .session.runner import SessionRunner

    config = _load(args)
    runner = SessionRunner(
        config,
        rng=_rng(args),
        gender=getattr(args, "gender", None),
        intensity=getattr(args, "intensity", None),
    )
    summary = asyncio.run(runner.simulate(step=args.step, max_seconds=args.max_seconds))
    runner.stop()
    if args.json:
        print(json.dumps(summary.to_dict(), indent=2))
    else:
        print(summary.format_text())
    return 0


def cmd_config(args) -> int:
    path = Path(args.config) if args.config else get_config_path()
    if args.path:
        print(str(path))
        return 0
    if args.reset:
        config = GameConfig()
        save_config(config, path)
        print(json.dumps(config.to_dict(), indent=2))
        return 0
    config = load_config(path)
    if args.set:
        try:
            config = apply_overrides(config, args.set)
        except ValueError as e:
            logging.getLogger(__name__).error("config: %s", e)
            return 1
        save_config(config, path)
    print(json.dumps(config.to_dict(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    logging_parent = _build_logging_parent()
    parser = argparse.ArgumentParser(
        description="Pacesetter CLI",
        parents=[logging_parent],
    )
    sub = parser.add_subparsers(dest="command", required=False)

    def add_subparser(name: str, **kwargs: object) -> argparse.ArgumentParser:
        parents = list(kwargs.pop("parents", []))
        parents.insert(0, logging_parent)
        return sub.add_parser(name, parents=parents, **kwargs)

    session_parent = argparse.ArgumentParser(add_help=False)
    session_parent.add_argument("--config", type=str, default=None, help="Path to config.json (default: per-user config)")
    session_parent.add_argument("--seed", type=int, default=None, help="Seed the random source for a reproducible session")

    filter_parent = argparse.ArgumentParser(add_help=False)
    filter_parent.add_argument("--gender", type=str, default=None, help="Only tasks applicable to this gender")
    filter_parent.add_argument(
        "--intensity",
        choices=["light", "moderate", "intense"],
        default=None,
        help="Highest task intensity tier to allow",
    )

    # GUI launcher
    p_run = add_subparser("run", parents=[session_parent, filter_parent], help="Start the GUI (default)")
    p_run.add_argument("--media-dir", type=str, default=None, help="Folder of images/videos to cycle through")
    p_run.add_argument("--voice-dir", type=str, default=None, help="Folder with <line>/<n>.mp3 voice clips")
    p_run.add_argument("--ambient-dir", type=str, default=None, help="Folder with ambient cue clips")

    add_subparser("plan", parents=[session_parent], help="Print a session plan as JSON")

    p_sim = add_subparser("simulate", parents=[session_parent, filter_parent], help="Run one session headless and print the summary")
    p_sim.add_argument("--step", type=float, default=0.05, help="Logical seconds per simulated frame (default 0.05)")
    p_sim.add_argument("--max-seconds", type=float, default=None, help="Stop after N logical seconds")
    p_sim.add_argument("--json", action="store_true", help="Print the summary as JSON")

    p_cfg = add_subparser("config", help="Show or edit the saved configuration")
    p_cfg.add_argument("--config", type=str, default=None, help="Path to config.json (default: per-user config)")
    cfg_mode = p_cfg.add_mutually_exclusive_group()
    cfg_mode.add_argument("--show", action="store_true", help="Print the effective configuration (default)")
    cfg_mode.add_argument("--path", action="store_true", help="Print the config file location")
    cfg_mode.add_argument("--reset", action="store_true", help="Overwrite the config with defaults")
    p_cfg.add_argument("--set", action="append", metavar="KEY=VALUE", default=[], help="Set a value (repeatable); tasks.<id>=false toggles a task")

    add_subparser("selftest", help="Quick import/init smoke test")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging before doing any work
    if getattr(args, "log_mode", None):
        os.environ["PACESETTER_LOG_MODE"] = args.log_mode
    debug_env = os.environ.get("PACESETTER_DEBUG", "0") in ("1", "true", "True", "yes")
    setup_logging(
        level="DEBUG" if debug_env else args.log_level,
        log_file=args.log_file,
        json_format=(args.log_format == "json"),
        log_mode=args.log_mode,
        add_console=True,
    )

    cmd = args.command or "run"
    if cmd == "run":
        # Import app lazily so headless commands never touch Qt
        from .app import run as run_gui  # local import
        return run_gui(
            config_path=getattr(args, "config", None),
            media_dir=getattr(args, "media_dir", None),
            voice_dir=getattr(args, "voice_dir", None),
            ambient_dir=getattr(args, "ambient_dir", None),
            seed=getattr(args, "seed", None),
            gender=getattr(args, "gender", None),
            intensity=getattr(args, "intensity", None),
        )
    if cmd == "plan":
        return cmd_plan(args)
    if cmd == "simulate":
        return cmd_simulate(args)
    if cmd == "config":
        return cmd_config(args)
    if cmd == "selftest":
        return selftest()

    parser.print_help()
    return 2


if __name__ == "__main__":  # Allow direct module execution
    raise SystemExit(main())

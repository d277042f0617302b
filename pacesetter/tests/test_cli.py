import json
import subprocess
import sys

import pytest

from pacesetter import cli
from pacesetter.config import GameConfig, load_config, save_config


def run_cmd(args):
    python = sys.executable
    result = subprocess.run([python, "-m", "pacesetter", *args], capture_output=True, text=True)
    return result.returncode, result.stdout, result.stderr


def test_help_exits_zero():
    code, out, err = run_cmd(["--help"])
    assert code == 0
    assert "Pacesetter CLI" in out


@pytest.mark.slow
def test_selftest_exits_zero():
    code, out, err = run_cmd(["selftest"])
    assert code == 0, err
    assert "Selftest OK" in out


@pytest.mark.slow
def test_simulate_json_summary(tmp_path):
    path = tmp_path / "short.json"
    save_config(GameConfig(game_duration_min=1, game_duration_max=1, finale_orgasm_prob=0, finale_denied_prob=100, finale_ruined_prob=0), path)
    code, out, err = run_cmd(["simulate", "--config", str(path), "--seed", "4", "--step", "0.25", "--json"])
    assert code == 0, err
    summary = json.loads(out)
    assert summary["complete"] is True
    assert summary["finale_type"] == "denied"
    assert summary["total_strokes"] > 0


def test_logging_flags_after_subcommand_run():
    parser = cli.build_parser()
    args = parser.parse_args(["run", "--log-level", "DEBUG", "--log-format", "json", "--log-mode", "perf"])
    assert args.command == "run"
    assert args.log_level == "DEBUG"
    assert args.log_format == "json"
    assert args.log_mode == "perf"


def test_session_flags_parse():
    parser = cli.build_parser()
    args = parser.parse_args(["simulate", "--seed", "3", "--intensity", "moderate", "--gender", "female", "--max-seconds", "30"])
    assert args.seed == 3
    assert args.intensity == "moderate"
    assert args.gender == "female"
    assert args.max_seconds == 30.0
    assert args.step == 0.05
    args = parser.parse_args(["run", "--media-dir", "pics", "--log-file", "custom.log"])
    assert args.media_dir == "pics"
    assert args.log_file.endswith("custom.log")


def test_plan_prints_deterministic_json(tmp_path, capsys):
    parser = cli.build_parser()
    args = parser.parse_args(["plan", "--seed", "5", "--config", str(tmp_path / "none.json")])
    assert cli.cmd_plan(args) == 0
    first = json.loads(capsys.readouterr().out)
    assert cli.cmd_plan(args) == 0
    second = json.loads(capsys.readouterr().out)
    assert first == second
    assert 300.0 <= first["duration_seconds"] <= 900.0
    assert first["finale_type"] in {"orgasm", "denied", "ruined"}


def test_config_set_and_reset(tmp_path, capsys):
    path = tmp_path / "cfg.json"
    parser = cli.build_parser()
    args = parser.parse_args([
        "config", "--config", str(path),
        "--set", "edges_max=6",
        "--set", "tasks.head-only=true",
        "--set", "voice_enabled=false",
    ])
    assert cli.cmd_config(args) == 0
    capsys.readouterr()
    saved = load_config(path)
    assert saved.edges_max == 6
    assert saved.tasks["head-only"] is True
    assert saved.voice_enabled is False

    args = parser.parse_args(["config", "--config", str(path), "--reset"])
    assert cli.cmd_config(args) == 0
    assert load_config(path) == GameConfig()

    args = parser.parse_args(["config", "--config", str(path), "--path"])
    assert cli.cmd_config(args) == 0
    assert capsys.readouterr().out.strip().endswith("cfg.json")


def test_config_rejects_unknown_key(tmp_path):
    parser = cli.build_parser()
    args = parser.parse_args(["config", "--config", str(tmp_path / "c.json"), "--set", "nope=1"])
    assert cli.cmd_config(args) == 1
    assert not (tmp_path / "c.json").exists()


def test_apply_overrides_errors():
    with pytest.raises(ValueError):
        cli.apply_overrides(GameConfig(), ["missing-equals"])
    with pytest.raises(ValueError):
        cli.apply_overrides(GameConfig(), ["tasks.unknown=true"])
    cfg = cli.apply_overrides(GameConfig(), ["stroke_speed_max=2.5", "edges_min=1"])
    assert cfg.stroke_speed_max == 2.5
    assert cfg.edges_min == 1


def test_config_set_infinite_count_keeps_default(tmp_path, capsys):
    path = tmp_path / "cfg.json"
    parser = cli.build_parser()
    args = parser.parse_args(["config", "--config", str(path), "--set", "edges_max=inf", "--set", "edges_min=2"])
    assert cli.cmd_config(args) == 0
    assert json.loads(capsys.readouterr().out)["edges_max"] == GameConfig().edges_max
    saved = load_config(path)
    assert saved.edges_max == GameConfig().edges_max
    assert saved.edges_min == 2

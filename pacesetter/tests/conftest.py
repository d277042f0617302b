"""pytest configuration file."""

import logging
import os
import random

import pytest

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from pacesetter.engine.audio import AudioSink

pytest_plugins = [
    "pytest_asyncio",
]


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (may take several seconds)"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


@pytest.fixture(autouse=True, scope="session")
def _silence_logs():
    logging.getLogger("asyncio").setLevel(logging.ERROR)
    logging.getLogger("pacesetter.engine.cadence").setLevel(logging.WARNING)
    yield


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path, monkeypatch):
    # keep per-user config and logs out of the real home directory
    monkeypatch.setenv("PACESETTER_HOME", str(tmp_path / "home"))
    yield


class RecordingAudioSink(AudioSink):
    """Silent sink that records every call for assertions."""

    def __init__(self):
        self.calls = []

    def duck(self):
        self.calls.append(("duck",))

    def unduck(self):
        self.calls.append(("unduck",))

    def set_intensity(self, speed):
        self.calls.append(("intensity", speed))

    def play_voice_line(self, key):
        self.calls.append(("voice", key))

    def play_ambient_cue(self, tier):
        self.calls.append(("ambient", tier))

    def play_tick(self):
        self.calls.append(("tick",))

    def update(self):
        pass

    def stop(self):
        self.calls.append(("stop",))

    def named(self, name):
        return [c for c in self.calls if c[0] == name]


@pytest.fixture
def audio():
    return RecordingAudioSink()


@pytest.fixture
def rng():
    return random.Random(1234)

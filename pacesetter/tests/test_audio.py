"""Tests for audio helpers: intensity tiers, ambient cues and the tick tone."""

import logging
import random

import numpy as np
import pytest

from pacesetter.config import GameConfig
from pacesetter.engine.audio import (
    AmbientCueScheduler,
    AudioSink,
    IntensityTier,
    PygameAudioSink,
    VoiceLine,
    intensity_for_speed,
    next_ambient_delay,
)
from pacesetter.engine.clock import SessionClock
from pacesetter.engine.tones import clear_tone_cache, generate_tick_int16_stereo


@pytest.mark.parametrize(
    "speed,tier",
    [
        (0.0, IntensityTier.LIGHT),
        (0.99, IntensityTier.LIGHT),
        (1.0, IntensityTier.MODERATE),
        (2.49, IntensityTier.MODERATE),
        (2.5, IntensityTier.INTENSE),
        (3.99, IntensityTier.INTENSE),
        (4.0, IntensityTier.HEAVY),
    ],
)
def test_intensity_for_speed(speed, tier):
    assert intensity_for_speed(speed) is tier


def test_ambient_delay_is_shorter_at_high_cadence():
    rng = random.Random(0)
    fast = [next_ambient_delay(3.0, rng) for _ in range(100)]
    slow = [next_ambient_delay(1.0, rng) for _ in range(100)]
    assert all(3.0 <= d <= 8.0 for d in fast)
    assert all(10.0 <= d <= 15.0 for d in slow)


def test_null_sink_accepts_every_call():
    sink = AudioSink()
    sink.duck()
    sink.unduck()
    sink.set_intensity(2.0)
    sink.play_voice_line(VoiceLine.INTRO)
    sink.play_ambient_cue(IntensityTier.HEAVY)
    sink.play_tick()
    sink.update()
    sink.stop()


def test_ambient_scheduler_plays_only_while_moving(audio):
    clock = SessionClock()
    speed = {"value": 3.0}
    sched = AmbientCueScheduler(clock, audio, lambda: speed["value"], rng=random.Random(1))
    sched.start()
    assert sched.running
    clock.advance(60.0)
    played = sched.cues_played
    assert played >= 7
    assert {c[1] for c in audio.named("ambient")} == {IntensityTier.INTENSE}

    speed["value"] = 0.0
    clock.advance(120.0)
    assert sched.cues_played == played

    sched.stop()
    assert not sched.running


def test_ambient_scheduler_stops_with_paused_clock(audio):
    clock = SessionClock()
    sched = AmbientCueScheduler(clock, audio, lambda: 1.0, rng=random.Random(1))
    sched.start()
    clock.pause()
    clock.advance(300.0)
    assert sched.cues_played == 0


def test_tick_tone_shape_and_decay():
    clear_tone_cache()
    pcm = generate_tick_int16_stereo(duration_s=0.05, sample_rate=44100)
    assert pcm.dtype == np.int16
    assert pcm.shape == (2205, 2)
    assert np.array_equal(pcm[:, 0], pcm[:, 1])
    head = np.abs(pcm[:200, 0]).max()
    tail = np.abs(pcm[-200:, 0]).max()
    assert head > tail
    assert generate_tick_int16_stereo(duration_s=0.05, sample_rate=44100) is pcm


def test_voice_path_resolution(tmp_path, monkeypatch):
    monkeypatch.setenv("SDL_AUDIODRIVER", "dummy")
    (tmp_path / "intro").mkdir()
    (tmp_path / "intro" / "1.ogg").write_bytes(b"")
    (tmp_path / "intro" / "3.mp3").write_bytes(b"")
    sink = PygameAudioSink(GameConfig(), voice_dir=tmp_path, rng=random.Random(0))
    try:
        assert sink.resolve_voice_path(VoiceLine.INTRO, 3) == tmp_path / "intro" / "3.mp3"
        assert sink.resolve_voice_path("intro", 1) == tmp_path / "intro" / "1.ogg"
        assert sink.resolve_voice_path(VoiceLine.INTRO, 2) is None
        assert sink.resolve_voice_path(VoiceLine.ORGASM, 1) is None
    finally:
        sink.stop()


class _BrokenChannel:
    def stop(self):
        raise RuntimeError("mixer gone")


def test_stop_logs_channel_errors_and_resets(monkeypatch, caplog):
    monkeypatch.setenv("SDL_AUDIODRIVER", "dummy")
    sink = PygameAudioSink(GameConfig(), rng=random.Random(0))
    sink._voice_chan = _BrokenChannel()
    sink._voice_playing = True
    sink._duck_count = 2
    with caplog.at_level(logging.DEBUG, logger="pacesetter.engine.audio"):
        sink.stop()
    assert any("channel stop failed" in r.getMessage() for r in caplog.records)
    assert sink._voice_playing is False
    assert sink._duck_count == 0

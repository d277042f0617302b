# pacesetter/engine/audio.py
"""
Audio/notification sink.

The session core talks to audio through ``AudioSink``: fire-and-forget calls
that never block and never raise into the caller. ``AudioSink`` itself is the
silent implementation used by tests and headless runs; ``PygameAudioSink``
plays voice lines, ambient cues and the metronome tick through the pygame
mixer.

Voice lines are looked up as ``<voice_dir>/<key>/<n>.(mp3|ogg|wav)`` with
``n`` drawn from 1..5 and a fallback to variant 1. Ambient clips are any audio
files under ``<ambient_dir>/<tier>/`` or, failing that, ``<ambient_dir>/``.
"""

from __future__ import annotations

import logging
import random
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional

import pygame

from .tones import generate_tick_int16_stereo

if TYPE_CHECKING:
    from ..config import GameConfig
    from .clock import SessionClock, TimerHandle


def clamp(x, a, b): return max(a, min(b, x))


class VoiceLine(str, Enum):
    INTRO = "intro"
    SETUP = "setup"
    RULES = "rules"
    PRAISE = "praise"
    TEASE = "tease"
    MOCK = "mock"
    COMMAND = "command"
    EDGE_BUILDUP = "edge_buildup"
    EDGE_RIDE = "edge_ride"
    EDGE_COOLDOWN = "edge_cooldown"
    RUIN_BUILDUP = "ruin_buildup"
    RUIN_MOMENT = "ruin_moment"
    RUIN_COOLDOWN = "ruin_cooldown"
    CLIMAX_BUILDUP = "climax_buildup"
    ORGASM = "orgasm"
    AFTERCARE = "aftercare"


class IntensityTier(str, Enum):
    LIGHT = "light"
    MODERATE = "moderate"
    INTENSE = "intense"
    HEAVY = "heavy"


# tier -> (clip length seconds, gain)
TIER_PROFILE: dict[IntensityTier, tuple[float, float]] = {
    IntensityTier.LIGHT: (3.0, 0.4),
    IntensityTier.MODERATE: (5.0, 0.6),
    IntensityTier.INTENSE: (8.0, 0.8),
    IntensityTier.HEAVY: (12.0, 1.0),
}

VOICE_VARIANTS = 5
AUDIO_EXTS = (".mp3", ".ogg", ".wav")
AMBIENT_LEVEL = 0.3
DUCKED_LEVEL = 0.1
FAST_CUE_SPEED = 2.0
FAST_CUE_DELAY_S = 3.0
SLOW_CUE_DELAY_S = 10.0
CUE_JITTER_S = 5.0


def intensity_for_speed(speed: float) -> IntensityTier:
    if speed < 1.0:
        return IntensityTier.LIGHT
    if speed < 2.5:
        return IntensityTier.MODERATE
    if speed < 4.0:
        return IntensityTier.INTENSE
    return IntensityTier.HEAVY


def next_ambient_delay(speed: float, rng: random.Random) -> float:
    """Seconds until the next ambient cue: quicker at high cadence."""
    base = FAST_CUE_DELAY_S if speed > FAST_CUE_SPEED else SLOW_CUE_DELAY_S
    return base + rng.uniform(0.0, CUE_JITTER_S)


class AudioSink:
    """Fire-and-forget audio contract. This base class is the silent sink."""

    def duck(self) -> None:
        pass

    def unduck(self) -> None:
        pass

    def set_intensity(self, speed: float) -> None:
        pass

    def play_voice_line(self, key: VoiceLine | str) -> None:
        pass

    def play_ambient_cue(self, tier: IntensityTier) -> None:
        pass

    def play_tick(self) -> None:
        pass

    def update(self) -> None:
        """Per-frame housekeeping (e.g. unducking once a voice line ends)."""

    def stop(self) -> None:
        pass


class PygameAudioSink(AudioSink):
    """
    - Voice channel: one line at a time; ambient is ducked while it plays
    - Ambient channel: short tier-scaled slices of library clips
    - Tick channel: synthesized metronome click
    """

    def __init__(
        self,
        config: "GameConfig",
        *,
        voice_dir: Optional[str | Path] = None,
        ambient_dir: Optional[str | Path] = None,
        rng: Optional[random.Random] = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.config = config
        self.voice_dir = Path(voice_dir) if voice_dir else None
        self.ambient_dir = Path(ambient_dir) if ambient_dir else None
        self.rng = rng or random.Random()

        self.init_ok = False
        self._voice_chan = None
        self._ambient_chan = None
        self._tick_chan = None
        self._tick_sound = None
        self._sounds: dict[Path, "pygame.mixer.Sound"] = {}
        self._ambient_clips: dict[Optional[IntensityTier], list[Path]] = {}
        self._duck_count = 0
        self._voice_playing = False
        self._tier = IntensityTier.LIGHT

        try:
            pygame.mixer.pre_init(44100, -16, 2, 512)
            pygame.mixer.init()
            pygame.mixer.set_num_channels(max(8, pygame.mixer.get_num_channels()))
            pygame.mixer.set_reserved(3)
            self._voice_chan = pygame.mixer.Channel(0)
            self._ambient_chan = pygame.mixer.Channel(1)
            self._tick_chan = pygame.mixer.Channel(2)
            self.init_ok = True
            self.logger.info("[audio] pygame mixer initialized")
        except Exception as e:
            self.logger.error("[audio] mixer init failed: %s", e)
            return

        try:
            self._tick_sound = pygame.sndarray.make_sound(generate_tick_int16_stereo())
        except Exception as e:
            self.logger.warning("[audio] tick synthesis failed: %s (metronome silent)", e)
            self._tick_sound = None

        self._scan_ambient()

    # -------- loading --------------------------------------------------------
    def _scan_ambient(self) -> None:
        if not self.ambient_dir or not self.ambient_dir.is_dir():
            return
        for tier in IntensityTier:
            sub = self.ambient_dir / tier.value
            if sub.is_dir():
                self._ambient_clips[tier] = sorted(p for p in sub.iterdir() if p.suffix.lower() in AUDIO_EXTS)
        self._ambient_clips[None] = sorted(
            p for p in self.ambient_dir.iterdir() if p.is_file() and p.suffix.lower() in AUDIO_EXTS
        )
        total = sum(len(v) for v in self._ambient_clips.values())
        self.logger.info("[audio] %d ambient clips under %s", total, self.ambient_dir)

    def _load(self, path: Path):
        sound = self._sounds.get(path)
        if sound is not None:
            return sound
        try:
            sound = pygame.mixer.Sound(str(path))
        except Exception as e:
            self.logger.warning("[audio] load error %s: %s", path, e)
            return None
        self._sounds[path] = sound
        return sound

    def resolve_voice_path(self, key: VoiceLine | str, variant: int) -> Optional[Path]:
        if not self.voice_dir:
            return None
        name = key.value if isinstance(key, VoiceLine) else str(key)
        for ext in AUDIO_EXTS:
            candidate = self.voice_dir / name / f"{variant}{ext}"
            if candidate.is_file():
                return candidate
        return None

    # -------- ducking --------------------------------------------------------
    def _ambient_volume(self) -> float:
        level = DUCKED_LEVEL if self._duck_count > 0 else AMBIENT_LEVEL
        return clamp(level * self.config.master_volume, 0, 1)

    def duck(self) -> None:
        self._duck_count += 1
        if self._ambient_chan is not None:
            self._ambient_chan.set_volume(self._ambient_volume())

    def unduck(self) -> None:
        self._duck_count = max(0, self._duck_count - 1)
        if self._ambient_chan is not None:
            self._ambient_chan.set_volume(self._ambient_volume())

    # -------- playback -------------------------------------------------------
    def set_intensity(self, speed: float) -> None:
        tier = intensity_for_speed(speed)
        if tier is not self._tier:
            self.logger.debug("[audio] intensity %s -> %s (speed=%.2f)", self._tier.value, tier.value, speed)
            self._tier = tier

    def play_voice_line(self, key: VoiceLine | str) -> None:
        if not self.init_ok or not self.config.voice_enabled:
            return
        variant = self.rng.randint(1, VOICE_VARIANTS)
        path = self.resolve_voice_path(key, variant) or self.resolve_voice_path(key, 1)
        if path is None:
            self.logger.debug("[audio] no voice clip for %s", key)
            return
        sound = self._load(path)
        if sound is None:
            return
        if self._voice_playing:
            self._voice_chan.stop()
        else:
            self.duck()
            self._voice_playing = True
        self._voice_chan.play(sound)
        self._voice_chan.set_volume(clamp(self.config.master_volume, 0, 1))

    def play_ambient_cue(self, tier: IntensityTier) -> None:
        if not self.init_ok or not self.config.ambient_enabled:
            return
        clips = self._ambient_clips.get(tier) or self._ambient_clips.get(None) or []
        if not clips:
            return
        sound = self._load(self.rng.choice(clips))
        if sound is None:
            return
        length_s, gain = TIER_PROFILE[tier]
        self._ambient_chan.play(sound, maxtime=int(length_s * 1000), fade_ms=200)
        self._ambient_chan.set_volume(clamp(gain * self._ambient_volume() / AMBIENT_LEVEL, 0, 1))

    def play_tick(self) -> None:
        if not self.init_ok or not self.config.metronome_enabled or self._tick_sound is None:
            return
        self._tick_chan.play(self._tick_sound)
        self._tick_chan.set_volume(clamp(self.config.master_volume * self.config.ui_volume, 0, 1))

    def update(self) -> None:
        if self._voice_playing and self._voice_chan is not None and not self._voice_chan.get_busy():
            self._voice_playing = False
            self.unduck()

    def stop(self) -> None:
        for chan in (self._voice_chan, self._ambient_chan, self._tick_chan):
            if chan is not None:
                try:
                    chan.stop()
                except Exception as e:
                    self.logger.debug("[audio] channel stop failed: %s", e)
        self._voice_playing = False
        self._duck_count = 0


class AmbientCueScheduler:
    """Plays an ambient cue at the current intensity tier on a jittered cadence.

    Runs on the session clock, so cues stop while the session is paused.
    A cue is only played while *speed_source* reports a non-zero cadence.
    """

    def __init__(
        self,
        clock: "SessionClock",
        sink: AudioSink,
        speed_source: Callable[[], float],
        *,
        rng: Optional[random.Random] = None,
    ):
        self.clock = clock
        self.sink = sink
        self.speed_source = speed_source
        self.rng = rng or random.Random()
        self.cues_played = 0
        self._handle: Optional["TimerHandle"] = None
        self.logger = logging.getLogger(__name__)

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        if self._handle is not None:
            return
        self._schedule()

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self) -> None:
        delay = next_ambient_delay(self.speed_source(), self.rng)
        self._handle = self.clock.call_later(delay, self._fire, name="ambient-cue")

    def _fire(self) -> None:
        speed = self.speed_source()
        if speed > 0:
            tier = intensity_for_speed(speed)
            self.sink.play_ambient_cue(tier)
            self.cues_played += 1
            self.logger.debug("[audio] ambient cue %s (speed=%.2f)", tier.value, speed)
        self._schedule()

from __future__ import annotations

import numpy as np


_TICK_CACHE: dict[tuple[int, float, float, float, float], np.ndarray] = {}


def generate_tick_int16_stereo(
    *,
    freq_hz: float = 800.0,
    duration_s: float = 0.05,
    sample_rate: int = 44100,
    peak: float = 0.3,
    floor: float = 0.01,
) -> np.ndarray:
    """Generate the short metronome tick played on every beat.

    A sine partial at *freq_hz* with an exponential decay from *peak* to
    *floor* across the buffer, which keeps the click soft at high cadences.

    Returns:
        numpy int16 array shaped (n_samples, 2)
    """

    duration_s = float(max(0.005, duration_s))
    sample_rate = int(max(8000, sample_rate))
    peak = float(max(0.01, min(0.95, peak)))
    floor = float(max(1e-4, min(peak, floor)))

    cache_key = (sample_rate, float(freq_hz), duration_s, peak, floor)
    cached = _TICK_CACHE.get(cache_key)
    if cached is not None:
        return cached

    n = int(round(duration_s * sample_rate))
    t = np.arange(n, dtype=np.float64) / float(sample_rate)

    # exponential ramp peak -> floor over the buffer
    env = peak * (floor / peak) ** (t / duration_s)
    sig = np.sin(2.0 * np.pi * float(freq_hz) * t) * env

    stereo = np.stack([sig, sig], axis=1)
    pcm = np.clip(stereo * 32767.0, -32768.0, 32767.0).astype(np.int16)
    _TICK_CACHE[cache_key] = pcm
    return pcm


def clear_tone_cache() -> None:
    _TICK_CACHE.clear()

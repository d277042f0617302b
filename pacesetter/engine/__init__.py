"""Engine module for Pacesetter: clock, cadence, audio."""

from .clock import SessionClock, TimerHandle
from .audio import AudioSink, PygameAudioSink, AmbientCueScheduler, VoiceLine, IntensityTier, intensity_for_speed
from .cadence import CadenceEngine, CadencePhase, CadenceSnapshot, FlowKind, EDGE_PHASES, RUIN_PHASES, FLOW_PHASES

__all__ = [
    "SessionClock",
    "TimerHandle",
    "AudioSink",
    "PygameAudioSink",
    "AmbientCueScheduler",
    "VoiceLine",
    "IntensityTier",
    "intensity_for_speed",
    "CadenceEngine",
    "CadencePhase",
    "CadenceSnapshot",
    "FlowKind",
    "EDGE_PHASES",
    "RUIN_PHASES",
    "FLOW_PHASES",
]

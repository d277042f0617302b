"""Qt user interface for Pacesetter."""

from .session_window import BeatMeter, SessionWindow

__all__ = ["BeatMeter", "SessionWindow"]

"""Pacesetter - timed cadence session controller."""

__app_name__ = "Pacesetter"
__version__ = "0.3.0"

__all__ = ["__app_name__", "__version__"]

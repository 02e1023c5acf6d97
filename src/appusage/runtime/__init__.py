"""Runtime wiring for app launch recording."""

from .launch_recorder import LaunchRecorder

__all__ = ["LaunchRecorder"]

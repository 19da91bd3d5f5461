"""NonStop: continuous playback orchestration for streaming music backends."""

from .engine import PlaybackEngine

__all__ = ["PlaybackEngine"]

"""Input layer - Audio loading and framing."""

from .loader import AudioLoader, iter_frames

__all__ = ["AudioLoader", "iter_frames"]

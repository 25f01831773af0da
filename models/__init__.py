"""Models package."""

from .video import Video

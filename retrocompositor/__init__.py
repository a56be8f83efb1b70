"""Compose numbered video clips into a retro-styled video with ffmpeg."""

__version__ = "0.1.0"
__all__ = ["errors", "styles", "video"]
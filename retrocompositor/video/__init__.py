"""Frames, clips, loading, processing and encoding of video."""

__all__ = ["types", "loader", "compositor", "processor"]
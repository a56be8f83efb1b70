"""Retro styles that change video frames, and the registry that names them."""

__all__ = ["base", "simple", "vhs", "registry"]
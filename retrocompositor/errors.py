"""Exception hierarchy used throughout the compositor."""

from __future__ import annotations

import os


class CompositorError(Exception):
    """Base class for every error raised by the compositor."""


class VideoError(CompositorError):
    """A video could not be loaded, processed or encoded."""


class VideoLoadError(VideoError):
    """A video or image file could not be loaded."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = os.fspath(path)
        super().__init__(f"Failed to load video: {self.path}")


class EncodingError(VideoError):
    """Encoding the output video failed."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Video encoding failed: {reason}")


class FrameProcessingError(VideoError):
    """Extracting or transforming a frame failed."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Frame processing failed: {reason}")
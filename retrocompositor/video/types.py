"""Frames, clips, output parameters and ordered clip sequences."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from operator import attrgetter
from pathlib import Path
from typing import Iterable, Iterator

import numpy as np
from PIL import Image

Color = tuple[int, int, int]

_SEQUENCE_NUMBER = re.compile(r"\+?[0-9]+")
_U32_MAX = 2**32 - 1
_SUPPORTED_EXTENSIONS = frozenset({"mp4", "avi", "mov", "mkv", "jpg", "jpeg", "png", "bmp"})


class Frame:
    """A single RGB video frame stored as a (height, width, 3) uint8 array."""

    __slots__ = ("pixels",)

    def __init__(self, pixels: np.ndarray) -> None:
        array = np.asarray(pixels)
        if array.ndim != 3 or array.shape[2] != 3:
            raise ValueError(
                f"expected an array of shape (height, width, 3), got {array.shape}"
            )
        if array.dtype != np.uint8:
            raise ValueError(f"expected uint8 pixels, got {array.dtype}")
        self.pixels = array

    @classmethod
    def new_black(cls, width: int, height: int) -> Frame:
        """Create a frame of the given size filled with black."""
        return cls(np.zeros((height, width, 3), dtype=np.uint8))

    @classmethod
    def new_filled(cls, width: int, height: int, color: Color) -> Frame:
        """Create a frame of the given size filled with one colour."""
        return cls(np.full((height, width, 3), color, dtype=np.uint8))

    @classmethod
    def from_image(cls, image: Image.Image) -> Frame:
        """Create a frame from a Pillow image, converting it to RGB."""
        return cls(np.array(image.convert("RGB"), dtype=np.uint8))

    @classmethod
    def from_rgb_bytes(cls, width: int, height: int, data: bytes) -> Frame | None:
        """Create a frame from packed RGB bytes, or None if there are too few."""
        required = width * height * 3
        if len(data) < required:
            return None
        flat = np.frombuffer(bytes(data), dtype=np.uint8)[:required]
        return cls(flat.reshape((height, width, 3)).copy())

    def width(self) -> int:
        return int(self.pixels.shape[1])

    def height(self) -> int:
        return int(self.pixels.shape[0])

    def _check_bounds(self, x: int, y: int) -> None:
        if not (0 <= x < self.width() and 0 <= y < self.height()):
            raise IndexError(
                f"pixel ({x}, {y}) outside {self.width()}x{self.height()} frame"
            )

    def get_pixel(self, x: int, y: int) -> Color:
        self._check_bounds(x, y)
        r, g, b = self.pixels[y, x]
        return int(r), int(g), int(b)

    def set_pixel(self, x: int, y: int, color: Color) -> None:
        self._check_bounds(x, y)
        self.pixels[y, x] = color

    def as_image(self) -> Image.Image:
        """Return the frame as a new Pillow RGB image."""
        return Image.fromarray(np.ascontiguousarray(self.pixels))

    def to_rgb_bytes(self) -> bytes:
        return self.pixels.tobytes()

    def copy(self) -> Frame:
        return Frame(self.pixels.copy())

    def save_png(self, path: str | os.PathLike[str]) -> None:
        """Write the frame to disk; the format follows the file extension."""
        self.as_image().save(path)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Frame):
            return NotImplemented
        return bool(np.array_equal(self.pixels, other.pixels))

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Frame({self.width()}x{self.height()})"


@dataclass
class VideoClip:
    """A video clip on disk together with whatever metadata is known."""

    path: Path
    sequence_number: int
    name: str
    duration: float | None = None
    fps: float | None = None
    resolution: tuple[int, int] | None = None

    def __post_init__(self) -> None:
        self.path = Path(self.path)

    @classmethod
    def from_path(cls, path: str | os.PathLike[str]) -> VideoClip | None:
        """Parse a name such as ``01_intro.mp4`` into sequence number and name."""
        path = Path(path)
        number, sep, name = path.stem.partition("_")
        if not sep or not _SEQUENCE_NUMBER.fullmatch(number):
            return None
        sequence_number = int(number)
        if sequence_number > _U32_MAX:
            return None
        return cls(path, sequence_number, name)

    def extension(self) -> str | None:
        suffix = self.path.suffix
        return suffix[1:] if suffix else None

    def is_supported(self) -> bool:
        return self.extension() in _SUPPORTED_EXTENSIONS


@dataclass
class VideoParams:
    """Output video settings."""

    fps: float = 30.0
    resolution: tuple[int, int] = (1920, 1080)
    codec: str = "h264"
    quality: int = 85


class VideoSequence:
    """Clips kept in ascending order of their sequence number."""

    def __init__(self) -> None:
        self._clips: list[VideoClip] = []

    @classmethod
    def from_clips(cls, clips: Iterable[VideoClip]) -> VideoSequence:
        sequence = cls()
        for clip in clips:
            sequence.add_clip(clip)
        return sequence

    def add_clip(self, clip: VideoClip) -> None:
        self._clips.append(clip)
        self._clips.sort(key=attrgetter("sequence_number"))

    def clips(self) -> list[VideoClip]:
        return list(self._clips)

    def get_clip(self, sequence_number: int) -> VideoClip | None:
        return next(
            (clip for clip in self._clips if clip.sequence_number == sequence_number),
            None,
        )

    def __len__(self) -> int:
        return len(self._clips)

    def __iter__(self) -> Iterator[VideoClip]:
        return iter(self._clips)
"""Encoding processed frames and audio into a finished video with ffmpeg."""

from __future__ import annotations

import asyncio
import logging
import math
import os
import shutil
import subprocess
import tempfile
import weakref
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

from retrocompositor.errors import EncodingError
from retrocompositor.video.types import Color, Frame, VideoParams

logger = logging.getLogger(__name__)


class SegmentLike(Protocol):
    """What the compositor needs from a processed segment."""

    end_time: float
    frames: Sequence[Frame]


@dataclass(frozen=True)
class EncodedVideo:
    """A video file written by the compositor."""

    path: str
    duration: float
    frame_count: int
    file_size: int


def ffmpeg_available() -> bool:
    """Whether an ``ffmpeg`` executable can be run."""
    try:
        result = subprocess.run(
            ["ffmpeg", "-version"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except OSError:
        return False
    return result.returncode == 0


def quality_to_crf(quality: int) -> int:
    """Map a 0-100 quality (higher is better) to an x264 CRF value in 0..51."""
    if not 0 <= quality <= 255:
        raise ValueError(f"quality must be between 0 and 255, got {quality}")
    scaled = int((quality / 100.0) * 51.0)
    return min(max(51 - scaled, 0), 51)


def _to_u8(value: float) -> int:
    if math.isnan(value):
        return 0
    return int(min(max(value, 0.0), 255.0))


def hsv_to_rgb(h: float, s: float, v: float) -> Color:
    """Convert hue in degrees, saturation and value in [0, 1] to an RGB triple."""
    c = v * s
    x = c * (1.0 - abs(math.fmod(h / 60.0, 2.0) - 1.0))
    m = v - c
    if h < 60.0:
        r, g, b = c, x, 0.0
    elif h < 120.0:
        r, g, b = x, c, 0.0
    elif h < 180.0:
        r, g, b = 0.0, c, x
    elif h < 240.0:
        r, g, b = 0.0, x, c
    elif h < 300.0:
        r, g, b = x, 0.0, c
    else:
        r, g, b = c, 0.0, x
    return _to_u8((r + m) * 255.0), _to_u8((g + m) * 255.0), _to_u8((b + m) * 255.0)


def _format_number(value: float) -> str:
    if math.isfinite(value) and float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _remove_dir(path: str) -> None:
    try:
        shutil.rmtree(path)
    except OSError as exc:
        logger.warning("Failed to remove temporary directory: %s", exc)


async def _run_ffmpeg(args: list[str]) -> None:
    try:
        process = await asyncio.create_subprocess_exec(
            "ffmpeg",
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await process.communicate()
    except OSError as exc:
        raise EncodingError(f"FFmpeg execution failed: {exc}") from exc
    if process.returncode != 0:
        message = (stderr or b"").decode("utf-8", errors="replace")
        raise EncodingError(f"FFmpeg failed: {message}")


class VideoCompositor:
    """Writes frames to a temporary directory and encodes them with ffmpeg.

    Use it as a context manager, or call :meth:`cleanup`, to remove the
    temporary directory afterwards.
    """

    def __init__(self, params: VideoParams | None = None) -> None:
        self.params = params if params is not None else VideoParams()
        self._temp_dir: str | None = None
        self._finalizer: weakref.finalize | None = None

    def __enter__(self) -> VideoCompositor:
        return self

    def __exit__(self, *args: object) -> None:
        self.cleanup()

    @property
    def temp_dir(self) -> str | None:
        return self._temp_dir

    def _ensure_temp_dir(self) -> str:
        if self._temp_dir is not None:
            return self._temp_dir
        try:
            temp_dir = tempfile.mkdtemp(
                prefix=f"retro_temp_{os.getpid()}_", dir=os.getcwd()
            )
        except OSError as exc:
            raise EncodingError(f"Cannot create temporary directory: {exc}") from exc
        logger.debug("Created temporary directory: %s", temp_dir)

        probe = Path(temp_dir, "test.txt")
        try:
            probe.write_text("test")
        except OSError as exc:
            raise EncodingError(f"Temporary directory not writable: {exc}") from exc
        probe.unlink(missing_ok=True)

        self._temp_dir = temp_dir
        self._finalizer = weakref.finalize(self, _remove_dir, temp_dir)
        return temp_dir

    async def compose_video(
        self,
        segments: Sequence[SegmentLike],
        audio_path: str | os.PathLike[str],
        output_path: str | os.PathLike[str],
    ) -> EncodedVideo:
        """Encode every segment's frames and mux them with the audio track."""
        logger.info("Composing video with %d segments", len(segments))
        if not ffmpeg_available():
            raise EncodingError("FFmpeg not found. Please install FFmpeg.")

        temp_dir = self._ensure_temp_dir()
        frame_paths = self._save_frames(segments, temp_dir)
        frame_list = self._create_frame_list(frame_paths, temp_dir)

        video_only = os.path.join(temp_dir, "video_only.mp4")
        await self._encode_from_frames(frame_list, video_only)

        output = str(output_path)
        await self._combine_video_and_audio(video_only, str(audio_path), output)

        encoded = EncodedVideo(
            path=output,
            duration=segments[-1].end_time if segments else 0.0,
            frame_count=sum(len(segment.frames) for segment in segments),
            file_size=os.stat(output).st_size,
        )
        logger.info(
            "Video composition complete: %dMB", encoded.file_size // 1024 // 1024
        )
        return encoded

    def _save_frames(self, segments: Sequence[SegmentLike], temp_dir: str) -> list[str]:
        logger.debug("Saving frames to directory: %s", temp_dir)
        frames = (frame for segment in segments for frame in segment.frames)
        paths = []
        for counter, frame in enumerate(frames):
            frame_path = os.path.join(temp_dir, f"frame_{counter:06d}.png")
            try:
                frame.save_png(frame_path)
            except (OSError, ValueError) as exc:
                raise EncodingError(f"Failed to save frame: {exc}") from exc
            if not os.path.exists(frame_path):
                raise EncodingError(f"Frame file not created: {frame_path}")
            paths.append(frame_path)
        logger.info("Saved %d frames as images", len(paths))
        return paths

    def _create_frame_list(self, frame_paths: Sequence[str], temp_dir: str) -> str:
        list_path = os.path.join(temp_dir, "frame_list.txt")
        frame_duration = 1.0 / self.params.fps

        def absolute(path: str, what: str) -> Path:
            try:
                return Path(path).resolve(strict=True)
            except OSError as exc:
                raise EncodingError(f"Cannot resolve {what} {path}: {exc}") from exc

        lines = []
        for frame_path in frame_paths:
            lines.append(f"file '{absolute(frame_path, 'frame path')}'")
            lines.append(f"duration {frame_duration:.6f}")
        if frame_paths:
            lines.append(f"file '{absolute(frame_paths[-1], 'last frame path')}'")

        with open(list_path, "w", encoding="utf-8") as handle:
            handle.writelines(f"{line}\n" for line in lines)
        logger.debug("Frame list created with %d entries", len(frame_paths))
        return list_path

    async def _encode_from_frames(self, frame_list: str, output_path: str) -> None:
        await _run_ffmpeg([
            "-f", "concat",
            "-safe", "0",
            "-i", frame_list,
            "-c:v", self.params.codec,
            "-r", _format_number(self.params.fps),
            "-pix_fmt", "yuv420p",
            "-crf", str(quality_to_crf(self.params.quality)),
            "-y",
            output_path,
        ])

    @staticmethod
    async def _combine_video_and_audio(
        video_path: str, audio_path: str, output_path: str
    ) -> None:
        await _run_ffmpeg([
            "-i", video_path,
            "-i", audio_path,
            "-c:v", "copy",
            "-c:a", "aac",
            "-shortest",
            "-y",
            output_path,
        ])

    async def create_test_video(
        self, output_path: str | os.PathLike[str], duration_seconds: float
    ) -> EncodedVideo:
        """Encode a silent video whose colour sweeps once around the hue circle."""
        if not ffmpeg_available():
            raise EncodingError("FFmpeg not found")

        temp_dir = self._ensure_temp_dir()
        frame_count = max(int(duration_seconds * self.params.fps), 0)
        width, height = self.params.resolution
        frame_paths = []
        for index in range(frame_count):
            hue = (index / frame_count) * 360.0
            frame = Frame.new_filled(width, height, hsv_to_rgb(hue, 0.7, 0.9))
            frame_path = os.path.join(temp_dir, f"test_frame_{index:06d}.png")
            try:
                frame.save_png(frame_path)
            except (OSError, ValueError) as exc:
                raise EncodingError(f"Failed to save test frame: {exc}") from exc
            frame_paths.append(frame_path)

        frame_list = self._create_frame_list(frame_paths, temp_dir)
        output = str(output_path)
        await self._encode_from_frames(frame_list, output)
        return EncodedVideo(
            path=output,
            duration=duration_seconds,
            frame_count=frame_count,
            file_size=os.stat(output).st_size,
        )

    def cleanup(self) -> None:
        """Remove the temporary directory, if one was created."""
        if self._finalizer is not None:
            self._finalizer()
            self._finalizer = None
        self._temp_dir = None
"""Loading clip metadata and frames through ffprobe, ffmpeg and Pillow."""

from __future__ import annotations

import logging
import math
import os
import shutil
import subprocess
import sys
import tempfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Sequence

from PIL import Image

from retrocompositor.errors import FrameProcessingError, VideoError, VideoLoadError
from retrocompositor.video.types import Frame, VideoClip

logger = logging.getLogger(__name__)

_IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "bmp", "gif", "tiff", "webp"})
_VIDEO_EXTENSIONS = frozenset({"mp4", "avi", "mov", "mkv", "webm", "m4v", "flv"})

_BATCH_SIZE = 100
_MIN_FRAME_FILE_SIZE = 500
_PLACEHOLDER_SIZE = (1920, 1080)
_PLACEHOLDER_COLOR = (64, 64, 64)
_FPS_KEY = '"avg_frame_rate":'
_NUMBER_CHARS = frozenset("0123456789.-")
_MASK64 = (1 << 64) - 1


@dataclass(frozen=True)
class VideoMetadata:
    """Basic properties of a video or still image."""

    duration: float
    fps: float
    width: int
    height: int
    codec: str
    frame_count: int


def _extension(path: str | os.PathLike[str]) -> str | None:
    suffix = Path(path).suffix
    return suffix[1:].lower() if suffix else None


def is_image_file(path: str | os.PathLike[str]) -> bool:
    """Whether the file extension names a still image format."""
    return _extension(path) in _IMAGE_EXTENSIONS


def is_supported(path: str | os.PathLike[str]) -> bool:
    """Whether the file extension names an image or video format the loader reads."""
    return is_image_file(path) or _extension(path) in _VIDEO_EXTENSIONS


def _saturate(value: float, low: int, high: int) -> int:
    if math.isnan(value):
        return 0
    return int(min(max(value, low), high))


def _parse_float(text: str) -> float | None:
    try:
        return float(text)
    except ValueError:
        return None


def _extract_json_number(text: str, key: str) -> float | None:
    pattern = f'"{key}":'
    start = text.find(pattern)
    if start < 0:
        return None
    remaining = text[start + len(pattern):].lstrip().lstrip('"')
    end = next(
        (i for i, ch in enumerate(remaining) if ch not in _NUMBER_CHARS),
        len(remaining),
    )
    return _parse_float(remaining[:end].rstrip('"'))


def _extract_fps(text: str) -> float | None:
    start = text.find(_FPS_KEY)
    if start < 0:
        return None
    remaining = text[start + len(_FPS_KEY):].lstrip().lstrip('"')
    end = remaining.find('"')
    if end < 0:
        return None
    numerator, slash, denominator = remaining[:end].partition("/")
    if not slash:
        return None
    num = _parse_float(numerator)
    den = _parse_float(denominator)
    num = 30.0 if num is None else num
    den = 1.0 if den is None else den
    return num / den if den != 0.0 else None


def parse_ffprobe_output(text: str) -> VideoMetadata:
    """Read the first video stream's properties from ffprobe JSON output.

    Missing values fall back to 1920x1080, 30 seconds and 30 fps.
    """
    width = _extract_json_number(text, "width")
    height = _extract_json_number(text, "height")
    duration = _extract_json_number(text, "duration")
    fps = _extract_fps(text)
    width = 1920.0 if width is None else width
    height = 1080.0 if height is None else height
    duration = 30.0 if duration is None else duration
    fps = 30.0 if fps is None else fps
    return VideoMetadata(
        duration=duration,
        fps=fps,
        width=_saturate(width, 0, 2**32 - 1),
        height=_saturate(height, 0, 2**32 - 1),
        codec="h264",
        frame_count=_saturate(duration * fps, -(2**63), 2**63 - 1),
    )


def _format_seconds(value: float) -> str:
    """Plain decimal form without exponent or a trailing ``.0``."""
    if not math.isfinite(value):
        return repr(value)
    text = format(Decimal(repr(float(value))), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _rotl(value: int, shift: int) -> int:
    return ((value << shift) | (value >> (64 - shift))) & _MASK64


def _sip_round(v0: int, v1: int, v2: int, v3: int) -> tuple[int, int, int, int]:
    v0 = (v0 + v1) & _MASK64
    v1 = _rotl(v1, 13) ^ v0
    v0 = _rotl(v0, 32)
    v2 = (v2 + v3) & _MASK64
    v3 = _rotl(v3, 16) ^ v2
    v0 = (v0 + v3) & _MASK64
    v3 = _rotl(v3, 21) ^ v0
    v2 = (v2 + v1) & _MASK64
    v1 = _rotl(v1, 17) ^ v2
    v2 = _rotl(v2, 32)
    return v0, v1, v2, v3


def _siphash13(data: bytes) -> int:
    """SipHash-1-3 with a zero key."""
    v0, v1 = 0x736F6D6570736575, 0x646F72616E646F6D
    v2, v3 = 0x6C7967656E657261, 0x7465646279746573
    full = len(data) - len(data) % 8
    for offset in range(0, full, 8):
        word = int.from_bytes(data[offset:offset + 8], "little")
        v3 ^= word
        v0, v1, v2, v3 = _sip_round(v0, v1, v2, v3)
        v0 ^= word
    last = ((len(data) & 0xFF) << 56) | int.from_bytes(data[full:], "little")
    v3 ^= last
    v0, v1, v2, v3 = _sip_round(v0, v1, v2, v3)
    v0 ^= last
    v2 ^= 0xFF
    for _ in range(3):
        v0, v1, v2, v3 = _sip_round(v0, v1, v2, v3)
    return v0 ^ v1 ^ v2 ^ v3


def _name_sequence_number(name: str) -> int:
    """Stable sequence number in 1..1000 derived from a clip name."""
    digest = _siphash13(name.encode("utf-8", "surrogateescape") + b"\xff")
    return digest % 1000 + 1


def _default_parallelism() -> int:
    cpu_count = os.cpu_count() or 1
    if sys.platform == "darwin":
        return min(max(cpu_count // 2, 2), 8)
    return min(max(cpu_count // 4, 1), 4)


def _placeholder_frame() -> Frame:
    return Frame.new_filled(*_PLACEHOLDER_SIZE, _PLACEHOLDER_COLOR)


class VideoLoader:
    """Reads metadata and frames from clips, caching metadata per path."""

    def __init__(self, check_ffmpeg: bool = True) -> None:
        self._metadata_cache: dict[str, VideoMetadata] = {}
        self.max_parallel_extractions = _default_parallelism()
        logger.info(
            "Using %d parallel frame extractions", self.max_parallel_extractions
        )
        if check_ffmpeg:
            try:
                result = subprocess.run(
                    ["ffmpeg", "-version"], capture_output=True, check=False
                )
            except OSError as exc:
                raise VideoLoadError("FFmpeg command not found") from exc
            if result.returncode != 0:
                raise VideoLoadError("FFmpeg command failed")
            logger.info("Initialized video loader with external FFmpeg")

    # -- metadata -------------------------------------------------------------

    def load_metadata(self, path: str | os.PathLike[str]) -> VideoMetadata:
        """Return metadata for ``path``, probing it only the first time."""
        key = str(path)
        cached = self._metadata_cache.get(key)
        if cached is not None:
            return cached
        if is_image_file(path):
            metadata = self._load_image_metadata(Path(path))
        else:
            metadata = self._load_video_metadata(Path(path))
        self._metadata_cache[key] = metadata
        return metadata

    @staticmethod
    def _load_image_metadata(path: Path) -> VideoMetadata:
        try:
            with Image.open(path) as image:
                width, height = image.size
        except (OSError, ValueError) as exc:
            raise VideoLoadError(path) from exc
        return VideoMetadata(
            duration=1.0 / 30.0,
            fps=30.0,
            width=width,
            height=height,
            codec="image",
            frame_count=1,
        )

    @staticmethod
    def _load_video_metadata(path: Path) -> VideoMetadata:
        command = [
            "ffprobe",
            "-v", "quiet",
            "-print_format", "json",
            "-show_streams",
            "-select_streams", "v:0",
            str(path),
        ]
        try:
            result = subprocess.run(command, capture_output=True, check=False)
        except OSError as exc:
            raise VideoLoadError(f"{path}: ffprobe failed") from exc
        if result.returncode != 0:
            logger.warning("ffprobe failed for %s, using estimated metadata", path)
            return VideoMetadata(
                duration=30.0,
                fps=30.0,
                width=1920,
                height=1080,
                codec="unknown",
                frame_count=900,
            )
        try:
            text = result.stdout.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise VideoLoadError(f"{path}: invalid ffprobe output") from exc
        metadata = parse_ffprobe_output(text)
        logger.info(
            "Video metadata: %dx%d @ %.1ffps, %.1fs",
            metadata.width, metadata.height, metadata.fps, metadata.duration,
        )
        return metadata

    # -- frames ---------------------------------------------------------------

    def extract_frame_at_time(
        self, path: str | os.PathLike[str], timestamp: float
    ) -> Frame:
        """Return the frame shown at ``timestamp`` seconds."""
        if is_image_file(path):
            return self._load_image_as_frame(Path(path))
        frames = self.extract_frames_at_times(path, [timestamp])
        if not frames:
            raise FrameProcessingError("No frame extracted")
        return frames[0]

    def extract_frames_at_times(
        self, path: str | os.PathLike[str], timestamps: Sequence[float]
    ) -> list[Frame]:
        """Return one frame per timestamp, in order.

        Frames that cannot be extracted are replaced by grey placeholders.
        """
        if is_image_file(path):
            base = self._load_image_as_frame(Path(path))
            return [base.copy() for _ in timestamps]
        if not timestamps:
            return []

        path_str = str(path)
        total = len(timestamps)
        batch_total = (total + _BATCH_SIZE - 1) // _BATCH_SIZE
        logger.info(
            "Extracting %d frames in batches of %d from %s", total, _BATCH_SIZE, path_str
        )

        frames: list[Frame] = []
        total_success = 0
        total_failed = 0
        for batch_num, start in enumerate(range(0, total, _BATCH_SIZE)):
            batch = list(timestamps[start:start + _BATCH_SIZE])
            logger.info(
                "Processing batch %d/%d (%d frames)...",
                batch_num + 1, batch_total, len(batch),
            )
            try:
                batch_frames, succeeded, failed = self._extract_batch(path_str, batch)
            except VideoError as exc:
                logger.warning(
                    "Batch %d failed: %s, using placeholders", batch_num + 1, exc
                )
                frames.extend(_placeholder_frame() for _ in batch)
                total_failed += len(batch)
                continue
            frames.extend(batch_frames)
            total_success += succeeded
            total_failed += failed

        logger.info("All batches complete: %d/%d frames successful", total_success, total)
        if total_failed:
            logger.warning("%d frames failed, using placeholders", total_failed)
        return frames

    def _extract_batch(
        self, path_str: str, timestamps: list[float]
    ) -> tuple[list[Frame], int, int]:
        try:
            temp_dir = tempfile.mkdtemp(prefix=f"retro_compositor_batch_{os.getpid()}_")
        except OSError as exc:
            raise FrameProcessingError("Cannot create temp directory") from exc

        def extract(job: tuple[int, float]) -> Frame | VideoError:
            index, timestamp = job
            target = os.path.join(temp_dir, f"frame_{index:06d}.png")
            try:
                return self._extract_single(path_str, timestamp, target)
            except VideoError as exc:
                return exc

        try:
            with ThreadPoolExecutor(max_workers=self.max_parallel_extractions) as pool:
                results = list(pool.map(extract, enumerate(timestamps)))
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

        frames: list[Frame] = []
        succeeded = 0
        for result in results:
            if isinstance(result, Frame):
                frames.append(result)
                succeeded += 1
            else:
                frames.append(_placeholder_frame())
        return frames, succeeded, len(results) - succeeded

    @staticmethod
    def _extract_single(path_str: str, timestamp: float, target: str) -> Frame:
        command = ["ffmpeg"]
        if sys.platform == "darwin":
            command += ["-hwaccel", "videotoolbox"]
        command += ["-ss", _format_seconds(timestamp), "-i", path_str]
        command += [
            "-vframes", "1",
            "-f", "image2",
            "-q:v", "5",
            "-s", "1920x1080",
            "-y",
            target,
        ]
        try:
            result = subprocess.run(command, capture_output=True, check=False)
        except OSError as exc:
            raise FrameProcessingError(f"FFmpeg execution failed: {exc}") from exc
        if result.returncode != 0:
            stderr = (result.stderr or b"").decode("utf-8", errors="replace")
            raise FrameProcessingError(f"FFmpeg failed: {stderr}")
        target_path = Path(target)
        if not target_path.exists():
            raise FrameProcessingError("Frame file not created")
        try:
            size = target_path.stat().st_size
        except OSError as exc:
            raise FrameProcessingError("Cannot read frame metadata") from exc
        if size <= _MIN_FRAME_FILE_SIZE:
            raise FrameProcessingError("Frame file too small")
        try:
            with Image.open(target_path) as image:
                frame = Frame.from_image(image)
        except (OSError, ValueError) as exc:
            raise FrameProcessingError(f"Image load failed: {exc}") from exc
        target_path.unlink(missing_ok=True)
        return frame

    @staticmethod
    def _load_image_as_frame(path: Path) -> Frame:
        try:
            with Image.open(path) as image:
                return Frame.from_image(image)
        except (OSError, ValueError) as exc:
            raise VideoLoadError(f"{path}: {exc}") from exc

    # -- clips ----------------------------------------------------------------

    def _attach_metadata(self, clip: VideoClip) -> None:
        try:
            metadata = self.load_metadata(clip.path)
        except VideoError:
            return
        clip.duration = metadata.duration
        clip.fps = metadata.fps
        clip.resolution = (metadata.width, metadata.height)

    def create_video_clip(self, path: str | os.PathLike[str]) -> VideoClip:
        """Build a clip for ``path``, numbering it from its name where possible."""
        path = Path(path)
        clip = VideoClip.from_path(path)
        if clip is not None:
            if is_supported(path):
                self._attach_metadata(clip)
            return clip
        if not is_supported(path):
            raise VideoLoadError(path)
        name = path.stem or "video"
        clip = VideoClip(path, _name_sequence_number(name), name)
        self._attach_metadata(clip)
        return clip

    def load_clips_from_directory(
        self, directory: str | os.PathLike[str]
    ) -> list[VideoClip]:
        """Load every supported, non-hidden file in ``directory`` as a clip.

        Clips are returned in ascending order of sequence number.
        """
        directory = Path(directory)
        if not directory.is_dir():
            raise VideoLoadError(directory)

        clips: list[VideoClip] = []
        for path in sorted(directory.iterdir()):
            if not path.is_file() or path.name.startswith(".") or not is_supported(path):
                continue
            try:
                clip = self.create_video_clip(path)
            except VideoError as exc:
                logger.warning("Could not load clip %s: %s", path, exc)
                continue
            width, height = clip.resolution or (0, 0)
            logger.info(
                "Loaded clip: %s (sequence: %d, %.1fs, %dx%d)",
                clip.name, clip.sequence_number, clip.duration or 0.0, width, height,
            )
            clips.append(clip)

        if not clips:
            raise VideoLoadError(f"No supported videos in {directory}")
        clips.sort(key=lambda clip: clip.sequence_number)
        logger.info("Successfully loaded %d video clips", len(clips))
        return clips

    def clear_cache(self) -> None:
        self._metadata_cache.clear()
"""Turning a cut timeline into styled, resized frame segments."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np
from PIL import Image

from retrocompositor.errors import FrameProcessingError, VideoLoadError
from retrocompositor.styles.base import Style, StyleConfig
from retrocompositor.video.loader import VideoLoader
from retrocompositor.video.types import Frame, VideoClip, VideoParams

logger = logging.getLogger(__name__)

_F = np.float32
_PI = _F(math.pi)
_LOOP_BLEND_WINDOW = 0.1


@dataclass
class ProcessedSegment:
    """Frames covering one stretch of the output timeline."""

    start_time: float
    end_time: float
    clip_id: int
    frames: list[Frame] = field(default_factory=list)
    frame_timestamps: list[float] = field(default_factory=list)


@dataclass(frozen=True)
class ProcessingStats:
    """Cache usage and output settings of a processor."""

    cached_clips: int
    total_cached_frames: int
    target_fps: float
    target_resolution: tuple[int, int]


def _fmod(x: float, y: float) -> float:
    """Remainder with the sign of ``x``; NaN where the divisor is zero."""
    if y == 0.0 or math.isnan(x) or math.isnan(y) or math.isinf(x):
        return math.nan
    return math.fmod(x, y)


def _frame_count(duration: float, fps: float) -> int:
    """Round half away from zero and saturate negative or NaN results to zero."""
    value = duration * fps
    if math.isnan(value) or value <= 0.0:
        return 0
    if math.isinf(value):
        raise FrameProcessingError(f"Cannot produce {value} frames")
    return int(math.floor(value + 0.5))


def calculate_smooth_timestamps(
    clip_duration: float, segment_duration: float, frame_count: int
) -> list[float]:
    """Source timestamps for ``frame_count`` frames filling ``segment_duration``.

    A clip at least as long as the segment is sampled from its middle; a
    shorter clip is looped, easing back in just after each loop boundary.
    """
    divisor = max(frame_count, 1)
    if clip_duration >= segment_duration:
        start_offset = (clip_duration - segment_duration) / 2.0
        return [
            start_offset + (i * segment_duration) / divisor for i in range(frame_count)
        ]

    timestamps = []
    for i in range(frame_count):
        absolute_time = (i / divisor) * segment_duration
        position = _fmod(absolute_time, clip_duration)
        if position < _LOOP_BLEND_WINDOW and absolute_time > clip_duration:
            blend = position / _LOOP_BLEND_WINDOW
            position = position * blend + (clip_duration - _LOOP_BLEND_WINDOW) * (1.0 - blend)
        timestamps.append(position)
    return timestamps


def _resize(frame: Frame, size: tuple[int, int]) -> Frame:
    resized = frame.as_image().resize(size, Image.Resampling.LANCZOS)
    return Frame.from_image(resized)


class VideoProcessor:
    """Extracts, resizes and styles the frames for each timeline segment."""

    def __init__(
        self, target_params: VideoParams | None = None, loader: VideoLoader | None = None
    ) -> None:
        self.target_params = target_params if target_params is not None else VideoParams()
        self.loader = loader if loader is not None else VideoLoader()
        self._frame_cache: dict[str, list[Frame]] = {}

    async def process_timeline(
        self,
        cuts: Sequence[float],
        clip_assignments: Sequence[int],
        video_clips: Sequence[VideoClip],
        style: Style,
        style_config: StyleConfig,
        total_duration: float,
    ) -> list[ProcessedSegment]:
        """Build one segment per cut.

        Each segment runs to the next cut, or to ``total_duration`` for the
        last one, and uses the clip whose sequence number is assigned to the
        cut (clip 1 where no assignment is given).
        """
        logger.info(
            "Processing %d timeline segments with %s style", len(cuts), style.name
        )
        segments = []
        ends = [*cuts[1:], total_duration]
        for index, (cut_time, segment_end) in enumerate(zip(cuts, ends)):
            clip_id = clip_assignments[index] if index < len(clip_assignments) else 1
            clip = next(
                (c for c in video_clips if c.sequence_number == clip_id), None
            )
            if clip is None:
                raise VideoLoadError(f"clip_{clip_id}")
            duration = segment_end - cut_time
            logger.debug(
                "Processing segment %d: %.2fs-%.2fs using clip '%s' (%.2fs)",
                index, cut_time, segment_end, clip.name, duration,
            )
            segments.append(
                self._process_segment(
                    clip, cut_time, segment_end, duration, style, style_config
                )
            )
        logger.info("Successfully processed %d segments", len(segments))
        return segments

    def _process_segment(
        self,
        clip: VideoClip,
        start_time: float,
        end_time: float,
        duration: float,
        style: Style,
        style_config: StyleConfig,
    ) -> ProcessedSegment:
        frame_count = _frame_count(duration, self.target_params.fps)
        interval = duration / max(frame_count, 1)
        logger.debug(
            "Segment needs %d frames at %.1f fps (interval %.6fs)",
            frame_count, self.target_params.fps, interval,
        )
        frames = self._extract_frames(clip, duration, frame_count)
        self._apply_effects(frames, style, style_config, frame_count)
        return ProcessedSegment(
            start_time=start_time,
            end_time=end_time,
            clip_id=clip.sequence_number,
            frames=frames,
            frame_timestamps=[i * interval for i in range(frame_count)],
        )

    def _extract_frames(
        self, clip: VideoClip, duration: float, frame_count: int
    ) -> list[Frame]:
        metadata = self.loader.load_metadata(clip.path)
        logger.debug(
            "Clip metadata: %.1fs, %.1f fps, %dx%d",
            metadata.duration, metadata.fps, metadata.width, metadata.height,
        )
        timestamps = calculate_smooth_timestamps(metadata.duration, duration, frame_count)
        frames = self.loader.extract_frames_at_times(clip.path, timestamps)
        self.resize_frames(frames)
        return frames

    @staticmethod
    def _apply_effects(
        frames: list[Frame], style: Style, style_config: StyleConfig, frame_count: int
    ) -> None:
        logger.debug("Applying %s effects to %d frames", style.name, len(frames))
        divisor = _F(max(frame_count, 1))
        base_intensity = _F(style_config.intensity)
        for index, frame in enumerate(frames):
            time_factor = _F(index) / divisor
            slow_wave = np.sin(time_factor * _PI * _F(0.5)) * _F(0.2)
            intensity = np.clip(base_intensity + slow_wave * _F(0.3), _F(0.0), _F(1.0))
            frame_config = StyleConfig(
                intensity=float(intensity), parameters=dict(style_config.parameters)
            )
            if style.name == "vhs":
                tracking = _F(style_config.get_float_or("tracking_error", 0.5))
                tracking_variation = np.sin(time_factor * _PI * _F(2.0)) * _F(0.1)
                frame_config = frame_config.set(
                    "tracking_error", float(tracking + tracking_variation)
                )
                noise = _F(style_config.get_float_or("noise_level", 0.6))
                noise_variation = np.sin(time_factor * _PI * _F(3.0)) * _F(0.05)
                frame_config = frame_config.set("noise_level", float(noise + noise_variation))
            try:
                style.apply_effect(frame, frame_config)
            except Exception as exc:
                raise FrameProcessingError(f"Effect application failed: {exc}") from exc

    def resize_frames(self, frames: list[Frame]) -> None:
        """Resize, in place in the list, every frame not at the target resolution."""
        size = tuple(self.target_params.resolution)
        frames[:] = [
            frame if (frame.width(), frame.height()) == size else _resize(frame, size)
            for frame in frames
        ]

    def get_stats(self) -> ProcessingStats:
        return ProcessingStats(
            cached_clips=len(self._frame_cache),
            total_cached_frames=sum(len(frames) for frames in self._frame_cache.values()),
            target_fps=self.target_params.fps,
            target_resolution=tuple(self.target_params.resolution),
        )

    def clear_cache(self) -> None:
        """Forget cached frames and the loader's cached metadata."""
        self._frame_cache.clear()
        self.loader.clear_cache()
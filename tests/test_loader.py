import subprocess
from pathlib import Path
from unittest import mock

import numpy as np
import pytest
from PIL import Image

from retrocompositor.errors import VideoLoadError
from retrocompositor.video.loader import (
    VideoLoader,
    VideoMetadata,
    is_image_file,
    is_supported,
    parse_ffprobe_output,
)
from retrocompositor.video.types import Frame


def _write_png(path: Path, width: int = 8, height: int = 6, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)
    Image.fromarray(pixels).save(path)
    return pixels


def _completed(returncode: int, stdout: bytes = b"", stderr: bytes = b""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def loader():
    return VideoLoader(check_ffmpeg=False)


@pytest.mark.parametrize(
    "name, image, supported",
    [
        ("a.jpg", True, True),
        ("a.JPEG", True, True),
        ("a.png", True, True),
        ("a.webp", True, True),
        ("a.tiff", True, True),
        ("a.mp4", False, True),
        ("a.MKV", False, True),
        ("a.flv", False, True),
        ("a.txt", False, False),
        ("noext", False, False),
    ],
)
def test_extension_classification(name, image, supported):
    assert is_image_file(name) is image
    assert is_supported(name) is supported


def test_parse_ffprobe_output_reads_stream_fields():
    text = (
        '{"streams": [{"codec_name": "h264", "width": 1280, "height": 720,'
        ' "avg_frame_rate": "25/1", "duration": "12.5"}]}'
    )
    metadata = parse_ffprobe_output(text)
    assert metadata.width == 1280
    assert metadata.height == 720
    assert metadata.fps == pytest.approx(25.0)
    assert metadata.duration == pytest.approx(12.5)
    assert metadata.frame_count == int(12.5 * 25)
    assert metadata.codec == "h264"


def test_parse_ffprobe_output_ignores_coded_width():
    text = '{"coded_width": 1296, "width": 640, "coded_height": 736, "height": 480}'
    metadata = parse_ffprobe_output(text)
    assert (metadata.width, metadata.height) == (640, 480)


def test_parse_ffprobe_output_defaults():
    metadata = parse_ffprobe_output("{}")
    assert metadata == VideoMetadata(
        duration=30.0, fps=30.0, width=1920, height=1080, codec="h264", frame_count=900
    )


def test_parse_ffprobe_output_zero_denominator_falls_back():
    metadata = parse_ffprobe_output('{"avg_frame_rate": "0/0", "duration": "2"}')
    assert metadata.fps == 30.0
    assert metadata.frame_count == 60


def test_image_metadata(tmp_path, loader):
    path = tmp_path / "still.png"
    _write_png(path, width=12, height=5)
    metadata = loader.load_metadata(path)
    assert (metadata.width, metadata.height) == (12, 5)
    assert metadata.codec == "image"
    assert metadata.frame_count == 1
    assert metadata.fps == 30.0
    assert metadata.duration == pytest.approx(1.0 / 30.0)


def test_metadata_is_cached_until_cleared(tmp_path, loader):
    path = tmp_path / "still.png"
    _write_png(path)
    first = loader.load_metadata(path)
    path.unlink()
    assert loader.load_metadata(path) == first
    loader.clear_cache()
    with pytest.raises(VideoLoadError):
        loader.load_metadata(path)


def test_broken_image_metadata_raises(tmp_path, loader):
    path = tmp_path / "broken.png"
    path.write_bytes(b"not an image")
    with pytest.raises(VideoLoadError):
        loader.load_metadata(path)


@mock.patch("subprocess.run")
def test_ffprobe_failure_uses_estimates(run, tmp_path, loader):
    run.return_value = _completed(1)
    metadata = loader.load_metadata(tmp_path / "clip.mp4")
    assert metadata.codec == "unknown"
    assert metadata.frame_count == 900
    assert (metadata.width, metadata.height) == (1920, 1080)


@mock.patch("subprocess.run")
def test_ffprobe_success_is_parsed(run, tmp_path, loader):
    run.return_value = _completed(0, stdout=b'{"width": 320, "height": 240, "duration": "4.0"}')
    metadata = loader.load_metadata(tmp_path / "clip.mov")
    assert (metadata.width, metadata.height, metadata.duration) == (320, 240, 4.0)
    assert run.call_args.args[0][0] == "ffprobe"


@mock.patch("subprocess.run", side_effect=FileNotFoundError("ffprobe"))
def test_ffprobe_missing_raises(run, tmp_path, loader):
    with pytest.raises(VideoLoadError):
        loader.load_metadata(tmp_path / "clip.mp4")


@mock.patch("subprocess.run", side_effect=FileNotFoundError("ffmpeg"))
def test_missing_ffmpeg_rejected(run):
    with pytest.raises(VideoLoadError, match="FFmpeg command not found"):
        VideoLoader()


@mock.patch("subprocess.run")
def test_failing_ffmpeg_rejected(run):
    run.return_value = _completed(1)
    with pytest.raises(VideoLoadError, match="FFmpeg command failed"):
        VideoLoader()


def test_extract_frame_from_image(tmp_path, loader):
    path = tmp_path / "still.png"
    pixels = _write_png(path)
    frame = loader.extract_frame_at_time(path, 3.0)
    assert np.array_equal(frame.pixels, pixels)


def test_extract_frames_from_image_are_independent(tmp_path, loader):
    path = tmp_path / "still.png"
    pixels = _write_png(path)
    frames = loader.extract_frames_at_times(path, [0.0, 1.0, 2.0])
    assert len(frames) == 3
    frames[0].set_pixel(0, 0, (1, 2, 3))
    assert np.array_equal(frames[1].pixels, pixels)
    assert frames[0].get_pixel(0, 0) == (1, 2, 3)


def test_no_timestamps_gives_no_frames(tmp_path, loader):
    assert loader.extract_frames_at_times(tmp_path / "clip.mp4", []) == []


@mock.patch("subprocess.run")
def test_failed_extraction_yields_placeholders(run, tmp_path, loader):
    run.return_value = _completed(1, stderr=b"boom")
    frames = loader.extract_frames_at_times(tmp_path / "clip.mp4", [0.0, 1.0])
    assert len(frames) == 2
    placeholder = Frame.new_filled(1920, 1080, (64, 64, 64))
    assert all(frame == placeholder for frame in frames)


def test_successful_extraction_reads_written_frames(tmp_path, loader):
    source = np.random.default_rng(7).integers(0, 256, size=(32, 32, 3), dtype=np.uint8)
    seeks = []

    def fake_ffmpeg(command, **kwargs):
        seeks.append(command[command.index("-ss") + 1])
        Image.fromarray(source).save(command[-1], format="PNG")
        return _completed(0)

    with mock.patch("subprocess.run", side_effect=fake_ffmpeg):
        frames = loader.extract_frames_at_times(tmp_path / "clip.mp4", [1.5, 2.0])

    assert len(frames) == 2
    assert all(np.array_equal(frame.pixels, source) for frame in frames)
    assert sorted(seeks) == ["1.5", "2"]


def test_tiny_frame_file_is_rejected(tmp_path, loader):
    def fake_ffmpeg(command, **kwargs):
        Path(command[-1]).write_bytes(b"x" * 10)
        return _completed(0)

    with mock.patch("subprocess.run", side_effect=fake_ffmpeg):
        frame = loader.extract_frame_at_time(tmp_path / "clip.mp4", 0.5)
    assert frame == Frame.new_filled(1920, 1080, (64, 64, 64))


def test_create_clip_from_numbered_image(tmp_path, loader):
    path = tmp_path / "03_intro.png"
    _write_png(path, width=10, height=4)
    clip = loader.create_video_clip(path)
    assert clip.sequence_number == 3
    assert clip.name == "intro"
    assert clip.resolution == (10, 4)
    assert clip.fps == 30.0


def test_create_clip_from_unnumbered_image(tmp_path, loader):
    path = tmp_path / "sunset.png"
    _write_png(path)
    first = loader.create_video_clip(path)
    second = loader.create_video_clip(path)
    assert first.name == "sunset"
    assert 1 <= first.sequence_number <= 1000
    assert first.sequence_number == second.sequence_number


def test_numbered_unsupported_file_still_becomes_clip(tmp_path, loader):
    clip = loader.create_video_clip(tmp_path / "01_notes.txt")
    assert clip.sequence_number == 1
    assert clip.resolution is None


def test_unsupported_file_rejected(tmp_path, loader):
    with pytest.raises(VideoLoadError):
        loader.create_video_clip(tmp_path / "notes.txt")


def test_load_clips_from_directory_sorted_and_filtered(tmp_path, loader):
    _write_png(tmp_path / "02_second.png")
    _write_png(tmp_path / "01_first.png")
    _write_png(tmp_path / ".hidden.png")
    (tmp_path / "readme.txt").write_text("ignored")
    clips = loader.load_clips_from_directory(tmp_path)
    assert [clip.sequence_number for clip in clips] == [1, 2]
    assert [clip.name for clip in clips] == ["first", "second"]


def test_load_clips_from_empty_directory(tmp_path, loader):
    (tmp_path / "readme.txt").write_text("ignored")
    with pytest.raises(VideoLoadError, match="No supported videos"):
        loader.load_clips_from_directory(tmp_path)


def test_load_clips_from_missing_directory(tmp_path, loader):
    with pytest.raises(VideoLoadError):
        loader.load_clips_from_directory(tmp_path / "missing")
import pytest

from retrocompositor.errors import (
    CompositorError,
    EncodingError,
    FrameProcessingError,
    VideoError,
    VideoLoadError,
)


@pytest.mark.parametrize(
    "cls,attr",
    [
        (VideoLoadError, "path"),
        (EncodingError, "reason"),
        (FrameProcessingError, "reason"),
    ],
)
def test_errors_carry_detail_and_share_base(cls, attr):
    err = cls("detail text")
    assert getattr(err, attr) == "detail text"
    assert "detail text" in str(err)
    assert isinstance(err, VideoError)
    assert isinstance(err, CompositorError)


def test_video_error_is_compositor_error():
    err = VideoError("generic failure")
    assert "generic failure" in str(err)
    assert isinstance(err, CompositorError)


def test_load_error_keeps_path(tmp_path):
    target = tmp_path / "clip.mp4"
    err = VideoLoadError(target)
    assert err.path == str(target)
    assert str(target) in str(err)


def test_encoding_error_keeps_reason():
    err = EncodingError("FFmpeg not found")
    assert err.reason == "FFmpeg not found"
    assert "FFmpeg not found" in str(err)


def test_frame_error_caught_as_base():
    err = FrameProcessingError("No frame extracted")
    assert err.reason == "No frame extracted"
    assert "No frame extracted" in str(err)
    with pytest.raises(CompositorError) as info:
        raise err
    assert info.value is err
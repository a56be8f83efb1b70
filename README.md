# retrocompositor

A library that turns a set of numbered video clips into one video, cut at
the times you give it, with a retro look applied to every frame, and muxes
an audio track in with `ffmpeg`.

## What it does

- **Styles** (`retrocompositor.styles`): `VhsStyle` (scan lines, colour
  bleeding, chroma shift, tracking errors, noise, saturation boost and a warm
  colour cast), plus `FilmStyle`, `VintageStyle` and `BoardsStyle`, which
  leave frames as they are and describe the parameters they accept through
  `metadata()`. `StyleRegistry` looks styles up by name.
- **Frames** (`retrocompositor.video.types.Frame`): one RGB image held as a
  `(height, width, 3)` uint8 numpy array, with pixel access, raw RGB bytes,
  conversion to and from Pillow images, and `save_png`.
- **Clips**: `VideoClip.from_path` reads the sequence number and name from
  file names such as `01_intro.mp4`; `VideoSequence` keeps clips ordered by
  sequence number; `VideoParams` holds the output fps, resolution, codec and
  quality (defaults 30 fps, 1920x1080, `h264`, 85).
- **Loading** (`retrocompositor.video.loader`): `VideoLoader` reads metadata
  with `ffprobe` (cached per path), extracts frames at given timestamps with
  `ffmpeg`, and treats still images as clips. Frames that cannot be extracted
  are replaced by grey 1920x1080 placeholders. A file whose name has no
  number prefix gets a stable sequence number between 1 and 1000 derived
  from its name. `parse_ffprobe_output`, `is_image_file` and `is_supported`
  are available on their own.
- **Processing** (`retrocompositor.video.processor`): `VideoProcessor` turns
  cut times and clip assignments into `ProcessedSegment`s, sampling each clip
  smoothly (the middle of clips longer than the segment, looping of shorter
  ones; see `calculate_smooth_timestamps`), resizing frames to the target
  resolution and applying the style with a slow variation of intensity over
  time.
- **Encoding** (`retrocompositor.video.compositor`): `VideoCompositor` writes
  the frames out, encodes them with `ffmpeg`, muxes the audio track in and
  returns an `EncodedVideo`. `create_test_video` encodes a silent video whose
  colour sweeps around the hue circle. Helpers: `ffmpeg_available`,
  `quality_to_crf`, `hsv_to_rgb`.
- **Errors** (`retrocompositor.errors`): everything raised by the package
  derives from `CompositorError`; video problems are `VideoError`, with
  `VideoLoadError`, `EncodingError` and `FrameProcessingError` beneath it.

`VideoLoader()` runs `ffmpeg -version` and raises `VideoLoadError` if it
cannot; pass `check_ffmpeg=False` to skip that check. Loading, encoding and
test-video generation need `ffmpeg` and `ffprobe` on the `PATH`. Styles,
frames, clips and the registry work without them.

## Styles

```python
from retrocompositor.styles.registry import StyleRegistry
from retrocompositor.styles.base import StyleConfig
from retrocompositor.video.types import Frame

registry = StyleRegistry()
print(sorted(registry.available_styles()))   # ['boards', 'film', 'vhs', 'vintage']

vhs = registry.get_style("vhs")
config = StyleConfig.with_intensity(0.8).set("noise_level", 0.3)

frame = Frame.new_filled(320, 240, (200, 120, 60))
vhs.apply_effect(frame, config)
frame.save_png("styled.png")
```

`get_style` returns a fresh style instance, or `None` for a name that is not
registered. Your own styles subclass `Style`, set `name` and `description`,
implement `apply_effect(frame, config)`, and are added with
`registry.register(name, factory)`, where `factory` is a callable that
returns a new instance. `VhsStyle(rng)` accepts a seed or a
`numpy.random.Generator` for repeatable noise.

`StyleConfig.with_intensity` clamps the intensity to 0.0–1.0; the default
intensity is 0.8. `set` returns a new config with one parameter changed.
Parameters are read with `get_float`, `get_bool`, `get_string`,
`get_float_or` and `get_bool_or`, and a whole configuration converts to and
from a plain dict with `to_dict` and `from_dict`.

## Clips

```python
from retrocompositor.video.types import VideoClip, VideoSequence

clip = VideoClip.from_path("clips/02_chorus.mov")
print(clip.sequence_number, clip.name)   # 2 chorus

sequence = VideoSequence.from_clips([
    VideoClip.from_path("clips/03_outro.mp4"),
    VideoClip.from_path("clips/01_intro.mp4"),
])
print([c.name for c in sequence])        # ['intro', 'outro']
```

## Putting it together

```python
import asyncio

from retrocompositor.styles.base import StyleConfig
from retrocompositor.styles.registry import StyleRegistry
from retrocompositor.video.compositor import VideoCompositor
from retrocompositor.video.loader import VideoLoader
from retrocompositor.video.processor import VideoProcessor
from retrocompositor.video.types import VideoParams


async def build():
    params = VideoParams()
    loader = VideoLoader()
    clips = loader.load_clips_from_directory("clips")

    processor = VideoProcessor(params, loader)
    segments = await processor.process_timeline(
        [0.0, 2.5, 5.0],            # cut times in seconds
        [1, 2, 1],                  # clip sequence number for each cut
        clips,
        StyleRegistry().get_style("vhs"),
        StyleConfig(),
        8.0,                        # total duration in seconds
    )

    with VideoCompositor(params) as compositor:
        video = await compositor.compose_video(segments, "song.wav", "output.mp4")
    print(video.path, video.frame_count, video.file_size)


asyncio.run(build())
```

Each segment runs from its cut to the next cut, the last one to the total
duration; a cut without an assignment uses clip 1, and an assigned number
with no matching clip raises `VideoLoadError`.

The compositor keeps its intermediate files in a temporary directory under
the current directory and removes it on `cleanup()`, when leaving the `with`
block, or when the compositor is garbage-collected.

## What it does not do

- It does not analyse audio. There is no beat or tempo detection: the cut
  times and clip assignments passed to `process_timeline` must come from
  you.
- It has no command-line tool and no configuration-file loading; it is used
  from Python code.
- The `film`, `vintage` and `boards` styles do not change pixels yet.
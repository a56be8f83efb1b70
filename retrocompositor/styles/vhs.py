"""VHS tape look: scan lines, colour bleeding, tracking errors and noise."""

from __future__ import annotations

import numpy as np

from retrocompositor.styles.base import Style, StyleConfig, StyleMetadata
from retrocompositor.video.types import Frame

SCANLINE_INTENSITY = "scanline_intensity"
COLOR_BLEEDING = "color_bleeding"
TRACKING_ERROR = "tracking_error"
NOISE_LEVEL = "noise_level"
CHROMA_SHIFT = "chroma_shift"
SATURATION_BOOST = "saturation_boost"

_F = np.float32
_I32_MIN = -(2**31)
_I32_MAX = 2**31 - 1


def _to_u8(values: np.ndarray) -> np.ndarray:
    """Saturating float-to-byte conversion that truncates toward zero."""
    cleaned = np.nan_to_num(values, nan=0.0, posinf=255.0, neginf=0.0)
    return np.clip(cleaned, 0, 255).astype(np.uint8)


def _to_i32(value: np.floating) -> int:
    number = float(value)
    if number != number:
        return 0
    return int(min(max(number, _I32_MIN), _I32_MAX))


def _half_toward_zero(value: int) -> int:
    return value // 2 if value >= 0 else -((-value) // 2)


class VhsStyle(Style):
    """VHS tape aesthetic applied with numpy array operations.

    ``rng`` may be a ``numpy.random.Generator``, a seed, or None for a fresh
    generator.
    """

    name = "vhs"
    description = (
        "Enhanced VHS video tape aesthetic with pronounced scan lines, "
        "color bleeding, tracking errors, and noise"
    )

    def __init__(self, rng: np.random.Generator | int | None = None) -> None:
        self._rng = np.random.default_rng(rng)

    def apply_effect(self, frame: Frame, config: StyleConfig) -> None:
        intensity = _F(config.intensity)
        scanline = _F(config.get_float_or(SCANLINE_INTENSITY, 0.9))
        bleeding = _F(config.get_float_or(COLOR_BLEEDING, 0.8))
        tracking = _F(config.get_float_or(TRACKING_ERROR, 0.5))
        noise = _F(config.get_float_or(NOISE_LEVEL, 0.6))
        chroma = _F(config.get_float_or(CHROMA_SHIFT, 0.7))
        saturation = _F(config.get_float_or(SATURATION_BOOST, 0.4))

        pixels = frame.pixels
        self._apply_scanlines(pixels, scanline * intensity)
        self._apply_color_bleeding(pixels, bleeding * intensity)
        self._apply_chroma_shift(pixels, chroma * intensity)
        self._apply_tracking_error(pixels, tracking * intensity)
        self._apply_noise(pixels, noise * intensity)
        self._apply_saturation_boost(pixels, saturation * intensity)
        self._apply_color_temperature(pixels, intensity)

    def metadata(self) -> StyleMetadata:
        return StyleMetadata(
            gpu_accelerated=False,
            performance_impact=0.7,
            composable=True,
            required_parameters=[],
            optional_parameters=[
                (SCANLINE_INTENSITY, "Intensity of horizontal scan lines (0.0-1.0)"),
                (COLOR_BLEEDING, "Amount of color channel bleeding (0.0-1.0)"),
                (TRACKING_ERROR, "Frequency of tracking errors (0.0-1.0)"),
                (NOISE_LEVEL, "Amount of video noise (0.0-1.0)"),
                (CHROMA_SHIFT, "Chromatic aberration intensity (0.0-1.0)"),
                (SATURATION_BOOST, "Saturation enhancement (0.0-1.0)"),
            ],
        )

    # -- individual effects -------------------------------------------------

    @staticmethod
    def _apply_scanlines(pixels: np.ndarray, intensity: np.float32) -> None:
        height = pixels.shape[0]
        rows = np.arange(height)
        primary = _F(1.0) - intensity * _F(0.4)
        secondary = _F(1.0) - intensity * _F(0.2)
        factors = np.where(rows % 2 == 0, primary, secondary).astype(_F)
        if intensity > 0.5:
            thick = rows % 8 == 0
            factors[thick] = factors[thick] * _F(0.7)
        pixels[...] = _to_u8(pixels.astype(_F) * factors[:, None, None])

    @staticmethod
    def _apply_color_bleeding(pixels: np.ndarray, intensity: np.float32) -> None:
        width = pixels.shape[1]
        if width <= 4:
            return
        original = pixels.astype(_F)
        current = original[:, 2 : width - 2]
        left1 = original[:, 1 : width - 3]
        left2 = original[:, 0 : width - 4]
        right1 = original[:, 3 : width - 1]
        right2 = original[:, 4:width]

        blend = intensity * _F(0.4)
        keep = _F(1.0) - blend
        red_bleed = (right1[..., 0] * _F(0.7) + right2[..., 0] * _F(0.3)) * blend
        blue_bleed = (left1[..., 2] * _F(0.7) + left2[..., 2] * _F(0.3)) * blend
        green_blend = blend * _F(0.3)
        green_shift = ((left1[..., 1] + right1[..., 1]) * _F(0.5)) * green_blend

        target = pixels[:, 2 : width - 2]
        target[..., 0] = _to_u8(current[..., 0] * keep + red_bleed)
        target[..., 2] = _to_u8(current[..., 2] * keep + blue_bleed)
        target[..., 1] = _to_u8(current[..., 1] * (_F(1.0) - green_blend) + green_shift)

    @staticmethod
    def _apply_chroma_shift(pixels: np.ndarray, intensity: np.float32) -> None:
        height, width = pixels.shape[:2]
        shift = _to_i32(intensity * _F(4.0))
        if shift == 0 or height == 0 or width == 0:
            return
        original = pixels.copy()
        columns = np.arange(width, dtype=np.int64)
        red_x = np.clip(columns + shift, 0, width - 1)
        blue_x = np.clip(columns - shift, 0, width - 1)
        pixels[:, :, 0] = original[:, red_x, 0]
        pixels[:, :, 2] = original[:, blue_x, 2]
        if intensity > 0.7:
            rows = np.arange(height, dtype=np.int64)
            green_y = np.clip(rows + _half_toward_zero(shift), 0, height - 1)
            pixels[:, :, 1] = original[green_y, :, 1]
        else:
            pixels[:, :, 1] = original[:, :, 1]

    def _apply_tracking_error(self, pixels: np.ndarray, intensity: np.float32) -> None:
        rng = self._rng
        height = pixels.shape[0]
        probability = intensity * _F(0.15)
        for y in range(height):
            if rng.random() < probability:
                if rng.random() < 0.7:
                    displacement = int(rng.integers(-2, 3))
                else:
                    displacement = int(rng.integers(-8, 9))
                self._displace_scanline(pixels, y, displacement)
                if rng.random() < 0.3 and y < height - 1:
                    self._displace_scanline(pixels, y + 1, _half_toward_zero(displacement))

        if intensity > 0.5 and height > 0 and rng.random() < 0.1:
            line = int(rng.integers(0, height))
            self._apply_tape_stretch(pixels, line, intensity)

    @staticmethod
    def _apply_tape_stretch(pixels: np.ndarray, line: int, intensity: np.float32) -> None:
        width = pixels.shape[1]
        if width == 0:
            return
        stretch = _F(1.0) + intensity * _F(0.3)
        scaled = np.arange(width, dtype=_F) / stretch
        source = np.clip(np.nan_to_num(scaled, nan=0.0), 0, 2**32 - 1).astype(np.int64)
        valid = source < width
        row = pixels[line].copy()
        stretched = row[np.minimum(source, width - 1)]
        if not valid.all():
            positions = np.arange(width)
            last_valid = np.maximum.accumulate(np.where(valid, positions, -1))
            for x in np.flatnonzero(~valid):
                previous = last_valid[x - 1] if x > 0 else -1
                stretched[x] = stretched[x - 1] if previous >= 0 or x > 0 else (128, 128, 128)
        pixels[line] = stretched

    def _displace_scanline(self, pixels: np.ndarray, y: int, displacement: int) -> None:
        if displacement == 0:
            return
        width = pixels.shape[1]
        line = pixels[y].copy()
        source = np.arange(width, dtype=np.int64) - displacement
        inside = (source >= 0) & (source < width)
        new_line = np.empty_like(line)
        new_line[inside] = line[source[inside]]
        snow = self._rng.integers(0, 65, size=int((~inside).sum())).astype(np.uint8)
        new_line[~inside] = snow[:, None]
        pixels[y] = new_line

    def _apply_noise(self, pixels: np.ndarray, intensity: np.float32) -> None:
        rng = self._rng
        height, width = pixels.shape[:2]
        probability = intensity * _F(0.08)
        mask = rng.random((height, width)) < probability
        ys, xs = np.nonzero(mask)
        count = len(ys)
        if count:
            kinds = rng.random(count)
            selected = pixels[ys, xs].astype(np.int16)

            grain = kinds < 0.6
            offsets = rng.integers(-30, 31, size=int(grain.sum())).astype(np.int16)
            selected[grain] = np.clip(selected[grain] + offsets[:, None], 0, 255)

            snow = (kinds >= 0.6) & (kinds < 0.8)
            selected[snow] = rng.integers(200, 256, size=int(snow.sum()))[:, None]

            dropout = kinds >= 0.8
            selected[dropout] = rng.integers(0, 41, size=int(dropout.sum()))[:, None]

            pixels[ys, xs] = selected.astype(np.uint8)

        if intensity > 0.6 and height > 0 and rng.random() < 0.2:
            band_start = int(rng.integers(0, height))
            band_height = int(rng.integers(2, 9))
            self._apply_noise_band(pixels, band_start, band_height, intensity)

    def _apply_noise_band(
        self, pixels: np.ndarray, start_y: int, height: int, intensity: np.float32
    ) -> None:
        end_y = min(start_y + height, pixels.shape[0] - 1)
        if end_y < start_y:
            return
        band = pixels[start_y : end_y + 1]
        mask = self._rng.random(band.shape[:2]) < intensity * _F(0.5)
        offsets = self._rng.integers(-50, 51, size=int(mask.sum())).astype(np.int16)
        changed = np.clip(band[mask].astype(np.int16) + offsets[:, None], 0, 255)
        band[mask] = changed.astype(np.uint8)

    @staticmethod
    def _apply_saturation_boost(pixels: np.ndarray, boost: np.float32) -> None:
        values = pixels.astype(_F) / _F(255.0)
        r, g, b = values[..., 0], values[..., 1], values[..., 2]
        delta = values.max(axis=2) - values.min(axis=2)
        mask = delta > 0
        if not mask.any():
            return
        factor = _F(1.0) + boost * _F(0.6)
        average = (r + g + b) / _F(3.0)
        new_r = average + (r - average) * factor
        new_g = average + (g - average) * factor
        new_b = average + (b - average) * factor
        if boost > 0.5:
            new_r = new_r * _F(1.05)
            new_g = new_g * _F(0.98)
            new_b = new_b * _F(1.02)
        boosted = np.stack([new_r, new_g, new_b], axis=-1)
        converted = _to_u8(np.clip(boosted, _F(0.0), _F(1.0)) * _F(255.0))
        pixels[mask] = converted[mask]

    @staticmethod
    def _apply_color_temperature(pixels: np.ndarray, intensity: np.float32) -> None:
        warmth = intensity * _F(0.3)
        values = pixels.astype(_F)
        new_r = np.minimum(values[..., 0] * (_F(1.0) + warmth * _F(0.2)), _F(255.0))
        new_g = np.minimum(values[..., 1] * (_F(1.0) + warmth * _F(0.1)), _F(255.0))
        new_b = np.maximum(values[..., 2] * (_F(1.0) - warmth * _F(0.15)), _F(0.0))
        pixels[...] = _to_u8(np.stack([new_r, new_g, new_b], axis=-1))
"""Film, vintage and boards styles.

These styles describe their tunable parameters but define no pixel
operations yet, so frames pass through them unchanged.
"""

from __future__ import annotations

from retrocompositor.styles.base import Style, StyleConfig, StyleMetadata
from retrocompositor.video.types import Frame


class FilmStyle(Style):
    """Aged film look: grain, scratches, fading and light leaks."""

    name = "film"
    description = "Aged film aesthetic with grain, scratches, color fading, and light leaks"

    def apply_effect(self, frame: Frame, config: StyleConfig) -> None:
        """Leave ``frame`` unchanged after checking ``config``."""
        self.validate_config(config)

    def metadata(self) -> StyleMetadata:
        return StyleMetadata(
            gpu_accelerated=False,
            performance_impact=0.5,
            composable=True,
            required_parameters=[],
            optional_parameters=[
                ("grain_intensity", "Amount of film grain (0.0-1.0)"),
                ("scratch_frequency", "Frequency of scratches (0.0-1.0)"),
                ("color_fade", "Amount of color fading (0.0-1.0)"),
                ("light_leaks", "Intensity of light leaks (0.0-1.0)"),
                ("vignette_strength", "Vignette effect strength (0.0-1.0)"),
            ],
        )


class VintageStyle(Style):
    """Vintage look: sepia, vignetting and soft focus."""

    name = "vintage"
    description = "Nostalgic vintage aesthetic with sepia tones, vignetting, and soft focus"

    def apply_effect(self, frame: Frame, config: StyleConfig) -> None:
        """Leave ``frame`` unchanged after checking ``config``."""
        self.validate_config(config)

    def metadata(self) -> StyleMetadata:
        return StyleMetadata(
            gpu_accelerated=False,
            performance_impact=0.4,
            composable=True,
            required_parameters=[],
            optional_parameters=[
                ("sepia_strength", "Intensity of sepia effect (0.0-1.0)"),
                ("vignette_radius", "Vignette effect radius (0.0-1.0)"),
                ("soft_focus", "Soft focus blur amount (0.0-1.0)"),
                ("warmth", "Color temperature warmth (0.0-1.0)"),
                ("contrast_boost", "Contrast enhancement (0.0-1.0)"),
            ],
        )


class BoardsStyle(Style):
    """High-contrast look with bold colours and geometric overlays."""

    name = "boards"
    description = "High contrast, bold colors with geometric overlays and modern aesthetic"

    def apply_effect(self, frame: Frame, config: StyleConfig) -> None:
        """Leave ``frame`` unchanged after checking ``config``."""
        self.validate_config(config)

    def metadata(self) -> StyleMetadata:
        return StyleMetadata(
            gpu_accelerated=False,
            performance_impact=0.3,
            composable=True,
            required_parameters=[],
            optional_parameters=[
                ("contrast_boost", "Contrast enhancement level (0.0-1.0)"),
                ("saturation_boost", "Color saturation boost (0.0-1.0)"),
                ("geometric_overlay", "Geometric overlay intensity (0.0-1.0)"),
                ("edge_enhancement", "Edge sharpening strength (0.0-1.0)"),
                ("modern_grading", "Modern color grading intensity (0.0-1.0)"),
            ],
        )
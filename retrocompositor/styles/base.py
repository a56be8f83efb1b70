"""The style interface, style configuration and style metadata."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Union

from retrocompositor.video.types import Frame

ConfigValue = Union[float, bool, str, int]

_I32_MIN = -(2**31)
_I32_MAX = 2**31 - 1


def _is_config_value(value: Any) -> bool:
    return isinstance(value, (bool, int, float, str))


def as_float(value: Any) -> float | None:
    """Return a numeric configuration value as float, else None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def as_bool(value: Any) -> bool | None:
    return value if isinstance(value, bool) else None


def as_string(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def as_int(value: Any) -> int | None:
    """Return a numeric configuration value as a 32-bit integer, else None.

    Floats are truncated toward zero and saturate at the 32-bit limits;
    NaN becomes zero.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value):
            return 0
        if value >= _I32_MAX:
            return _I32_MAX
        if value <= _I32_MIN:
            return _I32_MIN
        return int(value)
    return None


@dataclass
class StyleConfig:
    """Effect intensity plus free-form style-specific parameters."""

    intensity: float = 0.8
    parameters: dict[str, ConfigValue] = field(default_factory=dict)

    @classmethod
    def with_intensity(cls, intensity: float) -> StyleConfig:
        """Create a config whose intensity is clamped to [0, 1]."""
        return cls(intensity=min(max(float(intensity), 0.0), 1.0))

    def set(self, key: str, value: ConfigValue) -> StyleConfig:
        """Return a copy of this config with one parameter set."""
        if not _is_config_value(value):
            raise TypeError(f"unsupported parameter value for {key!r}: {value!r}")
        return replace(self, parameters={**self.parameters, key: value})

    def get_float(self, key: str) -> float | None:
        return as_float(self.parameters.get(key))

    def get_bool(self, key: str) -> bool | None:
        return as_bool(self.parameters.get(key))

    def get_string(self, key: str) -> str | None:
        return as_string(self.parameters.get(key))

    def get_float_or(self, key: str, default: float) -> float:
        value = self.get_float(key)
        return default if value is None else value

    def get_bool_or(self, key: str, default: bool) -> bool:
        value = self.get_bool(key)
        return default if value is None else value

    def to_dict(self) -> dict[str, Any]:
        return {"intensity": self.intensity, "parameters": dict(self.parameters)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StyleConfig:
        """Build a config from the mapping produced by :meth:`to_dict`."""
        for name in ("intensity", "parameters"):
            if name not in data:
                raise ValueError(f"missing field {name!r}")
        intensity = data["intensity"]
        if isinstance(intensity, bool) or not isinstance(intensity, (int, float)):
            raise ValueError(f"intensity must be a number, got {intensity!r}")
        parameters = data["parameters"]
        if not isinstance(parameters, Mapping):
            raise ValueError("parameters must be a mapping")
        for key, value in parameters.items():
            if not isinstance(key, str):
                raise ValueError(f"parameter names must be strings, got {key!r}")
            if not _is_config_value(value):
                raise ValueError(f"unsupported parameter value for {key!r}: {value!r}")
        return cls(intensity=float(intensity), parameters=dict(parameters))


@dataclass
class StyleMetadata:
    """Capabilities and tunable parameters of a style."""

    gpu_accelerated: bool = False
    performance_impact: float = 0.0
    composable: bool = False
    required_parameters: list[str] = field(default_factory=list)
    optional_parameters: list[tuple[str, str]] = field(default_factory=list)


class Style(ABC):
    """A retro effect that modifies frames in place.

    Subclasses set ``name`` and ``description`` and implement ``apply_effect``.
    """

    name: str = ""
    description: str = ""
    _initialized: bool = False

    @abstractmethod
    def apply_effect(self, frame: Frame, config: StyleConfig) -> None:
        """Apply the effect to ``frame`` in place."""

    def default_config(self) -> StyleConfig:
        return StyleConfig()

    def validate_config(self, config: StyleConfig) -> None:
        """Raise if ``config`` is not a well-formed style configuration.

        Any well-formed configuration is accepted by default.
        """
        if not isinstance(config, StyleConfig):
            raise TypeError(f"expected a StyleConfig, got {type(config).__name__}")
        for key, value in config.parameters.items():
            if not isinstance(key, str) or not _is_config_value(value):
                raise ValueError(f"unsupported parameter {key!r}: {value!r}")

    def metadata(self) -> StyleMetadata:
        return StyleMetadata()

    def initialize(self) -> None:
        """Prepare resources before processing begins."""
        self._initialized = True

    def finalize(self) -> None:
        """Release resources after processing ends."""
        self._initialized = False
import math

import pytest

from retrocompositor.styles.base import (
    Style,
    StyleConfig,
    StyleMetadata,
    as_bool,
    as_float,
    as_int,
    as_string,
)
from retrocompositor.video.types import Frame


class InvertStyle(Style):
    name = "invert"
    description = "Inverts every pixel"

    def apply_effect(self, frame, config):
        frame.pixels[...] = 255 - frame.pixels


def test_default_config_intensity():
    assert StyleConfig().intensity == 0.8
    assert StyleConfig().parameters == {}


@pytest.mark.parametrize("given,expected", [(1.5, 1.0), (-0.3, 0.0), (0.25, 0.25)])
def test_with_intensity_clamps(given, expected):
    assert StyleConfig.with_intensity(given).intensity == expected


def test_with_intensity_keeps_nan():
    config = StyleConfig.with_intensity(float("nan"))
    assert math.isnan(config.intensity) is True
    assert config.parameters == {}


def test_set_returns_new_config():
    original = StyleConfig()
    updated = original.set("noise_level", 0.6)
    assert updated.get_float("noise_level") == 0.6
    assert original.get_float("noise_level") is None
    assert updated.intensity == original.intensity


def test_typed_getters():
    config = StyleConfig().set("level", 3).set("flag", True).set("label", "warm")
    assert config.get_float("level") == 3.0
    assert config.get_bool("flag") is True
    assert config.get_string("label") == "warm"
    assert config.get_bool("level") is None
    assert config.get_float("flag") is None
    assert config.get_string("missing") is None


def test_getters_with_defaults():
    config = StyleConfig().set("tracking_error", 0.2).set("flag", False)
    assert config.get_float_or("tracking_error", 0.5) == 0.2
    assert config.get_float_or("noise_level", 0.6) == 0.6
    assert config.get_bool_or("flag", True) is False
    assert config.get_bool_or("other", True) is True


def test_set_rejects_unsupported_value():
    with pytest.raises(TypeError):
        StyleConfig().set("bad", [1, 2])


def test_value_conversions():
    assert as_float(2) == 2.0
    assert as_float(True) is None
    assert as_float("1.0") is None
    assert as_bool(True) is True
    assert as_bool(1) is None
    assert as_string("x") == "x"
    assert as_string(1) is None


def test_as_int_truncates_and_rejects():
    assert as_int(3.9) == 3
    assert as_int(-3.9) == -3
    assert as_int(7) == 7
    assert as_int(False) is None
    assert as_int("5") is None
    assert as_int(float("nan")) == 0
    assert as_int(1e20) == 2**31 - 1


def test_dict_round_trip():
    config = StyleConfig.with_intensity(0.5).set("a", 1).set("b", "x").set("c", True)
    assert StyleConfig.from_dict(config.to_dict()) == config


@pytest.mark.parametrize(
    "data",
    [
        {"parameters": {}},
        {"intensity": 0.5},
        {"intensity": "high", "parameters": {}},
        {"intensity": 0.5, "parameters": {"k": None}},
        {"intensity": 0.5, "parameters": []},
    ],
)
def test_from_dict_rejects_bad_data(data):
    with pytest.raises(ValueError):
        StyleConfig.from_dict(data)


def test_style_is_abstract():
    with pytest.raises(TypeError):
        Style()


def test_custom_style_defaults():
    style = InvertStyle()
    assert style.default_config() == StyleConfig()
    assert style.metadata() == StyleMetadata()
    assert style.metadata().required_parameters == []


def test_custom_style_applies_effect():
    style = InvertStyle()
    frame = Frame.new_filled(2, 2, (0, 55, 255))
    style.apply_effect(frame, style.default_config())
    assert frame.get_pixel(1, 1) == (255, 200, 0)
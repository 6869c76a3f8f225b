"""Tests for PaletteSettings defaults and validation."""
import dataclasses

import pytest

from palette_settings import DEFAULT_SETTINGS, PaletteSettings


def test_defaults():
    assert DEFAULT_SETTINGS.max_colors == 7
    assert DEFAULT_SETTINGS.stride == 1
    assert DEFAULT_SETTINGS.bucket_seed_distance == pytest.approx(40)


def test_settings_are_immutable():
    with pytest.raises(dataclasses.FrozenInstanceError):
        DEFAULT_SETTINGS.area_slots = 3


def test_stride_never_below_one():
    assert PaletteSettings(sample_stride=0).stride == 1


@pytest.mark.parametrize("hue,expected", [(19.9, False), (20, True), (45, True), (70, True), (70.1, False)])
def test_warm_band_is_inclusive(hue, expected):
    assert DEFAULT_SETTINGS.is_warm_hue(hue) is expected


@pytest.mark.parametrize("overrides", [
    {"area_slots": 0},
    {"salience_slots": -1},
    {"km_iterations": 0},
    {"salience_sample_limit": -5},
    {"warm_bin_size": 0},
])
def test_invalid_settings_raise(overrides):
    with pytest.raises(ValueError):
        PaletteSettings(**overrides)

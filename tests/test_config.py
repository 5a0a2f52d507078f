"""Tests for StampSettings and the resolution helper."""

import logging

import pytest

from stampready import InvalidInputError, StampSettings, target_resolution
from stampready.config import NOZZLE_PITCH_MM


class TestStampSettings:
    def test_defaults(self):
        s = StampSettings()
        assert s.threshold == 128
        assert s.invert is False
        assert s.target_size_mm == 35.0
        assert s.base_height_mm == 2.0
        assert s.extrusion_height_mm == 1.0
        assert s.pixel_size_mm == NOZZLE_PITCH_MM == 0.4
        assert s.smoothing == 0.0
        assert s.fix_non_manifold is True

    def test_top_height(self):
        assert StampSettings(base_height_mm=1.5, extrusion_height_mm=0.5).top_height_mm == 2.0

    def test_frozen(self):
        with pytest.raises(AttributeError):
            StampSettings().threshold = 10

    @pytest.mark.parametrize("changes", [
        {"threshold": -1},
        {"threshold": 256},
        {"threshold": 12.5},
        {"target_size_mm": 0.0},
        {"pixel_size_mm": -0.4},
        {"base_height_mm": -0.1},
        {"extrusion_height_mm": -1.0},
        {"smoothing": 6.0},
    ])
    def test_rejects_out_of_range(self, changes):
        with pytest.raises(InvalidInputError):
            StampSettings(**changes)

    def test_zero_heights_allowed(self):
        s = StampSettings(base_height_mm=0.0, extrusion_height_mm=0.0)
        assert s.top_height_mm == 0.0

    def test_replace_validates(self):
        s = StampSettings()
        assert s.replace(threshold=90).threshold == 90
        with pytest.raises(InvalidInputError):
            s.replace(threshold=300)

    def test_from_mapping_ignores_unknown(self, caplog):
        with caplog.at_level(logging.WARNING, logger="stampready.config"):
            s = StampSettings.from_mapping({"invert": True, "colour": "red"})
        assert s.invert is True
        assert "colour" in caplog.text


class TestTargetResolution:
    def test_keeps_aspect(self):
        assert target_resolution(10.0, 200, 100) == (25, 13)

    def test_square(self):
        assert target_resolution(2.0, 64, 64) == (5, 5)

    def test_custom_pitch(self):
        assert target_resolution(10.0, 100, 300, pitch_mm=1.0) == (10, 30)

    def test_at_least_one_pixel(self):
        assert target_resolution(0.1, 1000, 10) == (1, 1)

    def test_empty_source(self):
        with pytest.raises(InvalidInputError):
            target_resolution(35.0, 0, 10)

    def test_bad_size(self):
        with pytest.raises(InvalidInputError):
            target_resolution(0.0, 10, 10)

"""Tests for the bitmap producer (thresholding and Pillow decoding)."""

import io

import numpy as np
import numpy.testing as npt
import pytest
from PIL import Image

from stampready import InvalidInputError
from stampready.bitmap import (
    as_pixel_grid,
    invert_occupancy,
    load_image,
    load_image_for_size,
    luminance,
    occupancy_to_rgba,
    produce_occupancy,
)


def _grey(*values) -> np.ndarray:
    """One-row RGBA image with the given grey levels."""
    v = np.array(values, dtype=np.uint8)
    rgba = np.stack([v, v, v, np.full_like(v, 255)], axis=-1)
    return rgba[None, :, :]


def _checker_rgb(h: int = 4, w: int = 6) -> np.ndarray:
    ys, xs = np.indices((h, w))
    v = np.where((xs + ys) % 2 == 0, 0, 255).astype(np.uint8)
    return np.stack([v, v, v], axis=-1)


# ---------------------------------------------------------------------------
# as_pixel_grid / luminance
# ---------------------------------------------------------------------------

class TestPixelGrid:
    def test_rgb_promoted_to_rgba(self):
        out = as_pixel_grid(_checker_rgb())
        assert out.shape == (4, 6, 4)
        assert out.dtype == np.uint8
        npt.assert_array_equal(out[:, :, 3], 255)

    def test_grayscale_promoted(self):
        out = as_pixel_grid(np.full((3, 2), 40, dtype=np.uint8))
        assert out.shape == (3, 2, 4)
        npt.assert_array_equal(out[:, :, :3], 40)

    @pytest.mark.parametrize("shape", [(0, 5, 4), (5, 0, 4), (0, 0)])
    def test_empty_rejected(self, shape):
        with pytest.raises(InvalidInputError):
            as_pixel_grid(np.zeros(shape, dtype=np.uint8))

    def test_bad_channel_count(self):
        with pytest.raises(InvalidInputError):
            as_pixel_grid(np.zeros((2, 2, 2), dtype=np.uint8))

    def test_luminance_weights(self):
        px = np.array([[[255, 0, 0], [0, 255, 0], [0, 0, 255]]], dtype=np.uint8)
        npt.assert_allclose(luminance(px), [[0.299 * 255, 0.587 * 255, 0.114 * 255]])


# ---------------------------------------------------------------------------
# produce_occupancy
# ---------------------------------------------------------------------------

class TestProduceOccupancy:
    def test_boundary_is_background(self):
        grid = produce_occupancy(_grey(127, 128, 129), threshold=128)
        npt.assert_array_equal(grid, [[True, False, False]])

    def test_boundary_for_coloured_pixel(self):
        # 0.299*100 + 0.587*150 + 0.114*50 = 123.65
        px = np.array([[[100, 150, 50, 255]]], dtype=np.uint8)
        assert produce_occupancy(px, 124)[0, 0]
        assert not produce_occupancy(px, 123)[0, 0]

    def test_invert_flips(self):
        px = _grey(0, 255, 100, 200)
        grid = produce_occupancy(px, 128)
        inverted = produce_occupancy(px, 128, invert=True)
        npt.assert_array_equal(inverted, ~grid)

    def test_threshold_zero_is_all_background(self):
        assert not produce_occupancy(_grey(0, 0, 10), 0).any()

    def test_shape_matches_pixels(self):
        grid = produce_occupancy(_checker_rgb(5, 7), 128)
        assert grid.shape == (5, 7)
        assert grid.dtype == bool

    def test_black_is_ink(self):
        grid = produce_occupancy(_checker_rgb(), 128)
        assert grid[0, 0]
        assert not grid[0, 1]

    def test_alpha_ignored(self):
        px = _grey(0, 255)
        px[..., 3] = 0
        npt.assert_array_equal(produce_occupancy(px, 128), [[True, False]])

    def test_result_is_read_only(self):
        grid = produce_occupancy(_checker_rgb(), 128)
        with pytest.raises(ValueError):
            grid[0, 0] = False

    def test_input_not_modified(self):
        px = as_pixel_grid(_checker_rgb())
        before = px.copy()
        produce_occupancy(px, 200, invert=True)
        npt.assert_array_equal(px, before)

    def test_smoothing_has_no_effect(self):
        px = _checker_rgb()
        npt.assert_array_equal(
            produce_occupancy(px, 128, smoothing=3.0),
            produce_occupancy(px, 128),
        )

    @pytest.mark.parametrize("threshold", [-1, 256])
    def test_bad_threshold(self, threshold):
        with pytest.raises(InvalidInputError):
            produce_occupancy(_checker_rgb(), threshold)

    def test_empty_image(self):
        with pytest.raises(InvalidInputError):
            produce_occupancy(np.zeros((0, 4, 4), dtype=np.uint8), 128)


# ---------------------------------------------------------------------------
# invert_occupancy / occupancy_to_rgba
# ---------------------------------------------------------------------------

class TestOccupancyHelpers:
    def test_invert(self):
        grid = np.array([[True, False], [False, False]])
        npt.assert_array_equal(invert_occupancy(grid), ~grid)

    def test_invert_twice_is_identity(self):
        grid = produce_occupancy(_checker_rgb(), 128)
        npt.assert_array_equal(invert_occupancy(invert_occupancy(grid)), grid)

    def test_rgba_colours(self):
        rgba = occupancy_to_rgba(np.array([[True, False]]))
        npt.assert_array_equal(rgba[0, 0], [0, 0, 0, 255])
        npt.assert_array_equal(rgba[0, 1], [255, 255, 255, 255])

    def test_rgba_round_trip_through_threshold(self):
        grid = produce_occupancy(_checker_rgb(), 128)
        npt.assert_array_equal(produce_occupancy(occupancy_to_rgba(grid), 128), grid)

    def test_rejects_empty_grid(self):
        with pytest.raises(InvalidInputError):
            occupancy_to_rgba(np.zeros((0, 0), dtype=bool))


# ---------------------------------------------------------------------------
# load_image (Pillow)
# ---------------------------------------------------------------------------

class TestLoadImage:
    def test_native_size(self, tmp_path):
        path = tmp_path / "img.png"
        Image.fromarray(_checker_rgb(4, 6)).save(path)
        px = load_image(path)
        assert px.shape == (4, 6, 4)
        npt.assert_array_equal(px[:, :, 0], _checker_rgb(4, 6)[:, :, 0])

    def test_width_keeps_aspect(self, tmp_path):
        path = tmp_path / "img.png"
        Image.new("RGB", (40, 20), "white").save(path)
        assert load_image(path, width=10).shape == (5, 10, 4)

    def test_explicit_size(self, tmp_path):
        path = tmp_path / "img.png"
        Image.new("L", (40, 20), 0).save(path)
        assert load_image(path, width=7, height=9).shape == (9, 7, 4)

    def test_file_object(self):
        buf = io.BytesIO()
        Image.new("RGBA", (3, 2), (0, 0, 0, 255)).save(buf, format="PNG")
        buf.seek(0)
        px = load_image(buf)
        assert px.shape == (2, 3, 4)
        assert produce_occupancy(px, 128).all()

    def test_for_size(self, tmp_path):
        path = tmp_path / "img.png"
        Image.new("RGB", (200, 100), "white").save(path)
        # 10 mm at 0.4 mm per pixel
        assert load_image_for_size(path, 10.0).shape == (13, 25, 4)

    def test_for_size_file_object(self):
        buf = io.BytesIO()
        Image.new("RGB", (100, 100), "black").save(buf, format="PNG")
        buf.seek(0)
        assert load_image_for_size(buf, 2.0).shape == (5, 5, 4)

    def test_not_an_image(self, tmp_path):
        path = tmp_path / "img.png"
        path.write_bytes(b"definitely not a png")
        with pytest.raises(InvalidInputError):
            load_image(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(InvalidInputError):
            load_image(tmp_path / "nope.png")

    def test_decompression_bomb(self, tmp_path, monkeypatch):
        path = tmp_path / "img.png"
        Image.new("L", (40, 20), 0).save(path)
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)
        with pytest.raises(InvalidInputError):
            load_image(path)
        with pytest.raises(InvalidInputError):
            load_image_for_size(path, 10.0)

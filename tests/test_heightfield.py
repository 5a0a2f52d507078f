"""Tests for the two-level height field."""

import numpy as np
import numpy.testing as npt
import pytest

from stampready import InvalidInputError
from stampready.heightfield import height_at, height_map

GRID = np.array([
    [True, False, False],
    [False, True, True],
])


class TestHeightAt:
    def test_ink_and_background(self):
        assert height_at(GRID, 2.0, 1.0, 0, 0) == 3.0
        assert height_at(GRID, 2.0, 1.0, 1, 0) == 2.0
        assert height_at(GRID, 2.0, 1.0, 2, 1) == 3.0

    @pytest.mark.parametrize("x, y", [(-1, 0), (0, -1), (3, 0), (0, 2), (5, 5)])
    def test_out_of_bounds_is_zero(self, x, y):
        assert height_at(GRID, 2.0, 1.0, x, y) == 0.0

    def test_x_is_column(self):
        grid = np.array([[False, True]])
        assert height_at(grid, 1.0, 4.0, 1, 0) == 5.0

    def test_negative_parameters(self):
        with pytest.raises(InvalidInputError):
            height_at(GRID, -2.0, 1.0, 0, 0)
        with pytest.raises(InvalidInputError):
            height_at(GRID, 2.0, -1.0, 0, 0)


class TestHeightMap:
    def test_shape_and_border(self):
        hm = height_map(GRID, 2.0, 1.0)
        assert hm.shape == (4, 5)
        npt.assert_array_equal(hm[0], 0.0)
        npt.assert_array_equal(hm[-1], 0.0)
        npt.assert_array_equal(hm[:, 0], 0.0)
        npt.assert_array_equal(hm[:, -1], 0.0)

    def test_matches_height_at(self):
        hm = height_map(GRID, 2.0, 1.0)
        for y in range(-1, 3):
            for x in range(-1, 4):
                assert hm[y + 1, x + 1] == height_at(GRID, 2.0, 1.0, x, y)

    def test_zero_extrusion_is_flat(self):
        hm = height_map(GRID, 1.5, 0.0)
        npt.assert_array_equal(hm[1:-1, 1:-1], 1.5)

    def test_rejects_non_2d(self):
        with pytest.raises(InvalidInputError):
            height_map(np.ones(3, dtype=bool), 1.0, 1.0)

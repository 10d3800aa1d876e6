import math

import numpy as np
import pytest

from conftest import rotate_in_bands
from pgm_rotate.kernel import (NEAREST, TRUNCATE, RotationGeometry, reduce_angle,
                               rotate, rotate_band, source_coordinates)
from pgm_rotate.partition import FIXED, RAGGED, RowRange
from pgm_rotate.raster import RasterImage


def test_geometry_of_45_degrees():
    geom = RotationGeometry(4, 4, 45)
    assert (geom.dst_width, geom.dst_height) == (5, 5)


def test_geometry_swaps_axes_at_90_degrees():
    geom = RotationGeometry(7, 5, 90)
    assert geom.dst_shape == (7, 5)


@pytest.mark.parametrize("angle, expected", [(0, 0.0), (360, 0.0), (-90, 270.0), (725, 5.0), (-725, 355.0)])
def test_reduce_angle(angle, expected):
    assert reduce_angle(angle) == expected


@pytest.mark.parametrize("angle", [float("nan"), float("inf"), -float("inf")])
def test_reduce_angle_rejects_non_finite(angle):
    with pytest.raises(ValueError):
        reduce_angle(angle)


def test_zero_angle_is_identity(ramp):
    assert rotate(ramp, 0) == ramp


def test_180_flips_both_axes(ramp):
    result = rotate(ramp, 180)
    assert result.shape == ramp.shape
    np.testing.assert_array_equal(result.as_array(), ramp.as_array()[::-1, ::-1])


def test_90_turns_clockwise(ramp):
    result = rotate(ramp, 90)
    np.testing.assert_array_equal(result.as_array(), np.rot90(ramp.as_array(), -1))


@pytest.mark.parametrize("angle", [270, -90])
def test_270_turns_counter_clockwise(ramp, angle):
    result = rotate(ramp, angle)
    np.testing.assert_array_equal(result.as_array(), np.rot90(ramp.as_array(), 1))


@pytest.mark.parametrize("sampling", [NEAREST, TRUNCATE])
def test_angle_periodicity(random_image, sampling):
    expected = rotate(random_image, 30, sampling)
    assert rotate(random_image, 390, sampling) == expected
    assert rotate(random_image, -330, sampling) == expected


def test_uniform_square_at_45_degrees():
    src = RasterImage(4, 4, 255, np.full(16, 100, dtype=np.uint8))
    result = rotate(src, 45).as_array()
    assert result.shape == (5, 5)
    assert set(np.unique(result)) == {0, 100}
    assert result[2, 2] == 100
    for corner in (result[0, 0], result[0, -1], result[-1, 0], result[-1, -1]):
        assert corner == 0


def test_uniform_square_at_45_degrees_truncated():
    src = RasterImage(4, 4, 255, np.full(16, 100, dtype=np.uint8))
    result = rotate(src, 45, TRUNCATE).as_array()
    assert result.shape == (5, 5)
    assert set(np.unique(result)) == {0, 100}


@pytest.mark.parametrize("sampling", [NEAREST, TRUNCATE])
def test_out_of_bounds_pixels_are_background(random_image, sampling):
    geom = RotationGeometry.of(random_image, 30, sampling)
    src_x, src_y = source_coordinates(geom, RowRange(0, geom.dst_height))
    outside = ((src_x < 0) | (src_x >= random_image.width)
               | (src_y < 0) | (src_y >= random_image.height))
    result = rotate(random_image, 30, sampling).as_array()
    assert outside.any()
    assert (result[outside] == 0).all()
    # every sample of random_image is non-zero
    assert (result[~outside] > 0).all()


def integer_centre_loop(src, angle):
    '''Pixel-by-pixel transcription of the integer-centre rotation, pi = 3.1415926'''
    radian = angle * 3.1415926 / 180.0
    cosine, sine = math.cos(radian), math.sin(radian)
    width = int(abs(src.width * cosine) + abs(src.height * sine))
    height = int(abs(src.height * cosine) + abs(src.width * sine))
    expected = np.zeros((height, width), dtype=np.uint8)
    pixels = src.as_array()
    for i in range(height):
        for j in range(width):
            x = int((i - height // 2) * cosine - (j - width // 2) * sine) + src.width // 2
            y = int((i - height // 2) * sine + (j - width // 2) * cosine) + src.height // 2
            if 0 <= x < src.width and 0 <= y < src.height:
                expected[i, j] = pixels[y, x]
    return expected


@pytest.mark.parametrize("image, angle", [
    ("ramp", 90.0),
    ("ramp", 180.0),
    ("ramp", 270.0),
    ("random_image", 33.0),
    ("random_image", 45.0),
    ("random_image", 359.5),
])
def test_truncate_mode_matches_integer_centre_loop(request, image, angle):
    src = request.getfixturevalue(image)
    expected = integer_centre_loop(src, angle)
    np.testing.assert_array_equal(rotate(src, angle, TRUNCATE).as_array(), expected)


def test_truncate_mode_uses_its_own_pi():
    assert RotationGeometry(7, 5, 90, TRUNCATE).cos != RotationGeometry(7, 5, 90).cos


def test_rotate_back_is_structurally_similar(gradient):
    there = rotate(gradient, 30)
    back = rotate(there, -30).as_array()
    assert there.shape == (54, 54)
    assert back.shape == (73, 73)
    crop = back[17:57, 17:57].astype(float)[4:-4, 4:-4]
    original = gradient.as_array().astype(float)[4:-4, 4:-4]
    assert (crop > 0).all()
    assert np.abs(crop - original).mean() < 8
    assert np.corrcoef(crop.ravel(), original.ravel())[0, 1] > 0.98


def test_maxval_is_unchanged(ramp):
    src = RasterImage(ramp.width, ramp.height, 240, ramp.pixels)
    assert rotate(src, 12.5).maxval == 240


def test_band_padding_rows_stay_background(random_image):
    geom = RotationGeometry.of(random_image, 0)
    band = rotate_band(random_image, geom, RowRange(0, 2), 3)
    assert band.shape == (3, geom.dst_width)
    np.testing.assert_array_equal(band[:2], random_image.as_array()[:2])
    assert (band[2] == 0).all()


def test_empty_range_gives_background_band(random_image):
    geom = RotationGeometry.of(random_image, 10)
    band = rotate_band(random_image, geom, RowRange(40, 30), 4)
    assert band.shape == (4, geom.dst_width)
    assert not band.any()


def test_band_larger_than_capacity(random_image):
    geom = RotationGeometry.of(random_image, 10)
    with pytest.raises(ValueError):
        rotate_band(random_image, geom, RowRange(0, 5), 4)


def test_unknown_sampling(random_image):
    with pytest.raises(ValueError):
        rotate(random_image, 10, "bilinear")


@pytest.mark.parametrize("angle", [0, 17.5, 45, 90, 133, 180, -60, 725])
@pytest.mark.parametrize("sampling", [NEAREST, TRUNCATE])
@pytest.mark.parametrize("mode", [RAGGED, FIXED])
def test_result_independent_of_worker_count(random_image, angle, sampling, mode):
    expected = rotate(random_image, angle, sampling)
    for workers in (1, 2, 3, 4, 7, 50):
        assert rotate_in_bands(random_image, angle, workers, sampling, mode) == expected


def test_two_workers_on_uniform_square():
    src = RasterImage(4, 4, 255, np.full(16, 100, dtype=np.uint8))
    assert rotate_in_bands(src, 45, 2, NEAREST, FIXED) == rotate(src, 45)

import numpy as np
import pytest

from pgm_rotate.kernel import RotationGeometry, rotate_band
from pgm_rotate.partition import FIXED, RAGGED, range_for, rows_per_worker
from pgm_rotate.raster import RasterImage


def rotate_in_bands(src, angle, worker_count, sampling, mode=RAGGED):
    '''Compute every worker's band in turn and assemble them like the gather step does'''
    geom = RotationGeometry.of(src, angle, sampling)
    capacity = rows_per_worker(geom.dst_height, worker_count)
    chunks = []
    for k in range(worker_count):
        row_range = range_for(geom.dst_height, worker_count, k)
        band = rotate_band(src, geom, row_range, capacity)
        if mode == FIXED:
            chunks.append(band.reshape(-1))
        else:
            chunks.append(band[:row_range.rows].reshape(-1))
    pixels = np.concatenate(chunks)[:geom.dst_width * geom.dst_height]
    return RasterImage(geom.dst_width, geom.dst_height, src.maxval, pixels)


@pytest.fixture
def ramp():
    '''7x5 image with distinct samples'''
    return RasterImage.from_array(np.arange(35, dtype=np.uint8).reshape(5, 7) * 7)


@pytest.fixture
def gradient():
    y, x = np.mgrid[0:40, 0:40]
    return RasterImage.from_array(((x + y) * 3).astype(np.uint8))


@pytest.fixture
def random_image():
    rng = np.random.default_rng(0)
    return RasterImage.from_array(rng.integers(1, 256, size=(23, 31), dtype=np.uint8))

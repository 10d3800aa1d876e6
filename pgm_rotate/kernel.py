'''Inverse-mapping rotation with nearest-neighbour sampling.

Every worker builds the same RotationGeometry from the broadcast source
dimensions, the angle and the sampling mode, then fills its band of
destination rows by mapping each destination pixel back into the source
image.
'''
import math

import numpy as np

from .partition import RowRange
from .raster import RasterImage

BACKGROUND = 0

NEAREST = "nearest"   # pixel-centre geometry, rounded to the closest sample
TRUNCATE = "truncate" # integer centres, truncation toward zero
SAMPLING_MODES = (NEAREST, TRUNCATE)

# truncate mode reproduces the C raster tool bit for bit, including its pi
TRUNCATE_PI = 3.1415926


def reduce_angle(angle):
    '''Bring an angle in degrees into [0, 360)'''
    angle = float(angle)
    if not math.isfinite(angle):
        raise ValueError(f"angle must be finite, got {angle}")
    return angle % 360.0


class RotationGeometry:
    '''Source and destination dimensions plus the trig terms of one rotation'''

    def __init__(self, src_width, src_height, angle, sampling=NEAREST):
        if sampling not in SAMPLING_MODES:
            raise ValueError(f"unknown sampling mode {sampling!r}, expected one of {SAMPLING_MODES}")
        self.sampling = sampling
        self.angle = reduce_angle(angle)
        if sampling == TRUNCATE:
            radian = self.angle * TRUNCATE_PI / 180.0
        else:
            radian = math.radians(self.angle)
        self.cos = math.cos(radian)
        self.sin = math.sin(radian)
        self.src_width = int(src_width)
        self.src_height = int(src_height)
        # bounding box of the rotated rectangle
        self.dst_width = max(1, int(math.floor(abs(src_width * self.cos) + abs(src_height * self.sin))))
        self.dst_height = max(1, int(math.floor(abs(src_height * self.cos) + abs(src_width * self.sin))))

    @classmethod
    def of(cls, src, angle, sampling=NEAREST):
        return cls(src.width, src.height, angle, sampling)

    @property
    def dst_shape(self):
        return (self.dst_height, self.dst_width)

    def __repr__(self):
        return (f"RotationGeometry({self.src_width}x{self.src_height} -> "
                f"{self.dst_width}x{self.dst_height}, angle={self.angle:g}, {self.sampling})")


def _nearest_coordinates(rows, cols, geom):
    dx = cols - (geom.dst_width - 1) / 2.0
    dy = rows - (geom.dst_height - 1) / 2.0
    src_x = np.rint(dx * geom.cos + dy * geom.sin + (geom.src_width - 1) / 2.0)
    src_y = np.rint(-dx * geom.sin + dy * geom.cos + (geom.src_height - 1) / 2.0)
    return src_x.astype(np.int64), src_y.astype(np.int64)


def _truncate_coordinates(rows, cols, geom):
    di = rows - geom.dst_height // 2
    dj = cols - geom.dst_width // 2
    src_x = np.trunc(di * geom.cos - dj * geom.sin).astype(np.int64) + geom.src_width // 2
    src_y = np.trunc(di * geom.sin + dj * geom.cos).astype(np.int64) + geom.src_height // 2
    return src_x, src_y


_COORDINATES = {
    NEAREST: _nearest_coordinates,
    TRUNCATE: _truncate_coordinates,
}


def source_coordinates(geom, row_range):
    '''Source column and row indices for every pixel of the given destination rows.

    Returns two (rows, dst_width) int64 arrays. Values may fall outside the
    source image; callers mask them.
    '''
    rows = np.arange(row_range.start, row_range.end, dtype=np.int64)[:, None]
    cols = np.arange(geom.dst_width, dtype=np.int64)[None, :]
    return _COORDINATES[geom.sampling](rows, cols, geom)


def rotate_band(src, geom, row_range, capacity):
    '''Compute one worker's band of the destination image.

    src: the full source RasterImage
    geom: RotationGeometry built from src, the angle and the sampling mode
    row_range: destination rows [start, end) owned by this worker
    capacity: rows in the returned buffer; rows past row_range.rows stay background

    Returns a (capacity, dst_width) uint8 array.
    '''
    if row_range.rows > capacity:
        raise ValueError(f"{row_range} does not fit in a band of {capacity} rows")
    band = np.full((capacity, geom.dst_width), BACKGROUND, dtype=np.uint8)
    if row_range.empty:
        return band
    src_x, src_y = source_coordinates(geom, row_range)
    inside = (src_x >= 0) & (src_x < src.width) & (src_y >= 0) & (src_y < src.height)
    valid = band[:row_range.rows] # view, written in place
    valid[inside] = src.pixels[src_y[inside] * src.width + src_x[inside]]
    return band


def rotate(src, angle, sampling=NEAREST):
    '''Single-process rotation of the whole image'''
    geom = RotationGeometry.of(src, angle, sampling)
    full = RowRange(0, geom.dst_height)
    band = rotate_band(src, geom, full, geom.dst_height)
    return RasterImage(geom.dst_width, geom.dst_height, src.maxval, band.reshape(-1))

'''Grayscale image rotation distributed over MPI processes'''

from .errors import (CollectiveTimeout, ImageFormatError, RotateError,
                     SourceUnavailable, UsageError)
from .kernel import NEAREST, TRUNCATE, RotationGeometry, rotate, rotate_band
from .partition import FIXED, RAGGED, RowRange, gather_layout, range_for, ranges
from .raster import RasterImage

__all__ = [
    "CollectiveTimeout",
    "ImageFormatError",
    "RotateError",
    "SourceUnavailable",
    "UsageError",
    "NEAREST",
    "TRUNCATE",
    "RotationGeometry",
    "rotate",
    "rotate_band",
    "FIXED",
    "RAGGED",
    "RowRange",
    "gather_layout",
    "range_for",
    "ranges",
    "RasterImage",
]

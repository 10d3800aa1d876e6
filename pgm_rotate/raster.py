import numpy as np

MAXVAL_LIMIT = 255 # samples are stored as unsigned bytes


class RasterImage:
    '''A rectangular grayscale raster stored as a flat row-major uint8 buffer.

    pixels[y*width + x] is the sample at column x, row y.
    '''

    def __init__(self, width, height, maxval, pixels=None):
        width, height, maxval = int(width), int(height), int(maxval)
        if width <= 0 or height <= 0:
            raise ValueError(f"image dimensions must be positive, got {width}x{height}")
        if not 0 < maxval <= MAXVAL_LIMIT:
            raise ValueError(f"maxval must be in 1..{MAXVAL_LIMIT}, got {maxval}")
        if pixels is None:
            pixels = np.zeros(width * height, dtype=np.uint8) # background
        else:
            pixels = np.ascontiguousarray(pixels, dtype=np.uint8).reshape(-1)
            if pixels.size != width * height:
                raise ValueError(f"expected {width * height} samples, got {pixels.size}")
        self.width = width
        self.height = height
        self.maxval = maxval
        self.pixels = pixels

    @classmethod
    def from_array(cls, array, maxval=MAXVAL_LIMIT):
        '''Build an image from a (height, width) array'''
        array = np.asarray(array)
        if array.ndim != 2:
            raise ValueError(f"expected a 2D array, got shape {array.shape}")
        height, width = array.shape
        return cls(width, height, maxval, array.reshape(-1))

    @property
    def shape(self):
        return (self.height, self.width)

    def as_array(self):
        '''(height, width) view over the pixel buffer'''
        return self.pixels.reshape(self.shape)

    def copy(self):
        return RasterImage(self.width, self.height, self.maxval, self.pixels.copy())

    def __eq__(self, other):
        if not isinstance(other, RasterImage):
            return NotImplemented
        return (self.shape == other.shape and self.maxval == other.maxval
                and np.array_equal(self.pixels, other.pixels))

    def __repr__(self):
        return f"RasterImage(width={self.width}, height={self.height}, maxval={self.maxval})"

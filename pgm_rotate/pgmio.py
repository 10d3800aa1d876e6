'''Reading and writing the source and destination images.

Plain PGM (P2) files are parsed here directly; any other suffix goes
through OpenCV as an 8-bit grayscale image.
'''
import logging
import os
import re
import tempfile
from pathlib import Path

import cv2
import numpy as np

from .errors import ImageFormatError
from .raster import MAXVAL_LIMIT, RasterImage

logger = logging.getLogger(__name__)

MAGIC = "P2"
PGM_SUFFIX = ".pgm"
PGM_ENCODING = "latin-1" # decodes any byte; binary files then fail the magic check
OUTPUT_PREFIX = "rotated_"

_COMMENT = re.compile(r"#[^\n]*")


def parse_pgm(text):
    '''Parse the contents of a plain (P2) PGM file into a RasterImage'''
    tokens = _COMMENT.sub(" ", text).split() # comments run to end of line
    if not tokens or tokens[0] != MAGIC:
        raise ImageFormatError(f"not a plain {MAGIC} PGM file")
    if len(tokens) < 4:
        raise ImageFormatError("missing image size or maxval")
    try:
        width, height, maxval = (int(t) for t in tokens[1:4])
    except ValueError:
        raise ImageFormatError(f"bad header values {tokens[1:4]}") from None
    if width <= 0 or height <= 0:
        raise ImageFormatError(f"bad image size {width}x{height}")
    if not 0 < maxval <= MAXVAL_LIMIT:
        raise ImageFormatError(f"maxval {maxval} outside 1..{MAXVAL_LIMIT}")

    count = width * height
    samples = tokens[4:4 + count]
    if len(samples) < count:
        raise ImageFormatError(f"expected {count} samples, found {len(samples)}")
    try:
        values = np.array(samples).astype(np.int64)
    except ValueError:
        raise ImageFormatError("non-integer pixel data") from None
    except OverflowError:
        raise ImageFormatError(f"pixel values outside 0..{maxval}") from None
    if values.min() < 0 or values.max() > maxval:
        raise ImageFormatError(f"pixel values outside 0..{maxval}")
    return RasterImage(width, height, maxval, values.astype(np.uint8))


def read_pgm(path):
    '''Read a P2 file; its text is ASCII, comments may carry any 8-bit bytes'''
    with open(path, "rb") as f:
        return parse_pgm(f.read().decode(PGM_ENCODING))


def write_pgm(image, handle):
    '''Write image as P2 to an open text handle, one raster row per line'''
    handle.write(f"{MAGIC}\n{image.width} {image.height}\n{image.maxval}\n")
    np.savetxt(handle, image.as_array(), fmt="%d")


def load_image(path):
    '''Load a grayscale image; .pgm is read as plain PGM, anything else via OpenCV'''
    path = Path(path)
    if path.suffix.lower() == PGM_SUFFIX:
        image = read_pgm(path)
    else:
        if not path.is_file():
            raise FileNotFoundError(f"no such file: '{path}'")
        data = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
        if data is None:
            raise ImageFormatError(f"OpenCV cannot decode '{path}'")
        image = RasterImage.from_array(data)
    logger.info("Read %s: %dx%d, maxval %d", path, image.width, image.height, image.maxval)
    return image


def save_image(image, path):
    '''Write image to path through a temporary sibling, so a failure leaves no partial file'''
    path = Path(path)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=path.suffix,
                                    dir=str(path.parent))
    try:
        if path.suffix.lower() == PGM_SUFFIX:
            with os.fdopen(fd, "w") as handle:
                write_pgm(image, handle)
        else:
            os.close(fd)
            try:
                written = cv2.imwrite(tmp_name, image.as_array())
            except cv2.error as exc:
                raise OSError(f"OpenCV cannot encode '{path}': {exc}") from exc
            if not written:
                raise OSError(f"OpenCV cannot encode '{path}'")
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise
    logger.info("Wrote %s: %dx%d", path, image.width, image.height)
    return path


def output_path(input_path, prefix=OUTPUT_PREFIX):
    '''rotated_<name> next to the input file'''
    input_path = Path(input_path)
    return input_path.with_name(prefix + input_path.name)

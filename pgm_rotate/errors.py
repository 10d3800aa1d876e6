class RotateError(Exception):
    '''Base class for every error raised by pgm_rotate'''


class UsageError(RotateError):
    '''Bad command line; every rank sees the same argv, so every rank raises it'''


class ImageFormatError(RotateError, ValueError):
    '''The source file is not a readable grayscale raster'''


class SourceUnavailable(RotateError):
    '''The coordinator could not load the source image'''


class CollectiveTimeout(RotateError):
    '''A collective operation did not complete before its deadline'''

    def __init__(self, phase, timeout):
        super().__init__(f"{phase} did not complete within {timeout:g} s")
        self.phase = phase
        self.timeout = timeout

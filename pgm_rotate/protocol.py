'''Collective choreography: broadcast the source, compute bands, gather them.

Every rank of the communicator runs the same calls in the same order; the
root rank is the coordinator that loads the source and ends up holding the
assembled destination image.
'''
import logging
import time

import numpy as np
from mpi4py import MPI

from .errors import CollectiveTimeout, SourceUnavailable
from .kernel import NEAREST, RotationGeometry, rotate_band
from .partition import RAGGED, FIXED, gather_layout, range_for, rows_per_worker
from .raster import RasterImage

logger = logging.getLogger(__name__)

ROOT = 0
STATUS_OK = 0
STATUS_FAILED = 1
POLL_INTERVAL = 0.001 # seconds between Test() calls on a bounded wait


def wait(request, phase, timeout=None):
    '''Complete a non-blocking collective, giving up after timeout seconds'''
    if timeout is None:
        request.Wait()
        return
    deadline = MPI.Wtime() + timeout
    while not request.Test():
        if MPI.Wtime() > deadline:
            raise CollectiveTimeout(phase, timeout)
        time.sleep(POLL_INTERVAL)


def barrier(comm, timeout=None):
    wait(comm.Ibarrier(), "barrier", timeout)


def broadcast_source(comm, image=None, root=ROOT, timeout=None):
    '''Replicate the coordinator's source image on every rank.

    The coordinator passes the loaded image, or None when loading failed.
    The header {status, width, height, maxval} goes first so that a failed
    load makes every rank raise SourceUnavailable instead of waiting for
    pixels that never come.
    '''
    rank = comm.Get_rank()
    header = np.zeros(4, dtype=np.int64) # status, width, height, maxval
    if rank == root:
        if image is None:
            header[0] = STATUS_FAILED
        else:
            header[:] = [STATUS_OK, image.width, image.height, image.maxval]
    wait(comm.Ibcast(header, root=root), "header broadcast", timeout) # every rank learns the size, or the failure

    status, width, height, maxval = (int(v) for v in header)
    if status != STATUS_OK:
        raise SourceUnavailable(f"rank {root} could not load the source image") # nobody waits for pixels

    if rank == root:
        pixels = image.pixels
    else:
        pixels = np.empty(width * height, dtype=np.uint8) # filled by the broadcast
    wait(comm.Ibcast([pixels, MPI.UNSIGNED_CHAR], root=root), "pixel broadcast", timeout) # full copy on every rank
    if rank == root:
        return image
    return RasterImage(width, height, maxval, pixels)


def compute_band(src, geom, rank, size):
    '''Run the partitioner then the kernel for one rank'''
    capacity = rows_per_worker(geom.dst_height, size) # same on every rank
    row_range = range_for(geom.dst_height, size, rank) # this rank's rows, never sent
    logger.debug("[Rank %d] rows [%d, %d) of %d, capacity %d",
                 rank, row_range.start, row_range.end, geom.dst_height, capacity)
    return row_range, rotate_band(src, geom, row_range, capacity)


def gather_bands(comm, geom, row_range, band, maxval, mode=RAGGED, root=ROOT, timeout=None):
    '''Collect every rank's band, in rank order, into the coordinator's image.

    Returns the destination RasterImage on the coordinator and None elsewhere.
    '''
    rank = comm.Get_rank()
    size = comm.Get_size()
    counts, displs = gather_layout(geom.dst_height, geom.dst_width, size, mode) # elements and offsets per rank
    total = geom.dst_width * geom.dst_height
    recvbuf = None

    if mode == RAGGED:
        sendbuf = band[:row_range.rows].reshape(-1) # only the valid rows travel
        if rank == root:
            recvbuf = np.zeros(total, dtype=np.uint8) # destination exists only on the coordinator
            request = comm.Igatherv([sendbuf, MPI.UNSIGNED_CHAR],
                                    [recvbuf, counts, displs, MPI.UNSIGNED_CHAR], root=root)
        else:
            request = comm.Igatherv([sendbuf, MPI.UNSIGNED_CHAR], None, root=root)
    elif mode == FIXED:
        sendbuf = band.reshape(-1) # full capacity, padding rows included
        if rank == root:
            recvbuf = np.zeros(sum(counts), dtype=np.uint8) # size * capacity * width, padding included
            request = comm.Igather([sendbuf, MPI.UNSIGNED_CHAR],
                                   [recvbuf, MPI.UNSIGNED_CHAR], root=root)
        else:
            request = comm.Igather([sendbuf, MPI.UNSIGNED_CHAR], None, root=root)
    else:
        raise ValueError(f"unknown gather mode {mode!r}")
    wait(request, "band gather", timeout) # bands land in rank order

    if rank != root:
        return None
    # fixed mode over-allocates the last band; drop the padding explicitly
    pixels = recvbuf[:total]
    return RasterImage(geom.dst_width, geom.dst_height, maxval, pixels)


def rotate_distributed(comm, src, angle, sampling=NEAREST, mode=RAGGED, root=ROOT, timeout=None):
    '''Compute and collect phases for a source already replicated on every rank'''
    rank = comm.Get_rank()
    size = comm.Get_size()
    geom = RotationGeometry.of(src, angle, sampling) # same inputs on every rank
    row_range, band = compute_band(src, geom, rank, size)
    return gather_bands(comm, geom, row_range, band, src.maxval, mode, root, timeout)

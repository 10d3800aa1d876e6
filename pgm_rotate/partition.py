'''Row partitioning of the destination image across workers.

Ranges are never communicated: every worker derives its own range, and the
ranges of all the others, from (total_rows, worker_count).
'''
from collections import namedtuple

RAGGED = "ragged"
FIXED = "fixed"
GATHER_MODES = (RAGGED, FIXED)


class RowRange(namedtuple("RowRange", ["start", "end"])):
    '''Half-open range [start, end) of destination rows'''
    __slots__ = ()

    @property
    def rows(self):
        return max(0, self.end - self.start)

    @property
    def empty(self):
        return self.rows == 0


def rows_per_worker(total_rows, worker_count):
    '''Fixed per-worker row capacity, ceil(total_rows / worker_count)'''
    if worker_count <= 0:
        raise ValueError(f"worker_count must be positive, got {worker_count}")
    if total_rows < 0:
        raise ValueError(f"total_rows must be non-negative, got {total_rows}")
    return (total_rows + worker_count - 1) // worker_count


def range_for(total_rows, worker_count, worker_index):
    capacity = rows_per_worker(total_rows, worker_count)
    if not 0 <= worker_index < worker_count:
        raise ValueError(f"worker_index {worker_index} outside [0, {worker_count})")
    start = worker_index * capacity
    end = min(start + capacity, total_rows)
    return RowRange(start, end) # trailing workers may get end <= start


def ranges(total_rows, worker_count):
    return [range_for(total_rows, worker_count, k) for k in range(worker_count)]


def gather_layout(total_rows, width, worker_count, mode=RAGGED):
    '''Per-worker element counts and displacements for the collection step.

    ragged: each worker contributes exactly its valid rows, placed at its
    start row, so the receive buffer holds total_rows*width elements.
    fixed: each worker contributes its full capacity, so the receive buffer
    holds worker_count*capacity*width elements and must be truncated.
    '''
    capacity = rows_per_worker(total_rows, worker_count)
    if mode == RAGGED:
        counts, displs = [], []
        for row_range in ranges(total_rows, worker_count):
            counts.append(row_range.rows * width)
            # empty trailing ranges start past the last row
            displs.append(min(row_range.start, total_rows) * width)
        return counts, displs
    if mode == FIXED:
        chunk = capacity * width
        return [chunk] * worker_count, [k * chunk for k in range(worker_count)]
    raise ValueError(f"unknown gather mode {mode!r}, expected one of {GATHER_MODES}")

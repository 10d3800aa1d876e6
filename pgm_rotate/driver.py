'''Command-line driver.

Run with: mpiexec -n 4 python -m pgm_rotate 30 --input im.pgm
'''
import argparse
import logging
import math
import sys

from mpi4py import MPI

from .errors import CollectiveTimeout, SourceUnavailable, UsageError
from .kernel import NEAREST, SAMPLING_MODES, rotate
from .partition import GATHER_MODES, RAGGED
from .pgmio import load_image, output_path, save_image
from .protocol import ROOT, barrier, broadcast_source, rotate_distributed

logger = logging.getLogger(__name__)

DEFAULT_INPUT = "im.pgm"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


class _ArgumentParser(argparse.ArgumentParser):
    '''Raises UsageError instead of exiting, and stays silent off the coordinator'''

    def __init__(self, *args, quiet=False, **kwargs):
        super().__init__(*args, **kwargs)
        self.quiet = quiet

    def error(self, message):
        raise UsageError(f"{self.format_usage()}{self.prog}: error: {message}")

    def print_help(self, file=None):
        if not self.quiet:
            super().print_help(file)


def _angle(text):
    try:
        value = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid angle: {text!r}") from None
    if not math.isfinite(value):
        raise argparse.ArgumentTypeError(f"angle must be a finite number, got {text!r}")
    return value


def _timeout(text):
    try:
        value = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid timeout: {text!r}") from None
    if not value > 0:
        raise argparse.ArgumentTypeError(f"timeout must be positive, got {text!r}")
    return value


def parse_args(argv=None, quiet=False):
    parser = _ArgumentParser(
        prog="pgm-rotate",
        description="Rotate a grayscale image by an arbitrary angle across MPI processes.",
        quiet=quiet,
    )
    parser.add_argument("angle", type=_angle, help="Rotation angle in degrees (any real number)")
    parser.add_argument("--input", default=DEFAULT_INPUT, help=f"Source image (default: {DEFAULT_INPUT})")
    parser.add_argument("--output", help="Destination image (default: rotated_<input name>)")
    parser.add_argument("--sampling", choices=SAMPLING_MODES, default=NEAREST,
                        help="Source pixel selection (default: %(default)s)")
    parser.add_argument("--gather", choices=GATHER_MODES, default=RAGGED,
                        help="Band collection layout (default: %(default)s)")
    parser.add_argument("--timeout", type=_timeout,
                        help="Seconds to wait on any collective before aborting the group")
    parser.add_argument("--compare", action="store_true",
                        help="Also rotate sequentially on the coordinator and report the speedup")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log per-rank details")
    return parser.parse_args(argv)


def setup_logging(verbose, rank):
    package_logger = logging.getLogger("pgm_rotate")
    package_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    for old in list(package_logger.handlers): # one handler, on the current stderr
        package_logger.removeHandler(old)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(f"%(levelname)s [rank {rank}] %(message)s"))
    package_logger.addHandler(handler)


def compare_sequential(source, result, args, parallel_time):
    '''Coordinator only: time the single-process rotation against the distributed one'''
    t0 = MPI.Wtime()
    expected = rotate(source, args.angle, args.sampling)
    seq_time = MPI.Wtime() - t0
    print(f"Sequential time: {seq_time:f} seconds")
    if parallel_time > 0:
        print(f"Speedup: {seq_time / parallel_time:.2f}")
    matches = expected == result
    if matches:
        logger.info("Distributed result matches the sequential rotation")
    else:
        logger.error("Distributed result differs from the sequential rotation")
    return matches


def main(argv=None, comm=None):
    comm = comm if comm is not None else MPI.COMM_WORLD
    rank = comm.Get_rank()
    size = comm.Get_size()
    coordinator = rank == ROOT

    try:
        args = parse_args(argv, quiet=not coordinator)
    except UsageError as exc:
        if coordinator:
            print(exc, file=sys.stderr)
        return EXIT_USAGE
    setup_logging(args.verbose, rank)

    source = None
    if coordinator:
        logger.info("Started with %d processes, angle %g", size, args.angle)
        try:
            source = load_image(args.input)
        except (OSError, ValueError) as exc: # every failure must still reach the header broadcast
            logger.error("Cannot load %s: %s", args.input, exc)

    try:
        source = broadcast_source(comm, source, root=ROOT, timeout=args.timeout)
        barrier(comm, args.timeout)
        start_time = MPI.Wtime()
        result = rotate_distributed(comm, source, args.angle, args.sampling, args.gather,
                                    root=ROOT, timeout=args.timeout)
        elapsed = MPI.Wtime() - start_time
    except SourceUnavailable as exc:
        logger.debug("[Rank %d] %s", rank, exc)
        return EXIT_FAILURE
    except CollectiveTimeout as exc:
        logger.critical("[Rank %d] %s, aborting all processes", rank, exc)
        comm.Abort(EXIT_FAILURE)
        return EXIT_FAILURE

    if not coordinator:
        return EXIT_OK

    print(f"Execution time: {elapsed:f} seconds")
    status = EXIT_OK
    if args.compare and not compare_sequential(source, result, args, elapsed):
        status = EXIT_FAILURE

    target = args.output or output_path(args.input)
    try:
        save_image(result, target)
    except OSError as exc:
        logger.error("Cannot write %s: %s", target, exc)
        return EXIT_FAILURE
    print(f"Rotated image saved to {target}")
    return status


if __name__ == "__main__":
    sys.exit(main())

import sys
from argparse import ArgumentParser

from .controller import SimulationController
from .errors import ConfigurationError, LogFileError, SnapshotExistsError
from .mock import MockSolver
from .params import DEFAULT_FILENAME
from .io import print_header


def get_parser():

    parser = ArgumentParser(prog='pinchoff',
                            description="Run control for the viscoelastic pinch-off case.")
    parser.add_argument('params',
                        nargs='?',
                        default='',
                        help=f"key=value parameter file (default: {DEFAULT_FILENAME})")

    return parser


def main(argv=None, solver=None, outdir='.', reduction=None):
    """Entry point. Returns the process exit code.

    Without an explicit solver the uniform-grid MockSolver is used, which
    exercises the full control cycle without a flow solver.
    """

    args = get_parser().parse_args(argv)

    if solver is None:
        solver = MockSolver()

    try:
        controller = SimulationController.from_args([args.params], solver, reduction=reduction, outdir=outdir)
    except ConfigurationError as err:
        print(f"ERROR: {err}", file=sys.stderr)
        return 1

    if controller.reduction.is_root:
        print_header(f"PinchOff: {controller.source}")

    try:
        controller.run()
    except (LogFileError, SnapshotExistsError) as err:
        # Raised on the writing rank only, the others would wait in the next reduction
        print(f"ERROR: {err}", file=sys.stderr)
        controller.reduction.abort(1)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())

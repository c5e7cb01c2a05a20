#
# Copyright 2026 The PinchOff Authors
#
# ### MIT License
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.
#
"""
Restart files and snapshots.

A single rolling restart file is overwritten every step, so a crashed run
can always be resumed from its latest state. In addition, snapshots are
written at simulated times ``0, tsnap, 2 tsnap, ...`` up to and including
``tmax`` into ``intermediate/snapshot-<t>``. Snapshots are never overwritten.
"""
import math
import os
import numpy as np

from .errors import SnapshotExistsError

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from .config import RunConfig
    from .parallel import Reduction
    from .solver import Solver

SNAPSHOT_DIR = 'intermediate'


def snapshot_label(t: float) -> str:
    """File name of the snapshot at time ``t`` (four decimals)."""
    return f"snapshot-{t:5.4f}"


def num_snapshots(tmax: float, interval: float) -> int:
    """Number of scheduled snapshot times ``0, interval, ...`` not beyond ``tmax``."""
    q = tmax / interval
    n = math.floor(q)
    if math.isclose(q, n + 1, rel_tol=1e-12, abs_tol=1e-9):
        n += 1
    return n + 1


def snapshot_times(tmax: float, interval: float) -> np.ndarray:
    """
    Scheduled snapshot times.

    Times are ``k * interval`` for ``k = 0, 1, ...`` as long as they do not
    exceed ``tmax`` (up to round-off), computed by multiplication rather than
    accumulation.

    Parameters
    ----------
    tmax : float
        Time horizon.
    interval : float
        Snapshot interval.

    Returns
    -------
    np.ndarray
        Snapshot times, starting at zero.
    """
    return np.arange(num_snapshots(tmax, interval)) * interval


def initial_shape(epsilon: float):
    """Level set of the sinusoidally perturbed interface, positive in the liquid."""

    def phi(x, y):
        return -(1. - epsilon * np.sin(x / 4.) - y)

    return phi


class Checkpointer:
    """
    Decides when to write restart files and snapshots.

    Only the designated rank writes, every other rank returns without doing
    anything.

    Parameters
    ----------
    config : RunConfig
        Validated run configuration.
    reduction : Reduction
        Provides the rank of this process.
    outdir : str, optional
        Case directory (the default is the working directory).
    """

    def __init__(self, config: "RunConfig", reduction: "Reduction", outdir: str = '.') -> None:
        self.config = config
        self.reduction = reduction

        self.restart_path = os.path.join(outdir, config.restart_file)
        self.snapshot_dir = os.path.join(outdir, SNAPSHOT_DIR)

        self.interval = config.tsnap
        self.num_times = num_snapshots(config.tmax, config.tsnap)
        self._next = 0
        self._tol = 1e-6 * config.tsnap

        self.resumed = False
        self.snapshots = []

    # ---------------------------
    # Startup
    # ---------------------------

    def start(self, solver: "Solver") -> bool:
        """
        Resume from the restart file if there is one, otherwise initialise
        the interface from the analytic shape.

        Returns
        -------
        bool
            True if the run was resumed.
        """
        if self.reduction.is_root:
            os.makedirs(self.snapshot_dir, exist_ok=True)

        self.resumed = os.path.isfile(self.restart_path) and solver.restore(self.restart_path)

        if self.resumed:
            # Snapshots up to the restored time were written before the restart file
            while self._next < self.num_times and self.time_of(self._next) <= solver.time + self._tol:
                self._next += 1
        else:
            solver.fraction(initial_shape(self.config.epsilon))

        return self.resumed

    # ---------------------------
    # Per-step decisions
    # ---------------------------

    def time_of(self, k: int) -> float:
        """Scheduled time of the k-th snapshot."""
        return k * self.interval

    def next_event_time(self, t: float) -> float:
        """Next scheduled snapshot time at or after ``t`` (inf if none is left)."""
        # first index k >= _next with k * interval >= t - tol
        k = max(self._next, math.ceil((t - self._tol) / self.interval))
        while k < self.num_times and self.time_of(k) < t - self._tol:
            k += 1
        while k > self._next and self.time_of(k - 1) >= t - self._tol:
            k -= 1
        return self.time_of(k) if k < self.num_times else math.inf

    def snapshot_due(self, t: float) -> bool:
        return self._next < self.num_times and t >= self.time_of(self._next) - self._tol

    def on_step(self, solver: "Solver", t: float) -> list[str]:
        """
        Write a snapshot if one is due, then overwrite the restart file.

        If the driver stepped over several scheduled times, one snapshot
        labeled with the latest of them is written.

        Returns
        -------
        list[str]
            Paths written by this rank.
        """
        written = []

        if self.snapshot_due(t):
            while self.snapshot_due(t):
                label_time = self.time_of(self._next)
                self._next += 1
            written += self.write_snapshot(solver, label_time)

        written += self.write_restart(solver)

        return written

    def write_restart(self, solver: "Solver") -> list[str]:
        if not self.reduction.is_root:
            return []

        solver.dump(self.restart_path)
        return [self.restart_path]

    def write_snapshot(self, solver: "Solver", t: float) -> list[str]:
        if not self.reduction.is_root:
            return []

        path = os.path.join(self.snapshot_dir, snapshot_label(t))
        if os.path.exists(path):
            raise SnapshotExistsError(f"Snapshot '{path}' exists and is not overwritten")

        solver.dump(path)
        self.snapshots.append(path)

        return [path]

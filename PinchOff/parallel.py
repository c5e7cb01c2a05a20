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
from __future__ import annotations

from mpi4py import MPI
import numpy as np
import numpy.typing as npt


class Reduction:
    """
    Collective reductions over the participants of an SPMD run.

    Every participant must call the same reductions in the same order each
    step; the calls are implicit synchronisation points.

    Parameters
    ----------
    comm : MPI.Comm, optional
        MPI communicator (default: MPI.COMM_WORLD)
    """

    def __init__(self, comm=None) -> None:
        self._mpi_comm = MPI.COMM_WORLD if comm is None else comm

    # ---------------------------
    # MPI properties
    # ---------------------------

    @property
    def rank(self) -> int:
        """MPI rank of this process."""
        return self._mpi_comm.Get_rank()

    @property
    def size(self) -> int:
        """Total number of MPI processes."""
        return self._mpi_comm.Get_size()

    @property
    def is_root(self) -> bool:
        """True on the designated rank, which performs all file I/O."""
        return self.rank == 0

    # ---------------------------
    # Reductions
    # ---------------------------

    def sum(self, local: float | npt.NDArray[np.floating]) -> float:
        """Global sum of local contributions."""
        return float(self._mpi_comm.allreduce(_local_total(local), op=MPI.SUM))

    def min(self, local: float | npt.NDArray[np.floating]) -> float:
        """Global minimum; empty local contributions are neutral."""
        return float(self._mpi_comm.allreduce(_local_extreme(local, np.min, np.inf), op=MPI.MIN))

    def max(self, local: float | npt.NDArray[np.floating]) -> float:
        """Global maximum; empty local contributions are neutral."""
        return float(self._mpi_comm.allreduce(_local_extreme(local, np.max, -np.inf), op=MPI.MAX))

    def barrier(self) -> None:
        self._mpi_comm.Barrier()

    def abort(self, errorcode: int = 1) -> None:
        """Terminate all processes of the communicator; a no-op in a single-process run."""
        if self.size > 1:
            self._mpi_comm.Abort(errorcode)


class SerialReduction(Reduction):
    """Identity reduction for single-process runs and tests. Does not touch MPI."""

    def __init__(self) -> None:
        self._mpi_comm = None

    @property
    def rank(self) -> int:
        return 0

    @property
    def size(self) -> int:
        return 1

    def sum(self, local):
        return float(_local_total(local))

    def min(self, local):
        return float(_local_extreme(local, np.min, np.inf))

    def max(self, local):
        return float(_local_extreme(local, np.max, -np.inf))

    def barrier(self) -> None:
        pass

    def abort(self, errorcode: int = 1) -> None:
        pass


def _local_total(local) -> float:
    return float(np.sum(local))


def _local_extreme(local, func, neutral: float) -> float:
    arr = np.asarray(local, dtype=float)
    if arr.size == 0:
        return neutral
    return float(func(arr))

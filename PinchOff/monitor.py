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
Kinetic energy monitor and early termination.

Every step the global kinetic energy is computed, appended to the case log
and checked against blow-up and stagnation thresholds. The thresholds are
only armed after a warm-up, since the run starts from an interface at rest.
"""
from __future__ import annotations

import os
import enum
from dataclasses import dataclass, astuple

import numpy as np
import numpy.typing as npt

from .errors import LogFileError, PhysicalInvariantError
from .logging import get_logger

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from .checkpoint import Checkpointer
    from .config import RunConfig
    from .parallel import Reduction
    from .solver import CellData, Solver

KE_TOLERANCE = -1e-10   # below: physically invalid state
KE_BLOWUP = 1e2
KE_STAGNATION = 1e-8
WARMUP_STEPS = 10       # thresholds apply for step > WARMUP_STEPS

MSG_BLOWUP = "The kinetic energy blew up. Stopping simulation"
MSG_STAGNATION = "kinetic energy too small now! Stopping!"

COLUMNS = ('i', 'dt', 't', 'ke', 'hm', 'vm')


class MonitorState(enum.Enum):
    RUNNING = 'running'
    BLOWN_UP = 'blown_up'
    STAGNATED = 'stagnated'
    HORIZON_REACHED = 'horizon_reached'

    @property
    def is_terminal(self) -> bool:
        return self is not MonitorState.RUNNING

    @property
    def is_failure(self) -> bool:
        return self in (MonitorState.BLOWN_UP, MonitorState.STAGNATED)


def mixture_density(f: npt.NDArray[np.floating], rho1: float, rho2: float) -> npt.NDArray[np.floating]:
    """Arithmetic density mixture across the (clamped) interface indicator."""
    fc = np.clip(f, 0., 1.)
    return fc * (rho1 - rho2) + rho2


def local_kinetic_energy(cells: CellData, rho1: float, rho2: float) -> float:
    """
    Kinetic energy of the cells owned by this rank (axisymmetric).

    .. math::
        E_k = \\sum 2 \\pi y \\, \\frac{1}{2} \\rho(f) |u|^2 \\Delta^2
    """
    rho = mixture_density(cells.f, rho1, rho2)
    u2 = cells.ux**2 + cells.uy**2
    return float(np.sum(2. * np.pi * cells.y * 0.5 * rho * u2 * cells.delta**2))


@dataclass
class MonitorRecord:
    step: int
    dt: float
    t: float
    ke: float
    hm: float
    vm: float

    def format(self) -> str:
        return f"{self.step:d} {self.dt:g} {self.t:g} {self.ke:g} {self.hm:6.5e} {self.vm:6.5e}"


class MonitorLog:
    """
    Append-only case log ``c<CaseNo>-log``, mirrored to the console.

    The file is opened and closed for every write. Only the designated rank
    writes; the record history is kept there as well.

    Parameters
    ----------
    path : str
        Log file path.
    header : str
        First line of a fresh log.
    reduction : Reduction
        Provides the rank of this process.
    """

    def __init__(self, path: str, header: str, reduction: Reduction) -> None:
        self.path = path
        self.header = header
        self.reduction = reduction
        self.logger = get_logger(f'pinchoff.monitor.{os.path.basename(path)}', rank=reduction.rank, force=True)
        self.history = {k: [] for k in COLUMNS}

    @property
    def is_writer(self) -> bool:
        return self.reduction.is_root

    def start(self, fresh: bool = True) -> None:
        """Write header and column names (fresh run) or append to an existing log (resumed run)."""
        if not self.is_writer:
            return

        columns = ' '.join(COLUMNS)
        if fresh:
            self._write([self.header, columns], mode='w')
        else:
            self._write([], mode='a')
        self.logger.info(columns)

    def append(self, record: MonitorRecord) -> None:
        if not self.is_writer:
            return

        line = record.format()
        self._write([line])
        self.logger.info(line)

        for k, v in zip(COLUMNS, astuple(record)):
            self.history[k].append(v)

    def message(self, text: str) -> None:
        """Free-text line, e.g. the reason for stopping."""
        if not self.is_writer:
            return

        self._write([text])
        self.logger.info(text)

    def _write(self, lines: list[str], mode: str = 'a') -> None:
        try:
            with open(self.path, mode) as fp:
                for line in lines:
                    fp.write(line + '\n')
        except OSError as err:
            raise LogFileError(f"Cannot open log file '{self.path}': {err}") from err


class TerminationMonitor:
    """
    Per-step energy monitor with states RUNNING, BLOWN_UP, STAGNATED and
    HORIZON_REACHED. The last three are terminal.

    All ranks evaluate the same reduced values, so all ranks take the same
    decision in the same step.

    Parameters
    ----------
    config : RunConfig
        Validated run configuration.
    reduction : Reduction
        Global sum/min/max over ranks.
    log : MonitorLog
        Case log.
    checkpointer : Checkpointer, optional
        Used for the forced restart file before an early stop.
    """

    def __init__(self,
                 config: RunConfig,
                 reduction: Reduction,
                 log: MonitorLog,
                 checkpointer: Checkpointer | None = None) -> None:
        self.config = config
        self.reduction = reduction
        self.log = log
        self.checkpointer = checkpointer

        self.state = MonitorState.RUNNING
        self.last_record = None

    @property
    def stop(self) -> bool:
        return self.state.is_terminal

    def measure(self, solver: Solver, step: int, dt: float, t: float) -> MonitorRecord:
        """Collective: global kinetic energy, minimum interface height and maximum axial speed."""
        cells = solver.cells()

        ke = self.reduction.sum(local_kinetic_energy(cells, self.config.rho1, self.config.rho2))
        hm = self.reduction.min(solver.interface_heights())
        vm = self.reduction.max(np.abs(cells.ux))

        return MonitorRecord(step=step, dt=dt, t=t, ke=ke, hm=hm, vm=vm)

    def update(self, solver: Solver, step: int, dt: float, t: float) -> MonitorState:
        """
        Measure, log and check one step.

        Returns
        -------
        MonitorState
            The state after this step.

        Raises
        ------
        PhysicalInvariantError
            If the kinetic energy is negative beyond round-off.
        """
        if self.stop:
            return self.state

        record = self.measure(solver, step, dt, t)
        return self.check(record, solver)

    def check(self, record: MonitorRecord, solver: Solver | None = None) -> MonitorState:
        """Log a measured record and decide on the next state."""
        if self.stop:
            return self.state

        self.last_record = record
        self.log.append(record)

        if not record.ke > KE_TOLERANCE:
            raise PhysicalInvariantError(f"Negative kinetic energy {record.ke:g} at step {record.step}")

        if record.step > WARMUP_STEPS:
            if record.ke > KE_BLOWUP:
                return self._fail(MonitorState.BLOWN_UP, MSG_BLOWUP, solver)
            if record.ke < KE_STAGNATION:
                return self._fail(MonitorState.STAGNATED, MSG_STAGNATION, solver)

        if record.t >= self.config.tmax - 1e-9 * self.config.dtmax:
            self.state = MonitorState.HORIZON_REACHED
            self.log.message(self.config.summary())

        return self.state

    def _fail(self, state: MonitorState, msg: str, solver: Solver | None) -> MonitorState:
        if self.checkpointer is not None and solver is not None:
            self.checkpointer.write_restart(solver)

        self.log.message(msg)
        self.state = state

        return state

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
import os
import signal
from dataclasses import dataclass
from datetime import datetime

from typing import Sequence, Type
try:
    # Py>=3.11
    from typing import Self
except ImportError:
    # Py<=3.10
    from typing_extensions import Self

from . import __version__
from .config import RunConfig
from .params import ParameterStore
from .parallel import Reduction
from .refinement import RefinementPolicy
from .checkpoint import Checkpointer
from .monitor import TerminationMonitor, MonitorLog, MonitorState
from .io import read_yaml, write_yaml, history_to_csv, create_output_directory
from .logging import get_logger
from .solver import Solver

_SIGNALS = [signal.SIGHUP, signal.SIGINT, signal.SIGTERM, signal.SIGUSR1]


@dataclass
class SimulationState:
    """Driver state seen by the controller. ``ke`` is recomputed every step."""
    step: int = 0
    t: float = 0.
    dt: float = 0.
    ke: float = 0.


class SimulationController:
    """
    Run control for one case.

    Wires the refinement policy, the checkpointer and the termination
    monitor to an external solver and drives its time stepping. The cycle
    of one step is: write restart file and due snapshots, monitor and log,
    adapt the mesh, advance.

    Parameters
    ----------
    config : RunConfig
        Validated run configuration.
    solver : Solver
        The external solver.
    reduction : Reduction, optional
        Collective reductions (the default is None, which uses MPI.COMM_WORLD).
    outdir : str, optional
        Case directory (the default is the working directory).
    silent : bool, optional
        If True, do not print the configuration and do not write
        ``config.yml`` and ``history.csv`` (the default is False).
    source : str, optional
        Name of the parameter source, for display only.
    """

    def __init__(self,
                 config: RunConfig,
                 solver: Solver,
                 reduction: Reduction | None = None,
                 outdir: str = '.',
                 silent: bool = False,
                 source: str | None = None) -> None:

        self.config = config
        self.solver = solver
        self.reduction = Reduction() if reduction is None else reduction
        self.outdir = outdir
        self.silent = silent
        self.source = source

        self.logger = get_logger('pinchoff.controller', rank=self.reduction.rank, force=True)

        self.refinement = RefinementPolicy(config)
        self.checkpointer = Checkpointer(config, self.reduction, outdir)

        header = (f"Case {config.case_id}, Level {config.max_level}, "
                  f"De {config.De:g}, Ec {config.Ec:g}, Oh {config.Oh:g}, Oha {config.Oha:g}")
        self.log = MonitorLog(os.path.join(outdir, config.log_name), header, self.reduction)
        self.monitor = TerminationMonitor(config, self.reduction, self.log, self.checkpointer)

        self.state = None
        self.resumed = False
        self._stop = False
        self._previous_handlers = {}

    # ---------------------------
    # Constructors
    # ---------------------------

    @classmethod
    def from_store(cls: Type[Self], store: ParameterStore, solver: Solver, **kwargs) -> Self:
        """
        Create a controller from a parameter store.

        Parameters
        ----------
        store : ParameterStore
            Parameter source, loaded on first lookup.
        solver : Solver
            The external solver.

        Returns
        -------
        SimulationController
            Instantiated controller.

        Raises
        ------
        ConfigurationError
            Before anything is written, if the parameters are not valid.
        """
        kwargs.setdefault('source', store.filename)
        return cls(RunConfig.from_store(store), solver, **kwargs)

    @classmethod
    def from_args(cls: Type[Self], args: Sequence[str], solver: Solver, **kwargs) -> Self:
        """Create a controller from the parameter file named by the first positional argument."""
        return cls.from_store(ParameterStore.from_args(args), solver, **kwargs)

    @classmethod
    def from_params(cls: Type[Self], fname: str, solver: Solver, **kwargs) -> Self:
        return cls.from_store(ParameterStore(fname), solver, **kwargs)

    @classmethod
    def from_dict(cls: Type[Self], parameters: dict, solver: Solver, **kwargs) -> Self:
        """Create a controller from literal parameter values."""
        return cls.from_store(ParameterStore.from_dict(parameters), solver, **kwargs)

    # ---------------------------
    # Main run loop
    # ---------------------------

    def pre_run(self) -> None:
        """
        Configure the solver, resume or initialise, and open the case log.
        """
        if self.reduction.is_root:
            create_output_directory(self.outdir)

        config_file = os.path.join(self.outdir, 'config.yml')
        # Written by the root rank only, so only the root rank reads it back
        previous = None
        if self.reduction.is_root and os.path.isfile(config_file):
            previous = read_yaml(config_file)

        if not self.silent and self.reduction.is_root:
            self.config.report()
            write_yaml({'version': __version__, 'config': self.config.as_dict()},
                       config_file)

        self.solver.configure(self.config)

        self.resumed = self.checkpointer.start(self.solver)
        self.log.start(fresh=not self.resumed)

        if self.resumed:
            self.logger.info(f"Resuming from '{self.checkpointer.restart_path}' "
                             f"at step {self.solver.step}, t = {self.solver.time:g}")
            self._compare_config(previous)

        self.state = SimulationState(step=self.solver.step, t=self.solver.time)

    def _compare_config(self, previous: dict | None) -> None:
        """Warn if a resumed run uses other parameters than the run that wrote the restart file."""
        if not previous or 'config' not in previous:
            return

        changed = [k for k, v in self.config.as_dict().items() if previous['config'].get(k, v) != v]
        if changed:
            self.logger.warning(f"Resumed with changed parameters: {', '.join(changed)}")

    def run(self, max_steps: int | None = None) -> MonitorState:
        """
        Step until the monitor reaches a terminal state, a termination
        signal is received, or ``max_steps`` steps have been taken.

        Parameters
        ----------
        max_steps : int, optional
            Upper bound on the number of steps of this call (the default is None).

        Returns
        -------
        MonitorState
            State of the termination monitor at the end of the run.
        """
        if self.state is None:
            self.pre_run()

        self._stop = False
        self._register_signals()

        self._tic = datetime.now()
        self._nb_steps = 0

        try:
            while not self._stop:
                if self.on_step():
                    break

                if max_steps is not None and self._nb_steps >= max_steps:
                    break

                self.adapt()
                self.advance()
        finally:
            self._restore_signals()

        self.post_run()

        return self.monitor.state

    def on_step(self) -> bool:
        """
        Checkpoint and monitor the current step.

        Returns
        -------
        bool
            True if the driver has to stop.
        """
        s = self.state

        self.checkpointer.on_step(self.solver, s.t)
        self.monitor.update(self.solver, s.step, s.dt, s.t)
        s.ke = self.monitor.last_record.ke

        return self.monitor.stop

    def adapt(self) -> dict:
        return self.refinement.adapt(self.solver)

    def advance(self) -> float:
        """Advance the solver, landing exactly on the next snapshot time and the horizon."""
        s = self.state

        dt = self.solver.advance(self.dt_limit(s.t))

        s.step = self.solver.step
        s.t = self.solver.time
        s.dt = dt
        self._nb_steps += 1

        return dt

    def dt_limit(self, t: float) -> float:
        dtmax = self.config.dtmax
        tol = 1e-9 * self.config.tsnap

        for t_event in [self.checkpointer.next_event_time(t), self.config.tmax]:
            gap = t_event - t
            if gap > tol:
                dtmax = min(dtmax, gap)

        return dtmax

    def receive_signal(self, signum, frame) -> None:
        """
        Signal handler: set the `_stop` flag on termination signals.
        """
        if signum in _SIGNALS:
            self._stop = True

    def post_run(self) -> None:
        """
        Finalize run: stop reason, walltime and history.
        """
        walltime = datetime.now() - self._tic
        speed = self._nb_steps / max(walltime.total_seconds(), 1e-12)

        if self._stop and not self.monitor.stop:
            # The last advanced state may be due for a snapshot and is not dumped yet
            self.checkpointer.on_step(self.solver, self.state.t)
            self.log.message(f"Received termination signal at step {self.state.step}. Stopping!")

        self.logger.info(33 * '=')
        self.logger.info(f"Stopped          : {self.monitor.state.value}")
        self.logger.info(self.config.summary())
        self.logger.info(f"Total walltime   : {str(walltime).split('.')[0]}")
        self.logger.info(f"({speed:.2f} steps/s)")
        self.logger.info(33 * '=')

        if not self.silent and self.config.write_history and self.reduction.is_root:
            history_to_csv(os.path.join(self.outdir, 'history.csv'), self.log.history)

    # ---------------------------
    # Signal handling
    # ---------------------------

    def _register_signals(self) -> None:
        for s in _SIGNALS:
            self._previous_handlers[s] = signal.signal(s, self.receive_signal)

    def _restore_signals(self) -> None:
        for s, handler in self._previous_handlers.items():
            signal.signal(s, signal.SIG_DFL if handler is None else handler)
        self._previous_handlers = {}

import os
import signal
import pytest
import numpy as np
import pandas as pd

from PinchOff.controller import SimulationController
from PinchOff.monitor import MonitorState, MSG_BLOWUP, MSG_STAGNATION
from PinchOff.errors import ConfigurationError
from PinchOff.mock import MockSolver
from PinchOff.io import read_yaml

from conftest import BASE_PARAMETERS


class SignalingSolver(MockSolver):
    """Sends a termination signal to this process after a given step."""

    def __init__(self, signum, at_step, **kwargs):
        super().__init__(**kwargs)
        self.signum = signum
        self.at_step = at_step

    def advance(self, dtmax):
        dt = super().advance(dtmax)
        if self.step == self.at_step:
            os.kill(os.getpid(), self.signum)
        return dt


@pytest.fixture
def run_case(tmp_path, serial):

    def _run(solver=None, max_steps=None, silent=False, **overrides):
        params = dict(BASE_PARAMETERS)
        params.update(overrides)
        solver = MockSolver(u0=0.1) if solver is None else solver
        controller = SimulationController.from_dict(params, solver, reduction=serial,
                                                    outdir=str(tmp_path), silent=silent)
        state = controller.run(max_steps=max_steps)
        return controller, state

    return _run


def read_log(tmp_path):
    with open(tmp_path / 'c1000-log') as fp:
        return fp.read().splitlines()


def test_horizon_run(run_case, tmp_path):

    controller, state = run_case()

    assert state is MonitorState.HORIZON_REACHED
    assert controller.state.step == 10
    assert controller.state.t == pytest.approx(0.01)

    lines = read_log(tmp_path)
    assert lines[0] == "Case 1000, Level 5, De 1e+30, Ec 1, Oh 0.01, Oha 0.0001"
    assert lines[1] == "i dt t ke hm vm"
    assert len(lines) == 2 + 11 + 1
    assert lines[-1] == controller.config.summary()

    snapshots = sorted(os.listdir(tmp_path / 'intermediate'))
    assert len(snapshots) == 11
    assert snapshots[0] == 'snapshot-0.0000'
    assert snapshots[-1] == 'snapshot-0.0100'

    assert os.path.isfile(tmp_path / 'restart')

    cfg = read_yaml(tmp_path / 'config.yml')
    assert cfg['config']['max_level'] == 5
    assert cfg['config']['dtmax'] == pytest.approx(1e-3)

    history = pd.read_csv(tmp_path / 'history.csv')
    assert list(history.columns) == ['i', 'dt', 't', 'ke', 'hm', 'vm']
    assert history['i'].tolist() == list(range(11))
    np.testing.assert_allclose(history['vm'], 0.1)


def test_refinement_every_step(run_case):

    controller, _ = run_case()

    # no adaptation after the final step
    assert controller.refinement.num_calls == 10
    assert len(controller.solver.adapt_calls) == 10


def test_silent_run(run_case, tmp_path):

    run_case(silent=True)

    assert not os.path.exists(tmp_path / 'config.yml')
    assert not os.path.exists(tmp_path / 'history.csv')
    assert os.path.isfile(tmp_path / 'c1000-log')


def test_no_history(run_case, tmp_path):

    run_case(writeHistory='false')

    assert os.path.isfile(tmp_path / 'config.yml')
    assert not os.path.exists(tmp_path / 'history.csv')


def test_blowup(run_case, tmp_path):

    controller, state = run_case(solver=MockSolver(u0=0.1, rate=2000.), tmax=0.05)

    assert state is MonitorState.BLOWN_UP
    assert controller.state.step == 11
    assert read_log(tmp_path)[-1] == MSG_BLOWUP

    # the restart file is written again right before stopping
    restart = str(tmp_path / 'restart')
    assert controller.solver.dumps[-2:] == [restart, restart]


def test_stagnation(run_case, tmp_path):

    controller, state = run_case(solver=MockSolver(u0=0.1, rate=-5000.), tmax=0.05)

    assert state is MonitorState.STAGNATED
    assert controller.state.step == 11
    assert read_log(tmp_path)[-1] == MSG_STAGNATION


def test_resume(run_case, tmp_path):

    first, state = run_case(solver=MockSolver(u0=0.2), max_steps=5)

    assert state is MonitorState.RUNNING
    assert first.state.step == 5
    assert not first.resumed
    assert len(os.listdir(tmp_path / 'intermediate')) == 6

    second, state = run_case(solver=MockSolver())

    assert second.resumed
    assert state is MonitorState.HORIZON_REACHED
    assert second.state.step == 10
    np.testing.assert_allclose(second.solver.fields['u.x'], 0.2)

    # no snapshot is written twice
    assert len(os.listdir(tmp_path / 'intermediate')) == 11

    # the log of the first run is continued
    lines = read_log(tmp_path)
    assert lines.count("i dt t ke hm vm") == 1
    assert lines[-1] == second.config.summary()


def test_termination_signal(run_case, tmp_path):

    previous = signal.getsignal(signal.SIGUSR1)

    controller, state = run_case(solver=SignalingSolver(signal.SIGUSR1, at_step=3, u0=0.1))

    assert state is MonitorState.RUNNING
    assert controller.state.step == 3
    assert read_log(tmp_path)[-1] == "Received termination signal at step 3. Stopping!"
    assert signal.getsignal(signal.SIGUSR1) == previous

    # the interrupted state can be resumed
    assert controller.solver.dumps[-1] == str(tmp_path / 'restart')
    resumed = MockSolver()
    assert resumed.restore(str(tmp_path / 'restart'))
    assert resumed.step == 3


def test_steps_land_on_snapshot_times(run_case, tmp_path):

    controller, state = run_case(dtmax=7e-4)

    assert state is MonitorState.HORIZON_REACHED

    snapshots = sorted(os.listdir(tmp_path / 'intermediate'))
    assert snapshots == [f'snapshot-{k * 1e-3:5.4f}' for k in range(11)]

    history = controller.log.history
    assert max(history['dt']) <= 7e-4
    for k in range(11):
        assert np.min(np.abs(np.array(history['t']) - k * 1e-3)) < 1e-12


def test_invalid_configuration_writes_nothing(tmp_path, serial):

    params = dict(BASE_PARAMETERS, dtmax=1.)

    with pytest.raises(ConfigurationError, match='dtmax'):
        SimulationController.from_dict(params, MockSolver(), reduction=serial, outdir=str(tmp_path))

    assert os.listdir(tmp_path) == []


def test_from_params(tmp_path, serial):

    fname = tmp_path / 'case.params'
    fname.write_text("CaseNo = 1234\nMAXlevel = 4\nMINlevel = 2\ntmax = 0.002\ndtmax = 1e-3\n")

    controller = SimulationController.from_params(str(fname), MockSolver(), reduction=serial,
                                                  outdir=str(tmp_path / 'out'), silent=True)

    assert controller.source == str(fname)
    assert controller.config.case_id == 1234
    assert controller.run() is MonitorState.HORIZON_REACHED
    assert os.path.isfile(tmp_path / 'out' / 'c1234-log')


def test_resume_after_termination_signal(run_case, tmp_path):

    run_case(solver=SignalingSolver(signal.SIGUSR1, at_step=3, u0=0.1))

    # step 3 landed on t = 0.003, its snapshot is written before stopping
    assert 'snapshot-0.0030' in os.listdir(tmp_path / 'intermediate')

    controller, state = run_case(solver=MockSolver())

    assert controller.resumed
    assert state is MonitorState.HORIZON_REACHED
    assert sorted(os.listdir(tmp_path / 'intermediate')) == [f'snapshot-{k * 1e-3:5.4f}' for k in range(11)]


def test_resume_with_changed_parameters(run_case, capsys):

    run_case(max_steps=2)
    capsys.readouterr()

    run_case(Oh=2e-2)

    out = capsys.readouterr().out
    assert "Resumed with changed parameters: Oh" in out
    assert 'mu1' in out


def test_resume_with_same_parameters(run_case, capsys):

    run_case(max_steps=2)
    run_case()

    assert "changed parameters" not in capsys.readouterr().out

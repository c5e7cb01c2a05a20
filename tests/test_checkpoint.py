import os
import re
import math
import pytest
import numpy as np

from PinchOff.checkpoint import Checkpointer, snapshot_times, snapshot_label, initial_shape
from PinchOff.errors import SnapshotExistsError
from PinchOff.mock import MockSolver


@pytest.fixture
def solver_for():

    def _make(config, **kwargs):
        solver = MockSolver(**kwargs)
        solver.configure(config)
        return solver

    return _make


def test_snapshot_labels():

    labels = [snapshot_label(t) for t in snapshot_times(2.0, 1e-3)]

    assert len(labels) == 2001
    assert len(set(labels)) == 2001
    assert labels[0] == 'snapshot-0.0000'
    assert labels[1] == 'snapshot-0.0010'
    assert labels[-1] == 'snapshot-2.0000'
    assert all(re.fullmatch(r'snapshot-\d\.\d{4}', label) for label in labels)


def test_snapshot_times_not_accumulated():

    times = snapshot_times(0.01, 1e-3)

    assert len(times) == 11
    np.testing.assert_allclose(np.diff(times), 1e-3)
    assert times[-1] == pytest.approx(0.01)


def test_initial_shape():

    phi = initial_shape(0.05)

    # unperturbed interface at y = 1, the liquid is outside
    assert phi(0., 1.) == pytest.approx(0.)
    assert phi(0., 0.5) < 0.
    assert phi(0., 1.5) > 0.
    assert phi(2. * np.pi, 1.) == pytest.approx(0.05)


def test_fresh_start(tmp_path, make_config, serial, solver_for):

    config = make_config()
    solver = solver_for(config)
    checkpointer = Checkpointer(config, serial, outdir=str(tmp_path))

    assert not checkpointer.start(solver)
    assert not checkpointer.resumed
    assert os.path.isdir(tmp_path / 'intermediate')

    # interface initialised from the analytic shape
    f = solver.fields['f']
    assert f.min() == 0.
    assert f.max() == 1.


def test_restart_overwritten_every_step(tmp_path, make_config, serial, solver_for):

    config = make_config()
    solver = solver_for(config)
    checkpointer = Checkpointer(config, serial, outdir=str(tmp_path))
    checkpointer.start(solver)

    restart = str(tmp_path / 'restart')
    for _ in range(3):
        written = checkpointer.on_step(solver, solver.time)
        assert written[-1] == restart
        solver.advance(4e-4)

    assert solver.dumps.count(restart) == 3
    assert os.path.isfile(restart)

    # t = 0, 4e-4 and 8e-4: only the first snapshot is due
    assert checkpointer.snapshots == [str(tmp_path / 'intermediate' / 'snapshot-0.0000')]


def test_snapshot_order(tmp_path, make_config, serial, solver_for):

    config = make_config()
    solver = solver_for(config)
    checkpointer = Checkpointer(config, serial, outdir=str(tmp_path))
    checkpointer.start(solver)

    written = checkpointer.on_step(solver, 0.)
    assert [os.path.basename(p) for p in written] == ['snapshot-0.0000', 'restart']

    # nothing due in between
    assert [os.path.basename(p) for p in checkpointer.on_step(solver, 5e-4)] == ['restart']


def test_stepping_over_several_times(tmp_path, make_config, serial, solver_for):

    config = make_config()
    solver = solver_for(config)
    checkpointer = Checkpointer(config, serial, outdir=str(tmp_path))
    checkpointer.start(solver)

    checkpointer.on_step(solver, 0.)
    written = checkpointer.on_step(solver, 0.0035)

    assert [os.path.basename(p) for p in written] == ['snapshot-0.0030', 'restart']
    assert len(checkpointer.snapshots) == 2
    assert checkpointer.next_event_time(0.0035) == pytest.approx(0.004)


def test_next_event_time(tmp_path, make_config, serial, solver_for):

    config = make_config()
    solver = solver_for(config)
    checkpointer = Checkpointer(config, serial, outdir=str(tmp_path))
    checkpointer.start(solver)

    assert checkpointer.next_event_time(0.) == 0.
    checkpointer.on_step(solver, 0.)

    assert checkpointer.next_event_time(4e-4) == pytest.approx(1e-3)
    assert checkpointer.next_event_time(0.0095) == pytest.approx(0.01)
    assert math.isinf(checkpointer.next_event_time(0.02))


def test_snapshot_not_overwritten(tmp_path, make_config, serial, solver_for):

    config = make_config()
    solver = solver_for(config)
    checkpointer = Checkpointer(config, serial, outdir=str(tmp_path))
    checkpointer.start(solver)

    (tmp_path / 'intermediate' / 'snapshot-0.0000').write_text('')

    with pytest.raises(SnapshotExistsError):
        checkpointer.on_step(solver, 0.)

    assert isinstance(SnapshotExistsError('x'), FileExistsError)


def test_resume(tmp_path, make_config, serial, solver_for):

    config = make_config()

    first = solver_for(config, u0=0.2)
    checkpointer = Checkpointer(config, serial, outdir=str(tmp_path))
    checkpointer.start(first)
    for _ in range(3):
        checkpointer.on_step(first, first.time)
        first.advance(config.dtmax)
    checkpointer.on_step(first, first.time)

    second = solver_for(config)
    resumed = Checkpointer(config, serial, outdir=str(tmp_path))

    assert resumed.start(second)
    assert second.time == pytest.approx(3e-3)
    assert second.step == 3
    np.testing.assert_allclose(second.fields['u.x'], 0.2)
    np.testing.assert_allclose(second.fields['f'], first.fields['f'])

    # snapshots up to the restored time are not written again
    assert resumed.next_event_time(second.time) == pytest.approx(4e-3)
    assert [os.path.basename(p) for p in resumed.on_step(second, second.time)] == ['restart']


def test_non_root_writes_nothing(tmp_path, make_config, reduction_on_rank, solver_for):

    config = make_config()
    solver = solver_for(config)
    checkpointer = Checkpointer(config, reduction_on_rank(1), outdir=str(tmp_path))

    assert not checkpointer.start(solver)
    assert checkpointer.on_step(solver, 0.) == []
    assert solver.dumps == []
    assert not os.path.exists(tmp_path / 'intermediate')
    assert not os.path.exists(tmp_path / 'restart')

    # the schedule advances on every rank
    assert checkpointer.next_event_time(0.) == pytest.approx(1e-3)


def test_long_schedule(tmp_path, make_config, serial):

    config = make_config(tmax=1e5)
    checkpointer = Checkpointer(config, serial, outdir=str(tmp_path))

    assert checkpointer.num_times == 100000001
    assert checkpointer.next_event_time(12345.6784) == pytest.approx(12345.679)
    assert checkpointer.next_event_time(1e5) == pytest.approx(1e5)
    assert math.isinf(checkpointer.next_event_time(1e5 + 1.))

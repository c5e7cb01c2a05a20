import pytest

from PinchOff.refinement import RefinementPolicy
from PinchOff.mock import MockSolver
from PinchOff.checkpoint import initial_shape


class RecordingSolver:
    """Records the order of curvature and adaptation calls."""

    def __init__(self, fail=False):
        self.events = []
        self.fail = fail

    def curvature(self):
        self.events.append('curvature')

    def adapt_wavelet(self, fields, tolerances, max_level, min_level):
        if self.fail:
            raise RuntimeError("cannot refine below minimum level")
        self.events.append(('adapt', tuple(fields), tuple(tolerances), max_level, min_level))
        return {'nf': 0, 'nc': 0}


def test_fields_and_tolerances(make_config):

    config = make_config(MAXlevel=9, MINlevel=4, fErr=1e-4, VelErr=2e-3, AErr=5e-3, KErr=1e-7)
    policy = RefinementPolicy(config)

    assert policy.fields == ['f', 'u.x', 'u.y', 'A11', 'A22', 'A12', 'AThTh', 'KAPPA']
    assert policy.tolerances == [1e-4, 2e-3, 2e-3, 5e-3, 5e-3, 5e-3, 5e-3, 1e-7]
    assert policy.max_level == 9
    assert policy.min_level == 4


def test_curvature_before_every_adaptation(make_config):

    policy = RefinementPolicy(make_config())
    solver = RecordingSolver()

    for _ in range(3):
        policy(solver)

    assert policy.num_calls == 3
    assert solver.events[0::2] == ['curvature'] * 3
    assert all(e[0] == 'adapt' for e in solver.events[1::2])

    # tolerances do not change between steps
    assert len(set(solver.events[1::2])) == 1


def test_solver_errors_propagate(make_config):

    policy = RefinementPolicy(make_config())

    with pytest.raises(RuntimeError, match='minimum level'):
        policy.adapt(RecordingSolver(fail=True))

    assert policy.num_calls == 0


def test_mock_solver_rejects_stale_curvature(make_config):

    config = make_config()
    solver = MockSolver(u0=0.1)
    solver.configure(config)
    solver.fraction(initial_shape(config.epsilon))

    policy = RefinementPolicy(config)
    policy.adapt(solver)

    # the mesh changed, the old curvature must not be used
    solver.advance(config.dtmax)
    with pytest.raises(RuntimeError, match='stale'):
        solver.adapt_wavelet(policy.fields, policy.tolerances, policy.max_level, policy.min_level)

    policy.adapt(solver)
    assert len(solver.adapt_calls) == 2


def test_adaptation_statistics(make_config):

    config = make_config(MAXlevel=9, epsilon=0.)
    solver = MockSolver()
    solver.configure(config)
    solver.fraction(initial_shape(config.epsilon))

    stats = RefinementPolicy(config).adapt(solver)

    # the interface indicator jumps across the interface, away from it all fields are uniform
    assert stats['nf'] > 0
    assert stats['nc'] > 0
    assert solver.adapt_calls[-1]['fields'][-1] == 'KAPPA'


def test_no_refinement_beyond_max_level(make_config):

    config = make_config(MAXlevel=5)
    solver = MockSolver()
    solver.configure(config)
    solver.fraction(initial_shape(config.epsilon))

    stats = RefinementPolicy(config).adapt(solver)

    assert solver.level == config.max_level
    assert stats['nf'] == 0

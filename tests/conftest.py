import pytest

from PinchOff.config import RunConfig
from PinchOff.parallel import SerialReduction

# Small and short case, 32 x 32 cells and 10 steps to the horizon
BASE_PARAMETERS = {
    'CaseNo': 1000,
    'MAXlevel': 5,
    'MINlevel': 3,
    'tmax': 0.01,
    'dtmax': 1e-3,
    'tsnap': 1e-3,
}


class RankReduction(SerialReduction):
    """Single process pretending to be a given rank."""

    def __init__(self, rank=0):
        self._rank = rank

    @property
    def rank(self):
        return self._rank


@pytest.fixture
def make_config():

    def _make(**overrides):
        params = dict(BASE_PARAMETERS)
        params.update(overrides)
        return RunConfig.from_dict(params)

    return _make


@pytest.fixture
def serial():
    return SerialReduction()


@pytest.fixture
def reduction_on_rank():
    return RankReduction

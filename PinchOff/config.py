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
Validated run configuration.

:class:`RunConfig` is built once from a :class:`~PinchOff.params.ParameterStore`
and is immutable afterwards. Phase 1 is the viscoelastic liquid, phase 2
the Newtonian gas. All quantities are non-dimensionalised with the liquid
density, the surface tension and the initial interface radius.
"""
import math
from dataclasses import dataclass, field, fields, asdict

from .errors import ConfigurationError
from .io import print_header, print_dict
from .params import ParameterStore

# De at or above this value means an (effectively) infinite relaxation time
DE_ELASTIC_LIMIT = 1e30

# Literal values of the hard-coded reference case
INLINE_PARAMETERS = {
    'CaseNo': 1000,
    'MAXlevel': 12,
    'tmax': 200.,
    'Oh': 1e-2,
    'De': 1e30,
    'Ec': 1e0,
    'dtmax': 1e-5,
}

# (attribute, parameter key, type, default)
_SCHEMA = [
    ('case_id', 'CaseNo', 'int', 1000),
    ('max_level', 'MAXlevel', 'int', 12),
    ('min_level', 'MINlevel', 'int', 6),
    ('tmax', 'tmax', 'double', 200.),
    ('Oh', 'Oh', 'double', 1e-2),
    ('Oha', 'Oha', 'double', None),
    ('De', 'De', 'double', 1e30),
    ('Ec', 'Ec', 'double', 1.),
    ('dtmax', 'dtmax', 'double', 1e-5),
    ('tsnap', 'tsnap', 'double', 1e-3),
    ('f_err', 'fErr', 'double', 1e-3),
    ('k_err', 'KErr', 'double', 1e-6),
    ('vel_err', 'VelErr', 'double', 1e-3),
    ('a_err', 'AErr', 'double', 1e-3),
    ('epsilon', 'epsilon', 'double', 0.05),
    ('rho_gas', 'rho2', 'double', 1e-3),
    ('restart_file', 'restartFile', 'string', 'restart'),
    ('write_history', 'writeHistory', 'bool', True),
]


@dataclass(frozen=True)
class RunConfig:
    """
    Immutable run parameters.

    Parameters
    ----------
    case_id : int
        Case number (>= 1000), names the log file ``c<case_id>-log``.
    max_level : int
        Maximum refinement level.
    tmax : float
        Simulated time horizon.
    Oh : float
        Solvent Ohnesorge number.
    Oha : float
        Gas Ohnesorge number.
    De : float
        Deborah number (0: Newtonian, >= 1e30 or inf: purely elastic).
    Ec : float
        Elasto-capillary number.
    dtmax : float
        Maximum time step, ``0 < dtmax <= tmax``.
    """
    case_id: int = 1000
    max_level: int = 12
    tmax: float = 200.
    Oh: float = 1e-2
    Oha: float = 1e-4
    De: float = 1e30
    Ec: float = 1.
    dtmax: float = 1e-5

    min_level: int = 6
    init_level: int = 8
    tsnap: float = 1e-3
    f_err: float = 1e-3
    k_err: float = 1e-6
    vel_err: float = 1e-3
    a_err: float = 1e-3
    epsilon: float = 0.05
    rho_gas: float = 1e-3
    domain_size: float = 2. * math.pi
    restart_file: str = 'restart'
    write_history: bool = True

    # Derived quantities
    rho1: float = field(init=False)
    rho2: float = field(init=False)
    mu1: float = field(init=False)
    mu2: float = field(init=False)
    G1: float = field(init=False)
    G2: float = field(init=False)
    lambda1: float = field(init=False)
    lambda2: float = field(init=False)
    sigma: float = field(init=False)

    def __post_init__(self) -> None:
        problems = self._collect_problems()
        if problems:
            raise ConfigurationError("Invalid run configuration:\n  - " + "\n  - ".join(problems))

        derived = {'rho1': 1., 'rho2': self.rho_gas,
                   'mu1': self.Oh, 'mu2': self.Oha,
                   'G1': self.Ec, 'G2': 0.,
                   'lambda1': self.De, 'lambda2': 0.,
                   'sigma': 1.}

        for k, v in derived.items():
            object.__setattr__(self, k, v)

    # ---------------------------
    # Constructors
    # ---------------------------

    @classmethod
    def from_store(cls, store: ParameterStore) -> "RunConfig":
        """
        Read all recognised keys from a parameter store and validate them.

        Parameters
        ----------
        store : ParameterStore
            Source of parameters, loaded lazily on first lookup.

        Returns
        -------
        RunConfig
            Validated configuration.

        Raises
        ------
        ConfigurationError
            If any combination of parameters is not meaningful.
        """
        kwargs = {}
        for attr, key, kind, default in _SCHEMA:
            if attr == 'Oha':
                continue
            getter = getattr(store, f'get_{kind}')
            kwargs[attr] = getter(key, default)

        # Gas viscosity follows the solvent unless given explicitly
        kwargs['Oha'] = store.get_double('Oha', 1e-2 * kwargs['Oh'])

        return cls(**kwargs)

    @classmethod
    def from_file(cls, fname: str) -> "RunConfig":
        return cls.from_store(ParameterStore(fname))

    @classmethod
    def from_dict(cls, parameters: dict) -> "RunConfig":
        """Build a configuration from literal values keyed like the parameter file."""
        return cls.from_store(ParameterStore.from_dict(parameters))

    @classmethod
    def inline(cls) -> "RunConfig":
        """Configuration of the hard-coded reference case."""
        return cls.from_dict(INLINE_PARAMETERS)

    # ---------------------------
    # Validation
    # ---------------------------

    def _collect_problems(self) -> list[str]:
        problems = []

        def check(cond, msg):
            if not cond:
                problems.append(msg)

        for f in fields(self):
            if f.init and isinstance(getattr(self, f.name), float) and math.isnan(getattr(self, f.name)):
                problems.append(f"{f.name} is NaN")

        for name in ['tmax', 'dtmax', 'tsnap']:
            check(not math.isinf(getattr(self, name)), f"{name} must be finite, got {getattr(self, name)}")

        check(self.case_id >= 1000, f"CaseNo must be >= 1000, got {self.case_id}")
        check(self.min_level >= 1, f"MINlevel must be >= 1, got {self.min_level}")
        check(self.max_level >= self.min_level,
              f"MAXlevel ({self.max_level}) must not be below MINlevel ({self.min_level})")
        check(self.tmax > 0., f"tmax must be positive, got {self.tmax}")
        check(self.Oh > 0., f"Oh must be positive, got {self.Oh}")
        check(self.Oha >= 0., f"Oha must be non-negative, got {self.Oha}")
        check(self.De >= 0., f"De must be non-negative, got {self.De}")
        check(self.Ec >= 0., f"Ec must be non-negative, got {self.Ec}")
        check(self.dtmax > 0., f"dtmax must be positive, got {self.dtmax}")
        check(self.dtmax <= self.tmax, f"dtmax ({self.dtmax}) must not exceed tmax ({self.tmax})")
        check(self.tsnap > 0., f"tsnap must be positive, got {self.tsnap}")
        check(self.rho_gas > 0., f"rho2 must be positive, got {self.rho_gas}")
        check(0. <= self.epsilon < 1., f"epsilon must be in [0, 1), got {self.epsilon}")

        for name in ['f_err', 'k_err', 'vel_err', 'a_err']:
            check(getattr(self, name) > 0., f"{name} must be positive, got {getattr(self, name)}")

        return problems

    # ---------------------------
    # Convenience properties
    # ---------------------------

    @property
    def is_newtonian(self) -> bool:
        """True if the liquid has no elasticity (zero relaxation time or modulus)."""
        return self.De == 0. or self.Ec == 0.

    @property
    def is_purely_elastic(self) -> bool:
        """True if the relaxation time is the effectively infinite sentinel."""
        return self.De >= DE_ELASTIC_LIMIT

    @property
    def initial_level(self) -> int:
        """Level of the uniform grid before the first adaptation."""
        return min(self.init_level, self.max_level)

    @property
    def log_name(self) -> str:
        return f"c{self.case_id}-log"

    def as_dict(self) -> dict:
        return asdict(self)

    def summary(self) -> str:
        """One-line description naming the case and its key parameters."""
        return f"Case {self.case_id}, Level {self.max_level}, De {self.De:2.1e}, Ec {self.Ec:2.1e}, Oh {self.Oh:2.1e}"

    def report(self) -> None:
        """Print the resolved configuration."""
        print_header("RUN CONFIGURATION")
        print_dict(self.as_dict())
        print_header("RUN CONFIGURATION COMPLETED")

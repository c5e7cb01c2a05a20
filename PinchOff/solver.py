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
Interface to the external adaptive-mesh solver.

The run-control layer never discretises anything itself. It talks to the
solver through :class:`Solver`, which a binding to the actual PDE library
implements. :class:`~PinchOff.mock.MockSolver` is an in-process stand-in.
"""
import abc
from dataclasses import dataclass
from typing import Callable, Sequence

import numpy as np
import numpy.typing as npt

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from .config import RunConfig

NDArray = npt.NDArray[np.floating]

# Interface indicator, velocity and conformation tensor components
INTERFACE = 'f'
VELOCITY = ('u.x', 'u.y')
CONFORMATION = ('A11', 'A22', 'A12', 'AThTh')
CURVATURE = 'KAPPA'


@dataclass
class CellData:
    """Leaf cells owned by this rank.

    Attributes
    ----------
    y : NDArray
        Radial cell-centre coordinate (axisymmetric geometric weight is 2πy).
    delta : NDArray
        Cell size.
    f : NDArray
        Interface indicator (volume fraction of phase 1).
    ux, uy : NDArray
        Velocity components.
    """
    y: NDArray
    delta: NDArray
    f: NDArray
    ux: NDArray
    uy: NDArray


class Solver(abc.ABC):
    """External solver seen from the controller.

    Implementations are expected to behave identically on every rank, all
    methods except :meth:`dump` are collective.
    """

    @property
    @abc.abstractmethod
    def time(self) -> float:
        """Current simulated time."""

    @property
    @abc.abstractmethod
    def step(self) -> int:
        """Index of the current step."""

    @abc.abstractmethod
    def configure(self, config: "RunConfig") -> None:
        """Pass material properties, time step limit and grid size.

        Parameters
        ----------
        config : RunConfig
            Validated run configuration.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def fraction(self, phi: Callable[[NDArray, NDArray], NDArray]) -> None:
        """Initialise the interface indicator from a level-set function ``phi(x, y)``.

        The indicator is one where ``phi > 0``.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def curvature(self) -> None:
        """Recompute the curvature field from the current interface indicator."""
        raise NotImplementedError

    @abc.abstractmethod
    def adapt_wavelet(self,
                      fields: Sequence[str],
                      tolerances: Sequence[float],
                      max_level: int,
                      min_level: int) -> dict:
        """Refine and coarsen where the wavelet error of a field exceeds its tolerance.

        Parameters
        ----------
        fields : Sequence[str]
            Names of the fields to estimate the error on.
        tolerances : Sequence[float]
            Error tolerance per field.
        max_level : int
            Maximum refinement level.
        min_level : int
            Minimum refinement level.

        Returns
        -------
        dict
            Number of refined (``nf``) and coarsened (``nc``) cells.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def dump(self, path: str) -> None:
        """Write the full solver state to ``path``."""
        raise NotImplementedError

    @abc.abstractmethod
    def restore(self, path: str) -> bool:
        """Read the solver state from ``path``. Returns False if there is nothing to restore."""
        raise NotImplementedError

    @abc.abstractmethod
    def cells(self) -> CellData:
        raise NotImplementedError

    @abc.abstractmethod
    def interface_heights(self) -> NDArray:
        """Height of the interface in every interfacial cell of this rank."""
        raise NotImplementedError

    @abc.abstractmethod
    def advance(self, dtmax: float) -> float:
        """Advance by one step of at most ``dtmax`` and return the step size taken."""
        raise NotImplementedError

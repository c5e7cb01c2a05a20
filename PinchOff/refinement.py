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
from typing import TYPE_CHECKING

from .solver import INTERFACE, VELOCITY, CONFORMATION, CURVATURE
if TYPE_CHECKING:
    from .config import RunConfig
    from .solver import Solver


class RefinementPolicy:
    """
    Mesh adaptation callback.

    Every step the wavelet adaptation of the solver is called on the
    interface indicator, the velocity, the conformation tensor and the
    interface curvature. Tolerances and levels are fixed for the whole run.

    Parameters
    ----------
    config : RunConfig
        Validated run configuration.
    """

    def __init__(self, config: "RunConfig") -> None:

        self.fields = [INTERFACE, *VELOCITY, *CONFORMATION, CURVATURE]
        self.tolerances = [config.f_err,
                           config.vel_err, config.vel_err,
                           config.a_err, config.a_err, config.a_err, config.a_err,
                           config.k_err]

        self.max_level = config.max_level
        self.min_level = config.min_level

        self.num_calls = 0
        self.last_stats = None

    def __call__(self, solver: "Solver") -> dict:
        return self.adapt(solver)

    def adapt(self, solver: "Solver") -> dict:
        """
        Recompute the curvature and adapt the mesh once.

        Errors of the solver (e.g. refusing to go below ``min_level``) are
        not handled here.

        Parameters
        ----------
        solver : Solver
            The external solver.

        Returns
        -------
        dict
            Adaptation statistics reported by the solver.
        """
        # Curvature must match the current mesh
        solver.curvature()

        self.last_stats = solver.adapt_wavelet(self.fields, self.tolerances,
                                               self.max_level, self.min_level)
        self.num_calls += 1

        return self.last_stats

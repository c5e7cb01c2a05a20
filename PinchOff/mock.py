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
import numpy as np
import netCDF4

from .solver import Solver, CellData, INTERFACE, VELOCITY, CONFORMATION, CURVATURE


class MockSolver(Solver):
    """Uniform-grid stand-in for the external solver.

    Instances of this class mimick the interface of the adaptive solver on
    a fixed ``2^level x 2^level`` grid. There is no flow solver: velocities
    change only by a prescribed exponential rate, which is enough to drive
    the run-control layer through all of its states. Dumps are NetCDF files.

    Parameters
    ----------
    u0 : float, optional
        Initial uniform axial velocity (the default is 0.).
    rate : float, optional
        Exponential growth (> 0) or decay (< 0) rate of the velocity
        (the default is 0.).
    """

    name = 'mock'

    def __init__(self, u0=0., rate=0.):
        self.u0 = u0
        self.rate = rate

        self.config = None
        self.level = None
        self.L0 = None
        self.fields = {}

        self._time = 0.
        self._step = 0

        # Bumped whenever cell values or the mesh change
        self._mesh_version = 0
        self._kappa_version = -1

        self.adapt_calls = []
        self.dumps = []

    @property
    def time(self):
        return self._time

    @property
    def step(self):
        return self._step

    @property
    def delta(self):
        return self.L0 / 2**self.level

    def configure(self, config):
        self.config = config
        self.L0 = config.domain_size
        self._init_grid(config.initial_level)

    def _init_grid(self, level):
        self.level = level
        N = 2**level

        c = (np.arange(N) + 0.5) * self.delta
        self.x, self.y = np.meshgrid(c, c, indexing='ij')

        self.fields = {name: np.zeros((N, N)) for name in (INTERFACE,) + VELOCITY + CONFORMATION + (CURVATURE,)}
        self.fields['u.x'][:] = self.u0
        for diag in ['A11', 'A22', 'AThTh']:
            self.fields[diag][:] = 1.

        self._mesh_version += 1

    def set_velocity(self, ux, uy=0.):
        self.fields['u.x'][:] = ux
        self.fields['u.y'][:] = uy
        self._mesh_version += 1

    def fraction(self, phi):
        # Linear volume fraction across one cell
        self.fields[INTERFACE] = np.clip(0.5 + phi(self.x, self.y) / self.delta, 0., 1.)
        self._mesh_version += 1

    def curvature(self):
        f = self.fields[INTERFACE]
        fx, fy = np.gradient(f, self.delta)
        norm = np.hypot(fx, fy)
        mask = norm > 1e-12

        nx = np.where(mask, fx / np.where(mask, norm, 1.), 0.)
        ny = np.where(mask, fy / np.where(mask, norm, 1.), 0.)

        kappa = np.gradient(nx, self.delta, axis=0) + np.gradient(ny, self.delta, axis=1)
        self.fields[CURVATURE] = np.where(mask, kappa, 0.)
        self._kappa_version = self._mesh_version

    def adapt_wavelet(self, fields, tolerances, max_level, min_level):

        if len(fields) != len(tolerances):
            raise ValueError(f"Got {len(fields)} fields but {len(tolerances)} tolerances")

        if CURVATURE in fields and self._kappa_version != self._mesh_version:
            raise RuntimeError("Curvature field is stale, call curvature() before adaptation")

        N = 2**self.level
        refine = np.zeros((N, N), dtype=bool)
        coarsen = np.ones((N // 2, N // 2), dtype=bool)

        for name, tol in zip(fields, tolerances):
            err = _wavelet_error(self.fields[name])
            refine |= err > tol
            coarsen &= err.reshape(N // 2, 2, N // 2, 2).max(axis=(1, 3)) < tol / 1.5

        stats = {'nf': int(refine.sum()) if self.level < max_level else 0,
                 'nc': int(coarsen.sum()) if self.level > min_level else 0}

        self.adapt_calls.append({'fields': list(fields),
                                 'tolerances': list(tolerances),
                                 'max_level': max_level,
                                 'min_level': min_level,
                                 'kappa': self.fields[CURVATURE].copy(),
                                 **stats})

        # The grid stays uniform, but cell values are considered modified
        self._mesh_version += 1

        return stats

    def dump(self, path):
        with netCDF4.Dataset(path, 'w') as nc:
            N = 2**self.level
            nc.createDimension('x', N)
            nc.createDimension('y', N)

            nc.setncattr('time', self._time)
            nc.setncattr('step', self._step)
            nc.setncattr('level', self.level)
            nc.setncattr('L0', self.L0)

            for name, values in self.fields.items():
                var = nc.createVariable(_ncname(name), 'f8', ('x', 'y'))
                var[:] = values

        self.dumps.append(path)

    def restore(self, path):
        if not os.path.isfile(path):
            return False

        with netCDF4.Dataset(path, 'r') as nc:
            self.L0 = float(nc.getncattr('L0'))
            self._init_grid(int(nc.getncattr('level')))
            self._time = float(nc.getncattr('time'))
            self._step = int(nc.getncattr('step'))

            for name in self.fields:
                self.fields[name] = np.array(nc.variables[_ncname(name)][:], dtype=float)

        self._mesh_version += 1

        return True

    def cells(self):
        delta = np.full_like(self.y, self.delta)
        return CellData(y=self.y.ravel(),
                        delta=delta.ravel(),
                        f=self.fields[INTERFACE].ravel(),
                        ux=self.fields['u.x'].ravel(),
                        uy=self.fields['u.y'].ravel())

    def interface_heights(self):
        f = self.fields[INTERFACE]
        mask = (f > 0.) & (f < 1.)
        return self.y[mask] - (f[mask] - 0.5) * self.delta

    def advance(self, dtmax):
        dt = min(dtmax, self.config.dtmax)

        growth = np.exp(self.rate * dt)
        self.fields['u.x'] *= growth
        self.fields['u.y'] *= growth

        self._time += dt
        self._step += 1
        self._mesh_version += 1

        return dt


def _ncname(name):
    return name.replace('.', '_')


def _wavelet_error(a):
    """Difference between a field and its restriction prolongated back to the fine grid."""
    N = a.shape[0]
    coarse = a.reshape(N // 2, 2, N // 2, 2).mean(axis=(1, 3))
    return np.abs(a - np.repeat(np.repeat(coarse, 2, axis=0), 2, axis=1))

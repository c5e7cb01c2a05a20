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
"""Exceptions and warnings raised by the run-control layer."""


class PinchOffError(Exception):
    """Base class for PinchOff errors."""


class ConfigurationError(PinchOffError, ValueError):
    """Parameter combination is not physically meaningful; raised before the first step."""


class LogFileError(PinchOffError, OSError):
    """The per-run log file could not be opened for writing."""


class SnapshotExistsError(PinchOffError, FileExistsError):
    """A labeled snapshot would overwrite an existing one."""


class PhysicalInvariantError(PinchOffError, AssertionError):
    """The monitored state is physically invalid (e.g. negative kinetic energy).

    There is no recovery from this state, callers must not catch it.
    """


class ParameterWarning(UserWarning):
    """Recoverable defect in the parameter file; a default value is used instead."""


__all__ = [
    "PinchOffError",
    "ConfigurationError",
    "LogFileError",
    "SnapshotExistsError",
    "PhysicalInvariantError",
    "ParameterWarning",
]

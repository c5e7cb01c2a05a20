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
Flat ``key=value`` parameter files with typed, defaulted lookups.

A parameter file holds one entry per line::

    CaseNo = 1000      # case identifier
    MAXlevel = 12
    tmax = 200.

Everything after the first ``#`` is a comment. Lines without ``=`` and
lines with an empty key or value are skipped. Invalid typed values never
abort a run: a :class:`~PinchOff.errors.ParameterWarning` is emitted and
the caller's default is returned.
"""
import math
import os
import re
import warnings
from typing import Mapping, Sequence

from .errors import ParameterWarning

DEFAULT_FILENAME = 'case.params'
MAX_ENTRIES = 256

INT32_MIN = -2**31
INT32_MAX = 2**31 - 1

_TRUE = {'1', 'true', 'yes', 'on'}
_FALSE = {'0', 'false', 'no', 'off'}

_INT_PATTERN = re.compile(r'[+-]?[0-9]+')
_FLOAT_PATTERN = re.compile(r'[+-]?(([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?|inf|infinity|nan)',
                            re.IGNORECASE)
_HEX_FLOAT_PATTERN = re.compile(r'[+-]?0x([0-9a-f]+\.?[0-9a-f]*|\.[0-9a-f]+)(p[+-]?[0-9]+)?', re.IGNORECASE)


def _nonzero_mantissa(s: str) -> bool:
    s = s.lower().lstrip('+-')
    if s.startswith('0x'):
        return any(c not in '0.' for c in s[2:].split('p', 1)[0])
    return any(c not in '0.' for c in s.split('e', 1)[0])


class ParameterStore:
    """
    Ordered key/value store filled from a parameter file.

    The store is loaded lazily: the first typed lookup parses the selected
    file if :meth:`load` has not been called yet. Loading again replaces all
    entries.

    Parameters
    ----------
    filename : str, optional
        Parameter file to read on first access (the default is ``case.params``).
    max_entries : int, optional
        Maximum number of distinct keys. Further keys are dropped with a
        warning (the default is 256).
    """

    def __init__(self, filename: str = DEFAULT_FILENAME, max_entries: int = MAX_ENTRIES) -> None:
        self.filename = filename
        self.max_entries = max_entries
        self._entries: dict[str, str] = {}
        self._loaded = False
        self._warned_missing = False

    # ---------------------------
    # Constructors
    # ---------------------------

    @classmethod
    def from_args(cls, args: Sequence[str], **kwargs) -> "ParameterStore":
        """Create a store whose source file is selected from positional arguments."""
        store = cls(**kwargs)
        store.select_source_from_args(args)
        return store

    @classmethod
    def from_dict(cls, entries: Mapping, **kwargs) -> "ParameterStore":
        """
        Create an already loaded store from in-memory literals.

        Values are converted with ``str`` so that the typed accessors apply
        the same parsing rules as for file input.

        Parameters
        ----------
        entries : Mapping
            Key/value pairs.

        Returns
        -------
        ParameterStore
            Loaded store, no file is read.
        """
        store = cls(filename='<inline>', **kwargs)
        store._loaded = True
        for key, value in entries.items():
            key, value = str(key).strip(), str(value).strip()
            if key and value:
                store._set(key, value)
        return store

    # ---------------------------
    # Loading
    # ---------------------------

    def select_source_from_args(self, args: Sequence[str]) -> None:
        """
        Select the parameter file from the first positional argument.

        Falls back to ``case.params`` if no (non-empty) argument is given.
        The file is not parsed here.

        Parameters
        ----------
        args : Sequence[str]
            Positional arguments, without the program name.
        """
        if len(args) > 0 and args[0]:
            self.filename = args[0]
        else:
            self.filename = DEFAULT_FILENAME

    def load(self, filename: str | None = None) -> bool:
        """
        Parse a parameter file, replacing all previous entries.

        Parameters
        ----------
        filename : str, optional
            File to read (the default is None, which uses the selected file).

        Returns
        -------
        bool
            False if the file does not exist, in which case the store stays
            empty and every lookup returns its default.
        """
        if filename is not None:
            self.filename = filename

        self._entries = {}
        self._loaded = True

        if not os.path.isfile(self.filename):
            if not self._warned_missing:
                warnings.warn(f"Parameter file '{self.filename}' not found. Using defaults.",
                              ParameterWarning)
                self._warned_missing = True
            return False

        # Undecodable bytes only spoil the line they are on
        with open(self.filename, 'r', encoding='utf-8', errors='replace') as fh:
            for line in fh:
                line = line.split('#', 1)[0]
                if '=' not in line:
                    continue

                key, value = line.split('=', 1)
                key = key.strip()
                value = value.strip()
                if not key or not value:
                    continue

                self._set(key, value)

        return True

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def _set(self, key: str, value: str) -> None:
        if key not in self._entries and len(self._entries) >= self.max_entries:
            warnings.warn(f"Parameter entry limit reached ({self.max_entries}), skipping '{key}'",
                          ParameterWarning)
            return
        self._entries[key] = value

    # ---------------------------
    # Typed lookups
    # ---------------------------

    def get_string(self, key: str, default: str | None = None) -> str | None:
        """Raw string value of ``key``, or ``default`` if the key is absent."""
        self._ensure_loaded()
        return self._entries.get(key, default)

    def get_int(self, key: str, default: int) -> int:
        """
        Integer value of ``key``.

        The whole trimmed value must be a base-10 integer within the 32-bit
        signed range, otherwise a warning is emitted and ``default`` is
        returned.
        """
        s = self.get_string(key)
        if s is None:
            return default

        s = s.strip()
        if _INT_PATTERN.fullmatch(s):
            value = int(s)
            if INT32_MIN <= value <= INT32_MAX:
                return value

        self._warn_invalid('int', key, s, default)
        return default

    def get_double(self, key: str, default: float) -> float:
        """
        Floating point value of ``key``.

        Decimal and hexadecimal (``0x1p-3``) literals, ``inf`` and ``nan``
        are accepted. The whole trimmed value must parse, and finite literals
        must neither overflow nor underflow to zero, otherwise a warning is
        emitted and ``default`` is returned.
        """
        s = self.get_string(key)
        if s is None:
            return default

        s = s.strip()
        value = None
        if _FLOAT_PATTERN.fullmatch(s):
            value = float(s)
        elif _HEX_FLOAT_PATTERN.fullmatch(s):
            try:
                value = float.fromhex(s)
            except OverflowError:
                value = None

        if value is not None:
            overflow = math.isinf(value) and 'inf' not in s.lower()
            underflow = value == 0. and _nonzero_mantissa(s)
            if not (overflow or underflow):
                return value

        self._warn_invalid('double', key, s, default)
        return default

    def get_bool(self, key: str, default: bool) -> bool:
        """
        Boolean value of ``key``.

        Case-insensitive; true: ``1, true, yes, on``, false: ``0, false, no, off``.
        Anything else warns and returns ``default``.
        """
        s = self.get_string(key)
        if s is None:
            return default

        token = s.strip().lower()
        if token in _TRUE:
            return True
        if token in _FALSE:
            return False

        self._warn_invalid('bool', key, s, default)
        return default

    @staticmethod
    def _warn_invalid(kind: str, key: str, raw: str, default) -> None:
        warnings.warn(f"Invalid {kind} for '{key}' ('{raw}'), using default {default}",
                      ParameterWarning)

    # ---------------------------
    # Inspection
    # ---------------------------

    @property
    def loaded(self) -> bool:
        return self._loaded

    def keys(self) -> list[str]:
        self._ensure_loaded()
        return list(self._entries.keys())

    def as_dict(self) -> dict[str, str]:
        self._ensure_loaded()
        return dict(self._entries)

    def __contains__(self, key: str) -> bool:
        self._ensure_loaded()
        return key in self._entries

    def __len__(self) -> int:
        self._ensure_loaded()
        return len(self._entries)

    def __repr__(self) -> str:
        state = 'loaded' if self._loaded else 'not loaded'
        return f"ParameterStore('{self.filename}', {len(self._entries)} entries, {state})"

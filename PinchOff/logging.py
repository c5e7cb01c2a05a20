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
from __future__ import annotations

import logging
import os
import sys
from typing import Optional, TextIO


def _default_filename_for(name: str) -> str:
    # 'pinchoff.monitor' -> 'pinchoff_monitor.log'
    return name.replace('.', '_') + '.log'


def get_logger(name: str,
               outdir: Optional[str] = None,
               filename: Optional[str] = None,
               level: int = logging.INFO,
               rank: int = 0,
               stream: Optional[TextIO] = None,
               force: bool = False) -> logging.Logger:
    """Return a standardised logger for PinchOff modules.

    Messages carry no decoration, so that the console mirrors the case log
    file line by line. Only the designated rank (rank 0) emits anything;
    loggers on other ranks get a ``NullHandler``.

    Parameters
    ----------
    name : str
        Name of the logger.
    outdir : str, optional
        Output directory to write a logfile into (the default is None, which only writes to the stream)
    filename : str, optional
        Output filename of the logger (the default is None, which derives it from the name)
    level : int, optional
        Log level (the default is logging.INFO)
    rank : int, optional
        MPI rank of the calling process (the default is 0)
    stream : TextIO, optional
        Console stream (the default is None, which uses sys.stdout at call time)
    force : bool, optional
        If true, replace existing handlers to allow reconfiguration (the default is False)

    Returns
    -------
    logging.Logger
        The logger object
    """

    logger = logging.getLogger(name)

    if logger.handlers and not force:
        return logger

    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()

    logger.setLevel(level)
    logger.propagate = False

    if rank != 0:
        logger.addHandler(logging.NullHandler())
        return logger

    formatter = logging.Formatter('%(message)s')

    sh = logging.StreamHandler(sys.stdout if stream is None else stream)
    sh.setFormatter(formatter)
    logger.addHandler(sh)

    if outdir is not None:
        os.makedirs(outdir, exist_ok=True)
        fh = logging.FileHandler(os.path.join(outdir, filename or _default_filename_for(name)))
        fh.setFormatter(formatter)
        logger.addHandler(fh)

    return logger

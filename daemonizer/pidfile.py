"""Pidfile management: a text file holding one decimal pid and a newline.

No locking is done. Two processes writing the same pidfile race, and the last
writer owns it.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from pathlib import Path

from daemonizer.process import doesProcessExist

logger = logging.getLogger("daemonizer")

PidfilePath = str | os.PathLike | Sequence[str]


def _pidfile(pidfile: PidfilePath | None) -> Path:
    """Accept a path or a sequence of path components."""
    if pidfile is None:
        raise ValueError("No pidfile given")
    if isinstance(pidfile, (list, tuple)):
        return Path(*pidfile)
    return Path(pidfile)


def readPidfile(pidfile: PidfilePath) -> int | str | None:
    """Return the pid stored in pidfile, whether or not it is running.

    Returns None if the file is missing, empty, not a regular file or not
    readable. Content is not validated: a first line that is not a decimal
    integer is returned as the raw stripped text.
    """
    p = _pidfile(pidfile)
    try:
        if not p.is_file() or p.stat().st_size == 0:
            return None
        if not os.access(p, os.R_OK):
            return None
        with p.open() as fh:
            line = fh.readline().rstrip("\r\n")
    except (OSError, UnicodeDecodeError):
        return None
    try:
        return int(line)
    except ValueError:
        return line


def writePidfile(pidfile: PidfilePath, pid: int | None = None) -> None:
    """Write pid (default: current pid) to pidfile, replacing any content.

    Filesystem errors propagate; the parent directory is not created.
    """
    p = _pidfile(pidfile)
    pid = pid or os.getpid()
    with p.open("w") as fh:
        fh.write(f"{pid}\n")
    logger.debug("Wrote pid %s to %s", pid, p)


def deletePidfile(pidfile: PidfilePath) -> None:
    """Unconditionally remove pidfile. A missing file is not an error."""
    p = _pidfile(pidfile)
    p.unlink(missing_ok=True)
    logger.debug("Removed pidfile %s", p)


def checkPidfile(pidfile: PidfilePath) -> int:
    """Return the pid in pidfile if that process is running, else 0. Never raises."""
    try:
        pid = readPidfile(pidfile)
    except ValueError:
        return 0
    if not pid or not isinstance(pid, int):
        return 0
    if not doesProcessExist(pid):
        logger.debug("Stale pidfile %s: pid %d not running", pidfile, pid)
        return 0
    return pid

"""Process-existence probing and the localhost port check."""

from __future__ import annotations

import errno
import os
import socket
from enum import Enum


class ProbeResult(Enum):
    EXISTS = "exists"
    NOT_PERMITTED = "not_permitted"  # alive, owned by someone else
    NO_SUCH_PROCESS = "no_such_process"
    UNKNOWN = "unknown"


def probeProcess(pid: int) -> ProbeResult:
    """Send signal 0 to pid and classify the outcome.

    Signal 0 performs the permission and existence checks without delivering
    anything. A pid recycled by the OS is reported as existing; there is no
    way to tell it apart from the original process here.
    """
    if isinstance(pid, bool) or not isinstance(pid, int) or pid <= 0:
        # 0 and negative values address process groups, not a process
        return ProbeResult.UNKNOWN
    try:
        os.kill(pid, 0)
    except OSError as e:
        if e.errno == errno.EPERM:
            return ProbeResult.NOT_PERMITTED
        if e.errno == errno.ESRCH:
            return ProbeResult.NO_SUCH_PROCESS
        return ProbeResult.UNKNOWN
    except OverflowError:
        return ProbeResult.NO_SUCH_PROCESS
    return ProbeResult.EXISTS


def doesProcessExist(pid: int) -> bool:
    """True if pid is running, even when we are not allowed to signal it."""
    return probeProcess(pid) in (ProbeResult.EXISTS, ProbeResult.NOT_PERMITTED)


def canSignalProcess(pid: int) -> bool:
    """True only if pid exists AND we may signal it. Stricter than doesProcessExist."""
    return probeProcess(pid) is ProbeResult.EXISTS


def checkPort(port: int) -> bool:
    """True if a TCP connection to localhost:port succeeds."""
    try:
        conn = socket.create_connection(("localhost", port))
    except OSError:
        return False
    conn.close()
    return True

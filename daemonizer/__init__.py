"""Daemonize a process with the double fork, and keep track of it with a pidfile."""

from daemonizer.config import DaemonizeConfig, OutputOverrides, loadConfig
from daemonizer.daemon import DaemonizeError, DaemonizeResult, daemonize
from daemonizer.pidfile import checkPidfile, deletePidfile, readPidfile, writePidfile
from daemonizer.process import (
    ProbeResult,
    canSignalProcess,
    checkPort,
    doesProcessExist,
    probeProcess,
)
from daemonizer.version import __version__

__all__ = [
    "DaemonizeConfig",
    "DaemonizeError",
    "DaemonizeResult",
    "OutputOverrides",
    "ProbeResult",
    "__version__",
    "canSignalProcess",
    "checkPidfile",
    "checkPort",
    "daemonize",
    "deletePidfile",
    "doesProcessExist",
    "loadConfig",
    "probeProcess",
    "readPidfile",
    "writePidfile",
]

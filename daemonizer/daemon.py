"""Double-fork daemonization.

The order of the steps in `_daemonize` matters: fork, setsid, fork again,
umask, chdir, close inherited descriptors, then redirect the std streams.
Closing after redirecting would close the streams just opened.
"""

from __future__ import annotations

import contextlib
import logging
import os
import sys
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, NoReturn

from daemonizer.config import DaemonizeConfig, OutputOverrides

logger = logging.getLogger("daemonizer")

DEFAULT_MAXFD = 64
_WRITE_FLAGS = os.O_WRONLY | os.O_CREAT | os.O_TRUNC


class DaemonizeError(Exception):
    """Fatal setup failure; the process must not go on as a half-made daemon."""


class DaemonizeResult(IntEnum):
    CONTINUING = -1  # original process, continue_as_parent mode
    DAEMONIZED = 1


@dataclass(frozen=True)
class ParentBranch:
    child_pid: int


@dataclass(frozen=True)
class ChildBranch:
    pass


def _fork() -> ParentBranch | ChildBranch:
    try:
        pid = os.fork()
    except OSError as e:
        raise DaemonizeError(f"Unable to fork: {e.strerror}") from e
    if pid == 0:
        return ChildBranch()
    return ParentBranch(child_pid=pid)


def _flushStd() -> None:
    for stream in (sys.stdout, sys.stderr):
        if stream is None:
            continue
        with contextlib.suppress(OSError, ValueError):
            stream.flush()


def _exit() -> NoReturn:
    """End this branch with status 0, skipping atexit handlers inherited from the caller."""
    _flushStd()
    os._exit(0)


def _maxfd() -> int:
    try:
        maxfd = os.sysconf("SC_OPEN_MAX")
    except (ValueError, OSError):
        return DEFAULT_MAXFD
    if not isinstance(maxfd, int) or maxfd <= 0:
        return DEFAULT_MAXFD
    return maxfd


def _closeAll() -> None:
    os.closerange(0, _maxfd())


def _redirect(target: int, path: str, flags: int, name: str) -> None:
    """Open path and make it descriptor `target`."""
    try:
        fd = os.open(path, flags, 0o666)
        if fd != target:
            os.dup2(fd, target)
            os.close(fd)
    except OSError as e:
        raise DaemonizeError(f"Could not redirect {name} to {path}: {e.strerror}") from e


def _dupStdin(target: int, name: str) -> None:
    try:
        os.dup2(0, target)
    except OSError as e:
        raise DaemonizeError(f"Could not redirect {name} to /dev/null: {e.strerror}") from e


def _daemonize(config: DaemonizeConfig, overrides: OutputOverrides) -> DaemonizeResult:
    logger.debug("Daemonizing with %s", config.model_dump(exclude={"run"}))
    _flushStd()

    # Fork once to go into the background
    if isinstance(_fork(), ParentBranch):
        if config.continue_as_parent:
            return DaemonizeResult.CONTINUING
        _exit()

    try:
        os.setsid()
    except OSError as e:
        raise DaemonizeError(f"Cannot detach from controlling process: {e.strerror}") from e

    # A session leader could reacquire a controlling terminal; its child cannot
    if isinstance(_fork(), ParentBranch):
        _exit()

    os.umask(0)

    if config.chdir:
        try:
            os.chdir(config.chdir)
        except OSError as e:
            raise DaemonizeError(f'Unable to chdir to "{config.chdir}": {e.strerror}') from e
    elif not config.no_chdir:
        # Don't pin the original filesystem
        os.chdir("/")

    if not (config.keep_open or config.no_close_all):
        _closeAll()

    stdout_file = overrides.stdout or config.stdout
    stderr_file = overrides.stderr or config.stderr

    if not (config.keep_open or config.no_close):
        _redirect(0, os.devnull, os.O_RDWR, "STDIN")
        if not stdout_file:
            _dupStdin(1, "STDOUT")
        if not stderr_file:
            _dupStdin(2, "STDERR")

    if stdout_file:
        _redirect(1, stdout_file, _WRITE_FLAGS, "STDOUT")
    if stderr_file:
        _redirect(2, stderr_file, _WRITE_FLAGS, "STDERR")

    return DaemonizeResult.DAEMONIZED


def daemonize(
    config: DaemonizeConfig | None = None,
    *,
    overrides: OutputOverrides | None = None,
    **options: Any,
) -> DaemonizeResult:
    """Daemonize according to `config` (or keyword options).

    Without `run`, the calling process itself becomes the daemon: the original
    and intermediate processes exit, and only the final daemon returns
    DAEMONIZED. With `continue_as_parent`, the original process returns
    CONTINUING instead of exiting.

    With `run`, the original process returns CONTINUING right away while the
    daemon calls `run()` and then exits with status 0. Exceptions raised by
    `run` are not caught.

    `overrides` defaults to the DAEMON_DAEMONIZE_STDOUT / DAEMON_DAEMONIZE_STDERR
    environment, read once per call; a value set there beats config.stdout /
    config.stderr.

    Raises DaemonizeError on any setup failure.
    """
    if config is None:
        config = DaemonizeConfig.fromOptions(**options)
    elif options:
        raise TypeError("Pass either a DaemonizeConfig or keyword options, not both")
    if overrides is None:
        overrides = OutputOverrides()

    if config.run is None:
        return _daemonize(config, overrides)

    run = config.run
    inner = config.without("run", continue_as_parent=True)
    if _daemonize(inner, overrides) is DaemonizeResult.CONTINUING:
        return DaemonizeResult.CONTINUING
    run()
    _exit()

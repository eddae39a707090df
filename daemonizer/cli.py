"""daemonizer CLI: launch commands as daemons and query pidfiles."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, NoReturn

import typer
from rich.console import Console

from daemonizer.config import DaemonizeConfig, loadConfig
from daemonizer.daemon import DaemonizeError, daemonize
from daemonizer.pidfile import checkPidfile, deletePidfile, readPidfile, writePidfile
from daemonizer.process import checkPort

logger = logging.getLogger("daemonizer")

_cli = typer.Typer(
    name="daemonizer",
    help="Run commands as double-forked daemons and check up on them via pidfiles.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

_console = Console()

_FORMAT_HELP = "Output format: human|json"


def _checkFormat(format: str) -> None:
    if format not in ("human", "json"):
        raise typer.BadParameter(f"Invalid format {format!r}; choose human or json")


def _fail(format: str, message: str, **extra: Any) -> NoReturn:
    if format == "json":
        print(json.dumps({"ok": False, "error": message, **extra}))
    else:
        _console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(1)


def _absolute(path: str | None) -> str | None:
    # The daemon changes directory before opening anything
    return str(Path(path).resolve()) if path else None


@_cli.callback()
def _default(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Double-fork daemonizer and pidfile toolbox."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s | %(message)s")


@_cli.command()
def check(
    pidfile: str = typer.Argument(help="Path to the pidfile"),
    format: str = typer.Option("human", "--format", "-f", help=_FORMAT_HELP),
) -> None:
    """Print the pid if its process is running, 0 otherwise. Exit 1 when not running."""
    _checkFormat(format)
    pid = checkPidfile(pidfile)
    if format == "json":
        print(json.dumps({"pidfile": pidfile, "pid": pid, "running": bool(pid)}))
    elif pid:
        _console.print(f"[green]running[/green] pid {pid}")
    else:
        _console.print("[yellow]not running[/yellow]")
    raise typer.Exit(0 if pid else 1)


@_cli.command()
def read(
    pidfile: str = typer.Argument(help="Path to the pidfile"),
    format: str = typer.Option("human", "--format", "-f", help=_FORMAT_HELP),
) -> None:
    """Print the pid stored in the pidfile, running or not."""
    _checkFormat(format)
    pid = readPidfile(pidfile)
    if pid is None:
        _fail(format, f"No pid in {pidfile}")
    if format == "json":
        print(json.dumps({"pidfile": pidfile, "pid": pid}))
    else:
        _console.print(str(pid))


@_cli.command()
def write(
    pidfile: str = typer.Argument(help="Path to the pidfile"),
    pid: int | None = typer.Option(None, "--pid", help="Pid to record (default: this process)"),
    format: str = typer.Option("human", "--format", "-f", help=_FORMAT_HELP),
) -> None:
    """Write a pid to the pidfile, replacing its content."""
    _checkFormat(format)
    pid = pid or os.getpid()
    try:
        writePidfile(pidfile, pid)
    except OSError as e:
        _fail(format, f"Cannot write {pidfile}: {e.strerror}")
    if format == "json":
        print(json.dumps({"ok": True, "pidfile": pidfile, "pid": pid}))
    else:
        _console.print(f"[green]Wrote[/green] {pid} to {pidfile}")


@_cli.command()
def delete(
    pidfile: str = typer.Argument(help="Path to the pidfile"),
    format: str = typer.Option("human", "--format", "-f", help=_FORMAT_HELP),
) -> None:
    """Remove the pidfile. A missing pidfile is not an error."""
    _checkFormat(format)
    try:
        deletePidfile(pidfile)
    except OSError as e:
        _fail(format, f"Cannot remove {pidfile}: {e.strerror}")
    if format == "json":
        print(json.dumps({"ok": True, "pidfile": pidfile}))
    else:
        _console.print(f"[green]Removed[/green] {pidfile}")


@_cli.command()
def port(
    port: int = typer.Argument(help="TCP port on localhost"),
    format: str = typer.Option("human", "--format", "-f", help=_FORMAT_HELP),
) -> None:
    """Exit 0 if something accepts connections on localhost:PORT, 1 otherwise."""
    _checkFormat(format)
    listening = checkPort(port)
    if format == "json":
        print(json.dumps({"port": port, "listening": listening}))
    elif listening:
        _console.print(f"[green]listening[/green] localhost:{port}")
    else:
        _console.print(f"[yellow]closed[/yellow] localhost:{port}")
    raise typer.Exit(0 if listening else 1)


@_cli.command(context_settings={"ignore_unknown_options": True})
def run(
    command: list[str] = typer.Argument(help="Command and arguments, after --"),
    pidfile: str | None = typer.Option(None, "--pidfile", help="Record the daemon pid here"),
    chdir: str | None = typer.Option(None, "--chdir", help="Working directory of the daemon"),
    no_chdir: bool = typer.Option(False, "--no-chdir", help="Stay in the current directory"),
    no_close: bool = typer.Option(
        False, "--no-close", help="Don't point stdin/stdout/stderr at /dev/null"
    ),
    stdout: str | None = typer.Option(None, "--stdout", help="Send stdout to this file"),
    stderr: str | None = typer.Option(None, "--stderr", help="Send stderr to this file"),
    keep_open: bool = typer.Option(
        False, "--keep-open", help="Leave inherited descriptors and std streams alone"
    ),
    config: str | None = typer.Option(None, "--config", help="JSON file with daemonize options"),
    format: str = typer.Option("human", "--format", "-f", help=_FORMAT_HELP),
) -> None:
    """Start COMMAND as a daemon. Refuses if --pidfile names a running process."""
    _checkFormat(format)
    try:
        base = loadConfig(config) if config else DaemonizeConfig()
    except (OSError, ValueError) as e:
        _fail(format, f"Bad config {config}: {e}")

    flags = {
        "chdir": _absolute(chdir),
        "no_chdir": no_chdir,
        "no_close": no_close,
        "stdout": _absolute(stdout),
        "stderr": _absolute(stderr),
        "keep_open": keep_open,
    }
    updates = {k: v for k, v in flags.items() if v}

    pid_path = _absolute(pidfile)
    if pid_path:
        running = checkPidfile(pid_path)
        if running:
            _fail(format, f"Already running with pid {running}", pid=running)

    def _exec() -> None:
        if pid_path:
            writePidfile(pid_path)
        os.execvp(command[0], command)

    try:
        daemonize(base.model_copy(update={**updates, "run": _exec}))
    except DaemonizeError as e:
        _fail(format, str(e))

    logger.debug("Launched %s", command)
    if format == "json":
        print(json.dumps({"ok": True, "command": command, "pidfile": pid_path}))
    else:
        _console.print(f"[green]Started[/green] {' '.join(command)}")


def main() -> None:
    _cli()


if __name__ == "__main__":
    main()

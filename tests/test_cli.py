"""CLI command tests via typer.testing.CliRunner."""

from __future__ import annotations

import json
import os
import socket
from pathlib import Path
from unittest.mock import patch

from typer.testing import CliRunner

from daemonizer.cli import _cli
from daemonizer.config import DaemonizeConfig
from daemonizer.daemon import DaemonizeError, DaemonizeResult

runner = CliRunner()


# ── check ────────────────────────────────────────────────────


def test_check_running_json(pid_path: str):
    Path(pid_path).write_text(f"{os.getpid()}\n")
    result = runner.invoke(_cli, ["check", pid_path, "--format", "json"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["pid"] == os.getpid()
    assert data["running"] is True


def test_check_missing_json(pid_path: str):
    result = runner.invoke(_cli, ["check", pid_path, "--format", "json"])
    assert result.exit_code == 1
    data = json.loads(result.output)
    assert data["pid"] == 0
    assert data["running"] is False


def test_check_human(pid_path: str):
    Path(pid_path).write_text(f"{os.getpid()}\n")
    result = runner.invoke(_cli, ["check", pid_path])
    assert result.exit_code == 0
    assert str(os.getpid()) in result.output


def test_check_invalidFormat(pid_path: str):
    result = runner.invoke(_cli, ["check", pid_path, "--format", "xml"])
    assert result.exit_code != 0


def test_verboseFlag(pid_path: str):
    result = runner.invoke(_cli, ["-v", "check", pid_path, "--format", "json"])
    assert result.exit_code == 1


# ── read / write / delete ────────────────────────────────────


def test_read_json(pid_path: str):
    Path(pid_path).write_text("4242\n")
    result = runner.invoke(_cli, ["read", pid_path, "--format", "json"])
    assert result.exit_code == 0
    assert json.loads(result.output) == {"pidfile": pid_path, "pid": 4242}


def test_read_missing_json(pid_path: str):
    result = runner.invoke(_cli, ["read", pid_path, "--format", "json"])
    assert result.exit_code == 1
    data = json.loads(result.output)
    assert data["ok"] is False


def test_write_givenPid(pid_path: str):
    result = runner.invoke(_cli, ["write", pid_path, "--pid", "31337", "--format", "json"])
    assert result.exit_code == 0
    assert json.loads(result.output)["pid"] == 31337
    assert Path(pid_path).read_text() == "31337\n"


def test_write_defaultPid(pid_path: str):
    result = runner.invoke(_cli, ["write", pid_path])
    assert result.exit_code == 0
    assert Path(pid_path).read_text() == f"{os.getpid()}\n"


def test_write_missingDir_json(tmp_path: Path):
    target = str(tmp_path / "nope" / "svc.pid")
    result = runner.invoke(_cli, ["write", target, "--format", "json"])
    assert result.exit_code == 1
    data = json.loads(result.output)
    assert data["ok"] is False
    assert "Cannot write" in data["error"]


def test_delete(pid_path: str):
    Path(pid_path).write_text("1\n")
    result = runner.invoke(_cli, ["delete", pid_path, "--format", "json"])
    assert result.exit_code == 0
    assert not Path(pid_path).exists()
    # Already gone is still success
    result = runner.invoke(_cli, ["delete", pid_path, "--format", "json"])
    assert result.exit_code == 0


# ── port ─────────────────────────────────────────────────────


def test_port_listening():
    srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    srv.bind(("127.0.0.1", 0))
    srv.listen(1)
    port = srv.getsockname()[1]
    try:
        result = runner.invoke(_cli, ["port", str(port), "--format", "json"])
    finally:
        srv.close()
    assert result.exit_code == 0
    assert json.loads(result.output) == {"port": port, "listening": True}


def test_port_closed():
    with patch("daemonizer.cli.checkPort", return_value=False):
        result = runner.invoke(_cli, ["port", "9", "--format", "json"])
    assert result.exit_code == 1
    assert json.loads(result.output)["listening"] is False


# ── run ──────────────────────────────────────────────────────


def test_run_launches(tmp_path: Path, pid_path: str):
    with patch("daemonizer.cli.daemonize", return_value=DaemonizeResult.CONTINUING) as d:
        result = runner.invoke(
            _cli,
            [
                "run",
                "--pidfile", pid_path,
                "--stdout", str(tmp_path / "out.log"),
                "--no-chdir",
                "--format", "json",
                "--", "sleep", "10",
            ],
        )
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["ok"] is True
    assert data["command"] == ["sleep", "10"]

    cfg = d.call_args[0][0]
    assert isinstance(cfg, DaemonizeConfig)
    assert cfg.no_chdir is True
    assert cfg.stdout == str((tmp_path / "out.log").resolve())
    assert cfg.stderr is None

    # What the daemon does once detached
    with patch("daemonizer.cli.os.execvp") as execvp:
        cfg.run()
    execvp.assert_called_once_with("sleep", ["sleep", "10"])
    assert Path(pid_path).read_text() == f"{os.getpid()}\n"


def test_run_refusesWhenRunning(pid_path: str):
    Path(pid_path).write_text(f"{os.getpid()}\n")
    with patch("daemonizer.cli.daemonize") as d:
        result = runner.invoke(
            _cli, ["run", "--pidfile", pid_path, "--format", "json", "--", "true"]
        )
    assert result.exit_code == 1
    data = json.loads(result.output)
    assert data["pid"] == os.getpid()
    d.assert_not_called()


def test_run_withConfigFile(tmp_path: Path):
    cfg_path = tmp_path / "daemon.json"
    cfg_path.write_text(json.dumps({"nochdir": True, "keep_open": True}))
    with patch("daemonizer.cli.daemonize") as d:
        result = runner.invoke(
            _cli, ["run", "--config", str(cfg_path), "--format", "json", "--", "true"]
        )
    assert result.exit_code == 0, result.output
    cfg = d.call_args[0][0]
    assert cfg.no_chdir is True
    assert cfg.keep_open is True


def test_run_badConfigFile(tmp_path: Path):
    cfg_path = tmp_path / "daemon.json"
    cfg_path.write_text("{not json")
    result = runner.invoke(
        _cli, ["run", "--config", str(cfg_path), "--format", "json", "--", "true"]
    )
    assert result.exit_code == 1
    assert json.loads(result.output)["ok"] is False


def test_run_daemonizeError():
    with patch("daemonizer.cli.daemonize", side_effect=DaemonizeError("Unable to fork: nope")):
        result = runner.invoke(_cli, ["run", "--format", "json", "--", "true"])
    assert result.exit_code == 1
    assert json.loads(result.output)["error"] == "Unable to fork: nope"

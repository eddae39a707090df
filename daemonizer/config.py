"""Daemonize options, with env var overrides for output redirection."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict


class DaemonizeConfig(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid", frozen=True)

    no_chdir: bool = False
    chdir: str | None = None  # wins over no_chdir
    no_close: bool = False
    stdout: str | None = None  # wins over no_close for stdout
    stderr: str | None = None  # wins over no_close for stderr
    keep_open: bool = False
    no_close_all: bool = False
    continue_as_parent: bool = False
    run: Callable[[], Any] | None = None

    @classmethod
    def fromOptions(cls, **options: Any) -> DaemonizeConfig:
        """Build from keyword options, honoring the legacy aliases."""
        return cls(**_migrateLegacyKeys(options))

    def without(self, *names: str, **updates: Any) -> DaemonizeConfig:
        """Copy with `names` reset to their defaults and `updates` applied."""
        reset = {n: type(self).model_fields[n].default for n in names}
        return self.model_copy(update={**reset, **updates})


class OutputOverrides(BaseSettings):
    """DAEMON_DAEMONIZE_STDOUT / DAEMON_DAEMONIZE_STDERR, for external launchers."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="DAEMON_DAEMONIZE_",
        extra="ignore",
    )
    stdout: str | None = None
    stderr: str | None = None


_LEGACY_KEYS = {
    "nochdir": "no_chdir",
    "noclose": "no_close",
    "continue": "continue_as_parent",
}


def _migrateLegacyKeys(raw: dict) -> dict:
    """Rename legacy option keys; the canonical key wins when both are present."""
    raw = dict(raw)
    for old, new in _LEGACY_KEYS.items():
        if old in raw:
            value = raw.pop(old)
            raw.setdefault(new, value)
    return raw


def loadConfig(path: str | Path) -> DaemonizeConfig:
    """Load daemonize options from a JSON file."""
    raw = json.loads(Path(path).read_text())
    return DaemonizeConfig(**_migrateLegacyKeys(raw))

"""Platform-independent helpers for chvm paths."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from platformdirs import user_config_dir, user_data_dir

_DEFAULT_APP_NAME = "chvm"
HOME_ENV_VAR = "CHVM_HOME"


@dataclass(frozen=True)
class UserDirs:
    """Expose the platform-configured locations for config/data trees."""

    app_name: str = _DEFAULT_APP_NAME
    config_dir_override: Path | None = None
    data_dir_override: Path | None = None

    def config_dir(self) -> Path:
        return (
            self.config_dir_override
            if self.config_dir_override
            else Path(user_config_dir(self.app_name, appauthor=False))
        )

    def data_dir(self) -> Path:
        return (
            self.data_dir_override
            if self.data_dir_override
            else Path(user_data_dir(self.app_name, appauthor=False))
        )


def resolve_home(
    cli_home: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    user_dirs: UserDirs | None = None,
) -> Path:
    """Pick the chvm home: CLI flag, then ``CHVM_HOME``, then the user data dir."""
    if cli_home:
        return Path(cli_home).expanduser().resolve()
    value = (env or {}).get(HOME_ENV_VAR)
    if value:
        return Path(value).expanduser().resolve()
    return (user_dirs or UserDirs()).data_dir()

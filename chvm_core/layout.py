"""Directory layout of a chvm home."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

AVAILABLE_FILE_NAME = "available.json"
INSTALLED_FILE_NAME = "installed.json"
LOCK_FILE_NAME = "chvm.lock"
CONFIG_FILE_NAME = "config.toml"
LOG_FILE_NAME = "chvm.log"


@dataclass(frozen=True)
class HomeLayout:
    """Defines the files and directories a chvm home contains."""

    root: Path
    installs_dir: Path
    profiles_dir: Path
    tmp_dir: Path
    logs_dir: Path
    available_file: Path
    installed_file: Path
    lock_file: Path
    config_file: Path

    @classmethod
    def from_root(cls, root: Path | str) -> "HomeLayout":
        root = Path(root).expanduser().resolve()
        return cls(
            root=root,
            installs_dir=root / "installs",
            profiles_dir=root / "profiles",
            tmp_dir=root / "tmp",
            logs_dir=root / "logs",
            available_file=root / AVAILABLE_FILE_NAME,
            installed_file=root / INSTALLED_FILE_NAME,
            lock_file=root / LOCK_FILE_NAME,
            config_file=root / CONFIG_FILE_NAME,
        )

    def ensure(self) -> "HomeLayout":
        """Create every directory of the layout."""
        for directory in (
            self.root,
            self.installs_dir,
            self.profiles_dir,
            self.tmp_dir,
            self.logs_dir,
        ):
            directory.mkdir(parents=True, exist_ok=True)
        return self

    def install_path(self, key: str) -> Path:
        return self.installs_dir / f"{key}.app"

    def profile_dir(self, key: str) -> Path:
        return self.profiles_dir / key

    def archive_path(self, revision: str) -> Path:
        return self.tmp_dir / f"chrome-{revision}.zip"

"""Launch collaborator backed by the macOS ``open`` command."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Protocol, Sequence

from .errors import LaunchError

logger = logging.getLogger(__name__)


class Launcher(Protocol):
    def launch(self, app_path: Path, args: Sequence[str]) -> None:
        """Start the application at ``app_path`` with ``args``."""


class OpenLauncher:
    """Run ``open -a <app> --args ...``."""

    def __init__(self, executable: str = "open") -> None:
        self.executable = executable

    def launch(self, app_path: Path, args: Sequence[str]) -> None:
        command = [self.executable, "-a", str(app_path), "--args", *args]
        logger.debug("launch cmd=%s", " ".join(command))
        try:
            result = subprocess.run(command, check=False, capture_output=True, text=True)
        except FileNotFoundError as exc:
            raise LaunchError(f"{self.executable} command not found") from exc
        if result.returncode != 0:
            detail = (result.stderr or "").strip()
            raise LaunchError(f"failed to open {app_path} (exit={result.returncode}) {detail}".rstrip())

"""Archive extraction collaborator backed by the ``unzip`` CLI."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Protocol

from chvm_core.errors import ValidationError

logger = logging.getLogger(__name__)


class Extractor(Protocol):
    def extract(self, archive: Path, destination: Path) -> None:
        """Populate ``destination`` with the contents of ``archive`` or raise."""


class UnzipExtractor:
    """Shell out to ``unzip -q <archive> -d <destination>``."""

    def __init__(self, executable: str = "unzip", timeout_seconds: float = 600.0) -> None:
        self.executable = executable
        self.timeout_seconds = timeout_seconds

    def extract(self, archive: Path, destination: Path) -> None:
        destination = Path(destination)
        destination.mkdir(parents=True, exist_ok=True)
        command = [self.executable, "-q", str(archive), "-d", str(destination)]
        logger.debug("extract cmd=%s", " ".join(command))
        try:
            result = subprocess.run(
                command,
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as exc:
            raise ValidationError(
                f"{self.executable} CLI not found. Install it and ensure it is available in PATH."
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise ValidationError(f"extraction timed out after {self.timeout_seconds:.0f}s") from exc
        if result.returncode != 0:
            detail = (result.stderr or "").strip()
            raise ValidationError(f"failed to extract {archive} (exit={result.returncode}) {detail}".rstrip())
        logger.debug("extracted %s into %s", archive, destination)

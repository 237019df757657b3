"""Typed chvm errors."""

from __future__ import annotations

from pathlib import Path


class ChvmError(RuntimeError):
    """Base chvm error."""


class TransportError(ChvmError):
    """HTTP request failed or returned a non-success status."""


class NotFoundError(ChvmError):
    """A query, remote artifact or local path could not be found."""


class ValidationError(ChvmError):
    """Downloaded artifact failed size validation or could not be extracted."""


class LockTimeoutError(ChvmError):
    """The home directory lock was not obtained within the timeout."""


class BundleVerificationError(ChvmError):
    """Installed application bundle is missing its required layout."""


class UnsupportedPlatformError(ChvmError):
    """The host is not macOS on Apple Silicon."""


class LaunchError(ChvmError):
    """The installed application could not be launched."""


class StateFileError(ChvmError):
    """A persisted state file exists but cannot be parsed."""

    def __init__(self, path: Path, detail: str) -> None:
        super().__init__(f"corrupted state file {path}: {detail}")
        self.path = path


class InstallStepError(ChvmError):
    """A named step of the install pipeline failed."""

    def __init__(self, step: str, cause: BaseException) -> None:
        super().__init__(f"{step} failed: {cause}")
        self.step = step

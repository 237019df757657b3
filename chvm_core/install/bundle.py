"""App bundle checks: layout verification, discovery and disk usage."""

from __future__ import annotations

import os
from pathlib import Path

from chvm_core.errors import NotFoundError

EXECUTABLE_MODE = 0o755


def executable_dir(app_path: Path | str) -> Path:
    return Path(app_path) / "Contents" / "MacOS"


def verify_bundle(app_path: Path | str) -> bool:
    """Check ``Contents/MacOS`` exists and mark every file in it executable."""
    app_path = Path(app_path)
    macos_dir = executable_dir(app_path)
    if not app_path.is_dir() or not macos_dir.parent.is_dir() or not macos_dir.is_dir():
        return False
    for entry in macos_dir.iterdir():
        if entry.is_file():
            entry.chmod(EXECUTABLE_MODE)
    return True


def directory_size(path: Path | str) -> int:
    root = Path(path)
    if not root.exists():
        raise NotFoundError(f"directory does not exist: {root}")
    if not root.is_dir():
        return root.lstat().st_size
    total = 0
    for current, _dirs, files in os.walk(root):
        for name in files:
            total += os.lstat(os.path.join(current, name)).st_size
    return total


def find_app_bundle(extract_dir: Path | str) -> Path:
    """Locate the ``.app`` directory produced by extracting a snapshot archive."""
    extract_dir = Path(extract_dir)
    for candidate_root in (extract_dir, extract_dir / "chrome-mac"):
        if not candidate_root.is_dir():
            continue
        for entry in sorted(candidate_root.iterdir()):
            if entry.name.endswith(".app") and entry.is_dir():
                return entry
    raise NotFoundError(f"app bundle not found in extracted files under {extract_dir}")

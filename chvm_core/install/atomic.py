"""Stage an install in a private temp directory, then publish it with a rename."""

from __future__ import annotations

import logging
import secrets
import shutil
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)

Populate = Callable[[Path], Path]


def atomic_install(populate: Populate, final_path: Path | str, work_root: Path | str) -> None:
    """Run ``populate(temp_dir)`` and move the path it returns to ``final_path``.

    ``final_path`` is untouched until ``populate`` has succeeded. An existing
    tree at ``final_path`` is parked inside the temp directory while the new
    one is moved in and put back if that move fails. The temp directory is
    removed on every exit path.
    """
    final_path = Path(final_path)
    tmp_dir = Path(work_root) / f"install-{secrets.token_hex(8)}"
    tmp_dir.mkdir(parents=True)
    try:
        source = Path(populate(tmp_dir))
        _publish(source, final_path, tmp_dir)
    except BaseException:
        shutil.rmtree(tmp_dir, ignore_errors=True)
        raise
    cleanup_temp_directory(tmp_dir)


def _publish(source: Path, final_path: Path, tmp_dir: Path) -> None:
    final_path.parent.mkdir(parents=True, exist_ok=True)
    parked: Path | None = None
    if final_path.exists() or final_path.is_symlink():
        parked = tmp_dir / f"previous-{final_path.name}"
        final_path.rename(parked)
        logger.debug("parked previous install %s", final_path)
    try:
        move_directory(source, final_path)
    except BaseException:
        if parked is not None:
            if final_path.exists():
                shutil.rmtree(final_path, ignore_errors=True)
            parked.rename(final_path)
        raise


def move_directory(source: Path | str, dest: Path | str) -> None:
    """Rename when possible, otherwise copy then delete the source."""
    source = Path(source)
    dest = Path(dest)
    try:
        source.rename(dest)
        return
    except OSError as exc:
        logger.debug("rename %s -> %s failed (%s); copying instead", source, dest, exc)
    try:
        shutil.copytree(source, dest, symlinks=True)
    except BaseException:
        shutil.rmtree(dest, ignore_errors=True)
        raise
    shutil.rmtree(source)


def cleanup_temp_directory(tmp_dir: Path | str) -> None:
    path = Path(tmp_dir)
    if path.exists():
        shutil.rmtree(path)

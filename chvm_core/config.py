"""Runtime configuration for chvm, threaded explicitly through every entry point."""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from .layout import CONFIG_FILE_NAME, HomeLayout
from .paths import UserDirs

logger = logging.getLogger(__name__)

STORAGE_URL = "https://www.googleapis.com/storage/v1/b/chromium-browser-snapshots/o"
RELEASES_URL = "https://chromiumdash.appspot.com/fetch_releases"
DEFAULT_CHANNELS = ("Stable", "Beta", "Dev", "Canary")
CONFIG_SECTION = "chvm"


@dataclass(frozen=True)
class ChvmConfig:
    layout: HomeLayout
    platform: str = "Mac_Arm"
    release_platform: str = "Mac"
    archive_name: str = "chrome-mac.zip"
    executable_name: str = "Chromium"
    storage_url: str = STORAGE_URL
    releases_url: str = RELEASES_URL
    channels: tuple[str, ...] = DEFAULT_CHANNELS
    releases_per_channel: int = 1000
    revision_limit: int | None = None
    probe_radius: int = 50
    http_timeout: float = 30.0
    chunk_size: int = 1024 * 1024
    max_retries: int = 3
    retry_delay: float = 1.0
    retry_backoff: float = 2.0
    lock_timeout: float = 5.0
    install_lock_timeout: float = 600.0
    stale_lock_timeout: float = 60.0

    @classmethod
    def for_home(cls, home: Path | str, **overrides: Any) -> "ChvmConfig":
        return cls(layout=HomeLayout.from_root(home), **overrides)


def _coerce_channels(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    return tuple(str(item) for item in value if str(item).strip())


_COERCE: dict[str, Any] = {
    "platform": str,
    "release_platform": str,
    "archive_name": str,
    "executable_name": str,
    "storage_url": str,
    "releases_url": str,
    "channels": _coerce_channels,
    "releases_per_channel": int,
    "revision_limit": lambda value: int(value) if value else None,
    "probe_radius": int,
    "http_timeout": float,
    "chunk_size": int,
    "max_retries": int,
    "retry_delay": float,
    "retry_backoff": float,
    "lock_timeout": float,
    "install_lock_timeout": float,
    "stale_lock_timeout": float,
}


def _load_section(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        payload = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.warning("ignoring unreadable config %s: %s", path, exc)
        return {}
    section = payload.get(CONFIG_SECTION)
    return section if isinstance(section, dict) else {}


def load_config(layout: HomeLayout, user_dirs: UserDirs | None = None) -> ChvmConfig:
    """Layer ``[chvm]`` tables: home config.toml over user config.toml over defaults."""
    user_dirs = user_dirs or UserDirs()
    merged: dict[str, Any] = {}
    merged.update(_load_section(user_dirs.config_dir() / CONFIG_FILE_NAME))
    merged.update(_load_section(layout.config_file))

    known = {item.name for item in fields(ChvmConfig)} - {"layout"}
    overrides: dict[str, Any] = {}
    for key, value in merged.items():
        if key not in known:
            logger.warning("unknown config key %r ignored", key)
            continue
        try:
            overrides[key] = _COERCE[key](value)
        except (TypeError, ValueError) as exc:
            logger.warning("invalid value for config key %r ignored: %s", key, exc)
    return replace(ChvmConfig(layout=layout), **overrides)

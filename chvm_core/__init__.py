"""Core runtime for chvm, the Chromium snapshot version manager."""

from .config import ChvmConfig, load_config
from .errors import ChvmError
from .layout import HomeLayout
from .manager import InstallResult, ListingRow, VersionManager
from .paths import UserDirs, resolve_home

__version__ = "0.1.0"

__all__ = [
    "ChvmConfig",
    "ChvmError",
    "HomeLayout",
    "InstallResult",
    "ListingRow",
    "UserDirs",
    "VersionManager",
    "load_config",
    "resolve_home",
]

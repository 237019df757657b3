"""Atomic installation of app bundles."""

from .atomic import atomic_install, cleanup_temp_directory, move_directory
from .bundle import directory_size, executable_dir, find_app_bundle, verify_bundle
from .extract import Extractor, UnzipExtractor

__all__ = [
    "Extractor",
    "UnzipExtractor",
    "atomic_install",
    "cleanup_temp_directory",
    "directory_size",
    "executable_dir",
    "find_app_bundle",
    "move_directory",
    "verify_bundle",
]

"""Download pipeline helpers."""

from .fetch import DownloadProgress, ProgressObserver, download, validate
from .retry import retry_with_backoff

__all__ = [
    "DownloadProgress",
    "ProgressObserver",
    "download",
    "retry_with_backoff",
    "validate",
]

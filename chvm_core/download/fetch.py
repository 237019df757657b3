"""Streaming artifact download with progress reporting and size validation."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import requests
from requests import RequestException

from chvm_core.errors import TransportError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DownloadProgress:
    transferred: int
    total: int
    percent: int


ProgressObserver = Callable[[DownloadProgress], None]


def download(
    url: str,
    destination: Path | str,
    on_progress: Optional[ProgressObserver] = None,
    *,
    session: requests.Session | None = None,
    timeout: float = 30.0,
    chunk_size: int = 1024 * 1024,
) -> None:
    """Stream ``url`` into ``destination``; a failure may leave a partial file behind."""
    if session is None:
        with requests.Session() as owned:
            download(url, destination, on_progress, session=owned, timeout=timeout, chunk_size=chunk_size)
        return

    try:
        resp = session.get(url, stream=True, timeout=timeout)
    except RequestException as exc:
        raise TransportError(f"download {url} failed: {exc}") from exc

    with resp:
        if not 200 <= resp.status_code < 300:
            raise TransportError(f"download {url} returned {resp.status_code}: {resp.reason}")
        try:
            total = int(resp.headers.get("Content-Length") or 0)
        except ValueError:
            total = 0

        target = Path(destination)
        target.parent.mkdir(parents=True, exist_ok=True)
        transferred = 0
        with target.open("wb") as handle:
            try:
                for chunk in resp.iter_content(chunk_size=chunk_size):
                    if not chunk:
                        continue
                    handle.write(chunk)
                    transferred += len(chunk)
                    if on_progress is not None and total > 0:
                        on_progress(
                            DownloadProgress(
                                transferred=transferred,
                                total=total,
                                percent=min(100, round(transferred * 100 / total)),
                            )
                        )
            except RequestException as exc:
                raise TransportError(f"download {url} interrupted after {transferred} bytes: {exc}") from exc
            handle.flush()
            os.fsync(handle.fileno())
    log.debug("downloaded %s bytes from %s to %s", transferred, url, destination)


def validate(path: Path | str, expected_size: int) -> bool:
    """True only when the file exists and its size equals ``expected_size``."""
    try:
        size = Path(path).stat().st_size
    except FileNotFoundError:
        return False
    return size == expected_size

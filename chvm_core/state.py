"""Persisted catalog and installed-registry files of a chvm home."""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Mapping, Sequence

from .catalog.types import CatalogEntry
from .errors import StateFileError
from .layout import HomeLayout


@dataclass(frozen=True)
class InstalledRecord:
    revision: str
    path: str
    installed_at: str
    size: int

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InstalledRecord":
        return cls(
            revision=str(data.get("revision", "")),
            path=str(data.get("path", "")),
            installed_at=str(data.get("installedAt", "")),
            size=int(data.get("size") or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "revision": self.revision,
            "path": self.path,
            "installedAt": self.installed_at,
            "size": self.size,
        }


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise StateFileError(path, str(exc)) from exc


def write_json_atomic(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, ensure_ascii=False, indent=2))
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_name, path)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise


def read_catalog(layout: HomeLayout) -> list[CatalogEntry]:
    payload = _read_json(layout.available_file, [])
    if not isinstance(payload, list):
        raise StateFileError(layout.available_file, "expected a JSON array")
    return [CatalogEntry.from_dict(item) for item in payload if isinstance(item, Mapping)]


def write_catalog(layout: HomeLayout, catalog: Sequence[CatalogEntry]) -> Path:
    write_json_atomic(layout.available_file, [entry.to_dict() for entry in catalog])
    return layout.available_file


def read_installed(layout: HomeLayout) -> dict[str, InstalledRecord]:
    payload = _read_json(layout.installed_file, {})
    if not isinstance(payload, dict):
        raise StateFileError(layout.installed_file, "expected a JSON object")
    return {
        str(key): InstalledRecord.from_dict(value)
        for key, value in payload.items()
        if isinstance(value, Mapping)
    }


def write_installed(layout: HomeLayout, installed: Mapping[str, InstalledRecord]) -> Path:
    write_json_atomic(layout.installed_file, {key: record.to_dict() for key, record in installed.items()})
    return layout.installed_file


def add_installed(
    layout: HomeLayout,
    key: str,
    *,
    revision: str,
    path: Path | str,
    size: int,
) -> InstalledRecord:
    """Read-modify-write the registry; the caller must hold the home lock."""
    installed = read_installed(layout)
    record = InstalledRecord(
        revision=revision,
        path=str(path),
        installed_at=datetime.now(tz=UTC).isoformat(),
        size=int(size),
    )
    installed[key] = record
    write_installed(layout, installed)
    return record


def remove_installed(layout: HomeLayout, key: str) -> bool:
    installed = read_installed(layout)
    if installed.pop(key, None) is None:
        return False
    write_installed(layout, installed)
    return True

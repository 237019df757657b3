"""Dotted version ordering used by the catalog."""

from __future__ import annotations

from typing import Optional, Tuple

__all__ = [
    "compare_versions",
    "version_key",
]


def _parts(version: str) -> Tuple[int, ...]:
    raw = str(version).strip().split(".")
    parts: list[int] = []
    for seg in raw:
        seg = seg.strip()
        if not seg.isdigit():
            raise ValueError(f"invalid version component {seg!r} in {version!r}")
        parts.append(int(seg))
    # trailing zeros carry no ordering weight: 92.0 == 92.0.0.0
    while parts and parts[-1] == 0:
        parts.pop()
    return tuple(parts)


def version_key(version: str) -> Tuple[int, ...]:
    """Sort key equivalent to :func:`compare_versions`."""
    return _parts(version)


def compare_versions(a: Optional[str], b: Optional[str]) -> int:
    if not a and not b:
        return 0
    if not a:
        return -1
    if not b:
        return 1

    pa = _parts(a)
    pb = _parts(b)
    n = max(len(pa), len(pb))
    for i in range(n):
        va = pa[i] if i < len(pa) else 0
        vb = pb[i] if i < len(pb) else 0
        if va > vb:
            return 1
        if va < vb:
            return -1
    return 0

"""Resolve a user query against the catalog."""

from __future__ import annotations

from typing import Optional, Sequence

from .types import CatalogEntry

__all__ = ["resolve_version"]


def resolve_version(query: str, catalog: Sequence[CatalogEntry]) -> Optional[CatalogEntry]:
    if not catalog:
        return None

    if query == "latest":
        for entry in catalog:
            if entry.has_version:
                return entry
        return catalog[0]

    if query == "oldest":
        return catalog[-1]

    for entry in catalog:
        if entry.version == query:
            return entry

    for entry in catalog:
        if entry.revision == query:
            return entry

    # "92" -> first listed 92.x, i.e. the newest one
    for entry in catalog:
        if entry.version and entry.version.startswith(query):
            return entry

    return None

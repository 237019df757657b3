"""Catalog construction and version resolution."""

from .builder import build_catalog, fetch_channel_releases, match_release, merge_catalog
from .resolver import resolve_version
from .sources import ReleaseDashClient, SnapshotStorageClient, select_artifact
from .types import ArtifactItem, CatalogEntry, ChannelRelease, RevisionRecord
from .versions import compare_versions, version_key

__all__ = [
    "ArtifactItem",
    "CatalogEntry",
    "ChannelRelease",
    "RevisionRecord",
    "ReleaseDashClient",
    "SnapshotStorageClient",
    "build_catalog",
    "compare_versions",
    "fetch_channel_releases",
    "match_release",
    "merge_catalog",
    "resolve_version",
    "select_artifact",
    "version_key",
]

"""Merge snapshot revisions with channel releases into an ordered catalog."""

from __future__ import annotations

import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Mapping, Optional, Protocol, Sequence

from chvm_core.config import DEFAULT_CHANNELS

from .types import CatalogEntry, ChannelRelease, RevisionRecord
from .versions import compare_versions

logger = logging.getLogger(__name__)

PROBE_RADIUS = 50


class RevisionSource(Protocol):
    def list_revisions(self, *, limit: int | None = None) -> list[RevisionRecord]: ...


class ReleaseSource(Protocol):
    def fetch_releases(self, channel: str, *, limit: int = 100, offset: int = 0) -> list[ChannelRelease]: ...


def fetch_channel_releases(
    source: ReleaseSource,
    channels: Sequence[str] = DEFAULT_CHANNELS,
    *,
    limit: int = 1000,
) -> list[ChannelRelease]:
    """Fetch every channel in parallel; a failing channel contributes no releases."""

    def _fetch(channel: str) -> list[ChannelRelease]:
        try:
            return source.fetch_releases(channel, limit=limit, offset=0)
        except Exception as exc:
            logger.warning("release channel %s unavailable: %s", channel, exc)
            return []

    if not channels:
        return []
    with ThreadPoolExecutor(max_workers=len(channels)) as pool:
        results = list(pool.map(_fetch, channels))
    merged: list[ChannelRelease] = []
    for releases in results:
        merged.extend(releases)
    return merged


def position_index(releases: Iterable[ChannelRelease]) -> dict[str, ChannelRelease]:
    index: dict[str, ChannelRelease] = {}
    for release in releases:
        index.setdefault(str(release.branch_position), release)
    return index


def match_release(
    revision: str,
    index: Mapping[str, ChannelRelease],
    *,
    radius: int = PROBE_RADIUS,
) -> Optional[ChannelRelease]:
    """Exact position first, then +1, -1, +2, -2, ... up to ``radius``."""
    exact = index.get(revision)
    if exact is not None:
        return exact
    try:
        number = int(revision)
    except ValueError:
        return None
    for offset in range(1, radius + 1):
        hit = index.get(str(number + offset)) or index.get(str(number - offset))
        if hit is not None:
            return hit
    return None


def merge_catalog(
    revisions: Iterable[RevisionRecord],
    releases: Iterable[ChannelRelease],
    *,
    radius: int = PROBE_RADIUS,
) -> list[CatalogEntry]:
    index = position_index(releases)
    versioned: list[CatalogEntry] = []
    unversioned: list[CatalogEntry] = []
    for record in revisions:
        release = match_release(record.revision, index, radius=radius)
        if release is not None:
            versioned.append(
                CatalogEntry(
                    version=release.version,
                    revision=record.revision,
                    channel=release.channel,
                    platform=record.platform,
                    has_version=True,
                )
            )
        else:
            unversioned.append(
                CatalogEntry(
                    version=None,
                    revision=record.revision,
                    channel=None,
                    platform=record.platform,
                    has_version=False,
                )
            )

    versioned.sort(
        key=functools.cmp_to_key(lambda a, b: compare_versions(a.version, b.version)),
        reverse=True,
    )
    unversioned.sort(key=lambda entry: int(entry.revision), reverse=True)
    return versioned + unversioned


def build_catalog(
    revisions_source: RevisionSource,
    releases_source: ReleaseSource,
    *,
    channels: Sequence[str] = DEFAULT_CHANNELS,
    revision_limit: int | None = None,
    releases_per_channel: int = 1000,
    radius: int = PROBE_RADIUS,
) -> list[CatalogEntry]:
    """Build a fresh catalog; a revision listing failure propagates and aborts the build."""
    revisions = revisions_source.list_revisions(limit=revision_limit)
    if not revisions:
        return []
    releases = fetch_channel_releases(releases_source, channels, limit=releases_per_channel)
    catalog = merge_catalog(revisions, releases, radius=radius)
    logger.info(
        "catalog built revisions=%s releases=%s versioned=%s",
        len(revisions),
        len(releases),
        sum(1 for entry in catalog if entry.has_version),
    )
    return catalog

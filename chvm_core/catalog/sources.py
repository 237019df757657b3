"""HTTP clients for the snapshot storage bucket and the release dashboard."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Mapping

import requests
from requests import RequestException

from chvm_core.config import RELEASES_URL, STORAGE_URL, ChvmConfig
from chvm_core.errors import NotFoundError, TransportError

from .types import ArtifactItem, ChannelRelease, RevisionRecord

log = logging.getLogger(__name__)

_LISTING_FIELDS = "items(kind,mediaLink,metadata,name,size,updated),kind,prefixes,nextPageToken"


def get_json(
    session: requests.Session,
    url: str,
    *,
    params: Mapping[str, str] | None = None,
    timeout: float = 30.0,
) -> Any:
    try:
        resp = session.get(url, params=params, timeout=timeout)
    except RequestException as exc:
        raise TransportError(f"GET {url} failed: {exc}") from exc
    if not 200 <= resp.status_code < 300:
        raise TransportError(f"GET {url} returned {resp.status_code}: {resp.reason}")
    try:
        return resp.json()
    except ValueError as exc:
        raise TransportError(f"GET {url} returned invalid JSON: {exc}") from exc


@dataclass
class SnapshotStorageClient:
    """Lists revision prefixes and per-revision objects of the snapshot bucket."""

    base_url: str = STORAGE_URL
    platform: str = "Mac_Arm"
    timeout: float = 30.0
    session: requests.Session = field(default_factory=requests.Session, repr=False)

    def __post_init__(self) -> None:
        self._prefix_re = re.compile(rf"{re.escape(self.platform)}/(\d+)/")

    @classmethod
    def from_config(cls, config: ChvmConfig) -> "SnapshotStorageClient":
        return cls(base_url=config.storage_url, platform=config.platform, timeout=config.http_timeout)

    def list_revisions(self, *, limit: int | None = None) -> list[RevisionRecord]:
        """Follow ``nextPageToken`` until exhausted or ``limit`` records are collected."""
        records: list[RevisionRecord] = []
        page_token: str | None = None
        pages = 0
        while True:
            params = {
                "delimiter": "/",
                "prefix": f"{self.platform}/",
                "fields": _LISTING_FIELDS,
            }
            if page_token:
                params["pageToken"] = page_token
            payload = get_json(self.session, self.base_url, params=params, timeout=self.timeout)
            pages += 1
            if not isinstance(payload, dict):
                raise TransportError(f"unexpected revision listing payload from {self.base_url}")
            for prefix in payload.get("prefixes") or []:
                match = self._prefix_re.search(str(prefix))
                if match:
                    records.append(RevisionRecord(revision=match.group(1), platform=self.platform))
            if limit and len(records) >= limit:
                records = records[:limit]
                break
            page_token = payload.get("nextPageToken") or None
            if not page_token:
                break
        log.debug("listed %s revisions across %s pages", len(records), pages)
        return records

    def fetch_revision_metadata(self, revision: str) -> list[ArtifactItem]:
        params = {
            "delimiter": "/",
            "prefix": f"{self.platform}/{revision}/",
            "fields": _LISTING_FIELDS,
        }
        payload = get_json(self.session, self.base_url, params=params, timeout=self.timeout)
        items = payload.get("items") if isinstance(payload, dict) else None
        if not items:
            raise NotFoundError(f"no files found for revision {revision}")
        return [ArtifactItem.from_dict(item) for item in items if isinstance(item, Mapping)]


def select_artifact(items: list[ArtifactItem], archive_name: str) -> ArtifactItem:
    for item in items:
        if archive_name in item.name:
            return item
    raise NotFoundError(f"{archive_name} not found in revision")


@dataclass
class ReleaseDashClient:
    """Fetches channel releases and their branch positions."""

    base_url: str = RELEASES_URL
    platform: str = "Mac"
    timeout: float = 30.0
    session: requests.Session = field(default_factory=requests.Session, repr=False)

    @classmethod
    def from_config(cls, config: ChvmConfig) -> "ReleaseDashClient":
        return cls(base_url=config.releases_url, platform=config.release_platform, timeout=config.http_timeout)

    def fetch_releases(self, channel: str, *, limit: int = 100, offset: int = 0) -> list[ChannelRelease]:
        params = {
            "channel": channel,
            "platform": self.platform,
            "num": str(limit),
            "offset": str(offset),
        }
        payload = get_json(self.session, self.base_url, params=params, timeout=self.timeout)
        if not isinstance(payload, list):
            return []
        releases: list[ChannelRelease] = []
        for item in payload:
            if not isinstance(item, Mapping):
                continue
            release = ChannelRelease.from_dict(item, channel=channel)
            if release is not None:
                releases.append(release)
        return releases

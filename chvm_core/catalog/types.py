"""Catalog datatypes."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"^\d+(\.\d+)*$")


@dataclass(frozen=True)
class RevisionRecord:
    revision: str
    platform: str


@dataclass(frozen=True)
class ChannelRelease:
    version: str
    channel: str
    branch_position: int

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, channel: str) -> Optional["ChannelRelease"]:
        """Parse a release dashboard object; releases without a branch position are skipped."""
        raw_position = data.get("chromium_main_branch_position")
        version = str(data.get("version") or "").strip()
        if not raw_position or not version:
            return None
        try:
            position = int(raw_position)
        except (TypeError, ValueError):
            return None
        if not _VERSION_RE.match(version):
            logger.debug("skipping %s release with malformed version %r", channel, version)
            return None
        return cls(
            version=version,
            channel=str(data.get("channel") or channel),
            branch_position=position,
        )


@dataclass(frozen=True)
class CatalogEntry:
    version: Optional[str]
    revision: str
    channel: Optional[str]
    platform: str
    has_version: bool

    @property
    def install_key(self) -> str:
        return self.version or self.revision

    @property
    def display_name(self) -> str:
        return self.version or f"Revision {self.revision}"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CatalogEntry":
        version = data.get("version")
        channel = data.get("channel")
        return cls(
            version=str(version) if version else None,
            revision=str(data.get("revision", "")),
            channel=str(channel) if channel else None,
            platform=str(data.get("platform", "")),
            has_version=bool(data.get("hasVersion", bool(version))),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "revision": self.revision,
            "channel": self.channel,
            "platform": self.platform,
            "hasVersion": self.has_version,
        }


@dataclass(frozen=True)
class ArtifactItem:
    name: str
    size: Optional[int]
    media_link: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ArtifactItem":
        size = data.get("size")
        if size is not None:
            try:
                size = int(size)
            except (TypeError, ValueError):
                size = None
        return cls(
            name=str(data.get("name", "")),
            size=size,
            media_link=str(data.get("mediaLink", "")),
        )

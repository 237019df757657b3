"""Host platform check: chvm only manages macOS arm64 snapshots."""

from __future__ import annotations

import platform
from dataclasses import dataclass

from .errors import UnsupportedPlatformError


@dataclass(frozen=True)
class HostInfo:
    system: str
    machine: str

    @property
    def supported(self) -> bool:
        return self.system == "Darwin" and self.machine == "arm64"


def host_info() -> HostInfo:
    return HostInfo(system=platform.system(), machine=platform.machine())


def check_platform(info: HostInfo | None = None) -> HostInfo:
    info = info or host_info()
    if not info.supported:
        raise UnsupportedPlatformError(
            "chvm only supports macOS with ARM architecture (Apple Silicon).\n"
            f"Current platform: {info.system} {info.machine}"
        )
    return info

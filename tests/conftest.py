"""Shared fixtures: an in-process mock of the snapshot bucket and release dashboard."""

from __future__ import annotations

import http.server
import io
import json
import threading
import zipfile
from pathlib import Path
from typing import Any, Dict, Iterator, List
from urllib.parse import parse_qs, urlparse

import pytest

from chvm_core.config import ChvmConfig

PLATFORM = "Mac_Arm"
ARCHIVE_NAME = "chrome-mac.zip"


def make_snapshot_zip(app_name: str = "Chromium.app", *, nested: bool = True) -> bytes:
    """Build a zip shaped like a snapshot archive: chrome-mac/Chromium.app/Contents/MacOS/Chromium."""
    prefix = "chrome-mac/" if nested else ""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr(f"{prefix}{app_name}/Contents/MacOS/Chromium", b"#!/bin/sh\necho chromium\n")
        archive.writestr(f"{prefix}{app_name}/Contents/Info.plist", b"<plist/>")
        archive.writestr(f"{prefix}{app_name}/Contents/Resources/en.lproj/strings", b"hello")
    return buffer.getvalue()


class MockChromiumState:
    """Mutable server state that mirrors the real API payloads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.revisions: List[str] = []
        self.page_size = 1000
        self.releases: Dict[str, List[Dict[str, Any]]] = {}
        self.failing_channels: set[str] = set()
        self.artifacts: Dict[str, Dict[str, bytes]] = {}
        self.reported_sizes: Dict[str, int] = {}
        self.download_failures = 0
        self.metadata_failures = 0
        self.requests: List[str] = []

    def add_release(self, channel: str, version: str, position: int | None) -> None:
        entry: Dict[str, Any] = {"channel": channel, "version": version, "platform": "Mac"}
        if position is not None:
            entry["chromium_main_branch_position"] = position
        self.releases.setdefault(channel, []).append(entry)

    def add_artifact(self, revision: str, data: bytes, name: str = ARCHIVE_NAME) -> None:
        self.artifacts.setdefault(revision, {})[name] = data

    def record(self, path: str) -> None:
        with self._lock:
            self.requests.append(path)

    def take_download_failure(self) -> bool:
        with self._lock:
            if self.download_failures > 0:
                self.download_failures -= 1
                return True
            return False

    def take_metadata_failure(self) -> bool:
        with self._lock:
            if self.metadata_failures > 0:
                self.metadata_failures -= 1
                return True
            return False


class _MockChromiumRequestHandler(http.server.BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    def _write_json(self, status: int, payload: Any) -> None:
        data = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def _write_empty(self, status: int) -> None:
        self.send_response(status)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def _state(self) -> MockChromiumState:
        return self.server.state  # type: ignore[attr-defined]

    def _base_url(self) -> str:
        host, port = self.server.server_address[:2]
        return f"http://{host}:{port}"

    def do_GET(self) -> None:
        parsed = urlparse(self.path)
        query = {key: values[0] for key, values in parse_qs(parsed.query).items()}
        parts = [p for p in parsed.path.split("/") if p]
        state = self._state()
        state.record(self.path)

        if parts == ["storage"]:
            self._handle_storage(query)
            return
        if parts == ["releases"]:
            channel = query.get("channel", "")
            if channel in state.failing_channels:
                self._write_empty(500)
                return
            num = int(query.get("num", "100"))
            offset = int(query.get("offset", "0"))
            self._write_json(200, state.releases.get(channel, [])[offset : offset + num])
            return
        if len(parts) == 3 and parts[0] == "download":
            revision, name = parts[1], parts[2]
            data = state.artifacts.get(revision, {}).get(name)
            if data is None:
                self._write_empty(404)
                return
            if state.take_download_failure():
                self._write_empty(503)
                return
            self.send_response(200)
            self.send_header("Content-Type", "application/zip")
            self.send_header("Content-Length", str(len(data)))
            self.end_headers()
            self.wfile.write(data)
            return
        self._write_empty(404)

    def _handle_storage(self, query: Dict[str, str]) -> None:
        state = self._state()
        prefix = query.get("prefix", "")
        if prefix == f"{PLATFORM}/":
            start = int(query.get("pageToken", "0") or 0)
            page = state.revisions[start : start + state.page_size]
            payload: Dict[str, Any] = {
                "kind": "storage#objects",
                "prefixes": [f"{PLATFORM}/{revision}/" for revision in page],
            }
            if start + state.page_size < len(state.revisions):
                payload["nextPageToken"] = str(start + state.page_size)
            self._write_json(200, payload)
            return

        revision = prefix[len(PLATFORM) + 1 :].strip("/")
        if state.take_metadata_failure():
            self._write_empty(500)
            return
        files = state.artifacts.get(revision, {})
        items = [
            {
                "kind": "storage#object",
                "name": f"{PLATFORM}/{revision}/{name}",
                "size": str(state.reported_sizes.get(revision, len(data))),
                "mediaLink": f"{self._base_url()}/download/{revision}/{name}",
            }
            for name, data in files.items()
        ]
        payload = {"kind": "storage#objects"}
        if items:
            payload["items"] = items
        self._write_json(200, payload)

    def log_message(self, *_: Any) -> None:  # pragma: no cover - avoid noisy logs
        return


class _ThreadingHTTPServer(http.server.ThreadingHTTPServer):
    allow_reuse_address = True
    daemon_threads = True


class MockChromiumServer:
    """Runs the mock endpoints in a background thread."""

    def __init__(self) -> None:
        self.state = MockChromiumState()
        self.httpd = _ThreadingHTTPServer(("127.0.0.1", 0), _MockChromiumRequestHandler)
        self.httpd.state = self.state  # type: ignore[attr-defined]
        self.thread = threading.Thread(target=self.httpd.serve_forever, daemon=True)
        self.url = ""

    @property
    def storage_url(self) -> str:
        return f"{self.url}/storage"

    @property
    def releases_url(self) -> str:
        return f"{self.url}/releases"

    def start(self) -> None:
        self.thread.start()
        host, port = self.httpd.server_address[:2]
        self.url = f"http://{host}:{port}"

    def stop(self) -> None:
        self.httpd.shutdown()
        self.thread.join(timeout=2)
        self.httpd.server_close()


class ZipfileExtractor:
    """Extractor collaborator backed by :mod:`zipfile` so tests do not need ``unzip``."""

    def __init__(self) -> None:
        self.calls: List[Path] = []

    def extract(self, archive: Path, destination: Path) -> None:
        self.calls.append(Path(archive))
        Path(destination).mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(archive) as handle:
            handle.extractall(destination)


class RecordingLauncher:
    def __init__(self) -> None:
        self.launches: List[tuple[Path, List[str]]] = []

    def launch(self, app_path: Path, args: Any) -> None:
        self.launches.append((Path(app_path), list(args)))


@pytest.fixture
def chromium_server() -> Iterator[MockChromiumServer]:
    server = MockChromiumServer()
    server.start()
    try:
        yield server
    finally:
        server.stop()


@pytest.fixture
def chvm_config(tmp_path: Path, chromium_server: MockChromiumServer) -> ChvmConfig:
    return ChvmConfig.for_home(
        tmp_path / "home",
        storage_url=chromium_server.storage_url,
        releases_url=chromium_server.releases_url,
        http_timeout=5.0,
        retry_delay=0.0,
        install_lock_timeout=5.0,
        lock_timeout=1.0,
    )


@pytest.fixture
def snapshot_zip() -> bytes:
    return make_snapshot_zip()


@pytest.fixture
def zip_extractor() -> ZipfileExtractor:
    return ZipfileExtractor()


@pytest.fixture
def launcher() -> RecordingLauncher:
    return RecordingLauncher()


@pytest.fixture
def seeded_server(chromium_server: MockChromiumServer, snapshot_zip: bytes) -> MockChromiumServer:
    """Three revisions: 1200 is 120.0.1.0 exactly, 1100 lands near 119.0.2.0, 1000 has no release."""
    state = chromium_server.state
    state.revisions = ["1000", "1100", "1200"]
    state.add_release("Stable", "120.0.1.0", 1200)
    state.add_release("Beta", "119.0.2.0", 1098)
    state.add_release("Dev", "118.0.0.0", None)
    for revision in state.revisions:
        state.add_artifact(revision, snapshot_zip)
    return chromium_server

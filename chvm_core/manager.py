"""Version manager: update, list, install, open and uninstall Chromium snapshots."""

from __future__ import annotations

import logging
import os
import shutil
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Optional

from .catalog import (
    CatalogEntry,
    ReleaseDashClient,
    SnapshotStorageClient,
    build_catalog,
    resolve_version,
    select_artifact,
)
from .config import ChvmConfig
from .download import ProgressObserver, download, retry_with_backoff, validate
from .errors import (
    BundleVerificationError,
    InstallStepError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from .install import (
    Extractor,
    UnzipExtractor,
    atomic_install,
    directory_size,
    executable_dir,
    find_app_bundle,
    verify_bundle,
)
from .launcher import Launcher, OpenLauncher
from .lock import with_lock
from .state import InstalledRecord, add_installed, read_catalog, read_installed, remove_installed, write_catalog

logger = logging.getLogger(__name__)

__all__ = ["InstallResult", "ListingRow", "VersionManager"]


@dataclass(frozen=True)
class InstallResult:
    key: str
    revision: str
    version: Optional[str]
    path: Path
    size: int
    already_installed: bool = False


@dataclass(frozen=True)
class ListingRow:
    entry: CatalogEntry
    installed: bool


@contextmanager
def _step(name: str) -> Iterator[None]:
    try:
        yield
    except InstallStepError:
        raise
    except Exception as exc:
        logger.error("install step %s failed: %s", name, exc)
        raise InstallStepError(name, exc) from exc


class VersionManager:
    def __init__(
        self,
        config: ChvmConfig,
        *,
        storage: SnapshotStorageClient | None = None,
        releases: ReleaseDashClient | None = None,
        extractor: Extractor | None = None,
        launcher: Launcher | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.layout = config.layout
        self.storage = storage or SnapshotStorageClient.from_config(config)
        self.releases = releases or ReleaseDashClient.from_config(config)
        self.extractor = extractor or UnzipExtractor()
        self.launcher = launcher or OpenLauncher()
        self._sleep = sleep
        self.layout.ensure()

    # ------------------------- catalog -------------------------

    def update(self, *, limit: int | None = None) -> list[CatalogEntry]:
        """Rebuild the catalog; an empty result keeps the previously persisted one."""
        catalog = build_catalog(
            self.storage,
            self.releases,
            channels=self.config.channels,
            revision_limit=limit or self.config.revision_limit,
            releases_per_channel=self.config.releases_per_channel,
            radius=self.config.probe_radius,
        )
        if catalog:
            write_catalog(self.layout, catalog)
            logger.info("catalog updated with %s entries", len(catalog))
        else:
            logger.warning("catalog rebuild produced no entries; keeping previous catalog")
        return catalog

    def available(self) -> list[CatalogEntry]:
        return read_catalog(self.layout)

    def installed(self) -> dict[str, InstalledRecord]:
        return read_installed(self.layout)

    def listing(self, *, show_all: bool = False) -> list[ListingRow]:
        """Catalog rows; unless ``show_all``, only the newest build per major version."""
        installed = self.installed()
        rows: list[ListingRow] = []
        majors: set[str] = set()
        for entry in self.available():
            if not show_all:
                if not entry.version:
                    continue
                major = entry.version.split(".")[0]
                if major in majors:
                    continue
                majors.add(major)
            rows.append(ListingRow(entry=entry, installed=entry.install_key in installed))
        return rows

    # ------------------------- install -------------------------

    def install(self, query: str, on_progress: ProgressObserver | None = None) -> InstallResult:
        return with_lock(
            self.layout.root,
            lambda: self._install_locked(query, on_progress),
            timeout=self.config.install_lock_timeout,
            stale_timeout=self.config.stale_lock_timeout,
            heartbeat=self.config.stale_lock_timeout / 2,
        )

    def _install_locked(self, query: str, on_progress: ProgressObserver | None) -> InstallResult:
        with _step("resolve"):
            catalog = read_catalog(self.layout)
            if not catalog:
                raise NotFoundError('no versions available. Please run "chvm update" first.')
            entry = resolve_version(query, catalog)
            if entry is None:
                raise NotFoundError(f'version "{query}" not found. Run "chvm ls" to see available versions.')
        logger.info("resolved %r -> %s (revision %s)", query, entry.display_name, entry.revision)

        key = entry.install_key
        existing = read_installed(self.layout).get(key)
        if existing is not None:
            return InstallResult(
                key=key,
                revision=existing.revision,
                version=entry.version,
                path=Path(existing.path),
                size=existing.size,
                already_installed=True,
            )

        archive = self.layout.archive_path(entry.revision)
        final_path = self.layout.install_path(key)
        try:
            with _step("download"):
                self._download_archive(entry, archive, on_progress)

            def populate(tmp_dir: Path) -> Path:
                extract_dir = tmp_dir / "extracted"
                with _step("extract"):
                    self.extractor.extract(archive, extract_dir)
                    bundle = find_app_bundle(extract_dir)
                with _step("verify"):
                    if not verify_bundle(bundle):
                        raise BundleVerificationError(f"invalid app bundle structure: {bundle.name}")
                return bundle

            with _step("publish"):
                atomic_install(populate, final_path, self.layout.tmp_dir)
                size = directory_size(final_path)
                add_installed(self.layout, key, revision=entry.revision, path=final_path, size=size)
        finally:
            archive.unlink(missing_ok=True)

        logger.info("installed %s to %s (%s bytes)", entry.display_name, final_path, size)
        return InstallResult(
            key=key,
            revision=entry.revision,
            version=entry.version,
            path=final_path,
            size=size,
        )

    def _download_archive(
        self,
        entry: CatalogEntry,
        archive: Path,
        on_progress: ProgressObserver | None,
    ) -> None:
        items = self._retry(lambda: self.storage.fetch_revision_metadata(entry.revision))
        item = select_artifact(items, self.config.archive_name)

        def _attempt() -> None:
            try:
                download(
                    item.media_link,
                    archive,
                    on_progress,
                    session=self.storage.session,
                    timeout=self.config.http_timeout,
                    chunk_size=self.config.chunk_size,
                )
            except BaseException:
                archive.unlink(missing_ok=True)
                raise

        self._retry(_attempt)
        if item.size is None:
            logger.warning("no size reported for %s; skipping size validation", item.name)
            return
        if not validate(archive, item.size):
            actual = archive.stat().st_size if archive.exists() else 0
            raise ValidationError(f"file size mismatch for {item.name}: expected {item.size}, got {actual}")

    def _retry(self, operation: Callable[[], object]) -> object:
        return retry_with_backoff(
            operation,
            max_retries=self.config.max_retries,
            initial_delay=self.config.retry_delay,
            backoff_factor=self.config.retry_backoff,
            retry_on=(TransportError,),
            sleep=self._sleep,
        )

    # ------------------------ uninstall ------------------------

    def uninstall(self, query: str, *, force: bool = False) -> str:
        """Remove an installed build; ``force`` also clears leftovers of unregistered ones."""
        return with_lock(
            self.layout.root,
            lambda: self._uninstall_locked(query, force),
            timeout=self.config.lock_timeout,
            stale_timeout=self.config.stale_lock_timeout,
        )

    def _uninstall_locked(self, query: str, force: bool) -> str:
        installed = read_installed(self.layout)
        key = self._installed_key(query, installed)
        if key is None:
            if force and self._remove_leftovers(query, self.layout.install_path(query)):
                logger.info("removed leftovers of unregistered %s", query)
                return query
            raise NotFoundError(f'version "{query}" is not installed.')

        self._remove_leftovers(key, Path(installed[key].path))
        remove_installed(self.layout, key)
        logger.info("uninstalled %s", key)
        return key

    def _remove_leftovers(self, key: str, app_path: Path) -> bool:
        if not key or key in (".", "..") or os.sep in key or "/" in key or (os.altsep and os.altsep in key):
            raise NotFoundError(f'version "{key}" is not installed.')
        targets = (
            (app_path, self.layout.installs_dir),
            (self.layout.profile_dir(key), self.layout.profiles_dir),
            (self.layout.tmp_dir / key, self.layout.tmp_dir),
        )
        for path, parent in targets:
            if path.resolve().parent != parent.resolve():
                raise NotFoundError(f"refusing to remove {path}: not inside {parent}")

        removed = False
        for path, _ in targets:
            if path.exists():
                shutil.rmtree(path)
                removed = True
        return removed

    def _installed_key(self, query: str, installed: dict[str, InstalledRecord]) -> str | None:
        if query in installed:
            return query
        entry = resolve_version(query, read_catalog(self.layout))
        if entry is not None and entry.install_key in installed:
            return entry.install_key
        return None

    # --------------------------- open ---------------------------

    def open(
        self,
        query: str,
        *,
        disable_cors: bool = False,
        on_progress: ProgressObserver | None = None,
    ) -> Path:
        """Launch an installed build, installing it first when needed."""
        installed = read_installed(self.layout)
        key = self._installed_key(query, installed)
        if key is None:
            result = self.install(query, on_progress)
            key = result.key
            installed = read_installed(self.layout)
        record = installed.get(key)
        if record is None:
            raise NotFoundError(f'failed to prepare version "{query}" for opening')

        app_path = Path(record.path)
        executable = executable_dir(app_path) / self.config.executable_name
        if not executable.exists():
            raise NotFoundError(f"Chromium executable not found at {executable}")

        profile = self.layout.profile_dir(key)
        profile.mkdir(parents=True, exist_ok=True)
        if disable_cors:
            # throwaway profile: security-disabled sessions never touch the real one
            data_dir = self.layout.tmp_dir / key
            data_dir.mkdir(parents=True, exist_ok=True)
            args = ["--disable-web-security", f"--user-data-dir={data_dir}"]
            logger.warning("opening %s with web security disabled", key)
        else:
            args = [f"--user-data-dir={profile}"]
        self.launcher.launch(app_path, args)
        logger.info("opened %s", key)
        return app_path

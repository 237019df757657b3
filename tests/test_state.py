"""Tests for the persisted catalog and installed registry."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from chvm_core.catalog import CatalogEntry
from chvm_core.errors import StateFileError
from chvm_core.layout import HomeLayout
from chvm_core.state import (
    add_installed,
    read_catalog,
    read_installed,
    remove_installed,
    write_catalog,
)


@pytest.fixture
def layout(tmp_path: Path) -> HomeLayout:
    return HomeLayout.from_root(tmp_path / "home").ensure()


def test_missing_files_read_as_empty(layout: HomeLayout) -> None:
    assert read_catalog(layout) == []
    assert read_installed(layout) == {}


def test_catalog_persists_with_wire_keys(layout: HomeLayout) -> None:
    catalog = [
        CatalogEntry("120.0.1.0", "1200", "Stable", "Mac_Arm", True),
        CatalogEntry(None, "1000", None, "Mac_Arm", False),
    ]
    write_catalog(layout, catalog)

    raw = json.loads(layout.available_file.read_text())
    assert raw[0] == {
        "version": "120.0.1.0",
        "revision": "1200",
        "channel": "Stable",
        "platform": "Mac_Arm",
        "hasVersion": True,
    }
    assert raw[1]["version"] is None
    assert read_catalog(layout) == catalog


def test_add_and_remove_installed(layout: HomeLayout) -> None:
    record = add_installed(layout, "120.0.1.0", revision="1200", path=layout.install_path("120.0.1.0"), size=42)

    installed = read_installed(layout)
    assert installed == {"120.0.1.0": record}
    raw = json.loads(layout.installed_file.read_text())
    assert raw["120.0.1.0"]["installedAt"] == record.installed_at
    assert raw["120.0.1.0"]["path"].endswith("installs/120.0.1.0.app")

    add_installed(layout, "1000", revision="1000", path=layout.install_path("1000"), size=7)
    assert remove_installed(layout, "120.0.1.0")
    assert not remove_installed(layout, "120.0.1.0")
    assert list(read_installed(layout)) == ["1000"]


def test_corrupt_state_files_raise(layout: HomeLayout) -> None:
    layout.installed_file.write_text("{not json")
    with pytest.raises(StateFileError) as excinfo:
        read_installed(layout)
    assert excinfo.value.path == layout.installed_file

    layout.available_file.write_text('{"version": "1"}')
    with pytest.raises(StateFileError, match="expected a JSON array"):
        read_catalog(layout)


def test_writes_leave_no_temp_files(layout: HomeLayout) -> None:
    write_catalog(layout, [])
    add_installed(layout, "1", revision="1", path="/x", size=0)
    leftovers = [p.name for p in layout.root.iterdir() if p.name.endswith(".tmp")]
    assert leftovers == []

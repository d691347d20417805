"""Tests for first-run setup helpers."""

import zipfile
from pathlib import Path

import pytest

from notesnook_archive.config import load_config
from notesnook_archive.wizard import (
    client_config_snippet,
    complete_setup,
    discover_notebooks,
    parse_selection,
    prepare_sync_root,
)
from tests.unit.fakes import BuildExport


def test_prepare_sync_root_creates_folders(tmp_path: Path) -> None:
    prepare_sync_root(tmp_path / "root")
    assert (tmp_path / "root" / "export").is_dir()
    assert (tmp_path / "root" / "import").is_dir()


def test_discover_notebooks_without_export(tmp_path: Path) -> None:
    assert discover_notebooks(tmp_path) is None


def test_discover_notebooks_lists_folders(sync_root: Path, build_export: BuildExport) -> None:
    build_export()
    assert discover_notebooks(sync_root / "export") == ["Default", "personal", "work"]


def test_discover_notebooks_leaves_scratch_dir_alone(
    sync_root: Path, build_export: BuildExport
) -> None:
    build_export()
    discover_notebooks(sync_root / "export")
    assert not (sync_root / "export" / "extracted").exists()


def test_discover_notebooks_corrupt_zip_raises(sync_root: Path) -> None:
    (sync_root / "export").mkdir(parents=True, exist_ok=True)
    (sync_root / "export" / "notesnook-export.zip").write_bytes(b"not a zip")
    with pytest.raises(zipfile.BadZipFile):
        discover_notebooks(sync_root / "export")


def test_parse_selection() -> None:
    notebooks = ["Default", "personal", "work"]
    assert parse_selection("all", notebooks) == notebooks
    assert parse_selection(" ALL ", notebooks) == notebooks
    assert parse_selection("3, 1, 3", notebooks) == ["work", "Default"]
    assert parse_selection("0, 9, x", notebooks) == []


def test_complete_setup_marks_first_run_done(tmp_path: Path) -> None:
    complete_setup(tmp_path, ["work"])
    config = load_config(tmp_path)
    assert config.first_run_complete is True
    assert config.enabled_notebooks == ["work"]


def test_client_config_snippet_uses_port(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PORT", "4000")
    assert "http://localhost:4000/sse" in client_config_snippet()

"""Shared test fixtures."""

import sqlite3
from pathlib import Path

import pytest

from notesnook_archive.config import ServerConfig
from notesnook_archive.core.database.schema import create_schema
from notesnook_archive.core.database.store import upsert_note
from tests.unit.fakes import ZIP_DATE, BuildExport, make_note, write_export_zip

EXPORT_FILES = {
    "work/meeting-notes.md": (
        "---\ntitle: Meeting Notes\ntags: [work, planning]\n---\n\n"
        "# Meeting Notes\n\nDiscussed the python migration."
    ),
    "work/todo.md": "# Sprint tasks\n\n- [ ] write docs",
    "personal/recipes.md": "---\ntags: [food]\n---\n\n# Pancakes\n\nFlour, eggs, milk.",
    "loose-note.md": "Just some text without a heading.",
}


@pytest.fixture
def sync_root(tmp_path: Path) -> Path:
    root = tmp_path / "sync"
    (root / "export").mkdir(parents=True)
    (root / "import").mkdir()
    return root


@pytest.fixture
def build_export(sync_root: Path) -> BuildExport:
    """Return a helper writing an export zip into the sync root's export dir."""

    def _build(
        files: dict[str, str] | None = None,
        *,
        name: str = "notesnook-export.zip",
        date_time: tuple[int, int, int, int, int, int] = ZIP_DATE,
    ) -> Path:
        return write_export_zip(
            sync_root / "export" / name,
            EXPORT_FILES if files is None else files,
            date_time=date_time,
        )

    return _build


@pytest.fixture
def config(sync_root: Path) -> ServerConfig:
    return ServerConfig(sync_root=sync_root, enabled_notebooks=["Work"], first_run_complete=True)


@pytest.fixture
def populated_db() -> sqlite3.Connection:
    """Return an in-memory DB with notes in two notebooks."""
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    upsert_note(conn, make_note())
    upsert_note(
        conn,
        make_note(
            id="n2",
            title="Rust notes",
            content="Ownership and borrowing. Faster than python.",
            updated_at="2024-02-01T00:00:00+00:00",
            tags=("dev", "rust"),
        ),
    )
    upsert_note(
        conn,
        make_note(
            id="n3",
            title="Python cake",
            notebook="Personal",
            content="Not a real snake.",
            updated_at="2024-03-01T00:00:00+00:00",
            tags=("food",),
        ),
    )
    return conn

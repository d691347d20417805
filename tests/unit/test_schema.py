"""Tests for database schema and the note store."""

import sqlite3
from pathlib import Path

from notesnook_archive.core.database.schema import (
    create_schema,
    get_metadata,
    get_schema_version,
    migrate_schema,
    open_database,
    set_metadata,
)
from notesnook_archive.core.database.store import (
    count_notes_by_notebook,
    delete_note,
    get_all_notebooks,
    get_last_sync_time,
    get_note_by_id,
    get_note_by_title,
    list_notes_by_notebook,
    set_last_sync_time,
    upsert_note,
)
from tests.unit.fakes import make_note


def _fresh_db() -> sqlite3.Connection:
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    return conn


def test_create_schema_creates_notes_and_meta_tables() -> None:
    conn = _fresh_db()
    tables = {
        row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    }
    assert {"notes", "sync_meta"} <= tables


def test_migrate_schema_on_empty_db_creates_schema_and_sets_version() -> None:
    conn = sqlite3.connect(":memory:")
    assert get_schema_version(conn) is None
    migrate_schema(conn)
    assert get_schema_version(conn) == 1


def test_open_database_creates_parent_dirs(tmp_path: Path) -> None:
    db_path = tmp_path / "nested" / "notesnook.db"
    conn = open_database(db_path)
    try:
        assert db_path.exists()
        assert get_schema_version(conn) == 1
    finally:
        conn.close()


def test_metadata_roundtrip() -> None:
    conn = _fresh_db()
    assert get_metadata(conn, "missing") is None
    set_metadata(conn, "key", "value")
    assert get_metadata(conn, "key") == "value"


def test_upsert_replaces_existing_note() -> None:
    conn = _fresh_db()
    upsert_note(conn, make_note(content="first"))
    upsert_note(conn, make_note(content="second", tags=("a", "b")))

    note = get_note_by_id(conn, "n1")
    assert note is not None
    assert note.content == "second"
    assert note.tags == ("a", "b")
    assert conn.execute("SELECT COUNT(*) FROM notes").fetchone()[0] == 1


def test_get_note_by_title_is_case_insensitive() -> None:
    conn = _fresh_db()
    upsert_note(conn, make_note(title="Daily To-Do List"))
    assert get_note_by_title(conn, "daily to-do list") is not None
    assert get_note_by_title(conn, "Daily") is None


def test_list_notes_by_notebook_newest_first(populated_db: sqlite3.Connection) -> None:
    notes = list_notes_by_notebook(populated_db, "Work")
    assert [n.id for n in notes] == ["n2", "n1"]
    assert list_notes_by_notebook(populated_db, "Work", limit=1, offset=1)[0].id == "n1"


def test_notebooks_and_counts(populated_db: sqlite3.Connection) -> None:
    assert get_all_notebooks(populated_db) == ["Personal", "Work"]
    assert count_notes_by_notebook(populated_db) == {"Personal": 1, "Work": 2}


def test_delete_note(populated_db: sqlite3.Connection) -> None:
    assert delete_note(populated_db, "n1") is True
    assert delete_note(populated_db, "n1") is False
    assert get_note_by_id(populated_db, "n1") is None


def test_last_sync_time_roundtrip() -> None:
    conn = _fresh_db()
    assert get_last_sync_time(conn) is None
    set_last_sync_time(conn, "2024-01-01T00:00:00+00:00")
    assert get_last_sync_time(conn) == "2024-01-01T00:00:00+00:00"

"""Index store: note records keyed by id, plus sync metadata."""

import json
import sqlite3

from notesnook_archive.core.database.schema import get_metadata, set_metadata
from notesnook_archive.models.note import Note, NoteSummary

LAST_SYNC_KEY = "last_sync"
EXCERPT_LENGTH = 200

NOTE_COLUMNS = (
    "id, title, notebook, tags, content, raw_front_matter, file_path, created_at, updated_at"
)


def _row_to_note(row: tuple) -> Note:
    return Note(
        id=row[0],
        title=row[1],
        notebook=row[2],
        tags=tuple(json.loads(row[3])),
        content=row[4],
        raw_front_matter=row[5],
        file_path=row[6],
        created_at=row[7],
        updated_at=row[8],
    )


def row_to_summary(row: tuple) -> NoteSummary:
    return NoteSummary(
        id=row[0],
        title=row[1],
        notebook=row[2],
        tags=tuple(json.loads(row[3])),
        excerpt=row[4][:EXCERPT_LENGTH],
        updated_at=row[8],
    )


def upsert_note(conn: sqlite3.Connection, note: Note) -> None:
    """Insert or fully replace a note, committed as one transaction."""
    with conn:
        conn.execute(
            f"""INSERT OR REPLACE INTO notes ({NOTE_COLUMNS})
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                note.id,
                note.title,
                note.notebook,
                json.dumps(list(note.tags)),
                note.content,
                note.raw_front_matter,
                note.file_path,
                note.created_at,
                note.updated_at,
            ),
        )


def get_note_by_id(conn: sqlite3.Connection, note_id: str) -> Note | None:
    row = conn.execute(f"SELECT {NOTE_COLUMNS} FROM notes WHERE id = ?", (note_id,)).fetchone()
    return _row_to_note(row) if row else None


def get_note_by_title(conn: sqlite3.Connection, title: str) -> Note | None:
    """Case-insensitive exact title lookup."""
    row = conn.execute(
        f"SELECT {NOTE_COLUMNS} FROM notes WHERE title = ? COLLATE NOCASE", (title,)
    ).fetchone()
    return _row_to_note(row) if row else None


def list_notes_by_notebook(
    conn: sqlite3.Connection,
    notebook: str,
    *,
    limit: int = 20,
    offset: int = 0,
) -> list[NoteSummary]:
    """List a notebook's notes, most recently updated first."""
    rows = conn.execute(
        f"""SELECT {NOTE_COLUMNS} FROM notes WHERE notebook = ?
            ORDER BY updated_at DESC LIMIT ? OFFSET ?""",
        (notebook, limit, offset),
    ).fetchall()
    return [row_to_summary(r) for r in rows]


def get_all_notebooks(conn: sqlite3.Connection) -> list[str]:
    rows = conn.execute("SELECT DISTINCT notebook FROM notes ORDER BY notebook").fetchall()
    return [r[0] for r in rows]


def count_notes_by_notebook(conn: sqlite3.Connection) -> dict[str, int]:
    rows = conn.execute("SELECT notebook, COUNT(*) FROM notes GROUP BY notebook").fetchall()
    return {r[0]: r[1] for r in rows}


def delete_note(conn: sqlite3.Connection, note_id: str) -> bool:
    """Delete a note. Returns True if a row was removed."""
    with conn:
        cursor = conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))
    return cursor.rowcount > 0


def get_last_sync_time(conn: sqlite3.Connection) -> str | None:
    return get_metadata(conn, LAST_SYNC_KEY)


def set_last_sync_time(conn: sqlite3.Connection, iso_timestamp: str) -> None:
    set_metadata(conn, LAST_SYNC_KEY, iso_timestamp)

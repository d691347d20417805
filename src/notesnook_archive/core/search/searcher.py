"""Substring search over indexed notes."""

import sqlite3

from notesnook_archive.core.database.store import NOTE_COLUMNS, row_to_summary
from notesnook_archive.models.note import NoteSummary


def _escape_like(term: str) -> str:
    """Escape LIKE wildcards so the query matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_notes(
    conn: sqlite3.Connection,
    *,
    query: str,
    notebooks: list[str],
    tags: list[str] | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[NoteSummary], int]:
    """Search note titles and content, restricted to the given notebooks.

    Args:
        conn: Database connection.
        query: Substring to look for (case-insensitive for ASCII).
        notebooks: Notebook names the caller may see. Empty means no results.
        tags: Every tag listed must be present on a hit.
        limit: Max results to return.
        offset: Pagination offset.

    Returns:
        Tuple of (results, total_count), most recently updated first.
    """
    if not notebooks:
        return [], 0

    term = f"%{_escape_like(query)}%"
    placeholders = ", ".join("?" for _ in notebooks)
    where_clauses = [
        "(title LIKE ? ESCAPE '\\' OR content LIKE ? ESCAPE '\\')",
        f"notebook IN ({placeholders})",
    ]
    params: list[str | int] = [term, term, *notebooks]

    for tag in tags or []:
        where_clauses.append("EXISTS (SELECT 1 FROM json_each(notes.tags) WHERE value = ?)")
        params.append(tag)

    where_sql = " AND ".join(where_clauses)

    total = conn.execute(f"SELECT COUNT(*) FROM notes WHERE {where_sql}", params).fetchone()[0]

    rows = conn.execute(
        f"""SELECT {NOTE_COLUMNS} FROM notes
            WHERE {where_sql}
            ORDER BY updated_at DESC
            LIMIT ? OFFSET ?""",
        [*params, limit, offset],
    ).fetchall()
    return [row_to_summary(r) for r in rows], total

"""Write operations: update the local index and stage files for Notesnook."""

import sqlite3
import uuid
from dataclasses import asdict, replace
from typing import Any

from loguru import logger

from notesnook_archive.config import AGENT_NOTEBOOK, TODO_NOTE_TITLE, ServerConfig
from notesnook_archive.core.database.store import (
    get_all_notebooks,
    get_note_by_id,
    get_note_by_title,
    upsert_note,
)
from notesnook_archive.core.importer.reconciler import now_iso
from notesnook_archive.core.todo.checklist import apply_update, parse_items, serialize_items
from notesnook_archive.models.note import Note
from notesnook_archive.protocols import NoteWriterProtocol
from notesnook_archive.results import NOT_FOUND, VALIDATION, access_denied, error_result


def infer_notebook(conn: sqlite3.Connection, content: str) -> str:
    """Pick the first known notebook mentioned in the content, else the agent notebook."""
    lowered = content.lower()
    for notebook in get_all_notebooks(conn):
        if notebook.lower() in lowered:
            return notebook
    return AGENT_NOTEBOOK


async def _save(conn: sqlite3.Connection, writer: NoteWriterProtocol, note: Note) -> Note:
    """Index the note, then stage it for import."""
    note = replace(note, file_path=str(writer.path_for(note)))
    upsert_note(conn, note)
    await writer.write_note(note)
    return note


async def create_note(
    conn: sqlite3.Connection,
    writer: NoteWriterProtocol,
    *,
    title: str,
    content: str,
    notebook: str | None = None,
    tags: list[str] | None = None,
) -> dict[str, Any]:
    """Create a note in the index and write it to the import folder.

    Args:
        conn: Index database connection.
        writer: Outbound writer for the import folder.
        title: Note title.
        content: Markdown body.
        notebook: Target notebook; inferred from content when omitted.
        tags: Tags to apply.
    """
    if not title.strip():
        return error_result(VALIDATION, "Title must not be empty.")

    now = now_iso()
    note = Note(
        id=str(uuid.uuid4()),
        title=title,
        notebook=notebook or infer_notebook(conn, content),
        tags=tuple(tags or ()),
        content=content,
        file_path="",
        created_at=now,
        updated_at=now,
    )
    note = await _save(conn, writer, note)
    logger.info("Created note {} in notebook {}", note.id, note.notebook)
    return {
        "success": True,
        "id": note.id,
        "title": note.title,
        "notebook": note.notebook,
        "file_path": note.file_path,
    }


async def update_note(
    conn: sqlite3.Connection,
    config: ServerConfig,
    writer: NoteWriterProtocol,
    *,
    note_id: str,
    content: str | None = None,
    append: str | None = None,
    title: str | None = None,
    tags: list[str] | None = None,
) -> dict[str, Any]:
    """Replace or append content, retitle or retag an existing note.

    content wins over append when both are given.
    """
    if content is None and append is None and title is None and tags is None:
        return error_result(
            VALIDATION, "At least one of content, append, title, or tags must be provided."
        )

    note = get_note_by_id(conn, note_id)
    if note is None:
        return error_result(NOT_FOUND, f"Note not found: {note_id}")
    if not config.is_enabled(note.notebook):
        return access_denied(note.notebook)

    if content is not None:
        new_content = content
    elif append is not None:
        new_content = note.content + "\n" + append
    else:
        new_content = note.content

    updated = replace(
        note,
        title=title if title is not None else note.title,
        tags=tuple(tags) if tags is not None else note.tags,
        content=new_content,
        updated_at=now_iso(),
    )
    updated = await _save(conn, writer, updated)
    logger.info("Updated note {}", updated.id)
    return {"success": True, "id": updated.id, "title": updated.title}


async def update_todo(
    conn: sqlite3.Connection,
    writer: NoteWriterProtocol,
    *,
    add: list[str] | None = None,
    complete: list[str] | None = None,
    remove: list[str] | None = None,
    replace_all: list[str] | None = None,
) -> dict[str, Any]:
    """Add, complete or remove items on the daily to-do note.

    The note is created in the agent notebook on first use.
    """
    if add is None and complete is None and remove is None and replace_all is None:
        return error_result(
            VALIDATION, "At least one of add, complete, remove, or replace_all must be provided."
        )

    now = now_iso()
    existing = get_note_by_title(conn, TODO_NOTE_TITLE)
    items = parse_items(existing.content, now=now) if existing else []
    items = apply_update(
        items, now=now, add=add, complete=complete, remove=remove, replace_all=replace_all
    )

    if existing is not None:
        note = replace(existing, content=serialize_items(items), updated_at=now)
    else:
        note = Note(
            id=str(uuid.uuid4()),
            title=TODO_NOTE_TITLE,
            notebook=AGENT_NOTEBOOK,
            content=serialize_items(items),
            file_path="",
            created_at=now,
            updated_at=now,
        )
    await _save(conn, writer, note)

    pending = sum(1 for i in items if not i.done)
    return {
        "success": True,
        "pending": pending,
        "done": len(items) - pending,
        "items": [asdict(i) for i in items],
        "updated_at": now,
    }

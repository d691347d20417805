"""Tests for the write operations (create, update, to-do)."""

import asyncio
import sqlite3

from notesnook_archive.config import ServerConfig
from notesnook_archive.core.database.schema import create_schema
from notesnook_archive.core.database.store import get_note_by_id, get_note_by_title, upsert_note
from notesnook_archive.core.write.client import (
    create_note,
    infer_notebook,
    update_note,
    update_todo,
)
from tests.unit.fakes import FakeWriter, make_note


def _fresh_db() -> sqlite3.Connection:
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    return conn


def test_create_note_indexes_and_writes(populated_db: sqlite3.Connection) -> None:
    writer = FakeWriter()
    result = asyncio.run(
        create_note(populated_db, writer, title="New idea", content="Body", notebook="Work")
    )

    assert result["success"] is True
    assert result["notebook"] == "Work"
    stored = get_note_by_id(populated_db, result["id"])
    assert stored is not None
    assert stored.title == "New idea"
    assert stored.file_path == result["file_path"]
    assert writer.files[result["file_path"]] == "# New idea\n\nBody"


def test_create_note_infers_notebook_from_content(populated_db: sqlite3.Connection) -> None:
    result = asyncio.run(
        create_note(populated_db, FakeWriter(), title="Idea", content="File under personal stuff")
    )
    assert result["notebook"] == "Personal"


def test_create_note_defaults_to_agent_notebook() -> None:
    result = asyncio.run(create_note(_fresh_db(), FakeWriter(), title="Idea", content="x"))
    assert result["notebook"] == "OpenClaw"


def test_create_note_rejects_blank_title() -> None:
    result = asyncio.run(create_note(_fresh_db(), FakeWriter(), title="  ", content="x"))
    assert result["error_type"] == "validation"


def test_infer_notebook_falls_back_to_agent_notebook(populated_db: sqlite3.Connection) -> None:
    assert infer_notebook(populated_db, "nothing relevant") == "OpenClaw"


def test_update_note_appends_content(
    populated_db: sqlite3.Connection, config: ServerConfig
) -> None:
    writer = FakeWriter()
    result = asyncio.run(
        update_note(populated_db, config, writer, note_id="n1", append="More tips.")
    )
    assert result == {"success": True, "id": "n1", "title": "Python tips"}
    note = get_note_by_id(populated_db, "n1")
    assert note is not None
    assert note.content == "Use type hints everywhere.\nMore tips."
    assert note.updated_at != "2024-01-01T00:00:00+00:00"
    assert writer.written[0].id == "n1"


def test_update_note_content_wins_over_append(
    populated_db: sqlite3.Connection, config: ServerConfig
) -> None:
    asyncio.run(
        update_note(
            populated_db, config, FakeWriter(), note_id="n1", content="replaced", append="x"
        )
    )
    note = get_note_by_id(populated_db, "n1")
    assert note is not None and note.content == "replaced"


def test_update_note_retitles_and_retags(
    populated_db: sqlite3.Connection, config: ServerConfig
) -> None:
    asyncio.run(
        update_note(
            populated_db, config, FakeWriter(), note_id="n1", title="Typing tips", tags=["py"]
        )
    )
    note = get_note_by_id(populated_db, "n1")
    assert note is not None
    assert note.title == "Typing tips"
    assert note.tags == ("py",)
    assert note.content == "Use type hints everywhere."


def test_update_note_retitle_rewrites_exported_header(
    populated_db: sqlite3.Connection, config: ServerConfig
) -> None:
    upsert_note(
        populated_db,
        make_note(id="n9", title="Old", content="# Old\n\nx", raw_front_matter="---\ntitle: Old\n---"),
    )
    writer = FakeWriter()
    asyncio.run(update_note(populated_db, config, writer, note_id="n9", title="New"))

    (rendered,) = writer.files.values()
    assert rendered.startswith("---\ntitle: New\n---")
    assert "title: Old" not in rendered


def test_update_note_requires_a_change(
    populated_db: sqlite3.Connection, config: ServerConfig
) -> None:
    result = asyncio.run(update_note(populated_db, config, FakeWriter(), note_id="n1"))
    assert result["error_type"] == "validation"


def test_update_note_not_found(populated_db: sqlite3.Connection, config: ServerConfig) -> None:
    result = asyncio.run(
        update_note(populated_db, config, FakeWriter(), note_id="nope", content="x")
    )
    assert result["error_type"] == "not_found"


def test_update_note_in_disabled_notebook_is_denied(
    populated_db: sqlite3.Connection, config: ServerConfig
) -> None:
    writer = FakeWriter()
    result = asyncio.run(update_note(populated_db, config, writer, note_id="n3", content="x"))
    assert result["error_type"] == "access_denied"
    assert writer.written == []
    note = get_note_by_id(populated_db, "n3")
    assert note is not None and note.content == "Not a real snake."


def test_update_todo_creates_list_then_completes_item() -> None:
    conn = _fresh_db()
    writer = FakeWriter()

    added = asyncio.run(update_todo(conn, writer, add=["buy milk"]))
    assert added["pending"] == 1
    assert added["done"] == 0

    completed = asyncio.run(update_todo(conn, writer, complete=["milk"]))
    assert completed["pending"] == 0
    assert completed["done"] == 1
    assert completed["items"][0]["text"] == "buy milk"
    assert completed["items"][0]["done"] is True

    note = get_note_by_title(conn, "Daily To-Do List")
    assert note is not None
    assert note.notebook == "OpenClaw"
    assert note.content == "- [x] buy milk"
    assert len(writer.written) == 2
    assert writer.written[0].id == writer.written[1].id


def test_update_todo_keeps_existing_note_identity() -> None:
    conn = _fresh_db()
    upsert_note(
        conn,
        make_note(
            id="todo-1",
            title="Daily To-Do List",
            notebook="work",
            content="# Daily To-Do List\n\n- [ ] existing",
            raw_front_matter="---\nid: todo-1\n---",
        ),
    )
    asyncio.run(update_todo(conn, FakeWriter(), add=["new"]))

    note = get_note_by_id(conn, "todo-1")
    assert note is not None
    assert note.notebook == "work"
    assert note.raw_front_matter == "---\nid: todo-1\n---"
    assert note.content == "- [ ] existing\n- [ ] new"


def test_update_todo_requires_an_operation() -> None:
    result = asyncio.run(update_todo(_fresh_db(), FakeWriter()))
    assert result["error_type"] == "validation"

"""Tests for turning exported files into notes and back."""

import os
from pathlib import Path

from notesnook_archive.core.importer.materializer import (
    generate_id,
    note_from_file,
    note_to_markdown,
    notebook_for_path,
    sanitize_filename,
    timestamp_to_iso,
    title_from_filename,
)
from tests.unit.fakes import make_note


def _write(root: Path, rel: str, text: str, mtime: float = 1_700_000_000) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    os.utime(path, (mtime, mtime))
    return path


def test_note_from_file_uses_folder_as_notebook_and_heading_as_title(tmp_path: Path) -> None:
    path = _write(tmp_path, "work/todo.md", "# Sprint tasks\n\n- [ ] write docs")
    note = note_from_file(path, tmp_path)
    assert note.notebook == "work"
    assert note.title == "Sprint tasks"
    assert note.id == generate_id("work/todo.md")
    assert note.updated_at == timestamp_to_iso(1_700_000_000)
    assert note.tags == ()


def test_note_from_file_prefers_front_matter(tmp_path: Path) -> None:
    text = (
        "---\nid: abc\ntitle: From Meta\ntags: [x, y]\n"
        "created: 2024-01-01T00:00:00Z\nupdated: 2024-02-01T00:00:00Z\n---\n\n# Heading\n\nBody"
    )
    note = note_from_file(_write(tmp_path, "a.md", text), tmp_path)
    assert note.id == "abc"
    assert note.title == "From Meta"
    assert note.tags == ("x", "y")
    assert note.created_at == "2024-01-01T00:00:00Z"
    assert note.updated_at == "2024-02-01T00:00:00Z"
    assert note.content == "# Heading\n\nBody"
    assert note.raw_front_matter.startswith("---\nid: abc")


def test_tags_only_header_falls_back_to_heading_and_path_id(tmp_path: Path) -> None:
    path = _write(tmp_path, "work/todo.md", "---\ntags: [urgent, q3]\n---\n\n# Ship it")
    note = note_from_file(path, tmp_path)
    assert note.notebook == "work"
    assert note.tags == ("urgent", "q3")
    assert note.title == "Ship it"
    assert note.id == generate_id("work/todo.md")


def test_top_level_file_goes_to_default_notebook_and_title_from_filename(tmp_path: Path) -> None:
    note = note_from_file(_write(tmp_path, "my-loose_note.md", "no heading"), tmp_path)
    assert note.notebook == "Default"
    assert note.title == "my loose note"


def test_id_is_stable_for_the_same_relative_path(tmp_path: Path) -> None:
    first = note_from_file(_write(tmp_path, "a/b.md", "one"), tmp_path)
    second = note_from_file(_write(tmp_path, "a/b.md", "two"), tmp_path)
    assert first.id == second.id


def test_notebook_for_path() -> None:
    assert notebook_for_path("work/deep/note.md") == "work"
    assert notebook_for_path("note.md") == "Default"


def test_title_from_filename() -> None:
    assert title_from_filename(Path("meeting_notes-2024.md")) == "meeting notes 2024"


def test_note_to_markdown_adds_heading_once() -> None:
    note = make_note(title="Hello", content="Body text")
    md = note_to_markdown(note)
    assert md == "# Hello\n\nBody text"
    again = note_to_markdown(make_note(title="Hello", content=md))
    assert again.count("# Hello") == 1


def test_note_to_markdown_keeps_raw_front_matter() -> None:
    note = make_note(title="T", content="# T\n\nx", raw_front_matter="---\nid: 1\n---")
    assert note_to_markdown(note) == "---\nid: 1\n---\n\n# T\n\nx"


def test_note_to_markdown_rewrites_stale_header_fields() -> None:
    note = make_note(
        title="New title",
        tags=("b",),
        content="x",
        updated_at="2024-02-01T00:00:00+00:00",
        raw_front_matter="---\nid: 1\ntitle: Old title\ntags: [a]\nupdated: 2024-01-01\n---",
    )
    md = note_to_markdown(note)
    assert md.startswith(
        "---\nid: 1\ntitle: New title\ntags: [b]\nupdated: 2024-02-01T00:00:00+00:00\n---"
    )
    assert "Old title" not in md


def test_note_to_markdown_does_not_treat_longer_heading_as_match() -> None:
    note = make_note(title="Plan", content="# Planning\n\nx")
    assert note_to_markdown(note).startswith("# Plan\n\n# Planning")


def test_sanitize_filename() -> None:
    assert sanitize_filename("Daily To-Do List") == "daily-to-do-list.md"
    assert sanitize_filename("What?! / ok") == "what--ok.md"
    assert sanitize_filename("???") == "untitled.md"
    assert len(sanitize_filename("x" * 300)) == 80 + len(".md")

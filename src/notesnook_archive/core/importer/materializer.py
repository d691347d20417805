"""Turn exported Markdown files into Note records, and Notes back into Markdown."""

import hashlib
import os
import re
from datetime import UTC, datetime
from pathlib import Path, PurePosixPath

from notesnook_archive.config import DEFAULT_NOTEBOOK, NOTE_EXTENSION
from notesnook_archive.core.importer.frontmatter import (
    FrontMatterValue,
    compose_document,
    parse_front_matter,
    set_header_values,
)
from notesnook_archive.models.note import Note

_HEADING_RE = re.compile(r"^#[ \t]+(.+)$", re.MULTILINE)
MAX_FILENAME_LENGTH = 80


def generate_id(relative_path: str) -> str:
    """Stable note id derived only from the note's path inside the archive."""
    return hashlib.sha256(relative_path.encode("utf-8")).hexdigest()


def relative_note_path(file_path: Path, root: Path) -> str:
    """Path of file_path under root, with POSIX separators on every platform."""
    return PurePosixPath(*file_path.relative_to(root).parts).as_posix()


def notebook_for_path(relative_path: str) -> str:
    """First directory segment of the relative path, or the default notebook."""
    parts = PurePosixPath(relative_path).parts
    if len(parts) <= 1:
        return DEFAULT_NOTEBOOK
    return parts[0]


def title_from_filename(file_path: Path) -> str:
    stem = file_path.name.removesuffix(NOTE_EXTENSION)
    return stem.replace("-", " ").replace("_", " ")


def _meta_str(meta: dict[str, FrontMatterValue], key: str) -> str | None:
    value = meta.get(key)
    if isinstance(value, str) and value:
        return value
    return None


def _tags_from_meta(meta: dict[str, FrontMatterValue]) -> tuple[str, ...]:
    raw_tags = meta.get("tags")
    if isinstance(raw_tags, list):
        return tuple(str(t) for t in raw_tags)
    if isinstance(raw_tags, str) and raw_tags:
        return (raw_tags,)
    return ()


def timestamp_to_iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=UTC).isoformat()


def _birth_time(stat: os.stat_result) -> float:
    # st_birthtime is missing on most Linux filesystems.
    return getattr(stat, "st_birthtime", stat.st_ctime)


def note_from_file(file_path: Path, root: Path) -> Note:
    """Materialize a Note from an extracted Markdown file.

    Args:
        file_path: Absolute path of the Markdown file.
        root: Extraction root the file path is relative to.

    Raises:
        OSError: If the file cannot be read.
        UnicodeDecodeError: If the file is not UTF-8.
        ValueError: If file_path is not under root.
    """
    raw = file_path.read_text(encoding="utf-8")
    parsed = parse_front_matter(raw)
    meta = parsed.meta
    stat = file_path.stat()

    rel_path = relative_note_path(file_path, root)

    title = _meta_str(meta, "title")
    if title is None:
        match = _HEADING_RE.search(parsed.body)
        title = match.group(1).strip() if match else title_from_filename(file_path)

    return Note(
        id=_meta_str(meta, "id") or generate_id(rel_path),
        title=title,
        notebook=notebook_for_path(rel_path),
        tags=_tags_from_meta(meta),
        content=parsed.body,
        raw_front_matter=parsed.raw_front_matter,
        file_path=str(file_path),
        created_at=_meta_str(meta, "created") or timestamp_to_iso(_birth_time(stat)),
        updated_at=_meta_str(meta, "updated") or timestamp_to_iso(stat.st_mtime),
    )


def note_to_markdown(note: Note) -> str:
    """Render a note for the import folder.

    The title heading is only added when the body does not already start
    with it, so repeated round trips never stack headings. Title, tags and
    updated lines in an exported header are rewritten to match the note.
    """
    body = note.content.lstrip()
    heading = f"# {note.title}"
    if not (body == heading or body.startswith(heading + "\n")):
        body = f"{heading}\n\n{body}"
    header = set_header_values(
        note.raw_front_matter,
        {"title": note.title, "tags": list(note.tags), "updated": note.updated_at},
    )
    return compose_document(header, body)


def sanitize_filename(title: str) -> str:
    """Filesystem-safe filename for a note title."""
    slug = re.sub(r"\s+", "-", title.lower())
    slug = re.sub(r"[^a-z0-9\-_]", "", slug)[:MAX_FILENAME_LENGTH]
    return (slug or "untitled") + NOTE_EXTENSION

"""Domain models for the Notesnook archive."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Note:
    """A single note, as indexed from an export or written by the agent."""

    id: str
    title: str
    notebook: str
    content: str
    file_path: str
    created_at: str
    updated_at: str
    tags: tuple[str, ...] = ()
    raw_front_matter: str = ""

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "notebook": self.notebook,
            "tags": list(self.tags),
            "content": self.content,
            "raw_front_matter": self.raw_front_matter,
            "file_path": self.file_path,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class NoteSummary:
    """A search or listing hit."""

    id: str
    title: str
    notebook: str
    updated_at: str
    excerpt: str
    tags: tuple[str, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "notebook": self.notebook,
            "tags": list(self.tags),
            "updated_at": self.updated_at,
            "excerpt": self.excerpt,
        }


@dataclass(frozen=True)
class Notebook:
    """A notebook and whether the agent may access it."""

    name: str
    note_count: int
    enabled: bool


@dataclass
class TodoItem:
    """One checklist line of the to-do note."""

    text: str
    done: bool
    added_at: str


@dataclass
class SyncReport:
    """Outcome of one reconciliation cycle."""

    notes_read: int = 0
    notes_written: int = 0
    conflicts: int = 0
    errors: list[str] = field(default_factory=list)
    archive: str | None = None
    synced_at: str = ""
    direction: str = "export"
    # False when the cycle stopped before the per-file loop.
    completed: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "direction": self.direction,
            "archive": self.archive,
            "notes_read": self.notes_read,
            "notes_written": self.notes_written,
            "conflicts": self.conflicts,
            "errors": list(self.errors),
            "synced_at": self.synced_at,
            "completed": self.completed,
        }

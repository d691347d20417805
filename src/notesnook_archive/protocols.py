"""Protocols for dependency injection in the write operations."""

from pathlib import Path
from typing import Protocol, runtime_checkable

from notesnook_archive.models.note import Note


@runtime_checkable
class NoteWriterProtocol(Protocol):
    """Protocol for outbound writers used by the write operations."""

    def path_for(self, note: Note) -> Path:
        """Return where the note would be written."""
        ...

    async def write_note(self, note: Note) -> Path:
        """Write the note for the external app and return the file path."""
        ...

"""Stage agent-written notes as Markdown files for Notesnook to import."""

import asyncio
from pathlib import Path

from loguru import logger

from notesnook_archive.config import DEFAULT_NOTEBOOK, IMPORT_SETTLE_SECONDS
from notesnook_archive.core.importer.materializer import note_to_markdown, sanitize_filename
from notesnook_archive.models.note import Note


class ImportWriter:
    """Write notes into the import folder watched by Notesnook.

    Files go to ``<import_dir>/<notebook>/<slug>.md``; notes in the default
    notebook go straight into ``import_dir``. After each write the writer
    waits ``settle_delay`` seconds so the app can notice the file before
    anything else (such as a re-sync) touches the folder.
    """

    def __init__(self, import_dir: str | Path, *, settle_delay: float = IMPORT_SETTLE_SECONDS) -> None:
        self.import_dir = Path(import_dir).resolve()
        self.settle_delay = settle_delay

    def path_for(self, note: Note) -> Path:
        """Target path for a note. Raises ValueError if it escapes import_dir."""
        directory = self.import_dir
        if note.notebook and note.notebook != DEFAULT_NOTEBOOK:
            directory = directory / note.notebook
        path = (directory / sanitize_filename(note.title)).resolve()
        if self.import_dir not in path.parents:
            msg = f"Path escapes import dir: {str(path)!r}"
            raise ValueError(msg)
        return path

    async def write_note(self, note: Note) -> Path:
        """Write the note's Markdown, then wait for the settle delay."""
        path = self.path_for(note)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(note_to_markdown(note), encoding="utf-8")
        logger.debug("Wrote {} for note {}", path, note.id)
        if self.settle_delay > 0:
            await asyncio.sleep(self.settle_delay)
        return path

"""Reconcile an extracted Notesnook export against the note index."""

import sqlite3
from datetime import UTC, datetime
from pathlib import Path

from loguru import logger

from notesnook_archive.core.database.store import get_note_by_id, upsert_note
from notesnook_archive.core.importer.extractor import (
    extract_archive,
    extraction_dir,
    find_latest_archive,
)
from notesnook_archive.core.importer.materializer import note_from_file
from notesnook_archive.models.note import SyncReport


def now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


def parse_timestamp(value: str) -> float | None:
    """Parse an ISO 8601 timestamp to epoch seconds; naive values are UTC.

    Returns None for anything unparsable.
    """
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.timestamp()


def _is_newer(file_path: Path, stored_updated_at: str) -> bool:
    stored = parse_timestamp(stored_updated_at)
    if stored is None:
        return False
    return file_path.stat().st_mtime > stored


def reconcile_file(
    conn: sqlite3.Connection, file_path: Path, root: Path, report: SyncReport
) -> None:
    """Apply one extracted file to the index.

    New ids are inserted. Known ids are overwritten only when the file is
    strictly newer than the stored updated_at; every such overwrite also
    counts as a conflict. Older or equal files are skipped.
    """
    note = note_from_file(file_path, root)
    existing = get_note_by_id(conn, note.id)

    if existing is None:
        upsert_note(conn, note)
        report.notes_written += 1
        return

    if _is_newer(file_path, existing.updated_at):
        logger.debug("Overwriting {} ({}) with newer export", note.id, note.title)
        upsert_note(conn, note)
        report.notes_written += 1
        report.conflicts += 1


def reconcile_export(conn: sqlite3.Connection, export_dir: Path) -> SyncReport:
    """Run one reconciliation cycle over the newest archive in export_dir.

    Never raises: archive-level failures end the cycle early and per-file
    failures are skipped, both recorded in the report's errors.
    """
    report = SyncReport()

    try:
        archive = find_latest_archive(export_dir)
    except OSError as e:
        report.errors.append(f"Failed to locate export in {export_dir}: {e}")
        report.synced_at = now_iso()
        return report
    if archive is None:
        report.errors.append(f"No export zip found in {export_dir}")
        report.synced_at = now_iso()
        return report
    report.archive = str(archive)

    try:
        md_files = extract_archive(archive, export_dir)
    except Exception as e:
        report.errors.append(f"Failed to unzip {archive}: {e}")
        report.synced_at = now_iso()
        return report

    root = extraction_dir(export_dir).resolve()
    for file_path in md_files:
        report.notes_read += 1
        try:
            reconcile_file(conn, file_path, root, report)
        except Exception as e:
            logger.debug("Failed to process {}: {}", file_path, e)
            report.errors.append(f"Error processing {file_path}: {e}")

    report.completed = True
    report.synced_at = now_iso()
    return report

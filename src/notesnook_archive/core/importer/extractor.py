"""Locate and unpack the newest Notesnook export archive."""

import os
import shutil
import time
import zipfile
from pathlib import Path

from loguru import logger

from notesnook_archive.config import EXPORT_ZIP_GLOB, EXTRACTED_DIR, NOTE_EXTENSION

ArchiveSignature = tuple[str, int, int]


def find_latest_archive(export_dir: Path) -> Path | None:
    """Return the most recently modified export zip, or None if there is none.

    Older archives are left in place and ignored.
    """
    if not export_dir.is_dir():
        return None
    candidates: list[tuple[float, str, Path]] = []
    for path in export_dir.glob(EXPORT_ZIP_GLOB):
        if not path.is_file():
            continue
        try:
            mtime = path.stat().st_mtime
        except OSError:
            # Replaced or removed by the app while scanning.
            logger.debug("Export {} vanished while scanning", path.name)
            continue
        candidates.append((mtime, path.name, path))
    if not candidates:
        return None
    return max(candidates)[2]


def archive_signature(export_dir: Path) -> ArchiveSignature | None:
    """Identify the newest archive by path, mtime and size (for change polling)."""
    archive = find_latest_archive(export_dir)
    if archive is None:
        return None
    try:
        stat = archive.stat()
    except OSError:
        return None
    return (str(archive), stat.st_mtime_ns, stat.st_size)


def extraction_dir(export_dir: Path) -> Path:
    return export_dir / EXTRACTED_DIR


def _zip_member_mtime(info: zipfile.ZipInfo) -> float:
    # Zip timestamps are naive local time.
    return time.mktime((*info.date_time, 0, 0, -1))


def _safe_target(root: Path, member_name: str) -> Path:
    target = (root / member_name).resolve()
    if target != root and root not in target.parents:
        msg = f"Archive member escapes extraction dir: {member_name!r}"
        raise ValueError(msg)
    return target


def extract_archive(archive: Path, export_dir: Path) -> list[Path]:
    """Re-extract an archive into a clean scratch directory.

    The previous extraction is deleted first. Each extracted file keeps the
    modification time stored in the zip, so an unchanged archive extracts to
    unchanged mtimes.

    Returns:
        Sorted absolute paths of every Markdown file extracted.

    Raises:
        zipfile.BadZipFile: If the archive is corrupt.
        ValueError: If a member would be written outside the scratch directory.
    """
    root = extraction_dir(export_dir)
    if root.exists():
        shutil.rmtree(root)
    root.mkdir(parents=True)
    root = root.resolve()

    with zipfile.ZipFile(archive) as zf:
        members = zf.infolist()
        for info in members:
            _safe_target(root, info.filename)
        zf.extractall(root)
        for info in members:
            if info.is_dir():
                continue
            mtime = _zip_member_mtime(info)
            os.utime(root / info.filename, (mtime, mtime))

    md_files = sorted(p for p in root.rglob(f"*{NOTE_EXTENSION}") if p.is_file())
    logger.debug("Extracted {} ({} markdown files)", archive.name, len(md_files))
    return md_files


def list_archive_notes(archive: Path) -> list[str]:
    """Relative paths of the Markdown members of an archive, without extracting it.

    Raises:
        zipfile.BadZipFile: If the archive is corrupt.
    """
    with zipfile.ZipFile(archive) as zf:
        return sorted(
            info.filename
            for info in zf.infolist()
            if not info.is_dir() and info.filename.endswith(NOTE_EXTENSION)
        )

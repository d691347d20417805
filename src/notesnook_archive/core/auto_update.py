"""Sync orchestration: full sync, the single-writer gate, and background triggers."""

import asyncio
import sqlite3
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

from loguru import logger

from notesnook_archive.config import ServerConfig, record_last_sync
from notesnook_archive.core.database.schema import open_database
from notesnook_archive.core.database.store import set_last_sync_time
from notesnook_archive.core.importer.extractor import ArchiveSignature, archive_signature
from notesnook_archive.core.importer.reconciler import reconcile_export
from notesnook_archive.models.note import SyncReport

T = TypeVar("T")


def run_full_sync(conn: sqlite3.Connection, config: ServerConfig) -> SyncReport:
    """Reconcile the newest export into the index and record the sync time.

    Archive-level failures (no zip, unzip error) leave the last-sync time
    untouched; per-file failures do not. Only lastSyncAt is written back to
    config.json, so notebook access granted elsewhere is never overwritten.
    """
    logger.info("Starting full sync from {}", config.export_dir)
    report = reconcile_export(conn, config.export_dir)

    config.import_dir.mkdir(parents=True, exist_ok=True)

    if report.completed:
        set_last_sync_time(conn, report.synced_at)
        config.last_sync_at = report.synced_at
        record_last_sync(config.sync_root, report.synced_at)

    logger.info(
        "Sync done. Read: {}, Written: {}, Conflicts: {}, Errors: {}",
        report.notes_read,
        report.notes_written,
        report.conflicts,
        len(report.errors),
    )
    for error in report.errors:
        logger.warning("Sync error: {}", error)
    return report


def run_isolated_sync(config: ServerConfig) -> SyncReport:
    """Run a full sync on a private connection, for use from a worker thread."""
    conn = open_database(config.db_path)
    try:
        return run_full_sync(conn, config)
    finally:
        conn.close()


class SyncGate:
    """Funnel every sync trigger through one lock so cycles never interleave.

    Extraction reuses a shared scratch directory, so two cycles running at
    once would race on it. The cycle itself runs in a worker thread so the
    event loop keeps serving tool calls meanwhile.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def run(self, fn: Callable[[], T], *, wait: bool = True) -> T | None:
        """Run fn in a worker thread under the gate.

        With wait=False a trigger that arrives while a cycle is running is
        dropped and None is returned.
        """
        if not wait and self._lock.locked():
            logger.debug("Sync already running, dropping trigger")
            return None
        async with self._lock:
            return await asyncio.to_thread(fn)


class ArchiveWatcher:
    """Detect a new or replaced export archive by polling its signature."""

    def __init__(self, export_dir: Path) -> None:
        self.export_dir = export_dir
        self._last: ArchiveSignature | None = archive_signature(export_dir)

    def poll(self) -> bool:
        """Return True if the newest archive changed since the last poll."""
        current = archive_signature(self.export_dir)
        changed = current is not None and current != self._last
        self._last = current
        return changed


async def run_periodically(
    name: str,
    interval: float,
    tick: Callable[[], Awaitable[None]],
) -> None:
    """Call tick every interval seconds until cancelled.

    A failing tick is logged and the loop keeps going.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            await tick()
        except Exception:
            logger.exception("[{}] Sync error", name)


async def watch_archives(
    watcher: ArchiveWatcher,
    poll_interval: float,
    on_change: Callable[[], Awaitable[None]],
) -> None:
    """Poll the export directory and call on_change when a new archive lands."""

    async def _tick() -> None:
        if watcher.poll():
            logger.info("[watch] New export detected in {}. Syncing...", watcher.export_dir)
            await on_change()

    await run_periodically("watch", poll_interval, _tick)

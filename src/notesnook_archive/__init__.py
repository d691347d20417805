"""Notesnook export indexing, search and write-back tools."""

from notesnook_archive.config import ServerConfig, load_config
from notesnook_archive.core.auto_update import SyncGate, run_full_sync
from notesnook_archive.protocols import NoteWriterProtocol
from notesnook_archive.writer import ImportWriter

__all__ = [
    "ImportWriter",
    "NoteWriterProtocol",
    "ServerConfig",
    "SyncGate",
    "load_config",
    "run_full_sync",
]

"""Configuration constants and persisted server config for notesnook-archive."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

SERVER_NAME = "notesnook-archive"
SERVER_VERSION = "1.0.0"

# Environment variables.
SYNC_ROOT_ENV = "NOTESNOOK_SYNC_ROOT"
PORT_ENV = "PORT"
DEFAULT_PORT = 3457

# Sync.
SYNC_INTERVAL_SECONDS = 60 * 60
WATCH_POLL_SECONDS = 5.0
# Wait after writing an outbound file so Notesnook can pick it up.
IMPORT_SETTLE_SECONDS = 2.0

# Layout under the sync root.
EXPORT_DIR = "export"
IMPORT_DIR = "import"
EXTRACTED_DIR = "extracted"
DB_FILE = "notesnook.db"
CONFIG_FILE = "config.json"

# Notesnook export format.
EXPORT_ZIP_GLOB = "*.zip"
NOTE_EXTENSION = ".md"
FRONTMATTER_SEPARATOR = "---"
DEFAULT_NOTEBOOK = "Default"

# Tool response limits.
CHARACTER_LIMIT = 8000
MAX_RESULTS_DEFAULT = 20
MAX_RESULTS_LIMIT = 100
MAX_TITLE_LENGTH = 200
MAX_QUERY_LENGTH = 200

# Agent-owned notes.
TODO_NOTE_TITLE = "Daily To-Do List"
AGENT_NOTEBOOK = "OpenClaw"


class ConfigError(RuntimeError):
    """Raised when required external configuration is missing."""


@dataclass
class ServerConfig:
    """Process-wide config, persisted as JSON under the sync root."""

    sync_root: Path
    enabled_notebooks: list[str] = field(default_factory=list)
    first_run_complete: bool = False
    last_sync_at: str | None = None

    @property
    def export_dir(self) -> Path:
        return self.sync_root / EXPORT_DIR

    @property
    def import_dir(self) -> Path:
        return self.sync_root / IMPORT_DIR

    @property
    def db_path(self) -> Path:
        return self.sync_root / DB_FILE

    @property
    def config_path(self) -> Path:
        return self.sync_root / CONFIG_FILE

    def is_enabled(self, notebook: str) -> bool:
        return notebook in self.enabled_notebooks

    def set_notebook_access(self, notebook: str, *, enabled: bool) -> None:
        """Grant or revoke access to a notebook and persist the change."""
        if enabled:
            if notebook not in self.enabled_notebooks:
                self.enabled_notebooks.append(notebook)
        else:
            self.enabled_notebooks = [nb for nb in self.enabled_notebooks if nb != notebook]
        save_config(self)

    def to_json(self) -> dict[str, object]:
        return {
            "syncRoot": str(self.sync_root),
            "enabledNotebooks": list(self.enabled_notebooks),
            "firstRunComplete": self.first_run_complete,
            "lastSyncAt": self.last_sync_at,
        }


def get_sync_root() -> Path:
    """Return the sync root from the environment.

    Raises:
        ConfigError: If NOTESNOOK_SYNC_ROOT is not set.
    """
    sync_root = os.environ.get(SYNC_ROOT_ENV)
    if not sync_root:
        msg = f"Set {SYNC_ROOT_ENV} env var to your sync folder path"
        raise ConfigError(msg)
    return Path(sync_root).expanduser()


def get_port() -> int:
    return int(os.environ.get(PORT_ENV, str(DEFAULT_PORT)))


def load_config(sync_root: Path) -> ServerConfig:
    """Load config.json from the sync root, falling back to defaults."""
    config_path = sync_root / CONFIG_FILE
    if not config_path.exists():
        return ServerConfig(sync_root=sync_root)

    parsed = json.loads(config_path.read_text(encoding="utf-8"))
    return ServerConfig(
        sync_root=sync_root,
        enabled_notebooks=list(parsed.get("enabledNotebooks") or []),
        first_run_complete=bool(parsed.get("firstRunComplete", False)),
        last_sync_at=parsed.get("lastSyncAt"),
    )


def save_config(config: ServerConfig) -> None:
    """Write the config back to disk synchronously."""
    config.sync_root.mkdir(parents=True, exist_ok=True)
    config.config_path.write_text(json.dumps(config.to_json(), indent=2) + "\n", encoding="utf-8")


def record_last_sync(sync_root: Path, synced_at: str) -> None:
    """Update only lastSyncAt in config.json, keeping every other key as on disk."""
    config = load_config(sync_root)
    config.last_sync_at = synced_at
    save_config(config)

"""First-run setup: prepare the sync folder and choose notebooks to share."""

from pathlib import Path

from loguru import logger

from notesnook_archive.config import ServerConfig, get_port, save_config
from notesnook_archive.core.importer.extractor import find_latest_archive, list_archive_notes
from notesnook_archive.core.importer.materializer import notebook_for_path

EXPORT_HELP = """\
No export zip found.

To export from Notesnook:
  Settings -> Backup & Export -> Export all notes -> Markdown
  Save the zip to: {export_dir}
Then re-run this setup.
"""

CLIENT_CONFIG_TEMPLATE = """\
=== Add to your agent's MCP config ===

{{
  "mcpServers": {{
    "notesnook": {{
      "type": "sse",
      "url": "http://localhost:{port}/sse"
    }}
  }}
}}

(The MCP server must be running: notesnook-archive serve --transport sse)
"""


def prepare_sync_root(sync_root: Path) -> None:
    """Create the export/ and import/ folders under the sync root."""
    config = ServerConfig(sync_root=sync_root)
    config.export_dir.mkdir(parents=True, exist_ok=True)
    config.import_dir.mkdir(parents=True, exist_ok=True)


def discover_notebooks(export_dir: Path) -> list[str] | None:
    """List notebook names found in the newest export.

    Reads the archive listing only; the sync scratch directory is left alone.
    Returns None when there is no export zip to inspect.

    Raises:
        zipfile.BadZipFile: If the newest export is corrupt.
    """
    archive = find_latest_archive(export_dir)
    if archive is None:
        return None
    logger.info("Found export: {}", archive.name)
    return sorted({notebook_for_path(name) for name in list_archive_notes(archive)})


def parse_selection(answer: str, notebooks: list[str]) -> list[str]:
    """Turn "all" or comma-separated 1-based numbers into notebook names.

    Out-of-range or non-numeric entries are ignored.
    """
    if answer.strip().lower() == "all":
        return list(notebooks)
    selected: list[str] = []
    for part in answer.split(","):
        part = part.strip()
        if not part.isdigit():
            continue
        index = int(part) - 1
        if 0 <= index < len(notebooks) and notebooks[index] not in selected:
            selected.append(notebooks[index])
    return selected


def complete_setup(sync_root: Path, enabled_notebooks: list[str]) -> ServerConfig:
    """Persist the setup result and mark the first run as done."""
    config = ServerConfig(
        sync_root=sync_root,
        enabled_notebooks=enabled_notebooks,
        first_run_complete=True,
    )
    save_config(config)
    return config


def client_config_snippet() -> str:
    return CLIENT_CONFIG_TEMPLATE.format(port=get_port())

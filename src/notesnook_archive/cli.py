"""CLI for the Notesnook archive (setup, sync, search, MCP server)."""

import json
import sqlite3
import zipfile
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from notesnook_archive.config import (
    ConfigError,
    ServerConfig,
    get_sync_root,
    load_config,
)
from notesnook_archive.core.auto_update import run_full_sync
from notesnook_archive.core.database.schema import open_database
from notesnook_archive.logging_config import configure_logging
from notesnook_archive.mcp.server import notesnook_list_notebooks, notesnook_search
from notesnook_archive.wizard import (
    EXPORT_HELP,
    client_config_snippet,
    complete_setup,
    discover_notebooks,
    parse_selection,
    prepare_sync_root,
)

app = typer.Typer(help="Notesnook archive: index, search and edit your Notesnook notes.")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose=verbose)


def _resolve_root(sync_root: Path | None) -> Path:
    if sync_root is not None:
        return sync_root.expanduser()
    try:
        return get_sync_root()
    except ConfigError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e


def _open(sync_root: Path | None) -> tuple[sqlite3.Connection, ServerConfig]:
    config = load_config(_resolve_root(sync_root))
    return open_database(config.db_path), config


SyncRootOption = Annotated[
    Path | None,
    typer.Option("--sync-root", "-r", help="Sync folder (defaults to $NOTESNOOK_SYNC_ROOT)"),
]


@app.command()
def setup(sync_root: SyncRootOption = None) -> None:
    """Run first-time setup: create folders and pick notebooks to share."""
    root = _resolve_root(sync_root)
    prepare_sync_root(root)
    config = ServerConfig(sync_root=root)
    typer.echo(f"Sync folder: {root}")

    try:
        notebooks = discover_notebooks(config.export_dir)
    except (zipfile.BadZipFile, OSError) as e:
        typer.echo(f"Cannot read export in {config.export_dir}: {e}")
        raise typer.Exit(1) from e
    if notebooks is None:
        typer.echo(EXPORT_HELP.format(export_dir=config.export_dir))
        raise typer.Exit(1)

    typer.echo(f"\nFound {len(notebooks)} notebooks:\n")
    for i, name in enumerate(notebooks, start=1):
        typer.echo(f"  [{i}] {name}")
    answer = typer.prompt(
        "\nEnable which notebooks for agent access? (comma-separated numbers, or 'all')"
    )
    enabled = parse_selection(answer, notebooks)

    complete_setup(root, enabled)
    typer.echo(f"\nEnabled: {', '.join(enabled) or '(none)'}")
    typer.echo("\n" + client_config_snippet())


@app.command()
def sync(
    sync_root: SyncRootOption = None,
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Reconcile the newest export into the index."""
    conn, config = _open(sync_root)
    try:
        report = run_full_sync(conn, config)
    finally:
        conn.close()

    if output_json:
        typer.echo(json.dumps(report.as_dict(), indent=2))
    else:
        typer.echo(
            f"Read {report.notes_read} notes, wrote {report.notes_written}, "
            f"{report.conflicts} conflicts, {len(report.errors)} errors"
        )
        for error in report.errors:
            typer.echo(f"  ! {error}")
    if not report.completed:
        raise typer.Exit(1)


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    notebook: Annotated[
        str | None,
        typer.Option("--notebook", "-N", help="Restrict to an enabled notebook"),
    ] = None,
    tag: Annotated[
        list[str] | None,
        typer.Option("--tag", "-t", help="Require this tag (repeatable)"),
    ] = None,
    limit: int = typer.Option(10, "--limit", "-n", help="Max results"),
    sync_root: SyncRootOption = None,
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Search notes in enabled notebooks."""
    conn, config = _open(sync_root)
    try:
        result = notesnook_search(
            conn,
            config,
            query=query,
            notebook=notebook,
            tags=tag,
            limit=limit,
            response_format="json",
        )
    finally:
        conn.close()

    if "error" in result:
        typer.echo(result["error"])
        raise typer.Exit(1)
    if output_json:
        typer.echo(json.dumps(result, indent=2))
        return

    typer.echo(f"Found {result['total']} results (showing {result['count']}):\n")
    for r in result["results"]:
        typer.echo(f"  [{r['notebook']}] {r['title']}")
        if r["excerpt"]:
            typer.echo(f"    {r['excerpt'][:80]}")
        typer.echo(f"    id={r['id']}  updated={r['updated_at']}")
        typer.echo()


@app.command()
def notebooks(sync_root: SyncRootOption = None) -> None:
    """List indexed notebooks and whether the agent may access them."""
    conn, config = _open(sync_root)
    try:
        result = notesnook_list_notebooks(
            conn, config, include_disabled=True, response_format="json"
        )
    finally:
        conn.close()

    typer.echo(f"{result['count']} notebooks:\n")
    for nb in result["notebooks"]:
        state = "enabled" if nb["enabled"] else "disabled"
        typer.echo(f"  {nb['name']} - {nb['note_count']} notes  [{state}]")


@app.command()
def serve(
    transport: str = typer.Option("stdio", "--transport", help="stdio or sse"),
    port: Annotated[
        int | None,
        typer.Option("--port", "-p", help="SSE port (defaults to $PORT or 3457)"),
    ] = None,
) -> None:
    """Start the MCP server."""
    from notesnook_archive.config import get_port
    from notesnook_archive.mcp.server import run_mcp_server

    if transport not in ("stdio", "sse"):
        logger.error("Unknown transport: {}", transport)
        raise typer.Exit(2)
    try:
        get_sync_root()
    except ConfigError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e

    run_mcp_server(transport=transport, port=port if port is not None else get_port())

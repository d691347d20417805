"""MCP server exposing Notesnook search, read, write and sync tools."""

import asyncio
import sqlite3
import weakref
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass, field
from functools import partial
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from notesnook_archive.config import (
    CHARACTER_LIMIT,
    IMPORT_SETTLE_SECONDS,
    MAX_QUERY_LENGTH,
    MAX_RESULTS_DEFAULT,
    MAX_RESULTS_LIMIT,
    MAX_TITLE_LENGTH,
    SERVER_NAME,
    SERVER_VERSION,
    SYNC_INTERVAL_SECONDS,
    TODO_NOTE_TITLE,
    WATCH_POLL_SECONDS,
    ServerConfig,
    get_sync_root,
    load_config,
)
from notesnook_archive.core.auto_update import (
    ArchiveWatcher,
    SyncGate,
    run_isolated_sync,
    run_periodically,
    watch_archives,
)
from notesnook_archive.core.database.schema import open_database
from notesnook_archive.core.database.store import (
    count_notes_by_notebook,
    get_all_notebooks,
    get_note_by_id,
    get_note_by_title,
)
from notesnook_archive.core.importer.reconciler import now_iso
from notesnook_archive.core.search.searcher import search_notes
from notesnook_archive.core.todo.checklist import parse_items, render_markdown
from notesnook_archive.core.write import client
from notesnook_archive.models.note import Notebook
from notesnook_archive.results import (
    ACCESS_DENIED,
    INTERNAL,
    NOT_FOUND,
    VALIDATION,
    access_denied,
    error_result,
)
from notesnook_archive.writer import ImportWriter

RESPONSE_FORMATS = ("markdown", "json")


def truncate(text: str) -> str:
    if len(text) <= CHARACTER_LIMIT:
        return text
    return (
        text[:CHARACTER_LIMIT]
        + "\n\n[Truncated - use notesnook_get_note with a specific ID for full content]"
    )


def _check_format(response_format: str) -> dict[str, Any] | None:
    if response_format not in RESPONSE_FORMATS:
        return error_result(
            VALIDATION, f"response_format must be one of {', '.join(RESPONSE_FORMATS)}."
        )
    return None


def _check_title(title: str | None) -> dict[str, Any] | None:
    if title is not None and not 1 <= len(title.strip()) <= MAX_TITLE_LENGTH:
        return error_result(VALIDATION, f"Title must be 1-{MAX_TITLE_LENGTH} characters.")
    return None


# --- Core functions (testable without MCP context) ---


def notesnook_search(
    conn: sqlite3.Connection,
    config: ServerConfig,
    *,
    query: str,
    notebook: str | None = None,
    tags: list[str] | None = None,
    limit: int = MAX_RESULTS_DEFAULT,
    offset: int = 0,
    response_format: str = "markdown",
) -> dict[str, Any]:
    """Search notes by keyword within enabled notebooks.

    Args:
        query: Text to find in note titles and content.
        notebook: Restrict to this notebook (must be enabled).
        tags: Only notes carrying all of these tags.
        limit: Max results (1-100, default 20).
        offset: Pagination offset.
        response_format: "markdown" or "json".
    """
    if bad_format := _check_format(response_format):
        return bad_format
    query = query.strip()
    if not query or len(query) > MAX_QUERY_LENGTH:
        return error_result(VALIDATION, f"Query must be 1-{MAX_QUERY_LENGTH} characters.")

    if notebook:
        if not config.is_enabled(notebook):
            return access_denied(notebook)
        notebooks = [notebook]
    else:
        notebooks = list(config.enabled_notebooks)
        if not notebooks:
            return error_result(
                ACCESS_DENIED,
                "No notebooks enabled. Configure access with "
                "notesnook_configure_notebook_access.",
            )

    limit = max(1, min(limit, MAX_RESULTS_LIMIT))
    offset = max(0, offset)
    results, total = search_notes(
        conn, query=query, notebooks=notebooks, tags=tags, limit=limit, offset=offset
    )

    output: dict[str, Any] = {
        "count": len(results),
        "total": total,
        "has_more": offset + len(results) < total,
    }
    if output["has_more"]:
        output["next_offset"] = offset + limit

    if response_format == "json":
        output["results"] = [r.as_dict() for r in results]
    elif results:
        output["content"] = truncate(
            "\n\n---\n\n".join(
                f"**{r.title}** ({r.notebook})\nID: {r.id}\nUpdated: {r.updated_at}\n{r.excerpt}"
                for r in results
            )
        )
    else:
        output["content"] = "No notes found."
    return output


def notesnook_get_note(
    conn: sqlite3.Connection,
    config: ServerConfig,
    *,
    note_id: str,
    response_format: str = "markdown",
) -> dict[str, Any]:
    """Retrieve the full content of a note in an enabled notebook."""
    if bad_format := _check_format(response_format):
        return bad_format
    note = get_note_by_id(conn, note_id)
    if note is None:
        return error_result(NOT_FOUND, f"Note not found: {note_id}")
    if not config.is_enabled(note.notebook):
        return access_denied(note.notebook)

    if response_format == "json":
        return {"note": note.as_dict()}

    md = (
        f"# {note.title}\n\n"
        f"**Notebook:** {note.notebook}\n"
        f"**Tags:** {', '.join(note.tags) or '(none)'}\n"
        f"**Updated:** {note.updated_at}\n\n---\n\n"
        f"{note.content}"
    )
    return {"id": note.id, "title": note.title, "content": truncate(md)}


def notesnook_list_notebooks(
    conn: sqlite3.Connection,
    config: ServerConfig,
    *,
    include_disabled: bool = False,
    response_format: str = "markdown",
) -> dict[str, Any]:
    """List notebooks found in the index with their access status."""
    if bad_format := _check_format(response_format):
        return bad_format
    counts = count_notes_by_notebook(conn)
    notebooks = [
        Notebook(name=name, note_count=counts.get(name, 0), enabled=config.is_enabled(name))
        for name in get_all_notebooks(conn)
    ]
    if not include_disabled:
        notebooks = [nb for nb in notebooks if nb.enabled]

    output: dict[str, Any] = {"count": len(notebooks)}
    if response_format == "json":
        output["notebooks"] = [asdict(nb) for nb in notebooks]
    elif notebooks:
        output["content"] = "\n".join(
            f"- **{nb.name}** ({nb.note_count} notes) {'(enabled)' if nb.enabled else '(disabled)'}"
            for nb in notebooks
        )
    else:
        output["content"] = "No notebooks found."
    return output


def notesnook_configure_notebook_access(
    conn: sqlite3.Connection,
    config: ServerConfig,
    *,
    notebook: str,
    enabled: bool,
) -> dict[str, Any]:
    """Grant or revoke agent access to a notebook and persist the config."""
    known = get_all_notebooks(conn)
    if notebook not in known:
        return error_result(
            NOT_FOUND,
            f'Notebook "{notebook}" not found. Known notebooks: {", ".join(known)}',
        )
    config.set_notebook_access(notebook, enabled=enabled)
    state = "enabled" if enabled else "disabled"
    logger.info("Notebook {} {}", notebook, state)
    return {
        "success": True,
        "notebook": notebook,
        "enabled": enabled,
        "message": f'Notebook "{notebook}" {state} for agent access.',
    }


def notesnook_get_todo(conn: sqlite3.Connection, *, response_format: str = "markdown") -> dict[str, Any]:
    """Return the daily to-do list."""
    if bad_format := _check_format(response_format):
        return bad_format
    note = get_note_by_title(conn, TODO_NOTE_TITLE)
    if note is None:
        return {
            "items": [],
            "message": (
                f'No to-do note found. Create one titled "{TODO_NOTE_TITLE}" '
                "or use notesnook_update_todo to add items."
            ),
        }

    items = parse_items(note.content, now=now_iso())
    if response_format == "json":
        return {"items": [asdict(i) for i in items], "updated_at": note.updated_at}
    return {"content": render_markdown(TODO_NOTE_TITLE, items), "updated_at": note.updated_at}


# --- MCP Server Setup ---


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime.

    One context serves every session on an event loop, so all sessions see
    the same config, connection and sync gate.
    """

    conn: sqlite3.Connection
    config: ServerConfig
    writer: ImportWriter
    gate: SyncGate = field(default_factory=SyncGate)
    tasks: list[asyncio.Task[None]] = field(default_factory=list)
    sessions: int = 0


async def notesnook_trigger_sync(ctx: ServerContext, *, wait: bool = True) -> dict[str, Any]:
    """Run a sync cycle through the gate and return its report.

    With wait=False the call returns immediately if another cycle is running.
    """
    report = await ctx.gate.run(partial(run_isolated_sync, ctx.config), wait=wait)
    if report is None:
        return {"skipped": True, "message": "A sync is already running."}
    output = report.as_dict()
    output["summary"] = (
        f"Read: {report.notes_read} | Written: {report.notes_written} | "
        f"Conflicts: {report.conflicts} | Errors: {len(report.errors)}"
    )
    return output


def start_background_sync(ctx: ServerContext) -> None:
    """Start the startup sync, the hourly schedule and the archive watcher."""

    async def _initial() -> None:
        try:
            await notesnook_trigger_sync(ctx)
        except Exception:
            logger.exception("[startup] Initial sync error")

    async def _coalesced() -> None:
        await notesnook_trigger_sync(ctx, wait=False)

    watcher = ArchiveWatcher(ctx.config.export_dir)
    ctx.tasks.extend(
        [
            asyncio.create_task(_initial()),
            asyncio.create_task(run_periodically("schedule", SYNC_INTERVAL_SECONDS, _coalesced)),
            asyncio.create_task(watch_archives(watcher, WATCH_POLL_SECONDS, _coalesced)),
        ]
    )


async def stop_background_sync(ctx: ServerContext) -> None:
    for task in ctx.tasks:
        task.cancel()
    await asyncio.gather(*ctx.tasks, return_exceptions=True)
    ctx.tasks.clear()


_CONTEXTS: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, ServerContext] = (
    weakref.WeakKeyDictionary()
)


def _open_context() -> ServerContext:
    config = load_config(get_sync_root())
    if not config.first_run_complete:
        logger.warning(
            "First-run setup not completed; no notebooks are enabled. "
            "Run 'notesnook-archive setup'."
        )
    config.export_dir.mkdir(parents=True, exist_ok=True)
    config.import_dir.mkdir(parents=True, exist_ok=True)

    ctx = ServerContext(
        conn=open_database(config.db_path),
        config=config,
        writer=ImportWriter(config.import_dir, settle_delay=IMPORT_SETTLE_SECONDS),
    )
    start_background_sync(ctx)
    return ctx


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Share one context per event loop; the last session to end closes it.

    FastMCP enters the lifespan once per SSE session.
    """
    loop = asyncio.get_running_loop()
    ctx = _CONTEXTS.get(loop)
    if ctx is None:
        ctx = _CONTEXTS[loop] = _open_context()
    ctx.sessions += 1
    try:
        yield ctx
    finally:
        ctx.sessions -= 1
        if ctx.sessions == 0:
            _CONTEXTS.pop(loop, None)
            await stop_background_sync(ctx)
            ctx.conn.close()


mcp_server = FastMCP(
    SERVER_NAME,
    instructions="""\
Notesnook notes, indexed from the app's Markdown export.

- Search with notesnook_search_notes, then read full notes with notesnook_get_note.
- Only notebooks the user enabled are visible; use notesnook_list_notebooks
  with include_disabled=true to see the rest.
- Created and updated notes are written to the import folder; Notesnook
  picks them up on its own schedule.
- The index refreshes hourly and whenever a new export appears. Call
  notesnook_trigger_sync after exporting to refresh right away.
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


def _guarded(name: str, fn: Callable[[], dict[str, Any]]) -> dict[str, Any]:
    try:
        return fn()
    except Exception as e:
        logger.exception("Tool {} failed", name)
        return error_result(INTERNAL, f"{name} failed: {e}")


async def _guarded_async(name: str, fn: Callable[[], Awaitable[dict[str, Any]]]) -> dict[str, Any]:
    try:
        return await fn()
    except Exception as e:
        logger.exception("Tool {} failed", name)
        return error_result(INTERNAL, f"{name} failed: {e}")


@mcp_server.custom_route("/health", methods=["GET"])
async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": SERVER_VERSION})


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def notesnook_search_notes(
    ctx: Context,
    query: str,
    notebook: str | None = None,
    tags: list[str] | None = None,
    limit: int = MAX_RESULTS_DEFAULT,
    offset: int = 0,
    response_format: str = "markdown",
) -> dict[str, Any]:
    """Search notes by keyword, notebook, or tag.

    Matches the query as a substring of titles and content, newest first.
    Only enabled notebooks are searched.

    Pagination: When has_more is true, use next_offset in a follow-up call.

    Args:
        query: Search terms to find in note titles and content.
        notebook: Filter to a specific notebook name.
        tags: Filter by tags (all must match).
        limit: Max results (1-100, default 20).
        offset: Pagination offset.
        response_format: "markdown" or "json".
    """
    c = _ctx(ctx)
    return _guarded(
        "notesnook_search_notes",
        lambda: notesnook_search(
            c.conn,
            c.config,
            query=query,
            notebook=notebook,
            tags=tags,
            limit=limit,
            offset=offset,
            response_format=response_format,
        ),
    )


@mcp_server.tool(name="notesnook_get_note")
async def notesnook_get_note_tool(
    ctx: Context,
    id: str,
    response_format: str = "markdown",
) -> dict[str, Any]:
    """Retrieve full content of a specific note by ID.

    Args:
        id: Note ID from search results.
        response_format: "markdown" or "json".
    """
    c = _ctx(ctx)
    return _guarded(
        "notesnook_get_note",
        lambda: notesnook_get_note(c.conn, c.config, note_id=id, response_format=response_format),
    )


@mcp_server.tool()
async def notesnook_create_note(
    ctx: Context,
    title: str,
    content: str,
    notebook: str | None = None,
    tags: list[str] | None = None,
) -> dict[str, Any]:
    """Create a new note in Notesnook.

    The note is indexed immediately and written to the import folder.

    Args:
        title: Note title.
        content: Note body in Markdown format.
        notebook: Notebook to create in. If omitted, inferred from content
            or defaults to the agent notebook.
        tags: Tags to apply.
    """
    if bad_title := _check_title(title):
        return bad_title
    c = _ctx(ctx)
    return await _guarded_async(
        "notesnook_create_note",
        lambda: client.create_note(
            c.conn, c.writer, title=title, content=content, notebook=notebook, tags=tags
        ),
    )


@mcp_server.tool()
async def notesnook_update_note(
    ctx: Context,
    id: str,
    content: str | None = None,
    append: str | None = None,
    title: str | None = None,
    tags: list[str] | None = None,
) -> dict[str, Any]:
    """Update an existing note's content, title, or tags.

    At least one of content, append, title, or tags must be given.

    Args:
        id: Note ID to update.
        content: New note body (replaces existing).
        append: Text to append to existing content.
        title: New title.
        tags: Replace tags list.
    """
    if bad_title := _check_title(title):
        return bad_title
    c = _ctx(ctx)
    return await _guarded_async(
        "notesnook_update_note",
        lambda: client.update_note(
            c.conn,
            c.config,
            c.writer,
            note_id=id,
            content=content,
            append=append,
            title=title,
            tags=tags,
        ),
    )


@mcp_server.tool(name="notesnook_list_notebooks")
async def notesnook_list_notebooks_tool(
    ctx: Context,
    include_disabled: bool = False,
    response_format: str = "markdown",
) -> dict[str, Any]:
    """List all notebooks and their agent access status.

    Args:
        include_disabled: Include notebooks not enabled for agent access.
        response_format: "markdown" or "json".
    """
    c = _ctx(ctx)
    return _guarded(
        "notesnook_list_notebooks",
        lambda: notesnook_list_notebooks(
            c.conn, c.config, include_disabled=include_disabled, response_format=response_format
        ),
    )


@mcp_server.tool(name="notesnook_configure_notebook_access")
async def notesnook_configure_notebook_access_tool(
    ctx: Context,
    notebook: str,
    enabled: bool,
) -> dict[str, Any]:
    """Grant or revoke agent access to a specific notebook.

    Args:
        notebook: Notebook name to configure.
        enabled: True to grant access, false to revoke.
    """
    c = _ctx(ctx)
    return _guarded(
        "notesnook_configure_notebook_access",
        lambda: notesnook_configure_notebook_access(
            c.conn, c.config, notebook=notebook, enabled=enabled
        ),
    )


@mcp_server.tool(name="notesnook_get_todo")
async def notesnook_get_todo_tool(ctx: Context, response_format: str = "markdown") -> dict[str, Any]:
    """Get the daily to-do list.

    Args:
        response_format: "markdown" or "json".
    """
    c = _ctx(ctx)
    return _guarded(
        "notesnook_get_todo",
        lambda: notesnook_get_todo(c.conn, response_format=response_format),
    )


@mcp_server.tool()
async def notesnook_update_todo(
    ctx: Context,
    add: list[str] | None = None,
    complete: list[str] | None = None,
    remove: list[str] | None = None,
    replace_all: list[str] | None = None,
) -> dict[str, Any]:
    """Add, complete, or remove items from the daily to-do list.

    Args:
        add: Items to add to the to-do list.
        complete: Item text snippets to mark as done (partial match).
        remove: Item text snippets to remove entirely (partial match).
        replace_all: Replace entire list with these items.
    """
    c = _ctx(ctx)
    return await _guarded_async(
        "notesnook_update_todo",
        lambda: client.update_todo(
            c.conn, c.writer, add=add, complete=complete, remove=remove, replace_all=replace_all
        ),
    )


@mcp_server.tool(name="notesnook_trigger_sync")
async def notesnook_trigger_sync_tool(ctx: Context) -> dict[str, Any]:
    """Force an immediate sync with Notesnook without waiting for the hourly schedule."""
    c = _ctx(ctx)
    return await _guarded_async("notesnook_trigger_sync", lambda: notesnook_trigger_sync(c))


def run_mcp_server(*, transport: str = "stdio", port: int | None = None) -> None:
    """Run the MCP server over stdio or SSE."""
    from notesnook_archive.logging_config import configure_logging

    configure_logging(verbose=False)
    if transport == "sse":
        mcp_server.settings.host = "127.0.0.1"
        if port is not None:
            mcp_server.settings.port = port
        logger.info(
            "{} v{} listening on http://127.0.0.1:{}/sse",
            SERVER_NAME,
            SERVER_VERSION,
            mcp_server.settings.port,
        )
    mcp_server.run(transport=transport)  # type: ignore[arg-type]

"""
Thin CLI layer - orchestrates library components without business logic.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .engine import SessionCatalog
from .extractors import METADATA_SCAN_RECORDS
from .filters import SessionFilter, newest_first
from .formatters import STATUS_STYLES, get_formatter
from .models import Session, SessionStatus
from .search import DEFAULT_SEARCH_LIMIT

app = typer.Typer(
    help=(
        "Browse, search, and curate Claude Code sessions stored in ~/.claude/projects/.\n\n"
        "Sessions come from each project's sessions-index.json plus any JSONL logs the "
        "index does not cover yet. Promote a session to give it a name, tags, a status, "
        "and notes; promotion data lives in ~/.claude/sessions-manager.json.\n\n"
        "Override default paths with environment variables:\n\n"
        "  CLAUDE_CONFIG_DIR             Path to Claude config dir (default: ~/.claude)\n\n"
        "  AI_SESSION_MANAGER_PROJECTS   Path to Claude projects dir (default: ~/.claude/projects)\n\n"
        "  AI_SESSION_MANAGER_CONFIG     Path to this tool's config.json"
    ),
)
config_app = typer.Typer(
    help=(
        "View and manage the ai_session_manager config file.\n\n"
        "Config file location (priority order):\n\n"
        "  1. --config CLI flag\n"
        "  2. AI_SESSION_MANAGER_CONFIG env var\n"
        "  3. OS default: ~/Library/Application Support/ai_session_manager/config.json (macOS)\n"
        "               : ~/.config/ai_session_manager/config.json (Linux)"
    ),
)
app.add_typer(config_app, name="config", rich_help_panel="Configuration")

console = Console()
err_console = Console(stderr=True)

_FORMAT_HELP = "Output format: table, json, csv, plain"

# Formats that print a "no results" message instead of an empty document
_HUMAN_FORMATS = ("table", "plain")

# Module-level overrides set by global options
_g_claude_dir: Optional[str] = None
_g_config_path: Optional[str] = None
_config_cache: Optional[dict] = None  # lazily loaded, reset per invocation

_CONFIG_INIT_TEMPLATE = {
    "search_limit": DEFAULT_SEARCH_LIMIT,
    "metadata_scan_records": METADATA_SCAN_RECORDS,
}


def _get_config_file_path() -> Path:
    """Config file path: --config flag > AI_SESSION_MANAGER_CONFIG env > typer.get_app_dir default."""
    if _g_config_path:
        return Path(_g_config_path).expanduser()
    env_val = os.getenv("AI_SESSION_MANAGER_CONFIG")
    if env_val:
        return Path(env_val).expanduser()
    return Path(typer.get_app_dir("ai_session_manager")) / "config.json"


def load_config() -> dict:
    """Load app config from JSON file. Returns empty dict if not found or unreadable.

    Supported keys (all optional):

    - ``search_limit`` (int): maximum search results (default 10)
    - ``metadata_scan_records`` (int): log lines parsed as JSON per unindexed
      session before switching to fast line counting (default 50)

    Example ``config.json``::

        {
            "search_limit": 20,
            "metadata_scan_records": 100
        }
    """
    global _config_cache
    if _config_cache is not None:
        return _config_cache

    config_file = _get_config_file_path()
    if config_file.exists():
        try:
            with open(config_file, encoding="utf-8") as f:
                loaded = json.load(f)
            _config_cache = loaded if isinstance(loaded, dict) else {}
        except (json.JSONDecodeError, OSError) as exc:
            err_console.print(f"[yellow]Warning: could not load config {config_file}: {exc}[/yellow]")
            _config_cache = {}
    else:
        _config_cache = {}

    return _config_cache


def _config_int(key: str, default: int) -> int:
    """Read a positive integer config value, falling back to default."""
    value = load_config().get(key, default)
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    err_console.print(f"[yellow]Warning: ignoring invalid config value {key}={value!r}[/yellow]")
    return default


# ── Root app callback (global options) ────────────────────────────────────────

@app.callback(invoke_without_command=True)
def app_callback(
    ctx: typer.Context,
    claude_dir: Optional[str] = typer.Option(
        None, "--claude-dir",
        help=(
            "Path to the Claude configuration directory. "
            "Default: $CLAUDE_CONFIG_DIR if set, otherwise ~/.claude."
        ),
        envvar="CLAUDE_CONFIG_DIR",
    ),
    config: Optional[str] = typer.Option(
        None, "--config",
        help="Path to the ai_session_manager config JSON file.",
        envvar="AI_SESSION_MANAGER_CONFIG",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log skipped files and scan details to stderr."),
) -> None:
    global _g_claude_dir, _g_config_path, _config_cache
    _g_claude_dir = claude_dir
    _g_config_path = config
    _config_cache = None
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)


# ── Catalog factory ───────────────────────────────────────────────────────────

def get_catalog() -> SessionCatalog:
    """
    Create the session catalog.

    Priority for Claude config dir: --claude-dir CLI flag > CLAUDE_CONFIG_DIR env var > ~/.claude

    Also supports:
        AI_SESSION_MANAGER_PROJECTS: Path to Claude projects directory (overrides base dir)
    """
    claude_dir = _g_claude_dir or os.getenv("CLAUDE_CONFIG_DIR")
    base = Path(claude_dir).expanduser() if claude_dir else Path.home() / ".claude"
    projects_env = os.getenv("AI_SESSION_MANAGER_PROJECTS")
    projects_dir = Path(projects_env).expanduser() if projects_env else None
    return SessionCatalog(
        base,
        projects_dir=projects_dir,
        metadata_scan_records=_config_int("metadata_scan_records", METADATA_SCAN_RECORDS),
    )


# ── Shared helper functions ───────────────────────────────────────────────────

def _parse_tags(raw: Optional[str]) -> Optional[List[str]]:
    """Parse comma-separated tags. None → None (leave unchanged); "" → [] (clear)."""
    if raw is None:
        return None
    return [t.strip() for t in raw.split(",") if t.strip()]


def _resolve_session(catalog: SessionCatalog, ref: str) -> Session:
    """find_session() with CLI error reporting."""
    try:
        return catalog.find_session(ref)
    except ValueError as exc:
        err_console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1)


def _write_store(action) -> None:
    """Run a store mutation, turning write failures into a CLI error."""
    try:
        action()
    except OSError as exc:
        err_console.print(f"[red]Could not save promoted sessions:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1)


def _emit(items: list, fmt: str, title: str) -> None:
    """Print items with the requested formatter; JSON goes straight to stdout."""
    try:
        formatter = get_formatter(fmt, title)
    except ValueError as exc:
        err_console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    text = formatter.format_many(items)
    if fmt.lower() == "table":
        sys.stdout.write(text)
    else:
        sys.stdout.write(text.rstrip("\n") + "\n")


def _do_list_sessions(
    catalog: SessionCatalog,
    promoted: bool = False,
    status: Optional[SessionStatus] = None,
    project: Optional[str] = None,
    tag: Optional[str] = None,
    recent: Optional[int] = None,
    include_sidechains: bool = True,
    fmt: str = "table",
    cwd: Optional[str] = None,
) -> None:
    """List sessions newest-first with composable filters."""
    session_filter = SessionFilter()
    if promoted:
        session_filter.promoted_only()
    if status is not None:
        session_filter.by_status(status)
    if project:
        session_filter.by_project(project)
    if tag:
        session_filter.by_tag(tag)
    if not include_sidechains:
        session_filter.exclude_sidechains()
    if cwd:
        session_filter.by_cwd(cwd)

    sessions = newest_first(session_filter(catalog.load_all()), recent)
    if not sessions and fmt.lower() in _HUMAN_FORMATS:
        console.print("[yellow]No sessions found[/yellow]")
        return
    _emit(sessions, fmt, f"Sessions ({len(sessions)} found)")
    if fmt == "table":
        console.print(f"\n[dim]Total: {len(sessions)} sessions[/dim]")


def _do_search(catalog: SessionCatalog, query: str, limit: int, fmt: str = "table") -> None:
    """Ranked search; rich panels for tables, formatter output otherwise."""
    results = catalog.search(query, limit=limit)
    if not results and fmt.lower() in _HUMAN_FORMATS:
        console.print(f"[yellow]No sessions found matching '{escape(query)}'[/yellow]")
        return
    if fmt != "table":
        _emit(results, fmt, f"Search: {query}")
        return

    console.print(f"[green]Found {len(results)} session(s) matching '{escape(query)}'[/green]\n")
    for result in results:
        s = result.session
        body = (
            f"[bold]{escape(catalog.get_display_name(s))}[/bold]\n"
            f"[dim]{escape(s.first_prompt[:100])}[/dim]\n\n"
            f"[blue]Project:[/] {escape(s.project_path)}\n"
            f"[blue]Branch:[/] {escape(s.git_branch or '-')}\n"
            f"[blue]Messages:[/] {s.message_count}\n"
            f"[blue]Modified:[/] {s.modified:%Y-%m-%d %H:%M}\n"
            f"[blue]Preview:[/] [dim]{escape(result.match_preview)}[/dim]"
        )
        header = f"[yellow]{s.short_id}[/yellow] [green]{result.match_ratio}[/green]"
        console.print(Panel(body, title=header, title_align="left", padding=(0, 1)))


def _do_show(catalog: SessionCatalog, session: Session) -> None:
    """Render one session's details and promotion metadata."""
    grid = Table.grid(padding=(0, 2))
    grid.add_column(style="blue")
    grid.add_column()
    grid.add_row("Session ID:", session.session_id)
    grid.add_row("Project:", escape(session.project_path))
    grid.add_row("Git Branch:", escape(session.git_branch or "-"))
    grid.add_row("Created:", f"{session.created:%Y-%m-%d %H:%M:%S}")
    grid.add_row("Modified:", f"{session.modified:%Y-%m-%d %H:%M:%S}")
    grid.add_row("Messages:", str(session.message_count))
    grid.add_row("Summary:", escape(session.summary))
    if session.is_sidechain:
        grid.add_row("Sidechain:", "yes")

    meta = session.promoted
    if meta is not None:
        grid.add_row("", "")
        grid.add_row("[green bold]PROMOTED[/]", "")
        if meta.name:
            grid.add_row("Name:", escape(meta.name))
        if meta.description:
            grid.add_row("Description:", escape(meta.description))
        if meta.tags:
            grid.add_row("Tags:", escape(", ".join(meta.tags)))
        grid.add_row("Status:", f"[{STATUS_STYLES[meta.status]}]{meta.status.value}[/]")
        grid.add_row("Promoted At:", f"{meta.promoted_at:%Y-%m-%d %H:%M:%S}")
        if meta.notes:
            grid.add_row("", "")
            grid.add_row("[bold]Notes:[/]", "")
            for note in sorted(meta.notes, key=lambda n: n.created_at, reverse=True):
                grid.add_row(f"[dim]{note.created_at:%Y-%m-%d %H:%M}[/dim]", escape(note.text))

    console.print(Panel(grid, title="[yellow]Session Details[/yellow]", padding=(1, 2)))
    console.print("\n[dim]First Prompt:[/dim]")
    console.print(f"[dim]{escape(session.first_prompt)}[/dim]")
    console.print(f"\n[dim]File: {escape(session.full_path)}[/dim]")


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("list")
def list_sessions(
    promoted: bool = typer.Option(False, "--promoted", "-p", help="Show only promoted sessions."),
    status: Optional[SessionStatus] = typer.Option(
        None, "--status", "-s", case_sensitive=False, help="Only promoted sessions with this status.",
    ),
    project: Optional[str] = typer.Option(None, "--project", help="Substring of the project path."),
    tag: Optional[str] = typer.Option(None, "--tag", help="Only promoted sessions carrying this tag."),
    recent: Optional[int] = typer.Option(None, "--recent", "-r", min=1, help="Show only the N most recent sessions."),
    sidechains: bool = typer.Option(True, "--sidechains/--no-sidechains", help="Include side conversations."),
    here: bool = typer.Option(False, "--here", help="Only sessions recorded in the current directory."),
    fmt: str = typer.Option("table", "--format", "-f", help=_FORMAT_HELP),
) -> None:
    """List sessions, newest first.

    Examples:
        asm list --recent 20
        asm list --promoted --status blocked
        asm list --project my-repo --format json
        asm list --here
    """
    cwd = os.getcwd() if here else None
    _do_list_sessions(get_catalog(), promoted, status, project, tag, recent, sidechains, fmt, cwd)


@app.command("search")
def search_sessions(
    query: List[str] = typer.Argument(..., help="Words to search for (each matched independently)."),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, help="Maximum results (default 10)."),
    fmt: str = typer.Option("table", "--format", "-f", help=_FORMAT_HELP),
) -> None:
    """Search names, summaries, first prompts, and conversation text.

    Sessions matching more query words rank first; ties go to the most recently modified.

    Examples:
        asm search oauth bug
        asm search "database migration" --limit 5 --format json
    """
    catalog = get_catalog()
    _do_search(catalog, " ".join(query), limit or _config_int("search_limit", DEFAULT_SEARCH_LIMIT), fmt)


@app.command("show")
def show_session(
    session_ref: str = typer.Argument(..., help="Session ID (full or prefix) or promoted name."),
) -> None:
    """Show session details, promotion metadata, and notes."""
    catalog = get_catalog()
    _do_show(catalog, _resolve_session(catalog, session_ref))


@app.command("promote")
def promote_session(
    session_ref: str = typer.Argument(..., help="Session ID (full or prefix) or promoted name."),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Custom name for the session."),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Description of the session."),
    tags: Optional[str] = typer.Option(None, "--tags", "-t", help="Tags, comma-separated (replaces existing tags)."),
    status: Optional[SessionStatus] = typer.Option(None, "--status", "-s", case_sensitive=False, help="Session status."),
) -> None:
    """Promote a session, or update fields of an already promoted one.

    Only the options you pass are changed.
    """
    catalog = get_catalog()
    session = _resolve_session(catalog, session_ref)
    tag_list = _parse_tags(tags)
    _write_store(lambda: catalog.promote(session.session_id, name, description, tag_list, status))

    console.print(f"[green]✓[/green] Promoted session: {session.short_id}")
    if name is not None:
        console.print(f"  [blue]Name:[/blue] {escape(name)}")
    if description is not None:
        console.print(f"  [blue]Description:[/blue] {escape(description)}")
    if tag_list:
        console.print(f"  [blue]Tags:[/blue] {escape(', '.join(tag_list))}")
    if status is not None:
        console.print(f"  [blue]Status:[/blue] {status.value}")


@app.command("note")
def add_note(
    session_ref: str = typer.Argument(..., help="Session ID (full or prefix) or promoted name."),
    text: str = typer.Argument(..., help="Note text."),
) -> None:
    """Append a note to a session (promotes it if needed)."""
    catalog = get_catalog()
    session = _resolve_session(catalog, session_ref)
    _write_store(lambda: catalog.add_note(session.session_id, text))
    console.print(f"[green]✓[/green] Added note to session {session.short_id}")


@app.command("archive")
def archive_session(
    session_ref: str = typer.Argument(..., help="Session ID (full or prefix) or promoted name."),
) -> None:
    """Mark a session as Archived."""
    catalog = get_catalog()
    session = _resolve_session(catalog, session_ref)
    _write_store(lambda: catalog.archive(session.session_id))
    console.print(f"[green]✓[/green] Archived session: {session.short_id}")


@app.command("status")
def set_status(
    session_ref: str = typer.Argument(..., help="Session ID (full or prefix) or promoted name."),
    status: SessionStatus = typer.Argument(..., case_sensitive=False, help="New status."),
) -> None:
    """Update a session's status: Active, Blocked, Completed, or Archived."""
    catalog = get_catalog()
    session = _resolve_session(catalog, session_ref)
    _write_store(lambda: catalog.set_status(session.session_id, status))
    console.print(
        f"[green]✓[/green] Updated status for session {session.short_id} to [blue]{status.value}[/blue]"
    )


@app.command("demote")
def demote_session(
    session_ref: str = typer.Argument(..., help="Session ID (full or prefix), promoted name, or orphaned promoted ID."),
) -> None:
    """Remove all promotion metadata (name, tags, status, notes) from a session."""
    catalog = get_catalog()
    if session_ref in catalog.store_file.store.sessions:
        session_id = session_ref  # allows cleaning up promotions whose log is gone
    else:
        session_id = _resolve_session(catalog, session_ref).session_id

    removed: List[bool] = []
    _write_store(lambda: removed.append(catalog.demote(session_id)))
    if removed and removed[0]:
        console.print(f"[green]✓[/green] Demoted session: {session_id[:8]}")
    else:
        console.print(f"[yellow]Session {session_id[:8]} was not promoted[/yellow]")


# ── Config commands ───────────────────────────────────────────────────────────

@config_app.command("path")
def config_path() -> None:
    """Print the config file path in use (whether or not it exists)."""
    sys.stdout.write(str(_get_config_file_path()) + "\n")


@config_app.command("show")
def config_show() -> None:
    """Show the effective configuration (file values merged over defaults)."""
    config_file = _get_config_file_path()
    effective = dict(_CONFIG_INIT_TEMPLATE)
    effective.update(load_config())
    console.print(f"[dim]Config file: {config_file} ({'exists' if config_file.exists() else 'not found'})[/dim]")
    sys.stdout.write(json.dumps(effective, indent=2) + "\n")


@config_app.command("init")
def config_init(
    force: bool = typer.Option(
        False, "--force",
        help="Overwrite the config file if it already exists.",
    ),
) -> None:
    """Create a starter config.json with documented default values.

    Safe by default: will NOT overwrite an existing config file unless --force is given.
    """
    config_file = _get_config_file_path()

    if config_file.exists() and not force:
        err_console.print(
            f"[yellow]Config file already exists:[/yellow] {config_file}\n"
            "Use --force to overwrite."
        )
        raise typer.Exit(code=1)

    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(_CONFIG_INIT_TEMPLATE, indent=2) + "\n", encoding="utf-8")

    global _config_cache
    _config_cache = None

    console.print(f"[green]Created:[/green] {config_file}")


# ── Entry point ───────────────────────────────────────────────────────────────

def cli_main():
    """CLI entry point."""
    app()

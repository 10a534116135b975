"""
Lester v1 - Admin CLI

Command-line interface for managing the bookmark store and merging device logs.

Usage:
    lester migrate
    lester add-workspace Research
    lester add-bookmark --workspace-id UUID --url https://example.com --title "Example"
    lester jobs
    lester merge laptop.json phone.json
"""

import json
import sys
from pathlib import Path
from typing import Optional
from uuid import UUID

import click
from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.table import Table

from config import get_config, load_env
from shared.errors import LesterError
from shared.log_setup import configure_logging
from shared.models import BookmarkFilter, BookmarkInput, SyncEnvelope, SyncOp
from shared.store import LesterStore
from shared.sync import merge_logs

console = Console()

_ops_adapter = TypeAdapter(list[SyncOp])


def get_store(db_url: Optional[str]) -> LesterStore:
    """Build a store from --db-url or the configured DATABASE_URL"""
    cfg = get_config()
    return LesterStore(
        db_url or cfg.database.url,
        connect_timeout=cfg.database.connect_timeout,
        connect_retries=cfg.database.connect_retries,
    )


def fail(message: str) -> None:
    console.print(f"[red]Error:[/red] {message}")
    sys.exit(1)


def load_ops(path: Path) -> list[SyncOp]:
    """
    Read an operation log from a JSON file.

    Accepts either a device envelope ({"device_id": ..., "ops": [...]}) or a
    bare list of ops.
    """
    raw = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(raw, dict):
        return SyncEnvelope.model_validate(raw).ops
    return _ops_adapter.validate_python(raw)


@click.group()
@click.version_option(version="1.0.0")
@click.option("--db-url", envvar="DATABASE_URL", default=None,
              help="PostgreSQL connection string")
@click.pass_context
def cli(ctx: click.Context, db_url: Optional[str]):
    """Lester - Bookmark Manager Admin Tool"""
    load_env()
    cfg = get_config()
    configure_logging(cfg.app.log_level, cfg.app.log_format)
    ctx.obj = {"db_url": db_url}


@cli.command()
@click.pass_context
def migrate(ctx: click.Context):
    """Create the database schema."""
    try:
        get_store(ctx.obj["db_url"]).migrate()
    except LesterError as e:
        fail(str(e))
    console.print("[green]Schema is up to date[/green]")


@cli.command("add-workspace")
@click.argument("name")
@click.pass_context
def add_workspace(ctx: click.Context, name: str):
    """Create a workspace."""
    try:
        workspace = get_store(ctx.obj["db_url"]).create_workspace(name)
    except LesterError as e:
        fail(str(e))
    console.print(f"Created workspace [cyan]{workspace.name}[/cyan] ({workspace.id})")


@cli.command()
@click.pass_context
def workspaces(ctx: click.Context):
    """List workspaces."""
    try:
        rows = get_store(ctx.obj["db_url"]).list_workspaces()
    except LesterError as e:
        fail(str(e))

    if not rows:
        console.print("[yellow]No workspaces yet.[/yellow]")
        return

    table = Table(title="Workspaces")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    for workspace in rows:
        table.add_row(str(workspace.id), workspace.name)
    console.print(table)


@cli.command("add-bookmark")
@click.option("--workspace-id", "-w", required=True, type=click.UUID, help="Workspace UUID")
@click.option("--url", "-u", required=True, help="Bookmark URL")
@click.option("--title", "-t", required=True, help="Bookmark title")
@click.option("--notes", "-n", default=None, help="Free-form notes")
@click.pass_context
def add_bookmark(ctx: click.Context, workspace_id: UUID, url: str, title: str, notes: Optional[str]):
    """Create a bookmark and queue it for tagging."""
    store = get_store(ctx.obj["db_url"])
    try:
        bookmark = store.create_bookmark(
            BookmarkInput(workspace_id=workspace_id, url=url, title=title, notes=notes)
        )
        job = store.enqueue_tag_job(bookmark.id)
    except LesterError as e:
        fail(str(e))
    console.print(f"Created bookmark [cyan]{bookmark.title}[/cyan] ({bookmark.id})")
    console.print(f"Queued tag job {job.id}")


@cli.command()
@click.option("--workspace-id", "-w", type=click.UUID, default=None, help="Only this workspace")
@click.option("--tag", default=None, help="Only bookmarks with this tag")
@click.option("--query", "-q", default=None, help="Substring of title or URL")
@click.pass_context
def bookmarks(ctx: click.Context, workspace_id: Optional[UUID], tag: Optional[str], query: Optional[str]):
    """List bookmarks."""
    try:
        rows = get_store(ctx.obj["db_url"]).list_bookmarks(
            BookmarkFilter(workspace_id=workspace_id, tag=tag, query=query)
        )
    except LesterError as e:
        fail(str(e))

    if not rows:
        console.print("[yellow]No bookmarks found.[/yellow]")
        return

    table = Table(title=f"Bookmarks ({len(rows)})")
    table.add_column("Title", style="cyan")
    table.add_column("URL")
    table.add_column("ID", style="dim")
    for bookmark in rows:
        table.add_row(bookmark.title, bookmark.url, str(bookmark.id))
    console.print(table)


@cli.command()
@click.pass_context
def tags(ctx: click.Context):
    """List all tags."""
    try:
        rows = get_store(ctx.obj["db_url"]).list_tags()
    except LesterError as e:
        fail(str(e))

    if not rows:
        console.print("[yellow]No tags yet.[/yellow]")
        return

    console.print(", ".join(tag.name for tag in rows))


@cli.command("tag-cloud")
@click.option("--limit", "-l", default=40, type=click.IntRange(min=1), help="Number of tags (default: 40)")
@click.pass_context
def tag_cloud(ctx: click.Context, limit: int):
    """Show the most used tags."""
    try:
        entries = get_store(ctx.obj["db_url"]).get_tag_cloud(limit)
    except LesterError as e:
        fail(str(e))

    if not entries:
        console.print("[yellow]No tags yet.[/yellow]")
        return

    table = Table(title="Tag Cloud")
    table.add_column("Tag", style="cyan")
    table.add_column("Weight", justify="right", style="green")
    for entry in entries:
        table.add_row(entry.name, f"{entry.weight:.2f}")
    console.print(table)


@cli.command()
@click.pass_context
def jobs(ctx: click.Context):
    """Show tag jobs by status."""
    try:
        summary = get_store(ctx.obj["db_url"]).tag_job_summary()
    except LesterError as e:
        fail(str(e))

    if not summary:
        console.print("[yellow]No tag jobs found.[/yellow]")
        return

    table = Table(title="Tag Jobs by Status")
    table.add_column("Status", style="cyan")
    table.add_column("Count", justify="right", style="green")
    for status_name, count in sorted(summary.items()):
        table.add_row(status_name, str(count))
    console.print(table)


@cli.command()
@click.argument("left", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("right", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Print the merge result as JSON")
def merge(left: Path, right: Path, as_json: bool):
    """
    Merge two device operation logs.

    Each file holds either {"device_id": ..., "ops": [...]} or a list of ops.
    Does not touch the database.
    """
    try:
        result = merge_logs(load_ops(left), load_ops(right))
    except (ValueError, ValidationError) as e:
        fail(f"Could not read operation log: {e}")

    if as_json:
        click.echo(result.model_dump_json(indent=2))
        return

    table = Table(title=f"Merged Ops ({len(result.merged_ops)})")
    table.add_column("Entity", style="cyan")
    table.add_column("Entity ID", style="dim")
    table.add_column("Field")
    table.add_column("Value")
    table.add_column("Timestamp", justify="right", style="green")
    for op in result.merged_ops:
        table.add_row(op.entity, str(op.entity_id), op.field, json.dumps(op.value), str(op.timestamp))
    console.print(table)

    if not result.conflicts:
        console.print("[green]No conflicts[/green]")
        return

    conflicts = Table(title=f"Conflicts ({len(result.conflicts)})")
    conflicts.add_column("Field", style="cyan")
    conflicts.add_column("Timestamp", justify="right")
    conflicts.add_column("Left", style="yellow")
    conflicts.add_column("Right", style="green")
    for conflict in result.conflicts:
        conflicts.add_row(
            f"{conflict.entity}.{conflict.field}",
            str(conflict.left.timestamp),
            json.dumps(conflict.left.value),
            json.dumps(conflict.right.value),
        )
    console.print(conflicts)


def main():
    """Entry point for the CLI"""
    cli()


if __name__ == "__main__":
    main()

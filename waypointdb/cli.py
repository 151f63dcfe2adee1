"""Command-line interface for WaypointDB.

This module provides a Typer-based CLI for managing a local workspace.

Commands:
- init: Initialize storage and show configuration
- add: Add a direction, waypoint or step
- tree: Show the item tree with auto-link markers
- complete: Mark an item completed (or not)
- delete: Soft-delete or permanently remove an item
- points: Show daily point totals
- backup: Write a snapshot backup file
- verify-backup: Validate a backup file
- migration-status: Show the migration status of an account

Example:
    $ waypointdb add "Ship v1" --kind direction
    $ waypointdb complete 1f0c6a0e-...
    $ waypointdb points --days 7
"""

from datetime import timedelta
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from waypointdb.config import settings
from waypointdb.errors import ConsistencyError, WaypointError
from waypointdb.logging import setup_logging
from waypointdb.metrics import initialize_metrics
from waypointdb.models import EnrichedItem, ItemKind
from waypointdb.snapshot import export_snapshot, load_backup, write_backup
from waypointdb.utils import format_iso, utc_today
from waypointdb.workspace import Workspace

# Initialize CLI app
app     = typer.Typer(
    name="waypointdb",
    help="Local-first store for directions, waypoints and steps",
    add_completion=False,
)
console = Console()


# =============================================================================
# Helper Functions
# =============================================================================


def configure_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, set DEBUG level; otherwise the configured level
    """
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_logs=settings.log_json,
        colorize=not settings.log_json,
    )


def get_workspace() -> Workspace:
    """Open the workspace configured by settings."""
    return Workspace()


def _label(item: EnrichedItem) -> str:
    mark = "✅" if item.completed else "⬜"
    label = f"{mark} {escape(item.text)} [dim]({item.kind}, {item.points} pts)[/dim]"
    if item.is_linked:
        role = "canonical" if item.is_canonical else "linked"
        label += f" [magenta]🔗 {role} x{len(item.linked_instances or []) + 1}[/magenta]"
    return label


def _add_branch(workspace: Workspace, branch: Tree, item: EnrichedItem, show_ids: bool) -> None:
    label = _label(item)
    if show_ids:
        label += f" [dim]{item.id}[/dim]"
    node = branch.add(label)
    for child in workspace.children(item.id):
        _add_branch(workspace, node, child, show_ids)


# =============================================================================
# CLI Commands
# =============================================================================


@app.command()
def init(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Initialize storage and verify setup.

    Creates the storage backend, persists the local profile if none exists,
    and prints the active configuration.

    Examples:
        $ waypointdb init
    """
    configure_logging(verbose)

    console.print("🔧 [bold cyan]WaypointDB Initialization[/bold cyan]\n")

    workspace = get_workspace()
    try:
        profile = workspace.profile.get()
        workspace.profile.save(profile)
        initialize_metrics()

        config_table = Table(title="Configuration", show_header=False)
        config_table.add_column("Key", style="cyan")
        config_table.add_column("Value", style="yellow")

        config_table.add_row("Environment", str(settings.environment))
        config_table.add_row("Storage Backend", str(settings.storage_backend))
        config_table.add_row("Database Path", str(settings.database_path))
        config_table.add_row("Backup Directory", str(settings.backup_dir))
        config_table.add_row(
            "Quota",
            f"{settings.storage_quota_bytes:,} bytes" if settings.quota_enabled else "disabled",
        )
        config_table.add_row("Profile", profile.id)

        console.print(config_table)
        console.print("\n✅ [bold green]Workspace ready[/bold green]")

    except WaypointError as e:
        console.print(f"\n❌ [bold red]Initialization failed: {e}[/bold red]")
        raise typer.Exit(code=1)

    finally:
        workspace.close()


@app.command()
def add(
    text: str = typer.Argument(..., help="Item text"),
    kind: ItemKind = typer.Option(
        ItemKind.STEP,
        "--kind",
        "-k",
        help="Item tier",
    ),
    parent: Optional[str] = typer.Option(
        None,
        "--parent",
        "-p",
        help="Parent item ID",
    ),
    points: Optional[int] = typer.Option(
        None,
        "--points",
        help="Point value (defaults to the kind's default)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Add an item.

    Examples:
        $ waypointdb add "Ship v1" --kind direction
        $ waypointdb add "Design" --kind waypoint --parent <id>
    """
    configure_logging(verbose)

    data: dict[str, object] = {"text": text, "kind": kind, "parent_id": parent}
    if points is not None:
        data["points"] = points

    workspace = get_workspace()
    try:
        if parent and workspace.get_item(parent) is None:
            console.print(f"❌ [bold red]Parent {parent} not found[/bold red]")
            raise typer.Exit(code=1)

        item = workspace.create_item(data)
        console.print(f"✅ Added {item.kind} [bold]{escape(item.text)}[/bold] ({item.points} pts)")
        console.print(f"🆔 [yellow]{item.id}[/yellow]")

        linked = workspace.engine.find_group(item.text)
        if len(linked) > 1:
            console.print(f"🔗 Linked with {len(linked) - 1} other instance(s)")

    except WaypointError as e:
        console.print(f"❌ [bold red]Could not add item: {e}[/bold red]")
        raise typer.Exit(code=1)

    finally:
        workspace.close()


@app.command()
def tree(
    show_ids: bool = typer.Option(
        False,
        "--ids",
        help="Show item IDs",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Show the item tree.

    Linked instances (items sharing the same text) are marked with 🔗.

    Examples:
        $ waypointdb tree --ids
    """
    configure_logging(verbose)

    workspace = get_workspace()
    try:
        roots = workspace.roots()
        if not roots:
            console.print("📭 No items yet")
            return

        root = Tree("🧭 [bold cyan]Waypoints[/bold cyan]")
        for item in roots:
            _add_branch(workspace, root, item, show_ids)
        console.print(root)

    finally:
        workspace.close()


@app.command()
def complete(
    item_id: str = typer.Argument(..., help="Item ID"),
    undo: bool = typer.Option(
        False,
        "--undo",
        "-u",
        help="Mark the item not completed",
    ),
    sync_all: bool = typer.Option(
        False,
        "--all",
        "-a",
        help="Apply to every linked instance",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Mark an item completed, recording an achievement.

    Examples:
        $ waypointdb complete <id>
        $ waypointdb complete <id> --undo
        $ waypointdb complete <id> --all
    """
    configure_logging(verbose)

    workspace = get_workspace()
    try:
        result = workspace.set_completed(item_id, not undo, sync_all=sync_all)
        if result.count == 0:
            console.print(f"❌ [bold red]Item {item_id} not found[/bold red]")
            raise typer.Exit(code=1)

        state = "not completed" if undo else "completed"
        console.print(f"✅ Marked {result.count} item(s) {state}")
        console.print(f"📊 Today: [bold green]{workspace.daily_total()}[/bold green] points")

    except WaypointError as e:
        console.print(f"❌ [bold red]Update failed: {e}[/bold red]")
        raise typer.Exit(code=1)

    finally:
        workspace.close()


@app.command()
def delete(
    item_id: str = typer.Argument(..., help="Item ID"),
    delete_all: bool = typer.Option(
        False,
        "--all",
        "-a",
        help="Delete every linked instance",
    ),
    purge: bool = typer.Option(
        False,
        "--purge",
        help="Permanently remove the item and all of its descendants",
    ),
    purge_achievements: bool = typer.Option(
        False,
        "--purge-achievements",
        help="With --purge, also remove the removed items' achievements",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Delete an item.

    By default the item is soft-deleted and can be restored; its children
    stay in place. ``--purge`` removes it and its descendants for good.

    Examples:
        $ waypointdb delete <id>
        $ waypointdb delete <id> --all
        $ waypointdb delete <id> --purge --purge-achievements
    """
    configure_logging(verbose)

    workspace = get_workspace()
    try:
        if purge:
            removed = workspace.purge_item(item_id, purge_achievements=purge_achievements)
            count = len(removed)
        else:
            count = workspace.delete_item(item_id, delete_all=delete_all).count

        if count == 0:
            console.print(f"❌ [bold red]Item {item_id} not found[/bold red]")
            raise typer.Exit(code=1)

        verb = "Permanently removed" if purge else "Deleted"
        console.print(f"🗑️  {verb} {count} item(s)")

    finally:
        workspace.close()


@app.command()
def points(
    days: int = typer.Option(
        1,
        "--days",
        "-d",
        min=1,
        help="Number of days to show, ending today",
    ),
    start_day: bool = typer.Option(
        False,
        "--start-day",
        help="Grant today's baseline before reporting",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Show daily point totals (baseline plus achievements).

    Examples:
        $ waypointdb points --start-day
        $ waypointdb points --days 7
    """
    configure_logging(verbose)

    workspace = get_workspace()
    try:
        if start_day:
            record = workspace.start_day()
            console.print(f"🌅 Baseline for {record.date}: [yellow]{record.baseline_points}[/yellow] points\n")

        today = utc_today()
        breakdown = workspace.baseline.breakdown(
            today - timedelta(days=days - 1), today, workspace.owner_id
        )

        table = Table(title="Daily Points")
        table.add_column("Date", style="cyan")
        table.add_column("Baseline", justify="right", style="yellow")
        table.add_column("Achievements", justify="right", style="yellow")
        table.add_column("Total", justify="right", style="green")

        for day in breakdown:
            table.add_row(
                str(day.day),
                f"{day.baseline_points:,}",
                f"{day.achievement_points:,}",
                f"{day.total:,}",
            )

        console.print(table)

    finally:
        workspace.close()


@app.command()
def backup(
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output-dir",
        "-o",
        help="Directory to write the backup to (defaults to data_dir/backups)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Write a full snapshot of the workspace to a JSON backup file.

    Examples:
        $ waypointdb backup
        $ waypointdb backup --output-dir ./backups
    """
    configure_logging(verbose)

    console.print("📦 [bold cyan]WaypointDB Backup[/bold cyan]\n")

    workspace = get_workspace()
    try:
        snapshot = export_snapshot(workspace.store)
        path = write_backup(snapshot, output_dir)

        console.print(
            f"📊 {snapshot.counts.items} items, {snapshot.counts.achievements} achievements, "
            f"{snapshot.counts.daily_points} daily records"
        )
        console.print(f"\n✅ [bold green]Backup written to {path}[/bold green]")

    except (WaypointError, OSError) as e:
        console.print(f"\n❌ [bold red]Backup failed: {e}[/bold red]")
        raise typer.Exit(code=1)

    finally:
        workspace.close()


@app.command("verify-backup")
def verify_backup(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Backup file"),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Validate a backup file's format and declared counts.

    Examples:
        $ waypointdb verify-backup data/backups/waypoint-backup-2024-01-15T10-30-00Z.json
    """
    configure_logging(verbose)

    try:
        snapshot = load_backup(path)
    except ConsistencyError as e:
        console.print("❌ [bold red]Backup is invalid[/bold red]")
        for issue in e.issues:
            console.print(f"  • [red]{issue.code}[/red]: {escape(issue.message)}")
        raise typer.Exit(code=1)

    table = Table(title="Backup Contents", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Version", str(snapshot.version))
    table.add_row("Exported At", format_iso(snapshot.exported_at))
    table.add_row("Items", f"{snapshot.counts.items:,}")
    table.add_row("Achievements", f"{snapshot.counts.achievements:,}")
    table.add_row("Daily Points", f"{snapshot.counts.daily_points:,}")
    table.add_row("User", snapshot.user.id)

    console.print(table)
    console.print("\n✅ [bold green]Backup is valid[/bold green]")


@app.command("migration-status")
def migration_status(
    owner_id: str = typer.Argument(..., help="Remote account ID"),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Show the migration status of an account.

    Examples:
        $ waypointdb migration-status account-123
    """
    configure_logging(verbose)

    workspace = get_workspace()
    try:
        summary = workspace.tracker.summary(owner_id)
        if summary is None:
            console.print(f"📭 No migration recorded for {escape(owner_id)}")
            return

        table = Table(title="Migration Status", show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="yellow")

        table.add_row("Status", str(summary.status))
        table.add_row("Items Migrated", f"{summary.items_migrated:,}")
        table.add_row("Achievements Migrated", f"{summary.achievements_migrated:,}")
        table.add_row("Daily Points Migrated", f"{summary.daily_points_migrated:,}")
        if summary.duration_seconds is not None:
            table.add_row("Duration", f"{summary.duration_seconds:.2f}s")

        record = workspace.tracker.get(owner_id)
        if record is not None and record.last_error:
            table.add_row("Last Error", escape(record.last_error))

        console.print(table)

        for warning in summary.warnings:
            console.print(f"⚠️  {escape(warning)}")

    finally:
        workspace.close()


if __name__ == "__main__":
    app()


__all__ = ["app"]

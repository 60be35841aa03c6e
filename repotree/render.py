"""
Rendering functions for repotree output.

This module handles all pretty-printing and table formatting.
Services return data, this module makes it human-readable.
"""

from rich.table import Table
from rich.console import Console
from rich.tree import Tree
from rich import box
from rich.markup import escape
from typing import Iterable

from .domain.ref import RepoEntry
from .domain.sync import SyncAction, SyncReport, SyncStatus

console = Console()


def render_sync_table(report: SyncReport) -> None:
    """
    Render sync outcomes as a pretty table, in input order.

    Args:
        report: Report returned by the sync service
    """
    if not report.outcomes:
        console.print("[yellow]No operations performed.[/yellow]")
        return

    table = Table(
        title="Dry Run" if report.dry_run else "Repository Sync Results",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta"
    )

    table.add_column("Repository", style="cyan")
    table.add_column("Action", style="blue")
    table.add_column("Status")
    table.add_column("Path", style="dim")

    for outcome in report.outcomes:
        if outcome.status == SyncStatus.SUCCESS:
            done = "cloned" if outcome.action == SyncAction.CLONE else "updated"
            status = f"[green]✓ {done}[/green]"
        elif outcome.status == SyncStatus.DRY_RUN:
            status = "[yellow]would run[/yellow]"
        else:
            status = f"[red]✗ {outcome.error_kind}[/red]"

        table.add_row(escape(str(outcome.ref)), outcome.action.value, status, escape(outcome.path))

    console.print(table)
    print_sync_summary(report)


def print_sync_summary(report: SyncReport) -> None:
    """Print summary statistics for a sync run."""
    if report.total == 0:
        return

    console.print("\n[bold]Summary:[/bold]")
    console.print(f"  Total repositories: {report.total}")
    if report.cloned:
        console.print(f"  [green]Cloned: {report.cloned}[/green]")
    if report.updated:
        console.print(f"  [green]Updated: {report.updated}[/green]")
    if report.failed:
        console.print(f"  [red]Failed: {report.failed}[/red]")


def render_tree(entries: Iterable[RepoEntry], root: str) -> None:
    """
    Render repositories as a host/owner/name tree.

    Entries arrive in walk order, so siblings are already sorted. When an
    entry carries a status, its branch and status label are shown after
    the name.
    """
    tree = Tree(f"[bold]{escape(root)}[/bold]")
    hosts = {}
    owners = {}

    for entry in entries:
        ref = entry.ref
        if ref.host not in hosts:
            hosts[ref.host] = tree.add(f"[bold blue]{escape(ref.host)}[/bold blue]")
        owner_key = (ref.host, ref.owner)
        if owner_key not in owners:
            owners[owner_key] = hosts[ref.host].add(f"[blue]{escape(ref.owner)}[/blue]")

        label = f"[cyan]{escape(ref.name)}[/cyan]"
        if entry.status is not None:
            colour = "green" if entry.status.label == "ok" else "yellow"
            label += f" [dim]{escape(entry.status.branch)}[/dim] [{colour}]{escape(entry.status.label)}[/{colour}]"
        owners[owner_key].add(label)

    if hosts:
        console.print(tree)

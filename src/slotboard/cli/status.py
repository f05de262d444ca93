"""slotboard status command (WI_0037).

Shows the project panel, the pool, and the calendar for one month.
"""

from __future__ import annotations

import asyncio
import calendar
from datetime import date
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from slotboard.cli.errors import err_invalid_month
from slotboard.cli.project import Project, load_items, open_project
from slotboard.models import MONTH_NAMES, Item
from slotboard.normalize import NormalizedPartition
from slotboard.state import LocalItemStore

console = Console()


def status_cmd(
    month: Annotated[
        Optional[str],
        typer.Option("--month", help="Month to show as YYYY-MM (defaults to the current month)."),
    ] = None,
    instance: Annotated[
        Optional[str],
        typer.Option("--instance", help="Partition to show (defaults to project.instance)."),
    ] = None,
    project_dir: Annotated[
        Path,
        typer.Option("--dir", help="Project directory."),
    ] = Path("."),
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Path to .slotboard.db (overrides config)."),
    ] = None,
) -> None:
    """Show the pool and the calendar for one month."""
    year, month_index = _parse_month(month)

    project = open_project(project_dir, db=db, instance=instance)
    items = LocalItemStore()
    try:
        normalized = asyncio.run(load_items(project, items))
    finally:
        project.close()

    _show_project_panel(project, items, normalized)
    _show_pool(items)
    _show_month(items, year, month_index, project.config.slots.calendar_capacity)


def _parse_month(value: str | None) -> tuple[int, int]:
    """Return ``(year, zero-indexed month)``."""
    if value is None:
        today = date.today()
        return today.year, today.month - 1
    try:
        year_text, month_text = value.split("-")
        year, month = int(year_text), int(month_text)
    except ValueError:
        console.print(err_invalid_month(value))
        raise typer.Exit(1)
    if not (1 <= year <= 9999 and 1 <= month <= 12):
        console.print(err_invalid_month(value))
        raise typer.Exit(1)
    return year, month - 1


# ---------------------------------------------------------------------------
# Panel renderers
# ---------------------------------------------------------------------------


def _show_project_panel(project: Project, items: LocalItemStore, normalized: NormalizedPartition) -> None:
    index = items.slot_index
    scheduled = sum(len(index.get(key)) for key in index)
    lines = [
        f"Project:   [bold]{project.partition.project_id}[/]",
        f"Instance:  {project.partition.instance}",
        f"Cards:     [bold]{len(items)}[/]  |  Pool: {len(index.pool())}  |  Scheduled: {scheduled}",
    ]
    if normalized.dropped:
        lines.append(f"[yellow]Skipped {len(normalized.dropped)} invalid entr{'y' if len(normalized.dropped) == 1 else 'ies'}[/]")
    console.print(Panel("\n".join(lines), title="[bold]Project[/]", expand=False))


def _show_pool(items: LocalItemStore) -> None:
    pool = items.slot_index.pool()
    if not pool:
        console.print(Panel("[dim]The pool is empty.[/]", title="[bold]Pool[/]", expand=False))
        return
    table = Table(title="Pool", show_lines=False)
    table.add_column("ID", style="dim")
    table.add_column("Title", style="bold")
    table.add_column("Label")
    table.add_column("Last moved")
    for item in pool:
        table.add_row(item.id, item.title, item.label or "—", _when(item))
    console.print(table)


def _show_month(items: LocalItemStore, year: int, month: int, capacity: int) -> None:
    slots = items.slot_index.slots_for_month(year, month)
    title = f"{MONTH_NAMES[month]} {year}"
    if not slots:
        console.print(Panel("[dim]No cards scheduled.[/]", title=f"[bold]{title}[/]", expand=False))
        return
    table = Table(title=title)
    table.add_column("Day", justify="right")
    table.add_column("Cards", justify="right")
    table.add_column("Titles")
    for key, members in slots.items():
        day = int(key.rsplit("-", 1)[1])
        weekday = calendar.day_abbr[calendar.weekday(year, month + 1, day)]
        count = f"{len(members)}/{capacity}"
        if len(members) >= capacity:
            count = f"[red]{count}[/]"
        table.add_row(f"{weekday} {day}", count, "\n".join(f"{m.title} [dim]({m.id})[/]" for m in members))
    console.print(table)


def _when(item: Item) -> str:
    return item.last_moved.strftime("%Y-%m-%d %H:%M")

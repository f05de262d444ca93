"""slotboard move — move a card between the pool and calendar days (WI_0041)."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console

from slotboard.board import open_board
from slotboard.cli.errors import (
    err_invalid_target,
    err_item_not_found,
    err_persist_failed,
    err_slot_full,
)
from slotboard.cli.project import Project, load_items, open_project, parse_target
from slotboard.effects import wait_background
from slotboard.errors import ItemNotFound, PersistenceFailure, SlotFull
from slotboard.models import describe_location
from slotboard.pipeline import MutationOutcome, MutationStatus
from slotboard.scheduler import LoopScheduler

console = Console()


def move_cmd(
    item_id: Annotated[str, typer.Argument(help="Item id (see slotboard status).")],
    target: Annotated[str, typer.Argument(help="'pool' or a date like 2024-03-14.")],
    instance: Annotated[
        Optional[str],
        typer.Option("--instance", help="Partition holding the item (defaults to project.instance)."),
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
    """Move a card to the pool or to a calendar day."""
    location = parse_target(target)
    if location is None:
        console.print(err_invalid_target(target))
        raise typer.Exit(1)

    project = open_project(project_dir, db=db, instance=instance)
    try:
        outcome = asyncio.run(_move(project, item_id, location))
    except ItemNotFound:
        console.print(err_item_not_found(item_id))
        raise typer.Exit(1)
    except SlotFull as exc:
        console.print(err_slot_full(describe_location(exc.slot_key), exc.capacity))
        raise typer.Exit(1)
    except PersistenceFailure as exc:
        console.print(err_persist_failed(item_id, exc.attempts, exc.cause))
        raise typer.Exit(1)
    finally:
        project.close()

    where = describe_location(outcome.location)
    if outcome.status is MutationStatus.NOOP:
        console.print(f"[dim]–[/] {item_id} is already at {where}. Nothing to do.")
    else:
        console.print(f"[green]✓[/] Moved {item_id} to {where}")


async def _move(project: Project, item_id: str, location: str) -> MutationOutcome:
    board = open_board(
        project.store,
        project.partition,
        scheduler=LoopScheduler(),
        config=project.config,
        actor=project.actor,
        start=False,
    )
    await load_items(project, board.items)
    try:
        return await board.pipeline.move_item(item_id, location)
    finally:
        await board.close()
        await wait_background()

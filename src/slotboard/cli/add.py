"""slotboard add — upload media and add a card (WI_0040).

Cards go to the pool unless --date schedules them directly. --draft marks
the card with the "Draft" label.
"""

from __future__ import annotations

import asyncio
import uuid
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console

from slotboard.board import open_board
from slotboard.cli.errors import (
    err_file_not_found,
    err_invalid_target,
    err_persist_failed,
    err_slot_full,
    err_source_missing,
)
from slotboard.cli.project import Project, load_items, open_project, parse_target
from slotboard.effects import wait_background
from slotboard.errors import PersistenceFailure, SlotFull
from slotboard.models import POOL, Item, describe_location
from slotboard.pipeline import MutationOutcome
from slotboard.remote.blob import LocalBlobStore
from slotboard.scheduler import LoopScheduler

console = Console()

DRAFT_LABEL = "Draft"


def add_cmd(
    title: Annotated[str, typer.Option("--title", help="Card title.")],
    file: Annotated[
        Optional[Path],
        typer.Option("--file", help="Local media file to upload."),
    ] = None,
    url: Annotated[
        Optional[str],
        typer.Option("--url", help="Existing media URL (no upload)."),
    ] = None,
    date: Annotated[
        Optional[str],
        typer.Option("--date", help="Schedule directly on YYYY-MM-DD instead of the pool."),
    ] = None,
    label: Annotated[str, typer.Option("--label", help="Status label.")] = "",
    caption: Annotated[str, typer.Option("--caption", help="Post caption.")] = "",
    description: Annotated[str, typer.Option("--description", help="Internal description.")] = "",
    draft: Annotated[bool, typer.Option("--draft", help="Mark the card as a draft.")] = False,
    instance: Annotated[
        Optional[str],
        typer.Option("--instance", help="Partition to add to (defaults to project.instance)."),
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
    """Add a content card to the pool (or straight onto a day)."""
    if file is None and not url:
        console.print(err_source_missing())
        raise typer.Exit(1)
    if file is not None and not file.is_file():
        console.print(err_file_not_found(str(file)))
        raise typer.Exit(1)

    location = POOL
    if date:
        parsed = parse_target(date)
        if parsed is None or parsed == POOL:
            console.print(err_invalid_target(date))
            raise typer.Exit(1)
        location = parsed

    project = open_project(project_dir, db=db, instance=instance)
    try:
        item, outcome = asyncio.run(
            _add(
                project,
                title=title,
                file=file,
                url=url or "",
                location=location,
                label=DRAFT_LABEL if draft else label,
                caption=caption,
                description=description,
            )
        )
    except SlotFull as exc:
        console.print(err_slot_full(describe_location(exc.slot_key), exc.capacity))
        raise typer.Exit(1)
    except PersistenceFailure as exc:
        console.print(err_persist_failed(", ".join(exc.item_ids), exc.attempts, exc.cause))
        raise typer.Exit(1)
    finally:
        project.close()

    console.print(
        f"[green]✓[/] Added [bold]{item.title}[/] ({item.id}) to "
        f"{describe_location(outcome.location)} [dim]{project.partition.instance}[/]"
    )


async def _add(
    project: Project,
    *,
    title: str,
    file: Path | None,
    url: str,
    location: str,
    label: str,
    caption: str,
    description: str,
) -> tuple[Item, MutationOutcome]:
    if file is not None:
        blobs = LocalBlobStore(project.resolve(project.config.store.uploads))
        url = await blobs.upload(file)

    board = open_board(
        project.store,
        project.partition,
        scheduler=LoopScheduler(),
        config=project.config,
        actor=project.actor,
        start=False,
    )
    await load_items(project, board.items)
    item = Item(
        id=uuid.uuid4().hex,
        url=url,
        title=title,
        location=location,
        label=label,
        caption=caption,
        description=description,
        instance=project.partition.instance,
    )
    try:
        outcome = await board.pipeline.add_item(item)
    finally:
        await board.close()
        await wait_background()
    return item, outcome

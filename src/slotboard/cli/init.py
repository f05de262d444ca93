"""slotboard init — create a local project (WI_0034).

Creates:
  .slotboard.db             — document store with schema
  projects/{id}             — project document with empty partitions
  slotboard.yaml            — project config (project: + store: sections)
  uploads/                  — local blob store
  ~/.slotboard/config.yaml  — global defaults (created once, mode 0o600)
"""

from __future__ import annotations

import asyncio
import re
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console

from slotboard.config import PROJECT_CONFIG_NAME, ensure_global_config
from slotboard.db.connection import Database
from slotboard.models import INSTANCE_KEYS, storage_instance
from slotboard.remote.partition import PARTITIONS_FIELD
from slotboard.remote.sqlite import SqliteDocumentStore

console = Console()

_DEFAULT_PROJECT_DIR = Path(".")
_DB_NAME = ".slotboard.db"
_PROJECT_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = _DEFAULT_PROJECT_DIR,
    project_id: Annotated[
        Optional[str],
        typer.Option("--project-id", help="Project document id. Prompted if omitted."),
    ] = None,
    instance: Annotated[
        str,
        typer.Option("--instance", help="Default partition: instagram, facebook or tiktok."),
    ] = "instagram",
    actor: Annotated[
        str,
        typer.Option("--actor", help="Your user id (recorded on activity entries)."),
    ] = "",
    global_config: Annotated[
        Optional[Path],
        typer.Option("--global-config", hidden=True, help="Override global config path (for testing)."),
    ] = None,
) -> None:
    """Initialize a new slotboard project."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)

    db_path = project_dir / _DB_NAME
    if db_path.exists():
        console.print(f"[yellow]⚠[/]  {db_path} already exists.")
        if not typer.confirm("Re-initialize? Existing data is preserved.", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)

    if project_id is None:
        project_id = typer.prompt("Project id", default=_default_project_id(project_dir)).strip()
    if not _PROJECT_ID_RE.match(project_id):
        console.print(
            f"[red]Error:[/] Invalid project id '{project_id}'.\n"
            "  Use letters, digits, '-' and '_' only."
        )
        raise typer.Exit(1)
    try:
        instance_key = storage_instance(instance)
    except ValueError as exc:
        console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(1)

    console.print(f"\n[bold]Creating project in {project_dir} …[/]\n")

    _create_database(db_path, project_id, actor)
    _create_slotboard_yaml(project_dir, project_id, instance, actor)
    (project_dir / "uploads").mkdir(exist_ok=True)
    console.print("  [green]✓[/] uploads/")
    _update_gitignore(project_dir)

    cfg_path = ensure_global_config(global_config)
    console.print(f"  [green]✓[/] {cfg_path} (global config)")

    console.print(f"\n[bold green]✓ Project '{project_id}' initialized ({instance_key}).[/]")
    console.print("\nNext steps:")
    console.print("  1. slotboard add --title <title> --file <path>   (add a card to the pool)")
    console.print("  2. slotboard move <item-id> 2024-03-14          (schedule it)")
    console.print("  3. slotboard status --month 2024-03             (review the month)")


def _default_project_id(project_dir: Path) -> str:
    slug = re.sub(r"[^A-Za-z0-9_-]+", "-", project_dir.name).strip("-")
    return slug or "project"


def _create_database(db_path: Path, project_id: str, actor: str) -> None:
    conn = Database(db_path).connect()
    try:
        store = SqliteDocumentStore(conn)
        asyncio.run(_ensure_project_document(store, project_id, actor))
    finally:
        conn.close()
    console.print(f"  [green]✓[/] {_DB_NAME} (projects/{project_id})")


async def _ensure_project_document(store: SqliteDocumentStore, project_id: str, actor: str) -> None:
    path = f"projects/{project_id}"
    document = await store.read(path) or {}
    partitions = document.get(PARTITIONS_FIELD)
    if not isinstance(partitions, dict):
        partitions = {}
    for key in INSTANCE_KEYS:
        partitions.setdefault(key, {})
    document[PARTITIONS_FIELD] = partitions
    members = [m for m in document.get("memberIds") or [] if isinstance(m, str)]
    if actor and actor not in members:
        members.append(actor)
    document["memberIds"] = members
    await store.write(path, document)


def _create_slotboard_yaml(project_dir: Path, project_id: str, instance: str, actor: str) -> None:
    target = project_dir / PROJECT_CONFIG_NAME
    if target.exists():
        console.print(f"  [dim]–[/] {PROJECT_CONFIG_NAME} (kept existing)")
        return
    content = (
        f"project:\n"
        f'  id: "{project_id}"\n'
        f'  instance: "{instance}"\n'
        f'  actor: "{actor}"\n'
        f"\n"
        f"store:\n"
        f'  db: "{_DB_NAME}"\n'
        f'  uploads: "uploads"\n'
        f"\n"
        f"# Uncomment to tune persistence and capacity:\n"
        f"# slots:\n"
        f"#   calendar_capacity: 4\n"
        f"# pipeline:\n"
        f"#   max_attempts: 3\n"
        f"#   backoff_base_ms: 1000\n"
    )
    target.write_text(content, encoding="utf-8")
    console.print(f"  [green]✓[/] {PROJECT_CONFIG_NAME}")


def _update_gitignore(project_dir: Path) -> None:
    """Add slotboard entries to .gitignore if it already exists."""
    gitignore = project_dir / ".gitignore"
    entries = [_DB_NAME, "uploads/"]

    if gitignore.exists():
        existing = gitignore.read_text(encoding="utf-8")
        to_add = [e for e in entries if e not in existing]
        if to_add:
            with gitignore.open("a", encoding="utf-8") as f:
                f.write("\n# Slotboard\n")
                for entry in to_add:
                    f.write(f"{entry}\n")
            console.print("  [green]✓[/] .gitignore (updated with slotboard entries)")

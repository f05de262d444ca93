"""Shared project loading for CLI commands."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import date
from pathlib import Path

import typer
from rich.console import Console

from slotboard.cli.errors import err_config, err_no_db, err_no_project_id
from slotboard.config import ConfigError, SlotboardConfig, load_config
from slotboard.db.connection import Database
from slotboard.effects import Actor
from slotboard.logging_setup import setup_logging
from slotboard.models import POOL, slot_key_for_date
from slotboard.normalize import NormalizedPartition, normalize_partition
from slotboard.remote.partition import PartitionRef
from slotboard.remote.sqlite import SqliteDocumentStore
from slotboard.state import LocalItemStore

console = Console()


@dataclass
class LogFlags:
    """Logging options given on the command line; they win over slotboard.yaml."""

    level: str | None = None
    json_file: Path | None = None


log_flags = LogFlags()


@dataclass
class Project:
    """An opened project: config, connection, store and active partition."""

    root: Path
    config: SlotboardConfig
    conn: sqlite3.Connection
    store: SqliteDocumentStore
    partition: PartitionRef

    @property
    def actor(self) -> Actor | None:
        cfg = self.config.project
        if not cfg.actor:
            return None
        return Actor(uid=cfg.actor, display_name=cfg.actor_name or cfg.actor)

    def resolve(self, value: str) -> Path:
        path = Path(value).expanduser()
        return path if path.is_absolute() else self.root / path

    def close(self) -> None:
        self.conn.close()


def open_project(project_dir: Path, *, db: Path | None = None, instance: str | None = None) -> Project:
    """Load config and open the database, printing an actionable error and exiting on failure."""
    root = project_dir.resolve()
    try:
        cfg = load_config(root)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)
    if not cfg.project.id:
        console.print(err_no_project_id())
        raise typer.Exit(1)
    configure_logging(cfg, root)

    db_path = db if db is not None else Path(cfg.store.db)
    if not db_path.is_absolute():
        db_path = root / db_path
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    try:
        partition = PartitionRef.for_instance(cfg.project.id, instance or cfg.project.instance)
    except ValueError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)

    conn = Database(db_path).connect()
    return Project(root=root, config=cfg, conn=conn, store=SqliteDocumentStore(conn), partition=partition)


def configure_logging(cfg: SlotboardConfig, root: Path) -> None:
    """Apply the project's logging section, with command-line flags taking precedence."""
    json_file = log_flags.json_file
    if json_file is None and cfg.logging.json_file:
        json_file = Path(cfg.logging.json_file).expanduser()
        if not json_file.is_absolute():
            json_file = root / json_file
    setup_logging(log_flags.level or cfg.logging.level, json_file=json_file)


async def load_items(project: Project, items: LocalItemStore) -> NormalizedPartition:
    """Read the active partition once and replace *items* with it."""
    document = await project.store.read(project.partition.document_path)
    normalized = normalize_partition(project.partition.extract(document), project.partition.instance)
    items.replace_all(normalized.items)
    return normalized


def parse_target(value: str) -> str | None:
    """Map ``pool`` or ``YYYY-MM-DD`` to a location; None if neither."""
    text = value.strip().lower()
    if text == POOL:
        return POOL
    try:
        return slot_key_for_date(date.fromisoformat(text))
    except ValueError:
        return None

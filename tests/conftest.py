"""Shared pytest fixtures."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from typer.testing import CliRunner

from slotboard.cli.main import app
from slotboard.db.connection import Database
from slotboard.db.migrations import run_migrations
from slotboard.inflight import InFlightTracker
from slotboard.models import POOL, Item
from slotboard.remote.memory import MemoryDocumentStore
from slotboard.remote.partition import PartitionRef
from slotboard.scheduler import ManualScheduler
from slotboard.state import LocalItemStore

PROJECT_ID = "p1"
BASE_TIME = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class RecordingNotifier:
    """Collects (message, level) pairs."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def notify(self, message: str, level: str = "error") -> None:
        self.messages.append((message, level))

    @property
    def texts(self) -> list[str]:
        return [m for m, _ in self.messages]


class RecordingSleep:
    """Async sleep replacement that records delays and returns immediately."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def remote_entry(item_id: str, location: str = POOL, *, minutes: int = 0, **extra) -> dict:
    """Raw partition entry as another client would write it."""
    entry = {
        "id": item_id,
        "url": f"https://cdn.example/{item_id}.jpg",
        "title": f"Card {item_id}",
        "location": location,
        "lastMoved": (BASE_TIME + timedelta(minutes=minutes)).isoformat(),
    }
    entry.update(extra)
    return entry


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with migrations applied, closed after test."""
    db = Database(tmp_path / ".slotboard.db")
    conn = db.connect()
    run_migrations(conn)
    yield conn
    conn.close()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def partition() -> PartitionRef:
    return PartitionRef(PROJECT_ID, "instagram")


@pytest.fixture
def store(partition) -> MemoryDocumentStore:
    """Shared store holding one project with two members and an empty partition."""
    return MemoryDocumentStore(
        {
            partition.document_path: {
                "memberIds": ["u1", "u2"],
                "imageMetadata": {"instagram": {}, "fbig": {}, "tiktok": {}},
            }
        }
    )


@pytest.fixture
def tracker(scheduler) -> InFlightTracker:
    return InFlightTracker(scheduler, ttl=0.4)


@pytest.fixture
def items() -> LocalItemStore:
    return LocalItemStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def fake_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_item():
    """Factory for items with deterministic timestamps."""

    def _make(item_id: str, location: str = POOL, *, minutes: int = 0, **kwargs) -> Item:
        return Item(
            id=item_id,
            url=f"https://cdn.example/{item_id}.jpg",
            title=kwargs.pop("title", f"Card {item_id}"),
            location=location,
            last_moved=BASE_TIME + timedelta(minutes=minutes),
            **kwargs,
        )

    return _make


# ---------------------------------------------------------------------------
# CLI helpers
# ---------------------------------------------------------------------------


def read_documents(project_dir: Path, prefix: str = "") -> dict[str, dict]:
    """Read documents from a project's .slotboard.db without going through the store."""
    conn = sqlite3.connect(project_dir / ".slotboard.db")
    try:
        rows = conn.execute("SELECT path, body FROM documents ORDER BY rowid").fetchall()
    finally:
        conn.close()
    return {path: json.loads(body) for path, body in rows if path.startswith(prefix)}


def read_partition(project_dir: Path, instance: str = "instagram") -> dict[str, dict]:
    document = read_documents(project_dir)[f"projects/{PROJECT_ID}"]
    return document["imageMetadata"][instance]


@pytest.fixture
def global_config(tmp_path, monkeypatch) -> Path:
    """Point the global config at tmp_path and clear SLOTBOARD_* env overrides."""
    target = tmp_path / "home" / ".slotboard" / "config.yaml"
    monkeypatch.setattr("slotboard.config._GLOBAL_CONFIG_PATH", target)
    for name in ("SLOTBOARD_PROJECT_ID", "SLOTBOARD_INSTANCE", "SLOTBOARD_DB"):
        monkeypatch.delenv(name, raising=False)
    return target


@pytest.fixture
def cli_project(tmp_path, global_config) -> Path:
    """An initialized project directory with actor u1."""
    project_dir = tmp_path / "board"
    result = CliRunner().invoke(
        app,
        [
            "init",
            str(project_dir),
            "--project-id",
            PROJECT_ID,
            "--actor",
            "u1",
            "--global-config",
            str(global_config),
        ],
    )
    assert result.exit_code == 0, result.output
    return project_dir

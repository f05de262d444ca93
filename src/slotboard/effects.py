"""Side-effect collaborators: user notices, activity log, collaborator notifications (WI_0016).

None of these may affect the outcome of a mutation. Remote side effects run as
fire-and-forget tasks whose failures are logged and dropped.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Coroutine, Protocol

from slotboard.models import POOL, Item, describe_location, utcnow
from slotboard.remote.base import DocumentStore

logger = logging.getLogger(__name__)

_background: set[asyncio.Task[Any]] = set()


@dataclass(frozen=True)
class Actor:
    """The user performing a mutation."""

    uid: str
    display_name: str = "Unknown User"


# ---------------------------------------------------------------------------
# Transient notices
# ---------------------------------------------------------------------------


class Notifier(Protocol):
    def notify(self, message: str, level: str = "error") -> None: ...


class LogNotifier:
    """Routes notices to the module logger."""

    def notify(self, message: str, level: str = "error") -> None:
        log = logger.error if level == "error" else logger.info
        log(message, extra={"event": "user_notice", "context": {"level": level}})


# ---------------------------------------------------------------------------
# Activity log
# ---------------------------------------------------------------------------


def _activity_id() -> str:
    return f"activity_{int(time.time() * 1000)}_{uuid.uuid4().hex[:7]}"


def move_action(location: str) -> str:
    if location == POOL:
        return "moved the card to the Content Pool"
    return f"scheduled the card for {describe_location(location)}"


class ActivityLog(ABC):
    @abstractmethod
    async def record(self, item: Item, action: str, actor: Actor) -> None:
        """Append one activity entry for *item*."""


class StoreActivityLog(ActivityLog):
    """Writes activity entries to ``images/{item_id}/activities/{activity_id}``."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def record(self, item: Item, action: str, actor: Actor) -> None:
        activity_id = _activity_id()
        now = utcnow().isoformat()
        await self._store.write(
            f"images/{item.id}/activities/{activity_id}",
            {
                "id": activity_id,
                "imageId": item.id,
                "userId": actor.uid,
                "userName": actor.display_name,
                "action": action,
                "timestamp": now,
                "createdAt": now,
            },
        )


# ---------------------------------------------------------------------------
# Collaborator notifications
# ---------------------------------------------------------------------------


class CollaborationNotifier(ABC):
    @abstractmethod
    async def notify_edit(self, project_id: str, item: Item, actor: Actor, instance: str = "") -> None:
        """Tell project members that *actor* changed *item*."""


class StoreCollaborationNotifier(CollaborationNotifier):
    """Writes an ``edit`` notification into ``users/{uid}/notifications`` of every project member.

    Members are read from the ``memberIds`` list of the project document.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def notify_edit(self, project_id: str, item: Item, actor: Actor, instance: str = "") -> None:
        project = await self._store.read(f"projects/{project_id}") or {}
        members = [m for m in project.get("memberIds") or [] if isinstance(m, str) and m]
        if not members:
            return

        location_text = f" placed at '{describe_location(item.location)}'" if item.location != POOL else ""
        instance_text = f" • {instance}" if instance else ""
        message = (
            f'{actor.display_name} edited the card with title "{item.title or "Untitled"}"'
            f"{location_text}{instance_text}"
        )
        now = utcnow().isoformat()
        body = {
            "projectId": project_id,
            "type": "edit",
            "message": message,
            "metadata": {
                "contentId": item.id,
                "userId": actor.uid,
                "userName": actor.display_name,
                "contentTitle": item.title,
                "contentLocation": item.location,
                "instance": instance,
            },
            "timestamp": now,
            "created": now,
            "updated": now,
            "read": False,
            "count": 1,
        }
        for member in members:
            await self._store.write(f"users/{member}/notifications/{uuid.uuid4().hex}", body)


# ---------------------------------------------------------------------------
# Fire-and-forget
# ---------------------------------------------------------------------------


def fire_and_forget(coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
    """Schedule *coro* on the running loop; exceptions are logged, never raised."""
    task = asyncio.ensure_future(coro)
    _background.add(task)

    def _done(t: asyncio.Task[Any]) -> None:
        _background.discard(t)
        if t.cancelled():
            return
        exc = t.exception()
        if exc is not None:
            logger.warning(
                "Background side effect failed: %s",
                exc,
                extra={"event": "side_effect_failed", "context": {"name": name}},
            )

    task.add_done_callback(_done)
    return task


async def wait_background() -> None:
    """Wait for every pending fire-and-forget task (used before the CLI exits)."""
    while _background:
        await asyncio.gather(*list(_background), return_exceptions=True)

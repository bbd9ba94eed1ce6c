"""Watcher subscriptions on a task, unique per ``(user_id, actor_kind)``."""

from __future__ import annotations

from typing import Any, Optional

from loguru import logger

from ..access import can_remove_watcher
from ..activity import ActivityLog
from ..domain.activity import WatcherPayload
from ..domain.identity import Actor, ActorKind, parse_actor_kind
from ..domain.models import Watcher
from ..errors import AccessDenied, InvalidState, NotFound, ValidationFailure
from ..tasks.store import TaskStore


def _kind(raw: Any) -> ActorKind:
    try:
        return parse_actor_kind(raw)
    except ValueError:
        raise ValidationFailure(
            "'actor_kind' must be Admin or Startup", details={"field": "actor_kind", "value": raw}
        ) from None


class WatcherManager:
    def __init__(self, store: TaskStore, activity: ActivityLog) -> None:
        self._store = store
        self._activity = activity

    def list(self, task_id: str, actor: Actor) -> list[Watcher]:
        task, _ = self._store.reading(task_id, actor)
        return list(task.watchers)

    def add(self, task_id: str, user_id: Optional[str], actor: Actor, actor_kind: Any = None) -> Watcher:
        """Subscribe *user_id* (the caller when omitted) to the task."""
        target = (user_id or actor.id).strip()
        if not target:
            raise ValidationFailure("'user_id' is required", details={"field": "user_id"})
        kind = _kind(actor_kind) if actor_kind else (actor.kind if target == actor.id else ActorKind.ADMIN)
        with self._store.editing(task_id, actor, write=False) as (tx, task, _):
            if task.watcher(target, kind) is not None:
                raise InvalidState(
                    f"User {target} is already watching this task",
                    "ALREADY_WATCHING",
                    {"user_id": target, "actor_kind": kind.value},
                )
            watcher = Watcher(user_id=target, actor_kind=kind, added_by=actor.id)
            task.watchers.append(watcher)
            self._activity.append(task, "watcher_added", actor, WatcherPayload(user_id=target, actor_kind=kind.value))
            self._store.commit(tx, task)
        logger.info("{} {} now watching task {}", kind.value, target, task_id)
        return watcher

    def remove(self, task_id: str, user_id: str, actor: Actor, actor_kind: Any = None) -> None:
        kind = _kind(actor_kind) if actor_kind else None
        with self._store.editing(task_id, actor, write=False) as (tx, task, board):
            watcher = next(
                (w for w in task.watchers if w.user_id == user_id and (kind is None or w.actor_kind == kind)),
                None,
            )
            if watcher is None:
                raise NotFound(f"User {user_id} is not watching this task", "NOT_WATCHING", {"user_id": user_id})
            if not can_remove_watcher(watcher, task, board, actor):
                raise AccessDenied("You cannot remove this watcher", "WATCHER_REMOVE_DENIED")
            task.watchers.remove(watcher)
            self._activity.append(
                task,
                "watcher_removed",
                actor,
                WatcherPayload(user_id=watcher.user_id, actor_kind=watcher.actor_kind.value),
            )
            self._store.commit(tx, task)
        logger.info("{} stopped watching task {}", user_id, task_id)

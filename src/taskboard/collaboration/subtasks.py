"""Subtasks embedded in a task."""

from __future__ import annotations

from typing import Any, Optional

from loguru import logger

from ..activity import ActivityLog
from ..domain.activity import SubtaskPayload
from ..domain.identity import Actor
from ..domain.models import Subtask, SubtaskStatus, Task, now_iso, parse_iso
from ..errors import NotFound, ValidationFailure, require_choice, require_length
from ..tasks.store import TaskStore

SUBTASK_FIELDS = ("title", "description", "status", "assignee_id", "due_date")


def _due_date(raw: Any) -> Optional[str]:
    if raw in (None, ""):
        return None
    if parse_iso(str(raw)) is None:
        raise ValidationFailure("'due_date' must be an ISO date", details={"field": "due_date", "value": raw})
    return str(raw)


def _subtask(task: Task, subtask_id: str) -> Subtask:
    subtask = task.subtask(subtask_id)
    if subtask is None:
        raise NotFound(f"Subtask {subtask_id} not found", "SUBTASK_NOT_FOUND", {"subtask_id": subtask_id})
    return subtask


class SubtaskManager:
    def __init__(self, store: TaskStore, activity: ActivityLog) -> None:
        self._store = store
        self._activity = activity

    def list(self, task_id: str, actor: Actor) -> list[Subtask]:
        task, _ = self._store.reading(task_id, actor)
        return list(task.subtasks)

    def add(
        self,
        task_id: str,
        title: str,
        actor: Actor,
        description: str = "",
        assignee_id: Optional[str] = None,
        due_date: Optional[str] = None,
    ) -> Subtask:
        subtask = Subtask(
            title=require_length("title", title, 3, 200),
            description=require_length("description", description or "", 0, 1000),
            assignee_id=assignee_id or None,
            due_date=_due_date(due_date),
            created_by=actor.id,
        )
        with self._store.editing(task_id, actor) as (tx, task, _):
            task.subtasks.append(subtask)
            self._activity.append(
                task, "subtask_added", actor, SubtaskPayload(subtask_id=subtask.id, title=subtask.title)
            )
            self._store.commit(tx, task)
        logger.info("Subtask {} added to task {}", subtask.id, task_id)
        return subtask

    def update(self, task_id: str, subtask_id: str, changes: dict[str, Any], actor: Actor) -> Subtask:
        """Apply field changes; entering ``completed`` stamps ``completed_at``
        and leaving it clears the stamp."""
        unknown = sorted(set(changes) - set(SUBTASK_FIELDS))
        if unknown:
            raise ValidationFailure(f"Unsupported fields: {', '.join(unknown)}", details={"fields": unknown})

        with self._store.editing(task_id, actor) as (tx, task, _):
            subtask = _subtask(task, subtask_id)
            changed: list[str] = []
            if "title" in changes:
                title = require_length("title", changes["title"], 3, 200)
                if title != subtask.title:
                    subtask.title = title
                    changed.append("title")
            if "description" in changes:
                description = require_length("description", changes["description"] or "", 0, 1000)
                if description != subtask.description:
                    subtask.description = description
                    changed.append("description")
            if "assignee_id" in changes and (changes["assignee_id"] or None) != subtask.assignee_id:
                subtask.assignee_id = changes["assignee_id"] or None
                changed.append("assignee_id")
            if "due_date" in changes:
                due = _due_date(changes["due_date"])
                if due != subtask.due_date:
                    subtask.due_date = due
                    changed.append("due_date")
            if "status" in changes:
                status = require_choice("status", SubtaskStatus, changes["status"])
                if status != subtask.status:
                    if status == SubtaskStatus.COMPLETED:
                        subtask.completed_at = now_iso()
                    elif subtask.status == SubtaskStatus.COMPLETED:
                        subtask.completed_at = None
                    subtask.status = status
                    changed.append("status")

            if not changed:
                return subtask
            self._activity.append(
                task,
                "subtask_updated",
                actor,
                SubtaskPayload(subtask_id=subtask.id, title=subtask.title, changes=tuple(changed)),
            )
            self._store.commit(tx, task)
        return subtask

    def delete(self, task_id: str, subtask_id: str, actor: Actor) -> None:
        with self._store.editing(task_id, actor) as (tx, task, _):
            subtask = _subtask(task, subtask_id)
            task.subtasks.remove(subtask)
            self._activity.append(
                task, "subtask_deleted", actor, SubtaskPayload(subtask_id=subtask.id, title=subtask.title)
            )
            self._store.commit(tx, task)
        logger.info("Subtask {} deleted from task {}", subtask_id, task_id)

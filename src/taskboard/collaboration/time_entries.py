"""Time tracking entries and the task's ``actual_hours`` total."""

from __future__ import annotations

from typing import Any, Optional

from loguru import logger

from ..access import can_delete_time_entry
from ..activity import ActivityLog
from ..domain.activity import TimeEntryPayload
from ..domain.identity import Actor
from ..domain.models import Task, TimeEntry, now_iso, parse_iso
from ..errors import AccessDenied, NotFound, ValidationFailure, require_length
from ..tasks.store import TaskStore

MAX_HOURS_PER_ENTRY = 24.0


def _hours(raw: Any) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValidationFailure("'hours' must be a number", details={"field": "hours"}) from None
    if not 0 < value <= MAX_HOURS_PER_ENTRY:
        raise ValidationFailure(
            f"'hours' must be greater than 0 and at most {MAX_HOURS_PER_ENTRY:g}",
            details={"field": "hours", "value": value},
        )
    return value


def recompute_actual_hours(task: Task) -> float:
    # Always summed from scratch so the total cannot drift.
    task.actual_hours = sum(e.hours for e in task.time_entries)
    return task.actual_hours


class TimeEntryManager:
    def __init__(self, store: TaskStore, activity: ActivityLog) -> None:
        self._store = store
        self._activity = activity

    def list(self, task_id: str, actor: Actor) -> dict[str, Any]:
        task, _ = self._store.reading(task_id, actor)
        entries = sorted(task.time_entries, key=lambda e: e.log_date, reverse=True)
        return {"entries": entries, "total_hours": task.actual_hours}

    def add(
        self,
        task_id: str,
        hours: Any,
        description: str,
        actor: Actor,
        log_date: Optional[str] = None,
    ) -> TimeEntry:
        entry = TimeEntry(
            hours=_hours(hours),
            description=require_length("description", description, 3, 500),
            logged_by=actor.id,
        )
        if log_date:
            if parse_iso(str(log_date)) is None:
                raise ValidationFailure("'log_date' must be an ISO date", details={"field": "log_date"})
            entry.log_date = str(log_date)
        else:
            entry.log_date = now_iso()

        with self._store.editing(task_id, actor) as (tx, task, _):
            task.time_entries.append(entry)
            total = recompute_actual_hours(task)
            self._activity.append(
                task, "time_logged", actor, TimeEntryPayload(entry_id=entry.id, hours=entry.hours, total_hours=total)
            )
            self._store.commit(tx, task)
        logger.info("Logged {}h on task {} (total {}h)", entry.hours, task_id, total)
        return entry

    def delete(self, task_id: str, entry_id: str, actor: Actor) -> float:
        """Remove an entry and return the recomputed total."""
        with self._store.editing(task_id, actor) as (tx, task, board):
            entry = task.time_entry(entry_id)
            if entry is None:
                raise NotFound(f"Time entry {entry_id} not found", "TIME_ENTRY_NOT_FOUND", {"entry_id": entry_id})
            if not can_delete_time_entry(entry, board, actor):
                raise AccessDenied("You can only delete your own time entries", "TIME_ENTRY_DELETE_DENIED")
            task.time_entries.remove(entry)
            total = recompute_actual_hours(task)
            self._activity.append(
                task,
                "time_entry_deleted",
                actor,
                TimeEntryPayload(entry_id=entry.id, hours=entry.hours, total_hours=total),
            )
            self._store.commit(tx, task)
        logger.info("Deleted time entry {} from task {} (total {}h)", entry_id, task_id, total)
        return total

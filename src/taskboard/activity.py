"""Append-only activity history attached to each task."""

from __future__ import annotations

from typing import Optional

from .domain.activity import ACTION_PAYLOADS, ActivityEntry, _Payload
from .domain.identity import Actor
from .domain.models import Task, now_iso


class ActivityLog:
    """Writes :class:`ActivityEntry` records onto a task.

    Entries are frozen once appended.  ``seq`` increases by one per task and
    breaks ties between entries sharing a timestamp.
    """

    def append(self, task: Task, action: str, actor: Actor, payload: _Payload) -> ActivityEntry:
        expected = ACTION_PAYLOADS.get(action)
        if expected is None:
            raise ValueError(f"Unknown activity action '{action}'")
        if not isinstance(payload, expected):
            raise TypeError(
                f"Action '{action}' requires {expected.__name__}, got {type(payload).__name__}"
            )
        previous = self.latest(task)
        entry = ActivityEntry(
            seq=previous.seq + 1 if previous else 1,
            action=action,
            actor=actor.ref,
            timestamp=now_iso(),
            payload=payload,
        )
        task.activity.append(entry)
        return entry

    def entries(self, task: Task, action: Optional[str] = None) -> list[ActivityEntry]:
        ordered = sorted(task.activity, key=lambda e: (e.timestamp, e.seq))
        if action is None:
            return ordered
        return [e for e in ordered if e.action == action]

    def latest(self, task: Task) -> Optional[ActivityEntry]:
        return task.activity[-1] if task.activity else None

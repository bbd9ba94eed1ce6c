"""Typed activity-log entries.

Every action kind has exactly one payload dataclass; :data:`ACTION_PAYLOADS`
is the closed registry used both to validate appends and to rehydrate
entries from storage.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, ClassVar, Optional

from .identity import ActorRef


def _key(name: str) -> str:
    # ``from_`` is stored as ``from``.
    return name.rstrip("_")


@dataclass(frozen=True)
class _Payload:
    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, _Payload):
                value = value.to_dict()
            elif isinstance(value, tuple):
                value = list(value)
            out[_key(f.name)] = value
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "_Payload":
        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            key = _key(f.name)
            if key not in data:
                continue
            value = data[key]
            if isinstance(value, list):
                value = tuple(value)
            kwargs[f.name] = value
        return cls(**kwargs)


@dataclass(frozen=True)
class Placement(_Payload):
    column_id: str = ""
    position: int = 0


@dataclass(frozen=True)
class CreatedPayload(_Payload):
    column_id: str = ""
    position: int = 0


@dataclass(frozen=True)
class MovedPayload(_Payload):
    from_: Placement = Placement()
    to: Placement = Placement()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MovedPayload":
        return cls(
            from_=Placement.from_dict(dict(data.get("from") or {})),
            to=Placement.from_dict(dict(data.get("to") or {})),
        )


@dataclass(frozen=True)
class AssignedPayload(_Payload):
    from_: Optional[str] = None
    to: Optional[str] = None
    watcher_added: bool = False


@dataclass(frozen=True)
class StatusChangedPayload(_Payload):
    from_: str = ""
    to: str = ""


@dataclass(frozen=True)
class ChecklistUpdatedPayload(_Payload):
    completed: int = 0
    total: int = 0
    percentage: int = 0
    # Set when reaching 100% pushed the task into ``done``.
    status_from: Optional[str] = None
    status_to: Optional[str] = None


@dataclass(frozen=True)
class FieldsUpdatedPayload(_Payload):
    fields: tuple[str, ...] = ()


@dataclass(frozen=True)
class ArchivedPayload(_Payload):
    column_id: str = ""
    position: int = 0


@dataclass(frozen=True)
class DependencyPayload(_Payload):
    task_id: str = ""
    kind: str = ""


@dataclass(frozen=True)
class CommentPayload(_Payload):
    comment_id: str = ""
    is_internal: bool = False
    watchers_added: tuple[str, ...] = ()


@dataclass(frozen=True)
class SubtaskPayload(_Payload):
    subtask_id: str = ""
    title: str = ""
    changes: tuple[str, ...] = ()


@dataclass(frozen=True)
class TimeEntryPayload(_Payload):
    entry_id: str = ""
    hours: float = 0.0
    total_hours: float = 0.0


@dataclass(frozen=True)
class WatcherPayload(_Payload):
    user_id: str = ""
    actor_kind: str = ""


@dataclass(frozen=True)
class AttachmentPayload(_Payload):
    attachment_id: str = ""
    file_name: str = ""
    url: str = ""


ACTION_PAYLOADS: dict[str, type[_Payload]] = {
    "created": CreatedPayload,
    "moved": MovedPayload,
    "assigned": AssignedPayload,
    "unassigned": AssignedPayload,
    "status_changed": StatusChangedPayload,
    "checklist_updated": ChecklistUpdatedPayload,
    "updated": FieldsUpdatedPayload,
    "archived": ArchivedPayload,
    "dependency_added": DependencyPayload,
    "dependency_removed": DependencyPayload,
    "commented": CommentPayload,
    "comment_edited": CommentPayload,
    "comment_deleted": CommentPayload,
    "subtask_added": SubtaskPayload,
    "subtask_updated": SubtaskPayload,
    "subtask_deleted": SubtaskPayload,
    "time_logged": TimeEntryPayload,
    "time_entry_deleted": TimeEntryPayload,
    "watcher_added": WatcherPayload,
    "watcher_removed": WatcherPayload,
    "attachment_added": AttachmentPayload,
}


@dataclass(frozen=True)
class ActivityEntry:
    """One immutable line of a task's history."""

    ACTIONS: ClassVar[frozenset[str]] = frozenset(ACTION_PAYLOADS)

    seq: int
    action: str
    actor: ActorRef
    timestamp: str
    payload: _Payload

    def to_dict(self) -> dict[str, Any]:
        return {
            "seq": self.seq,
            "action": self.action,
            "actor": self.actor.to_dict(),
            "timestamp": self.timestamp,
            "payload": self.payload.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActivityEntry":
        action = str(data.get("action") or "")
        payload_cls = ACTION_PAYLOADS.get(action)
        if payload_cls is None:
            raise ValueError(f"Unknown activity action '{action}'")
        return cls(
            seq=int(data.get("seq") or 0),
            action=action,
            actor=ActorRef.from_dict(dict(data.get("actor") or {})),
            timestamp=str(data.get("timestamp") or ""),
            payload=payload_cls.from_dict(dict(data.get("payload") or {})),
        )

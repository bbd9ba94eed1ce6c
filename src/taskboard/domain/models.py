"""Board and task aggregates.

A :class:`Task` is an aggregate root: comments, subtasks, time entries,
attachments, watchers and the activity log are owned by value and addressed
by ids that are stable within the parent.  Everything serializes to plain
dicts for YAML persistence.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

from .activity import ActivityEntry
from .identity import ActorKind, ActorRef, parse_actor_kind


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Visibility(str, Enum):
    PRIVATE = "private"
    TEAM = "team"
    PUBLIC = "public"


class MemberRole(str, Enum):
    VIEWER = "viewer"
    MEMBER = "member"
    ADMIN = "admin"


class ColumnType(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"
    BLOCKED = "blocked"
    CUSTOM = "custom"


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"
    BLOCKED = "blocked"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TaskType(str, Enum):
    DEVELOPMENT = "development"
    DESIGN = "design"
    RESEARCH = "research"
    TESTING = "testing"
    BUG = "bug"
    FEATURE = "feature"
    DOCUMENTATION = "documentation"
    MEETING = "meeting"
    MILESTONE = "milestone"
    REVIEW = "review"


class DependencyKind(str, Enum):
    BLOCKS = "blocks"
    BLOCKED_BY = "blocked_by"
    RELATES_TO = "relates_to"
    DUPLICATES = "duplicates"


class SubtaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}"


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO date or datetime; naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        try:
            d = date.fromisoformat(str(value))
        except ValueError:
            return None
        parsed = datetime(d.year, d.month, d.day)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _enum(enum_cls: type[Enum], raw: Any, default: Enum) -> Any:
    if raw is None:
        return default
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw))
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Board
# ---------------------------------------------------------------------------

@dataclass
class Column:
    id: str = field(default_factory=lambda: new_id("col"))
    name: str = ""
    position: int = 0
    wip_limit: int = 0  # 0 = no limit
    column_type: ColumnType = ColumnType.CUSTOM
    color: str = "#3b82f6"
    created_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "position": self.position,
            "wip_limit": self.wip_limit,
            "column_type": self.column_type.value,
            "color": self.color,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Column":
        return cls(
            id=str(data.get("id") or new_id("col")),
            name=str(data.get("name") or ""),
            position=int(data.get("position") or 0),
            wip_limit=int(data.get("wip_limit") or 0),
            column_type=_enum(ColumnType, data.get("column_type"), ColumnType.CUSTOM),
            color=str(data.get("color") or "#3b82f6"),
            created_at=str(data.get("created_at") or now_iso()),
        )


@dataclass
class Member:
    user_id: str
    role: MemberRole = MemberRole.MEMBER
    added_at: str = field(default_factory=now_iso)
    added_by: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "role": self.role.value,
            "added_at": self.added_at,
            "added_by": self.added_by,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Member":
        return cls(
            user_id=str(data.get("user_id") or ""),
            role=_enum(MemberRole, data.get("role"), MemberRole.VIEWER),
            added_at=str(data.get("added_at") or now_iso()),
            added_by=data.get("added_by"),
        )


@dataclass
class Board:
    id: str = field(default_factory=lambda: new_id("board"))
    name: str = ""
    description: str = ""
    columns: list[Column] = field(default_factory=list)
    visibility: Visibility = Visibility.PRIVATE
    members: list[Member] = field(default_factory=list)
    created_by: str = ""
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    def column(self, column_id: str) -> Optional[Column]:
        for col in self.columns:
            if col.id == column_id:
                return col
        return None

    def member(self, user_id: str) -> Optional[Member]:
        for m in self.members:
            if m.user_id == user_id:
                return m
        return None

    def ordered_columns(self) -> list[Column]:
        return sorted(self.columns, key=lambda c: c.position)

    def touch(self) -> None:
        self.updated_at = now_iso()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "columns": [c.to_dict() for c in self.ordered_columns()],
            "visibility": self.visibility.value,
            "members": [m.to_dict() for m in self.members],
            "created_by": self.created_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Board":
        return cls(
            id=str(data.get("id") or new_id("board")),
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            columns=[Column.from_dict(c) for c in list(data.get("columns") or []) if isinstance(c, dict)],
            visibility=_enum(Visibility, data.get("visibility"), Visibility.PRIVATE),
            members=[Member.from_dict(m) for m in list(data.get("members") or []) if isinstance(m, dict)],
            created_by=str(data.get("created_by") or ""),
            created_at=str(data.get("created_at") or now_iso()),
            updated_at=str(data.get("updated_at") or now_iso()),
        )


# ---------------------------------------------------------------------------
# Task children
# ---------------------------------------------------------------------------

@dataclass
class ChecklistItem:
    id: str = field(default_factory=lambda: new_id("chk"))
    text: str = ""
    completed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text, "completed": self.completed}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChecklistItem":
        return cls(
            id=str(data.get("id") or new_id("chk")),
            text=str(data.get("text") or ""),
            completed=bool(data.get("completed", False)),
        )


@dataclass
class Progress:
    percentage: int = 0
    checklist_items: list[ChecklistItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "percentage": self.percentage,
            "checklist_items": [i.to_dict() for i in self.checklist_items],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Progress":
        return cls(
            percentage=int(data.get("percentage") or 0),
            checklist_items=[
                ChecklistItem.from_dict(i) for i in list(data.get("checklist_items") or []) if isinstance(i, dict)
            ],
        )


@dataclass
class Dependency:
    task_id: str
    kind: DependencyKind = DependencyKind.RELATES_TO

    def to_dict(self) -> dict[str, Any]:
        return {"task_id": self.task_id, "kind": self.kind.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Dependency":
        return cls(
            task_id=str(data.get("task_id") or ""),
            kind=_enum(DependencyKind, data.get("kind"), DependencyKind.RELATES_TO),
        )


@dataclass
class Comment:
    author: ActorRef
    content: str
    id: str = field(default_factory=lambda: new_id("cmt"))
    is_internal: bool = False
    mentions: list[str] = field(default_factory=list)
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)
    is_edited: bool = False
    edited_by: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "author": self.author.to_dict(),
            "content": self.content,
            "is_internal": self.is_internal,
            "mentions": list(self.mentions),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "is_edited": self.is_edited,
            "edited_by": self.edited_by,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Comment":
        return cls(
            id=str(data.get("id") or new_id("cmt")),
            author=ActorRef.from_dict(dict(data.get("author") or {})),
            content=str(data.get("content") or ""),
            is_internal=bool(data.get("is_internal", False)),
            mentions=[str(m) for m in list(data.get("mentions") or [])],
            created_at=str(data.get("created_at") or now_iso()),
            updated_at=str(data.get("updated_at") or now_iso()),
            is_edited=bool(data.get("is_edited", False)),
            edited_by=data.get("edited_by"),
        )


@dataclass
class Subtask:
    title: str
    created_by: str
    id: str = field(default_factory=lambda: new_id("sub"))
    description: str = ""
    status: SubtaskStatus = SubtaskStatus.TODO
    assignee_id: Optional[str] = None
    due_date: Optional[str] = None
    created_at: str = field(default_factory=now_iso)
    completed_at: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "assignee_id": self.assignee_id,
            "due_date": self.due_date,
            "created_by": self.created_by,
            "created_at": self.created_at,
            "completed_at": self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Subtask":
        return cls(
            id=str(data.get("id") or new_id("sub")),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            status=_enum(SubtaskStatus, data.get("status"), SubtaskStatus.TODO),
            assignee_id=data.get("assignee_id"),
            due_date=data.get("due_date"),
            created_by=str(data.get("created_by") or ""),
            created_at=str(data.get("created_at") or now_iso()),
            completed_at=data.get("completed_at"),
        )


@dataclass
class TimeEntry:
    hours: float
    description: str
    logged_by: str
    id: str = field(default_factory=lambda: new_id("time"))
    log_date: str = field(default_factory=now_iso)
    logged_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "hours": self.hours,
            "description": self.description,
            "log_date": self.log_date,
            "logged_by": self.logged_by,
            "logged_at": self.logged_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimeEntry":
        return cls(
            id=str(data.get("id") or new_id("time")),
            hours=float(data.get("hours") or 0.0),
            description=str(data.get("description") or ""),
            log_date=str(data.get("log_date") or now_iso()),
            logged_by=str(data.get("logged_by") or ""),
            logged_at=str(data.get("logged_at") or now_iso()),
        )


@dataclass
class Watcher:
    user_id: str
    actor_kind: ActorKind = ActorKind.ADMIN
    added_at: str = field(default_factory=now_iso)
    added_by: Optional[str] = None

    @property
    def key(self) -> tuple[str, ActorKind]:
        return (self.user_id, self.actor_kind)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "actor_kind": self.actor_kind.value,
            "added_at": self.added_at,
            "added_by": self.added_by,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Watcher":
        return cls(
            user_id=str(data.get("user_id") or ""),
            actor_kind=parse_actor_kind(data.get("actor_kind")),
            added_at=str(data.get("added_at") or now_iso()),
            added_by=data.get("added_by"),
        )


@dataclass
class Attachment:
    file_name: str
    url: str
    uploaded_by: ActorRef
    id: str = field(default_factory=lambda: new_id("att"))
    size: int = 0
    mime_type: str = "application/octet-stream"
    uploaded_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "file_name": self.file_name,
            "url": self.url,
            "size": self.size,
            "mime_type": self.mime_type,
            "uploaded_by": self.uploaded_by.to_dict(),
            "uploaded_at": self.uploaded_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Attachment":
        return cls(
            id=str(data.get("id") or new_id("att")),
            file_name=str(data.get("file_name") or ""),
            url=str(data.get("url") or ""),
            size=int(data.get("size") or 0),
            mime_type=str(data.get("mime_type") or "application/octet-stream"),
            uploaded_by=ActorRef.from_dict(dict(data.get("uploaded_by") or {})),
            uploaded_at=str(data.get("uploaded_at") or now_iso()),
        )


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------

@dataclass
class Task:
    """A work item placed at ``position`` within ``(board_id, column_id)``."""

    board_id: str
    column_id: str
    created_by: ActorRef
    id: str = field(default_factory=lambda: new_id("task"))
    title: str = ""
    description: str = ""
    task_type: TaskType = TaskType.FEATURE
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee_id: Optional[str] = None
    sprint_id: Optional[str] = None
    position: int = 0

    due_date: Optional[str] = None
    estimated_hours: Optional[float] = None
    actual_hours: float = 0.0
    progress: Progress = field(default_factory=Progress)
    tags: list[str] = field(default_factory=list)
    dependencies: list[Dependency] = field(default_factory=list)

    comments: list[Comment] = field(default_factory=list)
    subtasks: list[Subtask] = field(default_factory=list)
    time_entries: list[TimeEntry] = field(default_factory=list)
    attachments: list[Attachment] = field(default_factory=list)
    watchers: list[Watcher] = field(default_factory=list)
    activity: list[ActivityEntry] = field(default_factory=list)

    is_archived: bool = False
    archived_at: Optional[str] = None
    archived_by: Optional[str] = None
    completed_at: Optional[str] = None
    completed_by: Optional[str] = None
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    # ------------------------------------------------------------------
    # Child lookups
    # ------------------------------------------------------------------

    def comment(self, comment_id: str) -> Optional[Comment]:
        return next((c for c in self.comments if c.id == comment_id), None)

    def subtask(self, subtask_id: str) -> Optional[Subtask]:
        return next((s for s in self.subtasks if s.id == subtask_id), None)

    def time_entry(self, entry_id: str) -> Optional[TimeEntry]:
        return next((e for e in self.time_entries if e.id == entry_id), None)

    def watcher(self, user_id: str, actor_kind: ActorKind) -> Optional[Watcher]:
        return next((w for w in self.watchers if w.key == (user_id, actor_kind)), None)

    def touch(self) -> None:
        self.updated_at = now_iso()

    # ------------------------------------------------------------------
    # Derived, read-time values
    # ------------------------------------------------------------------

    @property
    def is_overdue(self) -> bool:
        due = parse_iso(self.due_date)
        return bool(due and due < datetime.now(timezone.utc) and self.status != TaskStatus.DONE)

    @property
    def days_until_due(self) -> Optional[int]:
        due = parse_iso(self.due_date)
        if due is None:
            return None
        delta = due - datetime.now(timezone.utc)
        return math.ceil(delta.total_seconds() / 86400)

    @property
    def checklist_completion(self) -> Optional[int]:
        items = self.progress.checklist_items
        if not items:
            return None
        done = sum(1 for i in items if i.completed)
        return round(done / len(items) * 100)

    @property
    def workload_percentage(self) -> Optional[int]:
        if not self.estimated_hours:
            return None
        return round(self.actual_hours / self.estimated_hours * 100)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "task_type": self.task_type.value,
            "status": self.status.value,
            "priority": self.priority.value,
            "assignee_id": self.assignee_id,
            "created_by": self.created_by.to_dict(),
            "board_id": self.board_id,
            "column_id": self.column_id,
            "sprint_id": self.sprint_id,
            "position": self.position,
            "due_date": self.due_date,
            "estimated_hours": self.estimated_hours,
            "actual_hours": self.actual_hours,
            "progress": self.progress.to_dict(),
            "tags": list(self.tags),
            "dependencies": [d.to_dict() for d in self.dependencies],
            "comments": [c.to_dict() for c in self.comments],
            "subtasks": [s.to_dict() for s in self.subtasks],
            "time_entries": [e.to_dict() for e in self.time_entries],
            "attachments": [a.to_dict() for a in self.attachments],
            "watchers": [w.to_dict() for w in self.watchers],
            "activity": [e.to_dict() for e in self.activity],
            "is_archived": self.is_archived,
            "archived_at": self.archived_at,
            "archived_by": self.archived_by,
            "completed_at": self.completed_at,
            "completed_by": self.completed_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def to_view(self) -> dict[str, Any]:
        """Serialized form plus derived accessors, for API responses."""
        data = self.to_dict()
        data["is_overdue"] = self.is_overdue
        data["days_until_due"] = self.days_until_due
        data["checklist_completion"] = self.checklist_completion
        data["workload_percentage"] = self.workload_percentage
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        def _items(key: str) -> list[dict[str, Any]]:
            return [i for i in list(data.get(key) or []) if isinstance(i, dict)]

        estimated = data.get("estimated_hours")
        return cls(
            id=str(data.get("id") or new_id("task")),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            task_type=_enum(TaskType, data.get("task_type"), TaskType.FEATURE),
            status=_enum(TaskStatus, data.get("status"), TaskStatus.TODO),
            priority=_enum(TaskPriority, data.get("priority"), TaskPriority.MEDIUM),
            assignee_id=data.get("assignee_id"),
            created_by=ActorRef.from_dict(dict(data.get("created_by") or {})),
            board_id=str(data.get("board_id") or ""),
            column_id=str(data.get("column_id") or ""),
            sprint_id=data.get("sprint_id"),
            position=int(data.get("position") or 0),
            due_date=data.get("due_date"),
            estimated_hours=float(estimated) if estimated is not None else None,
            actual_hours=float(data.get("actual_hours") or 0.0),
            progress=Progress.from_dict(dict(data.get("progress") or {})),
            tags=[str(t) for t in list(data.get("tags") or [])],
            dependencies=[Dependency.from_dict(d) for d in _items("dependencies")],
            comments=[Comment.from_dict(c) for c in _items("comments")],
            subtasks=[Subtask.from_dict(s) for s in _items("subtasks")],
            time_entries=[TimeEntry.from_dict(e) for e in _items("time_entries")],
            attachments=[Attachment.from_dict(a) for a in _items("attachments")],
            watchers=[Watcher.from_dict(w) for w in _items("watchers")],
            activity=[ActivityEntry.from_dict(e) for e in _items("activity")],
            is_archived=bool(data.get("is_archived", False)),
            archived_at=data.get("archived_at"),
            archived_by=data.get("archived_by"),
            completed_at=data.get("completed_at"),
            completed_by=data.get("completed_by"),
            created_at=str(data.get("created_at") or now_iso()),
            updated_at=str(data.get("updated_at") or now_iso()),
        )

"""Task store: placement, lifecycle transitions and reads for tasks.

Positions of active tasks within each ``(board_id, column_id)`` pair form a
dense ``0..k-1`` sequence.  Every operation that touches positions runs under
:class:`~taskboard.tasks.locking.ColumnLocks` and inside one repository
transaction, so a failure anywhere leaves the stored columns untouched.

Archiving compacts the source column eagerly: tasks after the archived slot
shift down by one.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any, Iterable, Iterator, Optional

from loguru import logger

from ..access import can_see_internal_comments, require_create, require_read, require_write
from ..activity import ActivityLog
from ..boards.registry import BoardRegistry
from ..domain.activity import (
    ArchivedPayload,
    AssignedPayload,
    ChecklistUpdatedPayload,
    CreatedPayload,
    DependencyPayload,
    FieldsUpdatedPayload,
    MovedPayload,
    Placement,
    StatusChangedPayload,
)
from ..domain.identity import Actor
from ..domain.models import (
    Board,
    ChecklistItem,
    Dependency,
    DependencyKind,
    Task,
    TaskPriority,
    TaskStatus,
    TaskType,
    Watcher,
    now_iso,
    parse_iso,
)
from ..errors import (
    ConcurrencyConflict,
    InvalidState,
    NotFound,
    ValidationFailure,
    require_choice,
    require_length,
    task_not_found,
)
from ..storage.interfaces import CollectionTx, TaskRepository
from .locking import ColumnLocks

# Fields accepted by ``update_fields``.
EDITABLE_FIELDS = (
    "title",
    "description",
    "priority",
    "task_type",
    "due_date",
    "estimated_hours",
    "tags",
    "sprint_id",
    "progress",
)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _position(raw: Any) -> Optional[int]:
    if raw is None:
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationFailure("'position' must be an integer", details={"field": "position"}) from None
    if value < 0:
        raise ValidationFailure("'position' must be >= 0", details={"field": "position", "value": value})
    return value


def _hours(raw: Any) -> Optional[float]:
    if raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValidationFailure("'estimated_hours' must be a number", details={"field": "estimated_hours"}) from None
    if not 0 <= value <= 1000:
        raise ValidationFailure("'estimated_hours' must be between 0 and 1000", details={"field": "estimated_hours"})
    return value


def _due_date(raw: Any) -> Optional[str]:
    if raw in (None, ""):
        return None
    if parse_iso(str(raw)) is None:
        raise ValidationFailure("'due_date' must be an ISO date", details={"field": "due_date", "value": raw})
    return str(raw)


def _tags(raw: Optional[Iterable[Any]]) -> list[str]:
    tags: list[str] = []
    for tag in raw or []:
        name = tag.get("name") if isinstance(tag, dict) else tag
        text = str(name or "").strip()
        if text and text not in tags:
            tags.append(text)
    return tags


def _checklist(items: Iterable[Any]) -> list[ChecklistItem]:
    parsed: list[ChecklistItem] = []
    for raw in items:
        if isinstance(raw, ChecklistItem):
            parsed.append(raw)
            continue
        if not isinstance(raw, dict):
            raise ValidationFailure("Checklist items must be objects", details={"field": "items"})
        item = ChecklistItem(
            text=require_length("text", str(raw.get("text") or ""), 1, 500),
            completed=bool(raw.get("completed", False)),
        )
        if raw.get("id"):
            item.id = str(raw["id"])
        parsed.append(item)
    if len({i.id for i in parsed}) != len(parsed):
        raise ValidationFailure("Checklist item ids must be unique", details={"field": "items"})
    return parsed


# Sort keys accepted by ``list_tasks``.
SORT_FIELDS = ("position", "created_at", "updated_at", "due_date", "priority", "title")

PRIORITY_RANK = {p: i for i, p in enumerate(TaskPriority)}


def _due_day(raw: str) -> datetime:
    parsed = parse_iso(raw)
    if parsed is None:
        raise ValidationFailure("'due_date' must be an ISO date", details={"field": "due_date", "value": raw})
    return parsed.replace(hour=0, minute=0, second=0, microsecond=0)


def _sort_value(task: Task, field: str) -> Any:
    if field == "priority":
        return PRIORITY_RANK[task.priority]
    if field == "due_date":
        return parse_iso(task.due_date)
    if field == "title":
        return task.title.lower()
    return getattr(task, field)


def paginate(items: list[Any], page: int, limit: int) -> tuple[list[Any], dict[str, int]]:
    """Slice *items* for a 1-based *page* of *limit* entries."""
    if page < 1:
        raise ValidationFailure("'page' must be >= 1", details={"field": "page"})
    if limit < 1:
        raise ValidationFailure("'limit' must be >= 1", details={"field": "limit"})
    start = (page - 1) * limit
    meta = {"page": page, "limit": limit, "pages": -(-len(items) // limit), "total": len(items)}
    return items[start:start + limit], meta


class TaskStore:
    """Own task records and their placement on boards."""

    def __init__(
        self,
        repo: TaskRepository,
        boards: BoardRegistry,
        activity: ActivityLog,
        locks: ColumnLocks,
    ) -> None:
        self._repo = repo
        self._boards = boards
        self._activity = activity
        self._locks = locks

    # ------------------------------------------------------------------
    # Shared plumbing (also used by the sub-resource managers)
    # ------------------------------------------------------------------

    def _board_for(self, task_id: str) -> tuple[Task, Board]:
        task = self._repo.get(task_id)
        if task is None:
            raise task_not_found(task_id)
        return task, self._boards.get(task.board_id)

    @staticmethod
    def _load(tx: CollectionTx[Task], task_id: str) -> Task:
        task = tx.get(task_id)
        if task is None:
            raise task_not_found(task_id)
        return task

    @staticmethod
    def ensure_active(task: Task) -> None:
        if task.is_archived:
            raise InvalidState(f"Task {task.id} is archived", "TASK_ARCHIVED", {"task_id": task.id})

    @staticmethod
    def commit(tx: CollectionTx[Task], task: Task) -> None:
        task.touch()
        tx.mark_dirty()

    def reading(self, task_id: str, actor: Actor) -> tuple[Task, Board]:
        """Load a task and its board after checking read access."""
        task, board = self._board_for(task_id)
        require_read(board, actor, task)
        return task, board

    @contextmanager
    def editing(self, task_id: str, actor: Actor, *, write: bool = True) -> Iterator[tuple[CollectionTx[Task], Task, Board]]:
        """Open a transaction on an active task after an access check.

        With ``write=False`` only read access is required (comments and
        watchers).  Nothing is persisted unless the caller invokes
        :meth:`commit`.
        """
        _, board = self._board_for(task_id)
        with self._repo.transaction() as tx:
            task = self._load(tx, task_id)
            if write:
                require_write(task, board, actor)
            else:
                require_read(board, actor, task)
            self.ensure_active(task)
            yield tx, task, board

    @staticmethod
    def _active_in_column(tx: CollectionTx[Task], board_id: str, column_id: str) -> list[Task]:
        peers = [
            t for t in tx.list_all()
            if t.board_id == board_id and t.column_id == column_id and not t.is_archived
        ]
        return sorted(peers, key=lambda t: t.position)

    @staticmethod
    def _require_column(board: Board, column_id: str) -> None:
        if board.column(column_id) is None:
            raise InvalidState(
                f"Column {column_id} does not belong to board {board.id}",
                "INVALID_COLUMN",
                {"board_id": board.id, "column_id": column_id},
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, task_id: str, actor: Actor) -> Task:
        task, _ = self.reading(task_id, actor)
        return task

    def present(self, task: Task, board: Board, actor: Actor) -> dict[str, Any]:
        """Serialize *task* for *actor*, hiding internal comments when required."""
        view = task.to_view()
        if not can_see_internal_comments(board, actor):
            view["comments"] = [c.to_dict() for c in task.comments if not c.is_internal]
        return view

    def list_tasks(
        self,
        board_id: str,
        actor: Actor,
        *,
        column_id: Optional[str] = None,
        status: Optional[str] = None,
        assignee_id: Optional[str] = None,
        priority: Optional[str] = None,
        tag: Optional[str] = None,
        search: Optional[str] = None,
        due_date: Optional[str] = None,
        is_overdue: Optional[bool] = None,
        include_archived: bool = False,
        sort_by: str = "position",
        sort_order: str = "asc",
    ) -> list[Task]:
        """Filter a board's tasks and sort them.

        ``search`` matches title or description case-insensitively.
        ``due_date`` keeps tasks due on that calendar day (UTC).  The default
        ``position`` sort follows column order, then position.
        """
        board = self._boards.get_visible(board_id, actor)
        order = {c.id: c.position for c in board.columns}
        wanted_status = require_choice("status", TaskStatus, status) if status else None
        wanted_priority = require_choice("priority", TaskPriority, priority) if priority else None
        needle = search.strip().lower() if search else ""
        day = _due_day(due_date) if due_date else None
        if sort_by not in SORT_FIELDS:
            raise ValidationFailure(
                f"'sort_by' must be one of: {', '.join(SORT_FIELDS)}",
                details={"field": "sort_by", "value": sort_by},
            )
        if sort_order not in ("asc", "desc"):
            raise ValidationFailure("'sort_order' must be 'asc' or 'desc'", details={"field": "sort_order"})

        tasks: list[Task] = []
        for task in self._repo.list():
            if task.board_id != board_id:
                continue
            if task.is_archived and not include_archived:
                continue
            if column_id and task.column_id != column_id:
                continue
            if wanted_status and task.status != wanted_status:
                continue
            if assignee_id and task.assignee_id != assignee_id:
                continue
            if wanted_priority and task.priority != wanted_priority:
                continue
            if tag and tag not in task.tags:
                continue
            if needle and needle not in task.title.lower() and needle not in task.description.lower():
                continue
            if day is not None:
                due = parse_iso(task.due_date)
                if due is None or not day <= due < day + timedelta(days=1):
                    continue
            if is_overdue is not None and task.is_overdue != is_overdue:
                continue
            tasks.append(task)

        if sort_by == "position":
            tasks.sort(key=lambda t: (order.get(t.column_id, len(order)), t.is_archived, t.position))
            if sort_order == "desc":
                tasks.reverse()
            return tasks
        # Tasks without a value for the sort field always come last.
        present = [t for t in tasks if _sort_value(t, sort_by) is not None]
        missing = [t for t in tasks if _sort_value(t, sort_by) is None]
        present.sort(key=lambda t: _sort_value(t, sort_by), reverse=sort_order == "desc")
        return present + missing

    def board_view(self, board_id: str, actor: Actor) -> dict[str, Any]:
        """Columns in order, each with its active tasks and a WIP flag.

        The WIP limit is advisory: exceeding it is reported, never refused.
        """
        board = self._boards.get_visible(board_id, actor)
        by_column: dict[str, list[Task]] = {c.id: [] for c in board.columns}
        for task in self._repo.list():
            if task.board_id == board_id and not task.is_archived and task.column_id in by_column:
                by_column[task.column_id].append(task)

        columns = []
        for column in board.ordered_columns():
            tasks = sorted(by_column[column.id], key=lambda t: t.position)
            data = column.to_dict()
            data["tasks"] = [self.present(t, board, actor) for t in tasks]
            data["task_count"] = len(tasks)
            data["wip_exceeded"] = bool(column.wip_limit and len(tasks) > column.wip_limit)
            columns.append(data)
        return {"board": board.to_dict(), "columns": columns}

    def activity(self, task_id: str, actor: Actor, action: Optional[str] = None) -> list[dict[str, Any]]:
        task, _ = self.reading(task_id, actor)
        return [e.to_dict() for e in self._activity.entries(task, action)]

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(
        self,
        actor: Actor,
        board_id: str,
        column_id: str,
        title: str,
        description: str = "",
        task_type: str = "feature",
        priority: str = "medium",
        assignee_id: Optional[str] = None,
        sprint_id: Optional[str] = None,
        due_date: Optional[str] = None,
        estimated_hours: Optional[float] = None,
        tags: Optional[list[Any]] = None,
        position: Optional[int] = None,
    ) -> Task:
        """Create a task at the end of a column, or at *position* if given.

        An explicit position shifts the tasks at or after it up by one; a
        position past the end is clamped to the end.
        """
        board = self._boards.get(board_id)
        require_create(board, actor)
        self._require_column(board, column_id)
        insert_at = _position(position)

        task = Task(
            board_id=board_id,
            column_id=column_id,
            created_by=actor.ref,
            title=require_length("title", title, 1, 200),
            description=require_length("description", description or "", 0, 5000),
            task_type=require_choice("task_type", TaskType, task_type or TaskType.FEATURE),
            priority=require_choice("priority", TaskPriority, priority or TaskPriority.MEDIUM),
            assignee_id=assignee_id or None,
            sprint_id=sprint_id or None,
            due_date=_due_date(due_date),
            estimated_hours=_hours(estimated_hours),
            tags=_tags(tags),
        )
        task.watchers.append(Watcher(user_id=actor.id, actor_kind=actor.kind, added_by=actor.id))
        if task.assignee_id and task.assignee_id != actor.id:
            task.watchers.append(Watcher(user_id=task.assignee_id, added_by=actor.id))

        with self._locks.hold((board_id, column_id)):
            with self._repo.transaction() as tx:
                peers = self._active_in_column(tx, board_id, column_id)
                end = max((t.position for t in peers), default=-1) + 1
                if insert_at is None or insert_at >= end:
                    task.position = end
                else:
                    task.position = insert_at
                    for peer in peers:
                        if peer.position >= insert_at:
                            peer.position += 1
                tx.add(task)
                self._activity.append(task, "created", actor, CreatedPayload(column_id=column_id, position=task.position))
                tx.mark_dirty()

        logger.info("Created task {} on board {} column {} at {}", task.id, board_id, column_id, task.position)
        return task

    # ------------------------------------------------------------------
    # Move
    # ------------------------------------------------------------------

    def move(self, task_id: str, target_column_id: str, target_position: Optional[int], actor: Actor) -> Task:
        """Relocate a task, keeping every involved column dense.

        The task's current column is read before locking; if a concurrent
        move relocated it in the meantime the attempt is repeated with the
        fresh placement.
        """
        wanted = _position(target_position)
        snapshot, board = self._board_for(task_id)
        self._require_column(board, target_column_id)

        for _ in range(self._locks.settings.move_retries):
            source_column_id = snapshot.column_id
            keys = ((board.id, source_column_id), (board.id, target_column_id))
            with self._locks.hold(*keys):
                with self._repo.transaction() as tx:
                    task = self._load(tx, task_id)
                    if task.column_id != source_column_id:
                        snapshot = task
                        continue
                    require_write(task, board, actor)
                    self.ensure_active(task)
                    moved = self._reindex(tx, task, target_column_id, wanted)
                    if moved is None:
                        return task
                    self._activity.append(task, "moved", actor, moved)
                    self.commit(tx, task)
            logger.info(
                "Moved task {} from {}:{} to {}:{}",
                task_id,
                moved.from_.column_id,
                moved.from_.position,
                moved.to.column_id,
                moved.to.position,
            )
            return task

        raise ConcurrencyConflict(f"Task {task_id} kept moving; please retry", details={"task_id": task_id})

    def _reindex(
        self,
        tx: CollectionTx[Task],
        task: Task,
        target_column_id: str,
        wanted: Optional[int],
    ) -> Optional[MovedPayload]:
        old_column_id, old_position = task.column_id, task.position

        if target_column_id == old_column_id:
            peers = self._active_in_column(tx, task.board_id, old_column_id)
            last = len(peers) - 1
            target = last if wanted is None else min(wanted, last)
            if target == old_position:
                return None
            for peer in peers:
                if peer is task:
                    continue
                if target < old_position and target <= peer.position < old_position:
                    peer.position += 1
                elif target > old_position and old_position < peer.position <= target:
                    peer.position -= 1
            task.position = target
        else:
            for peer in self._active_in_column(tx, task.board_id, old_column_id):
                if peer is not task and peer.position > old_position:
                    peer.position -= 1
            dest = self._active_in_column(tx, task.board_id, target_column_id)
            target = len(dest) if wanted is None else min(wanted, len(dest))
            for peer in dest:
                if peer.position >= target:
                    peer.position += 1
            task.column_id = target_column_id
            task.position = target

        return MovedPayload(
            from_=Placement(column_id=old_column_id, position=old_position),
            to=Placement(column_id=task.column_id, position=task.position),
        )

    # ------------------------------------------------------------------
    # Field transitions
    # ------------------------------------------------------------------

    def _change_assignee(self, task: Task, assignee_id: Optional[str], actor: Actor) -> bool:
        previous = task.assignee_id
        if previous == assignee_id:
            return False
        task.assignee_id = assignee_id
        watcher_added = False
        if assignee_id and not any(w.user_id == assignee_id for w in task.watchers):
            task.watchers.append(Watcher(user_id=assignee_id, added_by=actor.id))
            watcher_added = True
        action = "assigned" if assignee_id else "unassigned"
        self._activity.append(
            task, action, actor, AssignedPayload(from_=previous, to=assignee_id, watcher_added=watcher_added)
        )
        logger.debug("Task {} {}: {} -> {}", task.id, action, previous, assignee_id)
        return True

    def assign_to(self, task_id: str, assignee_id: Optional[str], actor: Actor) -> Task:
        """Set or clear the assignee; a new assignee starts watching the task."""
        with self.editing(task_id, actor) as (tx, task, _):
            if self._change_assignee(task, assignee_id or None, actor):
                self.commit(tx, task)
                logger.info("Task {} assignee set to {}", task_id, task.assignee_id)
        return task

    @staticmethod
    def _apply_status(task: Task, status: TaskStatus, actor: Actor) -> None:
        was_done = task.status == TaskStatus.DONE
        task.status = status
        if status == TaskStatus.DONE:
            task.completed_at = now_iso()
            task.completed_by = actor.id
            task.progress.percentage = 100
        elif was_done:
            task.completed_at = None
            task.completed_by = None
            if task.checklist_completion is not None:
                task.progress.percentage = task.checklist_completion

    def _change_status(self, task: Task, status: TaskStatus, actor: Actor) -> bool:
        previous = task.status
        if previous == status:
            return False
        self._apply_status(task, status, actor)
        self._activity.append(task, "status_changed", actor, StatusChangedPayload(from_=previous.value, to=status.value))
        logger.debug("Task {} status {} -> {}", task.id, previous.value, status.value)
        return True

    def update_status(self, task_id: str, status: str, actor: Actor) -> Task:
        new_status = require_choice("status", TaskStatus, status)
        with self.editing(task_id, actor) as (tx, task, _):
            if self._change_status(task, new_status, actor):
                self.commit(tx, task)
                logger.info("Task {} status set to {}", task_id, new_status.value)
        return task

    def update_checklist(self, task_id: str, items: list[Any], actor: Actor) -> Task:
        """Replace the checklist and recompute progress from it.

        Reaching 100% moves the task to ``done``; dropping below 100% on a
        done task reopens it as ``in_progress``.  Both transitions are
        recorded in the single ``checklist_updated`` entry.
        """
        checklist = _checklist(items)
        with self.editing(task_id, actor) as (tx, task, _):
            task.progress.checklist_items = checklist
            completed = sum(1 for i in checklist if i.completed)
            status_from = status_to = None
            if checklist:
                task.progress.percentage = round(completed / len(checklist) * 100)
                target: Optional[TaskStatus] = None
                if task.progress.percentage == 100 and task.status != TaskStatus.DONE:
                    target = TaskStatus.DONE
                elif task.progress.percentage < 100 and task.status == TaskStatus.DONE:
                    target = TaskStatus.IN_PROGRESS
                if target is not None:
                    status_from, status_to = task.status.value, target.value
                    self._apply_status(task, target, actor)
            self._activity.append(
                task,
                "checklist_updated",
                actor,
                ChecklistUpdatedPayload(
                    completed=completed,
                    total=len(checklist),
                    percentage=task.progress.percentage,
                    status_from=status_from,
                    status_to=status_to,
                ),
            )
            self.commit(tx, task)
        logger.info("Task {} checklist {}/{} ({}%)", task_id, completed, len(checklist), task.progress.percentage)
        return task

    @staticmethod
    def _check_editable(changes: dict[str, Any]) -> None:
        unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationFailure(f"Unsupported fields: {', '.join(unknown)}", details={"fields": unknown})

    def _change_fields(self, task: Task, changes: dict[str, Any], actor: Actor) -> list[str]:
        changed: list[str] = []

        def _set(name: str, value: Any) -> None:
            if getattr(task, name) != value:
                setattr(task, name, value)
                changed.append(name)

        if "title" in changes:
            _set("title", require_length("title", changes["title"], 1, 200))
        if "description" in changes:
            _set("description", require_length("description", changes["description"] or "", 0, 5000))
        if "priority" in changes:
            _set("priority", require_choice("priority", TaskPriority, changes["priority"]))
        if "task_type" in changes:
            _set("task_type", require_choice("task_type", TaskType, changes["task_type"]))
        if "due_date" in changes:
            _set("due_date", _due_date(changes["due_date"]))
        if "estimated_hours" in changes:
            _set("estimated_hours", _hours(changes["estimated_hours"]))
        if "tags" in changes:
            _set("tags", _tags(changes["tags"]))
        if "sprint_id" in changes:
            _set("sprint_id", changes["sprint_id"] or None)
        if "progress" in changes:
            percentage = self._manual_progress(task, changes["progress"])
            if percentage != task.progress.percentage:
                task.progress.percentage = percentage
                changed.append("progress")

        if changed:
            self._activity.append(task, "updated", actor, FieldsUpdatedPayload(fields=tuple(changed)))
            logger.debug("Task {} fields changed: {}", task.id, changed)
        return changed

    def update_fields(self, task_id: str, changes: dict[str, Any], actor: Actor) -> Task:
        self._check_editable(changes)
        with self.editing(task_id, actor) as (tx, task, _):
            if self._change_fields(task, changes, actor):
                self.commit(tx, task)
                logger.info("Task {} fields updated", task_id)
        return task

    def update(self, task_id: str, changes: dict[str, Any], actor: Actor) -> Task:
        """Apply a combined edit: status first, then fields, then assignee.

        Every part is validated inside one transaction, so a rejected part
        leaves the task exactly as it was.  Each applied part still records
        its own history entry.  Progress is checked against the status the
        task ends up with.
        """
        changes = dict(changes)
        status = changes.pop("status", None)
        has_assignee = "assignee_id" in changes
        assignee_id = changes.pop("assignee_id", None) or None
        self._check_editable(changes)
        new_status = require_choice("status", TaskStatus, status) if status is not None else None

        with self.editing(task_id, actor) as (tx, task, _):
            dirty = False
            if new_status is not None:
                dirty = self._change_status(task, new_status, actor) or dirty
            if changes:
                dirty = bool(self._change_fields(task, changes, actor)) or dirty
            if has_assignee:
                dirty = self._change_assignee(task, assignee_id, actor) or dirty
            if dirty:
                self.commit(tx, task)
                logger.info("Task {} updated", task_id)
        return task

    @staticmethod
    def _manual_progress(task: Task, raw: Any) -> int:
        if task.progress.checklist_items:
            raise InvalidState(
                "Progress is derived from the checklist",
                "PROGRESS_DERIVED",
                {"task_id": task.id},
            )
        try:
            value = int(raw)
        except (TypeError, ValueError):
            raise ValidationFailure("'progress' must be an integer", details={"field": "progress"}) from None
        if not 0 <= value <= 100:
            raise ValidationFailure("'progress' must be between 0 and 100", details={"field": "progress"})
        if task.status == TaskStatus.DONE and value != 100:
            raise InvalidState("A done task is always 100% complete", "PROGRESS_DERIVED", {"task_id": task.id})
        return value

    # ------------------------------------------------------------------
    # Archive
    # ------------------------------------------------------------------

    def archive(self, task_id: str, actor: Actor) -> Task:
        snapshot, board = self._board_for(task_id)
        with self._locks.hold((board.id, snapshot.column_id)):
            with self._repo.transaction() as tx:
                task = self._load(tx, task_id)
                require_write(task, board, actor)
                self.ensure_active(task)
                if task.column_id != snapshot.column_id:
                    raise ConcurrencyConflict(
                        f"Task {task_id} moved while archiving; please retry",
                        details={"task_id": task_id},
                    )
                for peer in self._active_in_column(tx, task.board_id, task.column_id):
                    if peer is not task and peer.position > task.position:
                        peer.position -= 1
                task.is_archived = True
                task.archived_at = now_iso()
                task.archived_by = actor.id
                self._activity.append(
                    task, "archived", actor, ArchivedPayload(column_id=task.column_id, position=task.position)
                )
                self.commit(tx, task)
        logger.info("Archived task {} from column {}", task_id, task.column_id)
        return task

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    def add_dependency(self, task_id: str, target_id: str, kind: str, actor: Actor) -> Task:
        dep_kind = require_choice("kind", DependencyKind, kind or DependencyKind.RELATES_TO)
        if target_id == task_id:
            raise ValidationFailure("A task cannot depend on itself", details={"task_id": task_id})
        with self.editing(task_id, actor) as (tx, task, _):
            if tx.get(target_id) is None:
                raise task_not_found(target_id)
            if any(d.task_id == target_id and d.kind == dep_kind for d in task.dependencies):
                raise InvalidState(
                    f"Dependency on {target_id} already exists",
                    "DEPENDENCY_EXISTS",
                    {"task_id": target_id, "kind": dep_kind.value},
                )
            task.dependencies.append(Dependency(task_id=target_id, kind=dep_kind))
            self._activity.append(
                task, "dependency_added", actor, DependencyPayload(task_id=target_id, kind=dep_kind.value)
            )
            self.commit(tx, task)
        return task

    def remove_dependency(self, task_id: str, target_id: str, kind: Optional[str], actor: Actor) -> Task:
        dep_kind = require_choice("kind", DependencyKind, kind) if kind else None
        with self.editing(task_id, actor) as (tx, task, _):
            match = next(
                (d for d in task.dependencies if d.task_id == target_id and (dep_kind is None or d.kind == dep_kind)),
                None,
            )
            if match is None:
                raise NotFound(
                    f"Task {task_id} has no dependency on {target_id}",
                    "DEPENDENCY_NOT_FOUND",
                    {"task_id": target_id},
                )
            task.dependencies.remove(match)
            self._activity.append(
                task, "dependency_removed", actor, DependencyPayload(task_id=target_id, kind=match.kind.value)
            )
            self.commit(tx, task)
        return task

"""Capability checks derived from board visibility, membership and assignment.

All predicates are pure and fail closed: a missing board, member record or
actor id yields ``False``.  The ``require_*`` helpers turn a denial into an
:class:`~taskboard.errors.AccessDenied` with a stable code.
"""

from __future__ import annotations

from typing import Optional

from .domain.identity import SUPER_ADMIN_ROLE, Actor
from .domain.models import Board, Comment, MemberRole, Task, TimeEntry, Visibility, Watcher
from .errors import AccessDenied

# Member roles that may mutate any task on the board.
EDITOR_ROLES = frozenset({MemberRole.ADMIN, MemberRole.MEMBER})


def _is_owner(board: Optional[Board], actor_id: Optional[str]) -> bool:
    return bool(board and actor_id and board.created_by == actor_id)


def can_read(board: Optional[Board], actor_id: Optional[str]) -> bool:
    if board is None:
        return False
    if board.visibility == Visibility.PUBLIC:
        return True
    if not actor_id:
        return False
    return board.created_by == actor_id or board.member(actor_id) is not None


def can_write(
    task: Optional[Task],
    board: Optional[Board],
    actor_id: Optional[str],
    actor_role: Optional[str] = None,
) -> bool:
    if board is None or not actor_id:
        return False
    if actor_role == SUPER_ADMIN_ROLE or board.created_by == actor_id:
        return True
    member = board.member(actor_id)
    if member is not None and member.role in EDITOR_ROLES:
        return True
    return bool(task is not None and task.assignee_id and task.assignee_id == actor_id)


def can_create(board: Optional[Board], actor: Actor) -> bool:
    """Creating a task needs visibility of the board and a non-viewer seat."""
    if board is None:
        return False
    if actor.is_super_admin:
        return True
    if not can_read(board, actor.id):
        return False
    member = board.member(actor.id)
    return member is None or member.role != MemberRole.VIEWER


def can_manage_board(board: Optional[Board], actor: Actor) -> bool:
    if board is None:
        return False
    if actor.is_super_admin or _is_owner(board, actor.id):
        return True
    member = board.member(actor.id)
    return member is not None and member.role == MemberRole.ADMIN


def can_see_internal_comments(board: Optional[Board], actor: Actor) -> bool:
    return actor.is_super_admin or _is_owner(board, actor.id)


def can_moderate_comment(comment: Comment, board: Optional[Board], actor: Actor) -> bool:
    if comment.author.id == actor.id and comment.author.kind == actor.kind:
        return True
    return actor.is_super_admin or _is_owner(board, actor.id)


def can_remove_watcher(watcher: Watcher, task: Task, board: Optional[Board], actor: Actor) -> bool:
    if watcher.user_id == actor.id:
        return True
    if task.created_by.id == actor.id:
        return True
    return actor.is_super_admin or _is_owner(board, actor.id)


def can_delete_time_entry(entry: TimeEntry, board: Optional[Board], actor: Actor) -> bool:
    if entry.logged_by == actor.id:
        return True
    return actor.is_super_admin or _is_owner(board, actor.id)


# ---------------------------------------------------------------------------
# Raising helpers
# ---------------------------------------------------------------------------

def require_read(board: Optional[Board], actor: Actor, task: Optional[Task] = None) -> None:
    if actor.is_super_admin and board is not None:
        return
    if not can_read(board, actor.id):
        raise AccessDenied(
            "You do not have access to this task",
            "TASK_ACCESS_DENIED",
            {"task_id": task.id} if task is not None else None,
        )


def require_write(task: Task, board: Optional[Board], actor: Actor) -> None:
    if not can_write(task, board, actor.id, actor.role):
        raise AccessDenied(
            "You do not have permission to modify this task",
            "TASK_ACCESS_DENIED",
            {"task_id": task.id},
        )


def require_create(board: Board, actor: Actor) -> None:
    if not can_create(board, actor):
        raise AccessDenied(
            "You do not have permission to create tasks on this board",
            "TASK_ACCESS_DENIED",
            {"board_id": board.id},
        )


def require_manage_board(board: Board, actor: Actor) -> None:
    if not can_manage_board(board, actor):
        raise AccessDenied(
            "You do not have permission to manage this board",
            "BOARD_ACCESS_DENIED",
            {"board_id": board.id},
        )

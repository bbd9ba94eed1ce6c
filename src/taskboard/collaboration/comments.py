"""Comments on a task, with @-mentions that subscribe the mentioned users."""

from __future__ import annotations

from typing import Any, Iterable, Optional

from loguru import logger

from ..access import can_moderate_comment, can_see_internal_comments
from ..activity import ActivityLog
from ..domain.activity import CommentPayload
from ..domain.identity import Actor, ActorKind
from ..domain.models import Comment, Task, Watcher, now_iso
from ..errors import AccessDenied, NotFound, require_length
from ..tasks.store import TaskStore


def _mentions(raw: Optional[Iterable[Any]], author_id: str) -> list[str]:
    """Deduplicate mentions in order and drop the author."""
    seen: list[str] = []
    for value in raw or []:
        user_id = str(value or "").strip()
        if user_id and user_id != author_id and user_id not in seen:
            seen.append(user_id)
    return seen


def _comment(task: Task, comment_id: str) -> Comment:
    comment = task.comment(comment_id)
    if comment is None:
        raise NotFound(f"Comment {comment_id} not found", "COMMENT_NOT_FOUND", {"comment_id": comment_id})
    return comment


class CommentManager:
    def __init__(self, store: TaskStore, activity: ActivityLog) -> None:
        self._store = store
        self._activity = activity

    def list(self, task_id: str, actor: Actor) -> list[Comment]:
        task, board = self._store.reading(task_id, actor)
        if can_see_internal_comments(board, actor):
            return list(task.comments)
        return [c for c in task.comments if not c.is_internal]

    def add(
        self,
        task_id: str,
        content: str,
        actor: Actor,
        is_internal: bool = False,
        mentions: Optional[Iterable[Any]] = None,
    ) -> Comment:
        """Post a comment; each mentioned user not yet watching is subscribed."""
        text = require_length("content", content, 1, 2000)
        mentioned = _mentions(mentions, actor.id)
        with self._store.editing(task_id, actor, write=False) as (tx, task, _):
            comment = Comment(author=actor.ref, content=text, is_internal=bool(is_internal), mentions=mentioned)
            task.comments.append(comment)
            added: list[str] = []
            for user_id in mentioned:
                if not any(w.user_id == user_id for w in task.watchers):
                    task.watchers.append(Watcher(user_id=user_id, actor_kind=ActorKind.ADMIN, added_by=actor.id))
                    added.append(user_id)
            self._activity.append(
                task,
                "commented",
                actor,
                CommentPayload(comment_id=comment.id, is_internal=comment.is_internal, watchers_added=tuple(added)),
            )
            self._store.commit(tx, task)
        logger.info("Comment {} added to task {} (mentions: {})", comment.id, task_id, mentioned)
        return comment

    def edit(self, task_id: str, comment_id: str, content: str, actor: Actor) -> Comment:
        text = require_length("content", content, 1, 2000)
        with self._store.editing(task_id, actor, write=False) as (tx, task, board):
            comment = _comment(task, comment_id)
            if not can_moderate_comment(comment, board, actor):
                raise AccessDenied("You can only edit your own comments", "COMMENT_EDIT_DENIED")
            comment.content = text
            comment.updated_at = now_iso()
            comment.is_edited = True
            comment.edited_by = actor.id
            self._activity.append(
                task, "comment_edited", actor, CommentPayload(comment_id=comment.id, is_internal=comment.is_internal)
            )
            self._store.commit(tx, task)
        return comment

    def delete(self, task_id: str, comment_id: str, actor: Actor) -> None:
        with self._store.editing(task_id, actor, write=False) as (tx, task, board):
            comment = _comment(task, comment_id)
            if not can_moderate_comment(comment, board, actor):
                raise AccessDenied("You can only delete your own comments", "COMMENT_DELETE_DENIED")
            task.comments.remove(comment)
            self._activity.append(
                task, "comment_deleted", actor, CommentPayload(comment_id=comment.id, is_internal=comment.is_internal)
            )
            self._store.commit(tx, task)
        logger.info("Comment {} deleted from task {}", comment_id, task_id)

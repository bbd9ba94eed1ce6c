"""Task sub-resource endpoints: comments, subtasks, time logs, watchers, attachments."""

from __future__ import annotations

import base64
import binascii
from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, Query

from ..domain.identity import Actor
from ..errors import ValidationFailure
from ..service import TaskboardServices
from .auth import current_actor
from .models import (
    AddAttachmentRequest,
    AddCommentRequest,
    AddSubtaskRequest,
    AddWatcherRequest,
    EditCommentRequest,
    LogTimeRequest,
    UpdateSubtaskRequest,
    envelope,
)


def create_collaboration_router(get_services: Callable[[], TaskboardServices]) -> APIRouter:
    router = APIRouter(prefix="/api/tasks/{task_id}", tags=["collaboration"])

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    @router.get("/comments")
    async def list_comments(task_id: str, actor: Actor = Depends(current_actor)) -> dict[str, Any]:
        comments = get_services().comments.list(task_id, actor)
        return envelope({"comments": [c.to_dict() for c in comments], "total": len(comments)})

    @router.post("/comments", status_code=201)
    async def add_comment(
        task_id: str, body: AddCommentRequest, actor: Actor = Depends(current_actor)
    ) -> dict[str, Any]:
        comment = get_services().comments.add(
            task_id, body.content, actor, is_internal=body.is_internal, mentions=body.mentions
        )
        return envelope({"comment": comment.to_dict()}, "Comment added successfully")

    @router.put("/comments/{comment_id}")
    async def edit_comment(
        task_id: str, comment_id: str, body: EditCommentRequest, actor: Actor = Depends(current_actor)
    ) -> dict[str, Any]:
        comment = get_services().comments.edit(task_id, comment_id, body.content, actor)
        return envelope({"comment": comment.to_dict()}, "Comment updated successfully")

    @router.delete("/comments/{comment_id}")
    async def delete_comment(task_id: str, comment_id: str, actor: Actor = Depends(current_actor)) -> dict[str, Any]:
        get_services().comments.delete(task_id, comment_id, actor)
        return envelope(message="Comment deleted successfully")

    # ------------------------------------------------------------------
    # Subtasks
    # ------------------------------------------------------------------

    @router.get("/subtasks")
    async def list_subtasks(task_id: str, actor: Actor = Depends(current_actor)) -> dict[str, Any]:
        subtasks = get_services().subtasks.list(task_id, actor)
        return envelope({"subtasks": [s.to_dict() for s in subtasks], "total": len(subtasks)})

    @router.post("/subtasks", status_code=201)
    async def add_subtask(
        task_id: str, body: AddSubtaskRequest, actor: Actor = Depends(current_actor)
    ) -> dict[str, Any]:
        subtask = get_services().subtasks.add(
            task_id,
            body.title,
            actor,
            description=body.description,
            assignee_id=body.assignee_id,
            due_date=body.due_date,
        )
        return envelope({"subtask": subtask.to_dict()}, "Subtask added successfully")

    @router.put("/subtasks/{subtask_id}")
    async def update_subtask(
        task_id: str, subtask_id: str, body: UpdateSubtaskRequest, actor: Actor = Depends(current_actor)
    ) -> dict[str, Any]:
        subtask = get_services().subtasks.update(task_id, subtask_id, body.model_dump(exclude_unset=True), actor)
        return envelope({"subtask": subtask.to_dict()}, "Subtask updated successfully")

    @router.delete("/subtasks/{subtask_id}")
    async def delete_subtask(task_id: str, subtask_id: str, actor: Actor = Depends(current_actor)) -> dict[str, Any]:
        get_services().subtasks.delete(task_id, subtask_id, actor)
        return envelope(message="Subtask deleted successfully")

    # ------------------------------------------------------------------
    # Time logs
    # ------------------------------------------------------------------

    @router.get("/time-logs")
    async def list_time_logs(task_id: str, actor: Actor = Depends(current_actor)) -> dict[str, Any]:
        result = get_services().time_entries.list(task_id, actor)
        return envelope(
            {
                "time_logs": [e.to_dict() for e in result["entries"]],
                "total_hours": result["total_hours"],
            }
        )

    @router.post("/time-logs", status_code=201)
    async def log_time(task_id: str, body: LogTimeRequest, actor: Actor = Depends(current_actor)) -> dict[str, Any]:
        services = get_services()
        entry = services.time_entries.add(task_id, body.hours, body.description, actor, log_date=body.log_date)
        task, _ = services.tasks.reading(task_id, actor)
        return envelope(
            {"time_log": entry.to_dict(), "total_hours": task.actual_hours},
            "Time logged successfully",
        )

    @router.delete("/time-logs/{entry_id}")
    async def delete_time_log(task_id: str, entry_id: str, actor: Actor = Depends(current_actor)) -> dict[str, Any]:
        total = get_services().time_entries.delete(task_id, entry_id, actor)
        return envelope({"total_hours": total}, "Time log deleted successfully")

    # ------------------------------------------------------------------
    # Watchers
    # ------------------------------------------------------------------

    @router.get("/watchers")
    async def list_watchers(task_id: str, actor: Actor = Depends(current_actor)) -> dict[str, Any]:
        watchers = get_services().watchers.list(task_id, actor)
        return envelope({"watchers": [w.to_dict() for w in watchers], "total": len(watchers)})

    @router.post("/watchers", status_code=201)
    async def add_watcher(
        task_id: str, body: AddWatcherRequest, actor: Actor = Depends(current_actor)
    ) -> dict[str, Any]:
        watcher = get_services().watchers.add(task_id, body.user_id, actor, actor_kind=body.actor_kind)
        return envelope({"watcher": watcher.to_dict()}, "Watcher added successfully")

    @router.delete("/watchers/{user_id}")
    async def remove_watcher(
        task_id: str,
        user_id: str,
        actor_kind: Optional[str] = Query(None),
        actor: Actor = Depends(current_actor),
    ) -> dict[str, Any]:
        get_services().watchers.remove(task_id, user_id, actor, actor_kind=actor_kind)
        return envelope(message="Watcher removed successfully")

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    @router.get("/attachments")
    async def list_attachments(task_id: str, actor: Actor = Depends(current_actor)) -> dict[str, Any]:
        attachments = get_services().attachments.list(task_id, actor)
        return envelope({"attachments": [a.to_dict() for a in attachments], "total": len(attachments)})

    @router.post("/attachments", status_code=201)
    async def add_attachment(
        task_id: str, body: AddAttachmentRequest, actor: Actor = Depends(current_actor)
    ) -> dict[str, Any]:
        try:
            data = base64.b64decode(body.content_base64, validate=True)
        except (binascii.Error, ValueError):
            raise ValidationFailure(
                "'content_base64' is not valid base64", details={"field": "content_base64"}
            ) from None
        attachment = get_services().attachments.add(task_id, body.file_name, data, actor, mime_type=body.mime_type)
        return envelope({"attachment": attachment.to_dict()}, "Attachment added successfully")

    return router

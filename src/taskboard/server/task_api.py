"""Task endpoints: CRUD, placement, checklist, dependencies and history.

Mounted under ``/api/tasks`` by :func:`taskboard.server.api.create_app`.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, Query
from loguru import logger

from ..domain.identity import Actor
from ..service import TaskboardServices
from ..tasks.store import paginate
from .auth import current_actor
from .models import (
    ChecklistRequest,
    CreateTaskRequest,
    DependencyRequest,
    MoveTaskRequest,
    UpdateTaskRequest,
    envelope,
)


def create_task_router(get_services: Callable[[], TaskboardServices]) -> APIRouter:
    """Create the task API router.

    Parameters
    ----------
    get_services:
        Returns the :class:`TaskboardServices` bound to the running app.
    """
    router = APIRouter(prefix="/api/tasks", tags=["tasks"])

    def _present(task_id: str, actor: Actor) -> dict[str, Any]:
        services = get_services()
        task, board = services.tasks.reading(task_id, actor)
        return services.tasks.present(task, board, actor)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    @router.get("")
    async def list_tasks(
        board_id: str = Query(...),
        column_id: Optional[str] = Query(None),
        status: Optional[str] = Query(None),
        assignee_id: Optional[str] = Query(None),
        priority: Optional[str] = Query(None),
        tag: Optional[str] = Query(None),
        search: Optional[str] = Query(None),
        due_date: Optional[str] = Query(None),
        is_overdue: Optional[bool] = Query(None),
        include_archived: bool = Query(False),
        sort_by: str = Query("position"),
        sort_order: str = Query("asc"),
        page: int = Query(1, ge=1),
        limit: int = Query(50, ge=1, le=200),
        actor: Actor = Depends(current_actor),
    ) -> dict[str, Any]:
        services = get_services()
        tasks = services.tasks.list_tasks(
            board_id,
            actor,
            column_id=column_id,
            status=status,
            assignee_id=assignee_id,
            priority=priority,
            tag=tag,
            search=search,
            due_date=due_date,
            is_overdue=is_overdue,
            include_archived=include_archived,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        window, meta = paginate(tasks, page, limit)
        board = services.boards.get(board_id)
        data = [services.tasks.present(t, board, actor) for t in window]
        return envelope({"tasks": data, "total": meta["total"], "pagination": meta})

    @router.post("", status_code=201)
    async def create_task(body: CreateTaskRequest, actor: Actor = Depends(current_actor)) -> dict[str, Any]:
        task = get_services().tasks.create(actor, **body.model_dump())
        return envelope({"task": task.to_view()}, "Task created successfully")

    @router.get("/{task_id}")
    async def get_task(task_id: str, actor: Actor = Depends(current_actor)) -> dict[str, Any]:
        return envelope({"task": _present(task_id, actor)})

    @router.put("/{task_id}")
    async def update_task(
        task_id: str, body: UpdateTaskRequest, actor: Actor = Depends(current_actor)
    ) -> dict[str, Any]:
        """Apply status, field and assignment edits as one operation.

        Each applied part records its own history entry; a rejected part
        leaves the task unchanged.
        """
        get_services().tasks.update(task_id, body.model_dump(exclude_unset=True), actor)
        return envelope({"task": _present(task_id, actor)}, "Task updated successfully")

    @router.delete("/{task_id}")
    async def archive_task(task_id: str, actor: Actor = Depends(current_actor)) -> dict[str, Any]:
        task = get_services().tasks.archive(task_id, actor)
        return envelope({"task": task.to_view()}, "Task archived successfully")

    # ------------------------------------------------------------------
    # Placement and progress
    # ------------------------------------------------------------------

    @router.put("/{task_id}/move")
    async def move_task(task_id: str, body: MoveTaskRequest, actor: Actor = Depends(current_actor)) -> dict[str, Any]:
        task = get_services().tasks.move(task_id, body.column_id, body.position, actor)
        return envelope({"task": task.to_view()}, "Task moved successfully")

    @router.put("/{task_id}/checklist")
    async def update_checklist(
        task_id: str, body: ChecklistRequest, actor: Actor = Depends(current_actor)
    ) -> dict[str, Any]:
        items = [item.model_dump(exclude_none=True) for item in body.items]
        task = get_services().tasks.update_checklist(task_id, items, actor)
        return envelope({"task": task.to_view()}, "Checklist updated")

    @router.get("/{task_id}/activity")
    async def get_activity(
        task_id: str,
        action: Optional[str] = Query(None),
        actor: Actor = Depends(current_actor),
    ) -> dict[str, Any]:
        entries = get_services().tasks.activity(task_id, actor, action)
        return envelope({"activity": entries, "total": len(entries)})

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    @router.post("/{task_id}/dependencies", status_code=201)
    async def add_dependency(
        task_id: str, body: DependencyRequest, actor: Actor = Depends(current_actor)
    ) -> dict[str, Any]:
        task = get_services().tasks.add_dependency(task_id, body.task_id, body.kind, actor)
        logger.debug("Dependency {} -> {} ({})", task_id, body.task_id, body.kind)
        return envelope({"dependencies": [d.to_dict() for d in task.dependencies]}, "Dependency added")

    @router.delete("/{task_id}/dependencies/{target_id}")
    async def remove_dependency(
        task_id: str,
        target_id: str,
        kind: Optional[str] = Query(None),
        actor: Actor = Depends(current_actor),
    ) -> dict[str, Any]:
        task = get_services().tasks.remove_dependency(task_id, target_id, kind, actor)
        return envelope({"dependencies": [d.to_dict() for d in task.dependencies]}, "Dependency removed")

    return router

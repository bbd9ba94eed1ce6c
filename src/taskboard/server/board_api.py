"""Board endpoints: boards, columns, membership and the column board view."""

from __future__ import annotations

from typing import Any, Callable

from fastapi import APIRouter, Depends

from ..domain.identity import Actor
from ..service import TaskboardServices
from .auth import current_actor
from .models import (
    ColumnSpec,
    CreateBoardRequest,
    MemberRequest,
    MemberRoleRequest,
    ReorderColumnsRequest,
    UpdateBoardRequest,
    UpdateColumnRequest,
    envelope,
)


def create_board_router(get_services: Callable[[], TaskboardServices]) -> APIRouter:
    router = APIRouter(prefix="/api/boards", tags=["boards"])

    @router.get("")
    async def list_boards(actor: Actor = Depends(current_actor)) -> dict[str, Any]:
        boards = get_services().boards.list_for(actor)
        return envelope({"boards": [b.to_dict() for b in boards], "total": len(boards)})

    @router.post("", status_code=201)
    async def create_board(body: CreateBoardRequest, actor: Actor = Depends(current_actor)) -> dict[str, Any]:
        board = get_services().boards.create_board(
            actor,
            name=body.name,
            description=body.description,
            visibility=body.visibility,
            columns=[c.model_dump(exclude_none=True) for c in body.columns],
        )
        return envelope({"board": board.to_dict()}, "Board created successfully")

    @router.get("/{board_id}")
    async def get_board(board_id: str, actor: Actor = Depends(current_actor)) -> dict[str, Any]:
        board = get_services().boards.get_visible(board_id, actor)
        return envelope({"board": board.to_dict()})

    @router.put("/{board_id}")
    async def update_board(
        board_id: str, body: UpdateBoardRequest, actor: Actor = Depends(current_actor)
    ) -> dict[str, Any]:
        board = get_services().boards.update_board(board_id, body.model_dump(exclude_unset=True), actor)
        return envelope({"board": board.to_dict()}, "Board updated successfully")

    @router.get("/{board_id}/view")
    async def board_view(board_id: str, actor: Actor = Depends(current_actor)) -> dict[str, Any]:
        return envelope(get_services().tasks.board_view(board_id, actor))

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    @router.post("/{board_id}/members")
    async def add_member(board_id: str, body: MemberRequest, actor: Actor = Depends(current_actor)) -> dict[str, Any]:
        member = get_services().boards.add_member(board_id, body.user_id, body.role, actor)
        return envelope({"member": member.to_dict()}, "Member saved")

    @router.put("/{board_id}/members/{user_id}")
    async def update_member(
        board_id: str, user_id: str, body: MemberRoleRequest, actor: Actor = Depends(current_actor)
    ) -> dict[str, Any]:
        member = get_services().boards.update_member_role(board_id, user_id, body.role, actor)
        return envelope({"member": member.to_dict()}, "Member saved")

    @router.delete("/{board_id}/members/{user_id}")
    async def remove_member(board_id: str, user_id: str, actor: Actor = Depends(current_actor)) -> dict[str, Any]:
        get_services().boards.remove_member(board_id, user_id, actor)
        return envelope(message="Member removed")

    # ------------------------------------------------------------------
    # Columns (reorder is declared before the ``{column_id}`` route)
    # ------------------------------------------------------------------

    @router.post("/{board_id}/columns", status_code=201)
    async def add_column(board_id: str, body: ColumnSpec, actor: Actor = Depends(current_actor)) -> dict[str, Any]:
        column = get_services().boards.add_column(board_id, body.model_dump(exclude_none=True), actor)
        return envelope({"column": column.to_dict()}, "Column added")

    @router.put("/{board_id}/columns/reorder")
    async def reorder_columns(
        board_id: str, body: ReorderColumnsRequest, actor: Actor = Depends(current_actor)
    ) -> dict[str, Any]:
        board = get_services().boards.reorder_columns(board_id, body.column_ids, actor)
        return envelope({"board": board.to_dict()}, "Columns reordered")

    @router.put("/{board_id}/columns/{column_id}")
    async def update_column(
        board_id: str, column_id: str, body: UpdateColumnRequest, actor: Actor = Depends(current_actor)
    ) -> dict[str, Any]:
        column = get_services().boards.update_column(
            board_id, column_id, body.model_dump(exclude_unset=True), actor
        )
        return envelope({"column": column.to_dict()}, "Column updated")

    return router

"""Pydantic request models and the response envelope helper."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


def envelope(data: Any = None, message: Optional[str] = None) -> dict[str, Any]:
    """Wrap a successful result as ``{success, message?, data?}``."""
    body: dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


# ---------------------------------------------------------------------------
# Boards
# ---------------------------------------------------------------------------

class ColumnSpec(BaseModel):
    id: Optional[str] = None
    name: str
    wip_limit: int = 0
    column_type: str = "custom"
    color: Optional[str] = None


class CreateBoardRequest(BaseModel):
    name: str
    description: str = ""
    visibility: str = "private"
    columns: list[ColumnSpec] = Field(default_factory=list)


class UpdateBoardRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    visibility: Optional[str] = None


class UpdateColumnRequest(BaseModel):
    name: Optional[str] = None
    wip_limit: Optional[int] = None
    column_type: Optional[str] = None
    color: Optional[str] = None


class ReorderColumnsRequest(BaseModel):
    column_ids: list[str]


class MemberRequest(BaseModel):
    user_id: str
    role: str = "member"


class MemberRoleRequest(BaseModel):
    role: str


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

class CreateTaskRequest(BaseModel):
    board_id: str
    column_id: str
    title: str
    description: str = ""
    task_type: str = "feature"
    priority: str = "medium"
    assignee_id: Optional[str] = None
    sprint_id: Optional[str] = None
    due_date: Optional[str] = None
    estimated_hours: Optional[float] = None
    tags: list[str] = Field(default_factory=list)
    position: Optional[int] = None


class UpdateTaskRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    task_type: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    assignee_id: Optional[str] = None
    sprint_id: Optional[str] = None
    due_date: Optional[str] = None
    estimated_hours: Optional[float] = None
    tags: Optional[list[str]] = None
    progress: Optional[int] = None


class MoveTaskRequest(BaseModel):
    column_id: str
    position: Optional[int] = None


class ChecklistItemModel(BaseModel):
    id: Optional[str] = None
    text: str
    completed: bool = False


class ChecklistRequest(BaseModel):
    items: list[ChecklistItemModel]


class DependencyRequest(BaseModel):
    task_id: str
    kind: str = "relates_to"


# ---------------------------------------------------------------------------
# Sub-resources
# ---------------------------------------------------------------------------

class AddCommentRequest(BaseModel):
    content: str
    is_internal: bool = False
    mentions: list[str] = Field(default_factory=list)


class EditCommentRequest(BaseModel):
    content: str


class AddSubtaskRequest(BaseModel):
    title: str
    description: str = ""
    assignee_id: Optional[str] = None
    due_date: Optional[str] = None


class UpdateSubtaskRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    assignee_id: Optional[str] = None
    due_date: Optional[str] = None


class LogTimeRequest(BaseModel):
    hours: float
    description: str
    log_date: Optional[str] = None


class AddWatcherRequest(BaseModel):
    user_id: Optional[str] = None
    actor_kind: Optional[str] = None


class AddAttachmentRequest(BaseModel):
    file_name: str
    content_base64: str
    mime_type: str = "application/octet-stream"

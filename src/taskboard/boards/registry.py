"""Board registry: boards, their ordered columns and membership.

The registry is the sole writer of board records.  Column positions are
kept dense (``0..n-1``) by every operation that adds or reorders columns.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from loguru import logger

from ..access import can_read, require_manage_board
from ..domain.identity import Actor
from ..domain.models import Board, Column, ColumnType, Member, MemberRole, Visibility, now_iso
from ..errors import AccessDenied, InvalidState, NotFound, ValidationFailure, board_not_found, require_choice, require_length
from ..storage.interfaces import BoardRepository

DEFAULT_COLUMNS: tuple[tuple[str, ColumnType, str], ...] = (
    ("To Do", ColumnType.TODO, "#64748b"),
    ("In Progress", ColumnType.IN_PROGRESS, "#3b82f6"),
    ("Review", ColumnType.REVIEW, "#f59e0b"),
    ("Done", ColumnType.DONE, "#22c55e"),
)

_COLUMN_FIELDS = ("name", "wip_limit", "column_type", "color")


def _wip_limit(raw: Any) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationFailure("'wip_limit' must be an integer", details={"field": "wip_limit"}) from None
    if value < 0:
        raise ValidationFailure("'wip_limit' must be >= 0", details={"field": "wip_limit", "value": value})
    return value


def _build_column(spec: dict[str, Any], position: int) -> Column:
    column = Column(
        name=require_length("name", str(spec.get("name") or ""), 1, 50),
        position=position,
        wip_limit=_wip_limit(spec.get("wip_limit", 0)),
        column_type=require_choice("column_type", ColumnType, spec.get("column_type") or ColumnType.CUSTOM),
    )
    if spec.get("color"):
        column.color = str(spec["color"])
    if spec.get("id"):
        column.id = str(spec["id"])
    return column


class BoardRegistry:
    """Create and maintain boards.

    Parameters
    ----------
    repo:
        Persistence for board records.
    """

    def __init__(self, repo: BoardRepository) -> None:
        self._repo = repo

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, board_id: str) -> Board:
        board = self._repo.get(board_id)
        if board is None:
            raise board_not_found(board_id)
        return board

    def get_visible(self, board_id: str, actor: Actor) -> Board:
        board = self.get(board_id)
        if not (actor.is_super_admin or can_read(board, actor.id)):
            raise AccessDenied("You do not have access to this board", "BOARD_ACCESS_DENIED", {"board_id": board_id})
        return board

    def list_for(self, actor: Actor) -> list[Board]:
        """Boards the actor can read, newest first."""
        boards = [b for b in self._repo.list() if actor.is_super_admin or can_read(b, actor.id)]
        return sorted(boards, key=lambda b: b.created_at, reverse=True)

    # ------------------------------------------------------------------
    # Boards
    # ------------------------------------------------------------------

    def create_board(
        self,
        actor: Actor,
        name: str,
        description: str = "",
        visibility: str = "private",
        columns: Optional[Iterable[dict[str, Any]]] = None,
    ) -> Board:
        column_specs = list(columns or [])
        if not column_specs:
            column_specs = [
                {"name": label, "column_type": kind, "color": color} for label, kind, color in DEFAULT_COLUMNS
            ]
        built = [_build_column(spec, idx) for idx, spec in enumerate(column_specs)]
        if len({c.id for c in built}) != len(built):
            raise ValidationFailure("Column ids must be unique", details={"field": "columns"})

        board = Board(
            name=require_length("name", name, 1, 100),
            description=(description or "").strip(),
            visibility=require_choice("visibility", Visibility, visibility),
            columns=built,
            created_by=actor.id,
        )
        with self._repo.transaction() as tx:
            tx.add(board)
        logger.info("Created board {} ({}) with {} columns", board.id, board.name, len(built))
        return board

    def update_board(self, board_id: str, changes: dict[str, Any], actor: Actor) -> Board:
        with self._repo.transaction() as tx:
            board = self._load(tx, board_id)
            require_manage_board(board, actor)
            if "name" in changes:
                board.name = require_length("name", changes["name"], 1, 100)
            if "description" in changes:
                board.description = str(changes["description"] or "").strip()
            if "visibility" in changes:
                board.visibility = require_choice("visibility", Visibility, changes["visibility"])
            board.touch()
            tx.mark_dirty()
        logger.info("Updated board {}: {}", board_id, sorted(changes))
        return board

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def add_column(self, board_id: str, column_spec: dict[str, Any], actor: Actor) -> Column:
        with self._repo.transaction() as tx:
            board = self._load(tx, board_id)
            require_manage_board(board, actor)
            column = _build_column(column_spec, len(board.columns))
            if board.column(column.id) is not None:
                raise InvalidState(f"Column {column.id} already exists", "DUPLICATE_COLUMN")
            board.columns.append(column)
            board.touch()
            tx.mark_dirty()
        logger.info("Added column {} to board {} at position {}", column.id, board_id, column.position)
        return column

    def update_column(self, board_id: str, column_id: str, changes: dict[str, Any], actor: Actor) -> Column:
        with self._repo.transaction() as tx:
            board = self._load(tx, board_id)
            require_manage_board(board, actor)
            column = board.column(column_id)
            if column is None:
                raise NotFound(f"Column {column_id} not found", "COLUMN_NOT_FOUND", {"column_id": column_id})
            for key in _COLUMN_FIELDS:
                if key not in changes:
                    continue
                if key == "name":
                    column.name = require_length("name", changes["name"], 1, 50)
                elif key == "wip_limit":
                    column.wip_limit = _wip_limit(changes["wip_limit"])
                elif key == "column_type":
                    column.column_type = require_choice("column_type", ColumnType, changes["column_type"])
                elif key == "color":
                    column.color = str(changes["color"] or column.color)
            board.touch()
            tx.mark_dirty()
        return column

    def reorder_columns(self, board_id: str, ordered_ids: list[str], actor: Actor) -> Board:
        """Assign positions ``0..n-1`` following *ordered_ids*.

        Raises ``INVALID_COLUMN_SET`` unless the ids are exactly a
        permutation of the board's current columns.
        """
        with self._repo.transaction() as tx:
            board = self._load(tx, board_id)
            require_manage_board(board, actor)
            current = {c.id for c in board.columns}
            if len(ordered_ids) != len(current) or set(ordered_ids) != current:
                raise InvalidState(
                    "Column order must list every board column exactly once",
                    "INVALID_COLUMN_SET",
                    {"expected": sorted(current), "received": list(ordered_ids)},
                )
            for position, column_id in enumerate(ordered_ids):
                board.column(column_id).position = position
            board.columns.sort(key=lambda c: c.position)
            board.touch()
            tx.mark_dirty()
        logger.info("Reordered columns on board {}: {}", board_id, ordered_ids)
        return board

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def add_member(self, board_id: str, user_id: str, role: str, actor: Actor) -> Member:
        """Insert or update a membership; repeating the call is harmless."""
        if not user_id:
            raise ValidationFailure("'user_id' is required", details={"field": "user_id"})
        member_role = require_choice("role", MemberRole, role)
        with self._repo.transaction() as tx:
            board = self._load(tx, board_id)
            require_manage_board(board, actor)
            member = board.member(user_id)
            if member is None:
                member = Member(user_id=user_id, role=member_role, added_at=now_iso(), added_by=actor.id)
                board.members.append(member)
            elif member.role != member_role:
                member.role = member_role
            board.touch()
            tx.mark_dirty()
        logger.info("Board {} member {} -> {}", board_id, user_id, member_role.value)
        return member

    update_member_role = add_member

    def remove_member(self, board_id: str, user_id: str, actor: Actor) -> None:
        with self._repo.transaction() as tx:
            board = self._load(tx, board_id)
            require_manage_board(board, actor)
            member = board.member(user_id)
            if member is None:
                raise NotFound(
                    f"User {user_id} is not a member of board {board_id}",
                    "MEMBER_NOT_FOUND",
                    {"user_id": user_id},
                )
            board.members.remove(member)
            board.touch()
            tx.mark_dirty()
        logger.info("Removed member {} from board {}", user_id, board_id)

    @staticmethod
    def _load(tx, board_id: str) -> Board:
        board = tx.get(board_id)
        if board is None:
            raise board_not_found(board_id)
        return board

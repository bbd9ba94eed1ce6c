"""Tests for boards, columns and membership."""

from __future__ import annotations

from pathlib import Path

import pytest

from taskboard.boards import DEFAULT_COLUMNS, BoardRegistry
from taskboard.domain.identity import Actor
from taskboard.domain.models import ColumnType, MemberRole, Visibility
from taskboard.errors import AccessDenied, InvalidState, NotFound, ValidationFailure
from taskboard.storage.container import StorageContainer

OWNER = Actor(id="owner-1")


@pytest.fixture
def registry(tmp_path: Path) -> BoardRegistry:
    return BoardRegistry(StorageContainer(tmp_path / ".taskboard").boards)


@pytest.fixture
def board(registry: BoardRegistry):
    return registry.create_board(
        OWNER,
        name="Roadmap",
        columns=[{"id": "c1", "name": "One"}, {"id": "c2", "name": "Two"}, {"id": "c3", "name": "Three"}],
    )


class TestCreateBoard:
    def test_default_columns(self, registry: BoardRegistry) -> None:
        board = registry.create_board(OWNER, name="Defaults")
        columns = board.ordered_columns()
        assert [c.name for c in columns] == [name for name, _, _ in DEFAULT_COLUMNS]
        assert [c.position for c in columns] == [0, 1, 2, 3]
        assert columns[-1].column_type == ColumnType.DONE
        assert board.visibility == Visibility.PRIVATE
        assert board.created_by == OWNER.id

    def test_persisted(self, registry: BoardRegistry, board) -> None:
        assert registry.get(board.id).name == "Roadmap"

    @pytest.mark.parametrize("name", ["", "x" * 101])
    def test_name_bounds(self, registry: BoardRegistry, name: str) -> None:
        with pytest.raises(ValidationFailure):
            registry.create_board(OWNER, name=name)

    def test_bad_column_spec(self, registry: BoardRegistry) -> None:
        with pytest.raises(ValidationFailure):
            registry.create_board(OWNER, name="Bad", columns=[{"name": "WIP", "wip_limit": -1}])
        with pytest.raises(ValidationFailure):
            registry.create_board(OWNER, name="Dupes", columns=[{"id": "a", "name": "A"}, {"id": "a", "name": "B"}])

    def test_unknown_visibility(self, registry: BoardRegistry) -> None:
        with pytest.raises(ValidationFailure):
            registry.create_board(OWNER, name="Odd", visibility="secret")


class TestReads:
    def test_unknown_board(self, registry: BoardRegistry) -> None:
        with pytest.raises(NotFound) as exc:
            registry.get("board-missing")
        assert exc.value.code == "BOARD_NOT_FOUND"

    def test_private_board_hidden(self, registry: BoardRegistry, board) -> None:
        stranger = Actor(id="stranger")
        with pytest.raises(AccessDenied) as exc:
            registry.get_visible(board.id, stranger)
        assert exc.value.code == "BOARD_ACCESS_DENIED"
        assert registry.list_for(stranger) == []
        assert registry.get_visible(board.id, Actor(id="root", role="super_admin")).id == board.id

    def test_public_board_listed(self, registry: BoardRegistry) -> None:
        public = registry.create_board(OWNER, name="Open", visibility="public")
        assert [b.id for b in registry.list_for(Actor(id="anyone"))] == [public.id]


class TestColumns:
    def test_reorder(self, registry: BoardRegistry, board) -> None:
        updated = registry.reorder_columns(board.id, ["c2", "c1", "c3"], OWNER)
        assert [(c.id, c.position) for c in updated.ordered_columns()] == [("c2", 0), ("c1", 1), ("c3", 2)]
        assert [c.id for c in registry.get(board.id).ordered_columns()] == ["c2", "c1", "c3"]

    @pytest.mark.parametrize("ids", [["c1", "c2"], ["c1", "c2", "c2"], ["c1", "c2", "c9"]])
    def test_reorder_requires_permutation(self, registry: BoardRegistry, board, ids) -> None:
        with pytest.raises(InvalidState) as exc:
            registry.reorder_columns(board.id, ids, OWNER)
        assert exc.value.code == "INVALID_COLUMN_SET"

    def test_add_and_update_column(self, registry: BoardRegistry, board) -> None:
        column = registry.add_column(board.id, {"name": "Blocked", "column_type": "blocked", "wip_limit": 2}, OWNER)
        assert column.position == 3

        updated = registry.update_column(board.id, column.id, {"name": "On hold", "wip_limit": 0}, OWNER)
        assert updated.name == "On hold"
        assert registry.get(board.id).column(column.id).wip_limit == 0

    def test_duplicate_column_id(self, registry: BoardRegistry, board) -> None:
        with pytest.raises(InvalidState) as exc:
            registry.add_column(board.id, {"id": "c1", "name": "Again"}, OWNER)
        assert exc.value.code == "DUPLICATE_COLUMN"

    def test_update_missing_column(self, registry: BoardRegistry, board) -> None:
        with pytest.raises(NotFound) as exc:
            registry.update_column(board.id, "nope", {"name": "X"}, OWNER)
        assert exc.value.code == "COLUMN_NOT_FOUND"


class TestMembership:
    def test_add_member_is_upsert(self, registry: BoardRegistry, board) -> None:
        registry.add_member(board.id, "dev-1", "viewer", OWNER)
        registry.add_member(board.id, "dev-1", "member", OWNER)
        members = registry.get(board.id).members
        assert len(members) == 1
        assert members[0].role == MemberRole.MEMBER

    def test_board_admin_may_manage(self, registry: BoardRegistry, board) -> None:
        registry.add_member(board.id, "lead", "admin", OWNER)
        registry.update_board(board.id, {"description": "Planned work"}, Actor(id="lead"))
        assert registry.get(board.id).description == "Planned work"

    def test_member_may_not_manage(self, registry: BoardRegistry, board) -> None:
        registry.add_member(board.id, "dev-1", "member", OWNER)
        with pytest.raises(AccessDenied) as exc:
            registry.reorder_columns(board.id, ["c3", "c2", "c1"], Actor(id="dev-1"))
        assert exc.value.code == "BOARD_ACCESS_DENIED"

    def test_remove_member(self, registry: BoardRegistry, board) -> None:
        registry.add_member(board.id, "dev-1", "member", OWNER)
        registry.remove_member(board.id, "dev-1", OWNER)
        assert registry.get(board.id).members == []
        with pytest.raises(NotFound) as exc:
            registry.remove_member(board.id, "dev-1", OWNER)
        assert exc.value.code == "MEMBER_NOT_FOUND"

    def test_unknown_role(self, registry: BoardRegistry, board) -> None:
        with pytest.raises(ValidationFailure):
            registry.add_member(board.id, "dev-1", "owner", OWNER)

"""Tests for the capability predicates."""

from __future__ import annotations

import pytest

from taskboard.access import (
    can_create,
    can_delete_time_entry,
    can_manage_board,
    can_moderate_comment,
    can_read,
    can_remove_watcher,
    can_see_internal_comments,
    can_write,
    require_read,
    require_write,
)
from taskboard.domain.identity import Actor, ActorKind, ActorRef
from taskboard.domain.models import Board, Comment, Member, MemberRole, Task, TimeEntry, Visibility, Watcher
from taskboard.errors import AccessDenied


def _board(visibility: Visibility = Visibility.PRIVATE) -> Board:
    return Board(
        id="board-1",
        name="B",
        visibility=visibility,
        created_by="owner",
        members=[
            Member(user_id="admin", role=MemberRole.ADMIN),
            Member(user_id="member", role=MemberRole.MEMBER),
            Member(user_id="viewer", role=MemberRole.VIEWER),
        ],
    )


def _task(assignee_id: str | None = None) -> Task:
    return Task(
        board_id="board-1",
        column_id="c1",
        created_by=ActorRef(ActorKind.ADMIN, "member"),
        assignee_id=assignee_id,
    )


class TestRead:
    @pytest.mark.parametrize("actor_id", ["owner", "admin", "member", "viewer"])
    def test_members_read_private(self, actor_id: str) -> None:
        assert can_read(_board(), actor_id)

    def test_stranger_and_missing(self) -> None:
        assert not can_read(_board(), "stranger")
        assert not can_read(_board(), None)
        assert not can_read(None, "owner")

    def test_public_board_readable_by_anyone(self) -> None:
        assert can_read(_board(Visibility.PUBLIC), "stranger")

    def test_require_read(self) -> None:
        with pytest.raises(AccessDenied) as exc:
            require_read(_board(), Actor(id="stranger"), _task())
        assert exc.value.code == "TASK_ACCESS_DENIED"
        require_read(_board(), Actor(id="root", role="super_admin"))


class TestWrite:
    @pytest.mark.parametrize("actor_id", ["owner", "admin", "member"])
    def test_editors_write(self, actor_id: str) -> None:
        assert can_write(_task(), _board(), actor_id)

    def test_viewer_only_when_assigned(self) -> None:
        assert not can_write(_task(), _board(), "viewer")
        assert can_write(_task("viewer"), _board(), "viewer")

    def test_public_board_does_not_grant_write(self) -> None:
        assert not can_write(_task(), _board(Visibility.PUBLIC), "stranger")

    def test_super_admin(self) -> None:
        assert can_write(_task(), _board(), "root", "super_admin")
        assert not can_write(_task(), _board(), "", "super_admin")
        assert not can_write(None, None, "root", "super_admin")

    def test_require_write(self) -> None:
        with pytest.raises(AccessDenied):
            require_write(_task(), _board(), Actor(id="viewer"))


class TestBoardCapabilities:
    def test_create(self) -> None:
        assert can_create(_board(), Actor(id="member"))
        assert not can_create(_board(), Actor(id="viewer"))
        assert not can_create(_board(), Actor(id="stranger"))
        assert can_create(_board(Visibility.PUBLIC), Actor(id="stranger"))

    def test_manage(self) -> None:
        assert can_manage_board(_board(), Actor(id="owner"))
        assert can_manage_board(_board(), Actor(id="admin"))
        assert not can_manage_board(_board(), Actor(id="member"))
        assert not can_manage_board(None, Actor(id="owner"))

    def test_internal_comments(self) -> None:
        assert can_see_internal_comments(_board(), Actor(id="owner"))
        assert not can_see_internal_comments(_board(), Actor(id="admin"))


class TestSubresources:
    def test_comment_moderation(self) -> None:
        comment = Comment(author=ActorRef(ActorKind.STARTUP, "member"), content="hi")
        assert can_moderate_comment(comment, _board(), Actor(id="member", kind=ActorKind.STARTUP))
        assert not can_moderate_comment(comment, _board(), Actor(id="member"))
        assert can_moderate_comment(comment, _board(), Actor(id="owner"))

    def test_watcher_removal(self) -> None:
        watcher = Watcher(user_id="viewer")
        task = _task()
        assert can_remove_watcher(watcher, task, _board(), Actor(id="viewer"))
        assert can_remove_watcher(watcher, task, _board(), Actor(id="member"))
        assert not can_remove_watcher(watcher, task, _board(), Actor(id="admin"))

    def test_time_entry_deletion(self) -> None:
        entry = TimeEntry(hours=1, description="Work", logged_by="member")
        assert can_delete_time_entry(entry, _board(), Actor(id="member"))
        assert can_delete_time_entry(entry, _board(), Actor(id="owner"))
        assert not can_delete_time_entry(entry, _board(), Actor(id="admin"))

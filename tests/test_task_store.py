"""Tests for the task store: placement, transitions, archival and access."""

from __future__ import annotations

import random
import threading
from pathlib import Path

import pytest

from taskboard.domain.identity import Actor, ActorKind
from taskboard.domain.models import TaskStatus
from taskboard.errors import AccessDenied, InvalidState, NotFound, ValidationFailure
from taskboard.service import TaskboardServices
from taskboard.tasks.store import paginate

OWNER = Actor(id="owner-1")
OUTSIDER = Actor(id="stranger")
ROOT = Actor(id="root", role="super_admin")


@pytest.fixture
def services(tmp_path: Path) -> TaskboardServices:
    return TaskboardServices(tmp_path / ".taskboard", config={"concurrency": {"lock_timeout_seconds": 10}})


@pytest.fixture
def board(services: TaskboardServices):
    return services.boards.create_board(
        OWNER,
        name="Sprint 1",
        columns=[
            {"id": "c1", "name": "Backlog"},
            {"id": "c2", "name": "Doing"},
            {"id": "c3", "name": "Done", "column_type": "done"},
        ],
    )


def _titles(services: TaskboardServices, board_id: str, column_id: str) -> list[str]:
    return [t.title for t in services.tasks.list_tasks(board_id, OWNER, column_id=column_id)]


def _positions(services: TaskboardServices, board_id: str, column_id: str) -> list[int]:
    return [t.position for t in services.tasks.list_tasks(board_id, OWNER, column_id=column_id)]


def _fill(services: TaskboardServices, board_id: str, column_id: str, *titles: str):
    return [services.tasks.create(OWNER, board_id, column_id, title) for title in titles]


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

class TestCreate:
    def test_appends_positions(self, services, board) -> None:
        first, second = _fill(services, board.id, "c1", "First", "Second")
        assert first.position == 0
        assert second.position == 1
        assert first.created_by.id == OWNER.id
        assert first.created_by.kind == ActorKind.ADMIN

    def test_insert_at_index_shifts_followers(self, services, board) -> None:
        _fill(services, board.id, "c1", "a", "b", "c")
        services.tasks.create(OWNER, board.id, "c1", "new", position=1)
        assert _titles(services, board.id, "c1") == ["a", "new", "b", "c"]
        assert _positions(services, board.id, "c1") == [0, 1, 2, 3]

    def test_insert_past_end_is_clamped(self, services, board) -> None:
        _fill(services, board.id, "c1", "a", "b")
        task = services.tasks.create(OWNER, board.id, "c1", "late", position=99)
        assert task.position == 2

    def test_negative_position_rejected(self, services, board) -> None:
        with pytest.raises(ValidationFailure):
            services.tasks.create(OWNER, board.id, "c1", "bad", position=-1)

    def test_column_must_belong_to_board(self, services, board) -> None:
        with pytest.raises(InvalidState) as exc:
            services.tasks.create(OWNER, board.id, "nope", "Task")
        assert exc.value.code == "INVALID_COLUMN"

    def test_unknown_board(self, services) -> None:
        with pytest.raises(NotFound) as exc:
            services.tasks.create(OWNER, "board-missing", "c1", "Task")
        assert exc.value.code == "BOARD_NOT_FOUND"

    def test_title_validated(self, services, board) -> None:
        with pytest.raises(ValidationFailure):
            services.tasks.create(OWNER, board.id, "c1", "   ")

    def test_creator_and_assignee_watch(self, services, board) -> None:
        task = services.tasks.create(OWNER, board.id, "c1", "Watched", assignee_id="dev-1")
        assert {w.user_id for w in task.watchers} == {"owner-1", "dev-1"}

    def test_created_entry(self, services, board) -> None:
        task = services.tasks.create(OWNER, board.id, "c2", "Logged")
        entries = services.tasks.activity(task.id, OWNER)
        assert [e["action"] for e in entries] == ["created"]
        assert entries[0]["payload"] == {"column_id": "c2", "position": 0}
        assert entries[0]["actor"] == {"kind": "Admin", "id": "owner-1"}

    def test_viewer_cannot_create(self, services, board) -> None:
        services.boards.add_member(board.id, "viewer-1", "viewer", OWNER)
        with pytest.raises(AccessDenied) as exc:
            services.tasks.create(Actor(id="viewer-1"), board.id, "c1", "Nope")
        assert exc.value.code == "TASK_ACCESS_DENIED"


# ---------------------------------------------------------------------------
# Move
# ---------------------------------------------------------------------------

class TestMove:
    def test_cross_column_scenario(self, services, board) -> None:
        first, second = _fill(services, board.id, "c1", "First", "Second")
        moved = services.tasks.move(first.id, "c2", 0, OWNER)

        assert moved.column_id == "c2"
        assert moved.position == 0
        assert services.tasks.get(second.id, OWNER).position == 0
        assert _titles(services, board.id, "c1") == ["Second"]
        assert _titles(services, board.id, "c2") == ["First"]

    def test_same_column_forward(self, services, board) -> None:
        a, _, _, _ = _fill(services, board.id, "c1", "a", "b", "c", "d")
        services.tasks.move(a.id, "c1", 2, OWNER)
        assert _titles(services, board.id, "c1") == ["b", "c", "a", "d"]
        assert _positions(services, board.id, "c1") == [0, 1, 2, 3]

    def test_same_column_backward(self, services, board) -> None:
        _, _, _, d = _fill(services, board.id, "c1", "a", "b", "c", "d")
        services.tasks.move(d.id, "c1", 1, OWNER)
        assert _titles(services, board.id, "c1") == ["a", "d", "b", "c"]
        assert _positions(services, board.id, "c1") == [0, 1, 2, 3]

    def test_cross_column_insert_in_middle(self, services, board) -> None:
        _fill(services, board.id, "c2", "x", "y")
        a, b, c = _fill(services, board.id, "c1", "a", "b", "c")
        services.tasks.move(b.id, "c2", 1, OWNER)
        assert _titles(services, board.id, "c1") == ["a", "c"]
        assert _titles(services, board.id, "c2") == ["x", "b", "y"]
        assert _positions(services, board.id, "c1") == [0, 1]
        assert _positions(services, board.id, "c2") == [0, 1, 2]

    def test_target_past_end_is_clamped(self, services, board) -> None:
        _fill(services, board.id, "c2", "x")
        (a,) = _fill(services, board.id, "c1", "a")
        moved = services.tasks.move(a.id, "c2", 50, OWNER)
        assert moved.position == 1

    def test_move_entry_payload(self, services, board) -> None:
        (a,) = _fill(services, board.id, "c1", "a")
        services.tasks.move(a.id, "c3", 0, OWNER)
        entry = services.tasks.activity(a.id, OWNER, "moved")[0]
        assert entry["payload"] == {
            "from": {"column_id": "c1", "position": 0},
            "to": {"column_id": "c3", "position": 0},
        }

    def test_move_does_not_change_status(self, services, board) -> None:
        (a,) = _fill(services, board.id, "c1", "a")
        moved = services.tasks.move(a.id, "c3", 0, OWNER)
        assert moved.status == TaskStatus.TODO

    def test_cross_board_move_rejected(self, services, board) -> None:
        other = services.boards.create_board(OWNER, name="Other", columns=[{"id": "o1", "name": "Only"}])
        (a,) = _fill(services, board.id, "c1", "a")
        with pytest.raises(InvalidState) as exc:
            services.tasks.move(a.id, "o1", 0, OWNER)
        assert exc.value.code == "INVALID_COLUMN"
        assert other.column("o1") is not None
        assert services.tasks.get(a.id, OWNER).column_id == "c1"

    def test_unknown_task(self, services, board) -> None:
        with pytest.raises(NotFound) as exc:
            services.tasks.move("task-missing", "c1", 0, OWNER)
        assert exc.value.code == "TASK_NOT_FOUND"

    def test_move_preserves_task_count(self, services, board) -> None:
        tasks = _fill(services, board.id, "c1", "a", "b", "c", "d", "e")
        rng = random.Random(7)
        for _ in range(25):
            task = rng.choice(tasks)
            services.tasks.move(task.id, rng.choice(["c1", "c2", "c3"]), rng.randint(0, 5), OWNER)
        total = 0
        for column_id in ("c1", "c2", "c3"):
            positions = _positions(services, board.id, column_id)
            assert positions == list(range(len(positions)))
            total += len(positions)
        assert total == 5


class TestMoveAccess:
    def test_non_member_denied_then_member_allowed(self, services, board) -> None:
        (a,) = _fill(services, board.id, "c1", "a")
        with pytest.raises(AccessDenied) as exc:
            services.tasks.move(a.id, "c2", 0, OUTSIDER)
        assert exc.value.code == "TASK_ACCESS_DENIED"

        services.boards.add_member(board.id, OUTSIDER.id, "member", OWNER)
        moved = services.tasks.move(a.id, "c2", 0, OUTSIDER)
        assert moved.column_id == "c2"

    def test_viewer_denied_unless_assignee(self, services, board) -> None:
        (a,) = _fill(services, board.id, "c1", "a")
        services.boards.add_member(board.id, "viewer-1", "viewer", OWNER)
        viewer = Actor(id="viewer-1")
        with pytest.raises(AccessDenied):
            services.tasks.move(a.id, "c2", 0, viewer)

        services.tasks.assign_to(a.id, "viewer-1", OWNER)
        assert services.tasks.move(a.id, "c2", 0, viewer).column_id == "c2"

    def test_super_admin_allowed(self, services, board) -> None:
        (a,) = _fill(services, board.id, "c1", "a")
        assert services.tasks.move(a.id, "c2", 0, ROOT).column_id == "c2"


class TestConcurrentMoves:
    def test_parallel_moves_keep_columns_dense(self, services, board) -> None:
        tasks = _fill(services, board.id, "c1", *[f"t{i}" for i in range(8)])
        errors: list[Exception] = []

        def worker(task_id: str, seed: int) -> None:
            rng = random.Random(seed)
            try:
                for _ in range(6):
                    services.tasks.move(task_id, rng.choice(["c1", "c2"]), rng.randint(0, 8), OWNER)
            except Exception as exc:  # noqa: BLE001 - surfaced through the assertion below
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(t.id, i)) for i, t in enumerate(tasks)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        counts = 0
        for column_id in ("c1", "c2"):
            positions = _positions(services, board.id, column_id)
            assert positions == list(range(len(positions)))
            counts += len(positions)
        assert counts == 8


# ---------------------------------------------------------------------------
# Status, checklist and fields
# ---------------------------------------------------------------------------

class TestTransitions:
    def test_done_sets_and_clears_completion(self, services, board) -> None:
        (a,) = _fill(services, board.id, "c1", "a")
        done = services.tasks.update_status(a.id, "done", OWNER)
        assert done.status == TaskStatus.DONE
        assert done.completed_at is not None
        assert done.completed_by == OWNER.id
        assert done.progress.percentage == 100

        reopened = services.tasks.update_status(a.id, "in_progress", OWNER)
        assert reopened.completed_at is None
        assert reopened.completed_by is None

        actions = [e["action"] for e in services.tasks.activity(a.id, OWNER)]
        assert actions == ["created", "status_changed", "status_changed"]

    def test_unknown_status(self, services, board) -> None:
        (a,) = _fill(services, board.id, "c1", "a")
        with pytest.raises(ValidationFailure):
            services.tasks.update_status(a.id, "completed", OWNER)

    def test_assign_and_unassign(self, services, board) -> None:
        (a,) = _fill(services, board.id, "c1", "a")
        services.tasks.assign_to(a.id, "dev-1", OWNER)
        task = services.tasks.assign_to(a.id, None, OWNER)
        assert task.assignee_id is None
        entries = services.tasks.activity(a.id, OWNER)
        assert [e["action"] for e in entries][-2:] == ["assigned", "unassigned"]
        assert entries[-2]["payload"] == {"from": None, "to": "dev-1", "watcher_added": True}

    def test_checklist_drives_progress(self, services, board) -> None:
        (a,) = _fill(services, board.id, "c1", "a")
        task = services.tasks.update_checklist(
            a.id,
            [{"text": "one", "completed": True}, {"text": "two"}, {"text": "three"}],
            OWNER,
        )
        assert task.progress.percentage == 33
        assert task.status == TaskStatus.TODO
        assert task.checklist_completion == 33

    def test_complete_checklist_marks_done(self, services, board) -> None:
        (a,) = _fill(services, board.id, "c1", "a")
        task = services.tasks.update_checklist(
            a.id, [{"text": "one", "completed": True}, {"text": "two", "completed": True}], OWNER
        )
        assert task.status == TaskStatus.DONE
        assert task.completed_at is not None
        assert task.progress.percentage == 100

        entries = services.tasks.activity(a.id, OWNER)
        assert [e["action"] for e in entries] == ["created", "checklist_updated"]
        payload = entries[-1]["payload"]
        assert payload["status_from"] == "todo"
        assert payload["status_to"] == "done"

    def test_unchecking_reopens_done_task(self, services, board) -> None:
        (a,) = _fill(services, board.id, "c1", "a")
        services.tasks.update_checklist(a.id, [{"id": "i1", "text": "one", "completed": True}], OWNER)
        task = services.tasks.update_checklist(a.id, [{"id": "i1", "text": "one", "completed": False}], OWNER)
        assert task.status == TaskStatus.IN_PROGRESS
        assert task.completed_at is None
        assert task.progress.percentage == 0

    def test_update_fields_records_changed_names(self, services, board) -> None:
        (a,) = _fill(services, board.id, "c1", "a")
        services.tasks.update_fields(a.id, {"title": "Renamed", "priority": "high", "tags": ["api", "api"]}, OWNER)
        task = services.tasks.get(a.id, OWNER)
        assert task.title == "Renamed"
        assert task.tags == ["api"]
        entry = services.tasks.activity(a.id, OWNER, "updated")[0]
        assert entry["payload"] == {"fields": ["title", "priority", "tags"]}

    def test_update_fields_rejects_unknown(self, services, board) -> None:
        (a,) = _fill(services, board.id, "c1", "a")
        with pytest.raises(ValidationFailure):
            services.tasks.update_fields(a.id, {"column_id": "c2"}, OWNER)

    def test_manual_progress_only_without_checklist(self, services, board) -> None:
        (a,) = _fill(services, board.id, "c1", "a")
        assert services.tasks.update_fields(a.id, {"progress": 40}, OWNER).progress.percentage == 40

        services.tasks.update_checklist(a.id, [{"text": "one"}], OWNER)
        with pytest.raises(InvalidState) as exc:
            services.tasks.update_fields(a.id, {"progress": 80}, OWNER)
        assert exc.value.code == "PROGRESS_DERIVED"

    def test_failed_update_leaves_no_trace(self, services, board) -> None:
        (a,) = _fill(services, board.id, "c1", "a")
        with pytest.raises(ValidationFailure):
            services.tasks.update_fields(a.id, {"title": "ok", "estimated_hours": 5000}, OWNER)
        task = services.tasks.get(a.id, OWNER)
        assert task.title == "a"
        assert len(task.activity) == 1

    def test_combined_update_is_all_or_nothing(self, services, board) -> None:
        (a,) = _fill(services, board.id, "c1", "a")
        with pytest.raises(ValidationFailure):
            services.tasks.update(a.id, {"title": "Renamed", "status": "bogus"}, OWNER)
        with pytest.raises(InvalidState) as exc:
            services.tasks.update(a.id, {"status": "done", "title": "Renamed", "progress": 50}, OWNER)
        assert exc.value.code == "PROGRESS_DERIVED"

        task = services.tasks.get(a.id, OWNER)
        assert (task.title, task.status) == ("a", TaskStatus.TODO)
        assert [e.action for e in task.activity] == ["created"]

    def test_combined_update_reopens_with_manual_progress(self, services, board) -> None:
        (a,) = _fill(services, board.id, "c1", "a")
        services.tasks.update_status(a.id, "done", OWNER)
        task = services.tasks.update(a.id, {"status": "in_progress", "progress": 50, "assignee_id": "dev-1"}, OWNER)
        assert task.status == TaskStatus.IN_PROGRESS
        assert task.progress.percentage == 50
        assert task.assignee_id == "dev-1"
        actions = [e["action"] for e in services.tasks.activity(a.id, OWNER)]
        assert actions == ["created", "status_changed", "status_changed", "updated", "assigned"]


# ---------------------------------------------------------------------------
# Archive
# ---------------------------------------------------------------------------

class TestArchive:
    def test_archive_compacts_column(self, services, board) -> None:
        _, b, _ = _fill(services, board.id, "c1", "a", "b", "c")
        archived = services.tasks.archive(b.id, OWNER)

        assert archived.is_archived
        assert archived.archived_by == OWNER.id
        assert _titles(services, board.id, "c1") == ["a", "c"]
        assert _positions(services, board.id, "c1") == [0, 1]

    def test_archived_task_still_readable_but_frozen(self, services, board) -> None:
        (a,) = _fill(services, board.id, "c1", "a")
        services.tasks.archive(a.id, OWNER)

        assert services.tasks.get(a.id, OWNER).is_archived
        with pytest.raises(InvalidState) as exc:
            services.tasks.move(a.id, "c2", 0, OWNER)
        assert exc.value.code == "TASK_ARCHIVED"
        with pytest.raises(InvalidState):
            services.tasks.update_status(a.id, "done", OWNER)

    def test_listing_excludes_archived_by_default(self, services, board) -> None:
        a, _ = _fill(services, board.id, "c1", "a", "b")
        services.tasks.archive(a.id, OWNER)
        assert _titles(services, board.id, "c1") == ["b"]
        all_tasks = services.tasks.list_tasks(board.id, OWNER, include_archived=True)
        assert {t.title for t in all_tasks} == {"a", "b"}

    def test_new_task_after_archive_stays_dense(self, services, board) -> None:
        a, _ = _fill(services, board.id, "c1", "a", "b")
        services.tasks.archive(a.id, OWNER)
        task = services.tasks.create(OWNER, board.id, "c1", "c")
        assert task.position == 1
        assert _positions(services, board.id, "c1") == [0, 1]


# ---------------------------------------------------------------------------
# Dependencies, reads and persistence
# ---------------------------------------------------------------------------

class TestDependencies:
    def test_add_and_remove(self, services, board) -> None:
        a, b = _fill(services, board.id, "c1", "a", "b")
        task = services.tasks.add_dependency(a.id, b.id, "blocks", OWNER)
        assert [d.to_dict() for d in task.dependencies] == [{"task_id": b.id, "kind": "blocks"}]

        with pytest.raises(InvalidState) as exc:
            services.tasks.add_dependency(a.id, b.id, "blocks", OWNER)
        assert exc.value.code == "DEPENDENCY_EXISTS"

        task = services.tasks.remove_dependency(a.id, b.id, None, OWNER)
        assert task.dependencies == []
        actions = [e["action"] for e in services.tasks.activity(a.id, OWNER)]
        assert actions[-2:] == ["dependency_added", "dependency_removed"]

    def test_self_and_missing_targets(self, services, board) -> None:
        (a,) = _fill(services, board.id, "c1", "a")
        with pytest.raises(ValidationFailure):
            services.tasks.add_dependency(a.id, a.id, "relates_to", OWNER)
        with pytest.raises(NotFound):
            services.tasks.add_dependency(a.id, "task-missing", "relates_to", OWNER)
        with pytest.raises(NotFound) as exc:
            services.tasks.remove_dependency(a.id, "task-missing", None, OWNER)
        assert exc.value.code == "DEPENDENCY_NOT_FOUND"


class TestReads:
    def test_private_board_hidden_from_outsider(self, services, board) -> None:
        (a,) = _fill(services, board.id, "c1", "a")
        with pytest.raises(AccessDenied):
            services.tasks.get(a.id, OUTSIDER)
        with pytest.raises(AccessDenied) as exc:
            services.tasks.list_tasks(board.id, OUTSIDER)
        assert exc.value.code == "BOARD_ACCESS_DENIED"

    def test_board_view_reports_wip(self, services) -> None:
        board = services.boards.create_board(
            OWNER, name="WIP", columns=[{"id": "w1", "name": "Doing", "wip_limit": 1}, {"id": "w2", "name": "Done"}]
        )
        _fill(services, board.id, "w1", "a", "b")
        view = services.tasks.board_view(board.id, OWNER)
        doing, done = view["columns"]
        assert doing["task_count"] == 2
        assert doing["wip_exceeded"] is True
        assert [t["title"] for t in doing["tasks"]] == ["a", "b"]
        assert done["wip_exceeded"] is False

    def test_list_search_and_due_filters(self, services, board) -> None:
        services.tasks.create(OWNER, board.id, "c1", "Fix login", description="Session cookie expires")
        services.tasks.create(OWNER, board.id, "c1", "Write docs", due_date="2999-06-15")
        services.tasks.create(OWNER, board.id, "c2", "Late report", due_date="2020-01-01T09:30:00Z")

        def titles(**filters):
            return [t.title for t in services.tasks.list_tasks(board.id, OWNER, **filters)]

        assert titles(search="LOGIN") == ["Fix login"]
        assert titles(search="cookie") == ["Fix login"]
        assert titles(due_date="2999-06-15") == ["Write docs"]
        assert titles(due_date="2020-01-01") == ["Late report"]
        assert titles(is_overdue=True) == ["Late report"]
        assert titles(is_overdue=False) == ["Fix login", "Write docs"]
        with pytest.raises(ValidationFailure):
            titles(due_date="someday")

    def test_list_sorting(self, services, board) -> None:
        services.tasks.create(OWNER, board.id, "c1", "beta", priority="low", due_date="2999-02-01")
        services.tasks.create(OWNER, board.id, "c1", "Alpha", priority="critical")
        services.tasks.create(OWNER, board.id, "c2", "gamma", priority="medium", due_date="2999-01-01")

        def titles(**order):
            return [t.title for t in services.tasks.list_tasks(board.id, OWNER, **order)]

        assert titles() == ["beta", "Alpha", "gamma"]
        assert titles(sort_order="desc") == ["gamma", "Alpha", "beta"]
        assert titles(sort_by="title") == ["Alpha", "beta", "gamma"]
        assert titles(sort_by="priority", sort_order="desc") == ["Alpha", "gamma", "beta"]
        assert titles(sort_by="due_date") == ["gamma", "beta", "Alpha"]
        assert titles(sort_by="due_date", sort_order="desc") == ["beta", "gamma", "Alpha"]
        with pytest.raises(ValidationFailure):
            titles(sort_by="colour")
        with pytest.raises(ValidationFailure):
            titles(sort_order="sideways")

    def test_paginate(self) -> None:
        window, meta = paginate(list(range(5)), page=2, limit=2)
        assert window == [2, 3]
        assert meta == {"page": 2, "limit": 2, "pages": 3, "total": 5}
        assert paginate([], page=1, limit=10) == ([], {"page": 1, "limit": 10, "pages": 0, "total": 0})
        with pytest.raises(ValidationFailure):
            paginate([1], page=0, limit=10)

    def test_state_survives_reload(self, services, board, tmp_path: Path) -> None:
        first, _ = _fill(services, board.id, "c1", "a", "b")
        services.tasks.move(first.id, "c2", 0, OWNER)

        reloaded = TaskboardServices(tmp_path / ".taskboard", config={})
        task = reloaded.tasks.get(first.id, OWNER)
        assert task.column_id == "c2"
        assert [e.action for e in task.activity] == ["created", "moved"]

"""Tests for the per-task activity log."""

from __future__ import annotations

import pytest

from taskboard.activity import ActivityLog
from taskboard.domain.activity import (
    ActivityEntry,
    CreatedPayload,
    MovedPayload,
    Placement,
    StatusChangedPayload,
)
from taskboard.domain.identity import Actor, ActorKind, ActorRef
from taskboard.domain.models import Task

ACTOR = Actor(id="u1", kind=ActorKind.STARTUP)


@pytest.fixture
def task() -> Task:
    return Task(board_id="b1", column_id="c1", created_by=ACTOR.ref)


def test_seq_increments(task: Task) -> None:
    log = ActivityLog()
    first = log.append(task, "created", ACTOR, CreatedPayload(column_id="c1", position=0))
    second = log.append(task, "status_changed", ACTOR, StatusChangedPayload(from_="todo", to="done"))

    assert (first.seq, second.seq) == (1, 2)
    assert second.actor == ActorRef(ActorKind.STARTUP, "u1")
    assert log.latest(task) is second
    assert [e.action for e in log.entries(task, "status_changed")] == ["status_changed"]


def test_unknown_action(task: Task) -> None:
    with pytest.raises(ValueError, match="Unknown activity action"):
        ActivityLog().append(task, "teleported", ACTOR, CreatedPayload())


def test_payload_must_match_action(task: Task) -> None:
    with pytest.raises(TypeError, match="requires MovedPayload"):
        ActivityLog().append(task, "moved", ACTOR, CreatedPayload())
    assert task.activity == []


def test_entries_are_frozen(task: Task) -> None:
    entry = ActivityLog().append(task, "created", ACTOR, CreatedPayload())
    with pytest.raises(AttributeError):
        entry.seq = 10  # type: ignore[misc]


def test_moved_entry_survives_storage_form(task: Task) -> None:
    payload = MovedPayload(from_=Placement("c1", 2), to=Placement("c2", 0))
    entry = ActivityLog().append(task, "moved", ACTOR, payload)

    data = entry.to_dict()
    assert data["payload"] == {"from": {"column_id": "c1", "position": 2}, "to": {"column_id": "c2", "position": 0}}
    assert ActivityEntry.from_dict(data) == entry


def test_from_dict_rejects_unknown_action() -> None:
    with pytest.raises(ValueError):
        ActivityEntry.from_dict({"seq": 1, "action": "mystery", "payload": {}})


def test_latest_on_empty(task: Task) -> None:
    assert ActivityLog().latest(task) is None

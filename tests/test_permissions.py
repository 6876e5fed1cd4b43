from datetime import datetime

import pytest

from tasklane.models import Priority, Task, TaskStatus
from tasklane.permissions import (
    EditOutcome,
    Principal,
    Role,
    can_move,
    changed_fields,
    review_edit,
)


@pytest.fixture
def task():
    return Task(
        "T-1",
        "Original",
        datetime(2026, 10, 5, 9),
        duration=3,
        status=TaskStatus.IN_PROGRESS,
        priority=Priority.LOW,
        progress=20,
        assignees=("u1",),
        team_id="team-a",
    )


def test_partial_acceptance_for_plain_assignee(task):
    decision = review_edit(task, {"status": "completed", "title": "X"}, Principal("u1", Role.TEAM_MEMBER))
    assert decision.outcome == EditOutcome.PARTIAL
    assert decision.is_partial
    assert decision.task.status == TaskStatus.COMPLETED
    assert decision.task.title == "Original"
    assert decision.reverted == ["title"]
    assert decision.mutation().patch == {"status": TaskStatus.COMPLETED}


def test_assignee_structural_only_edit_applies_nothing(task):
    decision = review_edit(task, {"priority": "high"}, Principal("u1"))
    assert decision.outcome == EditOutcome.PARTIAL
    assert decision.task == task
    assert decision.mutation() is None


def test_privileged_assignee_gets_everything(task):
    decision = review_edit(task, {"status": "completed", "title": "X"}, Principal("u1", Role.MANAGER))
    assert decision.outcome == EditOutcome.ACCEPTED
    assert (decision.task.status, decision.task.title) == (TaskStatus.COMPLETED, "X")


def test_admin_non_assignee_can_edit_structure_only(task):
    admin = Principal("boss", Role.ADMIN)
    ok = review_edit(task, {"title": "Renamed", "duration": "5"}, admin)
    assert ok.outcome == EditOutcome.ACCEPTED
    assert ok.task.duration == 5

    denied = review_edit(task, {"title": "Renamed", "progress": 90}, admin)
    assert denied.outcome == EditOutcome.REJECTED
    assert denied.task == task


def test_outsider_is_rejected(task):
    outsider = Principal("u9")
    assert review_edit(task, {"title": "X"}, outsider).outcome == EditOutcome.REJECTED
    assert review_edit(task, {"status": "completed"}, outsider).outcome == EditOutcome.REJECTED


def test_unchanged_values_are_not_changes(task):
    decision = review_edit(task, {"title": "Original", "status": "in-progress", "progress": 20}, Principal("u9"))
    assert decision.outcome == EditOutcome.ACCEPTED
    assert decision.applied == {}


def test_unreadable_start_date_keeps_current(task):
    assert changed_fields(task, {"startDate": "garbage"}) == {}
    assert changed_fields(task, {"start_date": "2026-10-07"}) == {"start_date": datetime(2026, 10, 7)}


def test_unknown_field_raises(task):
    with pytest.raises(ValueError):
        review_edit(task, {"color": "red"}, Principal("u1"))


def test_only_assignees_can_move(task):
    assert can_move(task, Principal("u1"))
    assert not can_move(task, Principal("boss", Role.ADMIN))


def test_role_parsing():
    assert Role.parse("Manager") == Role.MANAGER
    assert Role.parse("viewer") == Role.TEAM_MEMBER
    assert Role.parse(None) == Role.TEAM_MEMBER

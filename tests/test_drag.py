from datetime import datetime

import pytest

from tasklane.drag import DragController, DragPhase, reschedule, round_half_up
from tasklane.layout import layout
from tasklane.models import Task, ViewWindow
from tasklane.permissions import Principal, Role

WINDOW = ViewWindow(datetime(2026, 10, 1), datetime(2026, 10, 31))
OWNER = Principal("u1")


@pytest.fixture
def tasks():
    return [
        Task("a", "A", datetime(2026, 10, 5, 9, 30), duration=2, assignees=("u1",), team_id="team-a"),
        Task("b", "B", datetime(2026, 10, 6), duration=1, assignees=("u2",), team_id="team-a"),
    ]


@pytest.fixture
def controller(tasks):
    return DragController(layout(tasks, WINDOW), WINDOW, day_width_px=50)


class RecordingSink:
    def __init__(self, ok: bool):
        self.ok = ok
        self.requests = []

    def commit(self, request):
        self.requests.append(request)
        return self.ok


def test_drag_snaps_to_nearest_day(controller):
    assert controller.begin_drag("a", 200, OWNER)
    state = controller.update_drag(274)  # 74px at 50px/day = 1.48 days
    assert state.current_day_offset == 5
    assert state.proposed_date == datetime(2026, 10, 6, 9, 30)

    state = controller.update_drag(276)  # 1.52 days
    assert state.current_day_offset == 6
    state = controller.update_drag(125)  # -1.5 days rounds up to -1
    assert state.current_day_offset == 3


def test_round_half_up():
    assert [round_half_up(x) for x in (1.48, 1.5, 2.5, -0.5, -1.5, -1.51)] == [1, 2, 3, 0, -1, -2]


def test_non_assignee_cannot_begin(controller):
    assert not controller.begin_drag("a", 0, Principal("boss", Role.ADMIN))
    assert controller.phase == DragPhase.IDLE
    assert controller.state is None
    assert not controller.begin_drag("missing", 0, OWNER)
    assert controller.update_drag(100) is None


def test_end_drag_proposes_and_updates_optimistically(controller):
    controller.begin_drag("a", 0, OWNER)
    controller.update_drag(100)
    proposal = controller.end_drag()
    assert controller.phase == DragPhase.COMMITTING
    assert proposal.task_id == "a"
    assert proposal.proposed_date == datetime(2026, 10, 7, 9, 30)
    assert proposal.original_date == datetime(2026, 10, 5, 9, 30)
    assert proposal.changed
    assert proposal.request.to_dict() == {
        "teamId": "team-a",
        "taskId": "a",
        "patch": {"start_date": "2026-10-07T09:30:00"},
    }
    moved = next(e for e in controller.entries if e.task.id == "a")
    assert moved.day_offset == 6


def test_unmoved_drag_still_commits(controller):
    controller.begin_drag("a", 80, OWNER)
    proposal = controller.end_drag()
    assert controller.phase == DragPhase.COMMITTING
    assert proposal.proposed_date == datetime(2026, 10, 5, 9, 30)
    assert not proposal.changed


def test_cancel_is_idempotent(controller):
    controller.cancel_drag()
    assert controller.phase == DragPhase.IDLE
    controller.begin_drag("a", 0, OWNER)
    controller.update_drag(500)
    controller.cancel_drag()
    controller.cancel_drag()
    assert controller.phase == DragPhase.CANCELLED
    assert controller.state is None
    assert controller.end_drag() is None
    # Nothing moved
    assert next(e for e in controller.entries if e.task.id == "a").day_offset == 4
    # A new drag may start after a cancel
    assert controller.begin_drag("a", 0, OWNER)


def test_second_drag_blocked_until_settled(controller, tasks):
    controller.begin_drag("a", 0, OWNER)
    controller.end_drag()
    assert not controller.begin_drag("a", 0, OWNER)
    controller.settle(tasks)
    assert controller.phase == DragPhase.IDLE
    assert controller.begin_drag("a", 0, OWNER)


def test_reschedule_rolls_back_on_failure(controller, tasks):
    controller.begin_drag("a", 0, OWNER)
    controller.update_drag(150)
    proposal = controller.end_drag()
    sink = RecordingSink(ok=False)
    assert not reschedule(controller, sink, tasks, proposal)
    assert len(sink.requests) == 1
    assert controller.phase == DragPhase.IDLE
    assert next(e for e in controller.entries if e.task.id == "a").day_offset == 4


def test_reschedule_keeps_move_on_success(controller, tasks):
    controller.begin_drag("a", 0, OWNER)
    controller.update_drag(-150)
    proposal = controller.end_drag()
    assert reschedule(controller, RecordingSink(ok=True), tasks, proposal)
    assert next(e for e in controller.entries if e.task.id == "a").day_offset == 1


def test_rejects_non_positive_day_width(tasks):
    with pytest.raises(ValueError):
        DragController(layout(tasks, WINDOW), WINDOW, day_width_px=0)

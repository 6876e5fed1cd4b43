"""MCP server for tasklane: exposes timeline queries and edits to AI assistants."""

from __future__ import annotations

import json
from datetime import datetime

from mcp.server.fastmcp import FastMCP

from tasklane.classifier import classify, due_date, status_label
from tasklane.drag import DragController, reschedule
from tasklane.layout import layout, tasks_on_day
from tasklane.models import (
    EngineConfig,
    FilterSpec,
    LayoutEntry,
    SortSpec,
    Task,
    TimeScale,
    ViewConfig,
    load_tasks,
)
from tasklane.permissions import EditOutcome, Principal, Role, review_edit
from tasklane.persistence import Store
from tasklane.pipeline import apply
from tasklane.temporal import start_of_day, try_normalize
from tasklane.window import compute_window, data_range_window

mcp = FastMCP(
    "tasklane",
    instructions="""\
tasklane lays out team tasks on calendar, timeline and Gantt views. Each task \
has a start date and a duration in whole days; a 1-day task is due the day it \
starts. Statuses are notStarted, inProgress, completed and onHold; priorities \
are low, medium and high.

Key concepts:
- **Window**: the whole-day date range a view shows. Scales are day, week \
(Sunday to Saturday by default) and month (padded to whole weeks).
- **Layout**: each task's day offset from the window start, its span in days, \
a lane (vertical slot) so overlapping tasks never share one, and whether it is \
visible in the window.
- **Overdue**: due before today and not completed.
- **Permissions**: only assignees may move a task or change status/progress. \
Title, description, priority and duration need an admin or manager. When a \
plain assignee edits both kinds at once, only status/progress is applied and \
the rest is reverted; edit_task reports this as "partial".

Dates are YYYY-MM-DD. When the user asks what is late, use list_tasks with \
due_window="overdue". For "what is on Friday", use get_day.\
""",
)


def _get_store() -> Store:
    return Store()


def _load(now: datetime) -> tuple[EngineConfig, list[Task]]:
    config, records = _get_store().load()
    return config or EngineConfig(), load_tasks(records, now)


def _task_to_dict(t: Task, now: datetime) -> dict:
    d = t.to_dict()
    d["due_date"] = due_date(t).date().isoformat()
    d["due_class"] = classify(t, now).value
    d["status_label"] = status_label(t.status)
    return d


def _entry_to_dict(e: LayoutEntry) -> dict:
    return {
        "id": e.task.id,
        "title": e.task.title,
        "day_offset": e.day_offset,
        "span_days": e.span_days,
        "lane": e.lane,
        "visible": e.visible,
    }


def _view_config(scale: str, date: str | None, now: datetime) -> ViewConfig:
    ref = try_normalize(date) if date else start_of_day(now)
    if ref is None:
        raise ValueError(f"invalid date '{date}'")
    return ViewConfig(TimeScale(scale.lower()), ref)


# ---------------------------------------------------------------------------
# Read tools
# ---------------------------------------------------------------------------


@mcp.tool()
def get_window(scale: str = "week", date: str | None = None, data_range: bool = False) -> str:
    """Get the date window a view displays.

    Args:
        scale: "day", "week" or "month"
        date: Reference date (YYYY-MM-DD), default today
        data_range: Derive the window from the tasks (Gantt mode) instead
    """
    now = datetime.now()
    config, tasks = _load(now)
    try:
        if data_range:
            win = data_range_window(tasks, now, config.data_range_buffer_days, config.empty_range_pad_days)
        else:
            win = compute_window(_view_config(scale, date, now), config.week_start)
    except ValueError as exc:
        return f"Error: {exc}"
    return json.dumps(
        {"start": win.start.date().isoformat(), "end": win.end.date().isoformat(), "days": win.length_days}
    )


@mcp.tool()
def get_layout(scale: str = "month", date: str | None = None, visible_only: bool = True) -> str:
    """Get every task's position (day offset, span, lane) in a view window.

    Args:
        scale: "day", "week" or "month"
        date: Reference date (YYYY-MM-DD), default today
        visible_only: Drop tasks that fall outside the window
    """
    now = datetime.now()
    config, tasks = _load(now)
    try:
        win = compute_window(_view_config(scale, date, now), config.week_start)
    except ValueError as exc:
        return f"Error: {exc}"
    entries = [e for e in layout(tasks, win) if e.visible or not visible_only]
    return json.dumps(
        {
            "window": {"start": win.start.date().isoformat(), "end": win.end.date().isoformat()},
            "entries": [_entry_to_dict(e) for e in entries],
        },
        indent=2,
    )


@mcp.tool()
def get_day(date: str) -> str:
    """List the tasks that occupy a given day.

    Args:
        date: Day to inspect (YYYY-MM-DD)
    """
    now = datetime.now()
    _, tasks = _load(now)
    target = try_normalize(date)
    if target is None:
        return f"Error: invalid date '{date}'"
    on_day = tasks_on_day(tasks, target)
    if not on_day:
        return f"No tasks on {target.date().isoformat()}."
    return json.dumps([_task_to_dict(t, now) for t in on_day], indent=2)


@mcp.tool()
def list_tasks(
    status: str = "all",
    priority: str = "all",
    assignee_id: str = "all",
    due_window: str = "all",
    search: str = "",
    sort_field: str = "dueDate",
    descending: bool = False,
) -> str:
    """List tasks with filtering and sorting.

    Args:
        status: "all", "notStarted", "inProgress", "completed" or "onHold"
        priority: "all", "low", "medium" or "high"
        assignee_id: "all" or a user id
        due_window: "all", "overdue", "today" or "thisWeek"
        search: Case-insensitive substring of title or description
        sort_field: "dueDate", "priority", "progress" or "title"
        descending: Reverse the sort order
    """
    now = datetime.now()
    _, tasks = _load(now)
    if not tasks:
        return "No tasks found."
    try:
        selected = apply(
            tasks,
            FilterSpec(status, priority, assignee_id, due_window, search),
            SortSpec(sort_field, "desc" if descending else "asc"),
            now,
        )
    except ValueError as exc:
        return f"Error: {exc}"
    if not selected:
        return "No matching tasks."
    return json.dumps([_task_to_dict(t, now) for t in selected], indent=2)


# ---------------------------------------------------------------------------
# Write tools
# ---------------------------------------------------------------------------


@mcp.tool()
def move_task(task_id: str, days: int, user_id: str, role: str = "team_member") -> str:
    """Move a task's start date by a number of days, as dragging its bar would.

    Args:
        task_id: Task ID (e.g. "T-3")
        days: Days to move; negative moves earlier
        user_id: The acting user (must be an assignee)
        role: The acting user's team role
    """
    now = datetime.now()
    _, tasks = _load(now)
    task = next((t for t in tasks if t.id == task_id), None)
    if task is None:
        return f"Error: task {task_id} not found."

    win = compute_window(ViewConfig(TimeScale.DAY, task.start_date))
    controller = DragController(layout(tasks, win), win, 1.0)
    if not controller.begin_drag(task_id, 0.0, Principal(user_id, Role.parse(role))):
        return f"Error: only task assignees can update the dates of {task_id}."
    controller.update_drag(float(days))
    proposal = controller.end_drag()
    if not proposal.changed:
        controller.settle(tasks)
        return f"{task_id} unchanged."
    if not reschedule(controller, _get_store(), tasks, proposal):
        return f"Error: failed to update {task_id}."
    return f"Moved {task_id} to {proposal.proposed_date.date().isoformat()}."


@mcp.tool()
def edit_task(task_id: str, user_id: str, role: str = "team_member", changes: dict | None = None) -> str:
    """Edit task fields, subject to the permission rule.

    Args:
        task_id: Task ID (e.g. "T-3")
        user_id: The acting user
        role: "admin", "manager" or "team_member"
        changes: Fields to set: title, description, priority, duration,
            assignees, start_date, status, progress
    """
    now = datetime.now()
    _, tasks = _load(now)
    task = next((t for t in tasks if t.id == task_id), None)
    if task is None:
        return f"Error: task {task_id} not found."
    try:
        decision = review_edit(task, changes or {}, Principal(user_id, Role.parse(role)))
    except ValueError as exc:
        return f"Error: {exc}"
    if decision.outcome == EditOutcome.REJECTED:
        return f"Error: {decision.reason}"
    request = decision.mutation()
    if request is not None and not _get_store().commit(request):
        return f"Error: failed to update {task_id}."
    return json.dumps(
        {
            "outcome": decision.outcome.value,
            "applied": sorted(decision.applied),
            "reverted": decision.reverted,
            "message": decision.reason,
        }
    )


def main():
    """Entry point for the MCP server."""
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()

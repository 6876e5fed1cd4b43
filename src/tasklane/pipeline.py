"""Filtering and sorting of task lists for a UI surface."""

from __future__ import annotations

from datetime import datetime, timedelta

from tasklane.classifier import due_date, is_overdue
from tasklane.models import FilterSpec, Priority, SortSpec, Task, TaskStatus, status_alias

DUE_WINDOWS = ("all", "overdue", "today", "thisWeek")
PROGRESS_BUCKETS = ("all", "notStarted", "inProgress", "completed")


def _matches_due_window(task: Task, window: str, now: datetime) -> bool:
    if window == "all":
        return True
    if window == "overdue":
        return is_overdue(task, now)
    due = due_date(task).date()
    today = now.date()
    if window == "today":
        return due == today
    if window == "thisWeek":
        return today <= due <= today + timedelta(days=7)
    raise ValueError(f"Unknown due window '{window}'. Use: {', '.join(DUE_WINDOWS)}")


def _filter_status(value: str) -> TaskStatus:
    status = status_alias(value)
    if status is None:
        raise ValueError(f"Unknown status '{value}'. Use: all, {', '.join(TaskStatus)}")
    return status


def _filter_priority(value: str) -> Priority:
    try:
        return Priority(str(value).strip().lower())
    except ValueError:
        raise ValueError(f"Unknown priority '{value}'. Use: all, {', '.join(Priority)}") from None


def _matches_progress(task: Task, bucket: str) -> bool:
    if bucket == "all":
        return True
    if bucket == "notStarted":
        return task.progress == 0
    if bucket == "inProgress":
        return 0 < task.progress < 100
    if bucket == "completed":
        return task.progress == 100
    raise ValueError(f"Unknown progress bucket '{bucket}'. Use: {', '.join(PROGRESS_BUCKETS)}")


def validate_filter(spec: FilterSpec) -> None:
    """Raise ValueError for any filter value no task could ever match."""
    if spec.status != "all":
        _filter_status(spec.status)
    if spec.priority != "all":
        _filter_priority(spec.priority)
    if spec.due_window not in DUE_WINDOWS:
        raise ValueError(f"Unknown due window '{spec.due_window}'. Use: {', '.join(DUE_WINDOWS)}")
    if spec.progress_bucket not in PROGRESS_BUCKETS:
        raise ValueError(f"Unknown progress bucket '{spec.progress_bucket}'. Use: {', '.join(PROGRESS_BUCKETS)}")


def matches(task: Task, spec: FilterSpec, now: datetime) -> bool:
    """True when *task* satisfies every non-``"all"`` field of *spec*."""
    if spec.status != "all" and task.status != _filter_status(spec.status):
        return False
    if spec.priority != "all" and task.priority != _filter_priority(spec.priority):
        return False
    if spec.assignee_id != "all" and spec.assignee_id not in task.assignees:
        return False
    if spec.search:
        q = spec.search.lower()
        if q not in task.title.lower() and q not in task.description.lower():
            return False
    return _matches_progress(task, spec.progress_bucket) and _matches_due_window(
        task, spec.due_window, now
    )


def _sort_key(spec: SortSpec):
    if spec.field == "dueDate":
        return due_date
    if spec.field == "priority":
        return lambda t: t.priority.rank
    if spec.field == "progress":
        return lambda t: t.progress
    return lambda t: t.title.casefold()


def sort_tasks(tasks: list[Task], spec: SortSpec) -> list[Task]:
    """Stable sort; ``desc`` reverses the comparison, ties keep input order."""
    return sorted(tasks, key=_sort_key(spec), reverse=spec.direction == "desc")


def apply(tasks: list[Task], filter_spec: FilterSpec, sort_spec: SortSpec, now: datetime) -> list[Task]:
    validate_filter(filter_spec)
    return sort_tasks([t for t in tasks if matches(t, filter_spec, now)], sort_spec)

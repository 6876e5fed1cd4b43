"""Due dates, overdue classification and display labels."""

from __future__ import annotations

import enum
from datetime import datetime

from tasklane.models import Priority, Task, TaskStatus
from tasklane.temporal import add_days, start_of_day


class DueClass(enum.StrEnum):
    OVERDUE = "overdue"
    TODAY = "today"
    UPCOMING = "upcoming"
    DONE = "done"  # completed, due date already passed


STATUS_LABELS = {
    TaskStatus.NOT_STARTED: "Not Started",
    TaskStatus.IN_PROGRESS: "In Progress",
    TaskStatus.COMPLETED: "Completed",
    TaskStatus.ON_HOLD: "On Hold",
}

PRIORITY_LABELS = {
    Priority.LOW: "Low",
    Priority.MEDIUM: "Medium",
    Priority.HIGH: "High",
}


def due_date(task: Task) -> datetime:
    """Last day of the task: a one-day task is due the day it starts."""
    return add_days(task.start_date, task.span_days - 1)


def is_overdue(task: Task, now: datetime) -> bool:
    return due_date(task) < start_of_day(now) and task.status != TaskStatus.COMPLETED


def is_due_today(task: Task, now: datetime) -> bool:
    return due_date(task).date() == now.date()


def classify(task: Task, now: datetime) -> DueClass:
    if is_overdue(task, now):
        return DueClass.OVERDUE
    if is_due_today(task, now):
        return DueClass.TODAY
    if due_date(task) < start_of_day(now):
        return DueClass.DONE
    return DueClass.UPCOMING


def status_label(status: TaskStatus | str) -> str:
    return STATUS_LABELS[TaskStatus.parse(status)]


def priority_label(priority: Priority | str) -> str:
    return PRIORITY_LABELS[Priority.parse(priority)]

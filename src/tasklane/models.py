"""Task, view and configuration models."""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from tasklane.temporal import add_days, normalize, start_of_day

logger = logging.getLogger(__name__)


class TaskStatus(enum.StrEnum):
    NOT_STARTED = "notStarted"
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"
    ON_HOLD = "onHold"

    @classmethod
    def parse(cls, raw: object) -> TaskStatus:
        """Map any known spelling onto a status; unknown values are not started."""
        return status_alias(raw) or cls.NOT_STARTED


def status_alias(raw: object) -> TaskStatus | None:
    """The status a known spelling stands for, or None."""
    if isinstance(raw, TaskStatus):
        return raw
    key = str(raw or "").strip().lower().replace("-", "").replace("_", "").replace(" ", "")
    return _STATUS_ALIASES.get(key)


_STATUS_ALIASES = {
    "notstarted": TaskStatus.NOT_STARTED,
    "todo": TaskStatus.NOT_STARTED,
    "inprogress": TaskStatus.IN_PROGRESS,
    "completed": TaskStatus.COMPLETED,
    "done": TaskStatus.COMPLETED,
    "onhold": TaskStatus.ON_HOLD,
}


class Priority(enum.StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @classmethod
    def parse(cls, raw: object) -> Priority:
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.MEDIUM


_PRIORITY_RANK = {Priority.LOW: 1, Priority.MEDIUM: 2, Priority.HIGH: 3}


class TimeScale(enum.StrEnum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


def _coerce_int(raw: object, default: int) -> int:
    """parseInt-style coercion: numbers and numeric strings, else *default*."""
    if isinstance(raw, bool) or raw is None:
        return default
    if isinstance(raw, int):
        return raw
    try:
        value = raw if isinstance(raw, float) else float(str(raw).strip())
    except (ValueError, OverflowError):
        return default
    if not math.isfinite(value):
        return default
    return int(value)


MAX_DURATION_DAYS = 36_500


def parse_duration(raw: object) -> int:
    """Duration in whole days; absent or non-numeric is 1, negatives clamp to 0.

    Durations longer than ``MAX_DURATION_DAYS`` are cut to that length.
    """
    return min(MAX_DURATION_DAYS, max(0, _coerce_int(raw, 1)))


def parse_progress(raw: object) -> int:
    return min(100, max(0, _coerce_int(raw, 0)))


def parse_assignees(raw: object) -> tuple[str, ...]:
    """Assignee ids from plain ids or ``{"uid": ..., "email": ...}`` mappings."""
    if not raw:
        return ()
    if isinstance(raw, (str, dict)):
        raw = [raw]
    elif not isinstance(raw, (list, tuple)):
        return ()
    ids: list[str] = []
    for item in raw:
        if isinstance(item, dict):
            ident = item.get("uid") or item.get("id") or item.get("email")
        else:
            ident = item
        if ident and str(ident) not in ids:
            ids.append(str(ident))
    return tuple(ids)


@dataclass(frozen=True)
class Task:
    """A single schedulable work item.

    The task occupies the inclusive day interval
    ``[start_date, start_date + span_days - 1]``.
    """

    id: str
    title: str
    start_date: datetime
    duration: int = 1
    status: TaskStatus = TaskStatus.NOT_STARTED
    priority: Priority = Priority.MEDIUM
    progress: int = 0
    assignees: tuple[str, ...] = ()
    description: str = ""
    team_id: str | None = None
    team_name: str | None = None
    color: str | None = None

    @property
    def span_days(self) -> int:
        return max(1, self.duration)

    @property
    def end_date(self) -> datetime:
        """Start of the last day the task occupies."""
        return start_of_day(add_days(start_of_day(self.start_date), self.span_days - 1))

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "title": self.title,
            "startDate": self.start_date.isoformat(),
            "duration": self.duration,
            "status": self.status.value,
            "priority": self.priority.value,
            "progress": self.progress,
            "assignees": list(self.assignees),
        }
        if self.description:
            d["description"] = self.description
        if self.team_id is not None:
            d["teamId"] = self.team_id
        if self.team_name is not None:
            d["teamName"] = self.team_name
        if self.color is not None:
            d["color"] = self.color
        return d

    @classmethod
    def from_dict(cls, d: dict, now: datetime | None = None) -> Task:
        """Build a task from a raw record, tolerating every upstream spelling."""
        raw_start = d.get("startDate", d.get("start_date"))
        return cls(
            id=str(d.get("id", "")),
            title=str(d.get("title") or d.get("text") or d.get("name") or ""),
            start_date=normalize(raw_start, now),
            duration=parse_duration(d.get("duration")),
            status=TaskStatus.parse(d.get("status")),
            priority=Priority.parse(d.get("priority")),
            progress=parse_progress(d.get("progress")),
            assignees=parse_assignees(d.get("assignees")),
            description=str(d.get("description") or ""),
            team_id=d.get("teamId", d.get("team_id")),
            team_name=d.get("teamName", d.get("team_name")),
            color=d.get("color"),
        )


def load_tasks(records: list[dict], now: datetime | None = None) -> list[Task]:
    """Normalize a batch of raw records with a single shared "now"."""
    now = now or datetime.now()
    tasks = [Task.from_dict(r, now) for r in records]
    logger.debug("Normalized %d task records", len(tasks))
    return tasks


@dataclass(frozen=True)
class ViewWindow:
    """Inclusive whole-day window; ``start`` and ``end`` sit at midnight."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Window end {self.end} precedes start {self.start}")

    @property
    def length_days(self) -> int:
        return (self.end.date() - self.start.date()).days + 1

    def days(self) -> list[datetime]:
        return [self.start + timedelta(days=i) for i in range(self.length_days)]

    def contains(self, when: datetime) -> bool:
        return self.start.date() <= when.date() <= self.end.date()


@dataclass(frozen=True)
class ViewConfig:
    time_scale: TimeScale
    reference_date: datetime


@dataclass(frozen=True)
class LayoutEntry:
    """A task placed on a window. Offsets and spans are in days."""

    task: Task
    day_offset: int
    span_days: int
    lane: int
    visible: bool

    @property
    def last_offset(self) -> int:
        return self.day_offset + self.span_days - 1

    def left(self, day_width_px: float) -> float:
        return self.day_offset * day_width_px

    def width(self, day_width_px: float) -> float:
        return self.span_days * day_width_px


@dataclass(frozen=True)
class FilterSpec:
    """Declarative task filter. Every field defaults to ``"all"`` (no filtering)."""

    status: str = "all"
    priority: str = "all"
    assignee_id: str = "all"
    due_window: str = "all"  # all | overdue | today | thisWeek
    search: str = ""
    progress_bucket: str = "all"  # all | notStarted | inProgress | completed


SORT_FIELDS = ("dueDate", "priority", "progress", "title")


@dataclass(frozen=True)
class SortSpec:
    field: str = "dueDate"
    direction: str = "asc"

    def __post_init__(self) -> None:
        if self.field not in SORT_FIELDS:
            raise ValueError(f"Unknown sort field '{self.field}'. Use: {', '.join(SORT_FIELDS)}")
        if self.direction not in ("asc", "desc"):
            raise ValueError(f"Unknown sort direction '{self.direction}'. Use: asc, desc")


@dataclass(frozen=True)
class MutationRequest:
    """A change the persistence collaborator is asked to commit."""

    team_id: str | None
    task_id: str
    patch: dict

    def to_dict(self) -> dict:
        patch = {}
        for key, value in self.patch.items():
            if isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, enum.Enum):
                value = value.value
            elif isinstance(value, tuple):
                value = list(value)
            patch[key] = value
        return {"teamId": self.team_id, "taskId": self.task_id, "patch": patch}


WEEK_STARTS = ("sunday", "monday")


@dataclass
class EngineConfig:
    """Engine settings stored alongside task records."""

    day_width_px: dict[str, float] = field(
        default_factory=lambda: {"day": 50.0, "week": 20.0, "month": 15.0}
    )
    data_range_buffer_days: int = 14
    empty_range_pad_days: int = 7
    cell_task_cap: int = 3
    week_start: str = "sunday"

    def __post_init__(self) -> None:
        if self.week_start not in WEEK_STARTS:
            raise ValueError(f"Invalid week start '{self.week_start}'. Use: sunday, monday")

    def day_width_for(self, scale: TimeScale) -> float:
        return float(self.day_width_px.get(scale.value, 50.0))

    def to_dict(self) -> dict:
        return {
            "day_width_px": self.day_width_px,
            "data_range_buffer_days": self.data_range_buffer_days,
            "empty_range_pad_days": self.empty_range_pad_days,
            "cell_task_cap": self.cell_task_cap,
            "week_start": self.week_start,
        }

    @classmethod
    def from_dict(cls, d: dict) -> EngineConfig:
        defaults = cls()
        return cls(
            day_width_px={**defaults.day_width_px, **d.get("day_width_px", {})},
            data_range_buffer_days=d.get("data_range_buffer_days", 14),
            empty_range_pad_days=d.get("empty_range_pad_days", 7),
            cell_task_cap=d.get("cell_task_cap", 3),
            week_start=d.get("week_start", "sunday"),
        )

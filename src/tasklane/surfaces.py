"""Calendar, Gantt and timeline surfaces as thin adapters over the engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from tasklane.classifier import DueClass, classify, due_date, status_label
from tasklane.layout import layout, overlap_groups, tasks_on_day
from tasklane.models import (
    EngineConfig,
    FilterSpec,
    LayoutEntry,
    SortSpec,
    Task,
    TimeScale,
    ViewConfig,
    ViewWindow,
)
from tasklane.pipeline import apply
from tasklane.window import compute_window, data_range_window


@dataclass
class DayCell:
    day: datetime
    tasks: list[Task]
    shown: list[Task]
    hidden_count: int
    in_month: bool = True


def calendar_cells(
    tasks: list[Task],
    config: ViewConfig,
    engine_config: EngineConfig | None = None,
) -> list[DayCell]:
    """One cell per window day, each capped for display with a hidden count."""
    engine_config = engine_config or EngineConfig()
    window = compute_window(config, engine_config.week_start)
    ordered = [e.task for e in layout(tasks, window)]
    cap = engine_config.cell_task_cap
    cells = []
    for day in window.days():
        on_day = tasks_on_day(ordered, day)
        cells.append(
            DayCell(
                day=day,
                tasks=on_day,
                shown=on_day[:cap],
                hidden_count=max(0, len(on_day) - cap),
                in_month=config.time_scale != TimeScale.MONTH
                or day.month == config.reference_date.month,
            )
        )
    return cells


@dataclass
class GanttView:
    window: ViewWindow
    entries: list[LayoutEntry]
    rows: list[LayoutEntry]
    day_width_px: float
    max_overlap: int


def gantt_view(
    tasks: list[Task],
    now: datetime,
    config: ViewConfig | None = None,
    engine_config: EngineConfig | None = None,
    filter_spec: FilterSpec | None = None,
    sort_spec: SortSpec | None = None,
) -> GanttView:
    """Gantt surface: filtered tasks on either a scale window or the data range.

    Without a *config* the window is derived from the tasks themselves.
    ``rows`` follows the pipeline's sort order; ``entries`` keeps layout order.
    """
    engine_config = engine_config or EngineConfig()
    selected = apply(tasks, filter_spec or FilterSpec(), sort_spec or SortSpec(), now)
    if config is None:
        window = data_range_window(
            selected,
            now,
            engine_config.data_range_buffer_days,
            engine_config.empty_range_pad_days,
        )
        day_width = engine_config.day_width_for(TimeScale.DAY)
    else:
        window = compute_window(config, engine_config.week_start)
        day_width = engine_config.day_width_for(config.time_scale)
    entries = layout(selected, window)
    by_id = {e.task.id: e for e in entries}
    groups = overlap_groups(entries)
    return GanttView(
        window=window,
        entries=entries,
        rows=[by_id[t.id] for t in selected],
        day_width_px=day_width,
        max_overlap=max((len({e.lane for e in g}) for g in groups), default=0),
    )


@dataclass
class TimelineRow:
    task: Task
    due: datetime
    due_class: DueClass
    status_text: str


def timeline_rows(
    tasks: list[Task],
    now: datetime,
    filter_spec: FilterSpec | None = None,
    sort_spec: SortSpec | None = None,
) -> list[TimelineRow]:
    """Task list surface: filtered, sorted, and annotated with due classes."""
    selected = apply(tasks, filter_spec or FilterSpec(), sort_spec or SortSpec(), now)
    return [
        TimelineRow(task=t, due=due_date(t), due_class=classify(t, now), status_text=status_label(t.status))
        for t in selected
    ]

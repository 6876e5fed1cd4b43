"""Visible date window calculation for the calendar, timeline and Gantt views."""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta

from tasklane.models import Task, TimeScale, ViewConfig, ViewWindow
from tasklane.temporal import add_days, start_of_day

SUNDAY = "sunday"
MONDAY = "monday"


def _days_since_week_start(day: datetime, week_start: str) -> int:
    # datetime.weekday(): Monday == 0 ... Sunday == 6
    if week_start == MONDAY:
        return day.weekday()
    return (day.weekday() + 1) % 7


def week_start_of(day: datetime, week_start: str = SUNDAY) -> datetime:
    """Midnight of the most recent week start on or before *day*."""
    day = start_of_day(day)
    return day - timedelta(days=_days_since_week_start(day, week_start))


def month_bounds(day: datetime) -> tuple[datetime, datetime]:
    """First and last day (at midnight) of the month containing *day*."""
    first = start_of_day(day).replace(day=1)
    last = first.replace(day=calendar.monthrange(first.year, first.month)[1])
    return first, last


def compute_window(config: ViewConfig, week_start: str = SUNDAY) -> ViewWindow:
    """Window displayed for *config*'s scale around its reference date.

    ``month`` windows are padded out to whole weeks on both sides, so their
    length is always a multiple of seven days.
    """
    ref = start_of_day(config.reference_date)
    if config.time_scale == TimeScale.DAY:
        return ViewWindow(ref, ref)
    if config.time_scale == TimeScale.WEEK:
        start = week_start_of(ref, week_start)
        return ViewWindow(start, start + timedelta(days=6))
    if config.time_scale == TimeScale.MONTH:
        first, last = month_bounds(ref)
        start = week_start_of(first, week_start)
        end = week_start_of(last, week_start) + timedelta(days=6)
        return ViewWindow(start, end)
    raise ValueError(f"Unknown time scale '{config.time_scale}'")


def data_range_window(
    tasks: list[Task],
    now: datetime,
    buffer_days: int = 14,
    pad_days: int = 7,
) -> ViewWindow:
    """Window derived from the tasks themselves (Gantt data-range mode).

    Spans from the earliest start to the latest ``start + span_days``, with
    *buffer_days* of slack either side. A zero-duration task still counts as
    one day, the same span the layout gives it. With no tasks it shows the current
    month widened by *pad_days*.
    """
    if not tasks:
        first, last = month_bounds(now)
        return ViewWindow(first - timedelta(days=pad_days), last + timedelta(days=pad_days))

    earliest = min(start_of_day(t.start_date) for t in tasks)
    latest = max(add_days(start_of_day(t.start_date), t.span_days) for t in tasks)
    return ViewWindow(add_days(earliest, -buffer_days), start_of_day(add_days(latest, buffer_days)))


def shift_reference(config: ViewConfig, steps: int) -> ViewConfig:
    """Move the reference date by *steps* periods of the config's scale."""
    ref = config.reference_date
    if config.time_scale == TimeScale.DAY:
        ref = ref + timedelta(days=steps)
    elif config.time_scale == TimeScale.WEEK:
        ref = ref + timedelta(days=7 * steps)
    else:
        month_index = ref.month - 1 + steps
        year = ref.year + month_index // 12
        month = month_index % 12 + 1
        day = min(ref.day, calendar.monthrange(year, month)[1])
        ref = ref.replace(year=year, month=month, day=day)
    return ViewConfig(config.time_scale, ref)


def go_to_today(config: ViewConfig, now: datetime) -> ViewConfig:
    return ViewConfig(config.time_scale, start_of_day(now))

"""Placement of tasks on a view window, with lane assignment."""

from __future__ import annotations

from datetime import datetime

import networkx as nx

from tasklane.models import LayoutEntry, Task, ViewWindow
from tasklane.temporal import days_between


def _overlaps(a: tuple[int, int], b: tuple[int, int]) -> bool:
    return a[0] <= b[1] and b[0] <= a[1]


def build_overlap_graph(intervals: list[tuple[int, int]]) -> nx.Graph:
    """Interval graph: one node per index, an edge for every overlapping pair.

    *intervals* must be sorted by start; the sweep stops scanning as soon as
    a later interval starts after the current one ends.
    """
    G = nx.Graph()
    G.add_nodes_from(range(len(intervals)))
    for i, current in enumerate(intervals):
        for j in range(i + 1, len(intervals)):
            if intervals[j][0] > current[1]:
                break
            if _overlaps(current, intervals[j]):
                G.add_edge(i, j)
    return G


def assign_lanes(intervals: list[tuple[int, int]]) -> list[int]:
    """Lowest free lane for each interval, in the given (start-sorted) order.

    Greedy colouring of the interval graph in start order gives every
    interval the lowest lane whose latest occupant has already ended, which
    is the classic first-fit lane packing.
    """
    if not intervals:
        return []
    G = build_overlap_graph(intervals)
    order = list(range(len(intervals)))
    colors = nx.greedy_color(G, strategy=lambda graph, colors: iter(order))
    return [colors[i] for i in order]


def layout(tasks: list[Task], window: ViewWindow) -> list[LayoutEntry]:
    """Position every task on *window*.

    Entries come back ordered by ``(day_offset, task id)``, which is also the
    order lanes are handed out in. Tasks outside the window are included with
    ``visible=False``; nothing is capped.
    """
    window_days = window.length_days
    placed = sorted(
        ((days_between(window.start, t.start_date), t) for t in tasks),
        key=lambda pair: (pair[0], pair[1].id),
    )
    intervals = [(offset, offset + t.span_days - 1) for offset, t in placed]
    lanes = assign_lanes(intervals)

    entries: list[LayoutEntry] = []
    for (offset, task), lane in zip(placed, lanes):
        span = task.span_days
        entries.append(
            LayoutEntry(
                task=task,
                day_offset=offset,
                span_days=span,
                lane=lane,
                visible=offset + span > 0 and offset < window_days,
            )
        )
    return entries


def visible_entries(entries: list[LayoutEntry]) -> list[LayoutEntry]:
    return [e for e in entries if e.visible]


def lane_count(entries: list[LayoutEntry]) -> int:
    return max((e.lane for e in entries), default=-1) + 1


def overlap_groups(entries: list[LayoutEntry]) -> list[list[LayoutEntry]]:
    """Clusters of entries linked by overlapping intervals, in layout order."""
    ordered = sorted(entries, key=lambda e: (e.day_offset, e.task.id))
    G = build_overlap_graph([(e.day_offset, e.last_offset) for e in ordered])
    groups = [sorted(component) for component in nx.connected_components(G)]
    groups.sort(key=lambda g: g[0])
    return [[ordered[i] for i in g] for g in groups]


def pixel_box(entry: LayoutEntry, day_width_px: float) -> tuple[float, float]:
    """(left, width) in pixels for renderers that want them."""
    return entry.left(day_width_px), entry.width(day_width_px)


def tasks_on_day(tasks: list[Task], day: datetime) -> list[Task]:
    """Tasks whose inclusive day interval contains *day* (time of day ignored)."""
    target = day.date()
    return [t for t in tasks if t.start_date.date() <= target <= t.end_date.date()]

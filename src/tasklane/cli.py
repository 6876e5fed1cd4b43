"""Typer CLI for tasklane."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from tasklane.classifier import DueClass, due_date, priority_label, status_label
from tasklane.drag import DragController, reschedule
from tasklane.layout import layout, tasks_on_day
from tasklane.models import (
    EngineConfig,
    FilterSpec,
    SortSpec,
    Task,
    TimeScale,
    ViewConfig,
    load_tasks,
)
from tasklane.permissions import EditOutcome, Principal, Role, review_edit
from tasklane.persistence import Store
from tasklane.surfaces import calendar_cells, gantt_view, timeline_rows
from tasklane.temporal import start_of_day, try_normalize
from tasklane.window import compute_window, data_range_window

app = typer.Typer(
    name="tasklane",
    help="Timeline, calendar and Gantt layout for team tasks.",
    no_args_is_help=True,
)
console = Console()

DUE_STYLES = {
    DueClass.OVERDUE: "bold red",
    DueClass.TODAY: "bold yellow",
    DueClass.UPCOMING: None,
    DueClass.DONE: "dim",
}


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _get_store() -> Store:
    return Store()


def _complete_task_id(incomplete: str) -> list[str]:
    """Shell completion for task IDs. Matches against both ID and title."""
    try:
        _, records = Store().load()
    except (OSError, ValueError):
        return []
    q = incomplete.lower()
    tasks = load_tasks(records)
    return [f"{t.title} ({t.id})" for t in tasks if q in t.id.lower() or q in t.title.lower()]


def _parse_task_id(task_id_arg: str) -> str:
    """Extracts the ID if the user used the autocompleted 'Title (ID)' format."""
    if "(" in task_id_arg and task_id_arg.endswith(")"):
        return task_id_arg.split("(")[-1].strip(")")
    return task_id_arg.strip()


def _parse_date(value: str | None, now: datetime) -> datetime:
    if value is None:
        return start_of_day(now)
    parsed = try_normalize(value)
    if parsed is None:
        console.print(f"[red]Invalid date '{value}'. Use YYYY-MM-DD.[/red]")
        raise typer.Exit(1)
    return parsed


def _parse_scale(value: str) -> TimeScale:
    try:
        return TimeScale(value.lower())
    except ValueError:
        console.print(f"[red]Invalid scale '{value}'. Use: day, week, month[/red]")
        raise typer.Exit(1)


def _load(now: datetime) -> tuple[EngineConfig, list[dict], list[Task]]:
    config, records = _get_store().load()
    return config or EngineConfig(), records, load_tasks(records, now)


def _find_task(tasks: list[Task], task_id: str) -> Task:
    task = next((t for t in tasks if t.id == task_id), None)
    if task is None:
        console.print(f"[red]Task {task_id} not found.[/red]")
        raise typer.Exit(1)
    return task


def _specs(
    status: str,
    priority: str,
    assignee: str,
    due: str,
    search: str,
    sort: str,
    desc: bool,
) -> tuple[FilterSpec, SortSpec]:
    try:
        sort_spec = SortSpec(sort, "desc" if desc else "asc")
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    return FilterSpec(status=status, priority=priority, assignee_id=assignee, due_window=due, search=search), sort_spec


def _fmt_day(dt: datetime) -> str:
    return dt.strftime("%a %b %d")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def init(
    week_start: Annotated[str, typer.Option(help="First day of the week (sunday or monday)")] = "sunday",
    cell_cap: Annotated[int, typer.Option(help="Tasks shown per calendar cell")] = 3,
) -> None:
    """Initialize (or reinitialize) the engine configuration."""
    store = _get_store()
    _, records = store.load()
    try:
        config = EngineConfig(cell_task_cap=cell_cap, week_start=week_start.lower())
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    store.save(config, records)
    console.print(f"[green]Initialized. Weeks start on {config.week_start}.[/green]")


@app.command()
def add(
    title: str,
    start: Annotated[Optional[str], typer.Option(help="Start date (YYYY-MM-DD)")] = None,
    duration: Annotated[int, typer.Option("--duration", "-d", help="Duration in days")] = 1,
    status: Annotated[str, typer.Option("--status", "-s", help="notStarted, inProgress, completed, onHold")] = "notStarted",
    priority: Annotated[str, typer.Option("--priority", "-p", help="low, medium, high")] = "medium",
    progress: Annotated[int, typer.Option(help="Progress 0-100")] = 0,
    assignee: Annotated[Optional[list[str]], typer.Option("--assignee", "-a", help="Assignee user id")] = None,
    team: Annotated[Optional[str], typer.Option(help="Team id")] = None,
    description: Annotated[Optional[str], typer.Option(help="Task description")] = None,
) -> None:
    """Add a task record."""
    store = _get_store()
    config, records = store.load()
    now = datetime.now()
    start_dt = _parse_date(start, now)
    tid = store.generate_id(records)
    task = Task.from_dict(
        {
            "id": tid,
            "title": title,
            "startDate": start_dt,
            "duration": duration,
            "status": status,
            "priority": priority,
            "progress": progress,
            "assignees": assignee or [],
            "teamId": team,
            "description": description,
        },
        now,
    )
    records.append(task.to_dict())
    store.save(config, records)
    console.print(f"[green]Added '{title}' as {tid}[/green]")


@app.command()
def window(
    scale: Annotated[str, typer.Option("--scale", help="day, week or month")] = "week",
    date: Annotated[Optional[str], typer.Option("--date", help="Reference date (YYYY-MM-DD)")] = None,
    data_range: Annotated[bool, typer.Option("--data-range", help="Derive the window from the tasks")] = False,
) -> None:
    """Show the date window a view would display."""
    now = datetime.now()
    config, _, tasks = _load(now)
    if data_range:
        win = data_range_window(tasks, now, config.data_range_buffer_days, config.empty_range_pad_days)
    else:
        win = compute_window(ViewConfig(_parse_scale(scale), _parse_date(date, now)), config.week_start)
    console.print(
        f"{_fmt_day(win.start)} → {_fmt_day(win.end)} "
        f"[dim]({win.length_days} day{'s' if win.length_days != 1 else ''})[/dim]"
    )


@app.command()
def gantt(
    scale: Annotated[str, typer.Option("--scale", help="day, week or month")] = "month",
    date: Annotated[Optional[str], typer.Option("--date", help="Reference date (YYYY-MM-DD)")] = None,
    data_range: Annotated[bool, typer.Option("--data-range", help="Derive the window from the tasks")] = False,
    status: Annotated[str, typer.Option("--status", "-s")] = "all",
    priority: Annotated[str, typer.Option("--priority", "-p")] = "all",
    assignee: Annotated[str, typer.Option("--assignee", "-a")] = "all",
    sort: Annotated[str, typer.Option(help="dueDate, priority, progress or title")] = "dueDate",
    desc: Annotated[bool, typer.Option("--desc", help="Sort descending")] = False,
) -> None:
    """Print tasks as bars on the window."""
    now = datetime.now()
    config, _, tasks = _load(now)
    filter_spec, sort_spec = _specs(status, priority, assignee, "all", "", sort, desc)
    view_config = None if data_range else ViewConfig(_parse_scale(scale), _parse_date(date, now))
    try:
        view = gantt_view(tasks, now, view_config, config, filter_spec, sort_spec)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"Gantt {_fmt_day(view.window.start)} → {_fmt_day(view.window.end)}")
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Offset", justify="right")
    table.add_column("Span", justify="right")
    table.add_column("Lane", justify="right")
    table.add_column("Bar", no_wrap=True)

    days = view.window.length_days
    for entry in view.rows:
        if not entry.visible:
            continue
        bar = "".join(
            "█" if entry.day_offset <= i <= entry.last_offset else "·" for i in range(days)
        )
        table.add_row(
            entry.task.id,
            entry.task.title,
            str(entry.day_offset),
            str(entry.span_days),
            str(entry.lane),
            bar,
        )
    console.print(table)
    hidden = sum(1 for e in view.rows if not e.visible)
    if hidden:
        console.print(f"[dim]{hidden} task(s) outside the window[/dim]")


@app.command()
def calendar(
    scale: Annotated[str, typer.Option("--scale", help="day, week or month")] = "month",
    date: Annotated[Optional[str], typer.Option("--date", help="Reference date (YYYY-MM-DD)")] = None,
) -> None:
    """Print a calendar grid with tasks per day."""
    now = datetime.now()
    config, _, tasks = _load(now)
    view_config = ViewConfig(_parse_scale(scale), _parse_date(date, now))
    cells = calendar_cells(tasks, view_config, config)

    columns = min(7, len(cells))
    table = Table(show_lines=True)
    for cell in cells[:columns]:
        table.add_column(cell.day.strftime("%a"))
    for row_start in range(0, len(cells), columns):
        row = []
        for cell in cells[row_start:row_start + columns]:
            style = "bold" if cell.day.date() == now.date() else ("dim" if not cell.in_month else "")
            lines = [f"[{style}]{cell.day.day}[/{style}]" if style else str(cell.day.day)]
            lines += [t.title for t in cell.shown]
            if cell.hidden_count:
                lines.append(f"[dim]+{cell.hidden_count} more[/dim]")
            row.append("\n".join(lines))
        table.add_row(*row)
    console.print(table)


@app.command()
def day(date: Annotated[Optional[str], typer.Argument(help="Date (YYYY-MM-DD), default today")] = None) -> None:
    """List every task that occupies a given day."""
    now = datetime.now()
    _, _, tasks = _load(now)
    target = _parse_date(date, now)
    on_day = tasks_on_day(tasks, target)
    if not on_day:
        console.print(f"No tasks on {_fmt_day(target)}.")
        return
    console.print(f"[bold]{_fmt_day(target)}[/bold]")
    for t in on_day:
        console.print(f"  {t.id}  {t.title} [dim]({status_label(t.status)}, due {_fmt_day(due_date(t))})[/dim]")


@app.command("list")
def list_tasks(
    status: Annotated[str, typer.Option("--status", "-s", help="all or a status")] = "all",
    priority: Annotated[str, typer.Option("--priority", "-p", help="all, low, medium or high")] = "all",
    assignee: Annotated[str, typer.Option("--assignee", "-a", help="all or a user id")] = "all",
    due: Annotated[str, typer.Option("--due", help="all, overdue, today or thisWeek")] = "all",
    search: Annotated[str, typer.Option("--search", "-q", help="Substring of title or description")] = "",
    sort: Annotated[str, typer.Option(help="dueDate, priority, progress or title")] = "dueDate",
    desc: Annotated[bool, typer.Option("--desc", help="Sort descending")] = False,
) -> None:
    """List tasks with filters, sorting and due classification."""
    now = datetime.now()
    _, _, tasks = _load(now)
    if not tasks:
        console.print("No tasks found.")
        return
    filter_spec, sort_spec = _specs(status, priority, assignee, due, search, sort, desc)
    try:
        rows = timeline_rows(tasks, now, filter_spec, sort_spec)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    if not rows:
        console.print("No tasks match the filter.")
        return

    table = Table(title="Tasks")
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Priority")
    table.add_column("Progress", justify="right")
    table.add_column("Start")
    table.add_column("Due")
    table.add_column("Flags")
    for row in rows:
        t = row.task
        table.add_row(
            t.id,
            t.title,
            row.status_text,
            priority_label(t.priority),
            f"{t.progress}%",
            _fmt_day(t.start_date),
            _fmt_day(row.due),
            row.due_class.value.upper(),
            style=DUE_STYLES[row.due_class],
        )
    console.print(table)
    if len(rows) != len(tasks):
        console.print(f"[dim]Showing {len(rows)} of {len(tasks)} tasks[/dim]")


@app.command()
def move(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    px: Annotated[float, typer.Option("--px", help="Pointer movement in pixels (negative moves earlier)")],
    user: Annotated[str, typer.Option("--user", "-u", help="Acting user id")],
    role: Annotated[str, typer.Option("--role", "-r", help="admin, manager or team_member")] = "team_member",
    scale: Annotated[str, typer.Option("--scale", help="Scale whose day width applies")] = "month",
    date: Annotated[Optional[str], typer.Option("--date", help="Reference date (YYYY-MM-DD)")] = None,
) -> None:
    """Reschedule a task by simulating a drag of --px pixels."""
    task_id = _parse_task_id(task_id)
    now = datetime.now()
    config, _, tasks = _load(now)
    task = _find_task(tasks, task_id)
    time_scale = _parse_scale(scale)
    win = compute_window(ViewConfig(time_scale, _parse_date(date, task.start_date)), config.week_start)
    controller = DragController(layout(tasks, win), win, config.day_width_for(time_scale))

    principal = Principal(user, Role.parse(role))
    if not controller.begin_drag(task_id, 0.0, principal):
        console.print("[red]Only task assignees can update task dates.[/red]")
        raise typer.Exit(1)
    controller.update_drag(px)
    proposal = controller.end_drag()
    if not proposal.changed:
        controller.settle(tasks)
        console.print(f"[yellow]{task_id} stays on {_fmt_day(proposal.original_date)}.[/yellow]")
        return
    if not reschedule(controller, _get_store(), tasks, proposal):
        console.print(f"[red]Failed to update {task_id}; nothing changed.[/red]")
        raise typer.Exit(1)
    console.print(
        f"[green]Moved {task_id}: {_fmt_day(proposal.original_date)} → {_fmt_day(proposal.proposed_date)}[/green]"
    )


@app.command()
def edit(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    user: Annotated[str, typer.Option("--user", "-u", help="Acting user id")],
    role: Annotated[str, typer.Option("--role", "-r", help="admin, manager or team_member")] = "team_member",
    title: Annotated[Optional[str], typer.Option(help="New title")] = None,
    description: Annotated[Optional[str], typer.Option(help="New description")] = None,
    status: Annotated[Optional[str], typer.Option("--status", "-s", help="New status")] = None,
    progress: Annotated[Optional[int], typer.Option(help="New progress 0-100")] = None,
    priority: Annotated[Optional[str], typer.Option("--priority", "-p", help="New priority")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="New duration in days")] = None,
) -> None:
    """Edit a task, applying only what the user is allowed to change."""
    task_id = _parse_task_id(task_id)
    now = datetime.now()
    _, _, tasks = _load(now)
    task = _find_task(tasks, task_id)
    candidates = {
        "title": title,
        "description": description,
        "status": status,
        "progress": progress,
        "priority": priority,
        "duration": duration,
    }
    patch = {k: v for k, v in candidates.items() if v is not None}
    decision = review_edit(task, patch, Principal(user, Role.parse(role)))

    if decision.outcome == EditOutcome.REJECTED:
        console.print(f"[red]{decision.reason}[/red]")
        raise typer.Exit(1)
    request = decision.mutation()
    if request is None:
        console.print(f"[yellow]Nothing to change on {task_id}.[/yellow]")
        return
    if not _get_store().commit(request):
        console.print(f"[red]Failed to update {task_id}.[/red]")
        raise typer.Exit(1)
    if decision.is_partial:
        console.print(f"[yellow]{decision.reason}[/yellow]")
        console.print(f"[dim]Reverted: {', '.join(decision.reverted)}[/dim]")
    console.print(f"[green]Updated {task_id}: {', '.join(sorted(decision.applied))}[/green]")

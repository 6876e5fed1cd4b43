import json

import pytest
from typer.testing import CliRunner

from tasklane.cli import app
from tasklane.persistence import DEFAULT_DB_FILE

runner = CliRunner()


def _records(tmp_path):
    return {r["id"]: r for r in json.loads((tmp_path / DEFAULT_DB_FILE).read_text())["tasks"]}


@pytest.fixture
def project(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    runner.invoke(app, ["init"])
    runner.invoke(app, ["add", "Draft", "--start", "2026-10-05", "-d", "3", "-a", "u1", "--status", "inProgress"])
    runner.invoke(app, ["add", "Review", "--start", "2026-10-06", "-a", "u2", "--priority", "high"])
    runner.invoke(app, ["add", "Ship", "--start", "2099-01-01", "-a", "u1"])
    return tmp_path


def test_add_writes_normalized_records(project):
    records = _records(project)
    assert sorted(records) == ["T-1", "T-2", "T-3"]
    assert records["T-1"]["startDate"] == "2026-10-05T00:00:00"
    assert records["T-1"]["duration"] == 3
    assert records["T-2"]["priority"] == "high"


def test_window_month(project):
    result = runner.invoke(app, ["window", "--scale", "month", "--date", "2026-10-19"])
    assert result.exit_code == 0, result.stdout
    assert "Sun Sep 27" in result.stdout
    assert "Sat Oct 31" in result.stdout
    assert "35 days" in result.stdout


def test_window_rejects_bad_input(project):
    assert runner.invoke(app, ["window", "--date", "not-a-date"]).exit_code == 1
    assert runner.invoke(app, ["window", "--scale", "year"]).exit_code == 1


def test_list_overdue_filter(project):
    result = runner.invoke(app, ["list", "--due", "overdue"])
    assert result.exit_code == 0, result.stdout
    assert "T-1" in result.stdout
    assert "T-2" in result.stdout
    assert "T-3" not in result.stdout
    assert "Showing 2 of 3 tasks" in result.stdout


def test_list_bad_sort_field(project):
    result = runner.invoke(app, ["list", "--sort", "color"])
    assert result.exit_code == 1


def test_gantt_and_calendar_render(project):
    result = runner.invoke(app, ["gantt", "--scale", "week", "--date", "2026-10-05"])
    assert result.exit_code == 0, result.stdout
    assert "T-1" in result.stdout and "T-2" in result.stdout
    assert "outside the window" in result.stdout

    result = runner.invoke(app, ["calendar", "--scale", "week", "--date", "2026-10-05"])
    assert result.exit_code == 0, result.stdout
    assert "Draft" in result.stdout


def test_calendar_overflow(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    runner.invoke(app, ["init", "--cell-cap", "1"])
    for name in ("One", "Two", "Three"):
        runner.invoke(app, ["add", name, "--start", "2026-10-07"])
    result = runner.invoke(app, ["calendar", "--scale", "day", "--date", "2026-10-07"])
    assert result.exit_code == 0, result.stdout
    assert "+2 more" in result.stdout


def test_day_lists_spanning_tasks(project):
    result = runner.invoke(app, ["day", "2026-10-07"])
    assert result.exit_code == 0, result.stdout
    assert "Draft" in result.stdout
    assert "Review" not in result.stdout


def test_move_by_assignee_commits(project):
    # Day scale is 50px per day; 74px snaps to one day
    result = runner.invoke(app, ["move", "T-1", "--px", "74", "--user", "u1", "--scale", "day"])
    assert result.exit_code == 0, result.stdout
    assert "Moved T-1" in result.stdout
    assert _records(project)["T-1"]["startDate"] == "2026-10-06T00:00:00"


def test_move_by_non_assignee_is_refused(project):
    result = runner.invoke(app, ["move", "T-1", "--px", "100", "--user", "u2", "--role", "admin"])
    assert result.exit_code == 1
    assert "Only task assignees" in result.stdout
    assert _records(project)["T-1"]["startDate"] == "2026-10-05T00:00:00"


def test_move_without_change_skips_commit(project):
    result = runner.invoke(app, ["move", "Draft (T-1)", "--px", "10", "--user", "u1", "--scale", "day"])
    assert result.exit_code == 0, result.stdout
    assert "stays on" in result.stdout


def test_edit_partial_acceptance(project):
    result = runner.invoke(app, ["edit", "T-1", "--user", "u1", "--status", "completed", "--title", "X"])
    assert result.exit_code == 0, result.stdout
    assert "Reverted: title" in result.stdout
    record = _records(project)["T-1"]
    assert record["status"] == "completed"
    assert record["title"] == "Draft"


def test_edit_by_manager_and_outsider(project):
    result = runner.invoke(app, ["edit", "T-2", "--user", "boss", "--role", "manager", "--title", "Review v2"])
    assert result.exit_code == 0, result.stdout
    assert _records(project)["T-2"]["title"] == "Review v2"

    result = runner.invoke(app, ["edit", "T-2", "--user", "nobody", "--progress", "50"])
    assert result.exit_code == 1


def test_unknown_task(project):
    result = runner.invoke(app, ["edit", "T-99", "--user", "u1", "--status", "completed"])
    assert result.exit_code == 1
    assert "not found" in result.stdout


def test_gantt_rejects_unknown_status(project):
    result = runner.invoke(app, ["gantt", "--status", "overdue"])
    assert result.exit_code == 1
    assert "Unknown status" in result.stdout


def test_list_survives_non_finite_numbers(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / DEFAULT_DB_FILE).write_text(
        '{"tasks": [{"id": "T-1", "title": "Odd", "startDate": "2026-10-05",'
        ' "duration": NaN, "progress": Infinity, "assignees": 42}]}'
    )
    result = runner.invoke(app, ["list"])
    assert result.exit_code == 0, result.stdout
    assert "Odd" in result.stdout

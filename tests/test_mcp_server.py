import json

import pytest

from tasklane import mcp_server
from tasklane.models import EngineConfig
from tasklane.persistence import Store


@pytest.fixture
def store(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    s = Store()
    s.save(
        EngineConfig(),
        [
            {"id": "T-1", "title": "Draft", "startDate": "2026-10-05", "duration": 3, "assignees": ["u1"],
             "status": "in-progress", "teamId": "team-a"},
            {"id": "T-2", "text": "Review", "start_date": {"_seconds": "bad"}, "assignees": [{"uid": "u2"}]},
        ],
    )
    return s


def test_get_window(store):
    data = json.loads(mcp_server.get_window(scale="week", date="2026-10-07"))
    assert data == {"start": "2026-10-04", "end": "2026-10-10", "days": 7}
    assert mcp_server.get_window(scale="fortnight").startswith("Error")


def test_get_layout(store):
    data = json.loads(mcp_server.get_layout(scale="week", date="2026-10-07"))
    entry = next(e for e in data["entries"] if e["id"] == "T-1")
    assert (entry["day_offset"], entry["span_days"], entry["lane"]) == (1, 3, 0)


def test_get_day(store):
    data = json.loads(mcp_server.get_day("2026-10-06"))
    assert [t["id"] for t in data] == ["T-1"]
    assert data[0]["status_label"] == "In Progress"
    assert mcp_server.get_day("nope").startswith("Error")


def test_list_tasks_filters(store):
    data = json.loads(mcp_server.list_tasks(assignee_id="u2"))
    assert [t["id"] for t in data] == ["T-2"]
    assert mcp_server.list_tasks(due_window="later").startswith("Error")


def test_move_task_respects_assignees(store):
    assert mcp_server.move_task("T-1", 2, "u2").startswith("Error")
    assert mcp_server.move_task("T-1", 2, "u1") == "Moved T-1 to 2026-10-07."
    _, records = store.load()
    assert records[0]["startDate"] == "2026-10-07T00:00:00"


def test_edit_task_partial(store):
    result = json.loads(mcp_server.edit_task("T-1", "u1", changes={"progress": 80, "priority": "high"}))
    assert result["outcome"] == "partial"
    assert result["applied"] == ["progress"]
    assert result["reverted"] == ["priority"]
    _, records = store.load()
    assert records[0]["progress"] == 80
    assert "priority" not in records[0]

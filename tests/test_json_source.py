# tests/test_json_source.py

from __future__ import annotations

import json
from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path

from dayline.sources.json_source import JsonPlannerSource

MONDAY = date(2024, 1, 15)


def _write(path: Path, data: object) -> Path:
    path.write_text(json.dumps(data), "utf-8")
    return path


def test_missing_or_broken_file_yields_nothing(tmp_path: Path) -> None:
    missing = JsonPlannerSource(tmp_path / "nope.json")
    assert missing.list_tasks_for_date(MONDAY) == []
    assert missing.get_routine("r1") is None

    bad = tmp_path / "bad.json"
    bad.write_text("{not json", "utf-8")
    assert JsonPlannerSource(bad).list_events_for_date(MONDAY) == []


def test_routine_recurrence_and_visibility(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "planner.json",
        {
            "routines": [
                {"id": "daily", "name": "Meds", "time_of_day": "08:00"},
                {"id": "mondays", "name": "Bins", "rrule": "FREQ=WEEKLY;BYDAY=MO", "assignee": "bob"},
                {"id": "paused", "name": "Gym", "visibility": "paused"},
                {"id": "later", "name": "New", "dtstart": "2024-02-01"},
                {"id": "broken", "name": "Bad", "rrule": "FREQ=NEVER"},
                {"name": "no id"},
            ]
        },
    )
    src = JsonPlannerSource(path)

    monday = {r.id for r in src.list_routines_for_date(MONDAY)}
    tuesday = {r.id for r in src.list_routines_for_date(MONDAY + timedelta(days=1))}

    assert monday == {"daily", "mondays"}
    assert tuesday == {"daily"}

    meds = src.get_routine("daily")
    assert meds.time_of_day == time(8, 0)
    assert src.get_routine("mondays").assignee == "bob"
    assert src.get_routine("paused").active is False
    assert src.get_routine("missing") is None


def test_events_on_their_stored_date(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "planner.json",
        {
            "events": [
                {"id": "e1", "title": "Dentist", "start": "2024-01-15T23:30:00-05:00", "location": "Main St"},
                {"id": "e2", "title": "Trip", "start": "2024-01-16", "all_day": True},
                {"id": "e3", "title": "No start"},
            ]
        },
    )
    src = JsonPlannerSource(path)

    (ev,) = src.list_events_for_date(MONDAY)
    assert ev.id == "e1"
    assert ev.start.tzinfo is not None
    assert ev.start.utcoffset() == timedelta(hours=-5)
    assert ev.location == "Main St"

    assert [e.id for e in src.list_events_for_date(MONDAY + timedelta(days=1))] == ["e2"]
    assert src.get_event("e3") is None


def test_naive_timestamps_take_configured_zone(tmp_path: Path) -> None:
    zone = timezone(timedelta(hours=2))
    path = _write(tmp_path / "planner.json", {"events": [{"id": "e1", "title": "x", "start": "2024-01-15T09:00:00"}]})

    ev = JsonPlannerSource(path, tz=zone).get_event("e1")
    assert ev.start == datetime(2024, 1, 15, 9, tzinfo=zone)


def test_tasks_by_scheduled_date_or_time(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "planner.json",
        {
            "tasks": [
                {"id": "t1", "title": "Taxes", "scheduled_date": "2024-01-15", "assignees": ["alice", ""]},
                {"id": "t2", "title": "Call", "scheduled_for": "2024-01-15T10:00:00", "completed": True},
                {"id": "t3", "title": "Someday"},
            ]
        },
    )
    src = JsonPlannerSource(path)

    tasks = {t.id: t for t in src.list_tasks_for_date(MONDAY)}
    assert set(tasks) == {"t1", "t2"}
    assert tasks["t1"].assignees == ("alice",)
    assert tasks["t2"].completed is True
    assert tasks["t2"].scheduled_for == datetime(2024, 1, 15, 10)

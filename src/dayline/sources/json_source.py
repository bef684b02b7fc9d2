# src/dayline/sources/json_source.py

from __future__ import annotations

"""
File-backed planner collaborator.

One JSON document provides tasks, routines and calendar events:

    {
      "tasks":    [{"id": "t1", "title": "...", "scheduled_date": "2024-01-15", ...}],
      "routines": [{"id": "r1", "name": "...", "time_of_day": "07:30", "rrule": "FREQ=WEEKLY;BYDAY=MO"}],
      "events":   [{"id": "e1", "title": "...", "start": "2024-01-15T14:00:00-05:00", ...}]
    }

The file is re-read on every call so edits show up without a restart.
Malformed entries are skipped with a warning; a missing or broken file means
"no items".
"""

import json
import logging
from datetime import date, datetime, time, tzinfo
from pathlib import Path
from typing import Any

from dateutil.parser import isoparse
from dateutil.rrule import rrulestr

from ..timeline.timeline_models import EventRecord, RoutineRecord, TaskRecord

logger = logging.getLogger(__name__)

_DEFAULT_DTSTART = datetime(2000, 1, 1)


def _str_or_none(v: Any) -> str | None:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def _str_tuple(v: Any) -> tuple[str, ...]:
    if not isinstance(v, list):
        return ()
    return tuple(s for s in (_str_or_none(x) for x in v) if s)


def _parse_day(raw: Any) -> date | None:
    s = _str_or_none(raw)
    if s is None:
        return None
    return isoparse(s).date()


def _parse_time_of_day(raw: Any) -> time | None:
    s = _str_or_none(raw)
    if s is None:
        return None
    return time.fromisoformat(s)


class JsonPlannerSource:
    """Task, routine and calendar collaborator over a single JSON file."""

    def __init__(self, path: str | Path, tz: tzinfo | None = None) -> None:
        self._path = Path(path)
        self._tz = tz

    @property
    def path(self) -> Path:
        return self._path

    # ---- loading ----

    def _load(self) -> dict[str, list[dict[str, Any]]]:
        if not self._path.exists():
            logger.debug("Planner file %s not found; no items.", self._path)
            return {}
        try:
            data = json.loads(self._path.read_text("utf-8"))
        except Exception:
            logger.warning("Failed to read planner file %s", self._path, exc_info=True)
            return {}
        if not isinstance(data, dict):
            logger.warning("Planner file %s: top level must be an object", self._path)
            return {}

        out: dict[str, list[dict[str, Any]]] = {}
        for key in ("tasks", "routines", "events"):
            raw = data.get(key) or []
            if isinstance(raw, list):
                out[key] = [x for x in raw if isinstance(x, dict)]
        return out

    def _section(self, key: str) -> list[dict[str, Any]]:
        return self._load().get(key, [])

    def _ts(self, raw: Any) -> datetime | None:
        s = _str_or_none(raw)
        if s is None:
            return None
        dt = isoparse(s)
        # Naive timestamps are taken as local wall clock in the configured zone.
        if dt.tzinfo is None and self._tz is not None:
            dt = dt.replace(tzinfo=self._tz)
        return dt

    # ---- parsing ----

    def _task(self, d: dict[str, Any]) -> TaskRecord | None:
        try:
            scheduled_for = self._ts(d.get("scheduled_for"))
            scheduled_date = _parse_day(d.get("scheduled_date"))
            if scheduled_date is None and scheduled_for is not None:
                scheduled_date = scheduled_for.date()
            if scheduled_date is None:
                return None
            return TaskRecord(
                id=str(d["id"]),
                title=str(d.get("title") or ""),
                scheduled_date=scheduled_date,
                scheduled_for=scheduled_for,
                all_day=bool(d.get("all_day", False)),
                assignee=_str_or_none(d.get("assignee")),
                assignees=_str_tuple(d.get("assignees")),
                completed=bool(d.get("completed", False)),
            )
        except Exception:
            logger.warning("Skipping malformed task entry %r", d, exc_info=True)
            return None

    def _routine(self, d: dict[str, Any]) -> RoutineRecord | None:
        try:
            return RoutineRecord(
                id=str(d["id"]),
                name=str(d.get("name") or d.get("title") or ""),
                time_of_day=_parse_time_of_day(d.get("time_of_day")),
                assignee=_str_or_none(d.get("assignee")),
                assignees=_str_tuple(d.get("assignees")),
                description=_str_or_none(d.get("description")),
                active=str(d.get("visibility") or "active").lower() == "active",
                show_on_timeline=bool(d.get("show_on_timeline", True)),
            )
        except Exception:
            logger.warning("Skipping malformed routine entry %r", d, exc_info=True)
            return None

    def _event(self, d: dict[str, Any]) -> EventRecord | None:
        try:
            start = self._ts(d.get("start"))
            if start is None:
                return None
            return EventRecord(
                id=str(d["id"]),
                title=str(d.get("title") or ""),
                start=start,
                end=self._ts(d.get("end")),
                all_day=bool(d.get("all_day", False)),
                assignee=_str_or_none(d.get("assignee")),
                location=_str_or_none(d.get("location")),
            )
        except Exception:
            logger.warning("Skipping malformed event entry %r", d, exc_info=True)
            return None

    @staticmethod
    def _fires_on(d: dict[str, Any], day: date) -> bool:
        """True if the routine's recurrence produces an occurrence on `day`."""
        rule = _str_or_none(d.get("rrule"))
        try:
            anchor = _str_or_none(d.get("dtstart"))
            dtstart = isoparse(anchor).replace(tzinfo=None) if anchor else _DEFAULT_DTSTART
            if day < dtstart.date():
                return False
            if rule is None:
                return True
            rr = rrulestr(rule, dtstart=dtstart)
            lo = datetime.combine(day, time.min)
            hi = datetime.combine(day, time.max)
            return bool(rr.between(lo, hi, inc=True))
        except Exception:
            logger.warning("Bad recurrence for routine %s: %r", d.get("id"), rule, exc_info=True)
            return False

    # ---- TaskSource ----

    def list_tasks_for_date(self, day: date) -> list[TaskRecord]:
        out: list[TaskRecord] = []
        for d in self._section("tasks"):
            task = self._task(d)
            if task is not None and task.scheduled_date == day:
                out.append(task)
        return out

    # ---- RoutineSource ----

    def list_routines_for_date(self, day: date) -> list[RoutineRecord]:
        out: list[RoutineRecord] = []
        for d in self._section("routines"):
            routine = self._routine(d)
            if routine is None or not routine.active:
                continue
            if self._fires_on(d, day):
                out.append(routine)
        return out

    def get_routine(self, routine_id: str) -> RoutineRecord | None:
        for d in self._section("routines"):
            if str(d.get("id")) == str(routine_id):
                return self._routine(d)
        return None

    # ---- CalendarSource ----

    def list_events_for_date(self, day: date) -> list[EventRecord]:
        out: list[EventRecord] = []
        for d in self._section("events"):
            ev = self._event(d)
            if ev is not None and ev.start.date() == day:
                out.append(ev)
        return out

    def get_event(self, event_id: str) -> EventRecord | None:
        for d in self._section("events"):
            if str(d.get("id")) == str(event_id):
                return self._event(d)
        return None

# tests/fakes.py

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from dayline.timeline.timeline_models import EventRecord, RoutineRecord, TaskRecord


@dataclass(slots=True)
class FakeSession:
    """SessionProvider with a switchable user; `broken=True` makes the lookup raise."""

    user_id: str | None = "alice"
    broken: bool = False

    def current_user_id(self) -> str | None:
        if self.broken:
            raise RuntimeError("session backend unavailable")
        return self.user_id


class FakeClock:
    """Deterministic, strictly increasing clock."""

    def __init__(self, start: float = 1_700_000_000.0, step: float = 1.0) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> float:
        self.now += self.step
        return self.now


class FakePlanner:
    """
    In-memory task/routine/calendar collaborator.

    Routines fire on every date unless `routine_days[id]` restricts them.
    Names in `failing` make the matching list_* call raise.
    """

    def __init__(
        self,
        *,
        tasks: list[TaskRecord] | None = None,
        routines: list[RoutineRecord] | None = None,
        events: list[EventRecord] | None = None,
        routine_days: dict[str, set[date]] | None = None,
    ) -> None:
        self.tasks = list(tasks or [])
        self.routines = list(routines or [])
        self.events = list(events or [])
        self.routine_days = dict(routine_days or {})
        self.failing: set[str] = set()
        self.lookups: list[tuple[str, str]] = []

    def _check(self, name: str) -> None:
        if name in self.failing:
            raise RuntimeError(f"{name} source is down")

    def list_tasks_for_date(self, day: date) -> list[TaskRecord]:
        self._check("tasks")
        return [t for t in self.tasks if t.scheduled_date == day]

    def list_routines_for_date(self, day: date) -> list[RoutineRecord]:
        self._check("routines")
        out: list[RoutineRecord] = []
        for r in self.routines:
            days = self.routine_days.get(r.id)
            if days is None or day in days:
                out.append(r)
        return out

    def get_routine(self, routine_id: str) -> RoutineRecord | None:
        self.lookups.append(("routine", routine_id))
        return next((r for r in self.routines if r.id == routine_id), None)

    def list_events_for_date(self, day: date) -> list[EventRecord]:
        self._check("events")
        return [e for e in self.events if e.start.date() == day]

    def get_event(self, event_id: str) -> EventRecord | None:
        self.lookups.append(("event", event_id))
        return next((e for e in self.events if e.id == event_id), None)


@dataclass(slots=True)
class BrokenStore:
    """InstanceRepo whose every call fails like a locked / corrupt database."""

    calls: list[str] = field(default_factory=list)

    def __getattr__(self, name: str) -> Any:
        def fail(*args: Any, **kwargs: Any) -> Any:
            self.calls.append(name)
            raise sqlite3.OperationalError("database is locked")

        return fail

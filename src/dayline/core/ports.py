# src/dayline/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the session, storage and the task/routine/calendar collaborators
swappable and makes testing easier.
"""

from datetime import date, datetime
from typing import Any, Protocol

from ..timeline.timeline_models import EventRecord, RoutineRecord, TaskRecord


class SessionProvider(Protocol):
    """Authenticated session. None (or raising) means "not signed in"."""

    def current_user_id(self) -> str | None: ...


class TaskSource(Protocol):
    """One-shot tasks collaborator."""

    def list_tasks_for_date(self, day: date) -> list[TaskRecord]: ...


class RoutineSource(Protocol):
    """
    Routine collaborator.

    Owns the recurrence rule: list_routines_for_date returns only active routines
    whose recurrence fires on `day`.
    """

    def list_routines_for_date(self, day: date) -> list[RoutineRecord]: ...
    def get_routine(self, routine_id: str) -> RoutineRecord | None: ...


class CalendarSource(Protocol):
    """External calendar collaborator (events starting on a date)."""

    def list_events_for_date(self, day: date) -> list[EventRecord]: ...
    def get_event(self, event_id: str) -> EventRecord | None: ...


class InstanceRepo(Protocol):
    # Instances (every call is scoped to user_id)
    def get_instance(self, *, user_id: str, kind: Any, entity_id: str, day: date) -> Any | None: ...
    def get_or_create_instance(self, *, user_id: str, kind: Any, entity_id: str, day: date) -> Any: ...
    def list_instances_for_date(self, *, user_id: str, day: date) -> list[Any]: ...
    def list_instances_in_window(self, *, user_id: str, start: date, end: date) -> list[Any]: ...
    def update_instance(
            self,
            instance_id: int,
            *,
            user_id: str,
            status: Any | None = None,
            deferred_to: datetime | None = ...,
            completed_at: float | None = ...,
            skipped_at: float | None = ...,
            assignee_override: str | None = ...,
    ) -> bool: ...

    # Notes
    def add_note(self, *, instance_id: int, user_id: str, note: str) -> Any: ...
    def list_notes(self, instance_id: int) -> list[Any]: ...
    def delete_note(self, note_id: int, *, user_id: str) -> None: ...

    # Coverage
    def add_coverage_request(self, *, instance_id: int, requested_by: str) -> Any: ...
    def list_coverage_requests(self, instance_id: int) -> list[Any]: ...
    def respond_to_coverage(
            self,
            request_id: int,
            *,
            responder: str,
            accept: bool,
            now_ts: float | None = None,
    ) -> bool: ...

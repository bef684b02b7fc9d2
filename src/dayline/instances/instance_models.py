# src/dayline/instances/instance_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum


class EntityKind(StrEnum):
    """Kinds of recurring entity that get per-date instances."""

    ROUTINE = "routine"
    CALENDAR_EVENT = "calendar_event"

    @classmethod
    def parse(cls, raw: str) -> EntityKind:
        """Accept the stored value plus the short 'event' alias used on the console."""
        s = (raw or "").strip().lower()
        if s == "event":
            return cls.CALENDAR_EVENT
        return cls(s)


class InstanceStatus(StrEnum):
    """
    Occurrence status for one date.

    Notes:
    - "deferred" is terminal for the instance's own date but is the acting
      state on the deferred-to date.
    """

    PENDING = "pending"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    DEFERRED = "deferred"

    @classmethod
    def from_db(cls, raw: str | None) -> InstanceStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except Exception:
            return cls.PENDING


class CoverageStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"

    @classmethod
    def from_db(cls, raw: str | None) -> CoverageStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except Exception:
            return cls.PENDING


@dataclass(slots=True)
class ActionableInstance:
    id: int
    user_id: str
    entity_kind: EntityKind
    entity_id: str
    date: date
    status: InstanceStatus

    assignee_override: str | None
    deferred_to: datetime | None
    completed_at: float | None
    skipped_at: float | None

    created_at: float
    updated_at: float

    @property
    def deferred_to_date(self) -> date | None:
        # Calendar date in the offset the timestamp was stored with.
        return self.deferred_to.date() if self.deferred_to is not None else None


@dataclass(slots=True)
class InstanceNote:
    id: int
    instance_id: int
    user_id: str
    note: str
    created_at: float


@dataclass(slots=True)
class CoverageRequest:
    id: int
    instance_id: int
    requested_by: str
    covered_by: str | None
    status: CoverageStatus
    requested_at: float
    responded_at: float | None = None

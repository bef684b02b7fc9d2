# src/dayline/timeline/timeline_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import StrEnum

from ..instances.instance_models import ActionableInstance, EntityKind, InstanceStatus


class ItemKind(StrEnum):
    """Closed set of things that can appear on a day's timeline."""

    TASK = "task"
    ROUTINE = "routine"
    EVENT = "event"

    @property
    def entity_kind(self) -> EntityKind | None:
        """Instance kind tracked for this item kind (tasks carry their own state)."""
        if self is ItemKind.ROUTINE:
            return EntityKind.ROUTINE
        if self is ItemKind.EVENT:
            return EntityKind.CALENDAR_EVENT
        return None


class DaySection(StrEnum):
    ALL_DAY = "all_day"
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    UNSCHEDULED = "unscheduled"


# ---- collaborator records ----


@dataclass(frozen=True, slots=True)
class TaskRecord:
    id: str
    title: str
    scheduled_date: date
    scheduled_for: datetime | None = None
    all_day: bool = False
    assignee: str | None = None
    assignees: tuple[str, ...] = ()
    completed: bool = False


@dataclass(frozen=True, slots=True)
class RoutineRecord:
    id: str
    name: str
    time_of_day: time | None = None
    assignee: str | None = None
    assignees: tuple[str, ...] = ()
    description: str | None = None
    active: bool = True
    show_on_timeline: bool = True


@dataclass(frozen=True, slots=True)
class EventRecord:
    id: str
    title: str
    start: datetime
    end: datetime | None = None
    all_day: bool = False
    assignee: str | None = None
    location: str | None = None


SourceRecord = TaskRecord | RoutineRecord | EventRecord


# ---- projections ----


@dataclass(slots=True)
class TimelineItem:
    """Ephemeral projection of a task/routine/event plus its resolved instance state."""

    kind: ItemKind
    entity_id: str
    title: str
    start: datetime | None
    end: datetime | None
    all_day: bool
    status: InstanceStatus

    assignee: str | None
    assignees: tuple[str, ...]

    source: SourceRecord
    instance: ActionableInstance | None = None

    @property
    def key(self) -> str:
        return f"{self.kind.value}-{self.entity_id}"

    @property
    def completed(self) -> bool:
        return self.status is InstanceStatus.COMPLETED

    @property
    def actionable(self) -> bool:
        return self.status is not InstanceStatus.SKIPPED


def _empty_sections() -> dict[DaySection, list[TimelineItem]]:
    return {section: [] for section in DaySection}


@dataclass(slots=True)
class DayTimeline:
    day: date
    sections: dict[DaySection, list[TimelineItem]] = field(default_factory=_empty_sections)
    completed_count: int = 0
    total_count: int = 0

    def items(self) -> list[TimelineItem]:
        out: list[TimelineItem] = []
        for section in DaySection:
            out.extend(self.sections.get(section, []))
        return out

    def find(self, key: str) -> TimelineItem | None:
        for item in self.items():
            if item.key == key:
                return item
        return None

# src/dayline/timeline/aggregator.py

from __future__ import annotations

"""
Daily timeline aggregator.

For one date it:
- fans out to the task, routine and calendar collaborators and the instance store,
- resolves one instance per routine/event (today's row beats carry-overs),
- applies completed/skipped/deferred overrides,
- filters by assignee and buckets everything into day sections.

Collaborator failures degrade to "no items from that source"; nothing raises.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import date, datetime, tzinfo
from typing import TypeVar

from ..core.ports import CalendarSource, RoutineSource, TaskSource
from ..instances.instance_models import ActionableInstance, EntityKind, InstanceStatus
from ..instances.instance_service import ActionableInstances
from .assignee_filter import matches_assignee
from .sections import DEFAULT_AFTERNOON_START_HOUR, DEFAULT_EVENING_START_HOUR, group_by_section
from .timeline_models import (
    DayTimeline,
    EventRecord,
    ItemKind,
    RoutineRecord,
    SourceRecord,
    TaskRecord,
    TimelineItem,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

InstanceKey = tuple[EntityKind, str]


def _as_day(day: date) -> date:
    return day.date() if isinstance(day, datetime) else day


# ---- pure helpers ----


def dedupe_events(events: Iterable[EventRecord]) -> list[EventRecord]:
    """Drop repeated (title, start) pairs coming from overlapping feeds; first one wins."""
    seen: set[tuple[str, datetime]] = set()
    out: list[EventRecord] = []
    for ev in events:
        key = (ev.title, ev.start)
        if key in seen:
            logger.debug("Dropping duplicate event id=%s title=%r start=%s", ev.id, ev.title, ev.start)
            continue
        seen.add(key)
        out.append(ev)
    return out


def _rank(inst: ActionableInstance, day: date) -> tuple[bool, date, float, int]:
    return (inst.date == day, inst.date, inst.updated_at, inst.id)


def _acts_on(inst: ActionableInstance, day: date) -> bool:
    if inst.date == day:
        return True
    # Carry-over: an earlier occurrence deferred onto `day`.
    return (
        inst.date < day
        and inst.status is InstanceStatus.DEFERRED
        and inst.deferred_to_date == day
    )


def resolve_instances(instances: Iterable[ActionableInstance], day: date) -> dict[InstanceKey, ActionableInstance]:
    """
    Pick the acting instance per (kind, entity id) for `day`.

    Candidates: rows dated `day`, and earlier rows deferred onto `day`.
    Tie-break: dated `day` beats any carry-over; then the most recent origin date;
    then the most recently updated row; then the highest id.
    """
    best: dict[InstanceKey, ActionableInstance] = {}
    for inst in instances:
        if not _acts_on(inst, day):
            continue

        key = (inst.entity_kind, inst.entity_id)
        current = best.get(key)
        if current is None or _rank(inst, day) > _rank(current, day):
            best[key] = inst
    return best


def carried_keys(instances: Iterable[ActionableInstance], day: date) -> set[InstanceKey]:
    """Entities with an earlier occurrence deferred onto `day`, whichever row wins the tie-break."""
    return {
        (inst.entity_kind, inst.entity_id)
        for inst in instances
        if inst.date < day and _acts_on(inst, day)
    }


def _merge_by_id(*batches: Iterable[ActionableInstance]) -> list[ActionableInstance]:
    seen: dict[int, ActionableInstance] = {}
    for batch in batches:
        for inst in batch:
            seen.setdefault(inst.id, inst)
    return list(seen.values())


def project(record: SourceRecord, day: date, tz: tzinfo | None = None) -> TimelineItem:
    """Turn a collaborator record into a timeline item (no instance state applied yet)."""
    if isinstance(record, TaskRecord):
        return TimelineItem(
            kind=ItemKind.TASK,
            entity_id=record.id,
            title=record.title,
            start=record.scheduled_for,
            end=None,
            all_day=record.all_day,
            status=InstanceStatus.COMPLETED if record.completed else InstanceStatus.PENDING,
            assignee=record.assignee,
            assignees=tuple(record.assignees),
            source=record,
        )

    if isinstance(record, RoutineRecord):
        start = None
        if record.time_of_day is not None:
            start = datetime.combine(day, record.time_of_day, tzinfo=tz)
        return TimelineItem(
            kind=ItemKind.ROUTINE,
            entity_id=record.id,
            title=record.name,
            start=start,
            end=None,
            all_day=False,
            status=InstanceStatus.PENDING,
            assignee=record.assignee,
            assignees=tuple(record.assignees),
            source=record,
        )

    if isinstance(record, EventRecord):
        return TimelineItem(
            kind=ItemKind.EVENT,
            entity_id=record.id,
            title=record.title,
            start=record.start,
            end=record.end,
            all_day=record.all_day,
            status=InstanceStatus.PENDING,
            assignee=record.assignee,
            assignees=(),
            source=record,
        )

    raise TypeError(f"Unsupported timeline source: {type(record).__name__}")


def _move(item: TimelineItem, new_start: datetime) -> None:
    if item.start is not None and item.end is not None:
        item.end = new_start + (item.end - item.start)
    item.start = new_start
    item.all_day = False


def apply_instance(item: TimelineItem, inst: ActionableInstance | None, day: date) -> TimelineItem | None:
    """
    Overlay the resolved instance on a projected item.

    Returns None when the occurrence was deferred away from `day`.
    """
    if inst is None:
        return item

    status = inst.status
    if status is InstanceStatus.DEFERRED:
        if inst.deferred_to is None or inst.deferred_to_date != day:
            return None
        # Deferred onto this day: it acts as a pending occurrence here.
        _move(item, inst.deferred_to)
        status = InstanceStatus.PENDING
    elif status is InstanceStatus.PENDING and inst.deferred_to is not None:
        _move(item, inst.deferred_to)

    item.status = status
    item.instance = inst
    if inst.assignee_override:
        item.assignee = inst.assignee_override
        item.assignees = ()
    return item


# ---- aggregator ----


class TimelineAggregator:
    def __init__(
        self,
        instances: ActionableInstances,
        tasks: TaskSource,
        routines: RoutineSource,
        calendar: CalendarSource,
        *,
        tz: tzinfo | None = None,
        carry_over_days: int = 1,
        afternoon_start_hour: int = DEFAULT_AFTERNOON_START_HOUR,
        evening_start_hour: int = DEFAULT_EVENING_START_HOUR,
    ) -> None:
        self._instances = instances
        self._tasks = tasks
        self._routines = routines
        self._calendar = calendar
        self._tz = tz
        self._carry_over_days = max(0, int(carry_over_days))
        self._afternoon_start_hour = int(afternoon_start_hour)
        self._evening_start_hour = int(evening_start_hour)

    @staticmethod
    async def _fetch(name: str, fn: Callable[..., list[T]], *args: object) -> list[T]:
        try:
            return list(await asyncio.to_thread(fn, *args) or [])
        except Exception:
            logger.exception("Timeline source %s failed", name)
            return []

    @staticmethod
    async def _lookup(name: str, fn: Callable[[str], T | None], entity_id: str) -> T | None:
        try:
            return await asyncio.to_thread(fn, entity_id)
        except Exception:
            logger.exception("Timeline lookup %s(%s) failed", name, entity_id)
            return None

    async def _carry_ins(
        self,
        carried: set[InstanceKey],
        present: set[InstanceKey],
    ) -> list[RoutineRecord | EventRecord]:
        """Fetch routines/events deferred onto a day that do not occur on it by themselves."""
        out: list[RoutineRecord | EventRecord] = []
        for key in sorted(carried - present):
            kind, entity_id = key
            record: RoutineRecord | EventRecord | None
            if kind is EntityKind.ROUTINE:
                record = await self._lookup("get_routine", self._routines.get_routine, entity_id)
            else:
                record = await self._lookup("get_event", self._calendar.get_event, entity_id)
            if record is None:
                logger.debug("Carry-in %s/%s has no source record; dropped", kind.value, entity_id)
                continue
            out.append(record)
        return out

    async def build(self, day: date, assignee: str | None = None) -> DayTimeline:
        """Aggregated, sectioned timeline for `day`, filtered by assignee ("all", "unassigned" or an id)."""
        day = _as_day(day)

        tasks, routines, events, window, landing = await asyncio.gather(
            self._fetch("tasks", self._tasks.list_tasks_for_date, day),
            self._fetch("routines", self._routines.list_routines_for_date, day),
            self._fetch("events", self._calendar.list_events_for_date, day),
            self._instances.get_instances_around(day, days_back=self._carry_over_days),
            # Deferrals onto `day` from any origin date, however far back.
            self._instances.get_instances_for_date(day),
        )
        candidates = _merge_by_id(window, landing)

        routines = [r for r in routines if r.active and r.show_on_timeline]
        events = dedupe_events(events)

        resolved = resolve_instances(candidates, day)

        present: set[InstanceKey] = {(EntityKind.ROUTINE, r.id) for r in routines}
        present |= {(EntityKind.CALENDAR_EVENT, e.id) for e in events}
        # Today's own row may win the tie-break for a carried entity; it still has to be fetched.
        carried = await self._carry_ins(carried_keys(candidates, day), present)

        items: list[TimelineItem] = []
        records: list[SourceRecord] = [*tasks, *routines, *events, *carried]
        for record in records:
            item = project(record, day, self._tz)
            entity_kind = item.kind.entity_kind
            if entity_kind is not None:
                inst = resolved.get((entity_kind, item.entity_id))
                resolved_item = apply_instance(item, inst, day)
                if resolved_item is None:
                    continue
                item = resolved_item
            if not matches_assignee(assignee, item.assignee, item.assignees):
                continue
            items.append(item)

        sections = group_by_section(
            items,
            afternoon_start_hour=self._afternoon_start_hour,
            evening_start_hour=self._evening_start_hour,
        )
        timeline = DayTimeline(
            day=day,
            sections=sections,
            completed_count=sum(1 for i in items if i.actionable and i.completed),
            total_count=sum(1 for i in items if i.actionable),
        )
        logger.debug(
            "Timeline %s assignee=%s items=%d completed=%d/%d",
            day,
            assignee,
            len(items),
            timeline.completed_count,
            timeline.total_count,
        )
        return timeline

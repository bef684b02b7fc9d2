# src/dayline/timeline/sections.py

from __future__ import annotations

from .timeline_models import DaySection, TimelineItem

DEFAULT_AFTERNOON_START_HOUR = 12
DEFAULT_EVENING_START_HOUR = 17


def section_for(
    item: TimelineItem,
    *,
    afternoon_start_hour: int = DEFAULT_AFTERNOON_START_HOUR,
    evening_start_hour: int = DEFAULT_EVENING_START_HOUR,
) -> DaySection:
    if item.all_day:
        return DaySection.ALL_DAY
    if item.start is None:
        return DaySection.UNSCHEDULED

    hour = item.start.hour
    if hour < afternoon_start_hour:
        return DaySection.MORNING
    if hour < evening_start_hour:
        return DaySection.AFTERNOON
    return DaySection.EVENING


def _sort_key(item: TimelineItem) -> tuple[int, int, int, str]:
    # Wall-clock ordering; mixing naive and aware datetimes is allowed here.
    if item.start is None:
        return (0, 0, 0, item.title.lower())
    s = item.start
    return (s.hour, s.minute, s.second, item.title.lower())


def group_by_section(
    items: list[TimelineItem],
    *,
    afternoon_start_hour: int = DEFAULT_AFTERNOON_START_HOUR,
    evening_start_hour: int = DEFAULT_EVENING_START_HOUR,
) -> dict[DaySection, list[TimelineItem]]:
    groups: dict[DaySection, list[TimelineItem]] = {section: [] for section in DaySection}

    for item in items:
        section = section_for(
            item,
            afternoon_start_hour=afternoon_start_hour,
            evening_start_hour=evening_start_hour,
        )
        groups[section].append(item)

    for section in (DaySection.MORNING, DaySection.AFTERNOON, DaySection.EVENING):
        groups[section].sort(key=_sort_key)
    groups[DaySection.ALL_DAY].sort(key=lambda i: i.title.lower())

    return groups

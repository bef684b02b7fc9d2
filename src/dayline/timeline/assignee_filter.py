# src/dayline/timeline/assignee_filter.py

from __future__ import annotations

from collections.abc import Iterable

ALL = "all"
UNASSIGNED = "unassigned"


def matches_assignee(
    selected: str | None,
    assignee: str | None,
    assignees: Iterable[str] | None = None,
) -> bool:
    """
    Assignee filter used by every timeline source.

    - None / "all"  -> always matches
    - "unassigned"  -> neither the single nor the multi-assignee field is set
    - any other id  -> equals the single assignee or appears in the multi list
    """
    if selected is None or selected == ALL:
        return True

    many = [a for a in (assignees or ()) if a]

    if selected == UNASSIGNED:
        return not assignee and not many

    return assignee == selected or selected in many

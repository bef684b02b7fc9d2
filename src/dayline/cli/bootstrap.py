# src/dayline/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the instance store, services, planner file and aggregator into AppState.
"""

from __future__ import annotations

import logging
from datetime import tzinfo

from dateutil import tz

from ..config import get_settings
from ..core.session import StaticSession
from ..core.state import AppState
from ..instances.delegation import DelegationService
from ..instances.instance_service import ActionableInstances
from ..instances.instance_store import InstanceStore
from ..sources.json_source import JsonPlannerSource
from ..timeline.aggregator import TimelineAggregator

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def resolve_timezone(name: str | None) -> tzinfo:
    """Zone by IANA name, falling back to the machine's local zone."""
    if name:
        zone = tz.gettz(name)
        if zone is not None:
            return zone
        logger.warning("Unknown timezone %r; using local time.", name)
    return tz.tzlocal()


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    zone = resolve_timezone(settings.timezone)
    session = StaticSession(settings.user_id)
    store = InstanceStore(settings.db_path, unique_instances=settings.unique_instances)
    instances = ActionableInstances(store, session)
    delegation = DelegationService(instances)
    planner = JsonPlannerSource(settings.sources_path, tz=zone)

    timeline = TimelineAggregator(
        instances,
        tasks=planner,
        routines=planner,
        calendar=planner,
        tz=zone,
        carry_over_days=settings.carry_over_days,
        afternoon_start_hour=settings.afternoon_start_hour,
        evening_start_hour=settings.evening_start_hour,
    )

    return AppState(
        settings=settings,
        session=session,
        store=store,
        instances=instances,
        delegation=delegation,
        timeline=timeline,
        tz=zone,
    )

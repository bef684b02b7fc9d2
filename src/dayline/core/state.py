# src/dayline/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import tzinfo
from typing import Any

from ..instances.delegation import DelegationService
from ..instances.instance_service import ActionableInstances
from ..instances.instance_store import InstanceStore
from ..timeline.aggregator import TimelineAggregator
from .session import StaticSession


@dataclass
class AppState:
    # Store Settings on the state for easy access in commands and connectors.
    settings: Any

    session: StaticSession
    store: InstanceStore
    instances: ActionableInstances
    delegation: DelegationService
    timeline: TimelineAggregator

    tz: tzinfo | None = None

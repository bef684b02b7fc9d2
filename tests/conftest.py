# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from dayline.instances.delegation import DelegationService
from dayline.instances.instance_service import ActionableInstances
from dayline.instances.instance_store import InstanceStore
from dayline.timeline.aggregator import TimelineAggregator

from .fakes import FakeClock, FakePlanner, FakeSession


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and AppState.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="dayline-test",
        log_level="DEBUG",
        user_id="alice",
        timezone=None,
        data_dir=tmp_path,
        db_path=tmp_path / "instances.sqlite3",
        sources_path=tmp_path / "planner.json",
        carry_over_days=1,
        afternoon_start_hour=12,
        evening_start_hour=17,
        unique_instances=True,
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> InstanceStore:
    # Real SQLite store: its behavior is part of what we want to test.
    return InstanceStore(settings.db_path, unique_instances=settings.unique_instances)


@pytest.fixture()
def session() -> FakeSession:
    return FakeSession("alice")


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def instances(store: InstanceStore, session: FakeSession, clock: FakeClock) -> ActionableInstances:
    return ActionableInstances(store, session, clock=clock)


@pytest.fixture()
def delegation(instances: ActionableInstances) -> DelegationService:
    return DelegationService(instances)


@pytest.fixture()
def planner() -> FakePlanner:
    return FakePlanner()


@pytest.fixture()
def aggregator(instances: ActionableInstances, planner: FakePlanner) -> TimelineAggregator:
    return TimelineAggregator(instances, planner, planner, planner, carry_over_days=1)

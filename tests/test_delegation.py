# tests/test_delegation.py

from __future__ import annotations

from datetime import date

import pytest

from dayline.instances.delegation import DelegationService
from dayline.instances.instance_models import CoverageStatus, EntityKind
from dayline.instances.instance_service import ActionableInstances

from .fakes import FakeSession

DAY = date(2024, 1, 15)


@pytest.mark.asyncio
async def test_notes_attach_to_instance_oldest_first(
    instances: ActionableInstances, delegation: DelegationService
) -> None:
    n1 = await delegation.add_note(EntityKind.ROUTINE, "r1", DAY, "fed the cat")
    n2 = await delegation.add_note("routine", "r1", DAY, "also watered plants")
    assert n1 is not None and n2 is not None
    assert n1.instance_id == n2.instance_id

    inst = await instances.get_instance(EntityKind.ROUTINE, "r1", DAY)
    assert inst is not None and inst.id == n1.instance_id

    notes = await delegation.get_notes(inst.id)
    assert [n.note for n in notes] == ["fed the cat", "also watered plants"]
    assert all(n.user_id == "alice" for n in notes)


@pytest.mark.asyncio
async def test_empty_note_is_rejected(delegation: DelegationService) -> None:
    assert await delegation.add_note(EntityKind.ROUTINE, "r1", DAY, "   ") is None
    assert delegation.last_error


@pytest.mark.asyncio
async def test_delete_note(session: FakeSession, delegation: DelegationService) -> None:
    note = await delegation.add_note(EntityKind.ROUTINE, "r1", DAY, "hello")
    assert note is not None

    session.user_id = "bob"
    assert await delegation.delete_note(note.id)
    assert [n.id for n in await delegation.get_notes(note.instance_id)] == [note.id]

    session.user_id = "alice"
    assert await delegation.delete_note(note.id)
    assert await delegation.get_notes(note.instance_id) == []


@pytest.mark.asyncio
async def test_coverage_handoff_accepted(
    session: FakeSession, store, delegation: DelegationService
) -> None:
    req = await delegation.request_coverage(EntityKind.ROUTINE, "walk-dog", DAY)
    assert req is not None
    assert req.requested_by == "alice"
    assert req.status is CoverageStatus.PENDING

    session.user_id = "bob"
    assert await delegation.respond_to_coverage(req.id, True)

    (got,) = await delegation.get_coverage_requests(req.instance_id)
    assert got.status is CoverageStatus.ACCEPTED
    assert got.covered_by == "bob"
    assert got.responded_at is not None

    # The occurrence now belongs to bob; alice still owns the instance row.
    inst = store.get_instance_by_id(req.instance_id, user_id="alice")
    assert inst.assignee_override == "bob"


@pytest.mark.asyncio
async def test_coverage_declined(session: FakeSession, delegation: DelegationService) -> None:
    req = await delegation.request_coverage(EntityKind.CALENDAR_EVENT, "e1", DAY)
    assert req is not None

    session.user_id = "bob"
    assert await delegation.respond_to_coverage(req.id, False)

    (got,) = await delegation.get_coverage_requests(req.instance_id)
    assert got.status is CoverageStatus.DECLINED
    assert got.covered_by is None


@pytest.mark.asyncio
async def test_coverage_requests_newest_first(delegation: DelegationService) -> None:
    first = await delegation.request_coverage(EntityKind.ROUTINE, "r1", DAY)
    second = await delegation.request_coverage(EntityKind.ROUTINE, "r1", DAY)

    reqs = await delegation.get_coverage_requests(first.instance_id)
    assert [r.id for r in reqs] == [second.id, first.id]


@pytest.mark.asyncio
async def test_respond_to_missing_request(delegation: DelegationService) -> None:
    assert await delegation.respond_to_coverage(424242, True) is False
    assert "not found" in (delegation.last_error or "")


@pytest.mark.asyncio
async def test_delegation_without_session(session: FakeSession, delegation: DelegationService) -> None:
    session.user_id = None

    assert await delegation.get_notes(1) == []
    assert await delegation.get_coverage_requests(1) == []
    assert await delegation.add_note(EntityKind.ROUTINE, "r1", DAY, "x") is None
    assert await delegation.request_coverage(EntityKind.ROUTINE, "r1", DAY) is None
    assert await delegation.respond_to_coverage(1, True) is False
    assert delegation.last_error == "Not authenticated"


@pytest.mark.asyncio
async def test_errors_are_shared_with_instances(
    session: FakeSession, instances: ActionableInstances, delegation: DelegationService
) -> None:
    session.user_id = None
    await delegation.request_coverage(EntityKind.ROUTINE, "r1", DAY)
    assert instances.last_error == "Not authenticated"

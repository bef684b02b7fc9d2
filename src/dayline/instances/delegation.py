# src/dayline/instances/delegation.py

from __future__ import annotations

import logging
from datetime import date

from .instance_models import CoverageRequest, EntityKind, InstanceNote
from .instance_service import ActionableInstances, StoreService

logger = logging.getLogger(__name__)


class DelegationService(StoreService):
    """
    Notes and coverage requests keyed to an instance.

    Shares store, session and last_error with the ActionableInstances it is built on,
    and uses it to get-or-create the instance a note or request attaches to.
    """

    def __init__(self, instances: ActionableInstances) -> None:
        super().__init__(instances.store, instances.session, errors=instances.errors, clock=instances.clock)
        self._instances = instances

    # ---- notes ----

    async def get_notes(self, instance_id: int) -> list[InstanceNote]:
        """Notes for an instance, oldest first."""

        async def action(_user_id: str) -> list[InstanceNote]:
            return await self._call(self._store.list_notes, int(instance_id))

        return await self._read("get_notes", action, [])

    async def add_note(
        self, kind: EntityKind | str, entity_id: str, day: date, text: str
    ) -> InstanceNote | None:
        async def action(user_id: str) -> InstanceNote | None:
            inst = await self._instances.ensure_instance(user_id, kind, entity_id, day)
            note = await self._call(self._store.add_note, instance_id=inst.id, user_id=user_id, note=text)
            logger.info("Note %s added to instance %s", note.id, inst.id)
            return note

        return await self._write("add_note", action, None)

    async def delete_note(self, note_id: int) -> bool:
        async def action(user_id: str) -> bool:
            await self._call(self._store.delete_note, int(note_id), user_id=user_id)
            return True

        return await self._write("delete_note", action, False)

    # ---- coverage ----

    async def request_coverage(
        self, kind: EntityKind | str, entity_id: str, day: date
    ) -> CoverageRequest | None:
        async def action(user_id: str) -> CoverageRequest | None:
            inst = await self._instances.ensure_instance(user_id, kind, entity_id, day)
            req = await self._call(self._store.add_coverage_request, instance_id=inst.id, requested_by=user_id)
            logger.info("Coverage request %s opened on instance %s by %s", req.id, inst.id, user_id)
            return req

        return await self._write("request_coverage", action, None)

    async def get_coverage_requests(self, instance_id: int) -> list[CoverageRequest]:
        """Coverage requests for an instance, newest first."""

        async def action(_user_id: str) -> list[CoverageRequest]:
            return await self._call(self._store.list_coverage_requests, int(instance_id))

        return await self._read("get_coverage_requests", action, [])

    async def respond_to_coverage(self, request_id: int, accept: bool) -> bool:
        """
        Accept -> status=accepted, covered_by=current user (and the occurrence is
        reassigned to them). Decline -> status=declined, covered_by cleared.
        """

        async def action(user_id: str) -> bool:
            ok = await self._call(
                self._store.respond_to_coverage,
                int(request_id),
                responder=user_id,
                accept=bool(accept),
                now_ts=self._clock(),
            )
            if not ok:
                self._errors.set(f"Coverage request {request_id} not found")
            return ok

        return await self._write("respond_to_coverage", action, False)

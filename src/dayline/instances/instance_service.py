# src/dayline/instances/instance_service.py

from __future__ import annotations

"""
Per-occurrence instance service.

Async facade over the instance store:
- resolves the signed-in user from the session port,
- runs blocking store calls in a worker thread,
- folds "not signed in" and store failures into None / False / [] results.

Nothing raised by the store escapes; write failures also leave a short message
in `last_error` for display.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import date, datetime, timedelta
from typing import Any, TypeVar

from ..core.errors import ErrorSlot, NotAuthenticatedError, StoreError
from ..core.ports import InstanceRepo, SessionProvider
from .instance_models import ActionableInstance, EntityKind, InstanceStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _as_day(day: date) -> date:
    return day.date() if isinstance(day, datetime) else day


def _as_kind(kind: EntityKind | str) -> EntityKind:
    return kind if isinstance(kind, EntityKind) else EntityKind.parse(kind)


class StoreService:
    """Shared plumbing for services that act on behalf of the signed-in user."""

    def __init__(
        self,
        store: InstanceRepo,
        session: SessionProvider,
        *,
        errors: ErrorSlot | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._session = session
        self._errors = errors if errors is not None else ErrorSlot()
        self._clock = clock

    @property
    def store(self) -> InstanceRepo:
        return self._store

    @property
    def session(self) -> SessionProvider:
        return self._session

    @property
    def clock(self) -> Callable[[], float]:
        return self._clock

    @property
    def errors(self) -> ErrorSlot:
        return self._errors

    @property
    def last_error(self) -> str | None:
        return self._errors.message

    def current_user(self) -> str | None:
        try:
            return self._session.current_user_id() or None
        except Exception:
            logger.debug("Session lookup failed; treating as signed out.", exc_info=True)
            return None

    def _require_user(self) -> str:
        user_id = self.current_user()
        if not user_id:
            raise NotAuthenticatedError()
        return user_id

    @staticmethod
    async def _call(fn: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
        return await asyncio.to_thread(fn, *args, **kwargs)

    async def _read(self, op: str, action: Callable[[str], Awaitable[T]], default: T) -> T:
        user_id = self.current_user()
        if not user_id:
            logger.debug("%s: no authenticated user", op)
            return default
        try:
            return await action(user_id)
        except Exception:
            logger.exception("%s failed", op)
            return default

    async def _write(self, op: str, action: Callable[[str], Awaitable[T]], default: T) -> T:
        self._errors.clear()
        try:
            user_id = self._require_user()
            return await action(user_id)
        except NotAuthenticatedError as e:
            logger.debug("%s: %s", op, e)
            self._errors.set(str(e))
            return default
        except Exception as e:
            logger.exception("%s failed", op)
            self._errors.set(str(e) or f"Failed to {op.replace('_', ' ')}")
            return default


class ActionableInstances(StoreService):
    """
    Instance operations for routines and calendar events.

    State machine (per instance, per date):
      pending --mark_done--> completed --undo_done--> pending
      pending --skip--> skipped
      pending --defer(same day)--> pending (deferred_to = new time)
      pending --defer(other day)--> deferred
    """

    # ---- reads ----

    async def get_instance(
        self, kind: EntityKind | str, entity_id: str, day: date
    ) -> ActionableInstance | None:
        async def action(user_id: str) -> ActionableInstance | None:
            return await self._call(
                self._store.get_instance,
                user_id=user_id,
                kind=_as_kind(kind),
                entity_id=entity_id,
                day=_as_day(day),
            )

        return await self._read("get_instance", action, None)

    async def get_or_create_instance(
        self, kind: EntityKind | str, entity_id: str, day: date
    ) -> ActionableInstance | None:
        async def action(user_id: str) -> ActionableInstance | None:
            return await self.ensure_instance(user_id, kind, entity_id, day)

        return await self._read("get_or_create_instance", action, None)

    async def get_instances_for_date(self, day: date) -> list[ActionableInstance]:
        """Instances dated `day` plus instances deferred to `day` (deduplicated by id)."""

        async def action(user_id: str) -> list[ActionableInstance]:
            rows = await self._call(self._store.list_instances_for_date, user_id=user_id, day=_as_day(day))
            seen: dict[int, ActionableInstance] = {}
            for inst in rows:
                seen.setdefault(inst.id, inst)
            return list(seen.values())

        return await self._read("get_instances_for_date", action, [])

    async def get_instances_in_window(self, start: date, end: date) -> list[ActionableInstance]:
        async def action(user_id: str) -> list[ActionableInstance]:
            return await self._call(
                self._store.list_instances_in_window,
                user_id=user_id,
                start=_as_day(start),
                end=_as_day(end),
            )

        return await self._read("get_instances_in_window", action, [])

    async def get_instances_around(self, day: date, *, days_back: int) -> list[ActionableInstance]:
        """Window [day - days_back, day]; used to catch cross-day deferrals."""
        d = _as_day(day)
        return await self.get_instances_in_window(d - timedelta(days=max(0, int(days_back))), d)

    # ---- actions ----

    async def mark_done(self, kind: EntityKind | str, entity_id: str, day: date) -> bool:
        async def action(user_id: str) -> bool:
            inst = await self.ensure_instance(user_id, kind, entity_id, day)
            await self._update(
                inst, user_id, status=InstanceStatus.COMPLETED, completed_at=self._clock()
            )
            logger.info("Instance %s (%s/%s %s) -> completed", inst.id, inst.entity_kind.value, entity_id, inst.date)
            return True

        return await self._write("mark_done", action, False)

    async def undo_done(self, kind: EntityKind | str, entity_id: str, day: date) -> bool:
        async def action(user_id: str) -> bool:
            inst = await self._call(
                self._store.get_instance,
                user_id=user_id,
                kind=_as_kind(kind),
                entity_id=entity_id,
                day=_as_day(day),
            )
            if inst is None:
                # Nothing recorded means it is already not done.
                return True
            await self._update(inst, user_id, status=InstanceStatus.PENDING, completed_at=None)
            logger.info("Instance %s -> pending (undo)", inst.id)
            return True

        return await self._write("undo_done", action, False)

    async def skip(self, kind: EntityKind | str, entity_id: str, day: date) -> bool:
        async def action(user_id: str) -> bool:
            inst = await self.ensure_instance(user_id, kind, entity_id, day)
            await self._update(inst, user_id, status=InstanceStatus.SKIPPED, skipped_at=self._clock())
            logger.info("Instance %s -> skipped", inst.id)
            return True

        return await self._write("skip", action, False)

    async def defer(
        self, kind: EntityKind | str, entity_id: str, day: date, target: datetime
    ) -> bool:
        """
        Move one occurrence to `target` without touching its recurrence.

        Same calendar date (as written in `target`) -> stays pending, time overridden.
        Different date -> status=deferred; it acts on the target date instead.
        """

        async def action(user_id: str) -> bool:
            inst = await self.ensure_instance(user_id, kind, entity_id, day)
            same_day = target.date() == inst.date
            status = InstanceStatus.PENDING if same_day else InstanceStatus.DEFERRED
            await self._update(inst, user_id, status=status, deferred_to=target)
            logger.info("Instance %s -> %s deferred_to=%s", inst.id, status.value, target.isoformat())
            return True

        return await self._write("defer", action, False)

    async def assign(
        self, kind: EntityKind | str, entity_id: str, day: date, assignee: str | None
    ) -> bool:
        """Set (or clear with None) the assignee for this one occurrence."""

        async def action(user_id: str) -> bool:
            inst = await self.ensure_instance(user_id, kind, entity_id, day)
            await self._update(inst, user_id, assignee_override=(assignee or None))
            logger.info("Instance %s assignee_override=%s", inst.id, assignee or None)
            return True

        return await self._write("assign", action, False)

    # ---- helpers ----

    async def ensure_instance(
        self, user_id: str, kind: EntityKind | str, entity_id: str, day: date
    ) -> ActionableInstance:
        return await self._call(
            self._store.get_or_create_instance,
            user_id=user_id,
            kind=_as_kind(kind),
            entity_id=entity_id,
            day=_as_day(day),
        )

    async def _update(self, inst: ActionableInstance, user_id: str, **fields: Any) -> None:
        ok = await self._call(self._store.update_instance, inst.id, user_id=user_id, **fields)
        if not ok:
            raise StoreError(f"Instance {inst.id} was not updated")
